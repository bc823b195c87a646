"""Roll proposal and roll outcome data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from models.enums import Outcome, PowerStrategy, RollStatus
from models.tags import TagReference


@dataclass
class RollProposal:
    """A proposed roll and its selected help/hinder tags.

    burned_tags is always a subset of help_tags with at most one member.
    The *_source_owner maps record tags borrowed from another character's
    sheet through a help or hinder action.
    """
    id: Optional[int] = None
    creator_id: str = ""
    acting_character_id: Optional[int] = None
    scene_id: str = ""
    description: Optional[str] = None
    narration_link: Optional[str] = None
    justification_notes: Optional[str] = None
    is_reaction: bool = False
    reaction_to_roll_id: Optional[int] = None
    status: RollStatus = RollStatus.DRAFT
    help_tags: set[TagReference] = field(default_factory=set)
    hinder_tags: set[TagReference] = field(default_factory=set)
    burned_tags: set[TagReference] = field(default_factory=set)
    help_source_owner: dict[TagReference, int] = field(default_factory=dict)
    hinder_source_owner: dict[TagReference, int] = field(default_factory=dict)
    confirmed_by: Optional[str] = None
    might_modifier: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def snapshot(self) -> "RollProposal":
        """Copy with independent tag containers, safe to hand to callers."""
        return RollProposal(
            id=self.id,
            creator_id=self.creator_id,
            acting_character_id=self.acting_character_id,
            scene_id=self.scene_id,
            description=self.description,
            narration_link=self.narration_link,
            justification_notes=self.justification_notes,
            is_reaction=self.is_reaction,
            reaction_to_roll_id=self.reaction_to_roll_id,
            status=self.status,
            help_tags=set(self.help_tags),
            hinder_tags=set(self.hinder_tags),
            burned_tags=set(self.burned_tags),
            help_source_owner=dict(self.help_source_owner),
            hinder_source_owner=dict(self.hinder_source_owner),
            confirmed_by=self.confirmed_by,
            might_modifier=self.might_modifier,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass
class ThemeImprovement:
    character_id: int
    theme_id: int
    theme_name: str
    new_count: int


@dataclass
class ImprovementReport:
    improved: list[ThemeImprovement] = field(default_factory=list)
    ready_to_develop: list[ThemeImprovement] = field(default_factory=list)


@dataclass
class DiceOutcome:
    """Classification of a 2d6 roll against its total."""
    die1: int
    die2: int
    total: int
    outcome: Outcome
    label: str
    is_automatic: bool = False


@dataclass
class ExecutionResult:
    """Everything produced when a confirmed roll is executed."""
    roll: RollProposal
    die1: int
    die2: int
    power: int
    might_modifier: int
    strategy: PowerStrategy
    strategy_modifier: int
    total: int
    outcome: Outcome
    label: str
    is_automatic: bool
    spending_power: Optional[int]
    improvements: ImprovementReport
