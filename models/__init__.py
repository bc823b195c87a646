"""Models package — database, dataclass records, and enums."""

from models.database import Database
from models.character import (
    BackpackItem,
    Character,
    Fellowship,
    FellowshipTag,
    SceneEntry,
    StoryTag,
    TempStatus,
    Theme,
    ThemeTag,
)
from models.roll import (
    DiceOutcome,
    ExecutionResult,
    ImprovementReport,
    RollProposal,
    ThemeImprovement,
)
from models.tags import ResolvedTag, TagReference
from models.enums import (
    TagParentKind,
    TagCategory,
    SceneEntryType,
    RollStatus,
    RollSide,
    SessionMode,
    Outcome,
    PowerStrategy,
)

__all__ = [
    "Database",
    "BackpackItem",
    "Character",
    "Fellowship",
    "FellowshipTag",
    "SceneEntry",
    "StoryTag",
    "TempStatus",
    "Theme",
    "ThemeTag",
    "DiceOutcome",
    "ExecutionResult",
    "ImprovementReport",
    "RollProposal",
    "ThemeImprovement",
    "ResolvedTag",
    "TagReference",
    "TagParentKind",
    "TagCategory",
    "SceneEntryType",
    "RollStatus",
    "RollSide",
    "SessionMode",
    "Outcome",
    "PowerStrategy",
]
