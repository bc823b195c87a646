"""Durable roll storage, persistent burn flags and theme improvement bookkeeping."""

import logging
from typing import Iterable, Optional

from config.exceptions import InvalidTransitionError, RollNotFoundError
from engine.resolver import TagResolver
from models.database import Database, TagRow
from models.enums import RollSide, RollStatus, TagParentKind
from models.roll import ImprovementReport, RollProposal, ThemeImprovement
from models.tags import TagReference

logger = logging.getLogger(__name__)

_PERSISTED_STATUSES = (RollStatus.SUBMITTED, RollStatus.CONFIRMED, RollStatus.EXECUTED)

_COLUMN_FIELDS = {
    "creator_id": "creator_id",
    "acting_character_id": "character_id",
    "scene_id": "scene_id",
    "description": "description",
    "narration_link": "narration_link",
    "justification_notes": "justification_notes",
    "status": "status",
    "confirmed_by": "confirmed_by",
    "is_reaction": "is_reaction",
    "reaction_to_roll_id": "reaction_to_roll_id",
    "might_modifier": "might_modifier",
}

_TAG_FIELDS = {"help_tags", "hinder_tags", "burned_tags", "help_source_owner", "hinder_source_owner"}


class RollRepository:
    """Maps RollProposal objects onto roll and roll tag rows."""

    def __init__(self, db: Database, resolver: TagResolver, improvement_threshold: int = 3):
        self.db = db
        self.resolver = resolver
        self.improvement_threshold = improvement_threshold

    # ---- Rolls ----

    def create_roll(self, proposal: RollProposal) -> int:
        if proposal.status not in _PERSISTED_STATUSES:
            raise InvalidTransitionError(proposal.status.value, "persist")
        roll_id = self.db.insert_roll(self._columns(proposal), self._tag_rows(proposal))
        logger.info("Roll #%d stored for scene %s", roll_id, proposal.scene_id)
        return roll_id

    def update_roll(self, roll_id: int, **changes) -> RollProposal:
        """Apply field changes to a stored roll and return the stored result.

        Changing any tag field replaces the whole tag set in the same
        transaction as the column update.
        """
        unknown = set(changes) - set(_COLUMN_FIELDS) - _TAG_FIELDS
        if unknown:
            raise TypeError(f"Unknown roll fields: {sorted(unknown)}")

        proposal = self.get_roll(roll_id)
        for name, value in changes.items():
            setattr(proposal, name, value)
        if "status" in changes and proposal.status not in _PERSISTED_STATUSES:
            raise InvalidTransitionError(proposal.status.value, "persist")

        columns = {
            _COLUMN_FIELDS[name]: value
            for name, value in self._columns(proposal, raw=True).items()
            if name in changes
        }
        tag_rows = self._tag_rows(proposal) if _TAG_FIELDS & set(changes) else None
        if not self.db.update_roll_row(roll_id, columns, tag_rows):
            raise RollNotFoundError(roll_id)
        return self.get_roll(roll_id)

    def get_roll(self, roll_id: int) -> RollProposal:
        row = self.db.fetch_roll(roll_id)
        if row is None:
            raise RollNotFoundError(roll_id)

        proposal = RollProposal(
            id=row["id"],
            creator_id=row["creator_id"],
            acting_character_id=row["character_id"],
            scene_id=row["scene_id"],
            description=row["description"],
            narration_link=row["narration_link"],
            justification_notes=row["justification_notes"],
            is_reaction=bool(row["is_reaction"]),
            reaction_to_roll_id=row["reaction_to_roll_id"],
            status=RollStatus(row["status"]),
            confirmed_by=row["confirmed_by"],
            might_modifier=row["might_modifier"] or 0,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
        for tag_row in self.db.fetch_roll_tags(roll_id):
            ref = self.resolver.with_owner(
                TagReference(TagParentKind(tag_row["parent_kind"]), tag_row["parent_id"])
            )
            owner = tag_row["source_owner_id"]
            if tag_row["side"] == RollSide.HELP.value:
                proposal.help_tags.add(ref)
                if tag_row["is_burned"]:
                    proposal.burned_tags.add(ref)
                if owner is not None:
                    proposal.help_source_owner[ref] = owner
            else:
                proposal.hinder_tags.add(ref)
                if owner is not None:
                    proposal.hinder_source_owner[ref] = owner
        return proposal

    def list_rolls(self, scene_id: Optional[str] = None,
                   status: Optional[RollStatus] = None) -> list[RollProposal]:
        return [self.get_roll(roll_id) for roll_id in self.db.list_roll_ids(scene_id, status)]

    def delete_roll(self, roll_id: int) -> bool:
        deleted = self.db.delete_roll(roll_id)
        if deleted:
            logger.info("Roll #%d deleted", roll_id)
        return deleted

    def delete_invalid_tags(self, roll_id: int) -> int:
        """Remove tag rows whose record no longer exists; returns how many went."""
        if self.db.fetch_roll(roll_id) is None:
            raise RollNotFoundError(roll_id)
        stale = [
            tag_row["id"]
            for tag_row in self.db.fetch_roll_tags(roll_id)
            if self.resolver.try_resolve(
                TagReference(TagParentKind(tag_row["parent_kind"]), tag_row["parent_id"])
            ) is None
        ]
        removed = self.db.delete_roll_tag_rows(stale) if stale else 0
        if removed:
            logger.info("Removed %d stale tags from roll #%d", removed, roll_id)
        return removed

    def _columns(self, proposal: RollProposal, raw: bool = False) -> dict:
        values = {
            "creator_id": proposal.creator_id,
            "acting_character_id": proposal.acting_character_id,
            "scene_id": proposal.scene_id,
            "description": proposal.description,
            "narration_link": proposal.narration_link,
            "justification_notes": proposal.justification_notes,
            "status": proposal.status.value,
            "confirmed_by": proposal.confirmed_by,
            "is_reaction": proposal.is_reaction,
            "reaction_to_roll_id": proposal.reaction_to_roll_id,
            "might_modifier": proposal.might_modifier,
        }
        if raw:
            return values
        return {_COLUMN_FIELDS[name]: value for name, value in values.items()}

    @staticmethod
    def _tag_rows(proposal: RollProposal) -> list[TagRow]:
        rows: list[TagRow] = []
        for ref in sorted(proposal.help_tags, key=lambda r: r.key):
            rows.append((
                RollSide.HELP.value,
                ref in proposal.burned_tags,
                proposal.help_source_owner.get(ref),
                ref.parent_kind.value,
                ref.parent_id,
            ))
        for ref in sorted(proposal.hinder_tags, key=lambda r: r.key):
            rows.append((
                RollSide.HINDER.value,
                False,
                proposal.hinder_source_owner.get(ref),
                ref.parent_kind.value,
                ref.parent_id,
            ))
        return rows

    # ---- Theme improvements ----

    def apply_theme_improvements(self, hinder_tags: Iterable[TagReference]) -> ImprovementReport:
        """Add one improvement to a theme for each of its weaknesses among the hinder tags."""
        theme_ids = self._weakness_theme_ids(hinder_tags)
        counts = self.db.increment_theme_improvements(theme_ids) if theme_ids else {}
        return self._report(counts)

    def mark_executed(self, roll_id: int, hinder_tags: Iterable[TagReference]) -> ImprovementReport:
        """Flip a roll to executed and apply its improvements in one transaction."""
        theme_ids = self._weakness_theme_ids(hinder_tags)
        counts = self.db.mark_roll_executed(roll_id, theme_ids)
        return self._report(counts)

    def _weakness_theme_ids(self, hinder_tags: Iterable[TagReference]) -> list[int]:
        theme_ids = []
        for ref in hinder_tags:
            if ref.parent_kind != TagParentKind.CHARACTER_THEME_TAG:
                continue
            tag = self.db.get_theme_tag(ref.parent_id)
            if tag is not None and tag.is_weakness:
                theme_ids.append(tag.theme_id)
        return theme_ids

    def _report(self, counts: dict[int, int]) -> ImprovementReport:
        report = ImprovementReport()
        for theme_id, count in counts.items():
            theme = self.db.get_theme(theme_id)
            if theme is None:
                continue
            improvement = ThemeImprovement(
                character_id=theme.character_id,
                theme_id=theme_id,
                theme_name=theme.name,
                new_count=count,
            )
            report.improved.append(improvement)
            if count >= self.improvement_threshold:
                report.ready_to_develop.append(improvement)
                logger.info(
                    "Theme '%s' (character %d) is ready to develop with %d improvements",
                    theme.name, theme.character_id, count,
                )
        return report

    # ---- Persistent burn flags ----

    def mark_burned(self, refs: Iterable[TagReference]) -> int:
        changed = self.db.set_burn_flags(((r.parent_kind, r.parent_id) for r in refs), True)
        logger.info("Marked %d tags burned", changed)
        return changed

    def refresh(self, refs: Iterable[TagReference]) -> int:
        changed = self.db.set_burn_flags(((r.parent_kind, r.parent_id) for r in refs), False)
        logger.info("Refreshed %d burned tags", changed)
        return changed
