"""Resolve tag references to display data through the storage layer."""

import logging
from typing import Callable, Optional

from config.exceptions import TagNotFoundError
from models.database import Database
from models.enums import TagCategory, TagParentKind
from models.tags import ResolvedTag, TagReference
from tools.tag_text import is_status_name

logger = logging.getLogger(__name__)


def categorize(name: str, is_weakness: bool = False) -> TagCategory:
    """Weakness flag wins; otherwise the status grammar decides."""
    if is_weakness:
        return TagCategory.WEAKNESS
    if is_status_name(name):
        return TagCategory.STATUS
    return TagCategory.TAG


class TagResolver:
    """Looks up the record behind a TagReference, one lookup per parent kind."""

    def __init__(self, db: Database):
        self.db = db
        self._resolvers: dict[TagParentKind, Callable[[int], Optional[ResolvedTag]]] = {
            TagParentKind.CHARACTER_THEME: self._resolve_theme,
            TagParentKind.CHARACTER_THEME_TAG: self._resolve_theme_tag,
            TagParentKind.CHARACTER_BACKPACK: self._resolve_backpack,
            TagParentKind.CHARACTER_STORY_TAG: self._resolve_story_tag,
            TagParentKind.CHARACTER_STATUS: self._resolve_status,
            TagParentKind.SCENE_TAG: self._resolve_scene_tag,
            TagParentKind.FELLOWSHIP_TAG: self._resolve_fellowship_tag,
        }

    def resolve(self, ref: TagReference) -> ResolvedTag:
        """Resolve a reference or raise TagNotFoundError."""
        resolved = self._resolvers[ref.parent_kind](ref.parent_id)
        if resolved is None:
            raise TagNotFoundError(ref.parent_kind.value, ref.parent_id)
        return resolved

    def try_resolve(self, ref: TagReference) -> Optional[ResolvedTag]:
        try:
            return self.resolve(ref)
        except TagNotFoundError:
            logger.debug("Skipping unresolvable tag %s", ref.key)
            return None

    def with_owner(self, ref: TagReference) -> TagReference:
        """Return the reference with owner_character_id filled from storage."""
        resolved = self.try_resolve(ref)
        return ref.with_owner(resolved.owning_character_id if resolved else None)

    def _resolve_theme(self, parent_id: int) -> Optional[ResolvedTag]:
        theme = self.db.get_theme(parent_id)
        if theme is None:
            return None
        return ResolvedTag(
            display_name=theme.name,
            category=categorize(theme.name),
            owning_character_id=theme.character_id,
            is_burned=theme.is_burned,
        )

    def _resolve_theme_tag(self, parent_id: int) -> Optional[ResolvedTag]:
        tag = self.db.get_theme_tag(parent_id)
        if tag is None:
            return None
        theme = self.db.get_theme(tag.theme_id)
        return ResolvedTag(
            display_name=tag.tag,
            category=categorize(tag.tag, tag.is_weakness),
            owning_character_id=theme.character_id if theme else None,
            is_burned=tag.is_burned,
        )

    def _resolve_backpack(self, parent_id: int) -> Optional[ResolvedTag]:
        item = self.db.get_backpack_item(parent_id)
        if item is None:
            return None
        return ResolvedTag(
            display_name=item.item,
            category=categorize(item.item),
            owning_character_id=item.character_id,
            is_burned=item.is_burned,
        )

    def _resolve_story_tag(self, parent_id: int) -> Optional[ResolvedTag]:
        tag = self.db.get_story_tag(parent_id)
        if tag is None:
            return None
        return ResolvedTag(
            display_name=tag.tag,
            category=categorize(tag.tag),
            owning_character_id=tag.character_id,
            is_burned=tag.is_burned,
        )

    def _resolve_status(self, parent_id: int) -> Optional[ResolvedTag]:
        status = self.db.get_status(parent_id)
        if status is None:
            return None
        name = status.display_name
        return ResolvedTag(
            display_name=name,
            category=categorize(name),
            owning_character_id=status.character_id,
        )

    def _resolve_scene_tag(self, parent_id: int) -> Optional[ResolvedTag]:
        entry = self.db.get_scene_entry(parent_id)
        if entry is None:
            return None
        return ResolvedTag(display_name=entry.tag, category=categorize(entry.tag))

    def _resolve_fellowship_tag(self, parent_id: int) -> Optional[ResolvedTag]:
        tag = self.db.get_fellowship_tag(parent_id)
        if tag is None:
            return None
        return ResolvedTag(display_name=tag.tag, category=categorize(tag.tag, tag.is_weakness))
