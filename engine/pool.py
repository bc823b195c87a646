"""Build the selectable help/hinder tag lists for a character in a scene."""

import logging
import math
from typing import Iterable, Optional

from models.character import Character
from models.database import Database
from models.enums import SceneEntryType, TagParentKind
from models.tags import TagReference

logger = logging.getLogger(__name__)


def paginate(pool: list[TagReference], page: int, page_size: int) -> list[TagReference]:
    """Return the slice of the pool shown on a zero-based page."""
    if page < 0:
        return []
    start = page * page_size
    return pool[start:start + page_size]


def page_count(pool: list[TagReference], page_size: int) -> int:
    """Number of pages needed to show the pool; an empty pool still has one page."""
    return max(1, math.ceil(len(pool) / page_size))


class TagPoolCollector:
    """Collects tag references in a fixed display order.

    Order: theme names, theme tags, backpack items, story tags, temp
    statuses, scene tags, scene statuses, fellowship tags, then (hinder
    pools only) theme weaknesses and fellowship weaknesses.
    """

    def __init__(self, db: Database):
        self.db = db

    def collect_pool(
        self,
        character: Optional[Character],
        scene_id: str,
        include_burned: bool = False,
        include_weaknesses: bool = False,
        exclude: Iterable[TagReference] = (),
    ) -> list[TagReference]:
        excluded = set(exclude)
        blocked = {
            e.tag.strip().lower()
            for e in self.db.list_scene_entries(scene_id, SceneEntryType.BLOCKED)
        }
        pool: list[TagReference] = []

        def add(kind: TagParentKind, record_id: int, name: str,
                owner: Optional[int] = None, is_burned: bool = False):
            if is_burned and not include_burned:
                return
            if name.strip().lower() in blocked:
                return
            ref = TagReference(kind, record_id, owner)
            if ref in excluded:
                return
            pool.append(ref)

        if character is not None:
            for theme in character.themes:
                add(TagParentKind.CHARACTER_THEME, theme.id, theme.name,
                    character.id, theme.is_burned)
            for theme in character.themes:
                for tag in theme.tags:
                    add(TagParentKind.CHARACTER_THEME_TAG, tag.id, tag.tag,
                        character.id, tag.is_burned)
            for item in character.backpack:
                add(TagParentKind.CHARACTER_BACKPACK, item.id, item.item,
                    character.id, item.is_burned)
            for story_tag in character.story_tags:
                add(TagParentKind.CHARACTER_STORY_TAG, story_tag.id, story_tag.tag,
                    character.id, story_tag.is_burned)
            for status in character.statuses:
                add(TagParentKind.CHARACTER_STATUS, status.id, status.display_name, character.id)

        for entry_type in (SceneEntryType.TAG, SceneEntryType.STATUS):
            for entry in self.db.list_scene_entries(scene_id, entry_type):
                add(TagParentKind.SCENE_TAG, entry.id, entry.tag)

        fellowship = character.fellowship if character is not None else None
        if fellowship is not None:
            for tag in fellowship.tags:
                add(TagParentKind.FELLOWSHIP_TAG, tag.id, tag.tag)

        if include_weaknesses:
            if character is not None:
                for theme in character.themes:
                    for weakness in theme.weaknesses:
                        add(TagParentKind.CHARACTER_THEME_TAG, weakness.id, weakness.tag, character.id)
            if fellowship is not None:
                for weakness in fellowship.weaknesses:
                    add(TagParentKind.FELLOWSHIP_TAG, weakness.id, weakness.tag)

        logger.debug(
            "Collected %d tags for character %s in scene %s",
            len(pool), character.id if character else None, scene_id,
        )
        return pool
