"""Character sheet, scene and fellowship data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from models.enums import SceneEntryType

POWER_LEVELS = 6


@dataclass
class ThemeTag:
    """A tag or weakness line on a theme."""
    id: Optional[int] = None
    theme_id: int = 0
    tag: str = ""
    is_weakness: bool = False
    is_burned: bool = False


@dataclass
class Theme:
    """One of a character's themes with its tags and weaknesses."""
    id: Optional[int] = None
    character_id: int = 0
    name: str = ""
    theme_order: int = 0
    is_burned: bool = False
    improvements: int = 0
    tags: list[ThemeTag] = field(default_factory=list)
    weaknesses: list[ThemeTag] = field(default_factory=list)


@dataclass
class BackpackItem:
    id: Optional[int] = None
    character_id: int = 0
    item: str = ""
    is_burned: bool = False


@dataclass
class StoryTag:
    id: Optional[int] = None
    character_id: int = 0
    tag: str = ""
    is_burned: bool = False


@dataclass
class TempStatus:
    """A temporary status; each of the six power levels is marked independently."""
    id: Optional[int] = None
    character_id: int = 0
    status: str = ""
    power_levels: list[bool] = field(default_factory=lambda: [False] * POWER_LEVELS)

    @property
    def highest_power(self) -> int:
        for level in range(POWER_LEVELS, 0, -1):
            if self.power_levels[level - 1]:
                return level
        return 0

    @property
    def display_name(self) -> str:
        power = self.highest_power
        return f"{self.status}-{power}" if power else self.status


@dataclass
class FellowshipTag:
    id: Optional[int] = None
    fellowship_id: int = 0
    tag: str = ""
    is_weakness: bool = False


@dataclass
class Fellowship:
    """Shared group theme usable by every member character."""
    id: Optional[int] = None
    name: str = ""
    tags: list[FellowshipTag] = field(default_factory=list)
    weaknesses: list[FellowshipTag] = field(default_factory=list)


@dataclass
class Character:
    """Represents a character sheet."""
    id: Optional[int] = None
    owner_id: Optional[str] = None
    name: str = ""
    is_active: bool = False
    fellowship_id: Optional[int] = None
    themes: list[Theme] = field(default_factory=list)
    backpack: list[BackpackItem] = field(default_factory=list)
    story_tags: list[StoryTag] = field(default_factory=list)
    statuses: list[TempStatus] = field(default_factory=list)
    fellowship: Optional[Fellowship] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class SceneEntry:
    """A tag, status, limit or blocked marker attached to a scene."""
    id: Optional[int] = None
    scene_id: str = ""
    tag: str = ""
    entry_type: SceneEntryType = SceneEntryType.TAG
