"""Enumerations for tag references and roll lifecycle tracking."""

from enum import Enum


class TagParentKind(str, Enum):
    """Which record a tag reference points at."""
    CHARACTER_THEME = "character_theme"
    CHARACTER_THEME_TAG = "character_theme_tag"
    CHARACTER_BACKPACK = "character_backpack"
    CHARACTER_STORY_TAG = "character_story_tag"
    CHARACTER_STATUS = "character_status"
    SCENE_TAG = "scene_tag"
    FELLOWSHIP_TAG = "fellowship_tag"

    @property
    def is_character_owned(self) -> bool:
        return self not in (TagParentKind.SCENE_TAG, TagParentKind.FELLOWSHIP_TAG)


class TagCategory(str, Enum):
    TAG = "tag"
    STATUS = "status"
    WEAKNESS = "weakness"


class SceneEntryType(str, Enum):
    TAG = "tag"
    STATUS = "status"
    LIMIT = "limit"
    BLOCKED = "blocked"


class RollStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    EXECUTED = "executed"
    CANCELLED = "cancelled"


class RollSide(str, Enum):
    HELP = "help"
    HINDER = "hinder"


class SessionMode(str, Enum):
    DRAFT = "draft"
    REVIEW = "review"
    AMEND = "amend"


class Outcome(str, Enum):
    BEST = "best"
    MIXED = "mixed"
    WORST = "worst"


class PowerStrategy(str, Enum):
    NONE = "none"
    THROW_CAUTION = "throw_caution"
    HEDGE_RISKS = "hedge_risks"
