"""Tag reference value objects."""

from dataclasses import dataclass, field
from typing import Optional

from models.enums import TagCategory, TagParentKind


@dataclass(frozen=True)
class TagReference:
    """Pointer to a tag-bearing record; carries no tag data itself.

    Equality and hashing use (parent_kind, parent_id) only, so a reference
    keeps its set membership whether or not owner metadata is attached.
    """
    parent_kind: TagParentKind
    parent_id: int
    owner_character_id: Optional[int] = field(default=None, compare=False)

    @property
    def key(self) -> str:
        return f"{self.parent_kind.value}:{self.parent_id}"

    @classmethod
    def from_key(cls, key: str) -> "TagReference":
        """Parse a 'kind:id' key back into a reference."""
        kind, _, raw_id = key.rpartition(":")
        return cls(TagParentKind(kind), int(raw_id))

    def with_owner(self, owner_character_id: Optional[int]) -> "TagReference":
        return TagReference(self.parent_kind, self.parent_id, owner_character_id)


@dataclass(frozen=True)
class ResolvedTag:
    """Display data for a reference, derived from its owning record."""
    display_name: str
    category: TagCategory
    owning_character_id: Optional[int] = None
    is_burned: bool = False

    @property
    def is_status(self) -> bool:
        return self.category == TagCategory.STATUS

    @property
    def is_weakness(self) -> bool:
        return self.category == TagCategory.WEAKNESS
