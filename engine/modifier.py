"""Modifier calculation from selected help/hinder tags."""

from dataclasses import dataclass
from typing import Iterable

from engine.resolver import TagResolver
from models.enums import TagCategory
from models.tags import TagReference
from tools.tag_text import extract_status_value

BURNED_TAG_BONUS = 3


@dataclass(frozen=True)
class ModifierBreakdown:
    help_modifier: int
    hinder_modifier: int

    @property
    def total(self) -> int:
        return self.help_modifier - self.hinder_modifier


def calculate_breakdown(
    help_tags: Iterable[TagReference],
    hinder_tags: Iterable[TagReference],
    burned_tags: Iterable[TagReference],
    resolver: TagResolver,
) -> ModifierBreakdown:
    """Compute both sides of the modifier.

    Only the highest status counts on each side; every other tag adds one.
    A burned help tag adds three instead. Weaknesses on the hinder side
    always count as plain tags, whatever their name looks like.

    Raises:
        TagNotFoundError: if any selected reference no longer resolves.
    """
    burned = set(burned_tags)

    help_statuses = []
    help_tags_total = 0
    for ref in help_tags:
        resolved = resolver.resolve(ref)
        if resolved.category == TagCategory.STATUS:
            help_statuses.append(extract_status_value(resolved.display_name))
        elif ref in burned:
            help_tags_total += BURNED_TAG_BONUS
        else:
            help_tags_total += 1

    hinder_statuses = []
    hinder_tags_total = 0
    for ref in hinder_tags:
        resolved = resolver.resolve(ref)
        if resolved.category == TagCategory.STATUS:
            hinder_statuses.append(extract_status_value(resolved.display_name))
        else:
            hinder_tags_total += 1

    return ModifierBreakdown(
        help_modifier=max(help_statuses, default=0) + help_tags_total,
        hinder_modifier=max(hinder_statuses, default=0) + hinder_tags_total,
    )


def calculate_modifier(
    help_tags: Iterable[TagReference],
    hinder_tags: Iterable[TagReference],
    burned_tags: Iterable[TagReference],
    resolver: TagResolver,
) -> int:
    """Signed, unclamped modifier: help minus hinder."""
    return calculate_breakdown(help_tags, hinder_tags, burned_tags, resolver).total
