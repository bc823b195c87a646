"""Tools package — tag text utilities."""

from tools.tag_text import (
    is_status_name,
    extract_status_value,
    format_modifier,
)

__all__ = [
    "is_status_name",
    "extract_status_value",
    "format_modifier",
]
