"""Tag text utilities: status grammar and numeric suffix parsing."""

import re

_STATUS_RE = re.compile(r"^\S+-\d+$")
_SUFFIX_RE = re.compile(r"-(\d+)$")


def is_status_name(name: str) -> bool:
    """Return True if the name follows the status grammar.

    A status has no spaces and ends in a dash and a number, with at least
    one character before the dash: "rested-4", "time-passes-3". "-5" and
    "on fire-2" are not statuses.
    """
    if not name:
        return False
    return bool(_STATUS_RE.match(name.strip()))


def extract_status_value(name: str) -> int:
    """Extract the trailing number of a status ("sleeping-3" -> 3).

    Returns 1 when there is no trailing -<digits>.
    """
    match = _SUFFIX_RE.search(name.strip())
    return int(match.group(1)) if match else 1


def format_modifier(value: int) -> str:
    """Render a signed modifier the way roll summaries show it (+3, -1, +0)."""
    return f"+{value}" if value >= 0 else str(value)
