"""Custom exception hierarchy for the roll resolution engine."""

from typing import Optional


class TagRollError(Exception):
    """Base exception for all roll engine errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# ---- Lookup Errors ----

class NotFoundError(TagRollError):
    """A referenced record does not exist."""


class TagNotFoundError(NotFoundError):
    """A tag reference no longer resolves to a stored record."""

    def __init__(self, parent_kind: str, parent_id: int):
        super().__init__(
            f"Tag not found: {parent_kind}:{parent_id}",
            {"parent_kind": parent_kind, "parent_id": parent_id},
        )
        self.parent_kind = parent_kind
        self.parent_id = parent_id


class RollNotFoundError(NotFoundError):
    """Unknown roll id."""

    def __init__(self, roll_id: int):
        super().__init__(f"Roll #{roll_id} not found", {"roll_id": roll_id})
        self.roll_id = roll_id


class CharacterNotFoundError(NotFoundError):
    """Unknown character id."""

    def __init__(self, character_id: int):
        super().__init__(f"Character {character_id} not found", {"character_id": character_id})
        self.character_id = character_id


class SessionNotFoundError(NotFoundError):
    """No editable roll session exists for the key (never started or expired)."""


# ---- Permission Errors ----

class PermissionDeniedError(TagRollError):
    """Caller is neither the creator nor holds the editor role."""

    def __init__(self, actor_id: str, action: str):
        super().__init__(
            f"Actor {actor_id} may not {action}",
            {"actor_id": actor_id, "action": action},
        )
        self.actor_id = actor_id
        self.action = action


# ---- Invariant Errors ----

class InvariantViolationError(TagRollError):
    """Requested mutation would break a roll invariant; nothing was changed."""


class InvalidTransitionError(InvariantViolationError):
    """Roll is not in a status that allows the requested operation."""

    def __init__(self, roll_status: str, operation: str):
        super().__init__(
            f"Cannot {operation} a roll in status '{roll_status}'",
            {"status": roll_status, "operation": operation},
        )
        self.roll_status = roll_status
        self.operation = operation


# ---- Storage Errors ----

class StorageFailureError(TagRollError):
    """A storage transaction failed and was rolled back."""


# ---- Validation Errors ----

class ValidationError(TagRollError):
    """Input validation failed."""


class InvalidConfigError(ValidationError):
    """Configuration value is invalid."""
