"""Configuration package — settings, logging, and exceptions."""

from config.exceptions import (
    TagRollError,
    NotFoundError,
    TagNotFoundError,
    RollNotFoundError,
    CharacterNotFoundError,
    SessionNotFoundError,
    PermissionDeniedError,
    InvariantViolationError,
    InvalidTransitionError,
    StorageFailureError,
    ValidationError,
    InvalidConfigError,
)
from config.logging_config import setup_logging
from config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "TagRollError",
    "NotFoundError",
    "TagNotFoundError",
    "RollNotFoundError",
    "CharacterNotFoundError",
    "SessionNotFoundError",
    "PermissionDeniedError",
    "InvariantViolationError",
    "InvalidTransitionError",
    "StorageFailureError",
    "ValidationError",
    "InvalidConfigError",
]
