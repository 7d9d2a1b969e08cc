"""
Engine errors.

Two families are raised to callers:
- PreconditionError: the action is not legal right now (wrong turn, phase,
  priority holder, resources, target or identifier). State is untouched.
- DataIntegrityError: match inputs are unusable (deck too small, rune deck
  invalid, catalog lookup failed). Raised during setup only.

Soft conditions (unresolvable effect shapes) are logged, not raised, and
terminal conditions (burn out, victory) change match status instead.
"""

from __future__ import annotations
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes."""
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    WRONG_PHASE = "WRONG_PHASE"
    NO_PRIORITY = "NO_PRIORITY"
    INSUFFICIENT_RESOURCES = "INSUFFICIENT_RESOURCES"
    INVALID_TARGET = "INVALID_TARGET"
    INVALID_CHOICE = "INVALID_CHOICE"
    UNKNOWN_PLAYER = "UNKNOWN_PLAYER"
    UNKNOWN_CARD = "UNKNOWN_CARD"
    UNKNOWN_BATTLEFIELD = "UNKNOWN_BATTLEFIELD"
    UNKNOWN_PROMPT = "UNKNOWN_PROMPT"
    ALREADY_INITIALIZED = "ALREADY_INITIALIZED"
    MATCH_NOT_ACTIVE = "MATCH_NOT_ACTIVE"
    DECK_TOO_SMALL = "DECK_TOO_SMALL"
    RUNE_DECK_TOO_SMALL = "RUNE_DECK_TOO_SMALL"
    INVALID_RUNE = "INVALID_RUNE"
    CATALOG_LOOKUP_FAILED = "CATALOG_LOOKUP_FAILED"
    INVALID_MESSAGE = "INVALID_MESSAGE"
    MATCH_NOT_FOUND = "MATCH_NOT_FOUND"
    INVALID_ACTION = "INVALID_ACTION"


class EngineError(ValueError):
    """Base class for errors surfaced by the match engine."""

    default_code = ErrorCode.INVALID_ACTION

    def __init__(
        self,
        message: str,
        error_code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}


class PreconditionError(EngineError):
    """The requested action is not legal in the current state."""


class DataIntegrityError(EngineError):
    """Match inputs cannot be turned into a playable match."""

    default_code = ErrorCode.CATALOG_LOOKUP_FAILED
