"""
Serialization - GameState to JSON-safe data and back.

A pydantic TypeAdapter walks the state dataclasses, so every nested card,
prompt and log entry round-trips without hand-written converters. Enums
are written as their values.
"""

from __future__ import annotations
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .errors import DataIntegrityError, ErrorCode
from .state import GameState, MatchResult

_state_adapter = TypeAdapter(GameState)
_result_adapter = TypeAdapter(MatchResult)


def dump_state(state: GameState) -> dict[str, Any]:
    return _state_adapter.dump_python(state, mode="json")


def dumps_state(state: GameState) -> str:
    return _state_adapter.dump_json(state).decode("utf-8")


def load_state(data: dict[str, Any]) -> GameState:
    try:
        return _state_adapter.validate_python(data)
    except ValidationError as exc:
        raise DataIntegrityError(
            f"Snapshot does not describe a match: {exc.error_count()} error(s)",
            error_code=ErrorCode.INVALID_ACTION,
            details={"errors": exc.errors(include_url=False)[:5]},
        ) from exc


def loads_state(text: str | bytes) -> GameState:
    try:
        return _state_adapter.validate_json(text)
    except ValidationError as exc:
        raise DataIntegrityError(
            f"Snapshot does not describe a match: {exc.error_count()} error(s)",
            error_code=ErrorCode.INVALID_ACTION,
        ) from exc


def dump_result(result: MatchResult) -> dict[str, Any]:
    return _result_adapter.dump_python(result, mode="json")
