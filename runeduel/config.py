"""
Configuration - Rules constants and logging setup.

All tunable numbers of the duel live in EngineConfig. Defaults are the
tournament values; a few can be overridden from the environment so that
test servers can run shorter matches.
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
import os


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class EngineConfig:
    """Rules constants for one match."""
    initial_hand_size: int = 4
    victory_score: int = 8
    min_deck_size: int = 39
    rune_deck_size: int = 12
    runes_per_turn: int = 2
    battlefield_count: int = 2
    max_mulligan: int = 2
    max_log_entries: int = 200
    max_log_message_length: int = 500
    max_chat_message_length: int = 1000
    max_phase_advances: int = 10

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build a config, applying RUNEDUEL_* overrides when present."""
        overrides = {}
        for field_name, env_name in (
            ("victory_score", "RUNEDUEL_VICTORY_SCORE"),
            ("min_deck_size", "RUNEDUEL_MIN_DECK_SIZE"),
            ("initial_hand_size", "RUNEDUEL_INITIAL_HAND_SIZE"),
            ("battlefield_count", "RUNEDUEL_BATTLEFIELD_COUNT"),
        ):
            raw = os.getenv(env_name)
            if raw is None or not raw.strip():
                continue
            try:
                overrides[field_name] = int(raw)
            except ValueError:
                raise ValueError(f"{env_name} must be an integer, got {raw!r}")
        return cls(**overrides)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the CLI and the API server."""
    level_name = (level or os.getenv("RUNEDUEL_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )
