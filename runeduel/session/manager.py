"""
Match Manager - Holds matches between requests.

LIFECYCLE:
1. A client creates a match → an engine is built, decks are dealt, and
   the serialized state is stored under the match id
2. Every action:
   - load: rebuild a MatchEngine from the stored snapshot
   - apply: run one Action through the reducer
   - save: store the new snapshot (only when the action succeeded)
   - bot seats then act until a human seat has to answer
3. The match ends → the session stays readable until cleaned up

The engine is never kept between requests; the snapshot is the single
source of truth, which is what makes reload determinism matter.
Storage is in-memory only.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import logging
import time
import uuid

from ..config import EngineConfig
from ..bots import BotPolicy, RandomPolicy
from ..engine_core.action import Action, ActionResult
from ..engine_core.action_generator import legal_actions
from ..engine_core.catalog import CardCatalog
from ..engine_core.engine import MatchEngine
from ..engine_core.errors import ErrorCode, PreconditionError
from ..engine_core.reducer import Reducer
from ..games.starter import starter_catalog, starter_decks

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle of a stored match."""
    ACTIVE = "active"
    FINISHED = "finished"
    ABANDONED = "abandoned"


@dataclass
class MatchSession:
    """
    A stored match.

    Contains:
    - The latest serialized GameState
    - Which seats are played by bots
    - Bookkeeping timestamps
    """
    match_id: str
    snapshot: dict[str, Any]
    created_at: float
    updated_at: float
    state: SessionState = SessionState.ACTIVE
    bots: dict[str, BotPolicy] = field(default_factory=dict)
    version: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE


class MatchManager:
    """
    Manages stored matches.

    Responsibilities:
    - Create matches from decks (starter decks by default)
    - Apply actions with load -> apply -> save
    - Let bot seats take their turns
    - Clean up finished matches
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        catalog: CardCatalog | None = None,
        max_bot_steps: int = 500,
    ):
        self.config = config or EngineConfig()
        self.catalog = catalog or starter_catalog()
        self.max_bot_steps = max_bot_steps
        self.reducer = Reducer()
        self._sessions: dict[str, MatchSession] = {}

    def create_match(
        self,
        players: list[Any],
        decks: dict[str, Any] | None = None,
        seed: int | None = None,
        bot_players: list[str] | None = None,
        match_id: str | None = None,
    ) -> MatchSession:
        """
        Create and initialize a match.

        Args:
            players: Two seats (ids, (id, name) pairs or dicts)
            decks: Deck configuration per player id (starter decks if None)
            seed: Shuffle seed
            bot_players: Seats played by a RandomPolicy

        Returns:
            The stored MatchSession, after any opening bot moves
        """
        match_id = match_id or str(uuid.uuid4())
        engine = MatchEngine(match_id, players, config=self.config, seed=seed, catalog=self.catalog)
        player_ids = [p.player_id for p in engine.state.players]
        engine.initialize_game(decks or starter_decks(player_ids))

        bots: dict[str, BotPolicy] = {}
        for index, player_id in enumerate(bot_players or []):
            engine.require_player(player_id)
            bot_seed = None if seed is None else seed + index + 1
            bots[player_id] = RandomPolicy(seed=bot_seed)

        now = time.time()
        session = MatchSession(
            match_id=match_id,
            snapshot=engine.to_snapshot(),
            created_at=now,
            updated_at=now,
            bots=bots,
        )
        self._sessions[match_id] = session
        logger.info("Created match %s for %s", match_id, ", ".join(player_ids))
        if bots:
            self._run_bots(session, engine)
        return session

    def get_match(self, match_id: str) -> MatchSession | None:
        return self._sessions.get(match_id)

    def require_match(self, match_id: str) -> MatchSession:
        session = self._sessions.get(match_id)
        if session is None:
            raise PreconditionError(f"Match {match_id} not found", error_code=ErrorCode.MATCH_NOT_FOUND)
        return session

    def load_engine(self, match_id: str) -> MatchEngine:
        session = self.require_match(match_id)
        return MatchEngine.from_snapshot(session.snapshot, config=self.config, catalog=self.catalog)

    def apply(self, match_id: str, action: Action) -> ActionResult:
        """Load the match, apply one action, save on success."""
        session = self.require_match(match_id)
        engine = MatchEngine.from_snapshot(session.snapshot, config=self.config, catalog=self.catalog)
        result = self.reducer.apply(engine, action)
        if not result.success:
            return result
        self._save(session, engine)
        if session.bots and not engine.state.is_over:
            self._run_bots(session, engine)
            result.new_state = engine.get_game_state()
            result.match_result = engine.get_match_result()
        return result

    def _save(self, session: MatchSession, engine: MatchEngine):
        session.snapshot = engine.to_snapshot()
        session.updated_at = time.time()
        session.version += 1
        if engine.state.is_over and session.state == SessionState.ACTIVE:
            session.state = SessionState.FINISHED
            logger.info("Match %s finished", session.match_id)

    def _run_bots(self, session: MatchSession, engine: MatchEngine):
        """Bot seats act until only a human seat can move."""
        for _ in range(self.max_bot_steps):
            if engine.state.is_over:
                break
            acted = False
            for player_id, policy in session.bots.items():
                options = legal_actions(engine, player_id)
                while options:
                    decision = policy.select_action(engine.get_game_state(), options)
                    if self.reducer.apply(engine, decision.action).success:
                        acted = True
                        break
                    options = [a for a in options if a is not decision.action]
                if acted:
                    break
            if not acted:
                break
        self._save(session, engine)

    def end_match(self, match_id: str, reason: str = "completed"):
        session = self._sessions.pop(match_id, None)
        if session:
            session.state = SessionState.FINISHED if reason == "completed" else SessionState.ABANDONED

    def list_active_matches(self) -> list[str]:
        return [mid for mid, session in self._sessions.items() if session.is_active()]

    def cleanup_stale_matches(self, max_age_seconds: int = 3600):
        """Drop finished matches not touched for max_age_seconds."""
        current_time = time.time()
        stale = [
            match_id
            for match_id, session in self._sessions.items()
            if not session.is_active() and current_time - session.updated_at > max_age_seconds
        ]
        for match_id in stale:
            self.end_match(match_id, reason="stale")
