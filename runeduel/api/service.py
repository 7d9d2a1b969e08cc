"""
API Service - Business logic layer between the HTTP routes and the engine.

The service:
1. Translates API requests to Actions
2. Drives the MatchManager (load -> apply -> save)
3. Projects state per viewer
4. Formats responses

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.).
Engine errors propagate as EngineError; the HTTP layer maps them.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, field
import logging

from .schemas import (
    # Requests
    ActionRequest,
    ChatRequest,
    CreateMatchRequest,
    # Responses
    ActionResponse,
    ChatResponse,
    LegalActionInfo,
    LegalActionsResponse,
    MatchResponse,
    MatchResultInfo,
    MatchResultResponse,
    MatchStateResponse,
    # Shared
    MatchStatus,
    PlayerSummary,
)
from ..engine_core.action import Action, ActionPayload, ActionType
from ..engine_core.action_generator import legal_actions
from ..engine_core.errors import ErrorCode, PreconditionError
from ..engine_core.state import GameState, MatchResult
from ..engine_core.view import project_view
from ..session import MatchManager, MatchSession

logger = logging.getLogger(__name__)


@dataclass
class MatchService:
    """
    Match service for duel clients.

    Usage:
        service = MatchService()
        match = service.create_match(CreateMatchRequest(players=[...]))
        service.submit_action(match.match_id, ActionRequest(...))
        view = service.get_state(match.match_id, viewer_id="alice")
    """
    manager: MatchManager = field(default_factory=MatchManager)

    def create_match(self, request: CreateMatchRequest) -> MatchResponse:
        session = self.manager.create_match(
            players=[(seat.player_id, seat.name or seat.player_id) for seat in request.players],
            decks=request.decks,
            seed=request.random_seed,
            bot_players=request.bot_players,
        )
        return self._match_to_response(session)

    def get_match(self, match_id: str) -> MatchResponse:
        return self._match_to_response(self.manager.require_match(match_id))

    def get_state(self, match_id: str, viewer_id: str | None = None) -> MatchStateResponse:
        session = self.manager.require_match(match_id)
        engine = self.manager.load_engine(match_id)
        if viewer_id is not None:
            engine.require_player(viewer_id)
        state = engine.state
        return MatchStateResponse(
            match_id=match_id,
            viewer_id=viewer_id,
            status=MatchStatus(state.status.value),
            phase=state.current_phase.value,
            turn_number=state.turn_number,
            version=session.version,
            state=project_view(state, viewer_id),
        )

    def submit_action(self, match_id: str, request: ActionRequest) -> ActionResponse:
        session = self.manager.require_match(match_id)
        action = self._request_to_action(request)
        result = self.manager.apply(match_id, action)
        state: GameState = result.new_state or self.manager.load_engine(match_id).state
        return ActionResponse(
            match_id=match_id,
            success=result.success,
            status=MatchStatus(state.status.value),
            phase=state.current_phase.value,
            error=result.error,
            error_code=result.error_code,
            state_changes=result.state_changes,
            result=self._result_info(result.match_result),
            version=session.version,
        )

    def legal_actions(self, match_id: str, player_id: str) -> LegalActionsResponse:
        engine = self.manager.load_engine(match_id)
        engine.require_player(player_id)
        actions = [
            LegalActionInfo(
                action_type=action.action_type.value,
                payload={k: v for k, v in asdict(action.payload).items() if v not in (None, {})},
            )
            for action in legal_actions(engine, player_id)
        ]
        return LegalActionsResponse(match_id=match_id, player_id=player_id, actions=actions, count=len(actions))

    def get_result(self, match_id: str) -> MatchResultResponse:
        engine = self.manager.load_engine(match_id)
        result = engine.get_match_result()
        return MatchResultResponse(match_id=match_id, finished=result is not None, result=self._result_info(result))

    def post_chat(self, match_id: str, request: ChatRequest) -> ChatResponse:
        action = Action.chat(request.player_id, request.message, request.player_name)
        result = self.manager.apply(match_id, action)
        if not result.success:
            raise PreconditionError(
                result.error or "Chat rejected",
                error_code=ErrorCode(result.error_code or ErrorCode.INVALID_MESSAGE.value),
                details=result.details,
            )
        entry = result.new_state.chat_log[-1]
        return ChatResponse(
            id=entry.id,
            player_id=entry.player_id,
            player_name=entry.player_name,
            message=entry.message,
            timestamp=entry.timestamp,
        )

    def end_match(self, match_id: str) -> bool:
        if self.manager.get_match(match_id) is None:
            return False
        self.manager.end_match(match_id, reason="user_ended")
        return True

    def list_matches(self) -> list[str]:
        return self.manager.list_active_matches()

    # =========================================================================
    # Conversion helpers
    # =========================================================================

    def _request_to_action(self, request: ActionRequest) -> Action:
        try:
            action_type = ActionType(request.action_type)
        except ValueError:
            raise PreconditionError(
                f"Unknown action type: {request.action_type}",
                error_code=ErrorCode.INVALID_ACTION,
                details={"known": [t.value for t in ActionType]},
            ) from None
        payload = ActionPayload(
            player_id=request.player_id,
            hand_index=request.hand_index,
            targets=request.targets,
            destination_id=request.destination_id,
            card_instance_id=request.card_instance_id,
            prompt_id=request.prompt_id,
            choice=request.choice,
            indices=request.indices,
            selection_ids=request.selection_ids,
            ability=request.ability,
            message=request.message,
        )
        return Action(action_type=action_type, payload=payload)

    def _match_to_response(self, session: MatchSession) -> MatchResponse:
        engine = self.manager.load_engine(session.match_id)
        state = engine.state
        players = [
            PlayerSummary(
                player_id=p.player_id,
                name=p.name or p.player_id,
                victory_points=p.victory_points,
                victory_score=p.victory_score,
                hand_size=len(p.hand),
                deck_size=len(p.deck),
                rune_deck_size=len(p.rune_deck),
                channeled_runes=len(p.channeled_runes),
                is_current_turn=state.current_player.player_id == p.player_id,
                is_bot=p.player_id in session.bots,
            )
            for p in state.players
        ]
        return MatchResponse(
            match_id=session.match_id,
            status=MatchStatus(state.status.value),
            players=players,
            current_player_id=state.current_player.player_id,
            phase=state.current_phase.value,
            turn_number=state.turn_number,
            version=session.version,
            created_at=session.created_at,
        )

    @staticmethod
    def _result_info(result: MatchResult | None) -> MatchResultInfo | None:
        if result is None:
            return None
        return MatchResultInfo(
            match_id=result.match_id,
            winner=result.winner,
            loser=result.loser,
            reason=result.reason.value,
            duration_ms=result.duration_ms,
            turns=result.turns,
            moves=result.moves,
        )
