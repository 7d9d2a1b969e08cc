"""
Reducer - Applies actions to a match.

The reducer is the single entry point bots, sessions and the HTTP layer
use to change a match. Each handler maps one ActionType onto one engine
call; the engine validates and applies it atomically.

Design principles:
- Engine errors become failure results, never exceptions
- Anything else is a bug and propagates
- A successful result carries a copy of the new state and the log lines
  the action produced
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, TYPE_CHECKING
import logging

from .action import Action, ActionResult, ActionType
from .errors import EngineError

if TYPE_CHECKING:
    from .engine import MatchEngine

logger = logging.getLogger(__name__)


@dataclass
class Reducer:
    """
    Reducer applies actions to a MatchEngine.

    Stateless - all state is in the engine's GameState.
    """

    def apply(self, engine: MatchEngine, action: Action) -> ActionResult:
        """
        Apply an action to the match.

        Returns ActionResult with the new state or the error.
        """
        if not action.payload.player_id:
            return ActionResult.failure("Action has no player", error_code="UNKNOWN_PLAYER")

        handler = self._get_handler(action.action_type)
        if not handler:
            return ActionResult.failure(
                f"No handler for action type: {action.action_type}",
                error_code="INVALID_ACTION",
            )

        seen = {entry.id for entry in engine.state.duel_log}
        try:
            handler(engine, action)
        except EngineError as exc:
            logger.info(
                "Rejected %s from %s: %s",
                action.action_type.value,
                action.payload.player_id,
                exc.message,
            )
            return ActionResult.failure(exc.message, error_code=exc.error_code.value, details=exc.details)

        changes = [entry.message for entry in engine.state.duel_log if entry.id not in seen]
        return ActionResult.success_with_state(
            engine.get_game_state(),
            changes=changes,
            match_result=engine.get_match_result(),
        )

    def _get_handler(self, action_type: ActionType) -> Callable[[MatchEngine, Action], None] | None:
        handlers = {
            ActionType.CHOOSE_INITIATIVE: self._handle_choose_initiative,
            ActionType.SELECT_BATTLEFIELD: self._handle_select_battlefield,
            ActionType.MULLIGAN: self._handle_mulligan,
            ActionType.PLAY_CARD: self._handle_play_card,
            ActionType.MOVE_UNIT: self._handle_move_unit,
            ActionType.ACTIVATE_CHAMPION: self._handle_activate_champion,
            ActionType.PASS_PRIORITY: self._handle_pass_priority,
            ActionType.NEXT_PHASE: self._handle_next_phase,
            ActionType.SELECT_DISCARD: self._handle_select_discard,
            ActionType.SELECT_TARGETS: self._handle_select_targets,
            ActionType.CONCEDE: self._handle_concede,
            ActionType.CHAT: self._handle_chat,
        }
        return handlers.get(action_type)

    def _handle_choose_initiative(self, engine: MatchEngine, action: Action):
        engine.submit_initiative_choice(action.payload.player_id, action.payload.choice)

    def _handle_select_battlefield(self, engine: MatchEngine, action: Action):
        engine.select_battlefield(action.payload.player_id, action.payload.destination_id or "")

    def _handle_mulligan(self, engine: MatchEngine, action: Action):
        engine.submit_mulligan(action.payload.player_id, action.payload.indices or [])

    def _handle_play_card(self, engine: MatchEngine, action: Action):
        payload = action.payload
        hand_index = -1 if payload.hand_index is None else payload.hand_index
        engine.play_card(payload.player_id, hand_index, payload.targets, payload.destination_id)

    def _handle_move_unit(self, engine: MatchEngine, action: Action):
        payload = action.payload
        engine.move_unit(payload.player_id, payload.card_instance_id or "", payload.destination_id or "")

    def _handle_activate_champion(self, engine: MatchEngine, action: Action):
        payload = action.payload
        engine.activate_champion_ability(payload.player_id, payload.ability or "", payload.destination_id)

    def _handle_pass_priority(self, engine: MatchEngine, action: Action):
        engine.pass_priority(action.payload.player_id)

    def _handle_next_phase(self, engine: MatchEngine, action: Action):
        engine.proceed_to_next_phase(action.payload.player_id)

    def _handle_select_discard(self, engine: MatchEngine, action: Action):
        payload = action.payload
        engine.submit_discard_selection(payload.player_id, payload.prompt_id or "", payload.selection_ids or [])

    def _handle_select_targets(self, engine: MatchEngine, action: Action):
        payload = action.payload
        engine.submit_target_selection(payload.player_id, payload.prompt_id or "", payload.selection_ids or [])

    def _handle_concede(self, engine: MatchEngine, action: Action):
        engine.concede_match(action.payload.player_id)

    def _handle_chat(self, engine: MatchEngine, action: Action):
        engine.add_chat_message(
            action.payload.player_id,
            action.payload.message or "",
            action.payload.params.get("player_name"),
        )


def apply_action(engine: MatchEngine, action: Action) -> ActionResult:
    """Convenience function to apply an action."""
    return Reducer().apply(engine, action)
