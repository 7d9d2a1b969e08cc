"""
Turn/Phase state machine.

    BEGIN -> MAIN_1 -> COMBAT -> MAIN_2 -> END -> CLEANUP -> BEGIN (next player)

BEGIN runs four sub-steps (awaken, begin, channel, draw). If a prompt is
still open afterwards the phase holds with pending_main_phase_entry set
and a main window for the active player; it promotes to MAIN_1 once the
prompts clear.

proceed_to_next_phase() advances one phase, then keeps going through
purely mechanical phases (END with no open prompts, CLEANUP, a BEGIN that
has not run yet) up to max_phase_advances times.
"""

from __future__ import annotations
from typing import TYPE_CHECKING
import logging

from .errors import ErrorCode, PreconditionError
from .resources import channel_runes, ready_runes
from .state import (
    GamePhase,
    GameStatus,
    PlayerState,
    PriorityWindowType,
    TurnStep,
)

if TYPE_CHECKING:
    from .engine import MatchEngine

logger = logging.getLogger(__name__)


class TurnController:

    def __init__(self, engine: MatchEngine):
        self.engine = engine

    @property
    def state(self):
        return self.engine.state

    def begin_turn(self):
        state = self.state
        engine = self.engine
        player = state.current_player
        engine.priority.close_window()
        state.combat_context = None
        state.pending_main_phase_entry = True
        state.current_phase = GamePhase.BEGIN
        logger.debug("Turn %d begins for %s", state.turn_number, player.player_id)

        state.turn_step = TurnStep.AWAKEN
        self._awaken(player)

        state.turn_step = TurnStep.BEGIN
        self.resolve_temporary_effects(player)
        for permanent in list(player.board.all_cards()):
            engine.effects.trigger_abilities(player, permanent, "begin")
        engine.combat.check_hold_bonuses(player)
        if state.status != GameStatus.IN_PROGRESS:
            return

        state.turn_step = TurnStep.CHANNEL
        channel_runes(player, engine.config.runes_per_turn + player.first_turn_rune_boost)
        player.first_turn_rune_boost = 0

        state.turn_step = TurnStep.DRAW
        engine.draw_cards(player, 1)
        if state.status != GameStatus.IN_PROGRESS:
            return

        if engine.priority.has_blocking_prompts():
            engine.priority.open_window(PriorityWindowType.MAIN, player.player_id, event="begin-phase")
            engine.record_snapshot("begin-phase-hold")
            return
        self._promote_to_main()

    def _awaken(self, player: PlayerState):
        for permanent in player.board.all_cards():
            permanent.is_tapped = False
            permanent.summoned = False
        ready_runes(player)
        player.legend_exhausted = False

    def _promote_to_main(self):
        state = self.state
        state.pending_main_phase_entry = False
        state.current_phase = GamePhase.MAIN_1
        state.turn_step = TurnStep.MAIN
        self.engine.priority.open_window(PriorityWindowType.MAIN, state.current_player.player_id, event="turn-start")
        self.engine.record_snapshot("turn-start")

    def try_auto_advance_from_begin(self) -> bool:
        """Promote a held BEGIN phase once no prompt blocks it."""
        state = self.state
        if state.current_phase != GamePhase.BEGIN or not state.pending_main_phase_entry:
            return False
        if self.engine.priority.has_blocking_prompts():
            return False
        self._promote_to_main()
        return True

    def resolve_temporary_effects(self, player: PlayerState):
        """Tick the owner's effects down a turn and drop expired ones."""
        kept = []
        for effect in player.temporary_effects:
            effect.duration -= 1
            if effect.duration > 0:
                kept.append(effect)
        player.temporary_effects = kept
        now = self.engine.now()
        for permanent in player.board.all_cards():
            activation = permanent.activation_state
            if activation is None:
                continue
            if activation.is_stateful and not activation.active:
                activation.record(True, "begin-step", now)

    def resolve_end_of_turn_effects(self, player: PlayerState):
        now = self.engine.now()
        for permanent in player.board.all_cards():
            activation = permanent.activation_state
            if activation is not None and activation.active and not activation.is_stateful:
                activation.record(False, "end-of-turn", now)

    def enter_combat_phase(self):
        state = self.state
        state.current_phase = GamePhase.COMBAT
        self.engine.priority.open_window(
            PriorityWindowType.SHOWDOWN, state.current_player.player_id, event="combat-start"
        )

    def advance_phase_once(self):
        state = self.state
        phase = state.current_phase
        player = state.current_player
        if phase == GamePhase.BEGIN:
            if state.pending_main_phase_entry:
                self.try_auto_advance_from_begin()
            else:
                self.begin_turn()
        elif phase == GamePhase.MAIN_1:
            self.enter_combat_phase()
        elif phase == GamePhase.COMBAT:
            state.current_phase = GamePhase.MAIN_2
            self.engine.priority.open_window(PriorityWindowType.MAIN, player.player_id, event="post-combat")
        elif phase == GamePhase.MAIN_2:
            state.current_phase = GamePhase.END
            self.resolve_end_of_turn_effects(player)
            opponent = state.opponent_of(player.player_id)
            self.engine.priority.open_window(PriorityWindowType.REACTION, opponent.player_id, event="end-step")
        elif phase == GamePhase.END:
            state.current_phase = GamePhase.CLEANUP
            self.end_turn()
            self.engine.priority.close_window()
        if phase != state.current_phase:
            logger.debug("Phase %s -> %s", phase.value, state.current_phase.value)
            self.engine.record_snapshot(f"phase-{state.current_phase.value}")

    def _should_auto_advance(self) -> bool:
        state = self.state
        if state.status != GameStatus.IN_PROGRESS:
            return False
        if state.current_phase == GamePhase.END:
            return not self.engine.priority.has_blocking_prompts()
        if state.current_phase == GamePhase.CLEANUP:
            return True
        return state.current_phase == GamePhase.BEGIN and not state.pending_main_phase_entry

    def proceed_to_next_phase(self, player_id: str | None = None):
        engine = self.engine
        state = self.state
        engine.require_status(GameStatus.IN_PROGRESS)
        if player_id is not None:
            engine.require_player(player_id)
            engine.priority.require_priority(player_id)
        if state.combat_context is not None:
            raise PreconditionError("An engagement is still open", error_code=ErrorCode.WRONG_PHASE)
        if state.current_phase == GamePhase.BEGIN and state.pending_main_phase_entry:
            if engine.priority.has_blocking_prompts():
                raise PreconditionError(
                    "Resolve open prompts before leaving the begin phase",
                    error_code=ErrorCode.WRONG_PHASE,
                )
        self.advance_phase_once()
        for _ in range(engine.config.max_phase_advances):
            if not self._should_auto_advance():
                break
            self.advance_phase_once()

    def end_turn(self):
        state = self.state
        player = state.current_player
        player.temporary_effects = [e for e in player.temporary_effects if e.effect_type != "extra_action"]
        next_index = (state.current_player_index + 1) % len(state.players)
        if next_index == 0:
            state.turn_number += 1
        state.current_player_index = next_index
        state.current_phase = GamePhase.BEGIN
        state.pending_main_phase_entry = False
        state.turn_step = None
        state.combat_context = None
