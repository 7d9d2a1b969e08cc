"""
Action Generator - Enumerates legal actions for one player.

The action generator is used by:
1. Bots to enumerate possible moves
2. The HTTP layer to show available actions
3. Tests (is this action in legal_actions?)

Generation mirrors the engine's checks closely but not exhaustively: an
action listed here can still be rejected (for example a target that an
effect cannot use). Every generated action is fully specified.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .action import Action
from .cards import Card, CardType, OperationType
from .champions import LEADER, LEGEND
from .combat import MOVE_PHASES
from .resources import Cost, RuneAllocator
from .state import (
    MAIN_PHASES,
    GamePhase,
    GameState,
    GameStatus,
    PlayerState,
    PriorityWindowType,
    PromptType,
)

if TYPE_CHECKING:
    from .engine import MatchEngine


@dataclass
class ActionGenerator:
    """Generates legal actions for a player in the current match state."""

    max_mulligan_options: int = 4

    def generate(self, engine: MatchEngine, player_id: str) -> list[Action]:
        state = engine.state
        player = state.find_player(player_id)
        if player is None or state.is_over:
            return []

        if state.status == GameStatus.COIN_FLIP:
            return self._initiative_actions(state, player_id)
        if state.status == GameStatus.BATTLEFIELD_SELECTION:
            return self._battlefield_actions(state, player_id)
        if state.status == GameStatus.MULLIGAN:
            return self._mulligan_actions(state, player)
        if state.status != GameStatus.IN_PROGRESS:
            return []

        # Open prompts come first
        prompt_actions = self._prompt_actions(state, player_id)
        if prompt_actions:
            return prompt_actions
        if not engine.can_player_act(player_id):
            return []

        actions: list[Action] = []
        actions.extend(self._play_actions(state, player))
        actions.extend(self._move_actions(state, player))
        actions.extend(self._champion_actions(state, player))
        if state.priority_window is not None:
            actions.append(Action.pass_priority(player_id))
        elif state.combat_context is None:
            actions.append(Action.next_phase(player_id))
        return actions

    # Setup

    def _open_prompt(self, state: GameState, player_id: str, prompt_type: PromptType):
        for prompt in state.open_prompts(player_id):
            if prompt.prompt_type == prompt_type:
                return prompt
        return None

    def _initiative_actions(self, state: GameState, player_id: str) -> list[Action]:
        prompt = self._open_prompt(state, player_id, PromptType.COIN_FLIP)
        if prompt is None:
            return []
        choices = [option["choice"] for option in prompt.data.get("options", [])]
        # Rotate by seat so the two seats never list the same first choice
        seat = max(0, state.player_index(player_id))
        if choices:
            seat %= len(choices)
            choices = choices[seat:] + choices[:seat]
        return [Action.choose_initiative(player_id, choice) for choice in choices]

    def _battlefield_actions(self, state: GameState, player_id: str) -> list[Action]:
        prompt = self._open_prompt(state, player_id, PromptType.BATTLEFIELD)
        if prompt is None:
            return []
        return [Action.select_battlefield(player_id, option["id"]) for option in prompt.data.get("options", [])]

    def _mulligan_actions(self, state: GameState, player: PlayerState) -> list[Action]:
        prompt = self._open_prompt(state, player.player_id, PromptType.MULLIGAN)
        if prompt is None:
            return []
        actions = [Action.mulligan(player.player_id, [])]
        if prompt.data.get("max_replacements", 0) > 0:
            for index in range(min(len(player.hand), self.max_mulligan_options)):
                actions.append(Action.mulligan(player.player_id, [index]))
        return actions

    # Prompts

    def _prompt_actions(self, state: GameState, player_id: str) -> list[Action]:
        actions = []
        for prompt in state.open_prompts(player_id):
            if prompt.prompt_type != PromptType.TARGET:
                continue
            options = prompt.data.get("options", [])
            count = prompt.data.get("count", 1)
            if prompt.data.get("kind") == "discard":
                if count == 1:
                    actions.extend(Action.select_discard(player_id, prompt.id, [o]) for o in options)
                else:
                    actions.append(Action.select_discard(player_id, prompt.id, options[:count]))
            else:
                actions.extend(Action.select_targets(player_id, prompt.id, [o]) for o in options)
        return actions

    # Turn actions

    def _can_time(self, state: GameState, player: PlayerState, card: Card) -> bool:
        window = state.priority_window
        if state.combat_context is not None:
            return state.combat_context.priority_stage.value in card.timing_keywords()
        if window is not None and window.window_type == PriorityWindowType.REACTION:
            return "reaction" in card.timing_keywords()
        return (
            state.current_player.player_id == player.player_id
            and state.current_phase in MAIN_PHASES
        )

    def _target_options(self, state: GameState, player: PlayerState, card: Card) -> list[list[str] | None]:
        operations = list(card.operations)
        for ability in card.abilities:
            if ability.trigger_type in (None, "play"):
                operations.extend(ability.operations)
        if any(op.type == OperationType.DEAL_DAMAGE for op in operations):
            opponent = state.opponent_of(player.player_id)
            return [[unit.instance_id] for unit in opponent.board.creatures]
        if card.requires_target():
            return [[state.opponent_of(player.player_id).player_id]]
        if card.type != CardType.CREATURE and any(op.target_hint == "ally" for op in operations):
            friendly = [[unit.instance_id] for unit in player.board.creatures]
            return friendly or [None]
        return [None]

    def _play_actions(self, state: GameState, player: PlayerState) -> list[Action]:
        actions = []
        allocator = RuneAllocator(player)
        for index, card in enumerate(player.hand):
            if card.type == CardType.RUNE or not self._can_time(state, player, card):
                continue
            if not allocator.can_pay(Cost.of(card)):
                continue
            for targets in self._target_options(state, player, card):
                actions.append(Action.play_card(player.player_id, index, targets))
        return actions

    def _move_actions(self, state: GameState, player: PlayerState) -> list[Action]:
        if state.combat_context is not None or state.current_player.player_id != player.player_id:
            return []
        if state.current_phase not in MOVE_PHASES:
            return []
        actions = []
        for unit in player.board.creatures:
            if unit.is_tapped or unit.summoned:
                continue
            if not unit.location.is_base:
                actions.append(Action.move_unit(player.player_id, unit.instance_id, "base"))
            if state.current_phase == GamePhase.MAIN_2:
                continue
            for battlefield in state.battlefields:
                if state.resolved_this_turn(battlefield):
                    continue
                if not unit.location.is_at(battlefield.battlefield_id):
                    actions.append(Action.move_unit(player.player_id, unit.instance_id, battlefield.battlefield_id))
        return actions

    def _champion_actions(self, state: GameState, player: PlayerState) -> list[Action]:
        actions = []
        for ability in (LEGEND, LEADER):
            ability_state = player.champion_ability_states.get(ability)
            if ability_state is not None and ability_state.available:
                actions.append(Action.activate_champion(player.player_id, ability))
        return actions


def legal_actions(engine: MatchEngine, player_id: str) -> list[Action]:
    """Convenience function to get legal actions."""
    return ActionGenerator().generate(engine, player_id)
