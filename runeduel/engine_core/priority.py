"""
Prompt & Priority Protocol.

Prompts are per-player requests answered exactly once (coin flip,
battlefield pick, mulligan, discard/target selection). They are appended
and resolved, and only removed by a type-scoped filter when a setup
sub-phase restarts.

The priority window is the single token saying who may act right now.
Opening a window replaces the previous one. While a combat context is
open the window is of type COMBAT and carries a small stage machine:

    ACTION stage:   a play moves to REACTION with the opponent holding;
                    a pass hands priority to the other player; two
                    consecutive passes end the engagement.
    REACTION stage: a play hands priority to the other player; a pass
                    returns priority to the last ACTION-stage actor.
"""

from __future__ import annotations
from typing import Any, TYPE_CHECKING
import logging

from .cards import Card
from .errors import ErrorCode, PreconditionError
from .state import (
    CombatContext,
    CombatStage,
    GamePrompt,
    PriorityWindow,
    PriorityWindowType,
    PromptType,
)

if TYPE_CHECKING:
    from .engine import MatchEngine

logger = logging.getLogger(__name__)


class PriorityController:
    """Owns prompts, the priority window and the combat priority stages."""

    def __init__(self, engine: MatchEngine):
        self.engine = engine

    @property
    def state(self):
        return self.engine.state

    # Prompts

    def create_prompt(self, player_id: str, prompt_type: PromptType, data: dict[str, Any] | None = None) -> GamePrompt:
        prompt = GamePrompt(
            id=self.engine.next_id("prompt", prompt_type.value),
            player_id=player_id,
            prompt_type=prompt_type,
            data=data or {},
            created_at=self.engine.now(),
        )
        self.state.prompts.append(prompt)
        logger.debug("Prompt %s issued to %s", prompt.id, player_id)
        return prompt

    def resolve_prompt(self, prompt: GamePrompt, resolution: dict[str, Any]):
        prompt.resolved = True
        prompt.resolved_at = self.engine.now()
        prompt.resolution = resolution

    def require_prompt(self, player_id: str, prompt_id: str | None, prompt_type: PromptType) -> GamePrompt:
        """Find the player's open prompt of a type (by id when given)."""
        for prompt in self.state.prompts:
            if prompt.resolved or prompt.player_id != player_id or prompt.prompt_type != prompt_type:
                continue
            if prompt_id is None or prompt.id == prompt_id:
                return prompt
        raise PreconditionError(
            f"No open {prompt_type.value} prompt for {player_id}",
            error_code=ErrorCode.UNKNOWN_PROMPT,
            details={"prompt_id": prompt_id},
        )

    def filter_prompts(self, prompt_type: PromptType):
        """Drop every prompt of a type (sub-phase restart)."""
        self.state.prompts = [p for p in self.state.prompts if p.prompt_type != prompt_type]

    def has_blocking_prompts(self) -> bool:
        return any(not p.resolved for p in self.state.prompts)

    # Windows

    def open_window(self, window_type: PriorityWindowType, holder_id: str, event: str | None = None) -> PriorityWindow:
        window = PriorityWindow(
            id=self.engine.next_id("window", "priority"),
            window_type=window_type,
            holder_id=holder_id,
            opened_at=self.engine.now(),
            event=event,
        )
        self.state.priority_window = window
        self.state.focus_player_id = holder_id
        logger.debug("Priority window %s (%s) to %s", window_type.value, event, holder_id)
        return window

    def close_window(self):
        self.state.priority_window = None

    def hand_to(self, holder_id: str):
        window = self.state.priority_window
        if window is None:
            return
        window.holder_id = holder_id
        self.state.focus_player_id = holder_id

    def require_priority(self, player_id: str):
        window = self.state.priority_window
        if window is not None and window.holder_id != player_id:
            raise PreconditionError(
                f"{player_id} does not hold priority",
                error_code=ErrorCode.NO_PRIORITY,
                details={"holder": window.holder_id},
            )

    def holds_priority(self, player_id: str) -> bool:
        window = self.state.priority_window
        return window is None or window.holder_id == player_id

    # Combat stages

    def open_combat(self, context: CombatContext):
        self.state.combat_context = context
        self.open_window(PriorityWindowType.COMBAT, context.defending_player_id, event=f"combat:{context.battlefield_id}")

    def card_supports_stage(self, card: Card) -> bool:
        context = self.state.combat_context
        if context is None:
            return True
        return context.priority_stage.value in card.timing_keywords()

    def record_combat_play(self, player_id: str):
        """A card was played while holding combat priority."""
        context = self.state.combat_context
        if context is None:
            return
        other = self.state.opponent_of(player_id)
        if context.priority_stage == CombatStage.ACTION:
            context.last_actor = player_id
            context.priority_stage = CombatStage.REACTION
        context.action_pass_count = 0
        self.hand_to(other.player_id)

    def pass_combat_priority(self, player_id: str) -> bool:
        """Returns True when the engagement should resolve."""
        context = self.state.combat_context
        other = self.state.opponent_of(player_id)
        if context.priority_stage == CombatStage.REACTION:
            context.priority_stage = CombatStage.ACTION
            context.action_pass_count = 0
            self.hand_to(context.last_actor or other.player_id)
            return False
        context.action_pass_count += 1
        if context.action_pass_count >= 2:
            return True
        self.hand_to(other.player_id)
        return False
