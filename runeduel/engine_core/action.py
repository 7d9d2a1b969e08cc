"""
Action System - Actions, payloads, and results.

Actions represent:
1. Setup answers (initiative, battlefield pick, mulligan)
2. Turn actions (play, move, activate, pass, advance the phase)
3. Prompt answers and match-level actions (concede, chat)

Bots, sessions and the HTTP layer all speak Actions; the reducer turns
them into engine calls.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ActionType(Enum):
    """Types of actions in the system."""
    # Setup
    CHOOSE_INITIATIVE = "choose_initiative"
    SELECT_BATTLEFIELD = "select_battlefield"
    MULLIGAN = "mulligan"

    # Turn actions
    PLAY_CARD = "play_card"
    MOVE_UNIT = "move_unit"
    ACTIVATE_CHAMPION = "activate_champion"
    PASS_PRIORITY = "pass_priority"
    NEXT_PHASE = "next_phase"

    # Prompt answers
    SELECT_DISCARD = "select_discard"
    SELECT_TARGETS = "select_targets"

    # Match level
    CONCEDE = "concede"
    CHAT = "chat"


@dataclass
class ActionPayload:
    """
    Payload for an action - contains the action parameters.

    Different action types use different fields. Validation happens in
    the engine, reached through the reducer.
    """
    player_id: str | None = None

    # Card plays
    hand_index: int | None = None
    targets: list[str] | None = None
    destination_id: str | None = None

    # Unit moves
    card_instance_id: str | None = None

    # Prompt answers
    prompt_id: str | None = None
    choice: int | None = None
    indices: list[int] | None = None
    selection_ids: list[str] | None = None

    ability: str | None = None
    message: str | None = None

    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class Action:
    """A complete action to be applied to a match."""
    action_type: ActionType
    payload: ActionPayload
    timestamp: float | None = None
    action_id: str | None = None

    @property
    def player_id(self) -> str | None:
        return self.payload.player_id

    @classmethod
    def choose_initiative(cls, player_id: str, choice: int) -> Action:
        return cls(
            action_type=ActionType.CHOOSE_INITIATIVE,
            payload=ActionPayload(player_id=player_id, choice=choice),
        )

    @classmethod
    def select_battlefield(cls, player_id: str, battlefield_id: str) -> Action:
        return cls(
            action_type=ActionType.SELECT_BATTLEFIELD,
            payload=ActionPayload(player_id=player_id, destination_id=battlefield_id),
        )

    @classmethod
    def mulligan(cls, player_id: str, indices: list[int] | None = None) -> Action:
        return cls(
            action_type=ActionType.MULLIGAN,
            payload=ActionPayload(player_id=player_id, indices=list(indices or [])),
        )

    @classmethod
    def play_card(
        cls,
        player_id: str,
        hand_index: int,
        targets: list[str] | None = None,
        destination_id: str | None = None,
    ) -> Action:
        """Factory for playing the card at hand_index."""
        return cls(
            action_type=ActionType.PLAY_CARD,
            payload=ActionPayload(
                player_id=player_id,
                hand_index=hand_index,
                targets=targets,
                destination_id=destination_id,
            ),
        )

    @classmethod
    def move_unit(cls, player_id: str, card_instance_id: str, destination_id: str) -> Action:
        return cls(
            action_type=ActionType.MOVE_UNIT,
            payload=ActionPayload(
                player_id=player_id,
                card_instance_id=card_instance_id,
                destination_id=destination_id,
            ),
        )

    @classmethod
    def activate_champion(cls, player_id: str, ability: str, destination_id: str | None = None) -> Action:
        return cls(
            action_type=ActionType.ACTIVATE_CHAMPION,
            payload=ActionPayload(player_id=player_id, ability=ability, destination_id=destination_id),
        )

    @classmethod
    def pass_priority(cls, player_id: str) -> Action:
        return cls(action_type=ActionType.PASS_PRIORITY, payload=ActionPayload(player_id=player_id))

    @classmethod
    def next_phase(cls, player_id: str) -> Action:
        return cls(action_type=ActionType.NEXT_PHASE, payload=ActionPayload(player_id=player_id))

    @classmethod
    def select_discard(cls, player_id: str, prompt_id: str, card_instance_ids: list[str]) -> Action:
        return cls(
            action_type=ActionType.SELECT_DISCARD,
            payload=ActionPayload(player_id=player_id, prompt_id=prompt_id, selection_ids=card_instance_ids),
        )

    @classmethod
    def select_targets(cls, player_id: str, prompt_id: str, selection_ids: list[str]) -> Action:
        return cls(
            action_type=ActionType.SELECT_TARGETS,
            payload=ActionPayload(player_id=player_id, prompt_id=prompt_id, selection_ids=selection_ids),
        )

    @classmethod
    def concede(cls, player_id: str) -> Action:
        return cls(action_type=ActionType.CONCEDE, payload=ActionPayload(player_id=player_id))

    @classmethod
    def chat(cls, player_id: str, message: str, player_name: str | None = None) -> Action:
        params = {"player_name": player_name} if player_name else {}
        return cls(
            action_type=ActionType.CHAT,
            payload=ActionPayload(player_id=player_id, message=message, params=params),
        )


@dataclass
class ActionResult:
    """
    Result of applying an action.

    Contains:
    - Whether the action succeeded
    - The new state (a copy) when it did
    - The error and its code when it did not
    - Log lines written while the action ran
    """
    success: bool
    new_state: Any | None = None  # GameState
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    state_changes: list[str] = field(default_factory=list)
    match_result: Any | None = None  # MatchResult

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ActionResult:
        """Create a failure result."""
        return cls(success=False, error=error, error_code=error_code, details=details or {})

    @classmethod
    def success_with_state(
        cls,
        state: Any,
        changes: list[str] | None = None,
        match_result: Any | None = None,
    ) -> ActionResult:
        """Create a success result with new state."""
        return cls(
            success=True,
            new_state=state,
            state_changes=changes or [],
            match_result=match_result,
        )
