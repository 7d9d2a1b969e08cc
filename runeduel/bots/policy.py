"""
Bot Policy - Interface for bot decision-making.

A BotPolicy takes the match state and the legal actions for its seat and
returns a decision. play_match() drives a whole match between policies
through the reducer, the same path human clients use.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
import logging
import random

from ..engine_core.action_generator import legal_actions as generate_legal_actions
from ..engine_core.reducer import Reducer

if TYPE_CHECKING:
    from ..engine_core.action import Action
    from ..engine_core.engine import MatchEngine
    from ..engine_core.state import GameState, MatchResult

logger = logging.getLogger(__name__)


@dataclass
class BotDecision:
    """
    What a seat decided to do.

    explanation is shown in simulation logs; evaluated_actions counts the
    options the policy looked at.
    """
    action: Action
    explanation: str = ""
    confidence: float = 1.0
    evaluated_actions: int = 0
    evaluation_details: dict[str, Any] = field(default_factory=dict)


class BotPolicy(ABC):
    """
    Chooses one action for a seat from the generator's list.

    Policies never call the engine; play_match and the session manager
    apply the chosen action through the reducer.
    """

    @abstractmethod
    def select_action(self, state: GameState, legal_actions: list[Action]) -> BotDecision:
        """
        Pick one of legal_actions.

        Args:
            state: Copy of the match state
            legal_actions: Non-empty list for this seat
        """

    def get_name(self) -> str:
        return self.__class__.__name__


class RandomPolicy(BotPolicy):
    """Uniform choice; seeded so simulations replay."""

    def __init__(self, seed: int | None = None):
        self.rng = random.Random(seed)

    def select_action(self, state: GameState, legal_actions: list[Action]) -> BotDecision:
        if not legal_actions:
            raise ValueError("No legal actions available")

        action = self.rng.choice(legal_actions)
        return BotDecision(
            action=action,
            explanation="Selected randomly",
            confidence=1.0 / len(legal_actions),
            evaluated_actions=len(legal_actions),
        )


class FirstLegalPolicy(BotPolicy):
    """
    Always the first option. The generator lists plays first, so this
    seat spends its runes before it passes.
    """

    def select_action(self, state: GameState, legal_actions: list[Action]) -> BotDecision:
        if not legal_actions:
            raise ValueError("No legal actions available")

        return BotDecision(
            action=legal_actions[0],
            explanation="Selected first legal action",
            evaluated_actions=1,
        )


@dataclass
class SimulationReport:
    steps: int = 0
    rejected: int = 0
    finished: bool = False
    result: MatchResult | None = None


def play_match(
    engine: MatchEngine,
    policies: dict[str, BotPolicy],
    max_steps: int = 2000,
) -> SimulationReport:
    """
    Let policies play an initialized match until it ends or max_steps.

    Each step asks the first seat (in table order) that has legal actions.
    A rejected action is dropped from that seat's options and the policy
    chooses again; when nothing is left the seat is skipped this step.
    """
    reducer = Reducer()
    report = SimulationReport()
    while report.steps < max_steps and not engine.state.is_over:
        acted = False
        for player in engine.state.players:
            policy = policies.get(player.player_id)
            if policy is None:
                continue
            options = generate_legal_actions(engine, player.player_id)
            while options:
                decision = policy.select_action(engine.get_game_state(), options)
                result = reducer.apply(engine, decision.action)
                if result.success:
                    acted = True
                    break
                report.rejected += 1
                logger.debug("%s rejected: %s", player.player_id, result.error)
                options = [a for a in options if a is not decision.action]
            if acted:
                break
        report.steps += 1
        if not acted:
            logger.warning("No seat could act in match %s, stopping", engine.state.match_id)
            break
    report.finished = engine.state.is_over
    report.result = engine.get_match_result()
    logger.info(
        "Simulation of %s: %d steps, %d rejected, finished=%s",
        engine.state.match_id,
        report.steps,
        report.rejected,
        report.finished,
    )
    return report
