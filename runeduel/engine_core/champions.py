"""
Champion abilities - Legend activation and leader deployment.

Legend costs are written into the card text as tokens:

    :rb_energy_2:        two generic energy
    :rb_rune_fury:       one fury power (any domain name works)
    :rb_rune_rainbow:    one power of any domain
    :rb_exhaust:         the legend exhausts

A legend without tokens pays its printed cost and exhausts. The leader is
deployed once per match as a unit, paying its printed cost.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
import logging
import re

from .cards import Card, CardLocation, CardType, Domain
from .effect_resolver import EffectContext
from .errors import ErrorCode, PreconditionError
from .lifecycle import create_board_card
from .resources import Cost, RuneAllocator
from .state import (
    MAIN_PHASES,
    ChampionAbilityState,
    GameStatus,
    MoveAction,
    PlayerState,
)

if TYPE_CHECKING:
    from .engine import MatchEngine

logger = logging.getLogger(__name__)

ENERGY_TOKEN = re.compile(r":rb_energy_(\d+):")
RUNE_TOKEN = re.compile(r":rb_rune_([a-z]+):")
EXHAUST_TOKEN = ":rb_exhaust:"

LEGEND = "legend"
LEADER = "leader"


@dataclass
class ChampionCost:
    energy: int = 0
    runes: dict[str, int] = field(default_factory=dict)
    rainbow: int = 0
    requires_exhaust: bool = False

    def to_cost(self) -> Cost:
        return Cost(energy=self.energy, power=dict(self.runes), universal_power=self.rainbow)


def parse_champion_cost(card: Card) -> ChampionCost:
    text = card.text or ""
    energy = [int(n) for n in ENERGY_TOKEN.findall(text)]
    runes = RUNE_TOKEN.findall(text)
    exhaust = EXHAUST_TOKEN in text
    if not energy and not runes and not exhaust:
        printed = Cost.of(card)
        return ChampionCost(energy=printed.energy, runes=printed.power, requires_exhaust=True)
    cost = ChampionCost(energy=sum(energy), requires_exhaust=exhaust)
    valid = {d.value for d in Domain}
    for rune in runes:
        if rune == "rainbow":
            cost.rainbow += 1
        elif rune in valid:
            cost.runes[rune] = cost.runes.get(rune, 0) + 1
    return cost


def summarize_champion_cost(cost: ChampionCost) -> str:
    parts = []
    if cost.energy:
        parts.append(f"{cost.energy} energy")
    for domain, amount in cost.runes.items():
        parts.append(f"{amount} {domain} rune")
    if cost.rainbow:
        parts.append(f"{cost.rainbow} rune of any domain")
    if cost.requires_exhaust:
        parts.append("exhaust legend")
    return ", ".join(parts) if parts else "No cost"


def can_satisfy_champion_cost(player: PlayerState, cost: ChampionCost) -> bool:
    return RuneAllocator(player).can_pay(cost.to_cost())


class ChampionController:

    def __init__(self, engine: MatchEngine):
        self.engine = engine

    @property
    def state(self):
        return self.engine.state

    def _timing_block(self, player: PlayerState) -> str | None:
        state = self.state
        if state.status != GameStatus.IN_PROGRESS:
            return "match is not in progress"
        if state.current_player.player_id != player.player_id:
            return "not your turn"
        if state.current_phase not in MAIN_PHASES:
            return "only during a main phase"
        if state.combat_context is not None:
            return "engagement in progress"
        if not self.engine.priority.holds_priority(player.player_id):
            return "no priority"
        return None

    def _legend_block(self, player: PlayerState) -> tuple[str | None, ChampionCost | None]:
        legend = player.champion_legend
        if legend is None:
            return "no legend", None
        cost = parse_champion_cost(legend)
        reason = self._timing_block(player)
        if reason is None and cost.requires_exhaust and player.legend_exhausted:
            reason = "legend is exhausted"
        if reason is None and not can_satisfy_champion_cost(player, cost):
            reason = "not enough runes"
        return reason, cost

    def _leader_block(self, player: PlayerState) -> tuple[str | None, Cost | None]:
        leader = player.champion_leader
        if leader is None:
            return "no leader", None
        if player.leader_deployed:
            return "leader already deployed", Cost.of(leader)
        cost = Cost.of(leader)
        reason = self._timing_block(player)
        if reason is None and not RuneAllocator(player).can_pay(cost):
            reason = "not enough runes"
        return reason, cost

    def refresh(self, player: PlayerState):
        states: dict[str, ChampionAbilityState] = {}
        reason, cost = self._legend_block(player)
        states[LEGEND] = ChampionAbilityState(
            available=reason is None,
            reason=reason,
            cost_summary=summarize_champion_cost(cost) if cost else "No cost",
            exhausted=player.legend_exhausted,
        )
        reason, leader_cost = self._leader_block(player)
        states[LEADER] = ChampionAbilityState(
            available=reason is None,
            reason=reason,
            cost_summary=summarize_champion_cost(
                ChampionCost(energy=leader_cost.energy, runes=leader_cost.power)
            ) if leader_cost else "No cost",
            exhausted=player.leader_deployed,
        )
        player.champion_ability_states = states

    def refresh_all(self):
        for player in self.state.players:
            self.refresh(player)

    def activate(self, player_id: str, ability: str, destination_id: str | None = None):
        engine = self.engine
        player = engine.require_player(player_id)
        engine.require_status(GameStatus.IN_PROGRESS)
        engine.require_current_player(player_id)
        engine.priority.require_priority(player_id)
        if ability == LEGEND:
            self._activate_legend(player, destination_id)
        elif ability == LEADER:
            self._deploy_leader(player, destination_id)
        else:
            raise PreconditionError(
                f"Unknown champion ability {ability!r}",
                error_code=ErrorCode.INVALID_CHOICE,
            )

    def _activate_legend(self, player: PlayerState, destination_id: str | None):
        engine = self.engine
        reason, cost = self._legend_block(player)
        if reason is not None:
            code = ErrorCode.INSUFFICIENT_RESOURCES if reason == "not enough runes" else ErrorCode.INVALID_ACTION
            raise PreconditionError(f"Legend cannot activate: {reason}", error_code=code)
        legend = player.champion_legend
        if destination_id is not None and self.state.find_battlefield(destination_id) is None:
            raise PreconditionError(f"Unknown battlefield {destination_id}", error_code=ErrorCode.UNKNOWN_BATTLEFIELD)
        RuneAllocator(player).allocate(cost.to_cost(), commit=True)
        if cost.requires_exhaust:
            player.legend_exhausted = True
        engine.record_move(player.player_id, MoveAction.ACTIVATE_ABILITY, card_id=legend.id, destination_id=destination_id)
        engine.narrate(f"{player.name or player.player_id} activates {legend.name}", player_id=player.player_id)
        context = EffectContext(
            source=legend,
            controller_id=player.player_id,
            label=legend.name,
            target_battlefield_id=destination_id,
        )
        if legend.operations:
            engine.effects.execute(legend.operations, context)
        engine.effects.trigger_abilities(player, legend, "activate", context)
        logger.info("%s activated legend %s", player.player_id, legend.id)

    def _deploy_leader(self, player: PlayerState, destination_id: str | None):
        engine = self.engine
        reason, cost = self._leader_block(player)
        if reason is not None:
            code = ErrorCode.INSUFFICIENT_RESOURCES if reason == "not enough runes" else ErrorCode.INVALID_ACTION
            raise PreconditionError(f"Leader cannot deploy: {reason}", error_code=code)
        location = engine.deployment_location(player, destination_id)
        leader = player.champion_leader
        RuneAllocator(player).allocate(cost, commit=True)
        template = leader.clone()
        template.type = CardType.CREATURE
        unit = create_board_card(
            template,
            engine.next_id("instance", template.id),
            engine.now(),
            location=CardLocation.base(),
        )
        player.board.creatures.append(unit)
        if not location.is_base:
            engine.combat.place_unit(player, unit, location)
        player.leader_deployed = True
        engine.record_move(player.player_id, MoveAction.ACTIVATE_ABILITY, card_id=leader.id, destination_id=destination_id)
        engine.narrate(f"{player.name or player.player_id} deploys {leader.name}", player_id=player.player_id)
        engine.effects.trigger_abilities(player, unit, "play")
