"""
Resources - Rune pool accounting and the rune allocation solver.

A cost is generic energy plus per-domain power. Energy is paid by tapping
channeled runes; power is paid by recycling runes (returned untapped to the
bottom of the rune deck). A rune claimed for energy may also be reused to
cover power, in which case it is recycled rather than tapped.

The solver is all-or-nothing: a failed allocation never touches the pool,
and a successful dry run followed by a commit consumes exactly the runes
the dry run reported.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable
import logging

from .cards import Card, Domain, RuneCard
from .state import PlayerState, ResourcePool

logger = logging.getLogger(__name__)


@dataclass
class Cost:
    """Energy plus domain power. universal_power is payable by any domain."""
    energy: int = 0
    power: dict[str, int] = field(default_factory=dict)
    universal_power: int = 0

    @classmethod
    def of(cls, card: Card) -> Cost:
        return cls(
            energy=max(0, card.energy_cost or 0),
            power=normalize_power_cost(card.power_cost),
        )

    @property
    def is_free(self) -> bool:
        return self.energy <= 0 and not self.power and self.universal_power <= 0


@dataclass
class RuneAllocation:
    """Indices into the channeled pool chosen to pay a cost."""
    energy_indices: list[int] = field(default_factory=list)
    power_indices: list[int] = field(default_factory=list)

    @property
    def consumed(self) -> set[int]:
        return set(self.energy_indices) | set(self.power_indices)

    @property
    def tapped_only(self) -> list[int]:
        recycled = set(self.power_indices)
        return [i for i in self.energy_indices if i not in recycled]


def normalize_power_cost(raw: dict[str, int] | None) -> dict[str, int]:
    """Keep positive amounts for known domains."""
    normalized: dict[str, int] = {}
    valid = {d.value for d in Domain}
    for key, amount in (raw or {}).items():
        domain = key.value if isinstance(key, Domain) else str(key).lower()
        if domain in valid and amount and amount > 0:
            normalized[domain] = normalized.get(domain, 0) + int(amount)
    return normalized


def recalculate_resources(player: PlayerState) -> ResourcePool:
    """Recompute the pool from untapped channeled runes."""
    pool = ResourcePool()
    for rune in player.channeled_runes:
        if rune.is_tapped:
            continue
        pool.energy += 1
        value = max(1, rune.power_value)
        if rune.domain is None:
            pool.universal_power += value
        else:
            key = rune.domain.value
            pool.power[key] = pool.power.get(key, 0) + value
    player.resources = pool
    return pool


def channel_runes(player: PlayerState, count: int) -> int:
    """Move runes from the top of the rune deck into play. Returns how many moved."""
    moved = 0
    while moved < count and player.rune_deck:
        rune = player.rune_deck.pop(0)
        rune.is_tapped = False
        player.channeled_runes.append(rune)
        moved += 1
    recalculate_resources(player)
    return moved


def exhaust_runes(player: PlayerState, count: int) -> int:
    exhausted = 0
    for rune in player.channeled_runes:
        if exhausted >= count:
            break
        if not rune.is_tapped:
            rune.is_tapped = True
            exhausted += 1
    recalculate_resources(player)
    return exhausted


def recycle_channeled_runes(player: PlayerState, count: int) -> int:
    """Return the most recently channeled runes to the bottom of the rune deck."""
    recycled = 0
    while recycled < count and player.channeled_runes:
        rune = player.channeled_runes.pop()
        rune.is_tapped = False
        player.rune_deck.append(rune)
        recycled += 1
    recalculate_resources(player)
    return recycled


def ready_runes(player: PlayerState):
    for rune in player.channeled_runes:
        rune.is_tapped = False
    recalculate_resources(player)


class RuneAllocator:
    """
    Greedy solver for paying a Cost from a player's channeled runes.

    Energy first: prefer a rune whose domain is still in demand, then a
    colorless rune, then anything untapped. Power next, per domain: reuse
    energy claims of the matching domain, then colorless energy claims,
    then claim fresh matching / colorless runes (tapped ones as a last
    resort) until the requirement is met.
    """

    def __init__(self, player: PlayerState):
        self.player = player

    def allocate(self, cost: Cost, commit: bool = False) -> RuneAllocation | None:
        plan = self._plan(cost)
        if plan is None:
            logger.debug("Allocation failed for %s: %s", self.player.player_id, cost)
            return None
        if commit:
            self._commit(plan)
        return plan

    def can_pay(self, cost: Cost) -> bool:
        return self._plan(cost) is not None

    def _plan(self, cost: Cost) -> RuneAllocation | None:
        runes = self.player.channeled_runes
        plan = RuneAllocation()
        reserved: set[int] = set()
        demand = normalize_power_cost(cost.power)

        def in_demand(rune: RuneCard) -> bool:
            return rune.domain is not None and rune.domain.value in demand

        def colorless(rune: RuneCard) -> bool:
            return rune.domain is None

        for _ in range(max(0, cost.energy)):
            index = self._claim(runes, reserved, (in_demand, colorless, _any), allow_tapped=False)
            if index is None:
                return None
            reserved.add(index)
            plan.energy_indices.append(index)

        power_claimed: set[int] = set()
        for domain, needed in demand.items():
            def matching(rune: RuneCard, domain=domain) -> bool:
                return rune.domain is not None and rune.domain.value == domain

            remaining = needed
            for predicate in (matching, colorless):
                for index in plan.energy_indices:
                    if remaining <= 0:
                        break
                    if index in power_claimed or not predicate(runes[index]):
                        continue
                    power_claimed.add(index)
                    plan.power_indices.append(index)
                    remaining -= max(1, runes[index].power_value)
            while remaining > 0:
                index = self._claim(runes, reserved, (matching, colorless), allow_tapped=True)
                if index is None:
                    return None
                reserved.add(index)
                power_claimed.add(index)
                plan.power_indices.append(index)
                remaining -= max(1, runes[index].power_value)

        remaining = max(0, cost.universal_power)
        for index in plan.energy_indices:
            if remaining <= 0:
                break
            if index in power_claimed:
                continue
            power_claimed.add(index)
            plan.power_indices.append(index)
            remaining -= max(1, runes[index].power_value)
        while remaining > 0:
            index = self._claim(runes, reserved, (colorless, _any), allow_tapped=True)
            if index is None:
                return None
            reserved.add(index)
            power_claimed.add(index)
            plan.power_indices.append(index)
            remaining -= max(1, runes[index].power_value)

        return plan

    @staticmethod
    def _claim(
        runes: list[RuneCard],
        reserved: set[int],
        preferences: tuple[Callable[[RuneCard], bool], ...],
        allow_tapped: bool,
    ) -> int | None:
        passes = [False, True] if allow_tapped else [False]
        for tapped_pass in passes:
            for predicate in preferences:
                for index, rune in enumerate(runes):
                    if index in reserved or rune.is_tapped != tapped_pass:
                        continue
                    if predicate(rune):
                        return index
        return None

    def _commit(self, plan: RuneAllocation):
        runes = self.player.channeled_runes
        for index in plan.tapped_only:
            runes[index].is_tapped = True
        recycled = []
        for index in sorted(set(plan.power_indices), reverse=True):
            rune = runes.pop(index)
            rune.is_tapped = False
            recycled.append(rune)
        recycled.reverse()
        self.player.rune_deck.extend(recycled)
        recalculate_resources(self.player)
        logger.debug(
            "%s paid with runes: tapped=%s recycled=%d",
            self.player.player_id, plan.tapped_only, len(recycled),
        )


def _any(rune: RuneCard) -> bool:
    return True
