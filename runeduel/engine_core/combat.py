"""
Combat & Battlefield Resolution.

Moving a unit onto a battlefield taps it. If enemy units are already
there, a combat context opens and priority passes decide when it ends;
otherwise the mover takes the battlefield straight away.

Resolution of a battlefield:
- one side present: that side wins uncontested
- tied might: every unit there is destroyed, the battlefield goes neutral
- otherwise: the losing sides' units are destroyed, the winner takes or
  keeps control and scores a combat point

A battlefield resolves at most once per turn.
"""

from __future__ import annotations
from typing import TYPE_CHECKING
import logging

from .cards import BoardCard, CardLocation, CardType
from .errors import ErrorCode, PreconditionError
from .state import (
    BattlefieldState,
    CombatContext,
    DuelLogTone,
    GamePhase,
    GameStatus,
    MoveAction,
    PlayerState,
    PriorityWindowType,
    ScoreReason,
)

if TYPE_CHECKING:
    from .engine import MatchEngine

logger = logging.getLogger(__name__)

MOVE_PHASES = frozenset({GamePhase.MAIN_1, GamePhase.MAIN_2, GamePhase.COMBAT})


class CombatResolver:

    def __init__(self, engine: MatchEngine):
        self.engine = engine

    @property
    def state(self):
        return self.engine.state

    # Might

    def might_of(self, owner: PlayerState, unit: BoardCard) -> int:
        """Power (toughness when absent) plus boosts and attached gear."""
        base = unit.power if unit.power is not None else (unit.current_toughness or 0)
        bonus = 0
        for effect in owner.temporary_effects:
            if effect.effect_type == "damage_boost" and effect.affected_card_id == unit.instance_id:
                bonus += effect.value
        for gear in owner.board.artifacts:
            if gear.attached_to == unit.instance_id:
                bonus += gear.power or 0
        return max(0, base + bonus)

    def tally(self, battlefield_id: str) -> dict[str, int]:
        totals: dict[str, int] = {}
        for owner, unit in self.state.units_at(battlefield_id):
            totals[owner.player_id] = totals.get(owner.player_id, 0) + self.might_of(owner, unit)
        return totals

    # Contestants

    def sync_contestants(self, battlefield: BattlefieldState):
        """Drop contestants that no longer have a unit on the battlefield."""
        present = {owner.player_id for owner, _ in self.state.units_at(battlefield.battlefield_id)}
        battlefield.contested_by = [p for p in battlefield.contested_by if p in present]

    def add_contestant(self, battlefield: BattlefieldState, player_id: str):
        if player_id not in battlefield.contested_by:
            battlefield.contested_by.append(player_id)

    # Movement

    def move_unit(self, player_id: str, instance_id: str, destination_id: str):
        engine = self.engine
        state = self.state
        player = engine.require_player(player_id)
        engine.require_status(GameStatus.IN_PROGRESS)
        engine.require_current_player(player_id)
        if state.combat_context is not None:
            raise PreconditionError("Units cannot move during an engagement", error_code=ErrorCode.WRONG_PHASE)
        engine.priority.require_priority(player_id)
        if state.current_phase not in MOVE_PHASES:
            raise PreconditionError(
                f"Units cannot move during {state.current_phase.value}",
                error_code=ErrorCode.WRONG_PHASE,
            )
        unit = player.board.find(instance_id)
        if unit is None or unit.type != CardType.CREATURE:
            raise PreconditionError(
                f"{player_id} controls no unit {instance_id}",
                error_code=ErrorCode.UNKNOWN_CARD,
                details={"instance_id": instance_id},
            )
        if unit.is_tapped:
            raise PreconditionError(f"{unit.name} is exhausted", error_code=ErrorCode.INVALID_TARGET)
        if unit.summoned:
            raise PreconditionError(f"{unit.name} was summoned this turn", error_code=ErrorCode.INVALID_TARGET)

        if destination_id == "base":
            if unit.location.is_base:
                raise PreconditionError(f"{unit.name} is already at base", error_code=ErrorCode.INVALID_TARGET)
            self._relocate(player, unit, CardLocation.base())
            engine.record_move(player_id, MoveAction.MOVE, card_id=unit.id, destination_id="base")
            engine.narrate(f"{player.name or player_id} recalls {unit.name} to base", player_id=player_id)
            return

        battlefield = state.find_battlefield(destination_id)
        if battlefield is None:
            raise PreconditionError(
                f"Unknown battlefield {destination_id}",
                error_code=ErrorCode.UNKNOWN_BATTLEFIELD,
            )
        if unit.location.is_at(battlefield.battlefield_id):
            raise PreconditionError(f"{unit.name} is already there", error_code=ErrorCode.INVALID_TARGET)
        if state.resolved_this_turn(battlefield) and any(
            owner.player_id != player_id for owner, _ in state.units_at(battlefield.battlefield_id)
        ):
            raise PreconditionError(
                f"{battlefield.name} already resolved this turn",
                error_code=ErrorCode.INVALID_TARGET,
                details={"battlefield_id": battlefield.battlefield_id},
            )
        if state.current_phase == GamePhase.MAIN_2:
            raise PreconditionError(
                "Units can only advance during the first main phase or combat",
                error_code=ErrorCode.WRONG_PHASE,
            )
        if state.current_phase == GamePhase.MAIN_1:
            engine.turns.enter_combat_phase()

        self._relocate(player, unit, CardLocation.at(battlefield.battlefield_id))
        engine.record_move(player_id, MoveAction.ATTACK, card_id=unit.id, destination_id=battlefield.battlefield_id)
        engine.narrate(f"{player.name or player_id} sends {unit.name} to {battlefield.name}", player_id=player_id)
        engine.effects.trigger_abilities(player, unit, "attack")
        self.settle_arrival(player, battlefield)

    def _relocate(self, owner: PlayerState, unit: BoardCard, location: CardLocation):
        previous = unit.location
        unit.location = location
        unit.is_tapped = True
        if not previous.is_base:
            left = self.state.find_battlefield(previous.battlefield_id)
            if left is not None:
                self.sync_contestants(left)
        if not location.is_base:
            arrived = self.state.find_battlefield(location.battlefield_id)
            if arrived is not None:
                self.add_contestant(arrived, owner.player_id)

    def place_unit(self, owner: PlayerState, unit: BoardCard, location: CardLocation):
        """Relocate without the move rules (effects); keeps the unit's tapped state."""
        tapped = unit.is_tapped
        self._relocate(owner, unit, location)
        unit.is_tapped = tapped

    def settle_arrival(self, player: PlayerState, battlefield: BattlefieldState):
        """Open an engagement against enemy occupants, or capture an empty battlefield."""
        if not self.engine.state.status == GameStatus.IN_PROGRESS:
            return
        occupants = self.state.units_at(battlefield.battlefield_id)
        enemies = [unit for owner, unit in occupants if owner.player_id != player.player_id]
        if enemies:
            defender = self.state.opponent_of(player.player_id)
            context = CombatContext(
                battlefield_id=battlefield.battlefield_id,
                initiated_by=player.player_id,
                defending_player_id=defender.player_id,
                attacking_unit_ids=[u.instance_id for o, u in occupants if o.player_id == player.player_id],
                defending_unit_ids=[u.instance_id for u in enemies],
            )
            self.engine.priority.open_combat(context)
            self.engine.narrate(f"Showdown at {battlefield.name}", tone=DuelLogTone.WARNING)
            logger.info("Combat opened at %s by %s", battlefield.battlefield_id, player.player_id)
            return
        if battlefield.controller_id != player.player_id:
            self.resolve_battlefield(battlefield.battlefield_id)

    def join_engagement(self, owner: PlayerState, unit: BoardCard):
        """Keep the combat context's unit lists current when units arrive mid-fight."""
        context = self.state.combat_context
        if context is None or not unit.location.is_at(context.battlefield_id):
            return
        target = context.attacking_unit_ids if owner.player_id == context.initiated_by else context.defending_unit_ids
        if unit.instance_id not in target:
            target.append(unit.instance_id)

    # Resolution

    def resolve_engagement(self):
        """Two consecutive action-stage passes: settle the contested battlefield."""
        context = self.state.combat_context
        if context is None:
            return
        self.state.combat_context = None
        self.resolve_battlefield(context.battlefield_id, force=True)
        if self.state.status == GameStatus.IN_PROGRESS:
            active = self.state.current_player.player_id
            self.engine.priority.open_window(PriorityWindowType.SHOWDOWN, active, event="combat-resolved")

    def resolve_battlefield(self, battlefield_id: str, force: bool = False):
        """Settle might at a battlefield. An open engagement always settles (force)."""
        state = self.state
        battlefield = state.find_battlefield(battlefield_id)
        if battlefield is None or (state.resolved_this_turn(battlefield) and not force):
            return
        totals = self.tally(battlefield_id)
        if not totals:
            return
        battlefield.last_combat_turn = state.turn_number
        battlefield.last_combat_player_id = state.current_player.player_id
        logger.debug("Might at %s: %s", battlefield_id, totals)

        if len(totals) == 1:
            (winner_id,) = totals
            self.apply_control(battlefield, winner_id, ScoreReason.COMBAT)
            return

        best = max(totals.values())
        leaders = [pid for pid, might in totals.items() if might == best]
        if len(leaders) > 1:
            for owner, unit in state.units_at(battlefield_id):
                self.destroy_unit(owner, unit, "stalemate")
            battlefield.controller_id = None
            battlefield.contested_by = []
            self.engine.narrate(f"Stalemate at {battlefield.name}: all units destroyed", tone=DuelLogTone.WARNING)
            return

        winner_id = leaders[0]
        for owner, unit in state.units_at(battlefield_id):
            if owner.player_id != winner_id:
                self.destroy_unit(owner, unit, "combat")
        self.apply_control(battlefield, winner_id, ScoreReason.COMBAT)

    def apply_control(self, battlefield: BattlefieldState, player_id: str, reason: ScoreReason, points: int = 1):
        state = self.state
        if battlefield.controller_id == player_id:
            battlefield.last_hold_turn = state.turn_number
        else:
            battlefield.controller_id = player_id
            battlefield.last_conquered_turn = state.turn_number
            battlefield.last_hold_turn = None
        battlefield.contested_by = []
        player = state.find_player(player_id)
        self.engine.narrate(
            f"{player.name or player_id} takes {battlefield.name}",
            player_id=player_id,
            tone=DuelLogTone.SUCCESS,
        )
        self.engine.award_victory_points(player_id, max(1, points), reason, source_id=battlefield.battlefield_id)

    def check_hold_bonuses(self, player: PlayerState):
        """One hold point per battlefield the player alone occupies, once per turn."""
        state = self.state
        for battlefield in state.battlefields:
            if state.status != GameStatus.IN_PROGRESS:
                return
            owners = {owner.player_id for owner, _ in state.units_at(battlefield.battlefield_id)}
            if owners != {player.player_id}:
                continue
            if battlefield.last_hold_scored_turn == state.turn_number and battlefield.last_hold_scored_by == player.player_id:
                continue
            battlefield.last_hold_scored_turn = state.turn_number
            battlefield.last_hold_scored_by = player.player_id
            battlefield.last_hold_turn = state.turn_number
            if battlefield.controller_id != player.player_id:
                battlefield.controller_id = player.player_id
                battlefield.last_conquered_turn = state.turn_number
            self.engine.award_victory_points(
                player.player_id, 1, ScoreReason.HOLD, source_id=battlefield.battlefield_id
            )

    # Damage and destruction

    def damage_unit(self, owner: PlayerState, unit: BoardCard, amount: int, source_name: str = "") -> int:
        """Apply damage after shields. Returns damage dealt."""
        remaining = max(0, amount)
        for effect in owner.temporary_effects:
            if remaining <= 0:
                break
            if effect.effect_type == "prevent_damage" and effect.affected_card_id == unit.instance_id and effect.value > 0:
                prevented = min(effect.value, remaining)
                effect.value -= prevented
                remaining -= prevented
        owner.temporary_effects = [
            e for e in owner.temporary_effects if not (e.effect_type == "prevent_damage" and e.value <= 0)
        ]
        if remaining <= 0:
            return 0
        toughness = unit.current_toughness if unit.current_toughness is not None else (unit.toughness or 0)
        unit.current_toughness = toughness - remaining
        self.engine.effects.trigger_abilities(owner, unit, "damage")
        if unit.current_toughness <= 0:
            self.destroy_unit(owner, unit, source_name or "damage")
        return remaining

    def destroy_unit(self, owner: PlayerState, unit: BoardCard, reason: str):
        """Move a permanent to its owner's graveyard and fire death triggers."""
        if owner.board.remove(unit.instance_id) is None:
            return
        if unit.activation_state is not None and unit.activation_state.active:
            unit.activation_state.record(False, "destroyed", self.engine.now())
        for gear in owner.board.artifacts:
            if gear.attached_to == unit.instance_id:
                gear.attached_to = None
        owner.temporary_effects = [e for e in owner.temporary_effects if e.affected_card_id != unit.instance_id]
        if not unit.location.is_base:
            battlefield = self.state.find_battlefield(unit.location.battlefield_id)
            if battlefield is not None:
                self.sync_contestants(battlefield)
        context = self.state.combat_context
        if context is not None:
            for ids in (context.attacking_unit_ids, context.defending_unit_ids):
                if unit.instance_id in ids:
                    ids.remove(unit.instance_id)
        if not unit.metadata.get("token"):
            owner.graveyard.append(unit.to_card())
        self.engine.narrate(f"{unit.name} is destroyed ({reason})", player_id=owner.player_id)
        self.engine.effects.trigger_abilities(owner, unit, "death")
