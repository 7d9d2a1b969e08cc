"""
Effect Resolver - Interpreter for declarative effect operations.

Abilities and spells resolve into an ordered list of EffectOperation
values. The resolver applies them strictly in order, one at a time,
against an EffectContext (source card, controller, optional unit, player
and battlefield targets, and a label used for duel-log attribution).

Operations that cannot be resolved (missing optional target, unknown
token shape, unknown type) are logged and skipped; the rest of the
ability still resolves. Resolution stops as soon as the match ends.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, TYPE_CHECKING
import logging

from .cards import (
    BoardCard,
    Card,
    CardLocation,
    CardType,
    EffectOperation,
    OperationType,
)
from .errors import ErrorCode, PreconditionError
from .lifecycle import create_board_card, token_card
from .resources import channel_runes, exhaust_runes, recycle_channeled_runes
from .state import (
    BattlefieldState,
    DuelLogTone,
    GameStatus,
    PlayerState,
    PromptType,
    ScoreReason,
    TemporaryEffect,
)

if TYPE_CHECKING:
    from .engine import MatchEngine

logger = logging.getLogger(__name__)

# trigger_type None on an ability matches any of these
GENERIC_TRIGGERS = frozenset({"play", "attack", "damage", "heal", "death"})


@dataclass
class EffectContext:
    source: Card
    controller_id: str
    label: str = ""
    target_unit_id: str | None = None
    target_player_id: str | None = None
    target_battlefield_id: str | None = None


@dataclass
class OperationResult:
    """Outcome of one operation."""
    operation: OperationType
    applied: bool
    detail: str = ""


@dataclass
class ResolutionReport:
    results: list[OperationResult] = field(default_factory=list)

    @property
    def applied(self) -> int:
        return sum(1 for r in self.results if r.applied)


class EffectResolver:
    """
    Applies EffectOperations to the engine's state.

    Dispatch is an exhaustive table keyed by OperationType; anything not
    in the table lands in the log-only default arm.
    """

    def __init__(self, engine: MatchEngine):
        self.engine = engine
        self.handlers: dict[OperationType, Callable[[EffectOperation, EffectContext], OperationResult]] = {
            OperationType.DRAW_CARDS: self._op_draw_cards,
            OperationType.DISCARD_CARDS: self._op_discard_cards,
            OperationType.MODIFY_STATS: self._op_modify_stats,
            OperationType.DEAL_DAMAGE: self._op_deal_damage,
            OperationType.HEAL: self._op_heal,
            OperationType.REMOVE_PERMANENT: self._op_remove_permanent,
            OperationType.SUMMON_UNIT: self._op_create_units,
            OperationType.CREATE_TOKEN: self._op_create_units,
            OperationType.GAIN_RESOURCE: self._op_gain_resource,
            OperationType.SHIELD: self._op_shield,
            OperationType.CHANNEL_RUNE: self._op_channel_rune,
            OperationType.MOVE_UNIT: self._op_move_unit,
            OperationType.RECYCLE_CARD: self._op_recycle_card,
            OperationType.SEARCH_DECK: self._op_search_deck,
            OperationType.MANIPULATE_PRIORITY: self._op_manipulate_priority,
            OperationType.INTERACT_LEGEND: self._op_interact_legend,
            OperationType.ATTACH_GEAR: self._op_attach_gear,
            OperationType.TRANSFORM: self._op_transform,
            OperationType.ADJUST_MULLIGAN: self._op_adjust_mulligan,
            OperationType.CONTROL_BATTLEFIELD: self._op_control_battlefield,
            OperationType.GENERIC: self._op_generic,
        }

    @property
    def state(self):
        return self.engine.state

    # Entry points

    def execute(self, operations: list[EffectOperation], context: EffectContext) -> ResolutionReport:
        report = ResolutionReport()
        for operation in operations:
            if self.state.status != GameStatus.IN_PROGRESS and self.state.status != GameStatus.MULLIGAN:
                break
            handler = self.handlers.get(operation.type, self._op_unhandled)
            result = handler(operation, context)
            report.results.append(result)
            if result.applied:
                logger.debug("%s: %s %s", context.label, operation.type.value, result.detail)
                self.engine.narrate(f"{context.label}: {result.detail}", player_id=context.controller_id)
            else:
                logger.warning("%s: skipped %s (%s)", context.label, operation.type.value, result.detail)
                self.engine.narrate(
                    f"{context.label}: {result.detail}",
                    player_id=context.controller_id,
                    tone=DuelLogTone.WARNING,
                )
        return report

    def resolve_spell(self, owner: PlayerState, card: Card, context: EffectContext) -> ResolutionReport:
        if card.operations:
            return self.execute(card.operations, context)
        report = ResolutionReport()
        for ability in card.abilities:
            if ability.trigger_type in (None, "play"):
                operations = ability.operations or self.infer_operations(ability.name)
                report.results.extend(self.execute(operations, context).results)
        if not report.results:
            report = self.execute(self.infer_operations(card.name), context)
        return report

    def trigger_abilities(
        self,
        owner: PlayerState,
        card: Card,
        trigger: str,
        context: EffectContext | None = None,
    ) -> ResolutionReport:
        report = ResolutionReport()
        for ability in card.abilities:
            if ability.trigger_type is None:
                if trigger not in GENERIC_TRIGGERS:
                    continue
            elif ability.trigger_type != trigger:
                continue
            operations = ability.operations or self.infer_operations(ability.name)
            ctx = context or EffectContext(source=card, controller_id=owner.player_id)
            ctx = EffectContext(
                source=card,
                controller_id=owner.player_id,
                label=ability.name or card.name,
                target_unit_id=ctx.target_unit_id,
                target_player_id=ctx.target_player_id,
                target_battlefield_id=ctx.target_battlefield_id,
            )
            report.results.extend(self.execute(operations, ctx).results)
        return report

    @staticmethod
    def infer_operations(name: str) -> list[EffectOperation]:
        """Fallback for abilities that only carry a name."""
        lowered = (name or "").lower()
        if "draw" in lowered:
            return [EffectOperation(type=OperationType.DRAW_CARDS, target_hint="self", magnitude_hint=1)]
        if "damage" in lowered:
            return [EffectOperation(type=OperationType.DEAL_DAMAGE, target_hint="enemy", magnitude_hint=1)]
        return [EffectOperation(type=OperationType.UNHANDLED, metadata={"name": name})]

    def validate_targets(self, card: Card, context: EffectContext):
        """Reject a play whose essential targets are missing, before anything changes."""
        operations = list(card.operations)
        for ability in card.abilities:
            if ability.trigger_type in (None, "play"):
                operations.extend(ability.operations)
        needs_unit = any(op.type == OperationType.DEAL_DAMAGE for op in operations)
        if needs_unit:
            found = self.state.find_board_card(context.target_unit_id) if context.target_unit_id else None
            if found is None or found[1].type != CardType.CREATURE:
                raise PreconditionError(
                    f"{card.name} needs a unit target",
                    error_code=ErrorCode.INVALID_TARGET,
                )
        if card.activation_profile is not None and card.activation_profile.requires_target:
            if not (context.target_unit_id or context.target_player_id or context.target_battlefield_id):
                raise PreconditionError(f"{card.name} needs a target", error_code=ErrorCode.INVALID_TARGET)

    # Target helpers

    def _unit_target(self, operation: EffectOperation, context: EffectContext) -> tuple[PlayerState, BoardCard] | None:
        if context.target_unit_id:
            return self.state.find_board_card(context.target_unit_id)
        if operation.target_hint == "self" and isinstance(context.source, BoardCard):
            return self.state.find_board_card(context.source.instance_id)
        return None

    def _player_target(self, operation: EffectOperation, context: EffectContext) -> PlayerState:
        if context.target_player_id:
            player = self.state.find_player(context.target_player_id)
            if player is not None:
                return player
        if operation.target_hint == "enemy":
            return self.state.opponent_of(context.controller_id)
        return self.state.find_player(context.controller_id)

    def _battlefield_target(self, context: EffectContext) -> BattlefieldState | None:
        state = self.state
        if context.target_battlefield_id:
            explicit = state.find_battlefield(context.target_battlefield_id)
            if explicit is not None:
                return explicit
        for battlefield in state.battlefields:
            if battlefield.controller_id and battlefield.controller_id != context.controller_id:
                return battlefield
        for battlefield in state.battlefields:
            if battlefield.controller_id is None:
                return battlefield
        return state.battlefields[0] if state.battlefields else None

    def _add_temporary_effect(self, owner: PlayerState, effect_type: str, value: int, unit: BoardCard, source: Card):
        owner.temporary_effects.append(
            TemporaryEffect(
                id=self.engine.next_id("effect", "effect"),
                effect_type=effect_type,
                value=value,
                duration=1,
                affected_card_id=unit.instance_id,
                source_card_id=source.id,
            )
        )

    @staticmethod
    def _skip(operation: EffectOperation, detail: str) -> OperationResult:
        return OperationResult(operation=operation.type, applied=False, detail=detail)

    @staticmethod
    def _done(operation: EffectOperation, detail: str) -> OperationResult:
        return OperationResult(operation=operation.type, applied=True, detail=detail)

    # Handlers

    def _op_draw_cards(self, operation, context):
        count = max(1, operation.magnitude_hint or 1)
        player = self.state.find_player(context.controller_id)
        drawn = self.engine.draw_cards(player, count)
        return self._done(operation, f"draw {drawn}")

    def _op_discard_cards(self, operation, context):
        count = max(1, operation.magnitude_hint or 1)
        if operation.target_hint == "self":
            player = self.state.find_player(context.controller_id)
            if not player.hand:
                return self._skip(operation, "no cards to discard")
            self.engine.priority.create_prompt(
                player.player_id,
                PromptType.TARGET,
                {
                    "kind": "discard",
                    "count": min(count, len(player.hand)),
                    "options": [c.instance_id for c in player.hand],
                    "source_id": context.source.id,
                },
            )
            return self._done(operation, f"choose {min(count, len(player.hand))} to discard")
        target = self._player_target(operation, context)
        if target.player_id == context.controller_id and operation.target_hint != "self":
            target = self.state.opponent_of(context.controller_id)
        discarded = 0
        while discarded < count and target.hand:
            target.graveyard.append(target.hand.pop(0))
            discarded += 1
        if not discarded:
            return self._skip(operation, f"{target.player_id} has no cards to discard")
        return self._done(operation, f"{target.player_id} discards {discarded}")

    def _op_modify_stats(self, operation, context):
        found = self._unit_target(operation, context)
        if found is None:
            return self._skip(operation, "no unit to modify")
        owner, unit = found
        amount = operation.magnitude_hint if operation.magnitude_hint is not None else 2
        if operation.target_hint == "enemy":
            amount = -abs(amount)
        self._add_temporary_effect(owner, "damage_boost", amount, unit, context.source)
        return self._done(operation, f"{unit.name} {amount:+d} might")

    def _op_deal_damage(self, operation, context):
        found = self._unit_target(operation, context)
        if found is None or found[1].type != CardType.CREATURE:
            return self._skip(operation, "no unit to damage")
        owner, unit = found
        amount = operation.magnitude_hint if operation.magnitude_hint is not None else 2
        dealt = self.engine.combat.damage_unit(owner, unit, max(0, amount), context.source.name)
        return self._done(operation, f"{dealt} damage to {unit.name}")

    def _op_heal(self, operation, context):
        found = self._unit_target(operation, context)
        if found is None:
            return self._skip(operation, "no unit to heal")
        owner, unit = found
        amount = max(1, operation.magnitude_hint or 1)
        ceiling = unit.toughness or 0
        current = unit.current_toughness if unit.current_toughness is not None else ceiling
        unit.current_toughness = min(ceiling, current + amount)
        self.trigger_abilities(owner, unit, "heal")
        return self._done(operation, f"heal {unit.name} to {unit.current_toughness}")

    def _op_remove_permanent(self, operation, context):
        found = self._unit_target(operation, context)
        if found is None:
            return self._skip(operation, "no permanent to remove")
        owner, card = found
        self.engine.combat.destroy_unit(owner, card, context.source.name)
        return self._done(operation, f"remove {card.name}")

    def _op_create_units(self, operation, context):
        key = "summon" if operation.type == OperationType.SUMMON_UNIT else "token"
        spec = context.source.metadata.get(key) or operation.metadata.get(key) or {}
        if not isinstance(spec, dict):
            return self._skip(operation, f"unresolved {key} shape")
        count = spec.get("count", operation.magnitude_hint or 1)
        if not isinstance(count, int) or count < 1 or spec.get("placement") in ("any", "flexible"):
            return self._skip(operation, f"unresolved {key} count or placement")
        owner = self.state.find_player(context.controller_id)
        location = CardLocation.base()
        if context.target_battlefield_id:
            battlefield = self.state.find_battlefield(context.target_battlefield_id)
            if battlefield is not None and battlefield.controller_id == owner.player_id:
                location = CardLocation.at(battlefield.battlefield_id)
        template = token_card(spec, context.source)
        if key == "summon":
            template.metadata.pop("token", None)
        for _ in range(count):
            unit = create_board_card(
                template,
                self.engine.next_id("instance", template.id),
                self.engine.now(),
                location=location,
            )
            owner.board.creatures.append(unit)
            if not location.is_base:
                self.engine.combat.place_unit(owner, unit, location)
        return self._done(operation, f"create {count} {template.name}")

    def _op_gain_resource(self, operation, context):
        amount = operation.magnitude_hint if operation.magnitude_hint is not None else 1
        player = self.state.find_player(context.controller_id)
        if amount >= 0:
            moved = channel_runes(player, max(1, amount))
            return self._done(operation, f"channel {moved} rune(s)")
        exhausted = exhaust_runes(player, -amount)
        return self._done(operation, f"exhaust {exhausted} rune(s)")

    def _op_shield(self, operation, context):
        found = self._unit_target(operation, context)
        if found is None:
            return self._skip(operation, "no unit to shield")
        owner, unit = found
        value = max(1, operation.magnitude_hint or 1)
        self._add_temporary_effect(owner, "prevent_damage", value, unit, context.source)
        return self._done(operation, f"shield {unit.name} for {value}")

    def _op_channel_rune(self, operation, context):
        player = self.state.find_player(context.controller_id)
        moved = channel_runes(player, max(1, operation.magnitude_hint or 1))
        if not moved:
            return self._skip(operation, "rune deck is empty")
        return self._done(operation, f"channel {moved} rune(s)")

    def _op_move_unit(self, operation, context):
        found = self._unit_target(operation, context)
        if found is None or found[1].type != CardType.CREATURE:
            return self._skip(operation, "no unit to move")
        owner, unit = found
        if not unit.location.is_base:
            self.engine.combat.place_unit(owner, unit, CardLocation.base())
            return self._done(operation, f"{unit.name} returns to base")
        battlefield = self.state.find_battlefield(context.target_battlefield_id or "")
        if battlefield is None:
            return self._skip(operation, "no destination for move")
        combat = self.engine.combat
        combat.place_unit(owner, unit, CardLocation.at(battlefield.battlefield_id))
        if self.state.combat_context is not None:
            combat.join_engagement(owner, unit)
        else:
            combat.settle_arrival(owner, battlefield)
        return self._done(operation, f"{unit.name} moves to {battlefield.name}")

    def _op_recycle_card(self, operation, context):
        player = self.state.find_player(context.controller_id)
        count = max(1, operation.magnitude_hint or 1)
        if operation.zone in ("board", "rune"):
            recycled = recycle_channeled_runes(player, count)
            if not recycled:
                return self._skip(operation, "no channeled rune to recycle")
            return self._done(operation, f"recycle {recycled} rune(s)")
        moved = 0
        while moved < count and player.graveyard:
            player.deck.append(player.graveyard.pop())
            moved += 1
        if not moved:
            return self._skip(operation, "graveyard is empty")
        return self._done(operation, f"recycle {moved} card(s) to deck bottom")

    def _op_search_deck(self, operation, context):
        player = self.state.find_player(context.controller_id)
        look = max(1, operation.magnitude_hint or 3)
        revealed = player.deck[:look]
        if not revealed:
            return self._skip(operation, "deck is empty")
        self.engine.priority.create_prompt(
            player.player_id,
            PromptType.TARGET,
            {
                "kind": "search",
                "count": 1,
                "options": [c.instance_id for c in revealed],
                "source_id": context.source.id,
            },
        )
        return self._done(operation, f"look at the top {len(revealed)}")

    def _op_manipulate_priority(self, operation, context):
        if self.state.priority_window is None:
            return self._skip(operation, "no priority window open")
        self.engine.priority.hand_to(context.controller_id)
        if self.state.combat_context is not None:
            self.state.combat_context.action_pass_count = 0
        return self._done(operation, f"{context.controller_id} keeps priority")

    def _op_interact_legend(self, operation, context):
        player = self.state.find_player(context.controller_id)
        if player.champion_legend is None:
            return self._skip(operation, "no legend")
        player.legend_exhausted = False
        return self._done(operation, f"ready {player.champion_legend.name}")

    def _op_attach_gear(self, operation, context):
        owner = self.state.find_player(context.controller_id)
        found = self._unit_target(operation, context)
        if found is None or found[0] is not owner or found[1].type != CardType.CREATURE:
            return self._skip(operation, "no friendly unit to equip")
        unit = found[1]
        gear = None
        if isinstance(context.source, BoardCard) and context.source.type == CardType.ARTIFACT:
            gear = owner.board.find(context.source.instance_id)
        if gear is None:
            for candidate in reversed(owner.board.artifacts):
                if candidate.attached_to is None:
                    gear = candidate
                    break
        if gear is None:
            return self._skip(operation, "no gear to attach")
        gear.attached_to = unit.instance_id
        return self._done(operation, f"attach {gear.name} to {unit.name}")

    def _op_transform(self, operation, context):
        found = self._unit_target(operation, context)
        spec = context.source.metadata.get("transform")
        if found is None or not isinstance(spec, dict):
            return self._skip(operation, "unresolved transform")
        _, unit = found
        unit.name = str(spec.get("name", unit.name))
        if "power" in spec:
            unit.power = int(spec["power"])
        if "toughness" in spec:
            unit.toughness = int(spec["toughness"])
            unit.current_toughness = unit.toughness
        unit.counters["transformed"] = unit.counters.get("transformed", 0) + 1
        return self._done(operation, f"transform into {unit.name}")

    def _op_adjust_mulligan(self, operation, context):
        if self.state.status != GameStatus.MULLIGAN:
            return self._skip(operation, "not in mulligan")
        for prompt in self.state.open_prompts(context.controller_id):
            if prompt.prompt_type == PromptType.MULLIGAN:
                extra = max(1, operation.magnitude_hint or 1)
                prompt.data["max_replacements"] = prompt.data.get("max_replacements", 0) + extra
                return self._done(operation, f"mulligan up to {prompt.data['max_replacements']}")
        return self._skip(operation, "no open mulligan")

    def _op_control_battlefield(self, operation, context):
        battlefield = self._battlefield_target(context)
        if battlefield is None:
            return self._skip(operation, "no battlefield")
        points = max(1, operation.magnitude_hint or 1)
        self.engine.combat.apply_control(battlefield, context.controller_id, ScoreReason.OBJECTIVE, points)
        return self._done(operation, f"control {battlefield.name}")

    def _op_generic(self, operation, context):
        if operation.target_hint == "battlefield":
            return self._op_control_battlefield(operation, context)
        return self._skip(operation, f"unhandled-operation-{operation.type.value}")

    def _op_unhandled(self, operation, context):
        return self._skip(operation, f"unhandled-operation-{operation.type.value}")

    # Prompt completions

    def complete_discard(self, player: PlayerState, choices: list[str], count: int):
        for instance_id in choices:
            for index, card in enumerate(player.hand):
                if card.instance_id == instance_id:
                    player.graveyard.append(player.hand.pop(index))
                    break
        logger.debug("%s discarded %d", player.player_id, count)

    def complete_search(self, player: PlayerState, choice: str):
        for index, card in enumerate(player.deck):
            if card.instance_id == choice:
                player.hand.append(player.deck.pop(index))
                return
