"""
Tests for the effect resolver.

Tests:
- Individual operation handlers
- Skips for unresolvable operations
- Spells and gear played from hand
- Prompt-driven effects (discard, search)
"""

import pytest

from ..engine_core.cards import Card, EffectOperation, OperationType
from ..engine_core.effect_resolver import EffectContext, EffectResolver
from ..engine_core.errors import ErrorCode, PreconditionError
from ..engine_core.state import DuelLogTone, GameStatus, PromptType, ScoreReason


def op(op_type, target=None, magnitude=None, **kwargs):
    return EffectOperation(type=op_type, target_hint=target, magnitude_hint=magnitude, **kwargs)


def context_for(controller_id, source=None, **kwargs):
    source = source or Card(id="TEST-1", name="Test Effect")
    return EffectContext(source=source, controller_id=controller_id, label=source.name, **kwargs)


class TestExecute:
    """Tests for sequential resolution."""

    def test_draw_cards(self, started_engine):
        """Draw moves cards to hand and narrates with the source name."""
        alice = started_engine.state.find_player("alice")
        hand = len(alice.hand)
        report = started_engine.effects.execute([op(OperationType.DRAW_CARDS, "self", 2)], context_for("alice"))
        assert report.applied == 1
        assert len(alice.hand) == hand + 2
        assert started_engine.state.duel_log[-1].message == "Test Effect: draw 2"

    def test_unhandled_operation_is_skipped(self, started_engine):
        """An unknown operation is logged and the rest still resolves."""
        alice = started_engine.state.find_player("alice")
        hand = len(alice.hand)
        report = started_engine.effects.execute(
            [op(OperationType.UNHANDLED), op(OperationType.DRAW_CARDS, "self", 1)],
            context_for("alice"),
        )
        assert len(report.results) == 2
        assert report.applied == 1
        assert len(alice.hand) == hand + 1
        warnings = [e for e in started_engine.state.duel_log if e.tone == DuelLogTone.WARNING]
        assert warnings[-1].message.endswith("unhandled-operation-unhandled")

    def test_generic_without_battlefield_hint_is_skipped(self, started_engine):
        """A generic operation with nothing to act on is skipped."""
        report = started_engine.effects.execute([op(OperationType.GENERIC)], context_for("alice"))
        assert report.applied == 0

    def test_stops_when_match_ends(self, started_engine):
        """Resolution stops once an operation ends the match."""
        report = started_engine.effects.execute(
            [op(OperationType.CONTROL_BATTLEFIELD, magnitude=8), op(OperationType.DRAW_CARDS, "self", 1)],
            context_for("alice", target_battlefield_id="BF-003"),
        )
        state = started_engine.state
        assert state.status == GameStatus.WINNER_DETERMINED
        assert state.winner == "alice"
        assert len(report.results) == 1

    def test_infer_operations_from_name(self):
        """Operations are guessed from card text when none are listed."""
        assert EffectResolver.infer_operations("Draw a card")[0].type == OperationType.DRAW_CARDS
        assert EffectResolver.infer_operations("Deals damage")[0].type == OperationType.DEAL_DAMAGE
        assert EffectResolver.infer_operations("Mystery")[0].type == OperationType.UNHANDLED


class TestUnitOperations:
    """Tests for operations that target units."""

    def test_heal_caps_at_toughness(self, started_engine, put_unit):
        """Healing never exceeds printed toughness."""
        unit = put_unit(started_engine, "alice", "SD-002")
        unit.current_toughness = 1
        started_engine.effects.execute(
            [op(OperationType.HEAL, "ally", 5)],
            context_for("alice", target_unit_id=unit.instance_id),
        )
        assert unit.current_toughness == 4

    def test_modify_stats_enemy_is_negative(self, started_engine, put_unit):
        """An enemy stat change lowers might."""
        unit = put_unit(started_engine, "bob", "SD-002")
        started_engine.effects.execute(
            [op(OperationType.MODIFY_STATS, "enemy", 2)],
            context_for("alice", target_unit_id=unit.instance_id),
        )
        bob = started_engine.state.find_player("bob")
        assert bob.temporary_effects[-1].value == -2
        assert started_engine.combat.might_of(bob, unit) == 1

    def test_missing_unit_target_skips(self, started_engine):
        """Unit operations without a target are skipped."""
        report = started_engine.effects.execute([op(OperationType.SHIELD, "ally", 2)], context_for("alice"))
        assert report.applied == 0

    def test_remove_permanent(self, started_engine, put_unit):
        """Removal sends the unit to the graveyard."""
        unit = put_unit(started_engine, "bob", "SD-006")
        started_engine.effects.execute(
            [op(OperationType.REMOVE_PERMANENT, "enemy")],
            context_for("alice", target_unit_id=unit.instance_id),
        )
        bob = started_engine.state.find_player("bob")
        assert bob.board.find(unit.instance_id) is None
        assert bob.graveyard[-1].id == "SD-006"

    def test_remove_permanent_ignores_shields(self, started_engine, put_unit):
        """Removal destroys outright; prevent-damage shields do not apply."""
        unit = put_unit(started_engine, "bob", "SD-002")
        ctx = context_for("alice", target_unit_id=unit.instance_id)
        started_engine.effects.execute(
            [op(OperationType.SHIELD, "enemy", 4), op(OperationType.REMOVE_PERMANENT, "enemy")],
            ctx,
        )
        bob = started_engine.state.find_player("bob")
        assert bob.board.find(unit.instance_id) is None
        assert bob.graveyard[-1].id == "SD-002"
        assert bob.temporary_effects == []

    def test_move_unit_to_battlefield_and_back(self, started_engine, put_unit):
        """A unit at base moves out and a deployed unit returns."""
        unit = put_unit(started_engine, "alice", "SD-001")
        ctx = context_for("alice", target_unit_id=unit.instance_id, target_battlefield_id="BF-001")
        started_engine.effects.execute([op(OperationType.MOVE_UNIT, "ally")], ctx)
        assert unit.location.is_at("BF-001")
        started_engine.effects.execute([op(OperationType.MOVE_UNIT, "ally")], ctx)
        assert unit.location.is_base

    def test_move_unit_onto_enemies_opens_engagement(self, started_engine, put_unit):
        """An effect move onto an occupied battlefield starts a fight like a normal move."""
        defender = put_unit(started_engine, "bob", "SD-002", "BF-003")
        unit = put_unit(started_engine, "alice", "SD-001")
        ctx = context_for("alice", target_unit_id=unit.instance_id, target_battlefield_id="BF-003")
        started_engine.effects.execute([op(OperationType.MOVE_UNIT, "ally")], ctx)
        context = started_engine.state.combat_context
        assert context is not None
        assert context.attacking_unit_ids == [unit.instance_id]
        assert context.defending_unit_ids == [defender.instance_id]
        assert started_engine.state.priority_window.holder_id == "bob"

    def test_move_unit_onto_empty_battlefield_captures(self, started_engine, put_unit):
        """An effect move onto an empty battlefield captures it."""
        unit = put_unit(started_engine, "alice", "SD-001")
        ctx = context_for("alice", target_unit_id=unit.instance_id, target_battlefield_id="BF-003")
        started_engine.effects.execute([op(OperationType.MOVE_UNIT, "ally")], ctx)
        state = started_engine.state
        assert state.find_battlefield("BF-003").controller_id == "alice"
        assert state.find_player("alice").victory_points == 1


class TestTokens:
    """Tests for create_token and summon_unit."""

    def test_token_created_at_base(self, started_engine):
        """Tokens appear at base with unique instance ids."""
        source = Card(id="SRC", name="Sprouting", metadata={"token": {"name": "Sprout", "power": 1, "count": 2}})
        started_engine.effects.execute([op(OperationType.CREATE_TOKEN)], context_for("alice", source=source))
        alice = started_engine.state.find_player("alice")
        tokens = [u for u in alice.board.creatures if u.metadata.get("token")]
        assert [t.name for t in tokens] == ["Sprout", "Sprout"]
        assert all(t.location.is_base for t in tokens)
        assert len({t.instance_id for t in tokens}) == 2

    def test_flexible_placement_is_skipped(self, started_engine):
        """Tokens needing a placement choice are skipped."""
        source = Card(id="SRC", name="Sprouting", metadata={"token": {"placement": "flexible"}})
        report = started_engine.effects.execute([op(OperationType.CREATE_TOKEN)], context_for("alice", source=source))
        assert report.applied == 0
        assert started_engine.state.find_player("alice").board.creatures == []

    def test_destroyed_token_skips_graveyard(self, started_engine):
        """Destroyed tokens leave the game."""
        source = Card(id="SRC", name="Sprouting", metadata={"token": {"name": "Sprout"}})
        started_engine.effects.execute([op(OperationType.CREATE_TOKEN)], context_for("alice", source=source))
        alice = started_engine.state.find_player("alice")
        token = alice.board.creatures[0]
        started_engine.combat.destroy_unit(alice, token, "test")
        assert alice.board.creatures == []
        assert alice.graveyard == []

    def test_summoned_unit_is_not_a_token(self, started_engine):
        """Summoned units are regular, summoning-sick units."""
        source = Card(id="SRC", name="Call", metadata={"summon": {"name": "Guard", "power": 2}})
        started_engine.effects.execute([op(OperationType.SUMMON_UNIT)], context_for("alice", source=source))
        unit = started_engine.state.find_player("alice").board.creatures[0]
        assert not unit.metadata.get("token")
        assert unit.summoned


class TestPlayerOperations:
    """Tests for operations on players, runes and battlefields."""

    def test_channel_rune(self, started_engine):
        """Channel moves a rune from the rune deck."""
        alice = started_engine.state.find_player("alice")
        started_engine.effects.execute([op(OperationType.CHANNEL_RUNE, "self", 1)], context_for("alice"))
        assert len(alice.channeled_runes) == 3

    def test_discard_enemy(self, started_engine):
        """An enemy discard takes a card without a prompt."""
        bob = started_engine.state.find_player("bob")
        hand = len(bob.hand)
        started_engine.effects.execute([op(OperationType.DISCARD_CARDS, "enemy", 1)], context_for("alice"))
        assert len(bob.hand) == hand - 1
        assert len(bob.graveyard) == 1

    def test_recycle_graveyard_to_deck_bottom(self, started_engine):
        """Recycled cards go to the bottom of the deck."""
        alice = started_engine.state.find_player("alice")
        card = alice.hand.pop(0)
        alice.graveyard.append(card)
        started_engine.effects.execute([op(OperationType.RECYCLE_CARD, "self", 1)], context_for("alice"))
        assert alice.graveyard == []
        assert alice.deck[-1].instance_id == card.instance_id

    def test_control_battlefield_scores_objective(self, started_engine):
        """Seizing a battlefield scores an objective point."""
        started_engine.effects.execute(
            [op(OperationType.CONTROL_BATTLEFIELD)],
            context_for("alice", target_battlefield_id="BF-003"),
        )
        state = started_engine.state
        assert state.find_battlefield("BF-003").controller_id == "alice"
        assert state.score_log[-1].reason == ScoreReason.OBJECTIVE
        assert state.find_player("alice").victory_points == 1

    def test_manipulate_priority(self, started_engine):
        """Priority can be handed to the controller."""
        started_engine.effects.execute([op(OperationType.MANIPULATE_PRIORITY)], context_for("bob"))
        assert started_engine.state.priority_window.holder_id == "bob"

    def test_interact_legend_readies(self, started_engine):
        """Legend interaction readies an exhausted legend."""
        alice = started_engine.state.find_player("alice")
        alice.legend_exhausted = True
        started_engine.effects.execute([op(OperationType.INTERACT_LEGEND)], context_for("alice"))
        assert not alice.legend_exhausted

    def test_adjust_mulligan_outside_mulligan(self, started_engine):
        """Mulligan adjustments do nothing once play has started."""
        report = started_engine.effects.execute([op(OperationType.ADJUST_MULLIGAN)], context_for("alice"))
        assert report.applied == 0


class TestPrompts:
    """Tests for effects that ask the player to choose."""

    def test_self_discard_opens_prompt(self, started_engine):
        """A self discard asks the player which card to discard."""
        engine = started_engine
        engine.effects.execute([op(OperationType.DISCARD_CARDS, "self", 1)], context_for("alice"))
        prompt = engine.state.open_prompts("alice")[0]
        assert prompt.prompt_type == PromptType.TARGET
        assert prompt.data["kind"] == "discard"
        choice = prompt.data["options"][2]
        engine.submit_discard_selection("alice", prompt.id, [choice])
        alice = engine.state.find_player("alice")
        assert alice.graveyard[-1].instance_id == choice
        assert engine.state.open_prompts("alice") == []

    def test_search_deck(self, started_engine):
        """A deck search offers the top cards and puts the pick in hand."""
        engine = started_engine
        engine.effects.execute([op(OperationType.SEARCH_DECK, "self", 3)], context_for("alice"))
        prompt = engine.state.open_prompts("alice")[0]
        assert prompt.data["kind"] == "search"
        assert len(prompt.data["options"]) == 3
        choice = prompt.data["options"][1]
        engine.submit_target_selection("alice", prompt.id, [choice])
        alice = engine.state.find_player("alice")
        assert alice.hand[-1].instance_id == choice
        assert choice not in {c.instance_id for c in alice.deck}

    def test_selection_outside_options(self, started_engine):
        """Answers must come from the prompt's options."""
        engine = started_engine
        engine.effects.execute([op(OperationType.SEARCH_DECK, "self", 3)], context_for("alice"))
        prompt = engine.state.open_prompts("alice")[0]
        with pytest.raises(PreconditionError) as exc:
            engine.submit_target_selection("alice", prompt.id, ["not-an-option"])
        assert exc.value.error_code == ErrorCode.INVALID_CHOICE

    def test_unknown_prompt(self, started_engine):
        """Answering a missing prompt is rejected."""
        with pytest.raises(PreconditionError) as exc:
            started_engine.submit_target_selection("alice", "prompt_999", [])
        assert exc.value.error_code == ErrorCode.UNKNOWN_PROMPT


class TestCardsFromHand:
    """Tests for spells and gear played through the engine."""

    def test_firebolt_damages_enemy_unit(self, started_engine, put_unit, give_card):
        """A damage spell hits its target and is paid for."""
        target = put_unit(started_engine, "bob", "SD-002")
        index = give_card(started_engine, "alice", "SD-010")
        started_engine.play_card("alice", index, [target.instance_id])
        alice = started_engine.state.find_player("alice")
        assert target.current_toughness == 2
        assert alice.graveyard[-1].id == "SD-010"
        assert sum(1 for r in alice.channeled_runes if r.is_tapped) == 1

    def test_firebolt_needs_target(self, started_engine, give_card):
        """A targeted spell without a target is rolled back."""
        index = give_card(started_engine, "alice", "SD-010")
        hand = len(started_engine.state.find_player("alice").hand)
        with pytest.raises(PreconditionError) as exc:
            started_engine.play_card("alice", index)
        assert exc.value.error_code == ErrorCode.INVALID_TARGET
        alice = started_engine.state.find_player("alice")
        assert len(alice.hand) == hand
        assert not any(r.is_tapped for r in alice.channeled_runes)

    def test_rally_cry_boosts_might(self, started_engine, put_unit, give_card):
        """A boost spell raises the target's might."""
        unit = put_unit(started_engine, "alice", "SD-001")
        index = give_card(started_engine, "alice", "SD-013")
        started_engine.play_card("alice", index, [unit.instance_id])
        alice = started_engine.state.find_player("alice")
        assert started_engine.combat.might_of(alice, unit) == 4

    def test_training_blade_attaches(self, started_engine, put_unit, give_card):
        """Gear attaches to the chosen unit."""
        unit = put_unit(started_engine, "alice", "SD-001")
        index = give_card(started_engine, "alice", "SD-020")
        started_engine.play_card("alice", index, [unit.instance_id])
        alice = started_engine.state.find_player("alice")
        gear = alice.board.artifacts[-1]
        assert gear.attached_to == unit.instance_id
        assert started_engine.combat.might_of(alice, unit) == 3

    def test_unit_with_play_trigger_draws(self, started_engine, give_card):
        """Play triggers resolve when the unit enters."""
        index = give_card(started_engine, "alice", "SD-005")
        alice = started_engine.state.find_player("alice")
        hand = len(alice.hand)
        started_engine.play_card("alice", index)
        alice = started_engine.state.find_player("alice")
        assert len(alice.hand) == hand  # One played, one drawn
        scout = alice.board.creatures[-1]
        assert scout.summoned
        assert scout.is_tapped
