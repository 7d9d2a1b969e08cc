"""
Tests for the MatchEngine facade.

Tests:
- Transactional rollback (state, id counters, RNG)
- Card play legality
- Victory points, concede, timeout, completion
- Duel log and chat
- Queries
"""

import pytest

from ..engine_core.cards import Card, CardType
from ..engine_core.engine import MatchEngine
from ..engine_core.errors import DataIntegrityError, ErrorCode, PreconditionError
from ..engine_core.state import (
    DuelLogTone,
    GameStatus,
    MatchEndReason,
    MoveAction,
    PlayerState,
    ScoreReason,
)


class TestConstruction:
    """Tests for seats and ids."""

    def test_seat_shapes(self, catalog):
        """Seats may be given as dicts or PlayerState objects."""
        engine = MatchEngine(
            "m",
            [{"player_id": "a", "name": "Ann"}, PlayerState(player_id="b", name="Ben")],
            catalog=catalog,
        )
        assert [p.player_id for p in engine.state.players] == ["a", "b"]
        assert engine.state.players[0].name == "Ann"

    def test_unsupported_seat(self, catalog):
        """A seat of an unknown shape is rejected."""
        with pytest.raises(PreconditionError) as exc:
            MatchEngine("m", [1.5, 2.5], catalog=catalog)
        assert exc.value.error_code == ErrorCode.UNKNOWN_PLAYER

    def test_generated_match_id(self, catalog):
        """A match id is generated when none is given."""
        engine = MatchEngine(players=["a", "b"], catalog=catalog)
        assert engine.state.match_id

    def test_next_id_is_sequential(self, engine):
        """Ids share one counter per kind."""
        assert engine.next_id("prompt", "coin_flip") == "coin_flip_1"
        assert engine.next_id("prompt", "mulligan") == "mulligan_2"
        assert engine.state.id_counters["prompt"] == 2


class TestRollback:
    """Tests for the transactional wrapper."""

    def test_failed_action_leaves_state_untouched(self, started_engine):
        """A rejected action leaves the snapshot unchanged."""
        engine = started_engine
        before = engine.to_snapshot()
        with pytest.raises(PreconditionError):
            engine.play_card("alice", 0, ["ghost"])
        assert engine.to_snapshot() == before

    def test_counters_restored(self, engine, decks):
        """Id counters roll back with the state."""
        decks["bob"]["cards"] = decks["bob"]["cards"][:1]
        with pytest.raises(DataIntegrityError):
            engine.initialize_game(decks)
        assert engine.state.id_counters == {}
        assert engine.next_id("instance", "SD-001") == "SD-001_1"

    def test_rng_restored(self, catalog, decks):
        """A failed setup does not change the shuffles that follow."""
        clean = MatchEngine("m", ["alice", "bob"], seed=7, catalog=catalog)
        clean.initialize_game(decks)

        retried = MatchEngine("m", ["alice", "bob"], seed=7, catalog=catalog)
        broken = {k: dict(v) for k, v in decks.items()}
        broken["bob"]["cards"] = broken["bob"]["cards"][:1]
        with pytest.raises(DataIntegrityError):
            retried.initialize_game(broken)
        retried.initialize_game(decks)

        for a, b in zip(clean.state.players, retried.state.players):
            assert [c.instance_id for c in a.hand] == [c.instance_id for c in b.hand]
            assert [c.instance_id for c in a.deck] == [c.instance_id for c in b.deck]


class TestPlayCard:
    """Tests for play_card legality."""

    def test_play_unit(self, started_engine, give_card):
        """A unit enters at base, summoned and exhausted."""
        index = give_card(started_engine, "alice", "SD-001")
        started_engine.play_card("alice", index)
        alice = started_engine.state.find_player("alice")
        unit = alice.board.creatures[-1]
        assert unit.id == "SD-001"
        assert unit.location.is_base
        assert unit.summoned
        assert unit.is_tapped
        assert started_engine.state.move_history[-1].action == MoveAction.PLAY_CARD

    def test_bad_hand_index(self, started_engine):
        """An index outside the hand is an unknown card."""
        with pytest.raises(PreconditionError) as exc:
            started_engine.play_card("alice", 99)
        assert exc.value.error_code == ErrorCode.UNKNOWN_CARD

    def test_rune_cannot_be_played(self, started_engine):
        """Runes are channeled, never played from hand."""
        alice = started_engine.state.find_player("alice")
        alice.hand.insert(0, Card(id="RUNE-FURY", name="Fury Rune", type=CardType.RUNE, instance_id="r_1"))
        with pytest.raises(PreconditionError) as exc:
            started_engine.play_card("alice", 0)
        assert exc.value.error_code == ErrorCode.INVALID_ACTION

    def test_not_your_turn(self, started_engine, give_card, give_runes):
        """Only the active player may play outside a reaction window."""
        give_runes(started_engine, "bob", 2)
        index = give_card(started_engine, "bob", "SD-001")
        with pytest.raises(PreconditionError) as exc:
            started_engine.play_card("bob", index)
        assert exc.value.error_code == ErrorCode.NOT_YOUR_TURN

    def test_insufficient_resources(self, started_engine, give_card):
        """A card the runes cannot pay for is rejected."""
        index = give_card(started_engine, "alice", "SD-006")
        with pytest.raises(PreconditionError) as exc:
            started_engine.play_card("alice", index)
        assert exc.value.error_code == ErrorCode.INSUFFICIENT_RESOURCES

    def test_deploy_to_uncontrolled_battlefield(self, started_engine, give_card):
        """Units may not deploy to a battlefield the player does not control."""
        index = give_card(started_engine, "alice", "SD-001")
        with pytest.raises(PreconditionError) as exc:
            started_engine.play_card("alice", index, destination_id="BF-001")
        assert exc.value.error_code == ErrorCode.INVALID_TARGET

    def test_deploy_to_controlled_battlefield(self, started_engine, give_card):
        """Units may deploy straight to a controlled battlefield."""
        started_engine.state.find_battlefield("BF-001").controller_id = "alice"
        index = give_card(started_engine, "alice", "SD-001")
        started_engine.play_card("alice", index, destination_id="BF-001")
        unit = started_engine.state.find_player("alice").board.creatures[-1]
        assert unit.location.is_at("BF-001")

    def test_no_plays_in_combat_phase(self, started_engine, give_card):
        """Outside an engagement the combat phase allows no plays."""
        started_engine.proceed_to_next_phase("alice")
        index = give_card(started_engine, "alice", "SD-001")
        with pytest.raises(PreconditionError) as exc:
            started_engine.play_card("alice", index)
        assert exc.value.error_code == ErrorCode.WRONG_PHASE


class TestVictory:
    """Tests for scoring and match end."""

    def test_points_are_clamped(self, started_engine):
        """Points stop at the victory score and end the match."""
        gained = started_engine.award_victory_points("alice", 20, ScoreReason.OBJECTIVE)
        state = started_engine.state
        assert gained == 8
        assert state.find_player("alice").victory_points == 8
        assert state.status == GameStatus.WINNER_DETERMINED
        assert state.winner == "alice"
        assert state.loser == "bob"
        assert state.end_reason == MatchEndReason.VICTORY_POINTS

    def test_no_points_after_match_end(self, started_engine):
        """No points are awarded once a winner is set."""
        started_engine.award_victory_points("alice", 8, ScoreReason.COMBAT)
        assert started_engine.award_victory_points("bob", 1, ScoreReason.COMBAT) == 0

    def test_actions_rejected_after_end(self, started_engine):
        """Actions after the match ends are rejected."""
        started_engine.concede_match("bob")
        with pytest.raises(PreconditionError) as exc:
            started_engine.play_card("alice", 0)
        assert exc.value.error_code == ErrorCode.MATCH_NOT_ACTIVE
        assert not started_engine.can_player_act("alice")

    def test_concede(self, started_engine):
        """Conceding hands the win to the opponent."""
        result = started_engine.concede_match("bob")
        assert result.winner == "alice"
        assert result.loser == "bob"
        assert result.reason == MatchEndReason.CONCEDE
        assert result.turns == 1
        assert started_engine.state.score_log[-1].reason == ScoreReason.CONCEDE
        assert started_engine.state.priority_window is None

    def test_concede_twice(self, started_engine):
        """A finished match cannot be conceded again."""
        started_engine.concede_match("bob")
        with pytest.raises(PreconditionError) as exc:
            started_engine.concede_match("alice")
        assert exc.value.error_code == ErrorCode.MATCH_NOT_ACTIVE

    def test_concede_before_setup(self, engine):
        """An uninitialized match cannot be conceded."""
        with pytest.raises(PreconditionError) as exc:
            engine.concede_match("alice")
        assert exc.value.error_code == ErrorCode.MATCH_NOT_ACTIVE

    def test_concede_during_setup(self, initialized_engine):
        """Conceding during setup still ends the match."""
        result = initialized_engine.concede_match("alice")
        assert result.winner == "bob"

    def test_timeout(self, started_engine):
        """A timeout forfeits the match."""
        result = started_engine.timeout_match("alice")
        assert result.winner == "bob"
        assert result.reason == MatchEndReason.TIMEOUT
        assert started_engine.state.score_log[-1].reason == ScoreReason.TIMEOUT

    def test_mark_completed(self, started_engine):
        """Only a decided match can be marked completed."""
        with pytest.raises(PreconditionError):
            started_engine.mark_completed()
        started_engine.concede_match("bob")
        started_engine.mark_completed()
        assert started_engine.state.status == GameStatus.COMPLETED
        assert started_engine.state.is_over
        assert started_engine.get_match_result().winner == "alice"


class TestNarration:
    """Tests for the duel log and chat."""

    def test_chat_message(self, engine):
        """Chat messages get an id and the sender's name."""
        entry = engine.add_chat_message("alice", "  good luck  ")
        assert entry.message == "good luck"
        assert entry.player_name == "Alice"
        assert entry.id == "chat_1"
        assert engine.state.chat_log == [entry]

    def test_chat_name_override(self, engine):
        """A display name can be passed with the message."""
        entry = engine.add_chat_message("alice", "hi", player_name="Al")
        assert entry.player_name == "Al"

    def test_empty_chat_rejected(self, engine):
        """Blank chat messages are rejected."""
        with pytest.raises(PreconditionError) as exc:
            engine.add_chat_message("alice", "   ")
        assert exc.value.error_code == ErrorCode.INVALID_MESSAGE

    def test_chat_from_stranger(self, engine):
        """Only seated players may chat."""
        with pytest.raises(PreconditionError) as exc:
            engine.add_chat_message("mallory", "hi")
        assert exc.value.error_code == ErrorCode.UNKNOWN_PLAYER

    def test_chat_truncated_and_bounded(self, catalog, small_config):
        """Long messages are cut and the chat log keeps the newest entries."""
        engine = MatchEngine("m", ["alice", "bob"], config=small_config, catalog=catalog)
        for n in range(7):
            engine.add_chat_message("alice", f"message number {n}")
        chat = engine.state.chat_log
        assert len(chat) == 5
        assert chat[0].id == "chat_3"
        assert chat[-1].message == "message nu"

    def test_duel_log_entry_is_idempotent(self, engine):
        """A repeated client id returns the existing entry."""
        first = engine.add_duel_log_entry("Ready", tone="WARNING", entry_id="client-1")
        again = engine.add_duel_log_entry("Ready", entry_id="client-1")
        assert first.id == again.id == "client-1"
        assert first.tone == DuelLogTone.WARNING
        assert len(engine.state.duel_log) == 1

    def test_unknown_tone_falls_back_to_info(self, engine):
        """An unknown tone is stored as info."""
        entry = engine.add_duel_log_entry("Note", tone="loud")
        assert entry.tone == DuelLogTone.INFO

    def test_empty_log_rejected(self, engine):
        """Blank duel log entries are rejected."""
        with pytest.raises(PreconditionError) as exc:
            engine.add_duel_log_entry("")
        assert exc.value.error_code == ErrorCode.INVALID_MESSAGE

    def test_duel_log_is_bounded(self, catalog, small_config):
        """The duel log keeps the newest entries."""
        engine = MatchEngine("m", ["alice", "bob"], config=small_config, catalog=catalog)
        for n in range(8):
            engine.narrate(f"line {n}")
        assert [e.message for e in engine.state.duel_log] == [f"line {n}" for n in range(3, 8)]


class TestQueries:
    """Tests for read-only queries."""

    def test_game_state_is_a_copy(self, started_engine):
        """get_game_state returns a detached copy."""
        copy = started_engine.get_game_state()
        copy.players[0].hand.clear()
        assert len(started_engine.state.players[0].hand) == 5

    def test_can_player_act(self, started_engine, catalog):
        """Only the priority holder of a running match can act."""
        assert started_engine.can_player_act("alice")
        assert not started_engine.can_player_act("bob")
        assert not MatchEngine("m", ["alice", "bob"], catalog=catalog).can_player_act("alice")

    def test_no_result_while_playing(self, started_engine):
        """There is no result while the match is running."""
        assert started_engine.get_match_result() is None
