"""
Tests for the turn/phase state machine.
"""

import pytest

from ..engine_core.errors import ErrorCode, PreconditionError
from ..engine_core.state import (
    GamePhase,
    GameStatus,
    MatchEndReason,
    PriorityWindowType,
    PromptType,
    ScoreReason,
    TemporaryEffect,
)


def finish_turn(engine):
    """Pass through main 1, combat and main 2 for the active player."""
    player_id = engine.state.current_player.player_id
    for _ in range(3):
        engine.pass_priority(player_id)


class TestPhaseCycle:
    """Tests for phase advancement."""

    def test_main_to_combat(self, started_engine):
        """Main phase 1 proceeds to combat with a showdown window."""
        started_engine.proceed_to_next_phase("alice")
        state = started_engine.state
        assert state.current_phase == GamePhase.COMBAT
        assert state.priority_window.window_type == PriorityWindowType.SHOWDOWN
        assert state.priority_window.holder_id == "alice"

    def test_combat_to_main_2(self, started_engine):
        """Passing in combat reaches main phase 2."""
        started_engine.proceed_to_next_phase("alice")
        started_engine.pass_priority("alice")
        state = started_engine.state
        assert state.current_phase == GamePhase.MAIN_2
        assert state.priority_window.window_type == PriorityWindowType.MAIN

    def test_end_of_turn_hands_over(self, started_engine):
        """END and CLEANUP run mechanically into the next player's main phase."""
        finish_turn(started_engine)
        state = started_engine.state
        bob = state.find_player("bob")
        assert state.current_player.player_id == "bob"
        assert state.current_phase == GamePhase.MAIN_1
        assert state.turn_number == 1
        assert state.priority_window.holder_id == "bob"
        assert len(bob.channeled_runes) == 3  # Two plus the initiative boost
        assert bob.first_turn_rune_boost == 0
        assert len(bob.hand) == 5

    def test_turn_number_counts_rounds(self, started_engine):
        """The turn number rises once both players have had a turn."""
        finish_turn(started_engine)
        finish_turn(started_engine)
        state = started_engine.state
        alice = state.find_player("alice")
        assert state.current_player.player_id == "alice"
        assert state.turn_number == 2
        assert len(alice.channeled_runes) == 4
        assert len(alice.hand) == 6

    def test_snapshots_recorded_on_phase_change(self, started_engine):
        """Each phase change records a snapshot."""
        before = len(started_engine.state.snapshots)
        started_engine.proceed_to_next_phase("alice")
        assert len(started_engine.state.snapshots) == before + 1
        assert started_engine.state.snapshots[-1].reason == "phase-combat"

    def test_turn_start_snapshot(self, started_engine):
        """The turn start snapshot names the step and counts hands."""
        snapshot = started_engine.state.snapshots[-1]
        assert snapshot.reason == "turn-start"
        assert snapshot.summary["step"] == "Main Phase 1"
        assert snapshot.summary["scores"]["alice"]["hand"] == 5

    def test_proceed_requires_priority(self, started_engine):
        """Only the priority holder advances the phase."""
        with pytest.raises(PreconditionError) as exc:
            started_engine.proceed_to_next_phase("bob")
        assert exc.value.error_code == ErrorCode.NO_PRIORITY

    def test_pass_requires_priority(self, started_engine):
        """Only the priority holder passes."""
        with pytest.raises(PreconditionError) as exc:
            started_engine.pass_priority("bob")
        assert exc.value.error_code == ErrorCode.NO_PRIORITY

    def test_begin_turn_outside_begin_phase(self, started_engine):
        """begin_turn only runs in the begin phase."""
        with pytest.raises(PreconditionError) as exc:
            started_engine.begin_turn()
        assert exc.value.error_code == ErrorCode.WRONG_PHASE

    def test_proceed_before_start(self, initialized_engine):
        """Phases do not advance before the match starts."""
        with pytest.raises(PreconditionError) as exc:
            initialized_engine.proceed_to_next_phase("alice")
        assert exc.value.error_code == ErrorCode.WRONG_PHASE


class TestBeginPhase:
    """Tests for awaken, begin, channel and draw."""

    def test_awaken_readies_runes_and_legend(self, started_engine):
        """Awaken readies runes and the legend."""
        engine = started_engine
        alice = engine.state.find_player("alice")
        for rune in alice.channeled_runes:
            rune.is_tapped = True
        alice.legend_exhausted = True
        finish_turn(engine)
        finish_turn(engine)
        alice = engine.state.find_player("alice")
        assert not any(r.is_tapped for r in alice.channeled_runes)
        assert not alice.legend_exhausted

    def test_awaken_readies_units(self, started_engine, put_unit):
        """Awaken readies units and clears summoning sickness."""
        unit = put_unit(started_engine, "alice", "SD-001")
        unit.is_tapped = True
        unit.summoned = True
        finish_turn(started_engine)
        finish_turn(started_engine)
        _, refreshed = started_engine.state.find_board_card(unit.instance_id)
        assert not refreshed.is_tapped
        assert not refreshed.summoned

    def test_temporary_effects_expire_on_owner_turn(self, started_engine):
        """Temporary effects tick down on their owner's turn."""
        alice = started_engine.state.find_player("alice")
        alice.temporary_effects.append(TemporaryEffect(id="e1", effect_type="damage_boost", value=2, duration=1))
        alice.temporary_effects.append(TemporaryEffect(id="e2", effect_type="damage_boost", value=1, duration=2))
        finish_turn(started_engine)
        assert len(started_engine.state.find_player("alice").temporary_effects) == 2
        finish_turn(started_engine)
        remaining = started_engine.state.find_player("alice").temporary_effects
        assert [e.id for e in remaining] == ["e2"]
        assert remaining[0].duration == 1

    def test_hold_scores_at_begin(self, started_engine, put_unit):
        """A battlefield held alone scores one point in the holder's begin step."""
        put_unit(started_engine, "alice", "SD-001", "BF-003")
        finish_turn(started_engine)
        assert started_engine.state.find_player("alice").victory_points == 0
        finish_turn(started_engine)
        state = started_engine.state
        battlefield = state.find_battlefield("BF-003")
        assert state.find_player("alice").victory_points == 1
        assert state.score_log[-1].reason == ScoreReason.HOLD
        assert battlefield.controller_id == "alice"
        assert battlefield.last_hold_scored_turn == 2

    def test_draw_from_empty_deck_burns_out(self, started_engine):
        """Drawing from an empty deck loses the match."""
        started_engine.state.find_player("alice").deck = []
        finish_turn(started_engine)
        finish_turn(started_engine)
        state = started_engine.state
        assert state.status == GameStatus.WINNER_DETERMINED
        assert state.winner == "bob"
        assert state.end_reason == MatchEndReason.BURN_OUT
        assert state.score_log[-1].reason == ScoreReason.DECKING
        assert state.priority_window is None


class TestPendingMainPhaseEntry:
    """Tests for a begin phase held open by a prompt."""

    @pytest.fixture
    def held(self, started_engine):
        engine = started_engine
        state = engine.state
        alice = state.find_player("alice")
        state.current_phase = GamePhase.BEGIN
        state.pending_main_phase_entry = True
        engine.priority.create_prompt(
            "alice",
            PromptType.TARGET,
            {"kind": "discard", "count": 1, "options": [c.instance_id for c in alice.hand]},
        )
        return engine

    def test_proceed_blocked_by_prompt(self, held):
        """An open prompt holds the begin phase."""
        with pytest.raises(PreconditionError) as exc:
            held.proceed_to_next_phase("alice")
        assert exc.value.error_code == ErrorCode.WRONG_PHASE

    def test_answer_promotes_to_main(self, held):
        """Answering the prompt moves on to main phase 1."""
        alice = held.state.find_player("alice")
        prompt = held.state.open_prompts("alice")[0]
        card_id = alice.hand[0].instance_id
        held.submit_discard_selection("alice", prompt.id, [card_id])
        state = held.state
        assert state.current_phase == GamePhase.MAIN_1
        assert not state.pending_main_phase_entry
        assert state.find_player("alice").graveyard[-1].instance_id == card_id

    def test_wrong_discard_count(self, held):
        """The discard answer must match the requested count."""
        prompt = held.state.open_prompts("alice")[0]
        with pytest.raises(PreconditionError) as exc:
            held.submit_discard_selection("alice", prompt.id, [])
        assert exc.value.error_code == ErrorCode.INVALID_CHOICE
        assert held.state.current_phase == GamePhase.BEGIN
