"""
Tests for per-viewer state projection.
"""

from ..engine_core.state import PromptType
from ..engine_core.view import combat_summary, opponent_summary, project_view


def _record(view, player_id):
    return next(p for p in view["players"] if p["player_id"] == player_id)


class TestProjectView:
    """Tests for hidden information."""

    def test_own_zones_are_visible(self, started_engine):
        """The viewer sees their hand and champion states."""
        view = project_view(started_engine.state, "alice")
        alice = _record(view, "alice")
        assert len(alice["hand"]) == 5
        assert alice["hand_count"] == 5
        assert alice["champion_ability_states"]

    def test_own_draw_order_hidden(self, started_engine):
        """Deck and rune deck order is never shown, even to their owner."""
        state = started_engine.state
        alice = _record(project_view(state, "alice"), "alice")
        assert alice["deck"] == []
        assert alice["rune_deck"] == []
        assert alice["deck_count"] == len(state.find_player("alice").deck)
        assert alice["rune_deck_count"] == len(state.find_player("alice").rune_deck)

    def test_opponent_zones_become_counts(self, started_engine):
        """Opponent zones are shown as counts."""
        view = project_view(started_engine.state, "alice")
        bob = _record(view, "bob")
        assert bob["hand"] == []
        assert bob["deck"] == []
        assert bob["rune_deck"] == []
        assert bob["hand_count"] == 4
        assert bob["deck_count"] == len(started_engine.state.find_player("bob").deck)
        assert bob["champion_ability_states"] == {}
        assert bob["battlefield_pool"] == []

    def test_rng_and_counters_hidden(self, started_engine):
        """The shuffle state and id counters are never shown."""
        view = project_view(started_engine.state, "alice")
        assert "rng_state" not in view
        assert "id_counters" not in view

    def test_prompts_filtered_to_viewer(self, initialized_engine):
        """Viewers only see their own prompts."""
        alice_view = project_view(initialized_engine.state, "alice")
        assert [p["player_id"] for p in alice_view["prompts"]] == ["alice"]
        assert alice_view["prompts"][0]["prompt_type"] == PromptType.COIN_FLIP.value

    def test_spectator_sees_no_hidden_zones(self, started_engine):
        """A spectator sees no hand or prompt."""
        view = project_view(started_engine.state)
        assert view["viewer_id"] is None
        assert "opponent" not in view
        assert view["prompts"] == []
        for record in view["players"]:
            assert record["hand"] == []
            assert "hand_count" in record

    def test_unknown_viewer_is_a_spectator(self, started_engine):
        """An outside viewer is treated as a spectator."""
        view = project_view(started_engine.state, "mallory")
        assert "opponent" not in view
        assert all(record["hand"] == [] for record in view["players"])

    def test_projection_leaves_state_alone(self, started_engine):
        """Projecting does not modify the state."""
        project_view(started_engine.state, "alice")
        assert len(started_engine.state.find_player("bob").hand) == 4
        assert started_engine.state.rng_state


class TestSummaries:
    """Tests for the opponent and combat summaries."""

    def test_opponent_summary(self, started_engine, put_unit):
        """The opponent summary shows board positions and hand size."""
        unit = put_unit(started_engine, "bob", "SD-005", "BF-003")
        summary = opponent_summary(started_engine.state, "alice")
        assert summary["player_id"] == "bob"
        assert summary["hand_size"] == 4
        assert summary["board"][0]["instance_id"] == unit.instance_id
        assert summary["board"][0]["location"] == "BF-003"

    def test_view_includes_opponent(self, started_engine):
        """Seated viewers get an opponent summary."""
        view = project_view(started_engine.state, "bob")
        assert view["opponent"]["player_id"] == "alice"
        assert view["opponent"]["hand_size"] == 5

    def test_no_combat_summary_outside_combat(self, started_engine):
        """There is no combat summary without an engagement."""
        assert combat_summary(started_engine.state) is None
        assert project_view(started_engine.state, "alice")["combat"] is None

    def test_combat_summary_during_engagement(self, started_engine, put_unit):
        """An engagement is summarized with both sides and their units."""
        engine = started_engine
        defender = put_unit(engine, "bob", "SD-005", "BF-003")
        attacker = put_unit(engine, "alice", "SD-001")
        engine.move_unit("alice", attacker.instance_id, "BF-003")
        summary = combat_summary(engine.state)
        assert summary["battlefield_id"] == "BF-003"
        assert summary["initiated_by"] == "alice"
        assert summary["defending_player_id"] == "bob"
        assert summary["attacking_unit_ids"] == [attacker.instance_id]
        assert summary["defending_unit_ids"] == [defender.instance_id]
