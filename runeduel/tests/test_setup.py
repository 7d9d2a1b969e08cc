"""
Tests for match setup.

Tests:
- Deck / rune deck / battlefield pool normalization
- Initiative duel, ties and the first-turn rune boost
- Battlefield draft
- Mulligan
"""

import pytest

from ..engine_core.engine import MatchEngine
from ..engine_core.errors import DataIntegrityError, ErrorCode, PreconditionError
from ..engine_core.setup import initiative_winner
from ..engine_core.state import GamePhase, GameStatus, PriorityWindowType, PromptType
from ..games.starter import starter_deck


def open_prompts(engine, prompt_type, player_id=None):
    return [p for p in engine.state.open_prompts(player_id) if p.prompt_type == prompt_type]


class TestInitialize:
    """Tests for initialize_game."""

    def test_deals_decks_and_opens_initiative(self, initialized_engine):
        """Both players are dealt in and asked for an initiative choice."""
        state = initialized_engine.state
        assert state.status == GameStatus.COIN_FLIP
        for player in state.players:
            assert len(player.hand) == 4
            assert len(player.deck) == 36
            assert len(player.rune_deck) == 12
            assert player.champion_legend is not None
            assert player.champion_leader is not None
        assert len(open_prompts(initialized_engine, PromptType.COIN_FLIP)) == 2

    def test_instance_ids_are_unique(self, initialized_engine):
        """Every dealt card gets its own instance id."""
        ids = []
        for player in initialized_engine.state.players:
            ids.extend(c.instance_id for c in player.deck + player.hand)
        assert len(ids) == len(set(ids)) == 80

    def test_initialize_twice_fails(self, initialized_engine, decks):
        """A match is initialized only once."""
        with pytest.raises(PreconditionError) as exc:
            initialized_engine.initialize_game(decks)
        assert exc.value.error_code == ErrorCode.ALREADY_INITIALIZED

    def test_small_deck_rolls_back(self, engine, decks):
        """A failed initialization leaves the match untouched."""
        decks["bob"]["cards"] = [{"card_id": "SD-001", "quantity": 10}]
        with pytest.raises(DataIntegrityError) as exc:
            engine.initialize_game(decks)
        assert exc.value.error_code == ErrorCode.DECK_TOO_SMALL
        assert engine.state.status == GameStatus.SETUP
        assert all(not p.deck and not p.hand for p in engine.state.players)
        assert engine.state.prompts == []

    def test_missing_deck_for_a_player(self, engine, decks):
        """Each seat needs a deck."""
        del decks["bob"]
        with pytest.raises(PreconditionError) as exc:
            engine.initialize_game(decks)
        assert exc.value.error_code == ErrorCode.UNKNOWN_PLAYER

    def test_unknown_card(self, engine, decks):
        """A deck entry missing from the catalog fails the setup."""
        decks["alice"]["cards"].append({"card_id": "NOPE-999"})
        with pytest.raises(DataIntegrityError) as exc:
            engine.initialize_game(decks)
        assert exc.value.error_code == ErrorCode.CATALOG_LOOKUP_FAILED

    def test_missing_rune_deck_uses_fallback(self, engine, decks):
        """A missing rune deck is filled with fallback runes."""
        del decks["alice"]["runes"]
        engine.initialize_game(decks)
        runes = engine.state.find_player("alice").rune_deck
        assert len(runes) == 12
        assert all(r.id.startswith("fallback_rune_") for r in runes)

    def test_short_rune_deck_fails(self, engine, decks):
        """A rune deck below the minimum is rejected."""
        decks["alice"]["runes"] = [{"card_id": "RUNE-FURY", "quantity": 5}]
        with pytest.raises(DataIntegrityError) as exc:
            engine.initialize_game(decks)
        assert exc.value.error_code == ErrorCode.RUNE_DECK_TOO_SMALL

    def test_non_rune_in_rune_deck_fails(self, engine, decks):
        """Only runes may sit in the rune deck."""
        decks["alice"]["runes"] = [{"card_id": "SD-001", "quantity": 12}]
        with pytest.raises(DataIntegrityError) as exc:
            engine.initialize_game(decks)
        assert exc.value.error_code == ErrorCode.INVALID_RUNE

    def test_players_must_be_two_distinct(self, catalog):
        """A match needs exactly two different players."""
        with pytest.raises(PreconditionError):
            MatchEngine("m", ["alice"], catalog=catalog)
        with pytest.raises(PreconditionError):
            MatchEngine("m", ["alice", "alice"], catalog=catalog)


class TestInitiative:
    """Tests for the initiative duel."""

    def test_winner_table(self):
        """Each initiative choice beats exactly one other."""
        assert initiative_winner(0, 1) == 0  # Blade beats Shield
        assert initiative_winner(1, 2) == 0  # Shield beats Ring
        assert initiative_winner(2, 0) == 0  # Ring beats Blade
        assert initiative_winner(1, 0) == 1
        assert initiative_winner(2, 2) is None

    def test_tie_reissues_prompts(self, initialized_engine):
        """A tie clears the picks and asks again."""
        engine = initialized_engine
        engine.submit_initiative_choice("alice", 0)
        engine.submit_initiative_choice("bob", 0)
        state = engine.state
        assert state.status == GameStatus.COIN_FLIP
        assert state.initiative_selections == {}
        assert len(open_prompts(engine, PromptType.COIN_FLIP)) == 2
        assert len([p for p in state.prompts if p.prompt_type == PromptType.COIN_FLIP]) == 2

    def test_first_seat_wins(self, initialized_engine):
        """The winner starts and the loser gets the first-turn rune boost."""
        engine = initialized_engine
        engine.submit_initiative_choice("alice", 0)
        engine.submit_initiative_choice("bob", 1)
        state = engine.state
        assert state.status == GameStatus.BATTLEFIELD_SELECTION
        assert state.initiative_winner == "alice"
        assert state.initiative_loser == "bob"
        assert state.current_player_index == 0
        assert state.find_player("bob").first_turn_rune_boost == 1
        assert state.find_player("alice").first_turn_rune_boost == 0

    def test_second_seat_wins(self, initialized_engine):
        """The second seat can win initiative too."""
        engine = initialized_engine
        engine.submit_initiative_choice("alice", 0)
        engine.submit_initiative_choice("bob", 2)
        assert engine.state.current_player_index == 1
        assert engine.state.find_player("alice").first_turn_rune_boost == 1

    def test_invalid_choice(self, initialized_engine):
        """Choices outside the three options are rejected."""
        with pytest.raises(PreconditionError) as exc:
            initialized_engine.submit_initiative_choice("alice", 5)
        assert exc.value.error_code == ErrorCode.INVALID_CHOICE

    def test_choice_only_once(self, initialized_engine):
        """A player picks once per round."""
        initialized_engine.submit_initiative_choice("alice", 1)
        with pytest.raises(PreconditionError) as exc:
            initialized_engine.submit_initiative_choice("alice", 2)
        assert exc.value.error_code == ErrorCode.UNKNOWN_PROMPT

    def test_wrong_status(self, engine):
        """Initiative is only chosen during the initiative duel."""
        with pytest.raises(PreconditionError) as exc:
            engine.submit_initiative_choice("alice", 0)
        assert exc.value.error_code == ErrorCode.WRONG_PHASE


class TestBattlefieldDraft:
    """Tests for battlefield selection."""

    @pytest.fixture
    def drafting(self, initialized_engine):
        initialized_engine.submit_initiative_choice("alice", 0)
        initialized_engine.submit_initiative_choice("bob", 1)
        return initialized_engine

    def test_both_players_get_prompts(self, drafting):
        """Both players draft a battlefield."""
        assert len(open_prompts(drafting, PromptType.BATTLEFIELD)) == 2

    def test_selection_finishes_draft(self, drafting):
        """The second pick ends the draft and opens the mulligan."""
        drafting.select_battlefield("alice", "BF-002")
        assert drafting.state.status == GameStatus.BATTLEFIELD_SELECTION
        drafting.select_battlefield("bob", "ruined-citadel")  # by slug
        state = drafting.state
        assert state.status == GameStatus.MULLIGAN
        assert [b.battlefield_id for b in state.battlefields] == ["BF-002", "BF-003"]
        assert [b.owner_id for b in state.battlefields] == ["alice", "bob"]
        assert all(b.controller_id is None for b in state.battlefields)
        assert len(open_prompts(drafting, PromptType.MULLIGAN)) == 2

    def test_battlefield_outside_pool(self, drafting):
        """Picks must come from the player's pool."""
        with pytest.raises(PreconditionError) as exc:
            drafting.select_battlefield("alice", "BF-003")
        assert exc.value.error_code == ErrorCode.UNKNOWN_BATTLEFIELD

    def test_duplicate_battlefields_get_suffixed(self, engine):
        """Two picks of the same battlefield stay distinct."""
        engine.initialize_game({"alice": starter_deck("ember"), "bob": starter_deck("ember")})
        engine.submit_initiative_choice("alice", 0)
        engine.submit_initiative_choice("bob", 1)
        engine.select_battlefield("alice", "BF-001")
        engine.select_battlefield("bob", "BF-001")
        assert [b.battlefield_id for b in engine.state.battlefields] == ["BF-001", "BF-001_bob"]

    def test_single_battlefield_is_automatic(self, engine, decks):
        """A pool of one is picked automatically."""
        decks["alice"]["battlefields"] = ["BF-001"]
        decks["bob"]["battlefields"] = None
        engine.initialize_game(decks)
        engine.submit_initiative_choice("alice", 0)
        engine.submit_initiative_choice("bob", 1)
        state = engine.state
        assert state.status == GameStatus.MULLIGAN
        assert [b.battlefield_id for b in state.battlefields] == ["BF-001", "fallback_battlefield_bob"]


class TestMulligan:
    """Tests for the mulligan and the first turn."""

    @pytest.fixture
    def mulligan(self, initialized_engine):
        engine = initialized_engine
        engine.submit_initiative_choice("alice", 0)
        engine.submit_initiative_choice("bob", 1)
        engine.select_battlefield("alice", "BF-001")
        engine.select_battlefield("bob", "BF-003")
        return engine

    def test_replace_cards(self, mulligan):
        """Set-aside cards go to the bottom and are redrawn."""
        alice = mulligan.state.find_player("alice")
        returned = {alice.hand[0].instance_id, alice.hand[1].instance_id}
        mulligan.submit_mulligan("alice", [0, 1])
        alice = mulligan.state.find_player("alice")
        assert len(alice.hand) == 4
        assert len(alice.deck) == 36
        assert {c.instance_id for c in alice.deck[-2:]} == returned

    def test_too_many_replacements(self, mulligan):
        """At most two cards may be replaced."""
        with pytest.raises(PreconditionError) as exc:
            mulligan.submit_mulligan("alice", [0, 1, 2])
        assert exc.value.error_code == ErrorCode.INVALID_CHOICE

    def test_index_out_of_range(self, mulligan):
        """Indices must point into the hand."""
        with pytest.raises(PreconditionError) as exc:
            mulligan.submit_mulligan("alice", [9])
        assert exc.value.error_code == ErrorCode.INVALID_CHOICE

    def test_non_integer_index(self, mulligan):
        """Mixed index types are rejected before sorting and the hand is untouched."""
        with pytest.raises(PreconditionError) as exc:
            mulligan.submit_mulligan("alice", [0, "1"])
        assert exc.value.error_code == ErrorCode.INVALID_CHOICE
        assert len(mulligan.state.find_player("alice").hand) == 4

    def test_waits_for_both_players(self, mulligan):
        """Play starts only after both mulligans."""
        mulligan.submit_mulligan("bob", [])
        assert mulligan.state.status == GameStatus.MULLIGAN

    def test_first_turn_begins(self, started_engine):
        """After both mulligans the winner is in main phase 1 holding priority."""
        state = started_engine.state
        alice = state.find_player("alice")
        bob = state.find_player("bob")
        assert state.status == GameStatus.IN_PROGRESS
        assert state.current_phase == GamePhase.MAIN_1
        assert state.current_player.player_id == "alice"
        assert state.turn_number == 1
        assert not state.pending_main_phase_entry
        assert state.priority_window.window_type == PriorityWindowType.MAIN
        assert state.priority_window.holder_id == "alice"
        assert len(alice.hand) == 5
        assert len(alice.channeled_runes) == 2
        assert bob.channeled_runes == []
        assert bob.first_turn_rune_boost == 1
