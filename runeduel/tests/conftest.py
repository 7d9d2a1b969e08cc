"""
Pytest fixtures for Rune Duel tests.
"""

import pytest

from ..config import EngineConfig
from ..engine_core.cards import BoardCard, CardLocation
from ..engine_core.catalog import CardCatalog
from ..engine_core.engine import MatchEngine
from ..engine_core.lifecycle import create_board_card
from ..engine_core.resources import channel_runes
from ..games.starter import starter_catalog, starter_decks


@pytest.fixture
def catalog() -> CardCatalog:
    """The built-in starter card set."""
    return starter_catalog()


@pytest.fixture
def decks() -> dict:
    """Ember for alice, Bastion for bob."""
    return starter_decks(["alice", "bob"])


@pytest.fixture
def engine(catalog: CardCatalog) -> MatchEngine:
    """A fresh, uninitialized two-player match."""
    return MatchEngine("test-match", [("alice", "Alice"), ("bob", "Bob")], seed=42, catalog=catalog)


@pytest.fixture
def initialized_engine(engine: MatchEngine, decks: dict) -> MatchEngine:
    """Decks dealt, initiative prompts open."""
    engine.initialize_game(decks)
    return engine


@pytest.fixture
def started_engine(initialized_engine: MatchEngine) -> MatchEngine:
    """
    Setup completed: alice won initiative (Blade over Shield), both kept
    their hands, and it is alice's first main phase.
    """
    engine = initialized_engine
    engine.submit_initiative_choice("alice", 0)
    engine.submit_initiative_choice("bob", 1)
    engine.select_battlefield("alice", "BF-001")
    engine.select_battlefield("bob", "BF-003")
    engine.submit_mulligan("alice", [])
    engine.submit_mulligan("bob", [])
    return engine


@pytest.fixture
def put_unit():
    """Factory placing a ready unit straight onto a player's board."""

    def _put(engine: MatchEngine, player_id: str, card_id: str, battlefield_id: str | None = None) -> BoardCard:
        player = engine.state.find_player(player_id)
        card = engine.catalog.find(card_id)
        unit = create_board_card(card, engine.next_id("instance", card.id), engine.now())
        unit.is_tapped = False
        unit.summoned = False
        player.board.creatures.append(unit)
        if battlefield_id is not None:
            engine.combat.place_unit(player, unit, CardLocation.at(battlefield_id))
        return unit

    return _put


@pytest.fixture
def give_card():
    """Factory putting a catalog card at the front of a player's hand."""

    def _give(engine: MatchEngine, player_id: str, card_id: str) -> int:
        player = engine.state.find_player(player_id)
        card = engine.catalog.find(card_id)
        card.instance_id = engine.next_id("instance", card.id)
        player.hand.insert(0, card)
        return 0

    return _give


@pytest.fixture
def give_runes():
    """Factory channeling extra runes for a player."""

    def _give(engine: MatchEngine, player_id: str, count: int) -> int:
        player = engine.state.find_player(player_id)
        moved = channel_runes(player, count)
        engine.champions.refresh_all()
        return moved

    return _give


@pytest.fixture
def small_config() -> EngineConfig:
    """A config with short logs for ring-buffer tests."""
    return EngineConfig(max_log_entries=5, max_chat_message_length=10)
