"""
Starter Cards - A small built-in card set with two ready decks.

This module contains enough cards for complete matches without an
external catalog: units, spells, gear, runes, battlefields and a
champion pair per deck.

Record structure (EnrichedCardRecord):
- id / slug / name / type / colors
- energy_cost and power_cost (domain symbols)
- might / toughness for units
- effect_profile operations and activation timing
"""

from __future__ import annotations
from typing import Any

from ...engine_core.catalog import CardCatalog


def _op(op_type: str, target: str | None = None, magnitude: int | None = None, **metadata) -> dict[str, Any]:
    return {
        "type": op_type,
        "target_hint": target,
        "magnitude_hint": magnitude,
        "metadata": metadata,
    }


# ============================================================================
# Runes
# ============================================================================

RUNES = [
    {"id": f"RUNE-{domain.upper()}", "name": f"{domain.title()} Rune", "type": "rune", "colors": [domain]}
    for domain in ("fury", "calm", "mind", "body", "chaos", "order")
]

# ============================================================================
# Units
# ============================================================================

UNITS = [
    {
        "id": "SD-001",
        "slug": "ember-recruit",
        "name": "Ember Recruit",
        "type": "unit",
        "colors": ["fury"],
        "energy_cost": 1,
        "might": 2,
        "toughness": 2,
    },
    {
        "id": "SD-002",
        "slug": "stone-sentinel",
        "name": "Stone Sentinel",
        "type": "unit",
        "colors": ["body"],
        "energy_cost": 2,
        "might": 3,
        "toughness": 4,
    },
    {
        "id": "SD-003",
        "slug": "grove-acolyte",
        "name": "Grove Acolyte",
        "type": "unit",
        "colors": ["calm"],
        "energy_cost": 2,
        "might": 2,
        "toughness": 3,
        "keywords": ["Action"],
    },
    {
        "id": "SD-004",
        "slug": "storm-lancer",
        "name": "Storm Lancer",
        "type": "unit",
        "colors": ["fury"],
        "energy_cost": 3,
        "power_cost": ["r"],
        "might": 4,
        "toughness": 3,
    },
    {
        "id": "SD-005",
        "slug": "wandering-scout",
        "name": "Wandering Scout",
        "type": "unit",
        "colors": ["mind"],
        "energy_cost": 2,
        "might": 1,
        "toughness": 2,
        "text": "When played, draw a card.",
        "effect_profile": {"classes": ["draw"], "operations": [_op("draw_cards", "self", 1)]},
        "activation": {"timing": "triggered", "triggers": ["When played, draw a card."]},
    },
    {
        "id": "SD-006",
        "slug": "iron-vanguard",
        "name": "Iron Vanguard",
        "type": "unit",
        "colors": ["order"],
        "energy_cost": 4,
        "power_cost": ["y"],
        "might": 5,
        "toughness": 5,
    },
    {
        "id": "SD-007",
        "slug": "ashen-martyr",
        "name": "Ashen Martyr",
        "type": "unit",
        "colors": ["chaos"],
        "energy_cost": 1,
        "might": 1,
        "toughness": 1,
        "text": "When this dies, draw a card.",
        "effect_profile": {"classes": ["draw"], "operations": [_op("draw_cards", "self", 1)]},
        "activation": {"timing": "triggered", "triggers": ["When this dies, draw a card."]},
    },
]

# ============================================================================
# Spells and gear
# ============================================================================

SPELLS = [
    {
        "id": "SD-010",
        "slug": "firebolt",
        "name": "Firebolt",
        "type": "spell",
        "colors": ["fury"],
        "energy_cost": 1,
        "keywords": ["Action"],
        "text": "Deal 2 to an enemy unit.",
        "effect_profile": {"classes": ["removal"], "operations": [_op("deal_damage", "enemy", 2)]},
    },
    {
        "id": "SD-011",
        "slug": "insight",
        "name": "Insight",
        "type": "spell",
        "colors": ["mind"],
        "energy_cost": 2,
        "text": "Draw 2.",
        "effect_profile": {"classes": ["draw"], "operations": [_op("draw_cards", "self", 2)]},
    },
    {
        "id": "SD-012",
        "slug": "guard-up",
        "name": "Guard Up",
        "type": "spell",
        "colors": ["body"],
        "energy_cost": 1,
        "keywords": ["Action", "Reaction"],
        "text": "Prevent the next 2 damage to a friendly unit.",
        "effect_profile": {"classes": ["protection"], "operations": [_op("shield", "ally", 2)]},
    },
    {
        "id": "SD-013",
        "slug": "rally-cry",
        "name": "Rally Cry",
        "type": "spell",
        "colors": ["order"],
        "energy_cost": 1,
        "keywords": ["Action"],
        "text": "A friendly unit gets +2 might this turn.",
        "effect_profile": {"classes": ["buff"], "operations": [_op("modify_stats", "ally", 2)]},
    },
    {
        "id": "SD-014",
        "slug": "rune-surge",
        "name": "Rune Surge",
        "type": "spell",
        "colors": ["calm"],
        "energy_cost": 1,
        "power_cost": ["g"],
        "text": "Channel a rune.",
        "effect_profile": {"classes": ["ramp"], "operations": [_op("channel_rune", "self", 1)]},
    },
    {
        "id": "SD-020",
        "slug": "training-blade",
        "name": "Training Blade",
        "type": "gear",
        "colors": ["body"],
        "energy_cost": 1,
        "might": 1,
        "text": "Attach to a friendly unit.",
        "effect_profile": {"classes": ["equip"], "operations": [_op("attach_gear", "ally")]},
    },
]

# ============================================================================
# Battlefields and champions
# ============================================================================

BATTLEFIELDS = [
    {"id": "BF-001", "slug": "sunken-temple", "name": "Sunken Temple", "type": "battlefield"},
    {"id": "BF-002", "slug": "windswept-hillock", "name": "Windswept Hillock", "type": "battlefield"},
    {"id": "BF-003", "slug": "ruined-citadel", "name": "Ruined Citadel", "type": "battlefield"},
    {"id": "BF-004", "slug": "the-grand-plaza", "name": "The Grand Plaza", "type": "battlefield"},
]

CHAMPIONS = [
    {
        "id": "CH-001",
        "slug": "flame-sovereign",
        "name": "Flame Sovereign",
        "type": "legend",
        "colors": ["fury"],
        "text": ":rb_energy_1: :rb_exhaust: Draw a card.",
        "effect_profile": {"operations": [_op("draw_cards", "self", 1)]},
    },
    {
        "id": "CH-002",
        "slug": "flame-heir",
        "name": "Flame Heir",
        "type": "champion",
        "colors": ["fury"],
        "energy_cost": 3,
        "might": 3,
        "toughness": 3,
    },
    {
        "id": "CH-003",
        "slug": "mountain-warden",
        "name": "Mountain Warden",
        "type": "legend",
        "colors": ["body"],
        "text": ":rb_energy_2: :rb_rune_rainbow: :rb_exhaust: Channel a rune.",
        "effect_profile": {"operations": [_op("channel_rune", "self", 1)]},
    },
    {
        "id": "CH-004",
        "slug": "mountain-squire",
        "name": "Mountain Squire",
        "type": "champion",
        "colors": ["body"],
        "energy_cost": 2,
        "might": 2,
        "toughness": 4,
    },
]

STARTER_RECORDS = RUNES + UNITS + SPELLS + BATTLEFIELDS + CHAMPIONS

# card id -> copies, 40 cards each
EMBER_DECKLIST = {
    "SD-001": 6,
    "SD-003": 4,
    "SD-004": 4,
    "SD-005": 4,
    "SD-007": 4,
    "SD-010": 6,
    "SD-011": 3,
    "SD-013": 3,
    "SD-014": 3,
    "SD-020": 3,
}

BASTION_DECKLIST = {
    "SD-001": 4,
    "SD-002": 6,
    "SD-003": 4,
    "SD-005": 4,
    "SD-006": 4,
    "SD-011": 4,
    "SD-012": 5,
    "SD-013": 4,
    "SD-020": 5,
}

STARTER_DECKS = {
    "ember": {
        "decklist": EMBER_DECKLIST,
        "runes": {"RUNE-FURY": 6, "RUNE-CALM": 6},
        "battlefields": ["BF-001", "BF-002"],
        "champion_legend": "CH-001",
        "champion_leader": "CH-002",
    },
    "bastion": {
        "decklist": BASTION_DECKLIST,
        "runes": {"RUNE-BODY": 6, "RUNE-ORDER": 6},
        "battlefields": ["BF-003", "BF-004"],
        "champion_legend": "CH-003",
        "champion_leader": "CH-004",
    },
}


def starter_catalog() -> CardCatalog:
    return CardCatalog(STARTER_RECORDS)


def starter_deck(name: str = "ember") -> dict[str, Any]:
    """A deck configuration accepted by MatchEngine.initialize_game."""
    definition = STARTER_DECKS[name]
    return {
        "cards": [{"card_id": card_id, "quantity": n} for card_id, n in definition["decklist"].items()],
        "runes": [{"card_id": card_id, "quantity": n} for card_id, n in definition["runes"].items()],
        "battlefields": list(definition["battlefields"]),
        "champion_legend": definition["champion_legend"],
        "champion_leader": definition["champion_leader"],
    }


def starter_decks(player_ids: list[str]) -> dict[str, dict[str, Any]]:
    """Ember for the first seat, Bastion for the second."""
    names = list(STARTER_DECKS)
    return {player_id: starter_deck(names[i % len(names)]) for i, player_id in enumerate(player_ids)}
