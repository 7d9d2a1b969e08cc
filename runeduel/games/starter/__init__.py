"""
Starter - The built-in card set.

Two forty-card decks (Ember: fury/calm, Bastion: body/order) with twelve
runes, two battlefields and a champion pair each. Enough to play and
simulate complete matches without an external catalog.
"""

from .cards import STARTER_RECORDS, STARTER_DECKS, starter_catalog, starter_deck, starter_decks

__all__ = [
    "STARTER_RECORDS",
    "STARTER_DECKS",
    "starter_catalog",
    "starter_deck",
    "starter_decks",
]
