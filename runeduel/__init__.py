"""
Runeduel - Two-Player Card Duel Engine

An authoritative, deterministic rules engine for a two-player trading-card
duel. The engine owns the match state and provides:
- Setup sequencing (initiative duel, battlefield draft, mulligan)
- Turn/phase and priority management
- Rune cost allocation and effect resolution
- Combat, battlefield control and victory scoring
- Bot policies and an HTTP surface for clients
"""

__version__ = "0.1.0"
