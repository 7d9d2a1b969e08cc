"""
Bots module - Automated players.

Provides:
- BotPolicy: Interface for bot decision-making
- RandomPolicy / FirstLegalPolicy: baseline policies
- play_match: drive a whole match between policies
"""

from .policy import BotPolicy, BotDecision, RandomPolicy, FirstLegalPolicy, SimulationReport, play_match

__all__ = [
    "BotPolicy",
    "BotDecision",
    "RandomPolicy",
    "FirstLegalPolicy",
    "SimulationReport",
    "play_match",
]
