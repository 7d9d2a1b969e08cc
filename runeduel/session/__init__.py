"""
Session Module - Stores matches between client requests.

Each request rebuilds the engine from the stored snapshot, applies one
action and stores the result. Storage is in-memory only.
"""

from .manager import MatchManager, MatchSession, SessionState

__all__ = [
    "MatchManager",
    "MatchSession",
    "SessionState",
]
