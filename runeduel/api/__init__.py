"""
API Module - Network interface for duel clients.

Exposes the engine via a REST API. A client:
1. Creates a match (optionally with bot seats)
2. Reads its projected view of the state
3. Submits actions and reads the outcome
4. Asks for its legal actions when it needs hints

Matches live in memory for the lifetime of the process.
"""

from .schemas import (
    # Requests
    ActionRequest,
    ChatRequest,
    CreateMatchRequest,
    PlayerSeat,
    # Responses
    ActionResponse,
    ChatResponse,
    ErrorResponse,
    LegalActionsResponse,
    MatchResponse,
    MatchResultResponse,
    MatchStateResponse,
    # Shared
    MatchStatus,
    PlayerSummary,
)
from .service import MatchService
from .app import create_app

__all__ = [
    # Requests
    "ActionRequest",
    "ChatRequest",
    "CreateMatchRequest",
    "PlayerSeat",
    # Responses
    "ActionResponse",
    "ChatResponse",
    "ErrorResponse",
    "LegalActionsResponse",
    "MatchResponse",
    "MatchResultResponse",
    "MatchStateResponse",
    # Shared
    "MatchStatus",
    "PlayerSummary",
    # Service
    "MatchService",
    "create_app",
]
