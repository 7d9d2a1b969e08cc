"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between duel clients and the engine.
All responses include explicit types for OpenAPI schema generation.

Error Codes:
- Every engine ErrorCode (NOT_YOUR_TURN, NO_PRIORITY, ...) is passed through
- MATCH_NOT_FOUND: Match does not exist or has been cleaned up
- VALIDATION_ERROR: Request body did not validate
- INVALID_ACTION: action_type is not a known ActionType (engine code)
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class MatchStatus(str, Enum):
    """Match status values (mirrors the engine's GameStatus)."""
    SETUP = "setup"
    WAITING_FOR_PLAYERS = "waiting_for_players"
    COIN_FLIP = "coin_flip"
    BATTLEFIELD_SELECTION = "battlefield_selection"
    MULLIGAN = "mulligan"
    IN_PROGRESS = "in_progress"
    WINNER_DETERMINED = "winner_determined"
    COMPLETED = "completed"


class ApiErrorCode(str, Enum):
    """Error codes raised by the HTTP layer itself."""
    MATCH_NOT_FOUND = "MATCH_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class PlayerSeat(BaseModel):
    """A seat at the table."""
    player_id: str = Field(..., min_length=1)
    name: Optional[str] = None


class PlayerSummary(BaseModel):
    """Public per-player information."""
    player_id: str
    name: str
    victory_points: int = 0
    victory_score: int = 8
    hand_size: int = 0
    deck_size: int = 0
    rune_deck_size: int = 0
    channeled_runes: int = 0
    is_current_turn: bool = False
    is_bot: bool = False

    model_config = {"from_attributes": True}


class MatchResultInfo(BaseModel):
    """How a finished match ended."""
    match_id: str
    winner: str
    loser: str
    reason: str
    duration_ms: int = 0
    turns: int = 0
    moves: int = 0


class LegalActionInfo(BaseModel):
    """One fully specified action a player may submit."""
    action_type: str
    payload: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Request Models
# =============================================================================

class CreateMatchRequest(BaseModel):
    """Request to create and deal a new match."""
    players: list[PlayerSeat] = Field(..., min_length=2, max_length=2)
    decks: Optional[dict[str, Any]] = Field(
        None, description="Deck configuration per player id; starter decks when omitted"
    )
    bot_players: list[str] = Field(default_factory=list, description="Seats played by the server")
    random_seed: Optional[int] = Field(None, description="Seed for reproducible shuffles")


class ActionRequest(BaseModel):
    """One action for a match. Fields beyond action_type depend on the action."""
    action_type: str = Field(..., description="play_card, move_unit, pass_priority, ...")
    player_id: str = Field(..., min_length=1)
    hand_index: Optional[int] = None
    targets: Optional[list[str]] = None
    destination_id: Optional[str] = None
    card_instance_id: Optional[str] = None
    prompt_id: Optional[str] = None
    choice: Optional[int] = None
    indices: Optional[list[int]] = None
    selection_ids: Optional[list[str]] = None
    ability: Optional[str] = Field(None, description="legend or leader")
    message: Optional[str] = None


class ChatRequest(BaseModel):
    """A chat line from a player."""
    player_id: str = Field(..., min_length=1)
    message: str
    player_name: Optional[str] = None


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: str = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class MatchResponse(BaseModel):
    """Response containing match information."""
    match_id: str
    status: MatchStatus
    players: list[PlayerSummary] = Field(default_factory=list)
    current_player_id: Optional[str] = None
    phase: str
    turn_number: int = 1
    version: int = 0
    created_at: float = 0.0
    api_version: str = "v1"


class MatchStateResponse(BaseModel):
    """A projected view of the match for one viewer (or a spectator)."""
    match_id: str
    viewer_id: Optional[str] = None
    status: MatchStatus
    phase: str
    turn_number: int
    version: int = 0
    state: dict[str, Any]
    api_version: str = "v1"


class ActionResponse(BaseModel):
    """Outcome of an action."""
    match_id: str
    success: bool
    status: MatchStatus
    phase: str
    error: Optional[str] = None
    error_code: Optional[str] = None
    state_changes: list[str] = Field(default_factory=list)
    result: Optional[MatchResultInfo] = None
    version: int = 0
    api_version: str = "v1"


class LegalActionsResponse(BaseModel):
    """Actions a player may take right now."""
    match_id: str
    player_id: str
    actions: list[LegalActionInfo] = Field(default_factory=list)
    count: int = 0


class MatchResultResponse(BaseModel):
    """Result lookup; result is null while the match runs."""
    match_id: str
    finished: bool
    result: Optional[MatchResultInfo] = None


class ChatResponse(BaseModel):
    """A stored chat line."""
    id: str
    player_id: str
    player_name: Optional[str] = None
    message: str
    timestamp: int


class MatchListResponse(BaseModel):
    """Response listing active matches."""
    matches: list[str]
    count: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
