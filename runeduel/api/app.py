"""
FastAPI Application - REST API for duel clients.

Endpoints:
    POST   /api/v1/matches                       Create and deal a match
    GET    /api/v1/matches                       List active matches
    GET    /api/v1/matches/{id}                  Get match status
    DELETE /api/v1/matches/{id}                  End a match
    GET    /api/v1/matches/{id}/state            Get the state as seen by a viewer
    POST   /api/v1/matches/{id}/actions          Submit an action
    GET    /api/v1/matches/{id}/legal-actions    List a player's legal actions
    GET    /api/v1/matches/{id}/result           Get the match result
    POST   /api/v1/matches/{id}/chat             Post a chat line

Every action goes through the reducer: a rejected action answers 400 with
the engine's error code and leaves the stored match untouched. Bot seats
(bot_players at creation) answer automatically after each human action.

All responses are JSON with explicit Pydantic schemas.
"""

from typing import Annotated, Optional
import logging
import os

from ..config import configure_logging

# Environment configuration
RUNEDUEL_ENV = os.getenv("RUNEDUEL_ENV", "development")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

logger = logging.getLogger(__name__)


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional MatchService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI, Query, Request
        from fastapi.exceptions import RequestValidationError
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from .. import __version__
    from ..engine_core.errors import EngineError, ErrorCode
    from .service import MatchService
    from .schemas import (
        # Request models
        ActionRequest,
        ChatRequest,
        CreateMatchRequest,
        # Response models
        ActionResponse,
        ApiErrorCode,
        ChatResponse,
        ErrorResponse,
        HealthResponse,
        LegalActionsResponse,
        MatchListResponse,
        MatchResponse,
        MatchResultResponse,
        MatchStateResponse,
    )

    configure_logging()

    docs_enabled = RUNEDUEL_ENV == "development"
    app = FastAPI(
        title="Rune Duel API",
        description="""
Two-player card duel engine.

## Match Flow

1. `POST /matches` deals both decks and opens the initiative prompts
2. Each seat answers its prompts (`choose_initiative`, `select_battlefield`, `mulligan`)
3. Turns run through `play_card`, `move_unit`, `activate_champion`,
   `pass_priority` and `next_phase` until a player reaches the victory score

`GET /legal-actions` lists fully specified actions for a seat.

## Error Codes

| Code | Description |
|------|-------------|
| `NOT_YOUR_TURN` | Another player is active |
| `NO_PRIORITY` | The player does not hold priority |
| `WRONG_PHASE` | The action is not allowed in this phase |
| `INSUFFICIENT_RESOURCES` | The cost cannot be paid |
| `INVALID_TARGET` | A target is missing or illegal |
| `MATCH_NOT_ACTIVE` | The match has ended |
| `MATCH_NOT_FOUND` | Match does not exist |
        """,
        version=__version__,
        docs_url="/api/docs" if docs_enabled else None,
        redoc_url="/api/redoc" if docs_enabled else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    match_service = service or MatchService()

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: str,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details or None,
            ).model_dump(),
        )

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
        status_code = 404 if exc.error_code == ErrorCode.MATCH_NOT_FOUND else 400
        return make_error_response(exc.error_code.value, exc.message, status_code, exc.details)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return make_error_response(
            ApiErrorCode.VALIDATION_ERROR.value,
            "Request did not validate",
            status_code=422,
            details={"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]},
        )

    # =========================================================================
    # Match Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/matches",
        response_model=MatchResponse,
        responses={400: {"model": ErrorResponse, "description": "Invalid players or decks"}},
        tags=["Matches"],
        summary="Create a new match",
    )
    async def create_match(request: CreateMatchRequest) -> MatchResponse:
        """
        Create a match, deal both decks and open the initiative prompts.

        Starter decks are used when `decks` is omitted.
        """
        return match_service.create_match(request)

    @app.get(
        "/api/v1/matches",
        response_model=MatchListResponse,
        tags=["Matches"],
        summary="List active matches",
    )
    async def list_matches() -> MatchListResponse:
        matches = match_service.list_matches()
        return MatchListResponse(matches=matches, count=len(matches))

    @app.get(
        "/api/v1/matches/{match_id}",
        response_model=MatchResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Matches"],
        summary="Get match status",
    )
    async def get_match(match_id: str) -> MatchResponse:
        return match_service.get_match(match_id)

    @app.delete(
        "/api/v1/matches/{match_id}",
        responses={404: {"model": ErrorResponse}},
        tags=["Matches"],
        summary="End a match",
    )
    async def end_match(match_id: str):
        """End a match and release it."""
        if not match_service.end_match(match_id):
            return make_error_response(
                ErrorCode.MATCH_NOT_FOUND.value,
                f"Match {match_id} not found",
                status_code=404,
            )
        return {"success": True, "match_id": match_id}

    @app.get(
        "/api/v1/matches/{match_id}/state",
        response_model=MatchStateResponse,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
        tags=["Matches"],
        summary="Get the match state for a viewer",
    )
    async def get_state(
        match_id: str,
        viewer: Annotated[Optional[str], Query(description="Player id; omit for a spectator view")] = None,
    ) -> MatchStateResponse:
        """Hidden zones of the other seat are reduced to counts."""
        return match_service.get_state(match_id, viewer)

    # =========================================================================
    # Action Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/matches/{match_id}/actions",
        response_model=ActionResponse,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
        tags=["Actions"],
        summary="Submit an action",
    )
    async def submit_action(match_id: str, request: ActionRequest):
        response = match_service.submit_action(match_id, request)
        if not response.success:
            return make_error_response(
                response.error_code or ErrorCode.INVALID_ACTION.value,
                response.error or "Action rejected",
            )
        return response

    @app.get(
        "/api/v1/matches/{match_id}/legal-actions",
        response_model=LegalActionsResponse,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
        tags=["Actions"],
        summary="List legal actions",
    )
    async def get_legal_actions(
        match_id: str,
        player: Annotated[str, Query(description="Player id")],
    ) -> LegalActionsResponse:
        return match_service.legal_actions(match_id, player)

    @app.get(
        "/api/v1/matches/{match_id}/result",
        response_model=MatchResultResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Matches"],
        summary="Get the match result",
    )
    async def get_result(match_id: str) -> MatchResultResponse:
        return match_service.get_result(match_id)

    @app.post(
        "/api/v1/matches/{match_id}/chat",
        response_model=ChatResponse,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
        tags=["Chat"],
        summary="Post a chat message",
    )
    async def post_chat(match_id: str, request: ChatRequest) -> ChatResponse:
        return match_service.post_chat(match_id, request)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="runeduel-engine",
            version=__version__,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Rune Duel API",
            "version": __version__,
            "docs": "/api/docs" if docs_enabled else None,
            "health": "/health",
        }

    return app


# For running directly: uvicorn runeduel.api.app:app
app = None
try:
    app = create_app()
except ImportError:
    # FastAPI not installed
    pass
