"""
FastAPI Application - REST API for the game client.

Endpoints:
    GET    /api/v1/health                           Health and configuration
    POST   /api/v1/sessions                         Start a game (optional challenge)
    GET    /api/v1/sessions                         List active sessions
    GET    /api/v1/sessions/{id}                    Get session state
    DELETE /api/v1/sessions/{id}                    End session, release sensors
    POST   /api/v1/sessions/{id}/position           Push a position reading
    POST   /api/v1/sessions/{id}/capture            Upload a photo and capture
    POST   /api/v1/sessions/{id}/confirm            Items -> Guessing
    POST   /api/v1/sessions/{id}/reset              Guessing -> Photo
    GET    /api/v1/sessions/{id}/share              Challenge token and share URL
    POST   /api/v1/challenges/decode                Decode a challenge token

The client owns the real camera and GPS. It uploads frames and position
readings; the session's state machine treats them as its sensors.

All responses are JSON with explicit Pydantic schemas.
Photos are multipart/form-data.
"""

from typing import Annotated, Optional, Union
import os

from fastapi import FastAPI, File, Form, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import GameConfig
from ..session import SessionManager
from .schemas import (
    ChallengeResponse,
    CreateSessionRequest,
    DecodeChallengeRequest,
    EndSessionResponse,
    ErrorCode,
    ErrorResponse,
    HealthResponse,
    PositionRequest,
    SessionListResponse,
    SessionResponse,
    ShareResponse,
    TransitionResponse,
)
from .service import APIService

# Environment configuration
LOCGUESS_ENV = os.getenv("LOCGUESS_ENV", "development")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

_STATUS_CODES = {
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.TRANSITION_REJECTED: 409,
    ErrorCode.NOTHING_TO_SHARE: 409,
}


def create_app(service: APIService | None = None, config: GameConfig | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)
        config: Game configuration (read from the environment if not provided)

    Returns:
        FastAPI application instance
    """
    config = config or GameConfig.from_env()
    api_service = service or APIService(session_manager=SessionManager(config=config))

    app = FastAPI(
        title="Location Guessing Game API",
        description="""
Photo location guessing game.

## Game Flow

1. `POST /sessions` starts in **photo** mode (or **guessing** with a `challenge`)
2. Push positions with `POST /position`; `capture_enabled` turns on once GPS
   accuracy is good enough
3. `POST /capture` with the photo moves to **items**
4. `POST /confirm` moves to **guessing**; keep pushing positions until
   `score` becomes 1
5. `GET /share` returns the challenge URL for someone else

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist |
| `INVALID_CHALLENGE` | Challenge token could not be decoded |
| `PHOTO_UNREADABLE` | Photo could not be decoded |
| `TRANSITION_REJECTED` | Action not available in the current mode |
| `NOTHING_TO_SHARE` | No photo location captured yet |
        """,
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(error: ErrorResponse, status_code: int | None = None) -> JSONResponse:
        """Serialize an ErrorResponse with the status code for its error code."""
        return JSONResponse(
            status_code=status_code or _STATUS_CODES.get(error.error_code, 400),
            content=error.model_dump(mode="json"),
        )

    def respond(result):
        if isinstance(result, ErrorResponse):
            return make_error_response(result)
        return result

    # =========================================================================
    # Health
    # =========================================================================

    @app.get("/api/v1/health", response_model=HealthResponse, tags=["System"])
    async def health() -> HealthResponse:
        return HealthResponse(
            environment=LOCGUESS_ENV,
            active_sessions=len(api_service.list_sessions()),
            config=api_service.session_manager.config.to_dict(),
        )

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionResponse,
        tags=["Sessions"],
        summary="Start a new game",
    )
    async def create_session(body: Optional[CreateSessionRequest] = None) -> SessionResponse:
        """
        Start a new game.

        With a valid `challenge` the game starts in guessing mode. An invalid
        challenge is reported in `status` and the game starts in photo mode.
        """
        return await api_service.create_session(body or CreateSessionRequest())

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List active sessions",
    )
    async def list_sessions() -> SessionListResponse:
        sessions = api_service.list_sessions()
        return SessionListResponse(sessions=sessions, count=len(sessions))

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get session state",
    )
    async def get_session(session_id: str) -> Union[SessionResponse, JSONResponse]:
        return respond(api_service.get_session(session_id))

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=EndSessionResponse,
        tags=["Sessions"],
        summary="End a game session",
    )
    async def end_session(
        session_id: str,
        reason: Annotated[str, Query(description="Reason for ending")] = "user_ended",
    ) -> EndSessionResponse:
        """End a game session and release its sensors."""
        success = api_service.end_session(session_id, reason)
        return EndSessionResponse(success=success, session_id=session_id)

    # =========================================================================
    # Game Loop Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions/{session_id}/position",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game Loop"],
        summary="Push a position reading",
    )
    async def push_position(
        session_id: str,
        body: PositionRequest,
    ) -> Union[SessionResponse, JSONResponse]:
        """
        Deliver a GPS reading.

        In photo mode it drives `capture_enabled`; in guessing mode it
        updates the distance and may set `score`.
        """
        return respond(api_service.push_position(session_id, body))

    @app.post(
        "/api/v1/sessions/{session_id}/capture",
        response_model=TransitionResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Photo unreadable"},
            404: {"model": ErrorResponse, "description": "Session not found"},
            409: {"model": ErrorResponse, "description": "Not in photo mode"},
        },
        tags=["Game Loop"],
        summary="Upload a photo and detect items",
    )
    async def capture(
        session_id: str,
        photo: Annotated[UploadFile, File(description="Camera frame")],
        latitude: Annotated[Optional[float], Form()] = None,
        longitude: Annotated[Optional[float], Form()] = None,
        accuracy: Annotated[Optional[float], Form(description="Accuracy radius in meters")] = None,
    ) -> Union[TransitionResponse, JSONResponse]:
        """
        Capture the uploaded frame.

        Position fields are optional; without them the capture uses a
        reading pushed within the last few seconds, or waits for one.
        """
        position = None
        if latitude is not None or longitude is not None:
            if latitude is None or longitude is None or accuracy is None:
                return make_error_response(ErrorResponse(
                    error="latitude, longitude and accuracy must be sent together",
                    error_code=ErrorCode.VALIDATION_ERROR,
                ))
            position = PositionRequest(latitude=latitude, longitude=longitude, accuracy=accuracy)

        image_data = await photo.read()
        return respond(await api_service.capture(session_id, image_data, position))

    @app.post(
        "/api/v1/sessions/{session_id}/confirm",
        response_model=TransitionResponse,
        responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
        tags=["Game Loop"],
        summary="Start guessing",
    )
    async def confirm(session_id: str) -> Union[TransitionResponse, JSONResponse]:
        return respond(await api_service.confirm(session_id))

    @app.post(
        "/api/v1/sessions/{session_id}/reset",
        response_model=TransitionResponse,
        responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
        tags=["Game Loop"],
        summary="Back to taking photos",
    )
    async def reset(session_id: str) -> Union[TransitionResponse, JSONResponse]:
        return respond(await api_service.reset(session_id))

    # =========================================================================
    # Sharing
    # =========================================================================

    @app.get(
        "/api/v1/sessions/{session_id}/share",
        response_model=ShareResponse,
        responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
        tags=["Sharing"],
        summary="Get the challenge URL for this game",
    )
    async def share(
        session_id: str,
        base_url: Annotated[Optional[str], Query(description="Page the challenge link points to")] = None,
    ) -> Union[ShareResponse, JSONResponse]:
        return respond(api_service.share(session_id, base_url))

    @app.post(
        "/api/v1/challenges/decode",
        response_model=ChallengeResponse,
        responses={400: {"model": ErrorResponse}},
        tags=["Sharing"],
        summary="Decode a challenge token",
    )
    async def decode_challenge(body: DecodeChallengeRequest) -> Union[ChallengeResponse, JSONResponse]:
        return respond(api_service.decode_challenge(body.token))

    return app
