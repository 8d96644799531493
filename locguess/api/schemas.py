"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between the game client and the server.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist or has ended
- INVALID_CHALLENGE: Challenge token could not be decoded
- PHOTO_UNREADABLE: Uploaded photo could not be decoded
- VALIDATION_ERROR: Request fields are invalid
- TRANSITION_REJECTED: The action is not available in the current mode
- NOTHING_TO_SHARE: No location has been captured yet
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class GameModeValue(str, Enum):
    """Mode values."""
    PHOTO = "photo"
    ITEMS = "items"
    GUESSING = "guessing"


class StatusKind(str, Enum):
    INFO = "info"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    INVALID_CHALLENGE = "INVALID_CHALLENGE"
    PHOTO_UNREADABLE = "PHOTO_UNREADABLE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    TRANSITION_REJECTED = "TRANSITION_REJECTED"
    NOTHING_TO_SHARE = "NOTHING_TO_SHARE"


# =============================================================================
# Shared Models
# =============================================================================

class LocationInfo(BaseModel):
    """A geographic point."""
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    accuracy: Optional[float] = Field(None, ge=0.0, description="Accuracy radius in meters")

    model_config = {"from_attributes": True}


class StatusInfo(BaseModel):
    """User-visible status line."""
    text: str
    kind: StatusKind = StatusKind.INFO

    model_config = {"from_attributes": True}


class PredictionInfo(BaseModel):
    """A detection that survived filtering."""
    label: str
    score: float = Field(..., ge=0.0, le=1.0)

    model_config = {"from_attributes": True}


# =============================================================================
# Requests
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Request to start a game."""
    challenge: Optional[str] = Field(None, description="Challenge token from a share URL")
    items: Optional[str] = Field(
        None, description="Legacy shared items (JSON or comma-separated)"
    )


class PositionRequest(BaseModel):
    """A position reading from the client device."""
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    accuracy: float = Field(..., ge=0.0, description="Accuracy radius in meters")
    timestamp: Optional[float] = Field(None, description="Epoch seconds; server time if omitted")


class DecodeChallengeRequest(BaseModel):
    token: str = Field(..., description="Challenge token")


# =============================================================================
# Responses
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class SessionResponse(BaseModel):
    """Session status and game state."""
    session_id: str
    mode: GameModeValue
    detected_items: list[str] = Field(default_factory=list)
    photo_location: Optional[LocationInfo] = None
    current_location: Optional[LocationInfo] = None
    score: int = Field(0, ge=0, le=1)
    distance_m: Optional[float] = Field(None, description="Distance to the photo location")
    capture_enabled: bool = False
    camera_live: bool = False
    location_watch_live: bool = False
    has_share_photo: bool = False
    challenge_issued_at: Optional[int] = None
    status: Optional[StatusInfo] = None
    created_at: float
    api_version: str = "v1"


class TransitionResponse(BaseModel):
    """Result of capture, confirm or reset."""
    success: bool
    session: SessionResponse
    errors: list[str] = Field(default_factory=list)
    predictions: list[PredictionInfo] = Field(default_factory=list)
    api_version: str = "v1"


class ShareResponse(BaseModel):
    """Everything a client needs to share the current puzzle."""
    session_id: str
    token: str
    url: str
    text: str
    qr_payload: str
    api_version: str = "v1"


class ChallengeResponse(BaseModel):
    """A decoded challenge."""
    items: list[str]
    lat: float
    lng: float
    photo: Optional[str] = None
    issued_at: Optional[int] = None
    version: int
    api_version: str = "v1"


class SessionListResponse(BaseModel):
    sessions: list[str]
    count: int
    api_version: str = "v1"


class EndSessionResponse(BaseModel):
    success: bool
    session_id: str
    api_version: str = "v1"


class HealthResponse(BaseModel):
    status: str = "ok"
    environment: str
    active_sessions: int
    config: dict[str, Any] = Field(default_factory=dict)
    api_version: str = "v1"
