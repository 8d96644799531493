"""
API Module - HTTP interface for the game client.

The client:
1. Starts a session (optionally from a challenge link)
2. Pushes GPS readings
3. Uploads a photo to capture
4. Confirms, then keeps pushing readings while walking
5. Fetches the share URL for other players

All state is session-scoped and in memory.
"""

from .schemas import (
    CreateSessionRequest,
    PositionRequest,
    DecodeChallengeRequest,
    SessionResponse,
    TransitionResponse,
    ShareResponse,
    ChallengeResponse,
    ErrorResponse,
    ErrorCode,
)
from .service import APIService
from .app import create_app

__all__ = [
    "CreateSessionRequest",
    "PositionRequest",
    "DecodeChallengeRequest",
    "SessionResponse",
    "TransitionResponse",
    "ShareResponse",
    "ChallengeResponse",
    "ErrorResponse",
    "ErrorCode",
    "APIService",
    "create_app",
]
