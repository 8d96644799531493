"""
API Service - Business logic layer between API and game.

The service:
1. Translates API requests to state machine calls
2. Manages sessions
3. Feeds uploaded frames and positions to session sensors
4. Formats responses

This layer is framework-agnostic; the FastAPI app only handles HTTP.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import time

from ..challenge.codec import decode
from ..engine_core.state import GameState, Location
from ..exceptions import MalformedChallengeError
from ..sensors.providers import PositionReading
from ..session import Session, SessionManager, TransitionResult
from ..vision.imaging import load_frame
from .schemas import (
    ChallengeResponse,
    CreateSessionRequest,
    ErrorCode,
    ErrorResponse,
    LocationInfo,
    PositionRequest,
    PredictionInfo,
    SessionResponse,
    ShareResponse,
    StatusInfo,
    TransitionResponse,
)

logger = logging.getLogger(__name__)


def _not_found(session_id: str) -> ErrorResponse:
    return ErrorResponse(
        error=f"Session {session_id} not found",
        error_code=ErrorCode.SESSION_NOT_FOUND,
    )


def _location_info(location: Location | None) -> LocationInfo | None:
    if location is None:
        return None
    return LocationInfo(
        latitude=location.latitude,
        longitude=location.longitude,
        accuracy=location.accuracy,
    )


def _reading(request: PositionRequest) -> PositionReading:
    return PositionReading(
        latitude=request.latitude,
        longitude=request.longitude,
        accuracy=request.accuracy,
        timestamp=request.timestamp if request.timestamp is not None else time.time(),
    )


@dataclass
class APIService:
    """
    Main API service.

    Usage:
        service = APIService()

        session = await service.create_session(CreateSessionRequest())
        service.push_position(session.session_id, position)
        result = await service.capture(session.session_id, image_bytes)
    """
    session_manager: SessionManager = field(default_factory=SessionManager)

    async def create_session(self, request: CreateSessionRequest) -> SessionResponse:
        """Start a game, from a challenge token when one is given."""
        session = await self.session_manager.create_session(
            challenge=request.challenge,
            items=request.items,
        )
        return self._session_to_response(session)

    def get_session(self, session_id: str) -> SessionResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return _not_found(session_id)
        return self._session_to_response(session)

    def end_session(self, session_id: str, reason: str = "user_ended") -> bool:
        return self.session_manager.end_session(session_id, reason)

    def list_sessions(self) -> list[str]:
        return self.session_manager.list_active_sessions()

    def push_position(
        self,
        session_id: str,
        request: PositionRequest,
    ) -> SessionResponse | ErrorResponse:
        """Deliver a position reading from the client device."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return _not_found(session_id)
        session.push_position(_reading(request))
        return self._session_to_response(session)

    async def capture(
        self,
        session_id: str,
        image_data: bytes,
        position: PositionRequest | None = None,
    ) -> TransitionResponse | ErrorResponse:
        """
        Take the photo from an uploaded frame.

        A position sent along with the photo is pushed first, so the
        capture's position request is answered by it.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return _not_found(session_id)

        if not image_data:
            return ErrorResponse(error="Empty photo file", error_code=ErrorCode.PHOTO_UNREADABLE)
        try:
            frame = load_frame(image_data)
        except OSError as e:  # PIL.UnidentifiedImageError included
            logger.info(f"Unreadable photo for session {session_id}: {e}")
            return ErrorResponse(
                error=f"Failed to read photo: {e}",
                error_code=ErrorCode.PHOTO_UNREADABLE,
            )

        session.push_frame(frame)
        if position is not None:
            session.push_position(_reading(position))

        result = await session.machine.capture()
        return self._transition_response(session, result)

    async def confirm(self, session_id: str) -> TransitionResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return _not_found(session_id)
        return self._transition_response(session, await session.machine.confirm())

    async def reset(self, session_id: str) -> TransitionResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return _not_found(session_id)
        return self._transition_response(session, await session.machine.reset())

    def share(self, session_id: str, base_url: str | None = None) -> ShareResponse | ErrorResponse:
        """Token, URL, text and QR payload for the current puzzle."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return _not_found(session_id)

        machine = session.machine
        now = time.time()
        try:
            token = machine.share_token(now)
        except MalformedChallengeError as e:
            return ErrorResponse(error=str(e), error_code=ErrorCode.NOTHING_TO_SHARE)

        url = machine.share_url(base_url, now)
        return ShareResponse(
            session_id=session_id,
            token=token,
            url=url,
            text=machine.share_text(),
            qr_payload=machine.qr_payload(base_url, now),
        )

    def decode_challenge(self, token: str) -> ChallengeResponse | ErrorResponse:
        result = decode(token)
        if not result.ok:
            return ErrorResponse(
                error=f"Invalid challenge: {result.error}",
                error_code=ErrorCode.INVALID_CHALLENGE,
            )
        record = result.record
        return ChallengeResponse(
            items=list(record.items),
            lat=record.lat,
            lng=record.lng,
            photo=record.photo,
            issued_at=record.issued_at,
            version=record.version,
        )

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _session_to_response(self, session: Session) -> SessionResponse:
        state: GameState = session.state
        status = None
        if state.status is not None:
            status = StatusInfo(text=state.status.text, kind=state.status.kind)

        return SessionResponse(
            session_id=session.session_id,
            mode=state.mode.value,
            detected_items=list(state.detected_items),
            photo_location=_location_info(state.photo_location),
            current_location=_location_info(state.current_location),
            score=state.score,
            distance_m=state.last_distance,
            capture_enabled=state.capture_enabled,
            camera_live=state.camera_handle is not None,
            location_watch_live=state.location_watch_handle is not None,
            has_share_photo=state.share_photo_data is not None,
            challenge_issued_at=state.challenge_issued_at,
            status=status,
            created_at=session.created_at,
        )

    def _transition_response(
        self,
        session: Session,
        result: TransitionResult,
    ) -> TransitionResponse | ErrorResponse:
        if result.rejected:
            return ErrorResponse(
                error="; ".join(result.errors),
                error_code=ErrorCode.TRANSITION_REJECTED,
                details={"mode": result.mode.value},
            )
        return TransitionResponse(
            success=result.success,
            session=self._session_to_response(session),
            errors=result.errors,
            predictions=[
                PredictionInfo(label=p.label, score=p.score) for p in result.predictions
            ],
        )
