"""
Session Manager - Creates and manages game sessions.

LIFECYCLE:
1. Client starts a session (optionally with a challenge token)
2. During the game the client pushes camera frames and position readings
3. The session's state machine reacts to them
4. Session ends -> sensors released, ALL state deleted

PERSISTENCE RULES:
- Sessions live in memory only
- A restarted server starts every game fresh
- The only way to carry a puzzle across is the challenge token
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable
import logging
import time
import uuid

from ..config import GameConfig
from ..engine_core.state import GameMode, GameState
from ..sensors.manager import SensorManager
from ..sensors.providers import PositionReading, PushedPositionProvider, StillImageCamera
from ..vision.processor import DetectionAdapter, DetectionModel
from ..vision.proposal import CameraConstraints
from .mode_machine import ModeStateMachine

logger = logging.getLogger(__name__)

# A pushed reading this recent answers a capture's position request
PUSHED_POSITION_MAX_AGE_S = 5.0


@dataclass
class Session:
    """
    One ephemeral game.

    The camera and position providers are fed by the client; the state
    machine sees them exactly like device sensors.
    """
    session_id: str
    created_at: float
    machine: ModeStateMachine
    camera: StillImageCamera
    positions: PushedPositionProvider
    ended: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def state(self) -> GameState:
        return self.machine.state

    def is_active(self) -> bool:
        return not self.ended

    def push_frame(self, frame: Any) -> None:
        self.camera.set_frame(frame)

    def push_position(self, reading: PositionReading) -> None:
        """Hand a reading to the provider and the state machine."""
        self.positions.push(reading)
        self.machine.on_position(reading)


class SessionManager:
    """
    Manages game sessions.

    Responsibilities:
    - Build a state machine with client-fed sensors per session
    - Track active sessions
    - Release sensors when sessions end

    No persistence - sessions are in-memory only.
    """

    def __init__(
        self,
        config: GameConfig | None = None,
        model_factory: Callable[[], DetectionModel | None] | None = None,
    ):
        self.config = config or GameConfig()
        self.model_factory = model_factory
        self._sessions: dict[str, Session] = {}

    async def create_session(
        self,
        challenge: str | None = None,
        items: str | None = None,
    ) -> Session:
        """
        Create and start a new game session.

        Args:
            challenge: Optional challenge token; valid tokens start in Guessing
            items: Optional legacy shared item list

        Returns:
            Started Session
        """
        session_id = str(uuid.uuid4())
        camera = StillImageCamera()
        positions = PushedPositionProvider(max_age_s=PUSHED_POSITION_MAX_AGE_S)

        sensors = SensorManager(
            camera_provider=camera,
            position_provider=positions,
            constraints=CameraConstraints(
                facing_mode=self.config.facing_mode,
                width=self.config.camera_width,
                height=self.config.camera_height,
            ),
            position_timeout_s=self.config.position_timeout_s,
            capture_accuracy_m=self.config.capture_accuracy_m,
        )
        model = self.model_factory() if self.model_factory else None
        detector = DetectionAdapter(model, score_threshold=self.config.score_threshold)
        machine = ModeStateMachine(sensors, detector, self.config)

        session = Session(
            session_id=session_id,
            created_at=time.time(),
            machine=machine,
            camera=camera,
            positions=positions,
        )
        self._sessions[session_id] = session

        if model is not None:
            await machine.load_model()
        await machine.start(challenge_token=challenge, shared_items=items)
        logger.info(f"Session {session_id} started in {machine.mode.value} mode")
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def end_session(self, session_id: str, reason: str = "completed") -> bool:
        """
        End a session and clean up.

        Sensors are released and the session is removed from memory.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.machine.close()
        session.ended = True
        session.metadata["end_reason"] = reason
        logger.info(f"Session {session_id} ended ({reason})")
        return True

    def list_active_sessions(self) -> list[str]:
        """List IDs of active sessions."""
        return [sid for sid, session in self._sessions.items() if session.is_active()]

    def cleanup_stale_sessions(self, max_age_seconds: int = 3600) -> int:
        """
        End sessions older than max_age_seconds.

        Guessing sessions are kept; someone may still be walking.
        """
        current_time = time.time()
        stale = [
            sid for sid, session in self._sessions.items()
            if current_time - session.created_at > max_age_seconds
            and session.state.mode is not GameMode.GUESSING
        ]
        for session_id in stale:
            self.end_session(session_id, reason="stale")
        return len(stale)
