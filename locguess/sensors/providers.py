"""
Sensor Providers - Where frames and positions come from.

Providers are the device-facing side. The SensorManager owns their
lifecycles; the game never talks to a provider directly.

Two in-process implementations are included:
- StillImageCamera: serves whatever frame was last set (uploads, files)
- PushedPositionProvider: readings are pushed in by the host (HTTP
  clients, tests) and fanned out to single-shot waiters and watchers
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable
import asyncio
import logging
import time

from ..engine_core.state import Location
from ..exceptions import (
    FrameUnavailableError,
    LocGuessError,
    PermissionDeniedError,
    PositionUnavailableError,
)
from ..vision.proposal import CameraConstraints

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionReading:
    """A position fix with its accuracy radius in meters."""
    latitude: float
    longitude: float
    accuracy: float
    timestamp: float = field(default_factory=time.time)

    def to_location(self) -> Location:
        return Location(
            latitude=self.latitude,
            longitude=self.longitude,
            accuracy=self.accuracy,
        )


PositionCallback = Callable[[PositionReading], None]
ErrorCallback = Callable[[LocGuessError], None]


# =============================================================================
# Interfaces
# =============================================================================

class CameraStream(ABC):
    """An open camera stream."""

    @abstractmethod
    def grab_frame(self) -> Any:
        """Return the current frame."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop every track of the stream."""
        pass


class CameraProvider(ABC):
    """Opens camera streams. May prompt the user for permission."""

    @abstractmethod
    async def open(self, constraints: CameraConstraints) -> CameraStream:
        """Open a stream or raise PermissionDeniedError."""
        pass


class PositionProvider(ABC):
    """Single-shot and continuous geolocation."""

    @abstractmethod
    async def current_position(self) -> PositionReading:
        """Wait for one fresh fix. Callers bound the wait."""
        pass

    @abstractmethod
    def watch(self, on_update: PositionCallback, on_error: ErrorCallback) -> int:
        """Start a continuous subscription and return its watch id."""
        pass

    @abstractmethod
    def clear_watch(self, watch_id: int) -> None:
        """Stop a subscription. Unknown ids are ignored."""
        pass


# =============================================================================
# In-process implementations
# =============================================================================

class StillImageStream(CameraStream):
    def __init__(self, camera: StillImageCamera):
        self._camera = camera
        self.stopped = False

    def grab_frame(self) -> Any:
        if self.stopped:
            raise FrameUnavailableError("Camera stream stopped")
        if self._camera.frame is None:
            raise FrameUnavailableError("No frame available")
        return self._camera.frame

    def stop(self) -> None:
        if not self.stopped:
            self.stopped = True
            self._camera.active_streams -= 1


class StillImageCamera(CameraProvider):
    """
    Camera serving a fixed or uploaded Pillow image.

    Tracks how many streams are open so callers can check for leaks.
    """

    def __init__(self, frame: Any = None, permission_granted: bool = True):
        self.frame = frame
        self.permission_granted = permission_granted
        self.open_calls = 0
        self.active_streams = 0
        self.last_constraints: CameraConstraints | None = None

    def set_frame(self, frame: Any) -> None:
        self.frame = frame

    async def open(self, constraints: CameraConstraints) -> CameraStream:
        self.open_calls += 1
        self.last_constraints = constraints
        if not self.permission_granted:
            raise PermissionDeniedError("camera")
        self.active_streams += 1
        return StillImageStream(self)


class PushedPositionProvider(PositionProvider):
    """
    Position provider fed by push().

    A single-shot request is answered from the latest reading when it is
    younger than max_age_s, otherwise it waits for the next push.
    """

    def __init__(self, max_age_s: float = 0.0, permission_granted: bool = True):
        self.max_age_s = max_age_s
        self.permission_granted = permission_granted
        self.latest: PositionReading | None = None
        self._waiters: list[asyncio.Future] = []
        self._watchers: dict[int, tuple[PositionCallback, ErrorCallback]] = {}
        self._next_watch_id = 1

    @property
    def active_watches(self) -> int:
        return len(self._watchers)

    def push(self, reading: PositionReading) -> None:
        """Deliver a new fix to waiters and watchers."""
        self.latest = reading
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(reading)
        for on_update, _ in list(self._watchers.values()):
            on_update(reading)

    def fail(self, error: LocGuessError) -> None:
        """Report a provider error to waiters and watchers."""
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(error)
        for _, on_error in list(self._watchers.values()):
            on_error(error)

    async def current_position(self) -> PositionReading:
        if not self.permission_granted:
            raise PermissionDeniedError("geolocation")

        if self.latest is not None and self.max_age_s > 0:
            age = time.time() - self.latest.timestamp
            if age <= self.max_age_s:
                return self.latest

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def watch(self, on_update: PositionCallback, on_error: ErrorCallback) -> int:
        watch_id = self._next_watch_id
        self._next_watch_id += 1
        self._watchers[watch_id] = (on_update, on_error)
        if not self.permission_granted:
            on_error(PermissionDeniedError("geolocation"))
        logger.debug(f"Position watch {watch_id} started")
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        if self._watchers.pop(watch_id, None) is not None:
            logger.debug(f"Position watch {watch_id} cleared")


class UnsupportedPositionProvider(PositionProvider):
    """Stand-in for a device without geolocation."""

    async def current_position(self) -> PositionReading:
        raise PositionUnavailableError("Geolocation not supported")

    def watch(self, on_update: PositionCallback, on_error: ErrorCallback) -> int:
        raise PositionUnavailableError("Geolocation not supported")

    def clear_watch(self, watch_id: int) -> None:
        return None
