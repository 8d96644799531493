"""
Sensor Manager - Owns the camera stream and the location watch.

RESOURCE RULES:
- At most one camera stream and one location watch are held at a time
- Acquiring while holding releases the old resource first
- Releasing when nothing is held is a no-op
- Every held resource is a Subscription with close(); closing twice is
  harmless, so cleanup can run on every exit path

The manager also owns the capture accuracy gate: the capture action is
only permitted when the latest reported accuracy radius is within the
configured threshold.
"""

from __future__ import annotations
from typing import Any, Callable
import asyncio
import logging

from ..exceptions import LocGuessError, PositionTimeoutError
from ..vision.proposal import CameraConstraints
from .providers import (
    CameraProvider,
    CameraStream,
    ErrorCallback,
    PositionCallback,
    PositionProvider,
    PositionReading,
)

logger = logging.getLogger(__name__)


class Subscription:
    """
    A cancellable resource.

    Usage:
        with manager.acquire_location_watch(on_update) as watch:
            ...
        # watch is closed here, even on error
    """

    def __init__(self, on_close: Callable[[Subscription], None] | None = None):
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close:
            self._on_close(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class CameraHandle(Subscription):
    """A live camera stream."""

    def __init__(self, stream: CameraStream, on_close: Callable[[Subscription], None]):
        super().__init__(on_close)
        self.stream = stream

    def grab_frame(self) -> Any:
        return self.stream.grab_frame()


class LocationWatch(Subscription):
    """
    A live position subscription.

    Readings older than the last delivered one, and exact repeats, are
    dropped so the callback only ever moves forward in time. Accuracy may
    get worse between readings.
    """

    def __init__(
        self,
        on_update: PositionCallback,
        on_error: ErrorCallback | None,
        on_close: Callable[[Subscription], None],
    ):
        super().__init__(on_close)
        self.watch_id: int | None = None
        self.last_reading: PositionReading | None = None
        self.last_error: LocGuessError | None = None
        self._on_update = on_update
        self._on_error = on_error

    def deliver(self, reading: PositionReading) -> bool:
        """Forward a reading to the subscriber. Returns False if dropped."""
        if self.closed:
            return False
        last = self.last_reading
        if last is not None and (reading.timestamp < last.timestamp or reading == last):
            return False
        self.last_reading = reading
        self._on_update(reading)
        return True

    def fail(self, error: LocGuessError) -> None:
        if self.closed:
            return
        self.last_error = error
        logger.warning(f"Location watch error: {error}")
        if self._on_error:
            self._on_error(error)


class AccuracyGate:
    """
    Capture permission from position accuracy.

    threshold_m of None disables gating: capture is always permitted.
    With gating, nothing is permitted until a reading has been seen.
    """

    def __init__(self, threshold_m: float | None):
        self.threshold_m = threshold_m
        self.last_accuracy: float | None = None

    def update(self, reading: PositionReading) -> bool:
        self.last_accuracy = reading.accuracy
        return self.permits

    def allows(self, accuracy: float) -> bool:
        return self.threshold_m is None or accuracy <= self.threshold_m

    @property
    def permits(self) -> bool:
        if self.threshold_m is None:
            return True
        return self.last_accuracy is not None and self.allows(self.last_accuracy)

    @property
    def gap_m(self) -> float | None:
        """Meters of accuracy still missing, or None when permitted/unknown."""
        if self.threshold_m is None or self.last_accuracy is None:
            return None
        gap = self.last_accuracy - self.threshold_m
        return gap if gap > 0 else None

    def reset(self) -> None:
        self.last_accuracy = None


class SensorManager:
    """
    Lifecycle owner for camera and geolocation.

    Usage:
        sensors = SensorManager(camera_provider, position_provider)

        await sensors.acquire_camera()
        reading = await sensors.read_position_once()
        sensors.release_camera()

        sensors.acquire_location_watch(on_update)
        sensors.release_location_watch()
    """

    def __init__(
        self,
        camera_provider: CameraProvider,
        position_provider: PositionProvider,
        constraints: CameraConstraints | None = None,
        position_timeout_s: float = 10.0,
        capture_accuracy_m: float | None = 7.0,
    ):
        self.camera_provider = camera_provider
        self.position_provider = position_provider
        self.constraints = constraints or CameraConstraints()
        self.position_timeout_s = position_timeout_s
        self.gate = AccuracyGate(capture_accuracy_m)

        self.camera: CameraHandle | None = None
        self.location_watch: LocationWatch | None = None

    # -------------------------------------------------------------------------
    # Camera
    # -------------------------------------------------------------------------

    async def acquire_camera(self) -> CameraHandle:
        """
        Open the camera, replacing any stream already held.

        Raises PermissionDeniedError if access is refused; nothing is held
        afterwards in that case.
        """
        self.release_camera()
        stream = await self.camera_provider.open(self.constraints)
        self.camera = CameraHandle(stream, self._on_camera_closed)
        logger.info(
            f"Camera acquired ({self.constraints.facing_mode}, "
            f"{self.constraints.width}x{self.constraints.height})"
        )
        return self.camera

    def release_camera(self) -> None:
        if self.camera is not None:
            self.camera.close()

    def _on_camera_closed(self, handle: Subscription) -> None:
        handle.stream.stop()
        if self.camera is handle:
            self.camera = None
        logger.info("Camera released")

    # -------------------------------------------------------------------------
    # Geolocation
    # -------------------------------------------------------------------------

    def acquire_location_watch(
        self,
        on_update: PositionCallback,
        on_error: ErrorCallback | None = None,
    ) -> LocationWatch:
        """
        Start watching position, replacing any watch already held.

        Raises PositionUnavailableError if the device has no geolocation.
        """
        self.release_location_watch()
        watch = LocationWatch(on_update, on_error, self._on_watch_closed)
        self.location_watch = watch
        try:
            watch.watch_id = self.position_provider.watch(watch.deliver, watch.fail)
        except LocGuessError:
            watch.close()
            raise
        logger.info(f"Location watch {watch.watch_id} acquired")
        return watch

    def release_location_watch(self) -> None:
        if self.location_watch is not None:
            self.location_watch.close()

    def _on_watch_closed(self, handle: Subscription) -> None:
        if handle.watch_id is not None:
            self.position_provider.clear_watch(handle.watch_id)
        if self.location_watch is handle:
            self.location_watch = None
        logger.info(f"Location watch {handle.watch_id} released")

    async def read_position_once(self) -> PositionReading:
        """
        One position fix, waiting at most position_timeout_s.

        Raises PositionTimeoutError on timeout; provider errors
        (permission, unsupported) propagate unchanged.
        """
        try:
            return await asyncio.wait_for(
                self.position_provider.current_position(),
                timeout=self.position_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(f"No position fix within {self.position_timeout_s}s")
            raise PositionTimeoutError(self.position_timeout_s) from None

    # -------------------------------------------------------------------------
    # Accuracy gate
    # -------------------------------------------------------------------------

    def report_accuracy(self, reading: PositionReading) -> bool:
        """Feed a reading to the capture gate; returns whether capture is permitted."""
        return self.gate.update(reading)

    def release_all(self) -> None:
        self.release_camera()
        self.release_location_watch()
