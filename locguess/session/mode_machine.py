"""
Mode State Machine - The core photo -> items -> guessing loop.

The loop:
1. Camera is live, player points it at something (Photo)
2. Capture: position fix, frame, detection
3. Player reviews the detected items (Items)
4. Confirm: camera off, location watch on (Guessing)
5. Every position update is checked against the photo location
6. Reset: watch off, everything forgotten, camera on again (Photo)

A game can also start straight in Guessing from a challenge token; the
camera is never opened in that case.

Transitions called from the wrong mode do nothing and report failure.
Every failure inside a transition leaves the machine in a defined mode
with a status message explaining what happened.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging

from ..challenge.codec import (
    challenge_url,
    decode,
    encode,
    parse_shared_items,
    shared_items_payload,
)
from ..challenge.record import ChallengeRecord
from ..config import GameConfig
from ..engine_core.distance import check_win, distance_meters
from ..engine_core.state import GameMode, GameState, Location, StatusMessage
from ..exceptions import (
    AccuracyInsufficientError,
    CapabilityNotReadyError,
    EmptyDetectionError,
    FrameUnavailableError,
    LocGuessError,
    PermissionDeniedError,
    PositionTimeoutError,
    PositionUnavailableError,
)
from ..sensors.manager import SensorManager
from ..sensors.providers import PositionReading
from ..sharing.strategies import ShareChain, SharePayload, ShareReport, share_text
from ..vision.imaging import encode_photo, make_thumbnail
from ..vision.processor import DetectionAdapter
from ..vision.proposal import Prediction

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    """
    Result of a transition.

    success is False both for rejected transitions (wrong mode) and for
    transitions that ran into a recoverable error.
    """
    success: bool
    mode: GameMode
    status: StatusMessage | None = None
    errors: list[str] = field(default_factory=list)

    # True when the transition does not exist in the current mode
    rejected: bool = False

    # Filled by capture
    predictions: list[Prediction] = field(default_factory=list)


class ModeStateMachine:
    """
    Owner of the GameState.

    Usage:
        machine = ModeStateMachine(sensors, detector, config)
        await machine.start(challenge_token=token_from_url)

        result = await machine.capture()
        if result.success:
            await machine.confirm()

        # position updates arrive through the location watch
        ...
        await machine.reset()
    """

    def __init__(
        self,
        sensors: SensorManager,
        detector: DetectionAdapter,
        config: GameConfig | None = None,
    ):
        self.sensors = sensors
        self.detector = detector
        self.config = config or GameConfig()
        self.state = GameState()
        self.statuses: list[StatusMessage] = []
        self._capturing = False

    @property
    def mode(self) -> GameMode:
        return self.state.mode

    # =========================================================================
    # Start
    # =========================================================================

    async def load_model(self) -> bool:
        """Load the detection model if it isn't ready yet."""
        if self.detector.ready:
            return True
        self._status("Loading AI model...", "loading")
        try:
            await self.detector.load()
        except CapabilityNotReadyError as e:
            logger.warning(f"Detection model unavailable: {e}")
            self._status("AI model unavailable. Photos can't be analysed.", "error")
            return False
        self._status("Model loaded! Ready to take photos.", "success")
        self._refresh_capture_enabled()
        return True

    async def start(
        self,
        challenge_token: str | None = None,
        shared_items: str | None = None,
    ) -> TransitionResult:
        """
        Begin a game.

        A valid challenge token starts in Guessing. An invalid one is
        reported and the game starts normally in Photo. The legacy `items`
        parameter starts in Guessing with no target location.
        """
        notice = None
        if challenge_token:
            decoded = decode(challenge_token)
            if decoded.ok:
                return self._start_from_challenge(decoded.record)
            logger.warning(f"Rejected challenge token: {decoded.error}")
            notice = "Invalid challenge link. Starting a new game instead."
        elif shared_items:
            items = parse_shared_items(shared_items)
            if items:
                self._enter_guessing(items=items, photo_location=None)
                return self._ok("Items loaded from shared data!")
            notice = "Invalid shared items. Starting a new game instead."

        result = await self._start_photo()
        # The fallback notice stays visible unless the camera failed too
        if notice and result.success:
            result.status = self._status(notice, "error")
        return result

    def _start_from_challenge(self, record: ChallengeRecord) -> TransitionResult:
        logger.info(f"Starting from challenge with {len(record.items)} item(s)")
        self._enter_guessing(
            items=list(record.items),
            photo_location=Location(latitude=record.lat, longitude=record.lng),
            share_photo=record.photo,
            issued_at=record.issued_at,
        )
        return self._ok("Challenge loaded! Find where this photo was taken.")

    async def _start_photo(self) -> TransitionResult:
        # The location watch belongs to Guessing mode only
        self.sensors.release_location_watch()
        self.state.mode = GameMode.PHOTO
        try:
            await self.sensors.acquire_camera()
        except PermissionDeniedError as e:
            logger.warning(f"Camera unavailable: {e}")
            self._sync_handles()
            return self._fail(
                "Camera access denied. Please allow camera access and try again.",
                str(e),
            )
        self._sync_handles()
        if self.detector.ready:
            return self._ok("Ready to take photos.")
        return self._ok("Camera ready. Waiting for the AI model...", kind="loading")

    # =========================================================================
    # Photo -> Items
    # =========================================================================

    async def capture(self) -> TransitionResult:
        """
        Take the photo.

        Order matters: the model is checked before any sensor is touched,
        and the accuracy gate before the frame is encoded.
        """
        if self.state.mode is not GameMode.PHOTO or self._capturing:
            return self._rejected("capture")

        try:
            self.detector.ensure_ready()
        except CapabilityNotReadyError as e:
            return self._fail("Model not loaded yet. Please wait.", str(e))

        if self.sensors.camera is None:
            return self._fail("Camera not available. Please allow camera access.", "no camera")

        self._capturing = True
        self._refresh_capture_enabled()
        self._status("Capturing photo...", "loading")
        try:
            reading = await self.sensors.read_position_once()
            self.sensors.report_accuracy(reading)
            if not self.sensors.gate.allows(reading.accuracy):
                raise AccuracyInsufficientError(reading.accuracy, self.sensors.gate.threshold_m)

            camera = self.sensors.camera
            if camera is None:
                raise FrameUnavailableError("Camera released during capture")
            frame = camera.grab_frame()

            self.state.photo_location = reading.to_location()
            self.state.captured_photo_data = encode_photo(frame, self.config.photo_quality)
            self.state.share_photo_data = make_thumbnail(
                frame, self.config.thumbnail_size, self.config.thumbnail_quality
            )

            predictions = await self.detector.detect(frame)
            if not predictions:
                raise EmptyDetectionError("No prediction above threshold")
        except LocGuessError as e:
            self._discard_capture()
            return self._fail(self._capture_error_message(e), str(e))
        finally:
            self._capturing = False
            self._refresh_capture_enabled()

        self.state.detected_items = [p.label for p in predictions]
        self.state.mode = GameMode.ITEMS
        # The camera belongs to Photo mode only
        self.sensors.release_camera()
        self._sync_handles()
        logger.info(f"Captured photo with items: {self.state.detected_items}")

        result = self._ok(f"Found {len(predictions)} item(s)!", kind="success")
        result.predictions = predictions
        return result

    def _capture_error_message(self, error: LocGuessError) -> str:
        if isinstance(error, AccuracyInsufficientError):
            return (
                f"Location accuracy is {error.accuracy:.1f}m, need {error.threshold:.1f}m "
                f"or better ({error.gap:.1f}m to go). Try again in a moment."
            )
        if isinstance(error, EmptyDetectionError):
            return "No items detected. Try taking another photo."
        if isinstance(error, PositionTimeoutError):
            return "Could not get your location in time. Please try again."
        if isinstance(error, PermissionDeniedError):
            return "Location access denied. Please enable location services."
        if isinstance(error, PositionUnavailableError):
            return "Geolocation not supported on this device."
        return "Error capturing photo. Please try again."

    def _discard_capture(self) -> None:
        self.state.photo_location = None
        self.state.captured_photo_data = None
        self.state.share_photo_data = None

    # =========================================================================
    # Items -> Guessing
    # =========================================================================

    async def confirm(self) -> TransitionResult:
        """Start guessing with the detected items."""
        if self.state.mode is not GameMode.ITEMS:
            return self._rejected("confirm")

        self.sensors.release_camera()
        self.state.score = 0
        self.state.current_location = None
        self.state.last_distance = None
        self.state.mode = GameMode.GUESSING
        if not self._start_tracking():
            return self._fail(self.state.status.text, "location tracking unavailable")
        return self._ok("Move around to find the location!")

    def _enter_guessing(
        self,
        items: list[str],
        photo_location: Location | None,
        share_photo: str | None = None,
        issued_at: int | None = None,
    ) -> None:
        # The camera belongs to Photo mode only
        self.sensors.release_camera()
        self.state.clear_session()
        self.state.detected_items = list(items)
        self.state.photo_location = photo_location
        self.state.share_photo_data = share_photo
        self.state.challenge_issued_at = issued_at
        self.state.mode = GameMode.GUESSING
        self._start_tracking()

    def _start_tracking(self) -> bool:
        try:
            self.sensors.acquire_location_watch(self._on_watch_update, self._on_watch_error)
        except PositionUnavailableError as e:
            logger.warning(f"Location tracking unavailable: {e}")
            self._status("Geolocation not supported on this device.", "error")
            self._sync_handles()
            return False
        self._sync_handles()
        return True

    # =========================================================================
    # Guessing -> Photo
    # =========================================================================

    async def reset(self) -> TransitionResult:
        """Abandon the round and go back to taking photos."""
        if self.state.mode is not GameMode.GUESSING:
            return self._rejected("reset")

        self.sensors.release_location_watch()
        self.state.clear_session()
        self.sensors.gate.reset()
        self._sync_handles()
        logger.info("Round reset")
        return await self._start_photo()

    # =========================================================================
    # Position updates
    # =========================================================================

    def on_position(self, reading: PositionReading) -> None:
        """
        Route a position reading observed by the host.

        Photo: drives the capture accuracy gate.
        Items: ignored.
        Guessing: goes through the location watch, which drops repeats of
        readings it already delivered.
        """
        mode = self.state.mode
        if mode is GameMode.PHOTO:
            self._update_gate(reading)
        elif mode is GameMode.GUESSING:
            watch = self.sensors.location_watch
            if watch is not None:
                watch.deliver(reading)
            else:
                self._track(reading)
        else:
            logger.debug(f"Ignoring position update in {mode.value} mode")

    def _update_gate(self, reading: PositionReading) -> None:
        was_enabled = self.state.capture_enabled
        self.sensors.report_accuracy(reading)
        self._refresh_capture_enabled()
        gate = self.sensors.gate
        if was_enabled and not self.state.capture_enabled and gate.gap_m is not None:
            self._status(
                f"Waiting for better GPS accuracy: {reading.accuracy:.1f}m "
                f"(need {gate.threshold_m:.1f}m, {gate.gap_m:.1f}m to go).",
                "loading",
            )
        elif not was_enabled and self.state.capture_enabled:
            self._status("GPS accuracy good. Ready to take photos.", "success")

    def _on_watch_update(self, reading: PositionReading) -> None:
        if self.state.mode is not GameMode.GUESSING:
            logger.debug("Watch update outside guessing mode ignored")
            return
        self._track(reading)

    def _on_watch_error(self, error: LocGuessError) -> None:
        if isinstance(error, PermissionDeniedError):
            self._status("Location access denied. Please enable location services.", "error")
        else:
            self._status(f"Location error: {error}", "error")

    def _track(self, reading: PositionReading) -> None:
        self.state.current_location = reading.to_location()
        target = self.state.photo_location
        if target is None:
            return

        self.state.last_distance = distance_meters(target, self.state.current_location)
        if self.state.score == 0 and check_win(
            target, self.state.current_location, self.config.win_distance_m
        ):
            self.state.score = 1
            logger.info(f"Location found at {self.state.last_distance:.1f}m")
            self._status("\U0001F389 Congratulations! You found the location!", "success")

    # =========================================================================
    # Sharing
    # =========================================================================

    def share_token(self, now: float | None = None) -> str:
        """Challenge token for this round. Raises MalformedChallengeError without a location."""
        return encode(self.state, now)

    def share_url(self, base_url: str | None = None, now: float | None = None) -> str:
        return challenge_url(base_url or self.config.share_base_url, self.share_token(now))

    def share_text(self) -> str:
        return share_text(self.state.detected_items)

    def qr_payload(self, base_url: str | None = None, now: float | None = None) -> str:
        """Text a QR code should encode: the share URL, or the item list without a location."""
        if self.state.photo_location is None:
            return shared_items_payload(self.state.detected_items, now)
        return self.share_url(base_url, now)

    async def share(self, chain: ShareChain, base_url: str | None = None) -> ShareReport | None:
        """Run the share chain. Returns None when there is nothing to share."""
        if not self.state.detected_items:
            self._status("No items to share! Take a photo first.", "error")
            return None

        url = self.share_url(base_url) if self.state.photo_location else None
        payload = SharePayload(title=self.config.share_title, text=self.share_text(), url=url)
        report = await chain.share(payload)
        for status in report.statuses:
            self._record(status)
        return report

    # =========================================================================
    # Shutdown
    # =========================================================================

    def close(self) -> None:
        """Release every sensor resource."""
        self.sensors.release_all()
        self._sync_handles()
        self._refresh_capture_enabled()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _sync_handles(self) -> None:
        self.state.camera_handle = self.sensors.camera
        self.state.location_watch_handle = self.sensors.location_watch
        self._refresh_capture_enabled()

    def _refresh_capture_enabled(self) -> None:
        self.state.capture_enabled = (
            self.state.mode is GameMode.PHOTO
            and self.sensors.camera is not None
            and not self._capturing
            and self.detector.ready
            and self.sensors.gate.permits
        )

    def _record(self, status: StatusMessage) -> StatusMessage:
        self.state.status = status
        self.statuses.append(status)
        return status

    def _status(self, text: str, kind: str = "info") -> StatusMessage:
        logger.debug(f"Status [{kind}]: {text}")
        return self._record(StatusMessage(text, kind))

    def _ok(self, text: str, kind: str = "success") -> TransitionResult:
        return TransitionResult(
            success=True,
            mode=self.state.mode,
            status=self._status(text, kind),
        )

    def _fail(self, text: str, error: str) -> TransitionResult:
        return TransitionResult(
            success=False,
            mode=self.state.mode,
            status=self._status(text, "error"),
            errors=[error],
        )

    def _rejected(self, transition: str) -> TransitionResult:
        # No state change, not even the status line
        logger.debug(f"Rejected {transition} in {self.state.mode.value} mode")
        return TransitionResult(
            success=False,
            mode=self.state.mode,
            errors=[f"{transition} not allowed in {self.state.mode.value} mode"],
            rejected=True,
        )
