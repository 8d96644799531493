"""
Pytest fixtures for LocGuess tests.
"""

import io
import time

import pytest
from PIL import Image

from ..config import GameConfig
from ..engine_core.state import GameState, Location
from ..sensors import PushedPositionProvider, PositionReading, SensorManager, StillImageCamera
from ..session import ModeStateMachine
from ..vision import DetectionAdapter, StaticDetectionModel


# Somewhere in Stockholm
PHOTO_LAT = 59.329323
PHOTO_LNG = 18.068581


class CountingPositionProvider(PushedPositionProvider):
    """Pushed provider that counts single-shot requests."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.current_position_calls = 0

    async def current_position(self) -> PositionReading:
        self.current_position_calls += 1
        return await super().current_position()


@pytest.fixture
def make_reading():
    """Factory for position readings, timestamps increasing by default."""
    counter = {"t": time.time()}

    def _make(lat=PHOTO_LAT, lng=PHOTO_LNG, accuracy=3.0, timestamp=None):
        if timestamp is None:
            counter["t"] += 1.0
            timestamp = counter["t"]
        return PositionReading(latitude=lat, longitude=lng, accuracy=accuracy, timestamp=timestamp)

    return _make


@pytest.fixture
def frame() -> Image.Image:
    """A plain 640x480 camera frame."""
    return Image.new("RGB", (640, 480), (120, 160, 200))


@pytest.fixture
def jpeg_bytes(frame) -> bytes:
    buffer = io.BytesIO()
    frame.save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def config() -> GameConfig:
    return GameConfig(
        capture_accuracy_m=7.0,
        win_distance_m=25.0,
        position_timeout_s=0.05,
        share_base_url="https://game.example/play",
    )


@pytest.fixture
def camera(frame) -> StillImageCamera:
    return StillImageCamera(frame)


@pytest.fixture
def positions() -> CountingPositionProvider:
    # Readings stay usable for capture for a minute
    return CountingPositionProvider(max_age_s=60.0)


@pytest.fixture
def model() -> StaticDetectionModel:
    return StaticDetectionModel([
        {"class": "cup", "score": 0.92},
        {"class": "chair", "score": 0.71},
        {"class": "cup", "score": 0.66},
        {"class": "potted plant", "score": 0.31},
    ])


@pytest.fixture
def sensors(camera, positions, config) -> SensorManager:
    return SensorManager(
        camera_provider=camera,
        position_provider=positions,
        position_timeout_s=config.position_timeout_s,
        capture_accuracy_m=config.capture_accuracy_m,
    )


@pytest.fixture
def machine(sensors, model, config) -> ModeStateMachine:
    return ModeStateMachine(sensors, DetectionAdapter(model), config)


@pytest.fixture
def captured_state() -> GameState:
    """State as it looks right after a successful capture."""
    return GameState(
        detected_items=["cup", "chair"],
        photo_location=Location(latitude=59.3293234567, longitude=18.0685808123, accuracy=4.0),
        share_photo_data="data:image/jpeg;base64,/9j/4AAQ",
    )
