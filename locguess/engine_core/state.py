"""
Game State - The single mutable record of one game.

There is exactly one GameState per game and it is owned by the mode state
machine. Other components never read it directly; they are handed the
fields they need.

The record is never persisted. A restart begins in Photo mode unless a
challenge token is supplied.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from ..sensors.manager import CameraHandle, LocationWatch


class GameMode(Enum):
    """The three screens of the game."""
    PHOTO = "photo"  # Camera live, waiting for a capture
    ITEMS = "items"  # Showing what the model found
    GUESSING = "guessing"  # Tracking the player towards the photo spot


@dataclass(frozen=True)
class Location:
    """
    A geographic point.

    Latitude and longitude always travel together; accuracy is the
    reported uncertainty radius in meters, when known.
    """
    latitude: float
    longitude: float
    accuracy: float | None = None

    def rounded(self, places: int = 6) -> Location:
        """Copy with coordinates rounded to the given decimal places."""
        return Location(
            latitude=round(self.latitude, places),
            longitude=round(self.longitude, places),
            accuracy=self.accuracy,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
        }


@dataclass
class StatusMessage:
    """A user-visible status line."""
    text: str
    kind: str = "info"  # info, loading, success, error


@dataclass
class GameState:
    """
    Complete state of one game.

    Resource handles are owned here so that at most one camera stream and
    one location watch can be referenced at a time.
    """
    mode: GameMode = GameMode.PHOTO

    # Labels in first-detection order, no duplicates
    detected_items: list[str] = field(default_factory=list)

    photo_location: Location | None = None
    current_location: Location | None = None

    # Latch: 0 until the player reaches the spot, then 1 for the session
    score: int = 0
    last_distance: float | None = None

    # JPEG data URLs
    captured_photo_data: str | None = None
    share_photo_data: str | None = None

    # Live sensor resources
    camera_handle: CameraHandle | None = None
    location_watch_handle: LocationWatch | None = None

    capture_enabled: bool = False

    # Set when the game was loaded from a challenge token
    challenge_issued_at: int | None = None

    status: StatusMessage | None = None

    def clear_session(self) -> None:
        """Forget everything learned during a round."""
        self.detected_items = []
        self.photo_location = None
        self.current_location = None
        self.score = 0
        self.last_distance = None
        self.captured_photo_data = None
        self.share_photo_data = None
        self.challenge_issued_at = None

    def has_target(self) -> bool:
        """Check if there is a photo location to walk towards."""
        return self.photo_location is not None

    def to_dict(self) -> dict[str, Any]:
        """Snapshot of the serializable fields."""
        return {
            "mode": self.mode.value,
            "detected_items": list(self.detected_items),
            "photo_location": self.photo_location.to_dict() if self.photo_location else None,
            "current_location": (
                self.current_location.to_dict() if self.current_location else None
            ),
            "score": self.score,
            "last_distance": self.last_distance,
            "has_photo": self.captured_photo_data is not None,
            "has_share_photo": self.share_photo_data is not None,
            "camera_live": self.camera_handle is not None,
            "location_watch_live": self.location_watch_handle is not None,
            "capture_enabled": self.capture_enabled,
            "challenge_issued_at": self.challenge_issued_at,
        }
