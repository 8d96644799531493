"""
Game configuration.

All tunables live here. Values come from defaults or from LOCGUESS_*
environment variables via GameConfig.from_env().

The win distance and the capture accuracy gate are independent policy
parameters. Earlier versions of the game used a 10m win distance and no
accuracy gate at all; the current defaults are 25m and 7m.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any
import os


DEFAULT_CAPTURE_ACCURACY_M = 7.0
DEFAULT_WIN_DISTANCE_M = 25.0
DEFAULT_SCORE_THRESHOLD = 0.5
DEFAULT_POSITION_TIMEOUT_S = 10.0


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    if raw.strip().lower() in {"none", "off", "disabled"}:
        return None
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return int(raw)


@dataclass
class GameConfig:
    """
    Configuration for one game instance.

    capture_accuracy_m set to None disables accuracy gating.
    """
    # Gameplay policy
    capture_accuracy_m: float | None = DEFAULT_CAPTURE_ACCURACY_M
    win_distance_m: float = DEFAULT_WIN_DISTANCE_M
    score_threshold: float = DEFAULT_SCORE_THRESHOLD

    # Sensors
    position_timeout_s: float = DEFAULT_POSITION_TIMEOUT_S
    facing_mode: str = "environment"
    camera_width: int = 640
    camera_height: int = 480

    # Photo payloads
    photo_quality: int = 90
    thumbnail_size: int = 160
    thumbnail_quality: int = 50

    # Sharing
    share_base_url: str = "http://localhost:8000/"
    share_title: str = "Location Guessing Game"

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> GameConfig:
        """Build a config from LOCGUESS_* environment variables."""
        defaults = cls()
        win = _env_float("LOCGUESS_WIN_DISTANCE_M", defaults.win_distance_m)
        score = _env_float("LOCGUESS_SCORE_THRESHOLD", defaults.score_threshold)
        timeout = _env_float("LOCGUESS_POSITION_TIMEOUT_S", defaults.position_timeout_s)
        return cls(
            capture_accuracy_m=_env_float(
                "LOCGUESS_CAPTURE_ACCURACY_M", defaults.capture_accuracy_m
            ),
            win_distance_m=win if win is not None else defaults.win_distance_m,
            score_threshold=score if score is not None else defaults.score_threshold,
            position_timeout_s=timeout if timeout is not None else defaults.position_timeout_s,
            facing_mode=os.getenv("LOCGUESS_FACING_MODE", defaults.facing_mode),
            camera_width=_env_int("LOCGUESS_CAMERA_WIDTH", defaults.camera_width),
            camera_height=_env_int("LOCGUESS_CAMERA_HEIGHT", defaults.camera_height),
            photo_quality=_env_int("LOCGUESS_PHOTO_QUALITY", defaults.photo_quality),
            thumbnail_size=_env_int("LOCGUESS_THUMBNAIL_SIZE", defaults.thumbnail_size),
            thumbnail_quality=_env_int(
                "LOCGUESS_THUMBNAIL_QUALITY", defaults.thumbnail_quality
            ),
            share_base_url=os.getenv("LOCGUESS_SHARE_BASE_URL", defaults.share_base_url),
            share_title=os.getenv("LOCGUESS_SHARE_TITLE", defaults.share_title),
            log_level=os.getenv("LOCGUESS_LOG_LEVEL", defaults.log_level).upper(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "capture_accuracy_m": self.capture_accuracy_m,
            "win_distance_m": self.win_distance_m,
            "score_threshold": self.score_threshold,
            "position_timeout_s": self.position_timeout_s,
            "facing_mode": self.facing_mode,
            "camera_width": self.camera_width,
            "camera_height": self.camera_height,
            "photo_quality": self.photo_quality,
            "thumbnail_size": self.thumbnail_size,
            "thumbnail_quality": self.thumbnail_quality,
            "share_base_url": self.share_base_url,
            "share_title": self.share_title,
            "log_level": self.log_level,
        }
