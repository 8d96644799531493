"""
Detection data structures.

A Prediction is what the detection model reports for one object in a
frame. Predictions are transient: they are produced per capture, filtered,
and only the labels survive into the game state.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class Prediction:
    """One labelled detection with its confidence score (0-1)."""
    label: str
    score: float

    @classmethod
    def from_raw(cls, raw: Prediction | Mapping[str, Any]) -> Prediction:
        """
        Build from a model result.

        Detection models report {"class": ..., "score": ...}; "label" is
        accepted as an alias for "class".
        """
        if isinstance(raw, Prediction):
            return raw
        label = raw.get("class", raw.get("label"))
        if label is None:
            raise ValueError(f"Prediction without a class: {raw!r}")
        return cls(label=str(label), score=float(raw.get("score", 0.0)))


@dataclass
class CameraConstraints:
    """What to ask for when opening a camera."""
    facing_mode: str = "environment"  # Rear-facing camera preferred
    width: int = 640
    height: int = 480
