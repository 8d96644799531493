"""
Detection Adapter - Wraps the object-detection model.

The model is an external capability: hand it a frame, get back scored
labelled predictions. This module handles:
1. Readiness (the model loads asynchronously)
2. Score filtering
3. Label de-duplication

The adapter never touches sensors. Callers check `ready` before acquiring
a position or grabbing a frame, so a capture is rejected early when the
model is still loading.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping
import inspect
import logging

from ..exceptions import CapabilityNotReadyError, DetectionFailedError
from .proposal import Prediction

logger = logging.getLogger(__name__)


class DetectionModel(ABC):
    """
    Abstract base class for detection models.

    Implementations:
    - StaticDetectionModel: canned predictions for testing and demos
    - Anything wrapping a real model (COCO-SSD, YOLO, ...)

    `detect` may be a plain method or a coroutine.
    """

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """True once the model has finished loading."""
        pass

    async def load(self) -> None:
        """Load weights. Default: nothing to load."""
        return None

    @abstractmethod
    def detect(self, frame: Any) -> Any:
        """Return a list of {"class": str, "score": float} for the frame."""
        pass


class StaticDetectionModel(DetectionModel):
    """
    Detection model returning predefined predictions.

    Starts unloaded unless `preloaded` is set; `load()` flips it ready.
    Counts detect calls so tests can assert one inference per capture.
    """

    def __init__(
        self,
        predictions: Iterable[Mapping[str, Any]] | None = None,
        preloaded: bool = True,
    ):
        self.predictions = list(predictions or [])
        self._ready = preloaded
        self.detect_calls = 0

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def load(self) -> None:
        self._ready = True

    def detect(self, frame: Any) -> list[dict[str, Any]]:
        self.detect_calls += 1
        return [dict(p) for p in self.predictions]


def filter_predictions(
    raw_predictions: Iterable[Prediction | Mapping[str, Any]],
    threshold: float = 0.5,
) -> list[Prediction]:
    """
    Keep predictions scoring above threshold, one per label.

    A score equal to the threshold is dropped. The first occurrence of a
    label wins, so the result keeps detection order.
    """
    seen: set[str] = set()
    kept: list[Prediction] = []
    for raw in raw_predictions:
        prediction = Prediction.from_raw(raw)
        if prediction.score <= threshold:
            continue
        if prediction.label in seen:
            continue
        seen.add(prediction.label)
        kept.append(prediction)
    return kept


class DetectionAdapter:
    """
    Runs the detection model once per capture and cleans up its output.

    Usage:
        adapter = DetectionAdapter(model)
        await adapter.load()

        if adapter.ready:
            predictions = await adapter.detect(frame)
    """

    def __init__(self, model: DetectionModel | None = None, score_threshold: float = 0.5):
        self.model = model
        self.score_threshold = score_threshold

    @property
    def ready(self) -> bool:
        return self.model is not None and self.model.is_ready

    def ensure_ready(self) -> None:
        """Raise CapabilityNotReadyError unless the model can be used."""
        if not self.ready:
            raise CapabilityNotReadyError("Detection model not loaded yet")

    async def load(self) -> None:
        if self.model is None:
            raise CapabilityNotReadyError("No detection model configured")
        logger.info("Loading detection model")
        await self.model.load()
        logger.info("Detection model loaded")

    async def detect(self, frame: Any) -> list[Prediction]:
        """
        Run one inference and return the filtered, de-duplicated predictions.

        The model is a black box: anything it raises, and any output that
        isn't a list of scored predictions, becomes DetectionFailedError.
        """
        self.ensure_ready()

        try:
            raw = self.model.detect(frame)
            if inspect.isawaitable(raw):
                raw = await raw
        except Exception as e:
            logger.warning(f"Detection model failed: {e!r}")
            raise DetectionFailedError(f"Detection model failed: {e}") from e

        try:
            predictions = filter_predictions(raw or [], self.score_threshold)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Unreadable detection output: {e}")
            raise DetectionFailedError(f"Unreadable detection output: {e}") from e
        logger.debug(f"Detection kept {len(predictions)} prediction(s)")
        return predictions
