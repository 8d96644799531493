"""
Vision Layer - Object detection on captured frames.

Architecture:
    Camera frame -> DetectionAdapter -> [Prediction] -> item labels

The detection model itself is external. This layer only decides which of
its predictions count and turns frames into shareable photo payloads.
"""

from .proposal import Prediction, CameraConstraints
from .processor import (
    DetectionModel,
    StaticDetectionModel,
    DetectionAdapter,
    filter_predictions,
)
from .imaging import encode_photo, make_thumbnail, load_frame, decode_data_url

__all__ = [
    "Prediction",
    "CameraConstraints",
    "DetectionModel",
    "StaticDetectionModel",
    "DetectionAdapter",
    "filter_predictions",
    "encode_photo",
    "make_thumbnail",
    "load_frame",
    "decode_data_url",
]
