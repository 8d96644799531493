"""
Sensors - Camera and geolocation lifecycles.

The camera is live only in Photo mode and the location watch only in
Guessing mode. The SensorManager enforces one-of-each and hands out
closeable handles so release can't be forgotten on an error path.
"""

from .providers import (
    PositionReading,
    CameraStream,
    CameraProvider,
    PositionProvider,
    StillImageCamera,
    PushedPositionProvider,
    UnsupportedPositionProvider,
)
from .manager import (
    Subscription,
    CameraHandle,
    LocationWatch,
    AccuracyGate,
    SensorManager,
)

__all__ = [
    "PositionReading",
    "CameraStream",
    "CameraProvider",
    "PositionProvider",
    "StillImageCamera",
    "PushedPositionProvider",
    "UnsupportedPositionProvider",
    "Subscription",
    "CameraHandle",
    "LocationWatch",
    "AccuracyGate",
    "SensorManager",
]
