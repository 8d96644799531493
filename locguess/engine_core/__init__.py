"""
Engine Core - Game state record and distance evaluation.

Holds no I/O. The session layer owns a GameState and uses the
distance functions to decide when the player has found the spot.
"""

from .state import GameMode, GameState, Location, StatusMessage
from .distance import EARTH_RADIUS_M, distance_meters, check_win

__all__ = [
    "GameMode",
    "GameState",
    "Location",
    "StatusMessage",
    "EARTH_RADIUS_M",
    "distance_meters",
    "check_win",
]
