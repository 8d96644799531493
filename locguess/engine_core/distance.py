"""
Distance Evaluator - great-circle distance and the win check.

Pure functions, no state.
"""

from __future__ import annotations
from math import asin, cos, radians, sin, sqrt

from .state import Location


EARTH_RADIUS_M = 6_371_000


def distance_meters(a: Location, b: Location) -> float:
    """Return the haversine distance between two points in meters."""
    lat1 = radians(a.latitude)
    lat2 = radians(b.latitude)
    d_lat = lat2 - lat1
    d_lng = radians(b.longitude - a.longitude)

    h = sin(d_lat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(d_lng / 2) ** 2
    # Clamp against rounding just above 1 for antipodal points
    return 2 * EARTH_RADIUS_M * asin(min(1.0, sqrt(h)))


def check_win(photo_location: Location, current_location: Location, threshold_m: float) -> bool:
    """True if the player is within threshold_m of where the photo was taken."""
    return distance_meters(photo_location, current_location) <= threshold_m
