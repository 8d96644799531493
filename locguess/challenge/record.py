"""
Challenge Record - The shareable puzzle and its wire schemas.

A challenge carries the detected items, where the photo was taken, an
optional thumbnail and when it was issued. It travels as base64 JSON in
the `challenge` query parameter.

Wire versions:
- v1 (legacy): {"detectedItems": [...], "photoLocation": {"latitude", "longitude"},
  "capturedPhotoData": "..."}
- v2 (current): {"v": 2, "items": [...], "lat": ..., "lng": ..., "photo": "...", "t": ...}

v1 tokens carry no version field; they are recognised by their field
names and migrated to v2 before validation.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field


CURRENT_VERSION = 2
LEGACY_VERSION = 1


@dataclass(frozen=True)
class ChallengeRecord:
    """
    An immutable puzzle.

    issued_at is epoch seconds; v1 tokens never carried it, so it is None
    for migrated records.
    """
    items: tuple[str, ...]
    lat: float
    lng: float
    photo: str | None = None
    issued_at: int | None = None
    version: int = CURRENT_VERSION

    def to_payload(self) -> ChallengePayload:
        return ChallengePayload(
            v=self.version,
            items=list(self.items),
            lat=self.lat,
            lng=self.lng,
            photo=self.photo,
            t=self.issued_at,
        )


# =============================================================================
# Wire schemas
# =============================================================================

class ChallengePayload(BaseModel):
    """Current (v2) wire layout. Every field optional so validation can report what is missing."""
    model_config = ConfigDict(extra="ignore")

    v: int = CURRENT_VERSION
    items: Optional[list[str]] = None
    lat: Optional[float] = Field(None, ge=-90.0, le=90.0)
    lng: Optional[float] = Field(None, ge=-180.0, le=180.0)
    photo: Optional[str] = None
    t: Optional[int] = None

    def missing_fields(self) -> list[str]:
        """
        Fields that fail the presence check.

        The check is by truthiness, so a latitude or longitude of exactly 0
        and an empty item list all count as missing. Tokens for points on
        the equator or the prime meridian are therefore rejected.
        """
        missing = []
        if not self.items:
            missing.append("items")
        if not self.lat:
            missing.append("lat")
        if not self.lng:
            missing.append("lng")
        return missing

    def to_record(self) -> ChallengeRecord:
        return ChallengeRecord(
            items=tuple(self.items or ()),
            lat=float(self.lat),
            lng=float(self.lng),
            photo=self.photo or None,
            issued_at=self.t,
            version=CURRENT_VERSION,
        )


class LegacyPhotoLocation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    latitude: Optional[float] = None
    longitude: Optional[float] = None


class LegacyChallengePayload(BaseModel):
    """v1 wire layout, a direct dump of the old game state fields."""
    model_config = ConfigDict(extra="ignore")

    detectedItems: Optional[list[str]] = None
    photoLocation: Optional[LegacyPhotoLocation] = None
    capturedPhotoData: Optional[str] = None


# =============================================================================
# Version detection and migration
# =============================================================================

_PRIMARY_FIELDS = ("items", "lat", "lng")
_LEGACY_FIELDS = ("detectedItems", "photoLocation")


def detect_version(data: dict[str, Any]) -> int:
    """
    Work out which wire layout a parsed payload uses.

    Raises ValueError when `v` is present but not an integer; booleans and
    floats are not versions.
    """
    if "v" in data:
        version = data["v"]
        if not isinstance(version, int) or isinstance(version, bool):
            raise ValueError(f"Challenge version must be an integer, got {version!r}")
        return version
    if any(name in data for name in _PRIMARY_FIELDS):
        return CURRENT_VERSION
    if any(name in data for name in _LEGACY_FIELDS):
        return LEGACY_VERSION
    return CURRENT_VERSION


def migrate_v1(data: dict[str, Any]) -> dict[str, Any]:
    """Rewrite a v1 payload into the v2 layout."""
    legacy = LegacyChallengePayload.model_validate(data)
    location = legacy.photoLocation or LegacyPhotoLocation()
    return {
        "v": CURRENT_VERSION,
        "items": legacy.detectedItems,
        "lat": location.latitude,
        "lng": location.longitude,
        "photo": legacy.capturedPhotoData,
    }


# version -> function producing the next version's layout
MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    LEGACY_VERSION: migrate_v1,
}


def upgrade_payload(data: dict[str, Any]) -> ChallengePayload:
    """
    Migrate a parsed payload of any known version to the current schema.

    Raises ValueError for versions with no migration path.
    """
    version = detect_version(data)
    while version < CURRENT_VERSION:
        migrate = MIGRATIONS.get(version)
        if migrate is None:
            raise ValueError(f"No migration from challenge version {version}")
        data = migrate(data)
        version = detect_version(data)
    if version != CURRENT_VERSION:
        raise ValueError(f"Unsupported challenge version {version}")
    return ChallengePayload.model_validate(data)
