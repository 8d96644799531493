"""
Challenge Codec - GameState <-> URL token.

encode: record -> compact JSON -> UTF-8 -> base64
decode: the reverse, then version migration and validation

decode never raises. Anything wrong with a token (bad base64, bad UTF-8,
bad JSON, wrong types, missing fields) comes back as a failed
DecodeResult, and the caller falls back to a normal game start.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit
import base64
import binascii
import json
import logging
import time

from ..engine_core.state import GameState
from ..exceptions import MalformedChallengeError
from .record import ChallengeRecord, upgrade_payload

logger = logging.getLogger(__name__)

CHALLENGE_PARAM = "challenge"
ITEMS_PARAM = "items"
COORDINATE_PLACES = 6
SHARED_ITEMS_TYPE = "location-guessing-game"


@dataclass
class DecodeResult:
    """Outcome of decoding a token: a record, or the reason it failed."""
    ok: bool
    record: ChallengeRecord | None = None
    error: str | None = None

    @classmethod
    def success(cls, record: ChallengeRecord) -> DecodeResult:
        return cls(ok=True, record=record)

    @classmethod
    def failure(cls, error: str) -> DecodeResult:
        return cls(ok=False, error=error)

    def unwrap(self) -> ChallengeRecord:
        """Return the record or raise MalformedChallengeError."""
        if not self.ok or self.record is None:
            raise MalformedChallengeError(self.error or "unknown error")
        return self.record


def build_record(state: GameState, now: float | None = None) -> ChallengeRecord:
    """
    Snapshot the shareable part of a game.

    Raises MalformedChallengeError when there is no photo location, since a
    challenge without a target can't be played.
    """
    if state.photo_location is None:
        raise MalformedChallengeError("no photo location to share")
    location = state.photo_location.rounded(COORDINATE_PLACES)
    return ChallengeRecord(
        items=tuple(state.detected_items),
        lat=location.latitude,
        lng=location.longitude,
        photo=state.share_photo_data,
        issued_at=int(now if now is not None else time.time()),
    )


def encode_record(record: ChallengeRecord) -> str:
    """Serialize a record into a token."""
    text = record.to_payload().model_dump_json(exclude_none=True)
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def encode(state: GameState, now: float | None = None) -> str:
    """Token for the current game."""
    return encode_record(build_record(state, now))


def _b64decode(token: str) -> bytes:
    # Query parsing turns '+' into ' '; url-safe alphabets are accepted too
    cleaned = token.strip().replace(" ", "+").replace("-", "+").replace("_", "/")
    cleaned += "=" * (-len(cleaned) % 4)
    return base64.b64decode(cleaned, validate=True)


def decode(token: str | None) -> DecodeResult:
    """Turn a token back into a ChallengeRecord, or report why not."""
    if not token:
        return DecodeResult.failure("empty token")

    try:
        raw = _b64decode(token)
    except (binascii.Error, ValueError):
        return DecodeResult.failure("token is not valid base64")

    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return DecodeResult.failure("token does not contain valid JSON")

    if not isinstance(data, dict):
        return DecodeResult.failure("challenge payload is not an object")

    try:
        payload = upgrade_payload(data)
    except (TypeError, ValueError, OverflowError) as e:
        logger.debug(f"Challenge payload rejected: {e}")
        return DecodeResult.failure("challenge payload has invalid fields")

    missing = payload.missing_fields()
    if missing:
        return DecodeResult.failure(f"missing {', '.join(missing)}")

    return DecodeResult.success(payload.to_record())


# =============================================================================
# URLs
# =============================================================================

def challenge_url(base_url: str, token: str) -> str:
    """base_url with ?challenge=<token>, replacing any existing challenge."""
    parts = urlsplit(base_url)
    query = {k: v for k, v in parse_qs(parts.query).items() if k != CHALLENGE_PARAM}
    pairs: list[tuple[str, str]] = [(k, v) for k, values in query.items() for v in values]
    pairs.append((CHALLENGE_PARAM, token))
    return urlunsplit(parts._replace(query=urlencode(pairs)))


def token_from_url(url: str) -> str | None:
    """Extract the challenge token from a share URL."""
    values = parse_qs(urlsplit(url).query).get(CHALLENGE_PARAM)
    return values[0] if values else None


def shared_items_payload(items: list[str], now: float | None = None) -> str:
    """JSON text for an item-only share, also the QR code payload."""
    timestamp = int((now if now is not None else time.time()) * 1000)
    return json.dumps({
        "type": SHARED_ITEMS_TYPE,
        "items": list(items),
        "timestamp": timestamp,
    })


def parse_shared_items(data: Any) -> list[str] | None:
    """
    Read the legacy `items` parameter.

    Accepts the JSON object produced by shared_items_payload, or a plain
    comma-separated list. Returns None when nothing usable is found.
    """
    if not isinstance(data, str) or not data.strip():
        return None
    try:
        parsed = json.loads(data)
    except ValueError:
        if "," in data:
            items = [item.strip() for item in data.split(",")]
            return [item for item in items if item] or None
        return None
    if isinstance(parsed, dict) and parsed.get("type") == SHARED_ITEMS_TYPE:
        items = parsed.get("items")
        if isinstance(items, list) and items:
            return [str(item) for item in items]
    return None
