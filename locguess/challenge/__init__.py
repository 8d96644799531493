"""
Challenge - Sharing a puzzle through a URL.

    GameState -> ChallengeRecord -> JSON -> base64 -> ?challenge=<token>

Decoding accepts the current layout and migrates the legacy one.
"""

from .record import (
    ChallengeRecord,
    ChallengePayload,
    LegacyChallengePayload,
    CURRENT_VERSION,
    LEGACY_VERSION,
    detect_version,
    upgrade_payload,
)
from .codec import (
    DecodeResult,
    CHALLENGE_PARAM,
    ITEMS_PARAM,
    build_record,
    encode,
    encode_record,
    decode,
    challenge_url,
    token_from_url,
    shared_items_payload,
    parse_shared_items,
)

__all__ = [
    "ChallengeRecord",
    "ChallengePayload",
    "LegacyChallengePayload",
    "CURRENT_VERSION",
    "LEGACY_VERSION",
    "detect_version",
    "upgrade_payload",
    "DecodeResult",
    "CHALLENGE_PARAM",
    "ITEMS_PARAM",
    "build_record",
    "encode",
    "encode_record",
    "decode",
    "challenge_url",
    "token_from_url",
    "shared_items_payload",
    "parse_shared_items",
]
