"""
Tests for challenge tokens.
"""

import base64
import json

import pytest

from ..challenge import (
    ChallengeRecord,
    build_record,
    challenge_url,
    decode,
    encode,
    encode_record,
    parse_shared_items,
    shared_items_payload,
    token_from_url,
)
from ..challenge.record import detect_version, upgrade_payload
from ..engine_core.state import GameState, Location
from ..exceptions import MalformedChallengeError


def make_token(data) -> str:
    return base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")


class TestEncode:
    """Tests for building tokens from game state."""

    def test_record_rounds_coordinates(self, captured_state):
        record = build_record(captured_state, now=1_700_000_000)

        assert record.items == ("cup", "chair")
        assert record.lat == 59.329323
        assert record.lng == 18.068581
        assert record.photo == "data:image/jpeg;base64,/9j/4AAQ"
        assert record.issued_at == 1_700_000_000
        assert record.version == 2

    def test_token_is_compact_v2_json(self, captured_state):
        token = encode(captured_state, now=1_700_000_000)
        data = json.loads(base64.b64decode(token))

        assert data == {
            "v": 2,
            "items": ["cup", "chair"],
            "lat": 59.329323,
            "lng": 18.068581,
            "photo": "data:image/jpeg;base64,/9j/4AAQ",
            "t": 1_700_000_000,
        }

    def test_photo_omitted_when_absent(self, captured_state):
        captured_state.share_photo_data = None
        data = json.loads(base64.b64decode(encode(captured_state, now=1)))
        assert "photo" not in data

    def test_no_location_raises(self):
        state = GameState(detected_items=["cup"])
        with pytest.raises(MalformedChallengeError):
            encode(state)

    def test_decode_reverses_encode(self, captured_state):
        record = build_record(captured_state, now=1_700_000_000)
        result = decode(encode_record(record))

        assert result.ok
        assert result.record == record

    def test_non_ascii_labels(self):
        state = GameState(detected_items=["café", "ölglas"], photo_location=Location(1.5, 2.5))
        result = decode(encode(state, now=5))
        assert result.record.items == ("café", "ölglas")


class TestDecodeFailures:
    """decode reports every malformed token as a failure and never raises."""

    @pytest.mark.parametrize("token", [
        None,
        "",
        "not-base64!!",
        "%%%%",
        base64.b64encode(b"\xff\xfe\xfd").decode(),
        base64.b64encode(b"{not json").decode(),
        make_token([1, 2, 3]),
        make_token("just a string"),
        make_token({"items": "cup", "lat": 1.0, "lng": 2.0}),
        make_token({"items": ["cup"], "lat": "north", "lng": 2.0}),
        make_token({"items": ["cup"], "lat": 95.0, "lng": 2.0}),
        make_token({"items": ["cup"], "lat": 1.0, "lng": 200.0}),
        make_token({"v": 7, "items": ["cup"], "lat": 1.0, "lng": 2.0}),
        make_token({"v": 0, "items": ["cup"], "lat": 1.0, "lng": 2.0}),
        make_token({"v": float("inf"), "items": ["cup"], "lat": 1.5, "lng": 2.5}),
        base64.b64encode(b'{"v": 1e400, "items": ["cup"], "lat": 1.5, "lng": 2.5}').decode(),
        make_token({"v": True, "items": ["cup"], "lat": 1.5, "lng": 2.5}),
        make_token({"v": 2.7, "items": ["cup"], "lat": 1.5, "lng": 2.5}),
        make_token({"v": "2", "items": ["cup"], "lat": 1.5, "lng": 2.5}),
        make_token({}),
    ])
    def test_malformed(self, token):
        result = decode(token)
        assert not result.ok
        assert result.record is None
        assert result.error

    def test_unwrap_raises_for_failure(self):
        with pytest.raises(MalformedChallengeError) as exc_info:
            decode("not-base64!!").unwrap()
        assert str(exc_info.value).startswith("Invalid challenge:")

    def test_missing_fields_are_named(self):
        result = decode(make_token({"items": ["cup"], "lat": 1.0}))
        assert result.error == "missing lng"

    def test_zero_latitude_is_rejected(self):
        # Presence is checked by truthiness
        result = decode(make_token({"items": ["cup"], "lat": 0, "lng": 18.0}))
        assert not result.ok
        assert "lat" in result.error

    def test_zero_longitude_is_rejected(self):
        state = GameState(detected_items=["cup"], photo_location=Location(51.47, 0.0))
        result = decode(encode(state, now=1))
        assert not result.ok
        assert "lng" in result.error

    def test_empty_items_are_rejected(self):
        result = decode(make_token({"items": [], "lat": 1.0, "lng": 2.0}))
        assert not result.ok
        assert "items" in result.error


class TestDecodeLenient:
    """Transport damage that decode tolerates."""

    def test_spaces_from_query_parsing(self, captured_state):
        token = encode(captured_state, now=1_700_000_000)
        assert decode(token.replace("+", " ")).ok

    def test_missing_padding(self, captured_state):
        token = encode(captured_state, now=1_700_000_000)
        assert decode(token.rstrip("=")).ok

    def test_urlsafe_alphabet(self, captured_state):
        token = encode(captured_state, now=1_700_000_000)
        urlsafe = token.replace("+", "-").replace("/", "_")
        assert decode(urlsafe).record == decode(token).record

    def test_unknown_fields_ignored(self):
        result = decode(make_token({"items": ["cup"], "lat": 1.0, "lng": 2.0, "zoom": 3}))
        assert result.ok


class TestLegacyTokens:
    """Tests for v1 tokens."""

    def test_v1_is_migrated(self):
        token = make_token({
            "detectedItems": ["cup", "chair"],
            "photoLocation": {"latitude": 59.329323, "longitude": 18.068581},
            "capturedPhotoData": "data:image/jpeg;base64,AAAA",
        })
        result = decode(token)

        assert result.ok
        assert result.record == ChallengeRecord(
            items=("cup", "chair"),
            lat=59.329323,
            lng=18.068581,
            photo="data:image/jpeg;base64,AAAA",
            issued_at=None,
        )

    def test_v1_without_location_fails(self):
        result = decode(make_token({"detectedItems": ["cup"]}))
        assert not result.ok

    def test_detect_version(self):
        assert detect_version({"v": 2}) == 2
        assert detect_version({"items": []}) == 2
        assert detect_version({"detectedItems": []}) == 1
        assert detect_version({}) == 2

    def test_upgrade_rejects_unknown_version(self):
        with pytest.raises(ValueError):
            upgrade_payload({"v": 3})

    @pytest.mark.parametrize("version", [True, False, 2.0, 2.7, "2", None])
    def test_version_must_be_an_integer(self, version):
        with pytest.raises(ValueError):
            detect_version({"v": version})


class TestUrls:
    """Tests for share URLs and the legacy items parameter."""

    def test_challenge_url_round_trip(self, captured_state):
        token = encode(captured_state, now=1_700_000_000)
        url = challenge_url("https://game.example/play", token)

        assert url.startswith("https://game.example/play?challenge=")
        assert token_from_url(url) == token

    def test_challenge_url_replaces_existing_token(self):
        url = challenge_url("https://game.example/play?lang=en&challenge=old", "new")
        assert url == "https://game.example/play?lang=en&challenge=new"

    def test_token_from_url_without_param(self):
        assert token_from_url("https://game.example/play?lang=en") is None

    def test_shared_items_payload(self):
        data = json.loads(shared_items_payload(["cup", "chair"], now=1_700_000_000.5))
        assert data == {
            "type": "location-guessing-game",
            "items": ["cup", "chair"],
            "timestamp": 1_700_000_000_500,
        }

    def test_parse_shared_items_json(self):
        assert parse_shared_items(shared_items_payload(["cup"])) == ["cup"]

    def test_parse_shared_items_comma_list(self):
        assert parse_shared_items("cup, chair,,") == ["cup", "chair"]

    @pytest.mark.parametrize("data", [None, "", "   ", "cup", '{"type": "other", "items": ["cup"]}', "[1]"])
    def test_parse_shared_items_unusable(self, data):
        assert parse_shared_items(data) is None
