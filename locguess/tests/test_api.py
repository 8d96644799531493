"""
Tests for API layer.

Tests:
- Session lifecycle over HTTP
- The full photo -> items -> guessing loop
- Sharing and challenge decoding
- Error codes and status mapping
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from ..api import APIService, create_app
from ..api.schemas import CreateSessionRequest, PositionRequest
from ..challenge import ChallengeRecord, encode_record
from ..session import SessionManager
from ..vision import StaticDetectionModel
from .conftest import PHOTO_LAT, PHOTO_LNG


NEAR_LAT = PHOTO_LAT + 0.0001
FAR_LAT = PHOTO_LAT + 0.01


def detector():
    return StaticDetectionModel([
        {"class": "cup", "score": 0.92},
        {"class": "chair", "score": 0.71},
        {"class": "potted plant", "score": 0.31},
    ])


@pytest.fixture
def manager(config):
    return SessionManager(config=config, model_factory=detector)


@pytest.fixture
def client(manager, config):
    app = create_app(service=APIService(session_manager=manager), config=config)
    with TestClient(app) as client:
        yield client


def new_session(client, **body) -> dict:
    response = client.post("/api/v1/sessions", json=body or None)
    assert response.status_code == 200
    return response.json()


def capture(client, session_id, jpeg_bytes, accuracy=3.0, lat=PHOTO_LAT):
    return client.post(
        f"/api/v1/sessions/{session_id}/capture",
        files={"photo": ("photo.jpg", jpeg_bytes, "image/jpeg")},
        data={"latitude": str(lat), "longitude": str(PHOTO_LNG), "accuracy": str(accuracy)},
    )


def push(client, session_id, lat, lng=PHOTO_LNG, accuracy=5.0):
    return client.post(
        f"/api/v1/sessions/{session_id}/position",
        json={"latitude": lat, "longitude": lng, "accuracy": accuracy},
    )


class TestHealth:
    def test_health(self, client):
        """Health reports the active configuration."""
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["config"]["win_distance_m"] == 25.0
        assert data["config"]["capture_accuracy_m"] == 7.0


class TestSessions:
    """Tests for session lifecycle endpoints."""

    def test_create_session(self, client):
        """A plain session starts in photo mode with the camera live."""
        data = new_session(client)

        assert data["mode"] == "photo"
        assert data["camera_live"] is True
        assert data["location_watch_live"] is False
        assert data["capture_enabled"] is False
        assert data["score"] == 0

    def test_get_session(self, client):
        """Can get session state."""
        created = new_session(client)

        response = client.get(f"/api/v1/sessions/{created['session_id']}")

        assert response.status_code == 200
        assert response.json()["session_id"] == created["session_id"]

    def test_get_nonexistent_session(self, client):
        """Getting a nonexistent session returns 404."""
        response = client.get("/api/v1/sessions/nonexistent-id")

        assert response.status_code == 404
        assert response.json()["error_code"] == "SESSION_NOT_FOUND"

    def test_list_and_end_sessions(self, client, manager):
        """Ended sessions release sensors and disappear."""
        first = new_session(client)["session_id"]
        second = new_session(client)["session_id"]
        camera = manager.get_session(first).camera

        listed = client.get("/api/v1/sessions").json()
        assert listed["count"] == 2
        assert set(listed["sessions"]) == {first, second}

        response = client.delete(f"/api/v1/sessions/{first}")
        assert response.json()["success"] is True
        assert camera.active_streams == 0
        assert client.get(f"/api/v1/sessions/{first}").status_code == 404

        # Ending twice is reported, not an error
        assert client.delete(f"/api/v1/sessions/{first}").json()["success"] is False

    def test_position_enables_capture(self, client):
        """Accurate enough readings enable the capture button."""
        session_id = new_session(client)["session_id"]

        assert push(client, session_id, PHOTO_LAT, accuracy=20.0).json()["capture_enabled"] is False
        assert push(client, session_id, PHOTO_LAT, accuracy=4.0).json()["capture_enabled"] is True

    def test_invalid_position(self, client):
        """Out-of-range coordinates fail validation."""
        session_id = new_session(client)["session_id"]

        response = push(client, session_id, 123.0)

        assert response.status_code == 422


class TestGameLoop:
    """Tests for the full game over HTTP."""

    def test_full_round(self, client, jpeg_bytes):
        """Capture, confirm, walk to the spot, reset."""
        session_id = new_session(client)["session_id"]

        response = capture(client, session_id, jpeg_bytes)
        assert response.status_code == 200
        result = response.json()
        assert result["success"] is True
        assert result["session"]["mode"] == "items"
        assert result["session"]["detected_items"] == ["cup", "chair"]
        assert result["session"]["camera_live"] is False
        assert result["session"]["has_share_photo"] is True
        assert [p["label"] for p in result["predictions"]] == ["cup", "chair"]

        result = client.post(f"/api/v1/sessions/{session_id}/confirm").json()
        assert result["session"]["mode"] == "guessing"
        assert result["session"]["location_watch_live"] is True

        far = push(client, session_id, FAR_LAT).json()
        assert far["score"] == 0
        assert far["distance_m"] == pytest.approx(1112, rel=0.01)

        near = push(client, session_id, NEAR_LAT).json()
        assert near["score"] == 1
        assert near["status"]["kind"] == "success"

        # Score latches
        assert push(client, session_id, FAR_LAT).json()["score"] == 1

        result = client.post(f"/api/v1/sessions/{session_id}/reset").json()
        assert result["session"]["mode"] == "photo"
        assert result["session"]["detected_items"] == []
        assert result["session"]["camera_live"] is True

    def test_capture_with_poor_accuracy(self, client, jpeg_bytes):
        """A capture refused by the accuracy gate stays in photo mode."""
        session_id = new_session(client)["session_id"]

        result = capture(client, session_id, jpeg_bytes, accuracy=15.0).json()

        assert result["success"] is False
        assert result["errors"]
        assert result["session"]["mode"] == "photo"
        assert result["session"]["photo_location"] is None

    def test_unreadable_photo(self, client):
        """Garbage uploads are rejected before the state machine runs."""
        session_id = new_session(client)["session_id"]

        response = capture(client, session_id, b"definitely not a jpeg")

        assert response.status_code == 400
        assert response.json()["error_code"] == "PHOTO_UNREADABLE"

    def test_partial_position(self, client, jpeg_bytes):
        """Position fields must come together."""
        session_id = new_session(client)["session_id"]

        response = client.post(
            f"/api/v1/sessions/{session_id}/capture",
            files={"photo": ("photo.jpg", jpeg_bytes, "image/jpeg")},
            data={"latitude": str(PHOTO_LAT)},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_confirm_in_photo_mode(self, client):
        """Transitions from the wrong mode are rejected with 409."""
        session_id = new_session(client)["session_id"]

        response = client.post(f"/api/v1/sessions/{session_id}/confirm")

        assert response.status_code == 409
        data = response.json()
        assert data["error_code"] == "TRANSITION_REJECTED"
        assert data["details"] == {"mode": "photo"}

    def test_capture_unknown_session(self, client, jpeg_bytes):
        response = capture(client, "nonexistent-id", jpeg_bytes)
        assert response.status_code == 404


class TestSharing:
    """Tests for share and challenge endpoints."""

    def test_share_before_capture(self, client):
        """There is nothing to share without a photo location."""
        session_id = new_session(client)["session_id"]

        response = client.get(f"/api/v1/sessions/{session_id}/share")

        assert response.status_code == 409
        assert response.json()["error_code"] == "NOTHING_TO_SHARE"

    def test_share_and_play_challenge(self, client, jpeg_bytes):
        """A shared challenge starts someone else's game in guessing mode."""
        session_id = new_session(client)["session_id"]
        capture(client, session_id, jpeg_bytes)

        share = client.get(
            f"/api/v1/sessions/{session_id}/share",
            params={"base_url": "https://friend.example/"},
        ).json()
        assert share["url"].startswith("https://friend.example/?challenge=")
        assert share["qr_payload"] == share["url"]
        assert "cup, chair" in share["text"]

        decoded = client.post("/api/v1/challenges/decode", json={"token": share["token"]}).json()
        assert decoded["items"] == ["cup", "chair"]
        assert decoded["lat"] == PHOTO_LAT
        assert decoded["version"] == 2
        assert decoded["photo"].startswith("data:image/jpeg;base64,")

        friend = new_session(client, challenge=share["token"])
        assert friend["mode"] == "guessing"
        assert friend["camera_live"] is False
        assert friend["detected_items"] == ["cup", "chair"]
        assert friend["has_share_photo"] is True
        assert friend["challenge_issued_at"] is not None

        assert push(client, friend["session_id"], NEAR_LAT).json()["score"] == 1

    def test_invalid_challenge_session(self, client):
        """A broken link still gives a playable game."""
        data = new_session(client, challenge="not-base64!!")

        assert data["mode"] == "photo"
        assert data["status"]["text"] == "Invalid challenge link. Starting a new game instead."

    def test_decode_invalid(self, client):
        response = client.post("/api/v1/challenges/decode", json={"token": "not-base64!!"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_CHALLENGE"

    def test_legacy_items_session(self, client):
        data = new_session(client, items="cup,chair")

        assert data["mode"] == "guessing"
        assert data["photo_location"] is None
        assert data["detected_items"] == ["cup", "chair"]


class TestAPIService:
    """Tests for APIService without HTTP."""

    def test_create_and_push(self, manager):
        service = APIService(session_manager=manager)

        async def scenario():
            session = await service.create_session(CreateSessionRequest())
            return service.push_position(
                session.session_id,
                PositionRequest(latitude=PHOTO_LAT, longitude=PHOTO_LNG, accuracy=2.0),
            )

        response = asyncio.run(scenario())

        assert response.capture_enabled is True
        assert response.current_location is None

    def test_decode_challenge(self, manager):
        service = APIService(session_manager=manager)
        token = encode_record(ChallengeRecord(items=("cup",), lat=1.5, lng=2.5))

        response = service.decode_challenge(token)

        assert response.items == ["cup"]
        assert response.issued_at is None
