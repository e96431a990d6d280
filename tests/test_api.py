"""
Tests for the HTTP API.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from access_control.main import app
from access_control.models.internal_models import (
    AccessStatus,
    EventStats,
    IdentityType,
    ScanEvent,
    ScanOutcome,
)
from access_control.services.access_service import (
    DuplicateIdentifier,
    IdentityNotFound,
    StorageUnavailable,
    get_access_service,
)
from access_control.services.matching_service import FaceMatcher
from access_control.utils.encoding_utils import FormatError

from conftest import make_identity


@pytest.fixture
def mock_service():
    service = Mock()
    service.matcher = FaceMatcher()
    service.db = Mock()
    service.db.health_check = AsyncMock(return_value=True)
    return service


@pytest.fixture
def client(mock_service):
    app.dependency_overrides[get_access_service] = lambda: mock_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def employee(sample_vector):
    return make_identity(sample_vector, card_id="EMP001", name="John Doe")


class TestServiceEndpoints:
    """Test cases for service-level endpoints."""

    def test_app_creation(self):
        assert app.title == "Face Access Control Service"

    def test_health_check(self, client):
        response = client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert data["version"] == "1.0.0"

    def test_access_health_check(self, client, mock_service):
        mock_service.db.health_check = AsyncMock(return_value=False)

        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["components"]["matcher"]["details"]["threshold"] == 0.6

    def test_metrics_endpoint(self, client):
        client.get("/healthz")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.json()["metrics"]["total_requests"] >= 1

    def test_correlation_id_is_echoed(self, client):
        response = client.get("/api/v1/health", headers={"X-Call-ID": "call-123"})

        assert response.headers["X-Call-ID"] == "call-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestScanEndpoint:
    """Test cases for POST /api/v1/scan."""

    def test_scan_identified(self, client, mock_service, employee, sample_encoding):
        mock_service.scan = AsyncMock(return_value=ScanOutcome(
            status=AccessStatus.IDENTIFIED,
            event_id="42",
            identity=employee,
            confidence=0.934567891,
            quality="Excellent",
            distance=0.065432109
        ))

        response = client.post("/api/v1/scan", json={"faceEncoding": sample_encoding})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "IDENTIFIED"
        assert data["user"]["cardId"] == "EMP001"
        assert data["confidence"] == 0.9346
        assert data["quality"] == "Excellent"
        assert data["eventId"] == "42"
        mock_service.scan.assert_called_once_with(sample_encoding)

    def test_scan_denied_is_not_an_error(self, client, mock_service, sample_encoding):
        mock_service.scan = AsyncMock(return_value=ScanOutcome(status=AccessStatus.DENIED, event_id="43"))

        response = client.post("/api/v1/scan", json={"faceEncoding": sample_encoding})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "DENIED"
        assert data["user"] is None
        assert data["confidence"] is None

    def test_scan_invalid_encoding(self, client, mock_service):
        mock_service.scan = AsyncMock(side_effect=FormatError("Encoding must contain exactly 128 values, got 3"))

        response = client.post(
            "/api/v1/scan",
            json={"faceEncoding": "MC4xLDAuMiwwLjM="},
            headers={"X-Call-ID": "scan-1"}
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "InvalidEncoding"
        assert "got 3" in data["message"]
        assert data["correlation_id"] == "scan-1"

    def test_scan_missing_encoding(self, client):
        response = client.post("/api/v1/scan", json={})
        assert response.status_code == 422

    def test_scan_storage_unavailable(self, client, mock_service, sample_encoding):
        mock_service.scan = AsyncMock(side_effect=StorageUnavailable("Failed to load identities"))

        response = client.post("/api/v1/scan", json={"faceEncoding": sample_encoding})

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"
        assert response.json()["error"] == "StorageUnavailable"

    def test_scan_unexpected_error(self, client, mock_service, sample_encoding):
        mock_service.scan = AsyncMock(side_effect=RuntimeError("boom"))

        response = client.post("/api/v1/scan", json={"faceEncoding": sample_encoding})

        assert response.status_code == 500
        assert response.json()["error"] == "InternalServerError"


class TestScanHistoryEndpoints:
    """Test cases for scan events and statistics."""

    def test_list_events_with_deleted_identity(self, client, mock_service, employee):
        timestamp = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
        mock_service.list_recent_events = AsyncMock(return_value=[
            ScanEvent(status=AccessStatus.IDENTIFIED, timestamp=timestamp, identity_id=employee.id,
                      confidence=0.91, id="2", identity=employee),
            ScanEvent(status=AccessStatus.IDENTIFIED, timestamp=timestamp, confidence=0.88, id="1"),
        ])

        response = client.get("/api/v1/scan/events?limit=2")

        assert response.status_code == 200
        events = response.json()["events"]
        assert events[0]["user"]["name"] == "John Doe"
        assert events[1]["user"] is None
        assert events[1]["userId"] is None
        mock_service.list_recent_events.assert_called_once_with(2)

    def test_list_events_rejects_bad_limit(self, client):
        assert client.get("/api/v1/scan/events?limit=0").status_code == 422

    def test_scan_stats(self, client, mock_service):
        mock_service.get_event_stats = AsyncMock(return_value=EventStats(total=6, identified=3, visitor=2, denied=1))

        response = client.get("/api/v1/scan/stats")

        assert response.status_code == 200
        assert response.json() == {"total": 6, "identified": 3, "visitor": 2, "denied": 1}


class TestUserEndpoints:
    """Test cases for identity management endpoints."""

    def test_create_user(self, client, mock_service, employee, sample_encoding):
        mock_service.create_identity = AsyncMock(return_value=employee)

        response = client.post("/api/v1/users", json={
            "cardId": " EMP001 ",
            "name": "John Doe",
            "email": "john@example.com",
            "faceEncoding": sample_encoding
        })

        assert response.status_code == 201
        assert response.json()["user"]["cardId"] == "EMP001"
        kwargs = mock_service.create_identity.call_args.kwargs
        assert kwargs["card_id"] == "EMP001"
        assert kwargs["identity_type"] is IdentityType.PERMANENT
        assert kwargs["expires_at"] is None

    def test_create_user_duplicate(self, client, mock_service, sample_encoding):
        mock_service.create_identity = AsyncMock(
            side_effect=DuplicateIdentifier("User with card ID EMP001 already exists")
        )

        response = client.post("/api/v1/users", json={
            "cardId": "EMP001", "name": "Impostor", "faceEncoding": sample_encoding
        })

        assert response.status_code == 409
        assert response.json()["error"] == "DuplicateIdentifier"

    def test_create_user_invalid_email(self, client, sample_encoding):
        response = client.post("/api/v1/users", json={
            "cardId": "EMP002", "name": "Jane", "email": "not-an-email", "faceEncoding": sample_encoding
        })
        assert response.status_code == 422

    def test_get_user_not_found(self, client, mock_service):
        mock_service.get_identity = AsyncMock(side_effect=IdentityNotFound("User missing not found"))

        response = client.get("/api/v1/users/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "UserNotFoundError"

    def test_list_users(self, client, mock_service, employee):
        mock_service.list_identities = AsyncMock(return_value=[employee])

        response = client.get("/api/v1/users")

        assert response.status_code == 200
        assert [u["cardId"] for u in response.json()["users"]] == ["EMP001"]

    def test_update_user_passes_only_supplied_fields(self, client, mock_service, employee):
        mock_service.update_identity = AsyncMock(return_value=employee)

        response = client.put(f"/api/v1/users/{employee.id}", json={
            "name": "John Q. Doe",
            "userType": "TEMPORARY",
            "expiresAt": "2030-01-01T00:00:00Z"
        })

        assert response.status_code == 200
        identity_id, changes = mock_service.update_identity.call_args[0]
        assert identity_id == employee.id
        assert set(changes) == {"name", "identity_type", "expires_at"}
        assert changes["identity_type"] is IdentityType.TEMPORARY
        assert changes["expires_at"] == datetime(2030, 1, 1, tzinfo=timezone.utc)

    def test_update_user_invalid_encoding(self, client, mock_service, employee):
        mock_service.update_identity = AsyncMock(side_effect=FormatError("Encoding is not valid base64"))

        response = client.put(f"/api/v1/users/{employee.id}", json={"faceEncoding": "abc"})

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidEncoding"

    def test_update_user_duplicate_card_id(self, client, mock_service, employee):
        mock_service.update_identity = AsyncMock(side_effect=DuplicateIdentifier("taken"))

        response = client.put(f"/api/v1/users/{employee.id}", json={"cardId": "EMP002"})

        assert response.status_code == 409

    @pytest.mark.parametrize("body", [
        {"userType": None},
        {"cardId": "   "},
        {"cardId": None},
        {"name": ""},
    ])
    def test_update_user_rejects_blank_or_null_fields(self, client, mock_service, employee, body):
        mock_service.update_identity = AsyncMock(return_value=employee)

        response = client.put(f"/api/v1/users/{employee.id}", json=body)

        assert response.status_code == 422
        mock_service.update_identity.assert_not_called()

    def test_update_user_strips_card_id(self, client, mock_service, employee):
        mock_service.update_identity = AsyncMock(return_value=employee)

        response = client.put(f"/api/v1/users/{employee.id}", json={"cardId": " EMP002 "})

        assert response.status_code == 200
        assert mock_service.update_identity.call_args[0][1] == {"card_id": "EMP002"}

    def test_update_user_can_clear_expiry(self, client, mock_service, employee):
        mock_service.update_identity = AsyncMock(return_value=employee)

        response = client.put(f"/api/v1/users/{employee.id}", json={"expiresAt": None})

        assert response.status_code == 200
        assert mock_service.update_identity.call_args[0][1] == {"expires_at": None}

    def test_delete_user(self, client, mock_service):
        mock_service.delete_identity = AsyncMock(return_value=None)

        response = client.delete("/api/v1/users/abc")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        mock_service.delete_identity.assert_called_once_with("abc")

    def test_delete_user_not_found(self, client, mock_service):
        mock_service.delete_identity = AsyncMock(side_effect=IdentityNotFound("User abc not found"))

        assert client.delete("/api/v1/users/abc").status_code == 404
