"""Error responses share one shape: {"success": false, "message": ...}."""

from fastapi import status
from fastapi.testclient import TestClient

from clinic_backend.api_main import create_app
from clinic_backend.config import Settings
from clinic_backend.errors import PersistenceError


def _client(repo):
    app = create_app(repository=repo, settings=Settings(seed_on_startup=False, log_level="WARNING"))
    return TestClient(app, raise_server_exceptions=False)


def test_storage_failure_hides_details(repo, monkeypatch):
    def broken(*args, **kwargs):
        raise PersistenceError()

    monkeypatch.setattr(repo, "list_bookings", broken)

    response = _client(repo).get("/api/bookings")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {
        "success": False,
        "message": "A storage error occurred, please try again later",
    }


def test_unexpected_error_is_generic(repo, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("database password is hunter2")

    monkeypatch.setattr(repo, "count_unread_notifications", broken)

    response = _client(repo).get("/api/notifications/unread/count")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"success": False, "message": "An unexpected error occurred"}


def test_malformed_json_body_is_a_validation_error(client):
    response = client.post("/api/bookings", content="{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["success"] is False
