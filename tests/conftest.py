"""
Shared pytest fixtures.

Every test gets a fresh in-memory SQLite database behind the same
Repository used in production, injected into the FastAPI app.
"""

import os

os.environ.setdefault("SEED_ON_STARTUP", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from clinic_backend.api_main import create_app
from clinic_backend.config import Settings
from clinic_backend.repository import Repository


@pytest.fixture
def repo():
    """Empty in-memory database with all tables."""
    repository = Repository.from_url("sqlite://")
    repository.create_all()
    yield repository
    repository.engine.dispose()


@pytest.fixture
def client(repo):
    app = create_app(repository=repo, settings=Settings(seed_on_startup=False, log_level="WARNING"))
    return TestClient(app)


@pytest.fixture
def booking_payload():
    return {
        "name": "Aisha",
        "phone": "+966501234567",
        "service": "General",
        "date": "2026-11-02",
        "message": "Lower back pain",
    }


@pytest.fixture
def make_booking(client, booking_payload):
    """POST a booking and return its id."""

    def _make(**overrides):
        response = client.post("/api/bookings", json={**booking_payload, **overrides})
        assert response.status_code == 200, response.text
        return response.json()["bookingId"]

    return _make


@pytest.fixture
def therapist(client):
    response = client.post(
        "/api/therapists",
        json={
            "name": "Sarah Ahmed",
            "email": "sarah@clinic.local",
            "phone": "+966501234567",
            "password": "secret123",
            "specialization": "Physiotherapy",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["therapist"]


@pytest.fixture
def patient(client):
    response = client.post(
        "/api/patients",
        json={"fullName": "Yusuf Saleh", "phone": "+966 50 123 4568", "age": 52, "gender": "Male"},
    )
    assert response.status_code == 201, response.text
    return response.json()["patient"]
