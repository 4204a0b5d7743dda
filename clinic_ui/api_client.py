from __future__ import annotations

import os
from typing import Any

import requests

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")


class ApiError(Exception):
    """Backend answered with success=false or a non-2xx status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class ClinicApiClient:
    def __init__(self, base_url: str = API_BASE, timeout: float = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _handle(self, r: requests.Response) -> Any:
        try:
            body = r.json()
        except ValueError:
            body = None

        if r.status_code >= 400:
            message = body.get("message") if isinstance(body, dict) else None
            raise ApiError(r.status_code, message or r.reason or "Request failed")
        return body

    def get(self, path: str, params: dict | None = None) -> Any:
        r = requests.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        return self._handle(r)

    def send(self, method: str, path: str, payload: dict | None = None) -> Any:
        r = requests.request(method, f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        return self._handle(r)

    # Bookings

    def create_booking(self, payload: dict) -> dict:
        return self.send("POST", "/api/bookings", payload)

    def list_bookings(self, status: str | None = None) -> list[dict]:
        params = {"status": status} if status else None
        return self.get("/api/bookings", params=params)["bookings"]

    def update_booking_status(self, booking_id: int, status: str) -> dict:
        return self.send("PATCH", f"/api/bookings/{booking_id}", {"status": status})

    # Notifications

    def list_notifications(self, status: str | None = None) -> list[dict]:
        params = {"status": status} if status else None
        return self.get("/api/notifications", params=params)

    def unread_count(self) -> int:
        return int(self.get("/api/notifications/unread/count")["count"])

    def fan_out(self) -> dict:
        return self.send("POST", "/api/notifications/fan-out")

    def mark_read(self, notification_id: int) -> dict:
        return self.send("PUT", f"/api/notifications/{notification_id}/read")

    def resolve(self, notification_id: int) -> dict:
        return self.send("PUT", f"/api/notifications/{notification_id}/status", {"status": "resolved"})

    # Admin

    def dashboard_stats(self) -> dict:
        return self.get("/api/admin/stats")

    # Directory

    def list_patients(self) -> list[dict]:
        return self.get("/api/patients")

    def list_therapists(self) -> list[dict]:
        return self.get("/api/therapists")

    def list_appointments(self, **filters: Any) -> list[dict]:
        params = {k: v for k, v in filters.items() if v not in (None, "")}
        return self.get("/api/appointments", params=params or None)
