"""Booking intake and lookup through the REST API."""

import pytest
from fastapi import status


class TestCreateBooking:
    def test_valid_booking_returns_positive_id(self, client, booking_payload):
        response = client.post("/api/bookings", json=booking_payload)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert isinstance(data["bookingId"], int)
        assert data["bookingId"] > 0

    def test_lookup_matches_submission(self, client, booking_payload):
        booking_id = client.post("/api/bookings", json=booking_payload).json()["bookingId"]

        response = client.get(f"/api/bookings/{booking_id}")

        assert response.status_code == status.HTTP_200_OK
        booking = response.json()["booking"]
        assert booking["id"] == booking_id
        assert booking["name"] == "Aisha"
        assert booking["phone"] == "+966501234567"
        assert booking["service"] == "General"
        assert booking["date"] == "2026-11-02"
        assert booking["message"] == "Lower back pain"
        assert booking["status"] == "pending"
        assert booking["createdAt"]

    def test_duplicate_submissions_get_distinct_ids(self, make_booking):
        first = make_booking()
        second = make_booking()
        assert first != second

    def test_message_is_optional(self, client, booking_payload):
        booking_payload.pop("message")
        booking_id = client.post("/api/bookings", json=booking_payload).json()["bookingId"]

        assert client.get(f"/api/bookings/{booking_id}").json()["booking"]["message"] is None

    def test_datetime_string_is_stored_as_date(self, client, booking_payload):
        booking_payload["date"] = "2026-11-02T09:30:00.000Z"
        booking_id = client.post("/api/bookings", json=booking_payload).json()["bookingId"]

        assert client.get(f"/api/bookings/{booking_id}").json()["booking"]["date"] == "2026-11-02"

    def test_caller_can_set_initial_status(self, client, booking_payload):
        booking_id = client.post("/api/bookings", json={**booking_payload, "status": "active"}).json()["bookingId"]

        assert client.get(f"/api/bookings/{booking_id}").json()["booking"]["status"] == "active"

    @pytest.mark.parametrize("field", ["name", "phone", "service", "date"])
    def test_missing_required_field_is_rejected(self, client, booking_payload, field):
        booking_payload.pop(field)

        response = client.post("/api/bookings", json=booking_payload)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["success"] is False
        assert field in body["message"]
        assert client.get("/api/bookings").json()["count"] == 0

    @pytest.mark.parametrize("field", ["name", "phone", "service", "date"])
    def test_blank_required_field_is_rejected(self, client, booking_payload, field):
        booking_payload[field] = "   "

        response = client.post("/api/bookings", json=booking_payload)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["success"] is False
        assert client.get("/api/bookings").json()["count"] == 0

    def test_malformed_date_is_rejected(self, client, booking_payload):
        booking_payload["date"] = "next tuesday"

        response = client.post("/api/bookings", json=booking_payload)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {
            "success": False,
            "message": "Invalid date: expected an ISO date (YYYY-MM-DD)",
        }

    def test_non_string_field_is_rejected_with_structured_body(self, client, booking_payload):
        booking_payload["name"] = 12345

        response = client.post("/api/bookings", json=booking_payload)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["success"] is False
        assert "name" in response.json()["message"]

    def test_unknown_status_is_rejected(self, client, booking_payload):
        response = client.post("/api/bookings", json={**booking_payload, "status": "confirmed"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "pending, active, cancelled" in response.json()["message"]


class TestListAndLookup:
    def test_list_returns_count_and_bookings(self, client, make_booking):
        make_booking(name="Aisha")
        make_booking(name="Omar")

        response = client.get("/api/bookings")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["count"] == 2
        assert {b["name"] for b in data["bookings"]} == {"Aisha", "Omar"}

    def test_list_empty(self, client):
        assert client.get("/api/bookings").json() == {"success": True, "count": 0, "bookings": []}

    def test_list_filtered_by_status(self, client, make_booking):
        make_booking()
        active_id = make_booking(status="active")

        data = client.get("/api/bookings", params={"status": "active"}).json()

        assert data["count"] == 1
        assert data["bookings"][0]["id"] == active_id

    def test_unknown_status_filter_matches_nothing(self, client, make_booking):
        make_booking()

        response = client.get("/api/bookings", params={"status": "archived"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True, "count": 0, "bookings": []}

    def test_unknown_id_returns_404(self, client):
        response = client.get("/api/bookings/9999")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"success": False, "message": "Booking not found"}

    @pytest.mark.parametrize("booking_id", ["0", "-3", "99999999999999999999"])
    def test_id_no_row_can_have_returns_404(self, client, booking_id):
        not_found = {"success": False, "message": "Booking not found"}

        lookup = client.get(f"/api/bookings/{booking_id}")
        update = client.patch(f"/api/bookings/{booking_id}", json={"status": "active"})
        delete = client.delete(f"/api/bookings/{booking_id}")

        for response in (lookup, update, delete):
            assert response.status_code == status.HTTP_404_NOT_FOUND
            assert response.json() == not_found


class TestUpdateAndDelete:
    def test_status_update(self, client, make_booking):
        booking_id = make_booking()

        response = client.patch(f"/api/bookings/{booking_id}", json={"status": "cancelled"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["booking"]["status"] == "cancelled"
        assert client.get(f"/api/bookings/{booking_id}").json()["booking"]["status"] == "cancelled"

    def test_status_update_rejects_unknown_status(self, client, make_booking):
        booking_id = make_booking()

        response = client.patch(f"/api/bookings/{booking_id}", json={"status": "done"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert client.get(f"/api/bookings/{booking_id}").json()["booking"]["status"] == "pending"

    def test_status_update_unknown_booking(self, client):
        response = client.patch("/api/bookings/42", json={"status": "active"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_delete(self, client, make_booking):
        booking_id = make_booking()

        assert client.delete(f"/api/bookings/{booking_id}").json()["success"] is True
        assert client.get(f"/api/bookings/{booking_id}").status_code == status.HTTP_404_NOT_FOUND
        assert client.delete(f"/api/bookings/{booking_id}").status_code == status.HTTP_404_NOT_FOUND


def test_health(client):
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ok"
