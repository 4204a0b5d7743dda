from unittest.mock import MagicMock, patch

import pytest

from clinic_ui.api_client import ApiError, ClinicApiClient


def _response(status_code, body, reason="OK"):
    r = MagicMock()
    r.status_code = status_code
    r.reason = reason
    r.json.return_value = body
    return r


@patch("clinic_ui.api_client.requests.get")
def test_list_bookings_unwraps_envelope(mock_get):
    mock_get.return_value = _response(200, {"success": True, "count": 1, "bookings": [{"id": 1}]})

    rows = ClinicApiClient("http://api/").list_bookings("pending")

    assert rows == [{"id": 1}]
    mock_get.assert_called_once_with("http://api/api/bookings", params={"status": "pending"}, timeout=10)


@patch("clinic_ui.api_client.requests.get")
def test_unread_count(mock_get):
    mock_get.return_value = _response(200, {"count": 3})

    assert ClinicApiClient("http://api").unread_count() == 3


@patch("clinic_ui.api_client.requests.request")
def test_error_body_message_is_raised(mock_request):
    mock_request.return_value = _response(
        400, {"success": False, "message": "Please fill in all required fields: phone"}, reason="Bad Request"
    )

    with pytest.raises(ApiError) as excinfo:
        ClinicApiClient("http://api").create_booking({"name": "Aisha"})

    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Please fill in all required fields: phone"


@patch("clinic_ui.api_client.requests.request")
def test_non_json_error_falls_back_to_reason(mock_request):
    r = _response(502, None, reason="Bad Gateway")
    r.json.side_effect = ValueError("no json")
    mock_request.return_value = r

    with pytest.raises(ApiError) as excinfo:
        ClinicApiClient("http://api").fan_out()

    assert excinfo.value.message == "Bad Gateway"


@patch("clinic_ui.api_client.requests.request")
def test_resolve_sends_status(mock_request):
    mock_request.return_value = _response(200, {"success": True})

    ClinicApiClient("http://api").resolve(7)

    mock_request.assert_called_once_with(
        "PUT", "http://api/api/notifications/7/status", json={"status": "resolved"}, timeout=10
    )


@patch("clinic_ui.api_client.requests.get")
def test_dashboard_stats(mock_get):
    mock_get.return_value = _response(200, {"totalPatients": 2, "unreadNotifications": 1})

    stats = ClinicApiClient("http://api").dashboard_stats()

    assert stats["unreadNotifications"] == 1
    mock_get.assert_called_once_with("http://api/api/admin/stats", params=None, timeout=10)
