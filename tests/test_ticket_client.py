"""
Tests for the ticket store API client
"""

import json
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ticket_scanner.exceptions import TicketApiError
from ticket_scanner.payload_mapper import ScannedData, TicketPayload
from ticket_scanner.ticket_client import TicketApiClient

BASE_URL = "https://store.example/api/ocr/tickets"


def make_response(status_code=200, body=None):
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    return TicketApiClient(BASE_URL + "/", timeout=5, session=session)


@pytest.fixture
def payload():
    return TicketPayload(
        date="2024-12-29",
        time="14:30",
        terminal_id="T0001",
        location="Main Entrance",
        no_tickets=2,
        total_amount="1500.00",
        trace_no="123456",
        ticket_amount_pp="750.00",
        scanned_data=ScannedData(extracted_text="raw", confidence=87.5),
    )


def test_create_ticket_posts_json(client, session, payload):
    session.request.return_value = make_response(201, {"success": True, "data": {"id": 7}})

    ticket = client.create_ticket(payload)

    assert ticket == {"id": 7}
    args, kwargs = session.request.call_args
    assert args == ("POST", BASE_URL)
    assert kwargs["timeout"] == 5
    assert kwargs["json"]["trace_no"] == "123456"
    assert "ticket_img_path" not in kwargs["json"]


def test_create_ticket_with_image_is_multipart(client, session, payload):
    session.request.return_value = make_response(
        201, {"success": True, "data": {"id": 8, "ticket_img_path": "uploads/8.jpg"}}
    )

    ticket = client.create_ticket_with_image(payload, b"\xff\xd8jpeg", filename="t.jpg")

    assert ticket["ticket_img_path"] == "uploads/8.jpg"
    args, kwargs = session.request.call_args
    assert args == ("POST", BASE_URL + "/with-image")
    assert kwargs["files"] == {"image": ("t.jpg", b"\xff\xd8jpeg", "image/jpeg")}
    assert json.loads(kwargs["data"]["data"])["no_tickets"] == 2


@pytest.mark.parametrize("status, body, kind", [
    (409, {"success": False, "error": "Ticket already exists"}, "duplicate"),
    (500, {"success": False, "error": "Duplicate entry for trace_no"}, "duplicate"),
    (400, {"success": False, "error": "trace_no is required"}, "missing_field"),
    (400, {"success": False, "message": "bad date"}, "http"),
    (502, None, "http"),
])
def test_error_kinds(client, session, payload, status, body, kind):
    session.request.return_value = make_response(status, body)

    with pytest.raises(TicketApiError) as exc_info:
        client.create_ticket(payload)

    assert exc_info.value.kind == kind
    assert exc_info.value.status == status


def test_connection_error(client, session, payload):
    session.request.side_effect = requests.ConnectionError("refused")

    with pytest.raises(TicketApiError) as exc_info:
        client.create_ticket(payload)

    assert exc_info.value.kind == "connection"


def test_non_json_success_is_invalid(client, session, payload):
    session.request.return_value = make_response(200, None)

    with pytest.raises(TicketApiError) as exc_info:
        client.create_ticket(payload)

    assert exc_info.value.kind == "invalid_response"


def test_missing_data_is_invalid(client, session, payload):
    session.request.return_value = make_response(200, {"success": True})

    with pytest.raises(TicketApiError) as exc_info:
        client.create_ticket(payload)

    assert exc_info.value.kind == "invalid_response"


def test_test_connection(client, session):
    session.request.return_value = make_response(200, {"success": True, "data": []})
    assert client.test_connection() is True
    assert session.request.call_args.kwargs["params"] == {"limit": 1}

    session.request.side_effect = requests.Timeout("slow")
    assert client.test_connection() is False


def test_read_endpoints(client, session):
    session.request.return_value = make_response(200, {"success": True, "data": {"count": 12}})
    assert client.get_ticket_count() == 12
    assert session.request.call_args.args == ("GET", BASE_URL + "/count")

    session.request.return_value = make_response(200, {"success": True, "data": {"id": 3}})
    assert client.get_ticket_by_trace_no("123456") == {"id": 3}
    assert session.request.call_args.args == ("GET", BASE_URL + "/trace/123456")

    session.request.return_value = make_response(200, {"success": True, "data": [{"id": 3}]})
    assert client.search_by_date_range("2024-12-01", "2024-12-31") == [{"id": 3}]
    assert session.request.call_args.kwargs["params"] == {
        "startDate": "2024-12-01", "endDate": "2024-12-31",
    }


def test_update_and_delete(client, session):
    session.request.return_value = make_response(200, {"success": True, "data": {"id": 3, "location": "North"}})
    assert client.update_ticket(3, {"location": "North"})["location"] == "North"
    assert session.request.call_args.args == ("PUT", BASE_URL + "/3")

    session.request.return_value = make_response(200, {"success": True, "message": "deleted"})
    client.delete_ticket(3)
    assert session.request.call_args.args == ("DELETE", BASE_URL + "/3")


def test_from_config():
    client = TicketApiClient.from_config({"api": {"base_url": BASE_URL, "timeout_seconds": 9}})
    assert client.base_url == BASE_URL
    assert client.timeout == 9
