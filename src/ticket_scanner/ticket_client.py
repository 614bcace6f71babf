"""
Ticket store API client.

Talks to the backend that persists scanned tickets. Every endpoint answers
with an envelope {success, data, message, error}; non-2xx answers and
transport failures are raised as TicketApiError with a `kind`:

    duplicate        the ticket (trace number) is already stored
    missing_field    the store rejected the payload for a required field
    http             any other non-2xx answer
    connection       the store could not be reached
    invalid_response the answer was not a usable envelope
"""

import json
from typing import Any, Dict, List, Optional, Union

import requests
from loguru import logger

from ticket_scanner.exceptions import TicketApiError
from ticket_scanner.payload_mapper import TicketPayload

DEFAULT_BASE_URL = "https://localhost:5001/api/ocr/tickets"

PayloadLike = Union[TicketPayload, Dict[str, Any]]


def _as_dict(payload: PayloadLike) -> Dict[str, Any]:
    if isinstance(payload, TicketPayload):
        return payload.model_dump(exclude_none=True)
    return dict(payload)


def _classify(status: int, message: str) -> str:
    lowered = message.lower()
    if status == 409 or "duplicate" in lowered or "already exists" in lowered:
        return "duplicate"
    if status in (400, 422) and ("required" in lowered or "missing" in lowered):
        return "missing_field"
    return "http"


class TicketApiClient:
    """Thin requests-based client for the ticket store."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Dict) -> "TicketApiClient":
        api = config.get('api', {})
        return cls(
            base_url=api.get('base_url', DEFAULT_BASE_URL),
            timeout=api.get('timeout_seconds', 30),
        )

    # ── Transport ─────────────────────────────────────────────────────────────

    def _request(self, method: str, path: str = "", **kwargs) -> Dict[str, Any]:
        """Send a request and return the decoded envelope, raising on failure."""
        url = f"{self.base_url}{path}"
        logger.debug(f"[TicketAPI] {method} {url}")

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.error(f"[TicketAPI] Cannot reach {url}: {e}")
            raise TicketApiError(f"Cannot reach ticket store: {e}", kind="connection") from e

        logger.debug(f"[TicketAPI] Response status: {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok:
            message = ""
            if isinstance(body, dict):
                message = body.get("error") or body.get("message") or ""
            message = message or f"HTTP {response.status_code}"
            kind = _classify(response.status_code, message)
            logger.error(f"[TicketAPI] {method} {path or '/'} failed ({kind}): {message}")
            raise TicketApiError(message, kind=kind, status=response.status_code)

        if not isinstance(body, dict):
            raise TicketApiError(
                "Ticket store returned a non-JSON response",
                kind="invalid_response",
                status=response.status_code,
            )
        return body

    @staticmethod
    def _data(body: Dict[str, Any]) -> Any:
        if body.get("data") is None:
            raise TicketApiError("No data returned from server", kind="invalid_response")
        return body["data"]

    # ── Tickets ───────────────────────────────────────────────────────────────

    def create_ticket(self, payload: PayloadLike) -> Dict[str, Any]:
        """POST the payload as JSON; returns the stored ticket."""
        data = _as_dict(payload)
        logger.info(f"[TicketAPI] Creating ticket trace_no={data.get('trace_no')}")
        ticket = self._data(self._request("POST", json=data))
        logger.success(f"[TicketAPI] Ticket stored (id={ticket.get('id')})")
        return ticket

    def create_ticket_with_image(
        self,
        payload: PayloadLike,
        image_bytes: bytes,
        filename: str = "ticket.jpg",
        content_type: str = "image/jpeg",
    ) -> Dict[str, Any]:
        """
        POST multipart form data to /with-image:
            image → the (compressed) capture
            data  → the payload as a JSON string
        """
        data = _as_dict(payload)
        logger.info(f"[TicketAPI] Uploading ticket with image ({len(image_bytes)} bytes)")
        body = self._request(
            "POST",
            "/with-image",
            files={"image": (filename, image_bytes, content_type)},
            data={"data": json.dumps(data)},
        )
        ticket = self._data(body)
        logger.success(f"[TicketAPI] Image stored at {ticket.get('ticket_img_path')}")
        return ticket

    def test_connection(self) -> bool:
        """True when the store answers a one-item listing."""
        try:
            self._request("GET", params={"limit": 1})
        except TicketApiError as e:
            logger.warning(f"[TicketAPI] Connection test failed: {e}")
            return False
        return True

    def get_all_tickets(self, limit: int = 10, offset: int = 0) -> Dict[str, Any]:
        """Full envelope, including `pagination`."""
        return self._request("GET", params={"limit": limit, "offset": offset})

    def get_ticket(self, ticket_id: int) -> Dict[str, Any]:
        return self._data(self._request("GET", f"/{ticket_id}"))

    def get_ticket_by_trace_no(self, trace_no: str) -> Dict[str, Any]:
        return self._data(self._request("GET", f"/trace/{trace_no}"))

    def get_ticket_count(self) -> int:
        return int(self._data(self._request("GET", "/count"))["count"])

    def search_by_date_range(self, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        body = self._request(
            "GET",
            "/search/date-range",
            params={"startDate": start_date, "endDate": end_date},
        )
        return self._data(body)

    def update_ticket(self, ticket_id: int, updates: Dict[str, Any]) -> Dict[str, Any]:
        return self._data(self._request("PUT", f"/{ticket_id}", json=updates))

    def delete_ticket(self, ticket_id: int) -> None:
        self._request("DELETE", f"/{ticket_id}")
        logger.info(f"[TicketAPI] Ticket {ticket_id} deleted")
