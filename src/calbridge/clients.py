"""Outbound API clients for the calendar provider and the registry.

Both clients authenticate with a bearer token from ``CredentialManager``.
A 401 response triggers exactly one forced refresh and one retry; any
other non-2xx response, transport failure or timeout becomes an
``UpstreamError`` carrying the (redacted) provider response.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from calbridge.credentials import CredentialManager, TokenDomain
from calbridge.errors import UpstreamError, summarize_response_text

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
REGISTRY_UPDATE_PATH = "/core/api/v2/update-record"


def _safe_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            message = error_payload.get("message")
            if isinstance(message, str) and message.strip():
                return summarize_response_text(message, 200)
        if isinstance(error_payload, str) and error_payload.strip():
            return summarize_response_text(error_payload, 200)
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return summarize_response_text(message, 200)

    raw_text = response.text.strip()
    if raw_text:
        return summarize_response_text(raw_text, 200)
    return "Request failed without an error payload"


class _BearerApiClient:
    """Shared bearer-auth request loop for one token domain."""

    service: str
    domain: TokenDomain

    def __init__(self, credentials: CredentialManager, http_client: httpx.AsyncClient) -> None:
        self._credentials = credentials
        self._http_client = http_client

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        response = await self._request_with_bearer(method, url, json_body=json_body)

        if response.status_code < 200 or response.status_code >= 300:
            raise UpstreamError(
                _safe_error_message(response),
                service=self.service,
                upstream_status=response.status_code,
                response=summarize_response_text(response.text),
            )

        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                "returned invalid JSON for a successful response",
                service=self.service,
                upstream_status=response.status_code,
                response=summarize_response_text(response.text),
            ) from exc

    async def _request_with_bearer(
        self,
        method: str,
        url: str,
        *,
        json_body: dict[str, Any] | None,
    ) -> httpx.Response:
        token = await self._credentials.get_token(self.domain)
        response = await self._request_once(method, url, json_body=json_body, token=token.value)

        if response.status_code == 401:
            logger.info("%s rejected the %s token; refreshing once", self.service, self.domain)
            token = await self._credentials.get_token(
                self.domain, force_refresh=True, rejected=token.value
            )
            response = await self._request_once(
                method, url, json_body=json_body, token=token.value
            )

        return response

    async def _request_once(
        self,
        method: str,
        url: str,
        *,
        json_body: dict[str, Any] | None,
        token: str,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        try:
            return await self._http_client.request(method, url, json=json_body, headers=headers)
        except httpx.TimeoutException as exc:
            raise UpstreamError(f"timed out: {exc}", service=self.service) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(str(exc) or type(exc).__name__, service=self.service) from exc


class CalendarClient(_BearerApiClient):
    """Google Calendar events API."""

    service = "calendar"
    domain = TokenDomain.CALENDAR

    def __init__(
        self,
        credentials: CredentialManager,
        http_client: httpx.AsyncClient,
        *,
        base_url: str = GOOGLE_CALENDAR_API_BASE_URL,
    ) -> None:
        super().__init__(credentials, http_client)
        self._base_url = base_url.rstrip("/")

    async def create_event(self, *, calendar_id: str, body: dict[str, Any]) -> dict[str, Any]:
        """Insert an event and return the provider's event resource."""
        url = f"{self._base_url}/calendars/{quote(calendar_id, safe='')}/events"
        payload = await self._request_json("POST", url, json_body=body)
        if not isinstance(payload, dict):
            raise UpstreamError(
                "returned an unexpected event payload shape", service=self.service
            )
        return payload


def registry_field(identifier: str, value: str) -> dict[str, Any]:
    """Single-row scalar field in the registry update grammar."""
    return {
        "identifier": identifier,
        "rows": [{"row": 0, "values": [{"value": value}]}],
    }


class RegistryClient(_BearerApiClient):
    """Alchemy record API."""

    service = "registry"
    domain = TokenDomain.REGISTRY

    def __init__(
        self,
        credentials: CredentialManager,
        http_client: httpx.AsyncClient,
        *,
        base_url: str,
    ) -> None:
        super().__init__(credentials, http_client)
        self._update_url = f"{base_url.rstrip('/')}{REGISTRY_UPDATE_PATH}"

    async def update_record(self, *, record_id: str, fields: list[dict[str, Any]]) -> Any:
        """Write *fields* onto the record addressed by *record_id*."""
        return await self._request_json(
            "PUT",
            self._update_url,
            json_body={"recordId": record_id, "fields": fields},
        )
