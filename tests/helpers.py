"""Canned provider responses and request routing for the mocked HTTP client."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import httpx

from calbridge.clients import GOOGLE_CALENDAR_API_BASE_URL
from calbridge.credentials import GOOGLE_OAUTH_TOKEN_URL

REGISTRY_BASE_URL = "https://registry.test"
REGISTRY_REFRESH_URL = f"{REGISTRY_BASE_URL}/core/api/v2/refresh-token"
REGISTRY_UPDATE_URL = f"{REGISTRY_BASE_URL}/core/api/v2/update-record"
CALENDAR_EVENTS_URL = f"{GOOGLE_CALENDAR_API_BASE_URL}/calendars/primary/events"
TENANT = "labtenant"


def make_response(
    status_code: int,
    *,
    method: str = "GET",
    url: str = "https://example.test",
    json_body: Any = None,
    text: str = "",
) -> httpx.Response:
    request = httpx.Request(method, url)
    if json_body is not None:
        return httpx.Response(status_code=status_code, json=json_body, request=request)
    return httpx.Response(status_code=status_code, text=text, request=request)


def google_token_response(token: str = "cal-token-1", expires_in: int = 3600) -> httpx.Response:
    return make_response(
        200,
        method="POST",
        url=GOOGLE_OAUTH_TOKEN_URL,
        json_body={"access_token": token, "expires_in": expires_in, "token_type": "Bearer"},
    )


def registry_token_response(
    token: str = "reg-token-1", tenants: list[str] | None = None
) -> httpx.Response:
    names = tenants if tenants is not None else ["othertenant", TENANT]
    return make_response(
        200,
        method="PUT",
        url=REGISTRY_REFRESH_URL,
        json_body={
            "tokens": [
                {"tenant": name, "accessToken": token if name == TENANT else f"{name}-token"}
                for name in names
            ]
        },
    )


def route_requests(client: AsyncMock, routes: dict[str, list[Any]]) -> None:
    """Answer ``client.request`` calls from per-URL queues.

    Queue items are ``httpx.Response`` objects or exceptions to raise.
    """

    def _dispatch(method: str, url: str, **kwargs: Any) -> httpx.Response:
        queue = routes.get(url)
        if queue is None:
            raise AssertionError(f"unexpected request: {method} {url}")
        if not queue:
            raise AssertionError(f"no more canned responses for {method} {url}")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    client.request.side_effect = _dispatch


def calls_to(client: AsyncMock, url: str) -> list[Any]:
    """Return recorded ``client.request`` calls addressed to *url*."""
    return [c for c in client.request.call_args_list if c.args[1] == url]
