"""Credential manager for the calendar and registry token domains.

Each domain exchanges a long-lived refresh credential for a short-lived
bearer token:

- ``calendar``: Google OAuth refresh-token grant, form-encoded POST.
- ``registry``: Alchemy refresh endpoint, JSON PUT; the response lists one
  token per tenant and the configured tenant's token is selected.

Tokens are cached in memory per domain and reused until they expire or a
caller reports them rejected. Refreshes are serialized per domain by an
``asyncio.Lock``; readers never wait on the lock while a fresh token is
cached.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from calbridge.errors import CredentialError, summarize_response_text

logger = logging.getLogger(__name__)

GOOGLE_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
REGISTRY_REFRESH_PATH = "/core/api/v2/refresh-token"

# Refresh early to avoid edge-of-expiration failures.
TOKEN_EXPIRY_MARGIN_SECONDS = 60
MIN_TOKEN_TTL_SECONDS = 30
DEFAULT_EXPIRES_IN_SECONDS = 3600


class TokenDomain(StrEnum):
    """Independent identity domains the bridge holds tokens for."""

    CALENDAR = "calendar"
    REGISTRY = "registry"


class TenantNotFoundError(CredentialError):
    """Raised when the registry refresh response has no token for the tenant."""


class GoogleOAuthCredentials(BaseModel):
    """OAuth client credentials required for refresh-token exchange."""

    model_config = ConfigDict(extra="forbid")

    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1, repr=False)
    refresh_token: str = Field(min_length=1, repr=False)

    @field_validator("client_id", "client_secret", "refresh_token")
    @classmethod
    def _normalize_non_empty(cls, value: str, info: ValidationInfo) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{info.field_name} must be a non-empty string")
        return normalized


class RegistryCredentials(BaseModel):
    """Registry refresh token plus the tenant whose access token is used."""

    model_config = ConfigDict(extra="forbid")

    refresh_token: str = Field(min_length=1, repr=False)
    tenant: str = Field(min_length=1)

    @field_validator("refresh_token", "tenant")
    @classmethod
    def _normalize_non_empty(cls, value: str, info: ValidationInfo) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{info.field_name} must be a non-empty string")
        return normalized


@dataclass(frozen=True)
class AccessToken:
    """A bearer token for one domain; ``expires_at`` of ``None`` means until rejected."""

    domain: TokenDomain
    value: str
    expires_at: datetime | None = None

    def is_fresh(self) -> bool:
        if self.expires_at is None:
            return True
        return datetime.now(UTC) < self.expires_at

    def __repr__(self) -> str:
        return f"AccessToken(domain={self.domain!s}, expires_at={self.expires_at!r})"


def _coerce_expires_in_seconds(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float) and value > 0:
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) or None
    return None


def _expiry_from(expires_in_seconds: int | None) -> datetime | None:
    if expires_in_seconds is None:
        return None
    ttl = max(expires_in_seconds - TOKEN_EXPIRY_MARGIN_SECONDS, MIN_TOKEN_TTL_SECONDS)
    return datetime.now(UTC) + timedelta(seconds=ttl)


class _TokenSource(abc.ABC):
    """Caches one domain's token and serializes its refreshes."""

    domain: TokenDomain

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http_client = http_client
        self._token: AccessToken | None = None
        self._refresh_lock = asyncio.Lock()

    async def get_token(
        self,
        *,
        force_refresh: bool = False,
        rejected: str | None = None,
    ) -> AccessToken:
        cached = self._token
        if not force_refresh and cached is not None and cached.is_fresh():
            return cached

        async with self._refresh_lock:
            cached = self._token
            if cached is not None and cached.is_fresh():
                if not force_refresh:
                    return cached
                # Another caller already replaced the rejected token.
                if rejected is not None and cached.value != rejected:
                    return cached

            token = await self._exchange()
            self._token = token
            logger.info("Refreshed %s access token", self.domain)
            return token

    def _error(self, message: str, response: httpx.Response | None = None) -> CredentialError:
        detail = summarize_response_text(response.text) if response is not None else None
        return CredentialError(message, domain=self.domain, response=detail)

    async def _send(
        self, method: str, url: str, **kwargs: Any
    ) -> tuple[dict[str, Any], httpx.Response]:
        try:
            response = await self._http_client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise self._error(f"token exchange timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise self._error(f"token exchange request failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise self._error(
                f"token exchange failed ({response.status_code})",
                response,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise self._error("token endpoint returned invalid JSON", response) from exc

        if not isinstance(payload, dict):
            raise self._error("token endpoint returned an unexpected payload shape", response)
        return payload, response

    @abc.abstractmethod
    async def _exchange(self) -> AccessToken:
        """Perform the domain's refresh-token exchange."""
        ...


class CalendarTokenSource(_TokenSource):
    domain = TokenDomain.CALENDAR

    def __init__(
        self,
        credentials: GoogleOAuthCredentials,
        http_client: httpx.AsyncClient,
        *,
        token_url: str = GOOGLE_OAUTH_TOKEN_URL,
    ) -> None:
        super().__init__(http_client)
        self._credentials = credentials
        self._token_url = token_url

    async def _exchange(self) -> AccessToken:
        payload, response = await self._send(
            "POST",
            self._token_url,
            data={
                "client_id": self._credentials.client_id,
                "client_secret": self._credentials.client_secret,
                "refresh_token": self._credentials.refresh_token,
                "grant_type": "refresh_token",
            },
            headers={"Accept": "application/json"},
        )

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token.strip():
            raise self._error("token response is missing a non-empty access_token", response)

        expires_in = _coerce_expires_in_seconds(payload.get("expires_in"))
        return AccessToken(
            domain=self.domain,
            value=access_token.strip(),
            expires_at=_expiry_from(expires_in or DEFAULT_EXPIRES_IN_SECONDS),
        )


class RegistryTokenSource(_TokenSource):
    domain = TokenDomain.REGISTRY

    def __init__(
        self,
        credentials: RegistryCredentials,
        http_client: httpx.AsyncClient,
        *,
        base_url: str,
    ) -> None:
        super().__init__(http_client)
        self._credentials = credentials
        self._refresh_url = f"{base_url.rstrip('/')}{REGISTRY_REFRESH_PATH}"

    async def _exchange(self) -> AccessToken:
        payload, response = await self._send(
            "PUT",
            self._refresh_url,
            json={"refreshToken": self._credentials.refresh_token},
            headers={"Accept": "application/json"},
        )

        tokens = payload.get("tokens")
        if not isinstance(tokens, list):
            raise self._error("refresh response is missing a tokens array", response)

        tenant = self._credentials.tenant
        entry = next(
            (t for t in tokens if isinstance(t, dict) and t.get("tenant") == tenant),
            None,
        )
        if entry is None:
            available = sorted(
                str(t.get("tenant")) for t in tokens if isinstance(t, dict) and t.get("tenant")
            )
            raise TenantNotFoundError(
                f"tenant {tenant!r} not found in refresh response "
                f"(available: {', '.join(available) or 'none'})",
                domain=self.domain,
                response=summarize_response_text(response.text),
            )

        access_token = entry.get("accessToken")
        if not isinstance(access_token, str) or not access_token.strip():
            raise self._error(
                f"tenant {tenant!r} entry is missing a non-empty accessToken", response
            )

        expires_in = _coerce_expires_in_seconds(entry.get("expiresIn"))
        return AccessToken(
            domain=self.domain,
            value=access_token.strip(),
            expires_at=_expiry_from(expires_in),
        )


class CredentialManager:
    """Owns the per-domain token cache.

    Usage::

        manager = CredentialManager(
            calendar_credentials=GoogleOAuthCredentials(...),
            registry_credentials=RegistryCredentials(...),
            registry_base_url="https://core-production.alchemy.cloud",
            http_client=httpx.AsyncClient(timeout=20.0),
        )
        token = await manager.get_token(TokenDomain.CALENDAR)
    """

    def __init__(
        self,
        *,
        calendar_credentials: GoogleOAuthCredentials,
        registry_credentials: RegistryCredentials,
        registry_base_url: str,
        http_client: httpx.AsyncClient,
        calendar_token_url: str = GOOGLE_OAUTH_TOKEN_URL,
    ) -> None:
        self._sources: dict[TokenDomain, _TokenSource] = {
            TokenDomain.CALENDAR: CalendarTokenSource(
                calendar_credentials, http_client, token_url=calendar_token_url
            ),
            TokenDomain.REGISTRY: RegistryTokenSource(
                registry_credentials, http_client, base_url=registry_base_url
            ),
        }

    async def get_token(
        self,
        domain: TokenDomain | str,
        *,
        force_refresh: bool = False,
        rejected: str | None = None,
    ) -> AccessToken:
        """Return a usable token for *domain*.

        Parameters
        ----------
        force_refresh:
            Bypass the cache, typically after the provider rejected a token.
        rejected:
            The token value the provider rejected. When another caller has
            already replaced it, the replacement is returned instead of
            refreshing a second time.
        """
        source = self._sources[TokenDomain(domain)]
        return await source.get_token(force_refresh=force_refresh, rejected=rejected)
