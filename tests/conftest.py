"""Shared fixtures for bridge tests.

Provides an ``AsyncMock`` stand-in for ``httpx.AsyncClient`` and the
credential manager, API clients and orchestrator wired to it. Canned
responses and routing helpers live in ``tests.helpers``.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest

from calbridge.clients import CalendarClient, RegistryClient
from calbridge.credentials import CredentialManager, GoogleOAuthCredentials, RegistryCredentials
from calbridge.sync import SyncOrchestrator
from tests.helpers import REGISTRY_BASE_URL, TENANT


@pytest.fixture
def http_client() -> AsyncMock:
    return AsyncMock(spec=httpx.AsyncClient)


@pytest.fixture
def credential_manager(http_client: AsyncMock) -> CredentialManager:
    return CredentialManager(
        calendar_credentials=GoogleOAuthCredentials(
            client_id="client-id",
            client_secret="client-secret",
            refresh_token="google-refresh",
        ),
        registry_credentials=RegistryCredentials(refresh_token="alchemy-refresh", tenant=TENANT),
        registry_base_url=REGISTRY_BASE_URL,
        http_client=http_client,
    )


@pytest.fixture
def calendar_client(
    credential_manager: CredentialManager, http_client: AsyncMock
) -> CalendarClient:
    return CalendarClient(credential_manager, http_client)


@pytest.fixture
def registry_client(
    credential_manager: CredentialManager, http_client: AsyncMock
) -> RegistryClient:
    return RegistryClient(credential_manager, http_client, base_url=REGISTRY_BASE_URL)


@pytest.fixture
def orchestrator(
    calendar_client: CalendarClient, registry_client: RegistryClient
) -> SyncOrchestrator:
    return SyncOrchestrator(
        calendar=calendar_client,
        registry=registry_client,
        calendar_id="primary",
        default_timezone="America/New_York",
    )
