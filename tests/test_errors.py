"""Tests for the error taxonomy and provider-text redaction."""

from __future__ import annotations

import pytest

from calbridge.core.logging import redact_secrets
from calbridge.errors import (
    BridgeError,
    CredentialError,
    FormatError,
    IdentityError,
    UpstreamError,
    ValidationError,
    redact_credential_values,
    summarize_response_text,
)

pytestmark = pytest.mark.unit


class TestTaxonomy:
    @pytest.mark.parametrize(
        ("error", "status_code", "code"),
        [
            (ValidationError("bad"), 400, "VALIDATION_ERROR"),
            (FormatError("bad"), 400, "FORMAT_ERROR"),
            (IdentityError("bad"), 400, "IDENTITY_ERROR"),
            (CredentialError("bad", domain="calendar"), 500, "CREDENTIAL_ERROR"),
            (UpstreamError("bad", service="registry"), 500, "UPSTREAM_ERROR"),
        ],
    )
    def test_status_and_code(self, error: BridgeError, status_code: int, code: str):
        assert isinstance(error, BridgeError)
        assert error.status_code == status_code
        assert error.code == code

    def test_upstream_message_includes_status(self):
        err = UpstreamError("Not Found", service="registry", upstream_status=404, response="{}")
        assert str(err) == "registry request failed (404): Not Found"
        assert err.details == {"service": "registry", "upstream_status": 404, "response": "{}"}

    def test_credential_message_names_domain(self):
        err = CredentialError("token exchange failed (401)", domain="registry")
        assert str(err) == "registry credential error: token exchange failed (401)"
        assert err.details == {"domain": "registry"}


class TestRedaction:
    def test_json_values_redacted(self):
        text = '{"access_token": "ya29.secret", "refreshToken": "r-123", "tenant": "lab"}'
        redacted = redact_credential_values(text)
        assert "ya29.secret" not in redacted
        assert "r-123" not in redacted
        assert '"tenant": "lab"' in redacted

    def test_key_value_pairs_redacted(self):
        redacted = redact_credential_values("client_secret=abc&grant_type=refresh_token")
        assert "abc" not in redacted
        assert "grant_type=refresh_token" in redacted

    def test_summary_collapses_whitespace_and_truncates(self):
        summary = summarize_response_text("line one\n\n   line two " + "x" * 600, limit=20)
        assert summary == "line one line two xx"

    def test_log_processor_scrubs_event(self):
        event_dict = {"event": "exchange failed: refresh_token=abc123", "level": "warning"}
        assert redact_secrets(None, "warning", event_dict)["event"] == (
            "exchange failed: refresh_token=[REDACTED]"
        )
