"""Error taxonomy for the calendar/registry bridge.

Every failure raised by the engine derives from ``BridgeError`` and carries
the HTTP status and machine-readable code the API layer renders:

- ``ValidationError`` → 400 (malformed or missing inbound fields)
- ``FormatError`` → 400 (date string does not match the display grammar)
- ``IdentityError`` → 400 (no record id recoverable from event text)
- ``CredentialError`` → 500 (token acquisition or refresh failed)
- ``UpstreamError`` → 500 (remote API returned non-2xx or timed out)
"""

from __future__ import annotations

import re
from typing import Any

_REDACTED_KEYS = r"client_secret|refresh_token|refreshToken|access_token|accessToken|token"


def redact_credential_values(message: str) -> str:
    """Redact credential-looking values from provider text."""
    redacted = message
    # key=value style pairs
    redacted = re.sub(
        rf"(?i)\b({_REDACTED_KEYS})\s*=\s*([^\s,;&]+)",
        r"\1=[REDACTED]",
        redacted,
    )
    # JSON style quoted values
    redacted = re.sub(
        rf"""(?i)(['"]?(?:{_REDACTED_KEYS})['"]?\s*:\s*)(['"]).*?\2""",
        r'\1"[REDACTED]"',
        redacted,
    )
    return redacted


def summarize_response_text(text: str, limit: int = 500) -> str:
    """Collapse whitespace, redact secrets and truncate provider response text."""
    return " ".join(redact_credential_values(text).split())[:limit]


class BridgeError(RuntimeError):
    """Base error for every failure surfaced by the sync engine."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(BridgeError):
    """Raised when an inbound payload is missing or has malformed fields."""

    status_code = 400
    code = "VALIDATION_ERROR"


class FormatError(BridgeError):
    """Raised when a date-time string does not match the expected grammar."""

    status_code = 400
    code = "FORMAT_ERROR"


class IdentityError(BridgeError):
    """Raised when no registry record id can be recovered from event text."""

    status_code = 400
    code = "IDENTITY_ERROR"


class CredentialError(BridgeError):
    """Raised when a token exchange fails for either identity domain."""

    code = "CREDENTIAL_ERROR"

    def __init__(self, message: str, *, domain: str, response: str | None = None) -> None:
        self.domain = domain
        self.response = response
        details: dict[str, Any] = {"domain": domain}
        if response is not None:
            details["response"] = response
        super().__init__(f"{domain} credential error: {message}", details=details)


class UpstreamError(BridgeError):
    """Raised when a calendar or registry API call fails or times out."""

    code = "UPSTREAM_ERROR"

    def __init__(
        self,
        message: str,
        *,
        service: str,
        upstream_status: int | None = None,
        response: str | None = None,
    ) -> None:
        self.service = service
        self.upstream_status = upstream_status
        self.response = response
        details: dict[str, Any] = {"service": service, "upstream_status": upstream_status}
        if response is not None:
            details["response"] = response
        if upstream_status is None:
            summary = f"{service} request failed: {message}"
        else:
            summary = f"{service} request failed ({upstream_status}): {message}"
        super().__init__(summary, details=details)
