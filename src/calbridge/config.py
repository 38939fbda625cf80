"""Environment configuration for the bridge.

``load_config()`` reads the process environment (or an explicit mapping)
into a frozen ``BridgeConfig``. Missing required variables are reported
together in a single ``ConfigError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

REGISTRY_BASE_URLS = {
    "production": "https://core-production.alchemy.cloud",
    "preproduction": "https://core-preproduction.alchemy.cloud",
}

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_CALENDAR_ID = "primary"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 20.0
DEFAULT_START_FIELD = "StartUse"
DEFAULT_END_FIELD = "EndUse"

REQUIRED_ENV_VARS: tuple[str, ...] = (
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_REFRESH_TOKEN",
    "ALCHEMY_REFRESH_TOKEN",
    "ALCHEMY_TENANT",
)

_LOG_FORMATS = frozenset({"text", "json"})


class ConfigError(Exception):
    """Raised when bridge configuration is missing, malformed, or invalid."""


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "text"  # "text" or "json"


@dataclass(frozen=True)
class BridgeConfig:
    """Process-lifetime settings; secrets are excluded from ``repr``."""

    google_client_id: str
    google_client_secret: str = field(repr=False)
    google_refresh_token: str = field(repr=False)
    registry_refresh_token: str = field(repr=False)
    registry_tenant: str
    registry_environment: str = "production"
    registry_base_url: str = REGISTRY_BASE_URLS["production"]
    registry_start_field: str = DEFAULT_START_FIELD
    registry_end_field: str = DEFAULT_END_FIELD
    calendar_id: str = DEFAULT_CALENDAR_ID
    default_timezone: str = DEFAULT_TIMEZONE
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _get(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _get_or(environ: Mapping[str, str], name: str, default: str) -> str:
    value = _get(environ, name)
    return default if value is None else value


def _parse_port(raw: str) -> int:
    try:
        port = int(raw)
    except ValueError as exc:
        raise ConfigError(f"PORT must be an integer, got {raw!r}") from exc
    if not 0 < port < 65536:
        raise ConfigError(f"PORT must be between 1 and 65535, got {port}")
    return port


def _parse_timeout(raw: str) -> float:
    try:
        timeout = float(raw)
    except ValueError as exc:
        raise ConfigError(f"REQUEST_TIMEOUT_SECONDS must be a number, got {raw!r}") from exc
    if timeout <= 0:
        raise ConfigError(f"REQUEST_TIMEOUT_SECONDS must be positive, got {timeout}")
    return timeout


def _resolve_registry_base_url(environ: Mapping[str, str]) -> tuple[str, str]:
    environment = _get_or(environ, "ALCHEMY_ENVIRONMENT", "production").lower()
    override = _get(environ, "ALCHEMY_BASE_URL")
    if override is not None:
        return environment, override.rstrip("/")
    if environment not in REGISTRY_BASE_URLS:
        valid = ", ".join(sorted(REGISTRY_BASE_URLS))
        raise ConfigError(f"ALCHEMY_ENVIRONMENT must be one of: {valid} (got {environment!r})")
    return environment, REGISTRY_BASE_URLS[environment]


def load_config(environ: Mapping[str, str] | None = None) -> BridgeConfig:
    """Build a ``BridgeConfig`` from environment variables.

    Raises
    ------
    ConfigError
        If required variables are missing (all listed in one message) or an
        option has an invalid value.
    """
    env = os.environ if environ is None else environ

    missing = [name for name in REQUIRED_ENV_VARS if _get(env, name) is None]
    if missing:
        lines = [f"  - {name}" for name in missing]
        raise ConfigError("Missing required environment variables:\n" + "\n".join(lines))

    default_timezone = _get_or(env, "DEFAULT_TIMEZONE", DEFAULT_TIMEZONE)
    try:
        ZoneInfo(default_timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(
            f"DEFAULT_TIMEZONE is not a known IANA zone: {default_timezone!r}"
        ) from exc

    log_format = _get_or(env, "LOG_FORMAT", "text").lower()
    if log_format not in _LOG_FORMATS:
        raise ConfigError(f"LOG_FORMAT must be 'text' or 'json', got {log_format!r}")

    environment, base_url = _resolve_registry_base_url(env)

    return BridgeConfig(
        google_client_id=env["GOOGLE_CLIENT_ID"].strip(),
        google_client_secret=env["GOOGLE_CLIENT_SECRET"].strip(),
        google_refresh_token=env["GOOGLE_REFRESH_TOKEN"].strip(),
        registry_refresh_token=env["ALCHEMY_REFRESH_TOKEN"].strip(),
        registry_tenant=env["ALCHEMY_TENANT"].strip(),
        registry_environment=environment,
        registry_base_url=base_url,
        registry_start_field=_get_or(env, "ALCHEMY_START_FIELD", DEFAULT_START_FIELD),
        registry_end_field=_get_or(env, "ALCHEMY_END_FIELD", DEFAULT_END_FIELD),
        calendar_id=_get_or(env, "GOOGLE_CALENDAR_ID", DEFAULT_CALENDAR_ID),
        default_timezone=default_timezone,
        request_timeout_seconds=_parse_timeout(
            _get_or(env, "REQUEST_TIMEOUT_SECONDS", str(DEFAULT_REQUEST_TIMEOUT_SECONDS))
        ),
        host=_get_or(env, "HOST", DEFAULT_HOST),
        port=_parse_port(_get_or(env, "PORT", str(DEFAULT_PORT))),
        logging=LoggingConfig(
            level=_get_or(env, "LOG_LEVEL", "INFO").upper(),
            format=log_format,
        ),
    )
