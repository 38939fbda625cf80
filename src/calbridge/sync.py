"""Sync orchestrator: the two request-scoped pipelines of the bridge.

``create_from_record``
    registry reservation -> normalized window -> calendar event insert.
``update_from_event``
    calendar event -> record id from description -> display-format times
    -> registry record update (``StartUse`` / ``EndUse``).

Both pipelines are stateless; the only shared state is the token cache
inside ``CredentialManager``. Neither pipeline retries on upstream failure:
re-invoking ``create_from_record`` for the same record creates a second
calendar event.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
import structlog

from calbridge.clients import CalendarClient, RegistryClient, registry_field
from calbridge.config import BridgeConfig
from calbridge.credentials import CredentialManager, GoogleOAuthCredentials, RegistryCredentials
from calbridge.identity import build_event_description, extract_record_id
from calbridge.models import (
    CalendarEvent,
    CreateEventResult,
    ReservationRecord,
    UpdateRecordResult,
    parse_payload,
)
from calbridge.temporal import (
    EventWindow,
    ensure_end_after_start,
    format_display,
    normalize_window,
    parse_calendar_instant,
)

logger = logging.getLogger(__name__)


def build_calendar_event_body(
    record: ReservationRecord,
    window: EventWindow,
) -> dict[str, Any]:
    """Translate a reservation and its normalized window into an event body."""
    body: dict[str, Any] = {
        "summary": record.summary or f"Reservation {record.record_id}",
        "description": build_event_description(record.record_id, record.description),
        "start": {"dateTime": window.start_iso, "timeZone": window.time_zone},
        "end": {"dateTime": window.end_iso, "timeZone": window.time_zone},
    }
    if record.location is not None:
        body["location"] = record.location

    if record.attendees:
        body["attendees"] = [{"email": email} for email in record.attendees]

    if record.reminders is None:
        body["reminders"] = {"useDefault": True}
    else:
        body["reminders"] = {
            "useDefault": False,
            "overrides": [
                {"method": reminder.method, "minutes": reminder.minutes}
                for reminder in record.reminders
            ],
        }
    return body


class SyncOrchestrator:
    """Entry point for both sync directions."""

    def __init__(
        self,
        *,
        calendar: CalendarClient,
        registry: RegistryClient,
        calendar_id: str = "primary",
        default_timezone: str = "UTC",
        start_field: str = "StartUse",
        end_field: str = "EndUse",
    ) -> None:
        self._calendar = calendar
        self._registry = registry
        self._calendar_id = calendar_id
        self._default_timezone = default_timezone
        self._start_field = start_field
        self._end_field = end_field

    @classmethod
    def from_config(
        cls, config: BridgeConfig, http_client: httpx.AsyncClient
    ) -> SyncOrchestrator:
        """Wire credentials and API clients from *config* over one HTTP client."""
        credentials = CredentialManager(
            calendar_credentials=GoogleOAuthCredentials(
                client_id=config.google_client_id,
                client_secret=config.google_client_secret,
                refresh_token=config.google_refresh_token,
            ),
            registry_credentials=RegistryCredentials(
                refresh_token=config.registry_refresh_token,
                tenant=config.registry_tenant,
            ),
            registry_base_url=config.registry_base_url,
            http_client=http_client,
        )
        return cls(
            calendar=CalendarClient(credentials, http_client),
            registry=RegistryClient(credentials, http_client, base_url=config.registry_base_url),
            calendar_id=config.calendar_id,
            default_timezone=config.default_timezone,
            start_field=config.registry_start_field,
            end_field=config.registry_end_field,
        )

    async def create_from_record(
        self, payload: ReservationRecord | dict[str, Any]
    ) -> CreateEventResult:
        """Create a calendar event for a registry reservation."""
        record = (
            payload
            if isinstance(payload, ReservationRecord)
            else parse_payload(ReservationRecord, payload)
        )
        time_zone = record.time_zone or self._default_timezone

        with structlog.contextvars.bound_contextvars(
            operation="create_from_record", record_id=record.record_id
        ):
            window = normalize_window(record.start, record.end, time_zone)
            body = build_calendar_event_body(record, window)
            event = await self._calendar.create_event(calendar_id=self._calendar_id, body=body)
            event_id = event.get("id") if isinstance(event.get("id"), str) else None
            logger.info(
                "Created calendar event %s for record %s (%s -> %s)",
                event_id,
                record.record_id,
                window.start_iso,
                window.end_iso,
            )

        return CreateEventResult(
            record_id=record.record_id,
            event_id=event_id,
            end_corrected=window.end_corrected,
            event=event,
        )

    async def update_from_event(
        self, payload: CalendarEvent | dict[str, Any]
    ) -> UpdateRecordResult:
        """Write a calendar event's start/end back onto its registry record."""
        event = (
            payload if isinstance(payload, CalendarEvent) else parse_payload(CalendarEvent, payload)
        )

        with structlog.contextvars.bound_contextvars(
            operation="update_from_event", event_id=event.id
        ):
            record_id = extract_record_id(event.description)
            with structlog.contextvars.bound_contextvars(record_id=record_id):
                start_zone = event.start.time_zone or self._default_timezone
                end_zone = event.end.time_zone or start_zone
                start_at = parse_calendar_instant(event.start.date_time)
                end_at = ensure_end_after_start(
                    start_at, parse_calendar_instant(event.end.date_time)
                )
                start_display = format_display(start_at, start_zone)
                end_display = format_display(end_at, end_zone)

                if event.is_cancelled:
                    logger.info("Event %s is cancelled; writing its last known times", event.id)

                data = await self._registry.update_record(
                    record_id=record_id,
                    fields=[
                        registry_field(self._start_field, start_display),
                        registry_field(self._end_field, end_display),
                    ],
                )
                logger.info(
                    "Updated registry record %s from event %s (%s -> %s)",
                    record_id,
                    event.id,
                    start_display,
                    end_display,
                )

        return UpdateRecordResult(
            record_id=record_id,
            event_id=event.id,
            status=event.status,
            start=start_display,
            end=end_display,
            data=data,
        )
