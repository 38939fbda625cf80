"""Inbound payload and result models for the sync engine."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any, Literal, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from calbridge.errors import ValidationError

# Google Calendar caps reminders at four weeks.
MAX_REMINDER_MINUTES = 40320


def _strip_required(value: Any, field_name: str) -> Any:
    if isinstance(value, str):
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{field_name} must be a non-empty string")
        return normalized
    return value


def _strip_optional(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class EventStatus(StrEnum):
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


class ReminderOverride(BaseModel):
    """A single reminder; bare integers are read as popup minutes."""

    model_config = ConfigDict(extra="ignore")

    method: Literal["popup", "email"] = "popup"
    minutes: int = Field(ge=0, le=MAX_REMINDER_MINUTES)


class ReservationRecord(BaseModel):
    """Registry reservation as posted to ``/create-event``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    record_id: str = Field(validation_alias=AliasChoices("id", "recordId", "record_id"))
    start: str
    end: str
    time_zone: str | None = Field(
        default=None,
        validation_alias=AliasChoices("timeZone", "timezone", "time_zone"),
    )
    summary: str | None = None
    location: str | None = None
    description: str | None = None
    attendees: list[str] = Field(default_factory=list)
    reminders: list[ReminderOverride] | None = None

    @field_validator("record_id", mode="before")
    @classmethod
    def _normalize_record_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        value = _strip_required(value, "id")
        if isinstance(value, str) and not value.isdigit():
            raise ValueError("id must be a numeric record identifier")
        return value

    @field_validator("start", "end", mode="before")
    @classmethod
    def _normalize_boundary(cls, value: Any, info: ValidationInfo) -> Any:
        return _strip_required(value, info.field_name)

    @field_validator("time_zone", "summary", "location", "description")
    @classmethod
    def _normalize_optional_text(cls, value: str | None) -> str | None:
        return _strip_optional(value)

    @field_validator("attendees", mode="before")
    @classmethod
    def _normalize_attendees(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        emails: list[str] = []
        for attendee in value:
            if isinstance(attendee, Mapping):
                attendee = attendee.get("email")
            if isinstance(attendee, str) and attendee.strip():
                emails.append(attendee.strip())
            else:
                raise ValueError("attendees must be e-mail strings or {email} objects")
        return emails

    @field_validator("reminders", mode="before")
    @classmethod
    def _normalize_reminders(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [
            {"minutes": item}
            if isinstance(item, int) and not isinstance(item, bool)
            else item
            for item in value
        ]


class CalendarEventTime(BaseModel):
    """``{dateTime, timeZone}`` boundary of a calendar event."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    date_time: str = Field(validation_alias=AliasChoices("dateTime", "date_time"))
    time_zone: str | None = Field(
        default=None,
        validation_alias=AliasChoices("timeZone", "time_zone"),
    )

    @field_validator("date_time", mode="before")
    @classmethod
    def _normalize_date_time(cls, value: Any) -> Any:
        return _strip_required(value, "dateTime")

    @field_validator("time_zone")
    @classmethod
    def _normalize_time_zone(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class CalendarEvent(BaseModel):
    """Calendar event as delivered to ``/update-alchemy``."""

    model_config = ConfigDict(extra="ignore")

    id: str
    status: EventStatus = EventStatus.CONFIRMED
    start: CalendarEventTime
    end: CalendarEventTime
    description: str
    summary: str | None = None
    location: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Any:
        return _strip_required(value, "id")

    @property
    def is_cancelled(self) -> bool:
        return self.status is EventStatus.CANCELLED


class _ResultModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateEventResult(_ResultModel):
    """Outcome of ``create_from_record``."""

    success: bool = True
    record_id: str
    event_id: str | None = None
    end_corrected: bool = False
    event: dict[str, Any]


class UpdateRecordResult(_ResultModel):
    """Outcome of ``update_from_event``."""

    success: bool = True
    message: str = "Alchemy record updated"
    record_id: str
    event_id: str
    status: EventStatus
    start: str
    end: str
    data: Any = None


M = TypeVar("M", bound=BaseModel)


def parse_payload(model: type[M], payload: Any) -> M:
    """Validate *payload* into *model*, raising the bridge ``ValidationError``."""
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(dict(payload))
    except PydanticValidationError as exc:
        problems = [
            {
                "field": ".".join(str(part) for part in error["loc"]) or "body",
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        summary = "; ".join(f"{p['field']}: {p['message']}" for p in problems)
        raise ValidationError(
            f"Invalid request data: {summary}",
            details={"errors": problems},
        ) from exc
