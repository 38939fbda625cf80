"""Temporal normalizer: display strings <-> calendar ISO-8601 instants.

The registry renders reservation times as a fixed, offset-free display
string (``"Mar 05 2025 02:30 PM"``); the calendar provider speaks
ISO-8601 with an explicit UTC offset. Conversions are anchored to an
explicit IANA zone:

- display -> calendar: the displayed hour is the *local wall-clock* hour in
  the zone (never parsed as UTC and shifted). Ambiguous fall-back times
  resolve to the earlier offset; nonexistent spring-forward times move
  forward by the length of the gap.
- calendar -> display: the instant is rendered in the zone's local
  wall-clock time. Instants without an offset are taken as UTC.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from calbridge.errors import FormatError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_EVENT_DURATION = timedelta(hours=1)

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_MONTH_NUMBERS = {name.lower(): index for index, name in enumerate(_MONTHS, start=1)}

# "<Mon> <DD> <YYYY> <hh>:<mm> <AM|PM>"
_DISPLAY_PATTERN = re.compile(
    r"^(?P<month>[A-Za-z]{3})\s+(?P<day>\d{1,2})\s+(?P<year>\d{4})\s+"
    r"(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*(?P<meridiem>[AaPp][Mm])$"
)


def resolve_zone(time_zone: str) -> ZoneInfo:
    """Return the ``ZoneInfo`` for an IANA zone identifier."""
    normalized = time_zone.strip() if isinstance(time_zone, str) else ""
    if not normalized:
        raise ValidationError("timeZone must be a non-empty IANA zone identifier")
    try:
        return ZoneInfo(normalized)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(
            f"Unknown time zone: {normalized!r}", details={"timeZone": normalized}
        ) from exc


def _parse_display_fields(value: str) -> datetime:
    match = _DISPLAY_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise FormatError(
            f"Date-time {value!r} does not match 'Mon DD YYYY hh:mm AM/PM'",
            details={"value": value},
        )

    month = _MONTH_NUMBERS.get(match["month"].lower())
    if month is None:
        raise FormatError(f"Unknown month name in {value!r}", details={"value": value})

    hour = int(match["hour"])
    minute = int(match["minute"])
    if not 1 <= hour <= 12 or minute > 59:
        raise FormatError(f"Invalid 12-hour clock time in {value!r}", details={"value": value})

    # 12 AM is midnight, 12 PM is noon.
    hour = hour % 12
    if match["meridiem"].upper() == "PM":
        hour += 12

    try:
        return datetime(int(match["year"]), month, int(match["day"]), hour, minute)
    except ValueError as exc:
        raise FormatError(f"Invalid calendar date in {value!r}", details={"value": value}) from exc


def _localize(wall_clock: datetime, zone: ZoneInfo) -> datetime:
    # fold=0 picks the earlier offset for repeated wall-clock times.
    aware = wall_clock.replace(tzinfo=zone, fold=0)
    normalized = aware.astimezone(UTC).astimezone(zone)
    if normalized.replace(tzinfo=None) != wall_clock:
        logger.debug(
            "Local time %s does not exist in %s; shifted to %s",
            wall_clock.isoformat(),
            zone.key,
            normalized.isoformat(),
        )
        return normalized
    return aware


def parse_display(value: str, time_zone: str) -> datetime:
    """Parse a registry display string as wall-clock time in *time_zone*."""
    zone = resolve_zone(time_zone)
    return _localize(_parse_display_fields(value), zone)


def to_calendar_format(value: str, time_zone: str) -> str:
    """Convert a display string to an ISO-8601 instant carrying the zone offset."""
    return parse_display(value, time_zone).isoformat(timespec="seconds")


def parse_calendar_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant; values without an offset are taken as UTC."""
    normalized = value.strip() if isinstance(value, str) else ""
    if normalized.endswith(("Z", "z")):
        normalized = f"{normalized[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise FormatError(
            f"Invalid ISO-8601 date-time: {value!r}", details={"value": value}
        ) from exc
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def format_display(value: datetime, time_zone: str) -> str:
    """Render an aware datetime in the registry display grammar."""
    local = value.astimezone(resolve_zone(time_zone))
    meridiem = "PM" if local.hour >= 12 else "AM"
    hour = local.hour % 12 or 12
    return (
        f"{_MONTHS[local.month - 1]} {local.day:02d} {local.year:04d} "
        f"{hour:02d}:{local.minute:02d} {meridiem}"
    )


def to_display_format(value: str, time_zone: str) -> str:
    """Convert an ISO-8601 instant to the display grammar in *time_zone*."""
    return format_display(parse_calendar_instant(value), time_zone)


def ensure_end_after_start(
    start: datetime,
    end: datetime,
    *,
    duration: timedelta = DEFAULT_EVENT_DURATION,
) -> datetime:
    """Return *end*, or ``start + duration`` when *end* is not after *start*.

    The fallback is computed on absolute time so a DST transition inside the
    window does not stretch or shrink it.
    """
    if end.astimezone(UTC) > start.astimezone(UTC):
        return end
    return (start.astimezone(UTC) + duration).astimezone(start.tzinfo)


@dataclass(frozen=True)
class EventWindow:
    """Normalized start/end pair anchored to one zone."""

    start: datetime
    end: datetime
    time_zone: str
    end_corrected: bool = False

    @property
    def start_iso(self) -> str:
        return self.start.isoformat(timespec="seconds")

    @property
    def end_iso(self) -> str:
        return self.end.isoformat(timespec="seconds")


def normalize_window(start: str, end: str, time_zone: str) -> EventWindow:
    """Parse both display strings and apply the end-after-start policy once."""
    start_at = parse_display(start, time_zone)
    end_at = parse_display(end, time_zone)
    corrected_end = ensure_end_after_start(start_at, end_at)
    corrected = corrected_end is not end_at
    if corrected:
        logger.info(
            "End %s is not after start %s; using start + %s",
            end_at.isoformat(),
            start_at.isoformat(),
            DEFAULT_EVENT_DURATION,
        )
    return EventWindow(
        start=start_at,
        end=corrected_end,
        time_zone=time_zone.strip(),
        end_corrected=corrected,
    )
