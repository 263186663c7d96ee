"""
Schedule calculator: venue hours + preparation time + "now" -> earliest bookable drop-off.

Everything here is pure. "now" is always injectable; wall-clock conversion goes through
zoneinfo so results do not depend on the host's locale or timezone.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import settings
from app.core.constants import (
    DEFAULT_DAYS_AHEAD,
    DEFAULT_PREPARATION_MINUTES,
    IMMEDIATE_DELIVERY_MIN_MINUTES,
    MAX_PREPARATION_MINUTES,
    MIN_PREPARATION_MINUTES,
    SAFETY_BUFFER_MINUTES,
    SLOT_CLOSE_MARGIN_MINUTES,
    SLOT_INTERVAL_MINUTES,
)
from app.core.errors import InvalidConfiguration

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
# Provider instants: 2025-11-18T23:51:14.929Z (milliseconds optional)
ISO_INSTANT_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d{3})?Z$")


def parse_hhmm(value: str) -> int:
    """Parse "HH:mm" to minutes since midnight. Raises InvalidConfiguration if malformed."""
    m = _HHMM_RE.match((value or "").strip()) if isinstance(value, str) else None
    if not m:
        raise InvalidConfiguration(f"Invalid time {value!r}. Use HH:mm.")
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise InvalidConfiguration(f"Invalid time {value!r}. Use HH:mm.")
    return hour * 60 + minute


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class VenueSchedule:
    """Venue opening hours in venue-local wall-clock time. Overnight hours are not supported."""
    open_time: str
    close_time: str

    def __post_init__(self) -> None:
        if self.open_minutes >= self.close_minutes:
            raise InvalidConfiguration(
                f"Venue must open before it closes (open={self.open_time}, close={self.close_time})."
            )

    @property
    def open_minutes(self) -> int:
        return parse_hhmm(self.open_time)

    @property
    def close_minutes(self) -> int:
        return parse_hhmm(self.close_time)


def get_zone(tz_name: str | None = None) -> ZoneInfo:
    """IANA zone for tz_name (configured venue timezone when None)."""
    name = tz_name or settings.venue_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        raise InvalidConfiguration(f"Unknown timezone {name!r}.") from None


def _now_utc(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _minutes_of_day(dt: datetime) -> int:
    return dt.hour * 60 + dt.minute


def _at_local(day: date, minutes: int, zone: ZoneInfo) -> datetime:
    """UTC instant for venue-local day + minutes since midnight."""
    local = datetime(day.year, day.month, day.day, minutes // 60, minutes % 60, tzinfo=zone)
    return local.astimezone(timezone.utc)


def to_iso_utc(dt: datetime) -> str:
    """ISO-8601 UTC with milliseconds and a Z suffix, e.g. 2025-11-18T23:51:19.929Z."""
    return _now_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_instant(value: Any) -> datetime | None:
    """Parse a strict ISO-8601 UTC instant (see ISO_INSTANT_RE). None if malformed or not a real date."""
    if not isinstance(value, str) or not ISO_INSTANT_RE.match(value.strip()):
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _check_preparation(prep_minutes: int) -> None:
    if (
        not isinstance(prep_minutes, int)
        or isinstance(prep_minutes, bool)
        or not MIN_PREPARATION_MINUTES <= prep_minutes <= MAX_PREPARATION_MINUTES
    ):
        raise InvalidConfiguration(
            f"Preparation time must be {MIN_PREPARATION_MINUTES}-{MAX_PREPARATION_MINUTES} minutes, got {prep_minutes!r}."
        )


def compute_scheduled_dropoff(
    schedule: VenueSchedule,
    tz_name: str | None = None,
    prep_minutes: int = DEFAULT_PREPARATION_MINUTES,
    now: datetime | None = None,
) -> str:
    """
    Earliest drop-off the provider should accept, as ISO-8601 UTC.

    The 15 min safety buffer is applied to now before comparing against the hours:
      - before opening: today's opening + prep
      - at/after closing: tomorrow's opening + prep
      - open: now + buffer + prep, unless that lands at/after closing -> tomorrow's opening + prep
    """
    _check_preparation(prep_minutes)
    zone = get_zone(tz_name)
    prep = timedelta(minutes=prep_minutes)
    base = _now_utc(now) + timedelta(minutes=SAFETY_BUFFER_MINUTES)
    local = base.astimezone(zone)
    current = _minutes_of_day(local)
    today = local.date()
    tomorrow_open = _at_local(today + timedelta(days=1), schedule.open_minutes, zone) + prep

    if current < schedule.open_minutes:
        scheduled = _at_local(today, schedule.open_minutes, zone) + prep
    elif current >= schedule.close_minutes:
        scheduled = tomorrow_open
    else:
        scheduled = base + prep
        scheduled_local = scheduled.astimezone(zone)
        if scheduled_local.date() != today or _minutes_of_day(scheduled_local) >= schedule.close_minutes:
            scheduled = tomorrow_open
    return to_iso_utc(scheduled)


def minutes_until_close(
    schedule: VenueSchedule,
    tz_name: str | None = None,
    now: datetime | None = None,
) -> int:
    """Minutes until closing in venue-local time. Negative once the venue has closed."""
    local = _now_utc(now).astimezone(get_zone(tz_name))
    return schedule.close_minutes - _minutes_of_day(local)


def is_venue_open(
    schedule: VenueSchedule,
    tz_name: str | None = None,
    now: datetime | None = None,
) -> bool:
    local = _now_utc(now).astimezone(get_zone(tz_name))
    return schedule.open_minutes <= _minutes_of_day(local) < schedule.close_minutes


def is_ready_for_immediate_delivery(
    schedule: VenueSchedule,
    tz_name: str | None = None,
    now: datetime | None = None,
) -> bool:
    """True if there is still room for prep + delivery before closing; otherwise force manual scheduling."""
    return minutes_until_close(schedule, tz_name, now) >= IMMEDIATE_DELIVERY_MIN_MINUTES


def _date_label(day: date) -> str:
    return f"{day:%A}, {day:%B} {day.day}"


class DeliveryDates:
    """Selectable delivery dates, tomorrow onward. Iterating again starts over."""

    __slots__ = ("_first", "_count")

    def __init__(self, first: date, count: int) -> None:
        self._first = first
        self._count = count

    def __iter__(self) -> Iterator[dict[str, str]]:
        for i in range(self._count):
            day = self._first + timedelta(days=i)
            yield {"value": day.isoformat(), "label": _date_label(day)}

    def __len__(self) -> int:
        return self._count


class TimeSlots:
    """Selectable HH:mm slots from opening to closing minus the delivery margin. Iterating again starts over."""

    __slots__ = ("_start", "_end")

    def __init__(self, start: int, end: int) -> None:
        self._start = start
        self._end = end

    def __iter__(self) -> Iterator[dict[str, str]]:
        minutes = self._start
        while minutes <= self._end:
            value = format_hhmm(minutes)
            yield {"value": value, "label": value}
            minutes += SLOT_INTERVAL_MINUTES

    def __len__(self) -> int:
        if self._end < self._start:
            return 0
        return (self._end - self._start) // SLOT_INTERVAL_MINUTES + 1

    def __contains__(self, minutes: object) -> bool:
        return (
            isinstance(minutes, int)
            and self._start <= minutes <= self._end
            and (minutes - self._start) % SLOT_INTERVAL_MINUTES == 0
        )


def enumerate_delivery_dates(
    days_ahead: int = DEFAULT_DAYS_AHEAD,
    tz_name: str | None = None,
    now: datetime | None = None,
) -> DeliveryDates:
    """Dates from tomorrow to +days_ahead (venue-local), with labels like "Tuesday, November 18"."""
    if days_ahead < 0:
        raise InvalidConfiguration(f"days_ahead must be >= 0, got {days_ahead}.")
    today = _now_utc(now).astimezone(get_zone(tz_name)).date()
    return DeliveryDates(today + timedelta(days=1), days_ahead)


def enumerate_time_slots(schedule: VenueSchedule) -> TimeSlots:
    return TimeSlots(schedule.open_minutes, schedule.close_minutes - SLOT_CLOSE_MARGIN_MINUTES)


def manual_scheduled_dropoff(
    date_str: str,
    time_str: str,
    schedule: VenueSchedule,
    tz_name: str | None = None,
) -> str:
    """Convert a manually picked venue-local date + slot into an ISO-8601 UTC drop-off."""
    try:
        day = date.fromisoformat((date_str or "").strip())
    except ValueError:
        raise InvalidConfiguration(f"Invalid date {date_str!r}. Use YYYY-MM-DD.") from None
    minutes = parse_hhmm(time_str)
    if minutes not in enumerate_time_slots(schedule):
        raise InvalidConfiguration(
            f"Time {time_str} is not a delivery slot for hours {schedule.open_time}-{schedule.close_time}."
        )
    return to_iso_utc(_at_local(day, minutes, get_zone(tz_name)))


def format_time_in_timezone(iso: str, tz_name: str | None = None) -> str:
    """Display an ISO instant as "YYYY-MM-DD HH:mm" venue time. Returns the input unchanged if unparseable."""
    if not iso:
        return ""
    try:
        dt = datetime.fromisoformat(iso.strip().replace("Z", "+00:00"))
    except ValueError:
        return iso
    return _now_utc(dt).astimezone(get_zone(tz_name)).strftime("%Y-%m-%d %H:%M")


def is_scheduled_more_than_one_hour(iso: str | None, now: datetime | None = None) -> bool:
    if not iso:
        return False
    try:
        scheduled = _now_utc(datetime.fromisoformat(iso.strip().replace("Z", "+00:00")))
    except ValueError:
        return False
    return scheduled > _now_utc(now) + timedelta(hours=1)
