from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
TRAVEL_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}(T.+)?$")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_tz() -> ZoneInfo:
    return ZoneInfo(current_app.config.get("BUSINESS_TIMEZONE", "America/Lima"))


def business_now() -> datetime:
    """Aware 'now' in the configured business timezone."""
    return datetime.now(business_tz())


def business_today() -> date:
    return business_now().date()


def parse_travel_date(value) -> date:
    """
    Normalize a travel date to a calendar day.

    Accepts date/datetime objects, "YYYY-MM-DD" strings and ISO datetimes
    ("YYYY-MM-DDTHH:MM..."), whose time part is dropped. Raises ValueError on
    anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError("travel date is required")
    text = value.strip()
    match = TRAVEL_DATE_RE.match(text)
    if not match:
        raise ValueError(f"invalid travel date: {value!r}")
    if match.group(1):
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    return date.fromisoformat(text)


def is_hhmm(value) -> bool:
    return isinstance(value, str) and bool(HHMM_RE.match(value))


def travel_datetime(travel_date: date, travel_time: str) -> datetime:
    """Combine a travel date and "HH:MM" into an aware business-zone datetime."""
    hours, minutes = (int(part) for part in travel_time.split(":"))
    return datetime.combine(travel_date, time(hours, minutes), tzinfo=business_tz())


def end_of_travel_day(travel_date: date) -> datetime:
    """Last instant of the travel day in the business timezone."""
    start = datetime.combine(travel_date, time(0, 0), tzinfo=business_tz())
    return start + timedelta(days=1) - timedelta(microseconds=1)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
