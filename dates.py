"""Calendar dates <-> canonical instants.

Every user-supplied calendar day is stored as the instant of 12:00 local time
in the deployment's fixed reference offset (UTC-3 by default), so that
``2025-08-01`` travels as ``2025-08-01T15:00:00.000Z``. Noon keeps the day
stable under any naive timezone-aware parsing within +/-11 hours.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Union

from config import get_settings
from errors import InvalidDate


def reference_tz() -> timezone:
    return timezone(timedelta(hours=get_settings().utc_offset_hours))


def normalize(year: int, month: int, day: int) -> datetime:
    try:
        local_noon = datetime(year, month, day, 12, 0, 0, tzinfo=reference_tz())
        return local_noon.astimezone(timezone.utc)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidDate(f"La fecha {year}-{month}-{day} no es válida") from exc


def normalize_date(value: date) -> datetime:
    return normalize(value.year, value.month, value.day)


def denormalize(instant: datetime) -> tuple[int, int, int]:
    # Naive values come back from SQLite and are UTC by construction.
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    local = instant.astimezone(reference_tz())
    return local.year, local.month, local.day


def calendar_date(instant: datetime) -> date:
    return date(*denormalize(instant))


def to_iso(instant: datetime) -> str:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    utc = instant.astimezone(timezone.utc)
    millis = utc.microsecond // 1000
    return f"{utc:%Y-%m-%dT%H:%M:%S}.{millis:03d}Z"


def parse_instant(value: str) -> datetime:
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise InvalidDate(f"La fecha '{value}' no es válida") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce_calendar_date(value: Union[str, date, datetime]) -> date:
    """Accept ``YYYY-MM-DD``, an ISO instant or a date/datetime object."""
    if isinstance(value, datetime):
        return calendar_date(value)
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) == 10:
        try:
            return date.fromisoformat(text)
        except ValueError as exc:
            raise InvalidDate(f"La fecha '{value}' no es válida") from exc
    return calendar_date(parse_instant(text))


def local_today() -> date:
    return datetime.now(reference_tz()).date()


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Inclusive instant bounds covering the calendar days ``start..end``."""
    return normalize_date(start), normalize_date(end)
