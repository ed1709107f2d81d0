from datetime import date, datetime, timezone

import pytest

from dates import (
    calendar_date,
    coerce_calendar_date,
    day_bounds,
    denormalize,
    normalize,
    parse_instant,
    to_iso,
)
from errors import InvalidDate


def test_normalize_is_local_noon_in_utc():
    instant = normalize(2025, 8, 1)
    assert instant == datetime(2025, 8, 1, 15, 0, tzinfo=timezone.utc)
    assert to_iso(instant) == "2025-08-01T15:00:00.000Z"


@pytest.mark.parametrize(
    "day",
    [date(2025, 1, 1), date(2024, 2, 29), date(2025, 12, 31), date(2025, 8, 1)],
)
def test_denormalize_recovers_calendar_day(day):
    assert denormalize(normalize(day.year, day.month, day.day)) == (
        day.year,
        day.month,
        day.day,
    )


def test_normalize_rejects_impossible_day():
    with pytest.raises(InvalidDate):
        normalize(2025, 2, 30)


def test_naive_instants_are_read_as_utc():
    # SQLite hands back naive values.
    assert denormalize(datetime(2025, 8, 1, 15, 0)) == (2025, 8, 1)
    assert to_iso(datetime(2025, 8, 1, 15, 0)) == "2025-08-01T15:00:00.000Z"


def test_coerce_accepts_plain_dates_and_instants():
    assert coerce_calendar_date("2025-08-01") == date(2025, 8, 1)
    assert coerce_calendar_date("2025-08-01T15:00:00.000Z") == date(2025, 8, 1)
    assert coerce_calendar_date(date(2025, 8, 1)) == date(2025, 8, 1)


def test_coerce_uses_reference_offset_for_instants():
    # 02:00 UTC is still the previous evening at UTC-3.
    assert coerce_calendar_date("2025-08-01T02:00:00Z") == date(2025, 7, 31)


def test_coerce_rejects_garbage():
    with pytest.raises(InvalidDate):
        coerce_calendar_date("2025-13-01")
    with pytest.raises(InvalidDate):
        parse_instant("mañana")


def test_day_bounds_cover_both_days():
    start, end = day_bounds(date(2025, 8, 1), date(2025, 8, 31))
    assert calendar_date(start) == date(2025, 8, 1)
    assert calendar_date(end) == date(2025, 8, 31)
    assert start < end
