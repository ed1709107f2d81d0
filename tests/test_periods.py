from datetime import date

import pytest

from periods import month_period, resolve_period

TODAY = date(2025, 3, 14)


def test_default_is_this_month():
    period = resolve_period(None, None, None, today=TODAY)
    assert (period.slug, period.start, period.end) == (
        "this_month",
        date(2025, 3, 1),
        date(2025, 3, 31),
    )


def test_last_month_crosses_year():
    period = resolve_period("last_month", None, None, today=date(2025, 1, 10))
    assert (period.start, period.end) == (date(2024, 12, 1), date(2024, 12, 31))


def test_custom_period():
    period = resolve_period("custom", "2025-02-01", "2025-02-10", today=TODAY)
    assert (period.start, period.end) == (date(2025, 2, 1), date(2025, 2, 10))


@pytest.mark.parametrize(
    "slug,start,end",
    [
        ("custom", None, "2025-02-10"),
        ("custom", "2025-02-11", "2025-02-10"),
        ("fortnight", None, None),
    ],
)
def test_invalid_periods(slug, start, end):
    with pytest.raises(ValueError):
        resolve_period(slug, start, end, today=TODAY)


def test_all_has_no_upper_bound():
    period = resolve_period("all", None, None, today=TODAY)
    assert period.end == date.max
    start, end = period.bounds()
    assert start < end


def test_month_period_february_leap_year():
    assert month_period(2024, 2).end == date(2024, 2, 29)
