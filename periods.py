from dataclasses import dataclass
from datetime import date
from typing import Optional

from dates import day_bounds, local_today


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def bounds(self):
        return day_bounds(self.start, self.end)


def month_period(year: int, month: int, slug: str = "month") -> Period:
    first = date(year, month, 1)
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return Period(slug, first, next_month - date.resolution)


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or local_today()
    if period == "all":
        # Recurring series are materialized into later years too.
        return Period("all", date(1970, 1, 1), date.max)
    if period == "last_month":
        first_this = today.replace(day=1)
        last_month_end = first_this - date.resolution
        return month_period(last_month_end.year, last_month_end.month, "last_month")
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)
    if period and period != "this_month":
        raise ValueError(f"Unknown period: {period}")

    return month_period(today.year, today.month, "this_month")
