import logging
from datetime import date, timedelta
from typing import Any, Iterable, Iterator, Mapping, Optional, Union

from sqlalchemy.orm import Session

from dates import normalize_date
from errors import InvalidRecurrenceSpec, PartialMaterialization
from models import Frequency


logger = logging.getLogger(__name__)

MAX_OCCURRENCES = 52


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def _add_months(anchor: date, months: int) -> date:
    total_months = anchor.month - 1 + months
    year = anchor.year + total_months // 12
    month = total_months % 12 + 1
    return date(year, month, min(anchor.day, days_in_month(year, month)))


def occurrence(frequency: Frequency, anchor: date, index: int) -> date:
    """The ``index``-th occurrence, always derived from the anchor itself.

    Month and year steps clamp to the last valid day of the target month but
    start again from the anchor's day every time, so a 31st anchor goes
    Jan 31, Feb 28, Mar 31 instead of drifting to the 28th.
    """
    if frequency == Frequency.weekly:
        return anchor + timedelta(weeks=index)
    if frequency == Frequency.biweekly:
        return anchor + timedelta(weeks=2 * index)
    if frequency == Frequency.monthly:
        return _add_months(anchor, index)
    if frequency == Frequency.annual:
        return _add_months(anchor, 12 * index)
    if index == 0:
        return anchor
    raise InvalidRecurrenceSpec("Un registro único no tiene ocurrencias siguientes")


def _coerce_frequency(frequency: Union[Frequency, str]) -> Frequency:
    try:
        return Frequency(frequency)
    except ValueError as exc:
        raise InvalidRecurrenceSpec(f"Frecuencia desconocida: {frequency}") from exc


def expand(
    frequency: Union[Frequency, str],
    anchor: date,
    cap: Optional[int] = None,
) -> Iterator[date]:
    """Lazy sequence of occurrence dates starting at ``anchor``.

    With a positive ``cap`` the sequence stops after ``cap`` dates; without
    one it stops at the last date on or before December 31 of the anchor
    year. Never more than ``MAX_OCCURRENCES`` dates. ``ONE_TIME`` always
    yields the anchor alone. Validation happens on the call, not on the
    first ``next()``.
    """
    freq = _coerce_frequency(frequency)
    if freq == Frequency.one_time:
        return iter([anchor])
    if cap is not None and (isinstance(cap, bool) or not isinstance(cap, int)):
        raise InvalidRecurrenceSpec("El número de recurrencias debe ser un entero")
    if cap is not None and cap <= 0:
        raise InvalidRecurrenceSpec("El número de recurrencias debe ser positivo")
    return _occurrences(freq, anchor, cap)


def _occurrences(freq: Frequency, anchor: date, cap: Optional[int]) -> Iterator[date]:
    limit = min(cap, MAX_OCCURRENCES) if cap is not None else MAX_OCCURRENCES
    year_end = date(anchor.year, 12, 31)
    for index in range(limit):
        current = occurrence(freq, anchor, index)
        if cap is None and current > year_end:
            return
        yield current


def next_occurrence(frequency: Union[Frequency, str], anchor: date) -> Optional[date]:
    freq = _coerce_frequency(frequency)
    if freq == Frequency.one_time:
        return None
    return occurrence(freq, anchor, 1)


class TransactionMaterializer:
    """Persists one income/expense row per occurrence date.

    Each occurrence is committed on its own. A failure at occurrence k stops
    the loop and raises ``PartialMaterialization``; the k-1 rows already
    committed stay in place.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def materialize(
        self,
        model: type,
        template: Mapping[str, Any],
        dates: Iterable[date],
        *,
        date_field: str,
        hint_field: Optional[str] = None,
    ) -> list[Any]:
        occurrences = list(dates)
        total = len(occurrences)
        frequency = template.get("frequency")
        created: list[Any] = []
        for index, day in enumerate(occurrences):
            fields = dict(template)
            fields[date_field] = normalize_date(day)
            if hint_field is not None:
                hint = self._hint(frequency, occurrences, index)
                fields[hint_field] = normalize_date(hint) if hint else None
            try:
                record = self._insert_occurrence(model, fields)
            except Exception as exc:
                self.session.rollback()
                logger.exception(
                    f"materialize: model={model.__name__} failed_at={index + 1} "
                    f"total={total}"
                )
                raise PartialMaterialization(
                    succeeded=len(created),
                    total=total,
                    reason=f"{type(exc).__name__}: {exc}",
                    records=created,
                ) from exc
            created.append(record)
        logger.info(
            f"materialize: model={model.__name__} created={len(created)} total={total}"
        )
        return created

    def _insert_occurrence(self, model: type, fields: Mapping[str, Any]) -> Any:
        record = model(**fields)
        self.session.add(record)
        self.session.commit()
        return record

    @staticmethod
    def _hint(
        frequency: Optional[Union[Frequency, str]],
        occurrences: list[date],
        index: int,
    ) -> Optional[date]:
        if frequency is None:
            return None
        freq = _coerce_frequency(frequency)
        if freq == Frequency.one_time:
            return None
        return occurrence(freq, occurrences[0], index + 1)
