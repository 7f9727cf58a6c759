from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Iterable, Sequence, Tuple


WEEKDAY_KEYS: Tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

SPANISH_WEEKDAY_KEYS: Tuple[str, ...] = (
    "lunes",
    "martes",
    "miercoles",
    "jueves",
    "viernes",
    "sabado",
    "domingo",
)

_ACCENTS = str.maketrans("áéíóú", "aeiou")


def normalize_weekday(value: str) -> int | None:
    """Return the ISO weekday index (0 = monday) for an English or Spanish key."""

    key = str(value).strip().lower().translate(_ACCENTS)
    if key in WEEKDAY_KEYS:
        return WEEKDAY_KEYS.index(key)
    if key in SPANISH_WEEKDAY_KEYS:
        return SPANISH_WEEKDAY_KEYS.index(key)
    return None


def weekday_matches(weekdays: Sequence[str], target_date: date) -> bool:
    indexes = {normalize_weekday(value) for value in weekdays}
    return target_date.weekday() in indexes


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def daterange(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
