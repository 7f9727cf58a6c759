from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..exceptions import InvalidInput
from ..models import ShiftCode, ShiftLeg


MIN_WORK_DAYS, MAX_WORK_DAYS = 1, 30
MIN_REST_DAYS, MAX_REST_DAYS = 0, 30
MIN_START_POSITION, MAX_START_POSITION = 1, 60
MAX_PATTERN_CODE_LENGTH = 20
MIN_YEAR, MAX_YEAR = 2020, 2100


@dataclass(frozen=True, slots=True)
class WorkRestPattern:
    """Cyclic work/rest pattern anchored on a start date.

    ``start_position`` is 1-based: position 1 on ``start_date`` means the
    first work day of the cycle. A rotating pattern spans a double cycle in
    which the ``day`` leg works during the first half and the ``night`` leg
    during the second half.
    """

    work_days: int
    rest_days: int
    start_date: date
    start_position: int = 1

    @property
    def cycle_length(self) -> int:
        return self.work_days + self.rest_days

    def validate(self) -> None:
        errors: dict[str, list[str]] = {}
        if not MIN_WORK_DAYS <= self.work_days <= MAX_WORK_DAYS:
            errors["work_days"] = [f"Debe estar entre {MIN_WORK_DAYS} y {MAX_WORK_DAYS}."]
        if not MIN_REST_DAYS <= self.rest_days <= MAX_REST_DAYS:
            errors["rest_days"] = [f"Debe estar entre {MIN_REST_DAYS} y {MAX_REST_DAYS}."]
        if not MIN_START_POSITION <= self.start_position <= MAX_START_POSITION:
            errors["start_position"] = [
                f"Debe estar entre {MIN_START_POSITION} y {MAX_START_POSITION}."
            ]
        if errors:
            raise InvalidInput("El patrón de turnos es inválido.", errors=errors)

    def offset_on(self, target_date: date) -> Optional[int]:
        if target_date < self.start_date:
            return None
        return (target_date - self.start_date).days + self.start_position - 1

    def position_on(self, target_date: date) -> Optional[int]:
        offset = self.offset_on(target_date)
        if offset is None:
            return None
        return offset % self.cycle_length

    def is_work_day(self, target_date: date, leg: Optional[str] = None) -> Optional[bool]:
        offset = self.offset_on(target_date)
        if offset is None:
            return None
        if not leg:
            return offset % self.cycle_length < self.work_days

        double_position = offset % (2 * self.cycle_length)
        in_first_cycle = double_position < self.cycle_length
        in_work_block = double_position % self.cycle_length < self.work_days
        owns_cycle = in_first_cycle if leg == ShiftLeg.DAY else not in_first_cycle
        return in_work_block and owns_cycle

    def shift_code_on(self, target_date: date, leg: Optional[str] = None) -> Optional[str]:
        """Shift code for ``target_date``; ``None`` before the pattern starts."""

        works = self.is_work_day(target_date, leg)
        if works is None:
            return None
        return ShiftCode.WORK.value if works else ShiftCode.REST.value


def pattern_from_series(series) -> WorkRestPattern:
    return WorkRestPattern(
        work_days=series.work_days,
        rest_days=series.rest_days,
        start_date=series.start_date,
        start_position=series.start_position,
    )


def series_leg(series) -> Optional[str]:
    if not series.is_rotating:
        return None
    return series.start_shift or ShiftLeg.DAY.value


def validate_pattern_code(pattern_code: str) -> str:
    cleaned = (pattern_code or "").strip()
    if not cleaned or len(cleaned) > MAX_PATTERN_CODE_LENGTH:
        raise InvalidInput(
            "El código de patrón es inválido.",
            errors={"pattern_code": [f"Debe tener entre 1 y {MAX_PATTERN_CODE_LENGTH} caracteres."]},
        )
    return cleaned


def validate_period(month: int, year: int) -> None:
    errors: dict[str, list[str]] = {}
    if not 1 <= month <= 12:
        errors["month"] = ["Debe estar entre 1 y 12."]
    if not MIN_YEAR <= year <= MAX_YEAR:
        errors["year"] = [f"Debe estar entre {MIN_YEAR} y {MAX_YEAR}."]
    if errors:
        raise InvalidInput("El período solicitado es inválido.", errors=errors)
