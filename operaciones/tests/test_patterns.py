from __future__ import annotations

from datetime import date, timedelta

from django.test import SimpleTestCase

from operaciones.dates import month_bounds, normalize_weekday, weekday_matches
from operaciones.exceptions import InvalidInput
from operaciones.services.patterns import WorkRestPattern, validate_pattern_code, validate_period


class WorkRestPatternTests(SimpleTestCase):
    def setUp(self) -> None:
        self.start = date(2024, 3, 1)
        self.pattern = WorkRestPattern(work_days=4, rest_days=3, start_date=self.start)

    def _codes(self, pattern: WorkRestPattern, days: int, leg: str | None = None) -> str:
        return "".join(
            pattern.shift_code_on(self.start + timedelta(days=offset), leg) for offset in range(days)
        )

    def test_four_by_three_cycle(self) -> None:
        self.assertEqual(self.pattern.cycle_length, 7)
        self.assertEqual(self._codes(self.pattern, 14), "TTTT---TTTT---")

    def test_start_position_shifts_phase(self) -> None:
        pattern = WorkRestPattern(work_days=4, rest_days=3, start_date=self.start, start_position=5)

        self.assertEqual(pattern.position_on(self.start), 4)
        self.assertEqual(self._codes(pattern, 7), "---TTTT")

    def test_dates_before_start_have_no_code(self) -> None:
        self.assertIsNone(self.pattern.shift_code_on(self.start - timedelta(days=1)))
        self.assertIsNone(self.pattern.position_on(self.start - timedelta(days=1)))

    def test_zero_rest_days_works_every_day(self) -> None:
        pattern = WorkRestPattern(work_days=5, rest_days=0, start_date=self.start)

        self.assertEqual(self._codes(pattern, 10), "T" * 10)

    def test_rotation_legs_alternate_whole_cycles(self) -> None:
        day = self._codes(self.pattern, 21, "day")
        night = self._codes(self.pattern, 21, "night")

        self.assertEqual(day, "TTTT----------TTTT---")
        self.assertEqual(night, "-------TTTT----------")
        for day_code, night_code in zip(day, night):
            self.assertFalse(day_code == "T" and night_code == "T")

    def test_validate_rejects_out_of_range_values(self) -> None:
        invalid = WorkRestPattern(work_days=0, rest_days=31, start_date=self.start, start_position=61)

        with self.assertRaises(InvalidInput) as ctx:
            invalid.validate()

        self.assertEqual(set(ctx.exception.errors), {"work_days", "rest_days", "start_position"})
        self.assertEqual(ctx.exception.kind, "validation")

    def test_pattern_code_and_period_validation(self) -> None:
        self.assertEqual(validate_pattern_code(" 4x3 "), "4x3")
        with self.assertRaises(InvalidInput):
            validate_pattern_code("")
        with self.assertRaises(InvalidInput):
            validate_pattern_code("x" * 21)
        with self.assertRaises(InvalidInput):
            validate_period(13, 2024)
        with self.assertRaises(InvalidInput):
            validate_period(1, 2019)


class DateHelperTests(SimpleTestCase):
    def test_month_bounds_handles_leap_years(self) -> None:
        self.assertEqual(month_bounds(2024, 2), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(month_bounds(2023, 2), (date(2023, 2, 1), date(2023, 2, 28)))

    def test_weekday_keys_accept_english_and_spanish(self) -> None:
        self.assertEqual(normalize_weekday("Monday"), 0)
        self.assertEqual(normalize_weekday("miércoles"), 2)
        self.assertEqual(normalize_weekday("Sábado"), 5)
        self.assertIsNone(normalize_weekday("feriado"))

        friday = date(2024, 3, 1)
        self.assertTrue(weekday_matches(["viernes"], friday))
        self.assertFalse(weekday_matches(["monday", "tuesday"], friday))
