from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from instalaciones.models import Installation
from users.context import CallerContext

from ..dates import daterange, month_bounds
from ..exceptions import NotFound
from ..models import GuardAssignment, OperationalPost, RotationSeries, ScheduleCell
from .audit import GRID_GENERATED, record_audit
from .cells import GuardProjection, default_cell_status
from .patterns import pattern_from_series, series_leg, validate_period


logger = logging.getLogger(__name__)

SlotKey = Tuple[int, int]


@dataclass(slots=True)
class GridResult:
    installation_id: int
    month: int
    year: int
    created: int = 0
    updated: int = 0
    unchanged: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated + self.unchanged


class MonthlyGridGenerator:
    """Ensure every operating slot of an installation has a cell for each day of a month."""

    def __init__(self, caller: CallerContext, *, using: Optional[str] = None) -> None:
        self.caller = caller
        self.using = using

    def generate(self, *, installation_id: int, month: int, year: int, overwrite: bool = False) -> GridResult:
        validate_period(month, year)
        installation = (
            Installation.objects.using(self.using)
            .for_tenant(self.caller.tenant_id)
            .filter(pk=installation_id)
            .first()
        )
        if installation is None:
            raise NotFound("Instalación no encontrada.")

        month_start, month_end = month_bounds(year, month)
        result = GridResult(installation_id=installation.pk, month=month, year=year)

        with transaction.atomic(using=self.using):
            posts = list(
                OperationalPost.objects.using(self.using)
                .for_tenant(self.caller.tenant_id)
                .filter(installation_id=installation.pk)
                .active_during(month_start, month_end)
                .order_by("pk")
            )
            post_ids = [post.pk for post in posts]
            series_by_slot = self._active_series(post_ids)
            assignment_by_guard = self._assignments_by_guard(series_by_slot.values())
            existing = self._existing_cells(post_ids, month_start, month_end)

            now = timezone.now()
            status = default_cell_status()
            to_create: List[ScheduleCell] = []
            to_update: List[ScheduleCell] = []

            for post in posts:
                for slot_number in range(1, post.required_guards + 1):
                    key = (post.pk, slot_number)
                    series = series_by_slot.get(key)
                    projection = _projection_for(series, assignment_by_guard)
                    pattern = pattern_from_series(series) if series else None
                    leg = series_leg(series) if series else None

                    for current_date in daterange(month_start, month_end):
                        if not post.is_active_on(current_date) or not post.operates_on(current_date):
                            continue

                        code = pattern.shift_code_on(current_date, leg) if pattern else None
                        cell = existing.get((post.pk, slot_number, current_date))

                        if cell is None:
                            to_create.append(
                                ScheduleCell(
                                    tenant_id=self.caller.tenant_id,
                                    installation_id=installation.pk,
                                    post_id=post.pk,
                                    slot_number=slot_number,
                                    date=current_date,
                                    shift_code=code or "",
                                    planned_guard_id=projection.guard_on(code, current_date),
                                    status=status,
                                    created_by_id=self.caller.actor_id,
                                )
                            )
                            continue

                        if not overwrite or code is None:
                            result.unchanged += 1
                            continue

                        planned_guard_id = projection.reconcile(code, current_date, cell.planned_guard_id)
                        if cell.shift_code == code and cell.planned_guard_id == planned_guard_id:
                            result.unchanged += 1
                            continue
                        cell.shift_code = code
                        cell.planned_guard_id = planned_guard_id
                        cell.updated_at = now
                        to_update.append(cell)

            if to_create:
                ScheduleCell.objects.using(self.using).bulk_create(to_create)
            if to_update:
                ScheduleCell.objects.using(self.using).bulk_update(
                    to_update, ["shift_code", "planned_guard", "updated_at"]
                )
            result.created = len(to_create)
            result.updated = len(to_update)

            record_audit(
                self.caller,
                action=GRID_GENERATED,
                entity="pauta_mensual",
                entity_id=installation.pk,
                details={
                    "month": month,
                    "year": year,
                    "overwrite": overwrite,
                    "created": result.created,
                    "updated": result.updated,
                    "unchanged": result.unchanged,
                },
                using=self.using,
            )

        logger.info(
            "Pauta %s/%s generada para instalación=%s: %s creadas, %s actualizadas",
            month,
            year,
            installation.pk,
            result.created,
            result.updated,
        )
        return result

    def _active_series(self, post_ids: List[int]) -> Dict[SlotKey, RotationSeries]:
        queryset = (
            RotationSeries.objects.using(self.using)
            .for_tenant(self.caller.tenant_id)
            .filter(post_id__in=post_ids, is_active=True)
        )
        return {(series.post_id, series.slot_number): series for series in queryset}

    def _assignments_by_guard(self, series: Iterable[RotationSeries]) -> Dict[int, GuardAssignment]:
        guard_ids = {item.guard_id for item in series if item.guard_id is not None}
        if not guard_ids:
            return {}
        queryset = (
            GuardAssignment.objects.using(self.using)
            .for_tenant(self.caller.tenant_id)
            .active()
            .filter(guard_id__in=guard_ids)
        )
        return {assignment.guard_id: assignment for assignment in queryset}

    def _existing_cells(
        self, post_ids: List[int], start: date, end: date
    ) -> Dict[Tuple[int, int, date], ScheduleCell]:
        queryset = ScheduleCell.objects.using(self.using).filter(
            post_id__in=post_ids,
            date__range=(start, end),
        )
        return {(cell.post_id, cell.slot_number, cell.date): cell for cell in queryset}


def _projection_for(
    series: Optional[RotationSeries], assignment_by_guard: Dict[int, GuardAssignment]
) -> GuardProjection:
    """Projection of the guard a series points to, from the start of the assignment that guard holds."""

    if series is None or series.guard_id is None:
        return GuardProjection()
    return GuardProjection.from_assignment(assignment_by_guard.get(series.guard_id))
