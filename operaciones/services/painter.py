from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from users.context import CallerContext

from ..dates import daterange, month_bounds
from ..exceptions import BusinessRuleViolation, InvalidInput, NotFound
from ..models import GuardAssignment, OperationalPost, RotationSeries, ScheduleCell, ShiftLeg
from .audit import ROTATING_SERIES_PAINTED, SERIES_PAINTED, record_audit
from .cells import GuardProjection, default_cell_status
from .patterns import WorkRestPattern, validate_pattern_code, validate_period


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RotationRequest:
    counterpart_post_id: int
    counterpart_slot_number: int
    start_shift: str = ShiftLeg.DAY.value


@dataclass(frozen=True, slots=True)
class PaintRequest:
    post_id: int
    slot_number: int
    pattern_code: str
    work_days: int
    rest_days: int
    start_date: date
    month: int
    year: int
    start_position: int = 1
    rotation: Optional[RotationRequest] = None

    @property
    def pattern(self) -> WorkRestPattern:
        return WorkRestPattern(
            work_days=self.work_days,
            rest_days=self.rest_days,
            start_date=self.start_date,
            start_position=self.start_position,
        )


@dataclass(slots=True)
class SlotPaintResult:
    post_id: int
    slot_number: int
    series_id: int
    guard_id: Optional[int]
    leg: Optional[str]
    created: int = 0
    updated: int = 0

    @property
    def written(self) -> int:
        return self.created + self.updated


@dataclass(slots=True)
class PaintResult:
    pattern_code: str
    month: int
    year: int
    slots: List[SlotPaintResult] = field(default_factory=list)

    @property
    def written(self) -> int:
        return sum(slot.written for slot in self.slots)

    @property
    def guard_id(self) -> Optional[int]:
        return self.slots[0].guard_id if self.slots else None


@dataclass(frozen=True, slots=True)
class _SlotPlan:
    post: OperationalPost
    slot_number: int
    leg: Optional[str]
    assignment: Optional[GuardAssignment]


class SeriesPainter:
    """Paint a work/rest pattern (or a linked day/night rotation) onto a month of cells."""

    def __init__(self, caller: CallerContext, *, using: Optional[str] = None) -> None:
        self.caller = caller
        self.using = using

    def paint(self, request: PaintRequest) -> PaintResult:
        pattern_code = validate_pattern_code(request.pattern_code)
        pattern = request.pattern
        pattern.validate()
        validate_period(request.month, request.year)
        start_shift = self._validate_rotation_input(request.rotation)

        post = self._get_post(request.post_id)
        self._ensure_slot(post, request.slot_number)
        counterpart = None
        if request.rotation is not None:
            counterpart = self._get_counterpart(post, request.slot_number, request.rotation)

        month_start, month_end = month_bounds(request.year, request.month)
        result = PaintResult(pattern_code=pattern_code, month=request.month, year=request.year)

        with transaction.atomic(using=self.using):
            locked_ids = [post.pk] + ([counterpart.pk] if counterpart is not None else [])
            list(
                OperationalPost.objects.using(self.using)
                .select_for_update()
                .filter(pk__in=locked_ids)
                .order_by("pk")
            )

            primary_assignment = self._active_assignment(post.pk, request.slot_number)
            counterpart_assignment = None
            if counterpart is not None:
                counterpart_assignment = self._active_assignment(
                    counterpart.pk, request.rotation.counterpart_slot_number
                )

            # A rotation slot without an assignment of its own carries its partner's guard.
            plans = [
                _SlotPlan(
                    post=post,
                    slot_number=request.slot_number,
                    leg=start_shift,
                    assignment=primary_assignment or counterpart_assignment,
                )
            ]
            if counterpart is not None:
                plans.append(
                    _SlotPlan(
                        post=counterpart,
                        slot_number=request.rotation.counterpart_slot_number,
                        leg=ShiftLeg(start_shift).complement.value,
                        assignment=counterpart_assignment or primary_assignment,
                    )
                )

            series_by_slot: Dict[tuple[int, int], RotationSeries] = {}
            for plan in plans:
                self._close_previous_series(plan.post.pk, plan.slot_number, month_start)
                series_by_slot[(plan.post.pk, plan.slot_number)] = self._create_series(
                    plan, pattern_code, request
                )

            if len(plans) == 2:
                primary_series, counterpart_series = series_by_slot.values()
                primary_series.linked_series = counterpart_series
                counterpart_series.linked_series = primary_series
                RotationSeries.objects.using(self.using).bulk_update(
                    [primary_series, counterpart_series], ["linked_series"]
                )

            window_start = max(month_start, request.start_date)
            for plan in plans:
                created, updated = self._paint_slot(plan, pattern, window_start, month_end)
                series = series_by_slot[(plan.post.pk, plan.slot_number)]
                result.slots.append(
                    SlotPaintResult(
                        post_id=plan.post.pk,
                        slot_number=plan.slot_number,
                        series_id=series.pk,
                        guard_id=series.guard_id,
                        leg=plan.leg,
                        created=created,
                        updated=updated,
                    )
                )

            record_audit(
                self.caller,
                action=ROTATING_SERIES_PAINTED if counterpart is not None else SERIES_PAINTED,
                entity="serie_asignacion",
                entity_id=result.slots[0].series_id,
                details={
                    "pattern_code": pattern_code,
                    "work_days": request.work_days,
                    "rest_days": request.rest_days,
                    "start_date": request.start_date.isoformat(),
                    "start_position": request.start_position,
                    "month": request.month,
                    "year": request.year,
                    "slots": [
                        {
                            "post_id": slot.post_id,
                            "slot_number": slot.slot_number,
                            "series_id": slot.series_id,
                            "leg": slot.leg,
                            "cells": slot.written,
                        }
                        for slot in result.slots
                    ],
                },
                using=self.using,
            )

        logger.info(
            "Serie %s pintada en puesto=%s slot=%s (%s/%s): %s celdas",
            pattern_code,
            post.pk,
            request.slot_number,
            request.month,
            request.year,
            result.written,
        )
        return result

    # ------------------------------------------------------------------ #
    # Validación
    # ------------------------------------------------------------------ #
    @staticmethod
    def _validate_rotation_input(rotation: Optional[RotationRequest]) -> Optional[str]:
        if rotation is None:
            return None
        if rotation.start_shift not in ShiftLeg.values:
            raise InvalidInput(
                "El turno inicial de la rotación es inválido.",
                errors={"start_shift": ["Debe ser 'day' o 'night'."]},
            )
        return rotation.start_shift

    def _get_post(self, post_id: int) -> OperationalPost:
        post = (
            OperationalPost.objects.using(self.using)
            .for_tenant(self.caller.tenant_id)
            .filter(pk=post_id)
            .first()
        )
        if post is None:
            raise NotFound("Puesto no encontrado.")
        return post

    @staticmethod
    def _ensure_slot(post: OperationalPost, slot_number: int) -> None:
        if not post.has_slot(slot_number):
            raise BusinessRuleViolation(
                f"El slot {slot_number} excede la dotación del puesto ({post.required_guards})."
            )

    def _get_counterpart(
        self, post: OperationalPost, slot_number: int, rotation: RotationRequest
    ) -> OperationalPost:
        try:
            counterpart = self._get_post(rotation.counterpart_post_id)
        except NotFound:
            raise NotFound("Puesto par no encontrado.") from None
        if counterpart.installation_id != post.installation_id:
            raise BusinessRuleViolation("El puesto par debe pertenecer a la misma instalación.")
        self._ensure_slot(counterpart, rotation.counterpart_slot_number)
        if counterpart.pk == post.pk and rotation.counterpart_slot_number == slot_number:
            raise BusinessRuleViolation("El slot par no puede ser el mismo slot.")
        return counterpart

    # ------------------------------------------------------------------ #
    # Escritura
    # ------------------------------------------------------------------ #
    def _active_assignment(self, post_id: int, slot_number: int) -> Optional[GuardAssignment]:
        return (
            GuardAssignment.objects.using(self.using)
            .for_tenant(self.caller.tenant_id)
            .active()
            .for_slot(post_id, slot_number)
            .first()
        )

    def _close_previous_series(self, post_id: int, slot_number: int, end_date: date) -> int:
        return (
            RotationSeries.objects.using(self.using)
            .for_tenant(self.caller.tenant_id)
            .filter(post_id=post_id, slot_number=slot_number, is_active=True)
            .update(is_active=False, end_date=end_date)
        )

    def _create_series(self, plan: _SlotPlan, pattern_code: str, request: PaintRequest) -> RotationSeries:
        series = RotationSeries(
            tenant_id=self.caller.tenant_id,
            post=plan.post,
            slot_number=plan.slot_number,
            guard_id=plan.assignment.guard_id if plan.assignment else None,
            pattern_code=pattern_code,
            work_days=request.work_days,
            rest_days=request.rest_days,
            start_date=request.start_date,
            start_position=request.start_position,
            is_active=True,
            is_rotating=plan.leg is not None,
            start_shift=plan.leg or "",
            created_by_id=self.caller.actor_id,
        )
        if request.rotation is not None:
            if plan.post.pk == request.post_id and plan.slot_number == request.slot_number:
                series.counterpart_post_id = request.rotation.counterpart_post_id
                series.counterpart_slot_number = request.rotation.counterpart_slot_number
            else:
                series.counterpart_post_id = request.post_id
                series.counterpart_slot_number = request.slot_number
        series.save(using=self.using)
        return series

    def _paint_slot(
        self,
        plan: _SlotPlan,
        pattern: WorkRestPattern,
        window_start: date,
        window_end: date,
    ) -> tuple[int, int]:
        if window_start > window_end:
            return 0, 0

        projection = GuardProjection.from_assignment(plan.assignment)

        existing = {
            cell.date: cell
            for cell in ScheduleCell.objects.using(self.using).filter(
                post_id=plan.post.pk,
                slot_number=plan.slot_number,
                date__range=(window_start, window_end),
            )
        }

        now = timezone.now()
        status = default_cell_status()
        to_create: List[ScheduleCell] = []
        to_update: List[ScheduleCell] = []

        for current_date in daterange(window_start, window_end):
            code = pattern.shift_code_on(current_date, plan.leg)
            cell = existing.get(current_date)
            if cell is None:
                to_create.append(
                    ScheduleCell(
                        tenant_id=self.caller.tenant_id,
                        installation_id=plan.post.installation_id,
                        post_id=plan.post.pk,
                        slot_number=plan.slot_number,
                        date=current_date,
                        shift_code=code,
                        planned_guard_id=projection.guard_on(code, current_date),
                        status=status,
                        created_by_id=self.caller.actor_id,
                    )
                )
                continue

            planned_guard_id = projection.reconcile(code, current_date, cell.planned_guard_id)
            if cell.shift_code == code and cell.planned_guard_id == planned_guard_id:
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
        return len(to_create), len(to_update)
