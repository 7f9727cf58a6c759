from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, time
from typing import Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q

from guardias.models import Guard
from instalaciones.models import Installation
from users.context import CallerContext

from ..dates import month_bounds
from ..exceptions import BusinessRuleViolation, NotFound
from ..models import GuardAssignment, OperationalPost, RotationSeries, ScheduleCell, ShiftCode
from .audit import CELL_UPSERTED, record_audit
from .patterns import validate_period


logger = logging.getLogger(__name__)


def default_cell_status() -> str:
    return getattr(settings, "OPS_DEFAULT_CELL_STATUS", "planificado")


@dataclass(frozen=True, slots=True)
class GuardProjection:
    """Guard a series writes on its work days, starting on the date its assignment began."""

    guard_id: Optional[int] = None
    from_date: Optional[date] = None

    @classmethod
    def from_assignment(cls, assignment: Optional[GuardAssignment]) -> "GuardProjection":
        if assignment is None:
            return cls()
        return cls(guard_id=assignment.guard_id, from_date=assignment.start_date)

    def guard_on(self, shift_code: Optional[str], target_date: date) -> Optional[int]:
        if shift_code != ShiftCode.WORK or self.guard_id is None or target_date < self.from_date:
            return None
        return self.guard_id

    def reconcile(self, shift_code: str, target_date: date, current_guard_id: Optional[int]) -> Optional[int]:
        """Planned guard of an existing cell once ``shift_code`` is written on it.

        Work days from the assignment start take the projected guard. Rest days
        drop it, while any other planned guard (manual coverage) stays.
        """

        projected = self.guard_on(shift_code, target_date)
        if projected is not None:
            return projected
        if shift_code != ShiftCode.WORK and self.guard_id is not None and current_guard_id == self.guard_id:
            return None
        return current_guard_id


def clear_planned_guard(
    *,
    tenant_id: int,
    post_id: int,
    slot_number: int,
    guard_id: int,
    from_date: date,
    using: Optional[str] = None,
) -> int:
    """Remove ``guard_id`` as planned guard from the slot's cells dated on or after ``from_date``."""

    return (
        ScheduleCell.objects.using(using)
        .filter(
            tenant_id=tenant_id,
            post_id=post_id,
            slot_number=slot_number,
            planned_guard_id=guard_id,
            date__gte=from_date,
        )
        .update(planned_guard=None)
    )


def project_planned_guard(
    *,
    tenant_id: int,
    post_id: int,
    slot_number: int,
    guard_id: int,
    from_date: date,
    using: Optional[str] = None,
) -> int:
    """Write ``guard_id`` on the slot's work cells dated on or after ``from_date``."""

    return (
        ScheduleCell.objects.using(using)
        .filter(
            tenant_id=tenant_id,
            post_id=post_id,
            slot_number=slot_number,
            shift_code=ShiftCode.WORK,
            date__gte=from_date,
        )
        .update(planned_guard_id=guard_id)
    )


def upsert_cell(
    caller: CallerContext,
    *,
    post_id: int,
    slot_number: int,
    target_date: date,
    planned_guard_id: Optional[int] = None,
    shift_code: Optional[str] = None,
    status: Optional[str] = None,
    notes: Optional[str] = None,
    using: Optional[str] = None,
) -> ScheduleCell:
    """Create or replace a single calendar cell."""

    post = (
        OperationalPost.objects.using(using)
        .for_tenant(caller.tenant_id)
        .filter(pk=post_id)
        .first()
    )
    if post is None:
        raise NotFound("Puesto no encontrado.")
    if not post.has_slot(slot_number):
        raise BusinessRuleViolation(
            f"El slot {slot_number} excede la dotación del puesto ({post.required_guards})."
        )

    if planned_guard_id is not None:
        guard = Guard.objects.using(using).for_tenant(caller.tenant_id).filter(pk=planned_guard_id).first()
        if guard is None:
            raise NotFound("Guardia no encontrado.")
        if guard.is_blacklisted:
            raise BusinessRuleViolation("El guardia está en lista negra.")
        if not guard.is_plannable:
            raise BusinessRuleViolation("El guardia está inactivo o desvinculado.")

    values = {
        "tenant_id": caller.tenant_id,
        "installation_id": post.installation_id,
        "planned_guard_id": planned_guard_id,
        "shift_code": shift_code or "",
        "status": status or default_cell_status(),
        "notes": notes or "",
    }

    with transaction.atomic(using=using):
        cell, created = ScheduleCell.objects.using(using).select_for_update().get_or_create(
            post_id=post.pk,
            slot_number=slot_number,
            date=target_date,
            defaults={**values, "created_by_id": caller.actor_id},
        )
        if not created:
            for field, value in values.items():
                setattr(cell, field, value)
            cell.save(using=using)

        record_audit(
            caller,
            action=CELL_UPSERTED,
            entity="pauta_mensual",
            entity_id=cell.pk,
            details={
                "post_id": post.pk,
                "slot_number": slot_number,
                "date": target_date.isoformat(),
                "planned_guard_id": planned_guard_id,
                "shift_code": cell.shift_code,
                "created": created,
            },
            using=using,
        )

    logger.info(
        "Celda %s de pauta %s (puesto=%s slot=%s)",
        cell.pk,
        "creada" if created else "actualizada",
        post.pk,
        slot_number,
    )
    return cell


@dataclass(slots=True)
class MonthGrid:
    installation: Installation
    month: int
    year: int
    posts: List[OperationalPost]
    cells: List[ScheduleCell]
    series: List[RotationSeries]
    assignments: List[GuardAssignment]


def month_grid(
    caller: CallerContext,
    *,
    installation_id: int,
    month: int,
    year: int,
    using: Optional[str] = None,
) -> MonthGrid:
    """Read the calendar of an installation for one month."""

    validate_period(month, year)
    installation = (
        Installation.objects.using(using)
        .for_tenant(caller.tenant_id)
        .select_related("account")
        .filter(pk=installation_id)
        .first()
    )
    if installation is None:
        raise NotFound("Instalación no encontrada.")

    month_start, month_end = month_bounds(year, month)
    posts = list(
        OperationalPost.objects.using(using)
        .for_tenant(caller.tenant_id)
        .filter(installation_id=installation.pk)
        .order_by("name", "id")
    )
    post_ids = [post.pk for post in posts]

    cells = list(
        ScheduleCell.objects.using(using)
        .for_tenant(caller.tenant_id)
        .filter(post_id__in=post_ids, date__range=(month_start, month_end))
        .select_related("planned_guard")
        .order_by("post_id", "slot_number", "date")
    )
    series = list(
        RotationSeries.objects.using(using)
        .for_tenant(caller.tenant_id)
        .filter(post_id__in=post_ids, is_active=True)
        .order_by("post_id", "slot_number")
    )
    assignments = list(
        GuardAssignment.objects.using(using)
        .for_tenant(caller.tenant_id)
        .active()
        .filter(post_id__in=post_ids)
        .select_related("guard")
        .order_by("post_id", "slot_number")
    )
    return MonthGrid(
        installation=installation,
        month=month,
        year=year,
        posts=posts,
        cells=cells,
        series=series,
        assignments=assignments,
    )


class SummaryStatus:
    NOT_CREATED = "sin_crear"
    NOT_PAINTED = "sin_pintar"
    INCOMPLETE = "incompleta"
    COMPLETE = "completa"


@dataclass(frozen=True, slots=True)
class PostSummary:
    id: int
    name: str
    shift_start: time
    shift_end: time
    is_night: bool
    required_guards: int
    assigned_guards: int


@dataclass(frozen=True, slots=True)
class InstallationSummary:
    id: int
    name: str
    account_id: Optional[int]
    account_name: Optional[str]
    posts: List[PostSummary]
    total_required: int
    assigned_slots: int
    has_grid: bool
    has_painted: bool
    uncovered_count: int

    @property
    def total_posts(self) -> int:
        return len(self.posts)

    @property
    def vacancies(self) -> int:
        return max(0, self.total_required - self.assigned_slots)

    @property
    def status(self) -> str:
        if not self.has_grid:
            return SummaryStatus.NOT_CREATED
        if not self.has_painted:
            return SummaryStatus.NOT_PAINTED
        if self.assigned_slots < self.total_required or self.uncovered_count:
            return SummaryStatus.INCOMPLETE
        return SummaryStatus.COMPLETE


def is_night_shift(shift_start: time) -> bool:
    return shift_start.hour >= 18 or shift_start.hour < 6


def month_summary(
    caller: CallerContext,
    *,
    month: int,
    year: int,
    using: Optional[str] = None,
) -> List[InstallationSummary]:
    """Coverage overview of every active installation of the tenant for one month.

    Uncovered cells are work days (``T``) without a planned guard.
    """

    validate_period(month, year)
    month_start, month_end = month_bounds(year, month)

    installations = list(
        Installation.objects.using(using)
        .for_tenant(caller.tenant_id)
        .filter(is_active=True)
        .select_related("account")
        .order_by("account__name", "name", "id")
    )
    installation_ids = [installation.pk for installation in installations]

    posts_by_installation: Dict[int, List[OperationalPost]] = defaultdict(list)
    for post in (
        OperationalPost.objects.using(using)
        .for_tenant(caller.tenant_id)
        .filter(installation_id__in=installation_ids)
        .active_during(month_start, month_end)
        .order_by("name", "id")
    ):
        posts_by_installation[post.installation_id].append(post)

    held_slots = set(
        GuardAssignment.objects.using(using)
        .for_tenant(caller.tenant_id)
        .active()
        .filter(installation_id__in=installation_ids)
        .values_list("post_id", "slot_number")
    )

    cell_counts = {
        row["installation_id"]: row
        for row in ScheduleCell.objects.using(using)
        .for_tenant(caller.tenant_id)
        .filter(installation_id__in=installation_ids, date__range=(month_start, month_end))
        .values("installation_id")
        .order_by("installation_id")
        .annotate(
            total=Count("pk"),
            painted=Count("pk", filter=~Q(shift_code="")),
            uncovered=Count("pk", filter=Q(shift_code=ShiftCode.WORK, planned_guard__isnull=True)),
        )
    }

    summaries: List[InstallationSummary] = []
    for installation in installations:
        posts = posts_by_installation.get(installation.pk, [])
        post_summaries = [
            PostSummary(
                id=post.pk,
                name=post.name,
                shift_start=post.shift_start,
                shift_end=post.shift_end,
                is_night=is_night_shift(post.shift_start),
                required_guards=post.required_guards,
                assigned_guards=sum(1 for post_id, _ in held_slots if post_id == post.pk),
            )
            for post in posts
        ]
        counts = cell_counts.get(installation.pk, {})
        account = installation.account
        summaries.append(
            InstallationSummary(
                id=installation.pk,
                name=installation.name,
                account_id=account.pk if account else None,
                account_name=account.name if account else None,
                posts=post_summaries,
                total_required=sum(post.required_guards for post in posts),
                assigned_slots=sum(post.assigned_guards for post in post_summaries),
                has_grid=counts.get("total", 0) > 0,
                has_painted=counts.get("painted", 0) > 0,
                uncovered_count=counts.get("uncovered", 0),
            )
        )
    return summaries
