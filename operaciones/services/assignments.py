from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterator, List, Optional, Tuple, TypeVar

from django.conf import settings
from django.db import IntegrityError, OperationalError, transaction
from django.utils import timezone

from guardias.models import Guard, assignable_statuses
from users.context import CallerContext

from ..exceptions import BusinessRuleViolation, ConcurrencyConflict, NotFound
from ..models import GuardAssignment, OperationalPost, RotationSeries
from .audit import ASSIGNMENT_CLOSED, ASSIGNMENT_CREATED, record_audit
from .cells import clear_planned_guard, project_planned_guard


logger = logging.getLogger(__name__)

REASON_TRANSFER = "Traslado a otro puesto"
REASON_REPLACED = "Reemplazado por otro guardia"
REASON_INITIAL = "Asignación inicial"
REASON_MANUAL_UNASSIGN = "Desasignado manualmente"

# SQLSTATE codes for serialization failures and deadlocks.
_RETRYABLE_SQLSTATES = {"40001", "40P01"}

CONFLICT_MESSAGE = "Otro usuario modificó la misma asignación. Intente nuevamente."

T = TypeVar("T")


def resolve_start_date(start_date: Optional[date]) -> date:
    return start_date or timezone.localdate()


def resolve_previous_end_date(start_date: date, end_date_of_previous: Optional[date]) -> date:
    return end_date_of_previous or start_date


def resolve_end_date(end_date: Optional[date]) -> date:
    return end_date or timezone.localdate()


def _is_serialization_failure(exc: OperationalError) -> bool:
    cause = exc.__cause__
    return getattr(cause, "sqlstate", None) in _RETRYABLE_SQLSTATES or getattr(
        cause, "pgcode", None
    ) in _RETRYABLE_SQLSTATES


@contextmanager
def _conflict_guard(using: Optional[str]) -> Iterator[None]:
    """Atomic block that reports lost races as ``ConcurrencyConflict``."""

    try:
        with transaction.atomic(using=using):
            yield
    except IntegrityError as exc:
        logger.warning("Conflicto de unicidad al escribir asignaciones: %s", exc)
        raise ConcurrencyConflict(CONFLICT_MESSAGE) from exc
    except OperationalError as exc:
        if not _is_serialization_failure(exc):
            raise
        logger.warning("Fallo de serialización al escribir asignaciones: %s", exc)
        raise ConcurrencyConflict(CONFLICT_MESSAGE) from exc


def run_with_conflict_retry(operation: Callable[[], T], *, retries: Optional[int] = None) -> T:
    """Run ``operation`` again when it loses a race against a concurrent writer."""

    if retries is None:
        retries = getattr(settings, "OPS_ASSIGNMENT_CONFLICT_RETRIES", 1)
    attempt = 0
    while True:
        try:
            return operation()
        except ConcurrencyConflict:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning("Conflicto de concurrencia en asignaciones, reintento %s/%s", attempt, retries)


@dataclass(slots=True)
class AssignResult:
    assignment: GuardAssignment
    closed_previous: Optional[GuardAssignment] = None
    displaced: Optional[GuardAssignment] = None


@dataclass(frozen=True, slots=True)
class ActiveAssignmentStatus:
    has_active_assignment: bool
    assignment_id: Optional[int] = None
    post_id: Optional[int] = None
    post_name: Optional[str] = None
    installation_id: Optional[int] = None
    installation_name: Optional[str] = None
    account_name: Optional[str] = None
    slot_number: Optional[int] = None
    start_date: Optional[date] = None


class AssignmentManager:
    """Create, replace and close guard assignments keeping the calendar in sync.

    Every write runs in a single transaction with the guard and post rows
    locked. A unique-index violation or a serialization failure means another
    request changed the same guard or slot first, and is reported as
    ``ConcurrencyConflict``.
    """

    def __init__(self, caller: CallerContext, *, using: Optional[str] = None) -> None:
        self.caller = caller
        self.using = using

    # ------------------------------------------------------------------ #
    # Operaciones
    # ------------------------------------------------------------------ #
    def assign(
        self,
        *,
        guard_id: int,
        post_id: int,
        slot_number: int,
        start_date: Optional[date] = None,
        end_date_of_previous: Optional[date] = None,
        reason: Optional[str] = None,
    ) -> AssignResult:
        guard = self._get_guard(guard_id)
        post = self._get_post(post_id)
        if not post.has_slot(slot_number):
            raise BusinessRuleViolation(
                f"El slot {slot_number} excede la dotación del puesto ({post.required_guards})."
            )

        start = resolve_start_date(start_date)
        previous_end = resolve_previous_end_date(start, end_date_of_previous)

        with self._atomic():
            guard = self._lock_guard(guard.pk)
            self._ensure_assignable(guard)
            post = self._lock_post(post.pk)

            current = self._active_queryset().filter(guard_id=guard.pk).first()
            if current is not None:
                self._close(current, end_date=previous_end, reason=reason or REASON_TRANSFER)

            occupant = self._active_queryset().for_slot(post.pk, slot_number).first()
            if occupant is not None:
                self._close(occupant, end_date=start, reason=REASON_REPLACED)

            assignment = GuardAssignment(
                tenant_id=self.caller.tenant_id,
                guard=guard,
                post=post,
                slot_number=slot_number,
                installation_id=post.installation_id,
                start_date=start,
                is_active=True,
                reason=reason or REASON_INITIAL,
                created_by_id=self.caller.actor_id,
            )
            assignment.save(using=self.using)

            project_planned_guard(
                tenant_id=self.caller.tenant_id,
                post_id=post.pk,
                slot_number=slot_number,
                guard_id=guard.pk,
                from_date=start,
                using=self.using,
            )
            (
                RotationSeries.objects.using(self.using)
                .for_tenant(self.caller.tenant_id)
                .filter(post_id=post.pk, slot_number=slot_number, is_active=True)
                .update(guard_id=guard.pk)
            )
            _, partner = self._rotation_pair(post.pk, slot_number)
            if partner is not None and not self._slot_is_held(partner):
                self._project_onto_series_slot(partner, guard.pk, start)

            guard.current_installation_id = post.installation_id
            guard.save(using=self.using, update_fields=["current_installation", "updated_at"])
            if occupant is not None and occupant.guard_id != guard.pk:
                self._release_current_installation(occupant.guard_id)

            record_audit(
                self.caller,
                action=ASSIGNMENT_CREATED,
                entity="asignacion",
                entity_id=assignment.pk,
                details={
                    "guard_id": guard.pk,
                    "post_id": post.pk,
                    "slot_number": slot_number,
                    "start_date": start.isoformat(),
                    "closed_previous_id": current.pk if current else None,
                    "displaced_id": occupant.pk if occupant else None,
                },
                using=self.using,
            )

        logger.info(
            "Asignación %s creada (guardia=%s puesto=%s slot=%s desde %s)",
            assignment.pk,
            guard.pk,
            post.pk,
            slot_number,
            start,
        )
        return AssignResult(assignment=assignment, closed_previous=current, displaced=occupant)

    def unassign(
        self,
        *,
        assignment_id: int,
        end_date: Optional[date] = None,
        reason: Optional[str] = None,
    ) -> GuardAssignment:
        assignment = self._active_queryset().filter(pk=assignment_id).first()
        if assignment is None:
            raise NotFound("Asignación activa no encontrada.")

        end = resolve_end_date(end_date)
        if end < assignment.start_date:
            raise BusinessRuleViolation(
                "La fecha de término no puede ser anterior a la fecha de inicio de la asignación."
            )

        with self._atomic():
            self._lock_guard(assignment.guard_id)
            self._lock_post(assignment.post_id)
            assignment = self._active_queryset().select_for_update().filter(pk=assignment_id).first()
            if assignment is None:
                raise ConcurrencyConflict("La asignación fue modificada por otra operación.")

            self._close(assignment, end_date=end, reason=reason or REASON_MANUAL_UNASSIGN)
            self._release_current_installation(assignment.guard_id)

        logger.info("Asignación %s cerrada al %s", assignment.pk, end)
        return assignment

    def check_active(self, *, guard_id: int) -> ActiveAssignmentStatus:
        guard = self._get_guard(guard_id)
        assignment = (
            self._active_queryset()
            .filter(guard_id=guard.pk)
            .select_related("post", "installation", "installation__account")
            .first()
        )
        if assignment is None:
            return ActiveAssignmentStatus(has_active_assignment=False)

        account = assignment.installation.account
        return ActiveAssignmentStatus(
            has_active_assignment=True,
            assignment_id=assignment.pk,
            post_id=assignment.post_id,
            post_name=assignment.post.name,
            installation_id=assignment.installation_id,
            installation_name=assignment.installation.name,
            account_name=account.name if account else None,
            slot_number=assignment.slot_number,
            start_date=assignment.start_date,
        )

    def list_assignments(
        self,
        *,
        installation_id: Optional[int] = None,
        post_id: Optional[int] = None,
        guard_id: Optional[int] = None,
        active_only: bool = True,
    ) -> List[GuardAssignment]:
        queryset = (
            GuardAssignment.objects.using(self.using)
            .for_tenant(self.caller.tenant_id)
            .select_related("guard", "post", "installation", "installation__account")
        )
        if installation_id:
            queryset = queryset.filter(installation_id=installation_id)
        if post_id:
            queryset = queryset.filter(post_id=post_id)
        if guard_id:
            queryset = queryset.filter(guard_id=guard_id)
        if active_only:
            queryset = queryset.active()
        return list(queryset.order_by("-is_active", "-start_date", "-id"))

    # ------------------------------------------------------------------ #
    # Soporte
    # ------------------------------------------------------------------ #
    def _atomic(self):
        return _conflict_guard(self.using)

    def _active_queryset(self):
        return GuardAssignment.objects.using(self.using).for_tenant(self.caller.tenant_id).active()

    def _get_guard(self, guard_id: int) -> Guard:
        guard = Guard.objects.using(self.using).for_tenant(self.caller.tenant_id).filter(pk=guard_id).first()
        if guard is None:
            raise NotFound("Guardia no encontrado.")
        return guard

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

    def _lock_guard(self, guard_id: int) -> Guard:
        return Guard.objects.using(self.using).select_for_update().get(pk=guard_id)

    def _lock_post(self, post_id: int) -> OperationalPost:
        return OperationalPost.objects.using(self.using).select_for_update().get(pk=post_id)

    @staticmethod
    def _ensure_assignable(guard: Guard) -> None:
        if guard.lifecycle_status not in assignable_statuses():
            raise BusinessRuleViolation(
                "El guardia no está en un estado asignable "
                f"({guard.get_lifecycle_status_display()})."
            )
        if guard.is_blacklisted:
            raise BusinessRuleViolation("El guardia está en lista negra.")

    def _rotation_pair(
        self, post_id: int, slot_number: int
    ) -> Tuple[Optional[RotationSeries], Optional[RotationSeries]]:
        """Active rotating series of a slot and the active series it is linked to."""

        series = (
            RotationSeries.objects.using(self.using)
            .for_tenant(self.caller.tenant_id)
            .filter(post_id=post_id, slot_number=slot_number, is_active=True, is_rotating=True)
            .select_related("linked_series")
            .first()
        )
        if series is None or series.linked_series is None or not series.linked_series.is_active:
            return None, None
        return series, series.linked_series

    def _slot_is_held(self, series: RotationSeries) -> bool:
        return self._active_queryset().for_slot(series.post_id, series.slot_number).exists()

    def _project_onto_series_slot(self, series: RotationSeries, guard_id: int, from_date: date) -> None:
        project_planned_guard(
            tenant_id=self.caller.tenant_id,
            post_id=series.post_id,
            slot_number=series.slot_number,
            guard_id=guard_id,
            from_date=from_date,
            using=self.using,
        )
        RotationSeries.objects.using(self.using).filter(pk=series.pk).update(guard_id=guard_id)

    def _close(self, assignment: GuardAssignment, *, end_date: date, reason: str) -> None:
        if end_date < assignment.start_date:
            raise BusinessRuleViolation(
                f"La asignación {assignment.pk} no puede cerrarse antes de su inicio "
                f"({assignment.start_date.isoformat()})."
            )

        assignment.is_active = False
        assignment.end_date = end_date
        assignment.reason = reason
        assignment.save(using=self.using, update_fields=["is_active", "end_date", "reason", "updated_at"])

        clear_planned_guard(
            tenant_id=self.caller.tenant_id,
            post_id=assignment.post_id,
            slot_number=assignment.slot_number,
            guard_id=assignment.guard_id,
            from_date=end_date,
            using=self.using,
        )
        (
            RotationSeries.objects.using(self.using)
            .for_tenant(self.caller.tenant_id)
            .filter(
                post_id=assignment.post_id,
                slot_number=assignment.slot_number,
                guard_id=assignment.guard_id,
                is_active=True,
            )
            .update(guard=None)
        )

        series, partner = self._rotation_pair(assignment.post_id, assignment.slot_number)
        if partner is not None:
            clear_planned_guard(
                tenant_id=self.caller.tenant_id,
                post_id=partner.post_id,
                slot_number=partner.slot_number,
                guard_id=assignment.guard_id,
                from_date=end_date,
                using=self.using,
            )
            (
                RotationSeries.objects.using(self.using)
                .filter(pk=partner.pk, guard_id=assignment.guard_id)
                .update(guard=None)
            )
            holder = self._active_queryset().for_slot(partner.post_id, partner.slot_number).first()
            if holder is not None:
                self._project_onto_series_slot(series, holder.guard_id, max(end_date, holder.start_date))

        record_audit(
            self.caller,
            action=ASSIGNMENT_CLOSED,
            entity="asignacion",
            entity_id=assignment.pk,
            details={
                "guard_id": assignment.guard_id,
                "post_id": assignment.post_id,
                "slot_number": assignment.slot_number,
                "end_date": end_date.isoformat(),
                "reason": reason,
            },
            using=self.using,
        )

    def _release_current_installation(self, guard_id: int) -> None:
        if self._active_queryset().filter(guard_id=guard_id).exists():
            return
        (
            Guard.objects.using(self.using)
            .filter(pk=guard_id)
            .update(current_installation=None, updated_at=timezone.now())
        )


