from __future__ import annotations

from datetime import date
from unittest import mock

from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from django.utils import timezone

from guardias.models import Guard, GuardLifecycleStatus
from operaciones.exceptions import BusinessRuleViolation, ConcurrencyConflict, NotFound
from operaciones.models import GuardAssignment, OpsAuditLog, RotationSeries
from operaciones.services.assignments import (
    REASON_INITIAL,
    REASON_MANUAL_UNASSIGN,
    REASON_REPLACED,
    REASON_TRANSFER,
    AssignmentManager,
    run_with_conflict_retry,
)
from operaciones.services.painter import PaintRequest, RotationRequest, SeriesPainter
from users.context import CallerContext

from .utils import OpsFixturesMixin


class AssignmentManagerTests(OpsFixturesMixin, TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.manager = AssignmentManager(self.caller)
        self.post_a = self.create_post("Portería A")
        self.other_installation = self.create_installation("Centro Logístico")
        self.post_b = self.create_post("Acceso B", installation=self.other_installation, required_guards=2)
        self.guard = self.create_guard()

    def _paint(self, post, slot_number: int = 1) -> None:
        SeriesPainter(self.caller).paint(
            PaintRequest(
                post_id=post.pk,
                slot_number=slot_number,
                pattern_code="4x3",
                work_days=4,
                rest_days=3,
                start_date=date(2024, 3, 1),
                month=3,
                year=2024,
            )
        )

    def _paint_rotation(self, post) -> None:
        SeriesPainter(self.caller).paint(
            PaintRequest(
                post_id=post.pk,
                slot_number=1,
                pattern_code="4x4",
                work_days=4,
                rest_days=4,
                start_date=date(2024, 3, 1),
                month=3,
                year=2024,
                rotation=RotationRequest(counterpart_post_id=post.pk, counterpart_slot_number=2),
            )
        )

    def _days_planned_for(self, post, slot_number: int, guard) -> list[date]:
        return [day for day, cell in self.cells_for(post, slot_number).items() if cell.planned_guard_id == guard.pk]

    def test_assign_then_transfer_scenario(self) -> None:
        first = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1)
        ).assignment

        status = self.manager.check_active(guard_id=self.guard.pk)
        self.assertTrue(status.has_active_assignment)
        self.assertEqual(status.assignment_id, first.pk)
        self.assertEqual(status.post_name, "Portería A")
        self.assertEqual(status.installation_name, "Edificio Alameda")
        self.assertEqual(status.account_name, "Inmobiliaria Los Andes")
        self.assertEqual(status.slot_number, 1)
        self.assertEqual(status.start_date, date(2024, 3, 1))

        result = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_b.pk, slot_number=2, start_date=date(2024, 3, 10)
        )

        first.refresh_from_db()
        self.assertFalse(first.is_active)
        self.assertEqual(first.end_date, date(2024, 3, 10))
        self.assertEqual(first.reason, REASON_TRANSFER)
        self.assertEqual(result.closed_previous.pk, first.pk)
        self.assertEqual(result.assignment.reason, REASON_INITIAL)

        history = self.manager.list_assignments(guard_id=self.guard.pk, active_only=False)
        self.assertEqual([item.is_active for item in history], [True, False])
        self.assertEqual(history[0].start_date, date(2024, 3, 10))

        self.guard.refresh_from_db()
        self.assertEqual(self.guard.current_installation, self.other_installation)

    def test_transfer_uses_explicit_previous_end_date_and_reason(self) -> None:
        first = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1)
        ).assignment

        self.manager.assign(
            guard_id=self.guard.pk,
            post_id=self.post_b.pk,
            slot_number=1,
            start_date=date(2024, 3, 10),
            end_date_of_previous=date(2024, 3, 9),
            reason="Solicitud del cliente",
        )

        first.refresh_from_db()
        self.assertEqual(first.end_date, date(2024, 3, 9))
        self.assertEqual(first.reason, "Solicitud del cliente")

    def test_transfer_clears_previous_slot_from_end_date_of_previous(self) -> None:
        self._paint(self.post_a)
        self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1)
        )

        self.manager.assign(
            guard_id=self.guard.pk,
            post_id=self.post_b.pk,
            slot_number=1,
            start_date=date(2024, 3, 15),
            end_date_of_previous=date(2024, 3, 12),
        )

        self.assertEqual(
            self._days_planned_for(self.post_a, 1, self.guard),
            [date(2024, 3, day) for day in (1, 2, 3, 4, 8, 9, 10, 11)],
        )
        self.assertEqual(self.cells_for(self.post_a)[date(2024, 3, 15)].shift_code, "T")
        self.assertIsNone(RotationSeries.objects.get(post=self.post_a, is_active=True).guard)

    def test_displacement_closes_occupant_and_clears_its_installation(self) -> None:
        occupant = self.create_guard("Marta")
        displaced = self.manager.assign(
            guard_id=occupant.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1)
        ).assignment

        result = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 15)
        )

        displaced.refresh_from_db()
        occupant.refresh_from_db()
        self.assertEqual(result.displaced.pk, displaced.pk)
        self.assertFalse(displaced.is_active)
        self.assertEqual(displaced.end_date, date(2024, 3, 15))
        self.assertEqual(displaced.reason, REASON_REPLACED)
        self.assertIsNone(occupant.current_installation)
        self.assertEqual(
            GuardAssignment.objects.filter(post=self.post_a, slot_number=1, is_active=True).count(), 1
        )

    def test_assignment_repairs_calendar_from_start_date(self) -> None:
        occupant = self.create_guard("Marta")
        self._paint(self.post_a)
        self.manager.assign(guard_id=occupant.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1))

        self.manager.assign(guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 15))

        cells = self.cells_for(self.post_a)
        self.assertEqual(cells[date(2024, 3, 8)].planned_guard_id, occupant.pk)
        for day, cell in cells.items():
            if day >= date(2024, 3, 15) and cell.shift_code == "T":
                self.assertEqual(cell.planned_guard_id, self.guard.pk)
            if day >= date(2024, 3, 15):
                self.assertNotEqual(cell.planned_guard_id, occupant.pk)
        self.assertEqual(RotationSeries.objects.get(post=self.post_a, is_active=True).guard, self.guard)

    def test_paint_then_assign_names_guard_on_every_work_cell(self) -> None:
        self._paint(self.post_a)

        self.manager.assign(guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1))

        cells = self.cells_for(self.post_a).values()
        for cell in cells:
            if cell.shift_code == "T":
                self.assertEqual(cell.planned_guard_id, self.guard.pk)
            else:
                self.assertIsNone(cell.planned_guard_id)

    def test_unassign_clears_calendar_from_end_date(self) -> None:
        self._paint(self.post_a)
        assignment = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1)
        ).assignment

        closed = self.manager.unassign(assignment_id=assignment.pk, end_date=date(2024, 3, 15))

        self.assertFalse(closed.is_active)
        self.assertEqual(closed.end_date, date(2024, 3, 15))
        self.assertEqual(closed.reason, REASON_MANUAL_UNASSIGN)
        cells = self.cells_for(self.post_a)
        self.assertEqual(cells[date(2024, 3, 1)].planned_guard_id, self.guard.pk)
        self.assertEqual(cells[date(2024, 3, 15)].shift_code, "T")
        self.assertFalse(
            any(cell.planned_guard_id == self.guard.pk for day, cell in cells.items() if day >= date(2024, 3, 15))
        )
        self.assertIsNone(RotationSeries.objects.get(post=self.post_a, is_active=True).guard)
        self.guard.refresh_from_db()
        self.assertIsNone(self.guard.current_installation)
        self.assertFalse(self.manager.check_active(guard_id=self.guard.pk).has_active_assignment)

    def test_assignment_carries_guard_onto_unheld_rotation_partner(self) -> None:
        post = self.create_post("Portería rotativa", required_guards=2)
        self._paint_rotation(post)

        self.manager.assign(guard_id=self.guard.pk, post_id=post.pk, slot_number=1, start_date=date(2024, 3, 1))

        self.assertEqual(
            self._days_planned_for(post, 2, self.guard),
            [date(2024, 3, day) for day in (9, 10, 11, 12, 25, 26, 27, 28)],
        )
        self.assertEqual(RotationSeries.objects.get(post=post, slot_number=2, is_active=True).guard, self.guard)

    def test_unassign_clears_guard_from_rotation_partner(self) -> None:
        post = self.create_post("Portería rotativa", required_guards=2)
        assignment = self.manager.assign(
            guard_id=self.guard.pk, post_id=post.pk, slot_number=1, start_date=date(2024, 3, 1)
        ).assignment
        self._paint_rotation(post)
        self.assertEqual(len(self._days_planned_for(post, 2, self.guard)), 8)

        self.manager.unassign(assignment_id=assignment.pk, end_date=date(2024, 3, 10))

        self.assertEqual(self._days_planned_for(post, 2, self.guard), [date(2024, 3, 9)])
        self.assertIsNone(RotationSeries.objects.get(post=post, slot_number=2, is_active=True).guard)
        self.assertIsNone(RotationSeries.objects.get(post=post, slot_number=1, is_active=True).guard)

    def test_unassigned_slot_takes_rotation_partner_guard(self) -> None:
        post = self.create_post("Portería rotativa", required_guards=2)
        partner_guard = self.create_guard("Marta")
        assignment = self.manager.assign(
            guard_id=self.guard.pk, post_id=post.pk, slot_number=1, start_date=date(2024, 3, 1)
        ).assignment
        self.manager.assign(guard_id=partner_guard.pk, post_id=post.pk, slot_number=2, start_date=date(2024, 3, 1))
        self._paint_rotation(post)

        self.manager.unassign(assignment_id=assignment.pk, end_date=date(2024, 3, 10))

        self.assertEqual(self._days_planned_for(post, 1, self.guard), [date(2024, 3, day) for day in (1, 2, 3, 4)])
        self.assertEqual(
            self._days_planned_for(post, 1, partner_guard),
            [date(2024, 3, day) for day in (17, 18, 19, 20)],
        )
        self.assertEqual(RotationSeries.objects.get(post=post, slot_number=1, is_active=True).guard, partner_guard)
        self.assertEqual(
            self._days_planned_for(post, 2, partner_guard),
            [date(2024, 3, day) for day in (9, 10, 11, 12, 25, 26, 27, 28)],
        )

    def test_unassign_defaults_end_date_to_today(self) -> None:
        assignment = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1)
        ).assignment

        closed = self.manager.unassign(assignment_id=assignment.pk)

        self.assertEqual(closed.end_date, timezone.localdate())

    def test_unassign_rejects_end_before_start(self) -> None:
        assignment = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 10)
        ).assignment

        with self.assertRaises(BusinessRuleViolation):
            self.manager.unassign(assignment_id=assignment.pk, end_date=date(2024, 3, 9))

        assignment.refresh_from_db()
        self.assertTrue(assignment.is_active)

    def test_unassign_requires_active_assignment(self) -> None:
        assignment = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1)
        ).assignment
        self.manager.unassign(assignment_id=assignment.pk, end_date=date(2024, 3, 5))

        with self.assertRaises(NotFound):
            self.manager.unassign(assignment_id=assignment.pk)
        with self.assertRaises(NotFound):
            self.manager.unassign(assignment_id=999_999)

    def test_transfer_closing_before_start_aborts_whole_call(self) -> None:
        current = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 10)
        ).assignment

        with self.assertRaises(BusinessRuleViolation):
            self.manager.assign(
                guard_id=self.guard.pk,
                post_id=self.post_b.pk,
                slot_number=1,
                start_date=date(2024, 3, 12),
                end_date_of_previous=date(2024, 3, 5),
            )

        current.refresh_from_db()
        self.assertTrue(current.is_active)
        self.assertEqual(GuardAssignment.objects.count(), 1)

    def test_reassigning_same_slot_replaces_record(self) -> None:
        first = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1)
        ).assignment

        second = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 20)
        ).assignment

        first.refresh_from_db()
        self.assertFalse(first.is_active)
        self.assertNotEqual(first.pk, second.pk)
        self.assertEqual(GuardAssignment.objects.filter(guard=self.guard, is_active=True).count(), 1)

    def test_start_date_defaults_to_today(self) -> None:
        assignment = self.manager.assign(guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1).assignment

        self.assertEqual(assignment.start_date, timezone.localdate())

    def test_rejects_ineligible_guards(self) -> None:
        cases = {
            "postulante": self.create_guard("Ana", status=GuardLifecycleStatus.POSTULANTE),
            "inactivo": self.create_guard("Berta", status=GuardLifecycleStatus.INACTIVO),
            "lista negra": self.create_guard("Carla", blacklisted=True),
        }
        for label, guard in cases.items():
            with self.subTest(label):
                with self.assertRaises(BusinessRuleViolation):
                    self.manager.assign(guard_id=guard.pk, post_id=self.post_a.pk, slot_number=1)
        self.assertFalse(GuardAssignment.objects.exists())

    def test_eligibility_is_checked_on_the_locked_guard_row(self) -> None:
        lock_guard = AssignmentManager._lock_guard

        def blacklist_then_lock(manager, guard_id):
            Guard.objects.filter(pk=guard_id).update(is_blacklisted=True)
            return lock_guard(manager, guard_id)

        with mock.patch.object(AssignmentManager, "_lock_guard", autospec=True, side_effect=blacklist_then_lock):
            with self.assertRaises(BusinessRuleViolation):
                self.manager.assign(guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1)

        self.assertFalse(GuardAssignment.objects.exists())

    @override_settings(OPS_ASSIGNABLE_GUARD_STATUSES=("te",))
    def test_assignable_statuses_are_configurable(self) -> None:
        extra_shift = self.create_guard("Diego", status=GuardLifecycleStatus.TURNO_EXTRA)

        self.manager.assign(guard_id=extra_shift.pk, post_id=self.post_a.pk, slot_number=1)
        with self.assertRaises(BusinessRuleViolation):
            self.manager.assign(guard_id=self.guard.pk, post_id=self.post_b.pk, slot_number=1)

    def test_rejects_slot_beyond_dotation_and_missing_records(self) -> None:
        with self.assertRaises(BusinessRuleViolation):
            self.manager.assign(guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=2)
        with self.assertRaises(NotFound):
            self.manager.assign(guard_id=999_999, post_id=self.post_a.pk, slot_number=1)
        with self.assertRaises(NotFound):
            self.manager.assign(guard_id=self.guard.pk, post_id=999_999, slot_number=1)
        with self.assertRaises(NotFound):
            self.manager.check_active(guard_id=999_999)

    def test_tenant_isolation(self) -> None:
        self.manager.assign(guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1)
        other_tenant = self.create_tenant("otra-empresa")
        outsider = AssignmentManager(CallerContext(tenant_id=other_tenant.pk))

        self.assertEqual(outsider.list_assignments(active_only=False), [])
        with self.assertRaises(NotFound):
            outsider.check_active(guard_id=self.guard.pk)
        with self.assertRaises(NotFound):
            outsider.assign(guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1)

    def test_list_filters(self) -> None:
        other_guard = self.create_guard("Marta")
        self.manager.assign(guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1))
        self.manager.assign(guard_id=other_guard.pk, post_id=self.post_b.pk, slot_number=1, start_date=date(2024, 3, 1))

        self.assertEqual(len(self.manager.list_assignments()), 2)
        self.assertEqual(
            [item.guard_id for item in self.manager.list_assignments(installation_id=self.other_installation.pk)],
            [other_guard.pk],
        )
        self.assertEqual(
            [item.guard_id for item in self.manager.list_assignments(post_id=self.post_a.pk)],
            [self.guard.pk],
        )

    def test_writes_audit_entries(self) -> None:
        assignment = self.manager.assign(
            guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1, start_date=date(2024, 3, 1)
        ).assignment
        self.manager.unassign(assignment_id=assignment.pk, end_date=date(2024, 3, 2))

        actions = list(
            OpsAuditLog.objects.filter(entity_id=str(assignment.pk)).order_by("id").values_list("action", flat=True)
        )
        self.assertEqual(actions, ["ops.asignacion.created", "ops.asignacion.closed"])
        self.assertEqual(OpsAuditLog.objects.first().actor, self.user)

    def test_unique_violation_is_reported_as_conflict(self) -> None:
        with mock.patch(
            "operaciones.services.assignments.project_planned_guard",
            side_effect=IntegrityError("duplicate key value violates unique constraint"),
        ):
            with self.assertRaises(ConcurrencyConflict):
                self.manager.assign(guard_id=self.guard.pk, post_id=self.post_a.pk, slot_number=1)

        self.assertFalse(GuardAssignment.objects.exists())
        self.guard.refresh_from_db()
        self.assertIsNone(self.guard.current_installation)


class ConflictRetryTests(TestCase):
    def test_retries_once_then_succeeds(self) -> None:
        operation = mock.Mock(side_effect=[ConcurrencyConflict("conflicto"), "ok"])

        self.assertEqual(run_with_conflict_retry(operation), "ok")
        self.assertEqual(operation.call_count, 2)

    @override_settings(OPS_ASSIGNMENT_CONFLICT_RETRIES=0)
    def test_gives_up_when_retries_exhausted(self) -> None:
        operation = mock.Mock(side_effect=ConcurrencyConflict("conflicto"))

        with self.assertRaises(ConcurrencyConflict):
            run_with_conflict_retry(operation)
        self.assertEqual(operation.call_count, 1)


class AssignmentConstraintTests(OpsFixturesMixin, TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.post = self.create_post(required_guards=2)
        self.guard = self.create_guard()

    def _assignment(self, **overrides) -> GuardAssignment:
        values = {
            "tenant": self.tenant,
            "guard": self.guard,
            "post": self.post,
            "slot_number": 1,
            "installation": self.installation,
            "start_date": date(2024, 3, 1),
        }
        values.update(overrides)
        return GuardAssignment.objects.create(**values)

    def test_one_active_assignment_per_guard(self) -> None:
        self._assignment()

        with self.assertRaises(IntegrityError), transaction.atomic():
            self._assignment(slot_number=2)

    def test_one_active_assignment_per_slot(self) -> None:
        self._assignment()

        with self.assertRaises(IntegrityError), transaction.atomic():
            self._assignment(guard=self.create_guard("Marta"))

    def test_closed_records_do_not_count(self) -> None:
        self._assignment(is_active=False, end_date=date(2024, 3, 2))
        self._assignment(is_active=False, end_date=date(2024, 3, 3))

        self._assignment()

        self.assertEqual(GuardAssignment.objects.filter(guard=self.guard).count(), 3)

    def test_end_date_cannot_precede_start(self) -> None:
        with self.assertRaises(IntegrityError), transaction.atomic():
            self._assignment(is_active=False, end_date=date(2024, 2, 28))
