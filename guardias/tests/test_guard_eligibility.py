from __future__ import annotations

from django.test import TestCase, override_settings

from guardias.models import Guard, GuardLifecycleStatus, assignable_statuses
from users.models import Tenant


class GuardEligibilityTests(TestCase):
    def setUp(self) -> None:
        self.tenant = Tenant.objects.create(name="Seguridad Sur", slug="sur")

    def _guard(self, status: str, *, blacklisted: bool = False) -> Guard:
        return Guard(
            tenant=self.tenant,
            code="G-1",
            first_name="Pedro",
            last_name="Soto",
            lifecycle_status=status,
            is_blacklisted=blacklisted,
        )

    def test_default_assignable_statuses(self) -> None:
        self.assertEqual(assignable_statuses(), ("seleccionado", "contratado_activo"))
        self.assertTrue(self._guard(GuardLifecycleStatus.SELECCIONADO).is_assignable)
        self.assertTrue(self._guard(GuardLifecycleStatus.CONTRATADO_ACTIVO).is_assignable)
        self.assertFalse(self._guard(GuardLifecycleStatus.POSTULANTE).is_assignable)
        self.assertFalse(self._guard(GuardLifecycleStatus.CONTRATADO_ACTIVO, blacklisted=True).is_assignable)

    @override_settings(OPS_ASSIGNABLE_GUARD_STATUSES=["te"])
    def test_assignable_statuses_follow_settings(self) -> None:
        self.assertEqual(assignable_statuses(), ("te",))
        self.assertTrue(self._guard(GuardLifecycleStatus.TURNO_EXTRA).is_assignable)

    def test_plannable_excludes_inactive_and_dismissed(self) -> None:
        self.assertTrue(self._guard(GuardLifecycleStatus.POSTULANTE).is_plannable)
        self.assertFalse(self._guard(GuardLifecycleStatus.INACTIVO).is_plannable)
        self.assertFalse(self._guard(GuardLifecycleStatus.DESVINCULADO).is_plannable)
        self.assertFalse(self._guard(GuardLifecycleStatus.SELECCIONADO, blacklisted=True).is_plannable)

    def test_code_is_unique_per_tenant(self) -> None:
        self._guard(GuardLifecycleStatus.POSTULANTE).save()
        other_tenant = Tenant.objects.create(name="Seguridad Norte", slug="norte")

        Guard.objects.create(tenant=other_tenant, code="G-1", first_name="Ana", last_name="Díaz")

        self.assertEqual(Guard.objects.filter(code="G-1").count(), 2)
