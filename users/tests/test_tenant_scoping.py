from __future__ import annotations

from types import SimpleNamespace

from django.test import SimpleTestCase, TestCase

from instalaciones.models import Installation
from users.context import CallerContext
from users.forms import UserCreationForm
from users.models import Tenant, UserProfile


class CallerContextTests(SimpleTestCase):
    def test_built_from_user_with_tenant(self) -> None:
        caller = CallerContext.from_user(SimpleNamespace(pk=7, tenant_id=3))

        self.assertEqual(caller, CallerContext(tenant_id=3, actor_id=7))

    def test_user_without_tenant_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            CallerContext.from_user(SimpleNamespace(pk=7, tenant_id=None))


class TenantScopedQuerySetTests(TestCase):
    def setUp(self) -> None:
        self.north = Tenant.objects.create(name="Seguridad Norte", slug="norte")
        self.south = Tenant.objects.create(name="Seguridad Sur", slug="sur")
        self.north_site = Installation.objects.create(tenant=self.north, name="Mall Norte")
        Installation.objects.create(tenant=self.south, name="Mall Sur")

    def test_for_tenant_filters_records(self) -> None:
        self.assertEqual(list(Installation.objects.for_tenant(self.north.pk)), [self.north_site])

    def test_missing_tenant_matches_nothing(self) -> None:
        self.assertFalse(Installation.objects.for_tenant(None).exists())


class UserProfileManagerTests(TestCase):
    def test_create_user_strips_cedula_and_keeps_tenant(self) -> None:
        tenant = Tenant.objects.create(name="Seguridad Centro", slug="centro")

        user = UserProfile.objects.create_user(
            cedula=" 12345678-9 ",
            password="pass",  # noqa: S106 - credencial de prueba
            nombres="Camila",
            apellidos="Rojas",
            tenant=tenant,
        )

        self.assertEqual(user.cedula, "12345678-9")
        self.assertEqual(user.tenant, tenant)
        self.assertEqual(user.get_full_name(), "Camila Rojas")
        self.assertFalse(user.is_staff)

    def test_create_superuser_requires_staff_flags(self) -> None:
        with self.assertRaises(ValueError):
            UserProfile.objects.create_superuser("1-9", "pass", nombres="A", apellidos="B", is_staff=False)


class UserCreationFormTests(TestCase):
    def test_rejects_duplicate_cedula_and_mismatched_passwords(self) -> None:
        UserProfile.objects.create_user(cedula="12345678-9", nombres="Camila", apellidos="Rojas")

        form = UserCreationForm(
            data={
                "cedula": "12345678-9",
                "nombres": "Otra",
                "apellidos": "Persona",
                "password1": "clave-segura-1",
                "password2": "clave-segura-2",
                "is_active": True,
            }
        )

        self.assertFalse(form.is_valid())
        self.assertIn("cedula", form.errors)
        self.assertIn("password2", form.errors)
