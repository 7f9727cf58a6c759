from __future__ import annotations

from datetime import date, time
from itertools import count
from typing import Any, Optional

from guardias.models import Guard, GuardLifecycleStatus
from instalaciones.models import Account, Installation
from operaciones.models import OperationalPost, ScheduleCell
from users.context import CallerContext
from users.models import Tenant, UserProfile


_sequence = count(1)


class OpsFixturesMixin:
    """Builders for tenants, installations, posts and guards used across the operations tests."""

    def setUp(self) -> None:
        super().setUp()
        self.tenant = self.create_tenant("vigilancia-sur")
        self.user = self.create_user(self.tenant)
        self.caller = CallerContext(tenant_id=self.tenant.pk, actor_id=self.user.pk)
        self.account = Account.objects.create(tenant=self.tenant, name="Inmobiliaria Los Andes")
        self.installation = Installation.objects.create(
            tenant=self.tenant,
            account=self.account,
            name="Edificio Alameda",
            address="Av. Libertador 1234",
        )

    def create_tenant(self, slug: str) -> Tenant:
        return Tenant.objects.create(name=slug.replace("-", " ").title(), slug=slug)

    def create_user(self, tenant: Optional[Tenant]) -> UserProfile:
        number = next(_sequence)
        return UserProfile.objects.create_user(
            cedula=f"{10_000_000 + number}-{number % 10}",
            password="pass",  # noqa: S106 - credencial de prueba
            nombres="Supervisor",
            apellidos=f"Turnos {number}",
            tenant=tenant,
        )

    def create_post(
        self,
        name: str = "Portería principal",
        *,
        installation: Optional[Installation] = None,
        tenant: Optional[Tenant] = None,
        required_guards: int = 1,
        weekdays: Optional[list[str]] = None,
        active_from: date = date(2024, 1, 1),
        active_until: Optional[date] = None,
        **extra: Any,
    ) -> OperationalPost:
        installation = installation or self.installation
        return OperationalPost.objects.create(
            tenant=tenant or installation.tenant,
            installation=installation,
            name=name,
            shift_start=time(8, 0),
            shift_end=time(20, 0),
            weekdays=weekdays or [],
            required_guards=required_guards,
            active_from=active_from,
            active_until=active_until,
            **extra,
        )

    def create_installation(self, name: str, *, tenant: Optional[Tenant] = None) -> Installation:
        account = self.account if tenant is None else None
        return Installation.objects.create(tenant=tenant or self.tenant, account=account, name=name)

    def create_guard(
        self,
        first_name: str = "Pedro",
        *,
        tenant: Optional[Tenant] = None,
        status: str = GuardLifecycleStatus.CONTRATADO_ACTIVO,
        blacklisted: bool = False,
    ) -> Guard:
        number = next(_sequence)
        return Guard.objects.create(
            tenant=tenant or self.tenant,
            code=f"G-{number:04d}",
            first_name=first_name,
            last_name="Soto",
            lifecycle_status=status,
            is_blacklisted=blacklisted,
        )

    def cells_for(self, post: OperationalPost, slot_number: int = 1) -> dict[date, ScheduleCell]:
        return {
            cell.date: cell
            for cell in ScheduleCell.objects.filter(post=post, slot_number=slot_number).order_by("date")
        }
