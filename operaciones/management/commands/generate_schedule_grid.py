from __future__ import annotations

from typing import List, Optional

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from instalaciones.models import Installation
from operaciones.exceptions import OpsError
from operaciones.services.grid import MonthlyGridGenerator
from users.context import CallerContext
from users.models import Tenant


class Command(BaseCommand):
    help = "Genera la pauta mensual (celdas por puesto, slot y día) de una o todas las instalaciones de una empresa."

    def add_arguments(self, parser):
        parser.add_argument(
            "--tenant",
            dest="tenant",
            required=True,
            help="Identificador (slug) o ID de la empresa.",
        )
        parser.add_argument(
            "--installation",
            dest="installation_id",
            type=int,
            help="ID de la instalación. Si se omite, se procesan todas las instalaciones activas.",
        )
        parser.add_argument(
            "--month",
            dest="month",
            type=int,
            help="Mes (1-12). Por defecto, el mes actual.",
        )
        parser.add_argument(
            "--year",
            dest="year",
            type=int,
            help="Año (2020-2100). Por defecto, el año actual.",
        )
        parser.add_argument(
            "--overwrite",
            dest="overwrite",
            action="store_true",
            default=False,
            help="Recalcula las celdas existentes de los slots que tienen una serie activa.",
        )

    def handle(self, *args, **options):
        tenant = self._resolve_tenant(options["tenant"])
        today = timezone.localdate()
        month: int = options.get("month") or today.month
        year: int = options.get("year") or today.year

        installation_ids = self._resolve_installations(tenant, options.get("installation_id"))
        caller = CallerContext(tenant_id=tenant.pk)
        generator = MonthlyGridGenerator(caller)

        self.stdout.write(
            self.style.MIGRATE_HEADING(
                f"Generando pauta {month:02d}/{year} para {len(installation_ids)} instalación(es) de {tenant.name}"
            )
        )

        totals = {"created": 0, "updated": 0, "unchanged": 0}
        for installation_id in installation_ids:
            try:
                result = generator.generate(
                    installation_id=installation_id,
                    month=month,
                    year=year,
                    overwrite=options["overwrite"],
                )
            except OpsError as exc:
                raise CommandError(exc.message) from exc

            totals["created"] += result.created
            totals["updated"] += result.updated
            totals["unchanged"] += result.unchanged
            self.stdout.write(
                self.style.HTTP_INFO(
                    f"  → Instalación {installation_id}: {result.created} creadas, "
                    f"{result.updated} actualizadas, {result.unchanged} sin cambios"
                )
            )

        self.stdout.write(
            self.style.SUCCESS(
                "Pauta generada. "
                f"Creadas: {totals['created']}, actualizadas: {totals['updated']}, sin cambios: {totals['unchanged']}."
            )
        )

    def _resolve_tenant(self, label: str) -> Tenant:
        queryset = Tenant.objects.filter(is_active=True)
        tenant: Optional[Tenant] = None
        if label.isdigit():
            tenant = queryset.filter(pk=int(label)).first()
        if tenant is None:
            tenant = queryset.filter(slug=label).first()
        if tenant is None:
            raise CommandError(f"No existe una empresa activa con identificador '{label}'.")
        return tenant

    def _resolve_installations(self, tenant: Tenant, installation_id: Optional[int]) -> List[int]:
        if installation_id is not None:
            return [installation_id]
        return list(
            Installation.objects.for_tenant(tenant.pk)
            .filter(is_active=True)
            .order_by("pk")
            .values_list("pk", flat=True)
        )
