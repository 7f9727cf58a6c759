from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from instalaciones.models import Installation
from users.models import TenantScopedModel


class GuardLifecycleStatus(models.TextChoices):
    POSTULANTE = "postulante", _("Postulante")
    SELECCIONADO = "seleccionado", _("Seleccionado")
    CONTRATADO_ACTIVO = "contratado_activo", _("Contratado activo")
    TURNO_EXTRA = "te", _("Turno extra")
    INACTIVO = "inactivo", _("Inactivo")
    DESVINCULADO = "desvinculado", _("Desvinculado")


DEFAULT_ASSIGNABLE_STATUSES = (
    GuardLifecycleStatus.SELECCIONADO,
    GuardLifecycleStatus.CONTRATADO_ACTIVO,
)

UNPLANNABLE_STATUSES = (
    GuardLifecycleStatus.INACTIVO,
    GuardLifecycleStatus.DESVINCULADO,
)


def assignable_statuses() -> tuple[str, ...]:
    configured = getattr(settings, "OPS_ASSIGNABLE_GUARD_STATUSES", None)
    if not configured:
        return tuple(str(status) for status in DEFAULT_ASSIGNABLE_STATUSES)
    return tuple(str(status) for status in configured)


class Guard(TenantScopedModel):
    code = models.CharField("Código", max_length=32)
    first_name = models.CharField("Nombres", max_length=150)
    last_name = models.CharField("Apellidos", max_length=150)
    rut = models.CharField("RUT", max_length=16, blank=True)
    lifecycle_status = models.CharField(
        "Estado",
        max_length=32,
        choices=GuardLifecycleStatus.choices,
        default=GuardLifecycleStatus.POSTULANTE,
    )
    is_blacklisted = models.BooleanField("En lista negra", default=False)
    current_installation = models.ForeignKey(
        Installation,
        on_delete=models.SET_NULL,
        related_name="current_guards",
        verbose_name="Instalación actual",
        null=True,
        blank=True,
        help_text="Se mantiene automáticamente al asignar o desasignar al guardia.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Guardia"
        verbose_name_plural = "Guardias"
        ordering = ("last_name", "first_name", "id")
        constraints = [
            models.UniqueConstraint(
                fields=("tenant", "code"),
                name="uniq_guard_code_per_tenant",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.code})"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_assignable(self) -> bool:
        return self.lifecycle_status in assignable_statuses() and not self.is_blacklisted

    @property
    def is_plannable(self) -> bool:
        """Whether the guard may be written as planned guard on a calendar cell."""

        return self.lifecycle_status not in UNPLANNABLE_STATUSES and not self.is_blacklisted
