from __future__ import annotations

from datetime import date

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _

from guardias.models import Guard
from instalaciones.models import Installation
from users.managers import TenantScopedQuerySet
from users.models import TenantScopedModel

from .dates import weekday_matches


MAX_SLOTS_PER_POST = 20


class ShiftCode(models.TextChoices):
    WORK = "T", _("Turno")
    REST = "-", _("Descanso")
    VACATION = "V", _("Vacaciones")
    LEAVE = "L", _("Licencia")
    PERMIT = "P", _("Permiso")


class ShiftLeg(models.TextChoices):
    DAY = "day", _("Día")
    NIGHT = "night", _("Noche")

    @property
    def complement(self) -> "ShiftLeg":
        return ShiftLeg.NIGHT if self == ShiftLeg.DAY else ShiftLeg.DAY


class OperationalPostQuerySet(TenantScopedQuerySet):
    def active_during(self, start: date, end: date) -> "OperationalPostQuerySet":
        return (
            self.filter(is_active=True, active_from__lte=end)
            .filter(Q(active_until__isnull=True) | Q(active_until__gte=start))
        )


class OperationalPost(TenantScopedModel):
    installation = models.ForeignKey(
        Installation,
        on_delete=models.PROTECT,
        related_name="posts",
        verbose_name="Instalación",
    )
    name = models.CharField("Nombre", max_length=200)
    shift_start = models.TimeField("Inicio de turno")
    shift_end = models.TimeField("Fin de turno")
    weekdays = models.JSONField(
        "Días de operación",
        default=list,
        blank=True,
        help_text="Claves de días (monday…sunday o lunes…domingo). Vacío equivale a todos los días.",
    )
    required_guards = models.PositiveSmallIntegerField(
        "Dotación requerida",
        validators=[MinValueValidator(1), MaxValueValidator(MAX_SLOTS_PER_POST)],
        default=1,
    )
    active_from = models.DateField("Activo desde")
    active_until = models.DateField("Activo hasta", null=True, blank=True)
    is_active = models.BooleanField("Activo", default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = OperationalPostQuerySet.as_manager()

    class Meta:
        verbose_name = "Puesto operativo"
        verbose_name_plural = "Puestos operativos"
        ordering = ("installation_id", "name", "id")

    def __str__(self) -> str:
        return self.name

    def clean(self) -> None:
        super().clean()
        if self.active_until and self.active_until < self.active_from:
            raise ValidationError("La fecha de término debe ser igual o posterior a la de inicio.")
        if self.installation_id and self.tenant_id and self.installation.tenant_id != self.tenant_id:
            raise ValidationError("La instalación pertenece a otra empresa.")

    def has_slot(self, slot_number: int) -> bool:
        return 1 <= slot_number <= self.required_guards

    def is_active_on(self, target_date: date) -> bool:
        if not self.is_active:
            return False
        if target_date < self.active_from:
            return False
        if self.active_until and target_date > self.active_until:
            return False
        return True

    def operates_on(self, target_date: date) -> bool:
        if not self.weekdays:
            return True
        return weekday_matches(self.weekdays, target_date)


class ScheduleCell(TenantScopedModel):
    installation = models.ForeignKey(
        Installation,
        on_delete=models.PROTECT,
        related_name="schedule_cells",
        verbose_name="Instalación",
    )
    post = models.ForeignKey(
        OperationalPost,
        on_delete=models.CASCADE,
        related_name="schedule_cells",
        verbose_name="Puesto",
    )
    slot_number = models.PositiveSmallIntegerField(
        "Slot",
        validators=[MinValueValidator(1), MaxValueValidator(MAX_SLOTS_PER_POST)],
    )
    date = models.DateField("Fecha")
    shift_code = models.CharField("Código de turno", max_length=20, blank=True)
    planned_guard = models.ForeignKey(
        Guard,
        on_delete=models.SET_NULL,
        related_name="planned_cells",
        verbose_name="Guardia planificado",
        null=True,
        blank=True,
    )
    status = models.CharField("Estado", max_length=50, default="planificado")
    notes = models.TextField("Notas", blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_schedule_cells",
        verbose_name="Creado por",
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Celda de pauta"
        verbose_name_plural = "Pauta mensual"
        ordering = ("post_id", "slot_number", "date")
        constraints = [
            models.UniqueConstraint(
                fields=("post", "slot_number", "date"),
                name="uniq_schedule_cell_per_slot_day",
            ),
        ]
        indexes = [
            models.Index(
                fields=("tenant", "installation", "date"),
                name="schedcell_tenant_inst_date_idx",
            ),
        ]

    def __str__(self) -> str:
        code = self.shift_code or "·"
        return f"{self.date} · {self.post} #{self.slot_number} [{code}]"

    @property
    def is_work(self) -> bool:
        return self.shift_code == ShiftCode.WORK


class RotationSeries(TenantScopedModel):
    post = models.ForeignKey(
        OperationalPost,
        on_delete=models.CASCADE,
        related_name="series",
        verbose_name="Puesto",
    )
    slot_number = models.PositiveSmallIntegerField(
        "Slot",
        validators=[MinValueValidator(1), MaxValueValidator(MAX_SLOTS_PER_POST)],
    )
    guard = models.ForeignKey(
        Guard,
        on_delete=models.SET_NULL,
        related_name="series",
        verbose_name="Guardia",
        null=True,
        blank=True,
    )
    pattern_code = models.CharField("Patrón", max_length=20)
    work_days = models.PositiveSmallIntegerField(
        "Días de trabajo",
        validators=[MinValueValidator(1), MaxValueValidator(30)],
    )
    rest_days = models.PositiveSmallIntegerField(
        "Días de descanso",
        validators=[MaxValueValidator(30)],
    )
    start_date = models.DateField("Fecha de inicio")
    start_position = models.PositiveSmallIntegerField(
        "Posición inicial",
        validators=[MinValueValidator(1), MaxValueValidator(60)],
        default=1,
    )
    end_date = models.DateField("Fecha de término", null=True, blank=True)
    is_active = models.BooleanField("Activa", default=True)
    is_rotating = models.BooleanField("Rotativa día/noche", default=False)
    counterpart_post = models.ForeignKey(
        OperationalPost,
        on_delete=models.SET_NULL,
        related_name="counterpart_series",
        verbose_name="Puesto par",
        null=True,
        blank=True,
    )
    counterpart_slot_number = models.PositiveSmallIntegerField("Slot par", null=True, blank=True)
    start_shift = models.CharField(
        "Turno inicial",
        max_length=8,
        choices=ShiftLeg.choices,
        blank=True,
    )
    linked_series = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        related_name="+",
        verbose_name="Serie enlazada",
        null=True,
        blank=True,
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_rotation_series",
        verbose_name="Creado por",
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Serie de asignación"
        verbose_name_plural = "Series de asignación"
        ordering = ("post_id", "slot_number", "-created_at")
        constraints = [
            models.UniqueConstraint(
                fields=("post", "slot_number"),
                name="uniq_active_series_per_slot",
                condition=Q(is_active=True),
            ),
        ]

    def __str__(self) -> str:
        return f"{self.pattern_code} · {self.post} #{self.slot_number}"


class GuardAssignmentQuerySet(TenantScopedQuerySet):
    def active(self) -> "GuardAssignmentQuerySet":
        return self.filter(is_active=True)

    def for_slot(self, post_id: int, slot_number: int) -> "GuardAssignmentQuerySet":
        return self.filter(post_id=post_id, slot_number=slot_number)


class GuardAssignment(TenantScopedModel):
    """Historical record of a guard holding a slot; written only by ``AssignmentManager``."""

    guard = models.ForeignKey(
        Guard,
        on_delete=models.PROTECT,
        related_name="assignments",
        verbose_name="Guardia",
    )
    post = models.ForeignKey(
        OperationalPost,
        on_delete=models.PROTECT,
        related_name="assignments",
        verbose_name="Puesto",
    )
    slot_number = models.PositiveSmallIntegerField(
        "Slot",
        validators=[MinValueValidator(1), MaxValueValidator(MAX_SLOTS_PER_POST)],
    )
    installation = models.ForeignKey(
        Installation,
        on_delete=models.PROTECT,
        related_name="assignments",
        verbose_name="Instalación",
    )
    start_date = models.DateField("Fecha de inicio")
    end_date = models.DateField("Fecha de término", null=True, blank=True)
    is_active = models.BooleanField("Activa", default=True)
    reason = models.CharField("Motivo", max_length=500, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_guard_assignments",
        verbose_name="Creado por",
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = GuardAssignmentQuerySet.as_manager()

    class Meta:
        verbose_name = "Asignación de guardia"
        verbose_name_plural = "Asignaciones de guardias"
        ordering = ("-is_active", "-start_date", "-id")
        constraints = [
            models.UniqueConstraint(
                fields=("guard",),
                name="uniq_active_assignment_per_guard",
                condition=Q(is_active=True),
            ),
            models.UniqueConstraint(
                fields=("post", "slot_number"),
                name="uniq_active_assignment_per_slot",
                condition=Q(is_active=True),
            ),
            models.CheckConstraint(
                condition=Q(end_date__isnull=True) | Q(end_date__gte=F("start_date")),
                name="assignment_end_after_start",
            ),
        ]

    def __str__(self) -> str:
        state = "activa" if self.is_active else f"cerrada {self.end_date}"
        return f"{self.guard} → {self.post} #{self.slot_number} ({state})"


class OpsAuditLog(TenantScopedModel):
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="ops_audit_logs",
        verbose_name="Usuario",
        null=True,
        blank=True,
    )
    action = models.CharField("Acción", max_length=64)
    entity = models.CharField("Entidad", max_length=64)
    entity_id = models.CharField("ID entidad", max_length=64, blank=True)
    details = models.JSONField("Detalles", default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Registro de auditoría"
        verbose_name_plural = "Auditoría de operaciones"
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=("tenant", "action"), name="opsaudit_tenant_action_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.action} {self.entity}#{self.entity_id}"
