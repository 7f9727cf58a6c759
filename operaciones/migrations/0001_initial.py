from __future__ import annotations

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _tenant_field():
    return models.ForeignKey(
        on_delete=django.db.models.deletion.PROTECT,
        related_name="+",
        to="users.tenant",
        verbose_name="Empresa",
    )


def _slot_field(verbose_name="Slot"):
    return models.PositiveSmallIntegerField(
        validators=[
            django.core.validators.MinValueValidator(1),
            django.core.validators.MaxValueValidator(20),
        ],
        verbose_name=verbose_name,
    )


def _created_by_field(related_name):
    return models.ForeignKey(
        blank=True,
        null=True,
        on_delete=django.db.models.deletion.SET_NULL,
        related_name=related_name,
        to=settings.AUTH_USER_MODEL,
        verbose_name="Creado por",
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("guardias", "0001_initial"),
        ("instalaciones", "0001_initial"),
        ("users", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="OperationalPost",
            fields=[
                (
                    "id",
                    models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"),
                ),
                ("name", models.CharField(max_length=200, verbose_name="Nombre")),
                ("shift_start", models.TimeField(verbose_name="Inicio de turno")),
                ("shift_end", models.TimeField(verbose_name="Fin de turno")),
                (
                    "weekdays",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Claves de días (monday…sunday o lunes…domingo). Vacío equivale a todos los días.",
                        verbose_name="Días de operación",
                    ),
                ),
                (
                    "required_guards",
                    models.PositiveSmallIntegerField(
                        default=1,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(20),
                        ],
                        verbose_name="Dotación requerida",
                    ),
                ),
                ("active_from", models.DateField(verbose_name="Activo desde")),
                ("active_until", models.DateField(blank=True, null=True, verbose_name="Activo hasta")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "installation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="posts",
                        to="instalaciones.installation",
                        verbose_name="Instalación",
                    ),
                ),
                ("tenant", _tenant_field()),
            ],
            options={
                "verbose_name": "Puesto operativo",
                "verbose_name_plural": "Puestos operativos",
                "ordering": ("installation_id", "name", "id"),
            },
        ),
        migrations.CreateModel(
            name="ScheduleCell",
            fields=[
                (
                    "id",
                    models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"),
                ),
                ("slot_number", _slot_field()),
                ("date", models.DateField(verbose_name="Fecha")),
                ("shift_code", models.CharField(blank=True, max_length=20, verbose_name="Código de turno")),
                ("status", models.CharField(default="planificado", max_length=50, verbose_name="Estado")),
                ("notes", models.TextField(blank=True, verbose_name="Notas")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", _created_by_field("created_schedule_cells")),
                (
                    "installation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="schedule_cells",
                        to="instalaciones.installation",
                        verbose_name="Instalación",
                    ),
                ),
                (
                    "planned_guard",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="planned_cells",
                        to="guardias.guard",
                        verbose_name="Guardia planificado",
                    ),
                ),
                (
                    "post",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="schedule_cells",
                        to="operaciones.operationalpost",
                        verbose_name="Puesto",
                    ),
                ),
                ("tenant", _tenant_field()),
            ],
            options={
                "verbose_name": "Celda de pauta",
                "verbose_name_plural": "Pauta mensual",
                "ordering": ("post_id", "slot_number", "date"),
                "indexes": [
                    models.Index(
                        fields=["tenant", "installation", "date"],
                        name="schedcell_tenant_inst_date_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("post", "slot_number", "date"),
                        name="uniq_schedule_cell_per_slot_day",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RotationSeries",
            fields=[
                (
                    "id",
                    models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"),
                ),
                ("slot_number", _slot_field()),
                ("pattern_code", models.CharField(max_length=20, verbose_name="Patrón")),
                (
                    "work_days",
                    models.PositiveSmallIntegerField(
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(30),
                        ],
                        verbose_name="Días de trabajo",
                    ),
                ),
                (
                    "rest_days",
                    models.PositiveSmallIntegerField(
                        validators=[django.core.validators.MaxValueValidator(30)],
                        verbose_name="Días de descanso",
                    ),
                ),
                ("start_date", models.DateField(verbose_name="Fecha de inicio")),
                (
                    "start_position",
                    models.PositiveSmallIntegerField(
                        default=1,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(60),
                        ],
                        verbose_name="Posición inicial",
                    ),
                ),
                ("end_date", models.DateField(blank=True, null=True, verbose_name="Fecha de término")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activa")),
                ("is_rotating", models.BooleanField(default=False, verbose_name="Rotativa día/noche")),
                (
                    "counterpart_slot_number",
                    models.PositiveSmallIntegerField(blank=True, null=True, verbose_name="Slot par"),
                ),
                (
                    "start_shift",
                    models.CharField(
                        blank=True,
                        choices=[("day", "Día"), ("night", "Noche")],
                        max_length=8,
                        verbose_name="Turno inicial",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "counterpart_post",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="counterpart_series",
                        to="operaciones.operationalpost",
                        verbose_name="Puesto par",
                    ),
                ),
                ("created_by", _created_by_field("created_rotation_series")),
                (
                    "guard",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="series",
                        to="guardias.guard",
                        verbose_name="Guardia",
                    ),
                ),
                (
                    "linked_series",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="operaciones.rotationseries",
                        verbose_name="Serie enlazada",
                    ),
                ),
                (
                    "post",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="series",
                        to="operaciones.operationalpost",
                        verbose_name="Puesto",
                    ),
                ),
                ("tenant", _tenant_field()),
            ],
            options={
                "verbose_name": "Serie de asignación",
                "verbose_name_plural": "Series de asignación",
                "ordering": ("post_id", "slot_number", "-created_at"),
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True)),
                        fields=("post", "slot_number"),
                        name="uniq_active_series_per_slot",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="GuardAssignment",
            fields=[
                (
                    "id",
                    models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"),
                ),
                ("slot_number", _slot_field()),
                ("start_date", models.DateField(verbose_name="Fecha de inicio")),
                ("end_date", models.DateField(blank=True, null=True, verbose_name="Fecha de término")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activa")),
                ("reason", models.CharField(blank=True, max_length=500, verbose_name="Motivo")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", _created_by_field("created_guard_assignments")),
                (
                    "guard",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assignments",
                        to="guardias.guard",
                        verbose_name="Guardia",
                    ),
                ),
                (
                    "installation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assignments",
                        to="instalaciones.installation",
                        verbose_name="Instalación",
                    ),
                ),
                (
                    "post",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assignments",
                        to="operaciones.operationalpost",
                        verbose_name="Puesto",
                    ),
                ),
                ("tenant", _tenant_field()),
            ],
            options={
                "verbose_name": "Asignación de guardia",
                "verbose_name_plural": "Asignaciones de guardias",
                "ordering": ("-is_active", "-start_date", "-id"),
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True)),
                        fields=("guard",),
                        name="uniq_active_assignment_per_guard",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True)),
                        fields=("post", "slot_number"),
                        name="uniq_active_assignment_per_slot",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("end_date__isnull", True),
                            ("end_date__gte", models.F("start_date")),
                            _connector="OR",
                        ),
                        name="assignment_end_after_start",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OpsAuditLog",
            fields=[
                (
                    "id",
                    models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"),
                ),
                ("action", models.CharField(max_length=64, verbose_name="Acción")),
                ("entity", models.CharField(max_length=64, verbose_name="Entidad")),
                ("entity_id", models.CharField(blank=True, max_length=64, verbose_name="ID entidad")),
                ("details", models.JSONField(blank=True, default=dict, verbose_name="Detalles")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="ops_audit_logs",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Usuario",
                    ),
                ),
                ("tenant", _tenant_field()),
            ],
            options={
                "verbose_name": "Registro de auditoría",
                "verbose_name_plural": "Auditoría de operaciones",
                "ordering": ("-created_at", "-id"),
                "indexes": [
                    models.Index(fields=["tenant", "action"], name="opsaudit_tenant_action_idx"),
                ],
            },
        ),
    ]
