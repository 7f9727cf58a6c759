from __future__ import annotations

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("instalaciones", "0001_initial"),
        ("users", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Guard",
            fields=[
                (
                    "id",
                    models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"),
                ),
                ("code", models.CharField(max_length=32, verbose_name="Código")),
                ("first_name", models.CharField(max_length=150, verbose_name="Nombres")),
                ("last_name", models.CharField(max_length=150, verbose_name="Apellidos")),
                ("rut", models.CharField(blank=True, max_length=16, verbose_name="RUT")),
                (
                    "lifecycle_status",
                    models.CharField(
                        choices=[
                            ("postulante", "Postulante"),
                            ("seleccionado", "Seleccionado"),
                            ("contratado_activo", "Contratado activo"),
                            ("te", "Turno extra"),
                            ("inactivo", "Inactivo"),
                            ("desvinculado", "Desvinculado"),
                        ],
                        default="postulante",
                        max_length=32,
                        verbose_name="Estado",
                    ),
                ),
                ("is_blacklisted", models.BooleanField(default=False, verbose_name="En lista negra")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "current_installation",
                    models.ForeignKey(
                        blank=True,
                        help_text="Se mantiene automáticamente al asignar o desasignar al guardia.",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="current_guards",
                        to="instalaciones.installation",
                        verbose_name="Instalación actual",
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="users.tenant",
                        verbose_name="Empresa",
                    ),
                ),
            ],
            options={
                "verbose_name": "Guardia",
                "verbose_name_plural": "Guardias",
                "ordering": ("last_name", "first_name", "id"),
            },
        ),
        migrations.AddConstraint(
            model_name="guard",
            constraint=models.UniqueConstraint(fields=("tenant", "code"), name="uniq_guard_code_per_tenant"),
        ),
    ]
