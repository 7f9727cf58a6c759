from __future__ import annotations

from typing import Any

from django import forms
from django.utils import timezone

from .models import MAX_SLOTS_PER_POST, ShiftLeg
from .services.painter import PaintRequest, RotationRequest
from .services.patterns import (
    MAX_PATTERN_CODE_LENGTH,
    MAX_REST_DAYS,
    MAX_START_POSITION,
    MAX_WORK_DAYS,
    MAX_YEAR,
    MIN_REST_DAYS,
    MIN_START_POSITION,
    MIN_WORK_DAYS,
    MIN_YEAR,
)


DATE_INPUT_FORMATS = ["%Y-%m-%d"]


def _id_field(label: str, *, required: bool = True) -> forms.IntegerField:
    return forms.IntegerField(label=label, min_value=1, required=required)


def _slot_field(label: str = "Slot", *, required: bool = True) -> forms.IntegerField:
    return forms.IntegerField(label=label, min_value=1, max_value=MAX_SLOTS_PER_POST, required=required)


def _date_field(label: str, *, required: bool = True) -> forms.DateField:
    return forms.DateField(label=label, input_formats=DATE_INPUT_FORMATS, required=required)


class MonthPeriodForm(forms.Form):
    month = forms.IntegerField(label="Mes", min_value=1, max_value=12)
    year = forms.IntegerField(label="Año", min_value=MIN_YEAR, max_value=MAX_YEAR)


class AssignGuardForm(forms.Form):
    guard_id = _id_field("Guardia")
    post_id = _id_field("Puesto")
    slot_number = _slot_field()
    start_date = _date_field("Fecha de inicio", required=False)
    end_date_of_previous = _date_field("Término de la asignación anterior", required=False)
    reason = forms.CharField(label="Motivo", max_length=500, required=False)


class UnassignGuardForm(forms.Form):
    assignment_id = _id_field("Asignación")
    end_date = _date_field("Fecha de término", required=False)
    reason = forms.CharField(label="Motivo", max_length=500, required=False)


class CheckActiveAssignmentForm(forms.Form):
    guard_id = _id_field("Guardia")


class AssignmentFilterForm(forms.Form):
    installation_id = _id_field("Instalación", required=False)
    post_id = _id_field("Puesto", required=False)
    guard_id = _id_field("Guardia", required=False)
    active_only = forms.NullBooleanField(label="Solo activas", required=False)

    def clean_active_only(self) -> bool:
        value = self.cleaned_data.get("active_only")
        return True if value is None else value


class PaintSeriesForm(MonthPeriodForm):
    post_id = _id_field("Puesto")
    slot_number = _slot_field()
    pattern_code = forms.CharField(label="Patrón", max_length=MAX_PATTERN_CODE_LENGTH)
    work_days = forms.IntegerField(label="Días de trabajo", min_value=MIN_WORK_DAYS, max_value=MAX_WORK_DAYS)
    rest_days = forms.IntegerField(label="Días de descanso", min_value=MIN_REST_DAYS, max_value=MAX_REST_DAYS)
    start_date = _date_field("Fecha de inicio")
    start_position = forms.IntegerField(
        label="Posición inicial",
        min_value=MIN_START_POSITION,
        max_value=MAX_START_POSITION,
        required=False,
    )
    is_rotating = forms.BooleanField(label="Rotativa día/noche", required=False)
    counterpart_post_id = _id_field("Puesto par", required=False)
    counterpart_slot_number = _slot_field("Slot par", required=False)
    start_shift = forms.ChoiceField(label="Turno inicial", choices=ShiftLeg.choices, required=False)

    error_messages = {
        "counterpart_required": "Las series rotativas requieren puesto y slot par.",
    }

    def clean(self) -> dict[str, Any]:
        cleaned_data = super().clean()
        if not cleaned_data.get("start_position"):
            cleaned_data["start_position"] = 1
        if cleaned_data.get("is_rotating"):
            if not cleaned_data.get("counterpart_post_id") or not cleaned_data.get("counterpart_slot_number"):
                raise forms.ValidationError(self.error_messages["counterpart_required"])
            cleaned_data["start_shift"] = cleaned_data.get("start_shift") or ShiftLeg.DAY.value
        return cleaned_data

    def to_request(self) -> PaintRequest:
        data = self.cleaned_data
        rotation = None
        if data.get("is_rotating"):
            rotation = RotationRequest(
                counterpart_post_id=data["counterpart_post_id"],
                counterpart_slot_number=data["counterpart_slot_number"],
                start_shift=data["start_shift"],
            )
        return PaintRequest(
            post_id=data["post_id"],
            slot_number=data["slot_number"],
            pattern_code=data["pattern_code"],
            work_days=data["work_days"],
            rest_days=data["rest_days"],
            start_date=data["start_date"],
            start_position=data["start_position"],
            month=data["month"],
            year=data["year"],
            rotation=rotation,
        )


class GenerateGridForm(MonthPeriodForm):
    installation_id = _id_field("Instalación")
    overwrite = forms.BooleanField(label="Sobrescribir", required=False)


class MonthGridForm(MonthPeriodForm):
    installation_id = _id_field("Instalación")


class MonthSummaryForm(forms.Form):
    month = forms.IntegerField(label="Mes", min_value=1, max_value=12, required=False)
    year = forms.IntegerField(label="Año", min_value=MIN_YEAR, max_value=MAX_YEAR, required=False)

    def clean(self) -> dict[str, Any]:
        cleaned_data = super().clean()
        today = timezone.localdate()
        if cleaned_data.get("month") is None and "month" not in self.errors:
            cleaned_data["month"] = today.month
        if cleaned_data.get("year") is None and "year" not in self.errors:
            cleaned_data["year"] = today.year
        return cleaned_data


class UpsertCellForm(forms.Form):
    post_id = _id_field("Puesto")
    slot_number = _slot_field()
    date = _date_field("Fecha")
    planned_guard_id = _id_field("Guardia planificado", required=False)
    shift_code = forms.CharField(label="Código de turno", max_length=20, required=False)
    status = forms.CharField(label="Estado", max_length=50, required=False)
    notes = forms.CharField(label="Notas", max_length=2000, required=False)
