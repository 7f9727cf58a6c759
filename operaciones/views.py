from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Callable, Optional

from django import forms
from django.http import HttpRequest, JsonResponse, QueryDict
from django.views import View

from opsguardias.mixins import TenantRequiredMixin

from .exceptions import InvalidInput, OpsError
from .forms import (
    AssignGuardForm,
    AssignmentFilterForm,
    CheckActiveAssignmentForm,
    GenerateGridForm,
    MonthGridForm,
    MonthSummaryForm,
    PaintSeriesForm,
    UnassignGuardForm,
    UpsertCellForm,
)
from .models import GuardAssignment, OperationalPost, RotationSeries, ScheduleCell
from .services.assignments import AssignmentManager, run_with_conflict_retry
from .services.cells import InstallationSummary, month_grid, month_summary, upsert_cell
from .services.grid import MonthlyGridGenerator
from .services.painter import SeriesPainter


logger = logging.getLogger(__name__)


def _json_error(
    message: str,
    *,
    status: int = 400,
    kind: str = "validation",
    errors: Optional[dict[str, Any]] = None,
) -> JsonResponse:
    payload: dict[str, Any] = {"success": False, "kind": kind, "error": message}
    if errors:
        payload["errors"] = errors
    return JsonResponse(payload, status=status)


def _json_success(data: Any, *, status: int = 200) -> JsonResponse:
    return JsonResponse({"success": True, "data": data}, status=status)


def _form_errors(form: forms.Form) -> dict[str, list[str]]:
    error_dict: dict[str, list[str]] = {}
    for field, messages_list in form.errors.items():
        error_dict[field] = [str(message) for message in messages_list]
    return error_dict


def _load_json_body(request: HttpRequest) -> tuple[Optional[dict[str, Any]], Optional[JsonResponse]]:
    try:
        payload = json.loads(request.body or "{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None, _json_error("JSON inválido")
    if not isinstance(payload, dict):
        return None, _json_error("El cuerpo debe ser un objeto JSON")
    return payload, None


def _bound_form(form_class: type[forms.Form], data: dict[str, Any] | QueryDict) -> forms.Form:
    form = form_class(data=data)
    if not form.is_valid():
        raise InvalidInput("Datos inválidos.", errors=_form_errors(form))
    return form


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _assignment_payload(assignment: GuardAssignment) -> dict[str, Any]:
    guard = assignment.guard
    post = assignment.post
    installation = assignment.installation
    account = installation.account
    return {
        "id": assignment.pk,
        "slot_number": assignment.slot_number,
        "start_date": _iso(assignment.start_date),
        "end_date": _iso(assignment.end_date),
        "is_active": assignment.is_active,
        "reason": assignment.reason,
        "guard": {
            "id": guard.pk,
            "code": guard.code,
            "full_name": guard.full_name,
            "lifecycle_status": guard.lifecycle_status,
        },
        "post": {
            "id": post.pk,
            "name": post.name,
            "shift_start": post.shift_start.strftime("%H:%M"),
            "shift_end": post.shift_end.strftime("%H:%M"),
        },
        "installation": {
            "id": installation.pk,
            "name": installation.name,
            "account_name": account.name if account else None,
        },
    }


def _cell_payload(cell: ScheduleCell) -> dict[str, Any]:
    return {
        "id": cell.pk,
        "post_id": cell.post_id,
        "slot_number": cell.slot_number,
        "date": _iso(cell.date),
        "shift_code": cell.shift_code,
        "planned_guard_id": cell.planned_guard_id,
        "status": cell.status,
        "notes": cell.notes,
    }


def _series_payload(series: RotationSeries) -> dict[str, Any]:
    return {
        "id": series.pk,
        "post_id": series.post_id,
        "slot_number": series.slot_number,
        "guard_id": series.guard_id,
        "pattern_code": series.pattern_code,
        "work_days": series.work_days,
        "rest_days": series.rest_days,
        "start_date": _iso(series.start_date),
        "start_position": series.start_position,
        "is_rotating": series.is_rotating,
        "start_shift": series.start_shift or None,
        "counterpart_post_id": series.counterpart_post_id,
        "counterpart_slot_number": series.counterpart_slot_number,
        "linked_series_id": series.linked_series_id,
    }


def _post_payload(post: OperationalPost) -> dict[str, Any]:
    return {
        "id": post.pk,
        "name": post.name,
        "shift_start": post.shift_start.strftime("%H:%M"),
        "shift_end": post.shift_end.strftime("%H:%M"),
        "weekdays": post.weekdays,
        "required_guards": post.required_guards,
        "active_from": _iso(post.active_from),
        "active_until": _iso(post.active_until),
        "is_active": post.is_active,
    }


def _summary_payload(summary: InstallationSummary) -> dict[str, Any]:
    return {
        "id": summary.id,
        "name": summary.name,
        "client_id": summary.account_id,
        "client_name": summary.account_name or "Sin cliente",
        "posts": [
            {
                "id": post.id,
                "name": post.name,
                "shift_start": post.shift_start.strftime("%H:%M"),
                "shift_end": post.shift_end.strftime("%H:%M"),
                "is_night": post.is_night,
                "required_guards": post.required_guards,
                "assigned_guards": post.assigned_guards,
            }
            for post in summary.posts
        ],
        "total_posts": summary.total_posts,
        "total_required": summary.total_required,
        "assigned_slots": summary.assigned_slots,
        "vacancies": summary.vacancies,
        "has_grid": summary.has_grid,
        "has_painted": summary.has_painted,
        "uncovered_count": summary.uncovered_count,
        "status": summary.status,
    }

class OpsJsonView(TenantRequiredMixin, View):
    """Base view translating operation errors into JSON responses."""

    http_method_names = ["get", "post"]

    def run(self, operation: Callable[[], JsonResponse]) -> JsonResponse:
        try:
            return operation()
        except OpsError as exc:
            if exc.status_code >= 409:
                logger.info("Operación rechazada (%s): %s", exc.kind, exc.message)
            return _json_error(exc.message, status=exc.status_code, kind=exc.kind, errors=exc.errors)


class AssignmentCollectionView(OpsJsonView):
    def get(self, request: HttpRequest, *args: Any, **kwargs: Any) -> JsonResponse:
        def operation() -> JsonResponse:
            form = _bound_form(AssignmentFilterForm, request.GET)
            manager = AssignmentManager(self.get_caller_context())
            assignments = manager.list_assignments(**form.cleaned_data)
            return _json_success([_assignment_payload(assignment) for assignment in assignments])

        return self.run(operation)

    def post(self, request: HttpRequest, *args: Any, **kwargs: Any) -> JsonResponse:
        payload, error = _load_json_body(request)
        if error:
            return error

        def operation() -> JsonResponse:
            form = _bound_form(AssignGuardForm, payload)
            manager = AssignmentManager(self.get_caller_context())
            result = run_with_conflict_retry(lambda: manager.assign(**form.cleaned_data))
            data = _assignment_payload(result.assignment)
            data["closed_previous_id"] = result.closed_previous.pk if result.closed_previous else None
            data["displaced_id"] = result.displaced.pk if result.displaced else None
            return _json_success(data, status=201)

        return self.run(operation)


class UnassignView(OpsJsonView):
    http_method_names = ["post"]

    def post(self, request: HttpRequest, *args: Any, **kwargs: Any) -> JsonResponse:
        payload, error = _load_json_body(request)
        if error:
            return error

        def operation() -> JsonResponse:
            form = _bound_form(UnassignGuardForm, payload)
            manager = AssignmentManager(self.get_caller_context())
            assignment = run_with_conflict_retry(lambda: manager.unassign(**form.cleaned_data))
            return _json_success(
                {
                    "id": assignment.pk,
                    "guard_id": assignment.guard_id,
                    "end_date": _iso(assignment.end_date),
                    "reason": assignment.reason,
                    "is_active": assignment.is_active,
                }
            )

        return self.run(operation)


class CheckActiveAssignmentView(OpsJsonView):
    http_method_names = ["get"]

    def get(self, request: HttpRequest, *args: Any, **kwargs: Any) -> JsonResponse:
        def operation() -> JsonResponse:
            form = _bound_form(CheckActiveAssignmentForm, request.GET)
            status = AssignmentManager(self.get_caller_context()).check_active(**form.cleaned_data)
            data: dict[str, Any] = {"has_active_assignment": status.has_active_assignment}
            if status.has_active_assignment:
                data["assignment"] = {
                    "id": status.assignment_id,
                    "post_id": status.post_id,
                    "post_name": status.post_name,
                    "installation_id": status.installation_id,
                    "installation_name": status.installation_name,
                    "account_name": status.account_name,
                    "slot_number": status.slot_number,
                    "start_date": _iso(status.start_date),
                }
            return _json_success(data)

        return self.run(operation)


class MonthGridView(OpsJsonView):
    def get(self, request: HttpRequest, *args: Any, **kwargs: Any) -> JsonResponse:
        def operation() -> JsonResponse:
            form = _bound_form(MonthGridForm, request.GET)
            grid = month_grid(self.get_caller_context(), **form.cleaned_data)
            return _json_success(
                {
                    "installation": {"id": grid.installation.pk, "name": grid.installation.name},
                    "month": grid.month,
                    "year": grid.year,
                    "posts": [_post_payload(post) for post in grid.posts],
                    "cells": [_cell_payload(cell) for cell in grid.cells],
                    "series": [_series_payload(series) for series in grid.series],
                    "assignments": [
                        {
                            "id": assignment.pk,
                            "post_id": assignment.post_id,
                            "slot_number": assignment.slot_number,
                            "guard_id": assignment.guard_id,
                            "guard_name": assignment.guard.full_name,
                            "start_date": _iso(assignment.start_date),
                        }
                        for assignment in grid.assignments
                    ],
                }
            )

        return self.run(operation)

    def post(self, request: HttpRequest, *args: Any, **kwargs: Any) -> JsonResponse:
        payload, error = _load_json_body(request)
        if error:
            return error

        def operation() -> JsonResponse:
            form = _bound_form(UpsertCellForm, payload)
            data = form.cleaned_data
            cell = upsert_cell(
                self.get_caller_context(),
                post_id=data["post_id"],
                slot_number=data["slot_number"],
                target_date=data["date"],
                planned_guard_id=data.get("planned_guard_id"),
                shift_code=data.get("shift_code"),
                status=data.get("status"),
                notes=data.get("notes"),
            )
            return _json_success(_cell_payload(cell))

        return self.run(operation)


class PaintSeriesView(OpsJsonView):
    http_method_names = ["post"]

    def post(self, request: HttpRequest, *args: Any, **kwargs: Any) -> JsonResponse:
        payload, error = _load_json_body(request)
        if error:
            return error

        def operation() -> JsonResponse:
            form = _bound_form(PaintSeriesForm, payload)
            result = SeriesPainter(self.get_caller_context()).paint(form.to_request())
            return _json_success(
                {
                    "pattern_code": result.pattern_code,
                    "month": result.month,
                    "year": result.year,
                    "guard_id": result.guard_id,
                    "cells_written": result.written,
                    "slots": [
                        {
                            "post_id": slot.post_id,
                            "slot_number": slot.slot_number,
                            "series_id": slot.series_id,
                            "guard_id": slot.guard_id,
                            "start_shift": slot.leg,
                            "created": slot.created,
                            "updated": slot.updated,
                        }
                        for slot in result.slots
                    ],
                }
            )

        return self.run(operation)


class GenerateGridView(OpsJsonView):
    http_method_names = ["post"]

    def post(self, request: HttpRequest, *args: Any, **kwargs: Any) -> JsonResponse:
        payload, error = _load_json_body(request)
        if error:
            return error

        def operation() -> JsonResponse:
            form = _bound_form(GenerateGridForm, payload)
            result = MonthlyGridGenerator(self.get_caller_context()).generate(**form.cleaned_data)
            return _json_success(
                {
                    "installation_id": result.installation_id,
                    "month": result.month,
                    "year": result.year,
                    "created": result.created,
                    "updated": result.updated,
                    "unchanged": result.unchanged,
                }
            )

        return self.run(operation)


class MonthSummaryView(OpsJsonView):
    http_method_names = ["get"]

    def get(self, request: HttpRequest, *args: Any, **kwargs: Any) -> JsonResponse:
        def operation() -> JsonResponse:
            form = _bound_form(MonthSummaryForm, request.GET)
            summaries = month_summary(self.get_caller_context(), **form.cleaned_data)
            return _json_success(
                {
                    "month": form.cleaned_data["month"],
                    "year": form.cleaned_data["year"],
                    "installations": [_summary_payload(summary) for summary in summaries],
                }
            )

        return self.run(operation)
