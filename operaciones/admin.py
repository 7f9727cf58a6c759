from django import forms
from django.contrib import admin

from .dates import WEEKDAY_KEYS
from .models import GuardAssignment, OperationalPost, OpsAuditLog, RotationSeries, ScheduleCell


WEEKDAY_LABELS = {
    "monday": "Lunes",
    "tuesday": "Martes",
    "wednesday": "Miércoles",
    "thursday": "Jueves",
    "friday": "Viernes",
    "saturday": "Sábado",
    "sunday": "Domingo",
}


class OperationalPostAdminForm(forms.ModelForm):
    weekdays = forms.MultipleChoiceField(
        label="Días de operación",
        choices=[(key, WEEKDAY_LABELS[key]) for key in WEEKDAY_KEYS],
        required=False,
        widget=forms.CheckboxSelectMultiple,
        help_text="Sin selección equivale a todos los días.",
    )

    class Meta:
        model = OperationalPost
        fields = "__all__"


@admin.register(OperationalPost)
class OperationalPostAdmin(admin.ModelAdmin):
    form = OperationalPostAdminForm
    list_display = (
        "name",
        "installation",
        "shift_start",
        "shift_end",
        "required_guards",
        "active_from",
        "active_until",
        "is_active",
    )
    list_filter = ("tenant", "is_active", "installation")
    search_fields = ("name", "installation__name")
    autocomplete_fields = ("installation",)


@admin.register(ScheduleCell)
class ScheduleCellAdmin(admin.ModelAdmin):
    list_display = ("date", "post", "slot_number", "shift_code", "planned_guard", "status")
    list_filter = ("tenant", "installation", "shift_code", "status")
    search_fields = ("post__name", "planned_guard__first_name", "planned_guard__last_name")
    date_hierarchy = "date"
    raw_id_fields = ("post", "planned_guard", "created_by")


@admin.register(RotationSeries)
class RotationSeriesAdmin(admin.ModelAdmin):
    list_display = (
        "pattern_code",
        "post",
        "slot_number",
        "guard",
        "start_date",
        "start_position",
        "is_rotating",
        "start_shift",
        "is_active",
    )
    list_filter = ("tenant", "is_active", "is_rotating")
    search_fields = ("pattern_code", "post__name")
    readonly_fields = ("linked_series", "created_by", "created_at")


@admin.register(GuardAssignment)
class GuardAssignmentAdmin(admin.ModelAdmin):
    list_display = ("guard", "post", "slot_number", "installation", "start_date", "end_date", "is_active")
    list_filter = ("tenant", "is_active", "installation")
    search_fields = ("guard__first_name", "guard__last_name", "guard__code", "post__name")
    date_hierarchy = "start_date"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(OpsAuditLog)
class OpsAuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "entity", "entity_id", "actor", "tenant")
    list_filter = ("tenant", "action")
    search_fields = ("entity", "entity_id")
    readonly_fields = ("tenant", "actor", "action", "entity", "entity_id", "details", "created_at")

    def has_add_permission(self, request):
        return False
