from django.contrib import admin

from .models import Guard


@admin.register(Guard)
class GuardAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "full_name",
        "rut",
        "lifecycle_status",
        "is_blacklisted",
        "current_installation",
        "tenant",
    )
    list_filter = ("tenant", "lifecycle_status", "is_blacklisted")
    search_fields = ("code", "first_name", "last_name", "rut")
    readonly_fields = ("current_installation", "created_at", "updated_at")

    @admin.display(description="Nombre")
    def full_name(self, obj: Guard) -> str:
        return obj.full_name
