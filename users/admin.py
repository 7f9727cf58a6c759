from __future__ import annotations

from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin
from django.utils.translation import gettext_lazy as _

from .forms import UserChangeForm, UserCreationForm
from .models import Tenant, UserProfile


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


@admin.action(description="Activar usuarios seleccionados")
def activar_usuarios(modeladmin, request, queryset):
    actualizados = queryset.update(is_active=True)
    messages.success(request, f"{actualizados} usuarios activados.")


@admin.action(description="Desactivar usuarios seleccionados")
def desactivar_usuarios(modeladmin, request, queryset):
    actualizados = queryset.update(is_active=False)
    messages.success(request, f"{actualizados} usuarios desactivados.")


@admin.register(UserProfile)
class UserProfileAdmin(UserAdmin):
    add_form = UserCreationForm
    form = UserChangeForm
    model = UserProfile

    list_display = ("cedula", "nombre_completo", "email", "tenant", "is_staff", "is_active")
    list_filter = ("tenant", "is_active", "is_staff")
    search_fields = ("cedula", "nombres", "apellidos", "email")
    ordering = ("apellidos", "nombres")

    fieldsets = (
        (_("Credenciales"), {"fields": ("cedula", "password")}),
        (_("Informacion personal"), {"fields": ("nombres", "apellidos", "email", "tenant")}),
        (
            _("Roles y permisos"),
            {"fields": ("groups", "is_active", "is_staff", "is_superuser")},
        ),
        (_("Fechas"), {"fields": ("last_login", "date_joined")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": (
                    "cedula",
                    "nombres",
                    "apellidos",
                    "email",
                    "tenant",
                    "groups",
                    "is_active",
                    "is_staff",
                    "password1",
                    "password2",
                ),
            },
        ),
    )

    filter_horizontal = ("groups", "user_permissions")
    readonly_fields = ("last_login", "date_joined")

    actions = (activar_usuarios, desactivar_usuarios)
