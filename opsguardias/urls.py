"""
URL configuration for opsguardias project.

The JSON API for assignments and the monthly schedule lives under ``api/ops/``.
"""
from django.contrib import admin
from django.urls import include, path

admin.site.site_header = "Administración de operaciones"
admin.site.site_title = "Administración de operaciones"
admin.site.index_title = "Panel de administración"

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/ops/", include("operaciones.api_urls", namespace="operaciones-api")),
]
