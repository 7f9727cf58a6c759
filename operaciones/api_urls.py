from django.urls import path

from . import views


app_name = "operaciones-api"

urlpatterns = [
    path("asignaciones/", views.AssignmentCollectionView.as_view(), name="assignments"),
    path("asignaciones/desasignar/", views.UnassignView.as_view(), name="unassign"),
    path("asignaciones/check/", views.CheckActiveAssignmentView.as_view(), name="check-active"),
    path("pauta-mensual/", views.MonthGridView.as_view(), name="month-grid"),
    path("pauta-mensual/pintar-serie/", views.PaintSeriesView.as_view(), name="paint-series"),
    path("pauta-mensual/generar/", views.GenerateGridView.as_view(), name="generate-grid"),
    path("pauta-mensual/resumen/", views.MonthSummaryView.as_view(), name="month-summary"),
]
