from django.apps import AppConfig


class GuardiasConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "guardias"
    verbose_name = "Guardias"
