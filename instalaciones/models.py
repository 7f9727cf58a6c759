from django.db import models
from django.utils.translation import gettext_lazy as _

from users.models import TenantScopedModel


class AccountType(models.TextChoices):
    CLIENT = "client", _("Cliente")
    PROSPECT = "prospect", _("Prospecto")


class Account(TenantScopedModel):
    name = models.CharField("Nombre", max_length=200)
    account_type = models.CharField(
        "Tipo",
        max_length=16,
        choices=AccountType.choices,
        default=AccountType.CLIENT,
    )
    is_active = models.BooleanField("Activa", default=True)

    class Meta:
        verbose_name = "Cuenta"
        verbose_name_plural = "Cuentas"
        ordering = ("name",)

    def __str__(self) -> str:
        return self.name


class Installation(TenantScopedModel):
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="installations",
        verbose_name="Cuenta",
        null=True,
        blank=True,
    )
    name = models.CharField("Nombre", max_length=200)
    address = models.CharField("Dirección", max_length=255, blank=True)
    is_active = models.BooleanField("Activa", default=True)

    class Meta:
        verbose_name = "Instalación"
        verbose_name_plural = "Instalaciones"
        ordering = ("name",)

    def __str__(self) -> str:
        if self.account_id:
            return f"{self.name} ({self.account.name})"
        return self.name
