from django.contrib import admin

from .models import Account, Installation


class InstallationInline(admin.TabularInline):
    model = Installation
    extra = 0
    fields = ("name", "address", "is_active")


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ("name", "account_type", "tenant", "is_active")
    list_filter = ("tenant", "account_type", "is_active")
    search_fields = ("name",)
    inlines = (InstallationInline,)

    def save_formset(self, request, form, formset, change):
        instances = formset.save(commit=False)
        for instance in instances:
            instance.tenant_id = form.instance.tenant_id
            instance.save()
        for obj in formset.deleted_objects:
            obj.delete()
        formset.save_m2m()


@admin.register(Installation)
class InstallationAdmin(admin.ModelAdmin):
    list_display = ("name", "account", "tenant", "is_active")
    list_filter = ("tenant", "is_active")
    search_fields = ("name", "account__name", "address")
    autocomplete_fields = ("account",)
