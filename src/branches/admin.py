"""Django admin configuration for the branches app."""
from django.contrib import admin

from branches.models import AuditLog, Branch


@admin.register(Branch)
class BranchAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "city", "incentive_scope", "is_active", "created_at")
    list_filter = ("is_active", "incentive_scope")
    search_fields = ("name", "code", "city")
    readonly_fields = ("id", "created_at", "updated_at")
    list_per_page = 50


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "entity_type", "entity_id", "actor", "branch")
    list_filter = ("action", "entity_type")
    search_fields = ("entity_id", "actor__email")
    readonly_fields = [f.name for f in AuditLog._meta.fields]
    list_select_related = ("actor", "branch")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
