from django.contrib import admin

from apps.audit.models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("code", "action", "entity_type", "entity_id", "actor_email", "created_at")
    list_filter = ("action", "entity_type")
    search_fields = ("code", "entity_id", "actor_email")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
