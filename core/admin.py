from django.contrib import admin

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'tenant', 'user', 'action', 'table_name', 'record_id', 'ip_address']
    list_filter = ['action', 'table_name', 'created_at']
    search_fields = ['table_name', 'user__username', 'ip_address']
    readonly_fields = [
        'tenant', 'user', 'action', 'table_name', 'record_id', 'content_type',
        'old_values', 'new_values', 'ip_address', 'user_agent', 'created_at',
    ]
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
