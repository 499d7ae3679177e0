from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Role, User, UserSession


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'name', 'email', 'tenant', 'role', 'is_active']
    list_filter = ['role', 'is_active', 'tenant']
    search_fields = ['username', 'name', 'email']
    raw_id_fields = ['tenant', 'warehouse', 'shop']

    fieldsets = BaseUserAdmin.fieldsets + (
        ('Retail', {
            'fields': ('tenant', 'name', 'role', 'warehouse', 'shop', 'permissions', 'phone_number',
                       'address', 'hire_date', 'salary')
        }),
    )


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'display_name', 'is_system_role', 'is_active']
    list_filter = ['is_system_role', 'is_active']
    search_fields = ['name', 'display_name']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(UserSession)
class UserSessionAdmin(admin.ModelAdmin):
    list_display = ['user', 'tenant', 'ip_address', 'login_at', 'logout_at', 'is_active']
    list_filter = ['is_active', 'login_at']
    search_fields = ['user__username', 'ip_address']
    readonly_fields = [
        'tenant', 'user', 'session_token', 'ip_address', 'user_agent',
        'login_at', 'last_activity_at', 'logout_at',
    ]
