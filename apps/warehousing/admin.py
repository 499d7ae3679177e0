# apps/warehousing/admin.py
"""
Django admin configuration for Warehousing models.
"""
from django.contrib import admin
from .models import Warehouse, Shop


class ShopInline(admin.TabularInline):
    """Shops supplied from a warehouse."""
    model = Shop
    extra = 0
    fields = ['code', 'name', 'shop_type', 'is_active']
    show_change_link = True


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    """Admin interface for Warehouse."""
    list_display = [
        'code', 'name', 'tenant', 'warehouse_type', 'utilization_display',
        'is_active', 'is_default'
    ]
    list_filter = ['tenant', 'warehouse_type', 'is_active', 'is_default', 'temperature_controlled']
    search_fields = ['name', 'code', 'city']
    readonly_fields = ['created_at', 'updated_at', 'current_utilization']
    raw_id_fields = ['tenant', 'manager']

    fieldsets = [
        (None, {
            'fields': ['tenant', 'name', 'code', 'warehouse_type', 'manager']
        }),
        ('Address', {
            'fields': ['address', ('city', 'state', 'postal_code'), 'country', ('phone_number', 'email')],
            'classes': ['collapse']
        }),
        ('Capacity', {
            'fields': ['capacity', 'current_utilization', 'temperature_controlled']
        }),
        ('Settings', {
            'fields': ['is_active', 'is_default', 'notes']
        }),
        ('Timestamps', {
            'fields': ['created_at', 'updated_at'],
            'classes': ['collapse']
        }),
    ]

    inlines = [ShopInline]

    def utilization_display(self, obj):
        return f"{obj.utilization_percentage}%"
    utilization_display.short_description = 'Utilization'


@admin.register(Shop)
class ShopAdmin(admin.ModelAdmin):
    """Admin interface for Shop."""
    list_display = ['code', 'name', 'tenant', 'shop_type', 'warehouse', 'online_shop_enabled', 'is_active']
    list_filter = ['tenant', 'shop_type', 'is_active', 'online_shop_enabled', 'delivery_enabled']
    search_fields = ['name', 'code', 'city']
    readonly_fields = ['created_at', 'updated_at']
    raw_id_fields = ['tenant', 'warehouse', 'manager']
