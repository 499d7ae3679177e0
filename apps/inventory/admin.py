# apps/inventory/admin.py
"""
Django admin configuration for the inventory ledger.

Movements are append-only, so the admin is read-only.
"""
from django.contrib import admin

from .models import InventoryMovement


@admin.register(InventoryMovement)
class InventoryMovementAdmin(admin.ModelAdmin):
    """Read-only admin interface for InventoryMovement."""
    list_display = [
        'created_at', 'movement_type', 'product', 'variant',
        'quantity_before', 'quantity_change_display', 'quantity_after',
        'reference_display', 'location_name', 'created_by',
    ]
    list_filter = ['movement_type', 'reference_type', 'warehouse', 'shop']
    search_fields = ['product__sku', 'product__name', 'variant__sku', 'reason']
    raw_id_fields = ['product', 'variant', 'warehouse', 'shop', 'created_by']
    date_hierarchy = 'created_at'

    fieldsets = [
        (None, {
            'fields': ['tenant', 'product', 'variant', 'movement_type']
        }),
        ('Quantities', {
            'fields': ['quantity_before', 'quantity_change', 'quantity_after']
        }),
        ('Reference', {
            'fields': ['reference_type', 'reference_id', 'reason']
        }),
        ('Location', {
            'fields': ['warehouse', 'shop']
        }),
        ('Audit', {
            'fields': ['created_by', 'created_at'],
        }),
    ]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def quantity_change_display(self, obj):
        sign = '+' if obj.quantity_change > 0 else ''
        return f"{sign}{obj.quantity_change}"
    quantity_change_display.short_description = 'Change'

    def reference_display(self, obj):
        if not obj.reference_type:
            return '-'
        if obj.reference_id is None:
            return obj.get_reference_type_display()
        return f"{obj.get_reference_type_display()} #{obj.reference_id}"
    reference_display.short_description = 'Reference'
