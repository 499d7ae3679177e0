# apps/orders/admin.py
"""
Django admin configuration for Order models.
"""
from django.contrib import admin
from simple_history.admin import SimpleHistoryAdmin

from .models import Purchase, PurchaseItem, Order, OrderItem


class PurchaseItemInline(admin.TabularInline):
    """Inline editor for PurchaseItem. Received quantities are read-only."""
    model = PurchaseItem
    extra = 1
    fields = ['product', 'variant', 'quantity_ordered', 'quantity_received', 'unit_cost', 'total_cost']
    readonly_fields = ['quantity_received', 'total_cost']
    raw_id_fields = ['product', 'variant']


@admin.register(Purchase)
class PurchaseAdmin(SimpleHistoryAdmin):
    """Admin interface for Purchase with history tracking."""
    list_display = [
        'purchase_number', 'supplier', 'order_date', 'status', 'payment_status',
        'location_name', 'receival_display', 'total_display',
    ]
    list_filter = ['status', 'payment_status', 'order_date']
    search_fields = ['purchase_number', 'supplier__name']
    readonly_fields = ['status', 'actual_delivery_date', 'total_amount', 'created_at', 'updated_at']
    raw_id_fields = ['supplier', 'warehouse', 'shop', 'created_by']
    date_hierarchy = 'order_date'

    fieldsets = [
        (None, {
            'fields': ['purchase_number', 'supplier', 'order_date', 'expected_delivery_date']
        }),
        ('Receiving', {
            'fields': ['warehouse', 'shop', 'status', 'actual_delivery_date']
        }),
        ('Payment', {
            'fields': ['total_amount', 'payment_status', 'payment_terms']
        }),
        ('Notes', {
            'fields': ['notes'],
            'classes': ['collapse']
        }),
        ('Timestamps', {
            'fields': ['created_by', 'created_at', 'updated_at'],
            'classes': ['collapse']
        }),
    ]

    inlines = [PurchaseItemInline]

    def receival_display(self, obj):
        return f"{obj.receival_percentage:.0f}%"
    receival_display.short_description = 'Received'

    def total_display(self, obj):
        return f"${obj.total_amount:,.2f}"
    total_display.short_description = 'Total'


class OrderItemInline(admin.TabularInline):
    """Inline editor for OrderItem."""
    model = OrderItem
    extra = 1
    fields = ['product', 'variant', 'quantity', 'unit_price', 'discount_amount', 'tax_amount', 'total_price']
    readonly_fields = ['total_price']
    raw_id_fields = ['product', 'variant']


@admin.register(Order)
class OrderAdmin(SimpleHistoryAdmin):
    """Admin interface for Order with history tracking."""
    list_display = [
        'order_number', 'customer', 'shop', 'order_date', 'status',
        'payment_status', 'total_display',
    ]
    list_filter = ['status', 'payment_status', 'shop', 'order_date']
    search_fields = ['order_number', 'customer__name', 'customer__username', 'customer__email', 'tracking_number']
    readonly_fields = [
        'subtotal', 'discount_amount', 'tax_amount', 'total_amount',
        'confirmed_at', 'shipped_at', 'delivered_at', 'created_at', 'updated_at',
    ]
    raw_id_fields = ['customer', 'shop', 'warehouse']
    date_hierarchy = 'order_date'

    fieldsets = [
        (None, {
            'fields': ['order_number', 'customer', 'shop', 'warehouse', 'order_date', 'status']
        }),
        ('Amounts', {
            'fields': ['subtotal', 'discount_amount', 'tax_amount', 'shipping_amount', 'total_amount']
        }),
        ('Payment', {
            'fields': ['payment_status', 'payment_method']
        }),
        ('Shipping', {
            'fields': [
                'shipping_address', 'shipping_city', 'shipping_postal_code',
                'shipping_method', 'tracking_number',
            ]
        }),
        ('Notes', {
            'fields': ['customer_notes', 'internal_notes'],
            'classes': ['collapse']
        }),
        ('Timestamps', {
            'fields': ['confirmed_at', 'shipped_at', 'delivered_at', 'created_at', 'updated_at'],
            'classes': ['collapse']
        }),
    ]

    inlines = [OrderItemInline]

    def total_display(self, obj):
        return f"${obj.total_amount:,.2f}"
    total_display.short_description = 'Total'
