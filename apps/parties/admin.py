# apps/parties/admin.py
"""
Django admin configuration for supplier and customer models.
"""
from django.contrib import admin
from .models import Supplier, CustomerProfile


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    """Admin interface for Supplier."""
    list_display = ['name', 'tenant', 'contact_person', 'country', 'rating_display', 'credit_limit', 'is_active']
    list_filter = ['tenant', 'is_active', 'country']
    search_fields = ['name', 'contact_person', 'email', 'tax_number']
    readonly_fields = ['created_at', 'updated_at']
    raw_id_fields = ['tenant']

    fieldsets = [
        (None, {
            'fields': ['tenant', 'name', 'is_active']
        }),
        ('Contact', {
            'fields': ['contact_person', ('email', 'phone_number'), 'address', ('city', 'country')]
        }),
        ('Terms', {
            'fields': ['payment_terms', 'credit_limit', 'tax_number', 'rating']
        }),
        ('Timestamps', {
            'fields': ['created_at', 'updated_at'],
            'classes': ['collapse']
        }),
    ]

    def rating_display(self, obj):
        return obj.rating_stars
    rating_display.short_description = 'Rating'


@admin.register(CustomerProfile)
class CustomerProfileAdmin(admin.ModelAdmin):
    """Admin interface for CustomerProfile."""
    list_display = ['user', 'tenant', 'customer_tier', 'total_orders', 'total_spent', 'loyalty_points']
    list_filter = ['tenant', 'customer_tier', 'marketing_consent']
    search_fields = ['user__username', 'user__name', 'user__email', 'phone_number']
    readonly_fields = ['created_at', 'updated_at', 'total_orders', 'total_spent', 'customer_tier']
    raw_id_fields = ['tenant', 'user']
