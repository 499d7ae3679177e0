# apps/catalog/admin.py
"""
Django admin configuration for Catalog models.
"""
from django.contrib import admin
from simple_history.admin import SimpleHistoryAdmin

from .models import Category, Brand, Product, ProductVariant


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    """Admin interface for Category."""
    list_display = ['name', 'parent', 'tenant', 'sort_order', 'is_active']
    list_filter = ['tenant', 'is_active']
    search_fields = ['name', 'category_code']
    readonly_fields = ['created_at', 'updated_at']
    raw_id_fields = ['tenant', 'parent']


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'is_active']
    list_filter = ['tenant', 'is_active']
    search_fields = ['name']
    readonly_fields = ['created_at', 'updated_at']


class ProductVariantInline(admin.TabularInline):
    """Variants of a product. Stock counters change only through stock movements."""
    model = ProductVariant
    extra = 0
    fields = ['variant_name', 'sku', 'color', 'size', 'price', 'stock_quantity', 'is_active']
    readonly_fields = ['stock_quantity']


@admin.register(Product)
class ProductAdmin(SimpleHistoryAdmin):
    """Admin interface for Product with history tracking."""
    list_display = [
        'sku', 'name', 'category', 'brand', 'selling_price', 'stock_quantity', 'status',
    ]
    list_filter = ['tenant', 'status', 'is_featured', 'is_digital']
    search_fields = ['sku', 'name', 'barcode']
    readonly_fields = [
        'stock_quantity', 'total_sold', 'total_revenue', 'last_sold_at', 'created_at', 'updated_at',
    ]
    raw_id_fields = ['tenant', 'category', 'brand', 'supplier', 'shop', 'warehouse']

    fieldsets = [
        (None, {
            'fields': ['tenant', 'name', 'sku', 'barcode', 'status', 'short_description', 'description']
        }),
        ('Classification', {
            'fields': ['category', 'brand', 'supplier', 'tags', 'is_featured', 'is_digital']
        }),
        ('Location', {
            'fields': ['shop', 'warehouse']
        }),
        ('Pricing', {
            'fields': ['cost_price', 'selling_price', 'discount_price', 'tax_rate']
        }),
        ('Stock', {
            'fields': ['stock_quantity', 'min_stock_level', 'max_stock_level', 'reorder_point']
        }),
        ('Physical', {
            'fields': [
                'weight', ('dimensions_length', 'dimensions_width', 'dimensions_height'), 'color', 'size',
            ],
            'classes': ['collapse']
        }),
        ('Sales', {
            'fields': ['total_sold', 'total_revenue', 'last_sold_at'],
            'classes': ['collapse']
        }),
        ('Timestamps', {
            'fields': ['created_at', 'updated_at'],
            'classes': ['collapse']
        }),
    ]

    inlines = [ProductVariantInline]


@admin.register(ProductVariant)
class ProductVariantAdmin(SimpleHistoryAdmin):
    list_display = ['sku', 'full_name', 'stock_quantity', 'is_active']
    list_filter = ['is_active']
    search_fields = ['sku', 'variant_name', 'product__name']
    readonly_fields = ['stock_quantity', 'created_at', 'updated_at']
    raw_id_fields = ['tenant', 'product']
