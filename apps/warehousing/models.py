# apps/warehousing/models.py
"""
Stock-holding location models.

Models:
- Warehouse: Physical warehouse locations
- Shop: Retail outlets, optionally supplied from a warehouse
"""
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import DecimalField, ExpressionWrapper, F, Sum
from django.utils import timezone

from shared.managers import TenantQuerySet
from shared.models import TenantMixin, TimestampMixin


def stock_value(products):
    """Sum of stock_quantity * cost_price over a product queryset."""
    value = products.aggregate(
        total=Sum(ExpressionWrapper(
            F('stock_quantity') * F('cost_price'),
            output_field=DecimalField(max_digits=18, decimal_places=2),
        ))
    )['total']
    return value or Decimal('0.00')


class LocationQuerySet(TenantQuerySet):
    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)


class WarehouseQuerySet(LocationQuerySet):
    def by_type(self, warehouse_type):
        return self.filter(warehouse_type=warehouse_type)

    def temperature_controlled(self):
        return self.filter(temperature_controlled=True)


class Warehouse(TenantMixin, TimestampMixin):
    """
    Physical warehouse location.

    Each tenant can have multiple warehouses. Products, purchases and stock
    movements can be attributed to a warehouse.

    Example:
        - Main Warehouse (primary)
        - Cold Storage
        - Overflow Location
    """
    WAREHOUSE_TYPES = [
        ('main', 'Main'),
        ('distribution', 'Distribution'),
        ('cold_storage', 'Cold Storage'),
        ('overflow', 'Overflow'),
    ]

    name = models.CharField(
        max_length=100,
        help_text="Warehouse name (e.g., 'Main Warehouse')"
    )
    code = models.CharField(
        max_length=20,
        help_text="Short code (e.g., 'MAIN', 'COLD')"
    )
    warehouse_type = models.CharField(max_length=20, choices=WAREHOUSE_TYPES, default='main')
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)
    phone_number = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='managed_warehouses'
    )
    capacity = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Storage capacity in cubic metres"
    )
    current_utilization = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Percent of capacity in use"
    )
    temperature_controlled = models.BooleanField(default=False)
    is_active = models.BooleanField(
        default=True,
        help_text="Inactive warehouses are hidden from selections"
    )
    is_default = models.BooleanField(
        default=False,
        help_text="Default warehouse for receiving"
    )
    notes = models.TextField(
        blank=True,
        help_text="Notes about this warehouse"
    )

    objects = WarehouseQuerySet.as_manager()

    class Meta:
        verbose_name_plural = "Warehouses"
        unique_together = [('tenant', 'code')]
        indexes = [
            models.Index(fields=['tenant', 'code']),
            models.Index(fields=['tenant', 'is_active']),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def save(self, *args, **kwargs):
        # Ensure only one default warehouse per tenant
        if self.is_default:
            Warehouse.objects.filter(
                tenant=self.tenant,
                is_default=True
            ).exclude(pk=self.pk).update(is_default=False)
        super().save(*args, **kwargs)

    @property
    def utilization_percentage(self):
        return self.current_utilization or Decimal('0.00')

    @property
    def available_capacity(self):
        if not self.capacity:
            return Decimal('0.00')
        used = self.capacity * self.utilization_percentage / 100
        return self.capacity - used

    def update_utilization(self):
        """Recompute utilization from the volume of in-stock products stored here."""
        if not self.capacity:
            self.current_utilization = Decimal('0.00')
        else:
            volume = sum(
                (p.volume * p.stock_quantity for p in self.products.filter(stock_quantity__gt=0)),
                Decimal('0'),
            )
            self.current_utilization = min(Decimal('100'), volume / self.capacity * 100).quantize(Decimal('0.01'))
        self.save(update_fields=['current_utilization', 'updated_at'])

    def can_store_product(self, product, quantity=1):
        if not self.capacity or not product.has_physical_dimensions:
            return True
        return product.volume * quantity <= self.available_capacity

    @property
    def product_count(self):
        return self.products.count()

    @property
    def total_stock_value(self):
        return stock_value(self.products.all())

    def low_stock_products(self):
        return self.products.filter(status='active', stock_quantity__lte=F('min_stock_level'))


class ShopQuerySet(LocationQuerySet):
    def by_type(self, shop_type):
        return self.filter(shop_type=shop_type)

    def online_enabled(self):
        return self.filter(online_shop_enabled=True)

    def delivery_enabled(self):
        return self.filter(delivery_enabled=True)


class Shop(TenantMixin, TimestampMixin):
    """Retail outlet. Sales orders and shop-level stock are attributed to it."""
    SHOP_TYPES = [
        ('retail', 'Retail'),
        ('outlet', 'Outlet'),
        ('kiosk', 'Kiosk'),
        ('online', 'Online'),
    ]

    name = models.CharField(max_length=100)
    code = models.CharField(max_length=20)
    shop_type = models.CharField(max_length=20, choices=SHOP_TYPES, default='retail')
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='shops',
        help_text="Warehouse that supplies this shop"
    )
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='managed_shops'
    )
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)
    phone_number = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    floor_area = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    rent_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    opening_hours = models.CharField(max_length=255, blank=True)
    website_url = models.URLField(blank=True)
    social_media_handles = models.JSONField(default=dict, blank=True)
    pos_system = models.CharField(max_length=100, blank=True)
    online_shop_enabled = models.BooleanField(default=False)
    delivery_enabled = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    objects = ShopQuerySet.as_manager()

    class Meta:
        unique_together = [('tenant', 'code')]
        indexes = [
            models.Index(fields=['tenant', 'is_active']),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def add_social_media_handle(self, platform, handle):
        self.social_media_handles = {**(self.social_media_handles or {}), platform: handle}
        self.save(update_fields=['social_media_handles', 'updated_at'])

    def remove_social_media_handle(self, platform):
        handles = dict(self.social_media_handles or {})
        handles.pop(platform, None)
        self.social_media_handles = handles
        self.save(update_fields=['social_media_handles', 'updated_at'])

    @property
    def product_count(self):
        return self.products.count()

    @property
    def active_product_count(self):
        return self.products.filter(status='active').count()

    @property
    def total_inventory_value(self):
        return stock_value(self.products.all())

    @property
    def total_sales_value(self):
        total = self.orders.filter(status='delivered').aggregate(total=Sum('total_amount'))['total']
        return total or Decimal('0.00')

    def monthly_revenue(self, month=None):
        """Delivered-order revenue for the month containing ``month`` (defaults to today)."""
        month = month or timezone.localdate()
        total = self.orders.filter(
            status='delivered',
            delivered_at__year=month.year,
            delivered_at__month=month.month,
        ).aggregate(total=Sum('total_amount'))['total']
        return total or Decimal('0.00')

    def top_selling_products(self, limit=10):
        return self.products.order_by('-total_sold')[:limit]

    def pending_orders(self):
        return self.orders.filter(status__in=['pending', 'confirmed', 'processing']).order_by('order_date')
