# apps/warehousing/tests/test_models.py
"""
Tests for Warehouse and Shop models.
"""
from datetime import date, datetime
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from apps.tenants.models import Tenant
from apps.warehousing.models import Warehouse, Shop
from apps.catalog.models import Product
from apps.orders.models import Order
from users.models import User


class WarehousingTestCase(TestCase):
    """Base test case with shared setup for location tests."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='WH', company_name='Warehousing Co')
        cls.other_tenant = Tenant.objects.create(tenant_code='WH2', company_name='Other Co')


# ── Warehouse ──────────────────────────────────────────────────────────────────

class WarehouseModelTest(WarehousingTestCase):

    def test_str_and_code_unique_per_tenant(self):
        warehouse = Warehouse.objects.create(tenant=self.tenant, name='Main Warehouse', code='MAIN')
        self.assertEqual(str(warehouse), 'MAIN - Main Warehouse')
        Warehouse.objects.create(tenant=self.other_tenant, name='Main Warehouse', code='MAIN')
        with self.assertRaises(IntegrityError), transaction.atomic():
            Warehouse.objects.create(tenant=self.tenant, name='Duplicate', code='MAIN')

    def test_single_default_per_tenant(self):
        first = Warehouse.objects.create(tenant=self.tenant, name='First', code='W1', is_default=True)
        second = Warehouse.objects.create(tenant=self.tenant, name='Second', code='W2', is_default=True)
        other = Warehouse.objects.create(tenant=self.other_tenant, name='Other', code='W1', is_default=True)
        first.refresh_from_db()
        other.refresh_from_db()
        self.assertFalse(first.is_default)
        self.assertTrue(second.is_default)
        self.assertTrue(other.is_default)

    def test_utilization_from_product_volume(self):
        warehouse = Warehouse.objects.create(
            tenant=self.tenant, name='Cold', code='COLD', capacity=Decimal('10.00'),
        )
        # 100cm x 50cm x 20cm = 0.1 m3 per unit
        Product.objects.create(
            tenant=self.tenant, name='Freezer box', sku='FB-1', warehouse=warehouse, stock_quantity=20,
            dimensions_length=Decimal('100'), dimensions_width=Decimal('50'), dimensions_height=Decimal('20'),
        )
        warehouse.update_utilization()
        self.assertEqual(warehouse.current_utilization, Decimal('20.00'))
        self.assertEqual(warehouse.available_capacity, Decimal('8.00'))

        big = Product(
            tenant=self.tenant, name='Pallet', sku='PL-1',
            dimensions_length=Decimal('200'), dimensions_width=Decimal('200'), dimensions_height=Decimal('100'),
        )
        self.assertTrue(warehouse.can_store_product(big, 2))
        self.assertFalse(warehouse.can_store_product(big, 3))

    def test_stock_value_and_low_stock(self):
        warehouse = Warehouse.objects.create(tenant=self.tenant, name='Main', code='MAIN')
        low = Product.objects.create(
            tenant=self.tenant, name='Bolt', sku='B-1', warehouse=warehouse,
            stock_quantity=2, min_stock_level=5, cost_price=Decimal('1.50'),
        )
        Product.objects.create(
            tenant=self.tenant, name='Nut', sku='N-1', warehouse=warehouse,
            stock_quantity=100, min_stock_level=5, cost_price=Decimal('0.10'),
        )
        self.assertEqual(warehouse.total_stock_value, Decimal('13.00'))
        self.assertEqual(list(warehouse.low_stock_products()), [low])
        self.assertEqual(warehouse.product_count, 2)

    def test_scopes(self):
        Warehouse.objects.create(tenant=self.tenant, name='Cold', code='C', temperature_controlled=True,
                                 warehouse_type='cold_storage')
        Warehouse.objects.create(tenant=self.tenant, name='Old', code='O', is_active=False)
        qs = Warehouse.objects.for_tenant(self.tenant)
        self.assertEqual(qs.active().count(), 1)
        self.assertEqual(qs.inactive().count(), 1)
        self.assertEqual(qs.temperature_controlled().count(), 1)
        self.assertEqual(qs.by_type('cold_storage').count(), 1)


# ── Shop ───────────────────────────────────────────────────────────────────────

class ShopModelTest(WarehousingTestCase):

    def setUp(self):
        self.warehouse = Warehouse.objects.create(tenant=self.tenant, name='Main', code='MAIN')
        self.shop = Shop.objects.create(
            tenant=self.tenant, name='High Street', code='HS', warehouse=self.warehouse,
        )

    def test_social_media_handles(self):
        self.shop.add_social_media_handle('instagram', '@highstreet')
        self.shop.add_social_media_handle('x', '@hs')
        self.shop.remove_social_media_handle('x')
        self.shop.remove_social_media_handle('tiktok')
        self.shop.refresh_from_db()
        self.assertEqual(self.shop.social_media_handles, {'instagram': '@highstreet'})

    def test_sales_figures_from_delivered_orders(self):
        customer = User.objects.create_user(username='c', password='pass', tenant=self.tenant, role='customer')
        delivered_at = timezone.make_aware(datetime(2026, 5, 10, 12, 0))
        Order.objects.create(
            tenant=self.tenant, customer=customer, shop=self.shop, total_amount=Decimal('80.00'),
            status='delivered', delivered_at=delivered_at,
        )
        Order.objects.create(
            tenant=self.tenant, customer=customer, shop=self.shop, total_amount=Decimal('20.00'),
            status='pending',
        )
        self.assertEqual(self.shop.total_sales_value, Decimal('80.00'))
        self.assertEqual(self.shop.monthly_revenue(date(2026, 5, 1)), Decimal('80.00'))
        self.assertEqual(self.shop.monthly_revenue(date(2026, 6, 1)), Decimal('0.00'))
        self.assertEqual(self.shop.pending_orders().count(), 1)

    def test_top_selling_products(self):
        slow = Product.objects.create(tenant=self.tenant, name='Slow', sku='S-1', shop=self.shop, total_sold=1)
        fast = Product.objects.create(tenant=self.tenant, name='Fast', sku='F-1', shop=self.shop, total_sold=9)
        self.assertEqual(list(self.shop.top_selling_products()), [fast, slow])
        self.assertEqual(self.shop.active_product_count, 2)

    def test_warehouse_supplies_shops(self):
        self.assertEqual(list(self.warehouse.shops.all()), [self.shop])
        self.assertEqual(str(self.shop), 'HS - High Street')
