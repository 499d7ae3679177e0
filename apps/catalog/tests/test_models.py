# apps/catalog/tests/test_models.py
"""
Tests for Category, Brand, Product and ProductVariant models.
"""
from decimal import Decimal

from django.db import IntegrityError, models, transaction
from django.test import TestCase

from apps.tenants.models import Tenant
from apps.catalog.models import Category, Brand, Product, ProductVariant
from apps.inventory.models import InventoryMovement, MovementType


class CatalogTestCase(TestCase):
    """Base test case with shared setup for catalog tests."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='CAT', company_name='Catalog Co')
        cls.other_tenant = Tenant.objects.create(tenant_code='CAT2', company_name='Other Co')


# ── Category ───────────────────────────────────────────────────────────────────

class CategoryTest(CatalogTestCase):

    def setUp(self):
        self.clothing = Category.objects.create(tenant=self.tenant, name='Clothing')
        self.mens = Category.objects.create(tenant=self.tenant, name='Mens', parent=self.clothing)
        self.shirts = Category.objects.create(tenant=self.tenant, name='Shirts', parent=self.mens)

    def test_path_and_depth(self):
        self.assertEqual(str(self.shirts), 'Clothing > Mens > Shirts')
        self.assertEqual(self.shirts.get_path_string(' / '), 'Clothing / Mens / Shirts')
        self.assertEqual(self.shirts.depth, 2)
        self.assertTrue(self.clothing.is_root)
        self.assertFalse(self.shirts.is_root)

    def test_descendants_and_products(self):
        self.assertEqual(self.clothing.all_children(), [self.mens, self.shirts])
        Product.objects.create(tenant=self.tenant, name='Oxford', sku='OX-1', category=self.shirts)
        Product.objects.create(tenant=self.tenant, name='Scarf', sku='SC-1', category=self.clothing)
        self.assertEqual(self.clothing.total_product_count, 2)
        self.assertEqual(self.clothing.product_count, 1)
        self.assertFalse(self.clothing.can_be_deleted())

    def test_hierarchy(self):
        tree = Category.hierarchy(self.tenant)
        self.assertEqual(len(tree), 1)
        self.assertEqual(tree[0]['category'], self.clothing)
        self.assertEqual(tree[0]['children'][0]['category'], self.mens)
        self.assertEqual(tree[0]['children'][0]['children'][0]['category'], self.shirts)
        self.assertEqual(list(Category.root_categories(self.tenant)), [self.clothing])

    def test_leaf_can_be_deleted(self):
        self.assertTrue(self.shirts.can_be_deleted())
        self.shirts.deactivate()
        self.assertEqual(Category.objects.for_tenant(self.tenant).inactive().get(), self.shirts)


# ── Brand ──────────────────────────────────────────────────────────────────────

class BrandTest(CatalogTestCase):

    def test_stats(self):
        brand = Brand.objects.create(tenant=self.tenant, name='Northwind')
        self.assertTrue(brand.can_be_deleted())
        Product.objects.create(
            tenant=self.tenant, name='Tent', sku='T-1', brand=brand,
            stock_quantity=4, cost_price=Decimal('50.00'), total_sold=3, total_revenue=Decimal('300.00'),
        )
        Product.objects.create(
            tenant=self.tenant, name='Stove', sku='S-1', brand=brand,
            stock_quantity=1, cost_price=Decimal('20.00'), total_sold=5, total_revenue=Decimal('150.00'),
        )
        self.assertEqual(brand.total_stock_value, Decimal('220.00'))
        self.assertEqual(brand.total_revenue, Decimal('450.00'))
        self.assertEqual(brand.top_selling_products()[0].sku, 'S-1')
        self.assertFalse(brand.can_be_deleted())
        self.assertEqual(list(Brand.objects.for_tenant(self.tenant).with_products()), [brand])


# ── Product ────────────────────────────────────────────────────────────────────

class ProductTest(CatalogTestCase):

    def make_product(self, **fields):
        fields.setdefault('name', 'Lamp')
        fields.setdefault('sku', 'LMP-1')
        return Product.objects.create(tenant=self.tenant, **fields)

    def test_sku_unique_per_tenant(self):
        self.make_product()
        Product.objects.create(tenant=self.other_tenant, name='Lamp', sku='LMP-1')
        with self.assertRaises(IntegrityError), transaction.atomic():
            self.make_product()

    def test_negative_stock_rejected_by_database(self):
        product = self.make_product()
        with self.assertRaises(IntegrityError), transaction.atomic():
            Product.objects.filter(pk=product.pk).update(stock_quantity=models.Value(-1))

    def test_pricing(self):
        product = self.make_product(
            cost_price=Decimal('40.00'), selling_price=Decimal('80.00'), discount_price=Decimal('60.00'),
        )
        self.assertTrue(product.has_discount)
        self.assertEqual(product.actual_price, Decimal('60.00'))
        self.assertEqual(product.discount_percentage, Decimal('25.00'))
        self.assertEqual(product.discount_amount, Decimal('20.00'))
        self.assertEqual(product.profit, Decimal('20.00'))
        self.assertEqual(product.profit_margin, Decimal('50.00'))

    def test_discount_above_price_ignored(self):
        product = self.make_product(selling_price=Decimal('10.00'), discount_price=Decimal('12.00'))
        self.assertFalse(product.has_discount)
        self.assertEqual(product.actual_price, Decimal('10.00'))

    def test_stock_status(self):
        product = self.make_product(stock_quantity=0, min_stock_level=5, reorder_point=10)
        self.assertEqual(product.stock_status, 'out_of_stock')
        product.stock_quantity = 3
        self.assertEqual(product.stock_status, 'low_stock')
        product.stock_quantity = 8
        self.assertEqual(product.stock_status, 'needs_reorder')
        product.stock_quantity = 50
        self.assertEqual(product.stock_status, 'in_stock')

    def test_stock_changes_leave_movements(self):
        product = self.make_product(stock_quantity=5)
        product.add_stock(10, reason='Delivery')
        product.reduce_stock(3)
        product.update_stock(20, reason='Count')
        product.refresh_from_db()
        self.assertEqual(product.stock_quantity, 20)
        movements = InventoryMovement.objects.for_product(product).order_by('id')
        self.assertEqual(
            [(m.movement_type, m.quantity_before, m.quantity_change, m.quantity_after) for m in movements],
            [
                (MovementType.PURCHASE, 5, 10, 15),
                (MovementType.SALE, 15, -3, 12),
                (MovementType.ADJUSTMENT, 12, 8, 20),
            ],
        )

    def test_tags_and_scopes(self):
        lamp = self.make_product(tags=['lighting'], is_featured=True)
        self.make_product(name='Rug', sku='RUG-1', stock_quantity=3)
        lamp.add_tag('sale')
        lamp.add_tag('sale')
        lamp.remove_tag('lighting')
        self.assertEqual(lamp.tags, ['sale'])

        qs = Product.objects.for_tenant(self.tenant)
        self.assertEqual(list(qs.by_tag('sale')), [lamp])
        self.assertEqual(list(qs.featured()), [lamp])
        self.assertEqual(qs.in_stock().count(), 1)

    def test_status_transitions(self):
        product = self.make_product()
        product.discontinue()
        self.assertEqual(list(Product.objects.discontinued()), [product])
        product.activate()
        self.assertTrue(product.is_active)

    def test_record_sale(self):
        product = self.make_product()
        product.record_sale(2, Decimal('19.98'))
        product.refresh_from_db()
        self.assertEqual(product.total_sold, 2)
        self.assertEqual(product.total_revenue, Decimal('19.98'))
        self.assertIsNotNone(product.last_sold_at)


# ── ProductVariant ─────────────────────────────────────────────────────────────

class ProductVariantTest(CatalogTestCase):

    def setUp(self):
        self.product = Product.objects.create(
            tenant=self.tenant, name='Hoodie', sku='HD-1',
            selling_price=Decimal('50.00'), discount_price=Decimal('40.00'), weight=Decimal('0.60'),
        )

    def test_price_falls_back_to_product(self):
        variant = ProductVariant.objects.create(
            tenant=self.tenant, product=self.product, variant_name='Medium', sku='HD-1-M', size='M',
        )
        self.assertEqual(variant.base_price, Decimal('50.00'))
        self.assertEqual(variant.actual_price, Decimal('40.00'))
        self.assertEqual(variant.effective_weight, Decimal('0.60'))
        self.assertEqual(variant.display_name, 'Medium (M)')
        self.assertEqual(str(variant), 'Hoodie - Medium')

    def test_own_price_gets_product_discount(self):
        variant = ProductVariant.objects.create(
            tenant=self.tenant, product=self.product, variant_name='XXL', sku='HD-1-XXL', price=Decimal('60.00'),
        )
        self.assertEqual(variant.actual_price, Decimal('48.00'))

    def test_variant_stock_is_ledgered(self):
        variant = ProductVariant.objects.create(
            tenant=self.tenant, product=self.product, variant_name='Small', sku='HD-1-S',
        )
        variant.add_stock(6)
        variant.reduce_stock(2)
        variant.refresh_from_db()
        self.assertEqual(variant.stock_quantity, 4)
        self.assertEqual(InventoryMovement.objects.for_variant(variant).count(), 2)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 0)
