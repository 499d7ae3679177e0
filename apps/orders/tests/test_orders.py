# apps/orders/tests/test_orders.py
"""
Tests for OrderService: totals, confirm, ship, deliver, cancel, refund.
"""
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from apps.tenants.models import Tenant
from apps.parties.models import CustomerProfile
from apps.warehousing.models import Warehouse, Shop
from apps.catalog.models import Product, ProductVariant
from apps.inventory.models import InventoryMovement, MovementType, ReferenceType
from apps.orders.models import Order, OrderItem
from apps.orders.services import OrderService
from users.models import User


class OrderServiceTestCase(TestCase):
    """Base test case with shared setup for order tests."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='ORD', company_name='Retail Co')
        cls.staff = User.objects.create_user(username='clerk', password='pass', tenant=cls.tenant)
        cls.customer = User.objects.create_user(
            username='shopper', password='pass', tenant=cls.tenant, role='customer', name='Sam Shopper',
        )
        cls.warehouse = Warehouse.objects.create(tenant=cls.tenant, name='Main', code='MAIN')
        cls.shop = Shop.objects.create(tenant=cls.tenant, name='High Street', code='HS', warehouse=cls.warehouse)

    def setUp(self):
        self.product = Product.objects.create(
            tenant=self.tenant, name='Kettle', sku='KTL-1', stock_quantity=10,
            selling_price=Decimal('40.00'), shop=self.shop,
        )
        self.variant_product = Product.objects.create(
            tenant=self.tenant, name='T-Shirt', sku='TS-1', selling_price=Decimal('15.00'),
        )
        self.variant = ProductVariant.objects.create(
            tenant=self.tenant, product=self.variant_product, variant_name='Large', sku='TS-1-L',
            stock_quantity=5,
        )
        self.profile = CustomerProfile.objects.create(tenant=self.tenant, user=self.customer)
        self.svc = OrderService(self.tenant, self.staff)

    def make_order(self, **fields):
        return self.svc.create_order(
            self.customer, self.shop,
            items=[(self.product, 2), (self.variant_product, 3, self.variant)],
            **fields,
        )


# ── Creation and totals ────────────────────────────────────────────────────────

class CreateOrderTest(OrderServiceTestCase):

    def test_prices_and_totals(self):
        order = self.make_order(shipping_amount=Decimal('5.00'))
        self.assertEqual(order.order_number, 'ORD-000001')
        self.assertEqual(order.subtotal, Decimal('125.00'))
        self.assertEqual(order.total_amount, Decimal('130.00'))
        self.assertEqual(order.total_item_count, 5)
        self.assertEqual(order.unique_item_count, 2)

    def test_line_discount_and_tax(self):
        order = self.make_order()
        item = order.items.get(product=self.product)
        item.apply_discount_percentage(25)
        item.calculate_tax(10)
        item.refresh_from_db()
        self.assertEqual(item.discount_amount, Decimal('10.00'))
        self.assertEqual(item.total_price, Decimal('60.00'))
        self.assertEqual(item.tax_amount, Decimal('6.00'))
        self.assertEqual(item.discount_percentage, 25.0)
        self.assertEqual(item.tax_percentage, 10.0)
        self.assertEqual(item.total_with_tax, Decimal('66.00'))

        order.calculate_totals()
        self.assertEqual(order.subtotal, Decimal('105.00'))
        self.assertEqual(order.discount_amount, Decimal('20.00'))
        self.assertEqual(order.tax_amount, Decimal('6.00'))
        self.assertEqual(order.total_amount, Decimal('111.00'))

    def test_discount_capped_at_unit_price(self):
        order = self.make_order()
        item = order.items.get(product=self.product)
        item.apply_discount(Decimal('99.00'))
        self.assertEqual(item.discount_amount, Decimal('40.00'))
        self.assertEqual(item.total_price, Decimal('0.00'))

    def test_non_positive_quantity_rejected(self):
        order = self.svc.create_order(self.customer, self.shop)
        with self.assertRaises(ValidationError):
            self.svc.add_item(order, self.product, 0)
        with self.assertRaises(ValidationError):
            self.svc.add_item(order, self.product, -1)
        self.assertFalse(OrderItem.objects.exists())

    def test_add_item_only_while_pending(self):
        order = self.make_order()
        order.confirm()
        with self.assertRaises(ValidationError):
            self.svc.add_item(order, self.product, 1)


# ── Transitions ────────────────────────────────────────────────────────────────

class OrderTransitionTest(OrderServiceTestCase):

    def test_confirm_and_process(self):
        order = self.make_order()
        self.assertFalse(self.svc.start_processing(order))
        self.assertTrue(self.svc.confirm(order))
        self.assertIsNotNone(order.confirmed_at)
        self.assertFalse(self.svc.confirm(order))
        self.assertTrue(self.svc.start_processing(order))
        self.assertEqual(order.status, Order.Status.PROCESSING)

    def test_ship_reduces_stock_and_records_sales(self):
        order = self.make_order()
        self.svc.confirm(order)

        self.assertTrue(self.svc.ship(order, tracking_number='TRK-1'))

        self.assertEqual(order.status, Order.Status.SHIPPED)
        self.assertEqual(order.tracking_number, 'TRK-1')
        self.product.refresh_from_db()
        self.variant.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 8)
        self.assertEqual(self.variant.stock_quantity, 2)

        sales = InventoryMovement.objects.for_tenant(self.tenant).sales()
        self.assertEqual(sales.count(), 2)
        for movement in sales:
            self.assertLess(movement.quantity_change, 0)
            self.assertEqual(movement.reference_type, ReferenceType.ORDER)
            self.assertEqual(movement.reference_id, order.pk)
            self.assertEqual(movement.shop, self.shop)
            self.assertEqual(movement.reference_number, order.order_number)

    def test_ship_from_pending_refused(self):
        order = self.make_order()
        self.assertFalse(self.svc.ship(order))
        self.assertFalse(InventoryMovement.objects.exists())

    def test_ship_with_short_stock_clamps(self):
        order = self.svc.create_order(self.customer, self.shop, items=[(self.product, 15)])
        self.svc.confirm(order)
        self.svc.ship(order)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 0)
        movement = InventoryMovement.objects.get()
        self.assertEqual(movement.quantity_change, -10)

    def test_deliver_updates_sales_and_customer(self):
        order = self.make_order()
        self.svc.confirm(order)
        self.svc.ship(order)

        self.assertTrue(self.svc.deliver(order))

        self.assertIsNotNone(order.delivered_at)
        self.product.refresh_from_db()
        self.assertEqual(self.product.total_sold, 2)
        self.assertEqual(self.product.total_revenue, Decimal('80.00'))
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.total_orders, 1)
        self.assertEqual(self.profile.total_spent, Decimal('125.00'))
        self.assertEqual(self.profile.loyalty_points, 12)
        self.assertEqual(self.variant.total_sold, 3)
        self.assertEqual(self.shop.total_sales_value, Decimal('125.00'))

    def test_cancel(self):
        order = self.make_order()
        self.assertTrue(order.cancel('Customer request'))
        self.assertEqual(order.internal_notes, 'Cancelled: Customer request')
        self.assertFalse(self.svc.ship(order))

    def test_refund_returns_stock_and_reverses_stats(self):
        order = self.make_order()
        self.svc.confirm(order)
        self.svc.ship(order)
        self.svc.deliver(order)

        self.assertTrue(self.svc.refund(order))

        self.assertEqual(order.status, Order.Status.REFUNDED)
        self.assertEqual(order.payment_status, 'refunded')
        self.product.refresh_from_db()
        self.variant.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)
        self.assertEqual(self.variant.stock_quantity, 5)
        returns = InventoryMovement.objects.for_tenant(self.tenant).by_type(MovementType.RETURN)
        self.assertEqual(returns.count(), 2)
        self.assertTrue(all(m.quantity_change > 0 for m in returns))
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.total_orders, 0)
        self.assertEqual(self.profile.total_spent, Decimal('0.00'))

    def test_refund_pending_refused(self):
        order = self.make_order()
        self.assertFalse(self.svc.refund(order))

    def test_mark_as_paid(self):
        order = self.make_order()
        order.mark_as_paid('card')
        order.refresh_from_db()
        self.assertTrue(order.is_paid)
        self.assertEqual(order.payment_method, 'card')
        self.assertEqual(order.payment_status_badge_class, 'bg-green-100 text-green-800')
