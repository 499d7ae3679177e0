# apps/orders/tests/test_receiving.py
"""
Tests for PurchaseReceivingService: receive_item, receive_all_items, status rules, ledger writes.
"""
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from apps.tenants.models import Tenant
from apps.parties.models import Supplier
from apps.warehousing.models import Warehouse
from apps.catalog.models import Product, ProductVariant
from apps.inventory.models import InventoryMovement, MovementReference, MovementType
from apps.orders.models import Purchase, PurchaseItem
from apps.orders.services import (
    PurchaseReceivingService, PurchaseService, ReceiveResult, ReceiveStatus,
)
from users.models import User


class ReceivingTestCase(TestCase):
    """Base test case with shared setup for receiving tests."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='RCV', company_name='Receiving Co')
        cls.user = User.objects.create_user(username='receiver', password='pass', tenant=cls.tenant)
        cls.supplier = Supplier.objects.create(tenant=cls.tenant, name='Acme Supply')
        cls.warehouse = Warehouse.objects.create(tenant=cls.tenant, name='Main', code='MAIN')

    def setUp(self):
        self.product = Product.objects.create(
            tenant=self.tenant, name='Notebook', sku='NB-1', stock_quantity=100,
            cost_price=Decimal('5.00'), selling_price=Decimal('9.00'),
        )
        self.other_product = Product.objects.create(
            tenant=self.tenant, name='Pen', sku='PEN-1', stock_quantity=0,
        )
        self.purchases = PurchaseService(self.tenant, self.user)
        self.svc = PurchaseReceivingService(self.tenant, self.user)

    def make_purchase(self, *lines, confirm=True):
        purchase = self.purchases.create_purchase(
            supplier=self.supplier, warehouse=self.warehouse, items=lines,
        )
        if confirm:
            self.purchases.confirm(purchase)
        return purchase

    def assertReceivedWithinOrdered(self, purchase):
        for item in PurchaseItem.objects.for_purchase(purchase):
            self.assertGreaterEqual(item.quantity_received, 0)
            self.assertLessEqual(item.quantity_received, item.quantity_ordered)


# ── receive_item ───────────────────────────────────────────────────────────────

class ReceiveItemTest(ReceivingTestCase):

    def test_full_receipt_scenario(self):
        purchase = self.make_purchase((self.product, 20, Decimal('5.00')))
        item = purchase.items.get()

        result = self.svc.receive_item(purchase, item.pk, 20)

        self.assertTrue(result)
        self.assertEqual(result.status, ReceiveStatus.RECEIVED)
        self.assertEqual(result.quantity_received, 20)

        item.refresh_from_db()
        self.assertEqual(item.quantity_received, 20)

        movement = result.movement
        self.assertEqual(movement.movement_type, MovementType.PURCHASE)
        self.assertEqual(
            (movement.quantity_before, movement.quantity_change, movement.quantity_after),
            (100, 20, 120),
        )
        self.assertEqual(movement.reference, MovementReference.purchase(purchase.pk))
        self.assertEqual(movement.warehouse, self.warehouse)
        self.assertEqual(movement.created_by, self.user)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 120)

        purchase.refresh_from_db()
        self.assertEqual(purchase.status, Purchase.Status.COMPLETED)
        self.assertEqual(purchase.actual_delivery_date, timezone.localdate())

    def test_request_is_capped_at_outstanding(self):
        purchase = self.make_purchase((self.product, 10, Decimal('1.00')))
        item = purchase.items.get()
        self.svc.receive_item(purchase, item.pk, 8)

        result = self.svc.receive_item(purchase, item.pk, 100)

        self.assertEqual(result.quantity_received, 2)
        item.refresh_from_db()
        self.assertEqual(item.quantity_received, 10)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 110)
        self.assertReceivedWithinOrdered(purchase)

    def test_caller_instance_status_is_updated(self):
        purchase = self.make_purchase((self.product, 10, Decimal('1.00')))
        self.svc.receive_item(purchase, purchase.items.get().pk, 4)
        self.assertEqual(purchase.status, Purchase.Status.PARTIALLY_RECEIVED)

    def test_variant_line_moves_variant_counter(self):
        variant = ProductVariant.objects.create(
            tenant=self.tenant, product=self.product, variant_name='A5', sku='NB-1-A5', stock_quantity=3,
        )
        purchase = self.make_purchase((self.product, 5, Decimal('2.00'), variant))
        result = self.svc.receive_item(purchase, purchase.items.get().pk, 5)

        variant.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(variant.stock_quantity, 8)
        self.assertEqual(self.product.stock_quantity, 100)
        self.assertEqual(result.movement.variant, variant)

    def test_model_method_delegates(self):
        purchase = self.make_purchase((self.product, 3, Decimal('1.00')))
        result = purchase.receive_item(purchase.items.get().pk, 3, user=self.user)
        self.assertTrue(result)
        self.assertEqual(purchase.status, Purchase.Status.COMPLETED)


# ── Refusals ───────────────────────────────────────────────────────────────────

class ReceiveRefusalTest(ReceivingTestCase):

    def assertNothingWritten(self, result, status):
        self.assertFalse(result)
        self.assertEqual(result.status, status)
        self.assertEqual(result.quantity_received, 0)
        self.assertIsNone(result.movement)
        self.assertFalse(InventoryMovement.objects.exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 100)

    def test_unconfirmed_purchase(self):
        purchase = self.make_purchase((self.product, 5, Decimal('1.00')), confirm=False)
        result = self.svc.receive_item(purchase, purchase.items.get().pk, 5)
        self.assertNothingWritten(result, ReceiveStatus.INVALID_STATUS)

    def test_cancelled_purchase(self):
        purchase = self.make_purchase((self.product, 5, Decimal('1.00')))
        self.purchases.cancel(purchase, 'Supplier out of stock')
        result = self.svc.receive_item(purchase, purchase.items.get().pk, 5)
        self.assertNothingWritten(result, ReceiveStatus.INVALID_STATUS)

    def test_item_from_another_purchase(self):
        purchase = self.make_purchase((self.product, 5, Decimal('1.00')))
        other = self.make_purchase((self.product, 5, Decimal('1.00')))
        result = self.svc.receive_item(purchase, other.items.get().pk, 5)
        self.assertNothingWritten(result, ReceiveStatus.ITEM_NOT_FOUND)

    def test_missing_item(self):
        purchase = self.make_purchase((self.product, 5, Decimal('1.00')))
        result = self.svc.receive_item(purchase, 999999, 5)
        self.assertNothingWritten(result, ReceiveStatus.ITEM_NOT_FOUND)

    def test_zero_and_negative_quantity(self):
        purchase = self.make_purchase((self.product, 5, Decimal('1.00')))
        item_id = purchase.items.get().pk
        self.assertNothingWritten(self.svc.receive_item(purchase, item_id, 0), ReceiveStatus.INVALID_QUANTITY)
        self.assertNothingWritten(self.svc.receive_item(purchase, item_id, -3), ReceiveStatus.INVALID_QUANTITY)
        purchase.refresh_from_db()
        self.assertEqual(purchase.status, Purchase.Status.CONFIRMED)

    def test_fully_received_line_in_partial_purchase(self):
        purchase = self.make_purchase(
            (self.product, 2, Decimal('1.00')),
            (self.other_product, 2, Decimal('1.00')),
        )
        first = purchase.items.get(product=self.product)
        self.svc.receive_item(purchase, first.pk, 2)
        count = InventoryMovement.objects.count()

        result = self.svc.receive_item(purchase, first.pk, 1)

        self.assertFalse(result)
        self.assertEqual(result.status, ReceiveStatus.ALREADY_FULLY_RECEIVED)
        self.assertEqual(InventoryMovement.objects.count(), count)

    def test_result_truthiness(self):
        self.assertTrue(ReceiveResult(ReceiveStatus.RECEIVED, quantity_received=1))
        self.assertFalse(ReceiveResult(ReceiveStatus.INVALID_QUANTITY))


# ── Status rule ────────────────────────────────────────────────────────────────

class StatusRuleTest(ReceivingTestCase):

    def test_two_line_purchase(self):
        purchase = self.make_purchase(
            (self.product, 10, Decimal('1.00')),
            (self.other_product, 5, Decimal('1.00')),
        )
        first = purchase.items.get(product=self.product)
        second = purchase.items.get(product=self.other_product)

        self.svc.receive_item(purchase, first.pk, 10)
        purchase.refresh_from_db()
        self.assertEqual(purchase.status, Purchase.Status.PARTIALLY_RECEIVED)
        self.assertIsNone(purchase.actual_delivery_date)

        self.svc.receive_item(purchase, second.pk, 5)
        purchase.refresh_from_db()
        self.assertEqual(purchase.status, Purchase.Status.COMPLETED)
        self.assertEqual(purchase.actual_delivery_date, timezone.localdate())

    def test_nothing_received_keeps_confirmed(self):
        purchase = self.make_purchase((self.product, 10, Decimal('1.00')))
        self.assertEqual(purchase.update_status(), Purchase.Status.CONFIRMED)

    def test_nothing_received_reverts_partial_to_confirmed(self):
        purchase = self.make_purchase((self.product, 10, Decimal('1.00')))
        Purchase.objects.filter(pk=purchase.pk).update(status=Purchase.Status.PARTIALLY_RECEIVED)
        purchase.refresh_from_db()
        self.assertEqual(purchase.update_status(), Purchase.Status.CONFIRMED)

    def test_completed_purchase_refuses_further_receipts(self):
        purchase = self.make_purchase((self.product, 1, Decimal('1.00')))
        item_id = purchase.items.get().pk
        self.svc.receive_item(purchase, item_id, 1)
        result = self.svc.receive_item(purchase, item_id, 1)
        self.assertEqual(result.status, ReceiveStatus.INVALID_STATUS)


# ── receive_all_items ──────────────────────────────────────────────────────────

class ReceiveAllItemsTest(ReceivingTestCase):

    def test_receives_outstanding_remainder_of_each_line(self):
        purchase = self.make_purchase(
            (self.product, 10, Decimal('1.00')),
            (self.other_product, 5, Decimal('1.00')),
        )
        first = purchase.items.get(product=self.product)
        self.svc.receive_item(purchase, first.pk, 4)

        results = self.svc.receive_all_items(purchase)

        self.assertEqual([r.quantity_received for r in results], [6, 5])
        self.assertTrue(all(results))
        purchase.refresh_from_db()
        self.assertEqual(purchase.status, Purchase.Status.COMPLETED)
        self.product.refresh_from_db()
        self.other_product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 110)
        self.assertEqual(self.other_product.stock_quantity, 5)
        self.assertReceivedWithinOrdered(purchase)

    def test_second_call_is_noop(self):
        purchase = self.make_purchase(
            (self.product, 10, Decimal('1.00')),
            (self.other_product, 5, Decimal('1.00')),
        )
        self.svc.receive_all_items(purchase)
        movements = InventoryMovement.objects.count()
        self.product.refresh_from_db()
        stock = self.product.stock_quantity
        purchase.refresh_from_db()
        status = purchase.status

        self.assertEqual(self.svc.receive_all_items(purchase), [])

        self.assertEqual(InventoryMovement.objects.count(), movements)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, stock)
        purchase.refresh_from_db()
        self.assertEqual(purchase.status, status)

    def test_unconfirmed_purchase_returns_empty(self):
        purchase = self.make_purchase((self.product, 10, Decimal('1.00')), confirm=False)
        self.assertEqual(self.svc.receive_all_items(purchase), [])
        self.assertFalse(InventoryMovement.objects.exists())

    def test_movements_reference_purchase(self):
        purchase = self.make_purchase(
            (self.product, 10, Decimal('1.00')),
            (self.other_product, 5, Decimal('1.00')),
        )
        purchase.receive_all_items()
        movements = list(purchase.movements())
        self.assertEqual(len(movements), 2)
        for movement in movements:
            self.assertEqual(movement.reference_object, purchase)
            self.assertEqual(movement.reference_number, purchase.purchase_number)
            self.assertEqual(movement.quantity_after, movement.quantity_before + movement.quantity_change)


# ── Constraints ────────────────────────────────────────────────────────────────

class ReceivedQuantityConstraintTest(ReceivingTestCase):

    def test_database_rejects_over_receipt(self):
        purchase = self.make_purchase((self.product, 5, Decimal('1.00')))
        with self.assertRaises(IntegrityError), transaction.atomic():
            PurchaseItem.objects.filter(purchase=purchase).update(quantity_received=6)
