# apps/inventory/tests/test_services.py
"""
Tests for StockService: add, reduce, update, clamping, reversal.
"""
from django.core.exceptions import ValidationError
from django.test import TestCase

from apps.tenants.models import Tenant
from apps.warehousing.models import Warehouse
from apps.catalog.models import Product, ProductVariant
from apps.inventory.models import InventoryMovement, MovementReference, MovementType, ReferenceType
from apps.inventory.services import StockService, movements_for_reference
from users.models import User


class StockServiceTestCase(TestCase):
    """Base test case with shared setup for stock service tests."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='STK', company_name='Stock Co')
        cls.user = User.objects.create_user(username='stocker', password='pass', tenant=cls.tenant)
        cls.warehouse = Warehouse.objects.create(tenant=cls.tenant, name='Main', code='MAIN')

    def setUp(self):
        self.product = Product.objects.create(
            tenant=self.tenant, name='Mug', sku='MUG-1', stock_quantity=10, warehouse=self.warehouse,
        )
        self.variant = ProductVariant.objects.create(
            tenant=self.tenant, product=self.product, variant_name='Blue', sku='MUG-1-BLU',
            stock_quantity=4,
        )
        self.svc = StockService(self.tenant, self.user)

    def assertLedgerConsistent(self, movement):
        self.assertEqual(movement.quantity_after, movement.quantity_before + movement.quantity_change)


# ── add_stock / reduce_stock ───────────────────────────────────────────────────

class AddReduceStockTest(StockServiceTestCase):

    def test_add_stock_moves_counter_and_writes_movement(self):
        m = self.svc.add_stock(self.product, 5, reference=MovementReference.purchase(1))
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 15)
        self.assertEqual((m.quantity_before, m.quantity_change, m.quantity_after), (10, 5, 15))
        self.assertEqual(m.movement_type, MovementType.PURCHASE)
        self.assertEqual(m.warehouse, self.warehouse)
        self.assertEqual(m.created_by, self.user)
        self.assertLedgerConsistent(m)

    def test_caller_instance_is_updated(self):
        self.svc.add_stock(self.product, 2)
        self.assertEqual(self.product.stock_quantity, 12)

    def test_reduce_stock(self):
        m = self.svc.reduce_stock(self.product, 3, reference=MovementReference.order(9))
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 7)
        self.assertEqual(m.quantity_change, -3)
        self.assertEqual(m.reference_type, ReferenceType.ORDER)

    def test_reduce_stock_clamps_at_zero(self):
        m = self.svc.reduce_stock(self.product, 25)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 0)
        self.assertEqual((m.quantity_before, m.quantity_change, m.quantity_after), (10, -10, 0))

    def test_reduce_empty_stock_writes_nothing(self):
        self.svc.update_stock(self.product, 0)
        count = InventoryMovement.objects.count()
        self.assertIsNone(self.svc.reduce_stock(self.product, 1))
        self.assertEqual(InventoryMovement.objects.count(), count)

    def test_non_positive_quantity_raises(self):
        with self.assertRaises(ValidationError):
            self.svc.add_stock(self.product, 0)
        with self.assertRaises(ValidationError):
            self.svc.reduce_stock(self.product, -2)
        self.assertFalse(InventoryMovement.objects.exists())

    def test_variant_counter_moves_not_product(self):
        m = self.svc.add_stock(self.variant, 6)
        self.variant.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(self.variant.stock_quantity, 10)
        self.assertEqual(self.product.stock_quantity, 10)
        self.assertEqual(m.variant, self.variant)
        self.assertEqual(m.product, self.product)
        self.assertEqual(m.quantity_before, 4)

    def test_model_wrappers_delegate(self):
        self.product.add_stock(4, user=self.user)
        self.product.reduce_stock(1)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 13)
        self.assertEqual(InventoryMovement.objects.for_product(self.product).count(), 2)


# ── update_stock ───────────────────────────────────────────────────────────────

class UpdateStockTest(StockServiceTestCase):

    def test_update_records_adjustment_delta(self):
        m = self.svc.update_stock(self.product, 6, reason='Cycle count')
        self.assertEqual(m.movement_type, MovementType.ADJUSTMENT)
        self.assertEqual((m.quantity_before, m.quantity_change, m.quantity_after), (10, -4, 6))
        self.assertEqual(m.reference, MovementReference.manual_adjustment())
        self.assertEqual(m.reason, 'Cycle count')

    def test_update_to_same_value_writes_nothing(self):
        self.assertIsNone(self.svc.update_stock(self.product, 10))
        self.assertFalse(InventoryMovement.objects.exists())

    def test_update_negative_raises(self):
        with self.assertRaises(ValidationError):
            self.svc.update_stock(self.product, -1)

    def test_adjustment_without_reference_is_manual(self):
        m = self.svc.apply_change(self.product, 2, movement_type=MovementType.ADJUSTMENT)
        self.assertEqual(m.reference_type, ReferenceType.MANUAL_ADJUSTMENT)


# ── Reversal ───────────────────────────────────────────────────────────────────

class ReverseMovementTest(StockServiceTestCase):

    def test_manual_adjustment_reverses(self):
        original = self.svc.update_stock(self.product, 15)
        reversal = original.reverse(reason='Miscounted', user=self.user)

        self.assertEqual(reversal.movement_type, MovementType.ADJUSTMENT)
        self.assertEqual(reversal.quantity_before, original.quantity_after)
        self.assertEqual(reversal.quantity_after, original.quantity_before)
        self.assertEqual(reversal.quantity_change, -original.quantity_change)
        self.assertEqual(reversal.reference, MovementReference.reversal(original.pk))
        self.assertEqual(reversal.reason, 'Miscounted')
        self.assertLedgerConsistent(reversal)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)

    def test_purchase_movement_cannot_be_reversed(self):
        original = self.svc.add_stock(self.product, 5, reference=MovementReference.purchase(3))
        count = InventoryMovement.objects.count()
        self.assertFalse(original.can_be_reversed)
        self.assertIsNone(original.reverse())
        self.assertEqual(InventoryMovement.objects.count(), count)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 15)

    def test_sale_movement_cannot_be_reversed(self):
        original = self.svc.reduce_stock(self.product, 2, reference=MovementReference.order(3))
        self.assertIsNone(original.reverse())

    def test_reversal_happens_once(self):
        original = self.svc.update_stock(self.product, 12)
        self.assertIsNotNone(original.reverse())
        self.assertFalse(original.can_be_reversed)
        self.assertIsNone(original.reverse())
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)

    def test_reversal_refused_after_later_movement(self):
        original = self.svc.update_stock(self.product, 15)
        self.svc.reduce_stock(self.product, 13)
        count = InventoryMovement.objects.count()

        self.assertIsNone(original.reverse())
        self.assertEqual(InventoryMovement.objects.count(), count)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 2)
        self.assertTrue(original.can_be_reversed)

    def test_reversal_row_matches_counter_transition(self):
        original = self.svc.update_stock(self.product, 15)
        reversal = original.reverse()
        self.product.refresh_from_db()
        self.assertEqual(reversal.quantity_before, 15)
        self.assertEqual(reversal.quantity_after, self.product.stock_quantity)

    def test_reversal_is_not_itself_reversible(self):
        original = self.svc.update_stock(self.product, 12)
        reversal = original.reverse()
        self.assertFalse(reversal.can_be_reversed)

    def test_variant_adjustment_reversal(self):
        original = self.svc.update_stock(self.variant, 1)
        original.reverse()
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock_quantity, 4)


class MovementsForReferenceTest(StockServiceTestCase):

    def test_returns_rows_for_reference_oldest_first(self):
        first = self.svc.add_stock(self.product, 1, reference=MovementReference.purchase(77))
        second = self.svc.add_stock(self.variant, 2, reference=MovementReference.purchase(77))
        self.svc.add_stock(self.product, 3, reference=MovementReference.purchase(78))
        rows = list(movements_for_reference(self.tenant, ReferenceType.PURCHASE, 77))
        self.assertEqual(rows, [first, second])
