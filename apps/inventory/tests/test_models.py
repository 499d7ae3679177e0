# apps/inventory/tests/test_models.py
"""
Tests for InventoryMovement: recorders, immutability, references, scopes, display helpers.
"""
from datetime import timedelta

from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from apps.tenants.models import Tenant
from apps.warehousing.models import Warehouse, Shop
from apps.catalog.models import Product, ProductVariant
from apps.inventory.models import (
    InventoryMovement, MovementReference, MovementType, ReferenceType,
    ImmutableMovementError,
)
from users.models import User


class InventoryModelTestCase(TestCase):
    """Base test case with a tenant, locations and a product."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='INVM', company_name='Ledger Co')
        cls.other_tenant = Tenant.objects.create(tenant_code='OTHER', company_name='Other Co')
        cls.user = User.objects.create_user(username='ledger', password='pass', tenant=cls.tenant)
        cls.warehouse = Warehouse.objects.create(tenant=cls.tenant, name='Main', code='MAIN')
        cls.shop = Shop.objects.create(
            tenant=cls.tenant, name='Downtown', code='DT', warehouse=cls.warehouse,
        )
        cls.product = Product.objects.create(
            tenant=cls.tenant, name='Desk Lamp', sku='LAMP-1', stock_quantity=10,
            warehouse=cls.warehouse,
        )
        cls.variant = ProductVariant.objects.create(
            tenant=cls.tenant, product=cls.product, variant_name='Black', sku='LAMP-1-BLK',
        )


# ── MovementReference ──────────────────────────────────────────────────────────

class MovementReferenceTest(TestCase):

    def test_constructors(self):
        self.assertEqual(MovementReference.order(5).as_fields(), {'reference_type': 'order', 'reference_id': 5})
        self.assertEqual(MovementReference.purchase(7).kind, ReferenceType.PURCHASE)
        self.assertIsNone(MovementReference.manual_adjustment().id)
        self.assertEqual(MovementReference.reversal(3).id, 3)

    def test_order_reference_requires_id(self):
        with self.assertRaises(ValueError):
            MovementReference(ReferenceType.ORDER)

    def test_manual_adjustment_rejects_id(self):
        with self.assertRaises(ValueError):
            MovementReference(ReferenceType.MANUAL_ADJUSTMENT, 4)

    def test_unknown_kind_rejected(self):
        with self.assertRaises(ValueError):
            MovementReference('invoice', 1)

    def test_plain_string_kind_is_normalised(self):
        ref = MovementReference('purchase', 9)
        self.assertEqual(ref, MovementReference.purchase(9))


# ── Recorders ──────────────────────────────────────────────────────────────────

class RecorderTest(InventoryModelTestCase):

    def test_record_purchase(self):
        m = InventoryMovement.record_purchase(
            tenant=self.tenant, product=self.product, quantity=20,
            quantity_before=100, purchase_id=42, user=self.user,
        )
        self.assertEqual(m.movement_type, MovementType.PURCHASE)
        self.assertEqual((m.quantity_before, m.quantity_change, m.quantity_after), (100, 20, 120))
        self.assertEqual(m.reference, MovementReference.purchase(42))
        self.assertEqual(m.reason, 'Purchase received')
        self.assertEqual(m.created_by, self.user)

    def test_record_sale_is_always_negative(self):
        for quantity in (3, -3):
            m = InventoryMovement.record_sale(
                tenant=self.tenant, product=self.product, quantity=quantity,
                quantity_before=10, order_id=1,
            )
            self.assertEqual(m.quantity_change, -3)
            self.assertEqual(m.quantity_after, 7)

    def test_record_return(self):
        m = InventoryMovement.record_return(
            tenant=self.tenant, product=self.product, quantity=2,
            quantity_before=5, order_id=8,
        )
        self.assertEqual(m.movement_type, MovementType.RETURN)
        self.assertEqual(m.quantity_after, 7)
        self.assertEqual(m.reference_type, ReferenceType.ORDER)

    def test_record_adjustment_defaults(self):
        m = InventoryMovement.record_adjustment(
            tenant=self.tenant, product=self.product, quantity_change=5, reason='Found stock',
        )
        self.assertEqual(m.quantity_before, 0)
        self.assertEqual(m.quantity_after, 5)
        self.assertEqual(m.reference, MovementReference.manual_adjustment())

    def test_record_without_reference(self):
        m = InventoryMovement.record(
            tenant=self.tenant, product=self.product, movement_type=MovementType.DAMAGED,
            quantity_before=4, quantity_change=-1,
        )
        self.assertEqual(m.reference_type, '')
        self.assertIsNone(m.reference_id)
        self.assertIsNone(m.reference)


# ── Immutability ───────────────────────────────────────────────────────────────

class ImmutabilityTest(InventoryModelTestCase):

    def setUp(self):
        self.movement = InventoryMovement.record_adjustment(
            tenant=self.tenant, product=self.product, quantity_change=3,
            quantity_before=10, reason='Count',
        )

    def test_save_existing_row_raises(self):
        self.movement.quantity_change = 99
        with self.assertRaises(ImmutableMovementError):
            self.movement.save()
        self.movement.refresh_from_db()
        self.assertEqual(self.movement.quantity_change, 3)

    def test_delete_raises(self):
        with self.assertRaises(ImmutableMovementError):
            self.movement.delete()
        self.assertTrue(InventoryMovement.objects.filter(pk=self.movement.pk).exists())

    def test_queryset_update_and_delete_raise(self):
        qs = InventoryMovement.objects.filter(pk=self.movement.pk)
        with self.assertRaises(ImmutableMovementError):
            qs.update(reason='changed')
        with self.assertRaises(ImmutableMovementError):
            qs.delete()

    def test_after_is_derived_on_create(self):
        m = InventoryMovement(
            tenant=self.tenant, product=self.product, movement_type=MovementType.TRANSFER,
            quantity_before=10, quantity_change=-4, quantity_after=1000,
        )
        m.save()
        self.assertEqual(m.quantity_after, 6)

    def test_check_constraint_rejects_inconsistent_triple(self):
        m = InventoryMovement(
            tenant=self.tenant, product=self.product, movement_type=MovementType.TRANSFER,
            quantity_before=10, quantity_change=-4, quantity_after=1000,
        )
        with self.assertRaises(IntegrityError), transaction.atomic():
            InventoryMovement.objects.bulk_create([m])


# ── Scopes ─────────────────────────────────────────────────────────────────────

class ScopeTest(InventoryModelTestCase):

    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        cls.purchase = InventoryMovement.record_purchase(
            tenant=cls.tenant, product=cls.product, quantity=5, quantity_before=0,
            purchase_id=1, warehouse=cls.warehouse,
        )
        cls.sale = InventoryMovement.record_sale(
            tenant=cls.tenant, product=cls.product, variant=cls.variant, quantity=2,
            quantity_before=5, order_id=1, shop=cls.shop,
        )
        cls.damaged = InventoryMovement.record(
            tenant=cls.tenant, product=cls.product, movement_type=MovementType.DAMAGED,
            quantity_before=3, quantity_change=-1,
        )
        other_product = Product.objects.create(tenant=cls.other_tenant, name='Other', sku='O-1')
        cls.foreign = InventoryMovement.record_adjustment(
            tenant=cls.other_tenant, product=other_product, quantity_change=1, reason='x',
        )

    def test_for_tenant(self):
        ids = set(InventoryMovement.objects.for_tenant(self.tenant).values_list('id', flat=True))
        self.assertEqual(ids, {self.purchase.pk, self.sale.pk, self.damaged.pk})

    def test_inbound_and_outbound_by_sign(self):
        qs = InventoryMovement.objects.for_tenant(self.tenant)
        self.assertEqual(list(qs.inbound()), [self.purchase])
        self.assertEqual(set(qs.outbound()), {self.sale, self.damaged})

    def test_type_scopes(self):
        qs = InventoryMovement.objects.for_tenant(self.tenant)
        self.assertEqual(list(qs.purchases()), [self.purchase])
        self.assertEqual(list(qs.sales()), [self.sale])
        self.assertEqual(list(qs.damaged()), [self.damaged])
        self.assertFalse(qs.returns().exists())
        self.assertFalse(qs.expired().exists())
        self.assertFalse(qs.transfers().exists())

    def test_location_and_variant_scopes(self):
        qs = InventoryMovement.objects.for_tenant(self.tenant)
        self.assertEqual(list(qs.for_warehouse(self.warehouse)), [self.purchase])
        self.assertEqual(list(qs.for_shop(self.shop)), [self.sale])
        self.assertEqual(list(qs.for_variant(self.variant)), [self.sale])
        self.assertEqual(qs.for_product(self.product).count(), 3)

    def test_recent_and_date_range(self):
        qs = InventoryMovement.objects.for_tenant(self.tenant)
        now = timezone.now()
        self.assertEqual(qs.recent(7).count(), 3)
        self.assertEqual(qs.by_date_range(now - timedelta(days=1), now + timedelta(days=1)).count(), 3)
        self.assertEqual(qs.by_date_range(now - timedelta(days=10), now - timedelta(days=5)).count(), 0)

    def test_for_reference(self):
        qs = InventoryMovement.objects.for_tenant(self.tenant)
        self.assertEqual(list(qs.for_reference(MovementReference.purchase(1))), [self.purchase])


# ── Display helpers ────────────────────────────────────────────────────────────

class DisplayTest(InventoryModelTestCase):

    def test_inbound_product_movement(self):
        m = InventoryMovement.record_purchase(
            tenant=self.tenant, product=self.product, quantity=5, quantity_before=0,
            purchase_id=1, warehouse=self.warehouse,
        )
        self.assertEqual(m.direction, 'in')
        self.assertEqual(m.absolute_quantity, 5)
        self.assertEqual(m.display_name, 'Desk Lamp')
        self.assertEqual(m.sku, 'LAMP-1')
        self.assertEqual(m.location_name, 'Main')
        self.assertEqual(m.movement_type_label, 'Purchase')
        self.assertEqual(m.movement_type_icon, 'plus-circle')
        self.assertEqual(m.movement_type_color, 'green')
        self.assertEqual(str(m), 'purchase: LAMP-1 +5')

    def test_outbound_variant_movement(self):
        m = InventoryMovement.record_sale(
            tenant=self.tenant, product=self.product, variant=self.variant, quantity=2,
            quantity_before=5, order_id=1,
        )
        self.assertEqual(m.direction, 'out')
        self.assertEqual(m.absolute_quantity, 2)
        self.assertEqual(m.sku, 'LAMP-1-BLK')
        self.assertEqual(m.location_name, 'No Location')
        self.assertEqual(m.movement_type_color, 'blue')

    def test_reference_number_for_missing_document(self):
        m = InventoryMovement.record_sale(
            tenant=self.tenant, product=self.product, quantity=1, quantity_before=5, order_id=999999,
        )
        self.assertIsNone(m.reference_object)
        self.assertIsNone(m.reference_number)

    def test_reference_number_for_reversal(self):
        m = InventoryMovement.record(
            tenant=self.tenant, product=self.product, movement_type=MovementType.ADJUSTMENT,
            quantity_before=5, quantity_change=-1, reference=MovementReference.reversal(12),
        )
        self.assertEqual(m.reference_number, '#12')
