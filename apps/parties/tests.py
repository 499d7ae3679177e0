# apps/parties/tests.py
"""
Tests for Supplier and CustomerProfile models.
"""
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import TestCase

from apps.tenants.models import Tenant
from apps.parties.models import Supplier, CustomerProfile
from apps.catalog.models import Product
from users.models import User


class SupplierModelTestCase(TestCase):
    """Tests for the Supplier model."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='SUPP', company_name='Supplier Co')
        cls.other_tenant = Tenant.objects.create(tenant_code='SUPP2', company_name='Other Co')

    # ── Creation ─────────────────────────────────────────────────────────

    def test_create_supplier(self):
        supplier = Supplier.objects.create(tenant=self.tenant, name='Acme Wholesale', country='US')
        self.assertEqual(str(supplier), 'Acme Wholesale')
        self.assertTrue(supplier.is_active)
        self.assertIsNone(supplier.available_credit)
        self.assertTrue(supplier.is_within_credit_limit(Decimal('1000000')))

    def test_name_unique_per_tenant(self):
        Supplier.objects.create(tenant=self.tenant, name='Twice')
        Supplier.objects.create(tenant=self.other_tenant, name='Twice')
        with self.assertRaises(IntegrityError), transaction.atomic():
            Supplier.objects.create(tenant=self.tenant, name='Twice')

    # ── Rating ───────────────────────────────────────────────────────────

    def test_update_rating_is_clamped(self):
        supplier = Supplier.objects.create(tenant=self.tenant, name='Rated')
        supplier.update_rating(7)
        self.assertEqual(supplier.rating, Decimal('5'))
        supplier.update_rating('-1')
        self.assertEqual(supplier.rating, Decimal('0'))

    def test_rating_stars(self):
        supplier = Supplier(tenant=self.tenant, name='Stars', rating=Decimal('3.5'))
        self.assertEqual(supplier.rating_stars, '★★★☆☆')
        supplier.rating = None
        self.assertEqual(supplier.rating_stars, '☆☆☆☆☆')

    # ── Scopes and lifecycle ─────────────────────────────────────────────

    def test_scopes(self):
        good = Supplier.objects.create(tenant=self.tenant, name='Good', rating=Decimal('4.5'), country='DE')
        Supplier.objects.create(tenant=self.tenant, name='Average', rating=Decimal('3.0'))
        Supplier.objects.create(tenant=self.other_tenant, name='Elsewhere', rating=Decimal('5.0'))
        Product.objects.create(tenant=self.tenant, name='Widget', sku='W-1', supplier=good)

        qs = Supplier.objects.for_tenant(self.tenant)
        self.assertEqual(list(qs.high_rated()), [good])
        self.assertEqual(list(qs.with_products()), [good])
        self.assertEqual(list(qs.by_country('DE')), [good])

    def test_deactivate_and_delete_guard(self):
        supplier = Supplier.objects.create(tenant=self.tenant, name='Temp')
        self.assertTrue(supplier.can_be_deleted())
        supplier.deactivate()
        self.assertEqual(list(Supplier.objects.for_tenant(self.tenant).inactive()), [supplier])
        Product.objects.create(tenant=self.tenant, name='Gizmo', sku='G-1', supplier=supplier)
        self.assertFalse(supplier.can_be_deleted())
        self.assertEqual(supplier.product_count, 1)


class CustomerProfileTestCase(TestCase):
    """Tests for CustomerProfile loyalty and statistics."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='CUST', company_name='Customer Co')
        cls.user = User.objects.create_user(
            username='shopper', password='pass', tenant=cls.tenant, role='customer',
        )

    def setUp(self):
        self.profile = CustomerProfile.objects.create(
            tenant=self.tenant, user=self.user, city='Leeds', country='UK',
        )

    def test_tier_thresholds(self):
        self.assertEqual(CustomerProfile.tier_for(Decimal('499.99')), 'bronze')
        self.assertEqual(CustomerProfile.tier_for(Decimal('500')), 'silver')
        self.assertEqual(CustomerProfile.tier_for(Decimal('2000')), 'gold')
        self.assertEqual(CustomerProfile.tier_for(Decimal('5000')), 'platinum')

    def test_order_stats_update_tier(self):
        self.profile.update_order_stats(Decimal('600.00'))
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.total_orders, 1)
        self.assertEqual(self.profile.customer_tier, 'silver')
        self.assertEqual(self.profile.tier_name, 'Silver')
        self.assertEqual(self.profile.discount_percentage, 5)

        self.profile.reverse_order_stats(Decimal('600.00'))
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.total_orders, 0)
        self.assertEqual(self.profile.total_spent, Decimal('0.00'))
        self.assertEqual(self.profile.customer_tier, 'bronze')

    def test_loyalty_points(self):
        self.assertEqual(self.profile.calculate_loyalty_points(Decimal('125.00')), 12)
        self.profile.customer_tier = 'gold'
        self.assertEqual(self.profile.calculate_loyalty_points(Decimal('125.00')), 18)

        self.profile.add_loyalty_points(10)
        self.assertFalse(self.profile.redeem_loyalty_points(11))
        self.assertTrue(self.profile.redeem_loyalty_points(4))
        self.assertEqual(self.profile.loyalty_points, 6)

    def test_free_shipping_and_average(self):
        self.assertFalse(self.profile.is_eligible_for_free_shipping(Decimal('99')))
        self.assertTrue(self.profile.is_eligible_for_free_shipping(Decimal('100')))
        self.assertEqual(self.profile.average_order_value, Decimal('0.00'))
        self.profile.update_order_stats(Decimal('30'))
        self.profile.update_order_stats(Decimal('20'))
        self.assertEqual(self.profile.average_order_value, Decimal('25.00'))

    def test_full_address(self):
        self.assertEqual(self.profile.full_address, 'Leeds, UK')
