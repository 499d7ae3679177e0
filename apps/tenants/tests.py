# apps/tenants/tests.py
"""
Tests for Tenant, TenantSequence, subscription plans, features, billing
history and system configuration.
"""
from datetime import date
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings

from apps.tenants.models import (
    Tenant, TenantSequence, SubscriptionPlan, SystemFeature, TenantFeature,
    TenantBillingHistory, SystemConfiguration, get_next_sequence_number,
)
from apps.warehousing.models import Warehouse
from apps.catalog.models import Category, Product
from apps.inventory.models import InventoryMovement
from apps.orders.models import Purchase
from users.models import User


class TenantModelTestCase(TestCase):
    """Tests for the Tenant model and its limits."""

    # ── Creation ─────────────────────────────────────────────────────────

    def test_create_tenant(self):
        tenant = Tenant.objects.create(tenant_code='ACME', company_name='Acme Industries')
        self.assertEqual(str(tenant), 'Acme Industries')
        self.assertTrue(tenant.is_active)
        self.assertFalse(tenant.is_subscribed)

    def test_duplicate_code_raises(self):
        Tenant.objects.create(tenant_code='DUP', company_name='First')
        with self.assertRaises(IntegrityError), transaction.atomic():
            Tenant.objects.create(tenant_code='DUP', company_name='Second')

    @override_settings(TENANT_TRIAL_DAYS=21)
    def test_trial_clock_starts(self):
        tenant = Tenant.objects.create(tenant_code='TRIAL', company_name='Trial Co')
        self.assertEqual(tenant.remaining_trial_days, 21)
        tenant.refresh_from_db()
        self.assertEqual(tenant.trial_days_remaining, 21)

    def test_paying_tenant_has_no_trial_days(self):
        tenant = Tenant.objects.create(tenant_code='PAY', company_name='Paying Co', is_trial=False)
        self.assertEqual(tenant.remaining_trial_days, 0)
        self.assertTrue(tenant.is_subscribed)

    # ── Limits ───────────────────────────────────────────────────────────

    def test_user_and_warehouse_limits(self):
        tenant = Tenant.objects.create(
            tenant_code='LIM', company_name='Limited', max_users=1, max_warehouses=1,
        )
        self.assertTrue(tenant.can_add_users())
        User.objects.create_user(username='only', password='pass', tenant=tenant)
        self.assertFalse(tenant.can_add_users())

        self.assertTrue(tenant.can_add_warehouses())
        Warehouse.objects.create(tenant=tenant, name='Main', code='MAIN')
        self.assertFalse(tenant.can_add_warehouses())

    def test_suspend_and_reactivate(self):
        tenant = Tenant.objects.create(tenant_code='SUS', company_name='Suspended Co')
        tenant.suspend()
        tenant.refresh_from_db()
        self.assertFalse(tenant.is_active)
        tenant.reactivate()
        self.assertTrue(tenant.is_active)


class TenantSequenceTestCase(TestCase):
    """Tests for per-tenant document numbering."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='SEQ', company_name='Sequence Co')
        cls.other = Tenant.objects.create(tenant_code='SEQ2', company_name='Other Co')

    def test_sequences_created_with_tenant(self):
        types = set(self.tenant.sequences.values_list('sequence_type', flat=True))
        self.assertEqual(types, {'PO', 'ORD', 'EXP', 'INV'})

    def test_numbers_increment_independently(self):
        self.assertEqual(get_next_sequence_number(self.tenant, 'PO'), 'PO-000001')
        self.assertEqual(get_next_sequence_number(self.tenant, 'PO'), 'PO-000002')
        self.assertEqual(get_next_sequence_number(self.tenant, 'ORD'), 'ORD-000001')
        self.assertEqual(get_next_sequence_number(self.other, 'PO'), 'PO-000001')

    def test_missing_sequence_row_is_created(self):
        TenantSequence.objects.filter(tenant=self.tenant, sequence_type='EXP').delete()
        self.assertEqual(get_next_sequence_number(self.tenant, 'EXP'), 'EXP-000001')
        self.assertTrue(TenantSequence.objects.filter(tenant=self.tenant, sequence_type='EXP').exists())

    def test_custom_prefix_and_padding(self):
        TenantSequence.objects.filter(tenant=self.tenant, sequence_type='INV').update(
            prefix='BILL/', padding=3, next_value=42,
        )
        self.assertEqual(get_next_sequence_number(self.tenant, 'INV'), 'BILL/042')


class SubscriptionPlanTestCase(TestCase):

    def setUp(self):
        self.plan = SubscriptionPlan.objects.create(
            plan_name='growth', display_name='Growth',
            price_monthly=Decimal('50.00'), price_yearly=Decimal('540.00'),
            max_users=25, max_products=5000, max_warehouses=3, max_shops=5,
            features=['multi_location', 'reports'], modules=['inventory'],
        )

    def test_yearly_discount(self):
        self.assertEqual(self.plan.yearly_discount, Decimal('10.00'))
        self.assertEqual(self.plan.effective_monthly_price, Decimal('45.00'))

    def test_features_and_modules(self):
        self.assertTrue(self.plan.has_feature('reports'))
        self.assertFalse(self.plan.has_feature('api_access'))
        self.assertTrue(self.plan.has_module('inventory'))

    def test_apply_to_tenant(self):
        tenant = Tenant.objects.create(tenant_code='GROW', company_name='Grow Co', billing_cycle='yearly')
        self.plan.apply_to(tenant)
        tenant.refresh_from_db()
        self.assertEqual(tenant.subscription_plan, self.plan)
        self.assertEqual(tenant.max_users, 25)
        self.assertEqual(tenant.max_shops, 5)
        self.assertEqual(tenant.subscription_amount, Decimal('540.00'))


class TenantFeatureTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='FEAT', company_name='Feature Co')
        cls.user = User.objects.create_user(username='admin', password='pass', tenant=cls.tenant)
        cls.feature = SystemFeature.objects.create(feature_key='expenses', feature_name='Expenses')

    def test_enable_and_disable(self):
        switch = TenantFeature.objects.create(tenant=self.tenant, system_feature=self.feature)
        self.assertFalse(self.tenant.has_feature('expenses'))

        switch.enable(self.user)
        self.assertTrue(self.tenant.has_feature('expenses'))
        self.assertEqual(switch.enabled_by, self.user)
        self.assertIsNotNone(switch.enabled_at)
        self.assertTrue(switch.is_visible_on_dashboard)

        switch.disable()
        self.assertFalse(self.tenant.has_feature('expenses'))
        self.assertIsNotNone(switch.disabled_at)
        self.assertFalse(switch.is_visible_on_dashboard)

    def test_settings_merge_and_display_name(self):
        switch = TenantFeature.objects.create(
            tenant=self.tenant, system_feature=self.feature, settings={'approval_required': True},
        )
        switch.update_settings({'limit': 500})
        switch.refresh_from_db()
        self.assertEqual(switch.settings, {'approval_required': True, 'limit': 500})
        self.assertEqual(switch.display_name, 'Expenses')
        switch.custom_name = 'Spend'
        self.assertEqual(switch.display_name, 'Spend')


class TenantBillingHistoryTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='BILL', company_name='Billing Co')

    def make_invoice(self, **fields):
        fields.setdefault('invoice_number', 'INV-000001')
        return TenantBillingHistory.objects.create(
            tenant=self.tenant,
            billing_period_start=date(2026, 1, 1),
            billing_period_end=date(2026, 1, 31),
            subtotal=Decimal('100.00'),
            discount_amount=Decimal('10.00'),
            total_amount=Decimal('90.00'),
            due_date=date(2026, 2, 15),
            **fields,
        )

    def test_overdue(self):
        invoice = self.make_invoice()
        self.assertEqual(invoice.net_amount, Decimal('90.00'))
        self.assertFalse(invoice.is_overdue(date(2026, 2, 10)))
        self.assertTrue(invoice.is_overdue(date(2026, 2, 20)))
        self.assertEqual(invoice.days_overdue(date(2026, 2, 20)), 5)
        self.assertTrue(invoice.mark_as_overdue(date(2026, 2, 20)))
        self.assertEqual(TenantBillingHistory.objects.overdue(date(2026, 2, 10)).count(), 1)

    def test_mark_as_paid(self):
        invoice = self.make_invoice()
        invoice.mark_as_paid('card', 'ch_123')
        invoice.refresh_from_db()
        self.assertEqual(invoice.payment_status, 'paid')
        self.assertEqual(invoice.payment_reference, 'ch_123')
        self.assertIsNotNone(invoice.payment_date)
        self.assertFalse(invoice.mark_as_overdue(date(2027, 1, 1)))


class SystemConfigurationTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='CFG', company_name='Config Co')

    def test_typed_values(self):
        config = SystemConfiguration(config_key='low_stock_alerts', data_type='boolean')
        config.value = True
        config.save()
        self.assertIs(SystemConfiguration.get_value('low_stock_alerts'), True)

        config = SystemConfiguration(config_key='tax_rate', data_type='decimal')
        config.value = Decimal('7.25')
        config.save()
        self.assertEqual(SystemConfiguration.get_value('tax_rate'), Decimal('7.25'))

        config = SystemConfiguration(config_key='shipping_zones', data_type='json')
        config.value = ['north', 'south']
        config.save()
        self.assertEqual(SystemConfiguration.get_value('shipping_zones'), ['north', 'south'])

    def test_tenant_overrides_global(self):
        SystemConfiguration.objects.create(config_key='page_size', config_value='25', data_type='integer')
        SystemConfiguration.objects.create(
            tenant=self.tenant, config_key='page_size', config_value='50', data_type='integer',
        )
        other = Tenant.objects.create(tenant_code='CFG2', company_name='Other Config Co')
        self.assertEqual(SystemConfiguration.get_value('page_size', self.tenant), 50)
        self.assertEqual(SystemConfiguration.get_value('page_size', other), 25)

    def test_default_value_fallbacks(self):
        SystemConfiguration.objects.create(
            config_key='currency', config_value=None, default_value='USD',
        )
        self.assertEqual(SystemConfiguration.get_value('currency'), 'USD')
        self.assertEqual(SystemConfiguration.get_value('unknown', default='x'), 'x')


class CreateDefaultTenantCommandTestCase(TestCase):

    def test_creates_once(self):
        call_command('create_default_tenant', stdout=StringIO())
        call_command('create_default_tenant', stdout=StringIO())
        self.assertEqual(Tenant.objects.filter(is_default=True).count(), 1)
        tenant = Tenant.objects.get(is_default=True)
        self.assertEqual(tenant.tenant_code, 'DEFAULT')
        self.assertEqual(tenant.sequences.count(), 4)


class SeedDemoCommandTestCase(TestCase):

    def test_seeds_tenants_with_partial_receipt(self):
        call_command('seed_demo', stdout=StringIO())

        self.assertEqual(Tenant.objects.filter(tenant_code__startswith='DEMO').count(), 3)
        tenant = Tenant.objects.get(tenant_code='DEMO001')
        self.assertEqual(tenant.subscription_plan.plan_name, 'professional')
        self.assertTrue(tenant.has_feature('purchases'))

        purchase = Purchase.objects.for_tenant(tenant).get()
        self.assertEqual(purchase.status, Purchase.Status.PARTIALLY_RECEIVED)
        self.assertEqual(purchase.total_received_count, 8)

        purchases_ledger = InventoryMovement.objects.for_tenant(tenant).purchases()
        self.assertEqual(purchases_ledger.count(), 1)
        movement = purchases_ledger.get()
        self.assertEqual(movement.quantity_change, 8)
        self.assertEqual(movement.reference_number, purchase.purchase_number)

        charger = Product.objects.get(tenant=tenant, sku='TW-ACC-001')
        self.assertEqual(charger.stock_quantity, 80)
        self.assertEqual(Category.objects.for_tenant(tenant).roots().count(), 2)

    def test_rerun_and_clear(self):
        call_command('seed_demo', stdout=StringIO())
        call_command('seed_demo', stdout=StringIO())
        self.assertEqual(Tenant.objects.filter(tenant_code__startswith='DEMO').count(), 3)

        call_command('seed_demo', '--clear', stdout=StringIO())
        self.assertEqual(Tenant.objects.filter(tenant_code__startswith='DEMO').count(), 3)
        self.assertEqual(Purchase.objects.count(), 3)
