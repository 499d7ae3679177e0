# apps/expenses/tests.py
"""
Tests for Expense approval, payment, overdue handling and reports.
"""
from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from apps.tenants.models import Tenant
from apps.warehousing.models import Warehouse, Shop
from apps.expenses.models import Expense
from users.models import User


class ExpenseTestCase(TestCase):
    """Base test case with shared setup for expense tests."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='EXPCO', company_name='Expense Co')
        cls.other_tenant = Tenant.objects.create(tenant_code='EXPCO2', company_name='Other Co')
        cls.user = User.objects.create_user(username='spender', password='pass', tenant=cls.tenant)
        cls.manager = User.objects.create_user(username='approver', password='pass', tenant=cls.tenant)
        cls.warehouse = Warehouse.objects.create(tenant=cls.tenant, name='Depot', code='DPT')
        cls.shop = Shop.objects.create(tenant=cls.tenant, name='Market St', code='MKT', warehouse=cls.warehouse)

    def make_expense(self, **fields):
        fields.setdefault('title', 'Printer paper')
        fields.setdefault('category', 'Office Supplies')
        fields.setdefault('amount', Decimal('25.00'))
        return Expense.objects.create(tenant=self.tenant, created_by=self.user, **fields)


# ── Numbering ──────────────────────────────────────────────────────────────────

class ExpenseNumberTest(ExpenseTestCase):

    def test_numbers_are_sequential_per_tenant(self):
        first = self.make_expense()
        second = self.make_expense()
        other = Expense.objects.create(
            tenant=self.other_tenant, title='Coffee', category='Meals', amount=Decimal('4.00'),
        )
        self.assertEqual(first.expense_number, 'EXP-000001')
        self.assertEqual(second.expense_number, 'EXP-000002')
        self.assertEqual(other.expense_number, 'EXP-000001')
        self.assertEqual(str(first), 'EXP-000001: Printer paper')


# ── Approval and payment ───────────────────────────────────────────────────────

class ExpenseWorkflowTest(ExpenseTestCase):

    def test_approve_records_approver(self):
        expense = self.make_expense()
        self.assertTrue(expense.approve(self.manager))
        expense.refresh_from_db()
        self.assertTrue(expense.is_approved)
        self.assertEqual(expense.approved_by, self.manager)
        self.assertIsNotNone(expense.approved_at)
        self.assertEqual(expense.approval_status_badge_class, 'bg-green-100 text-green-800')

    def test_decision_only_from_pending(self):
        expense = self.make_expense()
        expense.reject(self.manager)
        self.assertTrue(expense.is_rejected)
        self.assertFalse(expense.approve(self.manager))
        self.assertFalse(expense.reject(self.manager))
        self.assertEqual(expense.approval_status_badge_class, 'bg-red-100 text-red-800')

    def test_pay_requires_approval(self):
        expense = self.make_expense()
        self.assertFalse(expense.mark_as_paid('cash'))
        self.assertTrue(expense.is_unpaid)

        expense.approve(self.manager)
        self.assertTrue(expense.mark_as_paid('bank_transfer'))
        expense.refresh_from_db()
        self.assertTrue(expense.is_paid)
        self.assertEqual(expense.payment_method, 'bank_transfer')
        self.assertFalse(expense.mark_as_paid())

    def test_overdue(self):
        today = timezone.localdate()
        expense = self.make_expense(due_date=today - timedelta(days=4))
        self.assertTrue(expense.is_overdue(today))
        self.assertEqual(expense.days_overdue(today), 4)
        self.assertEqual(expense.days_until_due(today), -4)

        self.assertTrue(expense.mark_as_overdue(today))
        self.assertEqual(expense.payment_status, 'overdue')
        self.assertEqual(expense.payment_status_badge_class, 'bg-red-100 text-red-800')
        self.assertFalse(expense.mark_as_overdue(today))

    def test_not_overdue_without_due_date(self):
        expense = self.make_expense()
        self.assertFalse(expense.is_overdue())
        self.assertEqual(expense.days_overdue(), 0)
        self.assertFalse(expense.mark_as_overdue())


# ── Display helpers ────────────────────────────────────────────────────────────

class ExpenseDisplayTest(ExpenseTestCase):

    def test_location_name(self):
        self.assertEqual(self.make_expense().location_name, 'General')
        self.assertEqual(self.make_expense(warehouse=self.warehouse).location_name, 'Depot')
        self.assertEqual(
            self.make_expense(shop=self.shop, warehouse=self.warehouse).location_name, 'Market St',
        )

    def test_category_display(self):
        expense = self.make_expense(category='Office Supplies', subcategory='Paper')
        self.assertEqual(expense.full_category, 'Office Supplies > Paper')
        self.assertEqual(expense.category_icon, 'clipboard')
        self.assertEqual(expense.category_color, 'blue')

        unknown = self.make_expense(category='Gadgets')
        self.assertEqual(unknown.full_category, 'Gadgets')
        self.assertEqual(unknown.category_icon, 'document')
        self.assertEqual(unknown.category_color, 'gray')

    def test_receipt(self):
        self.assertFalse(self.make_expense().has_receipt)
        self.assertTrue(self.make_expense(receipt_url='https://example.com/r/1.pdf').has_receipt)


# ── Scopes and reports ─────────────────────────────────────────────────────────

class ExpenseReportTest(ExpenseTestCase):

    def setUp(self):
        self.rent = self.make_expense(
            title='March rent', category='Rent', amount=Decimal('1200.00'), expense_date=date(2026, 3, 1),
        )
        self.power = self.make_expense(
            title='Electricity', category='Utilities', amount=Decimal('150.00'), expense_date=date(2026, 3, 12),
        )
        self.april_power = self.make_expense(
            title='Electricity', category='Utilities', amount=Decimal('90.00'), expense_date=date(2026, 4, 9),
        )
        self.unapproved = self.make_expense(
            title='Flyers', category='Marketing', amount=Decimal('300.00'), expense_date=date(2026, 3, 20),
        )
        for expense in (self.rent, self.power, self.april_power):
            expense.approve(self.manager)

    def test_scopes(self):
        qs = Expense.objects.for_tenant(self.tenant)
        self.assertEqual(list(qs.pending()), [self.unapproved])
        self.assertEqual(qs.approved().count(), 3)
        self.assertEqual(qs.by_category('Utilities').count(), 2)
        self.assertEqual(qs.by_amount_range(Decimal('100'), Decimal('500')).count(), 2)
        self.assertEqual(qs.by_date_range(date(2026, 3, 1), date(2026, 3, 31)).count(), 3)
        self.assertEqual(qs.unpaid().count(), 4)

    def test_total_by_category(self):
        totals = Expense.total_by_category(self.tenant, date(2026, 3, 1), date(2026, 3, 31))
        self.assertEqual(totals, {'Rent': Decimal('1200.00'), 'Utilities': Decimal('150.00')})

    def test_monthly_totals(self):
        totals = Expense.monthly_totals(self.tenant, 2026)
        self.assertEqual(len(totals), 12)
        self.assertEqual(totals[3], Decimal('1350.00'))
        self.assertEqual(totals[4], Decimal('90.00'))
        self.assertEqual(totals[1], Decimal('0.00'))

    def test_other_tenant_sees_nothing(self):
        self.assertEqual(Expense.total_by_category(self.other_tenant, date(2026, 1, 1), date(2026, 12, 31)), {})
