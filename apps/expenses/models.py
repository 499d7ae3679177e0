# apps/expenses/models.py
"""
Operating expense records.

An expense is raised as pending, approved or rejected by a named approver,
and only approved expenses can be paid. Unpaid expenses past their due date
can be flagged overdue.
"""
from datetime import date, timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum
from django.db.models.functions import ExtractMonth
from django.utils import timezone
from simple_history.models import HistoricalRecords

from shared.managers import TenantQuerySet
from shared.models import TenantMixin, TimestampMixin


COMMON_CATEGORIES = [
    'Office Supplies',
    'Utilities',
    'Rent',
    'Insurance',
    'Marketing',
    'Travel',
    'Meals',
    'Equipment',
    'Software',
    'Services',
    'Maintenance',
    'Fuel',
    'Other',
]

CATEGORY_ICONS = {
    'office_supplies': 'clipboard',
    'utilities': 'lightning-bolt',
    'rent': 'home',
    'insurance': 'shield-check',
    'marketing': 'speakerphone',
    'travel': 'airplane',
    'meals': 'cake',
    'equipment': 'desktop-computer',
    'software': 'code',
    'services': 'cog',
    'maintenance': 'wrench',
    'fuel': 'truck',
    'other': 'document',
}

CATEGORY_COLORS = {
    'office_supplies': 'blue',
    'utilities': 'yellow',
    'rent': 'green',
    'insurance': 'purple',
    'marketing': 'pink',
    'travel': 'indigo',
    'meals': 'orange',
    'equipment': 'gray',
    'software': 'blue',
    'services': 'teal',
    'maintenance': 'red',
    'fuel': 'orange',
    'other': 'gray',
}


def category_key(category):
    return (category or '').strip().lower().replace(' ', '_')


class ExpenseQuerySet(TenantQuerySet):
    def pending(self):
        return self.filter(approval_status='pending')

    def approved(self):
        return self.filter(approval_status='approved')

    def rejected(self):
        return self.filter(approval_status='rejected')

    def paid(self):
        return self.filter(payment_status='paid')

    def unpaid(self):
        return self.filter(payment_status='pending')

    def overdue(self, today=None):
        today = today or timezone.localdate()
        return self.filter(
            Q(payment_status='overdue') | Q(payment_status='pending', due_date__lt=today)
        )

    def by_category(self, category):
        return self.filter(category=category)

    def by_subcategory(self, subcategory):
        return self.filter(subcategory=subcategory)

    def by_shop(self, shop):
        return self.filter(shop=shop)

    def by_warehouse(self, warehouse):
        return self.filter(warehouse=warehouse)

    def by_date_range(self, start, end):
        return self.filter(expense_date__range=(start, end))

    def by_amount_range(self, minimum, maximum):
        return self.filter(amount__range=(minimum, maximum))

    def recent(self, days=30):
        return self.filter(expense_date__gte=timezone.localdate() - timedelta(days=days))


class Expense(TenantMixin, TimestampMixin):
    """A business expense attributed to a shop, a warehouse or the company."""

    APPROVAL_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]

    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
    ]

    APPROVAL_BADGES = {
        'pending': 'bg-yellow-100 text-yellow-800',
        'approved': 'bg-green-100 text-green-800',
        'rejected': 'bg-red-100 text-red-800',
    }

    PAYMENT_BADGES = {
        'pending': 'bg-yellow-100 text-yellow-800',
        'paid': 'bg-green-100 text-green-800',
        'overdue': 'bg-red-100 text-red-800',
    }

    expense_number = models.CharField(max_length=50, help_text="Expense number (unique per tenant)")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100)
    subcategory = models.CharField(max_length=100, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default='USD')
    expense_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField(null=True, blank=True)
    vendor_name = models.CharField(max_length=255, blank=True)
    payment_method = models.CharField(max_length=50, blank=True)
    receipt_url = models.URLField(max_length=500, blank=True)
    approval_status = models.CharField(max_length=20, choices=APPROVAL_STATUS_CHOICES, default='pending')
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='pending')
    shop = models.ForeignKey(
        'warehousing.Shop',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='expenses'
    )
    warehouse = models.ForeignKey(
        'warehousing.Warehouse',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='expenses'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_expenses'
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_expenses',
        help_text="User who approved or rejected the expense"
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    objects = ExpenseQuerySet.as_manager()
    history = HistoricalRecords()

    class Meta:
        unique_together = [('tenant', 'expense_number')]
        ordering = ['-expense_date', '-id']
        indexes = [
            models.Index(fields=['tenant', 'category']),
            models.Index(fields=['tenant', 'approval_status']),
            models.Index(fields=['expense_date']),
        ]

    def __str__(self):
        return f"{self.expense_number}: {self.title}"

    def save(self, *args, **kwargs):
        if not self.expense_number:
            self.expense_number = self.generate_expense_number(self.tenant)
        super().save(*args, **kwargs)

    @staticmethod
    def generate_expense_number(tenant):
        from apps.tenants.models import get_next_sequence_number
        return get_next_sequence_number(tenant, 'EXP')

    # ----- status -----

    @property
    def is_pending(self):
        return self.approval_status == 'pending'

    @property
    def is_approved(self):
        return self.approval_status == 'approved'

    @property
    def is_rejected(self):
        return self.approval_status == 'rejected'

    @property
    def is_paid(self):
        return self.payment_status == 'paid'

    @property
    def is_unpaid(self):
        return self.payment_status == 'pending'

    def is_overdue(self, today=None):
        today = today or timezone.localdate()
        if self.payment_status == 'overdue':
            return True
        return self.is_unpaid and self.due_date is not None and self.due_date < today

    def can_be_approved(self):
        return self.is_pending

    def can_be_rejected(self):
        return self.is_pending

    def can_be_paid(self):
        return self.is_approved and not self.is_paid

    # ----- transitions -----

    def approve(self, approver):
        """Approve a pending expense. ``approver`` is the acting user."""
        return self._decide('approved', approver)

    def reject(self, approver):
        return self._decide('rejected', approver)

    def _decide(self, status, approver):
        if not self.is_pending:
            return False
        self.approval_status = status
        self.approved_by = approver
        self.approved_at = timezone.now()
        self.save(update_fields=['approval_status', 'approved_by', 'approved_at', 'updated_at'])
        return True

    def mark_as_paid(self, payment_method=None):
        if not self.can_be_paid():
            return False
        self.payment_status = 'paid'
        if payment_method:
            self.payment_method = payment_method
        self.save(update_fields=['payment_status', 'payment_method', 'updated_at'])
        return True

    def mark_as_overdue(self, today=None):
        today = today or timezone.localdate()
        if not (self.is_unpaid and self.due_date is not None and self.due_date < today):
            return False
        self.payment_status = 'overdue'
        self.save(update_fields=['payment_status', 'updated_at'])
        return True

    # ----- display -----

    @property
    def has_receipt(self):
        return bool(self.receipt_url)

    @property
    def location_name(self):
        if self.shop_id:
            return self.shop.name
        if self.warehouse_id:
            return self.warehouse.name
        return 'General'

    @property
    def full_category(self):
        if self.subcategory:
            return f"{self.category} > {self.subcategory}"
        return self.category

    def days_until_due(self, today=None):
        if self.due_date is None:
            return 0
        today = today or timezone.localdate()
        return (self.due_date - today).days

    def days_overdue(self, today=None):
        today = today or timezone.localdate()
        if self.due_date is None or not self.is_overdue(today):
            return 0
        return max(0, (today - self.due_date).days)

    @property
    def approval_status_badge_class(self):
        return self.APPROVAL_BADGES.get(self.approval_status, self.APPROVAL_BADGES['pending'])

    @property
    def payment_status_badge_class(self):
        return self.PAYMENT_BADGES.get(self.payment_status, self.PAYMENT_BADGES['pending'])

    @property
    def category_icon(self):
        return CATEGORY_ICONS.get(category_key(self.category), CATEGORY_ICONS['other'])

    @property
    def category_color(self):
        return CATEGORY_COLORS.get(category_key(self.category), CATEGORY_COLORS['other'])

    # ----- reports -----

    @classmethod
    def total_by_category(cls, tenant, start, end):
        """Approved spend per category between two dates, largest first."""
        rows = (
            cls.objects.for_tenant(tenant).approved().by_date_range(start, end)
            .values('category')
            .annotate(total=Sum('amount'))
            .order_by('-total', 'category')
        )
        return {row['category']: row['total'] for row in rows}

    @classmethod
    def monthly_totals(cls, tenant, year):
        """Approved spend for each month of ``year``, as {1: Decimal, ..., 12: Decimal}."""
        totals = {month: Decimal('0.00') for month in range(1, 13)}
        rows = (
            cls.objects.for_tenant(tenant).approved()
            .by_date_range(date(year, 1, 1), date(year, 12, 31))
            .annotate(month=ExtractMonth('expense_date'))
            .values('month')
            .annotate(total=Sum('amount'))
            .order_by('month')
        )
        for row in rows:
            totals[row['month']] = row['total']
        return totals
