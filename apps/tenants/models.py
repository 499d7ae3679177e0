# apps/tenants/models.py
"""
Tenant models for the multi-tenant retail platform.

Models:
- Tenant: A subscribing company, with its plan limits and trial state
- TenantSequence: Auto-generate sequential numbers (purchases, orders, ...)
- SubscriptionPlan: Catalogue of plans a tenant can subscribe to
- SystemFeature: Platform-wide feature registry
- TenantFeature: Per-tenant feature switches and settings
- TenantBillingHistory: Invoices raised against a tenant's subscription
- SystemConfiguration: Global or per-tenant configuration values
"""
import json
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone


class Tenant(models.Model):
    """
    Represents a single tenant (customer company) in the SaaS system.

    Each tenant has isolated data - no tenant can see another tenant's data.
    """
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('suspended', 'Suspended'),
        ('cancelled', 'Cancelled'),
    ]

    BILLING_CYCLE_CHOICES = [
        ('monthly', 'Monthly'),
        ('yearly', 'Yearly'),
    ]

    tenant_code = models.CharField(
        max_length=50,
        unique=True,
        help_text="Short unique code for the tenant (e.g., 'TECHWORLD')"
    )
    company_name = models.CharField(max_length=255, help_text="Company name")
    business_type = models.CharField(max_length=100, blank=True)
    industry = models.CharField(max_length=100, blank=True)
    company_size = models.CharField(max_length=50, blank=True)

    # Contact
    contact_person = models.CharField(max_length=255, blank=True)
    email = models.EmailField(blank=True)
    phone_number = models.CharField(max_length=30, blank=True)
    website_url = models.URLField(blank=True)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)
    timezone = models.CharField(max_length=50, default='UTC')
    currency = models.CharField(max_length=3, default='USD', help_text="Currency code (ISO 4217)")
    tax_number = models.CharField(max_length=100, blank=True)
    registration_number = models.CharField(max_length=100, blank=True)

    # Subscription
    subscription_plan = models.ForeignKey(
        'SubscriptionPlan',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='tenants'
    )
    subscription_start_date = models.DateField(null=True, blank=True)
    subscription_end_date = models.DateField(null=True, blank=True)
    billing_cycle = models.CharField(max_length=10, choices=BILLING_CYCLE_CHOICES, default='monthly')
    subscription_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    # Limits
    max_users = models.PositiveIntegerField(default=5)
    max_products = models.PositiveIntegerField(default=100)
    max_warehouses = models.PositiveIntegerField(default=1)
    max_shops = models.PositiveIntegerField(default=1)
    storage_limit_gb = models.PositiveIntegerField(default=1)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    is_trial = models.BooleanField(default=True)
    trial_days_remaining = models.IntegerField(default=0)
    is_default = models.BooleanField(
        default=False,
        help_text="Default tenant for development (only one should be default)"
    )
    onboarding_completed = models.BooleanField(default=False)
    last_login_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['company_name']
        indexes = [
            models.Index(fields=['tenant_code']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return self.company_name

    @property
    def is_active(self):
        return self.status == 'active'

    @property
    def is_subscribed(self):
        return not self.is_trial and self.status == 'active'

    @property
    def remaining_trial_days(self):
        if not self.is_trial:
            return 0
        return max(0, self.trial_days_remaining)

    def can_add_users(self):
        return self.users.count() < self.max_users

    def can_add_products(self):
        return self.product_set.count() < self.max_products

    def can_add_warehouses(self):
        return self.warehouse_set.count() < self.max_warehouses

    def can_add_shops(self):
        return self.shop_set.count() < self.max_shops

    def has_feature(self, feature_key):
        """True when the tenant has the feature switched on."""
        return self.features.filter(system_feature__feature_key=feature_key, is_enabled=True).exists()

    def suspend(self):
        self.status = 'suspended'
        self.save(update_fields=['status', 'updated_at'])

    def reactivate(self):
        self.status = 'active'
        self.save(update_fields=['status', 'updated_at'])


class TenantSequence(models.Model):
    """
    Auto-generate sequential numbers for purchases, orders, etc. per tenant.

    Each tenant has independent sequences to avoid number conflicts.

    Usage:
        number = get_next_sequence_number(tenant, 'PO')  # Returns 'PO-000001'
    """
    SEQUENCE_TYPES = [
        ('PO', 'Purchase'),
        ('ORD', 'Sales Order'),
        ('EXP', 'Expense'),
        ('INV', 'Subscription Invoice'),
    ]

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='sequences'
    )
    sequence_type = models.CharField(
        max_length=20,
        choices=SEQUENCE_TYPES,
        help_text="Type of sequence (PO, ORD, EXP, INV)"
    )
    prefix = models.CharField(
        max_length=10,
        help_text="Prefix for the number (e.g., 'PO-', 'ORD-')"
    )
    next_value = models.PositiveIntegerField(
        default=1,
        help_text="Next number to use"
    )
    padding = models.PositiveIntegerField(
        default=6,
        help_text="Zero-pad to this width (e.g., 6 = '000001')"
    )

    class Meta:
        unique_together = [('tenant', 'sequence_type')]
        indexes = [
            models.Index(fields=['tenant', 'sequence_type']),
        ]

    def __str__(self):
        return f"{self.tenant.company_name} - {self.sequence_type}"


# (sequence_type, prefix, padding)
DEFAULT_SEQUENCES = [
    ('PO', 'PO-', 6),
    ('ORD', 'ORD-', 6),
    ('EXP', 'EXP-', 6),
    ('INV', 'INV-', 6),
]


def get_next_sequence_number(tenant, sequence_type):
    """
    Get the next sequential number for a tenant and sequence type.

    Args:
        tenant: Tenant instance
        sequence_type: One of 'PO', 'ORD', 'EXP', 'INV'

    Returns:
        str: Formatted sequence number (e.g., 'PO-000001')

    A missing sequence row is created on first use so tenants created before
    a sequence type existed keep working.
    """
    with transaction.atomic():
        seq = TenantSequence.objects.select_for_update().filter(
            tenant=tenant,
            sequence_type=sequence_type
        ).first()
        if seq is None:
            prefix, padding = next(
                ((p, w) for t, p, w in DEFAULT_SEQUENCES if t == sequence_type),
                (f'{sequence_type}-', 6),
            )
            seq = TenantSequence.objects.create(
                tenant=tenant, sequence_type=sequence_type, prefix=prefix, padding=padding,
            )
        number = f"{seq.prefix}{str(seq.next_value).zfill(seq.padding)}"
        seq.next_value += 1
        seq.save(update_fields=['next_value'])
        return number


class SubscriptionPlan(models.Model):
    """A plan tenants subscribe to, with its limits and included features."""
    plan_name = models.CharField(max_length=50, unique=True)
    display_name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    price_monthly = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    price_yearly = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    currency = models.CharField(max_length=3, default='USD')
    max_users = models.PositiveIntegerField(default=5)
    max_products = models.PositiveIntegerField(default=100)
    max_warehouses = models.PositiveIntegerField(default=1)
    max_shops = models.PositiveIntegerField(default=1)
    storage_limit_gb = models.PositiveIntegerField(default=1)
    features = models.JSONField(default=list, blank=True, help_text="Feature keys included")
    modules = models.JSONField(default=list, blank=True, help_text="Module names included")
    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['sort_order', 'price_monthly']

    def __str__(self):
        return self.display_name

    def has_feature(self, feature):
        return feature in (self.features or [])

    def has_module(self, module):
        return module in (self.modules or [])

    @property
    def yearly_discount(self):
        """Percent saved by paying yearly instead of twelve monthly payments."""
        if not self.price_monthly or not self.price_yearly:
            return Decimal('0')
        yearly_from_monthly = self.price_monthly * 12
        discount = (yearly_from_monthly - self.price_yearly) / yearly_from_monthly * 100
        return discount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    @property
    def effective_monthly_price(self):
        if self.price_yearly:
            return (self.price_yearly / 12).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        return self.price_monthly

    def apply_to(self, tenant):
        """Copy this plan's limits onto a tenant."""
        tenant.subscription_plan = self
        tenant.max_users = self.max_users
        tenant.max_products = self.max_products
        tenant.max_warehouses = self.max_warehouses
        tenant.max_shops = self.max_shops
        tenant.storage_limit_gb = self.storage_limit_gb
        tenant.subscription_amount = (
            self.price_yearly if tenant.billing_cycle == 'yearly' else self.price_monthly
        )
        tenant.save()


class SystemFeature(models.Model):
    """Platform-wide feature that tenants can switch on."""
    feature_key = models.CharField(max_length=100, unique=True)
    feature_name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True)
    icon = models.CharField(max_length=50, blank=True)
    sort_order = models.PositiveIntegerField(default=0)
    dependencies = models.JSONField(default=list, blank=True, help_text="Feature keys this feature requires")
    is_premium = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['sort_order', 'feature_name']

    def __str__(self):
        return self.feature_name

    @property
    def has_dependencies(self):
        return bool(self.dependencies)


class TenantFeature(models.Model):
    """A tenant's switch and settings for one SystemFeature."""
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='features')
    system_feature = models.ForeignKey(
        SystemFeature,
        on_delete=models.CASCADE,
        related_name='tenant_features'
    )
    enabled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    is_enabled = models.BooleanField(default=False)
    settings = models.JSONField(default=dict, blank=True)
    display_order = models.PositiveIntegerField(default=0)
    is_visible_dashboard = models.BooleanField(default=True)
    is_pinned = models.BooleanField(default=False)
    custom_name = models.CharField(max_length=255, blank=True)
    enabled_at = models.DateTimeField(null=True, blank=True)
    disabled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [('tenant', 'system_feature')]
        ordering = ['display_order', 'custom_name']

    def __str__(self):
        return f"{self.tenant} - {self.display_name}"

    @property
    def display_name(self):
        return self.custom_name or self.system_feature.feature_name

    @property
    def is_visible_on_dashboard(self):
        return self.is_visible_dashboard and self.is_enabled

    @property
    def is_pinned_on_dashboard(self):
        return self.is_pinned and self.is_enabled

    def update_settings(self, new_settings):
        """Merge ``new_settings`` into the stored settings."""
        self.settings = {**(self.settings or {}), **new_settings}
        self.save(update_fields=['settings', 'updated_at'])

    def enable(self, user=None):
        self.is_enabled = True
        self.enabled_at = timezone.now()
        self.disabled_at = None
        if user is not None:
            self.enabled_by = user
        self.save()

    def disable(self):
        self.is_enabled = False
        self.disabled_at = timezone.now()
        self.save()


class TenantBillingHistoryQuerySet(models.QuerySet):
    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def paid(self):
        return self.filter(payment_status='paid')

    def pending(self):
        return self.filter(payment_status='pending')

    def overdue(self, today=None):
        today = today or timezone.localdate()
        return self.filter(
            models.Q(payment_status='overdue')
            | models.Q(payment_status='pending', due_date__lt=today)
        )

    def by_period(self, start, end):
        return self.filter(billing_period_start__range=(start, end))


class TenantBillingHistory(models.Model):
    """Subscription invoice raised against a tenant."""
    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
        ('cancelled', 'Cancelled'),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='billing_history')
    invoice_number = models.CharField(max_length=50)
    billing_period_start = models.DateField()
    billing_period_end = models.DateField()
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    currency = models.CharField(max_length=3, default='USD')
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='pending')
    payment_method = models.CharField(max_length=50, blank=True)
    payment_date = models.DateTimeField(null=True, blank=True)
    payment_reference = models.CharField(max_length=100, blank=True)
    invoice_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField()
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantBillingHistoryQuerySet.as_manager()

    class Meta:
        verbose_name_plural = 'tenant billing history'
        ordering = ['-invoice_date']
        unique_together = [('tenant', 'invoice_number')]

    def __str__(self):
        return self.invoice_number

    @property
    def net_amount(self):
        return self.subtotal - self.discount_amount

    def is_overdue(self, today=None):
        today = today or timezone.localdate()
        return self.payment_status == 'overdue' or (
            self.payment_status == 'pending' and self.due_date < today
        )

    def days_overdue(self, today=None):
        today = today or timezone.localdate()
        if not self.is_overdue(today):
            return 0
        return max(0, (today - self.due_date).days)

    def mark_as_paid(self, payment_method=None, payment_reference=None):
        self.payment_status = 'paid'
        self.payment_date = timezone.now()
        if payment_method:
            self.payment_method = payment_method
        if payment_reference:
            self.payment_reference = payment_reference
        self.save()

    def mark_as_overdue(self, today=None):
        """Flip a pending invoice past its due date to overdue. Returns True if it changed."""
        today = today or timezone.localdate()
        if self.payment_status == 'pending' and self.due_date < today:
            self.payment_status = 'overdue'
            self.save(update_fields=['payment_status', 'updated_at'])
            return True
        return False


class SystemConfigurationQuerySet(models.QuerySet):
    def global_values(self):
        return self.filter(tenant__isnull=True)

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def by_group(self, group):
        return self.filter(config_group=group)

    def public(self):
        return self.filter(is_public=True)


class SystemConfiguration(models.Model):
    """
    A typed configuration value. Rows without a tenant are global defaults;
    tenant rows override them for that tenant.
    """
    DATA_TYPE_CHOICES = [
        ('string', 'String'),
        ('integer', 'Integer'),
        ('decimal', 'Decimal'),
        ('boolean', 'Boolean'),
        ('json', 'JSON'),
    ]

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='configurations'
    )
    config_group = models.CharField(max_length=50, default='general')
    config_key = models.CharField(max_length=100)
    config_value = models.TextField(blank=True, null=True)
    data_type = models.CharField(max_length=10, choices=DATA_TYPE_CHOICES, default='string')
    description = models.TextField(blank=True)
    is_public = models.BooleanField(default=False)
    default_value = models.TextField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SystemConfigurationQuerySet.as_manager()

    class Meta:
        unique_together = [('tenant', 'config_key')]
        ordering = ['config_group', 'config_key']

    def __str__(self):
        return self.config_key

    @property
    def is_global(self):
        return self.tenant_id is None

    @property
    def value(self):
        return self._cast(self.config_value)

    @value.setter
    def value(self, raw):
        if raw is None:
            self.config_value = None
        elif self.data_type == 'json':
            self.config_value = json.dumps(raw)
        elif self.data_type == 'boolean':
            self.config_value = 'true' if raw else 'false'
        else:
            self.config_value = str(raw)

    @property
    def default(self):
        return self._cast(self.default_value)

    def _cast(self, raw):
        if raw is None:
            return None
        if self.data_type == 'integer':
            return int(raw)
        if self.data_type == 'decimal':
            return Decimal(raw)
        if self.data_type == 'boolean':
            return str(raw).strip().lower() in ('1', 'true', 'yes', 'on')
        if self.data_type == 'json':
            return json.loads(raw)
        return raw

    @classmethod
    def get_value(cls, key, tenant=None, default=None):
        """
        Resolve ``key`` for ``tenant``, falling back to the global row and
        then to ``default``.
        """
        candidates = []
        if tenant is not None:
            candidates.append(cls.objects.for_tenant(tenant).filter(config_key=key).first())
        candidates.append(cls.objects.global_values().filter(config_key=key).first())
        for config in candidates:
            if config is None:
                continue
            if config.config_value is not None:
                return config.value
            if config.default_value is not None:
                return config.default
        return default
