# apps/parties/models.py
"""
Trading partner models.

- Supplier: Companies the tenant buys stock from
- CustomerProfile: Retail customer record attached to a customer User,
  carrying order statistics and loyalty tier
"""
from decimal import Decimal, ROUND_DOWN

from django.conf import settings
from django.db import models
from django.db.models import Sum
from django.utils import timezone

from shared.managers import TenantQuerySet
from shared.models import TenantMixin, TimestampMixin


class SupplierQuerySet(TenantQuerySet):
    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)

    def with_products(self):
        return self.filter(products__isnull=False).distinct()

    def high_rated(self, min_rating=Decimal('4.0')):
        return self.filter(rating__gte=min_rating)

    def by_country(self, country):
        return self.filter(country=country)


class Supplier(TenantMixin, TimestampMixin):
    """A company the tenant purchases stock from."""
    name = models.CharField(max_length=255)
    contact_person = models.CharField(max_length=255, blank=True)
    email = models.EmailField(blank=True)
    phone_number = models.CharField(max_length=30, blank=True)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    country = models.CharField(max_length=100, blank=True)
    tax_number = models.CharField(max_length=100, blank=True)
    payment_terms = models.CharField(
        max_length=50,
        blank=True,
        help_text="Default payment terms (e.g., 'NET30')"
    )
    credit_limit = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Maximum outstanding purchase balance; blank means unlimited"
    )
    rating = models.DecimalField(
        max_digits=2,
        decimal_places=1,
        null=True,
        blank=True,
        help_text="Supplier rating from 0.0 to 5.0"
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Inactive suppliers are hidden from selections"
    )

    objects = SupplierQuerySet.as_manager()

    class Meta:
        unique_together = [('tenant', 'name')]
        ordering = ['name']
        indexes = [
            models.Index(fields=['tenant', 'is_active']),
        ]

    def __str__(self):
        return self.name

    @property
    def product_count(self):
        return self.products.count()

    @property
    def active_product_count(self):
        return self.products.filter(status='active').count()

    @property
    def purchase_count(self):
        return self.purchases.count()

    @property
    def total_purchase_amount(self):
        """Value of completed purchases."""
        total = self.purchases.filter(status='completed').aggregate(total=Sum('total_amount'))['total']
        return total or Decimal('0.00')

    @property
    def average_purchase_amount(self):
        completed = self.purchases.filter(status='completed')
        count = completed.count()
        if count == 0:
            return Decimal('0.00')
        return (self.total_purchase_amount / count).quantize(Decimal('0.01'))

    @property
    def pending_purchase_amount(self):
        total = self.purchases.filter(
            status__in=['pending', 'confirmed', 'partially_received']
        ).aggregate(total=Sum('total_amount'))['total']
        return total or Decimal('0.00')

    @property
    def outstanding_balance(self):
        total = self.purchases.filter(
            payment_status__in=['pending', 'partially_paid']
        ).exclude(status='cancelled').aggregate(total=Sum('total_amount'))['total']
        return total or Decimal('0.00')

    def is_within_credit_limit(self, additional_amount=Decimal('0')):
        if not self.credit_limit:
            return True
        return self.outstanding_balance + additional_amount <= self.credit_limit

    @property
    def available_credit(self):
        """Remaining credit, or None when the supplier has no limit."""
        if not self.credit_limit:
            return None
        return max(Decimal('0.00'), self.credit_limit - self.outstanding_balance)

    @property
    def rating_stars(self):
        rating = self.rating or Decimal('0')
        full = int(rating)
        half = (rating - full) >= Decimal('0.5')
        stars = '★' * full + ('☆' if half else '')
        return stars + '☆' * (5 - len(stars))

    def update_rating(self, new_rating):
        self.rating = max(Decimal('0'), min(Decimal('5'), Decimal(str(new_rating))))
        self.save(update_fields=['rating', 'updated_at'])

    def recent_purchases(self, limit=10):
        return self.purchases.order_by('-order_date')[:limit]

    def can_be_deleted(self):
        return not self.products.exists() and not self.purchases.exists()

    def activate(self):
        self.is_active = True
        self.save(update_fields=['is_active', 'updated_at'])

    def deactivate(self):
        self.is_active = False
        self.save(update_fields=['is_active', 'updated_at'])


class CustomerProfileQuerySet(TenantQuerySet):
    def by_tier(self, tier):
        return self.filter(customer_tier=tier)

    def with_marketing_consent(self):
        return self.filter(marketing_consent=True)

    def by_country(self, country):
        return self.filter(country=country)

    def high_value(self, min_spent=Decimal('1000')):
        return self.filter(total_spent__gte=min_spent)


class CustomerProfile(TenantMixin, TimestampMixin):
    """
    Retail customer details and loyalty state for a customer User.

    Tier is derived from lifetime spend:
        bronze < 500 <= silver < 2000 <= gold < 5000 <= platinum
    """
    TIER_CHOICES = [
        ('bronze', 'Bronze'),
        ('silver', 'Silver'),
        ('gold', 'Gold'),
        ('platinum', 'Platinum'),
    ]

    # (minimum lifetime spend, tier), highest first
    TIER_THRESHOLDS = [
        (Decimal('5000'), 'platinum'),
        (Decimal('2000'), 'gold'),
        (Decimal('500'), 'silver'),
    ]

    TIER_BENEFITS = {
        'bronze': {'discount_percentage': 0, 'free_shipping_threshold': Decimal('100'), 'points_multiplier': Decimal('1')},
        'silver': {'discount_percentage': 5, 'free_shipping_threshold': Decimal('75'), 'points_multiplier': Decimal('1.2')},
        'gold': {'discount_percentage': 10, 'free_shipping_threshold': Decimal('50'), 'points_multiplier': Decimal('1.5')},
        'platinum': {'discount_percentage': 15, 'free_shipping_threshold': Decimal('0'), 'points_multiplier': Decimal('2')},
    }

    TIER_COLORS = {
        'bronze': '#CD7F32',
        'silver': '#C0C0C0',
        'gold': '#FFD700',
        'platinum': '#E5E4E2',
    }

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='customer_profile'
    )
    phone_number = models.CharField(max_length=30, blank=True)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=20, blank=True)
    preferred_language = models.CharField(max_length=10, default='en')
    loyalty_points = models.PositiveIntegerField(default=0)
    total_orders = models.PositiveIntegerField(default=0)
    total_spent = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    customer_tier = models.CharField(max_length=10, choices=TIER_CHOICES, default='bronze')
    marketing_consent = models.BooleanField(default=False)
    preferred_contact_method = models.CharField(max_length=20, default='email')

    objects = CustomerProfileQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=['tenant', 'customer_tier']),
        ]

    def __str__(self):
        return f"Customer profile: {self.user}"

    @property
    def age(self):
        if not self.date_of_birth:
            return None
        today = timezone.localdate()
        dob = self.date_of_birth
        return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))

    @property
    def full_address(self):
        parts = [self.address, self.city, self.state, self.postal_code, self.country]
        return ', '.join(p for p in parts if p)

    @classmethod
    def tier_for(cls, total_spent):
        for minimum, tier in cls.TIER_THRESHOLDS:
            if total_spent >= minimum:
                return tier
        return 'bronze'

    def update_tier(self):
        new_tier = self.tier_for(self.total_spent)
        if new_tier != self.customer_tier:
            self.customer_tier = new_tier
            self.save(update_fields=['customer_tier', 'updated_at'])

    def add_loyalty_points(self, points):
        self.loyalty_points += points
        self.save(update_fields=['loyalty_points', 'updated_at'])

    def redeem_loyalty_points(self, points):
        """Spend points. Returns False without changes if the balance is too low."""
        if self.loyalty_points < points:
            return False
        self.loyalty_points -= points
        self.save(update_fields=['loyalty_points', 'updated_at'])
        return True

    def update_order_stats(self, order_amount):
        self.total_orders += 1
        self.total_spent += Decimal(order_amount)
        self.save(update_fields=['total_orders', 'total_spent', 'updated_at'])
        self.update_tier()

    def reverse_order_stats(self, order_amount):
        """Undo ``update_order_stats`` for a refunded order."""
        self.total_orders = max(0, self.total_orders - 1)
        self.total_spent = max(Decimal('0.00'), self.total_spent - Decimal(order_amount))
        self.save(update_fields=['total_orders', 'total_spent', 'updated_at'])
        self.update_tier()

    @property
    def tier_benefits(self):
        return self.TIER_BENEFITS.get(self.customer_tier, self.TIER_BENEFITS['bronze'])

    @property
    def discount_percentage(self):
        return self.tier_benefits['discount_percentage']

    @property
    def free_shipping_threshold(self):
        return self.tier_benefits['free_shipping_threshold']

    @property
    def points_multiplier(self):
        return self.tier_benefits['points_multiplier']

    def is_eligible_for_free_shipping(self, order_amount):
        return order_amount >= self.free_shipping_threshold

    def calculate_loyalty_points(self, order_amount):
        """One point per 10 spent, scaled by the tier multiplier."""
        base = (Decimal(order_amount) / 10).to_integral_value(rounding=ROUND_DOWN)
        return int((base * self.points_multiplier).to_integral_value(rounding=ROUND_DOWN))

    @property
    def average_order_value(self):
        if self.total_orders == 0:
            return Decimal('0.00')
        return (self.total_spent / self.total_orders).quantize(Decimal('0.01'))

    @property
    def tier_name(self):
        return self.customer_tier.capitalize()

    @property
    def tier_color(self):
        return self.TIER_COLORS.get(self.customer_tier, self.TIER_COLORS['bronze'])
