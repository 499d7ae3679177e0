# apps/orders/models.py
"""
Order models for purchasing and sales.

Models:
- Purchase: Inbound order to a supplier, received into a warehouse or shop
- PurchaseItem: Line items on purchases
- Order: Outbound customer order fulfilled from a shop
- OrderItem: Line items on orders

Stock only moves through apps.inventory.services.StockService; receiving a
purchase and shipping or refunding an order go through the services in
apps.orders.services, which write the matching InventoryMovement rows.
"""
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import models, transaction
from django.db.models import F, Q, Sum
from django.utils import timezone
from simple_history.models import HistoricalRecords

from shared.managers import TenantQuerySet
from shared.models import TenantMixin, TimestampMixin


TWO_PLACES = Decimal('0.01')


# ─── Exceptions ─────────────────────────────────────────────────────────────────

class PurchaseError(Exception):
    """Base exception for purchase workflow errors."""
    pass


class PurchaseLockedError(PurchaseError):
    """Raised when deleting a purchase or line that has received stock."""
    pass


PAYMENT_STATUS_BADGES = {
    'pending': 'bg-yellow-100 text-yellow-800',
    'paid': 'bg-green-100 text-green-800',
    'partially_paid': 'bg-orange-100 text-orange-800',
    'refunded': 'bg-gray-100 text-gray-800',
}


# ─── Purchases ──────────────────────────────────────────────────────────────────

class PurchaseQuerySet(TenantQuerySet):
    def draft(self):
        return self.filter(status=Purchase.Status.DRAFT)

    def pending(self):
        return self.filter(status=Purchase.Status.PENDING)

    def confirmed(self):
        return self.filter(status=Purchase.Status.CONFIRMED)

    def partially_received(self):
        return self.filter(status=Purchase.Status.PARTIALLY_RECEIVED)

    def completed(self):
        return self.filter(status=Purchase.Status.COMPLETED)

    def cancelled(self):
        return self.filter(status=Purchase.Status.CANCELLED)

    def receivable(self):
        return self.filter(status__in=Purchase.RECEIVABLE_STATUSES)

    def paid(self):
        return self.filter(payment_status='paid')

    def unpaid(self):
        return self.filter(payment_status='pending')

    def partially_paid(self):
        return self.filter(payment_status='partially_paid')

    def by_supplier(self, supplier):
        return self.filter(supplier=supplier)

    def by_warehouse(self, warehouse):
        return self.filter(warehouse=warehouse)

    def by_date_range(self, start, end):
        return self.filter(order_date__range=(start, end))

    def overdue(self, today=None):
        today = today or timezone.localdate()
        return self.receivable().filter(expected_delivery_date__lt=today)

    def recent(self, days=30):
        return self.filter(order_date__gte=timezone.localdate() - timedelta(days=days))


class Purchase(TenantMixin, TimestampMixin):
    """
    Inbound order to a supplier.

    Status flow:
        draft/pending -> confirmed -> partially_received -> completed
        draft/pending/confirmed -> cancelled

    Once confirmed, status follows the received quantities of the lines and
    is recomputed by update_status() after every receipt.
    """

    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        PENDING = 'pending', 'Pending'
        CONFIRMED = 'confirmed', 'Confirmed'
        PARTIALLY_RECEIVED = 'partially_received', 'Partially Received'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'

    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('partially_paid', 'Partially Paid'),
        ('paid', 'Paid'),
    ]

    RECEIVABLE_STATUSES = (Status.CONFIRMED, Status.PARTIALLY_RECEIVED)
    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)

    STATUS_BADGES = {
        'draft': 'bg-gray-100 text-gray-800',
        'pending': 'bg-yellow-100 text-yellow-800',
        'confirmed': 'bg-blue-100 text-blue-800',
        'partially_received': 'bg-orange-100 text-orange-800',
        'completed': 'bg-green-100 text-green-800',
        'cancelled': 'bg-red-100 text-red-800',
    }

    purchase_number = models.CharField(
        max_length=50,
        help_text="Purchase number (unique per tenant)"
    )
    supplier = models.ForeignKey(
        'parties.Supplier',
        on_delete=models.RESTRICT,
        related_name='purchases',
        help_text="Supplier providing the goods"
    )
    warehouse = models.ForeignKey(
        'warehousing.Warehouse',
        on_delete=models.RESTRICT,
        null=True,
        blank=True,
        related_name='purchases',
        help_text="Warehouse receiving the goods"
    )
    shop = models.ForeignKey(
        'warehousing.Shop',
        on_delete=models.RESTRICT,
        null=True,
        blank=True,
        related_name='purchases',
        help_text="Shop receiving the goods when there is no warehouse"
    )
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Sum of line totals"
    )
    status = models.CharField(
        max_length=30,
        choices=Status.choices,
        default=Status.PENDING,
        help_text="Current purchase status"
    )
    payment_status = models.CharField(
        max_length=30,
        choices=PAYMENT_STATUS_CHOICES,
        default='pending'
    )
    order_date = models.DateField(default=timezone.localdate)
    expected_delivery_date = models.DateField(null=True, blank=True)
    actual_delivery_date = models.DateField(
        null=True,
        blank=True,
        help_text="Set when the last line is fully received"
    )
    payment_terms = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_purchases'
    )

    history = HistoricalRecords()

    objects = PurchaseQuerySet.as_manager()

    class Meta:
        unique_together = [('tenant', 'purchase_number')]
        ordering = ['-order_date', '-id']
        indexes = [
            models.Index(fields=['tenant', 'supplier']),
            models.Index(fields=['tenant', 'status']),
            models.Index(fields=['order_date']),
        ]

    def __str__(self):
        return self.purchase_number

    def save(self, *args, **kwargs):
        if not self.purchase_number:
            self.purchase_number = self.generate_purchase_number(self.tenant)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.has_received_items:
            raise PurchaseLockedError(
                f"Purchase {self.purchase_number} has received items and cannot be deleted"
            )
        return super().delete(*args, **kwargs)

    @staticmethod
    def generate_purchase_number(tenant):
        from apps.tenants.models import get_next_sequence_number
        return get_next_sequence_number(tenant, 'PO')

    # ----- status -----

    @property
    def is_draft(self):
        return self.status == self.Status.DRAFT

    @property
    def is_pending(self):
        return self.status == self.Status.PENDING

    @property
    def is_confirmed(self):
        return self.status == self.Status.CONFIRMED

    @property
    def is_partially_received(self):
        return self.status == self.Status.PARTIALLY_RECEIVED

    @property
    def is_completed(self):
        return self.status == self.Status.COMPLETED

    @property
    def is_cancelled(self):
        return self.status == self.Status.CANCELLED

    @property
    def is_paid(self):
        return self.payment_status == 'paid'

    @property
    def is_unpaid(self):
        return self.payment_status == 'pending'

    @property
    def is_partially_paid(self):
        return self.payment_status == 'partially_paid'

    def can_be_confirmed(self):
        return self.status in (self.Status.DRAFT, self.Status.PENDING)

    def can_be_cancelled(self):
        return self.status in (self.Status.DRAFT, self.Status.PENDING, self.Status.CONFIRMED)

    def can_receive_items(self):
        return self.status in self.RECEIVABLE_STATUSES

    def is_overdue(self, today=None):
        today = today or timezone.localdate()
        return (
            self.expected_delivery_date is not None
            and self.expected_delivery_date < today
            and self.can_receive_items()
        )

    def update_status(self):
        """
        Recompute status from line quantities and persist it.

        - Nothing received: back to confirmed if it was partially received
        - Everything received: completed, with today's delivery date
        - Otherwise: partially received
        """
        totals = self.items.aggregate(ordered=Sum('quantity_ordered'), received=Sum('quantity_received'))
        ordered = totals['ordered'] or 0
        received = totals['received'] or 0

        if received == 0:
            if self.status == self.Status.PARTIALLY_RECEIVED:
                self.status = self.Status.CONFIRMED
        elif received >= ordered:
            self.status = self.Status.COMPLETED
            self.actual_delivery_date = timezone.localdate()
        else:
            self.status = self.Status.PARTIALLY_RECEIVED

        self.save(update_fields=['status', 'actual_delivery_date', 'updated_at'])
        return self.status

    # ----- quantities -----

    @property
    def total_item_count(self):
        return self.items.aggregate(total=Sum('quantity_ordered'))['total'] or 0

    @property
    def total_received_count(self):
        return self.items.aggregate(total=Sum('quantity_received'))['total'] or 0

    @property
    def unique_item_count(self):
        return self.items.count()

    @property
    def has_received_items(self):
        if self.pk is None:
            return False
        return self.items.filter(quantity_received__gt=0).exists()

    @property
    def receival_percentage(self):
        ordered = self.total_item_count
        if ordered == 0:
            return 0.0
        return round(self.total_received_count / ordered * 100, 2)

    def days_until_delivery(self, today=None):
        if self.expected_delivery_date is None:
            return 0
        today = today or timezone.localdate()
        return (self.expected_delivery_date - today).days

    def days_overdue(self, today=None):
        today = today or timezone.localdate()
        if not self.is_overdue(today):
            return 0
        return (today - self.expected_delivery_date).days

    @property
    def location_name(self):
        if self.warehouse_id:
            return self.warehouse.name
        if self.shop_id:
            return self.shop.name
        return 'No Location'

    @property
    def status_badge_class(self):
        return self.STATUS_BADGES.get(self.status, self.STATUS_BADGES['draft'])

    @property
    def payment_status_badge_class(self):
        return PAYMENT_STATUS_BADGES.get(self.payment_status, PAYMENT_STATUS_BADGES['pending'])

    # ----- totals and payment -----

    def calculate_total(self):
        total = self.items.aggregate(total=Sum(F('quantity_ordered') * F('unit_cost')))['total']
        self.total_amount = (total or Decimal('0.00')).quantize(TWO_PLACES)
        self.save(update_fields=['total_amount', 'updated_at'])
        return self.total_amount

    def refresh_from_lines(self):
        """
        Recompute the total, and the status while the purchase is receivable.

        Call after any line is added, removed or edited. Draft, pending and
        terminal purchases keep their status.
        """
        self.calculate_total()
        if self.can_receive_items():
            self.update_status()

    def mark_as_paid(self):
        self.payment_status = 'paid'
        self.save(update_fields=['payment_status', 'updated_at'])

    def mark_as_partially_paid(self):
        self.payment_status = 'partially_paid'
        self.save(update_fields=['payment_status', 'updated_at'])

    # ----- workflow (delegates to services) -----

    def confirm(self, user=None):
        from .services import PurchaseService
        return PurchaseService(self.tenant, user).confirm(self)

    def cancel(self, reason=None, user=None):
        from .services import PurchaseService
        return PurchaseService(self.tenant, user).cancel(self, reason)

    def add_item(self, product, quantity, unit_cost, variant=None):
        from .services import PurchaseService
        return PurchaseService(self.tenant).add_item(self, product, quantity, unit_cost, variant=variant)

    def remove_item(self, item_id):
        from .services import PurchaseService
        return PurchaseService(self.tenant).remove_item(self, item_id)

    def receive_item(self, item_id, quantity, user=None):
        from .services import PurchaseReceivingService
        return PurchaseReceivingService(self.tenant, user).receive_item(self, item_id, quantity)

    def receive_all_items(self, user=None):
        from .services import PurchaseReceivingService
        return PurchaseReceivingService(self.tenant, user).receive_all_items(self)

    def movements(self):
        from apps.inventory.services import movements_for_reference
        return movements_for_reference(self.tenant, 'purchase', self.pk)


class PurchaseItemQuerySet(TenantQuerySet):
    def for_purchase(self, purchase):
        return self.filter(purchase=purchase)

    def for_product(self, product):
        return self.filter(product=product)

    def with_variant(self):
        return self.filter(variant__isnull=False)

    def without_variant(self):
        return self.filter(variant__isnull=True)

    def fully_received(self):
        return self.filter(quantity_received__gte=F('quantity_ordered'))

    def partially_received(self):
        return self.filter(quantity_received__gt=0, quantity_received__lt=F('quantity_ordered'))

    def not_received(self):
        return self.filter(quantity_received=0)

    def pending(self):
        return self.filter(quantity_received__lt=F('quantity_ordered'))


class PurchaseItem(TenantMixin, TimestampMixin):
    """
    Line item on a purchase.

    ``quantity_received`` only grows through PurchaseReceivingService and is
    held between 0 and ``quantity_ordered`` by a check constraint.
    """
    purchase = models.ForeignKey(
        Purchase,
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Parent purchase"
    )
    product = models.ForeignKey(
        'catalog.Product',
        on_delete=models.RESTRICT,
        related_name='purchase_items',
        help_text="Product being purchased"
    )
    variant = models.ForeignKey(
        'catalog.ProductVariant',
        on_delete=models.RESTRICT,
        null=True,
        blank=True,
        related_name='purchase_items',
        help_text="Variant being purchased; its counter receives the stock"
    )
    quantity_ordered = models.PositiveIntegerField(help_text="Quantity ordered")
    quantity_received = models.PositiveIntegerField(
        default=0,
        help_text="Quantity received so far (updated on each receive)"
    )
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, help_text="Cost per unit")
    total_cost = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="quantity_ordered x unit_cost, recomputed on save"
    )

    objects = PurchaseItemQuerySet.as_manager()

    class Meta:
        ordering = ['id']
        indexes = [
            models.Index(fields=['tenant', 'purchase']),
            models.Index(fields=['tenant', 'product']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity_received__gte=0) & Q(quantity_received__lte=F('quantity_ordered')),
                name='purchase_item_received_within_ordered',
            ),
        ]

    def __str__(self):
        return f"{self.purchase.purchase_number}: {self.sku} x {self.quantity_ordered}"

    def save(self, *args, **kwargs):
        self.total_cost = (Decimal(self.quantity_ordered) * Decimal(self.unit_cost)).quantize(TWO_PLACES)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'total_cost' not in update_fields:
            kwargs['update_fields'] = [*update_fields, 'total_cost']
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.quantity_received > 0:
            raise PurchaseLockedError(f"Purchase item {self.pk} has received stock and cannot be deleted")
        return super().delete(*args, **kwargs)

    @property
    def has_variant(self):
        return self.variant_id is not None

    @property
    def stock_target(self):
        """The row whose stock counter this line moves."""
        return self.variant if self.has_variant else self.product

    @property
    def is_fully_received(self):
        return self.quantity_received >= self.quantity_ordered

    @property
    def is_partially_received(self):
        return 0 < self.quantity_received < self.quantity_ordered

    @property
    def is_not_received(self):
        return self.quantity_received == 0

    @property
    def remaining_quantity(self):
        return max(0, self.quantity_ordered - self.quantity_received)

    @property
    def receival_percentage(self):
        if self.quantity_ordered == 0:
            return 0.0
        return round(self.quantity_received / self.quantity_ordered * 100, 2)

    @property
    def display_name(self):
        if self.has_variant:
            return self.variant.full_name
        return self.product.name

    @property
    def sku(self):
        if self.has_variant:
            return self.variant.sku
        return self.product.sku

    @property
    def total_received_cost(self):
        return self.quantity_received * self.unit_cost

    @property
    def remaining_cost(self):
        return self.remaining_quantity * self.unit_cost

    @property
    def status_label(self):
        if self.is_fully_received:
            return 'Fully Received'
        if self.is_partially_received:
            return 'Partially Received'
        return 'Not Received'

    @property
    def status_color(self):
        if self.is_fully_received:
            return 'green'
        if self.is_partially_received:
            return 'orange'
        return 'gray'

    @property
    def current_stock(self):
        return self.stock_target.stock_quantity

    def can_receive(self, quantity=None):
        if self.is_fully_received:
            return False
        return quantity is None or quantity <= self.remaining_quantity

    def update_quantity_ordered(self, new_quantity):
        """Change the ordered quantity, never below what has been received."""
        with transaction.atomic():
            purchase = Purchase.objects.select_for_update().get(pk=self.purchase_id)
            received = type(self).objects.filter(pk=self.pk).values_list('quantity_received', flat=True).get()
            self.quantity_received = received
            self.quantity_ordered = max(new_quantity, received)
            self.save(update_fields=['quantity_ordered', 'updated_at'])
            purchase.refresh_from_lines()
        self.purchase = purchase

    def update_unit_cost(self, new_cost):
        with transaction.atomic():
            purchase = Purchase.objects.select_for_update().get(pk=self.purchase_id)
            self.unit_cost = Decimal(new_cost)
            self.save(update_fields=['unit_cost', 'updated_at'])
            purchase.refresh_from_lines()
        self.purchase = purchase


# ─── Sales orders ───────────────────────────────────────────────────────────────

class OrderQuerySet(TenantQuerySet):
    def pending(self):
        return self.filter(status=Order.Status.PENDING)

    def confirmed(self):
        return self.filter(status=Order.Status.CONFIRMED)

    def processing(self):
        return self.filter(status=Order.Status.PROCESSING)

    def shipped(self):
        return self.filter(status=Order.Status.SHIPPED)

    def delivered(self):
        return self.filter(status=Order.Status.DELIVERED)

    def cancelled(self):
        return self.filter(status=Order.Status.CANCELLED)

    def refunded(self):
        return self.filter(status=Order.Status.REFUNDED)

    def paid(self):
        return self.filter(payment_status='paid')

    def unpaid(self):
        return self.filter(payment_status='pending')

    def partially_paid(self):
        return self.filter(payment_status='partially_paid')

    def by_customer(self, customer):
        return self.filter(customer=customer)

    def by_shop(self, shop):
        return self.filter(shop=shop)

    def by_date_range(self, start, end):
        return self.filter(order_date__range=(start, end))

    def recent(self, days=30):
        return self.filter(order_date__gte=timezone.now() - timedelta(days=days))


class Order(TenantMixin, TimestampMixin):
    """
    Customer order fulfilled from a shop.

    Status flow:
        pending -> confirmed -> processing -> shipped -> delivered
        pending/confirmed -> cancelled
        shipped/delivered -> refunded
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        CONFIRMED = 'confirmed', 'Confirmed'
        PROCESSING = 'processing', 'Processing'
        SHIPPED = 'shipped', 'Shipped'
        DELIVERED = 'delivered', 'Delivered'
        CANCELLED = 'cancelled', 'Cancelled'
        REFUNDED = 'refunded', 'Refunded'

    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('partially_paid', 'Partially Paid'),
        ('paid', 'Paid'),
        ('refunded', 'Refunded'),
    ]

    STATUS_BADGES = {
        'pending': 'bg-yellow-100 text-yellow-800',
        'confirmed': 'bg-blue-100 text-blue-800',
        'processing': 'bg-purple-100 text-purple-800',
        'shipped': 'bg-orange-100 text-orange-800',
        'delivered': 'bg-green-100 text-green-800',
        'cancelled': 'bg-red-100 text-red-800',
        'refunded': 'bg-gray-100 text-gray-800',
    }

    order_number = models.CharField(max_length=50, help_text="Order number (unique per tenant)")
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.RESTRICT,
        related_name='orders',
        help_text="Customer placing the order"
    )
    shop = models.ForeignKey(
        'warehousing.Shop',
        on_delete=models.RESTRICT,
        related_name='orders'
    )
    warehouse = models.ForeignKey(
        'warehousing.Warehouse',
        on_delete=models.RESTRICT,
        null=True,
        blank=True,
        related_name='orders'
    )
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    shipping_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=30, choices=Status.choices, default=Status.PENDING)
    payment_status = models.CharField(max_length=30, choices=PAYMENT_STATUS_CHOICES, default='pending')
    payment_method = models.CharField(max_length=50, blank=True)
    shipping_address = models.TextField(blank=True)
    shipping_city = models.CharField(max_length=100, blank=True)
    shipping_postal_code = models.CharField(max_length=20, blank=True)
    shipping_method = models.CharField(max_length=50, blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)
    order_date = models.DateTimeField(default=timezone.now)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    customer_notes = models.TextField(blank=True)
    internal_notes = models.TextField(blank=True)

    history = HistoricalRecords()

    objects = OrderQuerySet.as_manager()

    class Meta:
        unique_together = [('tenant', 'order_number')]
        ordering = ['-order_date', '-id']
        indexes = [
            models.Index(fields=['tenant', 'customer']),
            models.Index(fields=['tenant', 'status']),
            models.Index(fields=['order_date']),
        ]

    def __str__(self):
        return self.order_number

    def save(self, *args, **kwargs):
        if not self.order_number:
            from apps.tenants.models import get_next_sequence_number
            self.order_number = get_next_sequence_number(self.tenant, 'ORD')
        super().save(*args, **kwargs)

    # ----- status -----

    @property
    def is_pending(self):
        return self.status == self.Status.PENDING

    @property
    def is_confirmed(self):
        return self.status == self.Status.CONFIRMED

    @property
    def is_processing(self):
        return self.status == self.Status.PROCESSING

    @property
    def is_shipped(self):
        return self.status == self.Status.SHIPPED

    @property
    def is_delivered(self):
        return self.status == self.Status.DELIVERED

    @property
    def is_cancelled(self):
        return self.status == self.Status.CANCELLED

    @property
    def is_refunded(self):
        return self.status == self.Status.REFUNDED

    @property
    def is_paid(self):
        return self.payment_status == 'paid'

    @property
    def is_unpaid(self):
        return self.payment_status == 'pending'

    def can_be_cancelled(self):
        return self.status in (self.Status.PENDING, self.Status.CONFIRMED)

    def can_be_shipped(self):
        return self.status in (self.Status.CONFIRMED, self.Status.PROCESSING)

    def can_be_delivered(self):
        return self.status == self.Status.SHIPPED

    def can_be_refunded(self):
        return self.status in (self.Status.SHIPPED, self.Status.DELIVERED)

    # ----- amounts -----

    @property
    def net_amount(self):
        return self.subtotal - self.discount_amount

    @property
    def total_item_count(self):
        return self.items.aggregate(total=Sum('quantity'))['total'] or 0

    @property
    def unique_item_count(self):
        return self.items.count()

    @property
    def full_shipping_address(self):
        parts = [self.shipping_address, self.shipping_city, self.shipping_postal_code]
        return ', '.join(part for part in parts if part)

    def calculate_totals(self):
        """Recompute subtotal, discount, tax and total from the items."""
        items = list(self.items.all())
        self.subtotal = sum((item.total_price for item in items), Decimal('0.00'))
        self.discount_amount = sum(
            (item.discount_amount * item.quantity for item in items), Decimal('0.00'))
        self.tax_amount = sum((item.tax_amount for item in items), Decimal('0.00'))
        # Line totals are already net of line discounts
        self.total_amount = self.subtotal + self.tax_amount + self.shipping_amount
        self.save(update_fields=['subtotal', 'discount_amount', 'tax_amount', 'total_amount', 'updated_at'])
        return self.total_amount

    @property
    def status_badge_class(self):
        return self.STATUS_BADGES.get(self.status, self.STATUS_BADGES['pending'])

    @property
    def payment_status_badge_class(self):
        return PAYMENT_STATUS_BADGES.get(self.payment_status, PAYMENT_STATUS_BADGES['pending'])

    def days_in_current_status(self, now=None):
        now = now or timezone.now()
        since = {
            self.Status.CONFIRMED: self.confirmed_at,
            self.Status.SHIPPED: self.shipped_at,
            self.Status.DELIVERED: self.delivered_at,
        }.get(self.status) or self.order_date
        return (now - since).days if since else 0

    # ----- workflow (delegates to OrderService) -----

    def _service(self, user=None):
        from .services import OrderService
        return OrderService(self.tenant, user)

    def confirm(self, user=None):
        return self._service(user).confirm(self)

    def start_processing(self, user=None):
        return self._service(user).start_processing(self)

    def ship(self, tracking_number=None, user=None):
        return self._service(user).ship(self, tracking_number)

    def deliver(self, user=None):
        return self._service(user).deliver(self)

    def cancel(self, reason=None, user=None):
        return self._service(user).cancel(self, reason)

    def refund(self, user=None):
        return self._service(user).refund(self)

    def mark_as_paid(self, payment_method=None):
        self.payment_status = 'paid'
        if payment_method:
            self.payment_method = payment_method
        self.save(update_fields=['payment_status', 'payment_method', 'updated_at'])


class OrderItemQuerySet(TenantQuerySet):
    def for_order(self, order):
        return self.filter(order=order)

    def for_product(self, product):
        return self.filter(product=product)

    def with_variant(self):
        return self.filter(variant__isnull=False)

    def without_variant(self):
        return self.filter(variant__isnull=True)


class OrderItem(TenantMixin, TimestampMixin):
    """
    Line item on an order.

    ``total_price`` is (unit_price - discount_amount) x quantity.
    """
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(
        'catalog.Product',
        on_delete=models.RESTRICT,
        related_name='order_items'
    )
    variant = models.ForeignKey(
        'catalog.ProductVariant',
        on_delete=models.RESTRICT,
        null=True,
        blank=True,
        related_name='order_items'
    )
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Discount per unit"
    )
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    objects = OrderItemQuerySet.as_manager()

    class Meta:
        ordering = ['id']
        indexes = [
            models.Index(fields=['tenant', 'order']),
            models.Index(fields=['tenant', 'product']),
        ]

    def __str__(self):
        return f"{self.order.order_number}: {self.sku} x {self.quantity}"

    def save(self, *args, **kwargs):
        self.total_price = self._line_total()
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'total_price' not in update_fields:
            kwargs['update_fields'] = [*update_fields, 'total_price']
        super().save(*args, **kwargs)

    def _line_total(self):
        return ((Decimal(self.unit_price) - Decimal(self.discount_amount)) * self.quantity).quantize(TWO_PLACES)

    @property
    def has_variant(self):
        return self.variant_id is not None

    @property
    def stock_target(self):
        return self.variant if self.has_variant else self.product

    @property
    def display_name(self):
        if self.has_variant:
            return self.variant.full_name
        return self.product.name

    @property
    def sku(self):
        if self.has_variant:
            return self.variant.sku
        return self.product.sku

    @property
    def net_price(self):
        return self.unit_price - self.discount_amount

    @property
    def gross_total(self):
        return self.unit_price * self.quantity

    @property
    def total_with_tax(self):
        return self.total_price + self.tax_amount

    @property
    def discount_percentage(self):
        if self.unit_price <= 0 or self.discount_amount <= 0:
            return 0.0
        return round(float(self.discount_amount / self.unit_price * 100), 2)

    @property
    def tax_percentage(self):
        if self.total_price <= 0 or self.tax_amount <= 0:
            return 0.0
        return round(float(self.tax_amount / self.total_price * 100), 2)

    @property
    def weight(self):
        unit = self.variant.effective_weight if self.has_variant else self.product.weight
        return (unit or Decimal('0')) * self.quantity

    def can_be_returned(self):
        return self.order.is_delivered

    def calculate_tax(self, tax_rate):
        self.tax_amount = (self.total_price * Decimal(tax_rate) / 100).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        self.save(update_fields=['tax_amount', 'updated_at'])

    def apply_discount(self, discount_amount):
        """Per-unit discount, capped at the unit price."""
        self.discount_amount = min(Decimal(discount_amount), self.unit_price)
        self.save(update_fields=['discount_amount', 'updated_at'])

    def apply_discount_percentage(self, percentage):
        amount = (self.unit_price * Decimal(percentage) / 100).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        self.apply_discount(amount)

    def update_quantity(self, new_quantity):
        self.quantity = new_quantity
        self.save(update_fields=['quantity', 'updated_at'])

    def update_unit_price(self, new_price):
        self.unit_price = Decimal(new_price)
        self.save(update_fields=['unit_price', 'updated_at'])
