# apps/inventory/models.py
"""
Inventory ledger models.

Models:
- InventoryMovement: Append-only record of every stock change

Value types:
- MovementType / ReferenceType: Choices for the ledger columns
- MovementReference: What a movement points at (order, purchase,
  manual adjustment or the movement it reverses)

Every movement stores the stock counter before the change, the signed change
and the counter after it. quantity_after == quantity_before + quantity_change
is computed at creation, enforced by a check constraint, and rows are never
updated or deleted afterwards; a mistake is undone by writing a compensating
movement.

Stock counters themselves live on catalog.Product / catalog.ProductVariant and
are moved together with the ledger by apps.inventory.services.StockService.
"""
from dataclasses import dataclass
from typing import Optional

from django.apps import apps
from django.conf import settings
from django.db import models
from django.db.models import F

from shared.managers import TenantQuerySet
from shared.models import TenantMixin


# ─── Exceptions ─────────────────────────────────────────────────────────────────

class InventoryError(Exception):
    """Base exception for inventory ledger errors."""
    pass


class ImmutableMovementError(InventoryError):
    """Raised when code tries to change or delete a recorded movement."""
    pass


# ─── Choices ────────────────────────────────────────────────────────────────────

class MovementType(models.TextChoices):
    PURCHASE = 'purchase', 'Purchase'
    SALE = 'sale', 'Sale'
    RETURN = 'return', 'Return'
    ADJUSTMENT = 'adjustment', 'Adjustment'
    TRANSFER = 'transfer', 'Transfer'
    DAMAGED = 'damaged', 'Damaged'
    EXPIRED = 'expired', 'Expired'


class ReferenceType(models.TextChoices):
    ORDER = 'order', 'Order'
    PURCHASE = 'purchase', 'Purchase'
    MANUAL_ADJUSTMENT = 'manual_adjustment', 'Manual Adjustment'
    REVERSAL = 'reversal', 'Reversal'


MOVEMENT_TYPE_ICONS = {
    MovementType.PURCHASE: 'plus-circle',
    MovementType.SALE: 'minus-circle',
    MovementType.RETURN: 'arrow-left-circle',
    MovementType.ADJUSTMENT: 'edit',
    MovementType.TRANSFER: 'arrow-right-circle',
    MovementType.DAMAGED: 'x-circle',
    MovementType.EXPIRED: 'clock',
}

MOVEMENT_TYPE_COLORS = {
    MovementType.PURCHASE: 'green',
    MovementType.SALE: 'blue',
    MovementType.RETURN: 'orange',
    MovementType.ADJUSTMENT: 'purple',
    MovementType.TRANSFER: 'indigo',
    MovementType.DAMAGED: 'red',
    MovementType.EXPIRED: 'gray',
}


# ─── Reference value ───────────────────────────────────────────────────────────

# Reference kinds that must carry an id, and those that must not
_REFERENCES_WITH_ID = {ReferenceType.ORDER, ReferenceType.PURCHASE, ReferenceType.REVERSAL}


@dataclass(frozen=True)
class MovementReference:
    """
    What a movement points at.

    Build with the constructors rather than directly:

        MovementReference.purchase(purchase.pk)
        MovementReference.order(order.pk)
        MovementReference.manual_adjustment()
        MovementReference.reversal(original_movement.pk)
    """
    kind: ReferenceType
    id: Optional[int] = None

    def __post_init__(self):
        kind = ReferenceType(self.kind)
        object.__setattr__(self, 'kind', kind)
        if kind in _REFERENCES_WITH_ID and self.id is None:
            raise ValueError(f"{kind.label} reference requires an id")
        if kind not in _REFERENCES_WITH_ID and self.id is not None:
            raise ValueError(f"{kind.label} reference does not take an id")

    @classmethod
    def order(cls, order_id):
        return cls(ReferenceType.ORDER, order_id)

    @classmethod
    def purchase(cls, purchase_id):
        return cls(ReferenceType.PURCHASE, purchase_id)

    @classmethod
    def manual_adjustment(cls):
        return cls(ReferenceType.MANUAL_ADJUSTMENT)

    @classmethod
    def reversal(cls, movement_id):
        return cls(ReferenceType.REVERSAL, movement_id)

    def as_fields(self):
        return {'reference_type': self.kind.value, 'reference_id': self.id}


# ─── Ledger ─────────────────────────────────────────────────────────────────────

class InventoryMovementQuerySet(TenantQuerySet):
    def for_product(self, product):
        return self.filter(product=product)

    def for_variant(self, variant):
        return self.filter(variant=variant)

    def for_warehouse(self, warehouse):
        return self.filter(warehouse=warehouse)

    def for_shop(self, shop):
        return self.filter(shop=shop)

    def by_type(self, movement_type):
        return self.filter(movement_type=movement_type)

    def inbound(self):
        return self.filter(quantity_change__gt=0)

    def outbound(self):
        return self.filter(quantity_change__lt=0)

    def purchases(self):
        return self.by_type(MovementType.PURCHASE)

    def sales(self):
        return self.by_type(MovementType.SALE)

    def returns(self):
        return self.by_type(MovementType.RETURN)

    def adjustments(self):
        return self.by_type(MovementType.ADJUSTMENT)

    def transfers(self):
        return self.by_type(MovementType.TRANSFER)

    def damaged(self):
        return self.by_type(MovementType.DAMAGED)

    def expired(self):
        return self.by_type(MovementType.EXPIRED)

    def by_date_range(self, start, end):
        return self.created_between(start, end)

    def recent(self, days=30):
        return self.created_recently(days)

    def for_reference(self, reference):
        return self.filter(**reference.as_fields())

    def update(self, **kwargs):
        raise ImmutableMovementError("Inventory movements cannot be updated")

    def delete(self):
        raise ImmutableMovementError("Inventory movements cannot be deleted")


class InventoryMovement(TenantMixin):
    """
    One stock change, as an immutable ledger row.

    Movement types:
    - purchase: Goods received against a purchase (+)
    - sale: Goods shipped against an order (-)
    - return: Goods returned from an order (+)
    - adjustment: Manual correction or its reversal (+/-)
    - transfer: Moved between locations (+/-)
    - damaged / expired: Written off (-)
    """
    product = models.ForeignKey(
        'catalog.Product',
        on_delete=models.RESTRICT,
        related_name='inventory_movements',
        help_text="Product affected"
    )
    variant = models.ForeignKey(
        'catalog.ProductVariant',
        on_delete=models.RESTRICT,
        null=True,
        blank=True,
        related_name='inventory_movements',
        help_text="Variant affected; the variant's counter moved instead of the product's"
    )
    movement_type = models.CharField(
        max_length=20,
        choices=MovementType.choices,
        help_text="Type of inventory movement"
    )
    quantity_before = models.IntegerField(help_text="Stock counter before this movement")
    quantity_change = models.IntegerField(
        help_text="Quantity changed (positive=increase, negative=decrease)"
    )
    quantity_after = models.IntegerField(help_text="Stock counter after this movement")
    reference_type = models.CharField(
        max_length=20,
        choices=ReferenceType.choices,
        blank=True,
        help_text="Type of reference document"
    )
    reference_id = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="ID of reference document or reversed movement"
    )
    reason = models.CharField(max_length=255, blank=True)
    warehouse = models.ForeignKey(
        'warehousing.Warehouse',
        on_delete=models.RESTRICT,
        null=True,
        blank=True,
        related_name='inventory_movements'
    )
    shop = models.ForeignKey(
        'warehousing.Shop',
        on_delete=models.RESTRICT,
        null=True,
        blank=True,
        related_name='inventory_movements'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.RESTRICT,
        null=True,
        blank=True,
        related_name='inventory_movements',
        help_text="User who recorded the movement"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = InventoryMovementQuerySet.as_manager()

    class Meta:
        verbose_name = "Inventory Movement"
        verbose_name_plural = "Inventory Movements"
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['tenant', 'product']),
            models.Index(fields=['tenant', 'movement_type']),
            models.Index(fields=['reference_type', 'reference_id']),
            models.Index(fields=['created_at']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity_after=F('quantity_before') + F('quantity_change')),
                name='movement_after_equals_before_plus_change',
            ),
        ]

    def __str__(self):
        sign = '+' if self.quantity_change > 0 else ''
        return f"{self.movement_type}: {self.sku} {sign}{self.quantity_change}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableMovementError(f"Inventory movement {self.pk} is immutable")
        self.quantity_after = self.quantity_before + self.quantity_change
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableMovementError(f"Inventory movement {self.pk} cannot be deleted")

    # ----- reference -----

    @property
    def reference(self):
        """The movement's MovementReference, or None when it has none."""
        if not self.reference_type:
            return None
        return MovementReference(ReferenceType(self.reference_type), self.reference_id)

    @property
    def reference_object(self):
        """The Order or Purchase this movement points at, if it still exists."""
        model_name = {
            ReferenceType.ORDER: 'Order',
            ReferenceType.PURCHASE: 'Purchase',
        }.get(self.reference_type)
        if model_name is None or self.reference_id is None:
            return None
        model = apps.get_model('orders', model_name)
        return model.objects.filter(tenant_id=self.tenant_id, pk=self.reference_id).first()

    @property
    def reference_number(self):
        if self.reference_type == ReferenceType.REVERSAL:
            return f"#{self.reference_id}"
        obj = self.reference_object
        if obj is None:
            return None
        if self.reference_type == ReferenceType.ORDER:
            return obj.order_number
        return obj.purchase_number

    # ----- display -----

    @property
    def is_inbound(self):
        return self.quantity_change > 0

    @property
    def is_outbound(self):
        return self.quantity_change < 0

    @property
    def has_variant(self):
        return self.variant_id is not None

    @property
    def absolute_quantity(self):
        return abs(self.quantity_change)

    @property
    def direction(self):
        return 'in' if self.is_inbound else 'out'

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
    def location_name(self):
        if self.warehouse_id:
            return self.warehouse.name
        if self.shop_id:
            return self.shop.name
        return 'No Location'

    @property
    def movement_type_label(self):
        try:
            return MovementType(self.movement_type).label
        except ValueError:
            return self.movement_type.replace('_', ' ').title()

    @property
    def movement_type_icon(self):
        return MOVEMENT_TYPE_ICONS.get(self.movement_type, 'circle')

    @property
    def movement_type_color(self):
        return MOVEMENT_TYPE_COLORS.get(self.movement_type, 'gray')

    # ----- reversal -----

    @property
    def is_reversed(self):
        return InventoryMovement.objects.filter(
            reference_type=ReferenceType.REVERSAL, reference_id=self.pk,
        ).exists()

    @property
    def can_be_reversed(self):
        """Only manual adjustments can be reversed, and only once."""
        return (
            self.movement_type == MovementType.ADJUSTMENT
            and self.reference_type == ReferenceType.MANUAL_ADJUSTMENT
            and not self.is_reversed
        )

    def reverse(self, reason='Reversed movement', user=None):
        """
        Write a compensating adjustment and move the stock counter back.

        Returns the new movement, or None (writing nothing) when this movement
        cannot be reversed.
        """
        from .services import StockService
        return StockService(self.tenant, user).reverse_movement(self, reason=reason)

    # ----- recorders -----

    @classmethod
    def record(cls, *, tenant, product, movement_type, quantity_before, quantity_change,
               variant=None, reference=None, reason='', warehouse=None, shop=None, user=None):
        """Insert one ledger row; quantity_after is derived from before + change."""
        fields = reference.as_fields() if reference is not None else {}
        return cls.objects.create(
            tenant=tenant,
            product=product,
            variant=variant,
            movement_type=movement_type,
            quantity_before=quantity_before,
            quantity_change=quantity_change,
            quantity_after=quantity_before + quantity_change,
            reason=reason,
            warehouse=warehouse,
            shop=shop,
            created_by=user,
            **fields,
        )

    @classmethod
    def record_purchase(cls, *, tenant, product, quantity, quantity_before, purchase_id,
                        variant=None, warehouse=None, shop=None, user=None):
        return cls.record(
            tenant=tenant, product=product, variant=variant,
            movement_type=MovementType.PURCHASE,
            quantity_before=quantity_before,
            quantity_change=abs(quantity),
            reference=MovementReference.purchase(purchase_id),
            reason='Purchase received',
            warehouse=warehouse, shop=shop, user=user,
        )

    @classmethod
    def record_sale(cls, *, tenant, product, quantity, quantity_before, order_id,
                    variant=None, warehouse=None, shop=None, user=None):
        """Sales always go in as a negative change, whatever the sign of ``quantity``."""
        return cls.record(
            tenant=tenant, product=product, variant=variant,
            movement_type=MovementType.SALE,
            quantity_before=quantity_before,
            quantity_change=-abs(quantity),
            reference=MovementReference.order(order_id),
            reason='Sale order',
            warehouse=warehouse, shop=shop, user=user,
        )

    @classmethod
    def record_return(cls, *, tenant, product, quantity, quantity_before, order_id,
                      variant=None, warehouse=None, shop=None, user=None):
        return cls.record(
            tenant=tenant, product=product, variant=variant,
            movement_type=MovementType.RETURN,
            quantity_before=quantity_before,
            quantity_change=abs(quantity),
            reference=MovementReference.order(order_id),
            reason='Order returned',
            warehouse=warehouse, shop=shop, user=user,
        )

    @classmethod
    def record_adjustment(cls, *, tenant, product, quantity_change, reason,
                          variant=None, warehouse=None, shop=None, user=None, quantity_before=0):
        return cls.record(
            tenant=tenant, product=product, variant=variant,
            movement_type=MovementType.ADJUSTMENT,
            quantity_before=quantity_before,
            quantity_change=quantity_change,
            reference=MovementReference.manual_adjustment(),
            reason=reason,
            warehouse=warehouse, shop=shop, user=user,
        )
