# apps/inventory/services.py
"""
Stock service for moving stock counters together with the ledger.

StockService handles:
- Adding stock (purchases, returns, transfers in)
- Reducing stock (sales, damage, expiry, transfers out)
- Setting stock to a counted value (manual adjustments)
- Reversing manual adjustments

Every change locks the product or variant row, computes the before/change/after
triple against the locked value, saves the counter and writes exactly one
InventoryMovement. The counter never goes below zero; when clamping leaves
nothing to change, nothing is written.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from apps.catalog.models import ProductVariant
from .models import InventoryMovement, MovementReference, MovementType

logger = logging.getLogger(__name__)


class StockService:
    """
    Service for stock counter changes.

    Usage:
        service = StockService(tenant, user)

        # Goods in
        service.add_stock(product, 20, movement_type='purchase',
                          reference=MovementReference.purchase(po.pk))

        # Goods out
        service.reduce_stock(variant, 3, movement_type='sale',
                             reference=MovementReference.order(order.pk))

        # Stock count
        service.update_stock(product, 42, reason='Cycle count')
    """

    def __init__(self, tenant, user=None):
        """
        Initialize stock service.

        Args:
            tenant: Tenant instance to scope operations
            user: User performing operations (recorded as created_by)
        """
        self.tenant = tenant
        self.user = user

    # ===== PUBLIC API =====

    def add_stock(self, target, quantity, movement_type=MovementType.PURCHASE,
                  reason='', reference=None, warehouse=None, shop=None):
        """
        Increase the counter of a Product or ProductVariant by ``quantity``.

        Returns:
            The InventoryMovement written.

        Raises:
            ValidationError: If quantity is not positive
        """
        if quantity <= 0:
            raise ValidationError("Quantity to add must be positive")
        return self.apply_change(
            target, quantity, movement_type=movement_type, reason=reason, reference=reference,
            warehouse=warehouse, shop=shop,
        )

    def reduce_stock(self, target, quantity, movement_type=MovementType.SALE,
                     reason='', reference=None, warehouse=None, shop=None):
        """
        Decrease the counter by ``quantity``, stopping at zero.

        Returns:
            The InventoryMovement written, or None when the counter was already zero.

        Raises:
            ValidationError: If quantity is not positive
        """
        if quantity <= 0:
            raise ValidationError("Quantity to reduce must be positive")
        return self.apply_change(
            target, -quantity, movement_type=movement_type, reason=reason, reference=reference,
            warehouse=warehouse, shop=shop,
        )

    def update_stock(self, target, new_quantity, reason=''):
        """
        Set the counter to a counted value, recording the difference as an
        adjustment. Returns None when the value does not change.
        """
        if new_quantity < 0:
            raise ValidationError("Stock quantity cannot be negative")
        return self._apply(
            target,
            lambda before: new_quantity - before,
            movement_type=MovementType.ADJUSTMENT,
            reason=reason or 'Manual stock update',
            reference=MovementReference.manual_adjustment(),
        )

    def apply_change(self, target, change, movement_type, reason='', reference=None,
                     warehouse=None, shop=None):
        """
        Apply a signed change to the counter and write the movement.

        Adjustments without an explicit reference are recorded as manual
        adjustments. The movement is attributed to ``warehouse``/``shop`` when
        given, otherwise to the product's own locations.
        """
        if reference is None and movement_type == MovementType.ADJUSTMENT:
            reference = MovementReference.manual_adjustment()
        return self._apply(
            target,
            lambda before: change,
            movement_type=movement_type,
            reason=reason,
            reference=reference,
            warehouse=warehouse,
            shop=shop,
        )

    def reverse_movement(self, movement, reason='Reversed movement'):
        """
        Write the compensating adjustment for a manual adjustment.

        The new row swaps before/after of the original and negates its
        change, and the counter goes back to the original before value.
        Returns None and writes nothing when the movement cannot be reversed
        or the counter has moved since the adjustment.
        """
        target = movement.variant if movement.variant_id else movement.product
        with transaction.atomic():
            locked = self._lock(target)
            # Under the counter lock: at most one reversal per movement
            if not movement.can_be_reversed:
                logger.debug("Movement %s cannot be reversed", movement.pk)
                return None
            # Only while the counter still sits where the adjustment left it
            if locked.stock_quantity != movement.quantity_after:
                logger.warning(
                    "Movement %s not reversed: %s stock is %s, adjustment left it at %s",
                    movement.pk, movement.sku, locked.stock_quantity, movement.quantity_after,
                )
                return None
            before = locked.stock_quantity
            after = movement.quantity_before
            locked.stock_quantity = after
            locked.save(update_fields=['stock_quantity', 'updated_at'])
            target.stock_quantity = after

            reversal = InventoryMovement.record(
                tenant=self.tenant,
                product=movement.product,
                variant=movement.variant,
                movement_type=MovementType.ADJUSTMENT,
                quantity_before=movement.quantity_after,
                quantity_change=-movement.quantity_change,
                reference=MovementReference.reversal(movement.pk),
                reason=reason,
                warehouse=movement.warehouse,
                shop=movement.shop,
                user=self.user,
            )

        logger.info(
            "Reversed movement %s with %s (%s: %s -> %s)",
            movement.pk, reversal.pk, movement.sku, before, after,
        )
        return reversal

    # ===== INTERNALS =====

    def _lock(self, target):
        model = type(target)
        return model.objects.select_for_update().get(pk=target.pk, tenant=self.tenant)

    def _apply(self, target, compute_change, movement_type, reason, reference,
               warehouse=None, shop=None):
        """
        Lock the counter row, work out the clamped delta and persist both the
        counter and the ledger row in one transaction.

        ``target`` is refreshed in place so callers holding the instance see
        the new counter.
        """
        is_variant = isinstance(target, ProductVariant)

        with transaction.atomic():
            locked = self._lock(target)
            before = locked.stock_quantity
            after = max(0, before + compute_change(before))
            delta = after - before
            if delta == 0:
                logger.debug(
                    "No stock change for %s (%s requested at %s)",
                    locked.sku, movement_type, before,
                )
                target.stock_quantity = before
                return None

            locked.stock_quantity = after
            locked.save(update_fields=['stock_quantity', 'updated_at'])
            target.stock_quantity = after

            product = locked.product if is_variant else locked
            if warehouse is None and shop is None:
                warehouse, shop = product.warehouse, product.shop
            movement = InventoryMovement.record(
                tenant=self.tenant,
                product=product,
                variant=locked if is_variant else None,
                movement_type=movement_type,
                quantity_before=before,
                quantity_change=delta,
                reference=reference,
                reason=reason,
                warehouse=warehouse,
                shop=shop,
                user=self.user,
            )

        logger.info(
            "Stock %s for %s: %s %+d -> %s",
            movement_type, locked.sku, before, delta, after,
        )
        return movement


def movements_for_reference(tenant, reference_type, reference_id):
    """Ledger rows written for one order or purchase, oldest first."""
    return InventoryMovement.objects.for_tenant(tenant).filter(
        reference_type=reference_type, reference_id=reference_id,
    ).order_by('created_at', 'id')
