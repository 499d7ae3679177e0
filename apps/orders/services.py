# apps/orders/services.py
"""
Order-related business logic services.

Services:
- PurchaseReceivingService: Receive purchase lines into stock
- PurchaseService: Purchase document lifecycle (create, confirm, cancel, lines)
- OrderService: Customer order lifecycle (confirm, ship, deliver, refund)

Every operation that touches stock runs inside transaction.atomic() with the
rows it reads and writes locked via select_for_update(), and leaves one
InventoryMovement per stock change.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.inventory.models import InventoryMovement, MovementReference, MovementType
from apps.inventory.services import StockService
from .models import Order, OrderItem, Purchase, PurchaseItem

logger = logging.getLogger(__name__)


# ─── Data Classes ───────────────────────────────────────────────────────────────

class ReceiveStatus:
    RECEIVED = 'received'
    INVALID_STATUS = 'invalid_status'
    ITEM_NOT_FOUND = 'item_not_found'
    ALREADY_FULLY_RECEIVED = 'already_fully_received'
    INVALID_QUANTITY = 'invalid_quantity'


@dataclass
class ReceiveResult:
    """
    Outcome of receiving one purchase line.

    Truthy only when stock was actually received.
    """
    status: str
    item_id: Optional[int] = None
    quantity_received: int = 0
    movement: Optional[InventoryMovement] = None

    def __bool__(self):
        return self.status == ReceiveStatus.RECEIVED


# ─── Receiving ─────────────────────────────────────────────────────────────────

class PurchaseReceivingService:
    """
    Receive purchase lines into stock.

    Usage:
        service = PurchaseReceivingService(tenant, user)

        result = service.receive_item(purchase, item.pk, 20)
        if result:
            print(result.quantity_received, result.movement.quantity_after)

        results = service.receive_all_items(purchase)
    """

    def __init__(self, tenant, user=None):
        self.tenant = tenant
        self.user = user

    def receive_item(self, purchase, item_id, quantity):
        """
        Receive up to ``quantity`` of one line.

        The received amount is capped at what is still outstanding on the
        line. In a single transaction, with the purchase, the line and the
        stock row locked, this:

        1. adds the amount to the line's quantity_received
        2. writes a purchase movement referencing the purchase
        3. adds the amount to the product or variant stock counter
        4. recomputes the purchase status

        Returns:
            ReceiveResult; nothing is written unless its status is 'received'.
        """
        with transaction.atomic():
            locked = Purchase.objects.select_for_update().get(pk=purchase.pk, tenant=self.tenant)
            if not locked.can_receive_items():
                logger.debug(
                    "Purchase %s is %s; cannot receive items", locked.purchase_number, locked.status,
                )
                return ReceiveResult(ReceiveStatus.INVALID_STATUS, item_id=item_id)

            item = (
                PurchaseItem.objects.select_for_update()
                .select_related('product', 'variant')
                .filter(pk=item_id, purchase=locked)
                .first()
            )
            if item is None:
                logger.debug("Item %s not found on purchase %s", item_id, locked.purchase_number)
                return ReceiveResult(ReceiveStatus.ITEM_NOT_FOUND, item_id=item_id)

            remaining = item.quantity_ordered - item.quantity_received
            if remaining <= 0:
                return ReceiveResult(ReceiveStatus.ALREADY_FULLY_RECEIVED, item_id=item_id)

            actual = min(quantity, remaining)
            if actual <= 0:
                return ReceiveResult(ReceiveStatus.INVALID_QUANTITY, item_id=item_id)

            item.quantity_received += actual
            item.save(update_fields=['quantity_received', 'updated_at'])

            movement = StockService(self.tenant, self.user).add_stock(
                item.stock_target,
                actual,
                movement_type=MovementType.PURCHASE,
                reason='Purchase received',
                reference=MovementReference.purchase(locked.pk),
                warehouse=locked.warehouse,
                shop=locked.shop,
            )

            locked.update_status()

        purchase.status = locked.status
        purchase.actual_delivery_date = locked.actual_delivery_date

        logger.info(
            "Received %s of %s on %s (%s/%s), purchase now %s",
            actual, item.sku, locked.purchase_number,
            item.quantity_received, item.quantity_ordered, locked.status,
        )
        return ReceiveResult(
            ReceiveStatus.RECEIVED,
            item_id=item.pk,
            quantity_received=actual,
            movement=movement,
        )

    def receive_all_items(self, purchase) -> List[ReceiveResult]:
        """
        Receive the outstanding quantity of every line.

        Each line is received in its own transaction, so lines already
        received stay received if a later one fails. Lines with nothing
        outstanding are skipped; calling this on a fully received purchase
        returns an empty list.
        """
        if not purchase.can_receive_items():
            return []

        outstanding = list(
            PurchaseItem.objects.for_purchase(purchase).pending()
            .values_list('pk', 'quantity_ordered', 'quantity_received')
        )
        results = []
        for item_id, ordered, received in outstanding:
            results.append(self.receive_item(purchase, item_id, ordered - received))
        return results


# ─── Purchases ──────────────────────────────────────────────────────────────────

class PurchaseService:
    """
    Purchase document lifecycle.

    Usage:
        service = PurchaseService(tenant, user)
        purchase = service.create_purchase(
            supplier=supplier,
            warehouse=warehouse,
            items=[(product, 20, Decimal('5.00'))],
        )
        service.confirm(purchase)
    """

    def __init__(self, tenant, user=None):
        self.tenant = tenant
        self.user = user

    def create_purchase(self, supplier, items=(), warehouse=None, shop=None, **fields):
        """
        Create a purchase with its lines and total.

        ``items`` is an iterable of (product, quantity, unit_cost) or
        (product, quantity, unit_cost, variant) tuples.
        """
        with transaction.atomic():
            purchase = Purchase.objects.create(
                tenant=self.tenant,
                supplier=supplier,
                warehouse=warehouse,
                shop=shop,
                created_by=self.user,
                **fields,
            )
            for line in items:
                product, quantity, unit_cost, *rest = line
                self._create_item(purchase, product, quantity, unit_cost, rest[0] if rest else None)
            purchase.calculate_total()

        logger.info("Created purchase %s with %s lines", purchase.purchase_number, purchase.unique_item_count)
        return purchase

    def confirm(self, purchase):
        if not purchase.can_be_confirmed():
            logger.debug("Purchase %s cannot be confirmed from %s", purchase.purchase_number, purchase.status)
            return False
        purchase.status = Purchase.Status.CONFIRMED
        purchase.save(update_fields=['status', 'updated_at'])
        logger.info("Confirmed purchase %s", purchase.purchase_number)
        return True

    def cancel(self, purchase, reason=None):
        if not purchase.can_be_cancelled():
            logger.debug("Purchase %s cannot be cancelled from %s", purchase.purchase_number, purchase.status)
            return False
        purchase.status = Purchase.Status.CANCELLED
        if reason:
            purchase.notes = f"{purchase.notes}\nCancelled: {reason}" if purchase.notes else f"Cancelled: {reason}"
        purchase.save(update_fields=['status', 'notes', 'updated_at'])
        logger.info("Cancelled purchase %s", purchase.purchase_number)
        return True

    def add_item(self, purchase, product, quantity, unit_cost, variant=None):
        """
        Add a line and recompute the purchase total.

        Raises:
            ValidationError: If the purchase is completed or cancelled, or the
                quantity or cost is invalid
        """
        if purchase.status in Purchase.TERMINAL_STATUSES:
            raise ValidationError(f"Cannot add items to a {purchase.status} purchase")
        with transaction.atomic():
            item = self._create_item(purchase, product, quantity, unit_cost, variant)
            purchase.refresh_from_lines()
        return item

    def remove_item(self, purchase, item_id):
        """
        Remove a line that has not received anything.

        Returns False when the line does not exist on the purchase or has
        already received stock.
        """
        with transaction.atomic():
            locked = Purchase.objects.select_for_update().get(pk=purchase.pk, tenant=self.tenant)
            item = locked.items.select_for_update().filter(pk=item_id).first()
            if item is None or item.quantity_received > 0:
                return False
            item.delete()
            locked.refresh_from_lines()

        purchase.total_amount = locked.total_amount
        purchase.status = locked.status
        purchase.actual_delivery_date = locked.actual_delivery_date
        logger.info("Removed line %s from %s, purchase now %s", item_id, locked.purchase_number, locked.status)
        return True

    def delete_purchase(self, purchase):
        """
        Delete a purchase and its lines.

        Raises:
            PurchaseLockedError: If any line has received stock
        """
        number = purchase.purchase_number
        purchase.delete()
        logger.info("Deleted purchase %s", number)

    def _create_item(self, purchase, product, quantity, unit_cost, variant=None):
        if quantity <= 0:
            raise ValidationError("Quantity ordered must be positive")
        if Decimal(unit_cost) < 0:
            raise ValidationError("Unit cost cannot be negative")
        if variant is not None and variant.product_id != product.pk:
            raise ValidationError(f"Variant {variant.sku} does not belong to product {product.sku}")
        return PurchaseItem.objects.create(
            tenant=self.tenant,
            purchase=purchase,
            product=product,
            variant=variant,
            quantity_ordered=quantity,
            unit_cost=Decimal(unit_cost),
        )


# ─── Sales orders ───────────────────────────────────────────────────────────────

class OrderService:
    """
    Customer order lifecycle.

    Each transition returns True when it happened and False (changing
    nothing) when the order is not in a state that allows it.

    Usage:
        service = OrderService(tenant, user)
        order = service.create_order(customer, shop, items=[(product, 2)])
        service.confirm(order)
        service.ship(order, tracking_number='1Z999')
        service.deliver(order)
    """

    def __init__(self, tenant, user=None):
        self.tenant = tenant
        self.user = user

    def create_order(self, customer, shop, items=(), warehouse=None, **fields):
        """
        Create an order with its lines and totals.

        ``items`` is an iterable of (product, quantity) or
        (product, quantity, variant) tuples; prices come from the catalog.
        """
        with transaction.atomic():
            order = Order.objects.create(
                tenant=self.tenant,
                customer=customer,
                shop=shop,
                warehouse=warehouse,
                **fields,
            )
            for line in items:
                product, quantity, *rest = line
                self._create_item(order, product, quantity, variant=rest[0] if rest else None)
            order.calculate_totals()
        return order

    def add_item(self, order, product, quantity, variant=None, unit_price=None, discount_amount=Decimal('0.00')):
        if not order.is_pending:
            raise ValidationError("Items can only be added to pending orders")
        with transaction.atomic():
            item = self._create_item(order, product, quantity, variant, unit_price, discount_amount)
            order.calculate_totals()
        return item

    def confirm(self, order):
        if not order.is_pending:
            return False
        order.status = Order.Status.CONFIRMED
        order.confirmed_at = timezone.now()
        order.save(update_fields=['status', 'confirmed_at', 'updated_at'])
        logger.info("Confirmed order %s", order.order_number)
        return True

    def start_processing(self, order):
        if not order.is_confirmed:
            return False
        order.status = Order.Status.PROCESSING
        order.save(update_fields=['status', 'updated_at'])
        return True

    def ship(self, order, tracking_number=None):
        """Mark shipped and take every line out of stock as a sale."""
        with transaction.atomic():
            locked = self._lock(order)
            if not locked.can_be_shipped():
                logger.debug("Order %s cannot be shipped from %s", locked.order_number, locked.status)
                return False

            locked.status = Order.Status.SHIPPED
            locked.shipped_at = timezone.now()
            if tracking_number:
                locked.tracking_number = tracking_number
            locked.save(update_fields=['status', 'shipped_at', 'tracking_number', 'updated_at'])

            stock = StockService(self.tenant, self.user)
            for item in locked.items.select_related('product', 'variant'):
                movement = stock.reduce_stock(
                    item.stock_target,
                    item.quantity,
                    movement_type=MovementType.SALE,
                    reason='Sale order',
                    reference=MovementReference.order(locked.pk),
                    warehouse=locked.warehouse,
                    shop=locked.shop,
                )
                shipped = movement.absolute_quantity if movement else 0
                if shipped < item.quantity:
                    logger.warning(
                        "Order %s: only %s of %s %s in stock at shipping",
                        locked.order_number, shipped, item.quantity, item.sku,
                    )

        self._sync(order, locked, 'status', 'shipped_at', 'tracking_number')
        logger.info("Shipped order %s", locked.order_number)
        return True

    def deliver(self, order):
        """Mark delivered; update product sales and the customer's loyalty stats."""
        with transaction.atomic():
            locked = self._lock(order)
            if not locked.can_be_delivered():
                return False

            locked.status = Order.Status.DELIVERED
            locked.delivered_at = timezone.now()
            locked.save(update_fields=['status', 'delivered_at', 'updated_at'])

            profile = self._customer_profile(locked)
            if profile is not None:
                profile.update_order_stats(locked.total_amount)
                profile.add_loyalty_points(profile.calculate_loyalty_points(locked.total_amount))

            for item in locked.items.select_related('product'):
                item.product.record_sale(item.quantity, item.total_price)

        self._sync(order, locked, 'status', 'delivered_at')
        logger.info("Delivered order %s", locked.order_number)
        return True

    def cancel(self, order, reason=None):
        if not order.can_be_cancelled():
            return False
        order.status = Order.Status.CANCELLED
        if reason:
            note = f"Cancelled: {reason}"
            order.internal_notes = f"{order.internal_notes}\n{note}" if order.internal_notes else note
        order.save(update_fields=['status', 'internal_notes', 'updated_at'])
        logger.info("Cancelled order %s", order.order_number)
        return True

    def refund(self, order):
        """Refund a shipped or delivered order and put its lines back into stock."""
        with transaction.atomic():
            locked = self._lock(order)
            if not locked.can_be_refunded():
                return False
            was_delivered = locked.is_delivered

            locked.status = Order.Status.REFUNDED
            locked.payment_status = 'refunded'
            locked.save(update_fields=['status', 'payment_status', 'updated_at'])

            stock = StockService(self.tenant, self.user)
            for item in locked.items.select_related('product', 'variant'):
                stock.add_stock(
                    item.stock_target,
                    item.quantity,
                    movement_type=MovementType.RETURN,
                    reason='Order returned',
                    reference=MovementReference.order(locked.pk),
                    warehouse=locked.warehouse,
                    shop=locked.shop,
                )

            # Customer stats are only counted on delivery
            profile = self._customer_profile(locked)
            if was_delivered and profile is not None:
                profile.reverse_order_stats(locked.total_amount)

        self._sync(order, locked, 'status', 'payment_status')
        logger.info("Refunded order %s", locked.order_number)
        return True

    # ----- helpers -----

    def _lock(self, order):
        return Order.objects.select_for_update().get(pk=order.pk, tenant=self.tenant)

    @staticmethod
    def _sync(order, locked, *fields):
        for field in fields:
            setattr(order, field, getattr(locked, field))

    @staticmethod
    def _customer_profile(order):
        from apps.parties.models import CustomerProfile
        return CustomerProfile.objects.filter(user_id=order.customer_id).first()

    def _create_item(self, order, product, quantity, variant=None, unit_price=None,
                     discount_amount=Decimal('0.00')):
        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        if variant is not None and variant.product_id != product.pk:
            raise ValidationError(f"Variant {variant.sku} does not belong to product {product.sku}")
        if unit_price is None:
            unit_price = variant.actual_price if variant is not None else product.actual_price
        return OrderItem.objects.create(
            tenant=self.tenant,
            order=order,
            product=product,
            variant=variant,
            quantity=quantity,
            unit_price=Decimal(unit_price),
            discount_amount=Decimal(discount_amount),
        )
