"""Order services: checkout, cancellation and operator updates.

``create_order`` validates and prices every line before touching the
database, verifies the payment with the provider outside any transaction,
and then persists the order, decrements stock and clears the cart in a single
transaction. A failure anywhere leaves no partial order behind.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from cart.services import clear_cart
from catalog.models import Product
from catalog.selectors import get_sellable_product
from catalog.services import decrement_stock, restore_stock
from common.choices import OrderStatus, PaymentStatus
from common.exceptions import DuplicateOrder, InsufficientStock, InvalidInput, InvalidStateTransition
from common.pricing import ZERO, shipping_cost_for, to_money
from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone
from payments.gateway import PaymentGateway, get_payment_gateway

from .models import Order, OrderAddress, OrderItem, OrderStatusHistory
from .selectors import order_queryset

logger = logging.getLogger("storefront.orders")

CREATED_NOTE = "Order created"
DEFAULT_CANCEL_REASON = "Customer request"


@dataclass
class PricedLine:
    product: Product
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    size: str = ""
    color: str = ""


def price_lines(items: list) -> tuple[list[PricedLine], Decimal]:
    """Validate each requested line against the catalog and price it.

    Read-only: raises NotFound, InactiveProduct or InsufficientStock for the
    first offending line.
    """

    if not items:
        raise InvalidInput("An order needs at least one item.")
    lines = []
    subtotal = ZERO
    for entry in items:
        quantity = int(entry["quantity"])
        if quantity < 1:
            raise InvalidInput("Quantity must be at least 1.")
        product = get_sellable_product(entry["product_id"], quantity)
        unit_price = product.sale_price
        line_total = to_money(unit_price * quantity)
        subtotal += line_total
        lines.append(
            PricedLine(
                product=product,
                quantity=quantity,
                unit_price=unit_price,
                line_total=line_total,
                size=entry.get("size") or "",
                color=entry.get("color") or "",
            )
        )
    return lines, to_money(subtotal)


def _line_signature(pairs) -> list:
    return [(str(product_id), int(quantity)) for product_id, quantity in pairs]


def is_duplicate_order(*, user, transaction_id: Optional[str], total_amount, items: list) -> bool:
    """True when this looks like a resubmission of an existing order.

    Either the user already has an order for ``transaction_id``, or an order
    placed within the duplicate window has the same total and the same
    ordered (product, quantity) lines.
    """

    if transaction_id and Order.objects.filter(user=user, transaction_id=transaction_id).exists():
        return True

    window = int(getattr(settings, "ORDER_DUPLICATE_WINDOW_SECONDS", 60))
    recent = (
        Order.objects.filter(
            user=user,
            total_amount=to_money(total_amount),
            created_at__gte=timezone.now() - timedelta(seconds=window),
        )
        .order_by("-created_at")
        .prefetch_related("items")
    )
    wanted = _line_signature((entry["product_id"], entry["quantity"]) for entry in items)
    for order in recent:
        existing = _line_signature((item.product_id, item.quantity) for item in order.items.all())
        if existing == wanted:
            return True
    return False


def _record_status(order: Order, *, status: str, note: str, actor=None) -> OrderStatusHistory:
    return OrderStatusHistory.objects.create(order=order, status=status, note=note or "", actor=actor)


def create_order(
    *,
    user,
    items: list,
    shipping_address: dict,
    payment: dict,
    billing_address: Optional[dict] = None,
    discount: Optional[dict] = None,
    notes: str = "",
    metadata: Optional[dict] = None,
    gateway: Optional[PaymentGateway] = None,
) -> Order:
    """Place an order for ``user``.

    ``items`` are ``{"product_id", "quantity", "size"?, "color"?}`` dicts;
    prices always come from the catalog. ``payment`` carries ``method``,
    ``status``, an optional ``transaction_id`` and an optional ``discount``
    (preferred over the ``discount`` argument). When the payment is reported
    paid with a transaction id, duplicate detection and provider verification
    run before anything is written.
    """

    lines, subtotal = price_lines(items)
    shipping_cost = shipping_cost_for(subtotal)
    discount = payment.get("discount") or discount or {}
    discount_amount = to_money(discount.get("amount") or 0)
    total_amount = to_money(subtotal + shipping_cost - discount_amount)
    if discount_amount < 0 or total_amount < 0:
        raise InvalidInput("Discount cannot exceed the order amount.")

    payment_status = payment.get("status") or PaymentStatus.PENDING
    transaction_id = payment.get("transaction_id") or None
    check_duplicates = payment_status == PaymentStatus.PAID and bool(transaction_id)

    if check_duplicates:
        if is_duplicate_order(user=user, transaction_id=transaction_id, total_amount=total_amount, items=items):
            logger.info(
                "order_duplicate_rejected",
                extra={"event": "order_duplicate_rejected", "user_id": user.id, "transaction_id": transaction_id},
            )
            raise DuplicateOrder()
        gateway = gateway or get_payment_gateway()
        if gateway.is_configured:
            gateway.verify(transaction_id, total_amount)
        else:
            logger.warning(
                "order_payment_verification_skipped",
                extra={
                    "event": "order_payment_verification_skipped",
                    "user_id": user.id,
                    "transaction_id": transaction_id,
                },
            )

    metadata = metadata or {}
    with transaction.atomic():
        # One checkout per user at a time
        get_user_model().objects.select_for_update().filter(pk=user.pk).first()
        if check_duplicates and is_duplicate_order(
            user=user, transaction_id=transaction_id, total_amount=total_amount, items=items
        ):
            raise DuplicateOrder()

        for line in lines:
            if not decrement_stock(product_id=line.product.id, quantity=line.quantity):
                raise InsufficientStock(f"Insufficient stock for {line.product.name}.")

        shipping = OrderAddress.objects.create(**shipping_address)
        billing_address = billing_address or {}
        same_as_shipping = billing_address.get("same_as_shipping", True)
        if same_as_shipping:
            billing = shipping.copy()
            billing.save()
        else:
            billing = OrderAddress.objects.create(
                **{k: v for k, v in billing_address.items() if k != "same_as_shipping"}
            )

        order = Order(
            user=user,
            status=Order.STATUS_PENDING,
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            tax=ZERO,
            discount_amount=discount_amount,
            discount_code=discount.get("code") or "",
            discount_description=discount.get("description") or "",
            shipping_address=shipping,
            billing_address=billing,
            same_as_shipping=same_as_shipping,
            payment_method=payment["method"],
            payment_status=payment_status,
            transaction_id=transaction_id,
            paid_at=timezone.now() if payment_status == PaymentStatus.PAID else None,
            notes=notes or "",
            source=metadata.get("source") or "web",
            user_agent=(metadata.get("user_agent") or "")[:500],
            ip_address=metadata.get("ip_address") or None,
        )
        try:
            with transaction.atomic():
                order.save()
        except IntegrityError:
            raise DuplicateOrder() from None

        for line in lines:
            OrderItem.objects.create(
                order=order,
                product=line.product,
                name=line.product.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                size=line.size,
                color=line.color,
            )
        _record_status(order, status=order.status, note=CREATED_NOTE, actor=user)
        clear_cart(user=user, missing_ok=True)

    logger.info(
        "order_created",
        extra={
            "event": "order_created",
            "order_id": order.id,
            "order_number": order.number,
            "user_id": user.id,
            "total_amount": str(order.total_amount),
            "payment_status": order.payment_status,
            "lines": len(lines),
        },
    )
    return order_queryset().get(pk=order.pk)


def cancel_order(*, order: Order, reason: str = "", actor=None) -> Order:
    """Cancel an order and put its stock back.

    Shipped, delivered and already cancelled orders cannot be cancelled.
    Lines whose product has since been deleted are skipped when restoring.
    """

    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        if not locked.is_cancellable:
            raise InvalidStateTransition(f"Order in status '{locked.status}' cannot be cancelled.")
        for item in locked.items.all():
            if item.product_id:
                restore_stock(product_id=item.product_id, quantity=item.quantity)
        prev = locked.status
        locked.status = Order.STATUS_CANCELLED
        locked.save(update_fields=["status", "updated_at"])
        _record_status(locked, status=locked.status, note=reason or DEFAULT_CANCEL_REASON, actor=actor)

    logger.info(
        "order_cancelled",
        extra={
            "event": "order_cancelled",
            "order_id": locked.id,
            "user_id": locked.user_id,
            "status_from": prev,
            "status_to": locked.status,
            "actor_id": getattr(actor, "id", None),
        },
    )
    return order_queryset().get(pk=locked.pk)


def update_status(*, order: Order, status: str, note: str = "", actor=None) -> Order:
    """Set any status, without transition checks.

    The first move into shipped/delivered stamps ``shipped_at``/``delivered_at``.
    Stock is not touched, even when the new status is cancelled.
    """

    if status not in OrderStatus.values:
        raise InvalidInput(f"Unknown order status: {status}.")

    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        prev = locked.status
        locked.status = status
        fields = ["status", "updated_at"]
        now = timezone.now()
        if status == Order.STATUS_SHIPPED and locked.shipped_at is None:
            locked.shipped_at = now
            fields.append("shipped_at")
        if status == Order.STATUS_DELIVERED and locked.delivered_at is None:
            locked.delivered_at = now
            fields.append("delivered_at")
        locked.save(update_fields=fields)
        _record_status(locked, status=status, note=note, actor=actor)

    logger.info(
        "order_status_changed",
        extra={
            "event": "order_status_changed",
            "order_id": locked.id,
            "user_id": locked.user_id,
            "status_from": prev,
            "status_to": status,
            "actor_id": getattr(actor, "id", None),
        },
    )
    return order_queryset().get(pk=locked.pk)


def update_payment_status(*, order: Order, status: str, transaction_id: Optional[str] = None) -> Order:
    """Record a payment status change.

    ``paid`` stamps ``paid_at``; ``refunded`` stamps ``refunded_at`` and records
    the full order total as ``refund_amount``.
    """

    if status not in PaymentStatus.values:
        raise InvalidInput(f"Unknown payment status: {status}.")

    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        prev = locked.payment_status
        locked.payment_status = status
        fields = ["payment_status", "updated_at"]
        if transaction_id:
            locked.transaction_id = transaction_id
            fields.append("transaction_id")
        now = timezone.now()
        if status == PaymentStatus.PAID:
            locked.paid_at = now
            fields.append("paid_at")
        elif status == PaymentStatus.REFUNDED:
            locked.refunded_at = now
            locked.refund_amount = locked.total_amount
            fields += ["refunded_at", "refund_amount"]
        try:
            with transaction.atomic():
                locked.save(update_fields=fields)
        except IntegrityError:
            raise DuplicateOrder("Another order already uses this transaction id.") from None

    logger.info(
        "order_payment_status_changed",
        extra={
            "event": "order_payment_status_changed",
            "order_id": locked.id,
            "user_id": locked.user_id,
            "status_from": prev,
            "status_to": status,
        },
    )
    return order_queryset().get(pk=locked.pk)


def update_shipping(
    *,
    order: Order,
    tracking_number: Optional[str] = None,
    carrier: Optional[str] = None,
    estimated_delivery=None,
) -> Order:
    """Set the provided shipment fields and stamp ``shipped_at`` once."""

    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        fields = ["updated_at"]
        if tracking_number:
            locked.tracking_number = tracking_number
            fields.append("tracking_number")
        if carrier:
            locked.carrier = carrier
            fields.append("carrier")
        if estimated_delivery:
            locked.estimated_delivery = estimated_delivery
            fields.append("estimated_delivery")
        if locked.shipped_at is None:
            locked.shipped_at = timezone.now()
            fields.append("shipped_at")
        locked.save(update_fields=fields)

    logger.info(
        "order_shipping_updated",
        extra={
            "event": "order_shipping_updated",
            "order_id": locked.id,
            "tracking_number": locked.tracking_number,
            "carrier": locked.carrier,
        },
    )
    return order_queryset().get(pk=locked.pk)
