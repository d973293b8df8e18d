"""Read-only order queries.

Access rules for single-order lookups live here so every endpoint applies the
same owner-or-staff check.
"""

from typing import Optional

from common.choices import PaymentStatus
from common.exceptions import Forbidden, NotFound
from django.db.models import Count, Prefetch, QuerySet, Sum

from .models import Order, OrderItem

SORT_FIELDS = ("created_at", "-created_at", "total_amount", "-total_amount")
DEFAULT_SORT = "-created_at"

CANCELLABLE_STATUSES = (Order.STATUS_PENDING, Order.STATUS_CONFIRMED)
CANCELLABLE_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.FAILED)


def order_queryset() -> QuerySet[Order]:
    """Orders with addresses, lines (and their product summaries) and history."""

    return Order.objects.select_related("user", "shipping_address", "billing_address").prefetch_related(
        Prefetch(
            "items",
            queryset=OrderItem.objects.select_related("product").prefetch_related("product__sizes", "product__colors"),
        ),
        "status_history",
    )


def _check_access(order: Order, requester) -> Order:
    if order.user_id != requester.id and not requester.is_staff:
        raise Forbidden()
    return order


def get_order(*, order_id, requester) -> Order:
    """Return the order if ``requester`` owns it or is staff."""

    try:
        order = order_queryset().get(pk=order_id)
    except (Order.DoesNotExist, ValueError, TypeError):
        raise NotFound("Order not found.") from None
    return _check_access(order, requester)


def get_order_by_number(*, number: str, requester) -> Order:
    try:
        order = order_queryset().get(number=number)
    except Order.DoesNotExist:
        raise NotFound("Order not found.") from None
    return _check_access(order, requester)


def list_orders_for_user(*, user, status: Optional[str] = None, sort: Optional[str] = None) -> QuerySet[Order]:
    """The user's own orders, optionally by status.

    ``sort`` outside the allowlist falls back to newest first.
    """

    qs = order_queryset().filter(user=user)
    if status:
        qs = qs.filter(status=status)
    if sort not in SORT_FIELDS:
        sort = DEFAULT_SORT
    return qs.order_by(sort, "-id")


def list_orders_for_admin() -> QuerySet[Order]:
    return order_queryset().order_by(DEFAULT_SORT, "-id")


def order_statistics(*, user=None) -> dict:
    """Count and summed total per status, for one user or all orders."""

    qs = Order.objects.all()
    if user is not None:
        qs = qs.filter(user=user)
    rows = qs.order_by().values("status").annotate(count=Count("id"), total_amount=Sum("total_amount"))
    return {row["status"]: {"count": row["count"], "total_amount": row["total_amount"]} for row in rows}


def list_cancellable_orders(*, user) -> QuerySet[Order]:
    """Orders the user could still cancel without a refund."""

    return order_queryset().filter(
        user=user,
        status__in=CANCELLABLE_STATUSES,
        payment_status__in=CANCELLABLE_PAYMENT_STATUSES,
    )
