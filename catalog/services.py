"""Stock and sales counter updates.

Both helpers issue a single UPDATE with F() expressions so concurrent
checkouts and cancellations cannot lose writes. Callers run them inside
their own transaction.
"""

from django.db.models import F, Value
from django.db.models.functions import Greatest

from .models import Product


def decrement_stock(*, product_id: int, quantity: int) -> bool:
    """Take ``quantity`` units out of stock and count them as sold.

    Returns False when the product is gone or stock dropped below
    ``quantity``; no row is touched in that case.
    """

    updated = Product.objects.filter(pk=product_id, stock__gte=quantity).update(
        stock=F("stock") - quantity,
        sales=F("sales") + quantity,
    )
    return updated == 1


def restore_stock(*, product_id: int, quantity: int) -> bool:
    """Return ``quantity`` units to stock; sales never go below zero."""

    updated = Product.objects.filter(pk=product_id).update(
        stock=F("stock") + quantity,
        sales=Greatest(F("sales") - quantity, Value(0)),
    )
    return updated == 1
