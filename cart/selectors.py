"""Selectors for read-only cart queries."""

from common.exceptions import NotFound
from common.pricing import ZERO, free_shipping_threshold, shipping_cost_for, to_money

from .models import Cart


def get_or_create_cart(*, user) -> Cart:
    """Return the user's cart, creating an empty one if missing."""

    cart, _ = Cart.objects.get_or_create(user=user)
    return cart


def get_cart(*, user) -> Cart:
    """Return the user's cart or raise NotFound."""

    try:
        return Cart.objects.get(user=user)
    except Cart.DoesNotExist:
        raise NotFound("Cart not found.") from None


def cart_with_items(cart: Cart) -> Cart:
    """Reload the cart with lines and product summaries prefetched."""

    return Cart.objects.prefetch_related("items__product__sizes", "items__product__colors").get(pk=cart.pk)


def cart_summary(*, cart: Cart) -> dict:
    """Totals plus shipping figures for the cart page.

    An empty cart ships for free; otherwise the flat rate applies until the
    total reaches the free-shipping threshold.
    """

    total_price = to_money(cart.total_price)
    threshold = free_shipping_threshold()
    is_empty = cart.total_items == 0
    return {
        "total_items": cart.total_items,
        "total_price": total_price,
        "item_count": cart.items.count(),
        "is_empty": is_empty,
        "shipping_cost": ZERO if is_empty else shipping_cost_for(total_price),
        "free_shipping_threshold": threshold,
        "free_shipping_remaining": max(ZERO, threshold - total_price),
    }
