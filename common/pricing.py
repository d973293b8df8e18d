"""Money helpers shared by cart summaries and order pricing.

Free-shipping threshold and flat rate are read from settings at call time so
tests can override them with `override_settings`.
"""

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Coerce to a two-place Decimal, rounding half-up."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def discounted_price(price, discount_percent) -> Decimal:
    price = to_money(price)
    discount = Decimal(str(discount_percent or 0))
    if discount > 0:
        return to_money(price * (Decimal("1") - discount / Decimal("100")))
    return price


def free_shipping_threshold() -> Decimal:
    return to_money(getattr(settings, "FREE_SHIPPING_THRESHOLD", 50000))


def shipping_cost_for(subtotal) -> Decimal:
    """Flat-rate shipping, waived once the subtotal reaches the threshold."""
    if to_money(subtotal) >= free_shipping_threshold():
        return ZERO
    return to_money(getattr(settings, "SHIPPING_FLAT_RATE", 3000))
