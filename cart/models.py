"""Cart app models.

One cart per user, created lazily on first access. The cart survives
checkout; it is emptied rather than deleted.
"""

from decimal import Decimal

from common.pricing import ZERO, to_money
from django.conf import settings
from django.db import models
from django.utils import timezone

MAX_LINE_QUANTITY = 999


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Cart(TimeStampedModel):
    """Shopping cart bound to a user.

    ``total_items`` and ``total_price`` are cached aggregates of the lines and
    are refreshed by ``recalculate()`` before each save from the services.
    ``last_merge_digest`` holds the hash of the last applied guest-cart merge
    payload so a retried merge does not double quantities.
    """

    user = models.OneToOneField(settings.AUTH_USER_MODEL, related_name="cart", on_delete=models.CASCADE)
    total_items = models.PositiveIntegerField(default=0)
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    last_merge_digest = models.CharField(max_length=64, blank=True)

    class Meta:
        ordering = ["-updated_at"]

    def __str__(self) -> str:  # pragma: no cover
        return f"Cart#{self.id} ({self.user_id})"

    @property
    def is_empty(self) -> bool:
        return self.total_items == 0

    def recalculate(self) -> None:
        """Refresh cached totals from the current lines."""

        items = list(self.items.all())
        self.total_items = sum(int(i.quantity) for i in items)
        self.total_price = to_money(sum((i.line_total for i in items), ZERO))


class CartItem(TimeStampedModel):
    """Line item for a product, optionally pinned to a size and color.

    Blank ``size``/``color`` mean "not specified" and take part in the
    uniqueness of a line like any other value.
    """

    cart = models.ForeignKey(Cart, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", related_name="cart_items", on_delete=models.CASCADE)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    size = models.CharField(max_length=4, blank=True, default="")
    color = models.CharField(max_length=40, blank=True, default="")
    notes = models.CharField(max_length=200, blank=True, default="")
    added_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["added_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["cart", "product", "size", "color"], name="unique_product_line_per_cart"),
            models.CheckConstraint(
                name="cart_item_quantity_range",
                condition=models.Q(quantity__gte=1, quantity__lte=MAX_LINE_QUANTITY),
            ),
        ]
        indexes = [
            models.Index(fields=["cart", "product"], name="cart_cartit_cart_id_9d2b1e_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"CartItem#{self.id} cart={self.cart_id} product={self.product_id} qty={self.quantity}"

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price or Decimal("0.00")) * Decimal(int(self.quantity))
