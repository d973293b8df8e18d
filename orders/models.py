"""Orders app models.

An order is a frozen snapshot of a checkout: line prices, addresses and
pricing are copied at creation and never re-derived from the catalog.
"""

import random
import time
from decimal import Decimal

from common.choices import OrderSource, OrderStatus, PaymentMethod, PaymentStatus
from common.pricing import ZERO, to_money
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


def generate_order_number() -> str:
    """Millisecond timestamp followed by three random digits."""

    return f"{int(time.time() * 1000)}{random.randint(0, 999):03d}"


class OrderAddress(TimeStampedModel):
    """Postal address captured on an order (shipping or billing)."""

    name = models.CharField(max_length=100)
    phone = models.CharField(max_length=32)
    street = models.CharField(max_length=200)
    detail_address = models.CharField(max_length=200, blank=True)
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20)
    country = models.CharField(max_length=100, default="South Korea")
    delivery_instructions = models.CharField(max_length=200, blank=True)

    ADDRESS_FIELDS = (
        "name",
        "phone",
        "street",
        "detail_address",
        "city",
        "state",
        "postal_code",
        "country",
    )

    def copy(self) -> "OrderAddress":
        """Unsaved copy of the postal fields (delivery instructions excluded)."""

        return OrderAddress(**{f: getattr(self, f) for f in self.ADDRESS_FIELDS})

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name}, {self.street}, {self.city}"


class Order(TimeStampedModel):
    """Purchase order with pricing, payment and shipment sub-records.

    ``total_amount`` is always ``subtotal + shipping_cost + tax - discount_amount``
    and is recomputed on every save. ``number`` is assigned on first save and
    never changes afterwards.
    """

    STATUS_PENDING = OrderStatus.PENDING
    STATUS_CONFIRMED = OrderStatus.CONFIRMED
    STATUS_PROCESSING = OrderStatus.PROCESSING
    STATUS_SHIPPED = OrderStatus.SHIPPED
    STATUS_DELIVERED = OrderStatus.DELIVERED
    STATUS_CANCELLED = OrderStatus.CANCELLED
    STATUS_RETURNED = OrderStatus.RETURNED
    STATUS_CHOICES = OrderStatus.choices

    NON_CANCELLABLE_STATUSES = frozenset({STATUS_DELIVERED, STATUS_CANCELLED, STATUS_SHIPPED})

    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="orders", on_delete=models.CASCADE)
    number = models.CharField(max_length=32, unique=True, editable=False)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)

    # Pricing
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_code = models.CharField(max_length=50, blank=True)
    discount_description = models.CharField(max_length=200, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    # Addresses
    shipping_address = models.OneToOneField(OrderAddress, related_name="shipped_order", on_delete=models.PROTECT)
    billing_address = models.OneToOneField(
        OrderAddress, related_name="billed_order", null=True, blank=True, on_delete=models.PROTECT
    )
    same_as_shipping = models.BooleanField(default=True)

    # Payment
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )
    transaction_id = models.CharField(max_length=100, null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    refunded_at = models.DateTimeField(null=True, blank=True)

    # Shipment
    tracking_number = models.CharField(max_length=100, blank=True, db_index=True)
    carrier = models.CharField(max_length=100, blank=True)
    estimated_delivery = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    notes = models.CharField(max_length=500, blank=True)

    # Metadata
    source = models.CharField(max_length=10, choices=OrderSource.choices, default=OrderSource.WEB)
    user_agent = models.CharField(max_length=500, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["user", "-created_at"], name="orders_orde_user_id_3a1f7c_idx"),
            models.Index(fields=["user", "status"], name="orders_orde_user_id_b52e90_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "transaction_id"],
                condition=models.Q(transaction_id__isnull=False),
                name="uniq_order_transaction_per_user",
            ),
            models.CheckConstraint(name="order_subtotal_non_negative", condition=models.Q(subtotal__gte=0)),
            models.CheckConstraint(name="order_total_non_negative", condition=models.Q(total_amount__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.number} user={self.user_id} status={self.status}"

    def compute_total(self) -> Decimal:
        return to_money(
            to_money(self.subtotal) + to_money(self.shipping_cost) + to_money(self.tax) - to_money(self.discount_amount)
        )

    def recalculate_totals(self) -> None:
        """Re-derive subtotal from the saved lines, then the total."""

        self.subtotal = to_money(sum((item.line_total for item in self.items.all()), ZERO))
        self.total_amount = self.compute_total()

    def save(self, *args, **kwargs):
        if not self.number:
            number = generate_order_number()
            while Order.objects.filter(number=number).exists():
                number = generate_order_number()
            self.number = number
        if not self.transaction_id:
            self.transaction_id = None
        self.total_amount = self.compute_total()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = {*update_fields, "total_amount"}
        super().save(*args, **kwargs)

    @property
    def total_items(self) -> int:
        return sum(int(item.quantity) for item in self.items.all())

    @property
    def is_cancellable(self) -> bool:
        return self.status not in self.NON_CANCELLABLE_STATUSES


class OrderItem(TimeStampedModel):
    """Line item within an order.

    Name and unit price are snapshots; the product link goes null if the
    product is later deleted.
    """

    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey(
        "catalog.Product", related_name="order_items", null=True, blank=True, on_delete=models.SET_NULL
    )
    name = models.CharField(max_length=100)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    line_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    size = models.CharField(max_length=4, blank=True)
    color = models.CharField(max_length=40, blank=True)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["order", "product"], name="orders_orde_order_i_6c0d2a_idx"),
        ]
        constraints = [
            models.CheckConstraint(name="orderitem_price_non_negative", condition=models.Q(unit_price__gte=0)),
            models.CheckConstraint(name="orderitem_quantity_positive", condition=models.Q(quantity__gte=1)),
        ]

    def save(self, *args, **kwargs):
        self.line_total = to_money(to_money(self.unit_price) * int(self.quantity))
        super().save(*args, **kwargs)

    def __str__(self) -> str:  # pragma: no cover
        return f"OrderItem#{self.id} order={self.order_id} product={self.product_id} qty={self.quantity}"


class OrderStatusHistory(models.Model):
    """Append-only log of status changes."""

    order = models.ForeignKey(Order, related_name="status_history", on_delete=models.CASCADE)
    status = models.CharField(max_length=16, choices=OrderStatus.choices)
    note = models.CharField(max_length=500, blank=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="+", null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name_plural = "order status history"

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.order_id} -> {self.status}"
