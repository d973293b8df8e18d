"""DRF serializers for Orders.

Read serializers group the flat order columns into `pricing`, `payment`,
`shipment` and `metadata` blocks. Write serializers only shape and validate
input; prices are never taken from the client.
"""

from catalog.serializers import ProductSummarySerializer
from common.choices import ClothingSize, OrderSource, OrderStatus, PaymentMethod, PaymentStatus
from rest_framework import serializers

from .models import Order, OrderAddress, OrderItem, OrderStatusHistory


class OrderAddressSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderAddress
        fields = [
            "name",
            "phone",
            "street",
            "detail_address",
            "city",
            "state",
            "postal_code",
            "country",
            "delivery_instructions",
        ]


class OrderItemSerializer(serializers.ModelSerializer):
    """Order line with the (possibly deleted) product's current summary."""

    product = ProductSummarySerializer(read_only=True, allow_null=True)

    class Meta:
        model = OrderItem
        fields = ["id", "product", "name", "quantity", "unit_price", "line_total", "size", "color"]
        read_only_fields = fields


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ["status", "note", "actor", "created_at"]
        read_only_fields = fields


class PricingSerializer(serializers.Serializer):
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    shipping_cost = serializers.DecimalField(max_digits=12, decimal_places=2)
    tax = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount_code = serializers.CharField()
    discount_description = serializers.CharField()
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)


class PaymentSerializer(serializers.Serializer):
    method = serializers.CharField(source="payment_method")
    status = serializers.CharField(source="payment_status")
    transaction_id = serializers.CharField(allow_null=True)
    paid_at = serializers.DateTimeField(allow_null=True)
    refund_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    refunded_at = serializers.DateTimeField(allow_null=True)


class ShipmentSerializer(serializers.Serializer):
    tracking_number = serializers.CharField()
    carrier = serializers.CharField()
    estimated_delivery = serializers.DateTimeField(allow_null=True)
    shipped_at = serializers.DateTimeField(allow_null=True)
    delivered_at = serializers.DateTimeField(allow_null=True)


class MetadataSerializer(serializers.Serializer):
    source = serializers.CharField()
    user_agent = serializers.CharField()
    ip_address = serializers.CharField(allow_null=True)


class OrderSerializer(serializers.ModelSerializer):
    """API representation for an order."""

    items = OrderItemSerializer(many=True, read_only=True)
    pricing = PricingSerializer(source="*", read_only=True)
    payment = PaymentSerializer(source="*", read_only=True)
    shipment = ShipmentSerializer(source="*", read_only=True)
    metadata = MetadataSerializer(source="*", read_only=True)
    shipping_address = OrderAddressSerializer(read_only=True)
    billing_address = OrderAddressSerializer(read_only=True, allow_null=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)
    total_items = serializers.IntegerField(read_only=True)
    is_cancellable = serializers.BooleanField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "user",
            "status",
            "items",
            "total_items",
            "pricing",
            "shipping_address",
            "billing_address",
            "same_as_shipping",
            "payment",
            "shipment",
            "notes",
            "metadata",
            "status_history",
            "is_cancellable",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrderLineInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, max_value=999)
    size = serializers.ChoiceField(choices=ClothingSize.choices, required=False, allow_blank=True)
    color = serializers.CharField(max_length=40, required=False, allow_blank=True)


class AddressInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    phone = serializers.CharField(max_length=32)
    street = serializers.CharField(max_length=200)
    detail_address = serializers.CharField(max_length=200, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=20)
    country = serializers.CharField(max_length=100, required=False, default="South Korea")
    delivery_instructions = serializers.CharField(max_length=200, required=False, allow_blank=True)


class BillingAddressInputSerializer(serializers.Serializer):
    """Billing address; with `same_as_shipping` the other fields are ignored.

    Without it, name, phone, street, city and postal code are required.
    """

    same_as_shipping = serializers.BooleanField(default=True)
    name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    street = serializers.CharField(max_length=200, required=False, allow_blank=True)
    detail_address = serializers.CharField(max_length=200, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    country = serializers.CharField(max_length=100, required=False, allow_blank=True)

    REQUIRED_FIELDS = ("name", "phone", "street", "city", "postal_code")

    def validate(self, attrs):
        if attrs.get("same_as_shipping", True):
            return attrs
        missing = {
            field: ["This field is required."]
            for field in self.REQUIRED_FIELDS
            if not (attrs.get(field) or "").strip()
        }
        if missing:
            raise serializers.ValidationError(missing)
        return attrs


class DiscountInputSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, default=0)
    code = serializers.CharField(max_length=50, required=False, allow_blank=True)
    description = serializers.CharField(max_length=200, required=False, allow_blank=True)


class PaymentInputSerializer(serializers.Serializer):
    """Payment block. A `discount` here takes precedence over a top-level one."""

    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    status = serializers.ChoiceField(choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    discount = DiscountInputSerializer(required=False)


class MetadataInputSerializer(serializers.Serializer):
    source = serializers.ChoiceField(choices=OrderSource.choices, default=OrderSource.WEB)


class OrderCreateSerializer(serializers.Serializer):
    items = OrderLineInputSerializer(many=True, allow_empty=False)
    shipping_address = AddressInputSerializer()
    billing_address = BillingAddressInputSerializer(required=False)
    payment = PaymentInputSerializer()
    discount = DiscountInputSerializer(required=False)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    metadata = MetadataInputSerializer(required=False)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    note = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class PaymentStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PaymentStatus.choices)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)


class ShippingUpdateSerializer(serializers.Serializer):
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    carrier = serializers.CharField(max_length=100, required=False, allow_blank=True)
    estimated_delivery = serializers.DateTimeField(required=False, allow_null=True)


class OrderStatisticsSerializer(serializers.Serializer):
    count = serializers.IntegerField()
    total_amount = serializers.DecimalField(max_digits=14, decimal_places=2)


class OrderListQuerySerializer(serializers.Serializer):
    """Query parameters for a customer's order list; unknown sorts fall back to newest first."""

    status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    sort = serializers.CharField(required=False, allow_blank=True)
