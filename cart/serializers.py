"""Cart serializers for read and write operations."""

from catalog.serializers import ProductSummarySerializer
from common.choices import ClothingSize
from rest_framework import serializers

from .models import MAX_LINE_QUANTITY, Cart, CartItem


class CartItemReadSerializer(serializers.ModelSerializer):
    """Read serializer for a cart item with its product summary."""

    product = ProductSummarySerializer(read_only=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = CartItem
        fields = [
            "id",
            "product",
            "quantity",
            "unit_price",
            "line_total",
            "size",
            "color",
            "notes",
            "added_at",
        ]


class CartReadSerializer(serializers.ModelSerializer):
    """Cart with items and cached totals; totals are never client-writable."""

    items = CartItemReadSerializer(many=True, read_only=True)
    is_empty = serializers.BooleanField(read_only=True)

    class Meta:
        model = Cart
        fields = ["id", "items", "total_items", "total_price", "is_empty", "updated_at"]
        read_only_fields = fields


class CartSummarySerializer(serializers.Serializer):
    total_items = serializers.IntegerField()
    total_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    item_count = serializers.IntegerField()
    is_empty = serializers.BooleanField()
    shipping_cost = serializers.DecimalField(max_digits=12, decimal_places=2)
    free_shipping_threshold = serializers.DecimalField(max_digits=12, decimal_places=2)
    free_shipping_remaining = serializers.DecimalField(max_digits=12, decimal_places=2)


class AddItemSerializer(serializers.Serializer):
    """Write serializer for adding an item to the cart."""

    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_LINE_QUANTITY, default=1)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    size = serializers.ChoiceField(choices=ClothingSize.choices, required=False, allow_blank=True, default="")
    color = serializers.CharField(max_length=40, required=False, allow_blank=True, default="")
    notes = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")


class UpdateItemQuantitySerializer(serializers.Serializer):
    """Zero removes the line."""

    quantity = serializers.IntegerField(min_value=0, max_value=MAX_LINE_QUANTITY)


class GuestCartItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_LINE_QUANTITY)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    size = serializers.ChoiceField(choices=ClothingSize.choices, required=False, allow_blank=True)
    color = serializers.CharField(max_length=40, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=200, required=False, allow_blank=True)


class MergeGuestCartSerializer(serializers.Serializer):
    guest_cart_items = GuestCartItemSerializer(many=True, allow_empty=True)
