"""Read-only product representations embedded in cart and order payloads."""

from rest_framework import serializers

from .models import Product, ProductColor, ProductSize


class ProductSizeSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductSize
        fields = ["size", "stock"]


class ProductColorSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductColor
        fields = ["name", "hex_code", "stock"]


class ProductSummarySerializer(serializers.ModelSerializer):
    sale_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    sizes = ProductSizeSerializer(many=True, read_only=True)
    colors = ProductColorSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "sku",
            "brand",
            "category",
            "price",
            "discount",
            "sale_price",
            "images",
            "stock",
            "is_active",
            "sizes",
            "colors",
        ]
        read_only_fields = fields
