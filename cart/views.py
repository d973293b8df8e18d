"""DRF views for cart operations."""

from common.exceptions import CommerceError, error_response
from drf_spectacular.utils import OpenApiExample, extend_schema, inline_serializer
from rest_framework import serializers as rf_serializers
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .selectors import cart_summary, cart_with_items, get_cart, get_or_create_cart
from .serializers import (
    AddItemSerializer,
    CartReadSerializer,
    CartSummarySerializer,
    MergeGuestCartSerializer,
    UpdateItemQuantitySerializer,
)
from .services import add_item, clear_cart, merge_guest_items, remove_item, update_item_quantity

ERROR_RESPONSE = inline_serializer(
    name="CartError",
    fields={"detail": rf_serializers.CharField(), "code": rf_serializers.CharField()},
)

CART_EXAMPLE = OpenApiExample(
    "Cart",
    value={
        "id": 1,
        "items": [
            {
                "id": 10,
                "product": {"id": 100, "name": "Linen Shirt", "sku": "LS-001", "sale_price": "29000.00"},
                "quantity": 2,
                "unit_price": "29000.00",
                "line_total": "58000.00",
                "size": "M",
                "color": "Navy",
                "notes": "",
                "added_at": "2025-01-01T10:00:00Z",
            }
        ],
        "total_items": 2,
        "total_price": "58000.00",
        "is_empty": False,
        "updated_at": "2025-01-01T10:00:00Z",
    },
)


def _render(cart, *, status_code=status.HTTP_200_OK):
    return Response(CartReadSerializer(cart_with_items(cart)).data, status=status_code)


class CartDetailView(APIView):
    """Return or empty the authenticated user's cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart"

    def get_throttles(self):
        self.throttle_scope = "cart_write" if self.request.method == "DELETE" else "cart"
        return super().get_throttles()

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Get cart",
        description="Returns the user's cart with items and totals, creating an empty cart on first access.",
        responses={200: CartReadSerializer},
        examples=[CART_EXAMPLE],
    )
    def get(self, request):
        cart = get_or_create_cart(user=request.user)
        return _render(cart)

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Empty cart",
        responses={200: CartReadSerializer, 404: ERROR_RESPONSE},
    )
    def delete(self, request):
        try:
            cart = clear_cart(user=request.user)
        except CommerceError as exc:
            return error_response(exc)
        return _render(cart)


class CartSummaryView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "cart"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Cart summary",
        description="Totals plus shipping cost and the amount remaining until free shipping.",
        responses={200: CartSummarySerializer, 404: ERROR_RESPONSE},
        examples=[
            OpenApiExample(
                "Summary",
                value={
                    "total_items": 2,
                    "total_price": "20000.00",
                    "item_count": 1,
                    "is_empty": False,
                    "shipping_cost": "3000.00",
                    "free_shipping_threshold": "50000.00",
                    "free_shipping_remaining": "30000.00",
                },
            )
        ],
    )
    def get(self, request):
        try:
            cart = get_cart(user=request.user)
        except CommerceError as exc:
            return error_response(exc)
        return Response(CartSummarySerializer(cart_summary(cart=cart)).data, status=status.HTTP_200_OK)


class CartItemCreateView(APIView):
    """Add an item to the cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Add item to cart",
        description=(
            "Adds a product to the cart. An existing line with the same product, size and color "
            "is increased instead of duplicated."
        ),
        request=AddItemSerializer,
        responses={201: CartReadSerializer, 400: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        examples=[OpenApiExample("Add", value={"product_id": 100, "quantity": 2, "size": "M"}, request_only=True)],
    )
    def post(self, request):
        serializer = AddItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            cart = add_item(user=request.user, **serializer.validated_data)
        except CommerceError as exc:
            return error_response(exc)
        return _render(cart, status_code=status.HTTP_201_CREATED)


class CartItemDetailView(APIView):
    """Update or remove a single cart line."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Update cart item quantity",
        description="Sets the line quantity; 0 removes the line.",
        request=UpdateItemQuantitySerializer,
        responses={200: CartReadSerializer, 400: ERROR_RESPONSE, 404: ERROR_RESPONSE},
    )
    def put(self, request, item_id: int):
        serializer = UpdateItemQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            cart = update_item_quantity(
                user=request.user, item_id=item_id, quantity=serializer.validated_data["quantity"]
            )
        except CommerceError as exc:
            return error_response(exc)
        return _render(cart)

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Remove cart item",
        responses={200: CartReadSerializer, 404: ERROR_RESPONSE},
    )
    def delete(self, request, item_id: int):
        try:
            cart = remove_item(user=request.user, item_id=item_id)
        except CommerceError as exc:
            return error_response(exc)
        return _render(cart)


class CartMergeView(APIView):
    """Merge a guest (pre-login) cart into the user's cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Merge guest cart into user cart",
        description=(
            "Adds each guest line to the user's cart, skipping products that no longer exist or are "
            "inactive. Re-sending the same payload does not add the quantities twice."
        ),
        request=MergeGuestCartSerializer,
        responses={200: CartReadSerializer, 400: ERROR_RESPONSE},
        examples=[
            OpenApiExample(
                "Merge",
                value={"guest_cart_items": [{"product_id": 100, "quantity": 1}]},
                request_only=True,
            )
        ],
    )
    def post(self, request):
        serializer = MergeGuestCartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            cart = merge_guest_items(user=request.user, items=serializer.validated_data["guest_cart_items"])
        except CommerceError as exc:
            return error_response(exc)
        return _render(cart)
