"""DRF views for orders.

Customers see and cancel their own orders; staff can read any order, list
all orders with filters, and drive status, payment and shipment updates.
Domain errors are rendered as `{"detail", "code"}` with their HTTP status.
"""

from common.exceptions import CommerceError, error_response
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import generics
from rest_framework import serializers as rf_serializers
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .filters import AdminOrderFilter
from .pagination import AdminOrderPagination, OrderPagination
from .selectors import (
    get_order,
    get_order_by_number,
    list_cancellable_orders,
    list_orders_for_admin,
    list_orders_for_user,
    order_statistics,
)
from .serializers import (
    CancelOrderSerializer,
    OrderCreateSerializer,
    OrderListQuerySerializer,
    OrderSerializer,
    OrderStatisticsSerializer,
    PaymentStatusUpdateSerializer,
    ShippingUpdateSerializer,
    StatusUpdateSerializer,
)
from .services import cancel_order, create_order, update_payment_status, update_shipping, update_status

ERROR_RESPONSE = inline_serializer(
    name="OrderError",
    fields={"detail": rf_serializers.CharField(), "code": rf_serializers.CharField()},
)


def _client_metadata(request, source: str) -> dict:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    ip = forwarded.split(",")[0].strip() if forwarded else request.META.get("REMOTE_ADDR")
    return {
        "source": source,
        "user_agent": request.META.get("HTTP_USER_AGENT", ""),
        "ip_address": ip or None,
    }


class WriteScopedThrottleMixin:
    """Use the `orders_write` throttle scope for unsafe methods."""

    throttle_scope = "orders"

    def get_throttles(self):
        self.throttle_scope = "orders" if self.request.method in ("GET", "HEAD", "OPTIONS") else "orders_write"
        return super().get_throttles()


class OrderListCreateView(WriteScopedThrottleMixin, APIView):
    """List the user's orders or place a new one."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Orders"],
        summary="List my orders",
        description="Paginated list of the authenticated user's orders, newest first by default.",
        parameters=[
            OpenApiParameter(name="status", description="Order status filter", required=False, type=str),
            OpenApiParameter(
                name="sort",
                description="One of created_at, -created_at, total_amount, -total_amount",
                required=False,
                type=str,
            ),
            OpenApiParameter(name="page", description="Page number", required=False, type=int),
            OpenApiParameter(name="limit", description="Items per page (default 20)", required=False, type=int),
        ],
        responses={200: OrderSerializer(many=True)},
    )
    def get(self, request):
        query = OrderListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        qs = list_orders_for_user(
            user=request.user,
            status=query.validated_data.get("status"),
            sort=query.validated_data.get("sort"),
        )
        paginator = OrderPagination()
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(OrderSerializer(page, many=True).data)

    @extend_schema(
        tags=["Orders"],
        summary="Place order",
        description=(
            "Validates every line against the catalog, prices it at the current sale price, applies "
            "shipping (free from 50,000) and, for paid orders, checks for duplicates and verifies the "
            "payment with the provider before persisting. The cart is emptied on success."
        ),
        request=OrderCreateSerializer,
        responses={201: OrderSerializer, 400: ERROR_RESPONSE, 404: ERROR_RESPONSE, 409: ERROR_RESPONSE},
        examples=[
            OpenApiExample(
                "Paid card order",
                value={
                    "items": [{"product_id": 100, "quantity": 2, "size": "M"}],
                    "shipping_address": {
                        "name": "Kim Minji",
                        "phone": "010-1234-5678",
                        "street": "123 Teheran-ro",
                        "city": "Seoul",
                        "postal_code": "06234",
                    },
                    "payment": {
                        "method": "card",
                        "status": "paid",
                        "transaction_id": "imp_123456",
                        "discount": {"amount": "1000", "code": "WELCOME"},
                    },
                },
                request_only=True,
            )
        ],
    )
    def post(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        source = (data.get("metadata") or {}).get("source") or "web"
        try:
            order = create_order(
                user=request.user,
                items=data["items"],
                shipping_address=data["shipping_address"],
                billing_address=data.get("billing_address"),
                payment=data["payment"],
                discount=data.get("discount"),
                notes=data.get("notes", ""),
                metadata=_client_metadata(request, source),
            )
        except CommerceError as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderStatsView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Orders"],
        summary="Order statistics",
        description="Count and total amount per status. Staff see all orders; customers see their own.",
        responses={200: OrderStatisticsSerializer(many=True)},
        examples=[
            OpenApiExample(
                "Stats",
                value={"pending": {"count": 2, "total_amount": "106000.00"}},
                response_only=True,
            )
        ],
    )
    def get(self, request):
        stats = order_statistics(user=None if request.user.is_staff else request.user)
        data = {key: OrderStatisticsSerializer(value).data for key, value in stats.items()}
        return Response(data, status=status.HTTP_200_OK)


class CancellableOrderListView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Orders"],
        summary="List my cancellable orders",
        description="Orders still pending or confirmed whose payment is pending or failed.",
        responses={200: OrderSerializer(many=True)},
    )
    def get(self, request):
        orders = list_cancellable_orders(user=request.user)
        return Response(OrderSerializer(orders, many=True).data, status=status.HTTP_200_OK)


class AdminOrderListView(generics.ListAPIView):
    """Back-office list of all orders."""

    permission_classes = [IsAdminUser]
    throttle_scope = "orders"
    serializer_class = OrderSerializer
    pagination_class = AdminOrderPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = AdminOrderFilter

    def get_queryset(self):
        return list_orders_for_admin()

    @extend_schema(
        tags=["Orders"],
        summary="List all orders (staff)",
        parameters=[
            OpenApiParameter(name="page", description="Page number", required=False, type=int),
            OpenApiParameter(name="limit", description="Items per page (default 50)", required=False, type=int),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderByNumberView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Orders"],
        summary="Get order by number",
        responses={200: OrderSerializer, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
    )
    def get(self, request, number: str):
        try:
            order = get_order_by_number(number=number, requester=request.user)
        except CommerceError as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)


class OrderDetailView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Orders"],
        summary="Get order detail",
        description="Owner or staff only; anyone else receives 403.",
        responses={200: OrderSerializer, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
    )
    def get(self, request, order_id: int):
        try:
            order = get_order(order_id=order_id, requester=request.user)
        except CommerceError as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)


class OrderCancelView(APIView):
    """Cancel an order and restore its stock."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Cancel order",
        description="Not allowed once the order has shipped, been delivered or was already cancelled.",
        request=CancelOrderSerializer,
        responses={200: OrderSerializer, 400: ERROR_RESPONSE, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        examples=[OpenApiExample("Cancel", value={"reason": "Changed my mind"}, request_only=True)],
    )
    def put(self, request, order_id: int):
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            order = get_order(order_id=order_id, requester=request.user)
            order = cancel_order(order=order, reason=serializer.validated_data["reason"], actor=request.user)
        except CommerceError as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)


class OrderStatusView(APIView):
    """Administrative status override."""

    permission_classes = [IsAdminUser]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Update order status (staff)",
        description="Sets any status and appends a history entry. Does not restore stock.",
        request=StatusUpdateSerializer,
        responses={200: OrderSerializer, 400: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        examples=[OpenApiExample("Ship", value={"status": "shipped", "note": "Handed to carrier"}, request_only=True)],
    )
    def put(self, request, order_id: int):
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            order = get_order(order_id=order_id, requester=request.user)
            order = update_status(order=order, actor=request.user, **serializer.validated_data)
        except CommerceError as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)


class OrderPaymentView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Update payment status",
        description="Owner or staff. `paid` stamps paid_at; `refunded` stamps refunded_at.",
        request=PaymentStatusUpdateSerializer,
        responses={
            200: OrderSerializer,
            400: ERROR_RESPONSE,
            403: ERROR_RESPONSE,
            404: ERROR_RESPONSE,
            409: ERROR_RESPONSE,
        },
    )
    def put(self, request, order_id: int):
        serializer = PaymentStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            order = get_order(order_id=order_id, requester=request.user)
            order = update_payment_status(
                order=order,
                status=serializer.validated_data["status"],
                transaction_id=serializer.validated_data.get("transaction_id"),
            )
        except CommerceError as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)


class OrderShippingView(APIView):
    permission_classes = [IsAdminUser]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Update shipment (staff)",
        request=ShippingUpdateSerializer,
        responses={
            200: OrderSerializer,
            404: ERROR_RESPONSE,
        },
    )
    def put(self, request, order_id: int):
        serializer = ShippingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            order = get_order(order_id=order_id, requester=request.user)
            order = update_shipping(order=order, **serializer.validated_data)
        except CommerceError as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)
