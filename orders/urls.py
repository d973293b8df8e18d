"""URL routes for the orders app (v1)."""

from django.urls import path

from .views import (
    AdminOrderListView,
    CancellableOrderListView,
    OrderByNumberView,
    OrderCancelView,
    OrderDetailView,
    OrderListCreateView,
    OrderPaymentView,
    OrderShippingView,
    OrderStatsView,
    OrderStatusView,
)

app_name = "orders"

urlpatterns = [
    path("", OrderListCreateView.as_view(), name="order-list"),
    path("stats/", OrderStatsView.as_view(), name="order-stats"),
    path("cancellable/", CancellableOrderListView.as_view(), name="order-cancellable"),
    path("admin/all/", AdminOrderListView.as_view(), name="order-admin-list"),
    path("number/<str:number>/", OrderByNumberView.as_view(), name="order-by-number"),
    path("<int:order_id>/", OrderDetailView.as_view(), name="order-detail"),
    path("<int:order_id>/cancel/", OrderCancelView.as_view(), name="order-cancel"),
    path("<int:order_id>/status/", OrderStatusView.as_view(), name="order-status"),
    path("<int:order_id>/payment/", OrderPaymentView.as_view(), name="order-payment"),
    path("<int:order_id>/shipping/", OrderShippingView.as_view(), name="order-shipping"),
]
