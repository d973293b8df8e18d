"""Cart URL routes (v1)."""

from django.urls import path

from .views import CartDetailView, CartItemCreateView, CartItemDetailView, CartMergeView, CartSummaryView

app_name = "cart"

urlpatterns = [
    path("", CartDetailView.as_view(), name="cart-detail"),
    path("summary/", CartSummaryView.as_view(), name="cart-summary"),
    path("items/", CartItemCreateView.as_view(), name="cart-add-item"),
    path("items/<int:item_id>/", CartItemDetailView.as_view(), name="cart-item-detail"),
    path("merge/", CartMergeView.as_view(), name="cart-merge"),
]
