"""Admin registration for cart models.

Provides admin interfaces for `Cart` and `CartItem`, with inline items on
the cart page for support staff.
"""

from common.exceptions import CommerceError
from django.contrib import admin, messages

from .models import Cart, CartItem
from .services import clear_cart


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    fields = ("product", "quantity", "unit_price", "size", "color", "notes", "added_at")
    readonly_fields = ("added_at",)
    raw_id_fields = ("product",)


class EmptinessFilter(admin.SimpleListFilter):
    title = "contents"
    parameter_name = "contents"

    def lookups(self, request, model_admin):
        return (
            ("empty", "Empty carts"),
            ("filled", "Carts with items"),
        )

    def queryset(self, request, queryset):
        value = self.value()
        if value == "empty":
            return queryset.filter(total_items=0)
        if value == "filled":
            return queryset.filter(total_items__gt=0)
        return queryset


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "total_items", "total_price", "updated_at", "created_at")
    list_filter = (EmptinessFilter,)
    search_fields = ("user__username", "user__email")
    ordering = ("-updated_at",)
    readonly_fields = ("total_items", "total_price", "last_merge_digest", "created_at", "updated_at")
    inlines = [CartItemInline]
    autocomplete_fields = ("user",)
    list_select_related = ("user",)
    actions = ["action_clear_cart"]

    @admin.action(description="Clear cart (remove all items)")
    def action_clear_cart(self, request, queryset):
        successes = 0
        failures = 0
        for cart in queryset.select_related("user"):
            try:
                clear_cart(user=cart.user)
                successes += 1
            except CommerceError:
                failures += 1
        if successes:
            messages.success(request, f"Cleared {successes} cart(s).")
        if failures:
            messages.error(request, f"Failed to clear {failures} cart(s).")


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ("id", "cart", "product", "quantity", "unit_price", "size", "color", "added_at")
    search_fields = ("product__sku", "product__name", "cart__user__email")
    ordering = ("id",)
    readonly_fields = ("created_at", "updated_at")
    raw_id_fields = ("cart", "product")
