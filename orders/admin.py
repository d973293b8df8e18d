"""Admin registration for orders: lines and status history inline."""

from django.contrib import admin

from .models import Order, OrderItem, OrderStatusHistory


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ("product", "name", "quantity", "unit_price", "line_total", "size", "color")
    readonly_fields = ("line_total",)
    raw_id_fields = ("product",)


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    fields = ("status", "note", "actor", "created_at")
    readonly_fields = ("status", "note", "actor", "created_at")
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "user", "status", "payment_status", "total_amount", "created_at")
    list_filter = ("status", "payment_status", "payment_method", "created_at")
    search_fields = ("number", "user__email", "user__username", "transaction_id", "tracking_number")
    date_hierarchy = "created_at"
    readonly_fields = ("number", "total_amount", "created_at", "updated_at")
    raw_id_fields = ("user", "shipping_address", "billing_address")
    list_select_related = ("user",)
    inlines = [OrderItemInline, OrderStatusHistoryInline]
    actions = ["recalculate_totals"]

    @admin.action(description="Recalculate totals from order lines")
    def recalculate_totals(self, request, queryset):
        for order in queryset.prefetch_related("items"):
            order.recalculate_totals()
            order.save(update_fields=["subtotal", "updated_at"])
        self.message_user(request, f"Recalculated {queryset.count()} order(s).")


@admin.register(OrderItem)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "product", "name", "quantity", "unit_price", "line_total")
    search_fields = ("order__number", "product__sku", "name")
    raw_id_fields = ("order", "product")
