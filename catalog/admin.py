"""Admin registration for catalog models."""

from django.contrib import admin

from .models import Product, ProductColor, ProductSize


class ProductSizeInline(admin.TabularInline):
    model = ProductSize
    extra = 0


class ProductColorInline(admin.TabularInline):
    model = ProductColor
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "category", "price", "discount", "stock", "sales", "is_active", "is_featured")
    search_fields = ("name", "sku", "brand")
    list_filter = ("category", "is_active", "is_featured")
    readonly_fields = ("sales", "created_at", "updated_at")
    inlines = [ProductSizeInline, ProductColorInline]
