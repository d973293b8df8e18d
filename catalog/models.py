"""Catalog app models.

Products are the only catalog entity the storefront needs: carts and orders
reference them, read their sale price, and move their stock/sales counters.
Size and color rows are optional per-product variants shown alongside the
product; stock accounting at checkout happens on the product itself.
"""

from common.choices import ClothingSize, ProductCategory
from common.pricing import discounted_price
from django.core.validators import MaxValueValidator, RegexValidator
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Product(TimeStampedModel):
    """Sellable clothing item."""

    CATEGORY_TOPS = ProductCategory.TOPS
    CATEGORY_BOTTOMS = ProductCategory.BOTTOMS
    CATEGORY_ACCESSORIES = ProductCategory.ACCESSORIES
    CATEGORY_CHOICES = ProductCategory.choices

    name = models.CharField(max_length=100)
    description = models.TextField(max_length=2000, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    discount = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(100)])
    # Opaque image URLs; upload handling lives elsewhere
    images = models.JSONField(default=list, blank=True)
    category = models.CharField(max_length=16, choices=CATEGORY_CHOICES, db_index=True)
    brand = models.CharField(max_length=50, blank=True)
    sku = models.CharField(max_length=64, unique=True)
    stock = models.PositiveIntegerField(default=0)
    sales = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    is_featured = models.BooleanField(default=False)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(name="product_price_non_negative", condition=models.Q(price__gte=0)),
            models.CheckConstraint(name="product_stock_non_negative", condition=models.Q(stock__gte=0)),
            models.CheckConstraint(
                name="product_discount_percent_range",
                condition=models.Q(discount__gte=0, discount__lte=100),
            ),
        ]
        indexes = [
            models.Index(fields=["category", "is_active"], name="catalog_pro_categor_1f0c2e_idx"),
            models.Index(fields=["is_featured", "is_active"], name="catalog_pro_is_feat_7b9d41_idx"),
            models.Index(fields=["-sales"], name="catalog_pro_sales_3c8a10_idx"),
        ]

    def save(self, *args, **kwargs):
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)

    @property
    def sale_price(self):
        return discounted_price(self.price, self.discount)

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} [{self.sku}]"


class ProductSize(TimeStampedModel):
    """Per-size stock for a product."""

    product = models.ForeignKey(Product, related_name="sizes", on_delete=models.CASCADE)
    size = models.CharField(max_length=4, choices=ClothingSize.choices)
    stock = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["product", "size"], name="uniq_product_size"),
            models.CheckConstraint(name="product_size_stock_non_negative", condition=models.Q(stock__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.product.sku}/{self.size}"


class ProductColor(TimeStampedModel):
    """Per-color stock for a product."""

    product = models.ForeignKey(Product, related_name="colors", on_delete=models.CASCADE)
    name = models.CharField(max_length=40)
    hex_code = models.CharField(
        max_length=7,
        blank=True,
        validators=[RegexValidator(r"^#[0-9A-Fa-f]{6}$", message="Use #RRGGBB")],
    )
    stock = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["product", "name"], name="uniq_product_color"),
            models.CheckConstraint(name="product_color_stock_non_negative", condition=models.Q(stock__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.product.sku}/{self.name}"
