import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=100)),
                ("description", models.TextField(blank=True, max_length=2000)),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "discount",
                    models.PositiveSmallIntegerField(
                        default=0, validators=[django.core.validators.MaxValueValidator(100)]
                    ),
                ),
                ("images", models.JSONField(blank=True, default=list)),
                (
                    "category",
                    models.CharField(
                        choices=[("tops", "Tops"), ("bottoms", "Bottoms"), ("accessories", "Accessories")],
                        db_index=True,
                        max_length=16,
                    ),
                ),
                ("brand", models.CharField(blank=True, max_length=50)),
                ("sku", models.CharField(max_length=64, unique=True)),
                ("stock", models.PositiveIntegerField(default=0)),
                ("sales", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("is_featured", models.BooleanField(default=False)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["category", "is_active"], name="catalog_pro_categor_1f0c2e_idx"),
                    models.Index(fields=["is_featured", "is_active"], name="catalog_pro_is_feat_7b9d41_idx"),
                    models.Index(fields=["-sales"], name="catalog_pro_sales_3c8a10_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("price__gte", 0)), name="product_price_non_negative"),
                    models.CheckConstraint(condition=models.Q(("stock__gte", 0)), name="product_stock_non_negative"),
                    models.CheckConstraint(
                        condition=models.Q(("discount__gte", 0), ("discount__lte", 100)),
                        name="product_discount_percent_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductSize",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "size",
                    models.CharField(
                        choices=[("XS", "XS"), ("S", "S"), ("M", "M"), ("L", "L"), ("XL", "XL"), ("XXL", "XXL")],
                        max_length=4,
                    ),
                ),
                ("stock", models.PositiveIntegerField(default=0)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="sizes", to="catalog.product"
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.UniqueConstraint(fields=("product", "size"), name="uniq_product_size"),
                    models.CheckConstraint(
                        condition=models.Q(("stock__gte", 0)), name="product_size_stock_non_negative"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductColor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=40)),
                (
                    "hex_code",
                    models.CharField(
                        blank=True,
                        max_length=7,
                        validators=[django.core.validators.RegexValidator("^#[0-9A-Fa-f]{6}$", message="Use #RRGGBB")],
                    ),
                ),
                ("stock", models.PositiveIntegerField(default=0)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="colors", to="catalog.product"
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.UniqueConstraint(fields=("product", "name"), name="uniq_product_color"),
                    models.CheckConstraint(
                        condition=models.Q(("stock__gte", 0)), name="product_color_stock_non_negative"
                    ),
                ],
            },
        ),
    ]
