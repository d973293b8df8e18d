from decimal import Decimal

import pytest
from catalog.models import Product
from catalog.selectors import get_product, get_sellable_product
from catalog.services import decrement_stock, restore_stock
from catalog.tests.factories import ProductColorFactory, ProductFactory, ProductSizeFactory
from common.exceptions import InactiveProduct, InsufficientStock, NotFound
from django.db import IntegrityError, transaction


@pytest.mark.django_db
def test_sale_price_applies_discount_half_up():
    p = ProductFactory(price=Decimal("19999.99"), discount=15)
    # 19999.99 * 0.85 = 16999.9915
    assert p.sale_price == Decimal("16999.99")
    assert ProductFactory(price=Decimal("0.05"), discount=50).sale_price == Decimal("0.03")
    assert ProductFactory(price=Decimal("100.00"), discount=0).sale_price == Decimal("100.00")


@pytest.mark.django_db
def test_sku_is_upper_cased_on_save():
    p = ProductFactory(sku=" abc-1 ")
    p.refresh_from_db()
    assert p.sku == "ABC-1"


@pytest.mark.django_db
def test_sellable_checks_run_in_order():
    with pytest.raises(NotFound):
        get_product(999999)
    inactive = ProductFactory(is_active=False, stock=0)
    with pytest.raises(InactiveProduct):
        get_sellable_product(inactive.id, 1)
    low = ProductFactory(stock=2)
    with pytest.raises(InsufficientStock):
        get_sellable_product(low.id, 3)
    assert get_sellable_product(low.id, 2) == low


@pytest.mark.django_db
def test_decrement_stock_is_conditional():
    p = ProductFactory(stock=3, sales=1)
    assert decrement_stock(product_id=p.id, quantity=2) is True
    p.refresh_from_db()
    assert (p.stock, p.sales) == (1, 3)

    assert decrement_stock(product_id=p.id, quantity=2) is False
    p.refresh_from_db()
    assert (p.stock, p.sales) == (1, 3)


@pytest.mark.django_db
def test_restore_stock_clamps_sales_at_zero():
    p = ProductFactory(stock=0, sales=1)
    assert restore_stock(product_id=p.id, quantity=4) is True
    p.refresh_from_db()
    assert (p.stock, p.sales) == (4, 0)
    assert restore_stock(product_id=999999, quantity=1) is False


@pytest.mark.django_db
def test_stock_cannot_go_negative():
    p = ProductFactory(stock=1)
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            Product.objects.filter(pk=p.pk).update(stock=-1)


@pytest.mark.django_db
def test_variants_are_unique_per_product():
    size = ProductSizeFactory(size="L")
    color = ProductColorFactory(name="Navy")
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            ProductSizeFactory(product=size.product, size="L")
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            ProductColorFactory(product=color.product, name="Navy")
