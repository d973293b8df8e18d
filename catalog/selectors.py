"""Selectors for the catalog domain.

Read-only lookups used by the cart and order services when validating a
requested product and quantity.
"""

from common.exceptions import InactiveProduct, InsufficientStock, NotFound

from .models import Product


def get_product(product_id) -> Product:
    """Return the product or raise NotFound."""

    try:
        return Product.objects.get(pk=product_id)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise NotFound("Product not found.") from None


def get_sellable_product(product_id, quantity: int) -> Product:
    """Return a product that is active and has at least ``quantity`` in stock.

    Checks run in order: existence, active flag, stock.
    """

    product = get_product(product_id)
    ensure_sellable(product, quantity)
    return product


def ensure_sellable(product: Product, quantity: int) -> None:
    if not product.is_active:
        raise InactiveProduct(f"{product.name} is not currently for sale.")
    if product.stock < quantity:
        raise InsufficientStock(f"Insufficient stock for {product.name}. Available: {product.stock}")
