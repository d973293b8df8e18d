"""Cart services: validated mutations of the user's cart.

Every mutation runs in a transaction and locks the user's cart row, so
concurrent requests from the same user apply one after another. Validation
happens before anything is written; a raised error leaves the cart as it was.
"""

import hashlib
import json
import logging
from typing import Iterable, Optional

from catalog.models import Product
from catalog.selectors import get_product, get_sellable_product
from common.choices import ClothingSize
from common.exceptions import InsufficientStock, InvalidInput, NotFound
from common.pricing import to_money
from django.db import transaction
from django.utils import timezone

from .models import MAX_LINE_QUANTITY, Cart, CartItem
from .selectors import get_or_create_cart

logger = logging.getLogger("storefront.cart")


def _lock_cart(*, user, create: bool) -> Optional[Cart]:
    if create:
        get_or_create_cart(user=user)
    return Cart.objects.select_for_update().filter(user=user).first()


def _check_quantity(quantity) -> int:
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise InvalidInput("Quantity must be an integer.") from None
    if quantity < 1 or quantity > MAX_LINE_QUANTITY:
        raise InvalidInput(f"Quantity must be between 1 and {MAX_LINE_QUANTITY}.")
    return quantity


def _normalize_variant(size, color) -> tuple[str, str]:
    size = (size or "").strip().upper()
    color = (color or "").strip()
    if size and size not in ClothingSize.values:
        raise InvalidInput(f"Unknown size: {size}.")
    return size, color


def _save_totals(cart: Cart, *fields: str) -> None:
    cart.recalculate()
    cart.save(update_fields=["total_items", "total_price", *fields, "updated_at"])


def _add_line(*, cart: Cart, product: Product, quantity: int, price, size: str, color: str, notes: str) -> CartItem:
    """Merge into the matching (product, size, color) line or append one."""

    item = CartItem.objects.select_for_update().filter(cart=cart, product=product, size=size, color=color).first()
    if item is not None:
        new_quantity = int(item.quantity) + quantity
        if new_quantity > MAX_LINE_QUANTITY:
            raise InvalidInput(f"Quantity must be between 1 and {MAX_LINE_QUANTITY}.")
        item.quantity = new_quantity
        item.added_at = timezone.now()
        fields = ["quantity", "added_at", "updated_at"]
        if notes:
            item.notes = notes
            fields.append("notes")
        item.save(update_fields=fields)
        return item
    unit_price = to_money(price) if price is not None else product.sale_price
    return CartItem.objects.create(
        cart=cart,
        product=product,
        quantity=quantity,
        unit_price=unit_price,
        size=size,
        color=color,
        notes=notes or "",
    )


@transaction.atomic
def add_item(
    *,
    user,
    product_id,
    quantity: int = 1,
    price=None,
    size: str = "",
    color: str = "",
    notes: str = "",
) -> Cart:
    """Add a product to the user's cart, creating the cart on first use.

    Raises NotFound, InactiveProduct or InsufficientStock for the product and
    InvalidInput for quantities outside 1..999 (including after merging into
    an existing line).
    """

    quantity = _check_quantity(quantity)
    size, color = _normalize_variant(size, color)
    product = get_sellable_product(product_id, quantity)
    cart = _lock_cart(user=user, create=True)
    item = _add_line(
        cart=cart,
        product=product,
        quantity=quantity,
        price=price,
        size=size,
        color=color,
        notes=notes,
    )
    _save_totals(cart)
    logger.info(
        "cart.item_added",
        extra={
            "event": "cart.item_added",
            "cart_id": cart.id,
            "user_id": getattr(user, "id", None),
            "product_id": product.id,
            "item_id": item.id,
            "quantity": quantity,
        },
    )
    return cart


@transaction.atomic
def update_item_quantity(*, user, item_id, quantity: int) -> Cart:
    """Set a line's quantity; zero or less removes the line."""

    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise InvalidInput("Quantity must be an integer.") from None
    if quantity <= 0:
        return remove_item(user=user, item_id=item_id)
    if quantity > MAX_LINE_QUANTITY:
        raise InvalidInput(f"Quantity must be between 1 and {MAX_LINE_QUANTITY}.")

    cart = _lock_cart(user=user, create=False)
    if cart is None:
        raise NotFound("Cart not found.")
    item = CartItem.objects.select_for_update().select_related("product").filter(cart=cart, id=item_id).first()
    if item is None:
        raise NotFound("Cart item not found.")
    if item.product.stock < quantity:
        raise InsufficientStock(f"Insufficient stock for {item.product.name}. Available: {item.product.stock}")

    item.quantity = quantity
    item.save(update_fields=["quantity", "updated_at"])
    _save_totals(cart)
    logger.info(
        "cart.item_updated",
        extra={
            "event": "cart.item_updated",
            "cart_id": cart.id,
            "user_id": getattr(user, "id", None),
            "item_id": item.id,
            "quantity": quantity,
        },
    )
    return cart


@transaction.atomic
def remove_item(*, user, item_id, missing_ok: bool = False) -> Optional[Cart]:
    """Remove a line from the cart.

    With ``missing_ok`` a missing cart or line is a silent no-op; otherwise it
    raises NotFound.
    """

    cart = _lock_cart(user=user, create=False)
    if cart is None:
        if missing_ok:
            return None
        raise NotFound("Cart not found.")
    deleted, _ = CartItem.objects.filter(cart=cart, id=item_id).delete()
    if not deleted:
        if missing_ok:
            return cart
        raise NotFound("Cart item not found.")
    _save_totals(cart)
    logger.info(
        "cart.item_removed",
        extra={
            "event": "cart.item_removed",
            "cart_id": cart.id,
            "user_id": getattr(user, "id", None),
            "item_id": item_id,
        },
    )
    return cart


@transaction.atomic
def clear_cart(*, user, missing_ok: bool = False) -> Optional[Cart]:
    """Empty the user's cart, keeping the cart row itself."""

    cart = _lock_cart(user=user, create=False)
    if cart is None:
        if missing_ok:
            return None
        raise NotFound("Cart not found.")
    CartItem.objects.filter(cart=cart).delete()
    cart.last_merge_digest = ""
    _save_totals(cart, "last_merge_digest")
    logger.info(
        "cart.cleared",
        extra={"event": "cart.cleared", "cart_id": cart.id, "user_id": getattr(user, "id", None)},
    )
    return cart


def compute_merge_digest(items: Iterable[dict]) -> str:
    """Canonical SHA256 of a guest-cart payload.

    Uses a sorted-keys JSON rendering of the normalized lines so equivalent
    payloads hash the same.
    """

    normalized = [
        {
            "product_id": str(entry.get("product_id")),
            "quantity": str(entry.get("quantity")),
            "price": None if entry.get("price") is None else str(to_money(entry["price"])),
            "size": (entry.get("size") or "").strip().upper(),
            "color": (entry.get("color") or "").strip(),
            "notes": entry.get("notes") or "",
        }
        for entry in items
    ]
    payload = json.dumps(normalized, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@transaction.atomic
def merge_guest_items(*, user, items: list) -> Cart:
    """Fold a guest cart's lines into the user's cart.

    Lines for missing or inactive products are skipped. The payload digest is
    remembered on the cart; submitting the same payload again is a no-op
    until the cart is cleared.
    """

    items = list(items or [])
    digest = compute_merge_digest(items)
    cart = _lock_cart(user=user, create=True)
    if cart.last_merge_digest == digest:
        logger.info(
            "cart.merge_replayed",
            extra={"event": "cart.merge_replayed", "cart_id": cart.id, "user_id": getattr(user, "id", None)},
        )
        return cart

    merged = skipped = 0
    for entry in items:
        quantity = _check_quantity(entry.get("quantity"))
        size, color = _normalize_variant(entry.get("size"), entry.get("color"))
        try:
            product = get_product(entry.get("product_id"))
        except NotFound:
            skipped += 1
            continue
        if not product.is_active:
            skipped += 1
            continue
        _add_line(
            cart=cart,
            product=product,
            quantity=quantity,
            price=entry.get("price"),
            size=size,
            color=color,
            notes=entry.get("notes") or "",
        )
        merged += 1

    cart.last_merge_digest = digest
    _save_totals(cart, "last_merge_digest")
    logger.info(
        "cart.merged",
        extra={
            "event": "cart.merged",
            "cart_id": cart.id,
            "user_id": getattr(user, "id", None),
            "merged": merged,
            "skipped": skipped,
        },
    )
    return cart
