from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from cart.models import Cart, CartItem
from cart.services import add_item
from cart.tests.factories import StaffUserFactory, UserFactory
from catalog.models import Product
from catalog.tests.factories import ProductFactory
from common.choices import PaymentStatus
from common.exceptions import (
    DuplicateOrder,
    InactiveProduct,
    InsufficientStock,
    InvalidInput,
    InvalidStateTransition,
    NotFound,
    PaymentVerificationFailed,
)
from django.utils import timezone
from orders.models import Order
from orders.selectors import list_cancellable_orders, order_statistics
from orders.services import (
    cancel_order,
    create_order,
    is_duplicate_order,
    update_payment_status,
    update_shipping,
    update_status,
)
from orders.tests.factories import OrderFactory, OrderItemFactory

ADDRESS = {
    "name": "Kim Minji",
    "phone": "010-1234-5678",
    "street": "123 Teheran-ro",
    "city": "Seoul",
    "postal_code": "06234",
    "delivery_instructions": "Leave at the door",
}


def _gateway(configured=True):
    gateway = MagicMock()
    gateway.is_configured = configured
    return gateway


def _place(user, items, **kwargs):
    kwargs.setdefault("shipping_address", ADDRESS)
    kwargs.setdefault("payment", {"method": "card"})
    kwargs.setdefault("gateway", _gateway(configured=False))
    return create_order(user=user, items=items, **kwargs)


@pytest.mark.django_db
def test_create_order_prices_lines_from_catalog_and_decrements_stock():
    user = UserFactory()
    p1 = ProductFactory(price=Decimal("20000.00"), discount=10, stock=5)
    p2 = ProductFactory(price=Decimal("15000.00"), stock=3)

    order = _place(
        user,
        [
            {"product_id": p1.id, "quantity": 2, "size": "M"},
            {"product_id": p2.id, "quantity": 1, "color": "Black"},
        ],
    )

    assert order.subtotal == Decimal("51000.00")
    assert order.shipping_cost == Decimal("0.00")
    assert order.total_amount == Decimal("51000.00")
    assert order.status == Order.STATUS_PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.number.isdigit() and len(order.number) == 16
    assert [(i.product_id, i.quantity, i.unit_price) for i in order.items.all()] == [
        (p1.id, 2, Decimal("18000.00")),
        (p2.id, 1, Decimal("15000.00")),
    ]
    assert order.items.all()[0].size == "M"
    assert order.total_items == 3

    p1.refresh_from_db()
    p2.refresh_from_db()
    assert (p1.stock, p1.sales) == (3, 2)
    assert (p2.stock, p2.sales) == (2, 1)

    history = list(order.status_history.all())
    assert [(h.status, h.note) for h in history] == [("pending", "Order created")]


@pytest.mark.django_db
def test_create_order_below_threshold_charges_flat_shipping_and_applies_discount():
    user = UserFactory()
    product = ProductFactory(price=Decimal("10000.00"))

    order = _place(
        user,
        [{"product_id": product.id, "quantity": 1}],
        discount={"amount": Decimal("1000.00"), "code": "WELCOME", "description": "First order"},
    )

    assert order.shipping_cost == Decimal("3000.00")
    assert order.discount_amount == Decimal("1000.00")
    assert order.discount_code == "WELCOME"
    assert order.total_amount == Decimal("12000.00")


@pytest.mark.django_db
def test_create_order_rejects_discount_larger_than_total():
    product = ProductFactory(price=Decimal("10000.00"))

    with pytest.raises(InvalidInput):
        _place(UserFactory(), [{"product_id": product.id, "quantity": 1}], discount={"amount": Decimal("99999")})
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_create_order_copies_shipping_into_billing_by_default():
    product = ProductFactory()

    order = _place(UserFactory(), [{"product_id": product.id, "quantity": 1}])

    assert order.same_as_shipping is True
    assert order.billing_address_id != order.shipping_address_id
    assert order.billing_address.street == ADDRESS["street"]
    assert order.billing_address.delivery_instructions == ""


@pytest.mark.django_db
def test_create_order_with_separate_billing_address():
    product = ProductFactory()
    billing = {**ADDRESS, "same_as_shipping": False, "street": "1 Billing-gil"}
    billing.pop("delivery_instructions")

    order = _place(UserFactory(), [{"product_id": product.id, "quantity": 1}], billing_address=billing)

    assert order.same_as_shipping is False
    assert order.billing_address.street == "1 Billing-gil"


@pytest.mark.django_db
def test_create_order_validation_errors_write_nothing():
    user = UserFactory()
    ok = ProductFactory(stock=5)
    inactive = ProductFactory(is_active=False)
    scarce = ProductFactory(stock=1)

    with pytest.raises(InvalidInput):
        _place(user, [])
    with pytest.raises(NotFound):
        _place(user, [{"product_id": ok.id, "quantity": 1}, {"product_id": 999999, "quantity": 1}])
    with pytest.raises(InactiveProduct):
        _place(user, [{"product_id": inactive.id, "quantity": 1}])
    with pytest.raises(InsufficientStock):
        _place(user, [{"product_id": ok.id, "quantity": 1}, {"product_id": scarce.id, "quantity": 2}])

    ok.refresh_from_db()
    assert ok.stock == 5
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_create_order_stock_taken_before_persist_rolls_back():
    user = UserFactory()
    first = ProductFactory(stock=5)
    second = ProductFactory(stock=1)
    gateway = _gateway()

    def sell_out(*args, **kwargs):
        Product.objects.filter(pk=second.pk).update(stock=0)
        return {"status": "paid"}

    gateway.verify.side_effect = sell_out

    with pytest.raises(InsufficientStock):
        _place(
            user,
            [{"product_id": first.id, "quantity": 2}, {"product_id": second.id, "quantity": 1}],
            payment={"method": "card", "status": "paid", "transaction_id": "imp_race"},
            gateway=gateway,
        )

    first.refresh_from_db()
    assert first.stock == 5
    assert first.sales == 0
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_create_order_clears_cart():
    user = UserFactory()
    product = ProductFactory(stock=5)
    add_item(user=user, product_id=product.id, quantity=2)

    _place(user, [{"product_id": product.id, "quantity": 2}])

    assert CartItem.objects.filter(cart__user=user).count() == 0
    assert Cart.objects.get(user=user).total_items == 0


@pytest.mark.django_db
def test_paid_order_is_verified_with_gateway():
    user = UserFactory()
    product = ProductFactory(price=Decimal("10000.00"))
    gateway = _gateway()

    order = _place(
        user,
        [{"product_id": product.id, "quantity": 1}],
        payment={"method": "card", "status": "paid", "transaction_id": "imp_1"},
        gateway=gateway,
    )

    gateway.verify.assert_called_once_with("imp_1", Decimal("13000.00"))
    assert order.payment_status == PaymentStatus.PAID
    assert order.transaction_id == "imp_1"
    assert order.paid_at is not None


@pytest.mark.django_db
def test_failed_verification_writes_nothing():
    user = UserFactory()
    product = ProductFactory(stock=4)
    gateway = _gateway()
    gateway.verify.side_effect = PaymentVerificationFailed("Payment amount mismatch.")

    with pytest.raises(PaymentVerificationFailed):
        _place(
            user,
            [{"product_id": product.id, "quantity": 1}],
            payment={"method": "card", "status": "paid", "transaction_id": "imp_bad"},
            gateway=gateway,
        )

    product.refresh_from_db()
    assert product.stock == 4
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_pending_payment_skips_gateway():
    gateway = _gateway()
    product = ProductFactory()

    _place(
        UserFactory(),
        [{"product_id": product.id, "quantity": 1}],
        payment={"method": "bank_transfer", "transaction_id": "imp_pending"},
        gateway=gateway,
    )

    gateway.verify.assert_not_called()


@pytest.mark.django_db
def test_reused_transaction_id_is_duplicate():
    user = UserFactory()
    product = ProductFactory(stock=10)
    payment = {"method": "card", "status": "paid", "transaction_id": "imp_same"}

    _place(user, [{"product_id": product.id, "quantity": 1}], payment=payment)
    with pytest.raises(DuplicateOrder):
        _place(user, [{"product_id": product.id, "quantity": 3}], payment=payment)

    product.refresh_from_db()
    assert product.stock == 9
    assert Order.objects.filter(user=user).count() == 1


@pytest.mark.django_db
def test_same_cart_resubmitted_within_window_is_duplicate():
    user = UserFactory()
    product = ProductFactory(stock=10)
    items = [{"product_id": product.id, "quantity": 2}]

    _place(user, items, payment={"method": "card", "status": "paid", "transaction_id": "imp_a"})
    with pytest.raises(DuplicateOrder):
        _place(user, items, payment={"method": "card", "status": "paid", "transaction_id": "imp_b"})


@pytest.mark.django_db
def test_different_lines_or_other_user_are_not_duplicates():
    user = UserFactory()
    product = ProductFactory(stock=10)
    _place(user, [{"product_id": product.id, "quantity": 2}])

    assert not is_duplicate_order(
        user=user,
        transaction_id="imp_new",
        total_amount=Decimal("23000.00"),
        items=[{"product_id": product.id, "quantity": 1}],
    )
    assert not is_duplicate_order(
        user=UserFactory(),
        transaction_id="imp_new",
        total_amount=Decimal("23000.00"),
        items=[{"product_id": product.id, "quantity": 2}],
    )
    assert is_duplicate_order(
        user=user,
        transaction_id="imp_new",
        total_amount=Decimal("23000.00"),
        items=[{"product_id": product.id, "quantity": 2}],
    )


@pytest.mark.django_db
def test_duplicate_window_is_configurable(settings):
    settings.ORDER_DUPLICATE_WINDOW_SECONDS = 0
    user = UserFactory()
    product = ProductFactory(stock=10)
    items = [{"product_id": product.id, "quantity": 1}]
    _place(user, items)

    assert not is_duplicate_order(user=user, transaction_id="imp_x", total_amount=Decimal("13000.00"), items=items)


@pytest.mark.django_db
def test_cancel_order_restores_stock_and_records_history():
    user = UserFactory()
    product = ProductFactory(stock=5)
    order = _place(user, [{"product_id": product.id, "quantity": 2}])

    cancelled = cancel_order(order=order, reason="Changed my mind", actor=user)

    assert cancelled.status == Order.STATUS_CANCELLED
    product.refresh_from_db()
    assert (product.stock, product.sales) == (5, 0)
    assert cancelled.status_history.last().note == "Changed my mind"


@pytest.mark.django_db
def test_cancel_order_default_reason_and_deleted_product():
    order = OrderFactory()
    OrderItemFactory(order=order, product=None, name="Gone")

    cancelled = cancel_order(order=order)

    assert cancelled.status_history.last().note == "Customer request"


@pytest.mark.django_db
@pytest.mark.parametrize("status", ["shipped", "delivered", "cancelled"])
def test_cancel_order_rejected_after_shipment(status):
    product = ProductFactory(stock=5)
    order = OrderFactory(status=status)
    OrderItemFactory(order=order, product=product, quantity=2)

    with pytest.raises(InvalidStateTransition):
        cancel_order(order=order)

    product.refresh_from_db()
    assert product.stock == 5


@pytest.mark.django_db
def test_update_status_stamps_shipped_and_delivered_once():
    staff = StaffUserFactory()
    order = OrderFactory()

    shipped = update_status(order=order, status="shipped", note="Handed to carrier", actor=staff)
    first_shipped_at = shipped.shipped_at
    assert first_shipped_at is not None

    shipped = update_status(order=shipped, status="shipped", actor=staff)
    assert shipped.shipped_at == first_shipped_at

    delivered = update_status(order=shipped, status="delivered", actor=staff)
    assert delivered.delivered_at is not None
    assert [h.status for h in delivered.status_history.all()] == ["shipped", "shipped", "delivered"]
    assert delivered.status_history.first().actor_id == staff.id


@pytest.mark.django_db
def test_update_status_to_cancelled_leaves_stock_alone():
    product = ProductFactory(stock=3)
    order = OrderFactory()
    OrderItemFactory(order=order, product=product, quantity=2)

    update_status(order=order, status="cancelled")

    product.refresh_from_db()
    assert product.stock == 3


@pytest.mark.django_db
def test_update_status_rejects_unknown_status():
    with pytest.raises(InvalidInput):
        update_status(order=OrderFactory(), status="lost")


@pytest.mark.django_db
def test_update_payment_status_stamps_paid_and_refunded():
    order = OrderFactory()

    paid = update_payment_status(order=order, status="paid", transaction_id="imp_77")
    assert paid.payment_status == "paid"
    assert paid.transaction_id == "imp_77"
    assert paid.paid_at is not None

    assert paid.refund_amount == Decimal("0.00")

    refunded = update_payment_status(order=paid, status="refunded")
    assert refunded.refunded_at is not None
    assert refunded.transaction_id == "imp_77"
    assert refunded.refund_amount == Decimal("23000.00")


@pytest.mark.django_db
def test_update_payment_status_rejects_transaction_reuse_for_same_user():
    user = UserFactory()
    OrderFactory(user=user, transaction_id="imp_taken")
    order = OrderFactory(user=user)

    with pytest.raises(DuplicateOrder):
        update_payment_status(order=order, status="paid", transaction_id="imp_taken")

    order.refresh_from_db()
    assert order.payment_status == "pending"


@pytest.mark.django_db
def test_update_shipping_sets_fields_and_stamps_once():
    order = OrderFactory()

    updated = update_shipping(order=order, tracking_number="TRK123", carrier="CJ")
    assert (updated.tracking_number, updated.carrier) == ("TRK123", "CJ")
    shipped_at = updated.shipped_at
    assert shipped_at is not None

    again = update_shipping(order=updated, tracking_number="TRK456")
    assert again.tracking_number == "TRK456"
    assert again.carrier == "CJ"
    assert again.shipped_at == shipped_at


@pytest.mark.django_db
def test_order_statistics_per_user_and_global():
    user = UserFactory()
    OrderFactory(user=user)
    OrderFactory(user=user)
    OrderFactory(user=user, status="delivered")
    OrderFactory(status="pending")

    mine = order_statistics(user=user)
    assert mine["pending"] == {"count": 2, "total_amount": Decimal("46000.00")}
    assert mine["delivered"]["count"] == 1
    assert "cancelled" not in mine

    everything = order_statistics()
    assert everything["pending"]["count"] == 3


@pytest.mark.django_db
def test_list_cancellable_orders():
    user = UserFactory()
    pending = OrderFactory(user=user)
    confirmed_failed = OrderFactory(user=user, status="confirmed", payment_status="failed")
    OrderFactory(user=user, status="confirmed", payment_status="paid")
    OrderFactory(user=user, status="shipped")
    OrderFactory(payment_status="pending")

    ids = {o.id for o in list_cancellable_orders(user=user)}
    assert ids == {pending.id, confirmed_failed.id}


@pytest.mark.django_db
def test_order_total_is_recomputed_on_save():
    order = OrderFactory(subtotal=Decimal("10000.00"), shipping_cost=Decimal("3000.00"))
    order.tax = Decimal("500.00")
    order.discount_amount = Decimal("1500.00")
    order.save(update_fields=["tax", "discount_amount"])

    order.refresh_from_db()
    assert order.total_amount == Decimal("12000.00")


@pytest.mark.django_db
def test_recalculate_totals_rederives_subtotal_from_lines():
    order = OrderFactory(subtotal=Decimal("1.00"))
    OrderItemFactory(order=order, quantity=2, unit_price=Decimal("7000.00"))
    OrderItemFactory(order=order, product=None, name="Gone", quantity=1, unit_price=Decimal("500.00"))

    order.recalculate_totals()
    order.save(update_fields=["subtotal"])

    order.refresh_from_db()
    assert order.subtotal == Decimal("14500.00")
    assert order.total_amount == Decimal("17500.00")


@pytest.mark.django_db
@pytest.mark.parametrize(
    "price, quantity, expected_shipping, expected_total",
    [
        (Decimal("25000.00"), 2, Decimal("0.00"), Decimal("50000.00")),
        (Decimal("49999.00"), 1, Decimal("3000.00"), Decimal("52999.00")),
    ],
)
def test_free_shipping_starts_exactly_at_threshold(price, quantity, expected_shipping, expected_total):
    product = ProductFactory(price=price, stock=5)

    order = _place(UserFactory(), [{"product_id": product.id, "quantity": quantity}])

    assert order.shipping_cost == expected_shipping
    assert order.total_amount == expected_total


@pytest.mark.django_db
def test_discount_inside_payment_block_is_applied():
    product = ProductFactory(price=Decimal("10000.00"))

    order = _place(
        UserFactory(),
        [{"product_id": product.id, "quantity": 1}],
        payment={"method": "card", "discount": {"amount": Decimal("1000.00"), "code": "WELCOME"}},
    )

    assert order.discount_amount == Decimal("1000.00")
    assert order.discount_code == "WELCOME"
    assert order.total_amount == Decimal("12000.00")


@pytest.mark.django_db
def test_same_order_after_window_is_accepted():
    user = UserFactory()
    product = ProductFactory(stock=10)
    items = [{"product_id": product.id, "quantity": 2}]
    first = _place(user, items, payment={"method": "card", "status": "paid", "transaction_id": "imp_early"})
    Order.objects.filter(pk=first.pk).update(created_at=timezone.now() - timedelta(seconds=61))

    second = _place(user, items, payment={"method": "card", "status": "paid", "transaction_id": "imp_late"})

    assert second.pk != first.pk
    assert Order.objects.filter(user=user).count() == 2
    product.refresh_from_db()
    assert product.stock == 6


@pytest.mark.django_db
@pytest.mark.parametrize("status", ["confirmed", "processing"])
def test_cancel_from_confirmed_or_processing_restores_exact_quantities(status):
    user = UserFactory()
    shirt = ProductFactory(stock=5)
    jeans = ProductFactory(stock=4)
    order = _place(
        user,
        [{"product_id": shirt.id, "quantity": 2}, {"product_id": jeans.id, "quantity": 3}],
    )
    order = update_status(order=order, status=status)

    cancelled = cancel_order(order=order, actor=user)

    assert cancelled.status == Order.STATUS_CANCELLED
    shirt.refresh_from_db()
    jeans.refresh_from_db()
    assert (shirt.stock, shirt.sales) == (5, 0)
    assert (jeans.stock, jeans.sales) == (4, 0)
