from decimal import Decimal

import factory
from cart.tests.factories import UserFactory
from common.choices import PaymentMethod, PaymentStatus
from factory import Faker
from factory.django import DjangoModelFactory
from orders.models import Order, OrderAddress, OrderItem


class OrderAddressFactory(DjangoModelFactory):
    class Meta:
        model = OrderAddress

    name = Faker("name")
    phone = "010-1234-5678"
    street = Faker("street_address")
    city = "Seoul"
    postal_code = "06234"


class OrderFactory(DjangoModelFactory):
    class Meta:
        model = Order

    user = factory.SubFactory(UserFactory)
    shipping_address = factory.SubFactory(OrderAddressFactory)
    subtotal = Decimal("20000.00")
    shipping_cost = Decimal("3000.00")
    payment_method = PaymentMethod.CARD
    payment_status = PaymentStatus.PENDING


class OrderItemFactory(DjangoModelFactory):
    class Meta:
        model = OrderItem

    order = factory.SubFactory(OrderFactory)
    product = factory.SubFactory("catalog.tests.factories.ProductFactory")
    name = factory.LazyAttribute(lambda o: o.product.name if o.product else "Removed product")
    quantity = 1
    unit_price = factory.LazyAttribute(lambda o: o.product.sale_price if o.product else Decimal("10000.00"))
