"""Shared enumerations and choices used across apps."""

from django.db import models


class ProductCategory(models.TextChoices):
    TOPS = "tops", "Tops"
    BOTTOMS = "bottoms", "Bottoms"
    ACCESSORIES = "accessories", "Accessories"


class ClothingSize(models.TextChoices):
    XS = "XS", "XS"
    S = "S", "S"
    M = "M", "M"
    L = "L", "L"
    XL = "XL", "XL"
    XXL = "XXL", "XXL"


class OrderStatus(models.TextChoices):
    """Lifecycle statuses for orders."""

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    RETURNED = "returned", "Returned"


class PaymentStatus(models.TextChoices):
    """Statuses of the payment attached to an order."""

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
    PARTIAL_REFUND = "partial_refund", "Partial refund"
    CANCELLED = "cancelled", "Cancelled"


class PaymentMethod(models.TextChoices):
    CARD = "card", "Card"
    BANK_TRANSFER = "bank_transfer", "Bank transfer"
    KAKAO = "kakao", "Kakao Pay"
    PAYPAL = "paypal", "PayPal"
    TOSS = "toss", "Toss"
    CASH_ON_DELIVERY = "cash_on_delivery", "Cash on delivery"


class OrderSource(models.TextChoices):
    WEB = "web", "Web"
    MOBILE = "mobile", "Mobile"
    ADMIN = "admin", "Admin"
