"""Order domain constants.

Defines status choices and the transition table for the order state
machine, plus payment-related choices carried on the order.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    PACKED = "packed", "Packed"
    SHIPPED = "shipped", "Shipped"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for delivery"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    RETURNED = "returned", "Returned"
    REFUNDED = "refunded", "Refunded"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.PACKED, OrderStatus.CANCELLED},
    OrderStatus.PACKED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}

# Statuses the customer is told about.
CUSTOMER_NOTIFIED_STATES: set[str] = {
    OrderStatus.CONFIRMED,
    OrderStatus.SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
}

# Customer-facing tracking copy: status -> (title, description)
TRACKING_COPY: dict[str, tuple[str, str]] = {
    OrderStatus.PENDING: ("Order Placed", "Your order has been placed successfully."),
    OrderStatus.CONFIRMED: ("Order Confirmed", "The seller has confirmed your order."),
    OrderStatus.PROCESSING: ("Processing", "Your order is being prepared."),
    OrderStatus.PACKED: ("Packed", "Your order has been packed and is ready to ship."),
    OrderStatus.SHIPPED: ("Shipped", "Your order is on the way."),
    OrderStatus.OUT_FOR_DELIVERY: (
        "Out for Delivery",
        "Your order will be delivered today.",
    ),
    OrderStatus.DELIVERED: ("Delivered", "Your order has been delivered."),
    OrderStatus.CANCELLED: ("Cancelled", "Your order has been cancelled."),
    OrderStatus.RETURNED: ("Returned", "Your return has been received."),
    OrderStatus.REFUNDED: ("Refunded", "Your refund has been processed."),
}


class PaymentMethod(models.TextChoices):
    COD = "cod", "Cash on delivery"
    CARD = "card", "Card"
    UPI = "upi", "UPI"
    NETBANKING = "netbanking", "Net banking"
    WALLET = "wallet", "Wallet"


class OrderPaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    REFUNDED = "refunded", "Refunded"


PAYMENT_TRANSITIONS: dict[str, set[str]] = {
    OrderPaymentStatus.PENDING: {OrderPaymentStatus.PAID},
    OrderPaymentStatus.PAID: {OrderPaymentStatus.REFUNDED},
    OrderPaymentStatus.REFUNDED: set(),
}


class ReturnStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    PROCESSED = "processed", "Processed"


SYSTEM_ACTOR = "system"

ORDER_NUMBER_MAX_RETRIES = 5
