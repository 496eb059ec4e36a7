# storefront/domain/errors.py
"""
Closed set of failures raised by the cart and checkout services.

Every exception carries an ``ErrorKind`` so callers can branch on the type
or on ``exc.kind`` instead of parsing messages.
"""
from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    DISCOUNT_REJECTED = "DISCOUNT_REJECTED"
    PAYMENT_DECLINED = "PAYMENT_DECLINED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    CONFLICT = "CONFLICT"
    NOTIFICATION_FAILURE = "NOTIFICATION_FAILURE"
    INTERNAL = "INTERNAL"


class DiscountRejection(str, Enum):
    INVALID_CODE = "INVALID_CODE"
    CODE_INACTIVE = "CODE_INACTIVE"
    NOT_YET_ACTIVE = "NOT_YET_ACTIVE"
    EXPIRED = "EXPIRED"
    USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
    MINIMUM_NOT_MET = "MINIMUM_NOT_MET"


class StoreError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


# NotFound


class NotFoundError(StoreError):
    kind = ErrorKind.NOT_FOUND


class CartNotFound(NotFoundError):
    def __init__(self, cart_id: int):
        super().__init__(f"Cart {cart_id} not found")
        self.cart_id = cart_id


class CartItemNotFound(NotFoundError):
    def __init__(self, item_id: int):
        super().__init__("Cart item not found")
        self.item_id = item_id


class OrderNotFound(NotFoundError):
    def __init__(self, ref):
        super().__init__("Order not found")
        self.ref = ref


class UnavailableVariant(NotFoundError):
    def __init__(self, variant_id: int):
        super().__init__("Product variant not found or unavailable")
        self.variant_id = variant_id

    def details(self) -> dict:
        return {**super().details(), "variant_id": self.variant_id}


# Validation


class ValidationFailed(StoreError):
    kind = ErrorKind.VALIDATION


class InvalidQuantity(ValidationFailed):
    def __init__(self, quantity):
        super().__init__(f"Invalid quantity: {quantity}")
        self.quantity = quantity


class EmptyCart(ValidationFailed):
    def __init__(self):
        super().__init__("Cart is empty")


class InvalidStatusTransition(ValidationFailed):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change order status from {current} to {target}")
        self.current = current
        self.target = target


# Inventory


class InsufficientInventory(StoreError):
    kind = ErrorKind.INSUFFICIENT_INVENTORY

    def __init__(self, variant_id: int, requested: int, available: int | None = None, title: str | None = None):
        label = f" for {title}" if title else ""
        super().__init__(f"Insufficient inventory{label}")
        self.variant_id = variant_id
        self.requested = requested
        self.available = available

    def details(self) -> dict:
        return {
            **super().details(),
            "variant_id": self.variant_id,
            "requested": self.requested,
            "available": self.available,
        }


# Discounts

_DISCOUNT_MESSAGES = {
    DiscountRejection.INVALID_CODE: "Invalid discount code",
    DiscountRejection.CODE_INACTIVE: "Discount code is no longer active",
    DiscountRejection.NOT_YET_ACTIVE: "Discount code is not yet active",
    DiscountRejection.EXPIRED: "Discount code has expired",
    DiscountRejection.USAGE_LIMIT_REACHED: "Discount code has reached its usage limit",
    DiscountRejection.MINIMUM_NOT_MET: "Minimum order amount not met",
}


class DiscountRejected(StoreError):
    kind = ErrorKind.DISCOUNT_REJECTED

    def __init__(self, reason: DiscountRejection, code: str | None = None, message: str | None = None):
        super().__init__(message or _DISCOUNT_MESSAGES[reason])
        self.reason = reason
        self.code = code

    def details(self) -> dict:
        return {**super().details(), "reason": self.reason.value, "code": self.code}


# Payment


class PaymentDeclined(StoreError):
    kind = ErrorKind.PAYMENT_DECLINED

    def __init__(self, message: str = "Card declined"):
        super().__init__(message)


class PaymentFailed(StoreError):
    kind = ErrorKind.PAYMENT_FAILED

    def __init__(self, message: str = "Payment processing failed"):
        super().__init__(message)


# Concurrency / infrastructure


class ConflictError(StoreError):
    kind = ErrorKind.CONFLICT


class CheckoutConflict(ConflictError):
    pass


class OrderConflict(ConflictError):
    pass


class CartConflict(ConflictError):
    pass


class CheckoutFailed(StoreError):
    kind = ErrorKind.INTERNAL


class NotificationFailure(StoreError):
    kind = ErrorKind.NOTIFICATION_FAILURE
