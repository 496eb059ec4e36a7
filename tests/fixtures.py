"""
Test doubles and small builders shared across the test modules.
"""
import random
from typing import Callable, List

from storefront.data.models import CartItemModel
from storefront.domain.schemas import CheckoutIn
from storefront.services.payment_service import MockPaymentProcessor

APPROVE_CARD = "4242 4242 4242 4241"
DECLINE_CARD = "4000 0000 0000 0002"
RANDOM_CARD = "4111 1111 1111 1114"


class RecordingProcessor(MockPaymentProcessor):
    """Mock processor without latency that remembers what it did."""

    def __init__(self, approval_rate: float = 1.0, on_charge: Callable[[], None] | None = None):
        super().__init__(latency_min=0, latency_max=0, approval_rate=approval_rate, rng=random.Random(7))
        self.charges: List = []
        self.voids: List[str] = []
        self.on_charge = on_charge

    def charge(self, card_number, amount):
        result = super().charge(card_number, amount)
        self.charges.append(result)
        if self.on_charge is not None:
            self.on_charge()
        return result

    def void(self, transaction_id):
        self.voids.append(transaction_id)
        super().void(transaction_id)


class FakeNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[dict] = []

    def send_order_confirmation(self, snapshot: dict) -> bool:
        if self.fail:
            raise RuntimeError("mail service down")
        self.sent.append(snapshot)
        return True


class FakeLock:
    """In-process stand-in for the redis checkout lock."""

    def __init__(self, acquire: bool = True, error: Exception | None = None):
        self.acquire = acquire
        self.error = error
        self.held = {}
        self.released = []

    def acquire_checkout_lock(self, cart_id, token, ttl):
        if self.error is not None:
            raise self.error
        if not self.acquire or cart_id in self.held:
            return False
        self.held[cart_id] = token
        return True

    def release_checkout_lock(self, cart_id, token):
        if self.held.get(cart_id) == token:
            del self.held[cart_id]
        self.released.append(cart_id)
        return True


def add_line(db, cart_id: int, variant_id: int, quantity: int) -> CartItemModel:
    """Writes a cart line directly, skipping the stock check of add_item."""
    item = CartItemModel(cart_id=cart_id, variant_id=variant_id, quantity=quantity)
    db.add(item)
    db.commit()
    return item


def checkout_payload(card_number: str = APPROVE_CARD, discount_code=None, **overrides) -> CheckoutIn:
    data = {
        "email": "shopper@example.com",
        "shipping_address": {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "line1": "1 Analytical Way",
            "city": "London",
            "state": "LDN",
            "postal_code": "N1 9GU",
            "country": "GB",
        },
        "payment_info": {
            "card_number": card_number,
            "expiry_month": "12",
            "expiry_year": "2030",
            "cvv": "123",
            "cardholder_name": "Ada Lovelace",
        },
        "discount_code": discount_code,
    }
    data.update(overrides)
    return CheckoutIn.model_validate(data)
