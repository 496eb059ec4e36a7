# storefront/services/payment_service.py
"""
Mock card processor.

Decision is keyed off the last digit of the card number:
  1 -> always approved
  2 -> always declined
  other -> approved with ``approval_rate`` probability, else a processing failure
"""
import random
import re
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal

from storefront.domain.errors import PaymentDeclined, PaymentFailed
from storefront.domain.pricing import money
from storefront.utils.settings import (
    PAYMENT_APPROVAL_RATE,
    PAYMENT_LATENCY_MAX_SECONDS,
    PAYMENT_LATENCY_MIN_SECONDS,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

ALWAYS_APPROVE_DIGIT = 1
ALWAYS_DECLINE_DIGIT = 2


def digits_only(card_number: str) -> str:
    return re.sub(r"\D", "", card_number or "")


def detect_card_brand(card_number: str) -> str:
    number = digits_only(card_number)
    if number.startswith("4"):
        return "Visa"
    if re.match(r"^5[1-5]", number):
        return "Mastercard"
    if re.match(r"^3[47]", number):
        return "Amex"
    if re.match(r"^6(?:011|5)", number):
        return "Discover"
    return "Unknown"


def last4(card_number: str) -> str:
    return digits_only(card_number)[-4:]


@dataclass(frozen=True)
class PaymentResult:
    transaction_id: str
    amount: Decimal
    card_last4: str
    card_brand: str


class MockPaymentProcessor:
    provider = "mock"

    def __init__(
        self,
        latency_min: float = PAYMENT_LATENCY_MIN_SECONDS,
        latency_max: float = PAYMENT_LATENCY_MAX_SECONDS,
        approval_rate: float = PAYMENT_APPROVAL_RATE,
        rng: random.Random | None = None,
    ):
        self.latency_min = latency_min
        self.latency_max = max(latency_min, latency_max)
        self.approval_rate = approval_rate
        self.rng = rng or random.Random()

    def _simulate_latency(self) -> None:
        if self.latency_max <= 0:
            return
        time.sleep(self.rng.uniform(self.latency_min, self.latency_max))

    def charge(self, card_number: str, amount) -> PaymentResult:
        self._simulate_latency()

        number = digits_only(card_number)
        last_digit = int(number[-1]) if number else None

        if last_digit == ALWAYS_DECLINE_DIGIT:
            logger.info(f"Mock charge of {money(amount)} declined (card ending {last4(number)})")
            raise PaymentDeclined("Card declined")

        if last_digit != ALWAYS_APPROVE_DIGIT and self.rng.random() > self.approval_rate:
            logger.info(f"Mock charge of {money(amount)} failed (card ending {last4(number)})")
            raise PaymentFailed("Payment processing failed")

        transaction_id = f"mock_{int(time.time() * 1000)}_{secrets.token_hex(5)}"
        logger.info(f"Mock charge of {money(amount)} approved, transaction {transaction_id}")
        return PaymentResult(
            transaction_id=transaction_id,
            amount=money(amount),
            card_last4=last4(number),
            card_brand=detect_card_brand(number),
        )

    def void(self, transaction_id: str) -> None:
        logger.warning(f"Voiding mock authorization {transaction_id}")
