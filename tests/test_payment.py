"""
Mock card processor: decision rules, brand detection and what it keeps.
"""
import random
from decimal import Decimal

import pytest

from storefront.domain.errors import PaymentDeclined, PaymentFailed
from storefront.services.payment_service import MockPaymentProcessor, detect_card_brand, digits_only, last4


def processor(approval_rate=0.8, seed=1):
    return MockPaymentProcessor(latency_min=0, latency_max=0, approval_rate=approval_rate, rng=random.Random(seed))


class TestDecision:
    def test_ending_in_one_always_approves(self):
        p = processor(approval_rate=0.0)
        result = p.charge("4242-4242-4242-4241", Decimal("97.63"))

        assert result.transaction_id.startswith("mock_")
        assert result.amount == Decimal("97.63")
        assert result.card_last4 == "4241"
        assert result.card_brand == "Visa"

    def test_amount_is_rounded_decimal(self):
        result = processor().charge("4242 4242 4242 4241", 19.999)

        assert isinstance(result.amount, Decimal)
        assert result.amount == Decimal("20.00")

    def test_ending_in_two_always_declines(self):
        p = processor(approval_rate=1.0)
        with pytest.raises(PaymentDeclined) as exc:
            p.charge("5555 5555 5555 4442", Decimal("10"))
        assert exc.value.message == "Card declined"

    def test_other_cards_follow_approval_rate(self):
        p = processor(approval_rate=0.0)
        with pytest.raises(PaymentFailed) as exc:
            p.charge("4111111111111114", Decimal("10"))
        assert exc.value.message == "Payment processing failed"

        assert processor(approval_rate=1.0).charge("4111111111111114", Decimal("10")).card_last4 == "1114"

    def test_seeded_rng_is_repeatable(self):
        def outcomes(seed):
            p = processor(approval_rate=0.5, seed=seed)
            out = []
            for _ in range(20):
                try:
                    p.charge("4111111111111113", Decimal("1"))
                    out.append(True)
                except PaymentFailed:
                    out.append(False)
            return out

        assert outcomes(42) == outcomes(42)
        assert True in outcomes(42) and False in outcomes(42)

    def test_transaction_ids_are_unique(self):
        p = processor()
        ids = {p.charge("4242424242424241", Decimal("1")).transaction_id for _ in range(50)}
        assert len(ids) == 50

    def test_latency_is_simulated(self, monkeypatch):
        slept = []
        monkeypatch.setattr("storefront.services.payment_service.time.sleep", slept.append)
        p = MockPaymentProcessor(latency_min=1.0, latency_max=2.0, rng=random.Random(3))

        p.charge("4242424242424241", Decimal("1"))

        assert len(slept) == 1
        assert 1.0 <= slept[0] <= 2.0


class TestCardHelpers:
    @pytest.mark.parametrize(
        "number, brand",
        [
            ("4242424242424242", "Visa"),
            ("5105105105105100", "Mastercard"),
            ("5500 0000 0000 0004", "Mastercard"),
            ("378282246310005", "Amex"),
            ("341111111111111", "Amex"),
            ("6011111111111117", "Discover"),
            ("6500000000000002", "Discover"),
            ("3530111333300000", "Unknown"),
            ("", "Unknown"),
        ],
    )
    def test_brand(self, number, brand):
        assert detect_card_brand(number) == brand

    def test_non_digits_are_stripped(self):
        assert digits_only("4242-4242 4242.4241") == "4242424242424241"
        assert last4("4242-4242 4242.4241") == "4241"
