"""
Order confirmation: queueing, the worker task and the e-mail client.
"""
import pytest
import requests

from storefront.domain.errors import NotificationFailure
from storefront.services import notification_service
from storefront.services.email_client import EmailClient, render_order_confirmation
from storefront.services.notification_service import NotificationService, send_order_confirmation_task

SNAPSHOT = {
    "order_number": "ORD-2026-ABC123-XYZ789",
    "email": "shopper@example.com",
    "customer_name": "Ada",
    "items": [{"product_title": "Raw Concrete Tee", "variant_title": "M / Grey", "quantity": 2, "price": "49.99"}],
    "subtotal": "99.98",
    "discount": "10.00",
    "shipping_cost": "0.00",
    "tax": "7.65",
    "total": "97.63",
    "shipping_address": {"city": "London"},
}


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class TestRender:
    def test_lists_items_and_totals(self):
        body = render_order_confirmation(SNAPSHOT)
        assert "Order ORD-2026-ABC123-XYZ789" in body
        assert "2 x Raw Concrete Tee (M / Grey) @ $49.99" in body
        assert "Total: $97.63" in body


class TestEmailClient:
    def test_without_api_key_only_logs(self, monkeypatch):
        def no_network(*args, **kwargs):
            raise AssertionError("must not call the API")

        monkeypatch.setattr(requests, "post", no_network)
        assert EmailClient(api_key="").send_order_confirmation(SNAPSHOT) is True

    def test_posts_message(self, monkeypatch):
        calls = []

        def fake_post(url, json=None, headers=None, timeout=None):
            calls.append((url, json, headers))
            return FakeResponse()

        monkeypatch.setattr(requests, "post", fake_post)

        assert EmailClient(api_url="https://mail.test/send", api_key="k").send_order_confirmation(SNAPSHOT)

        [(url, payload, headers)] = calls
        assert url == "https://mail.test/send"
        assert payload["to"] == ["shopper@example.com"]
        assert "ORD-2026-ABC123-XYZ789" in payload["subject"]
        assert headers["Authorization"] == "Bearer k"

    def test_transport_errors_become_notification_failure(self, monkeypatch):
        attempts = []

        def failing_post(*args, **kwargs):
            attempts.append(1)
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(requests, "post", failing_post)

        with pytest.raises(NotificationFailure):
            EmailClient(api_url="https://mail.test/send", api_key="k").send_order_confirmation(SNAPSHOT)
        assert len(attempts) == 3


class TestNotificationService:
    def test_queues_task(self, monkeypatch):
        queued = []

        class FakeTask:
            def apply_async(self, args=None, **options):
                queued.append((args, options))

        monkeypatch.setattr(notification_service, "send_order_confirmation_task", FakeTask())

        assert NotificationService().send_order_confirmation(SNAPSHOT) is True
        [(args, options)] = queued
        assert args == (SNAPSHOT,)

    def test_publish_retries_are_bounded(self, monkeypatch):
        queued = []

        class FakeTask:
            def apply_async(self, args=None, **options):
                queued.append(options)

        monkeypatch.setattr(notification_service, "send_order_confirmation_task", FakeTask())
        NotificationService().send_order_confirmation(SNAPSHOT)

        [options] = queued
        policy = options["retry_policy"]
        assert policy["max_retries"] <= 2
        assert policy["interval_max"] <= 0.5

    def test_broker_outage_is_swallowed(self, monkeypatch):
        class BrokenTask:
            def apply_async(self, args=None, **options):
                raise ConnectionError("broker unreachable")

        monkeypatch.setattr(notification_service, "send_order_confirmation_task", BrokenTask())

        assert NotificationService().send_order_confirmation(SNAPSHOT) is False

    def test_task_runs_in_mock_mode(self):
        result = send_order_confirmation_task(SNAPSHOT)
        assert result == {"order_number": SNAPSHOT["order_number"], "status": "sent"}

    def test_task_reports_failure(self, monkeypatch):
        def fail(self, snapshot):
            raise NotificationFailure("down")

        monkeypatch.setattr(EmailClient, "send_order_confirmation", fail)

        result = send_order_confirmation_task(SNAPSHOT)
        assert result["status"] == "failed"
