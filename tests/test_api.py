"""
HTTP layer: routing, identity resolution, error mapping and admin access.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.api.dependencies import get_order_service
from storefront.data.database import get_db
from storefront.main import create_app
from storefront.services.order_service import OrderService
from tests.fixtures import DECLINE_CARD, checkout_payload

ADMIN = {"X-Admin-Key": "dev-admin-key"}


@pytest.fixture
def client(db, processor, notifier):
    app = create_app()

    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_order_service] = lambda: OrderService(
        db, payment_processor=processor, notifier=notifier
    )
    return TestClient(app)


@pytest.fixture
def tee(make_variant, store_settings):
    return make_variant(price="49.99", inventory_qty=10)


def payload(**kwargs) -> dict:
    return checkout_payload(**kwargs).model_dump(mode="json")


def guest(client) -> dict:
    """Starts a guest session and returns the headers that carry it."""
    resp = client.get("/cart")
    return {"X-Session-Id": resp.headers["X-Session-Id"]}


class TestHealth:
    def test_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestCartRoutes:
    def test_new_guest_gets_a_session(self, client):
        resp = client.get("/cart")

        assert resp.status_code == 200
        assert resp.headers["X-Session-Id"].startswith("sess_")
        assert resp.json()["items"] == []
        assert resp.json()["session_id"] == resp.headers["X-Session-Id"]

    def test_session_header_finds_same_cart(self, client, tee):
        headers = guest(client)

        added = client.post("/cart/items", json={"variant_id": tee.id, "quantity": 2}, headers=headers)
        again = client.get("/cart", headers=headers)

        assert added.status_code == 200
        assert again.json()["id"] == added.json()["id"]
        assert again.json()["subtotal"] == "99.98"
        assert "X-Session-Id" not in again.headers

    def test_insufficient_inventory_is_409(self, client, tee):
        headers = guest(client)

        resp = client.post("/cart/items", json={"variant_id": tee.id, "quantity": 11}, headers=headers)

        assert resp.status_code == 409
        detail = resp.json()["detail"]
        assert detail["kind"] == "INSUFFICIENT_INVENTORY"
        assert detail["available"] == 10

    def test_unknown_variant_is_404(self, client):
        resp = client.post("/cart/items", json={"variant_id": 999, "quantity": 1}, headers=guest(client))
        assert resp.status_code == 404
        assert resp.json()["detail"]["kind"] == "NOT_FOUND"

    def test_body_validation(self, client):
        resp = client.post("/cart/items", json={"variant_id": 1, "quantity": 0}, headers=guest(client))
        assert resp.status_code == 422

    def test_update_remove_clear(self, client, tee, make_variant):
        headers = guest(client)
        other = make_variant(price="24.50")
        cart = client.post("/cart/items", json={"variant_id": tee.id}, headers=headers).json()
        client.post("/cart/items", json={"variant_id": other.id, "quantity": 1}, headers=headers)
        item_id = cart["items"][0]["id"]

        updated = client.patch(f"/cart/items/{item_id}", json={"quantity": 3}, headers=headers)
        assert updated.json()["items"][0]["quantity"] == 3

        removed = client.delete(f"/cart/items/{item_id}", headers=headers)
        assert [i["variant_id"] for i in removed.json()["items"]] == [other.id]

        cleared = client.delete("/cart", headers=headers)
        assert cleared.json()["items"] == []

    def test_update_missing_line_is_404(self, client):
        resp = client.patch("/cart/items/999", json={"quantity": 1}, headers=guest(client))
        assert resp.status_code == 404

    def test_customer_cart_and_merge(self, client, tee):
        headers = guest(client)
        client.post("/cart/items", json={"variant_id": tee.id, "quantity": 3}, headers=headers)
        client.post("/cart/items?user_id=user-42", json={"variant_id": tee.id, "quantity": 4})

        merged = client.post(
            "/cart/merge?user_id=user-42",
            json={"session_id": headers["X-Session-Id"]},
        )

        assert merged.status_code == 200
        assert merged.json()["customer_id"] is not None
        assert merged.json()["items"][0]["quantity"] == 7

        again = client.post(
            "/cart/merge?user_id=user-42",
            json={"session_id": headers["X-Session-Id"]},
        )
        assert again.status_code == 200
        assert again.json()["items"] == merged.json()["items"]

    def test_merge_requires_user(self, client):
        resp = client.post("/cart/merge", json={"session_id": "sess_x"})
        assert resp.status_code == 422


class TestCheckoutRoutes:
    def test_discount_preview_and_checkout(self, client, tee, make_discount, notifier):
        make_discount("WELCOME10")
        headers = guest(client)
        client.post("/cart/items", json={"variant_id": tee.id, "quantity": 2}, headers=headers)

        quote = client.post("/checkout/discount", json={"code": "welcome10"}, headers=headers)
        assert quote.status_code == 200
        assert quote.json()["discount"] == "10.00"

        preview = client.post("/checkout/preview", json={"discount_code": "WELCOME10"}, headers=headers)
        assert preview.json()["total"] == "97.63"

        placed = client.post("/checkout", json=payload(discount_code="WELCOME10"), headers=headers)
        assert placed.status_code == 201
        order = placed.json()
        assert order["status"] == "PAID"
        assert order["total"] == "97.63"
        assert order["payments"][0]["card_last4"] == "4241"
        assert len(notifier.sent) == 1

        assert client.get("/cart", headers=headers).json()["items"] == []

    def test_rejected_discount_is_400(self, client, tee):
        headers = guest(client)
        client.post("/cart/items", json={"variant_id": tee.id}, headers=headers)

        resp = client.post("/checkout/discount", json={"code": "NOPE"}, headers=headers)

        assert resp.status_code == 400
        assert resp.json()["detail"]["reason"] == "INVALID_CODE"

    def test_declined_card_is_402(self, client, tee):
        headers = guest(client)
        client.post("/cart/items", json={"variant_id": tee.id}, headers=headers)

        resp = client.post("/checkout", json=payload(card_number=DECLINE_CARD), headers=headers)

        assert resp.status_code == 402
        assert resp.json()["detail"]["kind"] == "PAYMENT_DECLINED"
        assert len(client.get("/cart", headers=headers).json()["items"]) == 1

    def test_empty_cart_is_400(self, client):
        resp = client.post("/checkout", json=payload(), headers=guest(client))
        assert resp.status_code == 400
        assert resp.json()["detail"]["message"] == "Cart is empty"

    def test_invalid_email_is_422(self, client, tee):
        body = payload()
        body["email"] = "not-an-email"
        resp = client.post("/checkout", json=body, headers=guest(client))
        assert resp.status_code == 422


class TestOrderRoutes:
    @pytest.fixture
    def customer_order(self, client, tee):
        client.post("/cart/items?user_id=user-7", json={"variant_id": tee.id})
        return client.post("/checkout?user_id=user-7", json=payload()).json()

    def test_history(self, client, customer_order):
        resp = client.get("/orders?user_id=user-7")

        assert resp.status_code == 200
        assert [o["id"] for o in resp.json()["orders"]] == [customer_order["id"]]
        assert resp.json()["pagination"]["total"] == 1

    def test_owner_only(self, client, customer_order):
        assert client.get(f"/orders/{customer_order['id']}?user_id=user-7").status_code == 200
        assert client.get(f"/orders/{customer_order['id']}?user_id=someone-else").status_code == 404

    def test_lookup_by_number_and_email(self, client, customer_order):
        number = customer_order["order_number"]

        ok = client.get(f"/orders/lookup/{number}", params={"email": "SHOPPER@example.com"})
        wrong = client.get(f"/orders/lookup/{number}", params={"email": "other@example.com"})

        assert ok.status_code == 200
        assert ok.json()["id"] == customer_order["id"]
        assert wrong.status_code == 404


class TestAdminRoutes:
    @pytest.fixture
    def order(self, client, tee):
        headers = guest(client)
        client.post("/cart/items", json={"variant_id": tee.id, "quantity": 2}, headers=headers)
        return client.post("/checkout", json=payload(), headers=headers).json()

    def test_requires_key(self, client, order):
        assert client.get("/admin/orders").status_code == 403
        assert client.get("/admin/orders", headers={"X-Admin-Key": "wrong"}).status_code == 403

    def test_list_and_stats(self, client, order):
        listed = client.get("/admin/orders", params={"status": "PAID"}, headers=ADMIN)
        stats = client.get("/admin/orders/stats", headers=ADMIN)

        assert [o["id"] for o in listed.json()["orders"]] == [order["id"]]
        assert Decimal(stats.json()["total_revenue"]) == Decimal(order["total"])
        assert stats.json()["order_count"] == 1

    def test_fulfill_then_deliver(self, client, order):
        shipped = client.post(
            f"/admin/orders/{order['id']}/fulfillments",
            json={"carrier": "UPS", "tracking_number": "1Z999"},
            headers=ADMIN,
        )
        assert shipped.status_code == 201
        assert shipped.json()["status"] == "SHIPPED"

        delivered = client.patch(f"/admin/orders/{order['id']}/status", json={"status": "DELIVERED"}, headers=ADMIN)
        assert delivered.json()["status"] == "DELIVERED"

        cancel = client.post(f"/admin/orders/{order['id']}/cancel", json={"reason": "late"}, headers=ADMIN)
        assert cancel.status_code == 400
        assert cancel.json()["detail"]["kind"] == "VALIDATION"

    def test_cancel(self, client, order):
        resp = client.post(f"/admin/orders/{order['id']}/cancel", json={"reason": "fraud"}, headers=ADMIN)

        assert resp.status_code == 200
        assert resp.json()["status"] == "CANCELLED"
        assert resp.json()["cancel_reason"] == "fraud"

    def test_unknown_order(self, client):
        resp = client.patch("/admin/orders/999/status", json={"status": "PROCESSING"}, headers=ADMIN)
        assert resp.status_code == 404
