from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import FakeGateway, declined
from storefront.api import create_app
from storefront.api.deps import get_notifier, get_payment_gateway, get_redis
from storefront.data.database import get_db
from storefront.data.models import ProductModel
from storefront.services.order_service import OrderService


class SilentNotifier:
    def send_order_confirmation(self, user_id, order_id, city):
        pass

    def send_low_stock_alert(self, product_id, remaining):
        pass


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(session_factory, fake_redis, gateway):
    app = create_app()

    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: SilentNotifier()
    return TestClient(app)


ADDRESS = {
    "full_name": "Asha Rao",
    "phone": "9876543210",
    "line1": "12 Temple Road",
    "city": "Pune",
    "state": "Maharashtra",
    "zip": "411001",
    "is_default": True,
}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestCart:
    def test_add_and_view(self, client, make_product):
        make_product("sku1", stock=5, price="500.00")

        client.post("/carts/u1/items", json={"product_id": "sku1"})
        resp = client.post("/carts/u1/items", json={"product_id": "sku1"})

        assert resp.status_code == 200
        data = client.get("/carts/u1").json()
        assert data["count"] == 2
        assert data["items"][0]["stock_ceiling"] == 5
        assert float(data["total"]) == 1000.0

    def test_add_unknown_product(self, client):
        assert client.post("/carts/u1/items", json={"product_id": "nope"}).status_code == 404

    def test_add_over_ceiling(self, client, make_product):
        make_product("sku1", stock=1)
        client.post("/carts/u1/items", json={"product_id": "sku1"})

        resp = client.post("/carts/u1/items", json={"product_id": "sku1"})

        assert resp.status_code == 409
        assert resp.json()["detail"]["ceiling"] == 1

    def test_update_remove_clear(self, client, make_product):
        make_product("sku1", stock=5)
        make_product("sku2", stock=5)
        client.post("/carts/u1/items", json={"product_id": "sku1"})
        client.post("/carts/u1/items", json={"product_id": "sku2"})

        assert client.patch("/carts/u1/items/sku1", json={"quantity": 9}).json()["count"] == 6
        assert client.delete("/carts/u1/items/sku2").json()["count"] == 5
        assert client.delete("/carts/u1").json()["items"] == []
        assert client.delete("/carts/u1").status_code == 200


class TestAddresses:
    def test_create_and_list(self, client):
        resp = client.post("/users/u1/addresses/", json=ADDRESS)

        assert resp.status_code == 201
        assert resp.json()["is_default"] is True
        assert "line2" in resp.json()
        assert len(client.get("/users/u1/addresses/").json()) == 1

    def test_invalid_address(self, client):
        resp = client.post("/users/u1/addresses/", json={**ADDRESS, "phone": "1"})

        assert resp.status_code == 422
        assert "phone" in resp.json()["detail"]["errors"]

    def test_set_default_unknown(self, client):
        assert client.post("/users/u1/addresses/99/default").status_code == 404


class TestCheckout:
    def fill(self, client, make_product, stock=5, quantity=2):
        make_product("sku1", stock=stock, price="500.00")
        for _ in range(quantity):
            client.post("/carts/u1/items", json={"product_id": "sku1"})

    def test_full_checkout(self, client, make_product, db):
        self.fill(client, make_product)

        resp = client.post(
            "/checkout/",
            json={"user_id": "u1", "address": ADDRESS, "payment_method": "upi", "currency": "INR"},
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["shipping_snapshot"]["city"] == "Pune"
        assert "line2" not in body["shipping_snapshot"]
        assert client.get("/carts/u1").json()["items"] == []
        assert db.get(ProductModel, "sku1", populate_existing=True).stock == 3

        order = client.get(f"/orders/{body['order_id']}", params={"user_id": "u1"})
        assert order.status_code == 200
        assert order.json()["status"] == "completed"
        assert client.get(f"/orders/{body['order_id']}", params={"user_id": "u2"}).status_code == 403
        assert len(client.get("/orders/", params={"user_id": "u1"}).json()) == 1

        history = client.get("/transactions/", params={"user_id": "u1"}).json()
        assert [t["status"] for t in history] == ["success"]

    def test_uses_default_address_when_none_given(self, client, make_product, make_address):
        self.fill(client, make_product)
        make_address("u1", is_default=True, city="Nashik")

        resp = client.post("/checkout/", json={"user_id": "u1", "payment_method": "upi"})

        assert resp.status_code == 201
        assert resp.json()["shipping_snapshot"]["city"] == "Nashik"

    def test_address_required(self, client, make_product):
        self.fill(client, make_product)

        resp = client.post("/checkout/", json={"user_id": "u1", "payment_method": "upi"})

        assert resp.status_code == 422

    def test_empty_cart(self, client):
        resp = client.post("/checkout/", json={"user_id": "u1", "address": ADDRESS, "payment_method": "upi"})

        assert resp.status_code == 409
        assert resp.json()["detail"]["reason"] == "EMPTY_CART"

    def test_insufficient_stock(self, client, make_product, db):
        self.fill(client, make_product)
        db.query(ProductModel).filter_by(id="sku1").update({"stock": 1})
        db.commit()

        resp = client.post("/checkout/", json={"user_id": "u1", "address": ADDRESS, "payment_method": "upi"})

        assert resp.status_code == 409
        detail = resp.json()["detail"]
        assert detail["reason"] == "INSUFFICIENT_STOCK"
        assert detail["detail"] == {"product_id": "sku1", "available": 1}
        assert client.get("/orders/", params={"user_id": "u1"}).json() == []

    def test_declined_payment(self, client, make_product, gateway):
        self.fill(client, make_product)
        gateway.results.append(declined("card_declined"))

        resp = client.post("/checkout/", json={"user_id": "u1", "address": ADDRESS, "payment_method": "card"})

        assert resp.status_code == 402
        assert resp.json()["detail"]["reason"] == "PAYMENT_FAILED"
        assert client.get("/carts/u1").json()["count"] == 2
        history = client.get("/transactions/", params={"user_id": "u1"}).json()
        assert [(t["status"], t["failure_reason"]) for t in history] == [("failed", "card_declined")]

    def test_retryable_payment_failure(self, client, make_product, gateway):
        self.fill(client, make_product)
        gateway.results.append(declined("timeout", retryable=True))

        resp = client.post("/checkout/", json={"user_id": "u1", "address": ADDRESS, "payment_method": "upi"})

        assert resp.status_code == 402
        detail = resp.json()["detail"]
        assert detail["state"] == "AWAITING_PAYMENT"
        assert detail["detail"]["retryable"] is True

    def test_invalid_coupon(self, client, make_product, coupon):
        self.fill(client, make_product)

        resp = client.post(
            "/checkout/",
            json={"user_id": "u1", "address": ADDRESS, "payment_method": "upi", "coupon_code": "BOGUS"},
        )

        assert resp.status_code == 400

    def test_coupon_applied(self, client, make_product, coupon, gateway):
        self.fill(client, make_product)

        resp = client.post(
            "/checkout/",
            json={"user_id": "u1", "address": ADDRESS, "payment_method": "upi", "coupon_code": "mystic10"},
        )

        assert resp.status_code == 201
        assert float(resp.json()["total"]) == 900.0

    def test_order_failure_after_payment_still_confirms(self, client, make_product, db):
        self.fill(client, make_product)

        with patch.object(OrderService, "_insert", side_effect=RuntimeError("db down")):
            resp = client.post("/checkout/", json={"user_id": "u1", "address": ADDRESS, "payment_method": "upi"})

        assert resp.status_code == 201
        body = resp.json()
        assert body["order_id"]
        assert body["payment_reference"] == "pay_1"
        assert client.get(f"/orders/{body['order_id']}", params={"user_id": "u1"}).status_code == 404
        history = client.get("/transactions/", params={"user_id": "u1"}).json()
        assert [t["status"] for t in history] == ["success"]
        assert db.get(ProductModel, "sku1", populate_existing=True).stock == 3


class TestCheckoutRetry:
    def start(self, client, make_product, gateway, headers=None):
        make_product("sku1", stock=5, price="500.00")
        for _ in range(2):
            client.post("/carts/u1/items", json={"product_id": "sku1"})
        gateway.results.append(declined("timeout", retryable=True))
        resp = client.post(
            "/checkout/",
            json={"user_id": "u1", "address": ADDRESS, "payment_method": "upi"},
            headers=headers or {},
        )
        assert resp.status_code == 402
        return resp.json()["detail"]["checkout_id"]

    def test_retry_after_timeout_reuses_idempotency_key(self, client, make_product, gateway, fake_redis):
        checkout_id = self.start(client, make_product, gateway)

        resp = client.post(f"/checkout/{checkout_id}/pay", json={"user_id": "u1", "payment_method": "upi"})

        assert resp.status_code == 201
        assert resp.json()["checkout_id"] == checkout_id
        assert gateway.calls[0]["idempotency_key"] == gateway.calls[1]["idempotency_key"]
        assert len(client.get("/users/u1/addresses/").json()) == 1
        assert f"checkout:{checkout_id}" not in fake_redis.data
        history = client.get("/transactions/", params={"user_id": "u1"}).json()
        assert sorted(t["status"] for t in history) == ["failed", "success"]

    def test_retry_that_fails_again_stays_resumable(self, client, make_product, gateway, fake_redis):
        checkout_id = self.start(client, make_product, gateway)
        gateway.results.append(declined("timeout", retryable=True))

        resp = client.post(f"/checkout/{checkout_id}/pay", json={"user_id": "u1", "payment_method": "upi"})

        assert resp.status_code == 402
        assert resp.json()["detail"]["detail"]["attempts_left"] == 1
        assert f"checkout:{checkout_id}" in fake_redis.data

    def test_client_idempotency_key_is_passed_to_gateway(self, client, make_product, gateway):
        checkout_id = self.start(client, make_product, gateway, headers={"Idempotency-Key": "order-42"})

        client.post(f"/checkout/{checkout_id}/pay", json={"user_id": "u1", "payment_method": "upi"})

        assert [call["idempotency_key"] for call in gateway.calls] == ["order-42", "order-42"]

    def test_retry_of_unknown_or_foreign_checkout(self, client, make_product, gateway):
        checkout_id = self.start(client, make_product, gateway)

        missing = client.post("/checkout/nope/pay", json={"user_id": "u1", "payment_method": "upi"})
        foreign = client.post(f"/checkout/{checkout_id}/pay", json={"user_id": "u2", "payment_method": "upi"})

        assert missing.status_code == 404
        assert foreign.status_code == 403
        assert len(gateway.calls) == 1

    def test_cancel_pending_checkout(self, client, make_product, gateway):
        checkout_id = self.start(client, make_product, gateway)

        assert client.delete(f"/checkout/{checkout_id}", params={"user_id": "u1"}).status_code == 204

        resp = client.post(f"/checkout/{checkout_id}/pay", json={"user_id": "u1", "payment_method": "upi"})
        assert resp.status_code == 404
        assert client.get("/carts/u1").json()["count"] == 2
