"""Integration tests for Cart, License and Task API endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.routes import cart_router, license_router, order_router, task_router
from ordering.checkout import service
from protean.integrations.fastapi import register_exception_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(license_router)
    app.include_router(task_router)
    register_exception_handlers(app)
    return TestClient(app)


class TestCartEndpoints:
    def test_add_update_remove(self, client, marketplace):
        client.post("/carts/cust-001/items", json={"product_id": "phone", "quantity": 1})
        client.post("/carts/cust-001/items", json={"product_id": "case", "quantity": 2})

        cart = client.get("/carts/cust-001").json()
        assert cart["subtotal"] == 13000.0
        case_item = next(i for i in cart["items"] if i["product_id"] == "case")

        assert client.put(f"/carts/cust-001/items/{case_item['id']}", json={"new_quantity": 4}).status_code == 200
        assert client.get("/carts/cust-001").json()["subtotal"] == 16000.0

        assert client.delete(f"/carts/cust-001/items/{case_item['id']}").status_code == 200
        assert len(client.get("/carts/cust-001").json()["items"]) == 1

    def test_coupon(self, client, marketplace):
        client.post("/carts/cust-001/items", json={"product_id": "phone", "quantity": 1})

        response = client.post("/carts/cust-001/coupons", json={"coupon_code": "SAVE10", "discount": 1000.0})

        assert response.status_code == 200
        assert client.get("/carts/cust-001").json()["discount"] == 1000.0

    def test_missing_cart(self, client, marketplace):
        assert client.get("/carts/cust-404").status_code == 404

    def test_unavailable_product(self, client, marketplace):
        response = client.post("/carts/cust-001/items", json={"product_id": "ghost", "quantity": 1})
        assert response.status_code == 400


class TestLicenseEndpoints:
    def test_activate_and_deactivate(self, client, marketplace, add_to_cart, fund_wallet):
        add_to_cart("cust-001", "course")
        fund_wallet("cust-001", 20000.0)
        order = service.checkout("cust-001", "wallet")["order"]
        [license] = client.get(f"/orders/{order['order_number']}/licenses", params={"customer_id": "cust-001"}).json()

        activated = client.post(
            "/licenses/activate",
            json={"customer_id": "cust-001", "key": license["key"], "device_info": {"device": "laptop"}},
        )
        assert activated.status_code == 200
        assert activated.json()["device_info"] == {"device": "laptop"}

        deactivated = client.post("/licenses/deactivate", json={"customer_id": "cust-001", "key": license["key"]})
        assert deactivated.json()["is_active"] is False

    def test_unknown_key(self, client, marketplace):
        response = client.post("/licenses/activate", json={"customer_id": "cust-001", "key": "NOPE"})
        assert response.status_code == 404


class TestTaskEndpoints:
    def test_list_and_retry(self, client, marketplace, add_to_cart, fund_wallet, rewards):
        add_to_cart("cust-001", "ebook")
        fund_wallet("cust-001", 20000.0)
        rewards.configure(should_succeed=False)
        order = service.checkout("cust-001", "wallet")["order"]

        [task] = client.get("/tasks", params={"order_id": order["id"]}).json()
        assert task["status"] == "failed"

        rewards.configure(should_succeed=True)
        response = client.post(f"/tasks/{task['id']}/retry")

        assert response.json() == {"status": "completed"}
        assert rewards.awarded == [order["id"]]
