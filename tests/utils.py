from fastapi.testclient import TestClient


def auth(client: TestClient, phone: str) -> dict:
    r = client.post("/auth/request_otp", json={"phone": phone})
    assert r.status_code == 200
    r = client.post("/auth/verify_otp", json={"phone": phone, "otp": "123456"})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def onboard(client: TestClient, phone: str, role: str, name: str = "X") -> tuple[dict, str]:
    h = auth(client, phone)
    r = client.post("/profiles", headers=h, json={"role": role, "full_name": name})
    assert r.status_code == 200, r.text
    return h, r.json()["id"]


def list_product(client: TestClient, h: dict, **overrides) -> dict:
    body = {"name": "Tomatoes", "category": "Vegetables", "price": 20, "quantity_available": 100, "unit": "kg"}
    body.update(overrides)
    r = client.post("/products", headers=h, json=body)
    assert r.status_code == 200, r.text
    return r.json()


def place_order(client: TestClient, h: dict, product_id: str, quantity=5, **overrides):
    body = {
        "product_id": product_id,
        "quantity": quantity,
        "payment_method": "cash_on_delivery",
        "delivery_address": "12 Market Road",
    }
    body.update(overrides)
    return client.post("/orders", headers=h, json=body)
