from insomnia_fuel.payments.mock_gateway import MockGateway
from insomnia_fuel.routers.cart import router as cart_router
from insomnia_fuel.routers.checkout import router as checkout_router
from insomnia_fuel.routers.checkout import to_minor_units
from insomnia_fuel.services.errors import GatewayError
from tests.fixtures_data import ADMIN_HEADERS, CART_ITEM, CUSTOMER_HEADERS, build_client, build_memory_database


def test_cart_starts_empty_and_requires_token():
    client = build_client(cart_router)

    assert client.get("/api/cart").status_code == 401

    response = client.get("/api/cart", headers=CUSTOMER_HEADERS)
    assert response.status_code == 200
    assert response.json()["items"] == []
    assert response.json()["subtotal"] == 0.0


def test_cart_upserts_quantities_and_removes_at_zero():
    client = build_client(cart_router)

    client.post("/api/cart", json=CART_ITEM, headers=CUSTOMER_HEADERS)
    client.post(
        "/api/cart",
        json={"menuItemId": "menu-1", "name": "Flat White", "price": 5.0, "quantity": 2},
        headers=CUSTOMER_HEADERS,
    )
    updated = client.post("/api/cart", json={**CART_ITEM, "quantity": 3}, headers=CUSTOMER_HEADERS)

    assert [(item["menuItemId"], item["quantity"]) for item in updated.json()["items"]] == [
        ("menu-7", 3),
        ("menu-1", 2),
    ]
    assert updated.json()["subtotal"] == 29.5

    removed = client.post("/api/cart", json={**CART_ITEM, "quantity": 0}, headers=CUSTOMER_HEADERS)
    assert [item["menuItemId"] for item in removed.json()["items"]] == ["menu-1"]


def test_cart_is_scoped_to_the_caller():
    client = build_client(cart_router)
    client.post("/api/cart", json=CART_ITEM, headers=CUSTOMER_HEADERS)

    assert client.get("/api/cart", headers=ADMIN_HEADERS).json()["items"] == []


def test_cart_delete_item_and_clear():
    client = build_client(cart_router)
    client.post("/api/cart", json=CART_ITEM, headers=CUSTOMER_HEADERS)
    client.post(
        "/api/cart",
        json={"menuItemId": "menu-1", "name": "Flat White", "price": 5.0, "quantity": 1},
        headers=CUSTOMER_HEADERS,
    )

    after_delete = client.delete("/api/cart/menu-7", headers=CUSTOMER_HEADERS)
    after_clear = client.delete("/api/cart", headers=CUSTOMER_HEADERS)

    assert [item["menuItemId"] for item in after_delete.json()["items"]] == ["menu-1"]
    assert after_clear.json()["items"] == []


def test_cart_rejects_blank_item_fields():
    client = build_client(cart_router)

    response = client.post(
        "/api/cart",
        json={"menuItemId": "  ", "name": "Flat White", "price": 5.0, "quantity": 1},
        headers=CUSTOMER_HEADERS,
    )

    assert response.status_code == 400


def test_to_minor_units_rounds_half_up():
    assert to_minor_units(5) == 500
    assert to_minor_units(6.5) == 650
    assert to_minor_units("4.995") == 500
    assert to_minor_units(0.1) == 10


def test_checkout_requires_a_non_empty_cart():
    client = build_client(cart_router, checkout_router)

    response = client.post("/api/checkout/create-session", headers=CUSTOMER_HEADERS)

    assert response.status_code == 400
    assert response.json()["detail"] == "Cart is empty"


def test_checkout_creates_gateway_session_from_cart():
    gateway = MockGateway()
    client = build_client(cart_router, checkout_router, gateway=gateway)
    client.post("/api/cart", json={**CART_ITEM, "quantity": 2}, headers=CUSTOMER_HEADERS)

    response = client.post("/api/checkout/create-session", headers=CUSTOMER_HEADERS)

    assert response.status_code == 200
    session_id = response.json()["sessionId"]
    assert response.json()["url"].endswith(session_id)

    session = gateway.retrieve_session(session_id)
    assert session.metadata == {"uid": "u42"}
    assert session.client_reference_id == "u42"
    assert session.customer_email == "sam@example.com"
    assert session.payment_status == "unpaid"
    [line] = gateway.list_line_items(session_id)
    assert (line.description, line.unit_amount, line.quantity, line.product_id) == ("Banana Bread", 650, 2, "menu-7")

    # the cart survives until the payment is reconciled
    assert client.get("/api/cart", headers=CUSTOMER_HEADERS).json()["items"] != []


def test_checkout_maps_gateway_failure_to_bad_gateway(monkeypatch):
    gateway = MockGateway()
    database = build_memory_database()
    client = build_client(cart_router, checkout_router, database=database, gateway=gateway)
    client.post("/api/cart", json=CART_ITEM, headers=CUSTOMER_HEADERS)

    def broken_create(**kwargs):
        raise GatewayError("stripe down")

    monkeypatch.setattr(gateway, "create_checkout_session", broken_create)

    response = client.post("/api/checkout/create-session", headers=CUSTOMER_HEADERS)

    assert response.status_code == 502
