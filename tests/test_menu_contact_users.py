from decimal import Decimal

from insomnia_fuel.models.menu_item import MenuItem
from insomnia_fuel.routers.contact import router as contact_router
from insomnia_fuel.routers.menu import router as menu_router
from insomnia_fuel.routers.users import router as users_router
from insomnia_fuel.services.identity import Principal
from insomnia_fuel.services.menu import normalize_sub_items, upsert_menu_item
from tests.fixtures_data import (
    ADMIN_HEADERS,
    CUSTOMER_HEADERS,
    FakeIdentityVerifier,
    build_client,
    build_memory_database,
)

LATTE = {
    "name": "Iced Latte",
    "description": "Double shot over ice",
    "category": "drinks",
    "section": "Cold",
    "price": 6.5,
    "subItems": [{"name": "Oat milk", "price": 0.8}, {"name": "", "price": 1}, {"name": "Syrup", "price": "x"}],
}


def test_normalize_sub_items_drops_invalid_entries():
    assert normalize_sub_items(None) == []
    assert normalize_sub_items([{"name": " Extra shot ", "price": "0.5"}, "junk", {"price": 2}]) == [
        {"name": "Extra shot", "price": 0.5}
    ]


def test_menu_is_public_to_read_and_admin_only_to_write():
    client = build_client(menu_router)

    assert client.get("/api/menu").json() == {"items": []}
    assert client.post("/api/menu", json=LATTE).status_code == 401
    assert client.post("/api/menu", json=LATTE, headers=CUSTOMER_HEADERS).status_code == 403

    created = client.post("/api/menu", json=LATTE, headers=ADMIN_HEADERS)

    assert created.status_code == 201
    item = created.json()
    assert item["price"] == 6.5
    assert item["isAvailable"] is True
    assert item["subItems"] == [{"name": "Oat milk", "price": 0.8}]
    assert client.get(f"/api/menu/{item['id']}").json()["name"] == "Iced Latte"
    assert client.get("/api/menu/999").status_code == 404


def test_menu_update_only_touches_sent_fields():
    client = build_client(menu_router)
    item_id = client.post("/api/menu", json=LATTE, headers=ADMIN_HEADERS).json()["id"]

    updated = client.put(f"/api/menu/{item_id}", json={"price": 7, "isFeatured": True}, headers=ADMIN_HEADERS)
    blank_name = client.put(f"/api/menu/{item_id}", json={"name": ""}, headers=ADMIN_HEADERS)

    assert updated.status_code == 200
    assert updated.json()["price"] == 7.0
    assert updated.json()["isFeatured"] is True
    assert updated.json()["name"] == "Iced Latte"
    assert updated.json()["description"] == "Double shot over ice"
    assert blank_name.status_code == 400


def test_menu_rejects_invalid_payloads_and_deletes():
    client = build_client(menu_router)

    negative = client.post("/api/menu", json={**LATTE, "price": -1}, headers=ADMIN_HEADERS)
    missing = client.post("/api/menu", json={"name": "Mocha", "price": 5}, headers=ADMIN_HEADERS)
    item_id = client.post("/api/menu", json=LATTE, headers=ADMIN_HEADERS).json()["id"]

    assert negative.status_code == 422
    assert missing.status_code == 422
    assert client.delete(f"/api/menu/{item_id}", headers=ADMIN_HEADERS).status_code == 200
    assert client.delete(f"/api/menu/{item_id}", headers=ADMIN_HEADERS).status_code == 404


def test_upsert_menu_item_is_keyed_by_category_section_and_name():
    db = build_memory_database().session()

    first = upsert_menu_item(db, category="catering", section="Lunch", name="Salad Trays", price=79)
    second = upsert_menu_item(db, category="catering", section="Lunch", name="Salad Trays", price=85, description="Big")

    [item] = db.query(MenuItem).all()
    assert (first, second) == (True, False)
    assert item.price == Decimal("85.00")
    assert item.description == "Big"


def test_contact_message_records_optional_sender_uid():
    client = build_client(contact_router)
    message = {"name": " Sam ", "email": "sam@example.com", "message": "Open late on Sunday?"}

    anonymous = client.post("/api/contact", json=message)
    signed_in = client.post("/api/contact", json=message, headers=CUSTOMER_HEADERS)
    invalid = client.post("/api/contact", json={"name": "Sam", "email": "", "message": "hi"})

    assert anonymous.status_code == 201
    assert anonymous.json()["contact"]["userId"] is None
    assert anonymous.json()["contact"]["name"] == "Sam"
    assert signed_in.json()["contact"]["userId"] == "u42"
    assert invalid.status_code == 400
    assert invalid.json()["detail"] == "Name, email and message are required."


def test_admin_reviews_contact_messages():
    client = build_client(contact_router)
    client.post("/api/contact", json={"name": "A", "email": "a@example.com", "message": "first"})
    client.post("/api/contact", json={"name": "B", "email": "b@example.com", "message": "second"})

    assert client.get("/api/contact", headers=CUSTOMER_HEADERS).status_code == 403

    listing = client.get("/api/contact", headers=ADMIN_HEADERS).json()
    assert listing["total"] == 2
    assert [entry["message"] for entry in listing["items"]] == ["second", "first"]

    message_id = listing["items"][0]["id"]
    handled = client.patch(f"/api/contact/{message_id}", json={"handled": True}, headers=ADMIN_HEADERS)
    assert handled.json()["contact"]["handled"] is True
    assert client.patch("/api/contact/999", json={"handled": True}, headers=ADMIN_HEADERS).status_code == 404


def test_user_sync_creates_once_then_returns_existing():
    client = build_client(users_router)

    assert client.get("/api/users/me", headers=CUSTOMER_HEADERS).status_code == 404

    created = client.post("/api/users", json={"displayName": "Sam Night"}, headers=CUSTOMER_HEADERS)
    again = client.post("/api/users/sync", json={"displayName": "Someone Else"}, headers=CUSTOMER_HEADERS)

    assert created.status_code == 201
    assert created.json()["displayName"] == "Sam Night"
    assert again.status_code == 200
    assert again.json()["id"] == created.json()["id"]
    assert again.json()["displayName"] == "Sam Night"
    assert client.get("/api/users/me", headers=CUSTOMER_HEADERS).json()["email"] == "sam@example.com"


def test_user_sync_without_body_uses_token_name():
    client = build_client(users_router)

    response = client.post("/api/users/sync", headers=CUSTOMER_HEADERS)

    assert response.status_code == 201
    assert response.json()["displayName"] == "Sam"


def test_user_sync_requires_email_claim():
    no_email = Principal(uid="phone-user", email=None, name=None)
    client = build_client(users_router, verifier=FakeIdentityVerifier({"phone-token": no_email}))

    response = client.post("/api/users", headers={"Authorization": "Bearer phone-token"})

    assert response.status_code == 400


def test_admin_lists_and_deletes_users():
    client = build_client(users_router)
    client.post("/api/users", headers=CUSTOMER_HEADERS)

    assert client.get("/api/users", headers=CUSTOMER_HEADERS).status_code == 403

    listing = client.get("/api/users", headers=ADMIN_HEADERS).json()
    assert listing["total"] == 1
    assert listing["items"][0]["uid"] == "u42"

    assert client.delete("/api/users/u42", headers=ADMIN_HEADERS).status_code == 200
    assert client.delete("/api/users/u42", headers=ADMIN_HEADERS).status_code == 404
