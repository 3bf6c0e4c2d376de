import io
import os

import pytest
from PIL import Image
from starlette.websockets import WebSocketDisconnect

from bazaar import config
from bazaar.routers import uploads
from bazaar.schemas import Settings

from conftest import listing_payload, login, make_admin


@pytest.fixture
def seller(client):
    return login(client, "seller@iitd.ac.in")


@pytest.fixture
def buyer(client):
    return login(client, "buyer@iitd.ac.in")


@pytest.fixture
def admin(client, store):
    headers, user = login(client, "admin@iitd.ac.in")
    make_admin(store, user["id"])
    return headers, user


def create_listing(client, headers, **overrides):
    res = client.post("/listings/", json=listing_payload(**overrides), headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


# Auth

def test_magic_link_sign_in_creates_profile(client):
    headers, user = login(client, "Riya@IITD.ac.in")

    assert user["email"] == "riya@iitd.ac.in"
    assert user["campusSlug"] == "iitd"

    res = client.get("/profile/me", headers=headers)
    assert res.status_code == 200
    assert res.json()["id"] == user["id"]


def test_magic_link_rejects_non_campus_email(client):
    res = client.post("/auth/magic-link", json={"email": "someone@gmail.com"})
    assert res.status_code == 400


def test_verify_rejects_access_token(client, seller):
    headers, _ = seller
    token = headers["Authorization"].split(" ", 1)[1]

    res = client.post("/auth/verify", json={"token": token})
    assert res.status_code == 401


def test_protected_routes_need_a_token(client):
    assert client.get("/profile/me").status_code in (401, 403)
    assert client.get("/profile/me", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_demo_login_only_in_demo_mode(client, store):
    res = client.post("/auth/demo")

    if store.is_demo:
        assert res.status_code == 200
        assert res.json()["user"]["id"] == "u1"
    else:
        assert res.status_code == 404


def test_google_sign_in_not_configured(client):
    res = client.post("/auth/google", json={"id_token": "x"})
    assert res.status_code == 501


def test_banned_user_is_locked_out(client, admin, buyer):
    admin_headers, _ = admin
    buyer_headers, buyer_user = buyer

    res = client.post(f"/admin/users/{buyer_user['id']}/ban", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["isBanned"] is True

    res = client.get("/profile/me", headers=buyer_headers)
    assert res.status_code == 403
    assert res.json()["detail"] == "Account suspended"

    res = client.post("/auth/magic-link", json={"email": "buyer@iitd.ac.in"})
    res = client.post("/auth/verify", json={"token": res.json()["token"]})
    assert res.status_code == 403


def test_admin_cannot_ban_self(client, admin):
    headers, user = admin
    assert client.post(f"/admin/users/{user['id']}/ban", headers=headers).status_code == 400


# Listings

def test_checkout_then_create_listing(client, seller):
    headers, user = seller

    res = client.post("/listings/checkout", json={"tier": "FOREVER"}, headers=headers)
    assert res.status_code == 200
    payment = res.json()
    assert payment["amount"] == 49
    assert payment["currency"] == "INR"
    assert payment["payment_id"].startswith("pay_dummy_")

    product = create_listing(client, headers, tier="FOREVER", payment_id=payment["payment_id"])

    assert product["sellerId"] == user["id"]
    assert product["campusId"] == "iitd"
    assert product["type"] == "FOREVER"
    assert product["expiresAt"] is None

    feed = client.get("/listings/", headers=headers).json()
    assert product["id"] in [p["id"] for p in feed]


def test_create_listing_requires_payment(client, seller):
    headers, _ = seller

    res = client.post("/listings/", json=listing_payload(payment_id=None), headers=headers)
    assert res.status_code == 402

    # donations skip the listing fee
    res = client.post("/listings/", json=listing_payload(payment_id=None, is_donation=True), headers=headers)
    assert res.status_code == 201
    assert res.json()["price"] == 0


def test_create_listing_enforces_price_cap(client, seller, admin):
    headers, _ = seller
    admin_headers, _ = admin

    res = client.post("/listings/", json=listing_payload(price=4500), headers=headers)
    assert res.status_code == 400

    res = client.put("/admin/settings", json={"priceCapPercentage": 95}, headers=admin_headers)
    assert res.status_code == 200

    res = client.post("/listings/", json=listing_payload(price=4500), headers=headers)
    assert res.status_code == 201


def test_invalid_listing_form(client, seller):
    headers, _ = seller

    res = client.post("/listings/", json=listing_payload(images=[]), headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"][0]["loc"] == ["images"]


def test_owner_edits_and_status(client, seller, buyer):
    headers, _ = seller
    buyer_headers, _ = buyer
    product = create_listing(client, headers)

    res = client.patch(f"/listings/{product['id']}", json={"price": 1500}, headers=buyer_headers)
    assert res.status_code == 403

    res = client.patch(f"/listings/{product['id']}", json={"price": 4900}, headers=headers)
    assert res.status_code == 400

    res = client.patch(f"/listings/{product['id']}", json={"price": 1500, "title": " Cycle "}, headers=headers)
    assert res.status_code == 200
    assert res.json()["price"] == 1500
    assert res.json()["title"] == "Cycle"

    res = client.post(f"/listings/{product['id']}/status", json={"status": "FLAGGED"}, headers=headers)
    assert res.status_code == 403

    res = client.post(f"/listings/{product['id']}/status", json={"status": "SOLD"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["isSold"] is True

    feed = client.get("/listings/", headers=buyer_headers).json()
    assert product["id"] not in [p["id"] for p in feed]

    grouped = client.get("/profile/me/listings", headers=headers).json()
    assert [p["id"] for p in grouped["sold"]] == [product["id"]]


def test_listing_hidden_from_other_campus(client, seller):
    headers, _ = seller
    product = create_listing(client, headers)

    other_headers, _ = login(client, "student@iitk.ac.in")

    assert client.get(f"/listings/{product['slug']}", headers=other_headers).status_code == 404
    assert client.get(f"/listings/{product['slug']}", headers=headers).status_code == 200
    assert product["id"] not in [p["id"] for p in client.get("/listings/", headers=other_headers).json()]


def test_feed_filters(client, seller):
    headers, _ = seller
    create_listing(client, headers)
    donation = create_listing(client, headers, title="Free Lamp", is_donation=True, category="Electronics")

    res = client.get("/listings/", params={"donation_only": True}, headers=headers)
    assert donation["id"] in [p["id"] for p in res.json()]
    assert all(p["price"] == 0 for p in res.json())

    res = client.get("/listings/", params={"search": "free lamp"}, headers=headers)
    assert [p["id"] for p in res.json()] == [donation["id"]]


def test_maintenance_mode(client, seller, admin):
    headers, _ = seller
    admin_headers, _ = admin

    res = client.put("/admin/settings", json={"maintenanceMode": True}, headers=admin_headers)
    assert res.status_code == 200

    assert client.get("/listings/", headers=headers).status_code == 503
    assert client.get("/market", headers=headers).status_code == 503
    assert client.get("/listings/", headers=admin_headers).status_code == 200


# Saved, recently viewed, reports

def test_saved_toggle_is_idempotent(client, seller, buyer):
    product = create_listing(client, seller[0])
    headers, _ = buyer

    for _ in range(2):
        res = client.post(f"/saved/{product['id']}/toggle", json={"is_currently_saved": False}, headers=headers)
        assert res.json() == {"ok": True, "saved": True}

    assert client.get("/saved/", headers=headers).json() == {"ids": [product["id"]]}
    assert [p["id"] for p in client.get("/saved/listings", headers=headers).json()] == [product["id"]]

    res = client.post(f"/saved/{product['id']}/toggle", json={"is_currently_saved": True}, headers=headers)
    assert res.json() == {"ok": True, "saved": False}

    res = client.post("/saved/missing/toggle", json={"is_currently_saved": False}, headers=headers)
    assert res.status_code == 404


def test_recently_viewed(client, seller, buyer):
    first = create_listing(client, seller[0], title="First Cycle")
    second = create_listing(client, seller[0], title="Second Cycle")
    headers, _ = buyer

    client.post(f"/recent/{first['id']}", headers=headers)
    client.get(f"/product/{second['slug']}", headers=headers)

    res = client.get("/recent/", headers=headers).json()
    assert res["ids"] == [second["id"], first["id"]]
    assert [p["id"] for p in res["listings"]] == [second["id"], first["id"]]


def test_reports_flow(client, seller, buyer, admin):
    product = create_listing(client, seller[0])
    headers, _ = buyer
    admin_headers, _ = admin

    res = client.post("/reports/", json={"listing_id": product["id"], "reason": "no"}, headers=headers)
    assert res.status_code == 422

    res = client.post("/reports/", json={"listing_id": product["id"], "reason": "Looks fake"}, headers=seller[0])
    assert res.status_code == 400

    res = client.post("/reports/", json={"listing_id": product["id"], "reason": "Looks fake"}, headers=headers)
    assert res.status_code == 201
    report = res.json()
    assert report["listing"]["title"] == product["title"]

    assert client.get("/admin/reports", headers=headers).status_code == 403

    reports = client.get("/admin/reports", headers=admin_headers).json()
    assert [r["id"] for r in reports] == [report["id"]]

    res = client.delete(f"/admin/listings/{product['id']}", headers=admin_headers)
    assert res.status_code == 200

    assert client.get("/admin/reports", headers=admin_headers).json() == []
    assert client.get(f"/listings/{product['id']}", headers=headers).status_code == 404

    actions = [l["action"] for l in client.get("/admin/logs", headers=admin_headers).json()]
    assert "DELETE_LISTING" in actions


def test_admin_settings_validation(client, admin):
    headers, _ = admin

    res = client.put("/admin/settings", json={"priceCapPercentage": 0}, headers=headers)
    assert res.status_code == 400

    res = client.put("/admin/settings", json={"priceCapPercentage": 70, "systemNotice": "Exams week"}, headers=headers)
    assert res.status_code == 200
    assert client.get("/admin/settings", headers=headers).json()["systemNotice"] == "Exams week"


# Profile

def test_profile_update_validates_hostel(client, buyer):
    headers, _ = buyer

    res = client.patch("/profile/me", json={"hostel": "Hall 5"}, headers=headers)
    assert res.status_code == 400

    res = client.patch("/profile/me", json={"hostel": "Kumaon", "theme": "light"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["hostel"] == "Kumaon"

    res = client.patch("/profile/me", json={"theme": "neon"}, headers=headers)
    assert res.status_code == 400


def test_account_deletion_can_be_restored(client, buyer):
    headers, _ = buyer

    res = client.post("/profile/delete", headers=headers)
    assert res.json()["deletionRequestedAt"] is not None

    res = client.post("/auth/magic-link", json={"email": "buyer@iitd.ac.in"})
    res = client.post("/auth/verify", json={"token": res.json()["token"]})
    assert res.json()["deletion_pending"] is True

    res = client.post("/profile/restore", headers=headers)
    assert res.json()["deletionRequestedAt"] is None


# Pages

def test_legacy_links_redirect(client):
    res = client.get("/", params={"product": "hero-sprint-cycle-p1"}, follow_redirects=False)
    assert res.status_code == 307
    assert res.headers["location"] == "/product/hero-sprint-cycle-p1"

    res = client.get("/", params={"page": "market"}, follow_redirects=False)
    assert res.headers["location"] == "/market"

    res = client.get("/", params={"page": "landing"}, follow_redirects=False)
    assert res.status_code == 200
    assert res.json()["page"] == "landing"


def test_pages(client, seller, buyer, admin):
    product = create_listing(client, seller[0])
    headers, _ = buyer

    market = client.get("/market", headers=headers).json()
    assert product["id"] in [p["id"] for p in market["products"]]
    assert "Girnar" in market["hostels"]

    detail = client.get(f"/product/{product['slug']}", headers=headers).json()
    assert detail["is_owner"] is False
    assert detail["share_path"] == f"/product/{product['slug']}"

    sell = client.get("/sell", headers=headers).json()
    assert sell["price_cap_percentage"] == 80
    assert {"tier": "STANDARD", "price": 10, "days": 30} in sell["tiers"]

    assert client.get("/admin", headers=headers).status_code == 403
    dashboard = client.get("/admin", headers=admin[0]).json()
    assert dashboard["stats"]["totalListings"] >= 1

    assert client.get("/health").json()["status"] == "ok"


# Uploads

def test_image_upload(client, store, seller, monkeypatch):
    headers, _ = seller

    image = io.BytesIO()
    Image.new("RGB", (2000, 1000), "red").save(image, format="PNG")

    uploaded = []
    monkeypatch.setattr(uploads, "upload_to_s3", lambda buffer, key: uploaded.append(key))
    monkeypatch.setattr(uploads, "public_url", lambda key: f"https://cdn.example.com/{key}")

    res = client.post("/uploads/images", files={"image": ("cycle.png", image.getvalue(), "image/png")}, headers=headers)
    assert res.status_code == 200, res.text

    url = res.json()["url"]
    if store.is_demo:
        assert url.startswith("/uploads/files/cycle-")
        assert uploaded == []
    else:
        assert url.startswith("https://cdn.example.com/item-images/cycle-")
        assert len(uploaded) == 1

    res = client.post("/uploads/images", files={"image": ("notes.txt", b"plain text", "text/plain")}, headers=headers)
    assert res.status_code == 400


# Realtime

def test_websocket_receives_campus_events(client, seller):
    headers, _ = seller
    token = headers["Authorization"].split(" ", 1)[1]

    with client.websocket_connect(f"/realtime/listings?token={token}") as ws:
        product = create_listing(client, headers)

        event = ws.receive_json()
        assert event["event_type"] == "INSERT"
        assert event["campus"] == "iitd"
        assert event["new"]["id"] == product["id"]

        client.post(f"/listings/{product['id']}/status", json={"status": "SOLD"}, headers=headers)

        event = ws.receive_json()
        assert event["event_type"] == "UPDATE"
        assert event["new"]["status"] == "SOLD"


def test_websocket_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/realtime/listings?token=garbage") as ws:
            ws.receive_json()


def test_settings_model_uses_camel_case_on_the_wire():
    assert Settings(maintenance_mode=True).model_dump(by_alias=True)["maintenanceMode"] is True


# Campus isolation

@pytest.fixture
def outsider(client):
    return login(client, "student@iitk.ac.in")


def test_recent_rejects_other_campus_listing(client, seller, outsider):
    product = create_listing(client, seller[0])
    headers, _ = outsider

    res = client.post(f"/recent/{product['id']}", headers=headers)
    assert res.status_code == 404

    assert client.get("/recent/", headers=headers).json() == {"ids": [], "listings": []}


def test_saved_rejects_other_campus_listing(client, seller, outsider):
    product = create_listing(client, seller[0])
    headers, _ = outsider

    res = client.post(f"/saved/{product['id']}/toggle", json={"is_currently_saved": False}, headers=headers)
    assert res.status_code == 404

    assert client.get("/saved/", headers=headers).json() == {"ids": []}
    assert client.get("/saved/listings", headers=headers).json() == []


def test_report_rejects_other_campus_listing(client, seller, outsider, admin):
    product = create_listing(client, seller[0])
    headers, _ = outsider

    res = client.post("/reports/", json={"listing_id": product["id"], "reason": "Looks fake"}, headers=headers)
    assert res.status_code == 404

    assert client.get("/admin/reports", headers=admin[0]).json() == []


def test_pages_drop_other_campus_history(client, store, seller, outsider):
    product = create_listing(client, seller[0])
    headers, user = outsider

    # rows written before campus checks existed
    store.add_to_recently_viewed(user["id"], product["id"])
    store.toggle_saved_item(user["id"], product["id"], False)

    market = client.get("/market", headers=headers).json()
    assert market["recently_viewed"] == []

    profile = client.get("/profile", headers=headers).json()
    assert profile["saved"] == []
    assert profile["recently_viewed"] == []

    assert client.get("/recent/", headers=headers).json()["listings"] == []
    assert client.get("/saved/listings", headers=headers).json() == []


# Owner edits

@pytest.mark.parametrize("updates", [
    {"title": "x"},
    {"description": ""},
    {"title": "  ab  "},
    {"price": 0},
    {"images": []},
    {"category": "Vehicles"},
    {"condition": "Broken"},
    {"title": None},
])
def test_owner_edit_runs_listing_form_rules(client, seller, updates):
    headers, _ = seller
    product = create_listing(client, headers)

    res = client.patch(f"/listings/{product['id']}", json=updates, headers=headers)
    assert res.status_code == 400, res.text

    current = client.get(f"/listings/{product['id']}", headers=headers).json()
    assert current["title"] == product["title"]
    assert current["price"] == product["price"]


@pytest.mark.parametrize("updates", [
    {"price": "abc"},
    {"images": "not-a-list"},
    {"seller_id": "someone-else"},
])
def test_owner_edit_rejects_bad_types(client, seller, updates):
    headers, _ = seller
    product = create_listing(client, headers)

    res = client.patch(f"/listings/{product['id']}", json=updates, headers=headers)
    assert res.status_code == 422


def test_owner_edit_keeps_donations_free(client, seller):
    headers, _ = seller
    product = create_listing(client, headers, is_donation=True, payment_id=None)

    res = client.patch(f"/listings/{product['id']}", json={"title": "Free Cycle", "price": 500}, headers=headers)
    assert res.status_code == 200
    assert res.json()["title"] == "Free Cycle"
    assert res.json()["price"] == 0


def test_owner_edit_changes_category_and_images(client, seller):
    headers, _ = seller
    product = create_listing(client, headers)

    res = client.patch(
        f"/listings/{product['id']}",
        json={"category": "Furniture", "condition": "Fair", "images": ["a.webp", "b.webp"]},
        headers=headers,
    )
    assert res.status_code == 200
    assert res.json()["category"] == "Furniture"
    assert res.json()["condition"] == "Fair"
    assert res.json()["images"] == ["a.webp", "b.webp"]

    assert client.patch(f"/listings/{product['id']}", json={}, headers=headers).status_code == 400


# Realtime access

def test_websocket_rejects_banned_user(client, buyer, admin):
    headers, user = buyer
    token = headers["Authorization"].split(" ", 1)[1]

    client.post(f"/admin/users/{user['id']}/ban", headers=admin[0])

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/realtime/listings?token={token}") as ws:
            ws.receive_json()


def test_websocket_disconnect_releases_subscription(client, store, seller):
    headers, _ = seller
    token = headers["Authorization"].split(" ", 1)[1]

    with client.websocket_connect(f"/realtime/listings?token={token}"):
        assert store.broker.subscriber_count("iitd") == 1

    assert store.broker.subscriber_count("iitd") == 0


# Image cleanup

@pytest.mark.parametrize("store", ["demo"], indirect=True)
def test_admin_delete_removes_local_images(client, seller, admin):
    headers, _ = seller

    image = io.BytesIO()
    Image.new("RGB", (40, 40), "blue").save(image, format="PNG")
    res = client.post("/uploads/images", files={"image": ("lamp.png", image.getvalue(), "image/png")}, headers=headers)
    url = res.json()["url"]

    path = os.path.join(config.get_demo_data_dir(), "uploads", os.path.basename(url))
    assert os.path.exists(path)

    product = create_listing(client, headers, images=[url])
    assert client.delete(f"/admin/listings/{product['id']}", headers=admin[0]).status_code == 200

    assert not os.path.exists(path)
