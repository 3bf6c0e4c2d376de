import os
import tempfile

# the app reads its mode from the environment at import time
os.environ.pop("DATABASE_URL", None)
os.environ.pop("RESEND_API_KEY", None)
os.environ.setdefault("DEMO_DATA_DIR", tempfile.mkdtemp(prefix="bazaar-test-"))

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from bazaar.db.db import build_engine, create_db_and_tables
from bazaar.main import app
from bazaar.models.user import User
from bazaar.realtime.broker import ListingBroker
from bazaar.schemas import AuthUser
from bazaar.services.demo_store import DemoStore
from bazaar.services.factory import get_broker, set_store
from bazaar.services.sql_store import SQLStore


@pytest.fixture
def broker():
    return ListingBroker()


@pytest.fixture
def sql_store(broker):
    engine = build_engine("sqlite:///:memory:")
    create_db_and_tables(engine)
    return SQLStore(engine, broker=broker)


@pytest.fixture
def demo_store(tmp_path, broker):
    return DemoStore(str(tmp_path / "demo"), broker=broker)


@pytest.fixture(params=["sql", "demo"])
def store(request):
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def client(store):
    set_store(store)
    app.dependency_overrides[get_broker] = lambda: store.broker
    yield TestClient(app)
    app.dependency_overrides.clear()
    set_store(None)


def make_user(store, email, name=None, campus="iitd"):
    return store.get_current_user_profile(AuthUser(email=email, name=name), campus)


def make_admin(store, user_id):
    if store.is_demo:
        with store.lock:
            store.users[user_id]["role"] = "ADMIN"
            store.storage.save("bazaar_demo_users", store.users)
        return

    with Session(store.engine) as session:
        user = session.get(User, user_id)
        user.role = "ADMIN"
        session.add(user)
        session.commit()


def login(client, email):
    res = client.post("/auth/magic-link", json={"email": email})
    assert res.status_code == 200, res.text

    res = client.post("/auth/verify", json={"token": res.json()["token"]})
    assert res.status_code == 200, res.text

    body = res.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body["user"]


def listing_payload(**overrides):
    payload = {
        "title": "Hero Sprint Cycle",
        "description": "Geared cycle in good shape, serviced last month.",
        "price": 2000,
        "original_price": 5000,
        "category": "Cycles",
        "condition": "Good",
        "images": ["https://cdn.example.com/cycle.webp"],
        "is_donation": False,
        "tier": "STANDARD",
        "payment_id": "pay_dummy_test",
    }
    payload.update(overrides)
    return payload
