import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main


@pytest.fixture
def mongo(monkeypatch):
    handle = mongomock.MongoClient()["acoof_test"]
    monkeypatch.setattr(database, "db", handle)
    monkeypatch.setattr(main, "db", handle)
    return handle


@pytest.fixture
def client(mongo):
    return TestClient(main.app)


@pytest.fixture
def catalog(mongo):
    """Seed the admin account and starter products; return products by name."""
    main.seed_data()
    return {p["name"]: str(p["_id"]) for p in mongo["product"].find()}


def auth_headers(client, email, password):
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def admin_headers(client, catalog):
    return auth_headers(client, main.ADMIN_EMAIL, main.ADMIN_PASSWORD)


@pytest.fixture
def user_headers(client, catalog):
    r = client.post("/auth/register", json={"name": "Ravi Kumar", "email": "ravi@acoof.com", "password": "secret123"})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def login_as(client):
    return lambda email, password: auth_headers(client, email, password)
