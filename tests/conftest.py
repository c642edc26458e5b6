import os

# must be set before the app modules read their config
os.environ.pop("DATABASE_URL", None)
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"

import mongomock
import pytest
from fastapi.testclient import TestClient

import catalog
import database
import main
import users


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["shop_test"]
    monkeypatch.setattr(database, "db", mock_db)
    database.ensure_indexes()
    return mock_db


@pytest.fixture
def client(db):
    with TestClient(main.app) as c:
        yield c


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def product_payload(**overrides):
    data = {
        "name": "Trail Running Shoe",
        "description": "Lightweight shoe with a grippy outsole",
        "price": 19.99,
        "category": "Footwear",
        "tags": ["running", "outdoor"],
        "variants": [{"type": "size", "value": "42"}],
        "inventory": {"quantity": 5, "in_stock": True},
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_product(db):
    def _make(**overrides):
        return catalog.create_product(product_payload(**overrides))
    return _make


@pytest.fixture
def customer(db):
    return users.register("Jane Doe", "jane@example.com", "secret123")


@pytest.fixture
def other_customer(db):
    return users.register("John Roe", "john@example.com", "secret123")


@pytest.fixture
def admin(db):
    return users.create_admin("Admin User", "admin@example.com", "admin123")
