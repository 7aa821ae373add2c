import os

os.environ["JWT_ACCESS_SECRET"] = "test-secret"
os.environ["JWT_ACCESS_EXPIRATION"] = "1d"
os.environ["BCRYPT_SALT_ROUNDS"] = "4"
os.environ.pop("DEFAULT_ADMIN_EMAIL", None)
os.environ.pop("DEFAULT_ADMIN_PASSWORD", None)

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import database
from config import get_settings
from main import app
from security import hash_password


@pytest.fixture(autouse=True)
def db(monkeypatch):
    get_settings.cache_clear()
    test_db = mongomock.MongoClient()["shop_test"]
    monkeypatch.setattr(database, "db", test_db)
    yield test_db
    get_settings.cache_clear()


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_admin(db):
    def _make(email="admin@example.com", password="admin-pass"):
        res = db["admin"].insert_one({
            "name": "Admin",
            "email": email,
            "password_hash": hash_password(password),
            "role": "admin",
        })
        return res.inserted_id

    return _make


@pytest.fixture
def make_user(db):
    def _make(email="user@example.com", password="user-pass", status="active", is_deleted=False, cart=None):
        res = db["user"].insert_one({
            "name": "User",
            "email": email,
            "password_hash": hash_password(password),
            "role": "user",
            "status": status,
            "is_deleted": is_deleted,
            "cart": cart or [],
            "cart_version": 0,
        })
        return res.inserted_id

    return _make


@pytest.fixture
def make_product(db):
    def _make(name="Sneaker", price=10.0):
        return db["product"].insert_one({"name": name, "price": price, "in_stock": True}).inserted_id

    return _make


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def login(client, email, password, admin=False) -> str:
    path = "/api/auth/admin/login" if admin else "/api/auth/login"
    res = client.post(path, json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["data"]["accessToken"]


def missing_id() -> str:
    return str(ObjectId())
