import os
import tempfile

# Configure before the app is imported: module-level settings are read once.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["LOCAL_STORAGE_DIR"] = tempfile.mkdtemp(prefix="uniswap-media-")
os.environ["SECRET_KEY"] = "test-secret"

import httpx
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from app import db
from app.main import app
from app.utils.storage import LocalObjectStore, get_object_store


@pytest.fixture
def engine(monkeypatch):
    """In-memory database shared by every session in the test."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(db, "engine", engine)
    yield engine
    engine.dispose()


@pytest.fixture
def object_store(tmp_path):
    (tmp_path / "product-images").mkdir()
    store = LocalObjectStore(str(tmp_path), "http://test", "product-images")
    app.dependency_overrides[get_object_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_object_store, None)


@pytest.fixture
async def client(engine, object_store):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_account(client):
    async def _make(email, password="secret123"):
        r = await client.post("/auth/signup", json={"email": email, "password": password})
        assert r.status_code == 201, r.text
        account = r.json()

        r = await client.post("/auth/login", data={"username": email, "password": password})
        assert r.status_code == 200, r.text
        token = r.json()["access_token"]

        return {
            "id": account["id"],
            "email": email,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _make


@pytest.fixture
async def alice(make_account):
    return await make_account("alice@campus.edu")


@pytest.fixture
async def bob(make_account):
    return await make_account("bob@campus.edu")


@pytest.fixture
def listing_payload():
    def _payload(owner_id, **overrides):
        body = {
            "title": "Scientific Calculator Casio FX-991EX",
            "description": "Barely used, all functions work.",
            "category": "Electronics",
            "condition": "Used",
            "price": 1200,
            "image_url": "",
            "seller_name": "Alice",
            "seller_phone": "+919876543210",
            "owner_id": owner_id,
        }
        body.update(overrides)
        return body

    return _payload
