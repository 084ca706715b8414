import pytest


@pytest.mark.asyncio
async def test_signup_login_me(client):
    r = await client.post("/auth/signup", json={"email": "Carol@Campus.edu", "password": "secret123"})
    assert r.status_code == 201
    account = r.json()
    assert account["email"] == "carol@campus.edu"

    r = await client.post("/auth/login", data={"username": "carol@campus.edu", "password": "secret123"})
    assert r.status_code == 200
    token = r.json()["access_token"]
    assert r.json()["token_type"] == "bearer"

    r = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json() == account


@pytest.mark.asyncio
async def test_signup_conflict(client, alice):
    r = await client.post("/auth/signup", json={"email": alice["email"], "password": "another1"})
    assert r.status_code == 400
    assert r.json()["detail"] == "User already registered"


@pytest.mark.asyncio
async def test_login_with_bad_password(client, alice):
    r = await client.post("/auth/login", data={"username": alice["email"], "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid login credentials"


@pytest.mark.asyncio
async def test_me_requires_a_valid_token(client):
    r = await client.get("/auth/me")
    assert r.status_code == 401

    r = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid token"


@pytest.mark.asyncio
async def test_signup_validates_input(client):
    r = await client.post("/auth/signup", json={"email": "not-an-email", "password": "secret123"})
    assert r.status_code == 422
