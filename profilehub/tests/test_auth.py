from datetime import timedelta

from profilehub.auth import create_access_token, get_password_hash, token_for, verify_password


def _register(client, **overrides):
    payload = {"username": "dora", "password": "explorer1", "name": "Dora", "email": "dora@example.com"}
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


def test_register_then_use_token(auth_client):
    r = _register(auth_client)
    assert r.status_code == 201
    token = r.json()["access_token"]

    profile = auth_client.get("/api/settings/profile", headers={"Authorization": f"Bearer {token}"})

    assert profile.status_code == 200
    assert profile.json()["user"]["username"] == "dora"
    assert profile.json()["photo_history"] == []


def test_register_rejects_duplicates_and_weak_passwords(auth_client):
    assert _register(auth_client).status_code == 201

    r = _register(auth_client, email="other@example.com")
    assert r.status_code == 400
    assert r.json()["detail"] == "The username has already been taken."

    r = _register(auth_client, username="dora2")
    assert r.status_code == 400
    assert r.json()["detail"] == "The email has already been taken."

    r = _register(auth_client, username="dora3", email="d3@example.com", password="short")
    assert r.status_code == 400


def test_login(auth_client, user, password):
    r = auth_client.post("/api/auth/login", data={"username": user.username, "password": password})
    assert r.status_code == 200
    assert r.json()["token_type"] == "bearer"

    r = auth_client.post("/api/auth/login", data={"username": user.username, "password": "nope-nope1"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid credentials"


def test_stale_token_version_is_rejected(auth_client, session, user):
    token = token_for(user)
    user.token_version = 2
    session.add(user)
    session.commit()

    r = auth_client.get("/api/settings/profile", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_expired_token_is_rejected(auth_client, user):
    token = create_access_token({"sub": user.username, "token_version": 1}, expires_delta=timedelta(seconds=-5))
    r = auth_client.get("/api/settings/profile", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_inactive_user_is_forbidden(auth_client, session, user):
    user.is_active = False
    session.add(user)
    session.commit()

    r = auth_client.get("/api/settings/profile", headers={"Authorization": f"Bearer {token_for(user)}"})
    assert r.status_code == 403


def test_long_password_roundtrip():
    password = "p4ss" * 40
    hashed = get_password_hash(password)
    assert verify_password(password, hashed)
    assert not verify_password(password + "x", hashed)
    assert not verify_password("", hashed)
