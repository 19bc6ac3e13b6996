import base64
from datetime import datetime, timedelta

import pytest

from psychprep.auth.gate import authorize, decode_basic_credentials
from psychprep.auth.utils import hash_password, verify_password
from psychprep.errors import AuthError
from helpers import ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_USERNAME, basic_auth


def test_password_hash():
    password = "testpassword123"
    hashed = hash_password(password)
    assert hashed != password
    assert hashed.startswith("$2b$")
    assert verify_password(password, hashed)
    assert not verify_password("wrong", hashed)


def test_legacy_plaintext_password():
    assert verify_password("plain-secret", "plain-secret", legacy=True)
    assert not verify_password("plain-secreT", "plain-secret", legacy=True)
    # Without the legacy marker a stored value must be a bcrypt hash
    assert not verify_password("plain-secret", "plain-secret")


def test_decode_basic_credentials():
    header = "Basic " + base64.b64encode(b"me@example.com:pa:ss").decode()
    assert decode_basic_credentials(header) == ("me@example.com", "pa:ss")


@pytest.mark.parametrize(
    "header",
    [None, "", "Bearer abc", "Basic !!!notbase64", "Basic " + base64.b64encode(b"nocolon").decode()],
)
def test_decode_basic_credentials_rejects(header):
    with pytest.raises(AuthError):
        decode_basic_credentials(header)


def test_authorize_by_email_and_username(store):
    assert authorize(store, basic_auth(ADMIN_EMAIL, ADMIN_PASSWORD)["Authorization"]).is_admin
    assert authorize(store, basic_auth(ADMIN_USERNAME, ADMIN_PASSWORD)["Authorization"]).is_admin


def test_authorize_updates_last_login_in_ist(store):
    user = authorize(store, basic_auth(ADMIN_EMAIL, ADMIN_PASSWORD)["Authorization"])
    stamp = datetime.fromisoformat(user.last_login)
    assert stamp.utcoffset() == timedelta(hours=5, minutes=30)


def test_authorize_rejects_non_admin(store):
    store.create_user("reader", "reader@example.com", hash_password("readerpass"))
    with pytest.raises(AuthError):
        authorize(store, basic_auth("reader@example.com", "readerpass")["Authorization"])


def test_authorize_rejects_wrong_password(store):
    with pytest.raises(AuthError):
        authorize(store, basic_auth(ADMIN_EMAIL, "nope")["Authorization"])


def test_register(client):
    resp = client.post(
        "/api/register",
        json={"username": "testuser", "email": "test@example.com", "password": "password123"},
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["success"]
    assert data["user"]["username"] == "testuser"
    assert data["user"]["is_admin"] is False
    assert "password" not in data["user"]


def test_register_stores_hash(client, store):
    client.post(
        "/api/register",
        json={"username": "hashed", "email": "hashed@example.com", "password": "password123"},
    )
    user = store.get_user_by_username("hashed")
    assert not user.legacy_password
    assert verify_password("password123", user.password)


def test_register_duplicate_email_case_insensitive(client):
    first = client.post(
        "/api/register",
        json={"username": "one", "email": "Person@Example.com", "password": "password123"},
    )
    assert first.status_code == 201

    second = client.post(
        "/api/register",
        json={"username": "two", "email": "person@example.COM", "password": "password123"},
    )
    assert second.status_code == 400
    assert second.json()["message"] == "Email already in use"


def test_register_duplicate_username(client):
    client.post(
        "/api/register",
        json={"username": "same", "email": "a@example.com", "password": "password123"},
    )
    resp = client.post(
        "/api/register",
        json={"username": "same", "email": "b@example.com", "password": "password123"},
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Username already in use"


def test_register_missing_fields(client):
    resp = client.post("/api/register", json={"username": "x"})
    assert resp.status_code == 400
    assert resp.json()["errors"]


def test_login(client):
    client.post(
        "/api/register",
        json={"username": "logintest", "email": "login@example.com", "password": "password123"},
    )
    resp = client.post("/api/login", json={"email": "LOGIN@example.com", "password": "password123"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"]
    assert data["user"]["email"] == "login@example.com"
    assert data["user"]["last_login"]
    assert "password" not in data["user"]


def test_login_invalid(client):
    resp = client.post("/api/login", json={"email": "noexist@example.com", "password": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "You need to register first"

    resp = client.post("/api/login", json={"email": ADMIN_EMAIL, "password": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"


def test_login_rehashes_legacy_password(client, store):
    store.create_user("legacy", "legacy@example.com", "old-plaintext", legacy_password=True)

    resp = client.post("/api/login", json={"email": "legacy@example.com", "password": "old-plaintext"})
    assert resp.status_code == 200

    migrated = store.get_user_by_email("legacy@example.com")
    assert not migrated.legacy_password
    assert migrated.password != "old-plaintext"
    assert verify_password("old-plaintext", migrated.password)

    # Same password still works against the new hash
    resp = client.post("/api/login", json={"email": "legacy@example.com", "password": "old-plaintext"})
    assert resp.status_code == 200


def test_protected_route_requires_credentials(client):
    resp = client.delete("/api/wat/1")
    assert resp.status_code == 401

    resp = client.delete("/api/wat/1", headers=basic_auth(ADMIN_EMAIL, "wrong"))
    assert resp.status_code == 401


def test_legacy_password_shaped_like_a_hash(client, store):
    store.create_user("oddlegacy", "odd@example.com", "$2b$notahash", legacy_password=True)

    resp = client.post("/api/login", json={"email": "odd@example.com", "password": "$2b$notahash"})
    assert resp.status_code == 200

    migrated = store.get_user_by_email("odd@example.com")
    assert not migrated.legacy_password
    assert verify_password("$2b$notahash", migrated.password)


def test_plaintext_without_legacy_marker_is_rejected(client, store):
    store.create_user("plain", "plain@example.com", "stored-as-is")
    resp = client.post("/api/login", json={"email": "plain@example.com", "password": "stored-as-is"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"


def test_users_table_migration(tmp_path):
    import sqlite3

    from psychprep.db import ContentStore

    db = tmp_path / "old.db"
    conn = sqlite3.connect(db)
    conn.execute(
        "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, username TEXT UNIQUE NOT NULL, "
        "email TEXT UNIQUE NOT NULL COLLATE NOCASE, password TEXT NOT NULL, "
        "is_admin INTEGER NOT NULL DEFAULT 0, last_login TEXT)"
    )
    conn.execute(
        "INSERT INTO users (username, email, password) VALUES (?, ?, ?)",
        ("existing", "existing@example.com", hash_password("pw")),
    )
    conn.commit()
    conn.close()

    store = ContentStore(db)
    store.init()
    user = store.get_user_by_username("existing")
    assert user.legacy_password is False
    assert verify_password("pw", user.password)
