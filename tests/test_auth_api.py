import datetime as dt

import jwt

from lms_module.config import settings
from lms_module.security import create_access_token, decode_access_token, hash_password, verify_password


def test_password_hashing():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret123", "not-a-bcrypt-hash")


def test_token_roundtrip():
    payload = decode_access_token(create_access_token(user_id=7, role="TEACHER"))
    assert payload["sub"] == "7"
    assert payload["role"] == "TEACHER"


def test_expired_token_is_rejected(client, student):
    past = dt.datetime.now(dt.timezone.utc) - dt.timedelta(hours=2)
    token = jwt.encode(
        {"sub": str(student.user.id), "role": "STUDENT", "exp": int(past.timestamp())},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401
    assert res.json()["error"] == "Token expired"


def test_register_login_me(client):
    res = client.post(
        "/api/auth/register",
        json={"name": "Rita Reg", "email": "rita@school.test", "password": "secret123"},
    )
    assert res.status_code == 201
    assert res.json()["data"]["role"] == "STUDENT"

    res = client.post("/api/auth/login", json={"email": "rita@school.test", "password": "secret123"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["token_type"] == "bearer"

    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    me = res.json()["data"]
    assert me["user"]["email"] == "rita@school.test"
    assert me["student"]["enrollment_no"].startswith("ENR")
    assert me["teacher"] is None


def test_register_rejects_admin_and_duplicates(client, student):
    res = client.post(
        "/api/auth/register",
        json={"name": "Evil", "email": "evil@school.test", "password": "secret123", "role": "ADMIN"},
    )
    assert res.status_code == 400
    assert res.json()["details"][0]["loc"] == ["role"]

    res = client.post(
        "/api/auth/register",
        json={"name": "Dup", "email": student.user.email, "password": "secret123"},
    )
    assert res.status_code == 409


def test_login_with_bad_credentials(client, student):
    res = client.post("/api/auth/login", json={"email": student.user.email, "password": "nope"})
    assert res.status_code == 401
    assert res.json() == {"success": False, "error": "Invalid credentials"}


def test_validation_errors_are_collected(client):
    res = client.post("/api/auth/register", json={"name": "X", "email": "bad", "password": "1"})
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert len(body["details"]) == 3
