import pytest

from app.core.security import (
    TokenError,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


def test_password_hash_round_trip():
    stored = hash_password("s3cret")
    assert stored != "s3cret"
    assert verify_password(stored, "s3cret")
    assert not verify_password(stored, "wrong")
    assert not verify_password("garbage", "s3cret")


def test_token_carries_claims():
    token = create_access_token({"user_id": 1, "username": "admin", "role": "admin"})
    claims = decode_access_token(token)
    assert claims["user_id"] == 1
    assert claims["role"] == "admin"


def test_tampered_or_expired_tokens_are_rejected():
    token = create_access_token({"user_id": 1})
    header, body, _ = token.split(".")
    with pytest.raises(TokenError):
        decode_access_token(f"{header}.{body}.not-the-signature")
    with pytest.raises(TokenError):
        decode_access_token("not-a-token")
    with pytest.raises(TokenError, match="expired"):
        decode_access_token(create_access_token({"user_id": 1}, expires_minutes=-1))


def test_login_returns_token(client):
    response = client.post("/api/auth/login", json={"username": "admin", "password": "admin123", "remember": True})
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["username"] == "admin"
    assert data["user"]["role"] == "admin"
    assert data["remember"] is True


def test_login_rejects_bad_password(client):
    response = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401


def test_login_requires_both_fields(client):
    response = client.post("/api/auth/login", json={"username": "admin"})
    assert response.status_code == 400


def test_verify(client, auth_headers):
    response = client.get("/api/auth/verify", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["username"] == "admin"


def test_verify_without_or_with_bad_token(client):
    assert client.get("/api/auth/verify").status_code == 401
    bad = {"Authorization": "Bearer abc.def.ghi"}
    assert client.get("/api/auth/verify", headers=bad).status_code == 401


def test_default_admin_is_seeded_once(engine):
    from sqlalchemy.orm import Session
    from app.db.init_db import init_db
    from app.models.user import User

    init_db(engine)
    with Session(engine) as db:
        assert db.query(User).count() == 1
