"""
Password hashing and bearer tokens.

Passwords are stored as PBKDF2-SHA256 with a random salt. Tokens are
HS256-signed JWTs carrying the user id, username, role and expiry.
"""

from datetime import datetime, timedelta
from typing import Optional
from app.core.config import settings
import hashlib
import hmac
import json
import base64
import secrets

JWT_ALGORITHM = "HS256"
PBKDF2_ITERATIONS = 100000


class TokenError(ValueError):
    """Raised when a bearer token is malformed, forged or expired."""


# ── Password Hashing ──

def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    key = hashlib.pbkdf2_hmac('sha256', password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"{salt}:{key.hex()}"

def verify_password(stored: str, provided: str) -> bool:
    """Verify a password against its hash. Malformed hashes never match."""
    if not stored or ":" not in stored:
        return False
    salt, key_hex = stored.split(":", 1)
    key = hashlib.pbkdf2_hmac('sha256', provided.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return hmac.compare_digest(key.hex(), key_hex)


# ── JWT Token ──

def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()

def _b64decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))

def _sign(message: str) -> str:
    signature = hmac.new(settings.JWT_SECRET.encode(), message.encode(), hashlib.sha256).digest()
    return _b64encode(signature)

def create_access_token(payload: dict, expires_minutes: Optional[int] = None) -> str:
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    claims = dict(payload)
    claims["exp"] = (datetime.utcnow() + timedelta(minutes=minutes)).isoformat()

    header = _b64encode(json.dumps({"alg": JWT_ALGORITHM, "typ": "JWT"}).encode())
    body = _b64encode(json.dumps(claims, default=str).encode())
    return f"{header}.{body}.{_sign(f'{header}.{body}')}"

def decode_access_token(token: str) -> dict:
    """Verify the signature and expiry of a token and return its claims."""
    parts = token.split(".")
    if len(parts) != 3:
        raise TokenError("Invalid token format")

    header, body, signature = parts
    if not hmac.compare_digest(signature, _sign(f"{header}.{body}")):
        raise TokenError("Invalid signature")

    try:
        claims = json.loads(_b64decode(body))
    except (ValueError, UnicodeDecodeError) as e:
        raise TokenError(f"Invalid payload: {e}") from e

    if "exp" in claims:
        if datetime.utcnow() > datetime.fromisoformat(claims["exp"]):
            raise TokenError("Token expired")

    return claims
