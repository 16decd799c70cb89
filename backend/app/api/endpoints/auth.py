"""
Authentication

- Login (username + password, returns a bearer token)
- Token verification

Accounts are never created here; the admin user is seeded by init_db.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import TokenError, create_access_token, decode_access_token, verify_password
from app.db.session import get_db
from app.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)


# ── Pydantic Models ──

class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""
    remember: bool = False

class UserOut(BaseModel):
    id: int
    username: str
    role: str

class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut
    remember: bool = False


# ── Dependency ──

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Extract and verify the current user from the bearer token."""
    if not credentials:
        raise HTTPException(status_code=401, detail="Authentication required")

    try:
        payload = decode_access_token(credentials.credentials)
    except TokenError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")

    user = db.query(User).filter(User.id == payload.get("user_id")).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


# ── Endpoints ──

@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    """Login with username and password."""
    username = req.username.strip()
    if not username or not req.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(user.password_hash, req.password):
        logger.info(f"Failed login attempt for '{username}'")
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = create_access_token({
        "user_id": user.id,
        "username": user.username,
        "role": user.role,
    })

    user.updated_at = datetime.now()
    db.commit()

    return TokenResponse(
        token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserOut(id=user.id, username=user.username, role=user.role),
        remember=req.remember,
    )


@router.get("/verify")
def verify(user: User = Depends(get_current_user)):
    """Check a token and return who it belongs to."""
    return {
        "userId": user.id,
        "username": user.username,
        "role": user.role,
    }
