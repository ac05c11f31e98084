import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import HTTPException, status
from fastapi.security import HTTPBearer
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import User


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        return False


def _create_token(sub: str, ttl_seconds: int, extra: Optional[dict] = None) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str) -> str:
    return _create_token(user_id, settings.jwt_ttl_seconds, extra={"type": "access"})


def create_refresh_token(user_id: str) -> str:
    return _create_token(user_id, settings.refresh_ttl_seconds, extra={"type": "refresh"})


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


# =====================
# Edit grants
# =====================


def create_edit_grant(user_id: str, entity_type: str, entity_id: str, approval_id: str) -> str:
    """Short-lived token letting `user_id` update exactly one protected entity."""
    return _create_token(
        user_id,
        settings.edit_grant_ttl_seconds,
        extra={
            "type": "edit_grant",
            "entity_type": entity_type,
            "entity_id": entity_id,
            "approval_id": approval_id,
        },
    )


def verify_edit_grant(token: str, user_id: str, entity_type: str, entity_id: str) -> dict:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=403, detail="Edit grant expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=403, detail="Invalid edit grant")
    if (
        payload.get("type") != "edit_grant"
        or payload.get("sub") != user_id
        or payload.get("entity_type") != entity_type
        or payload.get("entity_id") != entity_id
    ):
        raise HTTPException(status_code=403, detail="Edit grant does not cover this entity")
    return payload


# =====================
# Email/password identity provider
# =====================


class PasswordIdentityProvider:
    """Built-in identity provider: email/password accounts, JWT bearer sessions."""

    def sign_up(self, db: Session, email: str, password: str, display_name: Optional[str] = None) -> User:
        email = email.strip().lower()
        if db.query(User).filter(User.email == email).first():
            raise HTTPException(status_code=409, detail="Email already registered")
        user = User(
            email=email,
            display_name=(display_name or "").strip() or None,
            password_hash=get_password_hash(password),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    def sign_in(self, db: Session, email: str, password: str) -> User:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user or not verify_password(password, user.password_hash):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        if not user.is_active:
            raise HTTPException(status_code=401, detail="User not active")
        user.last_login_at = datetime.now(timezone.utc)
        db.commit()
        return user

    def resolve(self, db: Session, token: str) -> User:
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
        user_id = payload.get("sub")
        user = db.get(User, str(user_id)) if user_id else None
        if user is None or not user.is_active:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not active")
        return user


identity_provider = PasswordIdentityProvider()
