"""
Request-scoped session context.

Every authenticated handler receives a `SessionContext` through FastAPI's
dependency injection instead of reading a process-wide "current user".
"""
from dataclasses import dataclass
from typing import Optional, Protocol

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models.models import User, UserProfile
from .security import http_bearer, identity_provider


logger = structlog.get_logger()


class IdentityProvider(Protocol):
    def sign_up(self, db: Session, email: str, password: str, display_name: Optional[str] = None) -> User:
        ...

    def sign_in(self, db: Session, email: str, password: str) -> User:
        ...

    def resolve(self, db: Session, token: str) -> User:
        ...


def get_identity_provider() -> IdentityProvider:
    return identity_provider


def display_name_for(user: User) -> str:
    return user.display_name or user.email or "Utilisateur"


def _is_configured_admin(uid: str) -> bool:
    return bool(settings.admin_uid) and uid == settings.admin_uid


def resolve_profile(db: Session, user: User) -> UserProfile:
    """Return the user's profile, creating a default one on first sight.

    A database failure never blocks sign-in: it is logged and the caller gets a
    transient employee profile that is not persisted.
    """
    try:
        profile = db.get(UserProfile, user.id)
        if profile is None:
            profile = UserProfile(
                uid=user.id,
                email=user.email,
                display_name=display_name_for(user),
                role="admin" if _is_configured_admin(user.id) else "employee",
            )
            db.add(profile)
            db.commit()
            db.refresh(profile)
            logger.info("user_profile_created", uid=user.id, role=profile.role)
        return profile
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("user_profile_resolution_failed", uid=user.id, error=str(e))
        return UserProfile(uid=user.id, email=user.email, display_name=display_name_for(user), role="employee")


@dataclass
class SessionContext:
    user: User
    profile: UserProfile
    is_admin: bool

    @classmethod
    def build(cls, db: Session, user: User) -> "SessionContext":
        profile = resolve_profile(db, user)
        return cls(
            user=user,
            profile=profile,
            is_admin=profile.role == "admin" or _is_configured_admin(user.id),
        )

    @property
    def uid(self) -> str:
        return self.user.id

    @property
    def display_name(self) -> str:
        return self.profile.display_name or display_name_for(self.user)

    @property
    def role(self) -> str:
        return "admin" if self.is_admin else "employee"

    def refresh(self, db: Session) -> "SessionContext":
        """Re-read the profile (role changes take effect without a new login)."""
        fresh = SessionContext.build(db, self.user)
        self.profile = fresh.profile
        self.is_admin = fresh.is_admin
        return self


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> User:
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return provider.resolve(db, creds.credentials)


def get_session_context(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SessionContext:
    return SessionContext.build(db, user)


def require_admin(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
    if not ctx.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return ctx
