from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import User
from ..schemas.auth import (
    DisplayNameUpdate,
    LoginRequest,
    MeResponse,
    RefreshRequest,
    SignupRequest,
    TokenResponse,
    UserProfileResponse,
)
from ..services.audit import record_session_event
from .security import create_access_token, create_refresh_token, decode_token
from .session import (
    IdentityProvider,
    SessionContext,
    get_identity_provider,
    get_session_context,
)


logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["auth"])


def _tokens_for(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        refresh_token=create_refresh_token(user.id),
    )


def _me(ctx: SessionContext) -> MeResponse:
    return MeResponse(
        uid=ctx.uid,
        email=ctx.user.email,
        display_name=ctx.display_name,
        is_admin=ctx.is_admin,
        profile=UserProfileResponse.model_validate(ctx.profile),
    )


@router.post("/signup", response_model=TokenResponse)
def signup(
    req: SignupRequest,
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    user = provider.sign_up(db, req.email, req.password, req.display_name)
    ctx = SessionContext.build(db, user)
    record_session_event(db, user, "login", display_name=ctx.display_name)
    logger.info("user_signed_up", uid=user.id, role=ctx.role)
    return _tokens_for(user)


@router.post("/login", response_model=TokenResponse)
def login(
    req: LoginRequest,
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    user = provider.sign_in(db, req.email, req.password)
    ctx = SessionContext.build(db, user)
    record_session_event(db, user, "login", display_name=ctx.display_name)
    logger.info("user_logged_in", uid=user.id)
    return _tokens_for(user)


@router.post("/logout")
def logout(db: Session = Depends(get_db), ctx: SessionContext = Depends(get_session_context)):
    # Bearer tokens are stateless; logout only leaves an audit trail
    record_session_event(db, ctx.user, "logout", display_name=ctx.display_name)
    logger.info("user_logged_out", uid=ctx.uid)
    return {"status": "logged_out"}


@router.post("/refresh", response_model=TokenResponse)
def refresh(req: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(req.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    user = db.get(User, str(payload.get("sub")))
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not active")
    return _tokens_for(user)


@router.get("/me", response_model=MeResponse)
def me(ctx: SessionContext = Depends(get_session_context)):
    return _me(ctx)


@router.put("/me/profile", response_model=MeResponse)
def update_my_profile(
    body: DisplayNameUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    name = body.display_name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Display name cannot be empty")
    ctx.user.display_name = name
    if ctx.profile in db:
        ctx.profile.display_name = name
        ctx.profile.updated_at = datetime.now(timezone.utc)
    db.commit()
    return _me(ctx.refresh(db))
