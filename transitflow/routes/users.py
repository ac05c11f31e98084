from datetime import datetime, timezone
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.session import SessionContext, require_admin
from ..db import get_db
from ..models.models import User, UserProfile
from ..schemas.auth import SessionAuditEventResponse, UserAdminUpdate, UserProfileResponse
from ..services.audit import list_session_events
from ..services.store import user_profiles


logger = structlog.get_logger()

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=List[UserProfileResponse])
def list_users(
    db: Session = Depends(get_db),
    admin: SessionContext = Depends(require_admin),
):
    return user_profiles.list(db)


@router.patch("/users/{uid}", response_model=UserProfileResponse)
def update_user(
    uid: str,
    body: UserAdminUpdate,
    db: Session = Depends(get_db),
    admin: SessionContext = Depends(require_admin),
):
    profile = db.get(UserProfile, uid)
    if profile is None:
        raise HTTPException(status_code=404, detail="User profile not found")
    data = body.model_dump(exclude_unset=True)
    if "role" in data:
        if uid == admin.uid and data["role"] != "admin":
            raise HTTPException(status_code=400, detail="You cannot remove your own admin role")
        profile.role = data["role"].value if data["role"] is not None else profile.role
    if "job_title" in data:
        profile.job_title = data["job_title"].value if data["job_title"] is not None else None
    if data.get("display_name"):
        profile.display_name = data["display_name"].strip()
        user = db.get(User, uid)
        if user is not None:
            user.display_name = profile.display_name
    profile.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(profile)
    logger.info("user_profile_updated", uid=uid, by=admin.uid, fields=sorted(data.keys()))
    return profile


@router.get("/audit-log/sessions", response_model=List[SessionAuditEventResponse])
def list_sessions(
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 200,
    db: Session = Depends(get_db),
    admin: SessionContext = Depends(require_admin),
):
    return list_session_events(db, user_id=user_id, action=action, limit=max(1, min(limit, 1000)))
