from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.session import SessionContext, get_session_context, require_admin
from ..config import settings
from ..db import get_db
from ..models.models import CompanyProfile
from ..schemas.office import CompanyProfileBase, CompanyProfileResponse


router = APIRouter(prefix="/settings", tags=["settings"])

COMPANY_PROFILE_ID = "default"


def _get_company_profile(db: Session) -> CompanyProfile:
    profile = db.get(CompanyProfile, COMPANY_PROFILE_ID)
    if profile is None:
        profile = CompanyProfile(id=COMPANY_PROFILE_ID, app_name=settings.app_name.replace(" API", ""))
        db.add(profile)
        db.commit()
        db.refresh(profile)
    return profile


@router.get("/company", response_model=CompanyProfileResponse)
def get_company_profile(db: Session = Depends(get_db), ctx: SessionContext = Depends(get_session_context)):
    return _get_company_profile(db)


@router.put("/company", response_model=CompanyProfileResponse)
def update_company_profile(
    body: CompanyProfileBase,
    db: Session = Depends(get_db),
    admin: SessionContext = Depends(require_admin),
):
    profile = _get_company_profile(db)
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(profile, key, value)
    profile.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(profile)
    return profile
