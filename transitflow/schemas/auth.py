from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class JobTitle(str, Enum):
    agent_operationnel = "Agent Opérationnel"
    secretaire = "Secrétaire"
    comptable = "Comptable"
    manager = "Manager"
    autre = "Autre"


class Role(str, Enum):
    admin = "admin"
    employee = "employee"


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    display_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserProfileResponse(BaseModel):
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: Role
    job_title: Optional[JobTitle] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MeResponse(BaseModel):
    uid: str
    email: str
    display_name: str
    is_admin: bool
    profile: UserProfileResponse


class DisplayNameUpdate(BaseModel):
    display_name: str = Field(min_length=1, max_length=255)


class UserAdminUpdate(BaseModel):
    role: Optional[Role] = None
    job_title: Optional[JobTitle] = None
    display_name: Optional[str] = None


class SessionAuditEventResponse(BaseModel):
    id: str
    user_id: str
    user_display_name: Optional[str] = None
    user_email: Optional[str] = None
    action: str
    timestamp: datetime

    class Config:
        from_attributes = True
