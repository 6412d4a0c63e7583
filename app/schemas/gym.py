from pydantic import BaseModel, EmailStr, Field
from typing import Dict, List, Optional
from datetime import date, datetime

from app.models.gym import InviteRoleEnum


class GymCreate(BaseModel):
    name: str = Field(min_length=3, description="Gym name, at least 3 characters")
    theme: Optional[Dict[str, str]] = None


class GymUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=3)
    theme: Optional[Dict[str, str]] = None
    logo_url: Optional[str] = None


class GymRead(BaseModel):
    id: int
    name: str
    admin_id: Optional[int] = None
    logo_url: Optional[str] = None
    theme: Optional[Dict[str, str]] = None
    trial_ends_at: datetime
    trial_active: bool
    created_at: Optional[datetime] = None


class LogoUploadRequest(BaseModel):
    content_type: str
    size: int = Field(gt=0)


class LogoUploadResponse(BaseModel):
    signed_url: str
    public_url: str


class InviteCreate(BaseModel):
    email: EmailStr
    role: InviteRoleEnum
    name: Optional[str] = None


class InviteRead(BaseModel):
    email: str
    gym_id: int
    role: InviteRoleEnum
    name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MemberRead(BaseModel):
    id: int
    email: str
    name: str
    role: str
    dob: Optional[date] = None
    plan: Optional[str] = None
    created_at: Optional[datetime] = None


class MemberProfileUpdate(BaseModel):
    dob: Optional[date] = None
    plan: Optional[str] = Field(default=None, max_length=100)


class MembersResponse(BaseModel):
    members: List[MemberRead]
    invites: List[InviteRead]


class RoleUpdateRequest(BaseModel):
    role: InviteRoleEnum


class RoleUpdateResponse(BaseModel):
    message: str
    user_id: int
    new_role: str
