from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import date, datetime


class UserRead(BaseModel):
    id: int
    email: EmailStr
    name: str
    role: str
    gym_id: Optional[int] = None
    dob: Optional[date] = None
    plan: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
