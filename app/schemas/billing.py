from pydantic import BaseModel
from typing import Optional
from enum import Enum


class PlanEnum(str, Enum):
    TRAINER = "TRAINER"
    STUDIO = "STUDIO"
    GYM = "GYM"


class CheckoutRequest(BaseModel):
    plan: PlanEnum


class CheckoutResponse(BaseModel):
    session_id: str
    url: Optional[str] = None


class PortalResponse(BaseModel):
    url: str


class SubscriptionStatusResponse(BaseModel):
    status: Optional[str] = None
    subscribed: bool
