import calendar
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from urllib.parse import quote_plus

from fastapi import HTTPException, status

from app.core.config import settings
from app.core.rbac import is_trial_active
from app.models.gym import Gym
from app.models.user import User, RoleEnum
from app.repositories.gym_repository import GymRepository
from app.schemas.gym import GymCreate, GymRead
from app.schemas.stats import GymOverview

logger = logging.getLogger(__name__)


def placeholder_logo_url(name: str) -> str:
    return f"https://placehold.co/100x50.png?text={quote_plus(name)}"


async def create_gym(gyms: GymRepository, admin: User, data: GymCreate, now: Optional[datetime] = None) -> Gym:
    """The creator becomes the gym admin; the trial starts now."""
    if admin.gym_id is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You already belong to a gym"
        )
    now = now or datetime.utcnow()
    gym = Gym(
        name=data.name,
        theme=data.theme or {},
        logo_url=placeholder_logo_url(data.name),
        trial_ends_at=now + timedelta(days=settings.TRIAL_DAYS),
        created_at=now,
    )
    gym = await gyms.create_for_admin(gym, admin)
    logger.info("Gym %s created by user %s", gym.id, admin.id)
    return gym


async def claim_pending_invite(gyms: GymRepository, user: User) -> bool:
    """Join the gym a pending invite points to. Returns True if an invite was claimed."""
    if user.gym_id is not None:
        return False
    invite = await gyms.get_invite(user.email)
    if invite is None:
        return False
    await gyms.claim_invite(user, invite)
    logger.info("User %s joined gym %s as %s", user.id, user.gym_id, user.role)
    return True


def gym_to_read(gym: Gym, subscription_status: Optional[str]) -> GymRead:
    return GymRead(
        id=gym.id,
        name=gym.name,
        admin_id=gym.admin_id,
        logo_url=gym.logo_url,
        theme=gym.theme,
        trial_ends_at=gym.trial_ends_at,
        trial_active=is_trial_active(gym, subscription_status),
        created_at=gym.created_at,
    )


def one_month_ago(now: Optional[datetime] = None) -> datetime:
    """Same time one calendar month back; the day is clamped to the shorter month."""
    now = now or datetime.utcnow()
    year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def gym_overview(members: List[User], pending_invites: int, routines_last_month: int) -> GymOverview:
    return GymOverview(
        member_count=len(members),
        athletes=sum(1 for m in members if m.role == RoleEnum.athlete),
        coaches=sum(1 for m in members if m.role == RoleEnum.coach),
        pending_invites=pending_invites,
        routines_last_month=routines_last_month,
    )
