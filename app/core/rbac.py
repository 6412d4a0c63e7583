from datetime import datetime
from typing import Optional

from fastapi import Depends, HTTPException, status

from app.core.dependencies import get_current_user, get_gym_repository
from app.models.gym import Gym
from app.models.user import User, RoleEnum
from app.repositories.gym_repository import GymRepository

SUBSCRIBED_STATUSES = {"active", "trialing"}


def require_role(*allowed_roles: RoleEnum):
    """Dependency factory checking the caller's role within their gym."""
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.gym_id is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You are not a member of any gym"
            )
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions for this action"
            )
        return current_user
    return role_checker


require_gym_admin = require_role(RoleEnum.gym_admin)
require_staff = require_role(RoleEnum.coach, RoleEnum.gym_admin)
require_member = require_role(RoleEnum.athlete, RoleEnum.coach, RoleEnum.gym_admin)
require_athlete = require_role(RoleEnum.athlete)


def is_trial_active(gym: Gym, subscription_status: Optional[str], now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    if subscription_status in SUBSCRIBED_STATUSES:
        return True
    return gym.trial_ends_at is not None and now < gym.trial_ends_at


async def require_active_gym_admin(
        current_user: User = Depends(require_gym_admin),
        gyms: GymRepository = Depends(get_gym_repository),
) -> User:
    """Gym admin whose trial is running or whose subscription is paid."""
    gym = await gyms.get_by_id(current_user.gym_id)
    if gym is None:
        raise HTTPException(status_code=404, detail="Gym not found")
    if not is_trial_active(gym, current_user.stripe_subscription_status):
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="Your 14-day free trial is over. Please upgrade your plan to continue."
        )
    return current_user
