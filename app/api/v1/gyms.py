from fastapi import APIRouter, Depends, HTTPException, status

from app.core.dependencies import (
    get_current_user,
    get_gym_repository,
    get_routine_repository,
    get_user_repository,
)
from app.core.rbac import require_member, require_gym_admin
from app.models.user import User
from app.repositories.gym_repository import GymRepository
from app.repositories.routine_repository import RoutineRepository
from app.repositories.user_repository import UserRepository
from app.schemas.gym import GymCreate, GymUpdate, GymRead, LogoUploadRequest, LogoUploadResponse
from app.schemas.stats import GymOverview
from app.services import gym_service
from app.services.s3_service import create_logo_upload_url

router = APIRouter(tags=["gyms"])


async def _get_own_gym(gyms: GymRepository, user: User):
    gym = await gyms.get_by_id(user.gym_id)
    if gym is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gym not found")
    return gym


@router.post("", response_model=GymRead, status_code=status.HTTP_201_CREATED)
async def create_gym(
        data: GymCreate,
        current_user: User = Depends(get_current_user),
        gyms: GymRepository = Depends(get_gym_repository),
):
    gym = await gym_service.create_gym(gyms, current_user, data)
    return gym_service.gym_to_read(gym, current_user.stripe_subscription_status)


@router.get("/me", response_model=GymRead)
async def get_my_gym(
        current_user: User = Depends(require_member),
        gyms: GymRepository = Depends(get_gym_repository),
        users: UserRepository = Depends(get_user_repository),
):
    gym = await _get_own_gym(gyms, current_user)
    # the trial belongs to the gym admin's subscription
    admin_status = current_user.stripe_subscription_status
    if gym.admin_id is not None and gym.admin_id != current_user.id:
        admin = await users.get_by_id(gym.admin_id)
        admin_status = admin.stripe_subscription_status if admin else None
    return gym_service.gym_to_read(gym, admin_status)


@router.patch("/me", response_model=GymRead)
async def update_my_gym(
        data: GymUpdate,
        current_user: User = Depends(require_gym_admin),
        gyms: GymRepository = Depends(get_gym_repository),
):
    gym = await _get_own_gym(gyms, current_user)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(gym, field, value)
    gym = await gyms.save(gym)
    return gym_service.gym_to_read(gym, current_user.stripe_subscription_status)


@router.get("/me/overview", response_model=GymOverview)
async def my_gym_overview(
        current_user: User = Depends(require_gym_admin),
        users: UserRepository = Depends(get_user_repository),
        gyms: GymRepository = Depends(get_gym_repository),
        routines: RoutineRepository = Depends(get_routine_repository),
):
    members = await users.list_by_gym(current_user.gym_id)
    invites = await gyms.list_invites(current_user.gym_id)
    recent = await routines.count_created_since(current_user.gym_id, gym_service.one_month_ago())
    return gym_service.gym_overview(members, len(invites), recent)


@router.post("/me/logo-upload-url", response_model=LogoUploadResponse)
async def logo_upload_url(
        data: LogoUploadRequest,
        current_user: User = Depends(require_gym_admin),
):
    signed_url, public_url = await create_logo_upload_url(current_user.gym_id, data.content_type, data.size)
    return LogoUploadResponse(signed_url=signed_url, public_url=public_url)
