from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.core.dependencies import get_user_repository, get_gym_repository
from app.core.rbac import require_gym_admin
from app.models.gym import Invite
from app.models.user import User, RoleEnum
from app.repositories.gym_repository import GymRepository
from app.repositories.user_repository import UserRepository
from app.schemas.gym import (
    InviteCreate,
    InviteRead,
    MemberProfileUpdate,
    MemberRead,
    MembersResponse,
    RoleUpdateRequest,
    RoleUpdateResponse,
)

router = APIRouter(tags=["members"])


async def _get_gym_member(users: UserRepository, gym_id: int, user_id: int) -> User:
    member = await users.get_by_id(user_id)
    if member is None or member.gym_id != gym_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return member


def _member_to_read(member: User) -> MemberRead:
    return MemberRead(
        id=member.id,
        email=member.email,
        name=member.name,
        role=member.role.value,
        dob=member.dob,
        plan=member.plan,
        created_at=member.created_at,
    )


@router.get("", response_model=MembersResponse)
async def list_members(
        current_user: User = Depends(require_gym_admin),
        users: UserRepository = Depends(get_user_repository),
        gyms: GymRepository = Depends(get_gym_repository),
):
    members = await users.list_by_gym(current_user.gym_id)
    invites = await gyms.list_invites(current_user.gym_id)
    return MembersResponse(
        members=[_member_to_read(m) for m in members],
        invites=[InviteRead.model_validate(i) for i in invites],
    )


@router.post("/invites", response_model=InviteRead, status_code=status.HTTP_201_CREATED)
async def create_invite(
        data: InviteCreate,
        current_user: User = Depends(require_gym_admin),
        users: UserRepository = Depends(get_user_repository),
        gyms: GymRepository = Depends(get_gym_repository),
):
    existing = await users.get_by_email(data.email)
    if existing is not None and existing.gym_id is not None:
        raise HTTPException(status_code=400, detail="This user already belongs to a gym")

    invite = await gyms.upsert_invite(Invite(
        email=data.email.lower(),
        gym_id=current_user.gym_id,
        role=data.role,
        name=data.name,
        created_at=datetime.utcnow(),
    ))
    return InviteRead.model_validate(invite)


@router.delete("/invites/{email}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invite(
        email: str,
        current_user: User = Depends(require_gym_admin),
        gyms: GymRepository = Depends(get_gym_repository),
):
    invite = await gyms.get_invite(email)
    if invite is None or invite.gym_id != current_user.gym_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invite not found")
    await gyms.delete_invite(invite)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{user_id}/role", response_model=RoleUpdateResponse)
async def update_member_role(
        user_id: int,
        body: RoleUpdateRequest,
        current_user: User = Depends(require_gym_admin),
        users: UserRepository = Depends(get_user_repository),
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot change your own role")

    member = await _get_gym_member(users, current_user.gym_id, user_id)
    await users.update_fields(member, role=RoleEnum(body.role.value))
    return RoleUpdateResponse(
        message="Role updated successfully",
        user_id=member.id,
        new_role=member.role.value,
    )


@router.patch("/{user_id}", response_model=MemberRead)
async def update_member_profile(
        user_id: int,
        data: MemberProfileUpdate,
        current_user: User = Depends(require_gym_admin),
        users: UserRepository = Depends(get_user_repository),
):
    member = await _get_gym_member(users, current_user.gym_id, user_id)
    member = await users.update_fields(member, **data.model_dump(exclude_unset=True))
    return _member_to_read(member)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
        user_id: int,
        current_user: User = Depends(require_gym_admin),
        users: UserRepository = Depends(get_user_repository),
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot remove yourself from the gym")

    member = await _get_gym_member(users, current_user.gym_id, user_id)
    await users.update_fields(member, gym_id=None, role=RoleEnum.athlete)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
