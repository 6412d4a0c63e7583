from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models.gym import Gym, Invite
from app.models.user import User, RoleEnum


class GymRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, gym_id: int) -> Optional[Gym]:
        result = await self.db.execute(select(Gym).where(Gym.id == gym_id))
        return result.scalar_one_or_none()

    async def create_for_admin(self, gym: Gym, admin: User) -> Gym:
        """Create the gym and promote its creator to gym admin in one commit."""
        self.db.add(gym)
        await self.db.flush()
        gym.admin_id = admin.id
        admin.gym_id = gym.id
        admin.role = RoleEnum.gym_admin
        await self.db.commit()
        await self.db.refresh(gym)
        return gym

    async def save(self, gym: Gym) -> Gym:
        await self.db.commit()
        await self.db.refresh(gym)
        return gym

    async def get_invite(self, email: str) -> Optional[Invite]:
        result = await self.db.execute(select(Invite).where(Invite.email == email.lower()))
        return result.scalar_one_or_none()

    async def list_invites(self, gym_id: int) -> List[Invite]:
        result = await self.db.execute(
            select(Invite).where(Invite.gym_id == gym_id).order_by(Invite.created_at.desc())
        )
        return list(result.scalars().all())

    async def upsert_invite(self, invite: Invite) -> Invite:
        merged = await self.db.merge(invite)
        await self.db.commit()
        return merged

    async def delete_invite(self, invite: Invite) -> None:
        await self.db.delete(invite)
        await self.db.commit()

    async def claim_invite(self, user: User, invite: Invite) -> User:
        """Join the invited gym with the invited role and drop the invite, atomically."""
        user.gym_id = invite.gym_id
        user.role = RoleEnum(invite.role.value)
        if invite.name and not user.name:
            user.name = invite.name
        await self.db.delete(invite)
        await self.db.commit()
        return user
