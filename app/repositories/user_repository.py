from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models.user import User


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_by_refresh_token(self, refresh_token: str) -> Optional[User]:
        """Look a user up by the stored refresh token (used for reuse detection)."""
        result = await self.db.execute(
            select(User).where(User.refresh_token == refresh_token)
        )
        return result.scalar_one_or_none()

    async def list_by_gym(self, gym_id: int) -> List[User]:
        result = await self.db.execute(
            select(User).where(User.gym_id == gym_id).order_by(User.name)
        )
        return list(result.scalars().all())

    async def save_refresh_token(
        self,
        user: User,
        refresh_token: str,
        expires: datetime,
    ) -> None:
        user.refresh_token = refresh_token
        user.refresh_token_expires = expires
        await self.db.commit()

    async def revoke_refresh_token(self, user: User) -> None:
        """Invalidate the refresh token (logout or detected reuse)."""
        user.refresh_token = None
        user.refresh_token_expires = None
        await self.db.commit()

    async def create_user(self, user: User) -> User:
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def update_fields(self, user: User, **fields) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        await self.db.commit()
        return user
