from dataclasses import dataclass
from typing import Optional

from app.models.user import User, RoleEnum


@dataclass(frozen=True)
class SessionContext:
    """Who is acting: passed explicitly to services instead of read from globals."""
    user_id: int
    name: str
    role: RoleEnum
    gym_id: Optional[int]

    @classmethod
    def from_user(cls, user: User) -> "SessionContext":
        return cls(user_id=user.id, name=user.name, role=user.role, gym_id=user.gym_id)
