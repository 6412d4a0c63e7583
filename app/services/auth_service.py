import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional, Tuple

import bcrypt
from jose import jwt, JWTError
from fastapi import HTTPException, status

from app.core.config import settings
from app.models.user import User, RoleEnum
from app.repositories.user_repository import UserRepository
from app.schemas.auth import UserLogin, UserRegister

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self):
        self.SECRET_KEY = settings.SECRET_KEY
        self.REFRESH_SECRET_KEY = settings.REFRESH_SECRET_KEY
        self.ALGORITHM = settings.ALGORITHM
        self.ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES
        self.REFRESH_TOKEN_EXPIRE_DAYS = settings.REFRESH_TOKEN_EXPIRE_DAYS

    def hash_password(self, password: str) -> str:
        hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt())
        return hashed.decode('utf-8')

    def verify_password(self, plain_password: str, hashed_password: Optional[str]) -> bool:
        if not hashed_password:
            return False
        try:
            return bcrypt.checkpw(
                plain_password.encode('utf-8'),
                hashed_password.encode('utf-8')
            )
        except ValueError:
            return False

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES)
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.SECRET_KEY, algorithm=self.ALGORITHM)

    def create_refresh_token(self, data: dict) -> str:
        to_encode = data.copy()
        expire = datetime.utcnow() + timedelta(days=self.REFRESH_TOKEN_EXPIRE_DAYS)
        # jti keeps two tokens issued within the same second distinct
        to_encode.update({"exp": expire, "jti": uuid.uuid4().hex})
        return jwt.encode(to_encode, self.REFRESH_SECRET_KEY, algorithm=self.ALGORITHM)

    def decode_access_token(self, token: str) -> dict:
        """Raise JWTError if the token is invalid or expired."""
        return jwt.decode(token, self.SECRET_KEY, algorithms=[self.ALGORITHM])

    def _refresh_subject(self, refresh_token: str) -> Optional[int]:
        try:
            payload = jwt.decode(refresh_token, self.REFRESH_SECRET_KEY, algorithms=[self.ALGORITHM])
        except JWTError:
            return None
        sub = payload.get("sub")
        return int(sub) if sub is not None else None

    async def issue_tokens(self, repo: UserRepository, user: User) -> Tuple[str, str]:
        claims = {"sub": str(user.id), "role": user.role.value}
        access_token = self.create_access_token(data=claims)
        refresh_token = self.create_refresh_token(data={"sub": str(user.id)})
        await repo.save_refresh_token(
            user,
            refresh_token,
            datetime.utcnow() + timedelta(days=self.REFRESH_TOKEN_EXPIRE_DAYS),
        )
        return access_token, refresh_token

    async def authenticate_user(self, repo: UserRepository, login_data: UserLogin) -> Optional[User]:
        user = await repo.get_by_email(login_data.email)
        if not user or not self.verify_password(login_data.password, user.password):
            return None
        return user

    async def register_user(self, repo: UserRepository, user_data: UserRegister) -> User:
        if await repo.get_by_email(user_data.email):
            raise HTTPException(status_code=400, detail="A user with this email already exists")

        new_user = User(
            email=user_data.email.lower(),
            name=user_data.name,
            password=self.hash_password(user_data.password),
            role=RoleEnum.athlete,
            created_at=datetime.utcnow(),
        )
        return await repo.create_user(new_user)

    async def rotate_refresh_token(self, repo: UserRepository, refresh_token: str) -> Optional[User]:
        """
        Validate a presented refresh token. A correctly signed token that is no
        longer stored means it was already used: revoke the owner's tokens.
        """
        user_id = self._refresh_subject(refresh_token)
        if user_id is None:
            return None

        user = await repo.get_by_refresh_token(refresh_token)
        if user is None:
            victim = await repo.get_by_id(user_id)
            if victim is not None:
                logger.warning("Refresh token reuse detected for user %s", user_id)
                await repo.revoke_refresh_token(victim)
            return None

        if not user.refresh_token_expires or user.refresh_token_expires < datetime.utcnow():
            return None
        return user

    async def logout_user(self, repo: UserRepository, refresh_token: str) -> bool:
        user_id = self._refresh_subject(refresh_token)
        if user_id is None:
            return False
        user = await repo.get_by_id(user_id)
        if user is None:
            return False
        await repo.revoke_refresh_token(user)
        return True


auth_service = AuthService()
