from typing import Optional

from fastapi import Depends, HTTPException, WebSocket, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.repositories.gym_repository import GymRepository
from app.repositories.routine_repository import RoutineRepository
from app.repositories.catalog_repository import CatalogRepository
from app.services.auth_service import auth_service
from app.services.live_store import LiveSessionStore, get_live_store


security = HTTPBearer()


def get_user_repository(db: AsyncSession = Depends(get_db)) -> UserRepository:
    """Repository factory, injected into endpoints through Depends."""
    return UserRepository(db)


def get_gym_repository(db: AsyncSession = Depends(get_db)) -> GymRepository:
    return GymRepository(db)


def get_routine_repository(db: AsyncSession = Depends(get_db)) -> RoutineRepository:
    return RoutineRepository(db)


def get_catalog_repository(db: AsyncSession = Depends(get_db)) -> CatalogRepository:
    return CatalogRepository(db)


def get_live_session_store() -> LiveSessionStore:
    return get_live_store()


async def authenticate_token(token: str, repo: UserRepository) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid access token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = auth_service.decode_access_token(token)
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = await repo.get_by_id(int(user_id))
    if user is None:
        raise credentials_exception

    return user


async def get_current_user(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        repo: UserRepository = Depends(get_user_repository),
) -> User:
    return await authenticate_token(credentials.credentials, repo)


async def authenticate_websocket(websocket: WebSocket, token: str, repo: UserRepository) -> Optional[User]:
    """Resolve the query-string token; closes the socket with 1008 when it is not valid."""
    try:
        return await authenticate_token(token, repo)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None
