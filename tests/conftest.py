"""
Shared fixtures for the Fitness Flow backend tests.

Strategy:
- The test FastAPI app is built without startup events (no database, Redis or MinIO).
- Repositories are replaced with AsyncMock objects (mock_repo, mock_gyms,
  mock_routines, mock_catalog) through dependency_overrides.
- The live session store is an in-memory MemoryLiveSessionStore.
- get_current_user is replaced with a lambda returning the wanted user; JWTs made
  with auth_service.create_access_token() exercise the real auth path.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from httpx import AsyncClient, ASGITransport
from fastapi import FastAPI
from datetime import datetime, timedelta
from typing import AsyncGenerator

from app.api.router import api_router
from app.models.gym import Gym
from app.models.routine import Routine
from app.models.user import User, RoleEnum
from app.services.auth_service import auth_service
from app.services.live_store import MemoryLiveSessionStore
from app.repositories.user_repository import UserRepository
from app.repositories.gym_repository import GymRepository
from app.repositories.routine_repository import RoutineRepository
from app.repositories.catalog_repository import CatalogRepository
from app.core.dependencies import (
    get_current_user,
    get_user_repository,
    get_gym_repository,
    get_routine_repository,
    get_catalog_repository,
    get_live_session_store,
)
from app.core.db import get_db

GYM_ID = 7


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def create_test_app() -> FastAPI:
    """Test FastAPI app without startup events."""
    test_app = FastAPI(title="Fitness Flow Test App")
    test_app.include_router(api_router, prefix="/api/v1")
    return test_app


def make_auth_headers(user: User) -> dict:
    """Authorization headers with a valid JWT for the given user."""
    access_token = auth_service.create_access_token(
        data={"sub": str(user.id), "role": user.role.value}
    )
    return {"Authorization": f"Bearer {access_token}"}


def make_blocks() -> list:
    """Two blocks: "2 rounds" of squats + plank, then one set of burpees."""
    return [
        {
            "name": "Warm up",
            "sets": "2 rounds",
            "exercises": [
                {"name": "Squats", "rep_type": "reps", "reps": "12"},
                {"name": "Plank", "rep_type": "duration", "duration": "30s"},
            ],
        },
        {
            "name": "Finisher",
            "sets": "",
            "exercises": [
                {"name": "Burpees", "rep_type": "reps", "reps": "10"},
            ],
        },
    ]


def make_routine(member: User, **overrides) -> Routine:
    values = dict(
        id=100,
        gym_id=GYM_ID,
        member_id=member.id,
        coach_id=2,
        user_name=member.name,
        routine_type_name="Strength",
        routine_date=datetime.utcnow(),
        blocks=make_blocks(),
        progress={},
        created_at=datetime.utcnow(),
    )
    values.update(overrides)
    return Routine(**values)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@pytest.fixture
def user_fixture() -> User:
    """Registered user that does not belong to a gym yet."""
    return User(
        id=1,
        email="test@example.com",
        name="Tester",
        password=auth_service.hash_password("password123"),
        role=RoleEnum.athlete,
        gym_id=None,
        created_at=datetime.utcnow(),
    )


@pytest.fixture
def admin_fixture() -> User:
    """Gym admin of GYM_ID."""
    return User(
        id=2,
        email="admin@example.com",
        name="Gym Admin",
        password=auth_service.hash_password("admin123"),
        role=RoleEnum.gym_admin,
        gym_id=GYM_ID,
        created_at=datetime.utcnow(),
    )


@pytest.fixture
def coach_fixture() -> User:
    return User(
        id=3,
        email="coach@example.com",
        name="Coach",
        password=auth_service.hash_password("coach123"),
        role=RoleEnum.coach,
        gym_id=GYM_ID,
        created_at=datetime.utcnow(),
    )


@pytest.fixture
def athlete_fixture() -> User:
    return User(
        id=4,
        email="athlete@example.com",
        name="Ana Athlete",
        password=auth_service.hash_password("athlete123"),
        role=RoleEnum.athlete,
        gym_id=GYM_ID,
        created_at=datetime.utcnow(),
    )


@pytest.fixture
def gym_fixture(admin_fixture) -> Gym:
    """Gym with a running trial."""
    now = datetime.utcnow()
    return Gym(
        id=GYM_ID,
        name="Iron Temple",
        admin_id=admin_fixture.id,
        logo_url="https://placehold.co/100x50.png?text=Iron+Temple",
        theme={},
        trial_ends_at=now + timedelta(days=10),
        created_at=now - timedelta(days=4),
    )


@pytest.fixture
def routine_fixture(athlete_fixture) -> Routine:
    return make_routine(athlete_fixture)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_repo() -> AsyncMock:
    """Mocked UserRepository."""
    return AsyncMock(spec=UserRepository)


@pytest.fixture
def mock_gyms() -> AsyncMock:
    """Mocked GymRepository; no pending invites by default."""
    repo = AsyncMock(spec=GymRepository)
    repo.get_invite.return_value = None
    return repo


@pytest.fixture
def mock_routines() -> AsyncMock:
    return AsyncMock(spec=RoutineRepository)


@pytest.fixture
def mock_catalog() -> AsyncMock:
    return AsyncMock(spec=CatalogRepository)


@pytest.fixture
def live_store() -> MemoryLiveSessionStore:
    return MemoryLiveSessionStore()


@pytest.fixture
def mock_db() -> MagicMock:
    """Mocked database session for anything still reaching get_db directly."""
    session = AsyncMock()
    default_result = MagicMock()
    default_result.scalar_one_or_none.return_value = None
    default_result.scalars.return_value.all.return_value = []
    session.execute.return_value = default_result
    return session


@pytest.fixture
def test_app(mock_repo, mock_gyms, mock_routines, mock_catalog, live_store, mock_db) -> FastAPI:
    app = create_test_app()
    app.dependency_overrides[get_user_repository] = lambda: mock_repo
    app.dependency_overrides[get_gym_repository] = lambda: mock_gyms
    app.dependency_overrides[get_routine_repository] = lambda: mock_routines
    app.dependency_overrides[get_catalog_repository] = lambda: mock_catalog
    app.dependency_overrides[get_live_session_store] = lambda: live_store
    app.dependency_overrides[get_db] = lambda: mock_db
    return app


async def _client_for(app: FastAPI, user: User = None) -> AsyncGenerator[AsyncClient, None]:
    if user is not None:
        app.dependency_overrides[get_current_user] = lambda: user
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------

@pytest.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous client; authentication goes through the real JWT path."""
    async for ac in _client_for(test_app):
        yield ac


@pytest.fixture
async def user_client(test_app, user_fixture) -> AsyncGenerator[AsyncClient, None]:
    """Client authenticated as a user without a gym."""
    async for ac in _client_for(test_app, user_fixture):
        yield ac


@pytest.fixture
async def admin_client(test_app, admin_fixture) -> AsyncGenerator[AsyncClient, None]:
    async for ac in _client_for(test_app, admin_fixture):
        yield ac


@pytest.fixture
async def coach_client(test_app, coach_fixture) -> AsyncGenerator[AsyncClient, None]:
    async for ac in _client_for(test_app, coach_fixture):
        yield ac


@pytest.fixture
async def athlete_client(test_app, athlete_fixture) -> AsyncGenerator[AsyncClient, None]:
    async for ac in _client_for(test_app, athlete_fixture):
        yield ac
