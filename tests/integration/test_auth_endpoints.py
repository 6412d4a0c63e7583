"""
Integration tests for /api/v1/auth/*.

Covered:
- POST /auth/register: success, duplicate email, invalid email, missing fields,
  pending invite claimed on registration
- POST /auth/login: success, wrong password, unknown user
- POST /auth/refresh: rotation, invalid token, reuse detection
- POST /auth/logout: success, invalid token
- GET /auth/me: valid token, no token, invalid token

UserRepository and GymRepository are AsyncMocks (conftest.client).
"""

import pytest
from datetime import datetime, timedelta

from app.models.gym import Invite, InviteRoleEnum
from app.models.user import User, RoleEnum
from app.services.auth_service import auth_service
from tests.conftest import make_auth_headers

pytestmark = pytest.mark.integration


# ---------------------------------------------------------------------------
# POST /auth/register
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_success_returns_tokens_and_role(client, mock_repo):
    mock_repo.get_by_email.return_value = None
    mock_repo.create_user.side_effect = lambda user: user

    response = await client.post("/api/v1/auth/register", json={
        "name": "New User",
        "email": "new@test.com",
        "password": "pass123",
    })

    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert "refresh_token" in data
    assert data["token_type"] == "bearer"
    assert data["role"] == "athlete"
    assert data["gym_id"] is None
    mock_repo.save_refresh_token.assert_awaited_once()


@pytest.mark.asyncio
async def test_register_claims_pending_invite(client, mock_repo, mock_gyms):
    mock_repo.get_by_email.return_value = None
    mock_repo.create_user.side_effect = lambda user: user
    invite = Invite(email="coach@test.com", gym_id=7, role=InviteRoleEnum.coach)
    mock_gyms.get_invite.return_value = invite

    async def claim(user, inv):
        user.gym_id = inv.gym_id
        user.role = RoleEnum(inv.role.value)
        return user

    mock_gyms.claim_invite.side_effect = claim

    response = await client.post("/api/v1/auth/register", json={
        "name": "Coach Carla",
        "email": "coach@test.com",
        "password": "pass123",
    })

    assert response.status_code == 200
    assert response.json()["role"] == "coach"
    assert response.json()["gym_id"] == 7
    mock_gyms.claim_invite.assert_awaited_once()


@pytest.mark.asyncio
async def test_register_duplicate_email_returns_400(client, mock_repo):
    mock_repo.get_by_email.return_value = User(
        id=1, email="exists@test.com", name="X", password="h", role=RoleEnum.athlete
    )

    response = await client.post("/api/v1/auth/register", json={
        "name": "Someone",
        "email": "exists@test.com",
        "password": "pass123",
    })

    assert response.status_code == 400
    assert "email" in response.json()["detail"].lower()


@pytest.mark.asyncio
async def test_register_invalid_email_format_returns_422(client):
    response = await client.post("/api/v1/auth/register", json={
        "name": "Someone",
        "email": "not-an-email",
        "password": "pass123",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_register_missing_fields_returns_422(client):
    response = await client.post("/api/v1/auth/register", json={"email": "x@test.com"})
    assert response.status_code == 422


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_login_valid_credentials_returns_tokens(client, mock_repo, athlete_fixture):
    mock_repo.get_by_email.return_value = athlete_fixture

    response = await client.post("/api/v1/auth/login", json={
        "email": "athlete@example.com",
        "password": "athlete123",
    })

    assert response.status_code == 200
    data = response.json()
    assert data["role"] == "athlete"
    assert data["gym_id"] == athlete_fixture.gym_id


@pytest.mark.asyncio
async def test_login_wrong_password_returns_401(client, mock_repo, athlete_fixture):
    mock_repo.get_by_email.return_value = athlete_fixture

    response = await client.post("/api/v1/auth/login", json={
        "email": "athlete@example.com",
        "password": "wrong_password",
    })

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_nonexistent_user_returns_401(client, mock_repo):
    mock_repo.get_by_email.return_value = None

    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@test.com",
        "password": "any_password",
    })

    assert response.status_code == 401


# ---------------------------------------------------------------------------
# POST /auth/refresh
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_refresh_valid_token_returns_new_tokens(client, mock_repo, athlete_fixture):
    refresh_token = auth_service.create_refresh_token(data={"sub": str(athlete_fixture.id)})
    athlete_fixture.refresh_token = refresh_token
    athlete_fixture.refresh_token_expires = datetime.utcnow() + timedelta(days=7)
    mock_repo.get_by_refresh_token.return_value = athlete_fixture

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})

    assert response.status_code == 200
    data = response.json()
    assert data["refresh_token"] != refresh_token
    mock_repo.save_refresh_token.assert_awaited_once()


@pytest.mark.asyncio
async def test_refresh_invalid_token_returns_401(client):
    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": "invalid.token.here"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_reuse_detection_returns_401(client, mock_repo, athlete_fixture):
    refresh_token = auth_service.create_refresh_token(data={"sub": str(athlete_fixture.id)})
    mock_repo.get_by_refresh_token.return_value = None
    mock_repo.get_by_id.return_value = athlete_fixture

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})

    assert response.status_code == 401
    mock_repo.revoke_refresh_token.assert_called_once()


# ---------------------------------------------------------------------------
# POST /auth/logout
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_logout_returns_204(client, mock_repo, athlete_fixture):
    refresh_token = auth_service.create_refresh_token(data={"sub": str(athlete_fixture.id)})
    mock_repo.get_by_id.return_value = athlete_fixture

    response = await client.post("/api/v1/auth/logout", json={"refresh_token": refresh_token})

    assert response.status_code == 204
    mock_repo.revoke_refresh_token.assert_awaited_once_with(athlete_fixture)


@pytest.mark.asyncio
async def test_logout_invalid_token_still_returns_204(client):
    response = await client.post("/api/v1/auth/logout", json={"refresh_token": "bad.token"})
    assert response.status_code == 204


# ---------------------------------------------------------------------------
# GET /auth/me
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_me_with_valid_token_returns_user_data(client, mock_repo, coach_fixture):
    mock_repo.get_by_id.return_value = coach_fixture

    response = await client.get("/api/v1/auth/me", headers=make_auth_headers(coach_fixture))

    assert response.status_code == 200
    data = response.json()
    assert data["email"] == coach_fixture.email
    assert data["name"] == coach_fixture.name
    assert data["role"] == "coach"
    assert data["gym_id"] == coach_fixture.gym_id


@pytest.mark.asyncio
async def test_get_me_without_token_is_rejected(client):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_get_me_with_invalid_token_returns_401(client):
    response = await client.get(
        "/api/v1/auth/me",
        headers={"Authorization": "Bearer invalid.token.here"}
    )
    assert response.status_code == 401
