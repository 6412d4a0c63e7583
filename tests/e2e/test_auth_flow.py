"""
E2E tests for the full authentication cycle.

Scenarios:
1. register with a pending invite -> joined as coach -> GET /me -> refresh -> logout
2. refresh token rotation: the old token stops working after refresh
3. refresh token reuse -> 401 and the owner's tokens are revoked
4. expired access token -> GET /me -> 401

Strategy: the full HTTP stack through httpx.AsyncClient, repositories mocked
with AsyncMock, no database.
"""

import pytest
from datetime import datetime, timedelta

from app.models.gym import Invite, InviteRoleEnum
from app.models.user import RoleEnum
from app.services.auth_service import auth_service
from tests.conftest import GYM_ID

pytestmark = pytest.mark.e2e


# ---------------------------------------------------------------------------
# Scenario 1: register with invite -> /me -> refresh -> logout
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_invited_coach_registers_and_manages_tokens(client, mock_repo, mock_gyms):
    created = {}

    async def create_user(user):
        user.id = 42
        created["user"] = user
        return user

    async def claim_invite(user, invite):
        user.gym_id = invite.gym_id
        user.role = RoleEnum(invite.role.value)
        return user

    mock_repo.get_by_email.return_value = None
    mock_repo.create_user.side_effect = create_user
    mock_gyms.get_invite.return_value = Invite(
        email="newcoach@example.com", gym_id=GYM_ID, role=InviteRoleEnum.coach, name="New Coach",
    )
    mock_gyms.claim_invite.side_effect = claim_invite

    # 1. Register: the invite is claimed right away
    reg_response = await client.post("/api/v1/auth/register", json={
        "name": "New Coach",
        "email": "NewCoach@example.com",
        "password": "securepass",
    })
    assert reg_response.status_code == 200
    tokens = reg_response.json()
    assert tokens["role"] == "coach"
    assert tokens["gym_id"] == GYM_ID
    user = created["user"]
    assert user.email == "newcoach@example.com"

    # 2. GET /me with the access token
    mock_repo.get_by_id.return_value = user
    me_response = await client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {tokens['access_token']}"},
    )
    assert me_response.status_code == 200
    assert me_response.json()["role"] == "coach"
    assert me_response.json()["gym_id"] == GYM_ID

    # 3. Refresh: the stored token is accepted and a new pair is issued
    user.refresh_token = tokens["refresh_token"]
    user.refresh_token_expires = datetime.utcnow() + timedelta(days=7)
    mock_repo.get_by_refresh_token.return_value = user

    refresh_response = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]},
    )
    assert refresh_response.status_code == 200
    assert refresh_response.json()["access_token"]

    # 4. Logout revokes the refresh token
    logout_response = await client.post(
        "/api/v1/auth/logout", json={"refresh_token": refresh_response.json()["refresh_token"]},
    )
    assert logout_response.status_code == 204
    mock_repo.revoke_refresh_token.assert_awaited_with(user)


# ---------------------------------------------------------------------------
# Scenario 2: refresh token rotation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_refresh_token_rotation_old_token_invalidated(client, mock_repo, athlete_fixture):
    old_refresh = auth_service.create_refresh_token(data={"sub": str(athlete_fixture.id)})
    athlete_fixture.refresh_token = old_refresh
    athlete_fixture.refresh_token_expires = datetime.utcnow() + timedelta(days=7)

    # First refresh succeeds
    mock_repo.get_by_refresh_token.return_value = athlete_fixture
    response1 = await client.post("/api/v1/auth/refresh", json={"refresh_token": old_refresh})
    assert response1.status_code == 200
    assert "refresh_token" in response1.json()
    mock_repo.save_refresh_token.assert_awaited()

    # The old token is no longer stored
    mock_repo.get_by_refresh_token.return_value = None
    mock_repo.get_by_id.return_value = athlete_fixture

    response2 = await client.post("/api/v1/auth/refresh", json={"refresh_token": old_refresh})
    assert response2.status_code == 401


# ---------------------------------------------------------------------------
# Scenario 3: refresh token reuse
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_token_reuse_triggers_full_revocation(client, mock_repo, athlete_fixture):
    stolen_token = auth_service.create_refresh_token(data={"sub": str(athlete_fixture.id)})

    # Correctly signed but not stored: it was used already
    mock_repo.get_by_refresh_token.return_value = None
    mock_repo.get_by_id.return_value = athlete_fixture

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": stolen_token})

    assert response.status_code == 401
    mock_repo.revoke_refresh_token.assert_awaited_once_with(athlete_fixture)


# ---------------------------------------------------------------------------
# Scenario 4: expired access token
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_expired_access_token_returns_401(client, mock_repo, athlete_fixture):
    expired_token = auth_service.create_access_token(
        data={"sub": str(athlete_fixture.id), "role": athlete_fixture.role.value},
        expires_delta=timedelta(seconds=-1),
    )
    mock_repo.get_by_id.return_value = athlete_fixture

    response = await client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {expired_token}"},
    )

    assert response.status_code == 401
