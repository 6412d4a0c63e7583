from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.core.dependencies import get_current_user, get_user_repository, get_gym_repository
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.repositories.gym_repository import GymRepository
from app.services.auth_service import auth_service
from app.services.gym_service import claim_pending_invite
from app.schemas.auth import UserLogin, UserRegister, AuthResponse, RefreshTokenRequest
from app.schemas.user import UserRead

router = APIRouter(tags=["auth"])


async def _auth_response(repo: UserRepository, user: User) -> AuthResponse:
    access_token, refresh_token = await auth_service.issue_tokens(repo, user)
    return AuthResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        role=user.role.value,
        gym_id=user.gym_id,
    )


@router.post("/register", response_model=AuthResponse)
async def register(
        user: UserRegister,
        repo: UserRepository = Depends(get_user_repository),
        gyms: GymRepository = Depends(get_gym_repository),
):
    """Register a new user; a pending invite for the email is claimed right away."""
    new_user = await auth_service.register_user(repo, user)
    await claim_pending_invite(gyms, new_user)
    return await _auth_response(repo, new_user)


@router.post("/login", response_model=AuthResponse)
async def login(
        user: UserLogin,
        repo: UserRepository = Depends(get_user_repository),
        gyms: GymRepository = Depends(get_gym_repository),
):
    authenticated_user = await auth_service.authenticate_user(repo, user)
    if not authenticated_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    await claim_pending_invite(gyms, authenticated_user)
    return await _auth_response(repo, authenticated_user)


@router.post("/refresh", response_model=AuthResponse)
async def refresh_token(request: RefreshTokenRequest, repo: UserRepository = Depends(get_user_repository)):
    """Exchange a refresh token for a new pair; the old refresh token stops working."""
    user = await auth_service.rotate_refresh_token(repo, request.refresh_token)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token"
        )
    return await _auth_response(repo, user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: RefreshTokenRequest, repo: UserRepository = Depends(get_user_repository)):
    await auth_service.logout_user(repo, request.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserRead)
async def get_me(current_user: User = Depends(get_current_user)):
    return UserRead(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        role=current_user.role.value,
        gym_id=current_user.gym_id,
        dob=current_user.dob,
        plan=current_user.plan,
        created_at=current_user.created_at,
    )
