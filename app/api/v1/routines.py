from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from app.core.dependencies import get_routine_repository, get_user_repository
from app.core.rbac import require_athlete, require_member, require_staff
from app.models.routine import Routine
from app.models.user import User, RoleEnum
from app.repositories.routine_repository import RoutineRepository
from app.repositories.user_repository import UserRepository
from app.schemas.routine import (
    PROGRESS_KEY_PATTERN,
    AthleteRoutinesResponse,
    PlaylistStepRead,
    ProgressEntry,
    ProgressUpdate,
    RoutineCreate,
    RoutineRead,
    RoutineUpdate,
)
from app.services.routine_service import (
    blocks_to_json,
    group_athlete_routines,
    merged_progress_entry,
    step_keys,
)
from app.services.session_tracker import build_playlist

router = APIRouter(tags=["routines"])


async def _get_visible_routine(repo: RoutineRepository, user: User, routine_id: int) -> Routine:
    """Athletes see their own routines, staff see every routine of their gym."""
    routine = await repo.get_by_id(routine_id)
    if routine is None or routine.gym_id != user.gym_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Routine not found")
    if user.role == RoleEnum.athlete and routine.member_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Routine not found")
    return routine


@router.post("", response_model=RoutineRead, status_code=status.HTTP_201_CREATED)
async def create_routine(
        data: RoutineCreate,
        current_user: User = Depends(require_staff),
        repo: RoutineRepository = Depends(get_routine_repository),
        users: UserRepository = Depends(get_user_repository),
):
    member = await users.get_by_id(data.member_id)
    if member is None or member.gym_id != current_user.gym_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")

    routine = await repo.create(Routine(
        gym_id=current_user.gym_id,
        member_id=member.id,
        coach_id=current_user.id,
        user_name=member.name,
        routine_type_name=data.routine_type_name,
        routine_date=data.routine_date,
        blocks=blocks_to_json(data.blocks),
        progress={},
        created_at=datetime.utcnow(),
    ))
    return RoutineRead.model_validate(routine)


@router.get("/mine", response_model=AthleteRoutinesResponse)
async def my_routines(
        current_user: User = Depends(require_athlete),
        repo: RoutineRepository = Depends(get_routine_repository),
):
    routines = await repo.list_for_member(current_user.id)
    today, week, history = group_athlete_routines(routines)
    return AthleteRoutinesResponse(
        today=RoutineRead.model_validate(today) if today else None,
        week=[RoutineRead.model_validate(r) for r in week],
        history=[RoutineRead.model_validate(r) for r in history],
    )


@router.get("", response_model=List[RoutineRead])
async def list_routines(
        member_id: Optional[int] = Query(None, description="Only routines of this member"),
        current_user: User = Depends(require_staff),
        repo: RoutineRepository = Depends(get_routine_repository),
):
    routines = await repo.list_for_gym(current_user.gym_id, member_id)
    return [RoutineRead.model_validate(r) for r in routines]


@router.get("/{routine_id}", response_model=RoutineRead)
async def get_routine(
        routine_id: int,
        current_user: User = Depends(require_member),
        repo: RoutineRepository = Depends(get_routine_repository),
):
    routine = await _get_visible_routine(repo, current_user, routine_id)
    return RoutineRead.model_validate(routine)


@router.put("/{routine_id}", response_model=RoutineRead)
async def update_routine(
        routine_id: int,
        data: RoutineUpdate,
        current_user: User = Depends(require_staff),
        repo: RoutineRepository = Depends(get_routine_repository),
):
    routine = await _get_visible_routine(repo, current_user, routine_id)
    if data.routine_date is not None:
        routine.routine_date = data.routine_date
    if data.routine_type_name is not None:
        routine.routine_type_name = data.routine_type_name
    if data.blocks is not None:
        routine.blocks = blocks_to_json(data.blocks)
    routine = await repo.save(routine)
    return RoutineRead.model_validate(routine)


@router.delete("/{routine_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_routine(
        routine_id: int,
        current_user: User = Depends(require_staff),
        repo: RoutineRepository = Depends(get_routine_repository),
):
    routine = await _get_visible_routine(repo, current_user, routine_id)
    await repo.delete(routine)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{routine_id}/progress/{key}", response_model=ProgressEntry)
async def update_progress(
        routine_id: int,
        data: ProgressUpdate,
        key: str = Path(pattern=PROGRESS_KEY_PATTERN),
        current_user: User = Depends(require_athlete),
        repo: RoutineRepository = Depends(get_routine_repository),
):
    """Merge one progress entry; other keys of the routine's progress stay untouched."""
    routine = await _get_visible_routine(repo, current_user, routine_id)
    if key not in step_keys(routine):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown step key: {key}")

    entry = merged_progress_entry(routine, key, data)
    await repo.merge_progress_entry(routine.id, key, entry)
    return ProgressEntry(**entry)


@router.get("/{routine_id}/playlist", response_model=List[PlaylistStepRead])
async def get_playlist(
        routine_id: int,
        current_user: User = Depends(require_member),
        repo: RoutineRepository = Depends(get_routine_repository),
):
    routine = await _get_visible_routine(repo, current_user, routine_id)
    return [PlaylistStepRead(**step.to_dict()) for step in build_playlist(routine.blocks)]
