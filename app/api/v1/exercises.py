from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.core.dependencies import get_catalog_repository
from app.core.rbac import require_active_gym_admin
from app.models.exercise import LibraryExercise
from app.models.user import User
from app.repositories.catalog_repository import CatalogRepository
from app.schemas.exercise import LibraryExerciseInput, LibraryExerciseRead

router = APIRouter(tags=["exercises"])


async def _get_exercise(catalog: CatalogRepository, gym_id: int, exercise_id: int) -> LibraryExercise:
    exercise = await catalog.get_exercise(gym_id, exercise_id)
    if exercise is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exercise not found")
    return exercise


@router.get("", response_model=List[LibraryExerciseRead])
async def list_exercises(
        current_user: User = Depends(require_active_gym_admin),
        catalog: CatalogRepository = Depends(get_catalog_repository),
):
    return [LibraryExerciseRead.model_validate(e) for e in await catalog.list_exercises(current_user.gym_id)]


@router.post("", response_model=LibraryExerciseRead, status_code=status.HTTP_201_CREATED)
async def create_exercise(
        data: LibraryExerciseInput,
        current_user: User = Depends(require_active_gym_admin),
        catalog: CatalogRepository = Depends(get_catalog_repository),
):
    values = data.model_dump(mode="json")
    exercise = await catalog.add(LibraryExercise(
        gym_id=current_user.gym_id,
        created_at=datetime.utcnow(),
        **values,
    ))
    return LibraryExerciseRead.model_validate(exercise)


@router.put("/{exercise_id}", response_model=LibraryExerciseRead)
async def update_exercise(
        exercise_id: int,
        data: LibraryExerciseInput,
        current_user: User = Depends(require_active_gym_admin),
        catalog: CatalogRepository = Depends(get_catalog_repository),
):
    exercise = await _get_exercise(catalog, current_user.gym_id, exercise_id)
    for field, value in data.model_dump(mode="json").items():
        setattr(exercise, field, value)
    exercise = await catalog.save(exercise)
    return LibraryExerciseRead.model_validate(exercise)


@router.delete("/{exercise_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exercise(
        exercise_id: int,
        current_user: User = Depends(require_active_gym_admin),
        catalog: CatalogRepository = Depends(get_catalog_repository),
):
    exercise = await _get_exercise(catalog, current_user.gym_id, exercise_id)
    await catalog.delete(exercise)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
