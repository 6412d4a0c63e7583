from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.core.dependencies import get_catalog_repository
from app.core.rbac import require_staff
from app.models.routine import RoutineType
from app.models.user import User
from app.repositories.catalog_repository import CatalogRepository
from app.schemas.routine import RoutineTypeCreate, RoutineTypeRead

router = APIRouter(tags=["routine-types"])


@router.get("", response_model=List[RoutineTypeRead])
async def list_routine_types(
        current_user: User = Depends(require_staff),
        catalog: CatalogRepository = Depends(get_catalog_repository),
):
    return [RoutineTypeRead.model_validate(t) for t in await catalog.list_routine_types(current_user.gym_id)]


@router.post("", response_model=RoutineTypeRead, status_code=status.HTTP_201_CREATED)
async def create_routine_type(
        data: RoutineTypeCreate,
        current_user: User = Depends(require_staff),
        catalog: CatalogRepository = Depends(get_catalog_repository),
):
    routine_type = await catalog.add(RoutineType(
        gym_id=current_user.gym_id,
        name=data.name,
        created_at=datetime.utcnow(),
    ))
    return RoutineTypeRead.model_validate(routine_type)


@router.delete("/{type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_routine_type(
        type_id: int,
        current_user: User = Depends(require_staff),
        catalog: CatalogRepository = Depends(get_catalog_repository),
):
    routine_type = await catalog.get_routine_type(current_user.gym_id, type_id)
    if routine_type is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Routine type not found")
    await catalog.delete(routine_type)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
