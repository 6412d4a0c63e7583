from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.core.dependencies import get_catalog_repository
from app.core.rbac import require_staff
from app.models.routine import RoutineTemplate
from app.models.user import User
from app.repositories.catalog_repository import CatalogRepository
from app.schemas.routine import TemplateCreate, TemplateRead
from app.services.routine_service import blocks_to_json

router = APIRouter(tags=["templates"])


@router.get("", response_model=List[TemplateRead])
async def list_templates(
        current_user: User = Depends(require_staff),
        catalog: CatalogRepository = Depends(get_catalog_repository),
):
    return [TemplateRead.model_validate(t) for t in await catalog.list_templates(current_user.gym_id)]


@router.post("", response_model=TemplateRead, status_code=status.HTTP_201_CREATED)
async def create_template(
        data: TemplateCreate,
        current_user: User = Depends(require_staff),
        catalog: CatalogRepository = Depends(get_catalog_repository),
):
    template = await catalog.add(RoutineTemplate(
        gym_id=current_user.gym_id,
        coach_id=current_user.id,
        name=data.name,
        blocks=blocks_to_json(data.blocks),
        created_at=datetime.utcnow(),
    ))
    return TemplateRead.model_validate(template)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
        template_id: int,
        current_user: User = Depends(require_staff),
        catalog: CatalogRepository = Depends(get_catalog_repository),
):
    template = await catalog.get_template(current_user.gym_id, template_id)
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    await catalog.delete(template)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
