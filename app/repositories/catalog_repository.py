from typing import List, Optional, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.base import Base
from app.models.routine import RoutineType, RoutineTemplate
from app.models.exercise import LibraryExercise

ModelT = TypeVar("ModelT", bound=Base)


class CatalogRepository:
    """Per-gym catalogs: routine types, routine templates and the exercise library."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, model: Type[ModelT], gym_id: int, item_id: int) -> Optional[ModelT]:
        result = await self.db.execute(
            select(model).where(model.id == item_id, model.gym_id == gym_id)
        )
        return result.scalar_one_or_none()

    async def add(self, item: ModelT) -> ModelT:
        self.db.add(item)
        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def save(self, item: ModelT) -> ModelT:
        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def delete(self, item: Base) -> None:
        await self.db.delete(item)
        await self.db.commit()

    async def list_routine_types(self, gym_id: int) -> List[RoutineType]:
        result = await self.db.execute(
            select(RoutineType).where(RoutineType.gym_id == gym_id).order_by(RoutineType.name)
        )
        return list(result.scalars().all())

    async def get_routine_type(self, gym_id: int, type_id: int) -> Optional[RoutineType]:
        return await self._get(RoutineType, gym_id, type_id)

    async def list_templates(self, gym_id: int) -> List[RoutineTemplate]:
        result = await self.db.execute(
            select(RoutineTemplate)
            .where(RoutineTemplate.gym_id == gym_id)
            .order_by(RoutineTemplate.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_template(self, gym_id: int, template_id: int) -> Optional[RoutineTemplate]:
        return await self._get(RoutineTemplate, gym_id, template_id)

    async def list_exercises(self, gym_id: int) -> List[LibraryExercise]:
        result = await self.db.execute(
            select(LibraryExercise).where(LibraryExercise.gym_id == gym_id).order_by(LibraryExercise.name)
        )
        return list(result.scalars().all())

    async def get_exercise(self, gym_id: int, exercise_id: int) -> Optional[LibraryExercise]:
        return await self._get(LibraryExercise, gym_id, exercise_id)
