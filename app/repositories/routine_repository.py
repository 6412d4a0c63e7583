from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, cast
from sqlalchemy.dialects.postgresql import JSONB

from app.models.routine import Routine


class RoutineRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, routine_id: int) -> Optional[Routine]:
        result = await self.db.execute(select(Routine).where(Routine.id == routine_id))
        return result.scalar_one_or_none()

    async def list_for_member(self, member_id: int) -> List[Routine]:
        result = await self.db.execute(
            select(Routine)
            .where(Routine.member_id == member_id)
            .order_by(Routine.routine_date.desc())
        )
        return list(result.scalars().all())

    async def list_for_gym(self, gym_id: int, member_id: Optional[int] = None) -> List[Routine]:
        query = select(Routine).where(Routine.gym_id == gym_id)
        if member_id is not None:
            query = query.where(Routine.member_id == member_id)
        result = await self.db.execute(query.order_by(Routine.routine_date.desc()))
        return list(result.scalars().all())

    async def create(self, routine: Routine) -> Routine:
        self.db.add(routine)
        await self.db.commit()
        await self.db.refresh(routine)
        return routine

    async def save(self, routine: Routine) -> Routine:
        await self.db.commit()
        await self.db.refresh(routine)
        return routine

    async def delete(self, routine: Routine) -> None:
        await self.db.delete(routine)
        await self.db.commit()

    async def merge_progress_entry(self, routine_id: int, key: str, entry: Dict) -> None:
        """Write one progress key; every other key of the JSONB map is left as stored."""
        patch = cast({key: entry}, JSONB)
        current = func.coalesce(Routine.progress, cast({}, JSONB))
        try:
            await self.db.execute(
                update(Routine)
                .where(Routine.id == routine_id)
                .values(progress=current.op("||", return_type=JSONB)(patch))
            )
            await self.db.commit()
        except Exception:
            # The session outlives the failed write (one per workout socket)
            await self.db.rollback()
            raise

    async def count_created_since(self, gym_id: int, since: datetime) -> int:
        result = await self.db.execute(
            select(func.count(Routine.id))
            .where(Routine.gym_id == gym_id, Routine.created_at >= since)
        )
        return result.scalar() or 0
