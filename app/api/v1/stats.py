from fastapi import APIRouter, Depends

from app.core.dependencies import get_routine_repository
from app.core.rbac import require_athlete
from app.models.user import User
from app.repositories.routine_repository import RoutineRepository
from app.schemas.stats import AthleteStatsResponse
from app.services.stats_service import compute_athlete_stats

router = APIRouter(tags=["stats"])


@router.get("/me", response_model=AthleteStatsResponse)
async def my_stats(
        current_user: User = Depends(require_athlete),
        repo: RoutineRepository = Depends(get_routine_repository),
):
    """Workout totals over every routine assigned to the athlete."""
    routines = await repo.list_for_member(current_user.id)
    return compute_athlete_stats(routines)
