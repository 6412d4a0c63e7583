import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.rbac import require_staff
from app.models.user import User
from app.schemas.ai import RoutineGenerationRequest, RoutineGenerationResponse
from app.services.ai_service import AIServiceError, ai_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ai"])


@router.post("/routines", response_model=RoutineGenerationResponse)
async def generate_routine(
        request: RoutineGenerationRequest,
        current_user: User = Depends(require_staff),
):
    """Draft a routine in Markdown for a coach to review."""
    try:
        routine = await ai_service.generate_workout_routine(request)
    except AIServiceError as e:
        logger.error("AI routine generation failed for user %s: %s", current_user.id, e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not generate a routine right now. Please try again later."
        )
    return RoutineGenerationResponse(routine=routine)
