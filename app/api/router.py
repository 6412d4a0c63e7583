from fastapi import APIRouter
from app.api.v1.auth import router as auth_router
from app.api.v1.gyms import router as gyms_router
from app.api.v1.members import router as members_router
from app.api.v1.routines import router as routines_router
from app.api.v1.routine_types import router as routine_types_router
from app.api.v1.templates import router as templates_router
from app.api.v1.exercises import router as exercises_router
from app.api.v1.sessions import router as sessions_router
from app.api.v1.live import router as live_router
from app.api.v1.billing import router as billing_router
from app.api.v1.ai import router as ai_router
from app.api.v1.contact import router as contact_router
from app.api.v1.stats import router as stats_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(gyms_router, prefix="/gyms", tags=["gyms"])
api_router.include_router(members_router, prefix="/members", tags=["members"])
api_router.include_router(routines_router, prefix="/routines", tags=["routines"])
api_router.include_router(routine_types_router, prefix="/routine-types", tags=["routine-types"])
api_router.include_router(templates_router, prefix="/templates", tags=["templates"])
api_router.include_router(exercises_router, prefix="/exercises", tags=["exercises"])
api_router.include_router(sessions_router, prefix="/sessions", tags=["sessions"])
api_router.include_router(live_router, prefix="/live", tags=["live"])
api_router.include_router(billing_router, prefix="/billing", tags=["billing"])
api_router.include_router(ai_router, prefix="/ai", tags=["ai"])
api_router.include_router(contact_router, prefix="/contact", tags=["contact"])
api_router.include_router(stats_router, prefix="/stats", tags=["stats"])
