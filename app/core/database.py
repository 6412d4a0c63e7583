import logging

from app.core.config import settings
from app.core.base import Base
from app.core.db import engine

# Every model has to be imported before create_all
from app.models import User, Gym, Invite, Routine, RoutineType, RoutineTemplate, LibraryExercise  # noqa: F401

logger = logging.getLogger(__name__)


async def init_database():
    """Create tables (dropping them first when RESET_DATABASE is set)."""
    async with engine.begin() as conn:
        if settings.RESET_DATABASE:
            logger.warning("RESET_DATABASE=true, dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)

        await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified")
