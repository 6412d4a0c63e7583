from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum

from app.schemas.routine import Difficulty


class LiveSessionStatus(str, Enum):
    active = "active"
    completed = "completed"


class LiveSessionSnapshot(BaseModel):
    """Ephemeral live status of one athlete's workout, keyed by athlete id."""
    athlete_id: int
    user_name: str
    gym_id: int
    routine_id: int
    routine_name: str
    current_exercise_name: str
    current_set_index: int
    total_sets_in_session: int
    last_reported_difficulty: Optional[Difficulty] = None
    start_time: datetime
    last_update_time: datetime
    status: LiveSessionStatus = LiveSessionStatus.active
