from pydantic import BaseModel
from typing import List
from datetime import datetime


class DifficultyCount(BaseModel):
    name: str
    value: int


class RoutinePerformance(BaseModel):
    routine_id: int
    date: datetime
    completed: int
    volume: float


class RoutineTypeCount(BaseModel):
    name: str
    value: int


class AthleteStatsResponse(BaseModel):
    total_workouts: int
    total_sets_logged: int
    total_volume_lifted: float
    difficulty_breakdown: List[DifficultyCount]
    workout_performance: List[RoutinePerformance]
    volume_by_date: List[RoutinePerformance]
    routine_type_breakdown: List[RoutineTypeCount]


class GymOverview(BaseModel):
    member_count: int
    athletes: int
    coaches: int
    pending_invites: int
    routines_last_month: int
