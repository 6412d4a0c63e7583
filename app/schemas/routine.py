from pydantic import BaseModel, Field, AnyHttpUrl, field_validator, model_validator
from typing import Dict, List, Optional
from datetime import datetime
from enum import Enum

PROGRESS_KEY_PATTERN = r"^\d+-\d+-\d+$"


class RepType(str, Enum):
    reps = "reps"
    duration = "duration"


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class ExerciseInput(BaseModel):
    name: str = Field(min_length=2)
    rep_type: RepType
    reps: Optional[str] = None
    duration: Optional[str] = None
    weight: Optional[str] = None
    description: Optional[str] = None
    video_url: Optional[AnyHttpUrl] = None

    @field_validator("video_url", mode="before")
    @classmethod
    def empty_url_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def target_matches_rep_type(self):
        if self.rep_type == RepType.reps and not (self.reps or "").strip():
            raise ValueError("Reps are required.")
        if self.rep_type == RepType.duration and not (self.duration or "").strip():
            raise ValueError("Duration is required.")
        return self


class BlockInput(BaseModel):
    name: str = Field(min_length=2)
    sets: str = Field(min_length=1, description="Free text, the leading integer is the set count")
    exercises: List[ExerciseInput] = Field(min_length=1)


class RoutineCreate(BaseModel):
    member_id: int
    routine_date: datetime
    routine_type_name: Optional[str] = None
    blocks: List[BlockInput] = Field(min_length=1)


class RoutineUpdate(BaseModel):
    routine_date: Optional[datetime] = None
    routine_type_name: Optional[str] = None
    blocks: Optional[List[BlockInput]] = Field(default=None, min_length=1)


class ProgressEntry(BaseModel):
    completed: bool = False
    difficulty: Difficulty = Difficulty.medium


class ProgressUpdate(BaseModel):
    completed: Optional[bool] = None
    difficulty: Optional[Difficulty] = None

    @model_validator(mode="after")
    def at_least_one_field(self):
        if self.completed is None and self.difficulty is None:
            raise ValueError("Provide completed and/or difficulty.")
        return self


class RoutineRead(BaseModel):
    id: int
    gym_id: int
    member_id: int
    coach_id: Optional[int] = None
    user_name: str
    routine_type_name: Optional[str] = None
    routine_date: datetime
    blocks: List[Dict]
    progress: Dict[str, Dict] = {}
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AthleteRoutinesResponse(BaseModel):
    today: Optional[RoutineRead] = None
    week: List[RoutineRead]
    history: List[RoutineRead]


class PlaylistStepRead(BaseModel):
    key: str
    name: str
    block_name: str
    block_sets: str
    block_index: int
    exercise_index: int
    set_index: int
    total_sets: int
    rep_type: str
    reps: Optional[str] = None
    duration: Optional[str] = None
    weight: Optional[str] = None
    video_url: Optional[str] = None


class RoutineTypeCreate(BaseModel):
    name: str = Field(min_length=2)


class RoutineTypeRead(BaseModel):
    id: int
    gym_id: int
    name: str

    class Config:
        from_attributes = True


class TemplateCreate(BaseModel):
    name: str = Field(min_length=2)
    blocks: List[BlockInput] = Field(min_length=1)


class TemplateRead(BaseModel):
    id: int
    gym_id: int
    coach_id: Optional[int] = None
    name: str
    blocks: List[Dict]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
