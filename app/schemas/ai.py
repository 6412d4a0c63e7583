from pydantic import BaseModel, Field
from enum import Enum


class FitnessLevel(str, Enum):
    beginner = "beginner"
    intermediate = "intermediate"
    advanced = "advanced"


class RoutineGenerationRequest(BaseModel):
    fitness_level: FitnessLevel
    goals: str = Field(min_length=10, description="Please describe your goals in more detail.")
    available_equipment: str = Field(min_length=3, description="Please list your available equipment.")
    age: int = Field(gt=0)


class RoutineGenerationResponse(BaseModel):
    routine: str
