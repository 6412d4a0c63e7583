from pydantic import BaseModel, Field, AnyHttpUrl, field_validator
from typing import Optional
from datetime import datetime


class LibraryExerciseInput(BaseModel):
    name: str = Field(min_length=2)
    description: Optional[str] = None
    video_url: Optional[AnyHttpUrl] = None

    @field_validator("video_url", mode="before")
    @classmethod
    def empty_url_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class LibraryExerciseRead(BaseModel):
    id: int
    gym_id: int
    name: str
    description: Optional[str] = None
    video_url: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
