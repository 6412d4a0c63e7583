from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from app.core.base import Base
from datetime import datetime


class LibraryExercise(Base):
    __tablename__ = "library_exercises"

    id = Column(Integer, primary_key=True)
    gym_id = Column(Integer, ForeignKey("gyms.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    video_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
