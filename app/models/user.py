import enum
from sqlalchemy import Column, Integer, String, Enum, ForeignKey, DateTime, Date
from sqlalchemy.orm import relationship
from app.core.base import Base
from datetime import datetime


class RoleEnum(str, enum.Enum):
    athlete = "athlete"
    coach = "coach"
    gym_admin = "gym_admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    password = Column(String, nullable=False)
    role = Column(Enum(RoleEnum), nullable=False, default=RoleEnum.athlete)
    gym_id = Column(Integer, ForeignKey("gyms.id", ondelete="SET NULL"), nullable=True, index=True)
    dob = Column(Date, nullable=True)
    plan = Column(String, nullable=True)

    stripe_customer_id = Column(String, nullable=True)
    stripe_subscription_id = Column(String, nullable=True)
    stripe_subscription_status = Column(String, nullable=True)

    refresh_token = Column(String, nullable=True)
    refresh_token_expires = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    gym = relationship("Gym", back_populates="members", foreign_keys=[gym_id])
