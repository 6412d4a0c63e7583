import enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship
from app.core.base import Base
from datetime import datetime


class InviteRoleEnum(str, enum.Enum):
    athlete = "athlete"
    coach = "coach"


class Gym(Base):
    __tablename__ = "gyms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    admin_id = Column(Integer, ForeignKey("users.id", use_alter=True), nullable=True)
    logo_url = Column(String, nullable=True)
    theme = Column(JSON, nullable=True)
    trial_ends_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    members = relationship("User", back_populates="gym", foreign_keys="User.gym_id")
    invites = relationship("Invite", back_populates="gym", cascade="all, delete-orphan")


class Invite(Base):
    """Pending membership, claimed by the first user who signs in with this email."""
    __tablename__ = "invites"

    email = Column(String, primary_key=True)
    gym_id = Column(Integer, ForeignKey("gyms.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(InviteRoleEnum), nullable=False)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    gym = relationship("Gym", back_populates="invites")
