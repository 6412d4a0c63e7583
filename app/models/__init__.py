from app.models.user import User, RoleEnum
from app.models.gym import Gym, Invite, InviteRoleEnum
from app.models.routine import Routine, RoutineType, RoutineTemplate
from app.models.exercise import LibraryExercise

__all__ = [
    "User", "RoleEnum",
    "Gym", "Invite", "InviteRoleEnum",
    "Routine", "RoutineType", "RoutineTemplate",
    "LibraryExercise",
]
