import re
from typing import Any, Dict, List, Optional

from app.models.routine import Routine
from app.schemas.routine import Difficulty
from app.schemas.stats import (
    AthleteStatsResponse,
    DifficultyCount,
    RoutinePerformance,
    RoutineTypeCount,
)

_LEADING_NUMBER = re.compile(r"\s*(\d+)")
_ANY_NUMBER = re.compile(r"\d+")


def _leading_int(text: str) -> Optional[int]:
    match = _LEADING_NUMBER.match(text)
    return int(match.group(1)) if match else None


def parse_reps(exercise: Dict[str, Any]) -> float:
    """
    Reps of one set: "10" -> 10, a range "8-12" -> 10 (midpoint).
    Duration exercises and unparseable text count as 0.
    """
    if exercise.get("rep_type", "reps") != "reps" or not exercise.get("reps"):
        return 0
    parts = [_leading_int(part) for part in str(exercise["reps"]).split("-")]
    if len(parts) > 1 and parts[0] is not None and parts[1] is not None:
        return (parts[0] + parts[1]) / 2
    return parts[0] or 0


def parse_weight(weight: Optional[str]) -> int:
    """First number in the weight text: "60kg" -> 60, "bodyweight" -> 0."""
    match = _ANY_NUMBER.search(weight or "")
    return int(match.group()) if match else 0


def _exercise_for_key(routine: Routine, key: str) -> Optional[Dict[str, Any]]:
    try:
        block_index, exercise_index = (int(part) for part in key.split("-")[:2])
        return (routine.blocks or [])[block_index]["exercises"][exercise_index]
    except (ValueError, IndexError, KeyError, TypeError):
        return None


def compute_athlete_stats(routines: List[Routine]) -> AthleteStatsResponse:
    difficulty_counts = {d.value: 0 for d in Difficulty}
    type_counts: Dict[str, int] = {}
    performance: List[RoutinePerformance] = []
    total_sets = 0
    total_volume = 0.0

    for routine in sorted(routines, key=lambda r: r.routine_date):
        completed = 0
        volume = 0.0
        for key, entry in (routine.progress or {}).items():
            if not entry.get("completed"):
                continue
            completed += 1
            difficulty = entry.get("difficulty")
            if difficulty in difficulty_counts:
                difficulty_counts[difficulty] += 1

            exercise = _exercise_for_key(routine, key)
            if exercise is None:
                continue
            reps = parse_reps(exercise)
            weight = parse_weight(exercise.get("weight"))
            if reps > 0 and weight > 0:
                volume += reps * weight

        total_sets += completed
        total_volume += volume
        if completed > 0:
            type_name = routine.routine_type_name or "Uncategorized"
            type_counts[type_name] = type_counts.get(type_name, 0) + 1
        performance.append(RoutinePerformance(
            routine_id=routine.id,
            date=routine.routine_date,
            completed=completed,
            volume=volume,
        ))

    return AthleteStatsResponse(
        total_workouts=len(routines),
        total_sets_logged=total_sets,
        total_volume_lifted=total_volume,
        difficulty_breakdown=[
            DifficultyCount(name=name, value=value)
            for name, value in difficulty_counts.items() if value > 0
        ],
        workout_performance=[p for p in performance if p.completed > 0],
        volume_by_date=[p for p in performance if p.volume > 0],
        routine_type_breakdown=[
            RoutineTypeCount(name=name, value=value) for name, value in type_counts.items()
        ],
    )
