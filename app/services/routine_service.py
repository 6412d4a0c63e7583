from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from app.models.routine import Routine
from app.schemas.routine import BlockInput, ProgressUpdate
from app.services.session_tracker import DEFAULT_PROGRESS, build_playlist


def blocks_to_json(blocks: List[BlockInput]) -> List[Dict[str, Any]]:
    return [block.model_dump(mode="json") for block in blocks]


def start_of_week(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def group_athlete_routines(
        routines: List[Routine],
        today: Optional[date] = None,
) -> Tuple[Optional[Routine], List[Routine], List[Routine]]:
    """
    Split an athlete's routines (newest first) into today's routine, the rest
    of the current week and history before Monday.
    """
    today = today or datetime.utcnow().date()
    monday = start_of_week(today)
    ordered = sorted(routines, key=lambda r: r.routine_date, reverse=True)

    today_routine = next((r for r in ordered if r.routine_date.date() == today), None)
    week = [r for r in ordered if r.routine_date.date() >= monday and r.routine_date.date() != today]
    history = [r for r in ordered if r.routine_date.date() < monday]
    return today_routine, week, history


def step_keys(routine: Routine) -> set:
    return {step.key for step in build_playlist(routine.blocks)}


def merged_progress_entry(routine: Routine, key: str, update: ProgressUpdate) -> Dict[str, Any]:
    """Defaults, then the stored entry, then the fields of the update."""
    stored = (routine.progress or {}).get(key, {})
    return {**DEFAULT_PROGRESS, **stored, **update.model_dump(mode="json", exclude_none=True)}
