"""
Workout session tracker.

An athlete runs a routine as a flat "playlist" of steps. For every block the
leading integer of its free-text ``sets`` field (1 when there is none) is
the number of set repetitions; each repetition visits every exercise of the
block. The default order is circuit order:

    block 0: set 0 (ex 0, ex 1, ...), set 1 (ex 0, ex 1, ...), ...
    block 1: ...

Steps are addressed by the key ``"{block}-{exercise}-{set}"`` which is also
the key of the routine's progress map. ``PlaylistOrder.straight_sets`` gives
the "all sets of one exercise first" order; it has to be asked for
explicitly because "set X of Y" shown to the athlete depends on it.

While a session runs the tracker publishes a live snapshot for the admin
dashboard (on start, on every cursor move and on a heartbeat) and deletes it
when the session ends. Progress and snapshot writes are best effort: a
failed write is logged and reported through ``notify``; the in-memory state
stays authoritative and nothing is retried.
"""
import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi.encoders import jsonable_encoder

from app.core.config import settings
from app.core.context import SessionContext
from app.models.routine import Routine
from app.schemas.live import LiveSessionStatus
from app.schemas.routine import Difficulty
from app.services.live_store import LiveSessionStore

logger = logging.getLogger(__name__)

ProgressWriter = Callable[[int, str, Dict[str, Any]], Awaitable[None]]
Notifier = Callable[[str], Awaitable[None]]

DEFAULT_PROGRESS = {"completed": False, "difficulty": Difficulty.medium.value}

_SET_COUNT_RE = re.compile(r"\d+")
_MINUTES_RE = re.compile(r"(\d+)\s*m", re.IGNORECASE)
_SECONDS_RE = re.compile(r"(\d+)\s*s", re.IGNORECASE)
_TRAILING_DIGITS_RE = re.compile(r"(\d+)\s*$")


class PlaylistOrder(str, Enum):
    circuit = "circuit"
    straight_sets = "straight_sets"


def parse_set_count(sets: Optional[str]) -> int:
    match = _SET_COUNT_RE.search(sets or "")
    return int(match.group(0)) if match else 1


def parse_duration(text: Optional[str]) -> int:
    """
    Seconds in a loose duration string.

    "2m" -> 120, "30s" -> 30, "1m 15s" -> 75, "45" -> 45, "abc" -> 0
    """
    if not text:
        return 0
    minutes = _MINUTES_RE.search(text)
    seconds = _SECONDS_RE.search(text)
    if minutes or seconds:
        total = int(minutes.group(1)) * 60 if minutes else 0
        return total + (int(seconds.group(1)) if seconds else 0)
    trailing = _TRAILING_DIGITS_RE.search(text)
    return int(trailing.group(1)) if trailing else 0


def progress_key(block_index: int, exercise_index: int, set_index: int) -> str:
    return f"{block_index}-{exercise_index}-{set_index}"


@dataclass(frozen=True)
class PlaylistStep:
    block_index: int
    exercise_index: int
    set_index: int
    total_sets: int
    block_name: str
    block_sets: str
    exercise: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return progress_key(self.block_index, self.exercise_index, self.set_index)

    @property
    def name(self) -> str:
        return self.exercise.get("name", "")

    @property
    def is_timed(self) -> bool:
        return self.exercise.get("rep_type") == "duration" and bool(self.exercise.get("duration"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "block_name": self.block_name,
            "block_sets": self.block_sets,
            "block_index": self.block_index,
            "exercise_index": self.exercise_index,
            "set_index": self.set_index,
            "total_sets": self.total_sets,
            "rep_type": self.exercise.get("rep_type", "reps"),
            "reps": self.exercise.get("reps"),
            "duration": self.exercise.get("duration"),
            "weight": self.exercise.get("weight"),
            "video_url": self.exercise.get("video_url"),
        }


def build_playlist(blocks: List[Dict[str, Any]], order: PlaylistOrder = PlaylistOrder.circuit) -> List[PlaylistStep]:
    playlist: List[PlaylistStep] = []
    for b_index, block in enumerate(blocks or []):
        total_sets = parse_set_count(block.get("sets"))
        exercises = block.get("exercises") or []

        if order == PlaylistOrder.circuit:
            pairs = [(s, e) for s in range(total_sets) for e in range(len(exercises))]
        else:
            pairs = [(s, e) for e in range(len(exercises)) for s in range(total_sets)]

        for s_index, e_index in pairs:
            playlist.append(PlaylistStep(
                block_index=b_index,
                exercise_index=e_index,
                set_index=s_index,
                total_sets=total_sets,
                block_name=block.get("name", ""),
                block_sets=str(block.get("sets", "")),
                exercise=exercises[e_index],
            ))
    return playlist


# ----------------------------------------------------------------------
# Timer for duration exercises
# ----------------------------------------------------------------------

class TimerState(str, Enum):
    idle = "idle"
    countdown = "countdown"
    running = "running"
    paused = "paused"
    finished = "finished"


class WorkoutTimer:
    """idle -> countdown -> running <-> paused -> finished, one tick per second."""

    def __init__(self, duration_seconds: int, countdown_ticks: int = 5):
        self.duration_seconds = max(0, duration_seconds)
        self.countdown_ticks = max(0, countdown_ticks)
        self.reset()

    def reset(self) -> None:
        self.state = TimerState.idle
        self.remaining = self.duration_seconds
        self.countdown_remaining = self.countdown_ticks
        self.cue_played = False

    @property
    def is_counting(self) -> bool:
        return self.state in (TimerState.countdown, TimerState.running)

    def start(self) -> None:
        if self.state == TimerState.paused:
            self.resume()
            return
        if self.state != TimerState.idle:
            return
        self.countdown_remaining = self.countdown_ticks
        self.state = TimerState.countdown if self.countdown_ticks else TimerState.running

    def pause(self) -> None:
        if self.state == TimerState.running:
            self.state = TimerState.paused

    def resume(self) -> None:
        if self.state == TimerState.paused:
            self.state = TimerState.running

    def tick(self) -> bool:
        """Advance one tick. Returns True on the tick that finishes the timer."""
        if self.state == TimerState.countdown:
            self.countdown_remaining -= 1
            if self.countdown_remaining <= 0:
                self.state = TimerState.running
                if self.remaining <= 0:
                    return self._finish()
            return False

        if self.state == TimerState.running:
            self.remaining = max(0, self.remaining - 1)
            if self.remaining == 0:
                return self._finish()
        return False

    def _finish(self) -> bool:
        self.state = TimerState.finished
        if self.cue_played:
            return False
        self.cue_played = True
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "duration": self.duration_seconds,
            "remaining": self.remaining,
            "countdown": self.countdown_remaining if self.state == TimerState.countdown else 0,
        }


# ----------------------------------------------------------------------
# Tracker
# ----------------------------------------------------------------------

class SessionTracker:

    def __init__(
            self,
            context: SessionContext,
            routine: Routine,
            store: LiveSessionStore,
            progress_writer: ProgressWriter,
            notify: Optional[Notifier] = None,
            order: PlaylistOrder = PlaylistOrder.circuit,
            heartbeat_seconds: Optional[float] = None,
            countdown_ticks: Optional[int] = None,
    ):
        if context.gym_id is None:
            raise ValueError("Workout sessions need a gym")
        self.context = context
        self.routine = routine
        self.store = store
        self.progress_writer = progress_writer
        self.notify = notify
        self.heartbeat_seconds = heartbeat_seconds if heartbeat_seconds is not None else settings.LIVE_HEARTBEAT_SECONDS
        self.countdown_ticks = countdown_ticks if countdown_ticks is not None else settings.TIMER_COUNTDOWN_TICKS

        self.playlist = build_playlist(routine.blocks, order)
        if not self.playlist:
            raise ValueError("Routine has no exercises to run")
        self._keys = {step.key for step in self.playlist}
        self._progress: Dict[str, Dict[str, Any]] = {
            key: dict(entry) for key, entry in (routine.progress or {}).items()
        }
        self.index = self._first_incomplete_index()
        self.timer: Optional[WorkoutTimer] = self._timer_for(self.current_step)
        self.last_difficulty: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.ended = False
        self._heartbeat_task: Optional[asyncio.Task] = None

    # --- read side -----------------------------------------------------

    @property
    def current_step(self) -> PlaylistStep:
        return self.playlist[self.index]

    @property
    def total_steps(self) -> int:
        return len(self.playlist)

    @property
    def progress(self) -> Dict[str, Dict[str, Any]]:
        return {key: dict(entry) for key, entry in self._progress.items()}

    def state(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "total": self.total_steps,
            "step": self.current_step.to_dict(),
            "progress": self._progress.get(self.current_step.key, dict(DEFAULT_PROGRESS)),
            "timer": self.timer.to_dict() if self.timer else None,
            "ended": self.ended,
        }

    def _first_incomplete_index(self) -> int:
        for i, step in enumerate(self.playlist):
            if not self._progress.get(step.key, {}).get("completed"):
                return i
        return 0

    def _timer_for(self, step: PlaylistStep) -> Optional[WorkoutTimer]:
        if not step.is_timed:
            return None
        return WorkoutTimer(parse_duration(step.exercise.get("duration")), self.countdown_ticks)

    # --- lifecycle -----------------------------------------------------

    async def start(self) -> None:
        self.started_at = datetime.utcnow()
        await self.publish_live_status()
        if self.heartbeat_seconds > 0:
            self._heartbeat_task = asyncio.create_task(self._heartbeat())
        logger.info(
            "Session started: athlete=%s routine=%s steps=%s",
            self.context.user_id, self.routine.id, self.total_steps,
        )

    async def _heartbeat(self) -> None:
        while not self.ended:
            await asyncio.sleep(self.heartbeat_seconds)
            if self.ended:
                break
            await self.publish_live_status()

    async def end_session(self) -> None:
        if self.ended:
            return
        self.ended = True
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None
        try:
            await self.store.delete(self.context.user_id)
        except Exception:
            logger.exception("Could not delete live snapshot for athlete %s", self.context.user_id)
            await self._notice("Live status could not be cleared.")
        logger.info("Session ended: athlete=%s routine=%s", self.context.user_id, self.routine.id)

    # --- cursor --------------------------------------------------------

    async def advance(self) -> bool:
        """Next step. Past the last step the session ends; returns False then."""
        if self.ended:
            return False
        if self.index >= self.total_steps - 1:
            await self.end_session()
            return False
        await self._move_to(self.index + 1)
        return True

    async def retreat(self) -> bool:
        if self.ended or self.index == 0:
            return False
        await self._move_to(self.index - 1)
        return True

    async def _move_to(self, index: int) -> None:
        self.index = index
        self.timer = self._timer_for(self.current_step)
        await self.publish_live_status()

    # --- progress ------------------------------------------------------

    async def set_completion(self, key: str, completed: bool) -> Dict[str, Any]:
        return await self._update_progress(key, {"completed": bool(completed)})

    async def set_difficulty(self, key: str, difficulty: str) -> Dict[str, Any]:
        value = Difficulty(difficulty).value
        entry = await self._update_progress(key, {"difficulty": value})
        self.last_difficulty = value
        await self._publish({"last_reported_difficulty": value})
        return entry

    async def _update_progress(self, key: str, change: Dict[str, Any]) -> Dict[str, Any]:
        if key not in self._keys:
            raise ValueError(f"Unknown step key: {key}")
        merged = {**DEFAULT_PROGRESS, **self._progress.get(key, {}), **change}
        self._progress[key] = merged
        try:
            await self.progress_writer(self.routine.id, key, dict(merged))
        except Exception:
            logger.exception("Could not save progress %s for routine %s", key, self.routine.id)
            await self._notice("Progress could not be saved.")
        return dict(merged)

    # --- live status ---------------------------------------------------

    async def publish_live_status(self) -> None:
        step = self.current_step
        fields: Dict[str, Any] = {
            "user_name": self.context.name,
            "routine_id": self.routine.id,
            "routine_name": self.routine.routine_type_name or "Workout",
            "current_exercise_name": step.name,
            "current_set_index": self.index,
            "total_sets_in_session": self.total_steps,
            "last_reported_difficulty": self.last_difficulty,
            "status": LiveSessionStatus.active,
        }
        if self.started_at is not None:
            fields["start_time"] = self.started_at
        await self._publish(fields)

    async def _publish(self, fields: Dict[str, Any]) -> None:
        if self.ended:
            return
        payload = jsonable_encoder({**fields, "last_update_time": datetime.utcnow()})
        try:
            await self.store.upsert(self.context.user_id, self.context.gym_id, payload)
        except Exception:
            logger.exception("Could not publish live status for athlete %s", self.context.user_id)
            await self._notice("Live status could not be updated.")

    async def _notice(self, message: str) -> None:
        if self.notify is None:
            return
        try:
            await self.notify(message)
        except Exception:
            logger.warning("Could not deliver notice: %s", message)
