import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from app.core.config import settings
from app.core.context import SessionContext
from app.core.dependencies import (
    authenticate_websocket,
    get_live_session_store,
    get_routine_repository,
    get_user_repository,
)
from app.models.user import RoleEnum
from app.repositories.routine_repository import RoutineRepository
from app.repositories.user_repository import UserRepository
from app.services.live_store import LiveSessionStore
from app.services.session_tracker import SessionTracker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sessions"])

TIMER_ACTIONS = {"start", "pause", "resume", "reset"}


class SessionConnection:
    """One athlete socket driving one tracker. Sends are serialized."""

    def __init__(self, websocket: WebSocket, tick_seconds: float):
        self.websocket = websocket
        self.tracker: Optional[SessionTracker] = None
        self.tick_seconds = tick_seconds
        self._send_lock = asyncio.Lock()

    async def send(self, message: Dict[str, Any]) -> None:
        async with self._send_lock:
            await self.websocket.send_json(message)

    async def notice(self, message: str) -> None:
        await self.send({"type": "notice", "message": message})

    async def send_state(self) -> None:
        await self.send({"type": "state", **self.tracker.state()})

    async def run_timer(self) -> None:
        while not self.tracker.ended:
            await asyncio.sleep(self.tick_seconds)
            timer = self.tracker.timer
            if timer is None or not timer.is_counting:
                continue
            finished = timer.tick()
            await self.send({"type": "timer", "key": self.tracker.current_step.key, **timer.to_dict()})
            if finished:
                await self.send({"type": "cue", "key": self.tracker.current_step.key})

    async def handle(self, command: Dict[str, Any]) -> bool:
        """Apply one client command. Returns False once the session is over."""
        tracker = self.tracker
        action = command.get("type")

        if action == "next":
            if not await tracker.advance():
                if tracker.ended:
                    return False
        elif action == "previous":
            await tracker.retreat()
        elif action == "complete":
            key = command.get("key") or tracker.current_step.key
            await tracker.set_completion(key, bool(command.get("completed", True)))
        elif action == "difficulty":
            key = command.get("key") or tracker.current_step.key
            await tracker.set_difficulty(key, command.get("value"))
        elif action == "timer":
            timer_action = command.get("action")
            if tracker.timer is None:
                await self.notice("This exercise has no timer.")
                return True
            if timer_action not in TIMER_ACTIONS:
                await self.notice(f"Unknown timer action: {timer_action}")
                return True
            getattr(tracker.timer, timer_action)()
            await self.send({"type": "timer", "key": tracker.current_step.key, **tracker.timer.to_dict()})
            return True
        elif action == "end":
            await tracker.end_session()
            return False
        else:
            await self.notice(f"Unknown command: {action}")
            return True

        await self.send_state()
        return True


@router.websocket("/ws/{routine_id}")
async def workout_session(
        websocket: WebSocket,
        routine_id: int,
        token: str = Query(...),
        users: UserRepository = Depends(get_user_repository),
        routines: RoutineRepository = Depends(get_routine_repository),
        store: LiveSessionStore = Depends(get_live_session_store),
):
    user = await authenticate_websocket(websocket, token, users)
    if user is None:
        return
    routine = await routines.get_by_id(routine_id)
    if user.role != RoleEnum.athlete or routine is None or routine.member_id != user.id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection = SessionConnection(websocket, settings.TIMER_TICK_SECONDS)
    try:
        tracker = SessionTracker(
            SessionContext.from_user(user),
            routine,
            store,
            progress_writer=routines.merge_progress_entry,
            notify=connection.notice,
        )
    except ValueError as e:
        await websocket.send_json({"type": "notice", "message": str(e)})
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    connection.tracker = tracker
    timer_task = None
    try:
        await tracker.start()
        await connection.send_state()
        timer_task = asyncio.create_task(connection.run_timer())

        while True:
            try:
                command = await websocket.receive_json()
            except (ValueError, KeyError):
                await connection.notice("Commands must be JSON objects.")
                continue
            if not isinstance(command, dict):
                await connection.notice("Commands must be JSON objects.")
                continue
            try:
                running = await connection.handle(command)
            except ValueError as e:
                await connection.notice(str(e))
                continue
            if not running:
                await connection.send({"type": "ended"})
                await websocket.close()
                break
    except WebSocketDisconnect:
        logger.info("Athlete %s disconnected from routine %s", user.id, routine_id)
    finally:
        if timer_task is not None:
            timer_task.cancel()
            try:
                await timer_task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Timer loop for athlete %s stopped with an error", user.id)
        await tracker.end_session()
