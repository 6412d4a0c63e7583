import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder

from app.core.dependencies import (
    authenticate_websocket,
    get_gym_repository,
    get_live_session_store,
    get_user_repository,
)
from app.core.rbac import is_trial_active, require_active_gym_admin
from app.models.user import User, RoleEnum
from app.repositories.gym_repository import GymRepository
from app.repositories.user_repository import UserRepository
from app.schemas.live import LiveSessionSnapshot
from app.services.live_dashboard import LiveDashboardAggregator
from app.services.live_store import LiveSessionStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


def filter_fresh(
        snapshots: List[LiveSessionSnapshot],
        fresh_within: Optional[float],
        now: Optional[datetime] = None,
) -> List[LiveSessionSnapshot]:
    """Display filter only; nothing is deleted."""
    if fresh_within is None:
        return snapshots
    cutoff = (now or datetime.utcnow()) - timedelta(seconds=fresh_within)
    return [s for s in snapshots if s.last_update_time.replace(tzinfo=None) >= cutoff]


@router.get("/sessions", response_model=List[LiveSessionSnapshot])
async def list_live_sessions(
        fresh_within: Optional[float] = Query(None, gt=0, description="Seconds since the last update"),
        current_user: User = Depends(require_active_gym_admin),
        store: LiveSessionStore = Depends(get_live_session_store),
):
    snapshots = await store.list_for_gym(current_user.gym_id)
    return filter_fresh(snapshots, fresh_within)


@router.websocket("/ws")
async def live_dashboard(
        websocket: WebSocket,
        token: str = Query(...),
        users: UserRepository = Depends(get_user_repository),
        gyms: GymRepository = Depends(get_gym_repository),
        store: LiveSessionStore = Depends(get_live_session_store),
):
    user = await authenticate_websocket(websocket, token, users)
    if user is None:
        return
    if user.role != RoleEnum.gym_admin or user.gym_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    gym = await gyms.get_by_id(user.gym_id)
    if gym is None or not is_trial_active(gym, user.stripe_subscription_status):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    updates: asyncio.Queue = asyncio.Queue()

    async def on_change(sessions: List[LiveSessionSnapshot]) -> None:
        updates.put_nowait(sessions)

    async def forward() -> None:
        while True:
            sessions = await updates.get()
            await websocket.send_json({
                "type": "sessions",
                "sessions": jsonable_encoder(sessions),
            })

    forwarder = None
    try:
        async with LiveDashboardAggregator(store, user.gym_id, on_change=on_change):
            forwarder = asyncio.create_task(forward())
            # client messages are ignored; receiving detects the disconnect
            while True:
                await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Live dashboard for gym %s disconnected", user.gym_id)
    finally:
        if forwarder is not None:
            forwarder.cancel()
            try:
                await forwarder
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Live dashboard forwarder for gym %s stopped with an error", user.gym_id)
