import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Set

from app.schemas.live import LiveSessionSnapshot
from app.services.live_store import LiveSessionStore, Subscription

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[List[LiveSessionSnapshot]], Awaitable[None]]


class LiveDashboardAggregator:
    """
    Live view of one gym's running workout sessions.

    Follows the gym's set of snapshot ids and holds one subscription per id.
    Updates replace the matching entry in place or append a new one; deleted
    snapshots are dropped. The resulting order is accumulation order, not a
    sort.
    """

    def __init__(self, store: LiveSessionStore, gym_id: int, on_change: Optional[ChangeCallback] = None):
        self.store = store
        self.gym_id = gym_id
        self.on_change = on_change
        self._sessions: List[LiveSessionSnapshot] = []
        self._subscriptions: Dict[int, Subscription] = {}
        self._gym_subscription: Optional[Subscription] = None
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def sessions(self) -> List[LiveSessionSnapshot]:
        return list(self._sessions)

    async def start(self) -> "LiveDashboardAggregator":
        self._gym_subscription = await self.store.subscribe_gym(self.gym_id, self._on_ids)
        return self

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        subscriptions = [self._gym_subscription] + list(self._subscriptions.values())
        self._subscriptions.clear()
        self._gym_subscription = None
        for subscription in subscriptions:
            if subscription is None:
                continue
            try:
                await subscription.close()
            except Exception:
                logger.exception("Could not close live subscription for gym %s", self.gym_id)

    async def __aenter__(self) -> "LiveDashboardAggregator":
        try:
            return await self.start()
        except BaseException:
            await self.close()
            raise

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _on_ids(self, ids: Set[int]) -> None:
        async with self._lock:
            if self._closed:
                return
            for athlete_id in set(self._subscriptions) - ids:
                subscription = self._subscriptions.pop(athlete_id)
                await subscription.close()
                self._remove(athlete_id)
            for athlete_id in ids - set(self._subscriptions):
                self._subscriptions[athlete_id] = await self.store.subscribe_session(
                    athlete_id, self._on_snapshot
                )
        await self._changed()

    async def _on_snapshot(self, athlete_id: int, snapshot: Optional[LiveSessionSnapshot]) -> None:
        if self._closed:
            return
        if snapshot is None:
            self._remove(athlete_id)
        else:
            self._upsert(snapshot)
        await self._changed()

    def _upsert(self, snapshot: LiveSessionSnapshot) -> None:
        for i, existing in enumerate(self._sessions):
            if existing.athlete_id == snapshot.athlete_id:
                self._sessions[i] = snapshot
                return
        self._sessions.append(snapshot)

    def _remove(self, athlete_id: int) -> None:
        self._sessions = [s for s in self._sessions if s.athlete_id != athlete_id]

    async def _changed(self) -> None:
        if self.on_change is not None and not self._closed:
            await self.on_change(self.sessions)
