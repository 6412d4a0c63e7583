"""
Shared store for live workout session snapshots.

Contract used by the session tracker and the admin live dashboard:
- get / upsert (merge write) / delete a snapshot by athlete id
- list the snapshot ids of a gym
- subscribe to the id set of a gym, subscribe to one snapshot

Subscriptions push the current state right after registration and then on
every change. Each subscription is closed exactly once, also when used as an
async context manager that exits with an error.

Backends:
- RedisLiveSessionStore: hashes + a per-gym id set + pub/sub notifications,
  shared between workers.
- MemoryLiveSessionStore: in-process, single worker (development and tests).

Snapshots carry no TTL: a snapshot whose owner never deleted it stays
visible until someone removes it.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import redis.asyncio as aioredis
from pydantic import ValidationError

from app.core.config import settings
from app.schemas.live import LiveSessionSnapshot

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[int, Optional[LiveSessionSnapshot]], Awaitable[None]]
IdsCallback = Callable[[Set[int]], Awaitable[None]]


class Subscription:
    """Handle for a registered listener. close() unregisters it once."""

    def __init__(self, unsubscribe: Callable[[], Awaitable[None]]):
        self._unsubscribe = unsubscribe
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._unsubscribe()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def _parse_snapshot(athlete_id: int, doc: Dict[str, Any]) -> Optional[LiveSessionSnapshot]:
    if not doc:
        return None
    try:
        return LiveSessionSnapshot.model_validate({**doc, "athlete_id": athlete_id})
    except ValidationError:
        logger.warning("Ignoring incomplete live snapshot for athlete %s", athlete_id)
        return None


async def _deliver(callback, *args) -> None:
    # Listener errors stay with the listener
    try:
        await callback(*args)
    except Exception:
        logger.exception("Live session listener failed")


class LiveSessionStore(ABC):

    @abstractmethod
    async def get(self, athlete_id: int) -> Optional[LiveSessionSnapshot]:
        ...

    @abstractmethod
    async def upsert(self, athlete_id: int, gym_id: int, fields: Dict[str, Any]) -> None:
        """Merge-write: only the given fields change. Values must be JSON-compatible."""

    @abstractmethod
    async def delete(self, athlete_id: int) -> None:
        ...

    @abstractmethod
    async def list_ids(self, gym_id: int) -> Set[int]:
        ...

    @abstractmethod
    async def subscribe_gym(self, gym_id: int, callback: IdsCallback) -> Subscription:
        ...

    @abstractmethod
    async def subscribe_session(self, athlete_id: int, callback: SnapshotCallback) -> Subscription:
        ...

    async def list_for_gym(self, gym_id: int) -> List[LiveSessionSnapshot]:
        snapshots = []
        for athlete_id in sorted(await self.list_ids(gym_id)):
            snapshot = await self.get(athlete_id)
            if snapshot is not None:
                snapshots.append(snapshot)
        return snapshots

    async def close(self) -> None:
        return None


# ----------------------------------------------------------------------
# In-process backend
# ----------------------------------------------------------------------

class MemoryLiveSessionStore(LiveSessionStore):

    def __init__(self):
        self._docs: Dict[int, Dict[str, Any]] = {}
        self._gym_ids: Dict[int, Set[int]] = defaultdict(set)
        self._gym_listeners: Dict[int, List[IdsCallback]] = defaultdict(list)
        self._session_listeners: Dict[int, List[SnapshotCallback]] = defaultdict(list)

    async def get(self, athlete_id: int) -> Optional[LiveSessionSnapshot]:
        return _parse_snapshot(athlete_id, self._docs.get(athlete_id, {}))

    async def upsert(self, athlete_id: int, gym_id: int, fields: Dict[str, Any]) -> None:
        doc = self._docs.setdefault(athlete_id, {})
        doc.update(fields)
        doc["gym_id"] = gym_id

        is_new = athlete_id not in self._gym_ids[gym_id]
        self._gym_ids[gym_id].add(athlete_id)
        if is_new:
            await self._notify_gym(gym_id)
        await self._notify_session(athlete_id)

    async def delete(self, athlete_id: int) -> None:
        doc = self._docs.pop(athlete_id, None)
        if doc is None:
            return
        gym_id = doc.get("gym_id")
        await self._notify_session(athlete_id)
        if gym_id is not None:
            self._gym_ids[gym_id].discard(athlete_id)
            await self._notify_gym(gym_id)

    async def list_ids(self, gym_id: int) -> Set[int]:
        return set(self._gym_ids.get(gym_id, set()))

    async def subscribe_gym(self, gym_id: int, callback: IdsCallback) -> Subscription:
        self._gym_listeners[gym_id].append(callback)

        async def unsubscribe():
            listeners = self._gym_listeners.get(gym_id, [])
            if callback in listeners:
                listeners.remove(callback)

        await _deliver(callback, await self.list_ids(gym_id))
        return Subscription(unsubscribe)

    async def subscribe_session(self, athlete_id: int, callback: SnapshotCallback) -> Subscription:
        self._session_listeners[athlete_id].append(callback)

        async def unsubscribe():
            listeners = self._session_listeners.get(athlete_id, [])
            if callback in listeners:
                listeners.remove(callback)

        await _deliver(callback, athlete_id, await self.get(athlete_id))
        return Subscription(unsubscribe)

    def listener_count(self) -> int:
        """Registered gym and session callbacks; zero once every subscription is closed."""
        return (
            sum(len(v) for v in self._gym_listeners.values())
            + sum(len(v) for v in self._session_listeners.values())
        )

    async def _notify_gym(self, gym_id: int) -> None:
        ids = await self.list_ids(gym_id)
        for callback in list(self._gym_listeners.get(gym_id, [])):
            await _deliver(callback, ids)

    async def _notify_session(self, athlete_id: int) -> None:
        snapshot = await self.get(athlete_id)
        for callback in list(self._session_listeners.get(athlete_id, [])):
            await _deliver(callback, athlete_id, snapshot)


# ----------------------------------------------------------------------
# Redis backend
# ----------------------------------------------------------------------

class RedisLiveSessionStore(LiveSessionStore):
    KEY_PREFIX = "live"

    def __init__(self, url: Optional[str] = None, client: Optional[aioredis.Redis] = None):
        self._url = url or settings.REDIS_URL
        self._redis: Optional[aioredis.Redis] = client

    async def _get_redis(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=5,
            )
        return self._redis

    def _session_key(self, athlete_id: int) -> str:
        return f"{self.KEY_PREFIX}:session:{athlete_id}"

    def _gym_key(self, gym_id: int) -> str:
        return f"{self.KEY_PREFIX}:gym:{gym_id}:ids"

    def _session_channel(self, athlete_id: int) -> str:
        return f"{self.KEY_PREFIX}:session:{athlete_id}:events"

    def _gym_channel(self, gym_id: int) -> str:
        return f"{self.KEY_PREFIX}:gym:{gym_id}:events"

    async def get(self, athlete_id: int) -> Optional[LiveSessionSnapshot]:
        redis = await self._get_redis()
        raw = await redis.hgetall(self._session_key(athlete_id))
        doc = {field: json.loads(value) for field, value in raw.items()}
        return _parse_snapshot(athlete_id, doc)

    async def upsert(self, athlete_id: int, gym_id: int, fields: Dict[str, Any]) -> None:
        redis = await self._get_redis()
        mapping = {field: json.dumps(value) for field, value in {**fields, "gym_id": gym_id}.items()}
        async with redis.pipeline(transaction=True) as pipe:
            pipe.hset(self._session_key(athlete_id), mapping=mapping)
            pipe.sadd(self._gym_key(gym_id), athlete_id)
            pipe.publish(self._session_channel(athlete_id), "updated")
            pipe.publish(self._gym_channel(gym_id), "changed")
            await pipe.execute()

    async def delete(self, athlete_id: int) -> None:
        redis = await self._get_redis()
        raw_gym_id = await redis.hget(self._session_key(athlete_id), "gym_id")
        async with redis.pipeline(transaction=True) as pipe:
            pipe.delete(self._session_key(athlete_id))
            pipe.publish(self._session_channel(athlete_id), "deleted")
            if raw_gym_id is not None:
                gym_id = json.loads(raw_gym_id)
                pipe.srem(self._gym_key(gym_id), athlete_id)
                pipe.publish(self._gym_channel(gym_id), "changed")
            await pipe.execute()

    async def list_ids(self, gym_id: int) -> Set[int]:
        redis = await self._get_redis()
        members = await redis.smembers(self._gym_key(gym_id))
        return {int(member) for member in members}

    async def subscribe_gym(self, gym_id: int, callback: IdsCallback) -> Subscription:
        async def on_message():
            await callback(await self.list_ids(gym_id))

        return await self._subscribe(self._gym_channel(gym_id), on_message)

    async def subscribe_session(self, athlete_id: int, callback: SnapshotCallback) -> Subscription:
        async def on_message():
            await callback(athlete_id, await self.get(athlete_id))

        return await self._subscribe(self._session_channel(athlete_id), on_message)

    async def _subscribe(self, channel: str, on_message: Callable[[], Awaitable[None]]) -> Subscription:
        redis = await self._get_redis()
        pubsub = redis.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(channel)

        async def listen():
            async for message in pubsub.listen():
                if message.get("type") == "message":
                    await _deliver(on_message)

        # Subscribe first, then read: a change between the two is not lost
        await _deliver(on_message)
        task = asyncio.create_task(listen())

        async def unsubscribe():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Live listener on %s stopped with an error", channel)
            try:
                await pubsub.unsubscribe(channel)
            finally:
                await pubsub.aclose()

        return Subscription(unsubscribe)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


_store: Optional[LiveSessionStore] = None


def create_live_store(backend: Optional[str] = None) -> LiveSessionStore:
    backend = (backend or settings.LIVE_STORE_BACKEND).lower()
    if backend == "memory":
        return MemoryLiveSessionStore()
    if backend == "redis":
        return RedisLiveSessionStore()
    raise ValueError(f"Unknown live store backend: {backend}")


def get_live_store() -> LiveSessionStore:
    global _store
    if _store is None:
        _store = create_live_store()
        logger.info("Live session store: %s", type(_store).__name__)
    return _store


async def close_live_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None
