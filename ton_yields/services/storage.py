"""Snapshot persistence for the historical store.

Every backend keeps one history per pool identity, newest first, at most one
snapshot per calendar day and at most ``retention`` snapshots.
"""
from __future__ import annotations

import datetime as dt
import json
import logging
from typing import Dict, List, Optional, Protocol

from motor.motor_asyncio import AsyncIOMotorCollection
from redis.asyncio import Redis

from ton_yields.config import Settings, get_settings
from ton_yields.models import ApySnapshot, PoolHistory

logger = logging.getLogger(__name__)


class SnapshotBackend(Protocol):
    async def get(self, identity: str, date: dt.date) -> Optional[ApySnapshot]:
        ...

    async def put(self, identity: str, snapshot: ApySnapshot) -> None:
        """Insert or replace the snapshot for `snapshot.date`, then trim to retention."""
        ...

    async def recent(self, identity: str, n: int) -> List[ApySnapshot]:
        """Up to `n` snapshots, newest first."""
        ...


def upsert_snapshot(snapshots: List[ApySnapshot], snapshot: ApySnapshot, retention: int) -> List[ApySnapshot]:
    merged = [s for s in snapshots if s.date != snapshot.date]
    merged.append(snapshot)
    merged.sort(key=lambda s: s.date, reverse=True)
    return merged[:retention]


class InMemoryBackend:
    def __init__(self, retention: int = 30):
        self.retention = retention
        self._data: Dict[str, List[ApySnapshot]] = {}

    async def get(self, identity: str, date: dt.date) -> Optional[ApySnapshot]:
        return next((s for s in self._data.get(identity, []) if s.date == date), None)

    async def put(self, identity: str, snapshot: ApySnapshot) -> None:
        self._data[identity] = upsert_snapshot(self._data.get(identity, []), snapshot, self.retention)

    async def recent(self, identity: str, n: int) -> List[ApySnapshot]:
        return list(self._data.get(identity, [])[:n])


class RedisBackend:
    """One JSON-encoded PoolHistory per identity under ``{prefix}{identity}``."""

    def __init__(self, redis: Redis, retention: int = 30, prefix: str = "apy_history:"):
        self.r = redis
        self.retention = retention
        self.prefix = prefix

    def _key(self, identity: str) -> str:
        return f"{self.prefix}{identity}"

    async def _load(self, identity: str) -> PoolHistory:
        raw = await self.r.get(self._key(identity))
        if not raw:
            return PoolHistory(identity=identity)
        return PoolHistory(**json.loads(raw))

    async def get(self, identity: str, date: dt.date) -> Optional[ApySnapshot]:
        history = await self._load(identity)
        return next((s for s in history.snapshots if s.date == date), None)

    async def put(self, identity: str, snapshot: ApySnapshot) -> None:
        history = await self._load(identity)
        history.snapshots = upsert_snapshot(history.snapshots, snapshot, self.retention)
        await self.r.set(self._key(identity), json.dumps(history.model_dump(mode="json")))

    async def recent(self, identity: str, n: int) -> List[ApySnapshot]:
        return (await self._load(identity)).snapshots[:n]


class MongoBackend:
    """One document per identity; dates stored as ISO strings so they sort lexically."""

    def __init__(self, collection: AsyncIOMotorCollection, retention: int = 30):
        self.col = collection
        self.retention = retention

    async def _snapshots(self, identity: str) -> List[ApySnapshot]:
        doc = await self.col.find_one({"identity": identity}, {"_id": 0, "snapshots": 1})
        if not doc:
            return []
        return [ApySnapshot(**s) for s in doc.get("snapshots") or []]

    async def get(self, identity: str, date: dt.date) -> Optional[ApySnapshot]:
        return next((s for s in await self._snapshots(identity) if s.date == date), None)

    async def put(self, identity: str, snapshot: ApySnapshot) -> None:
        doc = snapshot.model_dump(mode="json")
        await self.col.update_one(
            {"identity": identity},
            {"$pull": {"snapshots": {"date": doc["date"]}}},
            upsert=True,
        )
        await self.col.update_one(
            {"identity": identity},
            {
                "$push": {
                    "snapshots": {
                        "$each": [doc],
                        "$sort": {"date": -1},
                        "$slice": self.retention,
                    }
                }
            },
            upsert=True,
        )

    async def recent(self, identity: str, n: int) -> List[ApySnapshot]:
        return (await self._snapshots(identity))[:n]


async def build_backend(settings: Optional[Settings] = None) -> SnapshotBackend:
    settings = settings or get_settings()
    kind = settings.HISTORY_BACKEND.lower()
    retention = settings.HISTORY_RETENTION_DAYS
    if kind == "redis":
        from ton_yields.clients.redis import get_redis

        return RedisBackend(await get_redis(), retention=retention)
    if kind == "mongo":
        from ton_yields import db

        await db.connect()
        return MongoBackend(db.history_collection(), retention=retention)
    if kind != "memory":
        raise ValueError(f"Unknown HISTORY_BACKEND: {settings.HISTORY_BACKEND!r}")
    logger.warning("Using in-memory history backend; averages reset on restart")
    return InMemoryBackend(retention=retention)
