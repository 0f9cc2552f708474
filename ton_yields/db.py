from __future__ import annotations

import logging
from typing import Optional, Set

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase

from ton_yields.config import get_settings

logger = logging.getLogger(__name__)

HISTORY_COLLECTION = "ton_yields_apy_history"

# This service only ever touches its own collections
ALLOWED_COLLECTIONS: Set[str] = {HISTORY_COLLECTION}

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


async def connect() -> None:
    global _client, _db
    if _client is not None and _db is not None:
        return

    settings = get_settings()
    _client = AsyncIOMotorClient(
        settings.get_mongo_uri(),
        serverSelectionTimeoutMS=5000,
        connectTimeoutMS=5000,
        retryWrites=True,
        appname="ton-yields",
    )
    _db = _client[settings.get_mongo_db_name()]

    existing = set(await _db.list_collection_names())
    for name in ALLOWED_COLLECTIONS:
        if name not in existing:
            try:
                await _db.create_collection(name)
            except Exception:
                # created by a racing process
                pass
    await _db[HISTORY_COLLECTION].create_index("identity", unique=True)

    logger.info(f"Mongo connection established to {settings.get_mongo_db_name()}/{HISTORY_COLLECTION}")


async def close() -> None:
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None


def get_collection(name: str) -> AsyncIOMotorCollection:
    """Handle to one of ALLOWED_COLLECTIONS; anything else raises PermissionError."""
    if name not in ALLOWED_COLLECTIONS:
        raise PermissionError(
            f"Access to collection '{name}' is not allowed. Use one of: {sorted(ALLOWED_COLLECTIONS)}"
        )
    if _db is None:
        raise RuntimeError("Database not initialized. Call connect() on startup.")
    return _db[name]


def history_collection() -> AsyncIOMotorCollection:
    return get_collection(HISTORY_COLLECTION)
