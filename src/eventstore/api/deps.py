"""Event store lifecycle and FastAPI dependency functions.

Holds the process-wide ``Database`` pool and ``EventStore`` created during
application startup and exposes them to route handlers through
``get_event_store()``. Tests replace the store with
``app.dependency_overrides[get_event_store]``.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException

from eventstore.config import StoreConfig
from eventstore.db import Database
from eventstore.events import EventStore

logger = logging.getLogger(__name__)

_db: Database | None = None
_store: EventStore | None = None


async def init_event_store(config: StoreConfig) -> EventStore:
    """Open the connection pool described by *config* and build the store."""
    global _db, _store
    db = Database.from_env(
        config.db.name,
        min_pool_size=config.db.min_pool_size,
        max_pool_size=config.db.max_pool_size,
    )
    await db.connect()
    _db = db
    _store = EventStore(db)
    logger.info("Event store ready (db=%s, table=%s)", db.db_name, _store.table)
    return _store


async def shutdown_event_store() -> None:
    """Close the connection pool, if one was opened."""
    global _db, _store
    if _db is not None:
        await _db.close()
    _db = None
    _store = None


def get_event_store() -> EventStore:
    """Dependency returning the active EventStore.

    Raises HTTPException(503) when startup could not open the database.
    """
    if _store is None:
        raise HTTPException(status_code=503, detail="Event storage is not available")
    return _store


async def check_health() -> str:
    """Return ``"ok"`` when the pool answers a trivial query, else ``"degraded"``."""
    if _db is None or _db.pool is None:
        return "degraded"
    try:
        await _db.fetchval("SELECT 1")
    except Exception:
        logger.warning("Health check failed: DB pool unavailable")
        return "degraded"
    return "ok"
