"""Session-scoped catalog cache with time and size bounded eviction."""

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

Catalog = Dict[str, Any]


class CatalogCache(ABC):
    """
    Key/value store mapping a session id to its widget catalog.

    Catalogs are replace-only: ``put`` overwrites wholesale and a stored
    catalog is never mutated. ``get`` returns None for an unknown or
    expired session; callers decide how to report that.
    """

    _cleanup_task: Optional["asyncio.Task[None]"] = None

    @abstractmethod
    async def put(self, session_id: str, catalog: Catalog) -> None:
        """Store or replace the catalog for a session."""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[Catalog]:
        """Return the session's catalog, or None when absent."""

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        """Drop a session's catalog (no-op when absent)."""

    @abstractmethod
    async def count(self) -> int:
        """Number of live sessions."""

    async def evict_expired(self) -> int:
        """Remove expired entries. Returns the number removed."""
        return 0

    def start_cleanup_task(self, interval_seconds: int = 60) -> None:
        """Start background eviction task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(
                self._cleanup_loop(interval_seconds)
            )
            logger.info("Catalog cleanup task started")

    async def _cleanup_loop(self, interval_seconds: int) -> None:
        """Background task to evict expired catalogs."""
        while True:
            try:
                await asyncio.sleep(interval_seconds)
                await self.evict_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in catalog cleanup loop: {e}", exc_info=True)

    async def close(self) -> None:
        """Stop background eviction."""
        task = self._cleanup_task
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None


class InMemoryCatalogCache(CatalogCache):
    """
    Process-local catalog cache.

    Features:
    - Single lock around the table (last writer wins)
    - TTL measured from the last put
    - Size bound with least-recently-written eviction
    - Optional background cleanup task
    """

    def __init__(
        self,
        ttl_minutes: Optional[int] = 60,
        max_sessions: Optional[int] = 1000,
    ):
        self.ttl = timedelta(minutes=ttl_minutes) if ttl_minutes else None
        self.max_sessions = max_sessions
        self._entries: "OrderedDict[str, Tuple[Catalog, datetime]]" = OrderedDict()
        self._lock = asyncio.Lock()

    def _is_expired(self, stored_at: datetime, now: datetime) -> bool:
        return self.ttl is not None and now - stored_at > self.ttl

    async def put(self, session_id: str, catalog: Catalog) -> None:
        snapshot = copy.deepcopy(catalog)
        async with self._lock:
            self._entries.pop(session_id, None)
            self._entries[session_id] = (snapshot, datetime.now())

            if self.max_sessions is not None:
                while len(self._entries) > self.max_sessions:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.info(f"Evicted catalog for session {evicted} (size limit)")

        logger.debug(f"Stored catalog for session {session_id}")

    async def get(self, session_id: str) -> Optional[Catalog]:
        async with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None

            catalog, stored_at = entry
            if self._is_expired(stored_at, datetime.now()):
                del self._entries[session_id]
                logger.info(f"Catalog for session {session_id} expired")
                return None

            return copy.deepcopy(catalog)

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            self._entries.pop(session_id, None)

    async def count(self) -> int:
        async with self._lock:
            return len(self._entries)

    async def evict_expired(self) -> int:
        now = datetime.now()
        async with self._lock:
            expired = [
                sid
                for sid, (_, stored_at) in self._entries.items()
                if self._is_expired(stored_at, now)
            ]
            for sid in expired:
                del self._entries[sid]

        if expired:
            logger.info(f"Evicted {len(expired)} expired catalog(s)")
        return len(expired)
