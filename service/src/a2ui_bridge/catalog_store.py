"""SQLite-backed catalog cache for deployments that outlive one process."""

import asyncio
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Tuple

import aiosqlite

from .catalog_cache import Catalog, CatalogCache

logger = logging.getLogger(__name__)


class SqliteCatalogCache(CatalogCache):
    """
    Catalog cache persisted with aiosqlite.

    Catalogs are stored as JSON text, one row per session. Expiry is
    enforced when reading and by ``evict_expired``.
    """

    def __init__(self, db_path: str, ttl_minutes: Optional[int] = 60):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ttl = timedelta(minutes=ttl_minutes) if ttl_minutes else None
        self._initialized = False
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Initialize database schema (idempotent)."""
        async with self._lock:
            if self._initialized:
                return

            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("""
                    CREATE TABLE IF NOT EXISTS catalogs (
                        session_id TEXT PRIMARY KEY,
                        catalog TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)

                await db.execute("""
                    CREATE INDEX IF NOT EXISTS idx_catalogs_updated_at
                    ON catalogs(updated_at)
                """)

                await db.commit()
                logger.info(f"Catalog store initialized at {self.db_path}")
                self._initialized = True

    def _cutoff(self) -> Optional[str]:
        if self.ttl is None:
            return None
        return (datetime.now() - self.ttl).isoformat()

    async def put(self, session_id: str, catalog: Catalog) -> None:
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO catalogs (session_id, catalog, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    catalog = excluded.catalog,
                    updated_at = excluded.updated_at
                """,
                (session_id, json.dumps(catalog), datetime.now().isoformat()),
            )
            await db.commit()

        logger.debug(f"Persisted catalog for session {session_id}")

    async def _read(self, session_id: str) -> Optional[Tuple[str, str]]:
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT catalog, updated_at FROM catalogs WHERE session_id = ?",
                (session_id,),
            ) as cursor:
                return await cursor.fetchone()

    async def get(self, session_id: str) -> Optional[Catalog]:
        await self.initialize()

        cutoff = self._cutoff()
        row = await self._read(session_id)
        if row is None:
            return None

        catalog_json, updated_at = row
        if cutoff is not None and updated_at < cutoff:
            logger.info(f"Catalog for session {session_id} expired")
            # Only the stale row; a put since the read must survive
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    "DELETE FROM catalogs WHERE session_id = ? AND updated_at < ?",
                    (session_id, cutoff),
                )
                await db.commit()
            return None

        return json.loads(catalog_json)

    async def delete(self, session_id: str) -> None:
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM catalogs WHERE session_id = ?", (session_id,))
            await db.commit()

    async def count(self) -> int:
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM catalogs") as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    async def evict_expired(self) -> int:
        cutoff = self._cutoff()
        if cutoff is None:
            return 0

        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "DELETE FROM catalogs WHERE updated_at < ?", (cutoff,)
            )
            await db.commit()
            removed = cursor.rowcount

        if removed:
            logger.info(f"Evicted {removed} expired catalog(s)")
        return removed
