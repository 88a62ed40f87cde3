"""Unit tests for the in-memory catalog cache."""

import asyncio
from datetime import datetime, timedelta

import pytest

from a2ui_bridge.catalog_cache import InMemoryCatalogCache


@pytest.fixture
def cache():
    return InMemoryCatalogCache(ttl_minutes=60, max_sessions=3)


@pytest.mark.asyncio
async def test_put_then_get_returns_catalog(cache):
    catalog = {"type": "object", "properties": {"text": {"type": "string"}}}
    await cache.put("s1", catalog)

    assert await cache.get("s1") == catalog


@pytest.mark.asyncio
async def test_get_unknown_session_returns_none(cache):
    assert await cache.get("missing") is None


@pytest.mark.asyncio
async def test_put_replaces_wholesale(cache):
    await cache.put("s1", {"type": "object", "title": "first"})
    await cache.put("s1", {"type": "string"})

    assert await cache.get("s1") == {"type": "string"}
    assert await cache.count() == 1


@pytest.mark.asyncio
async def test_stored_catalog_is_isolated_from_callers(cache):
    catalog = {"type": "object", "properties": {}}
    await cache.put("s1", catalog)

    catalog["properties"]["injected"] = {"type": "string"}
    fetched = await cache.get("s1")
    fetched["title"] = "mutated"

    assert await cache.get("s1") == {"type": "object", "properties": {}}


@pytest.mark.asyncio
async def test_oldest_session_evicted_past_size_limit(cache):
    for i in range(4):
        await cache.put(f"s{i}", {"type": "object", "title": str(i)})

    assert await cache.count() == 3
    assert await cache.get("s0") is None
    assert await cache.get("s3") == {"type": "object", "title": "3"}


@pytest.mark.asyncio
async def test_rewrite_refreshes_eviction_order(cache):
    await cache.put("a", {"title": "a"})
    await cache.put("b", {"title": "b"})
    await cache.put("c", {"title": "c"})
    await cache.put("a", {"title": "a2"})
    await cache.put("d", {"title": "d"})

    assert await cache.get("b") is None
    assert await cache.get("a") == {"title": "a2"}


@pytest.mark.asyncio
async def test_expired_catalog_is_absent(cache):
    await cache.put("s1", {"type": "object"})
    catalog, _ = cache._entries["s1"]
    cache._entries["s1"] = (catalog, datetime.now() - timedelta(minutes=61))

    assert await cache.get("s1") is None
    assert await cache.count() == 0


@pytest.mark.asyncio
async def test_evict_expired_removes_only_stale_entries(cache):
    await cache.put("old", {"title": "old"})
    await cache.put("new", {"title": "new"})
    catalog, _ = cache._entries["old"]
    cache._entries["old"] = (catalog, datetime.now() - timedelta(hours=2))

    removed = await cache.evict_expired()

    assert removed == 1
    assert await cache.get("new") == {"title": "new"}


@pytest.mark.asyncio
async def test_no_ttl_never_expires():
    cache = InMemoryCatalogCache(ttl_minutes=None, max_sessions=None)
    await cache.put("s1", {"title": "kept"})
    catalog, _ = cache._entries["s1"]
    cache._entries["s1"] = (catalog, datetime.now() - timedelta(days=365))

    assert await cache.get("s1") == {"title": "kept"}
    assert await cache.evict_expired() == 0


@pytest.mark.asyncio
async def test_delete(cache):
    await cache.put("s1", {"title": "x"})
    await cache.delete("s1")
    await cache.delete("never-existed")

    assert await cache.get("s1") is None


@pytest.mark.asyncio
async def test_concurrent_puts_last_writer_wins(cache):
    await asyncio.gather(*(cache.put("s1", {"title": str(i)}) for i in range(10)))

    assert await cache.get("s1") == {"title": "9"}


@pytest.mark.asyncio
async def test_cleanup_task_lifecycle(cache):
    cache.start_cleanup_task(interval_seconds=3600)
    task = cache._cleanup_task
    assert task is not None and not task.done()

    await cache.close()

    assert task.done()
    assert cache._cleanup_task is None
