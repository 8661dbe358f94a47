import json

import pytest
import redis.asyncio as redis

from app.services.upload_progress import UploadProgressCache
from tests.factories import FakeRedis


class BrokenRedis:
    async def setex(self, key, ttl, value):
        raise redis.ConnectionError("down")

    async def get(self, key):
        raise redis.ConnectionError("down")


@pytest.mark.asyncio
async def test_start_stores_record_with_ttl(progress, fake_redis):
    state = await progress.start("abc", total_chunks=4, file_name="hero.png")

    assert state["uploadedChunks"] == 0
    assert state["percentage"] == 0
    assert await progress.get("abc") == state
    assert fake_redis.ttls["upload-progress:abc"] == 60
    assert json.loads(fake_redis.values["upload-progress:abc"])["fileName"] == "hero.png"


@pytest.mark.asyncio
async def test_completed_status_fills_progress(progress):
    await progress.start("abc", total_chunks=3)
    await progress.set_status("abc", "completed", url="https://cdn.test/x.webp")

    state = await progress.get("abc")

    assert state["status"] == "completed"
    assert state["percentage"] == 100
    assert state["uploadedChunks"] == 3
    assert state["url"] == "https://cdn.test/x.webp"


@pytest.mark.asyncio
async def test_status_for_unknown_upload_creates_record():
    cache = UploadProgressCache(client=FakeRedis(), ttl_seconds=5)

    await cache.set_status("new", "failed", error="boom")

    assert await cache.get("new") == {
        "uploadId": "new",
        "uploadedChunks": 0,
        "totalChunks": 1,
        "percentage": 0,
        "status": "failed",
        "error": "boom",
    }


@pytest.mark.asyncio
async def test_redis_outage_is_tolerated():
    cache = UploadProgressCache(client=BrokenRedis(), ttl_seconds=5)

    started = await cache.start("abc")
    await cache.set_status("abc", "completed")

    assert started["status"] == "uploading"
    assert await cache.get("abc") is None
