import json
import logging
import uuid

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from app.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "upload-progress"

_redis_client: Redis | None = None


def get_redis() -> Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            retry=Retry(backoff=ExponentialBackoff(base=0.1), retries=3),
            retry_on_timeout=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.close()
        _redis_client = None
        logger.info("Redis client closed")


class UploadProgressCache:
    """Upload progress records in Redis, evicted by TTL.

    Progress is advisory: a Redis outage is logged and never fails the upload
    it describes.
    """

    def __init__(self, client: Redis | None = None, ttl_seconds: int | None = None):
        self._client = client
        self.ttl_seconds = ttl_seconds or settings.UPLOAD_PROGRESS_TTL_SECONDS

    @property
    def client(self) -> Redis:
        return self._client or get_redis()

    @staticmethod
    def _key(upload_id: str) -> str:
        return f"{KEY_PREFIX}:{upload_id}"

    @staticmethod
    def new_upload_id() -> str:
        return uuid.uuid4().hex

    async def _write(self, upload_id: str, progress: dict) -> None:
        try:
            await self.client.setex(self._key(upload_id), self.ttl_seconds, json.dumps(progress))
        except redis.RedisError as exc:
            logger.warning("Could not store progress for upload %s: %s", upload_id, exc)

    async def get(self, upload_id: str) -> dict | None:
        try:
            raw = await self.client.get(self._key(upload_id))
        except redis.RedisError as exc:
            logger.warning("Could not read progress for upload %s: %s", upload_id, exc)
            return None
        return json.loads(raw) if raw else None

    async def start(self, upload_id: str, total_chunks: int = 1, file_name: str | None = None) -> dict:
        progress = {
            "uploadId": upload_id,
            "fileName": file_name,
            "uploadedChunks": 0,
            "totalChunks": max(total_chunks, 1),
            "percentage": 0,
            "status": "uploading",
        }
        await self._write(upload_id, progress)
        return progress

    async def set_status(self, upload_id: str, status: str, **extra) -> None:
        progress = await self.get(upload_id)
        if progress is None:
            progress = {"uploadId": upload_id, "uploadedChunks": 0, "totalChunks": 1, "percentage": 0}
        progress["status"] = status
        if status == "completed":
            progress["percentage"] = 100
            progress["uploadedChunks"] = progress.get("totalChunks", 1)
        progress.update(extra)
        await self._write(upload_id, progress)


def get_upload_progress() -> UploadProgressCache:
    return UploadProgressCache()
