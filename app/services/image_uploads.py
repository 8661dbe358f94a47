"""Async glue around ImageStore for request handlers.

The store talks to Spaces with blocking boto3 calls, so every call runs in a
worker thread. Uploads are shielded: if the request is cancelled while the
upload is in flight, the upload is allowed to finish and is then deleted.
"""
import asyncio
import logging
from dataclasses import dataclass

from app.services.errors import ImageRejected
from app.services.image_store import (
    ImageConstraints,
    ImageStore,
    PutOptions,
    UploadResult,
    dated_folder,
    unique_filename,
)

logger = logging.getLogger(__name__)

# Strong references for work that outlives a cancelled request.
_background_tasks: set[asyncio.Future] = set()


@dataclass
class ImageUpload:
    data: bytes
    filename: str | None = None
    content_type: str | None = None


async def upload_image(
    store: ImageStore,
    upload: ImageUpload,
    constraints: ImageConstraints,
    folder_root: str,
    transformation: dict | None = None,
) -> UploadResult:
    """validate -> transform -> put. Raises ImageRejected or UploadFailed."""
    check = await asyncio.to_thread(store.validate, upload.data, constraints)
    if not check.ok:
        raise ImageRejected(check.reason)

    processed = await asyncio.to_thread(store.transform, upload.data)
    options = PutOptions(
        public_id=unique_filename(upload.filename, processed),
        transformation=dict(transformation or {}),
    )
    put_task = asyncio.ensure_future(
        asyncio.to_thread(store.put, processed, dated_folder(folder_root), options)
    )
    try:
        return await asyncio.shield(put_task)
    except asyncio.CancelledError:
        _keep_alive(put_task)
        put_task.add_done_callback(lambda task: _discard_late_upload(store, task))
        raise


def _discard_late_upload(store: ImageStore, task: asyncio.Future) -> None:
    if task.cancelled() or task.exception() is not None:
        return
    result: UploadResult = task.result()
    logger.warning("Request cancelled during upload; removing %s", result.external_id)
    _keep_alive(asyncio.ensure_future(discard_image(store, result.external_id, reason="cancelled upload")))


def _keep_alive(task: asyncio.Future) -> asyncio.Future:
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def discard_image(store: ImageStore, external_id: str | None, reason: str) -> bool:
    """Best-effort delete. Failures are logged and left for reconciliation."""
    if not external_id:
        return True
    try:
        deleted = await asyncio.shield(asyncio.to_thread(store.delete, external_id))
    except Exception:
        logger.warning("Image cleanup raised for %s (%s)", external_id, reason, exc_info=True)
        return False
    if not deleted:
        logger.warning("Image cleanup failed for %s (%s); asset left orphaned", external_id, reason)
    return deleted
