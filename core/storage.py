"""
Core Storage Utilities.

Thin wrappers over the Supabase Storage bucket that holds gallery images:
storage-key generation, upload without overwrite, batch removal and public
URL resolution. Storage failures are re-raised as `StoreError` so the
operations layer handles database and storage errors the same way.
"""
import asyncio
import os
import time
from typing import List, Optional

from storage3.utils import StorageException

from core.config import settings, logger as core_logger
from core.errors import StoreError
from core.utils import random_token

logger = core_logger.getChild("Storage")

STORAGE_KEY_PREFIX = "collections"
STORAGE_TOKEN_LENGTH = 11


def storage_error_message(e: Exception) -> str:
    """Extracts a readable message from a StorageException (its payload is usually a dict)."""
    payload = e.args[0] if e.args else None
    if isinstance(payload, dict):
        return payload.get("message") or payload.get("error") or str(payload)
    return str(e)


def build_storage_key(collection_id: str, file_name: str, fallback_extension: str = "") -> str:
    """
    Builds `collections/<collection_id>/<epoch_ms>-<token>.<ext>` for a new upload.

    The extension comes from the original file name; names without one use
    `fallback_extension` (the transcoded format's extension).
    """
    extension = os.path.splitext(file_name or "")[1].lstrip(".") or fallback_extension
    object_name = f"{int(time.time() * 1000)}-{random_token(STORAGE_TOKEN_LENGTH)}"
    if extension:
        object_name = f"{object_name}.{extension.lower()}"
    return f"{STORAGE_KEY_PREFIX}/{collection_id}/{object_name}"


async def upload_object(db_client, key: str, data: bytes, content_type: str,
                        bucket_name: Optional[str] = None) -> str:
    """Uploads `data` under `key` without overwriting. Returns the stored path."""
    bucket_name = bucket_name or settings.IMAGE_STORAGE_BUCKET
    logger.info(f"[{key}] Uploading {len(data)} bytes to bucket '{bucket_name}'.")

    def do_upload():
        return db_client.storage.from_(bucket_name).upload(
            path=key,
            file=data,
            file_options={
                "content-type": content_type,
                "cache-control": settings.STORAGE_CACHE_CONTROL,
                "upsert": "false",
            },
        )

    try:
        response = await asyncio.to_thread(do_upload)
    except StorageException as e:
        message = storage_error_message(e)
        logger.error(f"[{key}] Storage upload failed: {message}")
        raise StoreError(f"Error uploading image: {message}")

    # Recent storage3 versions return an UploadResponse carrying the stored path
    stored_path = getattr(response, "path", None) or key
    logger.debug(f"[{key}] Upload finished, stored as '{stored_path}'.")
    return stored_path


async def remove_objects(db_client, keys: List[str], bucket_name: Optional[str] = None) -> List[dict]:
    """Removes `keys` in one batch call. Returns the entries the bucket reports as removed."""
    bucket_name = bucket_name or settings.IMAGE_STORAGE_BUCKET
    logger.info(f"Removing {len(keys)} object(s) from bucket '{bucket_name}'.")

    def do_remove():
        return db_client.storage.from_(bucket_name).remove(keys)

    try:
        removed = await asyncio.to_thread(do_remove)
    except StorageException as e:
        message = storage_error_message(e)
        logger.error(f"Storage removal of {len(keys)} object(s) failed: {message}")
        raise StoreError(f"Error deleting image from storage: {message}")
    return removed or []


def get_public_url(db_client, key: str, bucket_name: Optional[str] = None) -> str:
    """Builds the public URL of `key`; no request is made."""
    bucket_name = bucket_name or settings.IMAGE_STORAGE_BUCKET
    return db_client.storage.from_(bucket_name).get_public_url(key)
