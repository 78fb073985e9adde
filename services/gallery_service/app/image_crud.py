# services/gallery_service/app/image_crud.py
import asyncio
import os
from typing import Optional

from pydantic import ValidationError

from core.config import settings, logger as core_logger
from core.errors import GalleryError, InvalidInput, NotFound, StoreError
from core.imaging import transcode_image
from core.models import CompensationOutcome, ImageRecord, ImageUpload, OperationResult
from core.storage import build_storage_key, get_public_url, remove_objects, upload_object
from core.supabase_client import IMAGES_TABLE, run_query

logger = core_logger.getChild("GalleryService").getChild("Images")

COMPENSATE_REMOVE_UPLOAD = "remove_uploaded_object"


def _failure(job_prefix: str, action: str, e: Exception,
             compensation: Optional[CompensationOutcome] = None) -> OperationResult:
    if isinstance(e, GalleryError):
        logger.warning(f"{job_prefix} {action} failed ({e.kind.value}): {e.message}")
    else:
        logger.error(f"{job_prefix} Unexpected error {action}: {e}", exc_info=True)
    return OperationResult.from_error(e, compensation=compensation)


def _default_title(file_name: str) -> str:
    return os.path.splitext(os.path.basename(file_name or ""))[0]


async def _remove_orphaned_upload(db_client, file_path: str, job_prefix: str) -> CompensationOutcome:
    """Removes an object whose metadata row could not be written. Never raises."""
    try:
        await remove_objects(db_client, [file_path])
        logger.info(f"{job_prefix} Removed orphaned upload '{file_path}'.")
        return CompensationOutcome(action=COMPENSATE_REMOVE_UPLOAD, target=file_path, succeeded=True)
    except Exception as e:
        logger.error(f"{job_prefix} Could not remove orphaned upload '{file_path}': {e}")
        return CompensationOutcome(action=COMPENSATE_REMOVE_UPLOAD, target=file_path, succeeded=False, error=str(e))


async def upload_image(db_client, upload: ImageUpload, collection_id: str,
                       max_dimension: int = settings.IMAGE_MAX_DIMENSION,
                       quality: int = settings.IMAGE_QUALITY) -> OperationResult:
    """
    Downscales an image, stores it in the bucket and records its metadata row.

    If the metadata insert fails the stored object is removed again; the
    outcome of that cleanup is returned in the result's `compensation`.

    Returns:
        OperationResult with `{"image": <row>, "file_path": <storage key>}` on success.
    """
    job_prefix = f"[{collection_id}:{getattr(upload, 'file_name', None)}]"
    try:
        if not upload or not (upload.content_type or "").startswith("image/"):
            raise InvalidInput("Invalid file type. Please upload an image.")
        if not upload.data:
            raise InvalidInput("Uploaded file is empty.")
        if not collection_id:
            raise InvalidInput("Collection ID is required to upload an image.")

        # Pillow work is CPU-bound; keep it off the event loop
        transcoded = await asyncio.to_thread(transcode_image, upload.data, max_dimension, quality)

        file_path = build_storage_key(collection_id, upload.file_name, fallback_extension=transcoded.format.lower())
        stored_path = await upload_object(db_client, file_path, transcoded.data, transcoded.content_type)
    except Exception as e:
        return _failure(job_prefix, "uploading image", e)

    row = {
        "collection_id": collection_id,
        "file_path": stored_path,
        "file_name": upload.file_name, # Store original file name
        "file_size": transcoded.size,
        "title": _default_title(upload.file_name),
        "sort_order": 0,
    }

    def db_call():
        return db_client.table(IMAGES_TABLE)\
            .insert(row)\
            .execute()

    try:
        response = await run_query(db_call, job_prefix, "saving image metadata")
        if not response.data:
            raise StoreError("Error saving image metadata: insert returned no row")
    except Exception as e:
        compensation = await _remove_orphaned_upload(db_client, stored_path, job_prefix)
        return _failure(job_prefix, "saving image metadata", e, compensation=compensation)

    # The row exists from here on; the stored object must stay with it
    saved = response.data[0]
    try:
        image = ImageRecord(**saved).model_dump(mode="json", exclude_none=True)
    except ValidationError as e:
        logger.warning(f"{job_prefix} Saved image row did not match ImageRecord, returning it as stored: {e}")
        image = saved

    logger.info(f"{job_prefix} Uploaded image {image.get('id')} as '{stored_path}' ({transcoded.width}x{transcoded.height}, {transcoded.size} bytes).")
    return OperationResult.ok({
        "image": image,
        "file_path": stored_path,
    })


def get_image_url(db_client, file_path: str) -> str:
    """
    Gets the public URL for an image.

    Raises:
        InvalidInput: If no file path is given.
    """
    if not file_path:
        raise InvalidInput("File path is required to get the image URL.")
    return get_public_url(db_client, file_path)


async def delete_image(db_client, image_id: str) -> OperationResult:
    """
    Deletes an image from storage, then its metadata row.

    The first failing step aborts. A missing stored object counts as a
    failure, so the row is kept for the caller to inspect.
    """
    job_prefix = f"[image:{image_id}]"
    not_found_message = f"Image not found: {image_id}"
    try:
        if not image_id:
            raise InvalidInput("Image ID is required to delete an image.")

        def fetch_call():
            return db_client.table(IMAGES_TABLE)\
                .select('file_path')\
                .eq('id', image_id)\
                .limit(1)\
                .maybe_single()\
                .execute()

        response = await run_query(fetch_call, job_prefix, "fetching image data", not_found_message=not_found_message)
        if not response or not getattr(response, 'data', None):
            raise NotFound(not_found_message)
        file_path = response.data.get('file_path')

        removed = await remove_objects(db_client, [file_path])
        if not removed:
            raise StoreError(f"Error deleting image from storage: object '{file_path}' not found")

        def delete_call():
            return db_client.table(IMAGES_TABLE)\
                .delete()\
                .eq('id', image_id)\
                .execute()

        try:
            await run_query(delete_call, job_prefix, "deleting image from database")
        except StoreError:
            logger.error(f"{job_prefix} Stored object '{file_path}' was removed but the image row remains.")
            raise

        logger.info(f"{job_prefix} Deleted image '{file_path}'.")
        return OperationResult.ok({"id": image_id, "file_path": file_path})
    except Exception as e:
        return _failure(job_prefix, "deleting image", e)
