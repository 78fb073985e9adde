# services/gallery_service/app/collection_crud.py
import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from core.config import logger as core_logger
from core.errors import GalleryError, InvalidInput, NotFound, StoreError, Unauthenticated
from core.models import Collection, CollectionCreate, CollectionUpdate, OperationResult
from core.storage import remove_objects
from core.supabase_client import COLLECTIONS_TABLE, IMAGES_TABLE, get_current_user, run_query
from core.utils import slugify

logger = core_logger.getChild("GalleryService").getChild("Collections")

# Columns of each image returned alongside a collection looked up by slug
SLUG_LOOKUP_SELECT = """
    *,
    images(
        id,
        file_path,
        file_name,
        title,
        description,
        sort_order
    )
"""
OWNER_LISTING_SELECT = "*, images(count)"


def _dump(collection: Collection) -> Dict[str, Any]:
    return collection.model_dump(mode="json", exclude_none=True)


def _failure(job_prefix: str, action: str, e: Exception) -> OperationResult:
    """Converts an exception raised inside an operation into a failed result."""
    if isinstance(e, GalleryError):
        logger.warning(f"{job_prefix} {action} failed ({e.kind.value}): {e.message}")
    else:
        logger.error(f"{job_prefix} Unexpected error {action}: {e}", exc_info=True)
    return OperationResult.from_error(e)


async def create_collection(db_client, title: str, description: str = "", is_public: bool = True,
                            access_token: Optional[str] = None) -> OperationResult:
    """
    Creates a new collection owned by the signed-in user.

    Args:
        db_client: Supabase client used for auth and the insert.
        title: Display title; the slug is derived from it.
        description: Optional description.
        is_public: Whether the collection is visible to everyone.
        access_token: JWT of the acting user; without it the client's own session is used.

    Returns:
        OperationResult with the created collection in `data`.
    """
    job_prefix = f"[collection:{title!r}]"
    try:
        try:
            payload = CollectionCreate(title=title, description=description or "", is_public=is_public)
        except ValidationError as e:
            raise InvalidInput(e.errors()[0].get("msg", "Invalid collection data."))

        try:
            user = await get_current_user(db_client, access_token)
        except Exception as e:
            logger.warning(f"{job_prefix} Could not resolve current user: {e}")
            user = None
        if not user:
            raise Unauthenticated("User not authenticated")

        row = {**payload.model_dump(), "slug": slugify(payload.title), "user_id": user.id}
        logger.debug(f"{job_prefix} Inserting collection with slug '{row['slug']}' for user {user.id}.")

        def db_call():
            return db_client.table(COLLECTIONS_TABLE)\
                .insert(row)\
                .execute()

        response = await run_query(db_call, job_prefix, "creating collection")
        if not response.data:
            raise StoreError("Error creating collection: insert returned no row")

        collection = Collection(**response.data[0])
        logger.info(f"{job_prefix} Created collection {collection.id} (slug '{collection.slug}').")
        return OperationResult.ok(_dump(collection))
    except Exception as e:
        return _failure(job_prefix, "creating collection", e)


async def list_collections_by_owner(db_client, user_id: str) -> OperationResult:
    """Lists a user's collections, newest first, each with its image count."""
    job_prefix = f"[user:{user_id}]"
    try:
        if not user_id:
            raise InvalidInput("User ID is required to list collections.")

        def db_call():
            return db_client.table(COLLECTIONS_TABLE)\
                .select(OWNER_LISTING_SELECT)\
                .eq('user_id', user_id)\
                .order('created_at', desc=True)\
                .execute()

        response = await run_query(db_call, job_prefix, "fetching collections")
        collections: List[Dict[str, Any]] = [_dump(Collection(**item)) for item in (response.data or [])]
        logger.info(f"{job_prefix} Retrieved {len(collections)} collections.")
        return OperationResult.ok(collections)
    except Exception as e:
        return _failure(job_prefix, "listing collections", e)


async def get_collection_by_slug(db_client, slug: str, include_private: bool = False) -> OperationResult:
    """
    Fetches one collection and its images (ascending sort_order) by slug.

    Private collections are reported as not found unless `include_private` is set.
    """
    job_prefix = f"[slug:{slug}]"
    not_found_message = f"Collection not found: {slug}"
    try:
        if not slug:
            raise InvalidInput("Slug is required to fetch a collection.")

        def db_call():
            query = db_client.table(COLLECTIONS_TABLE)\
                .select(SLUG_LOOKUP_SELECT)\
                .eq('slug', slug)
            if not include_private:
                query = query.eq('is_public', True)
            return query.maybe_single().execute()

        response = await run_query(db_call, job_prefix, "fetching collection", not_found_message=not_found_message)
        # maybe_single() yields None (or empty data) when nothing matched
        if not response or not getattr(response, 'data', None):
            raise NotFound(not_found_message)

        data = dict(response.data)
        # Stable sort keeps store order for equal sort_order values
        data['images'] = sorted(data.get('images') or [], key=lambda img: img.get('sort_order') or 0)
        collection = Collection(**data)
        logger.info(f"{job_prefix} Retrieved collection {collection.id} with {len(collection.images or [])} images.")
        return OperationResult.ok(_dump(collection))
    except Exception as e:
        return _failure(job_prefix, "fetching collection", e)


async def update_collection(db_client, collection_id: str,
                            updates: Union[CollectionUpdate, Dict[str, Any]]) -> OperationResult:
    """Applies a partial update (title, description, is_public) and stamps updated_at."""
    job_prefix = f"[{collection_id}]"
    try:
        if isinstance(updates, dict):
            try:
                updates = CollectionUpdate(**updates)
            except ValidationError as e:
                raise InvalidInput(f"Invalid collection update: {e.errors()[0].get('msg')}")
        changes = updates.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise InvalidInput("No fields to update.")
        if 'title' in changes and (not changes['title'] or not changes['title'].strip()):
            raise InvalidInput("Collection title must not be empty.")

        changes['updated_at'] = datetime.datetime.now(datetime.timezone.utc).isoformat()
        logger.debug(f"{job_prefix} Updating fields: {sorted(changes)}")

        def db_call():
            return db_client.table(COLLECTIONS_TABLE)\
                .update(changes)\
                .eq('id', collection_id)\
                .execute()

        response = await run_query(db_call, job_prefix, "updating collection")
        if not response.data:
            raise NotFound(f"Collection not found: {collection_id}")

        collection = Collection(**response.data[0])
        logger.info(f"{job_prefix} Updated collection.")
        return OperationResult.ok(_dump(collection))
    except Exception as e:
        return _failure(job_prefix, "updating collection", e)


async def delete_collection(db_client, collection_id: str) -> OperationResult:
    """
    Deletes a collection together with its stored image files.

    Steps run in order and the first failure stops the sequence, so a failed
    delete can simply be retried:
      1. list the storage keys of the collection's images,
      2. remove all of them from storage in one batch,
      3. delete the collection row (image rows cascade in the database).
    """
    job_prefix = f"[{collection_id}]"
    try:
        if not collection_id:
            raise InvalidInput("Collection ID is required to delete a collection.")

        def list_call():
            return db_client.table(IMAGES_TABLE)\
                .select('file_path')\
                .eq('collection_id', collection_id)\
                .execute()

        images_response = await run_query(list_call, job_prefix, "fetching collection images")
        file_paths = [img['file_path'] for img in (images_response.data or []) if img.get('file_path')]

        if file_paths:
            await remove_objects(db_client, file_paths)
            logger.info(f"{job_prefix} Removed {len(file_paths)} stored image(s).")

        def delete_call():
            return db_client.table(COLLECTIONS_TABLE)\
                .delete()\
                .eq('id', collection_id)\
                .execute()

        response = await run_query(delete_call, job_prefix, "deleting collection")
        if not response.data:
            logger.warning(f"{job_prefix} No collection row was deleted (already gone?).")
        else:
            logger.info(f"{job_prefix} Deleted collection.")
        return OperationResult.ok({"id": collection_id, "removed_objects": len(file_paths)})
    except Exception as e:
        return _failure(job_prefix, "deleting collection", e)
