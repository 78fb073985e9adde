# services/gallery_service/app/main.py
from fastapi import FastAPI, HTTPException, Depends, Body, File, Header, Query, UploadFile, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional

from core.config import logger as core_logger
from core.errors import InvalidInput
from core.models import CollectionCreate, CollectionUpdate, ErrorKind, GalleryResponse, ImageUpload, OperationResult
from core.supabase_client import get_supabase_client
from . import collection_crud, image_crud

logger = core_logger.getChild("GalleryService") # Child logger for this service

# Failure kinds mapped to HTTP status codes
ERROR_STATUS_CODES = {
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.TRANSCODE_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.STORE_ERROR: status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Gallery Service starting up.")
    yield
    logger.info("Gallery Service shutting down.")

# --- FastAPI App Instance ---
app = FastAPI(
    title="Gallery Service",
    description="Collections and images of the portfolio gallery, backed by Supabase.",
    version="1.0.0",
    lifespan=lifespan
)


# --- Dependencies ---
async def get_db_client():
    """Dependency function to get the service-role Supabase client."""
    try:
        return await get_supabase_client(use_service_key=True)
    except (ValueError, RuntimeError) as e:
        logger.error(f"Supabase client dependency not met: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Internal error: storage backend not configured"
        )


def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Extracts the caller's JWT from an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def to_response(result: OperationResult, message: Optional[str] = None):
    """Turns an OperationResult into a GalleryResponse, with an error status code on failure."""
    if result.success:
        return GalleryResponse(status="success", data=result.data, message=message)
    status_code = ERROR_STATUS_CODES.get(result.error_kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    body = GalleryResponse(
        status="error",
        message=result.error,
        error_kind=result.error_kind,
        compensation=result.compensation,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# --- Meta ---
@app.get("/health", response_model=GalleryResponse, tags=["Meta"])
async def health_check():
    return GalleryResponse(status="success", message="Gallery Service is running")


# --- Collections ---
@app.post("/collections", response_model=GalleryResponse, status_code=status.HTTP_201_CREATED, tags=["Collections"])
async def create_collection(
    payload: CollectionCreate = Body(...),
    db_client=Depends(get_db_client),
    access_token: Optional[str] = Depends(get_bearer_token)
):
    logger.info(f"Request to create collection '{payload.title}' (public={payload.is_public})")
    result = await collection_crud.create_collection(
        db_client,
        title=payload.title,
        description=payload.description,
        is_public=payload.is_public,
        access_token=access_token,
    )
    return to_response(result, "Collection created")


@app.get("/users/{user_id}/collections", response_model=GalleryResponse, tags=["Collections"])
async def list_user_collections(user_id: str, db_client=Depends(get_db_client)):
    result = await collection_crud.list_collections_by_owner(db_client, user_id)
    return to_response(result)


@app.get("/collections/{slug}", response_model=GalleryResponse, tags=["Collections"])
async def get_collection(
    slug: str,
    include_private: bool = Query(False),
    db_client=Depends(get_db_client)
):
    result = await collection_crud.get_collection_by_slug(db_client, slug, include_private=include_private)
    return to_response(result)


@app.patch("/collections/{collection_id}", response_model=GalleryResponse, tags=["Collections"])
async def update_collection(
    collection_id: str,
    payload: CollectionUpdate = Body(...),
    db_client=Depends(get_db_client)
):
    result = await collection_crud.update_collection(db_client, collection_id, payload)
    return to_response(result, "Collection updated")


@app.delete("/collections/{collection_id}", response_model=GalleryResponse, tags=["Collections"])
async def delete_collection(collection_id: str, db_client=Depends(get_db_client)):
    logger.info(f"Request to delete collection {collection_id}")
    result = await collection_crud.delete_collection(db_client, collection_id)
    return to_response(result, "Collection deleted")


# --- Images ---
@app.post("/collections/{collection_id}/images", response_model=GalleryResponse, status_code=status.HTTP_201_CREATED, tags=["Images"])
async def upload_image(
    collection_id: str,
    file: UploadFile = File(...),
    db_client=Depends(get_db_client)
):
    upload = ImageUpload(
        file_name=file.filename or "upload",
        content_type=file.content_type or "",
        data=await file.read(),
    )
    logger.info(f"Received image upload '{upload.file_name}' ({len(upload.data)} bytes) for collection {collection_id}")
    result = await image_crud.upload_image(db_client, upload, collection_id)
    return to_response(result, "Image uploaded")


@app.get("/images/url", response_model=GalleryResponse, tags=["Images"])
async def get_image_url(file_path: str = Query(""), db_client=Depends(get_db_client)):
    try:
        url = image_crud.get_image_url(db_client, file_path)
    except InvalidInput as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return GalleryResponse(status="success", data={"file_path": file_path, "url": url})


@app.delete("/images/{image_id}", response_model=GalleryResponse, tags=["Images"])
async def delete_image(image_id: str, db_client=Depends(get_db_client)):
    logger.info(f"Request to delete image {image_id}")
    result = await image_crud.delete_image(db_client, image_id)
    return to_response(result, "Image deleted")
