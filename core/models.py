# core/models.py
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional, Dict, Any, Union
from enum import Enum
import datetime

# --- Error Kinds & Result Wrapper ---

class ErrorKind(str, Enum):
    """Failure categories reported by gallery operations."""
    UNAUTHENTICATED = "Unauthenticated"
    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    STORE_ERROR = "StoreError"
    TRANSCODE_ERROR = "TranscodeError"


class CompensationOutcome(BaseModel):
    """Records a cleanup action attempted after a failed step."""
    action: str = Field(..., description="What was attempted, e.g. 'remove_uploaded_object'")
    target: str = Field(..., description="Storage key or row id the action applied to")
    succeeded: bool
    error: Optional[str] = None


class OperationResult(BaseModel):
    """Uniform result of every data-access operation: success with data, or failure with a reason."""
    success: bool
    data: Any | None = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    compensation: Optional[CompensationOutcome] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str, compensation: Optional[CompensationOutcome] = None) -> "OperationResult":
        return cls(success=False, error=message, error_kind=kind, compensation=compensation)

    @classmethod
    def from_error(cls, err: Exception, compensation: Optional[CompensationOutcome] = None) -> "OperationResult":
        """Converts a raised GalleryError (or anything else, as StoreError) into a failure result."""
        kind = getattr(err, "kind", ErrorKind.STORE_ERROR)
        message = getattr(err, "message", None) or str(err) or "An unexpected error occurred."
        return cls.fail(kind, message, compensation=compensation)


# --- Core Data Models ---

# Primary keys may be int8 identities or uuids depending on the schema
RowId = Union[int, str]


class ImageRecord(BaseModel):
    """Metadata row for one stored image."""
    id: Optional[RowId] = None
    collection_id: Optional[RowId] = None
    file_path: str = Field(..., description="Storage key of the image inside the bucket")
    file_name: Optional[str] = Field(None, description="Original name of the uploaded file")
    file_size: Optional[int] = Field(None, description="Size in bytes of the stored (transcoded) object")
    title: Optional[str] = None
    description: Optional[str] = None
    sort_order: int = 0
    created_at: Optional[datetime.datetime] = None

    class Config:
        from_attributes = True


class Collection(BaseModel):
    """A named, ordered group of images owned by one user."""
    id: RowId
    title: str
    slug: str
    description: Optional[str] = ""
    is_public: bool = True
    user_id: Optional[str] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None
    image_count: Optional[int] = Field(None, description="Number of images; only set in owner listings")
    images: Optional[List[ImageRecord]] = Field(None, description="Images sorted by sort_order; only set in slug lookups")

    class Config:
        from_attributes = True

    @model_validator(mode='before')
    @classmethod
    def flatten_image_count(cls, values):
        # PostgREST returns `images(count)` as [{"count": n}]
        if isinstance(values, dict) and values.get("image_count") is None:
            images = values.get("images")
            if isinstance(images, list) and len(images) == 1 and set(images[0].keys()) == {"count"}:
                values = {**values, "image_count": images[0]["count"], "images": None}
        return values


class CollectionCreate(BaseModel):
    """Input for creating a collection."""
    title: str
    description: str = ""
    is_public: bool = True

    @field_validator('title')
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Collection title must not be empty.")
        return v


class CollectionUpdate(BaseModel):
    """Partial update; only fields that are set are written."""
    title: Optional[str] = None
    description: Optional[str] = None
    is_public: Optional[bool] = None

    class Config:
        extra = 'forbid'


class ImageUpload(BaseModel):
    """An image file as received from the caller, before transcoding."""
    file_name: str
    content_type: str = ""
    data: bytes


class TranscodedImage(BaseModel):
    """Output of the image transcode step."""
    data: bytes
    width: int
    height: int
    format: str = Field(..., description="Pillow format name, e.g. JPEG, PNG")
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


# --- Service Response Models ---

class GalleryResponse(BaseModel):
    """Standard response wrapper for the Gallery Service."""
    status: str = Field(description="'success' or 'error'")
    data: Any | None = Field(default=None, description="The primary data payload (depends on the endpoint)")
    message: Optional[str] = Field(default=None, description="Optional status message or error details")
    error_kind: Optional[ErrorKind] = None
    compensation: Optional[CompensationOutcome] = None
