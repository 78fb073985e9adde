# core/errors.py
"""
Exceptions raised inside gallery operations.

Every operation converts these into a failed `OperationResult` at its
boundary (see `core.models.OperationResult.from_error`), so callers only see
them when they call a helper directly or use `get_image_url`.
"""
from core.models import ErrorKind


class GalleryError(Exception):
    """Base class; `kind` says which failure category the error belongs to."""
    kind: ErrorKind = ErrorKind.STORE_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(GalleryError):
    kind = ErrorKind.UNAUTHENTICATED


class InvalidInput(GalleryError):
    kind = ErrorKind.INVALID_INPUT


class NotFound(GalleryError):
    kind = ErrorKind.NOT_FOUND


class StoreError(GalleryError):
    kind = ErrorKind.STORE_ERROR


class TranscodeError(GalleryError):
    kind = ErrorKind.TRANSCODE_ERROR
