import re
from types import SimpleNamespace

import pytest

from core.errors import NotFound, StoreError, TranscodeError
from core.models import Collection, ErrorKind, OperationResult
from core.storage import build_storage_key, storage_error_message
from core.supabase_client import get_current_user, has_active_session
from storage3.utils import StorageException


# --- OperationResult ---
def test_from_error_keeps_kind_and_message():
    result = OperationResult.from_error(NotFound("Collection not found: x"))
    assert result.success is False
    assert result.error_kind == ErrorKind.NOT_FOUND
    assert result.error == "Collection not found: x"


def test_from_error_unknown_exception_is_store_error():
    result = OperationResult.from_error(RuntimeError("boom"))
    assert result.error_kind == ErrorKind.STORE_ERROR
    assert result.error == "boom"


def test_error_kinds_on_exceptions():
    assert TranscodeError("x").kind == ErrorKind.TRANSCODE_ERROR
    assert StoreError("x").kind == ErrorKind.STORE_ERROR


# --- Collection model ---
def test_collection_flattens_image_count():
    collection = Collection(id="c", title="t", slug="t-abc123", images=[{"count": 4}])
    assert collection.image_count == 4
    assert collection.images is None


# --- storage helpers ---
def test_build_storage_key_keeps_original_extension():
    key = build_storage_key("col-1", "Holiday.Photo.PNG")
    assert re.fullmatch(r"collections/col-1/\d{13}-[a-z0-9]{11}\.png", key)


def test_build_storage_key_falls_back_to_format_extension():
    key = build_storage_key("col-1", "scan", fallback_extension="jpeg")
    assert key.endswith(".jpeg")


def test_build_storage_keys_differ():
    assert build_storage_key("c", "a.jpg") != build_storage_key("c", "a.jpg")


def test_storage_error_message_from_dict_payload():
    assert storage_error_message(StorageException({"message": "Bucket not found", "statusCode": 404})) == "Bucket not found"
    assert storage_error_message(StorageException("plain")) == "plain"


# --- auth helpers ---
@pytest.mark.asyncio
async def test_get_current_user(fake_db):
    fake_db.auth.get_user.return_value = SimpleNamespace(user=SimpleNamespace(id="user-1"))
    user = await get_current_user(fake_db)
    assert user.id == "user-1"
    fake_db.auth.get_user.assert_called_once_with(None)


@pytest.mark.asyncio
async def test_get_current_user_without_session(fake_db):
    fake_db.auth.get_user.return_value = None
    assert await get_current_user(fake_db) is None


@pytest.mark.asyncio
async def test_has_active_session(fake_db):
    fake_db.auth.get_session.return_value = SimpleNamespace(access_token="jwt")
    assert await has_active_session(fake_db) is True
    fake_db.auth.get_session.return_value = None
    assert await has_active_session(fake_db) is False
