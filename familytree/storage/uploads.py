"""Batch photo uploads and blob-aware photo deletion.

A batch keeps going when one file fails: each file is validated, pushed to
the blob store and recorded on its own, and the result reports how many
made it.  Tagging a stored photo is a single batch insert.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from familytree.config import settings
from familytree.db import photos as photo_store
from familytree.db.models import Photo
from familytree.errors import (
    NotFoundError,
    StorageUnavailableError,
    UploadFailedError,
    ValidationError,
)
from familytree.logging_config import get_logger
from familytree.storage.b2 import BlobStore, StoredBlob, extract_file_key_from_url

logger = get_logger(__name__)


@dataclass
class UploadItem:
    filename: str
    content_type: str
    data: bytes


@dataclass
class BatchResult:
    photos: list[Photo] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.photos)

    @property
    def fail_count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict:
        return {
            "success_count": self.success_count,
            "fail_count": self.fail_count,
            "photos": [p.to_dict() for p in self.photos],
            "errors": self.errors,
        }


def parse_person_ids(raw: Optional[str]) -> list[str]:
    """Split a comma-separated id list, dropping blanks."""
    return [pid.strip() for pid in (raw or "").split(",") if pid.strip()]


def validate_item(item: UploadItem, max_bytes: Optional[int] = None) -> None:
    limit = settings.max_upload_bytes if max_bytes is None else max_bytes
    if not item.data:
        raise ValidationError(f"{item.filename}: file is empty")
    if not (item.content_type or "").startswith("image/"):
        raise ValidationError(f"{item.filename}: only image files can be uploaded")
    if len(item.data) > limit:
        raise ValidationError(f"{item.filename}: file is larger than {limit} bytes")


def _record(
    conn: sqlite3.Connection,
    store: BlobStore,
    blob: StoredBlob,
    metadata: Optional[dict[str, Any]],
    tags: list[str],
) -> Photo:
    """Store the photo row for an uploaded blob; on failure remove the blob again."""
    try:
        return photo_store.create_photo(
            conn,
            url=blob.url,
            file_name=blob.file_name,
            file_id=blob.file_id,
            metadata=metadata,
            person_ids=tags,
        )
    except (sqlite3.Error, NotFoundError) as exc:
        try:
            store.delete(blob.file_name, blob.file_id)
        except (StorageUnavailableError, UploadFailedError) as cleanup_exc:
            logger.error("Orphaned blob %s left in storage: %s", blob.file_name, cleanup_exc)
        raise UploadFailedError(f"Could not save photo record: {exc}") from exc


def upload_batch(
    conn: sqlite3.Connection,
    store: BlobStore,
    items: Iterable[UploadItem],
    person_ids: Iterable[str] = (),
    metadata: Optional[dict[str, Any]] = None,
    max_bytes: Optional[int] = None,
) -> BatchResult:
    """Upload every item and record a tagged photo for each success.

    Raises:
        ValidationError: If no files were given.
        NotFoundError: If a tagged person does not exist (checked up front,
            before any bytes are sent).
    """
    items = list(items)
    if not items:
        raise ValidationError("No file provided")
    tags = list(dict.fromkeys(person_ids))
    for pid in tags:
        if conn.execute("SELECT 1 FROM persons WHERE id = ?", (pid,)).fetchone() is None:
            raise NotFoundError(f"Person with id {pid} not found")

    result = BatchResult()
    for item in items:
        try:
            validate_item(item, max_bytes)
            blob = store.upload(item.data, item.filename, item.content_type)
            photo = _record(conn, store, blob, metadata, tags)
        except (ValidationError, StorageUnavailableError, UploadFailedError) as exc:
            logger.warning("Upload of %s failed: %s", item.filename, exc)
            result.errors.append({"file_name": item.filename, "error": str(exc)})
            continue
        result.photos.append(photo)

    logger.info(
        "Photo batch finished: %d uploaded, %d failed",
        result.success_count,
        result.fail_count,
    )
    return result


def delete_photo(conn: sqlite3.Connection, store: BlobStore, photo_id: str) -> bool:
    """Delete the photo record, then its blob.

    Returns ``True`` when the blob was removed too.  A blob failure is logged
    and reported through the return value; the record is already gone.
    """
    photo = photo_store.delete_photo(conn, photo_id)
    file_name = photo.file_name or extract_file_key_from_url(photo.url)
    if not (file_name and photo.file_id):
        logger.warning("Photo %s has no blob reference; record removed only", photo_id)
        return False
    try:
        store.delete(file_name, photo.file_id)
    except (StorageUnavailableError, UploadFailedError) as exc:
        logger.warning("Blob for photo %s was not deleted: %s", photo_id, exc)
        return False
    return True
