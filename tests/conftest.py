"""Shared test doubles."""

from __future__ import annotations

import pytest

from familytree.errors import UploadFailedError
from familytree.storage.b2 import BlobStore, StoredBlob


class FakeStore(BlobStore):
    """In-memory blob store; uploads whose data is in *fail_on* raise."""

    def __init__(self, fail_on: tuple[bytes, ...] = (), fail_delete: bool = False) -> None:
        self.fail_on = fail_on
        self.fail_delete = fail_delete
        self.blobs: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.closed = False

    def upload(self, data: bytes, filename: str, content_type: str) -> StoredBlob:
        if data in self.fail_on:
            raise UploadFailedError("B2 upload failed: connection reset")
        name = f"photos/{len(self.blobs)}-{filename}"
        self.blobs[name] = data
        return StoredBlob(
            url=f"https://f000.b2.test/file/bucket/{name}", file_name=name, file_id=f"id-{name}"
        )

    def delete(self, file_name: str, file_id: str) -> None:
        if self.fail_delete:
            raise UploadFailedError("B2 delete_file_version failed with status 500")
        self.deleted.append(file_name)
        self.blobs.pop(file_name, None)

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def make_store():
    """Factory for :class:`FakeStore` instances."""
    return FakeStore
