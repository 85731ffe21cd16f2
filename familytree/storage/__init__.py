"""Photo blob storage and the batch uploader."""

from familytree.storage.b2 import B2BlobStore, BlobStore, StoredBlob
from familytree.storage.uploads import BatchResult, UploadItem, upload_batch

__all__ = ["B2BlobStore", "BlobStore", "StoredBlob", "BatchResult", "UploadItem", "upload_batch"]
