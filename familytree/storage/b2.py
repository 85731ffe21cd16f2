"""Photo blob storage on Backblaze B2 (native API over ``httpx``).

Flow for an upload::

    b2_authorize_account  (cached for 23 hours)
    b2_get_upload_url     (per upload)
    POST <uploadUrl>      (bytes + SHA-1 header)

Objects are stored as ``photos/<uuid>.<ext>`` and served from the public
``<downloadUrl>/file/<bucket>/<name>`` URL.
"""

from __future__ import annotations

import hashlib
import re
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx

from familytree.config import Settings
from familytree.errors import StorageUnavailableError, UploadFailedError
from familytree.logging_config import get_logger

logger = get_logger(__name__)

AUTH_TTL_SECONDS = 23 * 60 * 60
_FILE_KEY_RE = re.compile(r"file/[^/]+/(.+)$")


@dataclass(frozen=True)
class StoredBlob:
    url: str
    file_name: str
    file_id: str


class BlobStore(ABC):
    """Where photo bytes live.  Metadata stays in the graph store."""

    @abstractmethod
    def upload(self, data: bytes, filename: str, content_type: str) -> StoredBlob:
        ...

    @abstractmethod
    def delete(self, file_name: str, file_id: str) -> None:
        ...

    def close(self) -> None:
        """Release any held connections."""


def object_name_for(filename: str) -> str:
    """``photos/<uuid>.<ext>``, keeping the original extension (default jpg)."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
    ext = re.sub(r"[^a-z0-9]", "", ext) or "jpg"
    return f"photos/{uuid.uuid4()}.{ext}"


def extract_file_key_from_url(url: str) -> str:
    """Object name from a public B2 URL, or ``""`` when it does not match."""
    match = _FILE_KEY_RE.search(url)
    return match.group(1) if match else ""


@dataclass
class _Authorization:
    api_url: str
    token: str
    download_url: str
    expires_at: float


class B2BlobStore(BlobStore):
    def __init__(self, config: Optional[Settings] = None, client: Optional[httpx.Client] = None) -> None:
        if config is None:
            from familytree.config import settings as config
        self.config = config
        self._client = client or httpx.Client(timeout=config.request_timeout)
        self._auth: Optional[_Authorization] = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_config(self) -> None:
        if not (self.config.b2_key_id and self.config.b2_application_key):
            raise StorageUnavailableError("B2 credentials not configured")
        if not (self.config.b2_bucket_name and self.config.b2_bucket_id):
            raise StorageUnavailableError("B2_BUCKET_NAME or B2_BUCKET_ID is not configured")

    def _request(self, method: str, url: str, action: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("B2 %s failed: %s %s", action, exc.response.status_code, exc.response.text)
            raise UploadFailedError(
                f"B2 {action} failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("B2 %s failed: %s", action, exc)
            raise UploadFailedError(f"B2 {action} failed: {exc}") from exc
        return response.json()

    def _authorize(self) -> _Authorization:
        if self._auth is not None and time.time() < self._auth.expires_at:
            return self._auth
        self._require_config()
        logger.info("Authorizing B2 account")
        data = self._request(
            "GET",
            f"{self.config.b2_api_url.rstrip('/')}/b2api/v2/b2_authorize_account",
            "authorize",
            auth=(self.config.b2_key_id, self.config.b2_application_key),
        )
        self._auth = _Authorization(
            api_url=data["apiUrl"],
            token=data["authorizationToken"],
            download_url=data["downloadUrl"],
            expires_at=time.time() + AUTH_TTL_SECONDS,
        )
        return self._auth

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def upload(self, data: bytes, filename: str, content_type: str) -> StoredBlob:
        """Store *data* and return its public URL with the B2 file reference.

        Raises:
            StorageUnavailableError: Credentials or bucket not configured.
            UploadFailedError: Any B2 HTTP failure.
        """
        self._require_config()
        auth = self._authorize()
        target = self._request(
            "POST",
            f"{auth.api_url}/b2api/v2/b2_get_upload_url",
            "get_upload_url",
            headers={"Authorization": auth.token},
            json={"bucketId": self.config.b2_bucket_id},
        )

        name = object_name_for(filename)
        uploaded = self._request(
            "POST",
            target["uploadUrl"],
            "upload",
            headers={
                "Authorization": target["authorizationToken"],
                "X-Bz-File-Name": quote(name, safe="/"),
                "Content-Type": content_type or "b2/x-auto",
                "X-Bz-Content-Sha1": hashlib.sha1(data).hexdigest(),  # noqa: S324
            },
            content=data,
        )

        url = f"{auth.download_url}/file/{self.config.b2_bucket_name}/{name}"
        logger.info("Uploaded %s to B2 as %s", filename, name)
        return StoredBlob(url=url, file_name=uploaded.get("fileName", name), file_id=uploaded["fileId"])

    def delete(self, file_name: str, file_id: str) -> None:
        auth = self._authorize()
        self._request(
            "POST",
            f"{auth.api_url}/b2api/v2/b2_delete_file_version",
            "delete_file_version",
            headers={"Authorization": auth.token},
            json={"fileName": file_name, "fileId": file_id},
        )
        logger.info("Deleted %s from B2", file_name)

    def close(self) -> None:
        self._client.close()
