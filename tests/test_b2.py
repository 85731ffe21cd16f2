"""Tests for the Backblaze B2 blob store.  All HTTP is mocked with respx."""

from __future__ import annotations

import hashlib

import httpx
import pytest
import respx

from familytree.config import Settings
from familytree.errors import StorageUnavailableError, UploadFailedError
from familytree.storage.b2 import B2BlobStore, extract_file_key_from_url, object_name_for

API = "https://api.b2.test"
POD = "https://pod.b2.test"


@pytest.fixture()
def b2_settings(tmp_path) -> Settings:
    return Settings(
        workspace_dir=tmp_path,
        b2_key_id="key-id",
        b2_application_key="app-key",
        b2_bucket_name="family-photos",
        b2_bucket_id="bucket-123",
        b2_api_url=API,
    )


@pytest.fixture()
def b2_api():
    with respx.mock(assert_all_called=False) as router:
        router.get(f"{API}/b2api/v2/b2_authorize_account", name="authorize").mock(
            return_value=httpx.Response(
                200,
                json={
                    "apiUrl": POD,
                    "authorizationToken": "account-token",
                    "downloadUrl": "https://f000.b2.test",
                },
            )
        )
        router.post(f"{POD}/b2api/v2/b2_get_upload_url").mock(
            return_value=httpx.Response(
                200,
                json={"uploadUrl": f"{POD}/upload/bucket-123", "authorizationToken": "upload-token"},
            )
        )
        router.post(f"{POD}/upload/bucket-123", name="upload").mock(
            return_value=httpx.Response(
                200, json={"fileId": "file-xyz", "fileName": "photos/abc.jpg"}
            )
        )
        router.post(f"{POD}/b2api/v2/b2_delete_file_version", name="delete").mock(
            return_value=httpx.Response(200, json={"fileId": "file-xyz"})
        )
        yield router


class TestObjectNames:
    def test_keeps_extension(self) -> None:
        name = object_name_for("Grandma At The Beach.JPG")
        assert name.startswith("photos/")
        assert name.endswith(".jpg")

    def test_no_extension_defaults_to_jpg(self) -> None:
        assert object_name_for("scan").endswith(".jpg")

    def test_extract_file_key(self) -> None:
        url = "https://f000.b2.test/file/family-photos/photos/abc.jpg"
        assert extract_file_key_from_url(url) == "photos/abc.jpg"

    def test_extract_file_key_no_match(self) -> None:
        assert extract_file_key_from_url("https://example.com/abc.jpg") == ""


class TestUpload:
    def test_upload(self, b2_settings: Settings, b2_api) -> None:
        store = B2BlobStore(b2_settings)
        data = b"\x89PNG fake image"
        blob = store.upload(data, "photo.jpg", "image/jpeg")
        store.close()

        assert blob.file_id == "file-xyz"
        assert blob.file_name == "photos/abc.jpg"
        assert blob.url.startswith("https://f000.b2.test/file/family-photos/photos/")

        request = b2_api["upload"].calls.last.request
        assert request.headers["Authorization"] == "upload-token"
        assert request.headers["X-Bz-Content-Sha1"] == hashlib.sha1(data).hexdigest()
        assert request.headers["X-Bz-File-Name"].startswith("photos/")
        assert request.content == data

    def test_authorization_is_cached(self, b2_settings: Settings, b2_api) -> None:
        store = B2BlobStore(b2_settings)
        store.upload(b"one", "a.png", "image/png")
        store.upload(b"two", "b.png", "image/png")
        store.close()
        assert b2_api["authorize"].call_count == 1
        assert b2_api["upload"].call_count == 2

    def test_missing_credentials(self, tmp_path) -> None:
        store = B2BlobStore(Settings(workspace_dir=tmp_path, b2_key_id="", b2_application_key=""))
        with pytest.raises(StorageUnavailableError, match="credentials"):
            store.upload(b"x", "a.png", "image/png")
        store.close()

    def test_missing_bucket(self, tmp_path) -> None:
        store = B2BlobStore(
            Settings(
                workspace_dir=tmp_path,
                b2_key_id="k",
                b2_application_key="a",
                b2_bucket_name="",
                b2_bucket_id="",
            )
        )
        with pytest.raises(StorageUnavailableError, match="B2_BUCKET_NAME"):
            store.upload(b"x", "a.png", "image/png")
        store.close()

    def test_http_failure_becomes_upload_failed(self, b2_settings: Settings, b2_api) -> None:
        b2_api["upload"].mock(return_value=httpx.Response(503, json={"code": "service_unavailable"}))
        store = B2BlobStore(b2_settings)
        with pytest.raises(UploadFailedError, match="503"):
            store.upload(b"x", "a.png", "image/png")
        store.close()

    def test_network_failure_becomes_upload_failed(self, b2_settings: Settings, b2_api) -> None:
        b2_api["upload"].mock(side_effect=httpx.ConnectError("connection refused"))
        store = B2BlobStore(b2_settings)
        with pytest.raises(UploadFailedError, match="connection refused"):
            store.upload(b"x", "a.png", "image/png")
        store.close()


class TestDelete:
    def test_delete(self, b2_settings: Settings, b2_api) -> None:
        store = B2BlobStore(b2_settings)
        store.delete("photos/abc.jpg", "file-xyz")
        store.close()
        body = b2_api["delete"].calls.last.request.content
        assert b'"fileId":"file-xyz"' in body.replace(b" ", b"")
