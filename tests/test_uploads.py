"""Tests for batch photo uploads and blob-aware deletion."""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from familytree.db import photos as photo_store
from familytree.db.connection import get_connection
from familytree.db.migrations import init_db
from familytree.db.persons import create_person, delete_person, get_person
from familytree.errors import NotFoundError, ValidationError
from familytree.storage.uploads import UploadItem, delete_photo, parse_person_ids, upload_batch


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


def _image(name: str, data: bytes = b"img") -> UploadItem:
    return UploadItem(filename=name, content_type="image/jpeg", data=data)


class TestParsePersonIds:
    def test_splits_and_strips(self) -> None:
        assert parse_person_ids(" a, b ,,c ") == ["a", "b", "c"]

    def test_empty(self) -> None:
        assert parse_person_ids(None) == []
        assert parse_person_ids("") == []


class TestUploadBatch:
    def test_second_of_three_fails(self, conn: sqlite3.Connection, make_store) -> None:
        a = create_person(conn, {"first_name": "A"})
        b = create_person(conn, {"first_name": "B"})
        store = make_store(fail_on=(b"two",))
        items = [_image("1.jpg", b"one"), _image("2.jpg", b"two"), _image("3.jpg", b"three")]

        result = upload_batch(conn, store, items, [a.id, b.id], {"caption": "Picnic"})

        assert result.success_count == 2
        assert result.fail_count == 1
        assert result.errors[0]["file_name"] == "2.jpg"
        photos = photo_store.list_photos(conn)
        assert len(photos) == 2
        for photo in photos:
            assert photo.caption == "Picnic"
            assert {p["id"] for p in photo.people} == {a.id, b.id}

    def test_to_dict(self, conn: sqlite3.Connection, make_store) -> None:
        result = upload_batch(conn, make_store(), [_image("1.jpg")])
        data = result.to_dict()
        assert data["success_count"] == 1
        assert data["fail_count"] == 0
        assert data["photos"][0]["people"] == []

    def test_non_image_is_a_failure(self, conn: sqlite3.Connection, make_store) -> None:
        items = [UploadItem("notes.txt", "text/plain", b"hello"), _image("ok.jpg")]
        result = upload_batch(conn, make_store(), items)
        assert (result.success_count, result.fail_count) == (1, 1)
        assert "only image files" in result.errors[0]["error"]

    def test_empty_file_is_a_failure(self, conn: sqlite3.Connection, make_store) -> None:
        result = upload_batch(conn, make_store(), [_image("empty.jpg", b"")])
        assert result.fail_count == 1

    def test_too_large_is_a_failure(self, conn: sqlite3.Connection, make_store) -> None:
        result = upload_batch(conn, make_store(), [_image("big.jpg", b"x" * 11)], max_bytes=10)
        assert result.fail_count == 1
        assert "larger than 10 bytes" in result.errors[0]["error"]

    def test_no_files(self, conn: sqlite3.Connection, make_store) -> None:
        with pytest.raises(ValidationError, match="No file provided"):
            upload_batch(conn, make_store(), [])

    def test_unknown_person_rejected_before_upload(self, conn: sqlite3.Connection, make_store) -> None:
        store = make_store()
        with pytest.raises(NotFoundError):
            upload_batch(conn, store, [_image("1.jpg")], ["ghost"])
        assert store.blobs == {}
        assert photo_store.list_photos(conn) == []

    def test_duplicate_tags_collapse(self, conn: sqlite3.Connection, make_store) -> None:
        a = create_person(conn, {"first_name": "A"})
        result = upload_batch(conn, make_store(), [_image("1.jpg")], [a.id, a.id])
        assert len(result.photos[0].people) == 1


class TestPhotoRecords:
    def test_photo_count_on_person(self, conn: sqlite3.Connection, make_store) -> None:
        a = create_person(conn, {"first_name": "A"})
        upload_batch(conn, make_store(), [_image("1.jpg"), _image("2.jpg")], [a.id])
        assert len(photo_store.photos_for_person(conn, a.id)) == 2
        assert get_person(conn, a.id).photo_count == 2

    def test_update_replaces_tags(self, conn: sqlite3.Connection, make_store) -> None:
        a = create_person(conn, {"first_name": "A"})
        b = create_person(conn, {"first_name": "B"})
        photo = upload_batch(conn, make_store(), [_image("1.jpg")], [a.id]).photos[0]
        updated = photo_store.update_photo(conn, photo.id, {"location": "Lyon"}, person_ids=[b.id])
        assert updated.location == "Lyon"
        assert [p["id"] for p in updated.people] == [b.id]

    def test_tag_persons_ignores_existing(self, conn: sqlite3.Connection, make_store) -> None:
        a = create_person(conn, {"first_name": "A"})
        b = create_person(conn, {"first_name": "B"})
        photo = upload_batch(conn, make_store(), [_image("1.jpg")], [a.id]).photos[0]
        assert photo_store.tag_persons(conn, photo.id, [a.id, b.id]) == 2
        assert {p["id"] for p in photo_store.require_photo(conn, photo.id).people} == {a.id, b.id}

    def test_person_delete_removes_tags(self, conn: sqlite3.Connection, make_store) -> None:
        a = create_person(conn, {"first_name": "A"})
        photo = upload_batch(conn, make_store(), [_image("1.jpg")], [a.id]).photos[0]
        delete_person(conn, a.id)
        assert photo_store.require_photo(conn, photo.id).people == []


class TestDeletePhoto:
    def test_removes_record_and_blob(self, conn: sqlite3.Connection, make_store) -> None:
        store = make_store()
        photo = upload_batch(conn, store, [_image("1.jpg")]).photos[0]
        assert delete_photo(conn, store, photo.id) is True
        assert store.blobs == {}
        assert photo_store.get_photo(conn, photo.id) is None

    def test_blob_failure_keeps_record_deleted(self, conn: sqlite3.Connection, make_store) -> None:
        store = make_store(fail_delete=True)
        photo = upload_batch(conn, store, [_image("1.jpg")]).photos[0]
        assert delete_photo(conn, store, photo.id) is False
        assert photo_store.get_photo(conn, photo.id) is None

    def test_missing_photo(self, conn: sqlite3.Connection, make_store) -> None:
        with pytest.raises(NotFoundError):
            delete_photo(conn, make_store(), "ghost")


class TestRecordFailure:
    def test_failed_insert_removes_blob_and_batch_continues(
        self, conn: sqlite3.Connection, make_store, monkeypatch
    ) -> None:
        store = make_store()
        real_create = photo_store.create_photo

        def flaky_create(conn, *, file_name, **kwargs):
            if file_name.endswith("2.jpg"):
                raise sqlite3.OperationalError("database is locked")
            return real_create(conn, file_name=file_name, **kwargs)

        monkeypatch.setattr("familytree.db.photos.create_photo", flaky_create)
        items = [_image("1.jpg", b"one"), _image("2.jpg", b"two"), _image("3.jpg", b"three")]

        result = upload_batch(conn, store, items)

        assert (result.success_count, result.fail_count) == (2, 1)
        assert result.errors[0]["file_name"] == "2.jpg"
        assert "Could not save photo record" in result.errors[0]["error"]
        assert len(photo_store.list_photos(conn)) == 2
        assert sorted(store.blobs.values()) == [b"one", b"three"]
        assert len(store.deleted) == 1

    def test_cleanup_failure_still_reports_file(
        self, conn: sqlite3.Connection, make_store, monkeypatch
    ) -> None:
        store = make_store(fail_delete=True)

        def broken_create(conn, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr("familytree.db.photos.create_photo", broken_create)
        result = upload_batch(conn, store, [_image("1.jpg")])
        assert result.fail_count == 1
        assert photo_store.list_photos(conn) == []
