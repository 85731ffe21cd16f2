"""CRUD operations for photos and their "appears in" person tags."""

from __future__ import annotations

import sqlite3
import uuid
from time import time
from typing import Any, Iterable, Optional

from familytree.db.models import Photo
from familytree.errors import NotFoundError, ValidationError

# Metadata a caller may edit after upload.
PHOTO_FIELDS = ("caption", "location", "date_taken", "comments")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _people_for(conn: sqlite3.Connection, photo_id: str) -> list[dict]:
    rows = conn.execute(
        """
        SELECT p.id, p.first_name, p.last_name, p.display_name
        FROM   photo_tags t
        JOIN   persons p ON p.id = t.person_id
        WHERE  t.photo_id = ?
        ORDER  BY p.last_name, p.first_name
        """,
        (photo_id,),
    ).fetchall()
    people = []
    for r in rows:
        name = r["display_name"] or " ".join(x for x in (r["first_name"], r["last_name"]) if x)
        people.append({"id": r["id"], "name": name})
    return people


def _row_to_photo(conn: sqlite3.Connection, row: sqlite3.Row) -> Photo:
    return Photo(
        id=row["id"],
        url=row["url"],
        file_name=row["file_name"],
        file_id=row["file_id"],
        caption=row["caption"],
        location=row["location"],
        date_taken=row["date_taken"],
        comments=row["comments"],
        uploaded_at=row["uploaded_at"],
        people=_people_for(conn, row["id"]),
    )


def _missing_persons(conn: sqlite3.Connection, person_ids: list[str]) -> list[str]:
    if not person_ids:
        return []
    placeholders = ", ".join("?" for _ in person_ids)
    found = {
        r["id"]
        for r in conn.execute(
            f"SELECT id FROM persons WHERE id IN ({placeholders})",  # noqa: S608
            person_ids,
        ).fetchall()
    }
    return [pid for pid in person_ids if pid not in found]


def _dedupe(person_ids: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for pid in person_ids:
        pid = pid.strip()
        if pid and pid not in seen:
            seen.append(pid)
    return seen


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_photo(
    conn: sqlite3.Connection,
    url: str,
    file_name: Optional[str] = None,
    file_id: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    person_ids: Iterable[str] = (),
) -> Photo:
    """Insert a photo record and tag *person_ids* in the same transaction.

    Raises:
        NotFoundError: If any tagged person does not exist (nothing is stored).
        ValidationError: On an unknown metadata field.
    """
    meta = dict(metadata or {})
    unknown = set(meta) - set(PHOTO_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot set field(s) {sorted(unknown)} on a photo")

    tags = _dedupe(person_ids)
    missing = _missing_persons(conn, tags)
    if missing:
        raise NotFoundError(f"Person with id {missing[0]} not found")

    photo_id = str(uuid.uuid4())
    with conn:
        conn.execute(
            """
            INSERT INTO photos
                (id, url, file_name, file_id, caption, location, date_taken, comments, uploaded_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                photo_id,
                url,
                file_name,
                file_id,
                meta.get("caption") or None,
                meta.get("location") or None,
                meta.get("date_taken") or None,
                meta.get("comments") or None,
                int(time()),
            ),
        )
        conn.executemany(
            "INSERT OR IGNORE INTO photo_tags (photo_id, person_id) VALUES (?, ?)",
            [(photo_id, pid) for pid in tags],
        )
    return get_photo(conn, photo_id)  # type: ignore[return-value]


def get_photo(conn: sqlite3.Connection, photo_id: str) -> Optional[Photo]:
    row = conn.execute("SELECT * FROM photos WHERE id = ?", (photo_id,)).fetchone()
    return _row_to_photo(conn, row) if row else None


def require_photo(conn: sqlite3.Connection, photo_id: str) -> Photo:
    photo = get_photo(conn, photo_id)
    if photo is None:
        raise NotFoundError(f"Photo with id {photo_id} not found")
    return photo


def list_photos(conn: sqlite3.Connection) -> list[Photo]:
    """Return every photo, newest first."""
    rows = conn.execute(
        "SELECT * FROM photos ORDER BY uploaded_at DESC, rowid DESC"
    ).fetchall()
    return [_row_to_photo(conn, r) for r in rows]


def photos_for_person(conn: sqlite3.Connection, person_id: str) -> list[Photo]:
    rows = conn.execute(
        """
        SELECT ph.* FROM photos ph
        JOIN   photo_tags t ON t.photo_id = ph.id
        WHERE  t.person_id = ?
        ORDER  BY ph.uploaded_at DESC, ph.rowid DESC
        """,
        (person_id,),
    ).fetchall()
    return [_row_to_photo(conn, r) for r in rows]


def tag_persons(conn: sqlite3.Connection, photo_id: str, person_ids: Iterable[str]) -> int:
    """Tag many persons on one photo with a single batch insert.

    Already-present tags are ignored.  Returns the number of ids submitted.

    Raises:
        NotFoundError: If the photo or any person is unknown (nothing is tagged).
    """
    require_photo(conn, photo_id)
    tags = _dedupe(person_ids)
    missing = _missing_persons(conn, tags)
    if missing:
        raise NotFoundError(f"Person with id {missing[0]} not found")
    with conn:
        conn.executemany(
            "INSERT OR IGNORE INTO photo_tags (photo_id, person_id) VALUES (?, ?)",
            [(photo_id, pid) for pid in tags],
        )
    return len(tags)


def update_photo(
    conn: sqlite3.Connection,
    photo_id: str,
    fields: dict[str, Any],
    person_ids: Optional[Iterable[str]] = None,
) -> Photo:
    """Update photo metadata; when *person_ids* is given the tag set is replaced."""
    require_photo(conn, photo_id)

    unknown = set(fields) - set(PHOTO_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot set field(s) {sorted(unknown)} on a photo")

    tags = _dedupe(person_ids) if person_ids is not None else None
    if tags:
        missing = _missing_persons(conn, tags)
        if missing:
            raise NotFoundError(f"Person with id {missing[0]} not found")

    with conn:
        if fields:
            set_clause = ", ".join(f"{col} = ?" for col in fields)
            conn.execute(
                f"UPDATE photos SET {set_clause} WHERE id = ?",  # noqa: S608
                [*(v or None for v in fields.values()), photo_id],
            )
        if tags is not None:
            conn.execute("DELETE FROM photo_tags WHERE photo_id = ?", (photo_id,))
            conn.executemany(
                "INSERT INTO photo_tags (photo_id, person_id) VALUES (?, ?)",
                [(photo_id, pid) for pid in tags],
            )
    return get_photo(conn, photo_id)  # type: ignore[return-value]


def delete_photo(conn: sqlite3.Connection, photo_id: str) -> Photo:
    """Delete a photo record (tags cascade).  Returns the deleted row."""
    photo = require_photo(conn, photo_id)
    with conn:
        conn.execute("DELETE FROM photos WHERE id = ?", (photo_id,))
    return photo
