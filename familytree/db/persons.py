"""CRUD operations for the ``persons`` table."""

from __future__ import annotations

import sqlite3
import uuid
from time import time
from typing import Any, Optional

from familytree.db.models import Gender, Person
from familytree.errors import NotFoundError, ValidationError

# Columns a caller may set on create / update.
PERSON_FIELDS = (
    "first_name",
    "last_name",
    "display_name",
    "date_of_birth",
    "date_of_death",
    "place_of_birth",
    "place_of_death",
    "profession",
    "notes",
    "gender",
)

_SELECT = """
    SELECT p.*,
           (SELECT COUNT(*) FROM photo_tags t WHERE t.person_id = p.id) AS photo_count
    FROM   persons p
"""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_person(row: sqlite3.Row) -> Person:
    return Person(
        id=row["id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        display_name=row["display_name"],
        date_of_birth=row["date_of_birth"],
        date_of_death=row["date_of_death"],
        place_of_birth=row["place_of_birth"],
        place_of_death=row["place_of_death"],
        profession=row["profession"],
        notes=row["notes"],
        gender=Gender(row["gender"]) if row["gender"] else None,
        photo_count=row["photo_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _clean_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Validate field names and normalise values for storage."""
    cleaned: dict[str, Any] = {}
    for key, value in fields.items():
        if key not in PERSON_FIELDS:
            raise ValidationError(f"Cannot set field {key!r} on a person")
        if key == "gender":
            # Gender is required; it can be changed but never cleared.
            cleaned[key] = Gender.parse(value).value
        elif key in ("first_name", "last_name"):
            cleaned[key] = (value or "").strip()
        else:
            # Empty strings clear optional fields.
            cleaned[key] = value.strip() if isinstance(value, str) and value.strip() else None
    return cleaned


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_person(
    conn: sqlite3.Connection,
    fields: dict[str, Any],
    person_id: Optional[str] = None,
) -> Person:
    """Insert a new person and return it.

    Args:
        conn: Open DB connection.
        fields: Column values keyed by the names in :data:`PERSON_FIELDS`.
            Defaults are applied by the domain layer, not here.
        person_id: Explicit UUID override (auto-generated when omitted).

    Raises:
        ValidationError: On an unknown field or an invalid gender.
    """
    values = _clean_fields(fields)
    pid = person_id or str(uuid.uuid4())
    now = int(time())

    columns = ["id", *values.keys(), "created_at", "updated_at"]
    params = [pid, *values.values(), now, now]
    placeholders = ", ".join("?" for _ in columns)

    with conn:
        conn.execute(
            f"INSERT INTO persons ({', '.join(columns)}) VALUES ({placeholders})",  # noqa: S608
            params,
        )

    return get_person(conn, pid)  # type: ignore[return-value]


def get_person(conn: sqlite3.Connection, person_id: str) -> Optional[Person]:
    """Fetch a single person by UUID.  Returns ``None`` if not found."""
    row = conn.execute(_SELECT + " WHERE p.id = ?", (person_id,)).fetchone()
    return _row_to_person(row) if row else None


def require_person(conn: sqlite3.Connection, person_id: str) -> Person:
    """Like :func:`get_person` but raises ``NotFoundError`` when missing."""
    person = get_person(conn, person_id)
    if person is None:
        raise NotFoundError(f"Person with id {person_id} not found")
    return person


def update_person(conn: sqlite3.Connection, person_id: str, fields: dict[str, Any]) -> Person:
    """Apply a partial update to a person.

    ``updated_at`` is always refreshed automatically.

    Raises:
        NotFoundError: If ``person_id`` does not exist.
        ValidationError: If no fields or an unknown field is given.
    """
    require_person(conn, person_id)

    updates = _clean_fields(fields)
    if not updates:
        raise ValidationError("No updates provided")

    updates["updated_at"] = int(time())
    set_clause = ", ".join(f"{col} = ?" for col in updates)
    values = list(updates.values()) + [person_id]

    with conn:
        conn.execute(
            f"UPDATE persons SET {set_clause} WHERE id = ?", values  # noqa: S608
        )

    return get_person(conn, person_id)  # type: ignore[return-value]


def delete_person(conn: sqlite3.Connection, person_id: str) -> None:
    """Delete a person; edges and photo tags go with it via CASCADE.

    Raises:
        NotFoundError: If ``person_id`` does not exist.
    """
    with conn:
        cursor = conn.execute("DELETE FROM persons WHERE id = ?", (person_id,))
    if cursor.rowcount == 0:
        raise NotFoundError(f"Person with id {person_id} not found")


def list_persons(conn: sqlite3.Connection) -> list[Person]:
    """Return all persons in creation order."""
    rows = conn.execute(_SELECT + " ORDER BY p.created_at, p.rowid").fetchall()
    return [_row_to_person(r) for r in rows]


def search_persons(conn: sqlite3.Connection, query: str, limit: int = 20) -> list[Person]:
    """Case-insensitive match on first, last or full name."""
    needle = f"%{query.strip().lower()}%"
    rows = conn.execute(
        _SELECT
        + """
        WHERE lower(p.first_name) LIKE ?
           OR lower(p.last_name) LIKE ?
           OR lower(p.first_name || ' ' || p.last_name) LIKE ?
           OR lower(COALESCE(p.display_name, '')) LIKE ?
        ORDER BY p.last_name, p.first_name
        LIMIT ?
        """,
        (needle, needle, needle, needle, limit),
    ).fetchall()
    return [_row_to_person(r) for r in rows]
