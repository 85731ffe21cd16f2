"""CRUD operations for the ``couples`` table."""

from __future__ import annotations

import sqlite3
import uuid
from time import time
from typing import Optional

from familytree.db.models import Couple
from familytree.errors import NotFoundError

_SELECT = """
    SELECT c.id, c.created_at,
           (SELECT COUNT(*) FROM edges e WHERE e.couple_id = c.id AND e.kind = 'partner') AS partner_count,
           (SELECT COUNT(*) FROM edges e WHERE e.couple_id = c.id AND e.kind = 'child')   AS child_count
    FROM   couples c
"""


def _row_to_couple(row: sqlite3.Row) -> Couple:
    return Couple(
        id=row["id"],
        partner_count=row["partner_count"],
        child_count=row["child_count"],
        created_at=row["created_at"],
    )


def create_couple(conn: sqlite3.Connection, couple_id: Optional[str] = None) -> Couple:
    """Insert an empty couple node and return it."""
    cid = couple_id or str(uuid.uuid4())
    with conn:
        conn.execute(
            "INSERT INTO couples (id, created_at) VALUES (?, ?)", (cid, int(time()))
        )
    return get_couple(conn, cid)  # type: ignore[return-value]


def get_couple(conn: sqlite3.Connection, couple_id: str) -> Optional[Couple]:
    """Fetch a couple by UUID.  Returns ``None`` if not found."""
    row = conn.execute(_SELECT + " WHERE c.id = ?", (couple_id,)).fetchone()
    return _row_to_couple(row) if row else None


def require_couple(conn: sqlite3.Connection, couple_id: str) -> Couple:
    """Like :func:`get_couple` but raises ``NotFoundError`` when missing."""
    couple = get_couple(conn, couple_id)
    if couple is None:
        raise NotFoundError(f"Couple with id {couple_id} not found")
    return couple


def delete_couple(conn: sqlite3.Connection, couple_id: str) -> None:
    """Delete a couple and its incident edges (persons are kept).

    Raises:
        NotFoundError: If ``couple_id`` does not exist.
    """
    with conn:
        cursor = conn.execute("DELETE FROM couples WHERE id = ?", (couple_id,))
    if cursor.rowcount == 0:
        raise NotFoundError(f"Couple with id {couple_id} not found")


def list_couples(conn: sqlite3.Connection) -> list[Couple]:
    """Return all couples in creation order."""
    rows = conn.execute(_SELECT + " ORDER BY c.created_at, c.rowid").fetchall()
    return [_row_to_couple(r) for r in rows]
