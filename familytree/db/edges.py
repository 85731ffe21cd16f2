"""Operations on the ``edges`` table (partner / child relationships)."""

from __future__ import annotations

import sqlite3
from time import time
from typing import Optional

from familytree.db.couples import list_couples
from familytree.db.models import CoupleMembership, Edge, EdgeKind, TreeSnapshot
from familytree.db.persons import list_persons


def _row_to_edge(row: sqlite3.Row) -> Edge:
    return Edge(
        person_id=row["person_id"],
        couple_id=row["couple_id"],
        kind=EdgeKind(row["kind"]),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_edge(
    conn: sqlite3.Connection,
    person_id: str,
    couple_id: str,
    kind: EdgeKind,
) -> None:
    """Store one relationship edge.

    There is deliberately no uniqueness check: calling this twice with the
    same triple stores two rows.  Both ends must exist (foreign keys).
    """
    with conn:
        conn.execute(
            """
            INSERT INTO edges (person_id, couple_id, kind, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (person_id, couple_id, EdgeKind(kind).value, int(time())),
        )


def delete_edge(
    conn: sqlite3.Connection,
    person_id: str,
    couple_id: str,
    kind: EdgeKind,
) -> int:
    """Delete every edge of *kind* between the pair.  Returns rows removed."""
    with conn:
        cursor = conn.execute(
            "DELETE FROM edges WHERE person_id = ? AND couple_id = ? AND kind = ?",
            (person_id, couple_id, EdgeKind(kind).value),
        )
    return cursor.rowcount


def get_edge_kind(
    conn: sqlite3.Connection, person_id: str, couple_id: str
) -> Optional[EdgeKind]:
    """Return the kind of the edge between the pair, or ``None``.

    If both kinds exist (bad data) the partner edge wins.
    """
    rows = conn.execute(
        "SELECT DISTINCT kind FROM edges WHERE person_id = ? AND couple_id = ?",
        (person_id, couple_id),
    ).fetchall()
    kinds = {EdgeKind(r["kind"]) for r in rows}
    if EdgeKind.PARTNER in kinds:
        return EdgeKind.PARTNER
    if EdgeKind.CHILD in kinds:
        return EdgeKind.CHILD
    return None


def replace_edge(
    conn: sqlite3.Connection,
    person_id: str,
    couple_id: str,
    old: EdgeKind,
    new: EdgeKind,
) -> None:
    """Swap the *old*-kind edge(s) between the pair for one *new*-kind edge.

    Runs in a single transaction so callers never observe the pair with
    neither edge.
    """
    with conn:
        conn.execute(
            "DELETE FROM edges WHERE person_id = ? AND couple_id = ? AND kind = ?",
            (person_id, couple_id, EdgeKind(old).value),
        )
        conn.execute(
            """
            INSERT INTO edges (person_id, couple_id, kind, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (person_id, couple_id, EdgeKind(new).value, int(time())),
        )


def find_edges_for_person(conn: sqlite3.Connection, person_id: str) -> CoupleMembership:
    """Return the couples *person_id* is a partner in and a child of."""
    rows = conn.execute(
        """
        SELECT couple_id, kind FROM edges
        WHERE  person_id = ?
        ORDER  BY id
        """,
        (person_id,),
    ).fetchall()
    membership = CoupleMembership()
    for r in rows:
        bucket = membership.as_partner if r["kind"] == EdgeKind.PARTNER.value else membership.as_child
        if r["couple_id"] not in bucket:
            bucket.append(r["couple_id"])
    return membership


def list_edges(conn: sqlite3.Connection) -> list[Edge]:
    """Return every edge in insertion order."""
    rows = conn.execute(
        "SELECT person_id, couple_id, kind FROM edges ORDER BY id"
    ).fetchall()
    return [_row_to_edge(r) for r in rows]


def get_tree(conn: sqlite3.Connection) -> TreeSnapshot:
    """Return **all** persons, couples and edges for the layout engine."""
    return TreeSnapshot(
        persons=list_persons(conn),
        couples=list_couples(conn),
        edges=list_edges(conn),
    )
