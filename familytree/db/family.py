"""Relationship rules for persons and couples.

A Couple is the family unit that joins partners to children.  Persons never
link to each other directly: a partner edge runs Person -> Couple and a
child edge runs Couple -> Person.  Everything the rest of the application
does to the tree structure goes through the functions below.
"""

from __future__ import annotations

import sqlite3
from datetime import date
from enum import Enum
from typing import Any, Optional

from familytree.db import couples as couple_store
from familytree.db import edges as edge_store
from familytree.db import persons as person_store
from familytree.db.models import Couple, CoupleMembership, EdgeKind, Person
from familytree.errors import NotFoundError, ValidationError
from familytree.logging_config import get_logger

logger = get_logger(__name__)

# Roles a new relative can take relative to the anchor person.
RELATIVE_ROLES = ("parent", "child", "partner")


class ReusePolicy(str, Enum):
    """What the UI should do before creating a couple for a new relative."""

    CREATE = "create"    # no relevant couple: create one silently
    CONFIRM = "confirm"  # exactly one: ask "reuse or create new"
    CHOOSE = "choose"    # several: ask which one


def default_person_fields() -> dict[str, Any]:
    return {
        "first_name": "New",
        "last_name": "Person",
        "date_of_birth": date.today().isoformat(),
        "gender": "male",
    }


def _relative_role(role: str) -> str:
    value = (role or "").strip().lower()
    if value not in RELATIVE_ROLES:
        raise ValidationError(
            f"Invalid role {role!r}. Must be one of {', '.join(RELATIVE_ROLES)}"
        )
    return value


# ---------------------------------------------------------------------------
# Persons
# ---------------------------------------------------------------------------

def create_person(conn: sqlite3.Connection, fields: Optional[dict[str, Any]] = None) -> Person:
    """Create a person, filling absent name, birth date and gender with defaults."""
    values = default_person_fields()
    for key, value in (fields or {}).items():
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        values[key] = value
    person = person_store.create_person(conn, values)
    logger.info("Created person %s (%s)", person.id, person.name)
    return person


def update_person(conn: sqlite3.Connection, person_id: str, fields: dict[str, Any]) -> Person:
    person = person_store.update_person(conn, person_id, fields)
    logger.info("Updated person %s: %s", person_id, ", ".join(sorted(fields)))
    return person


def delete_person(conn: sqlite3.Connection, person_id: str) -> None:
    """Delete a person with its edges and photo tags.  Couples are kept."""
    person_store.delete_person(conn, person_id)
    logger.info("Deleted person %s", person_id)


# ---------------------------------------------------------------------------
# Couples and edges
# ---------------------------------------------------------------------------

def create_couple(conn: sqlite3.Connection, anchor_person_id: str, role: str) -> Couple:
    """Create a new couple with the anchor as ``partner`` or ``child``.

    Raises:
        ValidationError: If *role* is neither ``partner`` nor ``child``.
        NotFoundError: If the anchor person does not exist.
    """
    kind = EdgeKind.parse(role)
    person_store.require_person(conn, anchor_person_id)

    couple = couple_store.create_couple(conn)
    edge_store.create_edge(conn, anchor_person_id, couple.id, kind)
    logger.info("Created couple %s with %s as %s", couple.id, anchor_person_id, kind.value)
    return couple_store.require_couple(conn, couple.id)


def link_person_to_couple(
    conn: sqlite3.Connection, person_id: str, couple_id: str, role: str
) -> None:
    """Attach an existing person to an existing couple.

    Not idempotent: a second call stores a duplicate edge.
    """
    kind = EdgeKind.parse(role)
    person_store.require_person(conn, person_id)
    couple_store.require_couple(conn, couple_id)
    edge_store.create_edge(conn, person_id, couple_id, kind)
    logger.info("Linked %s to couple %s as %s", person_id, couple_id, kind.value)


def delete_couple(conn: sqlite3.Connection, couple_id: str) -> None:
    """Delete a couple and its incident edges.  Persons are kept."""
    couple_store.delete_couple(conn, couple_id)
    logger.info("Deleted couple %s", couple_id)


def create_person_and_link(
    conn: sqlite3.Connection,
    anchor_person_id: Optional[str],
    couple_id: Optional[str],
    role: str,
    person_fields: Optional[dict[str, Any]] = None,
) -> tuple[Person, str]:
    """Create a relative of the anchor and wire it into a couple.

    With *couple_id* the new person joins that couple: ``parent`` and
    ``partner`` as a partner, ``child`` as a child.  Without one, a fresh
    couple is created around the anchor:

    * ``parent``  -> new person is a partner, anchor is a child
    * ``child``   -> anchor is a partner, new person is a child
    * ``partner`` -> both are partners

    Every referenced id is checked before anything is written.  If linking
    still fails the records created here are deleted again before the error
    propagates, so no orphan person is left behind.

    Returns:
        ``(person, couple_id)``
    """
    role = _relative_role(role)

    if couple_id:
        couple_store.require_couple(conn, couple_id)
        plan = [("new", EdgeKind.CHILD if role == "child" else EdgeKind.PARTNER)]
    else:
        if not anchor_person_id:
            raise ValidationError("anchor_person_id is required when no couple_id is given")
        person_store.require_person(conn, anchor_person_id)
        plan = {
            "parent": [("new", EdgeKind.PARTNER), ("anchor", EdgeKind.CHILD)],
            "child": [("anchor", EdgeKind.PARTNER), ("new", EdgeKind.CHILD)],
            "partner": [("anchor", EdgeKind.PARTNER), ("new", EdgeKind.PARTNER)],
        }[role]

    person = create_person(conn, person_fields)
    created_couple: Optional[str] = None
    try:
        if not couple_id:
            created_couple = couple_store.create_couple(conn).id
        target = couple_id or created_couple
        for who, kind in plan:
            pid = person.id if who == "new" else anchor_person_id
            edge_store.create_edge(conn, pid, target, kind)  # type: ignore[arg-type]
    except (sqlite3.Error, NotFoundError):
        logger.warning("Linking new person %s failed; removing it", person.id)
        person_store.delete_person(conn, person.id)
        if created_couple:
            couple_store.delete_couple(conn, created_couple)
        raise

    logger.info("Added %s as %s via couple %s", person.id, role, target)
    return person_store.require_person(conn, person.id), target  # type: ignore[return-value]


def add_person_to_couple(
    conn: sqlite3.Connection,
    couple_id: str,
    relation: str,
    person_fields: Optional[dict[str, Any]] = None,
) -> Person:
    """Create a person as a ``child`` or ``parent`` (partner) of a couple."""
    value = (relation or "").strip().lower()
    if value not in ("child", "parent"):
        raise ValidationError(
            f"Invalid relation {relation!r}. Must be 'child' or 'parent'"
        )
    person, _ = create_person_and_link(conn, None, couple_id, value, person_fields)
    return person


def flip_edge(conn: sqlite3.Connection, person_id: str, couple_id: str) -> EdgeKind:
    """Turn a partner edge into a child edge or the reverse.

    Returns:
        The new kind of the edge.

    Raises:
        NotFoundError: If no edge joins the pair.
    """
    current = edge_store.get_edge_kind(conn, person_id, couple_id)
    if current is None:
        raise NotFoundError(
            f"No relationship between person {person_id} and couple {couple_id}"
        )
    new = current.opposite
    edge_store.replace_edge(conn, person_id, couple_id, current, new)
    logger.info("Flipped %s/%s from %s to %s", person_id, couple_id, current.value, new.value)
    return new


# ---------------------------------------------------------------------------
# Couple reuse policy
# ---------------------------------------------------------------------------

def list_couples_for_person(conn: sqlite3.Connection, person_id: str) -> CoupleMembership:
    person_store.require_person(conn, person_id)
    return edge_store.find_edges_for_person(conn, person_id)


def relevant_couples(membership: CoupleMembership, role: str) -> list[str]:
    """Couples a new relative of *role* could join.

    A new parent joins a couple the person is a child of; a new child or
    partner joins one the person is a partner in.
    """
    role = _relative_role(role)
    return list(membership.as_child if role == "parent" else membership.as_partner)


def couple_choice(membership: CoupleMembership, role: str) -> ReusePolicy:
    candidates = relevant_couples(membership, role)
    if not candidates:
        return ReusePolicy.CREATE
    if len(candidates) == 1:
        return ReusePolicy.CONFIRM
    return ReusePolicy.CHOOSE
