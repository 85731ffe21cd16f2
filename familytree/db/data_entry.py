"""Data-completeness queries behind the guided data-entry wizard.

Starting from one person, the wizard walks outward through the family graph
and asks for whatever is missing on each relative it meets, closest first.
"""

from __future__ import annotations

import sqlite3
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Optional

from familytree.config import settings
from familytree.db import persons as person_store
from familytree.db.models import Person

# Fields whose absence marks a person as incomplete, in question order.
REQUIRED_FIELDS = ("first_name", "last_name", "date_of_birth", "place_of_birth", "gender")


@dataclass(frozen=True)
class Question:
    field: str
    label: str
    kind: str = "text"
    options: tuple[str, ...] = ()
    optional: bool = False

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "label": self.label,
            "kind": self.kind,
            "options": list(self.options),
            "optional": self.optional,
        }


QUESTIONS: tuple[Question, ...] = (
    Question("first_name", "What is their first name?"),
    Question("last_name", "What is their last name?"),
    Question("date_of_birth", "When were they born?", kind="date"),
    Question("place_of_birth", "Where were they born?"),
    Question("gender", "What is their gender?", kind="select", options=("male", "female")),
    Question("date_of_death", "When did they pass away? (Optional)", kind="date", optional=True),
    Question("place_of_death", "Where did they pass away? (Optional)", optional=True),
)


@dataclass
class IncompletePerson:
    person: Person
    distance: int
    missing_fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            **self.person.to_dict(),
            "distance": self.distance,
            "missing_fields": self.missing_fields,
        }


def missing_fields(person: Person) -> list[str]:
    """Required fields that are empty on *person*."""
    missing = []
    for name in REQUIRED_FIELDS:
        value = getattr(person, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def _distances(
    conn: sqlite3.Connection, start_person_id: str, max_distance: int
) -> dict[str, int]:
    """Breadth-first hop counts from the start person to every reachable person.

    Persons and couples are both graph nodes, so a sibling is 2 hops away and
    a grandparent 4.
    """
    adjacency: dict[str, set[str]] = {}
    for row in conn.execute("SELECT person_id, couple_id FROM edges"):
        adjacency.setdefault(row["person_id"], set()).add(row["couple_id"])
        adjacency.setdefault(row["couple_id"], set()).add(row["person_id"])

    seen = {start_person_id: 0}
    queue = deque([start_person_id])
    while queue:
        node = queue.popleft()
        if seen[node] >= max_distance:
            continue
        for neighbour in sorted(adjacency.get(node, ())):
            if neighbour not in seen:
                seen[neighbour] = seen[node] + 1
                queue.append(neighbour)
    return seen


def incomplete_people(
    conn: sqlite3.Connection,
    start_person_id: str,
    max_distance: Optional[int] = None,
) -> list[IncompletePerson]:
    """Persons within *max_distance* hops that miss any required field.

    The start person itself is included (distance 0).  Results are ordered by
    distance, then name.

    Raises:
        NotFoundError: If the start person does not exist.
    """
    person_store.require_person(conn, start_person_id)
    limit = settings.data_entry_max_distance if max_distance is None else max_distance

    result = []
    for node_id, distance in _distances(conn, start_person_id, limit).items():
        person = person_store.get_person(conn, node_id)
        if person is None:
            continue  # a couple
        gaps = missing_fields(person)
        if gaps:
            result.append(IncompletePerson(person, distance, gaps))
    result.sort(key=lambda item: (item.distance, item.person.last_name, item.person.first_name))
    return result


def questions_for(entry: IncompletePerson) -> list[Question]:
    """The wizard questions to ask for one incomplete person, in order."""
    return [q for q in QUESTIONS if q.field in entry.missing_fields]


def save_answers(conn: sqlite3.Connection, person_id: str, updates: dict[str, Any]) -> Person:
    """Persist wizard answers for one person."""
    return person_store.update_person(conn, person_id, updates)
