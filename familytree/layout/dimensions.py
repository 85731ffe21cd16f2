"""Node footprints shared by the layout engine and the renderer.

A person card is a header with the name, one row per populated detail and a
button strip.  Both the initial layout and a post-edit resize must use
:func:`node_dimensions` so heights never drift apart.
"""

from __future__ import annotations

from typing import Union

from familytree.db.models import Couple, Person

COUPLE_SIZE = 80.0

PERSON_WIDTH = 220.0
HEADER_HEIGHT = 50.0
PADDING = 16.0
ROW_HEIGHT = 38.0
BUTTON_HEIGHT = 44.0


def label_rows(person: Person) -> list[tuple[str, str]]:
    """Detail rows shown under the name, as ``(label, value)`` pairs.

    Birth date and place are always shown (blank when unknown).  A date of
    death brings both death rows; a place of death alone brings one.
    """
    rows = [
        ("Born", person.date_of_birth or ""),
        ("Birthplace", person.place_of_birth or ""),
    ]
    if person.profession:
        rows.append(("Profession", person.profession))
    if person.date_of_death:
        rows.append(("Died", person.date_of_death))
        rows.append(("Place of death", person.place_of_death or ""))
    elif person.place_of_death:
        rows.append(("Place of death", person.place_of_death))
    return rows


def node_dimensions(node: Union[Person, Couple]) -> tuple[float, float]:
    """Return ``(width, height)`` for a person or couple node."""
    if isinstance(node, Couple):
        return COUPLE_SIZE, COUPLE_SIZE
    height = HEADER_HEIGHT + PADDING + len(label_rows(node)) * ROW_HEIGHT + BUTTON_HEIGHT
    return PERSON_WIDTH, height
