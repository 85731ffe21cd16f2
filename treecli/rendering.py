"""Utilities for rendering the family graph in the CLI."""

from __future__ import annotations

from familytree.db.models import Person, TreeSnapshot


def _gender_icon(person: Person) -> str:
    if person.gender is None:
        return "👤"
    return "👨" if person.gender.value == "male" else "👩"


def _life_span(person: Person) -> str:
    born = person.date_of_birth or "?"
    if person.date_of_death:
        return f"({born} – {person.date_of_death})"
    return f"(b. {born})"


def describe(person: Person) -> str:
    """One-line summary: icon, name, dates and a short id."""
    return f"{_gender_icon(person)} {person.name} {_life_span(person)} [{person.id[:8]}]"


def render_descendants(snapshot: TreeSnapshot, root_id: str) -> str:
    """Render *root_id* and their descendants as an ASCII tree.

    Each couple the person is a partner in becomes a branch labelled with
    the other partners, and the couple's children hang below it.  A person
    reached twice is printed once more as a reference and not expanded.
    """
    persons = {p.id: p for p in snapshot.persons}
    if root_id not in persons:
        return "Root person not found."

    partner_in: dict[str, list[str]] = {}
    partners_of: dict[str, list[str]] = {}
    children_of: dict[str, list[str]] = {}
    for edge in snapshot.partnership_edges:
        partner_in.setdefault(edge.person_id, []).append(edge.couple_id)
        partners_of.setdefault(edge.couple_id, []).append(edge.person_id)
    for edge in snapshot.parentage_edges:
        children_of.setdefault(edge.couple_id, []).append(edge.person_id)

    lines: list[str] = []
    visited: set[str] = set()

    def _render_person(person_id: str, prefix: str, connector: str, child_prefix: str) -> None:
        person = persons.get(person_id)
        if person is None:
            return
        if person_id in visited:
            lines.append(f"{prefix}{connector}↻ {person.name} [{person_id[:8]}]")
            return
        visited.add(person_id)
        lines.append(f"{prefix}{connector}{describe(person)}")

        couples = list(dict.fromkeys(partner_in.get(person_id, [])))
        for i, couple_id in enumerate(couples):
            last = i == len(couples) - 1
            others = [persons[p].name for p in partners_of.get(couple_id, [])
                      if p != person_id and p in persons]
            label = " & ".join(others) if others else "unknown partner"
            lines.append(f"{child_prefix}{'└── ' if last else '├── '}⚭ {label}")
            _render_children(couple_id, child_prefix + ("    " if last else "│   "))

    def _render_children(couple_id: str, prefix: str) -> None:
        kids = list(dict.fromkeys(children_of.get(couple_id, [])))
        for i, child_id in enumerate(kids):
            last = i == len(kids) - 1
            _render_person(
                child_id,
                prefix,
                "└── " if last else "├── ",
                prefix + ("    " if last else "│   "),
            )

    _render_person(root_id, "", "", "")
    return "\n".join(lines)
