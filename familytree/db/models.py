"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types, and the enums below are the only
values accepted for a person's gender or an edge's kind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from familytree.errors import ValidationError


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"

    @classmethod
    def parse(cls, value: object) -> "Gender":
        """Coerce *value* into a :class:`Gender` or raise ``ValidationError``."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Invalid gender {value!r}. Must be 'male' or 'female'"
            ) from None


class EdgeKind(str, Enum):
    """Relationship between a person and a couple.

    ``PARTNER`` runs Person -> Couple ("is a partner in"); ``CHILD`` runs
    Couple -> Person ("is parent of").
    """

    PARTNER = "partner"
    CHILD = "child"

    @classmethod
    def parse(cls, value: object) -> "EdgeKind":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Invalid role {value!r}. Must be 'partner' or 'child'"
            ) from None

    @property
    def opposite(self) -> "EdgeKind":
        return EdgeKind.CHILD if self is EdgeKind.PARTNER else EdgeKind.PARTNER


@dataclass
class Person:
    id: str
    first_name: str
    last_name: str
    date_of_birth: Optional[str]
    gender: Optional[Gender]
    display_name: Optional[str] = None
    date_of_death: Optional[str] = None
    place_of_birth: Optional[str] = None
    place_of_death: Optional[str] = None
    profession: Optional[str] = None
    notes: Optional[str] = None
    photo_count: int = 0
    created_at: int = 0
    updated_at: int = 0

    node_type = "person"

    @property
    def name(self) -> str:
        """Display name: the explicit override, else "first last"."""
        if self.display_name:
            return self.display_name
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "node_type": self.node_type,
            "name": self.name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.display_name,
            "date_of_birth": self.date_of_birth,
            "date_of_death": self.date_of_death,
            "place_of_birth": self.place_of_birth,
            "place_of_death": self.place_of_death,
            "profession": self.profession,
            "notes": self.notes,
            "gender": self.gender.value if self.gender else None,
            "photo_count": self.photo_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Person":
        """Rebuild a person from its :meth:`to_dict` form (e.g. an API body)."""
        gender = data.get("gender")
        return cls(
            id=data["id"],
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            display_name=data.get("display_name"),
            date_of_birth=data.get("date_of_birth"),
            date_of_death=data.get("date_of_death"),
            place_of_birth=data.get("place_of_birth"),
            place_of_death=data.get("place_of_death"),
            profession=data.get("profession"),
            notes=data.get("notes"),
            gender=Gender(gender) if gender else None,
            photo_count=data.get("photo_count") or 0,
        )


@dataclass
class Couple:
    id: str
    partner_count: int = 0
    child_count: int = 0
    created_at: int = 0

    node_type = "couple"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "node_type": self.node_type,
            "partner_count": self.partner_count,
            "child_count": self.child_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Couple":
        return cls(
            id=data["id"],
            partner_count=data.get("partner_count") or 0,
            child_count=data.get("child_count") or 0,
        )


TreeNode = Union[Person, Couple]


@dataclass(frozen=True)
class Edge:
    person_id: str
    couple_id: str
    kind: EdgeKind

    @property
    def source(self) -> str:
        return self.person_id if self.kind is EdgeKind.PARTNER else self.couple_id

    @property
    def target(self) -> str:
        return self.couple_id if self.kind is EdgeKind.PARTNER else self.person_id

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "target": self.target,
            "kind": self.kind.value,
            "person_id": self.person_id,
            "couple_id": self.couple_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Edge":
        return cls(
            person_id=data["person_id"],
            couple_id=data["couple_id"],
            kind=EdgeKind.parse(data["kind"]),
        )


@dataclass
class CoupleMembership:
    """Couples a person belongs to, split by role."""

    as_partner: list[str] = field(default_factory=list)
    as_child: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"as_partner": self.as_partner, "as_child": self.as_child}


@dataclass
class Photo:
    id: str
    url: str
    file_name: Optional[str]
    file_id: Optional[str]
    caption: Optional[str]
    location: Optional[str]
    date_taken: Optional[str]
    comments: Optional[str]
    uploaded_at: int
    people: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "caption": self.caption,
            "location": self.location,
            "date_taken": self.date_taken,
            "comments": self.comments,
            "uploaded_at": self.uploaded_at,
            "people": self.people,
        }


@dataclass
class TreeSnapshot:
    """Every person, couple and relationship edge, read in one pass."""

    persons: list[Person] = field(default_factory=list)
    couples: list[Couple] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)

    @property
    def nodes(self) -> list[TreeNode]:
        return [*self.persons, *self.couples]

    @property
    def partnership_edges(self) -> list[Edge]:
        return [e for e in self.edges if e.kind is EdgeKind.PARTNER]

    @property
    def parentage_edges(self) -> list[Edge]:
        return [e for e in self.edges if e.kind is EdgeKind.CHILD]

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TreeSnapshot":
        """Inverse of :meth:`to_dict`; node dicts are told apart by ``node_type``."""
        nodes = data.get("nodes", [])
        return cls(
            persons=[Person.from_dict(n) for n in nodes if n.get("node_type") == "person"],
            couples=[Couple.from_dict(n) for n in nodes if n.get("node_type") == "couple"],
            edges=[Edge.from_dict(link) for link in data.get("links", [])],
        )
