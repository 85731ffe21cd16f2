"""Person endpoints.

Routes
------
POST   /persons                   Create a person (absent fields get defaults)
GET    /persons                   List all persons (optional ?q= name search)
GET    /persons/{person_id}       Fetch a single person
GET    /persons/{person_id}/couples   Couples the person is partner in / child of
GET    /persons/{person_id}/photos    Photos the person is tagged in
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict

from familytree.db import family
from familytree.db.family import RELATIVE_ROLES, couple_choice
from familytree.db.persons import list_persons, require_person, search_persons
from familytree.db.photos import photos_for_person

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class PersonFields(BaseModel):
    """Editable person fields; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    date_of_death: Optional[str] = None
    place_of_birth: Optional[str] = None
    place_of_death: Optional[str] = None
    profession: Optional[str] = None
    notes: Optional[str] = None
    gender: Optional[str] = None


class PersonResponse(BaseModel):
    id: str
    node_type: str
    name: str
    first_name: str
    last_name: str
    display_name: Optional[str]
    date_of_birth: Optional[str]
    date_of_death: Optional[str]
    place_of_birth: Optional[str]
    place_of_death: Optional[str]
    profession: Optional[str]
    notes: Optional[str]
    gender: Optional[str]
    photo_count: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("", response_model=PersonResponse, status_code=201)
def create(body: PersonFields, request: Request) -> dict[str, Any]:
    """Create a standalone person."""
    conn = request.app.state.db
    person = family.create_person(conn, body.model_dump(exclude_none=True))
    return person.to_dict()


@router.get("", response_model=list[PersonResponse])
def list_all(request: Request, q: Optional[str] = None, limit: int = 20) -> list[dict[str, Any]]:
    """Return every person, or those whose name matches ``q``."""
    conn = request.app.state.db
    people = search_persons(conn, q, limit=limit) if q and q.strip() else list_persons(conn)
    return [p.to_dict() for p in people]


@router.get("/{person_id}", response_model=PersonResponse)
def get_one(person_id: str, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    return require_person(conn, person_id).to_dict()


@router.get("/{person_id}/couples")
def couples_of(person_id: str, request: Request) -> dict[str, Any]:
    """Couple memberships plus the reuse policy for each kind of new relative."""
    conn = request.app.state.db
    membership = family.list_couples_for_person(conn, person_id)
    return {
        **membership.to_dict(),
        "policies": {role: couple_choice(membership, role).value for role in RELATIVE_ROLES},
    }


@router.get("/{person_id}/photos")
def photos_of(person_id: str, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    require_person(conn, person_id)
    return {"photos": [p.to_dict() for p in photos_for_person(conn, person_id)]}
