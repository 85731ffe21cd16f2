"""Couple endpoints.

Routes
------
POST /couple               Create a couple around an anchor person
POST /couple/link          Attach an existing person to an existing couple
POST /couple/with-person   Create a relative and link it in one call
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from familytree.api.routers.persons import PersonFields
from familytree.db import family

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class CoupleCreate(BaseModel):
    anchor_person_id: str
    role: str


class CoupleLink(BaseModel):
    person_id: str
    couple_id: str
    role: str


class RelativeCreate(BaseModel):
    role: str
    anchor_person_id: Optional[str] = None
    couple_id: Optional[str] = None
    person: Optional[PersonFields] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("", status_code=201)
def create(body: CoupleCreate, request: Request) -> dict[str, Any]:
    """Create a couple with the anchor as ``partner`` or ``child``."""
    conn = request.app.state.db
    couple = family.create_couple(conn, body.anchor_person_id, body.role)
    return couple.to_dict()


@router.post("/link")
def link(body: CoupleLink, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    family.link_person_to_couple(conn, body.person_id, body.couple_id, body.role)
    return {"success": True}


@router.post("/with-person", status_code=201)
def create_with_person(body: RelativeCreate, request: Request) -> dict[str, Any]:
    """Create a parent, child or partner of the anchor.

    Joins ``couple_id`` when given, otherwise a new couple is created.
    """
    conn = request.app.state.db
    fields = body.person.model_dump(exclude_none=True) if body.person else {}
    person, couple_id = family.create_person_and_link(
        conn, body.anchor_person_id, body.couple_id, body.role, fields
    )
    return {"person": person.to_dict(), "couple_id": couple_id}
