"""Whole-tree endpoints.

Routes
------
GET    /family-tree           Every node and link ({nodes, links})
POST   /family-tree           Add a new child or parent to an existing couple
PATCH  /family-tree           Partial update of a person
DELETE /family-tree           Delete a person or couple (?id=&node_type=)
GET    /family-tree/layout    Positioned nodes from the layout engine
GET    /family-tree/svg       The rendered diagram
"""

from __future__ import annotations

import dataclasses
from typing import Any, Literal, Optional

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from familytree.api.routers.persons import PersonFields
from familytree.db import family
from familytree.db.edges import get_tree
from familytree.errors import ValidationError
from familytree.layout import LayoutConfig, compute_layout, relax
from familytree.render import RenderSynchronizer

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class AddToCouple(BaseModel):
    couple_id: str
    relation: str
    person: Optional[PersonFields] = None


class PersonPatch(BaseModel):
    id: str
    updates: PersonFields


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _layout_config(rankdir: Optional[str]) -> LayoutConfig:
    config = LayoutConfig.from_settings()
    if rankdir:
        config = dataclasses.replace(config, rankdir=rankdir)
    return config


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("")
def full_tree(request: Request) -> dict[str, Any]:
    """Return every person, couple and relationship edge."""
    conn = request.app.state.db
    return get_tree(conn).to_dict()


@router.post("", status_code=201)
def add_to_couple(body: AddToCouple, request: Request) -> dict[str, Any]:
    """Create a person as a child or parent of ``couple_id``."""
    conn = request.app.state.db
    fields = body.person.model_dump(exclude_none=True) if body.person else {}
    person = family.add_person_to_couple(conn, body.couple_id, body.relation, fields)
    return {"person": person.to_dict(), "couple_id": body.couple_id}


@router.patch("")
def update(body: PersonPatch, request: Request) -> dict[str, Any]:
    """Apply a partial update; fields sent as "" are cleared."""
    conn = request.app.state.db
    person = family.update_person(conn, body.id, body.updates.model_dump(exclude_unset=True))
    return person.to_dict()


@router.delete("")
def remove(
    request: Request,
    id: str,
    node_type: Literal["person", "couple"] = "person",
) -> dict[str, Any]:
    """Delete a node; incident edges go with it, attached persons stay."""
    conn = request.app.state.db
    if not id.strip():
        raise ValidationError("id is required")
    if node_type == "couple":
        family.delete_couple(conn, id)
    else:
        family.delete_person(conn, id)
    return {"success": True}


@router.get("/layout")
def layout(
    request: Request,
    rankdir: Optional[str] = None,
    relaxed: bool = True,
) -> dict[str, Any]:
    """Run the layout engine over the current tree."""
    conn = request.app.state.db
    config = _layout_config(rankdir)
    result = compute_layout(get_tree(conn), config)
    if relaxed:
        result = relax(result, config)
    return result.to_dict()


@router.get("/svg")
def svg(request: Request, rankdir: Optional[str] = None) -> Response:
    """Render the current tree to SVG."""
    conn = request.app.state.db
    scene = RenderSynchronizer(_layout_config(rankdir))
    scene.load(get_tree(conn))
    return Response(content=scene.to_svg(), media_type="image/svg+xml")
