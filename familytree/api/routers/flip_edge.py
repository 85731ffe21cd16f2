"""POST /flip-edge -- swap a person's role in a couple (partner <-> child)."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel

from familytree.db import family

router = APIRouter()


class FlipRequest(BaseModel):
    person_id: str
    couple_id: str


@router.post("")
def flip(body: FlipRequest, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    kind = family.flip_edge(conn, body.person_id, body.couple_id)
    return {"success": True, "kind": kind.value}
