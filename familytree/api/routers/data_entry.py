"""Data-entry wizard endpoints.

Routes
------
GET  /data-entry?start_person_id=   Relatives with missing data, closest first
POST /data-entry                    Save answers for one person
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from familytree.db.data_entry import QUESTIONS, incomplete_people, save_answers

router = APIRouter()


class Answers(BaseModel):
    person_id: str
    updates: dict[str, Optional[str]]


@router.get("")
def incomplete(
    request: Request,
    start_person_id: str,
    max_distance: Optional[int] = None,
) -> dict[str, Any]:
    """An empty ``people`` list means there is nothing left to ask."""
    conn = request.app.state.db
    people = incomplete_people(conn, start_person_id, max_distance)
    return {
        "people": [p.to_dict() for p in people],
        "total_questions": sum(len(p.missing_fields) for p in people),
        "questions": [q.to_dict() for q in QUESTIONS],
    }


@router.post("")
def answer(body: Answers, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    return save_answers(conn, body.person_id, body.updates).to_dict()
