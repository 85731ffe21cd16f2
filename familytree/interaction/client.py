"""Async client for the family tree HTTP API.

Error bodies (``{"error": "..."}``) are turned back into the typed
exceptions of :mod:`familytree.errors` so callers handle the same errors
whether they talk to the store directly or over HTTP.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from familytree.config import Settings
from familytree.db.models import CoupleMembership, EdgeKind, Person, TreeSnapshot
from familytree.errors import (
    FamilyTreeError,
    NotFoundError,
    UploadFailedError,
    ValidationError,
)

_ERRORS_BY_STATUS = {
    400: ValidationError,
    404: NotFoundError,
    502: UploadFailedError,
}


class TreeApiClient:
    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        config: Optional[Settings] = None,
    ) -> None:
        if config is None:
            from familytree.config import settings as config
        self._client = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            timeout=config.request_timeout,
        )

    async def __aenter__(self) -> "TreeApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise FamilyTreeError(f"Request to {path} failed: {exc}") from exc
        if response.is_error:
            try:
                message = response.json().get("error") or response.text
            except ValueError:
                message = response.text
            raise _ERRORS_BY_STATUS.get(response.status_code, FamilyTreeError)(message)
        return response.json()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_tree(self) -> TreeSnapshot:
        return TreeSnapshot.from_dict(await self._call("GET", "/family-tree"))

    async def get_person(self, person_id: str) -> Person:
        return Person.from_dict(await self._call("GET", f"/persons/{person_id}"))

    async def update_person(self, person_id: str, fields: dict[str, Any]) -> Person:
        data = await self._call("PATCH", "/family-tree", json={"id": person_id, "updates": fields})
        return Person.from_dict(data)

    async def couples_for_person(self, person_id: str) -> CoupleMembership:
        data = await self._call("GET", f"/persons/{person_id}/couples")
        return CoupleMembership(as_partner=data["as_partner"], as_child=data["as_child"])

    async def create_person_and_link(
        self,
        anchor_person_id: Optional[str],
        couple_id: Optional[str],
        role: str,
        fields: Optional[dict[str, Any]] = None,
    ) -> tuple[Person, str]:
        data = await self._call(
            "POST",
            "/couple/with-person",
            json={
                "anchor_person_id": anchor_person_id,
                "couple_id": couple_id,
                "role": role,
                "person": fields or {},
            },
        )
        return Person.from_dict(data["person"]), data["couple_id"]

    async def flip_edge(self, person_id: str, couple_id: str) -> EdgeKind:
        data = await self._call(
            "POST", "/flip-edge", json={"person_id": person_id, "couple_id": couple_id}
        )
        return EdgeKind.parse(data["kind"])

    async def delete_node(self, node_id: str, node_type: str = "person") -> None:
        await self._call("DELETE", "/family-tree", params={"id": node_id, "node_type": node_type})
