"""Gesture state machine for one diagram session.

The controller turns clicks, edge clicks and drags into API calls and then
picks the matching synchroniser path: a saved edit updates one view, a new
relative or a flipped edge re-lays-out the tree, and a drag only pins.

States::

    IDLE --click_node--> NODE_SELECTED --begin_edit--> EDITING --save--> IDLE
    IDLE --open_relation_prompt--> RELATION_PROMPT --(new relative)--> EDITING
    IDLE --click_edge--> FLIP_PROMPT --confirm_flip--> IDLE
    IDLE --drag_start--> DRAGGING --drag_end--> IDLE

A failed call leaves the dialog open with ``error`` set.  ``dismiss()``
returns to IDLE from anywhere without side effects.  After ``close()`` any
result that arrives is discarded.
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional

from familytree.db.family import ReusePolicy, couple_choice, relevant_couples
from familytree.db.models import EdgeKind, Person
from familytree.errors import FamilyTreeError, InteractionError
from familytree.interaction.client import TreeApiClient
from familytree.logging_config import get_logger
from familytree.render import RenderSynchronizer

logger = get_logger(__name__)


class State(str, Enum):
    IDLE = "idle"
    NODE_SELECTED = "node_selected"
    EDITING = "editing"
    RELATION_PROMPT = "relation_prompt"
    FLIP_PROMPT = "flip_prompt"
    DRAGGING = "dragging"


class InteractionController:
    def __init__(self, client: TreeApiClient, sync: RenderSynchronizer) -> None:
        self.client = client
        self.sync = sync
        self.state = State.IDLE
        self.selected: Optional[str] = None
        self.error: Optional[str] = None
        self.busy: set[str] = set()
        self.closed = False
        # Bumped every time an edit dialog opens.
        self.edit_session = 0

        self.relation_role: Optional[str] = None
        self.reuse_policy: Optional[ReusePolicy] = None
        self.couple_choices: list[str] = []
        self.flip_target: Optional[tuple[str, str]] = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _expect(self, *states: State) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InteractionError(f"Cannot do that while {self.state.value} (needs {allowed})")

    def _reset(self) -> None:
        self.state = State.IDLE
        self.selected = None
        self.error = None
        self.relation_role = None
        self.reuse_policy = None
        self.couple_choices = []
        self.flip_target = None

    def _open_editor(self) -> None:
        self.state = State.EDITING
        self.edit_session += 1

    def _still_editing(self, session: int) -> bool:
        return self.state is State.EDITING and self.edit_session == session

    @contextmanager
    def _busy(self, name: str) -> Iterator[None]:
        self.busy.add(name)
        try:
            yield
        finally:
            self.busy.discard(name)

    async def _resync_structure(self) -> bool:
        """Refetch the tree and re-layout.  ``False`` if the session closed meanwhile."""
        snapshot = await self.client.get_tree()
        if self.closed:
            return False
        self.sync.apply_structure(snapshot)
        return True

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Initial full load of the diagram."""
        with self._busy("load"):
            snapshot = await self.client.get_tree()
        if not self.closed:
            self.sync.load(snapshot)

    def close(self) -> None:
        self.closed = True

    def dismiss(self) -> None:
        """Cancel whatever dialog is open."""
        self._reset()

    # ------------------------------------------------------------------
    # Selection and editing
    # ------------------------------------------------------------------

    def click_node(self, node_id: str) -> None:
        self._expect(State.IDLE, State.NODE_SELECTED)
        if node_id not in self.sync.views:
            raise InteractionError(f"No node {node_id} in the diagram")
        self.state = State.NODE_SELECTED
        self.selected = node_id

    def begin_edit(self) -> None:
        self._expect(State.NODE_SELECTED)
        view = self.sync.views.get(self.selected or "")
        if view is None or view.node_type != "person":
            raise InteractionError("Only persons can be edited")
        self._open_editor()
        self.error = None

    async def save(self, fields: dict[str, Any]) -> bool:
        """Persist the edit; on success update just that node's view."""
        self._expect(State.EDITING)
        person_id = self.selected
        session = self.edit_session
        with self._busy("save"):
            try:
                person = await self.client.update_person(person_id, fields)  # type: ignore[arg-type]
            except FamilyTreeError as exc:
                if not self.closed and self._still_editing(session):
                    self.error = str(exc)
                return False
        if self.closed:
            return False
        self.sync.apply_field_edit(person)
        # The user may have moved on while the request was in flight.
        if self._still_editing(session):
            self._reset()
        return True

    # ------------------------------------------------------------------
    # Adding relatives
    # ------------------------------------------------------------------

    def open_relation_prompt(self, person_id: str) -> None:
        self._expect(State.IDLE, State.NODE_SELECTED)
        self._reset()
        self.state = State.RELATION_PROMPT
        self.selected = person_id

    async def choose_relation(self, role: str) -> Optional[Person]:
        """Pick parent / child / partner.

        With no relevant couple the relative is created straight away and
        returned.  Otherwise ``couple_choices`` is filled and ``None`` is
        returned until :meth:`choose_couple` is called.
        """
        self._expect(State.RELATION_PROMPT)
        with self._busy("couples"):
            try:
                membership = await self.client.couples_for_person(self.selected)  # type: ignore[arg-type]
                candidates = relevant_couples(membership, role)
            except FamilyTreeError as exc:
                if not self.closed:
                    self.error = str(exc)
                return None
        if self.closed:
            return None

        self.relation_role = role
        self.reuse_policy = couple_choice(membership, role)
        if self.reuse_policy is ReusePolicy.CREATE:
            return await self._create_relative(None)
        self.couple_choices = candidates
        return None

    async def choose_couple(self, couple_id: Optional[str]) -> Optional[Person]:
        """Reuse *couple_id*, or create a new couple when ``None``."""
        self._expect(State.RELATION_PROMPT)
        if self.relation_role is None:
            raise InteractionError("Choose a relation first")
        if couple_id is not None and couple_id not in self.couple_choices:
            raise InteractionError(f"Couple {couple_id} is not one of the offered choices")
        return await self._create_relative(couple_id)

    async def _create_relative(self, couple_id: Optional[str]) -> Optional[Person]:
        with self._busy("relation"):
            try:
                person, _ = await self.client.create_person_and_link(
                    self.selected, couple_id, self.relation_role  # type: ignore[arg-type]
                )
                synced = await self._resync_structure()
            except FamilyTreeError as exc:
                if not self.closed:
                    self.error = str(exc)
                return None
        if not synced:
            return None
        logger.info("Added %s as %s of %s", person.id, self.relation_role, self.selected)
        self._reset()
        self._open_editor()
        self.selected = person.id
        return person

    # ------------------------------------------------------------------
    # Flipping edges
    # ------------------------------------------------------------------

    def click_edge(self, person_id: str, couple_id: str) -> None:
        self._expect(State.IDLE)
        self.state = State.FLIP_PROMPT
        self.flip_target = (person_id, couple_id)
        self.error = None

    async def confirm_flip(self) -> Optional[EdgeKind]:
        self._expect(State.FLIP_PROMPT)
        person_id, couple_id = self.flip_target  # type: ignore[misc]
        with self._busy("flip"):
            try:
                kind = await self.client.flip_edge(person_id, couple_id)
                synced = await self._resync_structure()
            except FamilyTreeError as exc:
                if not self.closed:
                    self.error = str(exc)
                return None
        if not synced:
            return None
        self._reset()
        return kind

    # ------------------------------------------------------------------
    # Dragging
    # ------------------------------------------------------------------

    def drag_start(self, node_id: str) -> None:
        self._expect(State.IDLE, State.NODE_SELECTED)
        if node_id not in self.sync.views:
            raise InteractionError(f"No node {node_id} in the diagram")
        self._reset()
        self.state = State.DRAGGING
        self.selected = node_id

    def drag_move(self, x: float, y: float) -> None:
        self._expect(State.DRAGGING)
        self.sync.drag(self.selected, x, y)  # type: ignore[arg-type]

    def drag_end(self, x: Optional[float] = None, y: Optional[float] = None) -> None:
        self._expect(State.DRAGGING)
        if x is not None and y is not None:
            self.sync.drag(self.selected, x, y)  # type: ignore[arg-type]
        self._reset()
