"""Scene model that keeps the family diagram in step with the data.

Every node is a :class:`NodeView` holding named parts (``header-rect``,
``name-text`` ...) that are created once and afterwards only looked up by
name and updated in place.  :class:`RenderSynchronizer` owns the views and
offers three update paths:

* :meth:`~RenderSynchronizer.load` builds everything from scratch.
* :meth:`~RenderSynchronizer.apply_field_edit` touches a single view.
* :meth:`~RenderSynchronizer.apply_structure` re-runs the layout and
  rebinds positions, keeping views whose ids survive.

Dragging only moves and pins a view.  :meth:`~RenderSynchronizer.to_svg`
serialises the current scene with :mod:`xml.etree.ElementTree`.
"""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Optional

from familytree.db.models import Couple, EdgeKind, Person, TreeNode, TreeSnapshot
from familytree.layout import Layout, LayoutConfig, compute_layout, label_rows, node_dimensions, relax
from familytree.layout.dimensions import HEADER_HEIGHT, PADDING, ROW_HEIGHT
from familytree.logging_config import get_logger

logger = get_logger(__name__)

GENDER_COLOURS = {
    "male": ("#E3F2FD", "#2196F3"),
    "female": ("#FCE4EC", "#E91E63"),
    None: ("#F5F5F5", "#9E9E9E"),
}
LINK_COLOURS = {
    EdgeKind.PARTNER: "#9C27B0",
    EdgeKind.CHILD: "#4CAF50",
}
COUPLE_COLOUR = "#F57C00"

PERSON_PARTS = ("body-rect", "header-rect", "name-text", "detail-text", "photo-badge")
COUPLE_PARTS = ("couple-circle",)


def _num(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def _sid(*parts: str) -> str:
    s = "-".join(str(p) for p in parts if p is not None and str(p) != "")
    return "".join(ch if ch.isalnum() or ch in ("_", "-") else "_" for ch in s)[:180]


@dataclass
class Part:
    """One drawable piece of a node, in coordinates relative to its top-left."""

    name: str
    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    text: Optional[str] = None
    lines: list[str] = field(default_factory=list)


@dataclass
class NodeView:
    id: str
    node_type: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    rank: int = 0
    order: int = 0
    pinned: bool = False
    version: int = 0
    parts: dict[str, Part] = field(default_factory=dict)

    def element_id(self, part: Optional[str] = None) -> str:
        return _sid("node", self.id, part or "")

    def part(self, name: str) -> Part:
        return self.parts[name]

    def top_left(self) -> tuple[float, float]:
        return self.x - self.width / 2, self.y - self.height / 2


@dataclass
class EdgeView:
    source: str
    target: str
    kind: EdgeKind
    index: int = 0

    @property
    def element_id(self) -> str:
        return _sid("edge", self.source, self.target, self.kind.value, str(self.index))

    @property
    def colour(self) -> str:
        return LINK_COLOURS[self.kind]


def clip_to_footprint(source: NodeView, target: NodeView) -> tuple[float, float, float, float]:
    """End points of a link trimmed to the two node footprints.

    The offset from each centre follows the link direction scaled by the
    node's half width and half height, i.e. an elliptical footprint.
    """
    dx = target.x - source.x
    dy = target.y - source.y
    dist = math.hypot(dx, dy)
    if dist == 0:
        return source.x, source.y, target.x, target.y
    ux, uy = dx / dist, dy / dist
    x1 = source.x + ux * source.width / 2
    y1 = source.y + uy * source.height / 2
    x2 = target.x - ux * target.width / 2
    y2 = target.y - uy * target.height / 2
    return x1, y1, x2, y2


@dataclass
class StructureDiff:
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)


class RenderSynchronizer:
    """Owns the scene for one diagram session."""

    def __init__(self, config: Optional[LayoutConfig] = None, relax_enabled: bool = True) -> None:
        self.config = config or LayoutConfig.from_settings()
        self.relax_enabled = relax_enabled
        self.views: dict[str, NodeView] = {}
        self.edges: list[EdgeView] = []
        self.layout: Optional[Layout] = None

    # ------------------------------------------------------------------
    # View construction
    # ------------------------------------------------------------------

    def _new_view(self, node: TreeNode) -> NodeView:
        view = NodeView(id=node.id, node_type=node.node_type)
        if isinstance(node, Couple):
            view.parts["couple-circle"] = Part("couple-circle", "circle")
        else:
            view.parts["body-rect"] = Part("body-rect", "rect")
            view.parts["header-rect"] = Part("header-rect", "rect")
            view.parts["name-text"] = Part("name-text", "text")
            view.parts["detail-text"] = Part("detail-text", "text")
            view.parts["photo-badge"] = Part("photo-badge", "text")
        self._refresh(view, node)
        return view

    def _refresh(self, view: NodeView, node: TreeNode) -> None:
        """Recompute size, colours and text of *view* from *node* in place."""
        view.width, view.height = node_dimensions(node)
        view.version += 1

        if isinstance(node, Couple):
            circle = view.part("couple-circle")
            circle.attrs.update({
                "cx": _num(view.width / 2),
                "cy": _num(view.height / 2),
                "r": _num(view.width / 2 - 4),
                "fill": "#FFF3E0",
                "stroke": COUPLE_COLOUR,
                "stroke-width": "2",
            })
            circle.text = f"{node.partner_count}♥{node.child_count}"
            return

        fill, border = GENDER_COLOURS[node.gender.value if node.gender else None]
        view.part("body-rect").attrs.update({
            "x": "0", "y": "0",
            "width": _num(view.width), "height": _num(view.height),
            "rx": "8", "fill": fill, "stroke": border, "stroke-width": "2",
        })
        view.part("header-rect").attrs.update({
            "x": "0", "y": "0",
            "width": _num(view.width), "height": _num(HEADER_HEIGHT),
            "rx": "8", "fill": border,
        })

        name = view.part("name-text")
        name.text = node.name
        name.attrs.update({
            "x": _num(view.width / 2), "y": _num(HEADER_HEIGHT / 2 + 5),
            "text-anchor": "middle", "fill": "#FFFFFF", "font-weight": "bold",
        })

        detail = view.part("detail-text")
        detail.lines = [f"{label}: {value}" for label, value in label_rows(node)]
        detail.attrs.update({
            "x": _num(PADDING / 2 + 4),
            "y": _num(HEADER_HEIGHT + PADDING / 2 + ROW_HEIGHT / 2),
            "fill": "#333333",
        })

        badge = view.part("photo-badge")
        badge.text = f"\U0001F4F7 {node.photo_count}" if node.photo_count else ""
        badge.attrs.update({
            "x": _num(view.width - 8), "y": _num(HEADER_HEIGHT / 2 + 5),
            "text-anchor": "end", "fill": "#FFFFFF",
            "visibility": "visible" if node.photo_count else "hidden",
        })

    def _bind_positions(self, layout: Layout) -> None:
        for nid, placed in layout.nodes.items():
            view = self.views.get(nid)
            if view is None:
                continue
            view.x, view.y = placed.x, placed.y
            view.rank, view.order = placed.rank, placed.order

    def _rebuild_edges(self, snapshot: TreeSnapshot) -> None:
        counts: dict[tuple[str, str, EdgeKind], int] = {}
        self.edges = []
        for edge in snapshot.edges:
            if edge.source not in self.views or edge.target not in self.views:
                continue
            key = (edge.source, edge.target, edge.kind)
            self.edges.append(EdgeView(edge.source, edge.target, edge.kind, counts.get(key, 0)))
            counts[key] = counts.get(key, 0) + 1

    def _run_layout(self, snapshot: TreeSnapshot) -> Layout:
        layout = compute_layout(snapshot, self.config)
        if self.relax_enabled:
            layout = relax(layout, self.config)
        self.layout = layout
        return layout

    # ------------------------------------------------------------------
    # Update paths
    # ------------------------------------------------------------------

    def load(self, snapshot: TreeSnapshot) -> None:
        """Build the whole scene from scratch."""
        self.views = {node.id: self._new_view(node) for node in snapshot.nodes}
        self._bind_positions(self._run_layout(snapshot))
        self._rebuild_edges(snapshot)
        logger.debug("Loaded scene with %d nodes, %d edges", len(self.views), len(self.edges))

    def apply_field_edit(self, person: Person) -> bool:
        """Update one person's view in place after a field edit.

        Siblings keep their positions even if the card grew.  Returns
        ``False`` (and does nothing) when the view no longer exists.
        """
        view = self.views.get(person.id)
        if view is None or view.node_type != "person":
            logger.debug("No view for %s; ignoring field edit", person.id)
            return False
        self._refresh(view, person)
        return True

    def apply_structure(self, snapshot: TreeSnapshot) -> StructureDiff:
        """Re-layout after a structural change and reconcile the views.

        Cached positions and drag pins are discarded.  Views whose ids
        survive are kept (and refreshed); new ids get new views and vanished
        ids are dropped.
        """
        diff = StructureDiff()
        current = {node.id: node for node in snapshot.nodes}

        for nid in list(self.views):
            view = self.views[nid]
            node = current.get(nid)
            if node is None or node.node_type != view.node_type:
                del self.views[nid]
                diff.removed.append(nid)

        for nid, node in current.items():
            view = self.views.get(nid)
            if view is None:
                self.views[nid] = self._new_view(node)
                diff.added.append(nid)
            else:
                view.pinned = False
                self._refresh(view, node)
                diff.kept.append(nid)

        self._bind_positions(self._run_layout(snapshot))
        self._rebuild_edges(snapshot)
        return diff

    def drag(self, node_id: str, x: float, y: float) -> bool:
        """Move a node and pin it there.  No re-layout."""
        view = self.views.get(node_id)
        if view is None:
            return False
        view.x, view.y = x, y
        view.pinned = True
        return True

    def positions(self) -> dict[str, tuple[float, float]]:
        return {nid: (v.x, v.y) for nid, v in self.views.items()}

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def _bounds(self) -> tuple[float, float]:
        margin = self.config.margin
        if not self.views:
            return 2 * margin, 2 * margin
        width = max(v.x + v.width / 2 for v in self.views.values()) + margin
        height = max(v.y + v.height / 2 for v in self.views.values()) + margin
        return width, height

    def _draw_markers(self, svg: ET.Element) -> None:
        defs = ET.SubElement(svg, "defs")
        for kind, colour in LINK_COLOURS.items():
            marker = ET.SubElement(
                defs,
                "marker",
                {
                    "id": f"arrowhead-{kind.value}",
                    "viewBox": "0 -5 10 10",
                    "refX": "10",
                    "refY": "0",
                    "orient": "auto",
                    "markerWidth": "12",
                    "markerHeight": "12",
                },
            )
            ET.SubElement(marker, "path", {"d": "M0,-5L10,0L0,5", "fill": colour})

    def _draw_part(self, group: ET.Element, view: NodeView, part: Part) -> None:
        el = ET.SubElement(group, part.tag, {"id": view.element_id(part.name), **part.attrs})
        if part.tag == "circle" and part.text is not None:
            # Circles cannot hold text; the label goes in a sibling element.
            label = ET.SubElement(
                group,
                "text",
                {
                    "id": view.element_id(part.name + "-label"),
                    "x": part.attrs.get("cx", "0"),
                    "y": part.attrs.get("cy", "0"),
                    "text-anchor": "middle",
                    "fill": COUPLE_COLOUR,
                },
            )
            label.text = part.text
        elif part.lines:
            for i, line in enumerate(part.lines):
                span = ET.SubElement(
                    el,
                    "tspan",
                    {"x": part.attrs.get("x", "0"), "dy": "0" if i == 0 else _num(ROW_HEIGHT)},
                )
                span.text = line
        elif part.text is not None:
            el.text = part.text

    def to_svg(self) -> str:
        width, height = self._bounds()
        svg = ET.Element(
            "svg",
            {
                "xmlns": "http://www.w3.org/2000/svg",
                "version": "1.1",
                "width": _num(width),
                "height": _num(height),
                "viewBox": f"0 0 {_num(width)} {_num(height)}",
            },
        )
        self._draw_markers(svg)

        links = ET.SubElement(svg, "g", {"id": "links"})
        for edge in self.edges:
            x1, y1, x2, y2 = clip_to_footprint(self.views[edge.source], self.views[edge.target])
            ET.SubElement(
                links,
                "line",
                {
                    "id": edge.element_id,
                    "x1": _num(x1), "y1": _num(y1), "x2": _num(x2), "y2": _num(y2),
                    "stroke": edge.colour,
                    "stroke-width": "2",
                    "marker-end": f"url(#arrowhead-{edge.kind.value})",
                    "data-kind": edge.kind.value,
                },
            )

        nodes = ET.SubElement(svg, "g", {"id": "nodes"})
        for view in self.views.values():
            left, top = view.top_left()
            group = ET.SubElement(
                nodes,
                "g",
                {
                    "id": view.element_id(),
                    "class": view.node_type,
                    "transform": f"translate({_num(left)},{_num(top)})",
                },
            )
            names = COUPLE_PARTS if view.node_type == "couple" else PERSON_PARTS
            for name in names:
                self._draw_part(group, view, view.part(name))

        return ET.tostring(svg, encoding="unicode")
