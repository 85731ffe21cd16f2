"""Generational layout of the person/couple graph.

The graph mirrors the stored edges: partner edges run Person -> Couple and
child edges run Couple -> Person.  Layout happens in four passes:

1. **Cycle breaking** -- an iterative DFS marks edges that close a cycle;
   those are ignored for ranking so bad data can never hang the engine.
2. **Ranking** -- longest path over the remaining DAG where a partner edge
   weighs 0 and a child edge weighs 1.  A couple therefore shares the
   generation of its lowest partner and each child sits one generation
   below its parents.  Persons occupy layer ``2*rank`` and couples
   ``2*rank + 1`` so a couple is drawn between partners and children.
3. **Ordering** -- barycenter sweeps that keep the ordering with the
   fewest crossings between adjacent layers.
4. **Placement** -- nodes are pulled toward the mean position of their
   neighbours; a left-packed and a right-packed pass are averaged, both
   respecting the configured separation.

All passes are deterministic: the same snapshot and configuration always
produce the same ranks, order and coordinates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import networkx as nx

from familytree.config import Settings
from familytree.db.models import EdgeKind, TreeSnapshot
from familytree.errors import ValidationError
from familytree.layout.dimensions import node_dimensions

RANKDIRS = ("TB", "BT", "LR", "RL")


@dataclass
class LayoutConfig:
    rankdir: str = "TB"
    ranksep: float = 150.0
    nodesep: float = 100.0
    edgesep: float = 50.0
    margin: float = 20.0
    order_sweeps: int = 4
    relax_max_iterations: int = 120

    def __post_init__(self) -> None:
        self.rankdir = self.rankdir.upper()
        if self.rankdir not in RANKDIRS:
            raise ValidationError(
                f"Invalid rankdir {self.rankdir!r}. Must be one of {', '.join(RANKDIRS)}"
            )

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "LayoutConfig":
        if config is None:
            from familytree.config import settings as config
        return cls(
            rankdir=config.layout_rankdir,
            ranksep=config.layout_ranksep,
            nodesep=config.layout_nodesep,
            edgesep=config.layout_edgesep,
            order_sweeps=config.layout_order_sweeps,
            relax_max_iterations=config.relax_max_iterations,
        )

    @property
    def horizontal(self) -> bool:
        """``True`` when generations run left/right instead of up/down."""
        return self.rankdir in ("LR", "RL")

    def gap(self, type_a: str, type_b: str) -> float:
        """Free space required between two neighbours in one layer."""
        if "couple" in (type_a, type_b):
            return self.edgesep
        return self.nodesep


@dataclass
class PositionedNode:
    id: str
    node_type: str
    x: float
    y: float
    width: float
    height: float
    rank: int
    layer: int
    order: int

    def top_left(self) -> tuple[float, float]:
        """Corner a person card is anchored at; ``(x, y)`` is the centre."""
        return self.x - self.width / 2, self.y - self.height / 2

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "node_type": self.node_type,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "rank": self.rank,
            "layer": self.layer,
            "order": self.order,
        }


@dataclass
class Layout:
    nodes: dict[str, PositionedNode] = field(default_factory=dict)
    edges: list[tuple[str, str, EdgeKind]] = field(default_factory=list)
    config: LayoutConfig = field(default_factory=LayoutConfig)

    @property
    def width(self) -> float:
        if not self.nodes:
            return 2 * self.config.margin
        return max(n.x + n.width / 2 for n in self.nodes.values()) + self.config.margin

    @property
    def height(self) -> float:
        if not self.nodes:
            return 2 * self.config.margin
        return max(n.y + n.height / 2 for n in self.nodes.values()) + self.config.margin

    def ranks(self) -> dict[str, int]:
        return {nid: n.rank for nid, n in self.nodes.items()}

    def layers(self) -> dict[int, list[str]]:
        """Node ids per layer, left to right."""
        grouped: dict[int, list[PositionedNode]] = {}
        for node in self.nodes.values():
            grouped.setdefault(node.layer, []).append(node)
        return {
            layer: [n.id for n in sorted(members, key=lambda n: n.order)]
            for layer, members in sorted(grouped.items())
        }

    def to_dict(self) -> dict:
        return {
            "rankdir": self.config.rankdir,
            "width": self.width,
            "height": self.height,
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "links": [
                {"source": s, "target": t, "kind": k.value} for s, t, k in self.edges
            ],
        }


# ---------------------------------------------------------------------------
# Graph construction and ranking
# ---------------------------------------------------------------------------

def build_graph(snapshot: TreeSnapshot) -> nx.DiGraph:
    """Directed graph of the snapshot with sizes and edge weights attached.

    Nodes are added in store order (persons, then couples) and edges in
    store order; every later pass relies on that for determinism.
    """
    graph = nx.DiGraph()
    for node in snapshot.nodes:
        width, height = node_dimensions(node)
        graph.add_node(node.id, node_type=node.node_type, width=width, height=height)
    for edge in snapshot.edges:
        if edge.source not in graph or edge.target not in graph:
            continue
        weight = 1 if edge.kind is EdgeKind.CHILD else 0
        graph.add_edge(edge.source, edge.target, kind=edge.kind, weight=weight)
    return graph


def find_back_edges(graph: nx.DiGraph) -> set[tuple[str, str]]:
    """Edges that close a cycle during a DFS from the roots.

    Roots (no incoming edge) are visited first in node order, then any node
    still unvisited, so nodes that only sit on cycles are covered too.
    """
    visited: set[str] = set()
    on_stack: set[str] = set()
    back: set[tuple[str, str]] = set()

    starts = [n for n in graph if graph.in_degree(n) == 0] + list(graph)
    for start in starts:
        if start in visited:
            continue
        visited.add(start)
        on_stack.add(start)
        stack = [(start, iter(graph.successors(start)))]
        while stack:
            node, children = stack[-1]
            child = next(children, None)
            if child is None:
                stack.pop()
                on_stack.discard(node)
            elif child in on_stack:
                back.add((node, child))
            elif child not in visited:
                visited.add(child)
                on_stack.add(child)
                stack.append((child, iter(graph.successors(child))))
    return back


def assign_ranks(dag: nx.DiGraph) -> dict[str, int]:
    """Weighted longest-path ranks over an acyclic graph.

    Roots are then pulled down to the generation of their closest
    successor, so a partner with no recorded parents is drawn beside their
    spouse rather than at the top of the tree.
    """
    order = list(nx.topological_sort(dag))
    ranks: dict[str, int] = {}
    for node in order:
        preds = list(dag.predecessors(node))
        ranks[node] = max((ranks[p] + dag.edges[p, node]["weight"] for p in preds), default=0)

    for node in reversed(order):
        if dag.in_degree(node) == 0 and dag.out_degree(node) > 0:
            ranks[node] = min(
                ranks[s] - dag.edges[node, s]["weight"] for s in dag.successors(node)
            )
    return ranks


def _layer_of(node_type: str, rank: int) -> int:
    return 2 * rank + 1 if node_type == "couple" else 2 * rank


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

def _crossings(upper: list[str], lower: list[str], dag: nx.DiGraph) -> int:
    """Number of edge crossings between two adjacent layers."""
    pos_upper = {n: i for i, n in enumerate(upper)}
    pos_lower = {n: i for i, n in enumerate(lower)}
    segments = [
        (pos_upper[u], pos_lower[v])
        for u in upper
        for v in dag.successors(u)
        if v in pos_lower
    ]
    count = 0
    for i, (a1, b1) in enumerate(segments):
        for a2, b2 in segments[i + 1:]:
            if (a1 - a2) * (b1 - b2) < 0:
                count += 1
    return count


def _total_crossings(layers: dict[int, list[str]], dag: nx.DiGraph) -> int:
    keys = sorted(layers)
    return sum(
        _crossings(layers[a], layers[b], dag) for a, b in zip(keys, keys[1:])
    )


def _sweep(
    layers: dict[int, list[str]],
    layer_of: dict[str, int],
    dag: nx.DiGraph,
    downward: bool,
) -> None:
    """One barycenter sweep, reordering each layer in place.

    Neighbours in any earlier layer (later, for an upward sweep) count, so
    edges that skip a layer still pull their endpoints together.  Nodes
    without such neighbours keep their current index; the sort is stable.
    """
    keys = sorted(layers) if downward else sorted(layers, reverse=True)
    index: dict[str, int] = {}
    for key in keys:
        for i, n in enumerate(layers[key]):
            index[n] = i

    for key in keys[1:]:
        members = layers[key]
        centres = {}
        for i, node in enumerate(members):
            if downward:
                nbrs = [p for p in dag.predecessors(node) if layer_of[p] < key]
            else:
                nbrs = [s for s in dag.successors(node) if layer_of[s] > key]
            centres[node] = sum(index[n] for n in nbrs) / len(nbrs) if nbrs else float(i)
        members.sort(key=lambda n: centres[n])
        for i, n in enumerate(members):
            index[n] = i


def order_layers(
    dag: nx.DiGraph, layer_of: dict[str, int], sweeps: int
) -> dict[int, list[str]]:
    """Order every layer to reduce crossings; returns the best ordering seen."""
    layers: dict[int, list[str]] = {}
    for node in nx.topological_sort(dag):
        layers.setdefault(layer_of[node], []).append(node)

    best = {k: list(v) for k, v in layers.items()}
    best_score = _total_crossings(best, dag)
    for i in range(sweeps):
        if best_score == 0:
            break
        _sweep(layers, layer_of, dag, downward=(i % 2 == 0))
        score = _total_crossings(layers, dag)
        if score < best_score:
            best = {k: list(v) for k, v in layers.items()}
            best_score = score
    return dict(sorted(best.items()))


# ---------------------------------------------------------------------------
# Coordinate assignment
# ---------------------------------------------------------------------------

def _place_layer(
    members: list[str],
    desired: dict[str, float],
    breadth: dict[str, float],
    node_type: dict[str, str],
    config: LayoutConfig,
) -> dict[str, float]:
    """Positions for one layer: a left-packed and a right-packed pass averaged.

    Both passes keep every neighbour pair at least its required separation
    apart, and so does their average.
    """
    def sep(a: str, b: str) -> float:
        return breadth[a] / 2 + breadth[b] / 2 + config.gap(node_type[a], node_type[b])

    left: list[float] = []
    for i, node in enumerate(members):
        x = desired[node]
        if i:
            x = max(x, left[-1] + sep(members[i - 1], node))
        left.append(x)

    right: list[float] = [0.0] * len(members)
    for i in range(len(members) - 1, -1, -1):
        node = members[i]
        x = desired[node]
        if i < len(members) - 1:
            x = min(x, right[i + 1] - sep(node, members[i + 1]))
        right[i] = x

    return {node: (l + r) / 2 for node, l, r in zip(members, left, right)}


def _assign_breadth_positions(
    layers: dict[int, list[str]],
    layer_of: dict[str, int],
    dag: nx.DiGraph,
    breadth: dict[str, float],
    node_type: dict[str, str],
    config: LayoutConfig,
) -> dict[str, float]:
    pos: dict[str, float] = {n: 0.0 for members in layers.values() for n in members}

    # Down pass centres children under parents, up pass centres parents over
    # children; the final down pass settles the children again.
    for downward in (True, False, True):
        keys = sorted(layers) if downward else sorted(layers, reverse=True)
        for key in keys:
            members = layers[key]
            desired = {}
            for node in members:
                if downward:
                    nbrs = [p for p in dag.predecessors(node) if layer_of[p] < key]
                else:
                    nbrs = [s for s in dag.successors(node) if layer_of[s] > key]
                desired[node] = sum(pos[n] for n in nbrs) / len(nbrs) if nbrs else pos[node]
            pos.update(_place_layer(members, desired, breadth, node_type, config))
    return pos


def _assign_depth_positions(
    layers: dict[int, list[str]], depth: dict[str, float], config: LayoutConfig
) -> dict[int, float]:
    """Centre line of each layer; consecutive layers are ``ranksep/2`` apart."""
    centres: dict[int, float] = {}
    prev_key: Optional[int] = None
    prev_half = 0.0
    cursor = 0.0
    for key in sorted(layers):
        half = max(depth[n] for n in layers[key]) / 2
        if prev_key is not None:
            cursor += prev_half + (key - prev_key) * config.ranksep / 2 + half
        centres[key] = cursor
        prev_key, prev_half = key, half
    return centres


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def compute_layout(snapshot: TreeSnapshot, config: Optional[LayoutConfig] = None) -> Layout:
    """Position every person and couple of *snapshot*."""
    config = config or LayoutConfig.from_settings()
    graph = build_graph(snapshot)
    edges = [(e.source, e.target, e.kind) for e in snapshot.edges
             if e.source in graph and e.target in graph]
    if graph.number_of_nodes() == 0:
        return Layout(edges=edges, config=config)

    dag = graph.copy()
    dag.remove_edges_from(find_back_edges(graph))

    ranks = assign_ranks(dag)
    node_type = {n: graph.nodes[n]["node_type"] for n in graph}
    layer_of = {n: _layer_of(node_type[n], ranks[n]) for n in graph}
    layers = order_layers(dag, layer_of, config.order_sweeps)

    # breadth runs along a layer, depth across layers
    size_w = {n: graph.nodes[n]["width"] for n in graph}
    size_h = {n: graph.nodes[n]["height"] for n in graph}
    breadth, depth = (size_h, size_w) if config.horizontal else (size_w, size_h)

    across = _assign_breadth_positions(layers, layer_of, dag, breadth, node_type, config)
    centres = _assign_depth_positions(layers, depth, config)

    nodes: dict[str, PositionedNode] = {}
    for key, members in layers.items():
        for order, nid in enumerate(members):
            a, d = across[nid], centres[key]
            x, y = {
                "TB": (a, d),
                "BT": (a, -d),
                "LR": (d, a),
                "RL": (-d, a),
            }[config.rankdir]
            nodes[nid] = PositionedNode(
                id=nid,
                node_type=node_type[nid],
                x=x,
                y=y,
                width=size_w[nid],
                height=size_h[nid],
                rank=ranks[nid],
                layer=key,
                order=order,
            )

    # Shift so the top-left footprint corner sits on the margin.
    dx = config.margin - min(n.x - n.width / 2 for n in nodes.values())
    dy = config.margin - min(n.y - n.height / 2 for n in nodes.values())
    for n in nodes.values():
        n.x += dx
        n.y += dy

    # Keep store order for callers that iterate.
    ordered = {nid: nodes[nid] for nid in graph}
    return Layout(nodes=ordered, edges=edges, config=config)
