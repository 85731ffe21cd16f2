"""Bounded relaxation pass over a computed layout.

A small force simulation along the layer axis only (x for top/bottom
layouts, y for left/right ones): edge springs pull connected nodes into
line, collisions push overlapping neighbours apart and an anchor pulls each
node back to its assigned slot.  ``alpha`` decays geometrically from 1 to
``ALPHA_MIN`` over the iteration cap, so the last step barely moves anything.

Drift from the assigned position is clamped below half of the smallest
configured gap, so two neighbours can never meet or swap: rank and order
are exactly those of the input layout.
"""

from __future__ import annotations

import copy
from typing import Iterable, Iterator, Optional

from familytree.layout.engine import Layout, LayoutConfig

ALPHA_MIN = 0.001
SPRING = 0.1
ANCHOR = 0.3
COLLIDE = 0.5


def drift_limit(config: LayoutConfig) -> float:
    return 0.49 * min(config.nodesep, config.edgesep)


def alpha_schedule(iterations: int) -> Iterator[float]:
    """Yield the step strengths for a run capped at *iterations* steps.

    The decay rate is derived from the cap so alpha reaches ``ALPHA_MIN``
    on the last step; the run always ends cooled down, whatever the cap.
    """
    if iterations <= 0:
        return
    keep = ALPHA_MIN ** (1 / max(iterations - 1, 1))
    alpha = 1.0
    for _ in range(iterations):
        yield alpha
        if alpha <= ALPHA_MIN:
            return
        alpha = max(alpha * keep, ALPHA_MIN)


def relax(
    layout: Layout,
    config: Optional[LayoutConfig] = None,
    pinned: Optional[Iterable[str]] = None,
    max_iterations: Optional[int] = None,
) -> Layout:
    """Return a relaxed copy of *layout*; the input is not modified.

    Args:
        layout: Output of :func:`~familytree.layout.engine.compute_layout`.
        config: Separation settings, defaults to the layout's own.
        pinned: Node ids that must not move (e.g. dragged nodes).
        max_iterations: Iteration cap, defaults to
            ``config.relax_max_iterations``.
    """
    config = config or layout.config
    limit = drift_limit(config)
    iterations = config.relax_max_iterations if max_iterations is None else max_iterations
    fixed = set(pinned or ())
    axis = "y" if config.horizontal else "x"

    result = copy.deepcopy(layout)
    nodes = result.nodes
    if not nodes:
        return result

    anchor = {nid: getattr(n, axis) for nid, n in nodes.items()}
    pos = dict(anchor)
    breadth = {
        nid: (n.height if config.horizontal else n.width) for nid, n in nodes.items()
    }
    layers = result.layers()

    for alpha in alpha_schedule(iterations):
        force = {nid: 0.0 for nid in nodes}

        for source, target, _kind in result.edges:
            delta = pos[target] - pos[source]
            force[source] += SPRING * delta
            force[target] -= SPRING * delta

        for members in layers.values():
            for a, b in zip(members, members[1:]):
                need = (breadth[a] + breadth[b]) / 2 + config.gap(
                    nodes[a].node_type, nodes[b].node_type
                )
                overlap = need - (pos[b] - pos[a])
                if overlap > 0:
                    force[a] -= COLLIDE * overlap / 2
                    force[b] += COLLIDE * overlap / 2

        for nid in nodes:
            if nid in fixed:
                continue
            force[nid] += ANCHOR * (anchor[nid] - pos[nid])
            moved = pos[nid] + alpha * force[nid]
            pos[nid] = min(max(moved, anchor[nid] - limit), anchor[nid] + limit)

    for nid, n in nodes.items():
        setattr(n, axis, pos[nid])
    return result
