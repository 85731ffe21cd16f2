"""Generational layout engine for the family graph."""

from familytree.layout.dimensions import label_rows, node_dimensions
from familytree.layout.engine import Layout, LayoutConfig, PositionedNode, compute_layout
from familytree.layout.relax import relax

__all__ = [
    "Layout",
    "LayoutConfig",
    "PositionedNode",
    "compute_layout",
    "label_rows",
    "node_dimensions",
    "relax",
]
