"""Incremental scene synchronisation and SVG output."""

from familytree.render.scene import EdgeView, NodeView, RenderSynchronizer, StructureDiff

__all__ = ["EdgeView", "NodeView", "RenderSynchronizer", "StructureDiff"]
