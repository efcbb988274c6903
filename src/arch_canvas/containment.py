"""
Containment detection: which container is under a point?

Used while dragging.  Works on visual nodes carrying absolute coordinates,
so ``resolve_absolute`` has to run first whenever positions are stored
parent-relative.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .visual import VisualNode

logger = logging.getLogger(__name__)


def resolve_absolute(nodes: Iterable[VisualNode]) -> list[VisualNode]:
    """Set ``abs_x`` / ``abs_y`` on every node from its parent chain.

    A node whose parent is unknown is treated as top-level.  A parent
    cycle is broken at the node where it is detected.  Returns the nodes
    (same objects) as a list.
    """
    nodes = list(nodes)
    by_id = {n.id: n for n in nodes}
    resolved: dict[str, tuple[float, float]] = {}

    def resolve(node: VisualNode, visiting: set[str]) -> tuple[float, float]:
        if node.id in resolved:
            return resolved[node.id]
        parent = by_id.get(node.parent_id) if node.parent_id else None
        if parent is None or parent.id in visiting:
            if parent is not None:
                logger.warning(f"Parent cycle at {node.id}; treating it as top-level")
            origin = (0.0, 0.0)
        else:
            origin = resolve(parent, visiting | {node.id})
        resolved[node.id] = (origin[0] + node.x, origin[1] + node.y)
        return resolved[node.id]

    for node in nodes:
        node.abs_x, node.abs_y = resolve(node, {node.id})
    return nodes


def find_container_at_point(
    nodes: Iterable[VisualNode],
    point: tuple[float, float],
    exclude_id: Optional[str] = None,
) -> Optional[VisualNode]:
    """Smallest container whose absolute rectangle contains ``point``.

    Rectangle edges count as inside.  ``exclude_id`` (the dragged node)
    never matches.  When two candidates have the same area the one that
    comes first in ``nodes`` wins.
    """
    px, py = point
    best: Optional[VisualNode] = None
    for node in nodes:
        if not node.is_container or node.id == exclude_id:
            continue
        if not node.contains(px, py):
            continue
        if best is None or node.area < best.area:
            best = node
    return best
