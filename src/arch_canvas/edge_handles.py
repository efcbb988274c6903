"""
Edge handle assignment.

After every layout pass (and every drag-stop) each edge gets a connection
side on both endpoints.  The side faces the other node:

    angle of (target center - source center), y pointing down
    [-45, 45)    source right,  target left
    [45, 135)    source bottom, target top
    [-135, -45)  source top,    target bottom
    otherwise    source left,   target right

A per-node, per-side counter runs over the whole batch.  Once a source
side carries ``side_limit`` edges, the next edge tries the perpendicular
side picked by the sign of the cross-axis delta and moves there only if
that side is less used.  Greedy and single pass.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import replace
from typing import Iterable

from .visual import VisualEdge, VisualNode

OPPOSITE = {"right": "left", "left": "right", "top": "bottom", "bottom": "top"}


def primary_sides(dx: float, dy: float) -> tuple[str, str]:
    """(source side, target side) for a center-to-center vector."""
    angle = math.degrees(math.atan2(dy, dx))
    if -45 <= angle < 45:
        return "right", "left"
    if 45 <= angle < 135:
        return "bottom", "top"
    if -135 <= angle < -45:
        return "top", "bottom"
    return "left", "right"


def _perpendicular(source_side: str, dx: float, dy: float) -> tuple[str, str]:
    if source_side in ("right", "left"):
        return ("bottom", "top") if dy >= 0 else ("top", "bottom")
    return ("right", "left") if dx >= 0 else ("left", "right")


def assign_edge_handles(
    nodes: Iterable[VisualNode],
    edges: Iterable[VisualEdge],
    side_limit: int = 3,
) -> list[VisualEdge]:
    """Return copies of ``edges`` with ``source_handle`` / ``target_handle`` set.

    Nodes must carry absolute coordinates.  Edges whose source or target is
    not among ``nodes`` come back unchanged.
    """
    by_id = {n.id: n for n in nodes}
    usage: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    result = []

    for edge in edges:
        source = by_id.get(edge.source)
        target = by_id.get(edge.target)
        if source is None or target is None:
            result.append(edge)
            continue

        sx, sy = source.center
        tx, ty = target.center
        dx, dy = tx - sx, ty - sy
        source_side, target_side = primary_sides(dx, dy)

        if usage[source.id][source_side] >= side_limit:
            alt_source, alt_target = _perpendicular(source_side, dx, dy)
            if usage[source.id][alt_source] < usage[source.id][source_side]:
                source_side, target_side = alt_source, alt_target

        usage[source.id][source_side] += 1
        usage[target.id][target_side] += 1
        result.append(replace(
            edge,
            source_handle=f"{source_side}-src",
            target_handle=f"{target_side}-tgt",
        ))

    return result
