"""
Layout adapter: automatic layout merged with saved positions.

``compute_layout`` is the one asynchronous operation of the editor core.
It takes the projected visual nodes and edges plus the saved layout and
returns every node with a position and size:

- A node with a complete saved entry is **pinned**: it keeps the saved
  x, y, width and height exactly.  It is still handed to the layout engine
  so that the automatic placement of its neighbours takes it into account.
- Every other node gets the engine's placement.  Containers that were
  placed automatically grow to enclose any pinned children.
- If the engine raises or exceeds ``timeout``, the failure is logged and
  the nodes are placed on a fixed grid in input order instead.  Pins are
  still honoured.

Each call carries a ``request_id`` from ``LayoutRequestCounter`` and the
result echoes it, so a caller can drop a result that was overtaken by a
newer structural edit.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from .config import EditorSettings
from .containment import resolve_absolute
from .layered import (
    LayeredLayoutEngine,
    LayeredOptions,
    LayoutEngine,
    LayoutItem,
    LayoutLink,
    Placement,
)
from .layout_types import DiagramLayout, NodeLayout
from .visual import VisualEdge, VisualNode

logger = logging.getLogger(__name__)


@dataclass
class LayoutResult:
    request_id: int
    nodes: list[VisualNode]
    used_fallback: bool = False


class LayoutRequestCounter:
    """Issues increasing request ids and remembers the latest one."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.latest = 0

    def next_id(self) -> int:
        self.latest = next(self._ids)
        return self.latest

    def is_current(self, request_id: int) -> bool:
        return request_id == self.latest


def layered_options(settings: EditorSettings, diagram_type: str) -> LayeredOptions:
    options = settings.layout_options(diagram_type)
    geometry = settings.container
    return LayeredOptions(
        direction=options.direction,
        node_spacing=options.node_spacing,
        layer_spacing=options.layer_spacing,
        padding_top=geometry.padding_top,
        padding_left=geometry.padding_left,
        padding_bottom=geometry.padding_bottom,
        padding_right=geometry.padding_right,
    )


def _pin(node: VisualNode, entry: NodeLayout) -> VisualNode:
    return replace(node, x=entry.x, y=entry.y, width=entry.width, height=entry.height)


def _depth(node: VisualNode, by_id: dict[str, VisualNode]) -> int:
    depth = 0
    seen = {node.id}
    parent = by_id.get(node.parent_id) if node.parent_id else None
    while parent is not None and parent.id not in seen:
        depth += 1
        seen.add(parent.id)
        parent = by_id.get(parent.parent_id) if parent.parent_id else None
    return depth


def _grow_containers(nodes: list[VisualNode], pinned: set[str], settings: EditorSettings) -> None:
    """Enlarge auto-placed containers so their children fit, innermost first."""
    by_id = {n.id: n for n in nodes}
    geometry = settings.container
    containers = [n for n in nodes if n.is_container and n.id not in pinned]
    for container in sorted(containers, key=lambda n: -_depth(n, by_id)):
        kids = [n for n in nodes if n.parent_id == container.id]
        if not kids:
            continue
        need_w = max(k.x + k.width for k in kids) + geometry.padding_right
        need_h = max(k.y + k.height for k in kids) + geometry.padding_bottom
        container.width = max(container.width, need_w)
        container.height = max(container.height, need_h)


def fallback_grid(
    nodes: list[VisualNode],
    pinned: dict[str, NodeLayout],
    settings: EditorSettings,
) -> list[VisualNode]:
    """Deterministic grid by input index; pinned nodes keep their saved box."""
    grid = settings.fallback_grid
    placed = []
    for i, node in enumerate(nodes):
        if node.id in pinned:
            placed.append(_pin(node, pinned[node.id]))
        else:
            placed.append(replace(
                node,
                x=(i % grid.columns) * grid.column_spacing,
                y=(i // grid.columns) * grid.row_spacing,
            ))
    return placed


async def compute_layout(
    nodes: Iterable[VisualNode],
    edges: Iterable[VisualEdge],
    saved_layout: Optional[DiagramLayout] = None,
    *,
    diagram_type: str = "default",
    settings: Optional[EditorSettings] = None,
    request_id: int = 0,
    engine: Optional[LayoutEngine] = None,
    timeout: Optional[float] = None,
) -> LayoutResult:
    """Position every node; see the module docstring for the contract.

    Input nodes are not modified.  Returned positions are parent-relative
    with ``abs_x`` / ``abs_y`` resolved.
    """
    settings = settings or EditorSettings()
    engine = engine or LayeredLayoutEngine()
    timeout = settings.layout_timeout if timeout is None else timeout

    nodes = [replace(n) for n in nodes]
    node_ids = {n.id for n in nodes}
    edges = [e for e in edges if e.source in node_ids and e.target in node_ids]
    pinned = {}
    if saved_layout is not None:
        pinned = {k: v for k, v in saved_layout.pinned().items() if k in node_ids}

    # --- Everything pinned: no engine run ---
    if len(pinned) == len(nodes):
        placed = [_pin(n, pinned[n.id]) for n in nodes]
        return LayoutResult(request_id, resolve_absolute(placed))

    items = [LayoutItem(n.id, n.width, n.height, n.parent_id) for n in nodes]
    for item in items:
        if item.id in pinned:
            item.width = pinned[item.id].width
            item.height = pinned[item.id].height
    links = [LayoutLink(e.source, e.target) for e in edges]
    options = layered_options(settings, diagram_type)

    try:
        loop = asyncio.get_running_loop()
        placements: dict[str, Placement] = await asyncio.wait_for(
            loop.run_in_executor(None, engine.layout, items, links, options),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(f"Layout request {request_id} timed out after {timeout}s; using fallback grid")
        return LayoutResult(request_id, resolve_absolute(fallback_grid(nodes, pinned, settings)), True)
    except Exception as e:
        logger.warning(f"Layout request {request_id} failed ({e!r}); using fallback grid")
        return LayoutResult(request_id, resolve_absolute(fallback_grid(nodes, pinned, settings)), True)

    placed = []
    for node in nodes:
        if node.id in pinned:
            placed.append(_pin(node, pinned[node.id]))
        elif node.id in placements:
            p = placements[node.id]
            placed.append(replace(node, x=p.x, y=p.y, width=p.width, height=p.height))
        else:
            placed.append(node)

    _grow_containers(placed, set(pinned), settings)
    logger.debug(f"Layout request {request_id}: {len(placements)} placed, {len(pinned)} pinned")
    return LayoutResult(request_id, resolve_absolute(placed))
