"""
Hierarchical layered layout for arch-canvas.

Layered placement with parent-center alignment, overlap prevention, and
recursive container sizing.

The engine runs once per nesting level, bottom-up:

  1. Leaf level: children of the innermost containers
  2. Each enclosing level: sibling containers and nodes, where a finished
     container is treated as a single item whose size is its padded
     content
  3. Root level: every top-level node

Edges between nodes in different containers are resolved upward: an edge
from a node inside container A to a node inside container B becomes an
A -> B edge at the level where A and B are siblings, so cross-container
flow still shapes the outer layout.

Per level:
  - Cycles are broken with the greedy feedback-arc-set ordering (back
    edges reversed, self-loops dropped), on a ``networkx.DiGraph``.
  - Layers are assigned by longest path from the sources.
  - A level without edges falls back to a grid of ``grid_columns``.
  - Items within a layer are ordered by the barycenter of their
    neighbours, then placed at the mean center of their predecessors and
    pushed apart to keep ``node_spacing`` between neighbours.

``direction`` ``DOWN`` stacks layers top to bottom, ``RIGHT`` left to
right.  All positions are relative to the enclosing container's top-left
corner (or the canvas origin for top-level items).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Protocol

import networkx as nx

logger = logging.getLogger(__name__)

GRID_COLUMNS = 4
ORDERING_SWEEPS = 2


@dataclass
class LayoutItem:
    """A box to place.  ``parent_id`` nests it inside another item."""
    id: str
    width: float
    height: float
    parent_id: Optional[str] = None


@dataclass
class LayoutLink:
    """A directed edge between layout items."""
    source: str
    target: str


@dataclass
class LayeredOptions:
    direction: str = "DOWN"  # 'DOWN' or 'RIGHT'
    node_spacing: float = 40
    layer_spacing: float = 60
    padding_top: float = 48
    padding_left: float = 32
    padding_bottom: float = 28
    padding_right: float = 32
    grid_columns: int = GRID_COLUMNS


@dataclass
class Placement:
    """Computed box for an item, relative to its parent."""
    x: float
    y: float
    width: float
    height: float


class LayoutEngine(Protocol):
    def layout(
        self,
        items: list[LayoutItem],
        links: list[LayoutLink],
        options: LayeredOptions,
    ) -> dict[str, Placement]: ...


# ---------------------------------------------------------------------------
# Cycle removal
# ---------------------------------------------------------------------------

def greedy_fas_ordering(graph: nx.DiGraph) -> list[str]:
    """Node ordering with few back edges (Eades, Lin, Smyth).

    Sinks are peeled to the end, sources to the front; when only cycles
    remain, the node with the largest out-in surplus goes to the front.
    Candidates are scanned in graph insertion order so the result does not
    depend on hash order.
    """
    active = list(graph.nodes)
    out_deg = {n: graph.out_degree(n) for n in active}
    in_deg = {n: graph.in_degree(n) for n in active}
    head: list[str] = []
    tail: list[str] = []

    def take(node: str) -> None:
        active.remove(node)
        for succ in graph.successors(node):
            if succ in active:
                in_deg[succ] -= 1
        for pred in graph.predecessors(node):
            if pred in active:
                out_deg[pred] -= 1

    while active:
        sinks = [n for n in active if out_deg[n] == 0]
        while sinks:
            for sink in sinks:
                take(sink)
                tail.append(sink)
            sinks = [n for n in active if out_deg[n] == 0]

        sources = [n for n in active if in_deg[n] == 0]
        while sources:
            for source in sources:
                take(source)
                head.append(source)
            sources = [n for n in active if in_deg[n] == 0]

        if active:
            best = max(active, key=lambda n: out_deg[n] - in_deg[n])
            take(best)
            head.append(best)

    return head + list(reversed(tail))


def remove_cycles(graph: nx.DiGraph) -> nx.DiGraph:
    """Copy of ``graph`` with back edges reversed and self-loops dropped."""
    position = {node: i for i, node in enumerate(greedy_fas_ordering(graph))}
    dag = nx.DiGraph()
    dag.add_nodes_from(graph.nodes)
    for src, tgt in graph.edges():
        if src == tgt:
            continue
        if position[src] > position[tgt]:
            dag.add_edge(tgt, src)
        else:
            dag.add_edge(src, tgt)
    return dag


# ---------------------------------------------------------------------------
# Single-level layout
# ---------------------------------------------------------------------------

def _assign_layers(dag: nx.DiGraph, order: dict[str, int], grid_columns: int) -> dict[str, int]:
    nodes = sorted(dag.nodes, key=order.__getitem__)
    if dag.number_of_edges() == 0:
        # Grid fallback for disconnected items
        return {node: idx // grid_columns for idx, node in enumerate(nodes)}

    layers: dict[str, int] = {}
    for node in nx.lexicographical_topological_sort(dag, key=order.__getitem__):
        preds = [layers[p] for p in dag.predecessors(node)]
        layers[node] = max(preds) + 1 if preds else 0
    return layers


def _barycenter(neighbours: list[str], rank: dict[str, int], fallback: float) -> float:
    positions = [rank[n] for n in neighbours if n in rank]
    if not positions:
        return fallback
    return sum(positions) / len(positions)


def _order_layers(dag: nx.DiGraph, layers: dict[str, int], order: dict[str, int]) -> list[list[str]]:
    layer_count = max(layers.values()) + 1
    ordering: list[list[str]] = [[] for _ in range(layer_count)]
    for node in sorted(layers, key=order.__getitem__):
        ordering[layers[node]].append(node)

    for _sweep in range(ORDERING_SWEEPS):
        for idx in range(1, layer_count):
            rank = {n: i for i, n in enumerate(ordering[idx - 1])}
            current = {n: i for i, n in enumerate(ordering[idx])}
            ordering[idx].sort(key=lambda n: _barycenter(list(dag.predecessors(n)), rank, current[n]))
        for idx in range(layer_count - 2, -1, -1):
            rank = {n: i for i, n in enumerate(ordering[idx + 1])}
            current = {n: i for i, n in enumerate(ordering[idx])}
            ordering[idx].sort(key=lambda n: _barycenter(list(dag.successors(n)), rank, current[n]))
    return ordering


def layout_level(
    items: list[LayoutItem],
    links: list[LayoutLink],
    options: LayeredOptions,
) -> dict[str, tuple[float, float]]:
    """Place sibling items; returns top-left corners with the minimum at (0, 0).

    Steps:
    1. Build the graph (deduplicated, unknown endpoints ignored)
    2. Break cycles
    3. Assign layers (grid fallback without edges)
    4. Order each layer by barycenter
    5. Position along the layer axis, then along the cross axis using
       predecessor-center alignment with overlap prevention
    """
    if not items:
        return {}

    item_map = {item.id: item for item in items}
    order = {item.id: idx for idx, item in enumerate(items)}

    # --- Step 1: Graph ---
    graph = nx.DiGraph()
    graph.add_nodes_from(item_map)
    for link in links:
        if link.source in item_map and link.target in item_map:
            graph.add_edge(link.source, link.target)

    # --- Step 2-4: Layers and ordering ---
    dag = remove_cycles(graph)
    layers = _assign_layers(dag, order, options.grid_columns)
    ordering = _order_layers(dag, layers, order)

    down = options.direction != "RIGHT"

    def main_size(item: LayoutItem) -> float:
        return item.height if down else item.width

    def cross_size(item: LayoutItem) -> float:
        return item.width if down else item.height

    # --- Step 5: Positions ---
    main_pos: dict[str, float] = {}
    cross_pos: dict[str, float] = {}
    cursor = 0.0
    for layer in ordering:
        if not layer:
            continue
        depth = max(main_size(item_map[n]) for n in layer)

        entries = []
        for idx, node in enumerate(layer):
            item = item_map[node]
            parent_centers = [
                cross_pos[p] + cross_size(item_map[p]) / 2
                for p in dag.predecessors(node)
                if p in cross_pos
            ]
            if parent_centers:
                target_center = sum(parent_centers) / len(parent_centers)
            else:
                target_center = math.nan
            entries.append((node, target_center, idx))

        previous_end = -math.inf
        for node, target_center, idx in entries:
            item = item_map[node]
            if math.isfinite(target_center):
                desired = target_center - cross_size(item) / 2
            else:
                desired = previous_end + options.node_spacing if math.isfinite(previous_end) else 0.0

            # Overlap prevention
            if math.isfinite(previous_end) and desired < previous_end + options.node_spacing:
                desired = previous_end + options.node_spacing

            cross_pos[node] = desired
            main_pos[node] = cursor
            previous_end = desired + cross_size(item)

        cursor += depth + options.layer_spacing

    shift = min(cross_pos.values())
    positions = {}
    for node in item_map:
        cross = round(cross_pos[node] - shift)
        main = round(main_pos[node])
        positions[node] = (cross, main) if down else (main, cross)
    return positions


# ---------------------------------------------------------------------------
# Hierarchical layout
# ---------------------------------------------------------------------------

def _break_parent_cycles(items: list[LayoutItem]) -> dict[str, Optional[str]]:
    known = {item.id: item.parent_id for item in items}
    parents: dict[str, Optional[str]] = {}
    for item in items:
        parent = item.parent_id if item.parent_id in known else None
        seen = {item.id}
        cursor = parent
        while cursor is not None:
            if cursor in seen:
                logger.warning(f"Parent cycle through {item.id}; laying it out at top level")
                parent = None
                break
            seen.add(cursor)
            cursor = known.get(cursor) if known.get(cursor) in known else None
        parents[item.id] = parent
    return parents


def _resolve_links(
    links: list[LayoutLink],
    parents: dict[str, Optional[str]],
    level_parent: Optional[str],
) -> list[LayoutLink]:
    """Lift each link to the pair of ancestors that are children of ``level_parent``."""

    def ancestor_at_level(node: str) -> Optional[str]:
        seen = set()
        while node is not None and node not in seen:
            seen.add(node)
            if parents.get(node) == level_parent:
                return node
            node = parents.get(node)
        return None

    seen_pairs: set[tuple[str, str]] = set()
    resolved = []
    for link in links:
        src = ancestor_at_level(link.source)
        dst = ancestor_at_level(link.target)
        if src is None or dst is None or src == dst:
            continue
        if (src, dst) in seen_pairs:
            continue
        seen_pairs.add((src, dst))
        resolved.append(LayoutLink(source=src, target=dst))
    return resolved


class LayeredLayoutEngine:
    """Recursive layered layout; see the module docstring."""

    def layout(
        self,
        items: list[LayoutItem],
        links: list[LayoutLink],
        options: LayeredOptions,
    ) -> dict[str, Placement]:
        parents = _break_parent_cycles(items)
        children: dict[Optional[str], list[LayoutItem]] = {}
        for item in items:
            children.setdefault(parents[item.id], []).append(item)

        sizes = {item.id: (item.width, item.height) for item in items}
        placements: dict[str, Placement] = {}

        def place(level_parent: Optional[str]) -> tuple[float, float]:
            kids = children.get(level_parent, [])
            for kid in kids:
                if kid.id in children:
                    content_w, content_h = place(kid.id)
                    sizes[kid.id] = (
                        max(kid.width, content_w + options.padding_left + options.padding_right),
                        max(kid.height, content_h + options.padding_top + options.padding_bottom),
                    )

            level_items = [LayoutItem(k.id, *sizes[k.id]) for k in kids]
            level_links = _resolve_links(links, parents, level_parent)
            positions = layout_level(level_items, level_links, options)

            offset_x = options.padding_left if level_parent is not None else 0.0
            offset_y = options.padding_top if level_parent is not None else 0.0
            extent_w = extent_h = 0.0
            for kid in kids:
                x, y = positions[kid.id]
                width, height = sizes[kid.id]
                placements[kid.id] = Placement(x=x + offset_x, y=y + offset_y, width=width, height=height)
                extent_w = max(extent_w, x + width)
                extent_h = max(extent_h, y + height)
            return extent_w, extent_h

        place(None)
        return placements
