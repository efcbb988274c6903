"""
Projection: architecture -> visual nodes and edges.

The architecture document is the only source of truth for names,
descriptions and structure.  Visual nodes never hold state of their own
apart from geometry and the collapse flag; everything else is derived here
by a pure function of the architecture, the diagram type, the settings
and the palette.

Two views are supported:

Context view
    Actors, the system of interest, and external systems.  The system of
    interest is the container of the first ``composed-of`` relationship
    (or the first system node when nothing is composed).  Internal
    children are hidden.  Edges come from ``interacts`` (one per target,
    id ``<rel>-<target>``) and ``connects`` between visible nodes.

Logical view
    Containers, their children, and orphan services, databases and
    networks.  Children carry ``parent_id``.  ``connects`` pairs in
    opposite directions are merged into one bidirectional edge with id
    ``<a>+<b>``.

``Projector`` memoizes the projection on the architecture's content
hash, so re-projecting an unchanged snapshot is free.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from .config import EditorSettings
from .models import Architecture, ArchNode, Relationship
from .themes import ThemePalette
from .visual import (
    ACTOR_NODE,
    CONTAINER_NODE,
    DATA_STORE_NODE,
    EXTERNAL_SYSTEM_NODE,
    NETWORK_NODE,
    SERVICE_NODE,
    SYSTEM_NODE,
    VisualEdge,
    VisualNode,
)

logger = logging.getLogger(__name__)

Projection = tuple[list[VisualNode], list[VisualEdge]]


def short_desc(text: Optional[str], max_len: int = 40) -> str:
    if not text:
        return ""
    clean = text.replace("\n", " ").strip()
    return clean[: max_len - 3] + "..." if len(clean) > max_len else clean


def _edge_label(rel: Relationship) -> str:
    return rel.protocol or short_desc(rel.description)


def _edge_style(palette: Optional[ThemePalette], bidirectional: bool = False) -> dict:
    if palette is None:
        return {}
    style = {"stroke_color": palette.edge}
    if bidirectional:
        style["marker_color"] = palette.accent
    return style


def node_data(node: ArchNode, arch: Optional[Architecture] = None) -> dict:
    data = {
        "name": node.name,
        "description": node.description or "",
        "node_type": node.kind,
        "classification": node.classification,
    }
    if arch is not None:
        data["capabilities"] = arch.capabilities_of(node.id)
    return data


def node_to_visual(
    node: ArchNode,
    visual_kind: str,
    position: tuple[float, float],
    settings: EditorSettings,
    arch: Optional[Architecture] = None,
) -> VisualNode:
    """A single visual node at ``position`` (used for palette drops)."""
    size = settings.node_sizes.for_visual_kind(visual_kind)
    return VisualNode(
        id=node.id,
        type=visual_kind,
        x=position[0],
        y=position[1],
        width=size.width,
        height=size.height,
        data=node_data(node, arch),
    )


# ---------------------------------------------------------------------------
# Context view
# ---------------------------------------------------------------------------

def system_of_interest(arch: Architecture) -> Optional[str]:
    for rel in arch.relationships:
        if rel.relationship_type.composed_of is not None:
            return rel.relationship_type.composed_of.container
    for node in arch.nodes:
        if node.kind == "system":
            return node.id
    return None


def project_context(
    arch: Architecture,
    settings: EditorSettings,
    palette: Optional[ThemePalette] = None,
) -> Projection:
    children = {child for _, child in arch.containment_pairs()}
    soi = system_of_interest(arch)

    visible: set[str] = set()
    for node in arch.nodes:
        if node.kind == "actor" or node.id == soi:
            visible.add(node.id)
        elif node.kind == "system" and node.id not in children:
            visible.add(node.id)

    nodes = []
    for node in arch.nodes:
        if node.id not in visible:
            continue
        if node.kind == "actor":
            kind = ACTOR_NODE
        elif node.id == soi:
            kind = SYSTEM_NODE
        else:
            kind = EXTERNAL_SYSTEM_NODE
        size = settings.node_sizes.for_visual_kind(kind)
        nodes.append(VisualNode(
            id=node.id,
            type=kind,
            width=size.width,
            height=size.height,
            data=node_data(node, arch),
        ))

    edges = []
    for rel in arch.relationships:
        rt = rel.relationship_type
        if rt.interacts is not None:
            for target in rt.interacts.nodes:
                if rt.interacts.actor in visible and target in visible:
                    edges.append(VisualEdge(
                        id=f"{rel.id}-{target}",
                        source=rt.interacts.actor,
                        target=target,
                        label=_edge_label(rel),
                        data={"relationship_id": rel.id, **_edge_style(palette)},
                    ))
        elif rt.connects is not None:
            src, dst = rt.connects.source.node, rt.connects.destination.node
            if src in visible and dst in visible:
                edges.append(VisualEdge(
                    id=rel.id, source=src, target=dst, label=_edge_label(rel), data=_edge_style(palette),
                ))

    return nodes, edges


# ---------------------------------------------------------------------------
# Logical view
# ---------------------------------------------------------------------------

def container_size(child_count: int, settings: EditorSettings) -> tuple[float, float]:
    geometry = settings.container
    width = max(geometry.min_width, child_count * geometry.width_per_child)
    height = max(
        geometry.min_height,
        child_count * geometry.height_per_child + geometry.header_height + geometry.content_padding,
    )
    return width, height


def project_logical(
    arch: Architecture,
    settings: EditorSettings,
    palette: Optional[ThemePalette] = None,
) -> Projection:
    containment: dict[str, list[str]] = {}
    parent_of: dict[str, str] = {}
    for container, child in arch.containment_pairs():
        containment.setdefault(container, []).append(child)
        parent_of.setdefault(child, container)

    visible = set(containment) | set(parent_of)
    for node in arch.nodes:
        if node.kind not in ("actor", "system"):
            visible.add(node.id)

    nodes = []
    for node in arch.nodes:
        if node.id not in visible:
            continue
        if node.id in containment:
            kind = CONTAINER_NODE
            width, height = container_size(len(containment[node.id]), settings)
        else:
            kind = {"database": DATA_STORE_NODE, "network": NETWORK_NODE}.get(node.kind, SERVICE_NODE)
            size = settings.node_sizes.for_visual_kind(kind)
            width, height = size.width, size.height
        nodes.append(VisualNode(
            id=node.id,
            type=kind,
            width=width,
            height=height,
            parent_id=parent_of.get(node.id),
            data=node_data(node, arch),
        ))

    raw = []
    for rel in arch.relationships:
        connects = rel.relationship_type.connects
        if connects is None:
            continue
        if connects.source.node in visible and connects.destination.node in visible:
            raw.append(rel)

    # Merge bidirectional pairs (A->B and B->A become one edge)
    edges = []
    consumed: set[str] = set()
    for rel in raw:
        if rel.id in consumed:
            continue
        src = rel.relationship_type.connects.source.node
        dst = rel.relationship_type.connects.destination.node
        reverse = next(
            (r for r in raw
             if r.id != rel.id and r.id not in consumed
             and r.relationship_type.connects.source.node == dst
             and r.relationship_type.connects.destination.node == src),
            None,
        )
        consumed.add(rel.id)
        if reverse is None:
            edges.append(VisualEdge(
                id=rel.id, source=src, target=dst, label=_edge_label(rel), data=_edge_style(palette),
            ))
            continue
        consumed.add(reverse.id)
        edges.append(VisualEdge(
            id=f"{rel.id}+{reverse.id}",
            source=src,
            target=dst,
            label=_edge_label(rel),
            bidirectional=True,
            data=_edge_style(palette, bidirectional=True),
        ))

    return nodes, edges


def project(
    arch: Architecture,
    diagram_type: str,
    settings: EditorSettings,
    palette: Optional[ThemePalette] = None,
) -> Projection:
    if diagram_type == "context":
        return project_context(arch, settings, palette)
    return project_logical(arch, settings, palette)


class Projector:
    """Memoized ``project``.

    The cache key is the architecture content hash plus the diagram type,
    the settings and the palette, so passing a new settings or palette
    value is enough to invalidate it.  Callers receive fresh copies of
    the cached records and may modify them freely.
    """

    def __init__(self, settings: EditorSettings, palette: Optional[ThemePalette] = None):
        self.settings = settings
        self.palette = palette
        self._key: Optional[tuple] = None
        self._cached: Optional[Projection] = None
        self.computations = 0

    def __call__(self, arch: Architecture, diagram_type: str) -> Projection:
        key = (arch.content_hash(), diagram_type, self.settings.model_dump_json(), self.palette)
        if key != self._key:
            self._cached = project(arch, diagram_type, self.settings, self.palette)
            self._key = key
            self.computations += 1
            logger.debug(f"Projected {diagram_type} view: {len(self._cached[0])} nodes")
        nodes, edges = self._cached
        return (
            [replace(n, data=dict(n.data)) for n in nodes],
            [replace(e, data=dict(e.data)) for e in edges],
        )
