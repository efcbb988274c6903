"""
Diagram controller: the editor's single point of coordination.

The controller owns the current ``Architecture`` snapshot, the saved
``DiagramLayout`` and the visual node/edge set derived from them, and
turns user gestures into mutation-engine calls:

    gesture                     engine call
    drop palette item           add_node (+ add_node_to_container)
    drag child into container   add_node_to_container
    alt-drag child out          remove_node_from_any_container
    draw connection             add_relationship
    delete nodes / edges        remove_node / remove_relationship
    rename, property edits      update_node_field, set_control, ...

Every mutation that produced patches is forwarded to ``on_mutation(patches,
architecture)`` and the visual set is re-derived from the new snapshot,
keeping the geometry the user already sees.

Structural refreshes go through ``refresh()``, which awaits the layout
adapter.  Each call takes a request id from ``LayoutRequestCounter``; a
result that arrives after a newer request was issued is discarded.

Geometry saves are debounced by ``LayoutSaver``: drag moves and pan/zoom
ends reschedule one pending save, which fires ``save_debounce`` seconds
after the last of them and reports the layout to ``on_layout_change``.

Two small state machines live here as well:

Collapse
    ``Expanded`` <-> ``Collapsed`` per container.  Collapsing hides the
    direct children and shrinks the container to its header height.  The
    flag lives on the visual node and in the saved layout only.

Drag / reparent (logical view)
    ``Idle -> Dragging -> {DroppedInContainer, DroppedOrphan} -> Idle``.
    A modifier-held drag of a child goes through ``Detaching``: the child
    switches to absolute coordinates and loses its parent locally, and the
    drop point decides whether it lands in a container or becomes an
    orphan.  Containers are never reparented by dragging.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from .config import EditorSettings
from .containment import find_container_at_point, resolve_absolute
from .edge_handles import assign_edge_handles
from .layered import LayoutEngine
from .layout import LayoutRequestCounter, compute_layout
from .layout_types import DiagramLayout, NodeLayout, Viewport, create_empty_layout
from .models import NODE_KINDS, Architecture
from .mutations import (
    MutationResult,
    Patch,
    add_node,
    add_node_to_container,
    add_relationship,
    create_default_node,
    create_default_relationship,
    remove_node,
    remove_node_from_any_container,
    remove_relationship,
    update_node_field,
    update_relationship_field,
)
from .projection import Projector, node_to_visual
from .themes import ThemePalette
from .visual import CONTAINER_NODE, VISUAL_KINDS, VisualEdge, VisualNode

logger = logging.getLogger(__name__)

# Palette drag payload keys
VISUAL_KIND_KEY = "application/reactflow-node-type"
NODE_KIND_KEY = "application/calm-node-type"

MutationCallback = Callable[[list[Patch], Architecture], None]
LayoutCallback = Callable[[DiagramLayout], None]


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DETACHING = "detaching"
    DROPPED_IN_CONTAINER = "dropped_in_container"
    DROPPED_ORPHAN = "dropped_orphan"


@dataclass
class DropOutcome:
    state: DragState
    patches: list[Patch] = field(default_factory=list)
    container_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Debounced save
# ---------------------------------------------------------------------------

class LayoutSaver:
    """Runs ``callback`` once, ``delay`` seconds after the last ``schedule()``.

    Without a running event loop the callback runs immediately.
    """

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._fire()
            return
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        """Run a pending save now."""
        if self._handle is not None:
            self.cancel()
            self._fire()

    def _fire(self) -> None:
        self._handle = None
        self.callback()


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class DiagramController:

    def __init__(
        self,
        architecture: Architecture,
        diagram_type: str,
        *,
        settings: Optional[EditorSettings] = None,
        palette: Optional[ThemePalette] = None,
        saved_layout: Optional[DiagramLayout] = None,
        engine: Optional[LayoutEngine] = None,
        on_mutation: Optional[MutationCallback] = None,
        on_layout_change: Optional[LayoutCallback] = None,
        read_only: bool = False,
    ):
        self.architecture = architecture
        self.diagram_type = diagram_type
        self.settings = settings or EditorSettings()
        self.palette = palette or self.settings.palette()
        self.layout = saved_layout or create_empty_layout(diagram_type)
        self.viewport = self.layout.viewport.model_copy()
        self.engine = engine
        self.on_mutation = on_mutation
        self.on_layout_change = on_layout_change
        self.read_only = read_only

        self.projector = Projector(self.settings, self.palette)
        self.requests = LayoutRequestCounter()
        self.saver = LayoutSaver(self.settings.save_debounce, self._save_now)

        self.nodes: list[VisualNode] = []
        self.edges: list[VisualEdge] = []
        self.layout_ready = False
        self.drag_state = DragState.IDLE
        self.drag_node_id: Optional[str] = None
        self.editing_node_id: Optional[str] = None

    # --- lookups ---

    def get_node(self, node_id: str) -> Optional[VisualNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def get_edge(self, edge_id: str) -> Optional[VisualEdge]:
        return next((e for e in self.edges if e.id == edge_id), None)

    @property
    def is_logical(self) -> bool:
        return self.diagram_type == "logical"

    # --- layout ---

    async def refresh(self, *, ignore_saved: bool = False) -> bool:
        """Re-project and lay out; returns False when the result went stale."""
        request_id = self.requests.next_id()
        nodes, edges = self.projector(self.architecture, self.diagram_type)
        result = await compute_layout(
            nodes,
            edges,
            None if ignore_saved else self.layout,
            diagram_type=self.diagram_type,
            settings=self.settings,
            request_id=request_id,
            engine=self.engine,
        )
        if not self.requests.is_current(result.request_id):
            logger.debug(f"Discarding stale layout {result.request_id} (latest {self.requests.latest})")
            return False

        for node in result.nodes:
            node.collapsed = node.is_container and self.layout.is_collapsed(node.id)
        self.nodes = resolve_absolute(self._apply_collapse(result.nodes))
        self.edges = assign_edge_handles(self.nodes, edges, self.settings.handle_side_limit)
        self.layout_ready = True
        if result.used_fallback:
            logger.info(f"{self.diagram_type} diagram placed on the fallback grid")
        return True

    async def relayout(self) -> bool:
        """Discard saved positions, lay everything out again and save."""
        applied = await self.refresh(ignore_saved=True)
        if applied:
            self.saver.schedule()
        return applied

    def set_architecture(self, architecture: Architecture) -> None:
        """Accept a snapshot from the provider; call ``refresh()`` afterwards."""
        self.architecture = architecture

    def _apply_collapse(self, nodes: list[VisualNode]) -> list[VisualNode]:
        header = self.settings.container.header_height
        collapsed = {n.id for n in nodes if n.is_container and n.collapsed}
        for node in nodes:
            if node.id in collapsed:
                node.data.setdefault("expanded_height", node.height)
                node.height = header
            node.hidden = node.parent_id in collapsed
        return nodes

    def toggle_collapse(self, container_id: str) -> bool:
        node = self.get_node(container_id)
        if node is None or not node.is_container:
            return False
        if node.collapsed:
            node.collapsed = False
            node.height = node.data.pop("expanded_height", node.height)
        else:
            node.collapsed = True
        self._apply_collapse(self.nodes)

        entry = self.layout.nodes.get(container_id) or NodeLayout()
        nodes = {**self.layout.nodes, container_id: entry.model_copy(update={"collapsed": node.collapsed or None})}
        self.layout = self.layout.model_copy(update={"nodes": nodes})
        self.saver.schedule()
        return node.collapsed

    # --- saving ---

    def snapshot_layout(self) -> DiagramLayout:
        entries = {}
        for node in self.nodes:
            height = node.data.get("expanded_height", node.height) if node.collapsed else node.height
            entries[node.id] = NodeLayout(
                x=node.x,
                y=node.y,
                width=node.width,
                height=height,
                collapsed=True if node.collapsed else None,
            )
        return self.layout.model_copy(update={
            "viewport": self.viewport.model_copy(),
            "nodes": entries,
        }).touched()

    def _save_now(self) -> None:
        self.layout = self.snapshot_layout()
        if self.on_layout_change is None:
            return
        try:
            self.on_layout_change(self.layout)
        except Exception:
            logger.exception("Layout change callback failed")

    def move_end(self, x: float, y: float, zoom: float) -> None:
        """Pan/zoom finished; the viewport is saved with the next debounced save."""
        self.viewport = Viewport(x=x, y=y, zoom=zoom)
        self.saver.schedule()

    def close(self) -> None:
        self.saver.flush()

    # --- mutations ---

    def apply_mutation(self, operation: Callable[..., MutationResult], *args: Any) -> list[Patch]:
        """Run any mutation-engine operation against the current snapshot."""
        if self.read_only:
            return []
        return self._commit(operation(self.architecture, *args))

    def _commit(self, result: MutationResult) -> list[Patch]:
        if not result.patches:
            return []
        self.architecture = result.architecture
        self._sync_visuals()
        if self.on_mutation is not None:
            try:
                self.on_mutation(list(result.patches), self.architecture)
            except Exception:
                logger.exception("Mutation callback failed")
        return list(result.patches)

    def _sync_visuals(self) -> None:
        """Re-derive visual data from the snapshot, keeping current geometry."""
        projected, edges = self.projector(self.architecture, self.diagram_type)
        current = {n.id: n for n in self.nodes}
        merged = []
        for node in projected:
            old = current.get(node.id)
            if old is None:
                merged.append(node)
                continue
            x, y = old.x, old.y
            if old.parent_id != node.parent_id:
                parent = current.get(node.parent_id) if node.parent_id else None
                x = old.abs_x - (parent.abs_x if parent else 0.0)
                y = old.abs_y - (parent.abs_y if parent else 0.0)
            data = dict(node.data)
            if "expanded_height" in old.data:
                data["expanded_height"] = old.data["expanded_height"]
            merged.append(replace(
                node, x=x, y=y, width=old.width, height=old.height,
                collapsed=old.collapsed, data=data,
            ))

        # Nodes placed locally that this view does not project (yet)
        projected_ids = {n.id for n in projected}
        for old in self.nodes:
            if old.id not in projected_ids and self.architecture.get_node(old.id) is not None:
                merged.append(old)

        self.nodes = resolve_absolute(self._apply_collapse(merged))
        self.edges = assign_edge_handles(self.nodes, edges, self.settings.handle_side_limit)

    def _grow_to_fit(self, container: VisualNode, child: VisualNode) -> None:
        geometry = self.settings.container
        need_w = child.x + child.width + geometry.padding_right
        need_h = child.y + child.height + geometry.padding_bottom
        if need_w > container.width or need_h > container.height:
            container.width = max(container.width, need_w)
            container.height = max(container.height, need_h)

    # --- drag / reparent ---

    def drag_start(self, node_id: str, modifier: bool = False) -> DragState:
        node = self.get_node(node_id)
        if node is None:
            return self.drag_state
        self.drag_node_id = node_id
        self.drag_state = DragState.DRAGGING
        if modifier and self.is_logical and not self.read_only and node.parent_id and not node.is_container:
            # Speculative detach: absolute position, no parent
            node.x, node.y = node.abs_x, node.abs_y
            node.parent_id = None
            self.drag_state = DragState.DETACHING
        return self.drag_state

    def drag_move(self, node_id: str, x: float, y: float) -> None:
        """Move a node in its current frame (parent-relative when nested)."""
        node = self.get_node(node_id)
        if node is None:
            return
        node.x, node.y = x, y
        resolve_absolute(self.nodes)
        self.saver.schedule()

    def drag_stop(self, node_id: str) -> DropOutcome:
        node = self.get_node(node_id)
        state = self.drag_state
        self.drag_state = DragState.IDLE
        self.drag_node_id = None
        if node is None:
            return DropOutcome(DragState.IDLE)

        resolve_absolute(self.nodes)
        outcome = self._resolve_drop(node, detaching=state == DragState.DETACHING)
        self.edges = assign_edge_handles(self.nodes, self.edges, self.settings.handle_side_limit)
        self.saver.schedule()
        return outcome

    def _resolve_drop(self, node: VisualNode, detaching: bool) -> DropOutcome:
        if not self.is_logical or self.read_only or node.is_container:
            state = DragState.DROPPED_IN_CONTAINER if node.parent_id else DragState.DROPPED_ORPHAN
            return DropOutcome(state, container_id=node.parent_id)
        if node.parent_id and not detaching:
            return DropOutcome(DragState.DROPPED_IN_CONTAINER, container_id=node.parent_id)

        container = find_container_at_point(self.nodes, (node.abs_x, node.abs_y), exclude_id=node.id)
        if container is None:
            patches = []
            if detaching:
                patches = self._commit(remove_node_from_any_container(self.architecture, node.id))
            return DropOutcome(DragState.DROPPED_ORPHAN, patches)

        node.x = node.abs_x - container.abs_x
        node.y = node.abs_y - container.abs_y
        node.parent_id = container.id
        self._grow_to_fit(container, node)
        patches = self._commit(add_node_to_container(self.architecture, node.id, container.id))
        return DropOutcome(DragState.DROPPED_IN_CONTAINER, patches, container.id)

    # --- palette, connect, delete, rename ---

    def drop_new_node(self, payload: Mapping[str, str], position: tuple[float, float]) -> list[Patch]:
        """Create a node from a palette drop at ``position`` (flow coordinates)."""
        if self.read_only:
            return []
        visual_kind = payload.get(VISUAL_KIND_KEY)
        node_kind = payload.get(NODE_KIND_KEY)
        if not visual_kind or not node_kind:
            logger.debug(f"Ignoring palette drop with incomplete payload {dict(payload)}")
            return []
        if visual_kind not in VISUAL_KINDS or node_kind not in NODE_KINDS:
            logger.debug(f"Ignoring palette drop of unknown kind {visual_kind}/{node_kind}")
            return []

        new_node = create_default_node(self.diagram_type, node_kind)
        result = add_node(self.architecture, new_node)
        arch, patches = result.architecture, list(result.patches)
        visual = node_to_visual(new_node, visual_kind, position, self.settings, arch)
        visual.abs_x, visual.abs_y = position

        if self.is_logical and visual_kind != CONTAINER_NODE:
            container = find_container_at_point(self.nodes, position)
            if container is not None:
                visual.x = position[0] - container.abs_x
                visual.y = position[1] - container.abs_y
                visual.parent_id = container.id
                self._grow_to_fit(container, visual)
                contained = add_node_to_container(arch, new_node.id, container.id)
                arch = contained.architecture
                patches.extend(contained.patches)

        self.nodes.append(visual)
        self.editing_node_id = new_node.id
        return self._commit(MutationResult(arch, patches))

    def connect(self, source_id: str, target_id: str) -> list[Patch]:
        if self.read_only or self.get_node(source_id) is None or self.get_node(target_id) is None:
            return []
        rel = create_default_relationship(self.diagram_type, source_id, target_id, self.architecture)
        return self._commit(add_relationship(self.architecture, rel))

    def delete_nodes(self, node_ids: list[str]) -> list[Patch]:
        """Remove nodes with their cascades, reported as one batch."""
        if self.read_only:
            return []
        arch, patches = self.architecture, []
        for node_id in node_ids:
            arch, step = remove_node(arch, node_id)
            patches.extend(step)
        return self._commit(MutationResult(arch, patches))

    def delete_edges(self, edge_ids: list[str]) -> list[Patch]:
        """Remove the relationships behind visual edges.

        A merged bidirectional edge removes both relationships.  An
        interacts edge removes only its target from the relationship.
        """
        if self.read_only:
            return []
        arch, patches = self.architecture, []
        for edge_id in edge_ids:
            edge = self.get_edge(edge_id)
            rel_ids = edge.relationship_ids() if edge else edge_id.split("+")
            for rel_id in rel_ids:
                rel = arch.get_relationship(rel_id)
                interacts = rel.relationship_type.interacts if rel else None
                if edge is not None and interacts is not None and len(interacts.nodes) > 1:
                    remaining = [n for n in interacts.nodes if n != edge.target]
                    arch, step = update_relationship_field(
                        arch, rel_id, "relationship-type.interacts.nodes", remaining
                    )
                else:
                    arch, step = remove_relationship(arch, rel_id)
                patches.extend(step)
        return self._commit(MutationResult(arch, patches))

    def rename_node(self, node_id: str, name: str) -> list[Patch]:
        self.editing_node_id = None
        return self.apply_mutation(update_node_field, node_id, "name", name)
