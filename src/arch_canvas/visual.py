"""
Visual node and edge records handed to the rendering layer.

These are derived data: ``arch_canvas.projection`` builds them from an
``Architecture`` and the layout adapter fills in geometry.  Positions
(``x``, ``y``) are relative to the parent container when ``parent_id`` is
set and absolute otherwise; ``abs_x`` / ``abs_y`` always carry the
resolved absolute position once ``containment.resolve_absolute`` (or the
layout adapter) has run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

# Visual kinds
ACTOR_NODE = "actorNode"
SYSTEM_NODE = "systemNode"
EXTERNAL_SYSTEM_NODE = "externalSystemNode"
SERVICE_NODE = "serviceNode"
DATA_STORE_NODE = "dataStoreNode"
NETWORK_NODE = "networkNode"
CONTAINER_NODE = "containerNode"

VISUAL_KINDS = (
    ACTOR_NODE,
    SYSTEM_NODE,
    EXTERNAL_SYSTEM_NODE,
    SERVICE_NODE,
    DATA_STORE_NODE,
    NETWORK_NODE,
    CONTAINER_NODE,
)


@dataclass
class VisualNode:
    id: str
    type: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    parent_id: Optional[str] = None
    hidden: bool = False
    collapsed: bool = False
    data: dict[str, Any] = field(default_factory=dict)
    abs_x: float = 0.0
    abs_y: float = 0.0

    @property
    def is_container(self) -> bool:
        return self.type == CONTAINER_NODE

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.abs_x + self.width / 2, self.abs_y + self.height / 2)

    def contains(self, px: float, py: float) -> bool:
        """Point-in-rectangle on absolute coordinates, edges inclusive."""
        return (
            self.abs_x <= px <= self.abs_x + self.width
            and self.abs_y <= py <= self.abs_y + self.height
        )


@dataclass
class VisualEdge:
    id: str
    source: str
    target: str
    label: str = ""
    bidirectional: bool = False
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)

    def relationship_ids(self) -> list[str]:
        """Underlying relationship ids.

        Merged bidirectional edges carry ``a+b`` ids; context-view interacts
        edges carry ``<rel>-<target>`` and record the relationship in
        ``data``.
        """
        if "relationship_id" in self.data:
            return [self.data["relationship_id"]]
        return self.id.split("+")
