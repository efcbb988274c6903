"""
Persisted layout record: the visual geometry of one diagram.

The layout lives apart from the architecture document.  It has its own
lifecycle, its own file (``<diagramType>.layout.json``), and its own
version tag.  It stores, per node id, the last position and size the user
saw (parent-relative, like the visual nodes), plus the viewport and
collapse flags.

Entries are read leniently.  A node entry with a missing or non-numeric
coordinate is kept as-is but counts as *incomplete*: it does not pin the
node, which then falls through to automatic placement.  Unknown keys are
preserved so that a newer minor version written by another tool survives
a round-trip.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

LAYOUT_VERSION = "1.0"

DiagramType = Literal["context", "logical"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _lenient_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


class NodeLayout(BaseModel):
    model_config = ConfigDict(extra="allow")

    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    collapsed: Optional[bool] = None

    @field_validator("x", "y", "width", "height", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Optional[float]:
        return _lenient_number(value)

    def is_complete(self) -> bool:
        """True when the entry can pin a node: finite position, positive size."""
        values = (self.x, self.y, self.width, self.height)
        if any(v is None or not math.isfinite(v) for v in values):
            return False
        return self.width > 0 and self.height > 0


class Point(BaseModel):
    x: float
    y: float


class EdgeLayout(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    waypoints: list[Point] = Field(default_factory=list)
    label_position: Optional[Point] = Field(default=None, alias="labelPosition")


class Viewport(BaseModel):
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0


class DiagramLayout(BaseModel):
    """One diagram's saved geometry.

    ``nodes`` maps node id -> ``NodeLayout`` and ``edges`` maps edge id ->
    ``EdgeLayout``.  Serialize with ``to_document()`` to get the camelCase
    keys used on disk.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    version: str = LAYOUT_VERSION
    diagram_type: DiagramType = Field(alias="diagramType")
    viewport: Viewport = Field(default_factory=Viewport)
    nodes: dict[str, NodeLayout] = Field(default_factory=dict)
    edges: dict[str, EdgeLayout] = Field(default_factory=dict)
    grid_size: int = Field(default=20, alias="gridSize")
    snap_to_grid: bool = Field(default=True, alias="snapToGrid")
    last_modified: str = Field(default_factory=_now_iso, alias="lastModified")

    @field_validator("nodes", mode="before")
    @classmethod
    def _keep_malformed_entries(cls, value: Any) -> Any:
        # A non-object entry becomes an empty (incomplete) one.
        if isinstance(value, dict):
            return {k: (v if isinstance(v, (dict, NodeLayout)) else {}) for k, v in value.items()}
        return value

    def is_compatible(self) -> bool:
        """Same major version as this code writes."""
        return self.version.split(".")[0] == LAYOUT_VERSION.split(".")[0]

    def pinned(self) -> dict[str, NodeLayout]:
        return {node_id: entry for node_id, entry in self.nodes.items() if entry.is_complete()}

    def is_collapsed(self, node_id: str) -> bool:
        entry = self.nodes.get(node_id)
        return bool(entry and entry.collapsed)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def touched(self) -> DiagramLayout:
        """Copy with ``lastModified`` set to now."""
        return self.model_copy(update={"last_modified": _now_iso()})


def create_empty_layout(diagram_type: DiagramType) -> DiagramLayout:
    return DiagramLayout(diagram_type=diagram_type)
