"""
Data models for arch-canvas: the architecture document.

An architecture document describes a system as typed **nodes** joined by
typed **relationships**, with optional **flows**, capability **decorators**
and compliance **controls** layered on top:

    Architecture
    ├── nodes          system | actor | service | database | network
    ├── relationships  interacts | composed-of | connects
    ├── flows          ordered walks over existing relationships
    ├── decorators     capability mappings (node id -> capability keys)
    └── controls       keyed compliance requirements

Containment is not a property of a node.  It is expressed by a
``composed-of`` relationship whose ``container`` is the parent and whose
``nodes`` are the direct children.  The mutation engine keeps each node
inside at most one container and never lets a container end up inside
itself.

On disk the document uses hyphenated keys (``unique-id``, ``node-type``,
``relationship-type`` ...).  Every model here carries those keys as
aliases and accepts either spelling on input; dump with ``by_alias=True``
(or call ``to_document()``) to get the wire form back.

Snapshots are immutable by convention.  Nothing in this module changes a
model in place; ``arch_canvas.mutations`` builds new snapshots instead.
"""

from __future__ import annotations

import hashlib
from typing import Any, Literal, Optional

import networkx as nx
from pydantic import BaseModel, ConfigDict, Field, model_validator

NodeKind = Literal["system", "actor", "service", "database", "network"]
NODE_KINDS: tuple[str, ...] = ("system", "actor", "service", "database", "network")

DEFAULT_DECORATOR_REF = "decorators/capability-model.json"


class DocumentModel(BaseModel):
    """Base for every document model: alias-aware, keeps unknown keys."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_document(self) -> dict[str, Any]:
        """Return the wire form (hyphenated keys, unset optionals omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

class Interface(DocumentModel):
    id: str = Field(alias="unique-id")
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None


class NodeDetails(DocumentModel):
    detailed_architecture: Optional[str] = Field(default=None, alias="detailed-architecture")
    required_pattern: Optional[str] = Field(default=None, alias="required-pattern")


class ArchNode(DocumentModel):
    """A node in the architecture.

    ``id`` must be unique across the whole document.  ``kind`` decides how
    the node is drawn and which relationships make sense for it (actors
    start ``interacts`` relationships, systems usually act as containers).
    """
    id: str = Field(alias="unique-id")
    kind: NodeKind = Field(alias="node-type")
    name: str
    description: Optional[str] = None
    interfaces: Optional[list[Interface]] = None
    classification: Optional[str] = Field(default=None, alias="data-classification")
    details: Optional[NodeDetails] = None


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------

class NodeRef(DocumentModel):
    node: str
    interfaces: Optional[list[str]] = None


class Interacts(DocumentModel):
    actor: str
    nodes: list[str] = Field(default_factory=list)


class ComposedOf(DocumentModel):
    container: str
    nodes: list[str] = Field(default_factory=list)


class Connects(DocumentModel):
    source: NodeRef
    destination: NodeRef


class RelationshipType(DocumentModel):
    """Exactly one of the three variants is set."""
    interacts: Optional[Interacts] = None
    composed_of: Optional[ComposedOf] = Field(default=None, alias="composed-of")
    connects: Optional[Connects] = None

    @model_validator(mode="after")
    def _exactly_one_variant(self) -> RelationshipType:
        present = [v for v in (self.interacts, self.composed_of, self.connects) if v is not None]
        if len(present) != 1:
            raise ValueError(
                "relationship-type must set exactly one of "
                "'interacts', 'composed-of' or 'connects'"
            )
        return self


class Relationship(DocumentModel):
    """A typed relationship between nodes.

    ``kind`` names the active variant.  ``endpoints()`` lists every node id
    the relationship points at, in document order, whatever its variant.
    """
    id: str = Field(alias="unique-id")
    description: Optional[str] = None
    relationship_type: RelationshipType = Field(alias="relationship-type")
    protocol: Optional[str] = None

    @property
    def kind(self) -> str:
        rt = self.relationship_type
        if rt.interacts is not None:
            return "interacts"
        if rt.composed_of is not None:
            return "composed-of"
        return "connects"

    def endpoints(self) -> list[str]:
        rt = self.relationship_type
        if rt.interacts is not None:
            return [rt.interacts.actor, *rt.interacts.nodes]
        if rt.composed_of is not None:
            return [rt.composed_of.container, *rt.composed_of.nodes]
        return [rt.connects.source.node, rt.connects.destination.node]

    def references(self, node_id: str) -> bool:
        return node_id in self.endpoints()

    def is_composed_of(self, container_id: Optional[str] = None) -> bool:
        co = self.relationship_type.composed_of
        if co is None:
            return False
        return container_id is None or co.container == container_id


# ---------------------------------------------------------------------------
# Flows, decorators, controls
# ---------------------------------------------------------------------------

class Transition(DocumentModel):
    relationship_id: str = Field(alias="relationship-unique-id")
    sequence_number: int = Field(alias="sequence-number")
    summary: str = ""


class Flow(DocumentModel):
    id: str = Field(alias="unique-id")
    name: str
    description: Optional[str] = None
    transitions: list[Transition] = Field(default_factory=list)


class CapabilityEntry(DocumentModel):
    capabilities: list[str] = Field(default_factory=list)


class DecoratorMapping(DocumentModel):
    """Capability decorator.  Only the first one in a document is active."""
    ref: str = Field(default=DEFAULT_DECORATOR_REF, alias="$ref")
    mappings: dict[str, CapabilityEntry] = Field(default_factory=dict)


class ControlRequirement(DocumentModel):
    requirement_url: str = Field(alias="control-requirement-url")
    config_url: Optional[str] = Field(default=None, alias="control-config-url")


class Control(DocumentModel):
    description: str = ""
    requirements: list[ControlRequirement] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Architecture (root)
# ---------------------------------------------------------------------------

class Architecture(DocumentModel):
    """The root architecture document.

    Flat Access
    -----------
    Node and relationship lookups go through ``_node_map`` / ``_rel_map``,
    built once in ``model_post_init``.  Because the maps are private state,
    a changed snapshot must be built through ``evolve()`` (which runs the
    constructor again) and never through ``model_copy``.

    Containment
    -----------
    ``container_of``, ``children_of`` and ``descendants_of`` read the
    ``composed-of`` relationships.  ``containment_graph()`` returns them as
    a ``networkx.DiGraph`` with container -> child edges.
    """
    schema_uri: Optional[str] = Field(default=None, alias="$schema")
    nodes: list[ArchNode] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    flows: Optional[list[Flow]] = None
    decorators: Optional[list[DecoratorMapping]] = None
    controls: Optional[dict[str, Control]] = None

    _node_map: dict[str, ArchNode] = {}
    _rel_map: dict[str, Relationship] = {}

    def model_post_init(self, __context):
        """Build lookup maps after initialization."""
        self._node_map = {}
        for node in self.nodes:
            self._node_map.setdefault(node.id, node)
        self._rel_map = {}
        for rel in self.relationships:
            self._rel_map.setdefault(rel.id, rel)

    def evolve(self, **changes: Any) -> Architecture:
        """Return a new snapshot with ``changes`` applied (field names)."""
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data.update(self.model_extra or {})
        data.update(changes)
        return type(self)(**data)

    # --- lookups ---

    def get_node(self, node_id: str) -> Optional[ArchNode]:
        return self._node_map.get(node_id)

    def get_relationship(self, rel_id: str) -> Optional[Relationship]:
        return self._rel_map.get(rel_id)

    def has_id(self, unique_id: str) -> bool:
        return unique_id in self._node_map or unique_id in self._rel_map

    def relationships_for(self, node_id: str) -> list[Relationship]:
        """Every relationship that references ``node_id`` in any role."""
        return [r for r in self.relationships if r.references(node_id)]

    # --- containment ---

    def containment_pairs(self) -> list[tuple[str, str]]:
        """All ``(container, child)`` pairs, in document order."""
        pairs = []
        for rel in self.relationships:
            co = rel.relationship_type.composed_of
            if co is not None:
                pairs.extend((co.container, child) for child in co.nodes)
        return pairs

    def container_of(self, node_id: str) -> Optional[str]:
        for container, child in self.containment_pairs():
            if child == node_id:
                return container
        return None

    def children_of(self, container_id: str) -> list[str]:
        children: list[str] = []
        for container, child in self.containment_pairs():
            if container == container_id and child not in children:
                children.append(child)
        return children

    def is_container(self, node_id: str) -> bool:
        return any(r.is_composed_of(node_id) for r in self.relationships)

    def containment_graph(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        graph.add_nodes_from(n.id for n in self.nodes)
        graph.add_edges_from(self.containment_pairs())
        return graph

    def descendants_of(self, node_id: str) -> set[str]:
        graph = self.containment_graph()
        if node_id not in graph:
            return set()
        return nx.descendants(graph, node_id)

    # --- decorators ---

    def active_decorator(self) -> Optional[DecoratorMapping]:
        return self.decorators[0] if self.decorators else None

    def capabilities_of(self, node_id: str) -> list[str]:
        decorator = self.active_decorator()
        if decorator is None or node_id not in decorator.mappings:
            return []
        return list(decorator.mappings[node_id].capabilities)

    def content_hash(self) -> str:
        """sha256 of the canonical JSON form; equal content, equal hash."""
        payload = self.model_dump_json(by_alias=True, exclude_none=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
