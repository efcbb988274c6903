"""
Mutation engine: every edit to an architecture, as a pure function.

Each operation takes the current ``Architecture`` snapshot plus an edit
intent and returns a ``MutationResult``: the new snapshot and the ordered
list of ``Patch`` records describing the change.  The input snapshot is
never modified.

Stale ids
---------
Edits arrive from live UI selection and may race with other edits, so an
operation that names a node, relationship or control that no longer
exists returns the input snapshot unchanged with an empty patch list.  The
same goes for edits that would break a structural invariant (dangling
relationship endpoints, duplicate ids, a container nested inside itself).
Only programmer errors raise, e.g. trying to edit a ``unique-id`` or
editing containment through ``update_relationship_field`` instead of
the containment operations.

Patches
-------
A patch batch is atomic: a host either applies all of it or none of it.
``apply_patches()`` replays a batch onto another snapshot and produces the
same result the engine produced, which is what the persistence layer
relies on when writing patches into a document on disk.

    op                  target          field                 value
    addNode             node id         -                     node document
    removeNode          node id         -                     -
    addRelationship     rel id          -                     rel document
    removeRelationship  rel id          -                     -
    updateField         node/rel id     dot path (aliases)    new value
    setControl          control key     -                     control document
    removeControl       control key     -                     -
    setCapabilities     node id         -                     list of keys
    setInterfaces       node id         -                     interface docs | None
    updateComposedOf    container id    composed-of rel id    child ids | None
"""

from __future__ import annotations

import copy
import itertools
import logging
import time
from enum import Enum
from typing import Any, Callable, NamedTuple, Optional

from pydantic import BaseModel

from .models import (
    Architecture,
    ArchNode,
    CapabilityEntry,
    ComposedOf,
    Connects,
    Control,
    DecoratorMapping,
    Flow,
    Interacts,
    Interface,
    NodeRef,
    Relationship,
    RelationshipType,
)

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = frozenset({"unique-id", "id"})

DEFAULT_NODE_NAMES = {
    "system": "System",
    "actor": "Actor",
    "service": "Service",
    "database": "Data Store",
    "network": "Network",
}


# ---------------------------------------------------------------------------
# Patch records
# ---------------------------------------------------------------------------

class PatchOp(str, Enum):
    ADD_NODE = "addNode"
    REMOVE_NODE = "removeNode"
    ADD_RELATIONSHIP = "addRelationship"
    REMOVE_RELATIONSHIP = "removeRelationship"
    UPDATE_FIELD = "updateField"
    SET_CONTROL = "setControl"
    REMOVE_CONTROL = "removeControl"
    SET_CAPABILITIES = "setCapabilities"
    SET_INTERFACES = "setInterfaces"
    UPDATE_COMPOSED_OF = "updateComposedOf"


class Patch(BaseModel):
    """One recorded change.  ``op`` is validated against ``PatchOp``."""
    op: PatchOp
    target: str
    field: Optional[str] = None
    value: Any = None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class MutationResult(NamedTuple):
    architecture: Architecture
    patches: list[Patch]


def _unchanged(arch: Architecture, reason: str) -> MutationResult:
    logger.debug(f"No-op edit: {reason}")
    return MutationResult(arch, [])


# ---------------------------------------------------------------------------
# Id generation and default factories
# ---------------------------------------------------------------------------

_id_counter = itertools.count(1)


def generate_node_id(kind: str) -> str:
    return f"node-{kind}-{int(time.time() * 1000)}-{next(_id_counter)}"


def generate_relationship_id(kind: str) -> str:
    return f"rel-{kind}-{int(time.time() * 1000)}-{next(_id_counter)}"


def create_default_node(diagram_type: str, kind: str) -> ArchNode:
    """A minimally valid node for interactive creation (palette drops)."""
    return ArchNode(
        id=generate_node_id(kind),
        kind=kind,
        name=f"New {DEFAULT_NODE_NAMES.get(kind, 'Node')}",
        description="",
    )


def create_default_relationship(
    diagram_type: str,
    source_id: str,
    target_id: str,
    arch: Optional[Architecture] = None,
) -> Relationship:
    """A new relationship for a drawn connection.

    In the context view an edge drawn from an actor becomes an
    ``interacts`` relationship.  Everything else is ``connects``.
    """
    if diagram_type == "context" and arch is not None:
        source = arch.get_node(source_id)
        if source is not None and source.kind == "actor":
            return Relationship(
                id=generate_relationship_id("interacts"),
                description="Uses",
                relationship_type=RelationshipType(
                    interacts=Interacts(actor=source_id, nodes=[target_id])
                ),
            )
    return Relationship(
        id=generate_relationship_id("connects"),
        description="Uses" if diagram_type == "context" else "Calls",
        relationship_type=RelationshipType(
            connects=Connects(source=NodeRef(node=source_id), destination=NodeRef(node=target_id))
        ),
    )


# ---------------------------------------------------------------------------
# Shared helpers (used by the engine and by patch replay)
# ---------------------------------------------------------------------------

def _set_path(document: dict[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Set ``path`` (dot separated) inside a deep copy of ``document``.

    Missing intermediate objects are created.  ``None`` removes the key.
    """
    result = copy.deepcopy(document)
    parts = path.split(".")
    current = result
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    if value is None:
        current.pop(parts[-1], None)
    else:
        current[parts[-1]] = value
    return result


def _prune_flows(flows: Optional[list[Flow]], relationships: list[Relationship]) -> Optional[list[Flow]]:
    """Drop flow transitions whose relationship no longer exists."""
    if not flows:
        return flows
    live = {r.id for r in relationships}
    pruned = []
    for flow in flows:
        kept = [t for t in flow.transitions if t.relationship_id in live]
        if len(kept) == len(flow.transitions):
            pruned.append(flow)
        else:
            pruned.append(flow.model_copy(update={"transitions": kept}))
    return pruned


def _with_children(
    relationships: list[Relationship],
    container_id: str,
    rel_id: str,
    children: Optional[list[str]],
) -> list[Relationship]:
    """Replace every composed-of of ``container_id`` with one (or none).

    The surviving relationship takes ``rel_id`` and the slot of the first
    composed-of it replaces, so replaying a patch lands in the same place.
    """
    result = []
    placed = False
    for rel in relationships:
        if not rel.is_composed_of(container_id):
            result.append(rel)
            continue
        if children and not placed:
            result.append(rel.model_copy(update={
                "id": rel_id,
                "relationship_type": RelationshipType(
                    composed_of=ComposedOf(container=container_id, nodes=list(children))
                ),
            }))
            placed = True
    if children and not placed:
        result.append(Relationship(
            id=rel_id,
            relationship_type=RelationshipType(
                composed_of=ComposedOf(container=container_id, nodes=list(children))
            ),
        ))
    return result


def _composed_of_id(arch: Architecture, container_id: str) -> str:
    for rel in arch.relationships:
        if rel.is_composed_of(container_id):
            return rel.id
    return generate_relationship_id("composed-of")


def _set_children(arch: Architecture, container_id: str, children: list[str]) -> MutationResult:
    rel_id = _composed_of_id(arch, container_id)
    relationships = _with_children(arch.relationships, container_id, rel_id, children)
    new_arch = arch.evolve(
        relationships=relationships,
        flows=_prune_flows(arch.flows, relationships),
    )
    patch = Patch(
        op=PatchOp.UPDATE_COMPOSED_OF,
        target=container_id,
        field=rel_id,
        value=list(children) if children else None,
    )
    return MutationResult(new_arch, [patch])


def _creates_cycle(arch: Architecture, child_id: str, container_id: str) -> bool:
    return child_id == container_id or container_id in arch.descendants_of(child_id)


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

def add_node(arch: Architecture, node: ArchNode) -> MutationResult:
    if arch.has_id(node.id):
        return _unchanged(arch, f"id {node.id!r} already exists")
    new_arch = arch.evolve(nodes=[*arch.nodes, node])
    return MutationResult(new_arch, [
        Patch(op=PatchOp.ADD_NODE, target=node.id, value=node.to_document())
    ])


def remove_node(arch: Architecture, node_id: str) -> MutationResult:
    """Remove a node and everything that points at it, as one batch.

    Relationships where the node is the actor, a connects endpoint or the
    container are dropped.  Where the node is one member of a list (an
    interacts target or a composed-of child) it is pruned from the list,
    and the relationship is dropped once the list is empty.  Flow
    transitions over dropped relationships and the node's capability
    mapping go with it.
    """
    if arch.get_node(node_id) is None:
        return _unchanged(arch, f"node {node_id!r} not found")

    patches = [Patch(op=PatchOp.REMOVE_NODE, target=node_id)]
    relationships: list[Relationship] = []
    parents: list[str] = []

    for rel in arch.relationships:
        if not rel.references(node_id):
            relationships.append(rel)
            continue
        rt = rel.relationship_type

        # --- member of a list: prune, drop when empty ---
        if rt.composed_of is not None and rt.composed_of.container != node_id:
            relationships.append(rel)
            if rt.composed_of.container not in parents:
                parents.append(rt.composed_of.container)
            continue
        if rt.interacts is not None and rt.interacts.actor != node_id:
            remaining = [n for n in rt.interacts.nodes if n != node_id]
            if remaining:
                relationships.append(rel.model_copy(update={
                    "relationship_type": RelationshipType(
                        interacts=rt.interacts.model_copy(update={"nodes": remaining})
                    ),
                }))
                patches.append(Patch(
                    op=PatchOp.UPDATE_FIELD,
                    target=rel.id,
                    field="relationship-type.interacts.nodes",
                    value=remaining,
                ))
                continue

        # --- actor, endpoint, container, or emptied list: drop ---
        patches.append(Patch(op=PatchOp.REMOVE_RELATIONSHIP, target=rel.id))

    for parent in parents:
        rel_id = _composed_of_id(arch, parent)
        remaining = [c for c in arch.children_of(parent) if c != node_id]
        relationships = _with_children(relationships, parent, rel_id, remaining)
        patches.append(Patch(
            op=PatchOp.UPDATE_COMPOSED_OF,
            target=parent,
            field=rel_id,
            value=remaining or None,
        ))

    decorators = arch.decorators
    active = arch.active_decorator()
    if active is not None and node_id in active.mappings:
        mappings = {k: v for k, v in active.mappings.items() if k != node_id}
        decorators = [active.model_copy(update={"mappings": mappings}), *arch.decorators[1:]]
        patches.append(Patch(op=PatchOp.SET_CAPABILITIES, target=node_id, value=[]))

    new_arch = arch.evolve(
        nodes=[n for n in arch.nodes if n.id != node_id],
        relationships=relationships,
        flows=_prune_flows(arch.flows, relationships),
        decorators=decorators,
    )
    logger.debug(f"Removed node {node_id} ({len(patches)} patches)")
    return MutationResult(new_arch, patches)


def update_node_field(arch: Architecture, node_id: str, field: str, value: Any) -> MutationResult:
    """Set one attribute of a node by its document path.

    ``field`` uses the document keys, e.g. ``name``,
    ``data-classification`` or ``details.required-pattern``.  ``None``
    clears the attribute.
    """
    if field in IMMUTABLE_FIELDS:
        raise ValueError(f"'{field}' cannot be edited; remove and re-add the node instead")
    node = arch.get_node(node_id)
    if node is None:
        return _unchanged(arch, f"node {node_id!r} not found")

    updated = ArchNode.model_validate(_set_path(node.to_document(), field, value))
    if updated == node:
        return _unchanged(arch, f"node {node_id!r} already has that {field}")
    new_arch = arch.evolve(nodes=[updated if n.id == node_id else n for n in arch.nodes])
    return MutationResult(new_arch, [
        Patch(op=PatchOp.UPDATE_FIELD, target=node_id, field=field, value=value)
    ])


def set_interfaces(arch: Architecture, node_id: str, interfaces: list[Interface]) -> MutationResult:
    """Replace a node's interface list; an empty list clears it."""
    node = arch.get_node(node_id)
    if node is None:
        return _unchanged(arch, f"node {node_id!r} not found")
    new_interfaces = list(interfaces) or None
    if new_interfaces == node.interfaces:
        return _unchanged(arch, f"node {node_id!r} already has those interfaces")
    updated = node.model_copy(update={"interfaces": new_interfaces})
    new_arch = arch.evolve(nodes=[updated if n.id == node_id else n for n in arch.nodes])
    value = [i.to_document() for i in new_interfaces] if new_interfaces else None
    return MutationResult(new_arch, [
        Patch(op=PatchOp.SET_INTERFACES, target=node_id, value=value)
    ])


def set_capabilities(arch: Architecture, node_id: str, capability_keys: list[str]) -> MutationResult:
    """Replace the node's capability set in the active decorator.

    The decorator is created when the document has none.  An empty set
    removes the node's entry.
    """
    if arch.get_node(node_id) is None:
        return _unchanged(arch, f"node {node_id!r} not found")

    keys = list(dict.fromkeys(capability_keys))
    active = arch.active_decorator()
    if active is None:
        if not keys:
            return _unchanged(arch, f"node {node_id!r} has no capabilities to clear")
        active = DecoratorMapping()
        rest: list[DecoratorMapping] = []
    else:
        rest = list(arch.decorators[1:])

    mappings = dict(active.mappings)
    if keys:
        mappings[node_id] = CapabilityEntry(capabilities=keys)
    elif node_id in mappings:
        del mappings[node_id]
    else:
        return _unchanged(arch, f"node {node_id!r} has no capabilities to clear")

    new_arch = arch.evolve(decorators=[active.model_copy(update={"mappings": mappings}), *rest])
    return MutationResult(new_arch, [
        Patch(op=PatchOp.SET_CAPABILITIES, target=node_id, value=keys)
    ])


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------

def add_relationship(arch: Architecture, rel: Relationship) -> MutationResult:
    """Insert a relationship whose endpoints all exist.

    A ``composed-of`` relationship is only accepted for a container that
    has none yet, with children that are free and would not form a
    cycle.  Use ``add_node_to_container`` to move nodes between
    containers.
    """
    if arch.has_id(rel.id):
        return _unchanged(arch, f"id {rel.id!r} already exists")
    missing = [n for n in rel.endpoints() if arch.get_node(n) is None]
    if missing:
        return _unchanged(arch, f"relationship {rel.id!r} references unknown nodes {missing}")

    co = rel.relationship_type.composed_of
    if co is not None:
        if arch.is_container(co.container):
            return _unchanged(arch, f"{co.container!r} already has a composed-of relationship")
        for child in co.nodes:
            if arch.container_of(child) is not None or _creates_cycle(arch, child, co.container):
                return _unchanged(arch, f"{child!r} cannot be placed in {co.container!r}")

    new_arch = arch.evolve(relationships=[*arch.relationships, rel])
    return MutationResult(new_arch, [
        Patch(op=PatchOp.ADD_RELATIONSHIP, target=rel.id, value=rel.to_document())
    ])


def remove_relationship(arch: Architecture, rel_id: str) -> MutationResult:
    if arch.get_relationship(rel_id) is None:
        return _unchanged(arch, f"relationship {rel_id!r} not found")
    relationships = [r for r in arch.relationships if r.id != rel_id]
    new_arch = arch.evolve(
        relationships=relationships,
        flows=_prune_flows(arch.flows, relationships),
    )
    return MutationResult(new_arch, [Patch(op=PatchOp.REMOVE_RELATIONSHIP, target=rel_id)])


def _edits_containment(rel: Relationship, updated: Relationship, field: str) -> bool:
    if not field.startswith("relationship-type"):
        return False
    return rel.relationship_type.composed_of is not None or updated.relationship_type.composed_of is not None


def update_relationship_field(arch: Architecture, rel_id: str, field: str, value: Any) -> MutationResult:
    """Set one attribute of a relationship (``description``, ``protocol`` ...).

    Edits that would leave the relationship pointing at a missing node
    are ignored.  Composed-of membership goes through ``update_composed_of`` or
    ``add_node_to_container``, which keep one container per node and no
    cycles.
    """
    if field in IMMUTABLE_FIELDS:
        raise ValueError(f"'{field}' cannot be edited; remove and re-add the relationship instead")
    rel = arch.get_relationship(rel_id)
    if rel is None:
        return _unchanged(arch, f"relationship {rel_id!r} not found")

    updated = Relationship.model_validate(_set_path(rel.to_document(), field, value))
    if _edits_containment(rel, updated, field):
        raise ValueError(
            f"'{field}' changes containment; use update_composed_of or add_node_to_container instead"
        )
    if updated == rel:
        return _unchanged(arch, f"relationship {rel_id!r} already has that {field}")
    if any(arch.get_node(n) is None for n in updated.endpoints()):
        return _unchanged(arch, f"edit to {rel_id!r} would reference an unknown node")
    new_arch = arch.evolve(relationships=[updated if r.id == rel_id else r for r in arch.relationships])
    return MutationResult(new_arch, [
        Patch(op=PatchOp.UPDATE_FIELD, target=rel_id, field=field, value=value)
    ])


# ---------------------------------------------------------------------------
# Containment
# ---------------------------------------------------------------------------

def update_composed_of(arch: Architecture, container_id: str, node_ids: list[str]) -> MutationResult:
    """Make ``node_ids`` the exact child list of ``container_id``.

    Children listed here are first detached from any other container so
    each node keeps at most one parent.  An empty list removes the
    container's composed-of relationship.
    """
    if arch.get_node(container_id) is None:
        return _unchanged(arch, f"container {container_id!r} not found")
    children = list(dict.fromkeys(node_ids))
    for child in children:
        if arch.get_node(child) is None:
            return _unchanged(arch, f"child {child!r} not found")
        if _creates_cycle(arch, child, container_id):
            return _unchanged(arch, f"{child!r} cannot be nested in {container_id!r}")

    patches: list[Patch] = []
    current = arch
    for child in children:
        for other in _containers_listing(current, child):
            if other == container_id:
                continue
            remaining = [c for c in current.children_of(other) if c != child]
            current, step = _set_children(current, other, remaining)
            patches.extend(step)

    existing = [r for r in current.relationships if r.is_composed_of(container_id)]
    if current.children_of(container_id) == children and len(existing) <= 1 and not patches:
        return _unchanged(arch, f"{container_id!r} already holds {children}")
    if not children and not existing:
        return _unchanged(arch, f"{container_id!r} has no children to clear")

    current, step = _set_children(current, container_id, children)
    return MutationResult(current, patches + step)


def _containers_listing(arch: Architecture, node_id: str) -> list[str]:
    containers: list[str] = []
    for container, child in arch.containment_pairs():
        if child == node_id and container not in containers:
            containers.append(container)
    return containers


def add_node_to_container(arch: Architecture, child_id: str, container_id: str) -> MutationResult:
    """Put ``child_id`` inside ``container_id``, detaching it elsewhere.

    Repeating the call is a no-op, so a node never appears twice in the
    same composed-of list and never sits in two containers at once.
    """
    if arch.get_node(child_id) is None or arch.get_node(container_id) is None:
        return _unchanged(arch, f"unknown node in ({container_id!r}, {child_id!r})")
    if _creates_cycle(arch, child_id, container_id):
        return _unchanged(arch, f"{child_id!r} cannot be nested in {container_id!r}")
    if _containers_listing(arch, child_id) == [container_id]:
        return _unchanged(arch, f"{child_id!r} is already in {container_id!r}")

    children = [c for c in arch.children_of(container_id) if c != child_id]
    return update_composed_of(arch, container_id, [*children, child_id])


def remove_node_from_any_container(arch: Architecture, node_id: str) -> MutationResult:
    containers = _containers_listing(arch, node_id)
    if not containers:
        return _unchanged(arch, f"{node_id!r} is not in any container")
    patches: list[Patch] = []
    current = arch
    for container in containers:
        remaining = [c for c in current.children_of(container) if c != node_id]
        current, step = _set_children(current, container, remaining)
        patches.extend(step)
    return MutationResult(current, patches)


# ---------------------------------------------------------------------------
# Controls
# ---------------------------------------------------------------------------

def set_control(arch: Architecture, key: str, control: Control) -> MutationResult:
    controls = dict(arch.controls or {})
    if controls.get(key) == control:
        return _unchanged(arch, f"control {key!r} unchanged")
    controls[key] = control
    return MutationResult(arch.evolve(controls=controls), [
        Patch(op=PatchOp.SET_CONTROL, target=key, value=control.to_document())
    ])


def remove_control(arch: Architecture, key: str) -> MutationResult:
    if not arch.controls or key not in arch.controls:
        return _unchanged(arch, f"control {key!r} not found")
    controls = {k: v for k, v in arch.controls.items() if k != key}
    return MutationResult(arch.evolve(controls=controls or None), [
        Patch(op=PatchOp.REMOVE_CONTROL, target=key)
    ])


# ---------------------------------------------------------------------------
# Patch replay
# ---------------------------------------------------------------------------

def _replay_add_node(arch: Architecture, patch: Patch) -> Architecture:
    return add_node(arch, ArchNode.model_validate(patch.value)).architecture


def _replay_remove_node(arch: Architecture, patch: Patch) -> Architecture:
    # Cascaded relationship changes travel as separate patches in the batch.
    if arch.get_node(patch.target) is None:
        return arch
    return arch.evolve(nodes=[n for n in arch.nodes if n.id != patch.target])


def _replay_add_relationship(arch: Architecture, patch: Patch) -> Architecture:
    rel = Relationship.model_validate(patch.value)
    if arch.has_id(rel.id):
        return arch
    return arch.evolve(relationships=[*arch.relationships, rel])


def _replay_remove_relationship(arch: Architecture, patch: Patch) -> Architecture:
    return remove_relationship(arch, patch.target).architecture


def _replay_update_field(arch: Architecture, patch: Patch) -> Architecture:
    if arch.get_node(patch.target) is not None:
        return update_node_field(arch, patch.target, patch.field, patch.value).architecture
    rel = arch.get_relationship(patch.target)
    if rel is None:
        return arch
    updated = Relationship.model_validate(_set_path(rel.to_document(), patch.field, patch.value))
    if _edits_containment(rel, updated, patch.field):
        logger.debug(f"Skipping containment edit to {rel.id!r} in updateField patch")
        return arch
    return arch.evolve(relationships=[updated if r.id == rel.id else r for r in arch.relationships])


def _replay_set_control(arch: Architecture, patch: Patch) -> Architecture:
    return set_control(arch, patch.target, Control.model_validate(patch.value)).architecture


def _replay_remove_control(arch: Architecture, patch: Patch) -> Architecture:
    return remove_control(arch, patch.target).architecture


def _replay_set_capabilities(arch: Architecture, patch: Patch) -> Architecture:
    active = arch.active_decorator()
    keys = list(patch.value or [])
    if active is None and not keys:
        return arch
    active = active or DecoratorMapping()
    mappings = dict(active.mappings)
    if keys:
        mappings[patch.target] = CapabilityEntry(capabilities=keys)
    else:
        mappings.pop(patch.target, None)
    rest = list(arch.decorators[1:]) if arch.decorators else []
    return arch.evolve(decorators=[active.model_copy(update={"mappings": mappings}), *rest])


def _replay_set_interfaces(arch: Architecture, patch: Patch) -> Architecture:
    interfaces = [Interface.model_validate(i) for i in patch.value or []]
    return set_interfaces(arch, patch.target, interfaces).architecture


def _replay_update_composed_of(arch: Architecture, patch: Patch) -> Architecture:
    rel_id = patch.field or _composed_of_id(arch, patch.target)
    relationships = _with_children(arch.relationships, patch.target, rel_id, patch.value)
    return arch.evolve(relationships=relationships, flows=_prune_flows(arch.flows, relationships))


PATCH_HANDLERS: dict[PatchOp, Callable[[Architecture, Patch], Architecture]] = {
    PatchOp.ADD_NODE: _replay_add_node,
    PatchOp.REMOVE_NODE: _replay_remove_node,
    PatchOp.ADD_RELATIONSHIP: _replay_add_relationship,
    PatchOp.REMOVE_RELATIONSHIP: _replay_remove_relationship,
    PatchOp.UPDATE_FIELD: _replay_update_field,
    PatchOp.SET_CONTROL: _replay_set_control,
    PatchOp.REMOVE_CONTROL: _replay_remove_control,
    PatchOp.SET_CAPABILITIES: _replay_set_capabilities,
    PatchOp.SET_INTERFACES: _replay_set_interfaces,
    PatchOp.UPDATE_COMPOSED_OF: _replay_update_composed_of,
}

_missing_handlers = set(PatchOp) - set(PATCH_HANDLERS)
if _missing_handlers:
    raise RuntimeError(f"PatchOp values without a handler: {sorted(op.value for op in _missing_handlers)}")


def apply_patch(arch: Architecture, patch: Patch) -> Architecture:
    return PATCH_HANDLERS[patch.op](arch, patch)


def apply_patches(arch: Architecture, patches: list[Patch]) -> Architecture:
    """Replay a patch batch in order and return the resulting snapshot."""
    for patch in patches:
        arch = apply_patch(arch, patch)
    return arch
