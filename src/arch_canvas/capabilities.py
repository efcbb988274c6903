"""
Capability model summary for the capability side panel.

A capability model is a tree of business capabilities (levels L1 to L3)
kept in its own JSON file.  Nodes of an architecture are mapped to
capability keys through the active decorator.  This module flattens the
tree into slash-separated keys and counts, per capability, how many
architecture nodes are mapped to it or to anything beneath it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import Architecture

logger = logging.getLogger(__name__)


class CapabilityDefinition(BaseModel):
    level: str
    name: str
    description: str = ""
    children: dict[str, CapabilityDefinition] = Field(default_factory=dict)


class CapabilityModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    model_type: str = Field(default="custom", alias="model-type")
    definitions: dict[str, CapabilityDefinition] = Field(default_factory=dict)


@dataclass
class CapabilityNode:
    key: str
    level: str
    name: str
    description: str
    child_keys: list[str] = field(default_factory=list)
    parent_key: Optional[str] = None
    node_count: int = 0

    @property
    def child_count(self) -> int:
        return len(self.child_keys)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "level": self.level,
            "name": self.name,
            "description": self.description,
            "childKeys": self.child_keys,
            "parentKey": self.parent_key,
            "childCount": self.child_count,
            "nodeCount": self.node_count,
        }


@dataclass
class CapabilitySummary:
    model_name: str
    model_type: str
    l1_capabilities: list[CapabilityNode]
    all_nodes: dict[str, CapabilityNode]
    capability_to_nodes: dict[str, list[str]]


def flatten_definitions(
    definitions: dict[str, CapabilityDefinition],
    parent_key: Optional[str] = None,
) -> dict[str, CapabilityNode]:
    """Flatten the tree; keys look like ``operations/claims/adjudication``."""
    result: dict[str, CapabilityNode] = {}
    for cap_id, definition in definitions.items():
        key = f"{parent_key}/{cap_id}" if parent_key else cap_id
        result[key] = CapabilityNode(
            key=key,
            level=definition.level,
            name=definition.name,
            description=definition.description,
            child_keys=[f"{key}/{child_id}" for child_id in definition.children],
            parent_key=parent_key,
        )
        result.update(flatten_definitions(definition.children, key))
    return result


def capability_index(arch: Architecture) -> dict[str, list[str]]:
    """capability key -> node ids mapped to it in the active decorator."""
    index: dict[str, list[str]] = {}
    decorator = arch.active_decorator()
    if decorator is None:
        return index
    for node_id, entry in decorator.mappings.items():
        for key in entry.capabilities:
            nodes = index.setdefault(key, [])
            if node_id not in nodes:
                nodes.append(node_id)
    return index


def build_capability_summary(model: CapabilityModel, arch: Architecture) -> CapabilitySummary:
    all_nodes = flatten_definitions(model.definitions)
    index = capability_index(arch)

    # Count mapped nodes in each subtree
    for key, node in all_nodes.items():
        mapped: set[str] = set()
        for cap_key, node_ids in index.items():
            if cap_key == key or cap_key.startswith(key + "/"):
                mapped.update(node_ids)
        node.node_count = len(mapped)

    return CapabilitySummary(
        model_name=model.name,
        model_type=model.model_type,
        l1_capabilities=[n for n in all_nodes.values() if n.level == "L1"],
        all_nodes=all_nodes,
        capability_to_nodes=index,
    )


def load_capability_model(path: str | Path) -> Optional[CapabilityModel]:
    path = Path(path)
    if not path.exists():
        return None
    try:
        return CapabilityModel.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Ignoring capability model {path}: {e}")
        return None
