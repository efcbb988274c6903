"""
Pytest configuration and fixtures for arch-canvas tests.

This module provides:
- A small logical architecture (container, child, orphan, actor)
- Settings tuned so async tests run quickly
- Helpers to build visual nodes and edges
"""

import pytest

from arch_canvas.config import EditorSettings
from arch_canvas.models import Architecture
from arch_canvas.visual import CONTAINER_NODE, SERVICE_NODE, VisualEdge, VisualNode


# ============================================================
# ARCHITECTURE FIXTURES
# ============================================================

SAMPLE_DOCUMENT = {
    "$schema": "https://calm.finos.org/release/1.0/meta/calm.json",
    "nodes": [
        {"unique-id": "customer", "node-type": "actor", "name": "Customer", "description": "Places orders"},
        {"unique-id": "shop", "node-type": "system", "name": "Shop", "description": "Online shop"},
        {"unique-id": "api", "node-type": "service", "name": "API", "description": "Order API"},
        {"unique-id": "web", "node-type": "service", "name": "Web", "description": "Storefront"},
        {"unique-id": "db", "node-type": "database", "name": "Orders DB"},
        {"unique-id": "mailer", "node-type": "service", "name": "Mailer"},
    ],
    "relationships": [
        {
            "unique-id": "rel-customer-shop",
            "description": "Uses",
            "relationship-type": {"interacts": {"actor": "customer", "nodes": ["shop", "web"]}},
        },
        {
            "unique-id": "rel-shop-contains",
            "relationship-type": {"composed-of": {"container": "shop", "nodes": ["api", "web"]}},
        },
        {
            "unique-id": "rel-web-api",
            "description": "Calls",
            "relationship-type": {"connects": {"source": {"node": "web"}, "destination": {"node": "api"}}},
        },
        {
            "unique-id": "rel-api-db",
            "protocol": "JDBC",
            "relationship-type": {"connects": {"source": {"node": "api"}, "destination": {"node": "db"}}},
        },
    ],
    "flows": [
        {
            "unique-id": "flow-order",
            "name": "Place order",
            "transitions": [
                {"relationship-unique-id": "rel-web-api", "sequence-number": 1, "summary": "submit"},
                {"relationship-unique-id": "rel-api-db", "sequence-number": 2, "summary": "store"},
            ],
        }
    ],
    "decorators": [
        {"$ref": "decorators/capability-model.json", "mappings": {"api": {"capabilities": ["sales/orders"]}}}
    ],
    "metadata": {"owner": "team-orders"},
}


@pytest.fixture
def sample_document():
    """A fresh copy of the sample architecture document."""
    import copy
    return copy.deepcopy(SAMPLE_DOCUMENT)


@pytest.fixture
def arch(sample_document):
    """The sample architecture as a model snapshot."""
    return Architecture.model_validate(sample_document)


@pytest.fixture
def empty_arch():
    return Architecture()


# ============================================================
# SETTINGS FIXTURES
# ============================================================

@pytest.fixture
def settings():
    """Editor settings with a short debounce for async tests."""
    return EditorSettings(save_debounce=0.05, layout_timeout=2.0)


# ============================================================
# VISUAL HELPERS
# ============================================================

def make_node(node_id, x=0.0, y=0.0, width=100.0, height=50.0, parent_id=None, container=False):
    """Build a visual node; absolute coordinates start equal to x/y."""
    return VisualNode(
        id=node_id,
        type=CONTAINER_NODE if container else SERVICE_NODE,
        x=x,
        y=y,
        width=width,
        height=height,
        parent_id=parent_id,
        abs_x=x,
        abs_y=y,
    )


def make_edge(source, target, edge_id=None):
    return VisualEdge(id=edge_id or f"{source}->{target}", source=source, target=target)
