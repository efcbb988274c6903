"""
Tests for the capability model summary.
"""

import json

import pytest

from arch_canvas.capabilities import (
    CapabilityModel,
    build_capability_summary,
    capability_index,
    flatten_definitions,
    load_capability_model,
)
from arch_canvas.mutations import set_capabilities

MODEL = {
    "name": "Retail",
    "model-type": "industry",
    "definitions": {
        "sales": {
            "level": "L1",
            "name": "Sales",
            "children": {
                "orders": {
                    "level": "L2",
                    "name": "Orders",
                    "children": {"returns": {"level": "L3", "name": "Returns"}},
                },
                "storefront": {"level": "L2", "name": "Storefront"},
            },
        },
        "operations": {"level": "L1", "name": "Operations", "description": "Run the business"},
    },
}


@pytest.fixture
def model():
    return CapabilityModel.model_validate(MODEL)


class TestFlatten:

    def test_slash_separated_keys(self, model):
        nodes = flatten_definitions(model.definitions)
        assert list(nodes) == [
            "sales", "sales/orders", "sales/orders/returns", "sales/storefront", "operations",
        ]

    def test_parent_and_children(self, model):
        nodes = flatten_definitions(model.definitions)
        assert nodes["sales"].child_keys == ["sales/orders", "sales/storefront"]
        assert nodes["sales/orders/returns"].parent_key == "sales/orders"
        assert nodes["operations"].parent_key is None


class TestSummary:

    def test_counts_cover_subtrees(self, model, arch):
        arch = set_capabilities(arch, "web", ["sales/storefront", "sales/orders/returns"]).architecture
        summary = build_capability_summary(model, arch)
        counts = {k: n.node_count for k, n in summary.all_nodes.items()}
        assert counts == {
            "sales": 2,
            "sales/orders": 2,
            "sales/orders/returns": 1,
            "sales/storefront": 1,
            "operations": 0,
        }

    def test_l1_capabilities(self, model, arch):
        summary = build_capability_summary(model, arch)
        assert [n.key for n in summary.l1_capabilities] == ["sales", "operations"]
        assert summary.model_type == "industry"

    def test_to_dict_uses_panel_keys(self, model, arch):
        node = build_capability_summary(model, arch).all_nodes["sales"]
        assert node.to_dict() == {
            "key": "sales",
            "level": "L1",
            "name": "Sales",
            "description": "",
            "childKeys": ["sales/orders", "sales/storefront"],
            "parentKey": None,
            "childCount": 2,
            "nodeCount": 1,
        }

    def test_index_without_decorator(self, empty_arch):
        assert capability_index(empty_arch) == {}


class TestLoad:

    def test_load(self, tmp_path):
        path = tmp_path / "capability-model.json"
        path.write_text(json.dumps(MODEL), encoding="utf-8")
        assert load_capability_model(path).name == "Retail"

    def test_missing(self, tmp_path):
        assert load_capability_model(tmp_path / "nope.json") is None

    def test_malformed(self, tmp_path):
        path = tmp_path / "capability-model.json"
        path.write_text('{"definitions": 3}', encoding="utf-8")
        assert load_capability_model(path) is None
