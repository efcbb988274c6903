"""
Tests for the MCP tool handlers, run against a temporary workspace.
"""

import asyncio
import json

import pytest

from arch_canvas import server
from arch_canvas.config import EditorSettings
from arch_canvas.parser import architecture_to_json
from arch_canvas.server import TOOL_HANDLERS, Workspace, list_tools


@pytest.fixture
def workspace(tmp_path, arch):
    ws = Workspace(EditorSettings(workspace=tmp_path, layout_timeout=2.0))
    ws.architecture.path.write_text(architecture_to_json(arch), encoding="utf-8")
    return ws


def call(handler, ws, **args):
    [content] = asyncio.run(handler(ws, args))
    return json.loads(content.text)


class TestToolList:

    def test_every_tool_has_a_handler(self):
        tools = asyncio.run(list_tools())
        assert {t.name for t in tools} == set(TOOL_HANDLERS)

    def test_unknown_tool(self, workspace, monkeypatch):
        monkeypatch.setattr(server, "_workspace", workspace)
        [content] = asyncio.run(server.call_tool("draw_unicorn", {}))
        assert "Unknown tool" in content.text


class TestEditingTools:

    def test_get_architecture(self, workspace):
        result = call(server._get_architecture, workspace)
        assert result["status"] == "success"
        assert len(result["architecture"]["nodes"]) == 6
        assert result["validation"]["valid"]

    def test_add_node_into_container(self, workspace):
        result = call(server._add_node, workspace, node_type="database", name="Cache", container_id="shop")
        assert result["written"]
        assert [p["op"] for p in result["patches"]] == ["addNode", "updateComposedOf"]
        arch = workspace.load()
        assert arch.get_node(result["node_id"]).name == "Cache"
        assert arch.container_of(result["node_id"]) == "shop"

    def test_add_node_unknown_type(self, workspace):
        assert call(server._add_node, workspace, node_type="queue")["status"] == "error"

    def test_add_node_unknown_container(self, workspace):
        result = call(server._add_node, workspace, node_type="service", container_id="ghost")
        assert result["status"] == "error"
        assert len(workspace.load().nodes) == 6

    def test_remove_node(self, workspace):
        result = call(server._remove_node, workspace, node_id="api")
        assert result["patches"][0] == {"op": "removeNode", "target": "api"}
        assert workspace.load().get_node("api") is None

    def test_remove_unknown_node_writes_nothing(self, workspace):
        result = call(server._remove_node, workspace, node_id="ghost")
        assert result["patches"] == []
        assert not result["written"]

    def test_update_node(self, workspace):
        call(server._update_node, workspace, node_id="db", field="data-classification", value="PII")
        assert workspace.load().get_node("db").classification == "PII"

    def test_update_unique_id_is_an_error(self, workspace, monkeypatch):
        monkeypatch.setattr(server, "_workspace", workspace)
        [content] = asyncio.run(server.call_tool(
            "update_node", {"node_id": "db", "field": "unique-id", "value": "x"}
        ))
        assert json.loads(content.text)["status"] == "error"

    def test_connect(self, workspace):
        result = call(server._connect, workspace, source_id="mailer", target_id="db")
        rel = workspace.load().get_relationship(result["relationship_id"])
        assert rel.kind == "connects"

    def test_connect_unknown_node(self, workspace):
        assert call(server._connect, workspace, source_id="mailer", target_id="ghost")["status"] == "error"

    def test_remove_relationship(self, workspace):
        call(server._remove_relationship, workspace, relationship_id="rel-web-api")
        arch = workspace.load()
        assert arch.get_relationship("rel-web-api") is None
        assert [t.relationship_id for t in arch.flows[0].transitions] == ["rel-api-db"]

    def test_move_to_and_out_of_container(self, workspace):
        call(server._move_to_container, workspace, node_id="db", container_id="shop")
        assert workspace.load().container_of("db") == "shop"
        call(server._move_to_container, workspace, node_id="db")
        assert workspace.load().container_of("db") is None

    def test_set_capabilities(self, workspace):
        call(server._set_capabilities, workspace, node_id="web", capabilities=["sales/storefront"])
        assert workspace.load().capabilities_of("web") == ["sales/storefront"]

    def test_validate(self, workspace):
        result = call(server._validate, workspace)
        assert result["summary"]["valid"]
        assert result["issues"] == []


class TestLayoutTool:

    def test_layout_written(self, workspace):
        result = call(server._layout_diagram, workspace, diagram_type="logical")
        assert result["status"] == "success"
        layout = workspace.layouts.read("logical")
        assert set(layout.nodes) == {n["id"] for n in result["nodes"]}
        assert all(entry.is_complete() for entry in layout.nodes.values())

    def test_saved_positions_kept(self, workspace):
        first = call(server._layout_diagram, workspace, diagram_type="context")
        second = call(server._layout_diagram, workspace, diagram_type="context")
        assert first["nodes"] == second["nodes"]

    def test_edges_carry_handles(self, workspace):
        result = call(server._layout_diagram, workspace, diagram_type="logical")
        assert all(e["sourceHandle"].endswith("-src") for e in result["edges"])

    def test_unknown_diagram_type(self, workspace):
        assert call(server._layout_diagram, workspace, diagram_type="physical")["status"] == "error"


class TestCapabilityTool:

    def test_missing_model(self, workspace):
        assert call(server._capability_summary, workspace)["status"] == "error"

    def test_summary(self, workspace, tmp_path):
        model = tmp_path / "decorators" / "capability-model.json"
        model.parent.mkdir()
        model.write_text(json.dumps({
            "name": "Retail",
            "definitions": {
                "sales": {"level": "L1", "name": "Sales", "children": {"orders": {"level": "L2", "name": "Orders"}}},
            },
        }), encoding="utf-8")
        result = call(server._capability_summary, workspace)
        assert result["l1"] == ["sales"]
        counts = {c["key"]: c["nodeCount"] for c in result["capabilities"]}
        assert counts == {"sales": 1, "sales/orders": 1}
