"""Arch-canvas MCP server: tools that edit an architecture document on disk."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .capabilities import build_capability_summary, load_capability_model
from .config import EditorSettings, load_settings
from .controller import DiagramController
from .models import DEFAULT_DECORATOR_REF, NODE_KINDS, Architecture
from .mutations import (
    MutationResult,
    add_node,
    add_node_to_container,
    add_relationship,
    create_default_node,
    create_default_relationship,
    remove_node,
    remove_node_from_any_container,
    remove_relationship,
    set_capabilities,
    update_node_field,
)
from .persistence import ArchitectureFile, LayoutStore
from .validation import validate_architecture, validation_summary

logger = logging.getLogger(__name__)

DIAGRAM_TYPES = ["context", "logical"]

server = Server("arch-canvas")


class Workspace:
    """The architecture file and layout files the tools operate on."""

    def __init__(self, settings: EditorSettings):
        self.settings = settings
        self.root = Path(settings.workspace)
        self.architecture = ArchitectureFile(self.root / settings.architecture_file)
        self.layouts = LayoutStore(self.root)

    def load(self) -> Architecture:
        return self.architecture.load()

    def commit(self, result: MutationResult) -> Optional[str]:
        return self.architecture.apply(result.patches)


_workspace: Optional[Workspace] = None


def _get_workspace() -> Workspace:
    global _workspace
    if _workspace is None:
        _workspace = Workspace(load_settings())
    return _workspace


def _result(**payload) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps({"status": "success", **payload}))]


def _error(message: str) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps({"status": "error", "message": message}))]


def _mutation_result(ws: Workspace, result: MutationResult, **payload) -> list[TextContent]:
    written = ws.commit(result)
    return _result(
        patches=[p.to_document() for p in result.patches],
        written=written is not None,
        **payload,
    )


# --- Tool definitions ---

_NODE_ID = {"type": "string", "description": "The node's unique-id."}
_DIAGRAM_TYPE = {
    "type": "string",
    "enum": DIAGRAM_TYPES,
    "description": "Diagram the edit is made from; decides default names and relationship kinds.",
    "default": "logical",
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="get_architecture",
            description=(
                "Return the architecture document (nodes, relationships, flows, "
                "decorators, controls) together with a validation summary."
            ),
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="add_node",
            description=(
                "Add a node with a generated unique-id. Optionally place it inside "
                "a container (a composed-of relationship is created or extended)."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "node_type": {"type": "string", "enum": list(NODE_KINDS)},
                    "name": {"type": "string", "description": "Display name (default depends on node type)."},
                    "description": {"type": "string"},
                    "container_id": {"type": "string", "description": "Container to place the node in."},
                    "diagram_type": _DIAGRAM_TYPE,
                },
                "required": ["node_type"],
            },
        ),
        Tool(
            name="remove_node",
            description=(
                "Remove a node. Relationships it anchors are removed, it is pruned "
                "from interacts and composed-of lists, and flows over removed "
                "relationships are pruned."
            ),
            inputSchema={"type": "object", "properties": {"node_id": _NODE_ID}, "required": ["node_id"]},
        ),
        Tool(
            name="update_node",
            description="Set one node field (dotted paths reach nested keys). A null value clears it.",
            inputSchema={
                "type": "object",
                "properties": {
                    "node_id": _NODE_ID,
                    "field": {"type": "string", "description": "Document key, e.g. 'name' or 'details.required-pattern'."},
                    "value": {"description": "New value; null removes the key."},
                },
                "required": ["node_id", "field"],
            },
        ),
        Tool(
            name="connect",
            description=(
                "Create a relationship between two nodes: 'interacts' when the "
                "source is an actor on a context diagram, 'connects' otherwise."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "source_id": _NODE_ID,
                    "target_id": _NODE_ID,
                    "diagram_type": _DIAGRAM_TYPE,
                },
                "required": ["source_id", "target_id"],
            },
        ),
        Tool(
            name="remove_relationship",
            description="Remove a relationship by id; flows over it are pruned.",
            inputSchema={
                "type": "object",
                "properties": {"relationship_id": {"type": "string"}},
                "required": ["relationship_id"],
            },
        ),
        Tool(
            name="move_to_container",
            description=(
                "Move a node into a container, or out of every container when "
                "container_id is omitted."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "node_id": _NODE_ID,
                    "container_id": {"type": "string"},
                },
                "required": ["node_id"],
            },
        ),
        Tool(
            name="set_capabilities",
            description="Replace a node's capability mapping; an empty list removes it.",
            inputSchema={
                "type": "object",
                "properties": {
                    "node_id": _NODE_ID,
                    "capabilities": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Slash-separated capability keys, e.g. 'operations/claims'.",
                    },
                },
                "required": ["node_id", "capabilities"],
            },
        ),
        Tool(
            name="validate_architecture",
            description="Check ids, relationship endpoints, containment and auxiliary references.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="layout_diagram",
            description=(
                "Lay out a diagram and save its layout file. Saved positions are "
                "kept unless relayout is true. Returns absolute node positions."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "diagram_type": _DIAGRAM_TYPE,
                    "relayout": {
                        "type": "boolean",
                        "description": "Discard saved positions and lay everything out again.",
                        "default": False,
                    },
                },
            },
        ),
        Tool(
            name="capability_summary",
            description="Capability tree with the number of nodes mapped to each capability subtree.",
            inputSchema={
                "type": "object",
                "properties": {
                    "model_path": {
                        "type": "string",
                        "description": f"Capability model file (default: <workspace>/{DEFAULT_DECORATOR_REF}).",
                    },
                },
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    ws = _get_workspace()
    handler = TOOL_HANDLERS.get(name)
    if handler is None:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]
    try:
        return await handler(ws, arguments or {})
    except (OSError, ValueError) as e:
        logger.warning(f"Tool {name} failed: {e}")
        return _error(str(e))


async def _get_architecture(ws: Workspace, args: dict) -> list[TextContent]:
    arch = ws.load()
    return _result(
        architecture=arch.to_document(),
        validation=validation_summary(validate_architecture(arch)),
    )


async def _add_node(ws: Workspace, args: dict) -> list[TextContent]:
    arch = ws.load()
    node_type = args["node_type"]
    if node_type not in NODE_KINDS:
        return _error(f"Unknown node type: {node_type}")

    node = create_default_node(args.get("diagram_type", "logical"), node_type)
    updates = {k: args[k] for k in ("name", "description") if args.get(k) is not None}
    if updates:
        node = node.model_copy(update=updates)

    result = add_node(arch, node)
    container_id = args.get("container_id")
    if container_id:
        if arch.get_node(container_id) is None:
            return _error(f"Container not found: {container_id}")
        contained = add_node_to_container(result.architecture, node.id, container_id)
        result = MutationResult(contained.architecture, result.patches + contained.patches)
    return _mutation_result(ws, result, node_id=node.id)


async def _remove_node(ws: Workspace, args: dict) -> list[TextContent]:
    return _mutation_result(ws, remove_node(ws.load(), args["node_id"]))


async def _update_node(ws: Workspace, args: dict) -> list[TextContent]:
    result = update_node_field(ws.load(), args["node_id"], args["field"], args.get("value"))
    return _mutation_result(ws, result)


async def _connect(ws: Workspace, args: dict) -> list[TextContent]:
    arch = ws.load()
    rel = create_default_relationship(
        args.get("diagram_type", "logical"), args["source_id"], args["target_id"], arch
    )
    result = add_relationship(arch, rel)
    if not result.patches:
        return _error(f"Cannot connect {args['source_id']} to {args['target_id']}")
    return _mutation_result(ws, result, relationship_id=rel.id)


async def _remove_relationship(ws: Workspace, args: dict) -> list[TextContent]:
    return _mutation_result(ws, remove_relationship(ws.load(), args["relationship_id"]))


async def _move_to_container(ws: Workspace, args: dict) -> list[TextContent]:
    arch = ws.load()
    container_id = args.get("container_id")
    if container_id:
        result = add_node_to_container(arch, args["node_id"], container_id)
    else:
        result = remove_node_from_any_container(arch, args["node_id"])
    return _mutation_result(ws, result)


async def _set_capabilities(ws: Workspace, args: dict) -> list[TextContent]:
    result = set_capabilities(ws.load(), args["node_id"], list(args["capabilities"]))
    return _mutation_result(ws, result)


async def _validate(ws: Workspace, args: dict) -> list[TextContent]:
    issues = validate_architecture(ws.load())
    return _result(
        summary=validation_summary(issues),
        issues=[issue.to_dict() for issue in issues],
    )


async def _layout_diagram(ws: Workspace, args: dict) -> list[TextContent]:
    diagram_type = args.get("diagram_type", "logical")
    if diagram_type not in DIAGRAM_TYPES:
        return _error(f"Unknown diagram type: {diagram_type}")

    controller = DiagramController(
        ws.load(),
        diagram_type,
        settings=ws.settings,
        saved_layout=ws.layouts.read(diagram_type),
    )
    await controller.refresh(ignore_saved=args.get("relayout", False))
    layout = controller.snapshot_layout()
    path = ws.layouts.write(layout)

    return _result(
        layout_path=str(path),
        nodes=[
            {
                "id": n.id,
                "type": n.type,
                "x": n.abs_x,
                "y": n.abs_y,
                "width": n.width,
                "height": n.height,
                "parent": n.parent_id,
                "hidden": n.hidden,
            }
            for n in controller.nodes
        ],
        edges=[
            {
                "id": e.id,
                "source": e.source,
                "target": e.target,
                "sourceHandle": e.source_handle,
                "targetHandle": e.target_handle,
            }
            for e in controller.edges
        ],
    )


async def _capability_summary(ws: Workspace, args: dict) -> list[TextContent]:
    model_path = Path(args.get("model_path") or ws.root / DEFAULT_DECORATOR_REF)
    model = load_capability_model(model_path)
    if model is None:
        return _error(f"No capability model at {model_path}")

    summary = build_capability_summary(model, ws.load())
    return _result(
        model=summary.model_name,
        model_type=summary.model_type,
        l1=[n.key for n in summary.l1_capabilities],
        capabilities=[n.to_dict() for n in summary.all_nodes.values()],
    )


TOOL_HANDLERS = {
    "get_architecture": _get_architecture,
    "add_node": _add_node,
    "remove_node": _remove_node,
    "update_node": _update_node,
    "connect": _connect,
    "remove_relationship": _remove_relationship,
    "move_to_container": _move_to_container,
    "set_capabilities": _set_capabilities,
    "validate_architecture": _validate,
    "layout_diagram": _layout_diagram,
    "capability_summary": _capability_summary,
}


def main():
    """Entry point for the MCP server."""
    import asyncio

    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    global _workspace
    _workspace = Workspace(settings)
    logger.info(f"Serving architecture {_workspace.architecture.path}")
    asyncio.run(_run())


async def _run():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    main()
