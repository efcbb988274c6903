"""
Editor settings.

Every tunable number the editor core uses lives in ``EditorSettings``:
default node sizes, container padding, per-diagram layout options, the
fallback grid, the layout timeout and the save debounce.  Settings are a
value passed to whoever needs them; nothing reads a module-level global.

Sources, later ones win:

1. the defaults below
2. an optional YAML file (``load_settings(path)`` or ``ARCH_CANVAS_CONFIG``)
3. ``ARCH_CANVAS_*`` environment variables for the scalar settings

Example YAML::

    theme: light
    layout_timeout: 2.5
    layout:
      logical:
        direction: DOWN
        node_spacing: 60
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, Field

from .themes import ThemePalette, get_theme
from .visual import (
    ACTOR_NODE,
    CONTAINER_NODE,
    DATA_STORE_NODE,
    NETWORK_NODE,
    SERVICE_NODE,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "ARCH_CANVAS_"


class Size(BaseModel):
    width: float
    height: float


class NodeSizes(BaseModel):
    context: Size = Size(width=200, height=80)
    actor: Size = Size(width=120, height=100)
    service: Size = Size(width=180, height=60)
    data_store: Size = Size(width=160, height=70)
    network: Size = Size(width=180, height=60)
    container: Size = Size(width=300, height=200)

    def for_visual_kind(self, visual_kind: str) -> Size:
        return {
            ACTOR_NODE: self.actor,
            SERVICE_NODE: self.service,
            DATA_STORE_NODE: self.data_store,
            NETWORK_NODE: self.network,
            CONTAINER_NODE: self.container,
        }.get(visual_kind, self.context)


class ContainerGeometry(BaseModel):
    """Container padding used by layout, sizing and drop auto-grow."""
    header_height: float = 32
    padding_top: float = 48
    padding_left: float = 32
    padding_right: float = 32
    padding_bottom: float = 28
    content_padding: float = 40
    min_width: float = 400
    min_height: float = 250
    width_per_child: float = 120
    height_per_child: float = 55


class LayoutOptions(BaseModel):
    direction: Literal["DOWN", "RIGHT"] = "DOWN"
    node_spacing: float = 40
    layer_spacing: float = 60


class FallbackGrid(BaseModel):
    columns: int = 4
    column_spacing: float = 250
    row_spacing: float = 150


def _default_layout_options() -> dict[str, LayoutOptions]:
    return {
        "context": LayoutOptions(direction="DOWN", node_spacing=80, layer_spacing=100),
        "logical": LayoutOptions(direction="RIGHT", node_spacing=50, layer_spacing=80),
        "default": LayoutOptions(direction="DOWN", node_spacing=40, layer_spacing=60),
    }


class EditorSettings(BaseModel):
    theme: str = "dark"
    workspace: Path = Path("architecture")
    architecture_file: str = "architecture.json"
    log_level: str = "INFO"
    layout_timeout: float = 5.0
    save_debounce: float = 0.5
    handle_side_limit: int = 3
    node_sizes: NodeSizes = Field(default_factory=NodeSizes)
    container: ContainerGeometry = Field(default_factory=ContainerGeometry)
    layout: dict[str, LayoutOptions] = Field(default_factory=_default_layout_options)
    fallback_grid: FallbackGrid = Field(default_factory=FallbackGrid)

    def layout_options(self, diagram_type: str) -> LayoutOptions:
        if diagram_type in self.layout:
            return self.layout[diagram_type]
        return self.layout.get("default", LayoutOptions())

    def palette(self) -> ThemePalette:
        return get_theme(self.theme)


_ENV_FIELDS = ("theme", "workspace", "architecture_file", "log_level", "layout_timeout", "save_debounce")


def load_settings(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> EditorSettings:
    """Build settings from defaults, an optional YAML file and the environment.

    Raises:
        ValueError: If the YAML file does not hold a mapping
    """
    env = os.environ if environ is None else environ
    data: dict = {}

    config_path = path or (Path(env[f"{ENV_PREFIX}CONFIG"]) if f"{ENV_PREFIX}CONFIG" in env else None)
    if config_path is not None:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Settings file {config_path} must contain a mapping, got {type(loaded).__name__}")
        data.update(loaded)
        logger.debug(f"Loaded settings from {config_path}")

    # Merge per-diagram layout overrides onto the defaults instead of replacing them
    if "layout" in data:
        merged = {k: v.model_dump() for k, v in _default_layout_options().items()}
        for diagram_type, options in (data["layout"] or {}).items():
            merged.setdefault(diagram_type, {}).update(options or {})
        data["layout"] = merged

    for name in _ENV_FIELDS:
        key = f"{ENV_PREFIX}{name.upper()}"
        if key in env:
            data[name] = env[key]

    return EditorSettings.model_validate(data)
