"""Architecture document parser for arch-canvas.

Supports two encodings of the same document:
1. JSON (the canonical on-disk form, ``*.json``)
2. YAML (hand-written architectures, ``*.yaml`` / ``*.yml``)

Both use the hyphenated document keys.  Unknown keys are kept on the
models and written back out unchanged.
"""

from __future__ import annotations
import json
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import Architecture


def _from_data(data: object, source: str) -> Architecture:
    if not data:
        raise ValueError(f"Empty architecture document ({source})")
    if not isinstance(data, dict):
        raise ValueError(f"Architecture document must be an object ({source})")
    try:
        return Architecture.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid architecture document ({source}): {e}") from e


def parse_json(json_str: str) -> Architecture:
    """Parse a JSON string into an Architecture model."""
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e
    return _from_data(data, "json")


def parse_yaml(yaml_str: str) -> Architecture:
    """Parse a YAML string into an Architecture model."""
    try:
        data = yaml.safe_load(yaml_str)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML: {e}") from e
    return _from_data(data, "yaml")


def parse_file(path: str | Path) -> Architecture:
    """Parse an architecture file, picking the format from its suffix."""
    path = Path(path)
    content = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return parse_yaml(content)
    return parse_json(content)


def architecture_to_json(arch: Architecture) -> str:
    """Serialize an Architecture back to its JSON document form."""
    return json.dumps(arch.to_document(), indent=2) + "\n"


def architecture_to_yaml(arch: Architecture) -> str:
    """Serialize an Architecture to YAML."""
    return yaml.dump(arch.to_document(), default_flow_style=False, sort_keys=False)


def dump_file(arch: Architecture, path: str | Path) -> str:
    """Write ``arch`` to ``path`` in the format its suffix names; returns the text."""
    path = Path(path)
    if path.suffix.lower() in (".yaml", ".yml"):
        content = architecture_to_yaml(arch)
    else:
        content = architecture_to_json(arch)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return content
