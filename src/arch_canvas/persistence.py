"""
Persistence: patches into architecture files, layouts into layout files.

``ArchitectureFile`` applies patch batches to a document on disk.  It
writes only when the content actually changes and remembers an md5 hash
of what it wrote, so a file watcher can tell its own writes (echoes) from
external edits.

``LayoutStore`` keeps one ``<diagramType>.layout.json`` per diagram in a
directory.  A missing, unreadable or incompatible layout file reads as
``None`` and the editor starts from an empty layout.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .layout_types import DiagramLayout
from .models import Architecture
from .mutations import Patch, apply_patches
from .parser import dump_file, parse_file

logger = logging.getLogger(__name__)


def content_hash(content: str) -> str:
    return hashlib.md5(content.encode("utf-8")).hexdigest()


class ArchitectureFile:
    """An architecture document on disk that accepts patch batches."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.last_written_hash: Optional[str] = None

    def load(self) -> Architecture:
        return parse_file(self.path)

    def save(self, arch: Architecture) -> str:
        content = dump_file(arch, self.path)
        self.last_written_hash = content_hash(content)
        return self.last_written_hash

    def apply(self, patches: list[Patch]) -> Optional[str]:
        """Apply ``patches`` to the file; returns the new hash or None if unchanged."""
        if not patches:
            return None
        current = self.load()
        updated = apply_patches(current, patches)
        if updated.to_document() == current.to_document():
            logger.debug(f"Patches left {self.path.name} unchanged; not writing")
            return None
        new_hash = self.save(updated)
        logger.info(f"Applied {len(patches)} patches to {self.path.name}")
        return new_hash

    def is_echo(self, content: str) -> bool:
        """True when ``content`` is exactly what this object last wrote."""
        return self.last_written_hash is not None and content_hash(content) == self.last_written_hash


class LayoutStore:
    """Reads and writes ``<diagramType>.layout.json`` files in one directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, diagram_type: str) -> Path:
        return self.directory / f"{diagram_type}.layout.json"

    def read(self, diagram_type: str) -> Optional[DiagramLayout]:
        path = self.path_for(diagram_type)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            layout = DiagramLayout.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable layout {path}: {e}")
            return None
        if not layout.is_compatible():
            logger.warning(f"Ignoring layout {path}: unsupported version {layout.version}")
            return None
        if layout.diagram_type != diagram_type:
            logger.warning(f"Ignoring layout {path}: it describes a {layout.diagram_type} diagram")
            return None
        return layout

    def write(self, layout: DiagramLayout) -> Path:
        path = self.path_for(layout.diagram_type)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(layout.touched().to_document(), indent=2) + "\n", encoding="utf-8")
        logger.debug(f"Saved layout {path}")
        return path
