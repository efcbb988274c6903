"""
Tests for architecture files, layout files and document parsing.
"""

import json

import pytest

from arch_canvas.layout_types import LAYOUT_VERSION, DiagramLayout, NodeLayout, create_empty_layout
from arch_canvas.models import ArchNode
from arch_canvas.mutations import Patch, PatchOp, add_node, remove_node
from arch_canvas.parser import (
    architecture_to_json,
    architecture_to_yaml,
    parse_file,
    parse_json,
    parse_yaml,
)
from arch_canvas.persistence import ArchitectureFile, LayoutStore, content_hash


# ============================================================
# PARSER
# ============================================================

class TestParser:

    def test_json_round_trip_keeps_document(self, arch, sample_document):
        assert json.loads(architecture_to_json(arch)) == sample_document

    def test_yaml_matches_json(self, arch):
        assert parse_yaml(architecture_to_yaml(arch)).to_document() == arch.to_document()

    def test_yaml_keeps_key_order(self, arch):
        text = architecture_to_yaml(arch)
        assert text.index("nodes:") < text.index("relationships:")

    @pytest.mark.parametrize("text", ["", "[1, 2]", "{not json"])
    def test_bad_json(self, text):
        with pytest.raises(ValueError):
            parse_json(text)

    def test_bad_yaml(self):
        with pytest.raises(ValueError):
            parse_yaml("nodes: [unclosed")

    def test_invalid_document(self):
        with pytest.raises(ValueError, match="Invalid architecture document"):
            parse_json('{"nodes": [{"unique-id": "x"}]}')

    def test_parse_file_by_suffix(self, tmp_path, arch):
        path = tmp_path / "arch.yaml"
        path.write_text(architecture_to_yaml(arch), encoding="utf-8")
        assert parse_file(path).to_document() == arch.to_document()


# ============================================================
# ARCHITECTURE FILE
# ============================================================

@pytest.fixture
def arch_file(tmp_path, arch):
    f = ArchitectureFile(tmp_path / "architecture" / "architecture.json")
    f.save(arch)
    return f


class TestArchitectureFile:

    def test_apply_patches(self, arch_file, arch):
        result = remove_node(arch, "db")
        new_hash = arch_file.apply(result.patches)
        assert new_hash is not None
        assert arch_file.load().to_document() == result.architecture.to_document()

    def test_noop_batch_not_written(self, arch_file, arch):
        before = arch_file.path.stat().st_mtime_ns
        assert arch_file.apply([]) is None
        stale = [Patch(op=PatchOp.REMOVE_RELATIONSHIP, target="ghost")]
        assert arch_file.apply(stale) is None
        assert arch_file.path.stat().st_mtime_ns == before

    def test_echo_detection(self, arch_file, arch):
        result = add_node(arch, ArchNode(id="cache", kind="database", name="Cache"))
        arch_file.apply(result.patches)
        content = arch_file.path.read_text(encoding="utf-8")
        assert arch_file.is_echo(content)
        assert not arch_file.is_echo(content + " ")
        assert arch_file.last_written_hash == content_hash(content)

    def test_yaml_file(self, tmp_path, arch):
        f = ArchitectureFile(tmp_path / "arch.yml")
        f.save(arch)
        assert f.path.read_text(encoding="utf-8").startswith("$schema:")
        assert f.load().to_document() == arch.to_document()


# ============================================================
# LAYOUT STORE
# ============================================================

class TestLayoutStore:

    def test_write_then_read(self, tmp_path):
        store = LayoutStore(tmp_path)
        layout = create_empty_layout("logical")
        layout.nodes["api"] = NodeLayout(x=1.5, y=2, width=180, height=60)
        path = store.write(layout)

        assert path.name == "logical.layout.json"
        doc = json.loads(path.read_text(encoding="utf-8"))
        assert doc["diagramType"] == "logical"
        assert doc["version"] == LAYOUT_VERSION
        read = store.read("logical")
        assert read.nodes["api"] == layout.nodes["api"]

    def test_missing_file(self, tmp_path):
        assert LayoutStore(tmp_path).read("context") is None

    def test_unreadable_file(self, tmp_path):
        (tmp_path / "context.layout.json").write_text("{oops", encoding="utf-8")
        assert LayoutStore(tmp_path).read("context") is None

    def test_incompatible_version(self, tmp_path):
        doc = create_empty_layout("context").to_document()
        doc["version"] = "2.0"
        (tmp_path / "context.layout.json").write_text(json.dumps(doc), encoding="utf-8")
        assert LayoutStore(tmp_path).read("context") is None

    def test_minor_version_accepted(self, tmp_path):
        doc = create_empty_layout("context").to_document()
        doc["version"] = "1.3"
        (tmp_path / "context.layout.json").write_text(json.dumps(doc), encoding="utf-8")
        assert LayoutStore(tmp_path).read("context") is not None

    def test_wrong_diagram_type(self, tmp_path):
        doc = create_empty_layout("logical").to_document()
        (tmp_path / "context.layout.json").write_text(json.dumps(doc), encoding="utf-8")
        assert LayoutStore(tmp_path).read("context") is None


class TestLayoutEntries:

    def test_malformed_entries_are_unpinned(self):
        layout = DiagramLayout.model_validate({
            "diagramType": "logical",
            "nodes": {
                "good": {"x": 1, "y": 2, "width": 3, "height": 4},
                "text": {"x": "12", "y": "oops", "width": 3, "height": 4},
                "negative": {"x": 0, "y": 0, "width": -5, "height": 4},
                "junk": 42,
            },
        })
        assert set(layout.pinned()) == {"good"}
        assert layout.nodes["text"].x == 12
        assert layout.nodes["text"].y is None

    def test_unknown_keys_kept(self):
        layout = DiagramLayout.model_validate({"diagramType": "context", "theme": "dark"})
        assert layout.to_document()["theme"] == "dark"

    def test_touched_updates_timestamp(self):
        layout = DiagramLayout(diagram_type="context", last_modified="2000-01-01T00:00:00Z")
        assert layout.touched().last_modified != "2000-01-01T00:00:00Z"
