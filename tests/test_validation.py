"""
Tests for architecture validation.
"""

from arch_canvas.models import Architecture
from arch_canvas.validation import IssueSeverity, validate_architecture, validation_summary


def messages(issues, severity):
    return [i.message for i in issues if i.severity == severity]


class TestValidateArchitecture:

    def test_sample_is_valid(self, arch):
        issues = validate_architecture(arch)
        assert issues == []
        assert validation_summary(issues)["valid"]

    def test_empty_architecture_is_info(self):
        issues = validate_architecture(Architecture())
        assert [i.severity for i in issues] == [IssueSeverity.INFO]

    def test_dangling_endpoint(self, sample_document):
        sample_document["relationships"][2]["relationship-type"]["connects"]["destination"]["node"] = "ghost"
        issues = validate_architecture(Architecture.model_validate(sample_document))
        errors = [i for i in issues if i.severity == IssueSeverity.ERROR]
        assert len(errors) == 1
        assert errors[0].relationship_id == "rel-web-api"
        assert "ghost" in errors[0].message

    def test_duplicate_ids(self, sample_document):
        sample_document["nodes"].append({"unique-id": "api", "node-type": "service", "name": "Again"})
        issues = validate_architecture(Architecture.model_validate(sample_document))
        assert messages(issues, IssueSeverity.ERROR) == ["Duplicate node id: api"]

    def test_node_in_two_containers(self, sample_document):
        sample_document["relationships"].append({
            "unique-id": "rel-mailer-contains",
            "relationship-type": {"composed-of": {"container": "mailer", "nodes": ["api"]}},
        })
        issues = validate_architecture(Architecture.model_validate(sample_document))
        errors = [i for i in issues if i.severity == IssueSeverity.ERROR]
        assert [e.node_id for e in errors] == ["api"]

    def test_containment_cycle(self, sample_document):
        sample_document["relationships"].append({
            "unique-id": "rel-api-contains",
            "relationship-type": {"composed-of": {"container": "api", "nodes": ["shop"]}},
        })
        issues = validate_architecture(Architecture.model_validate(sample_document))
        assert any("Containment cycle" in m for m in messages(issues, IssueSeverity.ERROR))

    def test_dangling_flow_and_mapping_are_warnings(self, sample_document):
        sample_document["flows"][0]["transitions"][0]["relationship-unique-id"] = "rel-gone"
        sample_document["decorators"][0]["mappings"]["ghost"] = {"capabilities": ["x"]}
        issues = validate_architecture(Architecture.model_validate(sample_document))
        summary = validation_summary(issues)
        assert summary == {"total": 2, "errors": 0, "warnings": 2, "info": 0, "valid": True}

    def test_issue_to_dict(self, sample_document):
        sample_document["decorators"][0]["mappings"]["ghost"] = {"capabilities": ["x"]}
        [issue] = validate_architecture(Architecture.model_validate(sample_document))
        assert issue.to_dict() == {
            "type": "warning",
            "message": "Capability mapping for non-existent node: ghost",
            "node_id": "ghost",
        }
