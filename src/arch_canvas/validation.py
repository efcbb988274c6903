"""
Architecture validation - referential integrity of ids.

The mutation engine never produces these problems, but documents edited
by hand or by other tools can contain them.  Schema validation beyond ids
is out of scope.
"""

from dataclasses import dataclass
from enum import Enum

import networkx as nx

from .models import Architecture


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Broken reference, must be fixed
    WARNING = "warning"  # Dangling auxiliary data, should review
    INFO = "info"        # Informational


@dataclass
class ValidationIssue:
    """A single validation issue found in an architecture."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    relationship_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.relationship_id:
            result["relationship_id"] = self.relationship_id
        return result


def validate_architecture(arch: Architecture) -> list[ValidationIssue]:
    """
    Validate an architecture and return a list of issues.

    Checks for:
    - Duplicate node or relationship ids - ERROR
    - Relationship endpoints that are not nodes - ERROR
    - Nodes inside more than one container - ERROR
    - Containment cycles - ERROR
    - Flow transitions over missing relationships - WARNING
    - Capability mappings for missing nodes - WARNING
    - Empty architecture - INFO
    """
    issues: list[ValidationIssue] = []

    if not arch.nodes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Architecture has no nodes"
        ))

    # Duplicate ids
    seen: set[str] = set()
    for node in arch.nodes:
        if node.id in seen:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate node id: {node.id}",
                node_id=node.id
            ))
        seen.add(node.id)
    node_ids = set(seen)
    for rel in arch.relationships:
        if rel.id in seen:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate id: {rel.id}",
                relationship_id=rel.id
            ))
        seen.add(rel.id)

    # Endpoints
    for rel in arch.relationships:
        for endpoint in rel.endpoints():
            if endpoint not in node_ids:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"{rel.kind} relationship references non-existent node: {endpoint}",
                    relationship_id=rel.id
                ))

    # Containment
    parents: dict[str, set[str]] = {}
    for container, child in arch.containment_pairs():
        parents.setdefault(child, set()).add(container)
    for child, containers in parents.items():
        if len(containers) > 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Node is in more than one container: {', '.join(sorted(containers))}",
                node_id=child
            ))
    graph = nx.DiGraph(arch.containment_pairs())
    for cycle in nx.simple_cycles(graph):
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Containment cycle: {' -> '.join(cycle)}",
            node_id=cycle[0]
        ))

    # Flows
    rel_ids = {r.id for r in arch.relationships}
    for flow in arch.flows or []:
        for transition in flow.transitions:
            if transition.relationship_id not in rel_ids:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    message=(
                        f"Flow {flow.id} step {transition.sequence_number} references "
                        f"non-existent relationship: {transition.relationship_id}"
                    ),
                    relationship_id=transition.relationship_id
                ))

    # Capability mappings
    decorator = arch.active_decorator()
    if decorator is not None:
        for node_id in decorator.mappings:
            if node_id not in node_ids:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    message=f"Capability mapping for non-existent node: {node_id}",
                    node_id=node_id
                ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """Counts by severity, plus ``valid`` (no errors)."""
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }
