"""Reference checks over a GfaGraph (the `pgtools validate` command)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pgtools.graph import GfaGraph


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_graph(graph: GfaGraph) -> ValidationReport:
    """Dangling link/path references are errors; segments without sequence are warnings."""
    report = ValidationReport()

    for link in graph.links():
        for name in (link.from_segment, link.to_segment):
            if not graph.has_segment(name):
                report.errors.append(f"Link references undefined segment: {name}")

    for path in graph.paths():
        for step in path.steps:
            if not graph.has_segment(step.segment):
                report.errors.append(f"Path '{path.name}' references undefined segment: {step.segment}")

    for seg in graph.segments():
        if not seg.sequence:
            report.warnings.append(f"Segment '{seg.name}' has empty/placeholder sequence")

    return report
