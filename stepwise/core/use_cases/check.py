"""
Check use case — ingest a plan and validate its dependency graph
without running anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from stepwise.core.config.plan_loader import PlanLoadError, load_plan
from stepwise.core.engine.graph import build_graph, validate_plan
from stepwise.core.models.plan import Plan


@dataclass
class CheckResult:
    """Result of plan validation."""

    valid: bool = False
    plan: Plan | None = None
    errors: list[str] = field(default_factory=list)
    order: list[int] = field(default_factory=list)
    edges: dict[int, list[int]] = field(default_factory=dict)   # step → upstream steps
    tools: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": self.errors,
            "steps": len(self.plan) if self.plan else 0,
            "order": self.order,
            "depends_on": {str(k): v for k, v in self.edges.items()},
            "tools": self.tools,
            "seeds": dict(self.plan.seeds) if self.plan else {},
        }


def check_plan(plan_path: Path, seeds: dict[str, str] | None = None) -> CheckResult:
    """Validate a plan document.

    Returns:
        CheckResult listing every problem found.
    """
    result = CheckResult()

    try:
        plan = load_plan(plan_path, seeds)
    except PlanLoadError as e:
        result.errors.append(str(e))
        return result
    result.plan = plan
    result.tools = sorted({s.declared_tool for s in plan.steps if s.declared_tool})

    result.errors = validate_plan(plan)
    if result.errors:
        return result

    graph = build_graph(plan)
    result.order = graph.topological_order()
    result.edges = {i: sorted(graph.upstream(i)) for i in plan.indices}
    result.valid = True
    return result
