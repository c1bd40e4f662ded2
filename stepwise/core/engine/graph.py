"""
Dependency graph — producer → consumer edges between plan steps.

An edge P → S exists when S consumes a placeholder that P produces.
Seeded names are already resolved and create no edges. The graph is
built once per plan, before anything runs, and rejects plans that
could never finish: a consumed name with no producer, or a cycle.

Cycle detection is Kahn's algorithm; when nodes remain after the
sort, one concrete cycle is recovered from them so the error can name
the steps involved.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from stepwise.core.engine.errors import DependencyCycle, MissingProducer
from stepwise.core.models.plan import Plan


@dataclass
class DependencyGraph:
    """Edges between step indices, plus the name → producers index."""

    plan: Plan
    producer_map: dict[str, list[int]] = field(default_factory=dict)
    upstream_map: dict[int, set[int]] = field(default_factory=dict)
    downstream_map: dict[int, set[int]] = field(default_factory=dict)

    def producers(self, name: str) -> list[int]:
        """Indices of the steps that declare they produce ``name``."""
        return list(self.producer_map.get(name, []))

    def upstream(self, index: int) -> set[int]:
        return set(self.upstream_map.get(index, ()))

    def downstream(self, index: int) -> set[int]:
        return set(self.downstream_map.get(index, ()))

    def dependents_closure(self, index: int) -> set[int]:
        """Every step reachable from ``index`` (not including itself)."""
        seen: set[int] = set()
        queue = deque(self.downstream_map.get(index, ()))
        while queue:
            node = queue.popleft()
            if node in seen:
                continue
            seen.add(node)
            queue.extend(self.downstream_map.get(node, ()))
        seen.discard(index)
        return seen

    def independent(self) -> set[int]:
        """Steps with no edges in either direction."""
        return {
            i for i in self.plan.indices
            if not self.upstream_map.get(i) and not self.downstream_map.get(i)
        }

    def topological_order(self) -> list[int]:
        """A valid execution order; ties broken by step index."""
        order, _ = _kahn(self.plan.indices, self.upstream_map, self.downstream_map)
        return order

    @property
    def edge_count(self) -> int:
        return sum(len(v) for v in self.downstream_map.values())


# ── Construction ─────────────────────────────────────────────────


def _collect(plan: Plan) -> tuple[DependencyGraph, list[tuple[int, str]]]:
    """Build edges and collect (step, name) pairs with no producer."""
    graph = DependencyGraph(plan=plan)
    for step in plan.steps:
        graph.upstream_map[step.index] = set()
        graph.downstream_map[step.index] = set()
        for name in step.produces:
            graph.producer_map.setdefault(name, []).append(step.index)

    missing: list[tuple[int, str]] = []
    for step in plan.steps:
        for name in sorted(step.consumes):
            if name in plan.seeds:
                continue
            producers = graph.producer_map.get(name)
            if not producers:
                missing.append((step.index, name))
                continue
            for p in producers:
                graph.upstream_map[step.index].add(p)
                graph.downstream_map[p].add(step.index)
    return graph, missing


def _kahn(
    nodes: list[int],
    upstream: dict[int, set[int]],
    downstream: dict[int, set[int]],
) -> tuple[list[int], set[int]]:
    """Kahn's algorithm. Returns (sorted nodes, nodes left on cycles)."""
    in_degree = {n: len(upstream.get(n, ())) for n in nodes}
    ready = sorted(n for n, deg in in_degree.items() if deg == 0)
    order: list[int] = []

    while ready:
        node = ready.pop(0)
        order.append(node)
        released = []
        for successor in downstream.get(node, ()):
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                released.append(successor)
        ready = sorted(ready + released)

    residual = set(nodes) - set(order)
    return order, residual


def _extract_cycle(residual: set[int], upstream: dict[int, set[int]]) -> list[int]:
    """Walk residual predecessors until a node repeats.

    Every node left over by Kahn's algorithm has at least one residual
    predecessor, so the walk always closes a loop.
    """
    node = min(residual)
    path: list[int] = []
    position: dict[int, int] = {}
    while node not in position:
        position[node] = len(path)
        path.append(node)
        node = min(p for p in upstream[node] if p in residual)
    cycle = path[position[node]:]
    cycle.reverse()     # predecessor walk → producer-first order
    return cycle


def build_graph(plan: Plan) -> DependencyGraph:
    """Build and validate the dependency graph for ``plan``.

    Raises:
        MissingProducer: A consumed name has no producer and no seed.
        DependencyCycle: The edges form a cycle (self-loops included).
    """
    graph, missing = _collect(plan)
    if missing:
        index, name = missing[0]
        raise MissingProducer(index, name)

    _, residual = _kahn(plan.indices, graph.upstream_map, graph.downstream_map)
    if residual:
        raise DependencyCycle(_extract_cycle(residual, graph.upstream_map))
    return graph


def validate_plan(plan: Plan) -> list[str]:
    """Collect every structural problem in ``plan`` without raising.

    Returns:
        List of error strings (empty = valid).
    """
    graph, missing = _collect(plan)
    errors = [str(MissingProducer(index, name)) for index, name in missing]

    _, residual = _kahn(plan.indices, graph.upstream_map, graph.downstream_map)
    if residual:
        errors.append(str(DependencyCycle(_extract_cycle(residual, graph.upstream_map))))
    return errors
