"""
Execution engine — graph, registry, executor, scheduler.

    from stepwise.core.engine import PlanScheduler, build_graph
"""

from stepwise.core.engine.errors import DependencyCycle, MissingProducer, PlanError
from stepwise.core.engine.executor import StepExecutor, UnresolvedPlaceholder, substitute
from stepwise.core.engine.graph import DependencyGraph, build_graph, validate_plan
from stepwise.core.engine.registry import PENDING, PlaceholderRegistry, PublishResult
from stepwise.core.engine.scheduler import PlanScheduler

__all__ = [
    "PENDING",
    "DependencyCycle",
    "DependencyGraph",
    "MissingProducer",
    "PlaceholderRegistry",
    "PlanError",
    "PlanScheduler",
    "PublishResult",
    "StepExecutor",
    "UnresolvedPlaceholder",
    "build_graph",
    "substitute",
    "validate_plan",
]
