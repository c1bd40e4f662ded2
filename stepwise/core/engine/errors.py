"""
Plan-level errors.

These are raised before anything is spawned. Step-level problems are
never raised; they become StepResult causes.
"""

from __future__ import annotations


class PlanError(Exception):
    """A plan cannot be executed as given."""


class MissingProducer(PlanError):
    """A step consumes a placeholder that nothing produces or seeds."""

    def __init__(self, index: int, name: str):
        self.index = index
        self.name = name
        super().__init__(
            f"step {index} consumes '{{{name}}}' but no step produces it and no seed provides it"
        )


class DependencyCycle(PlanError):
    """The producer → consumer graph contains a cycle."""

    def __init__(self, indices: list[int]):
        self.indices = list(indices)
        path = " → ".join(str(i) for i in [*self.indices, self.indices[0]]) if self.indices else "?"
        super().__init__(f"dependency cycle between steps: {path}")
