"""
Plan and Step models — the ingestion contract.

A plan arrives from an external generator as an ordered list of steps.
Ingestion is strict: the action kind is a closed set, placeholder
references are derived from the command template, and only discovery
steps may declare the placeholders they produce.

A validated Plan is frozen. Dependency analysis never sees a plan that
can still change underneath it.
"""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

PLACEHOLDER_RE = re.compile(r"\{([A-Za-z0-9_]+)\}")


def scan_placeholders(template: str) -> frozenset[str]:
    """Return every placeholder name referenced in a command template."""
    return frozenset(PLACEHOLDER_RE.findall(template))


class ActionKind(StrEnum):
    """What a step does. Closed: unknown kinds fail validation."""

    SHELL_COMMAND = "shell_command"
    TOOL_INVOCATION = "tool_invocation"
    DISCOVERY = "discovery"


# Vocabulary used by plan generators → canonical field names
_FIELD_ALIASES: dict[str, str] = {
    "step": "index",
    "action_type": "action_kind",
    "command": "command_template",
    "tool": "declared_tool",
}

_KIND_ALIASES: dict[str, str] = {
    "command": "shell_command",
    "shell": "shell_command",
    "tool": "tool_invocation",
}


class Step(BaseModel):
    """One unit of planned work.

    ``consumes`` is always derived from ``command_template``; names the
    document lists explicitly are added to the derived set.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    index: int = Field(ge=0)
    action_kind: ActionKind
    command_template: str
    declared_tool: str | None = None
    produces: frozenset[str] = frozenset()
    consumes: frozenset[str] = frozenset()
    extract: dict[str, str] = Field(default_factory=dict)   # name → regex with one group
    timeout: float | None = Field(default=None, gt=0)
    purpose: str = ""

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for alias, name in _FIELD_ALIASES.items():
            if alias in data and name not in data:
                data[name] = data.pop(alias)
        for name in ("produces", "consumes"):
            if isinstance(data.get(name), str):
                data[name] = [data[name]]

        template = data.get("command_template")
        if isinstance(template, str):
            declared = data.get("consumes") or ()
            data["consumes"] = scan_placeholders(template) | frozenset(declared)
        return data

    @field_validator("action_kind", mode="before")
    @classmethod
    def _kind_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return _KIND_ALIASES.get(lowered, lowered)
        return value

    @field_validator("declared_tool", mode="before")
    @classmethod
    def _blank_tool(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @model_validator(mode="after")
    def _check_contract(self) -> Step:
        if not self.command_template.strip():
            raise ValueError(f"step {self.index}: command_template is empty")

        if self.produces and self.action_kind != ActionKind.DISCOVERY:
            raise ValueError(
                f"step {self.index}: only discovery steps may declare 'produces' "
                f"(got action_kind={self.action_kind.value})"
            )

        for name, pattern in self.extract.items():
            if name not in self.produces:
                raise ValueError(
                    f"step {self.index}: extract pattern for '{name}' "
                    "which the step does not produce"
                )
            try:
                compiled = re.compile(pattern)
            except re.error as e:
                raise ValueError(f"step {self.index}: invalid extract pattern for '{name}': {e}") from e
            if compiled.groups < 1:
                raise ValueError(
                    f"step {self.index}: extract pattern for '{name}' needs a capture group"
                )
        return self

    @field_serializer("produces", "consumes")
    def _sorted(self, names: frozenset[str]) -> list[str]:
        return sorted(names)

    @property
    def is_discovery(self) -> bool:
        return self.action_kind == ActionKind.DISCOVERY


class Plan(BaseModel):
    """An ordered, immutable sequence of steps.

    ``seeds`` are placeholder values known before execution starts
    (e.g. a target address taken from the user's request). They are
    published into the registry up front and satisfy consumers without
    a producing step.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    explanation: str = ""
    steps: tuple[Step, ...] = ()
    seeds: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _assign_indices(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        raw_steps = data.get("steps")
        if not isinstance(raw_steps, list | tuple):
            return data
        steps = []
        for position, raw in enumerate(raw_steps):
            if isinstance(raw, dict) and "index" not in raw and "step" not in raw:
                raw = {**raw, "index": position}
            steps.append(raw)
        return {**data, "steps": steps}

    @model_validator(mode="after")
    def _unique_indices(self) -> Plan:
        seen: set[int] = set()
        for step in self.steps:
            if step.index in seen:
                raise ValueError(f"duplicate step index: {step.index}")
            seen.add(step.index)
        return self

    @property
    def indices(self) -> list[int]:
        return [s.index for s in self.steps]

    def step(self, index: int) -> Step:
        """Look up a step by its stable index."""
        for s in self.steps:
            if s.index == index:
                return s
        raise KeyError(index)

    def __len__(self) -> int:
        return len(self.steps)
