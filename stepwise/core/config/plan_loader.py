"""
Plan loader — reads a plan document (YAML or JSON) into a Plan.

``.json`` files are decoded with json, everything else with
``yaml.safe_load``.
Ingestion errors are reported as PlanLoadError with the document
path and the validation messages; nothing partial is returned.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from stepwise.core.models.plan import Plan

logger = logging.getLogger(__name__)


class PlanLoadError(Exception):
    """Raised when a plan document cannot be ingested."""


def _format_validation(e: ValidationError) -> str:
    lines = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "plan"
        lines.append(f"{loc}: {err['msg']}")
    return "; ".join(lines)


def parse_plan(data: Any, seeds: Mapping[str, str] | None = None) -> Plan:
    """Validate a decoded plan document.

    A bare list is accepted as the step list. ``seeds`` are merged
    over any seeds the document carries.

    Raises:
        PlanLoadError: The document does not describe a valid plan.
    """
    if isinstance(data, list):
        data = {"steps": data}
    if not isinstance(data, dict):
        raise PlanLoadError(f"Expected a mapping with 'steps', got {type(data).__name__}")
    if "steps" not in data:
        raise PlanLoadError("Plan has no 'steps'")

    if seeds:
        data = {**data, "seeds": {**(data.get("seeds") or {}), **seeds}}

    try:
        plan = Plan.model_validate(data)
    except ValidationError as e:
        raise PlanLoadError(f"Invalid plan: {_format_validation(e)}") from e

    logger.debug("Parsed plan with %d steps (%d seeds)", len(plan), len(plan.seeds))
    return plan


def load_plan(path: Path, seeds: Mapping[str, str] | None = None) -> Plan:
    """Load a plan document from disk.

    Raises:
        PlanLoadError: The file is missing, unparsable or invalid.
    """
    if not path.is_file():
        raise PlanLoadError(f"Plan file not found: {path}")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PlanLoadError(f"Cannot read {path}: {e}") from e

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(raw)
        else:
            data = yaml.safe_load(raw)
    except json.JSONDecodeError as e:
        raise PlanLoadError(f"Invalid JSON in {path}: {e}") from e
    except yaml.YAMLError as e:
        raise PlanLoadError(f"Invalid YAML in {path}: {e}") from e

    try:
        return parse_plan(data, seeds)
    except PlanLoadError as e:
        raise PlanLoadError(f"{path}: {e}") from e
