"""
Domain models — Pydantic types for the execution engine.

All models are re-exported here for convenient access:

    from stepwise.core.models import Plan, Step, StepResult, Session
"""

from stepwise.core.models.config import EngineConfig, ToolRecipe
from stepwise.core.models.plan import ActionKind, Plan, Step, scan_placeholders
from stepwise.core.models.result import StepCause, StepResult, StepState, StepStatus
from stepwise.core.models.session import (
    Session,
    SessionOutcome,
    SessionSealedError,
    generate_session_id,
)

__all__ = [
    # plan.py
    "ActionKind",
    # config.py
    "EngineConfig",
    "Plan",
    # session.py
    "Session",
    "SessionOutcome",
    "SessionSealedError",
    "Step",
    # result.py
    "StepCause",
    "StepResult",
    "StepState",
    "StepStatus",
    "ToolRecipe",
    "generate_session_id",
    "scan_placeholders",
]
