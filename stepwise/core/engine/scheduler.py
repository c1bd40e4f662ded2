"""
Plan scheduler — drives a validated plan to a sealed session.

Per-step lifecycle::

    pending → waiting_on_tool → waiting_on_placeholders → running
            → success | failed | timed_out | skipped

Flow:
    build graph (reject bad plans) → resolve tools on the pool
    → release steps whose placeholders are all published → run on the pool
    → publish discovered values → release / skip dependents → seal

Design:
    - A single coordinator (the calling thread) owns every piece of
      step state. Workers only run tool resolution and step execution
      and hand their results back through futures.
    - Values are published by the coordinator before any dependent is
      released, so a consumer never observes a half-published producer.
    - Steps with no edges between them run concurrently, bounded only
      by ``max_workers``.
    - Cancellation is a threading.Event on the context: running
      processes are killed by the executor, everything not yet running
      is skipped with PlanCancelled.
"""

from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from stepwise.core.context import SessionContext
from stepwise.core.engine.executor import StepExecutor
from stepwise.core.engine.graph import DependencyGraph, build_graph
from stepwise.core.engine.registry import PlaceholderRegistry, PublishResult
from stepwise.core.models.plan import Plan, Step
from stepwise.core.models.result import StepCause, StepResult, StepState, StepStatus
from stepwise.core.models.session import Session, SessionOutcome, generate_session_id
from stepwise.core.services.extractors import extract_values
from stepwise.core.services.tool_install.resolver.tool_resolver import ToolCheck

logger = logging.getLogger(__name__)

# Seconds the coordinator waits on futures before re-checking cancellation
COORDINATOR_TICK = 0.1

_TOOL = "tool"
_RUN = "run"


class PlanScheduler:
    """Execute plans within one SessionContext.

    Args:
        context: Settings and collaborators for the session.
        executor: Step executor (default: one sized from the config).
    """

    def __init__(self, context: SessionContext, executor: StepExecutor | None = None):
        self.context = context
        self.executor = executor or StepExecutor(context.config.max_output_bytes)

    def run(self, plan: Plan) -> Session:
        """Execute ``plan`` and return the sealed session.

        Raises:
            MissingProducer, DependencyCycle: The plan was rejected
                before anything ran.
        """
        graph = build_graph(plan)
        logger.debug(
            "Plan accepted: %d steps, %d edges, %d independent",
            len(plan), graph.edge_count, len(graph.independent()),
        )
        return _PlanRun(self.context, self.executor, plan, graph).run()


class _PlanRun:
    """State of one execution. Used once, by the coordinator thread only."""

    def __init__(
        self,
        context: SessionContext,
        executor: StepExecutor,
        plan: Plan,
        graph: DependencyGraph,
    ):
        self.context = context
        self.executor = executor
        self.plan = plan
        self.graph = graph
        self.registry = PlaceholderRegistry(plan.seeds)
        self.session = Session(
            session_id=context.session_id or generate_session_id(),
            plan=plan,
            platform=context.platform.value,
        )
        self.states: dict[int, StepState] = {i: StepState.PENDING for i in plan.indices}
        self.in_flight: dict[Future, tuple[str, int]] = {}
        self.cancelling = False
        self._pool: ThreadPoolExecutor | None = None

    # ── Top level ───────────────────────────────────────────────

    def run(self) -> Session:
        bus = self.context.bus
        bus.publish("plan:started", data={
            "session_id": self.session.session_id,
            "steps": len(self.plan),
            "explanation": self.plan.explanation,
        })
        logger.info("Session %s: running %d steps", self.session.session_id, len(self.plan))

        try:
            with ThreadPoolExecutor(
                max_workers=self.context.config.max_workers,
                thread_name_prefix="stepwise",
            ) as pool:
                self._pool = pool
                try:
                    for step in self.plan.steps:
                        self._admit(step)
                    self._loop()
                except BaseException:
                    # Make sure running processes die before the pool joins them
                    self.context.cancel.set()
                    raise
        finally:
            self._seal()

        if self.context.recorder is not None:
            self.context.recorder.record(self.session)
        return self.session

    def _loop(self) -> None:
        while True:
            if self.context.cancel.is_set() and not self.cancelling:
                self._begin_cancel()

            if not self.in_flight:
                break

            done, _ = wait(list(self.in_flight), timeout=COORDINATOR_TICK, return_when=FIRST_COMPLETED)
            for future in done:
                kind, index = self.in_flight.pop(future)
                if future.cancelled():
                    continue
                if kind == _TOOL:
                    self._on_tool_done(index, future)
                else:
                    self._on_run_done(index, future)

        for index, state in self.states.items():
            if not state.terminal:
                logger.error("Step %d left in state %s with nothing in flight", index, state.value)
                self._record(StepResult.failure(
                    index,
                    StepCause.INTERNAL_ORDERING_ERROR,
                    detail=f"step stalled in state {state.value}",
                    command=self.plan.step(index).command_template,
                ))

    def _seal(self) -> None:
        for index, state in self.states.items():
            if not state.terminal:
                self._record(StepResult.failure(
                    index,
                    StepCause.INTERNAL_ORDERING_ERROR,
                    detail="engine stopped before the step finished",
                    command=self.plan.step(index).command_template,
                ))

        outcome = SessionOutcome.CANCELLED if self.cancelling else SessionOutcome.COMPLETED
        self.session.seal(dict(self.registry.snapshot()), outcome)

        marker = "✓" if self.session.status == "ok" else "✗" if self.session.status == "failed" else "⊘"
        logger.info(
            "%s Session %s %s: %d ok, %d failed, %d skipped, %d timed out",
            marker, self.session.session_id, outcome.value,
            self.session.succeeded, self.session.failed,
            self.session.skipped, self.session.timed_out,
        )
        self.context.bus.publish("plan:completed", data=self.session.summary())

    # ── Transitions ─────────────────────────────────────────────

    def _transition(self, index: int, state: StepState, result: StepResult | None = None) -> None:
        self.states[index] = state
        data: dict = {"index": index, "state": state.value}
        if result is not None:
            data["cause"] = result.cause.value if result.cause else None
            data["detail"] = result.detail
            data["exit_code"] = result.exit_code
            data["duration_ms"] = result.duration_ms
        self.context.bus.publish("step:state", key=str(index), data=data)

    def _record(self, result: StepResult) -> None:
        """Make a step terminal. The only place results enter the session."""
        self.session.append(result)
        self._transition(result.index, StepState(result.status.value), result)
        logger.info(
            "%s step %d → %s%s",
            result.marker, result.index, result.status.value,
            f" ({result.cause.value})" if result.cause else "",
        )

    def _admit(self, step: Step) -> None:
        if step.declared_tool:
            self._transition(step.index, StepState.WAITING_ON_TOOL)
            future = self._pool.submit(self.context.tools.ensure, step.declared_tool)
            self.in_flight[future] = (_TOOL, step.index)
        else:
            self._transition(step.index, StepState.WAITING_ON_PLACEHOLDERS)
            self._try_release(step)

    def _unobtainable(self, name: str) -> bool:
        """No value yet and no producer left that could still publish one."""
        if name in self.registry:
            return False
        return all(self.states[p].terminal for p in self.graph.producers(name))

    def _try_release(self, step: Step) -> None:
        if self.cancelling or self.states[step.index] != StepState.WAITING_ON_PLACEHOLDERS:
            return

        missing = self.registry.missing(step.consumes)
        if missing:
            blocked = sorted(n for n in missing if self._unobtainable(n))
            if blocked:
                self._skip_unresolved(step, blocked)
                self._settle(step.index)
            return

        values = self.registry.values_for(step.consumes)
        timeout = step.timeout or self.context.config.default_timeout
        self._transition(step.index, StepState.RUNNING)
        future = self._pool.submit(
            self.executor.execute, step, values, timeout, self.context.cancel,
        )
        self.in_flight[future] = (_RUN, step.index)

    def _skip_unresolved(self, step: Step, names: list[str]) -> None:
        cause = StepCause.PLAN_CANCELLED if self.cancelling else StepCause.UNRESOLVED_DEPENDENCY
        self._record(StepResult.skip(
            step.index,
            cause,
            detail="no value for " + ", ".join(f"{{{n}}}" for n in names),
            command=step.command_template,
        ))

    def _settle(self, index: int) -> None:
        """Re-examine everything downstream of a step that just finished."""
        queue = deque(sorted(self.graph.downstream(index)))
        while queue:
            dependent = queue.popleft()
            state = self.states[dependent]
            if state.terminal or state == StepState.RUNNING:
                continue
            step = self.plan.step(dependent)
            blocked = sorted(
                n for n in self.registry.missing(step.consumes) if self._unobtainable(n)
            )
            if blocked:
                self._skip_unresolved(step, blocked)
                queue.extend(sorted(self.graph.downstream(dependent)))
            elif state == StepState.WAITING_ON_PLACEHOLDERS:
                self._try_release(step)

    # ── Completions ─────────────────────────────────────────────

    def _on_tool_done(self, index: int, future: Future) -> None:
        if self.states[index].terminal:
            return
        step = self.plan.step(index)
        try:
            check: ToolCheck = future.result()
        except Exception as e:
            logger.exception("Tool resolution for step %d raised", index)
            self._record(StepResult.failure(
                index, StepCause.TOOL_UNAVAILABLE,
                detail=f"tool resolution error: {e}", command=step.command_template,
            ))
            self._settle(index)
            return

        self.context.bus.publish("tool:resolved", key=check.tool, data=check.model_dump(mode="json"))

        if not check.usable:
            self._record(StepResult.failure(
                index, StepCause.TOOL_UNAVAILABLE,
                detail=check.reason or f"{check.tool} is unavailable",
                command=step.command_template,
            ))
            self._settle(index)
            return

        self._transition(index, StepState.WAITING_ON_PLACEHOLDERS)
        self._try_release(step)

    def _on_run_done(self, index: int, future: Future) -> None:
        step = self.plan.step(index)
        try:
            result: StepResult = future.result()
        except Exception as e:
            logger.exception("Executor raised for step %d", index)
            result = StepResult.failure(
                index, StepCause.PROCESS_SPAWN_FAILURE,
                detail=f"executor error: {e}", command=step.command_template,
            )

        if result.ok and step.produces:
            result = self._publish(step, result)

        self._record(result)
        self._settle(index)

    def _publish(self, step: Step, result: StepResult) -> StepResult:
        """Extract and publish a discovery step's values."""
        values, missing = extract_values(step, result.stdout)

        published: dict[str, str] = {}
        conflicts: list[str] = []
        for name, value in values.items():
            if self.registry.publish(name, value) == PublishResult.OK:
                published[name] = value
                self.context.bus.publish(
                    "placeholder:published", key=name,
                    data={"name": name, "value": value, "step": step.index},
                )
            else:
                conflicts.append(name)

        if conflicts:
            kept = ", ".join(f"{{{n}}}={self.registry.resolve(n)!r}" for n in conflicts)
            return result.model_copy(update={
                "status": StepStatus.FAILED,
                "cause": StepCause.PLACEHOLDER_CONFLICT,
                "detail": f"conflicting value; kept {kept}",
                "published": published,
            })
        if missing:
            return result.model_copy(update={
                "status": StepStatus.FAILED,
                "cause": StepCause.EXTRACTION_FAILED,
                "detail": "no value found in output for " + ", ".join(f"{{{n}}}" for n in missing),
                "published": published,
            })
        return result.model_copy(update={"published": published})

    # ── Cancellation ────────────────────────────────────────────

    def _begin_cancel(self) -> None:
        self.cancelling = True
        logger.warning("Cancellation requested; stopping session %s", self.session.session_id)
        self.context.bus.publish("plan:cancelling", data={"session_id": self.session.session_id})

        for future, (kind, index) in list(self.in_flight.items()):
            if kind == _RUN and future.cancel():
                # Queued behind max_workers, never started
                del self.in_flight[future]
                self._record(StepResult.skip(
                    index, StepCause.PLAN_CANCELLED,
                    detail="plan cancelled before start",
                    command=self.plan.step(index).command_template,
                ))
            elif kind == _TOOL:
                future.cancel()

        for index in self.plan.indices:
            state = self.states[index]
            if state.terminal or state == StepState.RUNNING:
                continue
            self._record(StepResult.skip(
                index, StepCause.PLAN_CANCELLED,
                detail="plan cancelled",
                command=self.plan.step(index).command_template,
            ))
