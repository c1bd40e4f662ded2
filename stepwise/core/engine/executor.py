"""
Step executor — runs one resolved step as an external process.

The executor is the SINGLE PLACE where plan commands are spawned.
It never raises for step-level problems: every outcome (spawn failure,
non-zero exit, deadline, cancellation) comes back as a StepResult.

Flow:
    substitute placeholders → spawn (own process group) → drain output
    → wait (deadline / cancel) → classify

Output is drained by one reader thread per stream. Each reader keeps
at most ``max_output_bytes`` and discards the rest, so a chatty
process can neither fill the pipe nor exhaust memory.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import threading
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import IO

from stepwise.core.models.plan import PLACEHOLDER_RE, ActionKind, Step
from stepwise.core.models.result import StepCause, StepResult

logger = logging.getLogger(__name__)

# sh: 127 = command not found; cmd.exe: 9009
NOT_FOUND_EXIT_CODES = frozenset({127, 9009})

POLL_INTERVAL = 0.05     # seconds between deadline/cancel checks
KILL_GRACE = 2.0         # seconds between SIGTERM and SIGKILL
READ_CHUNK = 4096

_IS_WINDOWS = os.name == "nt"


class UnresolvedPlaceholder(Exception):
    """A command template still references names with no value."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__("unresolved placeholder(s): " + ", ".join(f"{{{n}}}" for n in names))


def substitute(template: str, values: Mapping[str, str]) -> str:
    """Replace every ``{name}`` token in ``template``.

    Raises:
        UnresolvedPlaceholder: Some token has no entry in ``values``.
    """
    missing = sorted({n for n in PLACEHOLDER_RE.findall(template) if n not in values})
    if missing:
        raise UnresolvedPlaceholder(missing)
    return PLACEHOLDER_RE.sub(lambda m: str(values[m.group(1)]), template)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# ── Output capture ───────────────────────────────────────────────


class _BoundedReader(threading.Thread):
    """Drain a pipe, keeping only the first ``limit`` bytes."""

    def __init__(self, stream: IO[bytes], limit: int, name: str):
        super().__init__(name=name, daemon=True)
        self._stream = stream
        self._limit = limit
        self._chunks: list[bytes] = []
        self._kept = 0
        self.truncated = False

    def run(self) -> None:
        try:
            while True:
                chunk = self._stream.read1(READ_CHUNK)
                if not chunk:
                    break
                room = self._limit - self._kept
                if room <= 0:
                    self.truncated = True
                    continue
                if len(chunk) > room:
                    self.truncated = True
                    chunk = chunk[:room]
                self._chunks.append(chunk)
                self._kept += len(chunk)
        except (OSError, ValueError) as e:
            logger.debug("Reader %s stopped: %s", self.name, e)
        finally:
            try:
                self._stream.close()
            except OSError:
                pass

    @property
    def text(self) -> str:
        return b"".join(self._chunks).decode("utf-8", errors="replace")


# ── Process control ──────────────────────────────────────────────


def _spawn_kwargs() -> dict:
    if _IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def _kill_group(proc: subprocess.Popen) -> None:
    """Terminate the process and everything it started."""
    if proc.poll() is not None:
        return
    if _IS_WINDOWS:
        proc.kill()
        return
    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except (ProcessLookupError, PermissionError):
        return
    try:
        proc.wait(timeout=KILL_GRACE)
        return
    except subprocess.TimeoutExpired:
        pass
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        return
    proc.wait()


def _reap_group(proc: subprocess.Popen) -> None:
    """Kill whatever the exited leader left running in its group.

    Background children hold the output pipes open while they live.
    """
    if _IS_WINDOWS:
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


# ── Executor ─────────────────────────────────────────────────────


class StepExecutor:
    """Spawn steps and turn what happens into StepResults.

    Args:
        max_output_bytes: Per-stream capture limit.
    """

    def __init__(self, max_output_bytes: int = 65536):
        self.max_output_bytes = max_output_bytes

    def _argv(self, step: Step, command: str) -> tuple[str | list[str], bool]:
        """Return (args, shell) for Popen."""
        if step.action_kind == ActionKind.TOOL_INVOCATION:
            return shlex.split(command, posix=not _IS_WINDOWS), False
        return command, True

    def execute(
        self,
        step: Step,
        values: Mapping[str, str],
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> StepResult:
        """Run ``step`` with placeholders filled from ``values``.

        Args:
            step: The step to run.
            values: Placeholder values (at least every name the step consumes).
            timeout: Seconds before the process group is killed (None = no limit).
            cancel: Plan-wide cancellation flag.

        Returns:
            StepResult. Never raises for step-level failures.
        """
        try:
            command = substitute(step.command_template, values)
        except UnresolvedPlaceholder as e:
            logger.error("✗ step %d: %s", step.index, e)
            return StepResult.failure(
                step.index,
                StepCause.INTERNAL_ORDERING_ERROR,
                detail=str(e),
                command=step.command_template,
            )

        if cancel is not None and cancel.is_set():
            return StepResult.skip(
                step.index, StepCause.PLAN_CANCELLED,
                detail="plan cancelled before start", command=command,
            )

        started_at = _now_iso()
        start = time.monotonic()

        try:
            args, use_shell = self._argv(step, command)
            if not args:
                raise ValueError("empty command line")
            logger.debug("Spawning step %d: %s", step.index, command)
            proc = subprocess.Popen(
                args,
                shell=use_shell,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                **_spawn_kwargs(),
            )
        except (OSError, ValueError) as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning("✗ step %d: spawn failed: %s", step.index, e)
            return StepResult.failure(
                step.index,
                StepCause.PROCESS_SPAWN_FAILURE,
                detail=f"could not start process: {e}",
                command=command,
                started_at=started_at,
                duration_ms=elapsed_ms,
            )

        out = _BoundedReader(proc.stdout, self.max_output_bytes, f"step-{step.index}-stdout")
        err = _BoundedReader(proc.stderr, self.max_output_bytes, f"step-{step.index}-stderr")
        out.start()
        err.start()

        stopped: StepCause | None = None
        deadline = start + timeout if timeout else None
        while True:
            try:
                proc.wait(timeout=POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                pass
            if cancel is not None and cancel.is_set():
                stopped = StepCause.PLAN_CANCELLED
            elif deadline is not None and time.monotonic() >= deadline:
                stopped = StepCause.TIMED_OUT
            if stopped is not None:
                _kill_group(proc)
                break

        _reap_group(proc)
        out.join(timeout=KILL_GRACE)
        err.join(timeout=KILL_GRACE)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        captured = {
            "command": command,
            "stdout": out.text,
            "stderr": err.text,
            "stdout_truncated": out.truncated,
            "stderr_truncated": err.truncated,
            "exit_code": proc.returncode,
            "started_at": started_at,
            "ended_at": _now_iso(),
            "duration_ms": elapsed_ms,
        }

        if stopped == StepCause.PLAN_CANCELLED:
            logger.info("⏱ step %d: killed (plan cancelled)", step.index)
            return StepResult.timeout(
                step.index, StepCause.PLAN_CANCELLED,
                detail="plan cancelled while running", **captured,
            )
        if stopped == StepCause.TIMED_OUT:
            logger.info("⏱ step %d: timed out after %ss", step.index, timeout)
            return StepResult.timeout(
                step.index, StepCause.TIMED_OUT,
                detail=f"timed out after {timeout}s", **captured,
            )

        if proc.returncode == 0:
            logger.info("✓ step %d (%dms)", step.index, elapsed_ms)
            return StepResult.success(step.index, **captured)

        if proc.returncode in NOT_FOUND_EXIT_CODES:
            logger.warning("✗ step %d: command not found (exit %d)", step.index, proc.returncode)
            return StepResult.failure(
                step.index, StepCause.PROCESS_SPAWN_FAILURE,
                detail=f"command not found (exit {proc.returncode})", **captured,
            )

        logger.info("✗ step %d: exit %d", step.index, proc.returncode)
        return StepResult.failure(
            step.index, StepCause.COMMAND_FAILED,
            detail=f"Command failed (exit {proc.returncode})", **captured,
        )
