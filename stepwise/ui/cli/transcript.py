"""
Plain-text transcript of a session — what ``run --output`` writes.

Explanation first, then each step in index order with its resolved
command, outcome and captured output.
"""

from __future__ import annotations

from stepwise.core.models.session import Session

_RULE = "─" * 60


def render_transcript(session: Session) -> str:
    lines: list[str] = [
        f"Session {session.session_id} ({session.outcome.value}, {session.status})",
        f"Platform: {session.platform or 'unknown'}",
        f"Started:  {session.started_at}",
        f"Ended:    {session.ended_at or '-'}",
    ]
    if session.plan.explanation:
        lines += ["", "Explanation:", session.plan.explanation.strip()]
    if session.placeholder_snapshot:
        lines += ["", "Placeholders:"]
        lines += [f"  {{{k}}} = {v}" for k, v in sorted(session.placeholder_snapshot.items())]

    for result in session.sorted_results():
        step = session.plan.step(result.index)
        lines += ["", _RULE, f"{result.marker} Step {result.index}: {result.status.value}"]
        if step.purpose:
            lines.append(f"Purpose: {step.purpose}")
        lines.append(f"Command: {result.command or step.command_template}")
        if result.cause is not None:
            lines.append(f"Cause:   {result.cause.value} ({result.detail})")
        if result.exit_code is not None:
            lines.append(f"Exit:    {result.exit_code} in {result.duration_ms}ms")
        if result.published:
            lines.append(
                "Published: " + ", ".join(f"{k}={v}" for k, v in sorted(result.published.items()))
            )
        if result.stdout:
            lines += ["--- stdout ---", result.stdout.rstrip()]
            if result.stdout_truncated:
                lines.append("[stdout truncated]")
        if result.stderr:
            lines += ["--- stderr ---", result.stderr.rstrip()]
            if result.stderr_truncated:
                lines.append("[stderr truncated]")

    return "\n".join(lines) + "\n"
