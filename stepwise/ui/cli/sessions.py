"""
CLI commands for recorded sessions.

Thin wrappers over ``stepwise.core.use_cases.sessions``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from stepwise.ui.cli.transcript import render_transcript


def _sessions_dir(ctx: click.Context) -> Path:
    """Resolve the sessions directory from the loaded config."""
    from stepwise.core.config.loader import ConfigError, load_config

    try:
        loaded = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    return loaded.sessions_dir


@click.group("sessions")
def sessions() -> None:
    """Recorded sessions — list and inspect."""


@sessions.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("-n", "limit", type=int, default=20, show_default=True, help="Newest N sessions.")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool, limit: int) -> None:
    """List recorded sessions, newest first."""
    from stepwise.core.use_cases.sessions import list_sessions

    items = list_sessions(_sessions_dir(ctx), limit)

    if as_json:
        click.echo(json.dumps({"sessions": items}, indent=2))
        return

    if not items:
        click.echo("No sessions recorded yet.")
        return

    colors = {"ok": "green", "partial": "yellow", "failed": "red"}
    for s in items:
        click.secho(f"{s['session_id']}  ", nl=False, bold=True)
        click.secho(f"{s['status']:<8}", fg=colors.get(s["status"], "white"), nl=False)
        click.echo(
            f" {s['succeeded']}/{s['total']} ok"
            f"{'  (cancelled)' if s['outcome'] == 'cancelled' else ''}"
            f"  {s['started_at']}"
        )


@sessions.command("show")
@click.argument("session_id")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show_cmd(ctx: click.Context, session_id: str, as_json: bool) -> None:
    """Show one recorded session."""
    from stepwise.core.use_cases.sessions import get_session

    session = get_session(_sessions_dir(ctx), session_id)
    if session is None:
        click.secho(f"❌ Session not found: {session_id}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(session.model_dump(mode="json"), indent=2))
        return

    click.echo(render_transcript(session), nl=False)
