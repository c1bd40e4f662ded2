"""
stepwise — CLI entrypoint.

Usage:
    stepwise --help
    stepwise run plan.json --request "scan 192.168.1.0/24"
    stepwise check plan.yml
    stepwise sessions list
"""

from __future__ import annotations

import json
import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from stepwise import __version__
from stepwise.core.observability.logging_config import resolve_level, setup_from_environment

# Exit code for an interrupted run (128 + SIGINT)
EXIT_CANCELLED = 130


@click.group()
@click.version_option(version=__version__, prog_name="stepwise")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to stepwise.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """stepwise — execute generated command plans, dependency-aware."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_from_environment(resolve_level(debug=debug, verbose=verbose, quiet=quiet))


def _parse_seeds(pairs: tuple[str, ...]) -> dict[str, str]:
    seeds: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            raise click.BadParameter(f"expected NAME=VALUE, got {pair!r}", param_hint="--seed")
        seeds[name] = value
    return seeds


def _load_config_or_exit(ctx: click.Context):  # type: ignore[no-untyped-def]
    from stepwise.core.config.loader import ConfigError, load_config

    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


@contextmanager
def _cancel_on_sigint(cancel: threading.Event) -> Iterator[None]:
    """Turn Ctrl-C into a plan cancellation for the duration of a run."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):  # type: ignore[no-untyped-def]
        cancel.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


# ── run ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--timeout", type=click.FloatRange(min=0, min_open=True), default=None,
    help="Default per-step timeout (seconds).",
)
@click.option(
    "--max-workers", type=click.IntRange(min=1), default=None,
    help="Maximum steps running at once.",
)
@click.option("--no-install", is_flag=True, help="Never install missing tools.")
@click.option("--seed", "seed_pairs", multiple=True, metavar="NAME=VALUE", help="Pre-resolved placeholder.")
@click.option("--request", "request_text", default=None, help="User request to take a target address from.")
@click.option(
    "--output", "-o", "output_path",
    type=click.Path(dir_okay=False, path_type=Path), default=None,
    help="Write a plain-text transcript to this file.",
)
@click.pass_context
def run(
    ctx: click.Context,
    plan_file: Path,
    as_json: bool,
    timeout: float | None,
    max_workers: int | None,
    no_install: bool,
    seed_pairs: tuple[str, ...],
    request_text: str | None,
    output_path: Path | None,
) -> None:
    """Execute a plan document and record the session."""
    from stepwise.core.config.loader import ConfigError
    from stepwise.core.use_cases.run import build_context, run_plan
    from stepwise.ui.cli.transcript import render_transcript

    seeds = _parse_seeds(seed_pairs)
    loaded = _load_config_or_exit(ctx)
    try:
        context = build_context(
            loaded,
            timeout=timeout,
            max_workers=max_workers,
            auto_install=False if no_install else None,
        )
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    with _cancel_on_sigint(context.cancel):
        result = run_plan(plan_file, context, seeds=seeds, request=request_text)

    session = result.session
    if output_path is not None and session is not None:
        output_path.write_text(render_transcript(session), encoding="utf-8")

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.error:
        click.secho(f"❌ {result.error}", fg="red")
    else:
        assert session is not None  # guaranteed when no error
        _print_session(ctx, session)
        if result.session_path:
            click.secho(f"   💾 Session saved to {result.session_path}", fg="cyan")
        if output_path is not None:
            click.secho(f"   📝 Transcript written to {output_path}", fg="cyan")
        click.echo()

    if result.error or session is None:
        sys.exit(1)
    if session.outcome.value == "cancelled":
        sys.exit(EXIT_CANCELLED)
    if session.status != "ok":
        sys.exit(1)


def _print_session(ctx: click.Context, session) -> None:  # type: ignore[no-untyped-def]
    quiet = ctx.obj.get("quiet", False)
    colors = {"success": "green", "failed": "red", "skipped": "yellow", "timed_out": "magenta"}

    if not quiet:
        click.secho(f"\n▶ Session {session.session_id}", fg="cyan", bold=True)
        if session.plan.explanation:
            click.echo(f"   {session.plan.explanation}")
        click.echo()

    for r in session.sorted_results():
        click.secho(f"   {r.marker} step {r.index} ", fg=colors[r.status.value], nl=False)
        click.echo(r.command)
        if r.cause is not None:
            click.echo(f"       {r.cause.value}: {r.detail}")
        if r.published:
            click.echo("       → " + ", ".join(f"{k}={v}" for k, v in sorted(r.published.items())))
        if not quiet and r.stdout.strip():
            for line in r.stdout.rstrip().splitlines()[:20]:
                click.echo(f"       │ {line}")

    status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(session.status, "white")
    click.echo()
    click.echo(f"   {session.succeeded}/{session.total} succeeded — ", nl=False)
    click.secho(f"{session.status} ({session.outcome.value})", fg=status_color, bold=True)


# ── check ───────────────────────────────────────────────────────


@cli.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--seed", "seed_pairs", multiple=True, metavar="NAME=VALUE", help="Pre-resolved placeholder.")
def check(plan_file: Path, as_json: bool, seed_pairs: tuple[str, ...]) -> None:
    """Validate a plan without running it."""
    from stepwise.core.use_cases.check import check_plan

    result = check_plan(plan_file, _parse_seeds(seed_pairs))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if not result.valid:
        click.secho("❌ Plan is invalid:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")
        click.echo()
        sys.exit(1)

    assert result.plan is not None  # guaranteed when valid
    click.secho("✅ Plan is valid", fg="green", bold=True)
    click.echo(f"   Steps: {len(result.plan)}")
    click.echo(f"   Order: {' → '.join(str(i) for i in result.order)}")
    for index, upstream in result.edges.items():
        if upstream:
            click.echo(f"     • step {index} waits on {', '.join(str(u) for u in upstream)}")
    if result.tools:
        click.echo(f"   Tools: {', '.join(result.tools)}")
    click.echo()


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Engine configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate stepwise.yml and show the effective settings."""
    from stepwise.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.loaded is not None  # guaranteed when valid
        cfg = result.loaded.config
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   File:          {result.loaded.path or '(defaults)'}")
        click.echo(f"   Platform:      {result.platform}")
        click.echo(f"   Timeout:       {cfg.default_timeout}s")
        click.echo(f"   Max workers:   {cfg.max_workers}")
        click.echo(f"   Output limit:  {cfg.max_output_bytes} bytes/stream")
        click.echo(f"   Auto-install:  {'yes' if cfg.auto_install else 'no'}")
        click.echo(f"   Sessions:      {result.loaded.sessions_dir}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


# ── web ─────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", default=8000, type=int, help="Port number.")
@click.pass_context
def web(ctx: click.Context, host: str, port: int) -> None:
    """Serve sessions, the event stream and the run API over HTTP."""
    from stepwise.ui.web.server import create_app, run_server

    loaded = _load_config_or_exit(ctx)
    app = create_app(loaded.sessions_dir, config=loaded.config)
    debug = ctx.obj.get("debug", False)

    click.echo()
    click.secho("⚡ stepwise — session server", bold=True)
    click.echo(f"   API:      http://{host}:{port}/api/sessions")
    click.echo(f"   Runs:     POST http://{host}:{port}/api/runs")
    click.echo(f"   Events:   http://{host}:{port}/api/events")
    click.echo(f"   Sessions: {loaded.sessions_dir}")
    click.echo()

    run_server(app, host=host, port=port, debug=debug)


# ── Register sub-command groups from stepwise/ui/cli/ ────────────

from stepwise.ui.cli.sessions import sessions  # noqa: E402

cli.add_command(sessions)


if __name__ == "__main__":
    cli()
