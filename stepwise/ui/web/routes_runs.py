"""
Run API routes — start a plan on the app's event bus.

``POST /api/runs`` validates the plan, starts it on a background
thread and answers 202 straight away; progress is followed on
``GET /api/events`` from the returned ``since`` cursor. One plan runs
at a time per app.

Body: either a plan document, or
``{"plan": {...}, "seeds": {...}, "request": "..."}``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from flask import Blueprint, current_app, jsonify, request

from stepwise.core.config.plan_loader import PlanLoadError, parse_plan
from stepwise.core.context import SessionContext
from stepwise.core.engine.errors import PlanError
from stepwise.core.engine.graph import build_graph
from stepwise.core.engine.scheduler import PlanScheduler
from stepwise.core.models.plan import Plan
from stepwise.core.models.session import generate_session_id
from stepwise.core.services.extractors import seeds_from_text
from stepwise.core.use_cases.run import context_from_config

logger = logging.getLogger(__name__)

runs_bp = Blueprint("runs", __name__)


@dataclass
class ActiveRun:
    session_id: str
    context: SessionContext
    thread: threading.Thread

    @property
    def running(self) -> bool:
        return self.thread.is_alive()


def _execute(context: SessionContext, plan: Plan) -> None:
    try:
        PlanScheduler(context).run(plan)
    except Exception:
        logger.exception("Run %s failed", context.session_id)


def _split_body(body: object) -> tuple[object, dict[str, str]]:
    if isinstance(body, dict) and "plan" in body:
        seeds: dict[str, str] = {}
        if body.get("request"):
            seeds.update(seeds_from_text(str(body["request"])))
        seeds.update(body.get("seeds") or {})
        return body["plan"], seeds
    return body, {}


@runs_bp.route("/runs", methods=["POST"])
def start_run():
    body = request.get_json(silent=True)
    if body is None:
        return jsonify({"error": "Expected a JSON plan document"}), 400

    document, seeds = _split_body(body)
    try:
        plan = parse_plan(document, seeds)
        build_graph(plan)
    except PlanLoadError as e:
        return jsonify({"error": str(e)}), 400
    except PlanError as e:
        return jsonify({"error": f"Plan rejected: {e}"}), 400

    lock: threading.Lock = current_app.extensions["stepwise_run_lock"]
    with lock:
        active: ActiveRun | None = current_app.extensions.get("stepwise_run")
        if active is not None and active.running:
            return jsonify({
                "error": "A plan is already running",
                "session_id": active.session_id,
            }), 409

        bus = current_app.extensions["stepwise_bus"]
        context = context_from_config(
            current_app.extensions["stepwise_config"],
            Path(current_app.config["SESSIONS_DIR"]),
            bus=bus,
            session_id=generate_session_id(),
        )
        since = bus.seq
        thread = threading.Thread(
            target=_execute, args=(context, plan),
            name=f"run-{context.session_id}", daemon=True,
        )
        active = ActiveRun(context.session_id, context, thread)
        current_app.extensions["stepwise_run"] = active
        thread.start()

    logger.info("Started run %s (%d steps)", active.session_id, len(plan))
    return jsonify({
        "session_id": active.session_id,
        "since": since,
        "events": f"/api/events?since={since}",
    }), 202


@runs_bp.route("/runs/<session_id>/cancel", methods=["POST"])
def cancel_run(session_id: str):
    active: ActiveRun | None = current_app.extensions.get("stepwise_run")
    if active is None or active.session_id != session_id:
        return jsonify({"error": f"No run with id {session_id}"}), 404
    if not active.running:
        return jsonify({"session_id": session_id, "running": False})

    active.context.request_cancel()
    return jsonify({"session_id": session_id, "running": True, "cancelling": True}), 202
