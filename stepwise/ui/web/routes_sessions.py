"""
Session API routes — list and inspect recorded sessions.
"""

from __future__ import annotations

from pathlib import Path

from flask import Blueprint, current_app, jsonify, request

from stepwise.core.use_cases.sessions import get_session, list_sessions

sessions_bp = Blueprint("sessions", __name__)


def _sessions_dir() -> Path:
    return Path(current_app.config["SESSIONS_DIR"])


@sessions_bp.route("/sessions")
def sessions_index():
    limit = request.args.get("limit", None, type=int)
    return jsonify({"sessions": list_sessions(_sessions_dir(), limit)})


@sessions_bp.route("/sessions/<session_id>")
def session_detail(session_id: str):
    session = get_session(_sessions_dir(), session_id)
    if session is None:
        return jsonify({"error": f"Session not found: {session_id}"}), 404

    data = session.model_dump(mode="json")
    data["summary"] = session.summary()
    data["results"] = [r.model_dump(mode="json") for r in session.sorted_results()]
    return jsonify(data)
