"""
Web server — Flask app factory.

Serves recorded sessions and the live event stream. Plans started
through /api/runs publish to the bus that stream reads from.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from flask import Flask

from stepwise.core.models.config import EngineConfig
from stepwise.core.services.event_bus import EventBus

logger = logging.getLogger(__name__)


def create_app(
    sessions_dir: Path,
    bus: EventBus | None = None,
    config: EngineConfig | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        sessions_dir: Directory of recorded session documents.
        bus: Event bus that runs publish to and /api/events streams
            from (a fresh bus when None).
        config: Engine settings for runs started over HTTP.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)

    app.config["SESSIONS_DIR"] = str(sessions_dir)
    app.extensions["stepwise_bus"] = bus or EventBus()
    app.extensions["stepwise_config"] = config or EngineConfig()
    app.extensions["stepwise_run_lock"] = threading.Lock()

    from stepwise.ui.web.routes_events import events_bp
    from stepwise.ui.web.routes_runs import runs_bp
    from stepwise.ui.web.routes_sessions import sessions_bp

    app.register_blueprint(sessions_bp, url_prefix="/api")
    app.register_blueprint(events_bp, url_prefix="/api")
    app.register_blueprint(runs_bp, url_prefix="/api")

    logger.info("Web app created (sessions=%s)", sessions_dir)
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8000,
    debug: bool = False,
) -> None:
    """Run the Flask development server."""
    logger.info("Starting web server on %s:%d", host, port)
    app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
