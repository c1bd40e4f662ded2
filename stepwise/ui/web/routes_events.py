"""
SSE event stream endpoint.

Provides ``GET /api/events`` — a Server-Sent Events stream of step
transitions for the plan being executed. The stream ends after the
``plan:completed`` event.

Wire format (per SSE spec)::

    event: step:state
    id: 47
    data: {"v":1,"ts":1739648400.123,"seq":47,"type":"step:state","key":"3","data":{...}}

On reconnect, ``Last-Event-Id`` is sent automatically by the browser,
enabling replay from the bus's ring buffer.
"""

from __future__ import annotations

import json

from flask import Blueprint, Response, current_app, request

events_bp = Blueprint("events", __name__)


@events_bp.route("/events")
def event_stream():  # type: ignore[no-untyped-def]
    """SSE endpoint — streams engine events.

    Query params:
        since (int): Resume from this sequence number. Overridden
            by ``Last-Event-Id`` header if present.

    Returns:
        ``text/event-stream`` response with chunked transfer.
    """
    bus = current_app.extensions["stepwise_bus"]
    since = request.args.get("since", 0, type=int)

    last_event_id = request.headers.get("Last-Event-Id")
    if last_event_id is not None:
        try:
            since = max(since, int(last_event_id))
        except (ValueError, TypeError):
            pass

    def generate():  # type: ignore[no-untyped-def]
        for event in bus.subscribe(since=since, until=("plan:completed",)):
            yield (
                f"event: {event['type']}\n"
                f"id: {event['seq']}\n"
                f"data: {json.dumps(event, default=str)}\n\n"
            )

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "X-Accel-Buffering": "no",
        },
    )
