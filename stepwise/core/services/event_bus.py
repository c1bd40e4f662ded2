"""
EventBus — thread-safe, in-process pub/sub with bounded replay.

The scheduler publishes every step transition here; the CLI and the
web UI observe. Consumers are read-only: nothing they do feeds back
into execution.

SSE clients subscribe and receive a live stream of events. On
reconnect, the bus replays missed events from a bounded ring buffer,
or sends a state snapshot if the client was away too long.

Thread safety model
───────────────────
- ``_lock`` protects ``_seq``, ``_buffer``, ``_subscribers``,
  ``_latest`` (all writes go through the lock).
- Each subscriber gets its own ``queue.Queue``; the publisher
  pushes into all queues under the lock, each consumer drains its
  own queue independently.

Message standard (v1)
─────────────────────
Every event is a dict with these fields::

    {
        "v": 1,                     # schema version
        "ts": 1739648400.123,       # server timestamp
        "seq": 47,                  # monotonic sequence
        "type": "step:state",       # <domain>:<action>
        "key": "3",                 # resource identifier (step index)
        "data": { ... },            # event-specific payload
    }

Event types published by the engine:
    plan:started, step:state, tool:resolved, placeholder:published,
    plan:cancelling, plan:completed
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from collections.abc import Collection, Generator
from typing import Any

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1


class EventBus:
    """Thread-safe, in-process pub/sub with bounded replay buffer.

    Parameters
    ----------
    buffer_size : int
        Maximum number of events to keep in the replay ring buffer.
    subscriber_queue_size : int
        Maximum backlog per subscriber. A subscriber whose queue fills
        is dropped.
    """

    def __init__(
        self,
        *,
        buffer_size: int = 1000,
        subscriber_queue_size: int = 500,
    ) -> None:
        self._lock = threading.Lock()
        self._seq: int = 0
        self._buffer: deque[dict] = deque(maxlen=buffer_size)
        self._subscribers: list[queue.Queue[dict]] = []
        self._subscriber_queue_size = subscriber_queue_size
        self._instance_id: str = time.strftime("%Y-%m-%dT%H:%M:%S")
        self._latest: dict[str, dict] = {}  # step key → latest step:state payload

    # ── Properties ──────────────────────────────────────────────

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def seq(self) -> int:
        """Current sequence number (monotonically increasing)."""
        with self._lock:
            return self._seq

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    # ── Publishing ──────────────────────────────────────────────

    def publish(
        self,
        event_type: str,
        *,
        key: str = "",
        data: dict[str, Any] | None = None,
        **kw: Any,
    ) -> dict:
        """Broadcast an event to all subscribers.

        Parameters
        ----------
        event_type : str
            Event type in ``<domain>:<action>`` format.
        key : str
            Resource identifier. Empty for plan-wide events.
        data : dict | None
            Event-specific payload.

        Returns
        -------
        dict
            The full event dict with ``seq`` assigned.
        """
        with self._lock:
            self._seq += 1
            event: dict[str, Any] = {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": key,
                "data": data or {},
                **kw,
            }
            self._buffer.append(event)

            if event_type == "step:state" and key:
                self._latest[key] = dict(data or {})
            elif event_type == "plan:started":
                self._latest.clear()

            dead: list[queue.Queue[dict]] = []
            for q in self._subscribers:
                try:
                    q.put_nowait(event)
                except queue.Full:
                    dead.append(q)
            for q in dead:
                self._subscribers.remove(q)
                logger.info("Dropped unresponsive subscriber (queue full)")

        if event_type != "sys:heartbeat":
            logger.debug("event %s key=%s", event_type, key or "-")

        return event

    # ── Subscribing ─────────────────────────────────────────────

    def subscribe(
        self,
        *,
        since: int = 0,
        heartbeat_interval: float = 30.0,
        until: Collection[str] = (),
    ) -> Generator[dict, None, None]:
        """Yield events for a subscriber. Blocks between events.

        Parameters
        ----------
        since : int
            Sequence number to resume from (``Last-Event-Id``).
            Buffered events with ``seq > since`` are replayed when the
            buffer still reaches back that far; otherwise a
            ``state:snapshot`` is sent instead.
        heartbeat_interval : float
            Seconds between heartbeat events when idle.
        until : collection of str
            Stop after yielding an event of one of these types.

        Yields
        ------
        dict
            Event dicts ready for SSE serialization.
        """
        q: queue.Queue[dict] = queue.Queue(maxsize=self._subscriber_queue_size)
        need_snapshot = True

        with self._lock:
            if self._buffer and since >= self._buffer[0]["seq"] - 1:
                need_snapshot = False
                for event in self._buffer:
                    if event["seq"] > since:
                        try:
                            q.put_nowait(event)
                        except queue.Full:
                            need_snapshot = True
                            while not q.empty():
                                try:
                                    q.get_nowait()
                                except queue.Empty:
                                    break
                            break

            self._subscribers.append(q)

        logger.info(
            "Subscriber connected (since=%d, snapshot=%s, subscribers=%d)",
            since, need_snapshot, len(self._subscribers),
        )

        try:
            yield self._make_ready_event()

            if need_snapshot:
                yield self._make_snapshot_event()

            while True:
                try:
                    event = q.get(timeout=heartbeat_interval)
                except queue.Empty:
                    yield self.publish("sys:heartbeat")
                    continue
                yield event
                if event["type"] in until:
                    return
        finally:
            with self._lock:
                if q in self._subscribers:
                    self._subscribers.remove(q)
            logger.info("Subscriber disconnected (subscribers=%d)", len(self._subscribers))

    # ── Snapshot / history ──────────────────────────────────────

    def snapshot(self) -> dict[str, dict]:
        """Latest known state of every step, keyed by step index."""
        with self._lock:
            return {key: dict(value) for key, value in self._latest.items()}

    def history(self, event_type: str | None = None) -> list[dict]:
        """Buffered events, oldest first, optionally of one type."""
        with self._lock:
            return [e for e in self._buffer if event_type is None or e["type"] == event_type]

    # ── Internal helpers ────────────────────────────────────────

    def _make_ready_event(self) -> dict:
        """sys:ready, sent only to the connecting subscriber."""
        with self._lock:
            self._seq += 1
            return {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": "sys:ready",
                "key": "",
                "data": {
                    "instance_id": self._instance_id,
                    "steps": sorted(self._latest.keys()),
                },
            }

    def _make_snapshot_event(self) -> dict:
        """state:snapshot, sent only to the connecting subscriber."""
        with self._lock:
            self._seq += 1
            return {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": "state:snapshot",
                "key": "",
                "data": {key: dict(value) for key, value in self._latest.items()},
            }
