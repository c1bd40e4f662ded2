"""
Tests for the in-process event bus.
"""

import threading

from stepwise.core.services.event_bus import EventBus


class TestPublish:
    def test_sequence_is_monotonic(self):
        bus = EventBus()
        a = bus.publish("plan:started")
        b = bus.publish("step:state", key="0", data={"state": "running"})
        assert b["seq"] == a["seq"] + 1
        assert b["v"] == 1
        assert b["key"] == "0"
        assert bus.seq == b["seq"]

    def test_snapshot_tracks_latest_step_state(self):
        bus = EventBus()
        bus.publish("step:state", key="0", data={"state": "running"})
        bus.publish("step:state", key="0", data={"state": "success"})
        bus.publish("step:state", key="1", data={"state": "skipped"})
        assert bus.snapshot() == {"0": {"state": "success"}, "1": {"state": "skipped"}}

    def test_plan_started_clears_snapshot(self):
        bus = EventBus()
        bus.publish("step:state", key="0", data={"state": "success"})
        bus.publish("plan:started")
        assert bus.snapshot() == {}

    def test_history_filter_and_ring_buffer(self):
        bus = EventBus(buffer_size=3)
        for i in range(5):
            bus.publish("step:state", key=str(i))
        history = bus.history()
        assert len(history) == 3
        assert [e["key"] for e in history] == ["2", "3", "4"]
        assert bus.history("plan:completed") == []


class TestSubscribe:
    def test_replay_until(self):
        bus = EventBus()
        bus.publish("plan:started")
        bus.publish("step:state", key="0", data={"state": "success"})
        bus.publish("plan:completed")

        events = list(bus.subscribe(until=("plan:completed",)))
        types = [e["type"] for e in events]
        assert types == ["sys:ready", "plan:started", "step:state", "plan:completed"]
        assert bus.subscriber_count == 0

    def test_resume_from_seq(self):
        bus = EventBus()
        first = bus.publish("plan:started")
        bus.publish("plan:completed")
        events = list(bus.subscribe(since=first["seq"], until=("plan:completed",)))
        assert [e["type"] for e in events] == ["sys:ready", "plan:completed"]

    def test_snapshot_when_history_evicted(self):
        bus = EventBus(buffer_size=2)
        for i in range(5):
            bus.publish("step:state", key=str(i), data={"state": "success"})
        gen = bus.subscribe(since=1)
        assert next(gen)["type"] == "sys:ready"
        snap = next(gen)
        assert snap["type"] == "state:snapshot"
        assert set(snap["data"]) == {"0", "1", "2", "3", "4"}
        gen.close()

    def test_live_events(self):
        bus = EventBus()
        gen = bus.subscribe(until=("plan:completed",))
        assert next(gen)["type"] == "sys:ready"
        assert next(gen)["type"] == "state:snapshot"

        def producer() -> None:
            bus.publish("plan:started")
            bus.publish("plan:completed")

        threading.Thread(target=producer).start()
        assert [e["type"] for e in gen] == ["plan:started", "plan:completed"]

    def test_heartbeat_when_idle(self):
        bus = EventBus()
        gen = bus.subscribe(heartbeat_interval=0.05)
        next(gen)   # sys:ready
        next(gen)   # state:snapshot
        assert next(gen)["type"] == "sys:heartbeat"
        gen.close()

    def test_slow_subscriber_dropped(self):
        bus = EventBus(subscriber_queue_size=2)
        gen = bus.subscribe()
        next(gen)
        assert bus.subscriber_count == 1
        for _ in range(5):
            bus.publish("step:state", key="0")
        assert bus.subscriber_count == 0
        gen.close()
