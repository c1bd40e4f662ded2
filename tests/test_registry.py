"""
Tests for the placeholder registry.
"""

import threading

from stepwise.core.engine.registry import PENDING, PlaceholderRegistry, PublishResult


class TestPlaceholderRegistry:
    def test_unknown_name_is_pending(self):
        reg = PlaceholderRegistry()
        assert reg.resolve("gw") is PENDING
        assert not reg.resolve("gw")
        assert "gw" not in reg

    def test_seeds_are_resolved(self):
        reg = PlaceholderRegistry({"target_ip": "10.0.0.5"})
        assert reg.resolve("target_ip") == "10.0.0.5"
        assert len(reg) == 1

    def test_first_writer_wins(self):
        reg = PlaceholderRegistry()
        assert reg.publish("gw", "192.168.1.1") == PublishResult.OK
        assert reg.publish("gw", "10.0.0.1") == PublishResult.CONFLICT
        assert reg.resolve("gw") == "192.168.1.1"

    def test_identical_republish_is_ok(self):
        reg = PlaceholderRegistry()
        reg.publish("gw", "192.168.1.1")
        assert reg.publish("gw", "192.168.1.1") == PublishResult.OK

    def test_seed_cannot_be_overwritten(self):
        reg = PlaceholderRegistry({"x": "1"})
        assert reg.publish("x", "2") == PublishResult.CONFLICT
        assert reg.resolve("x") == "1"

    def test_missing_and_values_for(self):
        reg = PlaceholderRegistry({"a": "1"})
        assert reg.is_resolved(["a"])
        assert not reg.is_resolved(["a", "b"])
        assert reg.missing(["a", "b"]) == {"b"}
        assert reg.values_for(["a", "b"]) == {"a": "1"}

    def test_snapshot_is_immutable_copy(self):
        reg = PlaceholderRegistry({"a": "1"})
        snap = reg.snapshot()
        reg.publish("b", "2")
        assert dict(snap) == {"a": "1"}
        try:
            snap["c"] = "3"  # type: ignore[index]
        except TypeError:
            pass
        else:
            raise AssertionError("snapshot should be read-only")

    def test_concurrent_publish_has_one_winner(self):
        reg = PlaceholderRegistry()
        barrier = threading.Barrier(16)
        results: list[PublishResult] = []
        lock = threading.Lock()

        def worker(n: int) -> None:
            barrier.wait()
            r = reg.publish("gw", f"10.0.0.{n}")
            with lock:
                results.append(r)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(PublishResult.OK) == 1
        assert results.count(PublishResult.CONFLICT) == 15
        assert reg.resolve("gw").startswith("10.0.0.")
