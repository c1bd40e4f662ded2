"""
Tests for the dependency graph builder.
"""

import pytest

from conftest import make_plan
from stepwise.core.engine.errors import DependencyCycle, MissingProducer, PlanError
from stepwise.core.engine.graph import build_graph, validate_plan


def _discover(cmd: str, produces: list[str], **kw) -> dict:
    return {"action_kind": "discovery", "command_template": cmd, "produces": produces, **kw}


def _shell(cmd: str, **kw) -> dict:
    return {"action_kind": "shell_command", "command_template": cmd, **kw}


class TestBuildGraph:
    def test_producer_consumer_edge(self):
        plan = make_plan(
            _discover("ip route", ["default_gateway"]),
            _shell("ping -c1 {default_gateway}"),
        )
        graph = build_graph(plan)
        assert graph.upstream(1) == {0}
        assert graph.downstream(0) == {1}
        assert graph.producers("default_gateway") == [0]
        assert graph.edge_count == 1

    def test_independent_steps(self):
        plan = make_plan(_shell("uname -a"), _shell("id"), _shell("date"))
        graph = build_graph(plan)
        assert graph.independent() == {0, 1, 2}
        assert graph.edge_count == 0

    def test_multiple_producers_all_become_upstream(self):
        plan = make_plan(
            _discover("a", ["x"]),
            _discover("b", ["x"]),
            _shell("use {x}"),
        )
        graph = build_graph(plan)
        assert graph.upstream(2) == {0, 1}

    def test_dependents_closure_is_transitive(self):
        plan = make_plan(
            _discover("a", ["x"]),
            _discover("b {x}", ["y"]),
            _shell("c {y}"),
            _shell("d"),
        )
        graph = build_graph(plan)
        assert graph.dependents_closure(0) == {1, 2}
        assert graph.dependents_closure(2) == set()
        assert graph.independent() == {3}

    def test_seeded_names_create_no_edges(self):
        plan = make_plan(
            _discover("a", ["target_ip"]),
            _shell("ping {target_ip}"),
            seeds={"target_ip": "10.0.0.5"},
        )
        graph = build_graph(plan)
        assert graph.upstream(1) == set()

    def test_seed_satisfies_consumer_without_producer(self):
        plan = make_plan(_shell("nmap {subnet_cidr}"), seeds={"subnet_cidr": "10.0.0.0/24"})
        build_graph(plan)

    def test_missing_producer(self):
        plan = make_plan(_shell("ping {nowhere}"))
        with pytest.raises(MissingProducer) as exc:
            build_graph(plan)
        assert exc.value.index == 0
        assert exc.value.name == "nowhere"
        assert isinstance(exc.value, PlanError)

    def test_cycle_two_steps(self):
        plan = make_plan(
            _discover("a {y}", ["x"]),
            _discover("b {x}", ["y"]),
        )
        with pytest.raises(DependencyCycle) as exc:
            build_graph(plan)
        assert sorted(exc.value.indices) == [0, 1]

    def test_self_loop(self):
        plan = make_plan(_discover("a {x}", ["x"]))
        with pytest.raises(DependencyCycle) as exc:
            build_graph(plan)
        assert exc.value.indices == [0]

    def test_cycle_reported_only_for_cycle_members(self):
        plan = make_plan(
            _discover("root", ["r"]),
            _discover("a {r} {z}", ["x"]),
            _discover("b {x}", ["y"]),
            _discover("c {y}", ["z"]),
            _shell("tail {z}"),
        )
        with pytest.raises(DependencyCycle) as exc:
            build_graph(plan)
        assert sorted(exc.value.indices) == [1, 2, 3]

    def test_topological_order(self):
        plan = make_plan(
            _shell("late {x}"),
            _discover("early", ["x"]),
            _shell("free"),
        )
        graph = build_graph(plan)
        order = graph.topological_order()
        assert order.index(1) < order.index(0)
        assert sorted(order) == [0, 1, 2]


class TestValidatePlan:
    def test_valid(self):
        plan = make_plan(_discover("a", ["x"]), _shell("b {x}"))
        assert validate_plan(plan) == []

    def test_collects_all_problems(self):
        plan = make_plan(
            _shell("one {missing_a}"),
            _shell("two {missing_b}"),
            _discover("three {loop}", ["loop"]),
        )
        errors = validate_plan(plan)
        assert len(errors) == 3
        assert any("missing_a" in e for e in errors)
        assert any("missing_b" in e for e in errors)
        assert any("cycle" in e for e in errors)
