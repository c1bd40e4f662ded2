"""
Tests for domain models — Plan/Step ingestion, StepResult, Session.
"""

import pytest
from pydantic import ValidationError

from stepwise.core.models import (
    ActionKind,
    Plan,
    Session,
    SessionOutcome,
    SessionSealedError,
    Step,
    StepCause,
    StepResult,
    StepStatus,
    scan_placeholders,
)


class TestPlaceholderScan:
    def test_finds_all_names(self):
        assert scan_placeholders("ping -c1 {target_ip} && nmap {subnet_cidr}") == {
            "target_ip", "subnet_cidr",
        }

    def test_ignores_non_identifier_braces(self):
        assert scan_placeholders("awk '{print $3}' {gw}") == {"gw"}

    def test_no_placeholders(self):
        assert scan_placeholders("uname -a") == frozenset()


class TestStep:
    def test_consumes_derived_from_template(self):
        step = Step.model_validate({
            "index": 0, "action_kind": "shell_command", "command_template": "ping {host}",
        })
        assert step.consumes == {"host"}

    def test_declared_consumes_are_unioned(self):
        step = Step.model_validate({
            "index": 0, "action_kind": "shell_command",
            "command_template": "ping {host}", "consumes": ["port"],
        })
        assert step.consumes == {"host", "port"}

    def test_single_name_strings_are_not_split(self):
        step = Step.model_validate({
            "index": 0, "action_kind": "discovery",
            "command_template": "ping {host}", "consumes": "gateway", "produces": "mac_address",
        })
        assert step.consumes == {"host", "gateway"}
        assert step.produces == {"mac_address"}

    def test_generator_field_names(self):
        step = Step.model_validate({
            "step": 3, "action_type": "command",
            "command": "ip route show default", "purpose": "find default gateway",
        })
        assert step.index == 3
        assert step.action_kind == ActionKind.SHELL_COMMAND
        assert step.command_template == "ip route show default"
        assert step.purpose == "find default gateway"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            Step.model_validate({"index": 0, "action_kind": "teleport", "command_template": "x"})

    def test_empty_template_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            Step.model_validate({"index": 0, "action_kind": "shell_command", "command_template": "  "})

    def test_only_discovery_may_produce(self):
        with pytest.raises(ValidationError, match="only discovery"):
            Step.model_validate({
                "index": 0, "action_kind": "shell_command",
                "command_template": "echo hi", "produces": ["x"],
            })

    def test_discovery_produces(self):
        step = Step.model_validate({
            "index": 0, "action_kind": "discovery",
            "command_template": "ip route", "produces": ["default_gateway"],
        })
        assert step.is_discovery
        assert step.produces == {"default_gateway"}

    def test_extract_requires_produced_name(self):
        with pytest.raises(ValidationError, match="does not produce"):
            Step.model_validate({
                "index": 0, "action_kind": "discovery", "command_template": "x",
                "produces": ["a"], "extract": {"b": "(.*)"},
            })

    def test_extract_requires_group(self):
        with pytest.raises(ValidationError, match="capture group"):
            Step.model_validate({
                "index": 0, "action_kind": "discovery", "command_template": "x",
                "produces": ["a"], "extract": {"a": "no-group"},
            })

    def test_step_is_frozen(self):
        step = Step.model_validate({"index": 0, "action_kind": "discovery", "command_template": "x"})
        with pytest.raises(ValidationError):
            step.command_template = "y"  # type: ignore[misc]

    def test_blank_tool_becomes_none(self):
        step = Step.model_validate({
            "index": 0, "action_kind": "tool_invocation", "command_template": "nmap -h", "tool": " ",
        })
        assert step.declared_tool is None


class TestPlan:
    def test_indices_default_to_position(self):
        plan = Plan.model_validate({"steps": [
            {"action_kind": "shell_command", "command_template": "a"},
            {"action_kind": "shell_command", "command_template": "b"},
        ]})
        assert plan.indices == [0, 1]

    def test_duplicate_indices_rejected(self):
        with pytest.raises(ValidationError, match="duplicate"):
            Plan.model_validate({"steps": [
                {"index": 1, "action_kind": "shell_command", "command_template": "a"},
                {"index": 1, "action_kind": "shell_command", "command_template": "b"},
            ]})

    def test_step_lookup(self):
        plan = Plan.model_validate({"steps": [
            {"index": 5, "action_kind": "shell_command", "command_template": "a"},
        ]})
        assert plan.step(5).command_template == "a"
        with pytest.raises(KeyError):
            plan.step(6)

    def test_json_roundtrip_keeps_sets(self):
        plan = Plan.model_validate({"steps": [
            {"index": 0, "action_kind": "discovery", "command_template": "x", "produces": ["b", "a"]},
        ]})
        data = plan.model_dump(mode="json")
        assert data["steps"][0]["produces"] == ["a", "b"]
        assert Plan.model_validate(data) == plan


class TestStepResult:
    def test_success(self):
        r = StepResult.success(0, command="echo hi", stdout="hi\n", exit_code=0)
        assert r.ok
        assert r.cause is None
        assert r.marker == "✓"

    def test_failure(self):
        r = StepResult.failure(1, StepCause.COMMAND_FAILED, detail="exit 2", exit_code=2)
        assert r.failed
        assert r.status == StepStatus.FAILED
        assert r.cause == StepCause.COMMAND_FAILED

    def test_skip_and_timeout(self):
        assert StepResult.skip(2, StepCause.UNRESOLVED_DEPENDENCY).status == StepStatus.SKIPPED
        t = StepResult.timeout(3)
        assert t.status == StepStatus.TIMED_OUT
        assert t.cause == StepCause.TIMED_OUT

    def test_cause_serializes_by_name(self):
        r = StepResult.failure(0, StepCause.TOOL_UNAVAILABLE)
        assert r.model_dump(mode="json")["cause"] == "ToolUnavailable"


class TestSession:
    def _session(self) -> Session:
        plan = Plan.model_validate({"steps": [
            {"action_kind": "shell_command", "command_template": "a"},
            {"action_kind": "shell_command", "command_template": "b"},
        ]})
        return Session(plan=plan)

    def test_ids_are_unique(self):
        assert self._session().session_id != self._session().session_id
        assert self._session().session_id.startswith("ses-")

    def test_append_then_seal(self):
        s = self._session()
        s.append(StepResult.success(1))
        s.append(StepResult.failure(0, StepCause.COMMAND_FAILED))
        s.seal({"x": "1"})
        assert s.sealed
        assert s.ended_at is not None
        assert s.placeholder_snapshot == {"x": "1"}
        assert [r.index for r in s.results] == [1, 0]          # completion order
        assert [r.index for r in s.sorted_results()] == [0, 1]

    def test_append_after_seal_raises(self):
        s = self._session()
        s.seal({})
        with pytest.raises(SessionSealedError):
            s.append(StepResult.success(0))

    def test_seal_twice_raises(self):
        s = self._session()
        s.seal({})
        with pytest.raises(SessionSealedError):
            s.seal({})

    def test_status(self):
        s = self._session()
        s.append(StepResult.success(0))
        s.append(StepResult.success(1))
        assert s.status == "ok"

        s = self._session()
        s.append(StepResult.success(0))
        s.append(StepResult.skip(1, StepCause.UNRESOLVED_DEPENDENCY))
        assert s.status == "partial"
        assert s.skipped == 1

        s = self._session()
        s.append(StepResult.failure(0, StepCause.COMMAND_FAILED))
        assert s.status == "failed"

    def test_summary(self):
        s = self._session()
        s.append(StepResult.timeout(0))
        s.seal({}, SessionOutcome.CANCELLED)
        summary = s.summary()
        assert summary["outcome"] == "cancelled"
        assert summary["timed_out"] == 1
        assert summary["total"] == 1
