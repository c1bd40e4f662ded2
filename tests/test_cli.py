"""
Tests for the command-line interface.

Plans run for real (``sh -c``); tool installation is disabled by the
test config so nothing touches the host's package manager.
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from conftest import posix_only
from stepwise import __version__
from stepwise.main import cli


@pytest.fixture
def workspace(tmp_path: Path) -> dict[str, Path]:
    sessions = tmp_path / "sessions"
    cfg = tmp_path / "stepwise.yml"
    cfg.write_text(
        "auto_install: false\n"
        "default_timeout: 10\n"
        f"sessions_dir: {sessions}\n"
    )
    return {"root": tmp_path, "config": cfg, "sessions": sessions}


def _plan(root: Path, data: dict, name: str = "plan.json") -> Path:
    path = root / name
    path.write_text(json.dumps(data))
    return path


def _invoke(workspace: dict[str, Path], *args: str):
    runner = CliRunner()
    return runner.invoke(cli, ["--quiet", "--config", str(workspace["config"]), *args])


GATEWAY_PLAN = {
    "explanation": "Find the gateway and greet it.",
    "steps": [
        {"action_kind": "discovery", "command_template": "echo 'default via 10.9.8.1 dev eth0'",
         "produces": ["default_gateway"], "purpose": "find gateway"},
        {"action_kind": "shell_command", "command_template": "echo hello {default_gateway}"},
    ],
}


class TestBasics:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "check", "sessions", "config", "web"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


@posix_only
class TestRun:
    def test_run_json(self, workspace):
        plan = _plan(workspace["root"], GATEWAY_PLAN)
        result = _invoke(workspace, "run", str(plan), "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["session"]["status"] == "ok"
        assert data["placeholders"] == {"default_gateway": "10.9.8.1"}
        assert data["results"][1]["stdout"] == "hello 10.9.8.1\n"
        assert Path(data["session_path"]).is_file()

    def test_run_text(self, workspace):
        plan = _plan(workspace["root"], GATEWAY_PLAN)
        result = _invoke(workspace, "run", str(plan))
        assert result.exit_code == 0, result.output
        assert "✓ step 0" in result.output
        assert "default_gateway=10.9.8.1" in result.output
        assert "Session saved" in result.output

    def test_run_writes_transcript(self, workspace):
        plan = _plan(workspace["root"], GATEWAY_PLAN)
        out = workspace["root"] / "transcript.txt"
        result = _invoke(workspace, "run", str(plan), "-o", str(out))
        assert result.exit_code == 0, result.output
        text = out.read_text()
        assert "Explanation:" in text
        assert "Command: echo hello 10.9.8.1" in text
        assert "Purpose: find gateway" in text

    def test_failed_step_exits_nonzero(self, workspace):
        plan = _plan(workspace["root"], {"steps": [
            {"action_kind": "shell_command", "command_template": "exit 4"},
        ]})
        result = _invoke(workspace, "run", str(plan))
        assert result.exit_code == 1
        assert "CommandFailed" in result.output

    def test_seed_option(self, workspace):
        plan = _plan(workspace["root"], {"steps": [
            {"action_kind": "shell_command", "command_template": "echo {target_ip}"},
        ]})
        result = _invoke(workspace, "run", str(plan), "--json", "--seed", "target_ip=10.0.0.7")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["results"][0]["stdout"] == "10.0.0.7\n"

    def test_request_seeds_target(self, workspace):
        plan = _plan(workspace["root"], {"steps": [
            {"action_kind": "shell_command", "command_template": "echo {subnet_cidr}"},
        ]})
        result = _invoke(workspace, "run", str(plan), "--json", "--request", "sweep 10.1.0.0/16 please")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["placeholders"] == {"subnet_cidr": "10.1.0.0/16"}

    def test_bad_seed_syntax(self, workspace):
        plan = _plan(workspace["root"], GATEWAY_PLAN)
        result = _invoke(workspace, "run", str(plan), "--seed", "novalue")
        assert result.exit_code == 2

    def test_rejected_plan(self, workspace):
        plan = _plan(workspace["root"], {"steps": [
            {"action_kind": "shell_command", "command_template": "ping {ghost}"},
        ]})
        result = _invoke(workspace, "run", str(plan), "--json")
        assert result.exit_code == 1
        assert "Plan rejected" in json.loads(result.stdout)["error"]
        assert not workspace["sessions"].exists()


class TestRunOptions:
    @pytest.mark.parametrize("args", [
        ("--timeout", "0"),
        ("--timeout", "-1"),
        ("--max-workers", "0"),
    ])
    def test_out_of_range_values_rejected(self, workspace, args):
        plan = _plan(workspace["root"], GATEWAY_PLAN)
        result = _invoke(workspace, "run", str(plan), *args)
        assert result.exit_code == 2
        assert "Invalid value" in result.output
        assert not workspace["sessions"].exists()


class TestCheck:
    def test_valid(self, workspace):
        plan = _plan(workspace["root"], GATEWAY_PLAN)
        result = _invoke(workspace, "check", str(plan))
        assert result.exit_code == 0
        assert "Plan is valid" in result.output
        assert "step 1 waits on 0" in result.output

    def test_invalid_json(self, workspace):
        plan = _plan(workspace["root"], {"steps": [
            {"action_kind": "discovery", "command_template": "x {a}", "produces": ["a"]},
        ]})
        result = _invoke(workspace, "check", str(plan), "--json")
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["valid"] is False
        assert "cycle" in data["errors"][0]


@posix_only
class TestSessions:
    def test_list_and_show(self, workspace):
        plan = _plan(workspace["root"], GATEWAY_PLAN)
        run = _invoke(workspace, "run", str(plan), "--json")
        session_id = json.loads(run.stdout)["session"]["session_id"]

        listed = _invoke(workspace, "sessions", "list", "--json")
        assert listed.exit_code == 0
        assert [s["session_id"] for s in json.loads(listed.stdout)["sessions"]] == [session_id]

        shown = _invoke(workspace, "sessions", "show", session_id)
        assert shown.exit_code == 0
        assert f"Session {session_id}" in shown.output

        shown_json = _invoke(workspace, "sessions", "show", session_id, "--json")
        assert json.loads(shown_json.stdout)["session_id"] == session_id

    def test_list_empty(self, workspace):
        result = _invoke(workspace, "sessions", "list")
        assert result.exit_code == 0
        assert "No sessions recorded yet." in result.output

    def test_show_missing(self, workspace):
        result = _invoke(workspace, "sessions", "show", "ses-missing")
        assert result.exit_code == 1
        assert "Session not found" in result.output


class TestConfigCommand:
    def test_check_json(self, workspace):
        result = _invoke(workspace, "config", "check", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["valid"] is True
        assert data["config"]["auto_install"] is False
        assert data["sessions_dir"] == str(workspace["sessions"])

    def test_check_text(self, workspace):
        result = _invoke(workspace, "config", "check")
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_missing_config_file(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["--config", str(tmp_path / "nope.yml"), "config", "check"])
        assert result.exit_code == 1
        assert "not found" in result.output
