from __future__ import annotations

from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from agent_crew import __version__
from agent_crew.main import agent_crew

pytestmark = [
    allure.epic("CLI"),
    allure.feature("Task, Agent and Memory Commands"),
]


@pytest.fixture()
def runner(monkeypatch) -> CliRunner:
    for name in ("AGENT_CREW_MEMORY_DURABLE", "AGENT_CREW_DEFAULT_AGENT", "AGENT_CREW_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


def _invoke(runner: CliRunner, db_path: Path, *args: str):
    group, command, *rest = args
    return runner.invoke(agent_crew, [group, command, "--db-path", str(db_path), *rest])


def test_version_option(runner: CliRunner) -> None:
    result = runner.invoke(agent_crew, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_task_lifecycle_via_cli(runner: CliRunner, tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"

    created = _invoke(
        runner,
        db_path,
        "task",
        "create",
        "--title",
        "Auth endpoint",
        "--prompt",
        "Implement the authentication API endpoint with JWT token support",
        "--file",
        "src/api/auth.js",
    )
    assert created.exit_code == 0, created.output
    assert "Created task #1: Auth endpoint" in created.output

    started = _invoke(runner, db_path, "task", "start")
    assert started.exit_code == 0, started.output
    assert "Started task #1: Auth endpoint" in started.output
    assert "backend-developer" in started.output

    agents = _invoke(runner, db_path, "agent", "list")
    assert " * backend-developer" in agents.output

    status = _invoke(runner, db_path, "task", "status")
    assert "In progress: 1" in status.output
    assert "Current task: #1 Auth endpoint" in status.output

    completed = _invoke(runner, db_path, "task", "complete")
    assert completed.exit_code == 0, completed.output
    assert "Active agent: executive-architect" in completed.output
    assert "No more pending tasks." in completed.output

    shown = _invoke(runner, db_path, "task", "show", "--task-id", "1")
    assert "Status: done" in shown.output
    assert "Events: 4" in shown.output

    listed = _invoke(runner, db_path, "task", "list", "--status", "done")
    assert "#1 status=done agent=backend-developer" in listed.output


def test_task_errors_become_click_errors(runner: CliRunner, tmp_path: Path) -> None:
    db_path = tmp_path / "cli-errors.db"

    missing = _invoke(runner, db_path, "task", "start", "--task-id", "3")
    no_current = _invoke(runner, db_path, "task", "complete")
    invalid = _invoke(runner, db_path, "task", "create", "--title", " ", "--prompt", "p")

    assert missing.exit_code == 1
    assert "Task #3 not found." in missing.output
    assert no_current.exit_code == 1
    assert "No task is currently in progress." in no_current.output
    assert invalid.exit_code == 1
    assert "Task title is required." in invalid.output


def test_agent_switch_persists_across_invocations(runner: CliRunner, tmp_path: Path) -> None:
    db_path = tmp_path / "agents.db"

    switched = _invoke(runner, db_path, "agent", "switch", "doc-specialist")
    unknown = _invoke(runner, db_path, "agent", "switch", "ghost")
    listing = _invoke(runner, db_path, "agent", "list")

    assert "Active agent: doc-specialist" in switched.output
    assert unknown.exit_code == 1
    assert "Unknown agent: ghost" in unknown.output
    assert " * doc-specialist" in listing.output


def test_agent_route_infers_capabilities(runner: CliRunner, tmp_path: Path) -> None:
    result = _invoke(
        runner,
        tmp_path / "route.db",
        "agent",
        "route",
        "Create a React component",
        "--file",
        "src/components/Card.tsx",
    )

    assert result.exit_code == 0, result.output
    assert "Agent: frontend-developer" in result.output
    assert "Matched rule: capabilities" in result.output


def test_memory_commands(runner: CliRunner, tmp_path: Path) -> None:
    db_path = tmp_path / "memory.db"

    stored = _invoke(runner, db_path, "memory", "set", "settings", '{"theme": "dark"}')
    fetched = _invoke(runner, db_path, "memory", "get", "settings")
    missing = _invoke(runner, db_path, "memory", "get", "nope")
    health = _invoke(runner, db_path, "memory", "health")

    assert stored.exit_code == 0, stored.output
    assert fetched.output.strip() == '{"theme": "dark"}'
    assert missing.exit_code == 1
    assert "No short-term memory value for key 'nope'" in missing.output
    assert "Backend: sqlite" in health.output
    assert "Degraded: False" in health.output


def test_ask_runs_a_full_turn(runner: CliRunner, tmp_path: Path) -> None:
    db_path = tmp_path / "ask.db"

    answer = runner.invoke(agent_crew, ["ask", "--db-path", str(db_path), "task status"])
    recent = _invoke(runner, db_path, "memory", "recent", "--limit", "5")

    assert answer.exit_code == 0, answer.output
    assert "Total tasks: 0" in answer.output
    assert "Entries: 2" in recent.output
    assert "user: task status" in recent.output


def test_invalid_log_level_is_reported(runner: CliRunner, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("AGENT_CREW_LOG_LEVEL", "chatty")

    result = _invoke(runner, tmp_path / "log.db", "task", "status")

    assert result.exit_code == 1
    assert "Invalid AGENT_CREW_LOG_LEVEL: 'CHATTY'" in result.output
