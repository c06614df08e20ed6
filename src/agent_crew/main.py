"""CLI entrypoint for agent-crew."""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import rich_click as click

from agent_crew import __version__
from agent_crew.config import Settings
from agent_crew.controllers import (
    AgentRouteCommand,
    AgentSwitchCommand,
    AskCommand,
    CrewCliController,
    DbCommand,
    MemoryGetCommand,
    MemoryRecentCommand,
    MemorySetCommand,
    TaskCreateCommand,
    TaskIdCommand,
    TaskListCommand,
)
from agent_crew.errors import AgentCrewError
from agent_crew.tasks.models import TaskStatus

click.rich_click.USE_MARKDOWN = True
CONTROLLER = CrewCliController()

C = TypeVar("C")

_db_path_option = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path.",
)


@click.group()
@click.version_option(version=__version__, prog_name="agent-crew")
def agent_crew() -> None:
    """Multi-agent task coordination CLI."""

    try:
        settings = Settings.from_env()
        settings.validate()
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@agent_crew.group()
def task() -> None:
    """Task lifecycle commands."""


@task.command("create")
@_db_path_option
@click.option("--title", required=True, help="Short task title.")
@click.option("--prompt", required=True, help="Instructions for the agent.")
@click.option("--file", "file_path", default=None, help="Target file or resource.")
def task_create(db_path: Path | None, title: str, prompt: str, file_path: str | None) -> None:
    """Create a pending task."""

    _run(
        CONTROLLER.create_task,
        TaskCreateCommand(db_path=db_path, title=title, prompt=prompt, file=file_path),
    )


@task.command("list")
@_db_path_option
@click.option(
    "--status",
    type=click.Choice([status.value for status in TaskStatus]),
    default=None,
    help="Only list tasks with this status.",
)
def task_list(db_path: Path | None, status: str | None) -> None:
    """List tasks in id order."""

    _run(CONTROLLER.list_tasks, TaskListCommand(db_path=db_path, status=status))


@task.command("start")
@_db_path_option
@click.option(
    "--task-id",
    type=int,
    default=None,
    help="Task to start. Defaults to the next pending task.",
)
def task_start(db_path: Path | None, task_id: int | None) -> None:
    """Start a task and assign it to the best agent."""

    _run(CONTROLLER.start_task, TaskIdCommand(db_path=db_path, task_id=task_id))


@task.command("complete")
@_db_path_option
def task_complete(db_path: Path | None) -> None:
    """Complete the task in progress and switch back to the default agent."""

    _run(CONTROLLER.complete_task, DbCommand(db_path=db_path))


@task.command("assign")
@_db_path_option
@click.option(
    "--task-id",
    type=int,
    default=None,
    help="Task to assign. Defaults to the task in progress.",
)
def task_assign(db_path: Path | None, task_id: int | None) -> None:
    """Route a task to the best-matching agent."""

    _run(CONTROLLER.assign_task, TaskIdCommand(db_path=db_path, task_id=task_id))


@task.command("status")
@_db_path_option
def task_status(db_path: Path | None) -> None:
    """Show task counts and completion percentage."""

    _run(CONTROLLER.task_status, DbCommand(db_path=db_path))


@task.command("show")
@_db_path_option
@click.option("--task-id", type=int, required=True, help="Task id.")
def task_show(db_path: Path | None, task_id: int) -> None:
    """Show one task with its event history."""

    _run(CONTROLLER.show_task, TaskIdCommand(db_path=db_path, task_id=task_id))


@agent_crew.group()
def agent() -> None:
    """Agent registry commands."""


@agent.command("list")
@_db_path_option
def agent_list(db_path: Path | None) -> None:
    """List agents; the active one is marked with *."""

    _run(CONTROLLER.list_agents, DbCommand(db_path=db_path))


@agent.command("switch")
@_db_path_option
@click.argument("agent_id")
def agent_switch(db_path: Path | None, agent_id: str) -> None:
    """Make AGENT_ID the active agent."""

    _run(CONTROLLER.switch_agent, AgentSwitchCommand(db_path=db_path, agent_id=agent_id))


@agent.command("route")
@_db_path_option
@click.argument("description")
@click.option(
    "--capability",
    "capabilities",
    multiple=True,
    help="Required capability. Can be repeated.",
)
@click.option("--file", "file_path", default=None, help="Target file used to infer capabilities.")
def agent_route(
    db_path: Path | None,
    description: str,
    capabilities: tuple[str, ...],
    file_path: str | None,
) -> None:
    """Show which agent DESCRIPTION would be routed to, without switching."""

    _run(
        CONTROLLER.route,
        AgentRouteCommand(
            db_path=db_path,
            description=description,
            capabilities=capabilities,
            file=file_path,
        ),
    )


@agent_crew.group()
def memory() -> None:
    """Short-term and episodic memory commands."""


@memory.command("get")
@_db_path_option
@click.argument("key")
def memory_get(db_path: Path | None, key: str) -> None:
    """Print the JSON value stored under KEY."""

    _run(CONTROLLER.memory_get, MemoryGetCommand(db_path=db_path, key=key))


@memory.command("set")
@_db_path_option
@click.argument("key")
@click.argument("value")
@click.option(
    "--ttl-seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Expire the value after this many seconds.",
)
def memory_set(db_path: Path | None, key: str, value: str, ttl_seconds: float | None) -> None:
    """Store VALUE (parsed as JSON when possible) under KEY."""

    _run(
        CONTROLLER.memory_set,
        MemorySetCommand(db_path=db_path, key=key, value=value, ttl_seconds=ttl_seconds),
    )


@memory.command("recent")
@_db_path_option
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=10,
    show_default=True,
    help="How many entries to print.",
)
def memory_recent(db_path: Path | None, limit: int) -> None:
    """Print the most recent episodic entries, oldest first."""

    _run(CONTROLLER.memory_recent, MemoryRecentCommand(db_path=db_path, limit=limit))


@memory.command("health")
@_db_path_option
def memory_health(db_path: Path | None) -> None:
    """Report the memory backend mode."""

    _run(CONTROLLER.memory_health, DbCommand(db_path=db_path))


@agent_crew.command("ask")
@_db_path_option
@click.argument("query")
def ask(db_path: Path | None, query: str) -> None:
    """Run QUERY through the hook pipeline and task command handler."""

    _run(CONTROLLER.ask, AskCommand(db_path=db_path, query=query))


def _run(handler: Callable[[C], list[str]], command: C) -> None:
    try:
        lines = handler(command)
    except (AgentCrewError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    agent_crew()
