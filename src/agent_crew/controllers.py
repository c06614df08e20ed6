"""Controllers for agent-crew CLI commands."""

from __future__ import annotations

import json
from contextlib import AbstractContextManager
from dataclasses import dataclass
from pathlib import Path

from agent_crew.config import Settings
from agent_crew.session import CrewSession
from agent_crew.services import CrewServices, open_services
from agent_crew.tasks.capabilities import determine_required_capabilities
from agent_crew.tasks.commands import format_assignment, format_summary
from agent_crew.tasks.models import TaskCreate, TaskStatus, TaskView


@dataclass(slots=True)
class DbCommand:
    """CLI input for commands that only need the database."""

    db_path: Path | None


@dataclass(slots=True)
class TaskCreateCommand:
    db_path: Path | None
    title: str
    prompt: str
    file: str | None = None


@dataclass(slots=True)
class TaskListCommand:
    db_path: Path | None
    status: str | None = None


@dataclass(slots=True)
class TaskIdCommand:
    """CLI input for commands that target one task; ``None`` means the default choice."""

    db_path: Path | None
    task_id: int | None = None


@dataclass(slots=True)
class AgentSwitchCommand:
    db_path: Path | None
    agent_id: str


@dataclass(slots=True)
class AgentRouteCommand:
    db_path: Path | None
    description: str
    capabilities: tuple[str, ...] = ()
    file: str | None = None


@dataclass(slots=True)
class MemoryGetCommand:
    db_path: Path | None
    key: str


@dataclass(slots=True)
class MemorySetCommand:
    db_path: Path | None
    key: str
    value: str
    ttl_seconds: float | None = None


@dataclass(slots=True)
class MemoryRecentCommand:
    db_path: Path | None
    limit: int = 10


@dataclass(slots=True)
class AskCommand:
    db_path: Path | None
    query: str


class CrewCliController:
    """Coordinates task, agent, memory and session CLI operations.

    Typed task failures propagate to the CLI layer, which reports them.
    """

    def create_task(self, command: TaskCreateCommand) -> list[str]:
        with _services(command.db_path) as services:
            task = services.tasks.create_task(
                TaskCreate(title=command.title, prompt=command.prompt, file=command.file),
            )
        return [f"Created task #{task.task_id}: {task.title}"]

    def list_tasks(self, command: TaskListCommand) -> list[str]:
        status = _parse_status(command.status)
        with _services(command.db_path) as services:
            tasks = services.repository.list_tasks(status=status)
        lines = [f"Tasks: {len(tasks)}"]
        lines.extend(f"  {_task_line(task)}" for task in tasks)
        return lines

    def start_task(self, command: TaskIdCommand) -> list[str]:
        with _services(command.db_path) as services:
            if command.task_id is None:
                task = services.tasks.start_next_task()
                if task is None:
                    return ["No pending tasks available to start."]
            else:
                task = services.tasks.start_task_by_id(command.task_id)
            assignment = services.tasks.assign_task_to_agent(task.task_id)
        lines = [f"Started task #{task.task_id}: {task.title}"]
        if assignment.success:
            lines.extend(format_assignment(assignment).splitlines())
        else:
            lines.append(f"Assignment skipped: {assignment.message}")
        return lines

    def complete_task(self, command: DbCommand) -> list[str]:
        with _services(command.db_path) as services:
            task = services.tasks.complete_current_task()
            pending = services.tasks.get_next_pending_task()
            active = services.registry.get_active_agent()
        lines = [
            f"Completed task #{task.task_id}: {task.title}",
            f"Active agent: {active.agent_id}",
        ]
        if pending is not None:
            lines.append(f"Next pending task: #{pending.task_id} - {pending.title}")
        else:
            lines.append("No more pending tasks.")
        return lines

    def assign_task(self, command: TaskIdCommand) -> list[str]:
        with _services(command.db_path) as services:
            task_id = command.task_id
            if task_id is None:
                current = services.tasks.get_current_task()
                if current is None:
                    return ["There is no task currently in progress to assign."]
                task_id = current.task_id
            result = services.tasks.assign_task_to_agent(task_id)
        if not result.success:
            raise ValueError(result.message)
        return [*format_assignment(result).splitlines(), f"Matched rule: {result.matched_rule}"]

    def task_status(self, command: DbCommand) -> list[str]:
        with _services(command.db_path) as services:
            summary = services.tasks.get_task_status_summary()
            current = services.tasks.get_current_task()
        lines = format_summary(summary).splitlines()
        if current is not None:
            lines.append(f"Current task: #{current.task_id} {current.title}")
        else:
            lines.append("Current task: -")
        return lines

    def show_task(self, command: TaskIdCommand) -> list[str]:
        if command.task_id is None:
            raise ValueError("Task id is required.")
        with _services(command.db_path) as services:
            details = services.tasks.get_task_details(command.task_id)

        task = details.task
        lines = [
            f"Task: #{task.task_id}",
            f"Title: {task.title}",
            f"Status: {task.status.value}",
            f"File: {task.file or '-'}",
            f"Assigned agent: {task.assigned_agent or '-'}",
            f"Created: {task.created_at.isoformat()}",
            f"Started: {task.started_at.isoformat() if task.started_at else '-'}",
            f"Completed: {task.completed_at.isoformat() if task.completed_at else '-'}",
            f"Prompt: {task.prompt}",
            f"Events: {len(details.events)}",
        ]
        for event in details.events:
            lines.append(
                f"  {event.created_at.isoformat()} {event.event_type} "
                f"{event.status_from.value if event.status_from else '-'} -> "
                f"{event.status_to.value if event.status_to else '-'}",
            )
        return lines

    def list_agents(self, command: DbCommand) -> list[str]:
        with _services(command.db_path) as services:
            agents = services.registry.get_all_agents()
            active_id = services.registry.active_agent_id
        lines = [f"Agents: {len(agents)}"]
        for agent in agents:
            marker = "*" if agent.agent_id == active_id else " "
            lines.append(
                f" {marker} {agent.agent_id} name={agent.name} "
                f"capabilities={','.join(sorted(agent.capabilities))}",
            )
        return lines

    def switch_agent(self, command: AgentSwitchCommand) -> list[str]:
        with _services(command.db_path) as services:
            if not services.registry.switch_to_agent(command.agent_id):
                known = ", ".join(agent.agent_id for agent in services.registry.get_all_agents())
                raise ValueError(f"Unknown agent: {command.agent_id}. Use one of {known}.")
            agent = services.registry.get_active_agent()
        return [f"Active agent: {agent.agent_id} ({agent.name})"]

    def route(self, command: AgentRouteCommand) -> list[str]:
        capabilities = command.capabilities or determine_required_capabilities(
            command.file,
            command.description,
        )
        with _services(command.db_path) as services:
            decision = services.registry.route(command.description, capabilities)
        return [
            f"Agent: {decision.agent.agent_id}",
            f"Matched rule: {decision.matched_rule}",
            f"Capabilities: {', '.join(capabilities) or '-'}",
        ]

    def memory_get(self, command: MemoryGetCommand) -> list[str]:
        with _services(command.db_path) as services:
            value = services.memory.get_context(command.key)
        return [json.dumps(value, ensure_ascii=False, sort_keys=True)]

    def memory_set(self, command: MemorySetCommand) -> list[str]:
        try:
            value = json.loads(command.value)
        except ValueError:
            value = command.value
        with _services(command.db_path) as services:
            result = services.memory.store_context(
                command.key,
                value,
                ttl_seconds=command.ttl_seconds,
            )
        if not result.ok:
            raise ValueError(str(result.error))
        return [f"Stored {command.key}"]

    def memory_recent(self, command: MemoryRecentCommand) -> list[str]:
        with _services(command.db_path) as services:
            entries = services.memory.get_recent_conversations(command.limit)
        lines = [f"Entries: {len(entries)}"]
        lines.extend(
            f"  {entry.timestamp.isoformat()} {entry.role.value}: {entry.content}"
            for entry in entries
        )
        return lines

    def memory_health(self, command: DbCommand) -> list[str]:
        with _services(command.db_path) as services:
            health = services.memory.health_check()
        return [
            f"Backend: {health.backend}",
            f"Degraded: {health.degraded}",
            f"Durable configured: {health.durable_configured}",
            f"Durable reachable: {health.durable_reachable}",
            f"Detail: {health.detail or '-'}",
        ]

    def ask(self, command: AskCommand) -> list[str]:
        with _services(command.db_path) as services:
            turn = CrewSession(services).handle(command.query)
        lines = str(turn.response).splitlines() or [""]
        if turn.hook_failures:
            lines.append(f"Hook failures: {', '.join(turn.hook_failures)}")
        return lines


def _services(db_path: Path | None) -> AbstractContextManager[CrewServices]:
    return open_services(Settings.from_env(db_path=db_path))


def _parse_status(value: str | None) -> TaskStatus | None:
    if value is None:
        return None
    return TaskStatus(value.strip().lower())


def _task_line(task: TaskView) -> str:
    return (
        f"#{task.task_id} status={task.status.value} agent={task.assigned_agent or '-'} "
        f"file={task.file or '-'} title={task.title}"
    )

