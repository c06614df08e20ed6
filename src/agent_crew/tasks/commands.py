"""Free-text task commands mapped onto task manager operations."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from agent_crew.errors import InvalidTask, NotFound, TaskStateError
from agent_crew.tasks.manager import TaskManager
from agent_crew.tasks.models import AssignmentResult, TaskCreate, TaskStatusSummary, TaskView

_TASK_ID_RE = re.compile(r"task.*?(\d+)")
_START_RE = re.compile(r"\bstart\b.*\btask\b")


class TaskCommandType(str, Enum):
    LIST_TASKS = "list-tasks"
    TASK_STATUS = "task-status"
    START_TASK = "start-task"
    COMPLETE_TASK = "complete-task"
    CURRENT_TASK = "current-task"
    NEXT_TASK = "next-task"
    TASK_DETAILS = "task-details"
    CREATE_TASK = "create-task"
    ASSIGN_TASK = "assign-task"


@dataclass(slots=True)
class TaskCommandResult:
    command_type: TaskCommandType
    success: bool
    response: str
    data: Any = None


class TaskCommandHandler:
    """Recognise task commands in a query and run them.

    Typed task failures become unsuccessful results carrying the failure's
    message; they are not raised to the caller.
    """

    def __init__(self, manager: TaskManager) -> None:
        self.manager = manager

    def process(self, text: str | None) -> TaskCommandResult | None:
        """Run the command in ``text``; ``None`` when it is not a task command."""

        if not text or not isinstance(text, str):
            return None
        command = text.lower().strip()
        match = _TASK_ID_RE.search(command)
        task_id = int(match.group(1)) if match else None

        if "list task" in command:
            tasks = self.manager.get_all_tasks()
            return _ok(TaskCommandType.LIST_TASKS, format_task_list(tasks), tasks)
        if "task status" in command:
            summary = self.manager.get_task_status_summary()
            return _ok(TaskCommandType.TASK_STATUS, format_summary(summary), summary)
        if _START_RE.search(command):
            return self._start(task_id)
        if "complete task" in command:
            return self._complete()
        if "current task" in command:
            current = self.manager.get_current_task()
            if current is None:
                return _failed(TaskCommandType.CURRENT_TASK, "No task is currently in progress.")
            return _ok(TaskCommandType.CURRENT_TASK, format_task(current), current)
        if "next task" in command:
            pending = self.manager.get_next_pending_task()
            if pending is None:
                return _failed(TaskCommandType.NEXT_TASK, "No pending tasks available.")
            return _ok(TaskCommandType.NEXT_TASK, format_task(pending), pending)
        if "task details" in command and task_id is not None:
            task = self.manager.get_task_by_id(task_id)
            if task is None:
                return _failed(TaskCommandType.TASK_DETAILS, f"Task #{task_id} not found.")
            return _ok(TaskCommandType.TASK_DETAILS, format_task(task), task)
        if "create task" in command:
            return _ok(
                TaskCommandType.CREATE_TASK,
                "Please provide the task details: title, file path, and prompt.",
            )
        if "assign task" in command or "delegate task" in command:
            return self._assign(task_id)
        return None

    def create_task(self, title: str, prompt: str, file: str | None = None) -> TaskCommandResult:
        try:
            task = self.manager.create_task(TaskCreate(title=title, prompt=prompt, file=file))
        except InvalidTask:
            return _failed(
                TaskCommandType.CREATE_TASK,
                "Task creation failed. Title and prompt are required.",
            )
        return _ok(
            TaskCommandType.CREATE_TASK,
            f'Task #{task.task_id}: "{task.title}" has been created.',
            task,
        )

    def _start(self, task_id: int | None) -> TaskCommandResult:
        try:
            if task_id is None:
                task = self.manager.start_next_task()
                if task is None:
                    return _failed(
                        TaskCommandType.START_TASK,
                        "No pending tasks available to start.",
                    )
            else:
                task = self.manager.start_task_by_id(task_id)
        except (NotFound, TaskStateError) as error:
            return _failed(TaskCommandType.START_TASK, str(error))

        response = f"Started task #{task.task_id}: {task.title}"
        assignment = self.manager.assign_task_to_agent(task.task_id)
        if assignment.success:
            response += "\n\n" + format_assignment(assignment)
            task = assignment.task or task
        return _ok(TaskCommandType.START_TASK, response, task)

    def _complete(self) -> TaskCommandResult:
        try:
            task = self.manager.complete_current_task()
        except TaskStateError as error:
            return _failed(TaskCommandType.COMPLETE_TASK, str(error))

        pending = self.manager.get_next_pending_task()
        if pending is not None:
            follow_up = f"Next pending task: #{pending.task_id} - {pending.title}"
        else:
            follow_up = "No more pending tasks."
        return _ok(
            TaskCommandType.COMPLETE_TASK,
            f"Completed task #{task.task_id}: {task.title}\n\n{follow_up}",
            task,
        )

    def _assign(self, task_id: int | None) -> TaskCommandResult:
        if task_id is None:
            current = self.manager.get_current_task()
            if current is None:
                return _failed(
                    TaskCommandType.ASSIGN_TASK,
                    "There is no task currently in progress to assign.",
                )
            task_id = current.task_id
        result = self.manager.assign_task_to_agent(task_id)
        response = format_assignment(result) if result.success else result.message
        return TaskCommandResult(TaskCommandType.ASSIGN_TASK, result.success, response, result)


def format_task(task: TaskView) -> str:
    lines = [
        f"Task #{task.task_id}: {task.title}",
        f"Status: {task.status.value}",
        f"File: {task.file or 'N/A'}",
    ]
    if task.assigned_agent:
        lines.append(f"Assigned agent: {task.assigned_agent}")
    lines.append(f"Prompt: {task.prompt}")
    return "\n".join(lines)


def format_task_list(tasks: list[TaskView]) -> str:
    if not tasks:
        return "No tasks found."
    return "\n".join(
        f"#{task.task_id} [{task.status.value}] {task.title} ({task.file or 'N/A'})"
        for task in tasks
    )


def format_summary(summary: TaskStatusSummary) -> str:
    return "\n".join(
        (
            f"Total tasks: {summary.total}",
            f"Pending: {summary.pending}",
            f"In progress: {summary.in_progress}",
            f"Completed: {summary.done}",
            f"Completion: {summary.percent_complete}%",
        ),
    )


def format_assignment(result: AssignmentResult) -> str:
    if result.agent is None or result.task is None:
        return result.message
    capabilities = ", ".join(result.capabilities) or "none"
    return (
        f"Task #{result.task.task_id} assigned to {result.agent.name} "
        f"({result.agent.agent_id}).\nRequired capabilities: {capabilities}"
    )


def _ok(command_type: TaskCommandType, response: str, data: Any = None) -> TaskCommandResult:
    return TaskCommandResult(command_type, True, response, data)


def _failed(command_type: TaskCommandType, response: str) -> TaskCommandResult:
    return TaskCommandResult(command_type, False, response)
