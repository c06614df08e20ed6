"""Typed failures raised by the task manager, agent router and memory store."""

from __future__ import annotations


class AgentCrewError(Exception):
    """Base class for all agent-crew failures."""


class InvalidTask(AgentCrewError, ValueError):
    """Task payload is missing a required field."""


class NotFound(AgentCrewError, LookupError):
    """Referenced task does not exist."""

    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task #{task_id} not found.")
        self.task_id = task_id


class TaskStateError(AgentCrewError):
    """Requested transition is not allowed from the task's current status."""


class AlreadyInProgress(TaskStateError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task #{task_id} is already in progress.")
        self.task_id = task_id


class AlreadyDone(TaskStateError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task #{task_id} is already completed.")
        self.task_id = task_id


class ConflictingTaskInProgress(TaskStateError):
    """Another task already holds the single in-progress slot."""

    def __init__(self, task_id: int | None, current_task_id: int) -> None:
        target = f"task #{task_id}" if task_id is not None else "the next task"
        super().__init__(
            f"Cannot start {target}. Task #{current_task_id} is already in progress.",
        )
        self.task_id = task_id
        self.current_task_id = current_task_id


class NoCurrentTask(TaskStateError):
    def __init__(self) -> None:
        super().__init__("No task is currently in progress.")


class NoAgentsRegistered(AgentCrewError):
    def __init__(self) -> None:
        super().__init__("No agents are registered.")


class BackendUnavailable(AgentCrewError):
    """Durable memory backend cannot be reached; callers fall back to the mirror."""


class SerializationFailure(AgentCrewError):
    """Value cannot be converted to its stored text form."""


class ContextNotFound(AgentCrewError, KeyError):
    """Short-term memory has no live value for the key."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"No short-term memory value for key {self.key!r}"
