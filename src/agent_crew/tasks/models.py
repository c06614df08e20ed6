"""Domain models for the task lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from agent_crew.agents.models import Agent


class TaskStatus(str, Enum):
    """Task lifecycle states: pending -> in-progress -> done."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"


@dataclass(slots=True)
class TaskCreate:
    """Input payload for creating a task."""

    title: str
    prompt: str
    file: str | None = None


@dataclass(slots=True)
class TaskView:
    """Readable task view for callers and CLI."""

    task_id: int
    title: str
    file: str | None
    prompt: str
    status: TaskStatus
    assigned_agent: str | None
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(slots=True)
class TaskEventView:
    """Task event entry for audit trail."""

    event_id: int
    task_id: int
    event_type: str
    status_from: TaskStatus | None
    status_to: TaskStatus | None
    created_at: datetime
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TaskDetails:
    """Task with its event stream."""

    task: TaskView
    events: list[TaskEventView]


@dataclass(slots=True)
class TaskStatusSummary:
    total: int
    pending: int
    in_progress: int
    done: int
    percent_complete: int

    @classmethod
    def from_counts(cls, *, pending: int, in_progress: int, done: int) -> TaskStatusSummary:
        total = pending + in_progress + done
        return cls(
            total=total,
            pending=pending,
            in_progress=in_progress,
            done=done,
            percent_complete=round(100 * done / total) if total else 0,
        )


@dataclass(slots=True)
class AssignmentResult:
    """Outcome of routing a task to an agent."""

    success: bool
    task: TaskView | None = None
    agent: Agent | None = None
    capabilities: tuple[str, ...] = ()
    matched_rule: str | None = None
    message: str = ""
