"""Task lifecycle, capability extraction and task commands."""

from agent_crew.tasks.capabilities import determine_required_capabilities
from agent_crew.tasks.commands import TaskCommandHandler, TaskCommandResult, TaskCommandType
from agent_crew.tasks.manager import TaskManager
from agent_crew.tasks.models import (
    AssignmentResult,
    TaskCreate,
    TaskDetails,
    TaskEventView,
    TaskStatus,
    TaskStatusSummary,
    TaskView,
)
from agent_crew.tasks.repository import TaskRepository

__all__ = [
    "AssignmentResult",
    "TaskCommandHandler",
    "TaskCommandResult",
    "TaskCommandType",
    "TaskCreate",
    "TaskDetails",
    "TaskEventView",
    "TaskManager",
    "TaskRepository",
    "TaskStatus",
    "TaskStatusSummary",
    "TaskView",
    "determine_required_capabilities",
]
