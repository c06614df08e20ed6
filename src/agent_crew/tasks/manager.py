"""Task lifecycle operations and agent assignment."""

from __future__ import annotations

import logging
import threading

from agent_crew.agents.registry import AgentRegistry
from agent_crew.errors import (
    ConflictingTaskInProgress,
    InvalidTask,
    NoAgentsRegistered,
    NoCurrentTask,
    NotFound,
)
from agent_crew.tasks.capabilities import determine_required_capabilities
from agent_crew.tasks.models import (
    AssignmentResult,
    TaskCreate,
    TaskDetails,
    TaskStatus,
    TaskStatusSummary,
    TaskView,
)
from agent_crew.tasks.repository import TaskRepository

logger = logging.getLogger(__name__)


class TaskManager:
    """Owns the task state machine; at most one task is in progress at a time.

    Lock order is TaskManager, then AgentRegistry, then MemoryStore. Methods
    here may call into the registry while holding the manager lock, never the
    other way round.
    """

    def __init__(self, repository: TaskRepository, registry: AgentRegistry) -> None:
        self.repository = repository
        self.registry = registry
        self._lock = threading.RLock()

    def create_task(self, payload: TaskCreate) -> TaskView:
        if not payload.title or not payload.title.strip():
            raise InvalidTask("Task title is required.")
        if not payload.prompt or not payload.prompt.strip():
            raise InvalidTask("Task prompt is required.")
        file = payload.file.strip() if payload.file and payload.file.strip() else None
        with self._lock:
            task = self.repository.create_task(
                TaskCreate(title=payload.title.strip(), prompt=payload.prompt, file=file),
            )
        logger.info("Created task #%d: %s", task.task_id, task.title)
        return task

    def start_next_task(self) -> TaskView | None:
        """Start the lowest-id pending task; ``None`` when nothing is pending."""

        with self._lock:
            current = self.repository.get_in_progress()
            if current is not None:
                raise ConflictingTaskInProgress(None, current.task_id)
            pending = self.repository.get_next_pending()
            if pending is None:
                return None
            return self._start(pending.task_id)

    def start_task_by_id(self, task_id: int) -> TaskView:
        with self._lock:
            return self._start(task_id)

    def complete_current_task(self) -> TaskView:
        """Mark the in-progress task done and hand control back to the default agent."""

        with self._lock:
            current = self.repository.get_in_progress()
            if current is None:
                raise NoCurrentTask
            task = self.repository.complete_task(current.task_id)
            logger.info("Completed task #%d", task.task_id)
            self.registry.switch_to_agent(self.registry.default_agent_id)
            return task

    def assign_task_to_agent(self, task_id: int) -> AssignmentResult:
        """Route a task to the best agent, activate that agent and record it."""

        with self._lock:
            task = self.repository.get_task(task_id)
            if task is None:
                return AssignmentResult(success=False, message=f"Task #{task_id} not found.")
            capabilities = determine_required_capabilities(task.file, task.prompt)
            try:
                decision = self.registry.route(task.prompt, capabilities)
            except NoAgentsRegistered as error:
                return AssignmentResult(
                    success=False,
                    task=task,
                    capabilities=capabilities,
                    message=str(error),
                )
            agent = decision.agent
            self.registry.switch_to_agent(agent.agent_id)
            details = decision.to_event_details()
            details["capabilities"] = list(capabilities)
            task = self.repository.assign_agent(task_id, agent.agent_id, details=details)
            logger.info(
                "Assigned task #%d to %s (%s)",
                task_id,
                agent.agent_id,
                decision.matched_rule,
            )
            return AssignmentResult(
                success=True,
                task=task,
                agent=agent,
                capabilities=capabilities,
                matched_rule=decision.matched_rule,
                message=f"Task #{task_id} assigned to {agent.name}.",
            )

    def get_all_tasks(self) -> list[TaskView]:
        return self.repository.list_tasks()

    def get_task_by_id(self, task_id: int) -> TaskView | None:
        return self.repository.get_task(task_id)

    def get_current_task(self) -> TaskView | None:
        return self.repository.get_in_progress()

    def get_next_pending_task(self) -> TaskView | None:
        return self.repository.get_next_pending()

    def get_task_details(self, task_id: int) -> TaskDetails:
        details = self.repository.get_task_details(task_id)
        if details is None:
            raise NotFound(task_id)
        return details

    def get_task_status_summary(self) -> TaskStatusSummary:
        counts = self.repository.count_by_status()
        return TaskStatusSummary.from_counts(
            pending=counts[TaskStatus.PENDING],
            in_progress=counts[TaskStatus.IN_PROGRESS],
            done=counts[TaskStatus.DONE],
        )

    def _start(self, task_id: int) -> TaskView:
        task = self.repository.start_task(task_id)
        logger.info("Started task #%d: %s", task.task_id, task.title)
        return task
