"""Wiring of the memory store, agent registry, hook pipeline and task manager."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from agent_crew.agents.bus import Scratchpad
from agent_crew.agents.registry import AgentRegistry
from agent_crew.config import Settings
from agent_crew.hooks.memory_hooks import MemoryHooks, register_memory_hooks
from agent_crew.hooks.pipeline import HookPipeline
from agent_crew.memory.store import MemoryStore
from agent_crew.tasks.commands import TaskCommandHandler
from agent_crew.tasks.manager import TaskManager
from agent_crew.tasks.repository import TaskRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CrewServices:
    """All long-lived collaborators of one process."""

    settings: Settings
    memory: MemoryStore
    bus: Scratchpad
    registry: AgentRegistry
    pipeline: HookPipeline
    memory_hooks: MemoryHooks
    repository: TaskRepository
    tasks: TaskManager
    commands: TaskCommandHandler

    def close(self) -> None:
        self.repository.close()
        self.memory.close()


def build_services(settings: Settings) -> CrewServices:
    """Open storage and assemble the crew; the caller owns ``close()``."""

    settings.validate()
    memory = MemoryStore.open(
        settings.db_path,
        durable=settings.memory.durable,
        timeout_seconds=settings.memory.backend_timeout_seconds,
    )
    bus = Scratchpad()
    registry = AgentRegistry(
        memory=memory,
        bus=bus,
        default_agent_id=settings.agents.default_agent,
    )
    if registry.restore_active_agent():
        logger.debug("Restored active agent %s", registry.active_agent_id)

    pipeline = HookPipeline()
    memory_hooks = register_memory_hooks(
        pipeline,
        memory,
        context_window=settings.memory.context_window,
    )

    repository = TaskRepository(
        settings.db_path,
        busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    try:
        repository.init_schema()
    except Exception:
        repository.close()
        memory.close()
        raise
    tasks = TaskManager(repository, registry)
    return CrewServices(
        settings=settings,
        memory=memory,
        bus=bus,
        registry=registry,
        pipeline=pipeline,
        memory_hooks=memory_hooks,
        repository=repository,
        tasks=tasks,
        commands=TaskCommandHandler(tasks),
    )


@contextmanager
def open_services(settings: Settings) -> Iterator[CrewServices]:
    services = build_services(settings)
    try:
        yield services
    finally:
        services.close()
