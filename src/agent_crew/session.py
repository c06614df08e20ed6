"""One conversation turn: pre-hooks, task command or responder, post-hooks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from agent_crew.agents.models import Agent
from agent_crew.hooks.pipeline import HookRunReport
from agent_crew.services import CrewServices
from agent_crew.tasks.commands import TaskCommandResult

logger = logging.getLogger(__name__)

Responder = Callable[[Agent, str], str]


@dataclass(slots=True)
class TurnResult:
    query: str
    response: Any
    agent: Agent
    command: TaskCommandResult | None
    pre_report: HookRunReport
    post_report: HookRunReport

    @property
    def hook_failures(self) -> list[str]:
        return [*self.pre_report.failed, *self.post_report.failed]


def acknowledge(agent: Agent, query: str) -> str:
    """Default responder for queries that are not task commands."""

    return f"{agent.name} received: {query}"


class CrewSession:
    """Runs queries through the hook pipeline around the task command handler."""

    def __init__(self, services: CrewServices, *, responder: Responder = acknowledge) -> None:
        self.services = services
        self.responder = responder

    def handle(self, query: str) -> TurnResult:
        pre_report = self.services.pipeline.run_pre_hooks(query)
        if pre_report.failed:
            logger.warning("Pre-response hooks failed: %s", ", ".join(pre_report.failed))
        effective_query = pre_report.output if isinstance(pre_report.output, str) else query

        command = self.services.commands.process(effective_query)
        agent = self.services.registry.get_active_agent()
        if command is not None:
            response = command.response
        else:
            response = self.responder(agent, effective_query)

        post_report = self.services.pipeline.run_post_hooks(response)
        if post_report.failed:
            logger.warning("Post-response hooks failed: %s", ", ".join(post_report.failed))
        return TurnResult(
            query=effective_query,
            response=post_report.output,
            agent=agent,
            command=command,
            pre_report=pre_report,
            post_report=post_report,
        )
