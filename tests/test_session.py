from __future__ import annotations

import allure

from agent_crew.hooks.memory_hooks import CONVERSATION_COUNT_KEY, LAST_QUERY_KEY
from agent_crew.memory.models import MemoryRole
from agent_crew.services import CrewServices
from agent_crew.session import CrewSession
from agent_crew.tasks.commands import TaskCommandType
from agent_crew.tasks.models import TaskCreate

pytestmark = [
    allure.epic("Sessions"),
    allure.feature("Conversation Turns"),
]


def test_turn_persists_query_before_command_and_response_after(services: CrewServices) -> None:
    seen_at_command_time: list[object] = []
    original_process = services.commands.process

    def spying_process(text: str | None):
        seen_at_command_time.append(services.memory.get_context(LAST_QUERY_KEY))
        return original_process(text)

    services.commands.process = spying_process  # type: ignore[method-assign]
    services.tasks.create_task(TaskCreate(title="Docs", prompt="Write the setup guide"))

    turn = CrewSession(services).handle("list tasks")

    assert seen_at_command_time == ["list tasks"]
    assert turn.command is not None
    assert turn.command.command_type is TaskCommandType.LIST_TASKS
    assert "Docs" in turn.response
    entries = services.memory.get_recent_conversations(10)
    assert [(entry.role, entry.content) for entry in entries] == [
        (MemoryRole.USER, "list tasks"),
        (MemoryRole.ASSISTANT, turn.response),
    ]
    assert services.memory.get_context(CONVERSATION_COUNT_KEY) == 1


def test_non_command_query_uses_responder(services: CrewServices) -> None:
    session = CrewSession(services, responder=lambda agent, query: f"{agent.agent_id}|{query}")

    turn = session.handle("hello crew")

    assert turn.command is None
    assert turn.response == "executive-architect|hello crew"
    assert turn.hook_failures == []


def test_hook_failure_does_not_break_turn(services: CrewServices) -> None:
    def broken(_: object) -> None:
        raise ValueError("bad hook")

    services.pipeline.register_post_hook("broken", 1, broken)
    services.pipeline.register_post_hook("shout", 0, lambda response: response.upper())

    turn = CrewSession(services).handle("hi")

    assert turn.hook_failures == ["broken"]
    assert turn.response == "EXECUTIVE ARCHITECT RECEIVED: HI"


def test_start_task_turn_switches_agent(services: CrewServices) -> None:
    services.tasks.create_task(
        TaskCreate(
            title="Profile",
            prompt="Create a React component",
            file="src/components/Profile.jsx",
        ),
    )

    turn = CrewSession(services).handle("start task")

    assert turn.command is not None
    assert turn.command.success is True
    assert turn.agent.agent_id == "frontend-developer"
    (message,) = services.bus.get_messages()
    assert message.content == "Agent switched to: Frontend Developer"
