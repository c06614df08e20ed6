from __future__ import annotations

import allure
import pytest

from agent_crew.agents.bus import BROADCAST, Scratchpad
from agent_crew.agents.models import Agent
from agent_crew.agents.registry import ACTIVE_AGENT_KEY, AGENT_SWITCH_TIME_KEY, AgentRegistry
from agent_crew.agents.routing import KeywordRule, first_keyword_rule, tokenize
from agent_crew.errors import NoAgentsRegistered
from agent_crew.memory.models import MemoryRole
from agent_crew.memory.store import MemoryStore

pytestmark = [
    allure.epic("Agents"),
    allure.feature("Registry & Routing"),
]


def test_registry_starts_with_default_agent_active(registry: AgentRegistry) -> None:
    assert registry.get_active_agent().agent_id == "executive-architect"
    assert [agent.agent_id for agent in registry.get_all_agents()][:3] == [
        "executive-architect",
        "frontend-developer",
        "backend-developer",
    ]
    assert registry.get_agent("nobody") is None


def test_capability_overlap_selects_agent(registry: AgentRegistry) -> None:
    agent = registry.find_best_agent_for_task(
        "Build the profile page",
        ["ui", "react", "frontend"],
    )

    assert agent.agent_id == "frontend-developer"


def test_capability_ties_go_to_first_registered_agent() -> None:
    registry = AgentRegistry(
        [
            Agent.build("coordinator", "Coordinator", ("planning",)),
            Agent.build("alpha", "Alpha", ("x", "y")),
            Agent.build("beta", "Beta", ("x", "y")),
        ],
        memory=MemoryStore(),
        default_agent_id="coordinator",
    )

    decision = registry.route("anything", ["x", "y"])

    assert decision.agent.agent_id == "alpha"
    assert decision.matched_rule == "capabilities"
    assert decision.match_count == 2


def test_keyword_rules_apply_when_no_capability_matches(registry: AgentRegistry) -> None:
    decision = registry.route("Write the deployment guide", ["nothing-matches"])

    assert decision.agent.agent_id == "full-stack-integrator"
    assert decision.matched_rule == "keyword:integration"
    assert decision.matched_keyword == "deployment"


def test_keyword_rules_follow_table_order_and_plurals(registry: AgentRegistry) -> None:
    assert registry.find_best_agent_for_task("Tidy up the CSS in our docs").agent_id == (
        "frontend-developer"
    )
    assert registry.find_best_agent_for_task("Refresh the APIs").agent_id == "backend-developer"
    assert registry.find_best_agent_for_task("Write user guides").agent_id == "doc-specialist"


def test_keywords_match_whole_tokens_only(registry: AgentRegistry) -> None:
    agent = registry.find_best_agent_for_task("Buildup the suite")

    assert agent.agent_id == "executive-architect"


def test_unmatched_description_falls_back_to_default(registry: AgentRegistry) -> None:
    decision = registry.route("Think about it", [])

    assert decision.agent.agent_id == "executive-architect"
    assert decision.matched_rule == "default"


def test_keyword_rule_for_unregistered_agent_uses_default() -> None:
    registry = AgentRegistry(
        [Agent.build("lead", "Lead", ("planning",))],
        memory=MemoryStore(),
        default_agent_id="lead",
    )

    assert registry.find_best_agent_for_task("Fix the React component").agent_id == "lead"


def test_empty_registry_raises_no_agents_registered() -> None:
    registry = AgentRegistry([], memory=MemoryStore())

    with pytest.raises(NoAgentsRegistered):
        registry.find_best_agent_for_task("anything")
    with pytest.raises(NoAgentsRegistered):
        registry.get_active_agent()


def test_registry_rejects_duplicate_and_unknown_default_agents() -> None:
    agent = Agent.build("same", "Same", ())

    with pytest.raises(ValueError, match="Duplicate agent id"):
        AgentRegistry([agent, agent], memory=MemoryStore(), default_agent_id="same")
    with pytest.raises(ValueError, match="Unknown default agent"):
        AgentRegistry([agent], memory=MemoryStore(), default_agent_id="other")


def test_switch_records_memory_and_notifies_bus(
    registry: AgentRegistry,
    memory: MemoryStore,
    bus: Scratchpad,
) -> None:
    assert registry.switch_to_agent("doc-specialist") is True

    assert registry.get_active_agent().agent_id == "doc-specialist"
    assert memory.get_context(ACTIVE_AGENT_KEY) == "doc-specialist"
    assert memory.has_context(AGENT_SWITCH_TIME_KEY)
    (message,) = bus.get_messages(recipient=BROADCAST)
    assert message.sender == "system"
    assert message.role is MemoryRole.SYSTEM
    assert message.content == "Agent switched to: Documentation Specialist"


def test_switch_to_unknown_agent_changes_nothing(
    registry: AgentRegistry,
    memory: MemoryStore,
    bus: Scratchpad,
) -> None:
    assert registry.switch_to_agent("ghost") is False

    assert registry.get_active_agent().agent_id == "executive-architect"
    assert memory.has_context(ACTIVE_AGENT_KEY) is False
    assert bus.get_messages() == []


def test_restore_active_agent_reads_memory(memory: MemoryStore) -> None:
    memory.store_context(ACTIVE_AGENT_KEY, "data-engineer")
    registry = AgentRegistry(memory=memory)

    assert registry.restore_active_agent() is True
    assert registry.get_active_agent().agent_id == "data-engineer"


def test_first_keyword_rule_returns_matching_keyword() -> None:
    rules = (
        KeywordRule("one", frozenset({"alpha"}), "a"),
        KeywordRule("two", frozenset({"beta"}), "b"),
    )

    assert first_keyword_rule("Beta then alphas", rules) == (rules[0], "alpha")
    assert first_keyword_rule("gamma", rules) is None
    assert tokenize("Full-Stack, API!") == ["full-stack", "api"]


def test_scratchpad_filters_messages() -> None:
    pad = Scratchpad()
    pad.publish("a", "b", "one")
    pad.publish("b", BROADCAST, "two", role=MemoryRole.USER)

    assert [message.message_id for message in pad.get_messages()] == [1, 2]
    assert [message.content for message in pad.get_messages(sender="b")] == ["two"]
    assert pad.get_messages(role=MemoryRole.ASSISTANT) == []
