"""Agent registry, capability routing and the crew message bus."""

from agent_crew.agents.bus import BusMessage, MessageBus, Scratchpad
from agent_crew.agents.models import DEFAULT_AGENTS, Agent
from agent_crew.agents.registry import AgentRegistry
from agent_crew.agents.routing import KEYWORD_RULES, KeywordRule, RoutingDecision

__all__ = [
    "DEFAULT_AGENTS",
    "KEYWORD_RULES",
    "Agent",
    "AgentRegistry",
    "BusMessage",
    "KeywordRule",
    "MessageBus",
    "RoutingDecision",
    "Scratchpad",
]
