"""Agent registry: owns agent records, the active agent, and routing."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence

from agent_crew.agents.bus import BROADCAST, MessageBus
from agent_crew.agents.models import DEFAULT_AGENTS, Agent
from agent_crew.agents.routing import (
    KEYWORD_RULES,
    KeywordRule,
    RoutingDecision,
    best_capability_match,
    first_keyword_rule,
)
from agent_crew.config import DEFAULT_AGENT_ID
from agent_crew.errors import NoAgentsRegistered
from agent_crew.memory.store import MemoryStore
from agent_crew.storage.common import utc_now

logger = logging.getLogger(__name__)

ACTIVE_AGENT_KEY = "active_agent"
AGENT_SWITCH_TIME_KEY = "agent_switch_time"


class AgentRegistry:
    """Holds agent descriptors and the single active agent id."""

    def __init__(  # noqa: PLR0913
        self,
        agents: Iterable[Agent] = DEFAULT_AGENTS,
        *,
        memory: MemoryStore,
        bus: MessageBus | None = None,
        default_agent_id: str = DEFAULT_AGENT_ID,
        keyword_rules: Sequence[KeywordRule] = KEYWORD_RULES,
    ) -> None:
        self._agents: dict[str, Agent] = {}
        for agent in agents:
            if agent.agent_id in self._agents:
                raise ValueError(f"Duplicate agent id: {agent.agent_id!r}")
            self._agents[agent.agent_id] = agent
        if self._agents and default_agent_id not in self._agents:
            raise ValueError(
                f"Unknown default agent: {default_agent_id!r}. "
                f"Use one of {', '.join(self._agents)}.",
            )
        self.default_agent_id = default_agent_id
        self.keyword_rules = tuple(keyword_rules)
        self._active_agent_id = default_agent_id if self._agents else None
        self._memory = memory
        self._bus = bus
        self._lock = threading.RLock()

    @property
    def active_agent_id(self) -> str | None:
        return self._active_agent_id

    def get_all_agents(self) -> list[Agent]:
        """Agents in registration order."""

        return list(self._agents.values())

    def get_agent(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    def get_default_agent(self) -> Agent:
        if not self._agents:
            raise NoAgentsRegistered
        return self._agents[self.default_agent_id]

    def get_active_agent(self) -> Agent:
        with self._lock:
            if self._active_agent_id is None:
                raise NoAgentsRegistered
            return self._agents[self._active_agent_id]

    def switch_to_agent(self, agent_id: str) -> bool:
        """Activate ``agent_id``; records the switch in memory and on the bus."""

        with self._lock:
            agent = self._agents.get(agent_id)
            if agent is None:
                logger.warning("Cannot switch to unknown agent %r", agent_id)
                return False
            previous = self._active_agent_id
            self._active_agent_id = agent_id
            self._memory.store_context(ACTIVE_AGENT_KEY, agent_id)
            self._memory.store_context(AGENT_SWITCH_TIME_KEY, utc_now().isoformat())
            if self._bus is not None:
                self._bus.publish("system", BROADCAST, f"Agent switched to: {agent.name}")
            logger.info("Switched active agent from %s to %s", previous, agent_id)
            return True

    def restore_active_agent(self) -> bool:
        """Re-activate the agent recorded in memory by an earlier process."""

        with self._lock:
            agent_id = self._memory.get_context(ACTIVE_AGENT_KEY, None)
            if not isinstance(agent_id, str) or agent_id not in self._agents:
                return False
            self._active_agent_id = agent_id
            return True

    def find_best_agent_for_task(
        self,
        description: str,
        required_capabilities: Iterable[str] = (),
    ) -> Agent:
        return self.route(description, required_capabilities).agent

    def route(
        self,
        description: str,
        required_capabilities: Iterable[str] = (),
    ) -> RoutingDecision:
        """Choose an agent: capability overlap, then keyword rules, then the default."""

        if not self._agents:
            raise NoAgentsRegistered

        agents = self.get_all_agents()
        best = best_capability_match(agents, required_capabilities)
        if best is not None:
            agent, match_count = best
            return RoutingDecision(
                agent=agent,
                matched_rule="capabilities",
                match_count=match_count,
            )

        matched = first_keyword_rule(description or "", self.keyword_rules)
        if matched is not None:
            rule, keyword = matched
            agent = self._agents.get(rule.agent_id)
            if agent is not None:
                return RoutingDecision(
                    agent=agent,
                    matched_rule=f"keyword:{rule.name}",
                    matched_keyword=keyword,
                )
            logger.debug(
                "Keyword rule %s targets unregistered agent %s; using default",
                rule.name,
                rule.agent_id,
            )
        return RoutingDecision(agent=self.get_default_agent(), matched_rule="default")
