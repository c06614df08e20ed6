"""Deterministic agent selection: capability overlap first, keyword rules second."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from agent_crew.agents.models import Agent

ROUTING_RULES_VERSION = 1

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*")


@dataclass(frozen=True, slots=True)
class KeywordRule:
    """Send descriptions mentioning any of ``keywords`` to ``agent_id``."""

    name: str
    keywords: frozenset[str]
    agent_id: str


KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        "frontend",
        frozenset({"frontend", "ui", "interface", "css", "react", "component"}),
        "frontend-developer",
    ),
    KeywordRule(
        "backend",
        frozenset({"backend", "server", "api", "database"}),
        "backend-developer",
    ),
    KeywordRule(
        "integration",
        frozenset({"integration", "full-stack", "fullstack", "deploy", "deployment"}),
        "full-stack-integrator",
    ),
    KeywordRule("cms", frozenset({"cms", "content"}), "cms-specialist"),
    KeywordRule("data", frozenset({"data", "analytics"}), "data-engineer"),
    KeywordRule(
        "documentation",
        frozenset({"document", "documentation", "docs", "guide"}),
        "doc-specialist",
    ),
)


@dataclass(frozen=True, slots=True)
class RoutingDecision:
    """Selected agent plus how it was chosen."""

    agent: Agent
    matched_rule: str
    match_count: int = 0
    matched_keyword: str | None = None

    def to_event_details(self) -> dict[str, object]:
        return {
            "routing_rules_version": ROUTING_RULES_VERSION,
            "agent": self.agent.agent_id,
            "matched_rule": self.matched_rule,
            "match_count": self.match_count,
            "matched_keyword": self.matched_keyword,
        }


def best_capability_match(
    agents: Sequence[Agent],
    required_capabilities: Iterable[str],
) -> tuple[Agent, int] | None:
    """Agent with the largest capability overlap; the first registered wins ties."""

    required = {cap.strip().lower() for cap in required_capabilities if cap.strip()}
    if not required:
        return None
    best: tuple[Agent, int] | None = None
    for agent in agents:
        match_count = len(agent.capabilities & required)
        if match_count > 0 and (best is None or match_count > best[1]):
            best = (agent, match_count)
    return best


def first_keyword_rule(
    description: str,
    rules: Sequence[KeywordRule] = KEYWORD_RULES,
) -> tuple[KeywordRule, str] | None:
    """First rule, in table order, whose keywords appear in the description."""

    tokens = tokenize(description)
    for rule in rules:
        for token in tokens:
            keyword = match_keyword(token, rule.keywords)
            if keyword is not None:
                return rule, keyword
    return None


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def match_keyword(token: str, keywords: frozenset[str]) -> str | None:
    if token in keywords:
        return token
    if token.endswith("s") and token[:-1] in keywords:
        return token[:-1]
    return None
