"""Agent descriptors and the default crew roster."""

from __future__ import annotations

from dataclasses import dataclass, field

from agent_crew.config import DEFAULT_AGENT_ID


@dataclass(frozen=True, slots=True)
class Agent:
    """A worker with a fixed capability set."""

    agent_id: str
    name: str
    capabilities: frozenset[str] = field(default_factory=frozenset)
    emoji: str = ""
    description: str = ""

    @classmethod
    def build(  # noqa: PLR0913
        cls,
        agent_id: str,
        name: str,
        capabilities: tuple[str, ...] | list[str] | frozenset[str],
        *,
        emoji: str = "",
        description: str = "",
    ) -> Agent:
        return cls(
            agent_id=agent_id,
            name=name,
            capabilities=frozenset(cap.strip().lower() for cap in capabilities if cap.strip()),
            emoji=emoji,
            description=description,
        )


DEFAULT_AGENTS: tuple[Agent, ...] = (
    Agent.build(
        DEFAULT_AGENT_ID,
        "Executive Architect",
        ("planning", "coordination", "architecture", "leadership"),
        emoji="👑",
        description="Technical leadership and project management",
    ),
    Agent.build(
        "frontend-developer",
        "Frontend Developer",
        ("ui", "ux", "react", "css", "javascript", "frontend"),
        emoji="🎨",
        description="React and modern UI implementation",
    ),
    Agent.build(
        "backend-developer",
        "Backend Developer",
        ("api", "server", "database", "security", "backend"),
        emoji="🔧",
        description="Server-side architecture and implementation",
    ),
    Agent.build(
        "full-stack-integrator",
        "Full Stack Integrator",
        ("integration", "full-stack", "deployment", "workflow"),
        emoji="🔄",
        description="Cross-system implementation",
    ),
    Agent.build(
        "cms-specialist",
        "CMS Specialist",
        ("cms", "content-modeling", "content-management"),
        emoji="📄",
        description="Content management systems",
    ),
    Agent.build(
        "data-engineer",
        "Data Engineer",
        ("data-modeling", "analytics", "visualization"),
        emoji="📊",
        description="Data pipelines and infrastructure",
    ),
    Agent.build(
        "doc-specialist",
        "Documentation Specialist",
        ("documentation", "technical-writing", "guides"),
        emoji="📚",
        description="Comprehensive documentation",
    ),
)
