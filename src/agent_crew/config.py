"""Runtime configuration for the task manager, agent router and memory store."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_AGENT_ID = "executive-architect"


@dataclass(slots=True)
class MemorySettings:
    """Memory store settings."""

    durable: bool = True
    backend_timeout_seconds: float = 2.0
    context_window: int = 10


@dataclass(slots=True)
class AgentSettings:
    """Agent registry settings."""

    default_agent: str = DEFAULT_AGENT_ID


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".agent_crew.db")
    sqlite_busy_timeout_ms: int = 5_000
    log_level: str = "WARNING"
    memory: MemorySettings = field(default_factory=MemorySettings)
    agents: AgentSettings = field(default_factory=AgentSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("AGENT_CREW_DB_PATH", ".agent_crew.db")),
            sqlite_busy_timeout_ms=int(os.getenv("AGENT_CREW_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            log_level=os.getenv("AGENT_CREW_LOG_LEVEL", "WARNING").strip().upper(),
            memory=MemorySettings(
                durable=_env_bool("AGENT_CREW_MEMORY_DURABLE", default=True),
                backend_timeout_seconds=float(
                    os.getenv("AGENT_CREW_MEMORY_TIMEOUT_SECONDS", "2.0"),
                ),
                context_window=int(os.getenv("AGENT_CREW_MEMORY_CONTEXT_WINDOW", "10")),
            ),
            agents=AgentSettings(
                default_agent=os.getenv("AGENT_CREW_DEFAULT_AGENT", DEFAULT_AGENT_ID).strip(),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error on out-of-range values."""

        if self.sqlite_busy_timeout_ms <= 0:
            raise ValueError("AGENT_CREW_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.memory.backend_timeout_seconds <= 0:
            raise ValueError("AGENT_CREW_MEMORY_TIMEOUT_SECONDS must be > 0.")
        if self.memory.context_window <= 0:
            raise ValueError("AGENT_CREW_MEMORY_CONTEXT_WINDOW must be a positive integer.")
        if not self.agents.default_agent:
            raise ValueError("AGENT_CREW_DEFAULT_AGENT must not be empty.")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Invalid AGENT_CREW_LOG_LEVEL: {self.log_level!r}")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
