"""Domain models for short-term and episodic memory."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from agent_crew.errors import AgentCrewError


class MemoryRole(str, Enum):
    """Who produced an episodic entry."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(slots=True)
class StoredContext:
    """Short-term entry in its stored text form."""

    key: str
    value_text: str
    timestamp: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass(slots=True)
class EpisodeWrite:
    """Payload for appending one episodic entry."""

    role: MemoryRole
    content: str
    timestamp: datetime
    importance: int = 1
    conversation_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class EpisodicEntry:
    """Stored episodic entry."""

    entry_id: int
    role: MemoryRole
    content: str
    timestamp: datetime
    importance: int = 1
    conversation_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, object]:
        """Serialize for short-term storage (recent context window)."""

        return {
            "id": self.entry_id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "importance": self.importance,
        }


@dataclass(slots=True)
class MemoryWriteResult:
    """Outcome of one memory write."""

    ok: bool
    error: AgentCrewError | None = None

    def __bool__(self) -> bool:
        return self.ok


@dataclass(slots=True)
class MemoryHealth:
    """Observability snapshot of the memory store."""

    backend: str
    degraded: bool
    durable_configured: bool
    durable_reachable: bool
    detail: str | None = None
