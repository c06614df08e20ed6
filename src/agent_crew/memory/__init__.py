"""Short-term and episodic memory with durable and in-process backends."""

from agent_crew.memory.models import EpisodicEntry, MemoryHealth, MemoryRole, MemoryWriteResult
from agent_crew.memory.store import MemoryStore

__all__ = [
    "EpisodicEntry",
    "MemoryHealth",
    "MemoryRole",
    "MemoryStore",
    "MemoryWriteResult",
]
