"""Mandatory memory persistence hooks for queries and responses."""

from __future__ import annotations

import logging
from typing import Any

from agent_crew.errors import SerializationFailure
from agent_crew.hooks.pipeline import HookPipeline
from agent_crew.memory.models import MemoryRole, MemoryWriteResult
from agent_crew.memory.store import MemoryStore

logger = logging.getLogger(__name__)

MEMORY_HOOK_PRIORITY = 1_000
QUERY_HOOK_NAME = "memory-query-processor"
RESPONSE_HOOK_NAME = "memory-response-processor"

LAST_QUERY_KEY = "lastQuery"
LAST_RESPONSE_KEY = "lastResponse"
RECENT_CONVERSATIONS_KEY = "recentConversations"
CONVERSATION_COUNT_KEY = "conversationCount"


class MemoryHooks:
    """Persist each query before handling and each response after it.

    A write the store rejects is raised so the pipeline reports the hook as failed.
    """

    def __init__(self, memory: MemoryStore, *, context_window: int = 10) -> None:
        self.memory = memory
        self.context_window = context_window

    def process_query(self, query: Any) -> None:
        _require(self.memory.store_context(LAST_QUERY_KEY, query))
        _require(self.memory.store_conversation(MemoryRole.USER, query))
        recent = self.memory.get_recent_conversations(self.context_window)
        _require(
            self.memory.store_context(
                RECENT_CONVERSATIONS_KEY,
                [entry.to_payload() for entry in recent],
            ),
        )
        logger.debug("Memory pre-processing retrieved %d recent entries", len(recent))

    def process_response(self, response: Any) -> None:
        last_query = self.memory.get_context(LAST_QUERY_KEY, None)
        _require(
            self.memory.store_conversation(
                MemoryRole.ASSISTANT,
                response,
                metadata={"in_reply_to": last_query},
            ),
        )
        _require(self.memory.store_context(LAST_RESPONSE_KEY, response))
        count = self.memory.get_context(CONVERSATION_COUNT_KEY, 0)
        _require(self.memory.store_context(CONVERSATION_COUNT_KEY, int(count) + 1))


def register_memory_hooks(
    pipeline: HookPipeline,
    memory: MemoryStore,
    *,
    context_window: int = 10,
) -> MemoryHooks:
    """Register query/response persistence ahead of every other hook."""

    hooks = MemoryHooks(memory, context_window=context_window)
    pipeline.register_pre_hook(QUERY_HOOK_NAME, MEMORY_HOOK_PRIORITY, hooks.process_query)
    pipeline.register_post_hook(RESPONSE_HOOK_NAME, MEMORY_HOOK_PRIORITY, hooks.process_response)
    return hooks


def _require(result: MemoryWriteResult) -> None:
    if not result.ok:
        raise result.error or SerializationFailure("Memory write was rejected")
