"""Pre/post hook pipeline and the mandatory memory hooks."""

from agent_crew.hooks.memory_hooks import MEMORY_HOOK_PRIORITY, register_memory_hooks
from agent_crew.hooks.pipeline import HookPipeline, HookResult, HookRunReport

__all__ = [
    "MEMORY_HOOK_PRIORITY",
    "HookPipeline",
    "HookResult",
    "HookRunReport",
    "register_memory_hooks",
]
