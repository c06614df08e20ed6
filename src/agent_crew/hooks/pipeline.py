"""Priority-ordered pre/post hooks around every query and response.

Hooks run sequentially in the caller's thread, highest priority first; equal
priorities keep registration order. A hook that returns a value other than
``None`` replaces the payload seen by the hooks after it. A hook that raises, or
returns an exception instead of raising it, is recorded as failed in the run
report; the payload stays unchanged and the hooks after it still run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

HookFn = Callable[[Any], Any]


@dataclass(slots=True)
class RegisteredHook:
    name: str
    priority: int
    fn: HookFn


@dataclass(slots=True)
class HookResult:
    """Outcome of one hook invocation."""

    name: str
    success: bool
    result: Any = None
    error: str | None = None


@dataclass(slots=True)
class HookRunReport:
    """Per-hook outcomes of one phase plus the final payload."""

    phase: str
    output: Any
    results: list[HookResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(item.success for item in self.results)

    @property
    def failed(self) -> list[str]:
        return [item.name for item in self.results if not item.success]


class HookPipeline:
    """Registry and runner for pre-response and post-response hooks."""

    def __init__(self) -> None:
        self._pre: list[RegisteredHook] = []
        self._post: list[RegisteredHook] = []

    @property
    def pre_hooks(self) -> list[str]:
        return [hook.name for hook in self._pre]

    @property
    def post_hooks(self) -> list[str]:
        return [hook.name for hook in self._post]

    def register_pre_hook(self, name: str, priority: int, fn: HookFn) -> None:
        _register(self._pre, RegisteredHook(name=name, priority=priority, fn=fn))
        logger.debug("Registered pre-response hook %s (priority %d)", name, priority)

    def register_post_hook(self, name: str, priority: int, fn: HookFn) -> None:
        _register(self._post, RegisteredHook(name=name, priority=priority, fn=fn))
        logger.debug("Registered post-response hook %s (priority %d)", name, priority)

    def unregister_pre_hook(self, name: str) -> bool:
        return _unregister(self._pre, name)

    def unregister_post_hook(self, name: str) -> bool:
        return _unregister(self._post, name)

    def run_pre_hooks(self, query: Any) -> HookRunReport:
        return _run("pre", list(self._pre), query)

    def run_post_hooks(self, response: Any) -> HookRunReport:
        return _run("post", list(self._post), response)


def _register(hooks: list[RegisteredHook], hook: RegisteredHook) -> None:
    for index, existing in enumerate(hooks):
        if existing.name == hook.name:
            hooks[index] = hook
            break
    else:
        hooks.append(hook)
    # list.sort is stable, so equal priorities keep their list position.
    hooks.sort(key=lambda item: -item.priority)


def _unregister(hooks: list[RegisteredHook], name: str) -> bool:
    for index, existing in enumerate(hooks):
        if existing.name == name:
            del hooks[index]
            return True
    return False


def _run(phase: str, hooks: list[RegisteredHook], payload: Any) -> HookRunReport:
    report = HookRunReport(phase=phase, output=payload)
    for hook in hooks:
        logger.debug("Running %s-hook %s", phase, hook.name)
        try:
            result = hook.fn(report.output)
        except Exception as error:  # noqa: BLE001
            logger.exception("Error in %s-hook %s", phase, hook.name)
            report.results.append(_failure(hook.name, error))
            continue
        if isinstance(result, BaseException):
            logger.error("%s-hook %s returned an error: %r", phase, hook.name, result)
            report.results.append(_failure(hook.name, result))
            continue
        report.results.append(HookResult(name=hook.name, success=True, result=result))
        if result is not None:
            report.output = result
    return report


def _failure(name: str, error: BaseException) -> HookResult:
    return HookResult(name=name, success=False, error=f"{type(error).__name__}: {error}")
