"""Two-tier memory: short-term key/value context plus an append-only episodic log.

The store owns two backends. The durable one (SQLite) is chosen at
construction time when it can be opened; an in-process mirror receives every
accepted write regardless. When the durable backend is missing or stops
answering, the store logs a warning, switches to degraded mode and serves
every later call from the mirror. Degraded mode is sticky for the lifetime
of the store: entries written while degraded exist only in the mirror, so
switching back would hide them.

Values are stored as JSON text, which makes round-trips exact for
JSON-representable values and gives every reader a fresh copy.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from agent_crew.errors import (
    AgentCrewError,
    BackendUnavailable,
    ContextNotFound,
    SerializationFailure,
)
from agent_crew.memory.backends import InProcessMemoryBackend, MemoryBackend, SqliteMemoryBackend
from agent_crew.memory.models import (
    EpisodeWrite,
    EpisodicEntry,
    MemoryHealth,
    MemoryRole,
    MemoryWriteResult,
    StoredContext,
)
from agent_crew.storage.common import to_utc_aware_datetime, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")
_MISSING: Any = object()


class MemoryStore:
    """Memory facade with silent fallback to a process-local mirror."""

    def __init__(
        self,
        durable: MemoryBackend | None = None,
        *,
        durable_configured: bool | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._durable = durable
        self._mirror = InProcessMemoryBackend()
        if durable_configured is None:
            durable_configured = durable is not None
        self._durable_configured = durable_configured
        self._degraded = self._durable_configured and durable is None
        self._detail: str | None = None
        self._clock = clock
        self._lock = threading.RLock()

    @classmethod
    def open(
        cls,
        db_path: Path,
        *,
        durable: bool = True,
        timeout_seconds: float = 2.0,
    ) -> MemoryStore:
        """Open the store, falling back to process-local memory if SQLite is unavailable."""

        if not durable:
            return cls(None, durable_configured=False)
        try:
            backend = SqliteMemoryBackend.open(db_path, timeout_seconds=timeout_seconds)
        except BackendUnavailable as error:
            logger.warning("Durable memory unavailable, using in-process memory: %s", error)
            store = cls(None, durable_configured=True)
            store._detail = str(error)
            return store
        return cls(backend)

    @property
    def degraded(self) -> bool:
        """True when a configured durable backend is not serving calls."""

        return self._degraded

    def close(self) -> None:
        """Release the durable backend handle."""

        with self._lock:
            if self._durable is not None:
                self._durable.close()
                self._durable = None

    def health_check(self) -> MemoryHealth:
        """Probe the durable backend and report the store mode."""

        with self._lock:
            reachable = False
            detail = self._detail
            if self._durable is not None:
                try:
                    self._durable.ping()
                    reachable = True
                except BackendUnavailable as error:
                    detail = str(error)
            active = self._active_backend()
            return MemoryHealth(
                backend=active.name,
                degraded=self._degraded,
                durable_configured=self._durable_configured,
                durable_reachable=reachable,
                detail=detail,
            )

    def store_context(
        self,
        key: str,
        value: Any,
        *,
        ttl_seconds: float | None = None,
    ) -> MemoryWriteResult:
        """Upsert one short-term value; the latest write wins."""

        try:
            value_text = _dump(value)
        except SerializationFailure as error:
            logger.warning("Short-term value for %r rejected: %s", key, error)
            return MemoryWriteResult(ok=False, error=error)

        now = self._clock()
        entry = StoredContext(
            key=key,
            value_text=value_text,
            timestamp=now,
            expires_at=now + timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None,
        )
        with self._lock:
            try:
                self._call_durable(lambda backend: backend.put_context(entry), None)
            except SQLAlchemyError as error:
                return _rejected(f"Short-term value for {key!r} was not stored", error)
            self._mirror.put_context(entry)
        return MemoryWriteResult(ok=True)

    def get_context(self, key: str, default: Any = _MISSING) -> Any:
        """Return the latest value for ``key``.

        Raises ``ContextNotFound`` for absent or expired keys unless ``default``
        is given. A stored ``None`` is returned as ``None``.
        """

        with self._lock:
            stored = self._call_durable(
                lambda backend: backend.fetch_context(key),
                lambda: self._mirror.fetch_context(key),
            )
        if stored is None or stored.is_expired(self._clock()):
            if default is _MISSING:
                raise ContextNotFound(key)
            return default
        try:
            return json.loads(stored.value_text)
        except ValueError as error:
            raise SerializationFailure(f"Stored value for {key!r} is not valid JSON") from error

    def has_context(self, key: str) -> bool:
        return self.get_context(key, _MISSING_PROBE) is not _MISSING_PROBE

    def clear_expired(self) -> int:
        """Drop expired short-term entries; returns how many the active backend removed."""

        now = self._clock()
        with self._lock:
            removed = self._call_durable(lambda backend: backend.delete_expired(now), None)
            mirror_removed = self._mirror.delete_expired(now)
        return mirror_removed if removed is None else removed

    def store_conversation(  # noqa: PLR0913
        self,
        role: MemoryRole | str,
        content: Any,
        *,
        timestamp: datetime | None = None,
        importance: int = 1,
        conversation_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> MemoryWriteResult:
        """Append one entry to the episodic log; timestamp defaults to now."""

        try:
            episode = EpisodeWrite(
                role=MemoryRole(role),
                content=content if isinstance(content, str) else _dump(content),
                timestamp=(
                    to_utc_aware_datetime(timestamp) if timestamp is not None else self._clock()
                ),
                importance=importance,
                conversation_id=conversation_id,
                metadata=json.loads(_dump(metadata or {})),
            )
        except SerializationFailure as error:
            logger.warning("Episodic entry rejected: %s", error)
            return MemoryWriteResult(ok=False, error=error)

        with self._lock:
            try:
                self._call_durable(lambda backend: backend.append_episode(episode), None)
            except SQLAlchemyError as error:
                return _rejected("Episodic entry was not stored", error)
            self._mirror.append_episode(episode)
        return MemoryWriteResult(ok=True)

    def get_recent_conversations(self, limit: int = 10) -> list[EpisodicEntry]:
        """Return up to ``limit`` newest entries in ascending timestamp order."""

        if limit <= 0:
            return []
        with self._lock:
            return self._call_durable(
                lambda backend: backend.fetch_recent(limit),
                lambda: self._mirror.fetch_recent(limit),
            )

    def _active_backend(self) -> MemoryBackend:
        if self._durable is not None and not self._degraded:
            return self._durable
        return self._mirror

    def _call_durable(
        self,
        operation: Callable[[MemoryBackend], T],
        fallback: Callable[[], T] | None,
    ) -> T | None:
        if self._durable is None or self._degraded:
            return fallback() if fallback is not None else None
        try:
            return operation(self._durable)
        except BackendUnavailable as error:
            logger.warning("Durable memory failed, switching to in-process mirror: %s", error)
            self._degraded = True
            self._detail = str(error)
            return fallback() if fallback is not None else None


_MISSING_PROBE: Any = object()


def _rejected(message: str, error: SQLAlchemyError) -> MemoryWriteResult:
    logger.error("%s: %s", message, error)
    failure = AgentCrewError(f"{message}: {error}")
    failure.__cause__ = error
    return MemoryWriteResult(ok=False, error=failure)


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, sort_keys=True, allow_nan=False)
    except (TypeError, ValueError) as error:
        raise SerializationFailure(
            f"Value of type {type(value).__name__} is not JSON-serializable: {error}",
        ) from error
