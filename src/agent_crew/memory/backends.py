"""Storage strategies behind the memory store: durable SQLite and process-local."""

from __future__ import annotations

import itertools
import json
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from sqlalchemy import delete as sa_delete
from sqlalchemy import text
from sqlalchemy.exc import DatabaseError, IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from agent_crew.errors import BackendUnavailable
from agent_crew.memory.models import EpisodeWrite, EpisodicEntry, MemoryRole, StoredContext
from agent_crew.storage.alembic_runner import upgrade_head
from agent_crew.storage.common import build_sqlite_engine, to_db_datetime, to_utc_aware_datetime
from agent_crew.storage.sqlmodel_models import EpisodicMemory, ShortTermMemory


class MemoryBackend(ABC):
    """Storage strategy for short-term and episodic memory in stored text form."""

    name: str

    @abstractmethod
    def put_context(self, entry: StoredContext) -> None: ...

    @abstractmethod
    def fetch_context(self, key: str) -> StoredContext | None: ...

    @abstractmethod
    def delete_expired(self, now: datetime) -> int: ...

    @abstractmethod
    def append_episode(self, episode: EpisodeWrite) -> EpisodicEntry: ...

    @abstractmethod
    def fetch_recent(self, limit: int) -> list[EpisodicEntry]:
        """Return up to ``limit`` newest entries, oldest first."""

    @abstractmethod
    def ping(self) -> None:
        """Raise ``BackendUnavailable`` when the backend cannot serve calls."""

    @abstractmethod
    def close(self) -> None: ...


class InProcessMemoryBackend(MemoryBackend):
    """Process-local memory; also used as the mirror behind the durable backend."""

    name = "in-process"

    def __init__(self) -> None:
        self._context: dict[str, StoredContext] = {}
        self._episodes: list[EpisodicEntry] = []
        self._ids = itertools.count(1)

    def put_context(self, entry: StoredContext) -> None:
        self._context[entry.key] = entry

    def fetch_context(self, key: str) -> StoredContext | None:
        return self._context.get(key)

    def delete_expired(self, now: datetime) -> int:
        expired = [key for key, entry in self._context.items() if entry.is_expired(now)]
        for key in expired:
            del self._context[key]
        return len(expired)

    def append_episode(self, episode: EpisodeWrite) -> EpisodicEntry:
        entry = EpisodicEntry(
            entry_id=next(self._ids),
            role=episode.role,
            content=episode.content,
            timestamp=episode.timestamp,
            importance=episode.importance,
            conversation_id=episode.conversation_id,
            metadata=dict(episode.metadata),
        )
        self._episodes.append(entry)
        return entry

    def fetch_recent(self, limit: int) -> list[EpisodicEntry]:
        if limit <= 0:
            return []
        ordered = sorted(self._episodes, key=lambda item: (item.timestamp, item.entry_id))
        return ordered[-limit:]

    def ping(self) -> None:
        return None

    def close(self) -> None:
        return None


class SqliteMemoryBackend(MemoryBackend):
    """Durable memory backed by SQLModel + SQLite."""

    name = "sqlite"

    def __init__(self, db_path: Path, *, timeout_seconds: float) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(
            db_path=db_path,
            busy_timeout_ms=max(1, int(timeout_seconds * 1000)),
        )

    @classmethod
    def open(cls, db_path: Path, *, timeout_seconds: float) -> SqliteMemoryBackend:
        """Create the backend, migrate its schema and verify it answers."""

        backend = cls(db_path, timeout_seconds=timeout_seconds)
        try:
            upgrade_head(db_path)
            backend.ping()
        except (SQLAlchemyError, sqlite3.Error, OSError) as error:
            backend.close()
            raise BackendUnavailable(
                f"Memory database {db_path} is unavailable: {error}",
            ) from error
        except BackendUnavailable:
            backend.close()
            raise
        return backend

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def ping(self) -> None:
        with self._guard(), self.engine.connect() as connection:
            connection.execute(text("SELECT 1 FROM short_term_memory LIMIT 1"))

    def put_context(self, entry: StoredContext) -> None:
        with self._guard(), Session(self.engine) as session:
            row = session.get(ShortTermMemory, entry.key)
            if row is None:
                row = ShortTermMemory(
                    key=entry.key,
                    value=entry.value_text,
                    timestamp=to_db_datetime(entry.timestamp),
                )
            row.value = entry.value_text
            row.timestamp = to_db_datetime(entry.timestamp)
            row.expiry_time = (
                to_db_datetime(entry.expires_at) if entry.expires_at is not None else None
            )
            session.add(row)
            session.commit()

    def fetch_context(self, key: str) -> StoredContext | None:
        with self._guard(), Session(self.engine) as session:
            row = session.get(ShortTermMemory, key)
            if row is None:
                return None
            return StoredContext(
                key=row.key,
                value_text=row.value,
                timestamp=to_utc_aware_datetime(row.timestamp),
                expires_at=(
                    to_utc_aware_datetime(row.expiry_time) if row.expiry_time is not None else None
                ),
            )

    def delete_expired(self, now: datetime) -> int:
        with self._guard(), Session(self.engine) as session:
            result = session.exec(
                sa_delete(ShortTermMemory).where(
                    col(ShortTermMemory.expiry_time).is_not(None),
                    col(ShortTermMemory.expiry_time) <= to_db_datetime(now),
                ),
            )
            session.commit()
            return int(result.rowcount or 0)

    def append_episode(self, episode: EpisodeWrite) -> EpisodicEntry:
        with self._guard(), Session(self.engine) as session:
            row = EpisodicMemory(
                conversation_id=episode.conversation_id,
                type=episode.role.value,
                content=episode.content,
                timestamp=to_db_datetime(episode.timestamp),
                importance=episode.importance,
                metadata_json=json.dumps(
                    {"role": episode.role.value, **episode.metadata},
                    ensure_ascii=False,
                    sort_keys=True,
                ),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_entry(row)

    def fetch_recent(self, limit: int) -> list[EpisodicEntry]:
        if limit <= 0:
            return []
        with self._guard(), Session(self.engine) as session:
            rows = session.exec(
                select(EpisodicMemory)
                .order_by(col(EpisodicMemory.timestamp).desc(), col(EpisodicMemory.id).desc())
                .limit(limit),
            ).all()
            entries = [_to_entry(row) for row in rows]
        entries.reverse()
        return entries

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except IntegrityError:
            raise
        except DatabaseError as error:
            raise BackendUnavailable(str(error.orig or error)) from error


def _to_entry(row: EpisodicMemory) -> EpisodicEntry:
    metadata: dict[str, object] = {}
    if row.metadata_json:
        parsed = json.loads(row.metadata_json)
        if isinstance(parsed, dict):
            metadata = {key: value for key, value in parsed.items() if key != "role"}
    return EpisodicEntry(
        entry_id=row.id or 0,
        role=MemoryRole(row.type),
        content=row.content,
        timestamp=to_utc_aware_datetime(row.timestamp),
        importance=row.importance,
        conversation_id=row.conversation_id,
        metadata=metadata,
    )
