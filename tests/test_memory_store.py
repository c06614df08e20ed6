from __future__ import annotations

import math
import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path

import allure
import pytest

from agent_crew.errors import ContextNotFound, SerializationFailure
from agent_crew.memory.models import MemoryRole
from agent_crew.memory.store import MemoryStore

pytestmark = [
    allure.epic("Memory"),
    allure.feature("Short-term and Episodic Store"),
]


def test_context_round_trips_json_values(memory: MemoryStore) -> None:
    value = {"name": "crew", "tags": ["a", "b"], "nested": {"n": 1.5, "ok": True}}

    assert memory.store_context("profile", value).ok

    assert memory.get_context("profile") == value
    assert memory.degraded is False


def test_context_last_write_wins(memory: MemoryStore) -> None:
    memory.store_context("k", 1)
    memory.store_context("k", 2)

    assert memory.get_context("k") == 2


def test_absent_key_differs_from_stored_none(memory: MemoryStore) -> None:
    memory.store_context("empty", None)

    assert memory.get_context("empty") is None
    assert memory.has_context("empty") is True
    assert memory.has_context("missing") is False
    assert memory.get_context("missing", "fallback") == "fallback"
    with pytest.raises(ContextNotFound) as excinfo:
        memory.get_context("missing")
    assert isinstance(excinfo.value, KeyError)
    assert excinfo.value.key == "missing"


def test_unserializable_value_is_rejected_without_side_effects(memory: MemoryStore) -> None:
    memory.store_context("k", "kept")

    result = memory.store_context("k", object())
    nan_result = memory.store_context("k", math.nan)

    assert result.ok is False
    assert isinstance(result.error, SerializationFailure)
    assert nan_result.ok is False
    assert memory.get_context("k") == "kept"


def test_expired_context_reads_as_absent() -> None:
    now = [datetime(2026, 1, 1, tzinfo=UTC)]
    store = MemoryStore(None, clock=lambda: now[0])
    store.store_context("session", "token", ttl_seconds=60)
    store.store_context("forever", "value")

    assert store.get_context("session") == "token"
    now[0] += timedelta(seconds=61)
    assert store.has_context("session") is False
    assert store.clear_expired() == 1
    assert store.get_context("forever") == "value"


def test_recent_conversations_are_newest_n_in_ascending_order(memory: MemoryStore) -> None:
    base = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    memory.store_conversation(MemoryRole.USER, "A", timestamp=base)
    memory.store_conversation(MemoryRole.ASSISTANT, "B", timestamp=base + timedelta(seconds=1))
    memory.store_conversation(MemoryRole.USER, "C", timestamp=base + timedelta(seconds=2))

    recent = memory.get_recent_conversations(2)

    assert [entry.content for entry in recent] == ["B", "C"]
    assert [entry.role for entry in recent] == [MemoryRole.ASSISTANT, MemoryRole.USER]
    assert recent[0].timestamp == base + timedelta(seconds=1)


def test_recent_conversations_break_timestamp_ties_by_insertion(memory: MemoryStore) -> None:
    stamp = datetime(2026, 3, 1, tzinfo=UTC)
    for content in ("first", "second", "third"):
        memory.store_conversation("user", content, timestamp=stamp)

    assert [entry.content for entry in memory.get_recent_conversations(10)] == [
        "first",
        "second",
        "third",
    ]


def test_recent_conversations_edge_limits(memory: MemoryStore) -> None:
    assert memory.get_recent_conversations() == []
    memory.store_conversation("user", "hello")

    assert memory.get_recent_conversations(0) == []
    assert memory.get_recent_conversations(-1) == []
    assert len(memory.get_recent_conversations(100)) == 1


def test_episodic_entry_keeps_metadata_and_encodes_non_string_content(
    memory: MemoryStore,
) -> None:
    memory.store_conversation(
        "system",
        {"event": "boot"},
        importance=3,
        conversation_id="c-1",
        metadata={"source": "test"},
    )

    (entry,) = memory.get_recent_conversations(1)
    assert entry.content == '{"event": "boot"}'
    assert entry.importance == 3
    assert entry.conversation_id == "c-1"
    assert entry.metadata == {"source": "test"}


def test_durable_memory_survives_reopen(db_path: Path) -> None:
    first = MemoryStore.open(db_path)
    first.store_context("persisted", [1, 2, 3])
    first.store_conversation("user", "remember me")
    first.close()

    second = MemoryStore.open(db_path)
    try:
        assert second.get_context("persisted") == [1, 2, 3]
        assert [entry.content for entry in second.get_recent_conversations(5)] == ["remember me"]
    finally:
        second.close()


def test_unreachable_database_falls_back_to_in_process_memory(tmp_path: Path) -> None:
    store = MemoryStore.open(tmp_path / "missing-dir" / "memory.db")

    assert store.degraded is True
    assert store.store_context("k", "v").ok
    assert store.get_context("k") == "v"
    store.store_conversation("user", "still works")
    assert [entry.content for entry in store.get_recent_conversations(1)] == ["still works"]

    health = store.health_check()
    assert health.backend == "in-process"
    assert health.durable_configured is True
    assert health.durable_reachable is False
    assert health.detail


def test_backend_failure_mid_session_switches_to_mirror(db_path: Path) -> None:
    store = MemoryStore.open(db_path)
    store.store_context("before", "kept")
    store.store_conversation("user", "before failure")

    connection = sqlite3.connect(db_path)
    connection.execute("DROP TABLE short_term_memory")
    connection.execute("DROP TABLE episodic_memory")
    connection.commit()
    connection.close()

    assert store.get_context("before") == "kept"
    assert store.degraded is True
    assert store.store_context("after", "value").ok
    assert store.get_context("after") == "value"
    assert [entry.content for entry in store.get_recent_conversations(5)] == ["before failure"]
    store.close()


def test_corrupted_database_file_switches_to_mirror(db_path: Path) -> None:
    store = MemoryStore.open(db_path)
    store.store_context("before", "kept")
    store.store_conversation("user", "before corruption")

    for suffix in ("-wal", "-shm"):
        Path(f"{db_path}{suffix}").unlink(missing_ok=True)
    db_path.write_bytes(b"this is not a sqlite database file" * 128)

    assert store.get_context("before") == "kept"
    assert store.degraded is True
    assert store.store_context("after", "value").ok
    assert store.store_conversation("user", "after corruption").ok
    assert [entry.content for entry in store.get_recent_conversations(5)] == [
        "before corruption",
        "after corruption",
    ]
    health = store.health_check()
    assert health.durable_reachable is False
    assert health.detail
    store.close()


def test_non_durable_store_reports_in_process_backend() -> None:
    store = MemoryStore.open(Path("unused.db"), durable=False)

    health = store.health_check()

    assert store.degraded is False
    assert health.backend == "in-process"
    assert health.durable_configured is False
