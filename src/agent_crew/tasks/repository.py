"""Persistent task repository backed by SQLModel + SQLite."""

from __future__ import annotations

import json
from pathlib import Path

from sqlalchemy import func
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from agent_crew.errors import (
    AlreadyDone,
    AlreadyInProgress,
    ConflictingTaskInProgress,
    NoCurrentTask,
    NotFound,
)
from agent_crew.storage.alembic_runner import upgrade_head
from agent_crew.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from agent_crew.storage.sqlmodel_models import TaskEvent, TaskRow
from agent_crew.tasks.models import (
    TaskCreate,
    TaskDetails,
    TaskEventView,
    TaskStatus,
    TaskView,
)


class TaskRepository:
    """Task persistence facade.

    Status transitions are conditional updates (``WHERE status = <expected>``),
    and the ``uq_tasks_single_in_progress`` partial index rejects a second
    in-progress row even if two writers race past the checks.
    """

    def __init__(self, db_path: Path, *, busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        upgrade_head(self.db_path)

    def create_task(self, payload: TaskCreate) -> TaskView:
        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            row = TaskRow(
                title=payload.title,
                file=payload.file,
                prompt=payload.prompt,
                status=TaskStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            self._add_event(
                session=session,
                task_id=_row_id(row),
                event_type="created",
                status_from=None,
                status_to=TaskStatus.PENDING,
                details={"file": payload.file} if payload.file else {},
            )
            session.commit()
            session.refresh(row)
            return _to_task_view(row)

    def get_task(self, task_id: int) -> TaskView | None:
        with Session(self.engine) as session:
            row = session.get(TaskRow, task_id)
            return _to_task_view(row) if row is not None else None

    def list_tasks(self, *, status: TaskStatus | None = None) -> list[TaskView]:
        """Tasks in id order, optionally filtered by status."""

        with Session(self.engine) as session:
            statement = select(TaskRow).order_by(col(TaskRow.id).asc())
            if status is not None:
                statement = statement.where(TaskRow.status == status.value)
            rows = session.exec(statement).all()
        return [_to_task_view(row) for row in rows]

    def get_in_progress(self) -> TaskView | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(TaskRow).where(TaskRow.status == TaskStatus.IN_PROGRESS.value),
            ).first()
            return _to_task_view(row) if row is not None else None

    def get_next_pending(self) -> TaskView | None:
        """Lowest-id pending task."""

        with Session(self.engine) as session:
            row = session.exec(
                select(TaskRow)
                .where(TaskRow.status == TaskStatus.PENDING.value)
                .order_by(col(TaskRow.id).asc())
                .limit(1),
            ).first()
            return _to_task_view(row) if row is not None else None

    def count_by_status(self) -> dict[TaskStatus, int]:
        counts = dict.fromkeys(TaskStatus, 0)
        with Session(self.engine) as session:
            rows = session.exec(
                select(TaskRow.status, func.count()).group_by(TaskRow.status),
            ).all()
        for status, count in rows:
            counts[TaskStatus(status)] = count
        return counts

    def start_task(self, task_id: int) -> TaskView:
        """Move a pending task to in-progress."""

        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            row = self._get_task_row(session=session, task_id=task_id)
            previous = TaskStatus(row.status)
            if previous is TaskStatus.DONE:
                raise AlreadyDone(task_id)
            if previous is TaskStatus.IN_PROGRESS:
                raise AlreadyInProgress(task_id)
            current = session.exec(
                select(TaskRow.id).where(TaskRow.status == TaskStatus.IN_PROGRESS.value),
            ).first()
            if current is not None:
                raise ConflictingTaskInProgress(task_id, current)

            try:
                result = session.exec(
                    sa_update(TaskRow)
                    .where(
                        col(TaskRow.id) == task_id,
                        col(TaskRow.status) == TaskStatus.PENDING.value,
                    )
                    .values(
                        status=TaskStatus.IN_PROGRESS.value,
                        started_at=now,
                        updated_at=now,
                    ),
                )
            except IntegrityError:
                session.rollback()
                raise ConflictingTaskInProgress(task_id, self._in_progress_id()) from None
            if result.rowcount != 1:
                session.rollback()
                raise self._state_error(task_id)

            self._add_event(
                session=session,
                task_id=task_id,
                event_type="started",
                status_from=TaskStatus.PENDING,
                status_to=TaskStatus.IN_PROGRESS,
                details={},
            )
            session.commit()
            session.refresh(row)
            return _to_task_view(row)

    def complete_task(self, task_id: int) -> TaskView:
        """Move an in-progress task to done."""

        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            row = self._get_task_row(session=session, task_id=task_id)
            result = session.exec(
                sa_update(TaskRow)
                .where(
                    col(TaskRow.id) == task_id,
                    col(TaskRow.status) == TaskStatus.IN_PROGRESS.value,
                )
                .values(
                    status=TaskStatus.DONE.value,
                    completed_at=now,
                    updated_at=now,
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                if TaskStatus(row.status) is TaskStatus.DONE:
                    raise AlreadyDone(task_id)
                raise NoCurrentTask

            self._add_event(
                session=session,
                task_id=task_id,
                event_type="completed",
                status_from=TaskStatus.IN_PROGRESS,
                status_to=TaskStatus.DONE,
                details={},
            )
            session.commit()
            session.refresh(row)
            return _to_task_view(row)

    def assign_agent(
        self,
        task_id: int,
        agent_id: str,
        *,
        details: dict[str, object] | None = None,
    ) -> TaskView:
        """Record the agent a task was routed to; status is left unchanged."""

        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            row = self._get_task_row(session=session, task_id=task_id)
            row.assigned_agent = agent_id
            row.updated_at = now
            session.add(row)
            status = TaskStatus(row.status)
            self._add_event(
                session=session,
                task_id=task_id,
                event_type="assigned",
                status_from=status,
                status_to=status,
                details=details or {"agent": agent_id},
            )
            session.commit()
            session.refresh(row)
            return _to_task_view(row)

    def get_task_details(self, task_id: int) -> TaskDetails | None:
        """Return task details with event stream."""

        with Session(self.engine) as session:
            task = session.get(TaskRow, task_id)
            if task is None:
                return None
            event_rows = session.exec(
                select(TaskEvent)
                .where(TaskEvent.task_id == task_id)
                .order_by(col(TaskEvent.event_id).asc()),
            ).all()

            events: list[TaskEventView] = []
            for row in event_rows:
                details = {}
                if row.details_json:
                    parsed = json.loads(row.details_json)
                    if isinstance(parsed, dict):
                        details = parsed
                events.append(
                    TaskEventView(
                        event_id=row.event_id or 0,
                        task_id=row.task_id,
                        event_type=row.event_type,
                        status_from=(
                            TaskStatus(row.status_from) if row.status_from is not None else None
                        ),
                        status_to=TaskStatus(row.status_to) if row.status_to is not None else None,
                        created_at=to_utc_aware_datetime(row.created_at),
                        details=details,
                    ),
                )
            return TaskDetails(task=_to_task_view(task), events=events)

    def _in_progress_id(self) -> int:
        current = self.get_in_progress()
        return current.task_id if current is not None else 0

    def _state_error(self, task_id: int) -> Exception:
        current = self.get_task(task_id)
        if current is None:
            return NotFound(task_id)
        if current.status is TaskStatus.DONE:
            return AlreadyDone(task_id)
        if current.status is TaskStatus.IN_PROGRESS:
            return AlreadyInProgress(task_id)
        return ConflictingTaskInProgress(task_id, self._in_progress_id())

    def _get_task_row(self, *, session: Session, task_id: int) -> TaskRow:
        row = session.get(TaskRow, task_id)
        if row is None:
            raise NotFound(task_id)
        return row

    def _add_event(  # noqa: PLR0913
        self,
        *,
        session: Session,
        task_id: int,
        event_type: str,
        status_from: TaskStatus | None,
        status_to: TaskStatus | None,
        details: dict[str, object],
    ) -> None:
        session.add(
            TaskEvent(
                task_id=task_id,
                event_type=event_type,
                status_from=status_from.value if status_from is not None else None,
                status_to=status_to.value if status_to is not None else None,
                details_json=json.dumps(details, ensure_ascii=False, sort_keys=True)
                if details
                else None,
                created_at=to_db_datetime(utc_now()),
            ),
        )


def _row_id(row: TaskRow) -> int:
    if row.id is None:
        raise RuntimeError("Task row has no id after flush.")
    return row.id


def _to_task_view(row: TaskRow) -> TaskView:
    return TaskView(
        task_id=_row_id(row),
        title=row.title,
        file=row.file,
        prompt=row.prompt,
        status=TaskStatus(row.status),
        assigned_agent=row.assigned_agent,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
        started_at=to_utc_aware_datetime(row.started_at) if row.started_at is not None else None,
        completed_at=(
            to_utc_aware_datetime(row.completed_at) if row.completed_at is not None else None
        ),
    )
