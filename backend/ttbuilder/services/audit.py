from __future__ import annotations

from collections import Counter, deque
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any, Protocol
import uuid

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ttbuilder.core.config import get_settings
from ttbuilder.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    course_add = "course_add"
    course_remove = "course_remove"
    course_move = "course_move"
    room_change = "room_change"
    faculty_change = "faculty_change"
    bulk_operation = "bulk_operation"
    import_data = "import_data"
    clear_all = "clear_all"
    conflict_resolved = "conflict_resolved"


class AuditEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    action: AuditAction
    timetable_key: str | None = Field(default=None, alias="timetableKey")
    actor: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")

    model_config = {"populate_by_name": True}


class AuditStatistics(BaseModel):
    total_logs: int = Field(alias="totalLogs")
    actions: dict[str, int] = Field(default_factory=dict)
    timetables: dict[str, int] = Field(default_factory=dict)
    first_entry_at: datetime | None = Field(default=None, alias="firstEntryAt")
    last_entry_at: datetime | None = Field(default=None, alias="lastEntryAt")

    model_config = {"populate_by_name": True}


class AuditSink(Protocol):
    def record(
        self,
        action: AuditAction,
        details: dict[str, Any] | None = None,
        *,
        timetable_key: str | None = None,
        actor: str | None = None,
    ) -> None: ...


def log_activity(
    db: Session,
    *,
    actor: str | None,
    action: str,
    timetable_key: str | None = None,
    details: dict | None = None,
) -> None:
    record = ActivityLog(
        actor=actor,
        action=action,
        timetable_key=timetable_key,
        details=details or {},
    )
    db.add(record)


class InMemoryAuditLog:
    """Bounded audit trail; the oldest entries fall off first."""

    def __init__(self, max_logs: int | None = None) -> None:
        self.max_logs = max_logs if max_logs is not None else get_settings().max_audit_logs
        self._entries: deque[AuditEntry] = deque(maxlen=self.max_logs)

    def record(
        self,
        action: AuditAction,
        details: dict[str, Any] | None = None,
        *,
        timetable_key: str | None = None,
        actor: str | None = None,
    ) -> None:
        self._entries.append(
            AuditEntry(
                action=AuditAction(action),
                timetable_key=timetable_key,
                actor=actor,
                details=dict(details or {}),
            )
        )

    def __len__(self) -> int:
        return len(self._entries)

    def get_logs(self, start: datetime | None = None, end: datetime | None = None) -> list[AuditEntry]:
        return [
            entry
            for entry in self._entries
            if (start is None or entry.created_at >= start) and (end is None or entry.created_at <= end)
        ]

    def search(
        self,
        *,
        action: AuditAction | str | None = None,
        timetable_key: str | None = None,
        text: str | None = None,
    ) -> list[AuditEntry]:
        wanted = AuditAction(action) if action is not None else None
        needle = text.lower() if text else None
        results: list[AuditEntry] = []
        for entry in self._entries:
            if wanted is not None and entry.action != wanted:
                continue
            if timetable_key is not None and entry.timetable_key != timetable_key:
                continue
            if needle is not None and needle not in entry.model_dump_json().lower():
                continue
            results.append(entry)
        return results

    def statistics(self) -> AuditStatistics:
        entries = list(self._entries)
        return AuditStatistics(
            total_logs=len(entries),
            actions=dict(Counter(entry.action.value for entry in entries)),
            timetables=dict(Counter(entry.timetable_key for entry in entries if entry.timetable_key)),
            first_entry_at=entries[0].created_at if entries else None,
            last_entry_at=entries[-1].created_at if entries else None,
        )

    def clear(self) -> None:
        self._entries.clear()


class DatabaseAuditLog:
    """Writes audit entries as ``ActivityLog`` rows, one session per record."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def record(
        self,
        action: AuditAction,
        details: dict[str, Any] | None = None,
        *,
        timetable_key: str | None = None,
        actor: str | None = None,
    ) -> None:
        db = self._session_factory()
        try:
            log_activity(
                db,
                actor=actor,
                action=AuditAction(action).value,
                timetable_key=timetable_key,
                details=details,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
