"""Persistence collaborators for timetable grids.

Documents are keyed by ``"{semester}-{branch}-{batch}-{type}"``. Saves are
last-write-wins; there is no cross-client locking.
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
import logging
from typing import NamedTuple, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from ttbuilder.core.timeslots import ScheduleLayout, default_layout
from ttbuilder.models.timetable import TimetableDocument
from ttbuilder.schemas.timetable import Grid
from ttbuilder.services.grid import clone_grid, grid_from_payload, grid_to_payload, initialize_grid

logger = logging.getLogger(__name__)

GridCallback = Callable[[Grid], None]


class TimetableKey(NamedTuple):
    semester: str
    branch: str
    batch: str
    type: str


def generate_timetable_key(semester: str, branch: str, batch: str, type: str) -> str:
    parts = [str(part).strip() for part in (semester, branch, batch, type)]
    for part in parts:
        if not part or "-" in part:
            raise ValueError(f"Invalid timetable key component: {part!r}")
    return "-".join(parts)


def parse_timetable_key(key: str) -> TimetableKey:
    parts = (key or "").split("-")
    if len(parts) != 4 or not all(part.strip() for part in parts):
        raise ValueError(f"Timetable key must look like semester-branch-batch-type, got {key!r}")
    return TimetableKey(*(part.strip() for part in parts))


class TimetableStore(Protocol):
    def load(self, key: str) -> Grid: ...

    def save(self, key: str, grid: Grid) -> None: ...

    def subscribe(self, key: str, callback: GridCallback) -> Callable[[], None]: ...

    def list_keys(self) -> list[str]: ...


class _Subscribers:
    def __init__(self) -> None:
        self._callbacks: dict[str, list[GridCallback]] = defaultdict(list)

    def add(self, key: str, callback: GridCallback) -> Callable[[], None]:
        self._callbacks[key].append(callback)

        def unsubscribe() -> None:
            callbacks = self._callbacks.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._callbacks.pop(key, None)

        return unsubscribe

    def notify(self, key: str, grid: Grid) -> None:
        for callback in list(self._callbacks.get(key, ())):
            callback(clone_grid(grid))


class InMemoryTimetableStore:
    def __init__(self, layout: ScheduleLayout | None = None) -> None:
        self.layout = layout or default_layout()
        self._documents: dict[str, Grid] = {}
        self._subscribers = _Subscribers()

    def load(self, key: str) -> Grid:
        parse_timetable_key(key)
        stored = self._documents.get(key)
        if stored is None:
            return initialize_grid(self.layout)
        return clone_grid(stored)

    def save(self, key: str, grid: Grid) -> None:
        parse_timetable_key(key)
        self._documents[key] = clone_grid(grid)
        self._subscribers.notify(key, grid)

    def subscribe(self, key: str, callback: GridCallback) -> Callable[[], None]:
        return self._subscribers.add(key, callback)

    def list_keys(self) -> list[str]:
        return sorted(self._documents)


class SqlTimetableStore:
    """Stores each grid as one ``TimetableDocument`` row with a JSON schedule."""

    def __init__(self, session_factory: Callable[[], Session], layout: ScheduleLayout | None = None) -> None:
        self._session_factory = session_factory
        self.layout = layout or default_layout()
        self._subscribers = _Subscribers()

    def load(self, key: str) -> Grid:
        parse_timetable_key(key)
        with self._session_factory() as db:
            document = db.get(TimetableDocument, key)
            if document is None:
                return initialize_grid(self.layout)
            return grid_from_payload(document.schedule, self.layout)

    def save(self, key: str, grid: Grid) -> None:
        parts = parse_timetable_key(key)
        with self._session_factory() as db:
            document = db.get(TimetableDocument, key)
            if document is None:
                document = TimetableDocument(key=key, **parts._asdict())
                db.add(document)
            document.schedule = grid_to_payload(grid)
            db.commit()
        logger.info("Saved timetable %s", key)
        self._subscribers.notify(key, grid)

    def subscribe(self, key: str, callback: GridCallback) -> Callable[[], None]:
        return self._subscribers.add(key, callback)

    def list_keys(self) -> list[str]:
        with self._session_factory() as db:
            return list(db.scalars(select(TimetableDocument.key).order_by(TimetableDocument.key)))
