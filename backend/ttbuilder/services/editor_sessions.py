from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
import logging
import threading

from ttbuilder.core.config import Settings, get_settings
from ttbuilder.core.timeslots import ScheduleLayout, default_layout
from ttbuilder.schemas.timetable import Faculty, Room
from ttbuilder.services.audit import AuditSink
from ttbuilder.services.grid import clone_grid
from ttbuilder.services.placement import PlacementEngine
from ttbuilder.services.timetable_store import TimetableStore, parse_timetable_key

logger = logging.getLogger(__name__)


class EditorRegistry:
    """Placement engines keyed by timetable key, plus the shared directory.

    Engines are created on first use from whatever the store holds. Each
    engine owns its own index and history.
    """

    def __init__(
        self,
        store: TimetableStore,
        audit: AuditSink | None = None,
        *,
        layout: ScheduleLayout | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.audit = audit
        self.layout = layout or default_layout()
        self.settings = settings or get_settings()
        self.rooms: list[Room] = []
        self.faculty: list[Faculty] = []
        self._engines: dict[str, PlacementEngine] = {}
        self._lock = threading.RLock()

    def set_directory(self, rooms: Iterable[Room], faculty: Iterable[Faculty]) -> None:
        with self._lock:
            self.rooms = list(rooms)
            self.faculty = list(faculty)
            for engine in self._engines.values():
                engine.set_directory(self.rooms, self.faculty)
        logger.info("Directory updated: %d rooms, %d faculty", len(self.rooms), len(self.faculty))

    def get(self, key: str) -> PlacementEngine:
        parse_timetable_key(key)
        with self._lock:
            engine = self._engines.get(key)
            if engine is None:
                engine = PlacementEngine(
                    self.store.load(key),
                    key=key,
                    rooms=self.rooms,
                    faculty=self.faculty,
                    audit=self.audit,
                    layout=self.layout,
                    settings=self.settings,
                )
                self._engines[key] = engine
            return engine

    @contextmanager
    def session(self, key: str) -> Iterator[PlacementEngine]:
        """Hold the registry lock while one request drives an engine."""
        engine = self.get(key)
        with self._lock:
            yield engine

    def discard(self, key: str) -> None:
        with self._lock:
            self._engines.pop(key, None)

    def open_keys(self) -> list[str]:
        with self._lock:
            return sorted(self._engines)

    def persist(self, key: str) -> None:
        """Save the engine's current grid; failures are logged, never raised.

        The grid is read under the lock at save time, so a late save never
        overwrites a newer commit with an older grid.
        """
        with self._lock:
            engine = self._engines.get(key)
            if engine is None:
                logger.debug("No open editor for timetable %s; nothing to save", key)
                return
            try:
                self.store.save(key, clone_grid(engine.grid))
            except Exception:
                logger.exception("Background save of timetable %s failed", key)
