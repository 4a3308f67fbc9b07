"""Undo/redo history of grid snapshots.

The pure functions work on an immutable ``HistoryState`` and return a new
one. ``HistoryManager`` holds the current state for one editing session.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any

from ttbuilder.core.config import get_settings
from ttbuilder.schemas.history import HistoryEntryOut, HistoryStatistics, HistorySummary
from ttbuilder.schemas.timetable import Grid
from ttbuilder.services.grid import clone_grid

logger = logging.getLogger(__name__)


class HistoryActionType(str, Enum):
    course_add = "course_add"
    course_remove = "course_remove"
    course_move = "course_move"
    room_change = "room_change"
    faculty_change = "faculty_change"
    batch_change = "batch_change"
    bulk_operation = "bulk_operation"
    import_data = "import_data"
    clear_all = "clear_all"
    conflict_resolved = "conflict_resolved"


ACTION_DESCRIPTIONS: dict[HistoryActionType, str] = {
    HistoryActionType.course_add: "Added {course}",
    HistoryActionType.course_remove: "Removed {course}",
    HistoryActionType.course_move: "Moved {course} from {source} to {target}",
    HistoryActionType.room_change: "Changed room for {course}",
    HistoryActionType.faculty_change: "Changed faculty for {course}",
    HistoryActionType.batch_change: "Changed batch configuration",
    HistoryActionType.bulk_operation: "Bulk operation: {description}",
    HistoryActionType.import_data: "Imported timetable data",
    HistoryActionType.clear_all: "Cleared all timetable data",
    HistoryActionType.conflict_resolved: "Resolved conflict for {course}",
}


@dataclass(frozen=True)
class HistoryAction:
    type: HistoryActionType
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HistoryEntry:
    grid: Grid
    action: HistoryAction | None = None


@dataclass(frozen=True)
class HistoryState:
    entries: tuple[HistoryEntry, ...] = ()
    cursor: int = -1
    max_entries: int = 50


def new_history(grid: Grid | None = None, max_entries: int | None = None) -> HistoryState:
    limit = max_entries if max_entries is not None else get_settings().max_history_entries
    if limit < 1:
        raise ValueError("History needs room for at least one entry")
    state = HistoryState(max_entries=limit)
    if grid is not None:
        state = record(state, grid)
    return state


def record(
    state: HistoryState,
    grid: Grid,
    action_type: HistoryActionType | str | None = None,
    metadata: dict[str, Any] | None = None,
) -> HistoryState:
    action = None
    if action_type is not None:
        action = HistoryAction(type=HistoryActionType(action_type), metadata=dict(metadata or {}))
    entries = state.entries[: state.cursor + 1] + (HistoryEntry(grid=clone_grid(grid), action=action),)
    if len(entries) > state.max_entries:
        entries = entries[len(entries) - state.max_entries :]
    return replace(state, entries=entries, cursor=len(entries) - 1)


def can_undo(state: HistoryState) -> bool:
    return state.cursor > 0


def can_redo(state: HistoryState) -> bool:
    return state.cursor < len(state.entries) - 1


def undo(state: HistoryState) -> tuple[Grid, HistoryState] | None:
    if not can_undo(state):
        logger.debug("Undo requested at the start of history")
        return None
    cursor = state.cursor - 1
    return clone_grid(state.entries[cursor].grid), replace(state, cursor=cursor)


def redo(state: HistoryState) -> tuple[Grid, HistoryState] | None:
    if not can_redo(state):
        logger.debug("Redo requested at the end of history")
        return None
    cursor = state.cursor + 1
    return clone_grid(state.entries[cursor].grid), replace(state, cursor=cursor)


def current_grid(state: HistoryState) -> Grid | None:
    if state.cursor < 0:
        return None
    return clone_grid(state.entries[state.cursor].grid)


def history_summary(state: HistoryState) -> HistorySummary:
    return HistorySummary(
        total_states=len(state.entries),
        current_index=state.cursor,
        can_undo=can_undo(state),
        can_redo=can_redo(state),
        max_entries=state.max_entries,
    )


def clear_history(state: HistoryState, grid: Grid) -> HistoryState:
    return replace(state, entries=(HistoryEntry(grid=clone_grid(grid)),), cursor=0)


def compress_history(state: HistoryState, keep_last: int = 10) -> HistoryState:
    if len(state.entries) <= keep_last:
        return state
    start = len(state.entries) - keep_last
    return replace(state, entries=state.entries[start:], cursor=max(0, state.cursor - start))


def describe_entry(entry: HistoryEntry) -> str:
    if entry.action is None:
        return "Unknown action"
    metadata = entry.action.metadata
    template = ACTION_DESCRIPTIONS.get(entry.action.type, "{action}")
    text = template.format(
        action=entry.action.type.value,
        course=metadata.get("course_code") or "course",
        source=metadata.get("from"),
        target=metadata.get("to"),
        description=metadata.get("description") or "multiple changes",
    )
    return f"{text} at {entry.action.timestamp.strftime('%H:%M:%S')}"


def _entry_out(state: HistoryState, index: int) -> HistoryEntryOut:
    entry = state.entries[index]
    return HistoryEntryOut(
        index=index,
        description=describe_entry(entry),
        is_current=index == state.cursor,
        action_type=entry.action.type.value if entry.action else None,
        timestamp=entry.action.timestamp if entry.action else None,
        metadata=dict(entry.action.metadata) if entry.action else {},
    )


def timeline(state: HistoryState, max_entries: int = 10) -> list[HistoryEntryOut]:
    """Entries up to the cursor, most recent first."""
    start = max(0, state.cursor - max_entries + 1)
    return [_entry_out(state, index) for index in range(state.cursor, start - 1, -1)]


def search_by_action_type(state: HistoryState, action_type: HistoryActionType | str) -> list[HistoryEntryOut]:
    wanted = HistoryActionType(action_type)
    return [
        _entry_out(state, index)
        for index, entry in enumerate(state.entries)
        if entry.action is not None and entry.action.type == wanted
    ]


def history_statistics(state: HistoryState) -> HistoryStatistics:
    actions = [entry.action for entry in state.entries if entry.action is not None]
    timestamps = sorted(action.timestamp for action in actions)
    return HistoryStatistics(
        total_actions=len(state.entries),
        action_types=dict(Counter(action.type.value for action in actions)),
        first_action_at=timestamps[0] if timestamps else None,
        last_action_at=timestamps[-1] if timestamps else None,
    )


class HistoryManager:
    """Session-owned wrapper that keeps the current ``HistoryState``."""

    def __init__(self, grid: Grid | None = None, max_entries: int | None = None) -> None:
        self.state = new_history(grid, max_entries)

    def record(
        self,
        grid: Grid,
        action_type: HistoryActionType | str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.state = record(self.state, grid, action_type, metadata)

    def undo(self) -> Grid | None:
        result = undo(self.state)
        if result is None:
            return None
        grid, self.state = result
        return grid

    def redo(self) -> Grid | None:
        result = redo(self.state)
        if result is None:
            return None
        grid, self.state = result
        return grid

    @property
    def can_undo(self) -> bool:
        return can_undo(self.state)

    @property
    def can_redo(self) -> bool:
        return can_redo(self.state)

    def reset(self, grid: Grid) -> None:
        self.state = clear_history(self.state, grid)

    def summary(self) -> HistorySummary:
        return history_summary(self.state)

    def timeline(self, max_entries: int = 10) -> list[HistoryEntryOut]:
        return timeline(self.state, max_entries)
