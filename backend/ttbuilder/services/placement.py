"""Drag-and-drop placement engine for one editing session.

One in-flight operation at a time: idle -> dragging -> drag_over(target),
ending in a committed drop or a cancellation. Drag-over only evaluates; the
grid changes on drop. Every commit keeps the index, the running conflict
list and the undo history in step with the new grid.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from enum import Enum
import logging
from typing import Any

from ttbuilder.core.config import Settings, get_settings
from ttbuilder.core.exceptions import ResourceNotFoundError, SchedulerError
from ttbuilder.core.timeslots import ScheduleLayout, default_layout
from ttbuilder.schemas.conflict import Conflict, IndexValidation, Suggestion
from ttbuilder.schemas.placement import ArrangementResult, DropFeedback, PlacementResult
from ttbuilder.schemas.timetable import BatchInfo, CourseAssignment, CoursePayload, Faculty, Grid, Room
from ttbuilder.services.audit import AuditAction, AuditSink
from ttbuilder.services.conflict_detector import (
    check_conflicts,
    deduplicate_conflicts,
    filter_conflicts_for_cell,
    get_all_conflicts,
    validate_placement,
)
from ttbuilder.services.conflict_resolver import apply_suggestion as apply_suggestion_to_grid
from ttbuilder.services.grid import (
    clear_grid,
    clone_grid,
    delete_course,
    get_cell,
    grid_from_payload,
    grid_to_payload,
    initialize_grid,
    move_course,
    place_course,
)
from ttbuilder.services.history import HistoryActionType, HistoryManager
from ttbuilder.services.index import SlotKey, TimetableIndex, slot_key_label
from ttbuilder.services.resource_validator import validate_all

logger = logging.getLogger(__name__)

DOUBLE_BOOKING_TYPES = {"room", "faculty", "room_overlap", "faculty_overlap"}

SUGGESTION_HISTORY_ACTIONS = {
    "change_room": HistoryActionType.room_change,
    "change_faculty": HistoryActionType.faculty_change,
    "change_time": HistoryActionType.course_move,
}


class PlacementState(str, Enum):
    idle = "idle"
    dragging = "dragging"
    drag_over = "drag_over"


@dataclass(frozen=True)
class DragState:
    course: CoursePayload
    source: SlotKey | None = None
    room: Room | None = None
    target: SlotKey | None = None


class PlacementEngine:
    def __init__(
        self,
        grid: Grid | None = None,
        *,
        key: str | None = None,
        rooms: Iterable[Room] = (),
        faculty: Iterable[Faculty] = (),
        audit: AuditSink | None = None,
        layout: ScheduleLayout | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.layout = layout or default_layout()
        self.settings = settings or get_settings()
        self.key = key
        self.audit = audit
        self.rooms: dict[str, Room] = {}
        self.faculty: dict[str, Faculty] = {}
        self.set_directory(rooms, faculty)

        self.grid = grid_from_payload(grid, self.layout) if grid is not None else initialize_grid(self.layout)
        self.index = TimetableIndex(self.grid)
        self.history = HistoryManager(self.grid, self.settings.max_history_entries)
        self.conflicts: list[Conflict] = get_all_conflicts(self.grid, self.layout)
        self._drag: DragState | None = None

    @property
    def state(self) -> PlacementState:
        if self._drag is None:
            return PlacementState.idle
        if self._drag.target is None:
            return PlacementState.dragging
        return PlacementState.drag_over

    @property
    def drag(self) -> DragState | None:
        return self._drag

    def set_directory(self, rooms: Iterable[Room], faculty: Iterable[Faculty]) -> None:
        self.rooms = {room.id: room for room in rooms}
        self.faculty = {member.id: member for member in faculty}

    def resolve_room(self, room: Room | str | None) -> Room | None:
        if room is None or isinstance(room, Room):
            return room
        if not room:
            return None
        known = self.rooms.get(room)
        if known is None:
            logger.debug("Room %s is not in the directory; no capacity or facility constraint", room)
            return Room(id=room)
        return known

    def payload(self) -> dict[str, dict[str, dict[str, Any] | None]]:
        return grid_to_payload(self.grid)

    # drag lifecycle

    def start_drag(
        self,
        course: CoursePayload | None = None,
        source_day: str | None = None,
        source_slot: str | None = None,
        room: Room | str | None = None,
    ) -> DragState:
        if self._drag is not None:
            raise SchedulerError("A drag is already in progress", details={"state": self.state.value})

        source: SlotKey | None = None
        resolved_room = self.resolve_room(room)
        if source_day is not None or source_slot is not None:
            existing = get_cell(self.grid, source_day or "", source_slot or "")
            if existing is None:
                raise ResourceNotFoundError("Assignment", f"{source_day} {source_slot}")
            source = (existing.day or source_day, existing.slot or source_slot)
            course = course or existing
            if resolved_room is None and existing.room:
                resolved_room = self.rooms.get(existing.room) or Room(id=existing.room, name=existing.room_name)
        if course is None:
            raise SchedulerError("Nothing to drag: give a course or a source cell")

        self._drag = DragState(course=course, source=source, room=resolved_room)
        return self._drag

    def drag_over(
        self,
        day: str,
        slot: str,
        room: Room | str | None = None,
        batch: BatchInfo | None = None,
    ) -> DropFeedback:
        drag = self._require_drag()
        if room is not None:
            drag = replace(drag, room=self.resolve_room(room))
        self._drag = replace(drag, target=(day, slot))
        return self.evaluate(drag.course, day, slot, self._drag.room, batch=batch, source=drag.source)

    def cancel(self) -> PlacementResult:
        if self._drag is not None:
            logger.debug("Drag of %s cancelled", self._drag.course.code)
        self._drag = None
        return PlacementResult(outcome="cancelled", message="Drag cancelled")

    def drop(
        self,
        day: str | None = None,
        slot: str | None = None,
        *,
        room: Room | str | None = None,
        batch: BatchInfo | None = None,
        allow_conflicts: bool = False,
    ) -> PlacementResult:
        drag = self._require_drag()
        if day is None or slot is None:
            if drag.target is None:
                raise SchedulerError("No drop target given")
            day, slot = drag.target
        if room is not None:
            drag = replace(drag, room=self.resolve_room(room))

        if drag.source == (day, slot):
            self._drag = None
            return PlacementResult(outcome="cancelled", message="Course dropped onto its own cell")

        # Whatever the outcome, the drop ends the drag.
        self._drag = None
        feedback = self.evaluate(drag.course, day, slot, drag.room, batch=batch, source=drag.source)
        blocking = [
            conflict
            for conflict in feedback.conflicts
            if not allow_conflicts or conflict.type == "slot_occupied"
        ]
        if blocking:
            logger.info(
                "Rejected drop of %s at %s %s: %d critical conflicts",
                drag.course.code,
                day,
                slot,
                len(feedback.conflicts),
            )
            return PlacementResult(
                outcome="rejected",
                message="Cannot place course due to conflicts",
                conflicts=feedback.conflicts,
                warnings=feedback.warnings,
            )

        assignment = self._commit(drag.course, day, slot, drag.room, source=drag.source, kept=feedback.conflicts)
        action = HistoryActionType.course_move if drag.source else HistoryActionType.course_add
        metadata = {"course_code": assignment.code, "to": slot_key_label((day, slot))}
        if drag.source:
            metadata["from"] = slot_key_label(drag.source)
        self.history.record(self.grid, action, metadata)
        self._audit(AuditAction(action.value), metadata)
        logger.info("Committed %s of %s at %s %s", action.value, assignment.code, day, slot)

        return PlacementResult(
            outcome="committed",
            message="Course moved" if drag.source else "Course placed",
            assignment=assignment,
            conflicts=self.conflicts,
            warnings=feedback.warnings,
        )

    def place(
        self,
        course: CoursePayload | None,
        day: str,
        slot: str,
        room: Room | str | None = None,
        *,
        source_day: str | None = None,
        source_slot: str | None = None,
        batch: BatchInfo | None = None,
        allow_conflicts: bool = False,
    ) -> PlacementResult:
        """Start a drag and drop it in one step."""
        self.start_drag(course, source_day, source_slot, room)
        return self.drop(day, slot, batch=batch, allow_conflicts=allow_conflicts)

    # evaluation

    def evaluate(
        self,
        course: CoursePayload,
        day: str,
        slot: str,
        room: Room | None,
        *,
        batch: BatchInfo | None = None,
        source: SlotKey | None = None,
    ) -> DropFeedback:
        if not self.layout.has_cell(day, slot):
            raise ResourceNotFoundError("Cell", f"{day} {slot}")

        # A moved course must not clash with itself, so a move is judged
        # against the grid with its source cell emptied.
        working = delete_course(self.grid, *source) if source else self.grid
        index = self.index if source is None else None
        placement = validate_placement(working, day, slot, course, room, index=index, layout=self.layout)

        conflicts = list(placement.conflicts)
        occupant = get_cell(working, day, slot)
        if occupant is not None:
            conflicts.insert(
                0,
                Conflict(
                    type="slot_occupied",
                    severity="critical",
                    day=day,
                    slot=slot,
                    message=f"Slot already occupied by {occupant.code}",
                    conflicting_course=occupant,
                    suggested_actions=["Choose an empty slot", "Move or delete the existing course first"],
                ),
            )

        faculty = self.faculty.get(course.faculty_id) if course.faculty_id else None
        resources = validate_all(
            working,
            day,
            slot,
            course,
            room,
            batch,
            faculty,
            layout=self.layout,
            settings=self.settings,
        )
        conflicts.extend(resources.conflicts)
        critical = [conflict for conflict in conflicts if conflict.is_critical]
        warnings = [conflict for conflict in conflicts if not conflict.is_critical] + resources.warnings
        return DropFeedback(
            day=day,
            slot=slot,
            can_drop=not critical,
            placement=placement,
            resources=resources,
            conflicts=deduplicate_conflicts(critical),
            warnings=warnings,
        )

    # other commits

    def delete(self, day: str, slot: str) -> PlacementResult:
        existing = get_cell(self.grid, day, slot)
        if existing is None:
            raise ResourceNotFoundError("Assignment", f"{day} {slot}")

        self.grid = delete_course(self.grid, day, slot)
        self.index.update(day, slot, existing, None)
        self._rescan_days(filter_conflicts_for_cell(self.conflicts, day, slot), {day})
        metadata = {"course_code": existing.code, "from": slot_key_label((day, slot))}
        self.history.record(self.grid, HistoryActionType.course_remove, metadata)
        self._audit(AuditAction.course_remove, metadata)
        logger.info("Removed %s from %s %s", existing.code, day, slot)
        return PlacementResult(
            outcome="committed",
            message="Course removed",
            assignment=existing,
            conflicts=self.conflicts,
        )

    def undo(self) -> bool:
        grid = self.history.undo()
        if grid is None:
            return False
        self._restore(grid)
        return True

    def redo(self) -> bool:
        grid = self.history.redo()
        if grid is None:
            return False
        self._restore(grid)
        return True

    def apply_suggestion(self, suggestion: Suggestion) -> list[Conflict]:
        action = suggestion.action
        changed = get_cell(self.grid, action.day, action.slot)
        self._restore(apply_suggestion_to_grid(self.grid, suggestion))
        metadata = {
            "course_code": changed.code if changed is not None else action.course_code or "",
            "from": slot_key_label((action.day, action.slot)),
            "to": slot_key_label((action.new_day or action.day, action.new_slot or action.slot)),
            "suggestion": suggestion.type,
        }
        self.history.record(self.grid, SUGGESTION_HISTORY_ACTIONS[action.type], metadata)
        self._audit(AuditAction.conflict_resolved, metadata)
        logger.info("Applied %s suggestion at %s %s", suggestion.type, action.day, action.slot)
        return self.conflicts

    def replace_grid(self, grid: Grid, action: HistoryActionType = HistoryActionType.import_data) -> None:
        self._restore(grid_from_payload(grid, self.layout))
        self.history.record(self.grid, action)
        self._audit(AuditAction(action.value), {"courses": len(self.index.slot_index)})

    def clear(self) -> None:
        self.replace_grid(clear_grid(self.grid), HistoryActionType.clear_all)

    def auto_arrange(
        self,
        courses: Sequence[CoursePayload],
        *,
        preferred_days: Sequence[str] | None = None,
        preferred_slots: Sequence[str] | None = None,
        room: Room | str | None = None,
        batch: BatchInfo | None = None,
    ) -> ArrangementResult:
        """Greedy best-effort placement into free cells, day by day.

        Each candidate is validated before commit; courses with no
        conflict-free cell are returned as unplaced.
        """
        resolved_room = self.resolve_room(room)
        days = [day for day in (preferred_days or self.layout.days) if day in self.layout.days]
        slots = [slot for slot in (preferred_slots or ()) if slot in self.layout.slots]
        slots += [slot for slot in self.layout.slots if slot not in slots]

        result = ArrangementResult()
        for course in courses:
            assignment = None
            for day in days:
                for slot in slots:
                    if get_cell(self.grid, day, slot) is not None:
                        continue
                    if not self.evaluate(course, day, slot, resolved_room, batch=batch).can_drop:
                        continue
                    assignment = self._commit(course, day, slot, resolved_room)
                    break
                if assignment is not None:
                    break
            if assignment is None:
                result.unplaced.append(course)
            else:
                result.placements.append(assignment)

        if result.placements:
            metadata = {
                "description": f"auto-arranged {len(result.placements)} courses",
                "placed": [assignment.code for assignment in result.placements],
                "unplaced": [course.code for course in result.unplaced],
            }
            self.history.record(self.grid, HistoryActionType.bulk_operation, metadata)
            self._audit(AuditAction.bulk_operation, metadata)
        logger.info("Auto-arrange placed %d courses, %d unplaced", len(result.placements), len(result.unplaced))
        result.conflicts = list(self.conflicts)
        return result

    def validate_index(self) -> IndexValidation:
        report = self.index.validate(self.grid)
        if not report.is_valid:
            logger.warning("Rebuilding index for timetable %s", self.key or "<unsaved>")
            self.index.build(self.grid)
        return report

    # internals

    def _require_drag(self) -> DragState:
        if self._drag is None:
            raise SchedulerError("No drag in progress")
        return self._drag

    def _commit(
        self,
        course: CoursePayload,
        day: str,
        slot: str,
        room: Room | None,
        *,
        source: SlotKey | None = None,
        kept: Sequence[Conflict] = (),
    ) -> CourseAssignment:
        conflicts = filter_conflicts_for_cell(self.conflicts, day, slot)
        days = {day}
        if source is not None:
            previous = get_cell(self.grid, *source)
            conflicts = filter_conflicts_for_cell(conflicts, *source)
            days.add(source[0])
            new_grid = move_course(self.grid, source[0], source[1], day, slot, course, room)
            self.index.update(source[0], source[1], previous, None)
        else:
            new_grid = place_course(self.grid, day, slot, course, room)

        assignment = get_cell(new_grid, day, slot)
        self.index.update(day, slot, None, assignment)
        self.grid = new_grid
        self._rescan_days(conflicts, days, kept)
        return assignment

    def _rescan_days(
        self,
        conflicts: list[Conflict],
        days: set[str],
        kept: Sequence[Conflict] = (),
    ) -> None:
        # Overlaps reach across a whole day, so double-booking is re-checked
        # for every course on the touched days; other conflict types stay.
        conflicts = [
            conflict
            for conflict in conflicts
            if not (conflict.day in days and conflict.type in DOUBLE_BOOKING_TYPES)
        ]
        for day in sorted(days, key=self.layout.days.index):
            for slot, assignment in self.grid.get(day, {}).items():
                if assignment is None:
                    continue
                conflicts.extend(
                    check_conflicts(
                        self.grid, day, slot, assignment, assignment.room, index=self.index, layout=self.layout
                    )
                )
        self.conflicts = deduplicate_conflicts(conflicts + list(kept))

    def _restore(self, grid: Grid) -> None:
        self.grid = clone_grid(grid)
        self.index.build(self.grid)
        self.conflicts = get_all_conflicts(self.grid, self.layout)
        self._drag = None

    def _audit(self, action: AuditAction, details: dict[str, Any]) -> None:
        if self.audit is None:
            return
        try:
            self.audit.record(action, details, timetable_key=self.key)
        except Exception:
            logger.exception("Audit sink failed to record %s", action.value)
