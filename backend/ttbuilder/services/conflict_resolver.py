from __future__ import annotations

import logging
from collections.abc import Sequence

from ttbuilder.core.config import Settings, get_settings
from ttbuilder.core.exceptions import ResourceNotFoundError, SchedulerError
from ttbuilder.schemas.conflict import Conflict, Suggestion, SuggestionAction
from ttbuilder.schemas.timetable import CourseAssignment, Faculty, Grid, Room
from ttbuilder.services.grid import get_cell, has_cell, move_course, replace_assignment
from ttbuilder.services.index import TimetableIndex

logger = logging.getLogger(__name__)

ROOM_CONFLICT_TYPES = {"room", "room_overlap"}
FACULTY_CONFLICT_TYPES = {"faculty", "faculty_overlap"}


def find_alternative_time_slots(
    grid: Grid,
    current_day: str,
    current_slot: str,
    limit: int | None = None,
) -> list[tuple[str, str]]:
    """Free cells other than the current one, same day first."""
    limit = limit if limit is not None else get_settings().max_reschedule_suggestions
    same_day: list[tuple[str, str]] = []
    other_days: list[tuple[str, str]] = []
    for day, slots in grid.items():
        for slot, assignment in slots.items():
            if assignment is not None or (day == current_day and slot == current_slot):
                continue
            (same_day if day == current_day else other_days).append((day, slot))
    return (same_day + other_days)[:limit]


def _affected_course(grid: Grid, conflict: Conflict) -> CourseAssignment | None:
    """The course a suggestion would change: the one sitting in the conflict's cell."""
    return get_cell(grid, conflict.day, conflict.slot) or conflict.conflicting_course


def _room_suggestions(
    grid: Grid, conflict: Conflict, rooms: Sequence[Room], index: TimetableIndex
) -> list[Suggestion]:
    course = _affected_course(grid, conflict)
    current_room = course.room if course else None
    suggestions: list[Suggestion] = []
    for room in rooms:
        if room.id == current_room or not index.is_room_free(room.id, conflict.day, conflict.slot):
            continue
        capacity = room.capacity if room.capacity is not None else "unknown"
        suggestions.append(
            Suggestion(
                type="room_change",
                priority="high",
                title=f"Use Room {room.label}",
                description=f"Move course to {room.label} ({room.type or 'room'}, capacity: {capacity})",
                action=SuggestionAction(
                    type="change_room",
                    day=conflict.day,
                    slot=conflict.slot,
                    room_id=room.id,
                    room_name=room.name or room.type or "",
                    course_code=course.code if course else None,
                ),
                estimated_effort="Low",
            )
        )
    return suggestions


def _faculty_suggestions(
    grid: Grid, conflict: Conflict, faculty: Sequence[Faculty], index: TimetableIndex
) -> list[Suggestion]:
    course = _affected_course(grid, conflict)
    current_faculty = course.faculty_id if course else None
    suggestions: list[Suggestion] = []
    for member in faculty:
        if member.id == current_faculty or not index.is_faculty_free(member.id, conflict.day, conflict.slot):
            continue
        suggestions.append(
            Suggestion(
                type="faculty_change",
                priority="high",
                title=f"Assign {member.name or member.id}",
                description=f"Change instructor to {member.name or member.id} ({member.department or 'N/A'})",
                action=SuggestionAction(
                    type="change_faculty",
                    day=conflict.day,
                    slot=conflict.slot,
                    faculty_id=member.id,
                    faculty_name=member.name,
                    course_code=course.code if course else None,
                ),
                estimated_effort="Medium",
            )
        )
    return suggestions


def _time_suggestions(
    grid: Grid,
    conflict: Conflict,
    settings: Settings,
    effort: str,
    description: str | None = None,
) -> list[Suggestion]:
    course = _affected_course(grid, conflict)
    return [
        Suggestion(
            type="time_change",
            priority="medium",
            title=f"Move to {day} at {slot}",
            description=description or f"Reschedule course to {day} {slot}",
            action=SuggestionAction(
                type="change_time",
                day=conflict.day,
                slot=conflict.slot,
                new_day=day,
                new_slot=slot,
                course_code=course.code if course else None,
            ),
            estimated_effort=effort,
        )
        for day, slot in find_alternative_time_slots(
            grid, conflict.day, conflict.slot, settings.max_reschedule_suggestions
        )
    ]


def generate_suggestions(
    grid: Grid,
    conflict: Conflict,
    rooms: Sequence[Room] = (),
    faculty: Sequence[Faculty] = (),
    *,
    index: TimetableIndex | None = None,
    settings: Settings | None = None,
) -> list[Suggestion]:
    """Ranked fixes for one reported conflict.

    Resource swaps come first, reschedules follow. Conflict types other than
    room and faculty double-booking get no suggestions.
    """
    settings = settings or get_settings()
    index = index or TimetableIndex(grid)

    if conflict.type in ROOM_CONFLICT_TYPES:
        return _room_suggestions(grid, conflict, rooms, index) + _time_suggestions(grid, conflict, settings, "Medium")
    if conflict.type in FACULTY_CONFLICT_TYPES:
        return _faculty_suggestions(grid, conflict, faculty, index) + _time_suggestions(
            grid, conflict, settings, "High", "Reschedule to avoid faculty conflict"
        )
    logger.debug("No suggestions available for %s conflicts", conflict.type)
    return []


def apply_suggestion(grid: Grid, suggestion: Suggestion) -> Grid:
    """Perform the grid change a suggestion describes.

    The result is not re-validated; callers run the conflict detector again.
    """
    action = suggestion.action
    current = get_cell(grid, action.day, action.slot)
    if current is None:
        raise ResourceNotFoundError("Assignment", f"{action.day} {action.slot}")

    if action.type == "change_room":
        return replace_assignment(
            grid,
            action.day,
            action.slot,
            room=action.room_id or "",
            room_name=action.room_name or "",
        )
    if action.type == "change_faculty":
        return replace_assignment(
            grid,
            action.day,
            action.slot,
            faculty_id=action.faculty_id,
            faculty_name=action.faculty_name or "",
        )

    if not action.new_day or not action.new_slot or not has_cell(grid, action.new_day, action.new_slot):
        raise SchedulerError(f"Invalid reschedule target {action.new_day} {action.new_slot}")
    if get_cell(grid, action.new_day, action.new_slot) is not None:
        raise SchedulerError(f"Cannot reschedule {current.code}: {action.new_day} {action.new_slot} is occupied")
    room = Room(id=current.room, name=current.room_name) if current.room else None
    return move_course(grid, action.day, action.slot, action.new_day, action.new_slot, current, room)
