"""Timetable grid: day -> slot -> optional course assignment.

Every operation here is pure. A new grid is returned and the input is left
untouched. Assignments are frozen models, so copying the two dict levels is a
complete structural clone.
"""
from __future__ import annotations

from collections.abc import Iterator, Mapping
import logging
from typing import Any

from pydantic import ValidationError

from ttbuilder.core.timeslots import ScheduleLayout, default_layout
from ttbuilder.schemas.timetable import CourseAssignment, CoursePayload, Grid, Room

logger = logging.getLogger(__name__)


def initialize_grid(layout: ScheduleLayout | None = None) -> Grid:
    layout = layout or default_layout()
    return {day: {slot: None for slot in layout.slots} for day in layout.days}


def clone_grid(grid: Grid) -> Grid:
    return {day: dict(slots) for day, slots in grid.items()}


def has_cell(grid: Grid, day: str, slot: str) -> bool:
    return day in grid and slot in grid[day]


def get_cell(grid: Grid, day: str, slot: str) -> CourseAssignment | None:
    return grid.get(day, {}).get(slot)


def room_id_of(room: Room | Mapping[str, Any] | str | None) -> str:
    if room is None:
        return ""
    if isinstance(room, str):
        return room
    if isinstance(room, Room):
        return room.id
    return str(room.get("id") or room.get("number") or "")


def build_assignment(
    course: CoursePayload | CourseAssignment,
    day: str,
    slot: str,
    room: Room | None,
) -> CourseAssignment:
    data = course.model_dump(exclude={"room", "room_name", "day", "slot"})
    return CourseAssignment(
        **data,
        room=room.id if room is not None else "",
        room_name=(room.name or room.type or "") if room is not None else "",
        day=day,
        slot=slot,
    )


def place_course(
    grid: Grid,
    day: str,
    slot: str,
    course: CoursePayload | CourseAssignment,
    room: Room | None,
) -> Grid:
    new_grid = clone_grid(grid)
    if not has_cell(new_grid, day, slot):
        logger.debug("Ignoring placement of %s outside the grid at %s %s", course.code, day, slot)
        return new_grid
    new_grid[day][slot] = build_assignment(course, day, slot, room)
    return new_grid


def delete_course(grid: Grid, day: str, slot: str) -> Grid:
    new_grid = clone_grid(grid)
    if get_cell(new_grid, day, slot) is not None:
        new_grid[day][slot] = None
    return new_grid


def move_course(
    grid: Grid,
    source_day: str,
    source_slot: str,
    target_day: str,
    target_slot: str,
    course: CoursePayload | CourseAssignment,
    room: Room | None,
) -> Grid:
    # Both steps work on one private copy, so the emptied intermediate
    # grid is never handed back to a caller.
    new_grid = clone_grid(grid)
    if get_cell(new_grid, source_day, source_slot) is not None:
        new_grid[source_day][source_slot] = None
    if has_cell(new_grid, target_day, target_slot):
        new_grid[target_day][target_slot] = build_assignment(course, target_day, target_slot, room)
    return new_grid


def replace_assignment(grid: Grid, day: str, slot: str, **changes: Any) -> Grid:
    new_grid = clone_grid(grid)
    current = get_cell(new_grid, day, slot)
    if current is not None:
        new_grid[day][slot] = current.model_copy(update=changes)
    return new_grid


def clear_grid(grid: Grid) -> Grid:
    return {day: {slot: None for slot in slots} for day, slots in grid.items()}


def iter_assignments(grid: Grid) -> Iterator[tuple[str, str, CourseAssignment]]:
    for day, slots in grid.items():
        for slot, assignment in slots.items():
            if assignment is not None:
                yield day, slot, assignment


def count_assignments(grid: Grid) -> int:
    return sum(1 for _ in iter_assignments(grid))


def grid_to_payload(grid: Grid) -> dict[str, dict[str, dict[str, Any] | None]]:
    return {
        day: {
            slot: assignment.model_dump(mode="json", by_alias=True) if assignment is not None else None
            for slot, assignment in slots.items()
        }
        for day, slots in grid.items()
    }


def grid_from_payload(payload: Mapping[str, Any] | None, layout: ScheduleLayout | None = None) -> Grid:
    """Rebuild a grid from its wire shape.

    Missing cells become empty and unknown days or slots are dropped.
    Unreadable cells are also dropped so one bad record cannot block a load.
    """
    grid = initialize_grid(layout)
    for day, slots in (payload or {}).items():
        if day not in grid:
            logger.debug("Dropping unknown day %r from timetable payload", day)
            continue
        for slot, raw in (slots or {}).items():
            if slot not in grid[day]:
                logger.debug("Dropping unknown slot %r on %s from timetable payload", slot, day)
                continue
            if raw is None:
                continue
            try:
                assignment = raw if isinstance(raw, CourseAssignment) else CourseAssignment.model_validate(raw)
            except ValidationError:
                logger.warning("Dropping unreadable assignment at %s %s", day, slot, exc_info=True)
                continue
            grid[day][slot] = assignment.model_copy(update={"day": day, "slot": slot})
    return grid


def grids_equal(left: Grid, right: Grid) -> bool:
    return grid_to_payload(left) == grid_to_payload(right)
