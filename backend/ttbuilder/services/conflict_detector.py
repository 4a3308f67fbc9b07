from __future__ import annotations

import logging

from ttbuilder.core.timeslots import ScheduleLayout, default_layout, slots_overlap
from ttbuilder.schemas.conflict import Conflict, PlacementValidation
from ttbuilder.schemas.timetable import CourseAssignment, CoursePayload, Grid, Room
from ttbuilder.services.grid import get_cell, iter_assignments, room_id_of
from ttbuilder.services.index import TimetableIndex

logger = logging.getLogger(__name__)


def course_span(layout: ScheduleLayout, slot: str, duration: int | None) -> tuple[int, int] | None:
    """Minute range covered by a course starting at ``slot``.

    The base slot length is stretched by the duration multiplier. Spans are
    not clipped at the last slot of the day.
    """
    try:
        start, end = layout.slot_bounds(slot)
    except ValueError:
        logger.debug("Unparseable slot %r skipped in overlap check", slot)
        return None
    return start, start + max(duration or 1, 1) * (end - start)


def check_time_slot_overlap(
    layout: ScheduleLayout,
    slot_a: str,
    slot_b: str,
    duration_a: int | None = 1,
    duration_b: int | None = 1,
) -> bool:
    span_a = course_span(layout, slot_a, duration_a)
    span_b = course_span(layout, slot_b, duration_b)
    if span_a is None or span_b is None:
        return False
    return slots_overlap(span_a[0], span_a[1], span_b[0], span_b[1])


def _direct_conflicts(
    existing: CourseAssignment,
    day: str,
    slot: str,
    course: CoursePayload,
    room_id: str,
) -> list[Conflict]:
    conflicts: list[Conflict] = []
    if room_id and existing.room == room_id:
        conflicts.append(
            Conflict(
                type="room",
                severity="critical",
                day=day,
                slot=slot,
                message=(
                    f"Room {room_id} is already booked for {existing.code} "
                    f"({existing.title or 'Unknown Course'}) at {slot} on {day}"
                ),
                conflicting_course=existing,
                suggested_actions=[
                    "Choose a different room",
                    "Move to a different time slot",
                    "Reschedule the conflicting course",
                ],
            )
        )
    if course.faculty_id and existing.faculty_id == course.faculty_id:
        faculty_name = existing.faculty_name or f"Faculty ID: {existing.faculty_id}"
        conflicts.append(
            Conflict(
                type="faculty",
                severity="critical",
                day=day,
                slot=slot,
                message=(
                    f"{faculty_name} is already teaching {existing.code} "
                    f"({existing.title or 'Unknown Course'}) at {slot} on {day}"
                ),
                conflicting_course=existing,
                suggested_actions=[
                    "Assign a different faculty member",
                    "Move to a different time slot",
                    "Reschedule the conflicting course",
                ],
            )
        )
    return conflicts


def _overlap_conflicts(
    grid: Grid,
    layout: ScheduleLayout,
    day: str,
    slot: str,
    course: CoursePayload,
    room_id: str,
) -> list[Conflict]:
    conflicts: list[Conflict] = []
    for other_slot, existing in grid.get(day, {}).items():
        if existing is None or other_slot == slot:
            continue
        # Single-slot courses in distinct slots never overlap.
        if max(course.duration or 1, existing.duration or 1) <= 1:
            continue
        if not check_time_slot_overlap(layout, slot, other_slot, course.duration, existing.duration):
            continue
        if room_id and existing.room == room_id:
            conflicts.append(
                Conflict(
                    type="room_overlap",
                    severity="critical",
                    day=day,
                    slot=slot,
                    message=f"Room {room_id} has overlapping time slots: {slot} overlaps with {other_slot}",
                    conflicting_course=existing,
                    suggested_actions=["Choose a different room", "Move to a non-overlapping time slot"],
                )
            )
        if course.faculty_id and existing.faculty_id == course.faculty_id:
            faculty_name = existing.faculty_name or f"Faculty ID: {existing.faculty_id}"
            conflicts.append(
                Conflict(
                    type="faculty_overlap",
                    severity="critical",
                    day=day,
                    slot=slot,
                    message=f"{faculty_name} has overlapping teaching slots: {slot} overlaps with {other_slot}",
                    conflicting_course=existing,
                    suggested_actions=["Assign a different faculty member", "Move to a non-overlapping time slot"],
                )
            )
    return conflicts


def deduplicate_conflicts(conflicts: list[Conflict]) -> list[Conflict]:
    seen: set[tuple] = set()
    unique: list[Conflict] = []
    for conflict in conflicts:
        key = conflict.dedupe_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(conflict)
    return unique


def check_conflicts(
    grid: Grid,
    target_day: str,
    target_slot: str,
    new_course: CoursePayload,
    selected_room: Room | str | None,
    *,
    index: TimetableIndex | None = None,
    layout: ScheduleLayout | None = None,
) -> list[Conflict]:
    """Report room and faculty double-booking for a proposed placement.

    Exact-cell clashes come from the index when one is given, otherwise from
    the grid. Overlaps of multi-slot courses are checked across the whole
    target day.
    """
    layout = layout or default_layout()
    room_id = room_id_of(selected_room)

    if index is not None:
        conflicts = index.check_conflicts_fast(target_day, target_slot, new_course, room_id)
    else:
        conflicts = []
        existing = get_cell(grid, target_day, target_slot)
        if existing is not None and existing.code != new_course.code:
            conflicts.extend(_direct_conflicts(existing, target_day, target_slot, new_course, room_id))

    conflicts.extend(_overlap_conflicts(grid, layout, target_day, target_slot, new_course, room_id))
    return deduplicate_conflicts(conflicts)


def validate_placement(
    grid: Grid,
    day: str,
    slot: str,
    course: CoursePayload,
    room: Room | str | None,
    *,
    index: TimetableIndex | None = None,
    layout: ScheduleLayout | None = None,
) -> PlacementValidation:
    conflicts = check_conflicts(grid, day, slot, course, room, index=index, layout=layout)
    return summarize_conflicts(conflicts)


def summarize_conflicts(conflicts: list[Conflict]) -> PlacementValidation:
    critical = [conflict for conflict in conflicts if conflict.is_critical]
    return PlacementValidation(
        is_valid=not critical,
        can_place=not critical,
        conflicts=conflicts,
        critical_conflicts=critical,
        warnings=[conflict for conflict in conflicts if not conflict.is_critical],
    )


def get_all_conflicts(grid: Grid, layout: ScheduleLayout | None = None) -> list[Conflict]:
    layout = layout or default_layout()
    conflicts: list[Conflict] = []
    for day, slot, assignment in iter_assignments(grid):
        conflicts.extend(check_conflicts(grid, day, slot, assignment, assignment.room, layout=layout))
    return deduplicate_conflicts(conflicts)


def filter_conflicts_for_cell(conflicts: list[Conflict], day: str, slot: str) -> list[Conflict]:
    return [conflict for conflict in conflicts if not (conflict.day == day and conflict.slot == slot)]
