from __future__ import annotations

from collections import defaultdict
import logging

from ttbuilder.core.timeslots import ScheduleLayout, default_layout
from ttbuilder.schemas.conflict import Conflict, IndexDiscrepancy, IndexValidation
from ttbuilder.schemas.timetable import CourseAssignment, CoursePayload, Grid, Room
from ttbuilder.services.grid import iter_assignments, room_id_of

logger = logging.getLogger(__name__)

SlotKey = tuple[str, str]


def slot_key_label(key: SlotKey) -> str:
    return f"{key[0]} {key[1]}"


class TimetableIndex:
    """Lookup tables derived from one grid.

    Each editing session owns its own instance. The tables must always equal
    what ``build`` would produce from the session's grid; ``validate``
    checks exactly that.
    """

    def __init__(self, grid: Grid | None = None) -> None:
        self.room_index: dict[str, set[SlotKey]] = defaultdict(set)
        self.faculty_index: dict[str, set[SlotKey]] = defaultdict(set)
        self.slot_index: dict[SlotKey, CourseAssignment] = {}
        if grid is not None:
            self.build(grid)

    def clear(self) -> None:
        self.room_index.clear()
        self.faculty_index.clear()
        self.slot_index.clear()

    def build(self, grid: Grid) -> None:
        self.clear()
        for day, slot, assignment in iter_assignments(grid):
            self._add((day, slot), assignment, assignment.room)

    def _add(self, key: SlotKey, assignment: CourseAssignment, room_id: str | None) -> None:
        self.slot_index[key] = assignment
        if room_id:
            self.room_index[room_id].add(key)
        if assignment.faculty_id:
            self.faculty_index[assignment.faculty_id].add(key)

    def _discard(self, table: dict[str, set[SlotKey]], resource_id: str | None, key: SlotKey) -> None:
        if not resource_id:
            return
        keys = table.get(resource_id)
        if keys is None:
            return
        keys.discard(key)
        if not keys:
            del table[resource_id]

    def update(
        self,
        day: str,
        slot: str,
        old_course: CourseAssignment | None,
        new_course: CourseAssignment | None,
        room_id: str | None = None,
    ) -> None:
        key = (day, slot)
        if old_course is not None:
            self.slot_index.pop(key, None)
            self._discard(self.room_index, old_course.room, key)
            self._discard(self.faculty_index, old_course.faculty_id, key)
        if new_course is not None:
            self._add(key, new_course, room_id or new_course.room)

    def occupant(self, day: str, slot: str) -> CourseAssignment | None:
        return self.slot_index.get((day, slot))

    def is_room_free(self, room_id: str, day: str, slot: str) -> bool:
        return (day, slot) not in self.room_index.get(room_id, ())

    def is_faculty_free(self, faculty_id: str, day: str, slot: str) -> bool:
        return (day, slot) not in self.faculty_index.get(faculty_id, ())

    def check_conflicts_fast(
        self,
        day: str,
        slot: str,
        course: CoursePayload,
        room: Room | str | None,
    ) -> list[Conflict]:
        conflicts: list[Conflict] = []
        key = (day, slot)
        room_id = room_id_of(room)
        existing = self.slot_index.get(key)
        if existing is None or existing.code == course.code:
            return conflicts

        if room_id and key in self.room_index.get(room_id, ()):
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

        faculty_id = course.faculty_id
        if faculty_id and key in self.faculty_index.get(faculty_id, ()):
            faculty_name = existing.faculty_name or f"Faculty ID: {faculty_id}"
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

    def faculty_assignments(self, faculty_id: str) -> list[CourseAssignment]:
        keys = sorted(self.faculty_index.get(faculty_id, ()))
        return [self.slot_index[key] for key in keys if key in self.slot_index]

    def room_assignments(self, room_id: str) -> list[CourseAssignment]:
        keys = sorted(self.room_index.get(room_id, ()))
        return [self.slot_index[key] for key in keys if key in self.slot_index]

    def available_slots_for_faculty(
        self,
        faculty_id: str,
        layout: ScheduleLayout | None = None,
    ) -> list[SlotKey]:
        layout = layout or default_layout()
        busy = self.faculty_index.get(faculty_id, set())
        return [cell for cell in layout.cells() if cell not in busy]

    def stats(self) -> dict[str, int]:
        return {
            "total_slots": len(self.slot_index),
            "unique_rooms": len(self.room_index),
            "unique_faculty": len(self.faculty_index),
        }

    def validate(self, grid: Grid) -> IndexValidation:
        """Compare the live tables against a fresh build from ``grid``."""
        fresh = TimetableIndex(grid)
        errors: list[IndexDiscrepancy] = []

        courses_in_data = len(fresh.slot_index)
        courses_in_index = len(self.slot_index)
        if courses_in_data != courses_in_index:
            errors.append(
                IndexDiscrepancy(
                    type="count_mismatch",
                    message=f"Course count mismatch: {courses_in_data} in data, {courses_in_index} in index",
                )
            )

        for key, assignment in self.slot_index.items():
            actual = fresh.slot_index.get(key)
            if actual is None or actual.code != assignment.code:
                errors.append(
                    IndexDiscrepancy(
                        type="orphaned_entry",
                        message=f"Orphaned index entry: {slot_key_label(key)} -> {assignment.code}",
                        key=slot_key_label(key),
                    )
                )
        for key, assignment in fresh.slot_index.items():
            if key not in self.slot_index:
                errors.append(
                    IndexDiscrepancy(
                        type="missing_entry",
                        message=f"Missing index entry: {slot_key_label(key)} -> {assignment.code}",
                        key=slot_key_label(key),
                    )
                )

        for discrepancy_type, live, expected in (
            ("room_mismatch", self.room_index, fresh.room_index),
            ("faculty_mismatch", self.faculty_index, fresh.faculty_index),
        ):
            for resource_id in sorted(set(live) | set(expected)):
                if live.get(resource_id, set()) != expected.get(resource_id, set()):
                    errors.append(
                        IndexDiscrepancy(
                            type=discrepancy_type,
                            message=f"Slot set for {resource_id} differs from the grid",
                            key=resource_id,
                        )
                    )

        if errors:
            logger.warning("Timetable index diverged from grid: %d discrepancies", len(errors))
        return IndexValidation(
            is_valid=not errors,
            errors=errors,
            stats={
                "courses_in_data": courses_in_data,
                "courses_in_index": courses_in_index,
                **self.stats(),
            },
        )
