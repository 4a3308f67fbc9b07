from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
import re

from ttbuilder.core.config import Settings, get_settings
from ttbuilder.core.timeslots import ScheduleLayout, default_layout, slot_start_label
from ttbuilder.schemas.conflict import Conflict, ResourceValidation, ValidationCheck
from ttbuilder.schemas.timetable import BatchInfo, CourseAssignment, CoursePayload, Faculty, Grid, Room
from ttbuilder.services.grid import get_cell, iter_assignments, place_course

logger = logging.getLogger(__name__)

WEEKLY_HOURS_PART = re.compile(r"(\d+)\s*([LTP])", re.IGNORECASE)

ROOM_TYPE_COMPATIBILITY: dict[str, set[str]] = {
    "lecture": {"Lecture Hall", "Classroom", "Auditorium"},
    "theory": {"Lecture Hall", "Classroom", "Auditorium"},
    "practical": {
        "Computer Lab",
        "Electronics Lab",
        "Electrical Lab",
        "Mechanical Lab",
        "Civil Lab",
        "Laboratory",
        "Workshop",
    },
    "lab": {"Computer Lab", "Electronics Lab", "Electrical Lab", "Mechanical Lab", "Civil Lab", "Laboratory"},
    "tutorial": {"Classroom", "Tutorial Room", "Seminar Room"},
    "seminar": {"Seminar Room", "Conference Room", "Classroom"},
}


@dataclass
class FacultyWorkload:
    faculty_id: str
    total_hours: int = 0
    scheduled_slots: list[dict[str, str]] = field(default_factory=list)

    @property
    def slots_count(self) -> int:
        return len(self.scheduled_slots)


def validate_room_capacity(room: Room | None, batch_size: int | None, settings: Settings | None = None) -> ValidationCheck:
    settings = settings or get_settings()
    if room is None or room.capacity is None or not batch_size:
        logger.debug("Capacity check skipped: room capacity or batch size unknown")
        return ValidationCheck(is_valid=True, message="Room capacity or batch size unknown; no capacity constraint")

    margin = settings.room_capacity_margin
    effective_capacity = math.floor(room.capacity * margin)
    if batch_size > effective_capacity:
        recommended = math.ceil(batch_size / margin) if margin > 0 else batch_size
        return ValidationCheck(
            is_valid=False,
            severity="critical",
            message=(
                f"Room {room.label} capacity ({room.capacity}) insufficient for batch size "
                f"({batch_size}). Recommended capacity: {recommended}"
            ),
            suggested_actions=[
                "Choose a larger room",
                "Split the batch into smaller groups",
                "Find alternative venue",
            ],
            details={"capacity": room.capacity, "effective_capacity": effective_capacity, "batch_size": batch_size},
        )

    if batch_size > room.capacity * settings.room_capacity_warning_ratio:
        utilization = round(batch_size / room.capacity * 100) if room.capacity else 100
        return ValidationCheck(
            is_valid=True,
            severity="warning",
            message=f"Room {room.label} will be at high capacity ({utilization}%)",
            suggested_actions=["Consider a larger room for comfort", "Ensure adequate ventilation"],
            details={"capacity": room.capacity, "batch_size": batch_size, "utilization": utilization},
        )

    return ValidationCheck(is_valid=True, message="Room capacity sufficient for batch size")


def validate_room_facilities(room: Room | None, required: list[str] | tuple[str, ...] | None) -> ValidationCheck:
    if not required:
        return ValidationCheck(is_valid=True, message="No specific facility requirements")
    if room is None or room.facilities is None:
        return ValidationCheck(is_valid=True, message="Room facilities unknown; no facility constraint")

    available = {item.strip().lower() for item in room.facilities}
    missing = [item for item in required if item.strip().lower() not in available]
    if missing:
        return ValidationCheck(
            is_valid=False,
            severity="warning",
            message=f"Room {room.label} missing required facilities: {', '.join(missing)}",
            suggested_actions=[
                "Choose a room with required facilities",
                "Arrange for portable equipment",
                "Contact facilities management",
            ],
            details={"missing_facilities": missing},
        )
    return ValidationCheck(is_valid=True, message="All required facilities available")


def validate_batch_conflicts(
    grid: Grid,
    target_day: str,
    target_slot: str,
    batch_id: str | None,
    course_code: str | None,
) -> list[Conflict]:
    if not batch_id:
        return []
    existing = get_cell(grid, target_day, target_slot)
    if existing is None or existing.batch_id != batch_id or existing.code == course_code:
        return []
    return [
        Conflict(
            type="batch_conflict",
            severity="critical",
            day=target_day,
            slot=target_slot,
            message=f"Batch {batch_id} already has {existing.code} scheduled at {target_slot} on {target_day}",
            conflicting_course=existing,
            suggested_actions=[
                "Choose a different time slot",
                "Move the conflicting course",
                "Split the batch if possible",
            ],
        )
    ]


def validate_break_times(
    grid: Grid,
    target_day: str,
    target_slot: str,
    layout: ScheduleLayout | None = None,
    settings: Settings | None = None,
) -> list[Conflict]:
    layout = layout or default_layout()
    settings = settings or get_settings()
    warnings: list[Conflict] = []
    for adjacent in layout.adjacent_slots(target_slot):
        neighbour = get_cell(grid, target_day, adjacent)
        if neighbour is None:
            continue
        warnings.append(
            Conflict(
                type="break_time",
                severity="warning",
                day=target_day,
                slot=target_slot,
                message=(
                    f"Back-to-back classes detected. Consider adding a {settings.min_break_minutes} minute "
                    f"break between {target_slot} and {adjacent}"
                ),
                conflicting_course=neighbour,
                suggested_actions=[
                    "Add buffer time between classes",
                    "Ensure adequate transition time",
                    "Consider student movement time",
                ],
            )
        )
    return warnings


def calculate_faculty_workload(grid: Grid, faculty_id: str) -> FacultyWorkload:
    workload = FacultyWorkload(faculty_id=faculty_id)
    for day, slot, assignment in iter_assignments(grid):
        if assignment.faculty_id != faculty_id:
            continue
        workload.total_hours += assignment.duration or 1
        workload.scheduled_slots.append({"day": day, "slot": slot, "course": assignment.code})
    return workload


def validate_faculty_workload(
    grid: Grid,
    faculty_id: str,
    max_hours_per_week: int | None = None,
    settings: Settings | None = None,
) -> ValidationCheck:
    settings = settings or get_settings()
    ceiling = max_hours_per_week if max_hours_per_week is not None else settings.default_max_faculty_hours
    workload = calculate_faculty_workload(grid, faculty_id)
    details = {
        "total_hours": workload.total_hours,
        "max_hours": ceiling,
        "scheduled_slots": workload.scheduled_slots,
    }
    if workload.total_hours > ceiling:
        return ValidationCheck(
            is_valid=False,
            severity="warning",
            message=(
                f"Faculty workload ({workload.total_hours} hours) exceeds recommended maximum "
                f"({ceiling} hours)"
            ),
            suggested_actions=[
                "Redistribute some courses to other faculty",
                "Reduce session durations",
                "Review workload distribution",
            ],
            details=details,
        )
    return ValidationCheck(
        is_valid=True,
        message=f"Faculty workload ({workload.total_hours} hours) is within acceptable limits",
        details=details,
    )


def validate_faculty_availability(faculty: Faculty | None, day: str, slot: str) -> ValidationCheck:
    if faculty is None or faculty.availability is None:
        return ValidationCheck(is_valid=True, message="No specific availability constraints")

    accepted = {f"{day}-{slot}", f"{day}-{slot_start_label(slot)}", day}
    if accepted & {entry.strip() for entry in faculty.availability}:
        return ValidationCheck(is_valid=True, message="Faculty is available at the requested time")

    return ValidationCheck(
        is_valid=False,
        severity="critical",
        message=f"Faculty {faculty.name or faculty.id} is not available at {slot} on {day}",
        suggested_actions=[
            "Choose a different time slot",
            "Assign a different faculty member",
            "Update faculty availability",
        ],
    )


def is_room_type_compatible(course_type: str | None, room_type: str | None) -> bool:
    compatible = ROOM_TYPE_COMPATIBILITY.get((course_type or "").lower(), set())
    return room_type in compatible


def validate_course_scheduling(
    course: CoursePayload,
    day: str,
    slot: str,
    room: Room | None = None,
    faculty: Faculty | None = None,
    layout: ScheduleLayout | None = None,
) -> list[Conflict]:
    layout = layout or default_layout()
    findings: list[Conflict] = []

    if (course.duration or 1) > 1:
        index = layout.slot_index(slot)
        if index >= 0 and index + course.duration > len(layout.slots):
            findings.append(
                Conflict(
                    type="duration_overflow",
                    severity="warning",
                    day=day,
                    slot=slot,
                    message=f"Course duration ({course.duration} slots) exceeds available time slots from {slot}",
                    suggested_actions=["Start the course in an earlier slot", "Split the session"],
                )
            )

    if course.course_type and room is not None and room.type and not is_room_type_compatible(course.course_type, room.type):
        findings.append(
            Conflict(
                type="room_type_mismatch",
                severity="warning",
                day=day,
                slot=slot,
                message=f'Course type "{course.course_type}" may not be suitable for room type "{room.type}"',
                suggested_actions=["Choose a room of a matching type"],
            )
        )

    if course.department and faculty is not None and faculty.department and course.department != faculty.department:
        findings.append(
            Conflict(
                type="department_mismatch",
                severity="warning",
                day=day,
                slot=slot,
                message=(
                    f'Course department "{course.department}" differs from faculty department '
                    f'"{faculty.department}"'
                ),
            )
        )
    return findings


def parse_weekly_hours(weekly_hours: str | None) -> int:
    if not weekly_hours:
        return 0
    return sum(int(hours) for hours, _ in WEEKLY_HOURS_PART.findall(weekly_hours))


def scheduled_hours_for_course(grid: Grid, course_code: str) -> int:
    return sum(assignment.duration or 1 for _, _, assignment in iter_assignments(grid) if assignment.code == course_code)


def validate_weekly_hours(course: CoursePayload, scheduled_hours: int) -> ValidationCheck:
    if not course.weekly_hours:
        return ValidationCheck(is_valid=True, message="No weekly hour constraints")

    required = parse_weekly_hours(course.weekly_hours)
    if scheduled_hours < required:
        return ValidationCheck(
            is_valid=False,
            severity="warning",
            message=(
                f"Course requires {required} hours per week, but only {scheduled_hours} hours are scheduled"
            ),
            suggested_actions=[
                "Schedule additional sessions",
                "Extend session duration",
                "Review course requirements",
            ],
            details={"required_hours": required, "scheduled_hours": scheduled_hours},
        )
    if scheduled_hours > required:
        return ValidationCheck(
            is_valid=True,
            severity="info",
            message=f"Course has {scheduled_hours} hours scheduled, exceeding the required {required} hours",
            details={"required_hours": required, "scheduled_hours": scheduled_hours},
        )
    return ValidationCheck(is_valid=True, message="Weekly hour requirements met")


def _projected_grid(grid: Grid, day: str, slot: str, course: CoursePayload, room: Room | None) -> Grid:
    existing = get_cell(grid, day, slot)
    if isinstance(course, CourseAssignment) and existing is not None and existing.code == course.code:
        return grid
    return place_course(grid, day, slot, course, room)


def validate_all(
    grid: Grid,
    day: str,
    slot: str,
    course: CoursePayload,
    room: Room | None,
    batch: BatchInfo | None = None,
    faculty: Faculty | None = None,
    *,
    layout: ScheduleLayout | None = None,
    settings: Settings | None = None,
) -> ResourceValidation:
    """Run every resource check for one proposed placement."""
    layout = layout or default_layout()
    settings = settings or get_settings()
    conflicts: list[Conflict] = []
    warnings: list[Conflict] = []
    checks: dict[str, ValidationCheck] = {}

    def collect(name: str, check: ValidationCheck, conflict_type: str) -> None:
        checks[name] = check
        if not check.is_valid and check.severity == "critical":
            conflicts.append(check.to_conflict(conflict_type, day, slot))
        elif check.severity == "warning":
            warnings.append(check.to_conflict(conflict_type, day, slot))

    collect("room_capacity", validate_room_capacity(room, batch.size if batch else None, settings), "capacity")
    collect("room_facilities", validate_room_facilities(room, course.required_facilities), "facilities")

    batch_id = (batch.id if batch else None) or course.batch_id
    conflicts.extend(validate_batch_conflicts(grid, day, slot, batch_id, course.code))
    warnings.extend(validate_break_times(grid, day, slot, layout, settings))
    warnings.extend(validate_course_scheduling(course, day, slot, room, faculty, layout))

    projected = _projected_grid(grid, day, slot, course, room)
    if course.faculty_id:
        ceiling = faculty.max_hours if faculty is not None else None
        collect(
            "faculty_workload",
            validate_faculty_workload(projected, course.faculty_id, ceiling, settings),
            "faculty_workload",
        )
    collect("faculty_availability", validate_faculty_availability(faculty, day, slot), "faculty_availability")

    # Only a surplus is flagged; a shortfall is the normal state of a partial timetable.
    weekly = validate_weekly_hours(course, scheduled_hours_for_course(projected, course.code))
    checks["weekly_hours"] = weekly
    if weekly.severity == "info":
        warnings.append(
            Conflict(
                type="weekly_hours",
                severity="warning",
                day=day,
                slot=slot,
                message=weekly.message,
                suggested_actions=["Remove an extra session", "Review course requirements"],
            )
        )

    return ResourceValidation(
        is_valid=not any(conflict.is_critical for conflict in conflicts),
        conflicts=conflicts,
        warnings=warnings,
        checks=checks,
    )
