from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from ttbuilder.schemas.timetable import CourseAssignment, CoursePayload

ConflictType = Literal[
    "room",
    "faculty",
    "room_overlap",
    "faculty_overlap",
    "slot_occupied",
    "batch_conflict",
    "break_time",
    "capacity",
    "facilities",
    "faculty_workload",
    "faculty_availability",
    "duration_overflow",
    "room_type_mismatch",
    "department_mismatch",
    "weekly_hours",
]
Severity = Literal["critical", "warning", "info"]


class Conflict(BaseModel):
    type: ConflictType
    severity: Severity
    day: str
    slot: str
    message: str
    conflicting_course: CourseAssignment | None = Field(default=None, alias="conflictingCourse")
    suggested_actions: list[str] = Field(default_factory=list, alias="suggestedActions")
    timetable_key: str | None = Field(default=None, alias="timetableKey")

    model_config = {"populate_by_name": True}

    @property
    def is_critical(self) -> bool:
        return self.severity == "critical"

    def dedupe_key(self) -> tuple[str, str, str, str | None]:
        code = self.conflicting_course.code if self.conflicting_course is not None else None
        return (self.type, self.day, self.slot, code)


class ValidationCheck(BaseModel):
    """Outcome of a single resource check."""

    is_valid: bool = Field(alias="isValid")
    severity: Severity | None = None
    message: str
    suggested_actions: list[str] = Field(default_factory=list, alias="suggestedActions")
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}

    def to_conflict(self, conflict_type: ConflictType, day: str, slot: str) -> Conflict:
        return Conflict(
            type=conflict_type,
            severity=self.severity or ("info" if self.is_valid else "critical"),
            day=day,
            slot=slot,
            message=self.message,
            suggested_actions=list(self.suggested_actions),
        )


class PlacementValidation(BaseModel):
    is_valid: bool = Field(alias="isValid")
    can_place: bool = Field(alias="canPlace")
    conflicts: list[Conflict] = Field(default_factory=list)
    critical_conflicts: list[Conflict] = Field(default_factory=list, alias="criticalConflicts")
    warnings: list[Conflict] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class ResourceValidation(BaseModel):
    is_valid: bool = Field(alias="isValid")
    conflicts: list[Conflict] = Field(default_factory=list)
    warnings: list[Conflict] = Field(default_factory=list)
    checks: dict[str, ValidationCheck] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class IndexDiscrepancy(BaseModel):
    type: Literal["count_mismatch", "orphaned_entry", "missing_entry", "room_mismatch", "faculty_mismatch"]
    message: str
    key: str | None = None


class IndexValidation(BaseModel):
    is_valid: bool = Field(alias="isValid")
    errors: list[IndexDiscrepancy] = Field(default_factory=list)
    stats: dict[str, int] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class SuggestionAction(BaseModel):
    type: Literal["change_room", "change_faculty", "change_time"]
    day: str
    slot: str
    room_id: str | None = Field(default=None, alias="roomId")
    room_name: str | None = Field(default=None, alias="roomName")
    faculty_id: str | None = Field(default=None, alias="facultyId")
    faculty_name: str | None = Field(default=None, alias="facultyName")
    new_day: str | None = Field(default=None, alias="newDay")
    new_slot: str | None = Field(default=None, alias="newSlot")
    course_code: str | None = Field(default=None, alias="courseCode")

    model_config = {"populate_by_name": True}


class Suggestion(BaseModel):
    type: Literal["room_change", "faculty_change", "time_change"]
    priority: Literal["high", "medium", "low"]
    title: str
    description: str
    action: SuggestionAction
    estimated_effort: Literal["Low", "Medium", "High"] = Field(alias="estimatedEffort")

    model_config = {"populate_by_name": True}


class ConflictReport(BaseModel):
    conflicts: list[Conflict]
    suggested_resolutions: list[Suggestion] = Field(default_factory=list, alias="suggestedResolutions")

    model_config = {"populate_by_name": True}


class ResolveConflictRequest(BaseModel):
    grid: dict[str, dict[str, Optional[dict[str, Any]]]]
    suggestion: Suggestion


class ConflictDetectRequest(BaseModel):
    """Whole-grid scan, or a single proposed placement when ``course`` is set."""

    grid: dict[str, dict[str, Optional[dict[str, Any]]]]
    day: str | None = None
    slot: str | None = None
    course: CoursePayload | None = None
    room_id: str | None = Field(default=None, alias="roomId")

    model_config = {"populate_by_name": True}


class SuggestionRequest(BaseModel):
    grid: dict[str, dict[str, Optional[dict[str, Any]]]]
    conflict: Conflict
