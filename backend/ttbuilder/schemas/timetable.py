from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

FACULTY_ID_KEYS = ("teacherId", "facultyId", "faculty_id")
FACULTY_NESTED_KEYS = ("teacher", "faculty", "instructor")
FACULTY_NAME_KEYS = ("teacherName", "facultyName", "faculty_name")


def _lookup(source: Any, key: str) -> Any:
    if isinstance(source, dict):
        return source.get(key)
    return getattr(source, key, None)


def extract_faculty_id(course: Any) -> str | None:
    """Return the one faculty id of a legacy course record.

    Legacy records carry the id under several aliases; they are tried in a
    fixed order and the first non-empty one wins.
    """
    if course is None:
        return None
    for key in FACULTY_ID_KEYS:
        value = _lookup(course, key)
        if value not in (None, ""):
            return str(value)
    for key in FACULTY_NESTED_KEYS:
        nested = _lookup(course, key)
        if nested is None:
            continue
        value = _lookup(nested, "id")
        if value not in (None, ""):
            return str(value)
    return None


def extract_faculty_name(course: Any) -> str:
    if course is None:
        return ""
    for key in FACULTY_NAME_KEYS:
        value = _lookup(course, key)
        if value:
            return str(value)
    for key in FACULTY_NESTED_KEYS:
        nested = _lookup(course, key)
        if nested is None:
            continue
        value = _lookup(nested, "name")
        if value:
            return str(value)
    return ""


class CoursePayload(BaseModel):
    """A draggable course block: one course bound to one faculty member."""

    code: str = Field(min_length=1, max_length=50)
    title: str = Field(default="", max_length=200)
    weekly_hours: str | None = Field(default=None, alias="weeklyHours", max_length=50)
    duration: int = Field(default=1, ge=1, le=12)
    faculty_id: str | None = Field(default=None, alias="facultyId")
    faculty_name: str = Field(default="", alias="facultyName")
    teacher_code: str | None = Field(default=None, alias="teacherCode")
    batch_id: str | None = Field(default=None, alias="batchId")
    course_type: str | None = Field(default=None, alias="type")
    department: str | None = None
    required_facilities: tuple[str, ...] = Field(default=(), alias="requiredFacilities")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
        "frozen": True,
        "extra": "ignore",
    }

    @model_validator(mode="before")
    @classmethod
    def normalize_legacy_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        normalized = dict(data)
        if not normalized.get("code"):
            legacy_code = normalized.get("courseCode") or normalized.get("id")
            if legacy_code:
                normalized["code"] = str(legacy_code)
        if not normalized.get("title"):
            normalized["title"] = normalized.get("name") or normalized.get("courseName") or ""
        if normalized.get("faculty_id") in (None, ""):
            normalized.pop("faculty_id", None)
            normalized["facultyId"] = extract_faculty_id(data)
        if not normalized.get("facultyName") and not normalized.get("faculty_name"):
            normalized["facultyName"] = extract_faculty_name(data)
        if normalized.get("duration") in (None, ""):
            normalized.pop("duration", None)
        return normalized

    @field_validator("faculty_id", "batch_id", "teacher_code", mode="before")
    @classmethod
    def coerce_identifier(cls, value: Any) -> str | None:
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("required_facilities", mode="before")
    @classmethod
    def clean_facilities(cls, value: Any) -> tuple[str, ...]:
        if not value:
            return ()
        return tuple(str(item).strip() for item in value if str(item).strip())


class CourseAssignment(CoursePayload):
    """A course placed into one grid cell, with room and faculty bound to it."""

    room: str = ""
    room_name: str = Field(default="", alias="roomName")
    day: str | None = Field(default=None, alias="dayOfWeek")
    slot: str | None = Field(default=None, alias="timeSlot")

    @model_validator(mode="before")
    @classmethod
    def normalize_room_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("room") in (None, "") and (data.get("roomId") or data.get("roomNumber")):
            data = {**data, "room": data.get("roomId") or data.get("roomNumber")}
        return data

    @field_validator("room", mode="before")
    @classmethod
    def coerce_room(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)


class Room(BaseModel):
    id: str = Field(min_length=1, max_length=50)
    name: str = Field(default="", max_length=100)
    capacity: int | None = Field(default=None, ge=0)
    type: str | None = None
    facilities: list[str] | None = None

    model_config = {"from_attributes": True, "extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def normalize_room_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id") and data.get("number"):
            data = {**data, "id": data["number"]}
        return data

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @property
    def label(self) -> str:
        return self.name or self.id


class Faculty(BaseModel):
    id: str = Field(min_length=1, max_length=50)
    name: str = Field(default="", max_length=200)
    department: str | None = None
    availability: list[str] | None = None
    max_hours: int | None = Field(default=None, alias="maxHours", ge=0)

    model_config = {"populate_by_name": True, "from_attributes": True, "extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def merge_available_slots(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("availability") is None and data.get("availableSlots") is not None:
            data = {**data, "availability": data["availableSlots"]}
        return data

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class BatchInfo(BaseModel):
    id: str | None = None
    size: int | None = Field(default=None, ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


Grid = dict[str, dict[str, Optional[CourseAssignment]]]


class TimetableDocumentOut(BaseModel):
    key: str
    semester: str
    branch: str
    batch: str
    type: str
    schedule: dict[str, dict[str, Optional[dict[str, Any]]]]


class TimetablePayload(BaseModel):
    schedule: dict[str, dict[str, Optional[dict[str, Any]]]] = Field(default_factory=dict)


class DirectoryPayload(BaseModel):
    rooms: list[Room] = Field(default_factory=list)
    faculty: list[Faculty] = Field(default_factory=list)
