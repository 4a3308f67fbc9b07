from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from ttbuilder.schemas.conflict import Conflict, PlacementValidation, ResourceValidation
from ttbuilder.schemas.timetable import BatchInfo, CourseAssignment, CoursePayload

PlacementOutcome = Literal["committed", "cancelled", "rejected"]


class PlacementRequest(BaseModel):
    course: CoursePayload
    day: str = Field(min_length=1)
    slot: str = Field(min_length=1)
    room_id: str | None = Field(default=None, alias="roomId")
    source_day: str | None = Field(default=None, alias="sourceDay")
    source_slot: str | None = Field(default=None, alias="sourceSlot")
    batch: BatchInfo | None = None
    allow_conflicts: bool = Field(default=False, alias="allowConflicts")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def validate_source(self) -> "PlacementRequest":
        if bool(self.source_day) != bool(self.source_slot):
            raise ValueError("sourceDay and sourceSlot must be given together")
        return self


class DropFeedback(BaseModel):
    """Live evaluation of a candidate drop target; the grid is not touched."""

    day: str
    slot: str
    can_drop: bool = Field(alias="canDrop")
    placement: PlacementValidation
    resources: ResourceValidation
    conflicts: list[Conflict] = Field(default_factory=list)
    warnings: list[Conflict] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class PlacementResult(BaseModel):
    outcome: PlacementOutcome
    message: str
    assignment: CourseAssignment | None = None
    conflicts: list[Conflict] = Field(default_factory=list)
    warnings: list[Conflict] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @property
    def committed(self) -> bool:
        return self.outcome == "committed"


class AutoArrangeRequest(BaseModel):
    courses: list[CoursePayload] = Field(min_length=1)
    preferred_days: list[str] | None = Field(default=None, alias="preferredDays")
    preferred_slots: list[str] | None = Field(default=None, alias="preferredSlots")
    room_id: str | None = Field(default=None, alias="roomId")
    batch: BatchInfo | None = None

    model_config = {"populate_by_name": True}


class ArrangementResult(BaseModel):
    placements: list[CourseAssignment] = Field(default_factory=list)
    unplaced: list[CoursePayload] = Field(default_factory=list)
    conflicts: list[Conflict] = Field(default_factory=list)


class EngineSnapshot(BaseModel):
    key: str
    schedule: dict[str, dict[str, Optional[dict[str, Any]]]]
    conflicts: list[Conflict] = Field(default_factory=list)
    can_undo: bool = Field(alias="canUndo")
    can_redo: bool = Field(alias="canRedo")

    model_config = {"populate_by_name": True}
