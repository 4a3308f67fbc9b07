from fastapi import APIRouter, Depends

from ttbuilder.api.deps import get_registry
from ttbuilder.core.timeslots import default_layout
from ttbuilder.schemas.conflict import (
    ConflictDetectRequest,
    ConflictReport,
    ResolveConflictRequest,
    Suggestion,
    SuggestionRequest,
)
from ttbuilder.schemas.timetable import TimetablePayload
from ttbuilder.services.conflict_detector import check_conflicts, get_all_conflicts
from ttbuilder.services.conflict_resolver import apply_suggestion, generate_suggestions
from ttbuilder.services.editor_sessions import EditorRegistry
from ttbuilder.services.grid import grid_from_payload, grid_to_payload
from ttbuilder.services.index import TimetableIndex

router = APIRouter()


@router.post("/detect", response_model=ConflictReport)
def detect_conflicts(
    payload: ConflictDetectRequest,
    registry: EditorRegistry = Depends(get_registry),
) -> ConflictReport:
    layout = default_layout()
    grid = grid_from_payload(payload.grid, layout)
    index = TimetableIndex(grid)

    if payload.course is not None and payload.day and payload.slot:
        conflicts = check_conflicts(
            grid, payload.day, payload.slot, payload.course, payload.room_id, index=index, layout=layout
        )
    else:
        conflicts = get_all_conflicts(grid, layout)

    report = ConflictReport(conflicts=conflicts)
    for conflict in report.conflicts:
        report.suggested_resolutions.extend(
            generate_suggestions(grid, conflict, registry.rooms, registry.faculty, index=index)
        )
    return report


@router.post("/suggestions", response_model=list[Suggestion])
def suggest_resolutions(
    payload: SuggestionRequest,
    registry: EditorRegistry = Depends(get_registry),
) -> list[Suggestion]:
    grid = grid_from_payload(payload.grid, default_layout())
    return generate_suggestions(grid, payload.conflict, registry.rooms, registry.faculty)


@router.post("/resolve", response_model=TimetablePayload)
def apply_resolution(request: ResolveConflictRequest) -> TimetablePayload:
    grid = grid_from_payload(request.grid, default_layout())
    return TimetablePayload(schedule=grid_to_payload(apply_suggestion(grid, request.suggestion)))
