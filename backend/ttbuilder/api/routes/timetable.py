from fastapi import APIRouter, BackgroundTasks, Depends, Query

from ttbuilder.api.deps import get_registry, timetable_key
from ttbuilder.schemas.conflict import Conflict, IndexValidation
from ttbuilder.schemas.history import HistoryOut
from ttbuilder.schemas.placement import (
    ArrangementResult,
    AutoArrangeRequest,
    DropFeedback,
    EngineSnapshot,
    PlacementRequest,
    PlacementResult,
)
from ttbuilder.schemas.timetable import TimetablePayload
from ttbuilder.services.cross_timetable import check_cross_timetable_conflicts
from ttbuilder.services.editor_sessions import EditorRegistry
from ttbuilder.services.grid import grid_from_payload
from ttbuilder.services.placement import PlacementEngine

router = APIRouter()


def _snapshot(key: str, engine: PlacementEngine) -> EngineSnapshot:
    return EngineSnapshot(
        key=key,
        schedule=engine.payload(),
        conflicts=engine.conflicts,
        can_undo=engine.history.can_undo,
        can_redo=engine.history.can_redo,
    )


@router.get("/{key}", response_model=EngineSnapshot)
def get_timetable(
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> EngineSnapshot:
    with registry.session(key) as engine:
        return _snapshot(key, engine)


@router.put("/{key}", response_model=EngineSnapshot)
def save_timetable(
    payload: TimetablePayload,
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> EngineSnapshot:
    with registry.session(key) as engine:
        engine.replace_grid(grid_from_payload(payload.schedule, engine.layout))
        registry.store.save(key, engine.grid)
        return _snapshot(key, engine)


@router.post("/{key}/placements", response_model=PlacementResult)
def create_placement(
    payload: PlacementRequest,
    background_tasks: BackgroundTasks,
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> PlacementResult:
    with registry.session(key) as engine:
        result = engine.place(
            payload.course,
            payload.day,
            payload.slot,
            payload.room_id,
            source_day=payload.source_day,
            source_slot=payload.source_slot,
            batch=payload.batch,
            allow_conflicts=payload.allow_conflicts,
        )
        if result.committed:
            background_tasks.add_task(registry.persist, key)
        return result


@router.post("/{key}/placements/preview", response_model=DropFeedback)
def preview_placement(
    payload: PlacementRequest,
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> DropFeedback:
    with registry.session(key) as engine:
        source = (payload.source_day, payload.source_slot) if payload.source_day else None
        return engine.evaluate(
            payload.course,
            payload.day,
            payload.slot,
            engine.resolve_room(payload.room_id),
            batch=payload.batch,
            source=source,
        )


@router.delete("/{key}/placements/{day}/{slot}", response_model=PlacementResult)
def delete_placement(
    day: str,
    slot: str,
    background_tasks: BackgroundTasks,
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> PlacementResult:
    with registry.session(key) as engine:
        result = engine.delete(day, slot)
        background_tasks.add_task(registry.persist, key)
        return result


@router.post("/{key}/undo", response_model=EngineSnapshot)
def undo(
    background_tasks: BackgroundTasks,
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> EngineSnapshot:
    with registry.session(key) as engine:
        if engine.undo():
            background_tasks.add_task(registry.persist, key)
        return _snapshot(key, engine)


@router.post("/{key}/redo", response_model=EngineSnapshot)
def redo(
    background_tasks: BackgroundTasks,
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> EngineSnapshot:
    with registry.session(key) as engine:
        if engine.redo():
            background_tasks.add_task(registry.persist, key)
        return _snapshot(key, engine)


@router.get("/{key}/history", response_model=HistoryOut)
def get_history(
    limit: int = Query(default=10, ge=1, le=200),
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> HistoryOut:
    with registry.session(key) as engine:
        return HistoryOut(summary=engine.history.summary(), timeline=engine.history.timeline(limit))


@router.get("/{key}/conflicts", response_model=list[Conflict])
def get_conflicts(
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> list[Conflict]:
    with registry.session(key) as engine:
        return engine.conflicts


@router.get("/{key}/cross-conflicts", response_model=list[Conflict])
def get_cross_timetable_conflicts(
    day: str,
    slot: str,
    faculty_id: str | None = Query(default=None, alias="facultyId"),
    room_id: str | None = Query(default=None, alias="roomId"),
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> list[Conflict]:
    return check_cross_timetable_conflicts(
        registry.store,
        day,
        slot,
        faculty_id=faculty_id,
        room_id=room_id,
        exclude_key=key,
    )


@router.get("/{key}/index/validate", response_model=IndexValidation)
def validate_index(
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> IndexValidation:
    with registry.session(key) as engine:
        return engine.validate_index()


@router.post("/{key}/auto-arrange", response_model=ArrangementResult)
def auto_arrange(
    payload: AutoArrangeRequest,
    background_tasks: BackgroundTasks,
    key: str = Depends(timetable_key),
    registry: EditorRegistry = Depends(get_registry),
) -> ArrangementResult:
    with registry.session(key) as engine:
        result = engine.auto_arrange(
            payload.courses,
            preferred_days=payload.preferred_days,
            preferred_slots=payload.preferred_slots,
            room=payload.room_id,
            batch=payload.batch,
        )
        if result.placements:
            background_tasks.add_task(registry.persist, key)
        return result
