from fastapi import APIRouter, Depends

from ttbuilder.api.deps import get_registry
from ttbuilder.schemas.timetable import DirectoryPayload
from ttbuilder.services.editor_sessions import EditorRegistry

router = APIRouter()


@router.get("", response_model=DirectoryPayload)
def get_directory(registry: EditorRegistry = Depends(get_registry)) -> DirectoryPayload:
    return DirectoryPayload(rooms=registry.rooms, faculty=registry.faculty)


@router.put("", response_model=DirectoryPayload)
def replace_directory(
    payload: DirectoryPayload,
    registry: EditorRegistry = Depends(get_registry),
) -> DirectoryPayload:
    registry.set_directory(payload.rooms, payload.faculty)
    return DirectoryPayload(rooms=registry.rooms, faculty=registry.faculty)
