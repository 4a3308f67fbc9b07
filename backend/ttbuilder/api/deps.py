from collections.abc import Generator
from functools import lru_cache

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ttbuilder.db.session import SessionLocal
from ttbuilder.services.audit import DatabaseAuditLog
from ttbuilder.services.editor_sessions import EditorRegistry
from ttbuilder.services.timetable_store import SqlTimetableStore, parse_timetable_key


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_registry() -> EditorRegistry:
    return EditorRegistry(SqlTimetableStore(SessionLocal), DatabaseAuditLog(SessionLocal))


def timetable_key(key: str) -> str:
    try:
        parse_timetable_key(key)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return key
