import os

# Point the app's own engine at an in-memory database before settings load.
os.environ.setdefault("TTBUILDER_DATABASE_URL", "sqlite+pysqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ttbuilder.api.deps import get_registry  # noqa: E402
from ttbuilder.core.timeslots import default_layout  # noqa: E402
from ttbuilder.db.base import Base  # noqa: E402
from ttbuilder.main import app  # noqa: E402
import ttbuilder.models  # noqa: E402,F401
from ttbuilder.schemas.timetable import CoursePayload, Faculty, Room  # noqa: E402
from ttbuilder.services.audit import DatabaseAuditLog  # noqa: E402
from ttbuilder.services.editor_sessions import EditorRegistry  # noqa: E402
from ttbuilder.services.timetable_store import SqlTimetableStore  # noqa: E402


@pytest.fixture()
def layout():
    return default_layout()


@pytest.fixture()
def rooms():
    return [
        Room(id="A101", capacity=60, type="Lecture Hall", facilities=["Projector", "Smart Board"]),
        Room(id="B201", capacity=40, type="Classroom", facilities=["Projector"]),
        Room(id="C302", capacity=30, type="Computer Lab", facilities=["Computers", "Projector"]),
        Room(id="A105", capacity=60, type="Lecture Hall", facilities=["Projector", "Smart Board"]),
        Room(id="B204", capacity=40, type="Classroom", facilities=["Projector"]),
        Room(id="D101", capacity=80, type="Lecture Hall", facilities=["Projector", "Smart Board", "Audio System"]),
    ]


@pytest.fixture()
def faculty():
    return [
        Faculty(id="1", name="Dr. Alex Johnson", department="Computer Science"),
        Faculty(id="2", name="Dr. Sarah Miller", department="Computer Science"),
        Faculty(id="3", name="Prof. Robert Chen", department="Computer Science"),
        Faculty(id="4", name="Dr. Emily Zhang", department="Computer Science"),
        Faculty(id="5", name="Prof. Maria Garcia", department="Electrical Engineering"),
        Faculty(id="6", name="Dr. John Smith", department="Mechanical Engineering"),
    ]


@pytest.fixture()
def catalog():
    """Course catalog in the legacy record shape the front end sends."""
    records = [
        {"id": "CS101", "name": "Introduction to Computer Science", "faculty": {"id": 1, "name": "Dr. Alex Johnson"},
         "duration": 1, "department": "Computer Science", "weeklyHours": "3L+1T+0P"},
        {"id": "CS202", "name": "Data Structures and Algorithms", "faculty": {"id": 2, "name": "Dr. Sarah Miller"},
         "duration": 2, "department": "Computer Science", "weeklyHours": "3L+0T+2P"},
        {"id": "CS303", "name": "Database Systems", "faculty": {"id": 3, "name": "Prof. Robert Chen"},
         "duration": 1, "department": "Computer Science", "weeklyHours": "3L+1T+2P"},
        {"id": "EE201", "name": "Circuit Theory", "faculty": {"id": 5, "name": "Prof. Maria Garcia"},
         "duration": 1, "department": "Electrical Engineering", "weeklyHours": "3L+1T+1P"},
    ]
    return {record["id"]: CoursePayload.model_validate(record) for record in records}


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def registry(session_factory):
    return EditorRegistry(SqlTimetableStore(session_factory), DatabaseAuditLog(session_factory))


@pytest.fixture()
def client(registry):
    app.dependency_overrides[get_registry] = lambda: registry

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
