from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ttbuilder.db.base import Base


class TimetableDocument(Base):
    __tablename__ = "timetable_documents"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    semester: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    branch: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    batch: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    schedule: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
