from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class HistoryEntryOut(BaseModel):
    index: int
    description: str
    is_current: bool = Field(alias="isCurrent")
    action_type: str | None = Field(default=None, alias="actionType")
    timestamp: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class HistorySummary(BaseModel):
    total_states: int = Field(alias="totalStates")
    current_index: int = Field(alias="currentIndex")
    can_undo: bool = Field(alias="canUndo")
    can_redo: bool = Field(alias="canRedo")
    max_entries: int = Field(alias="maxEntries")

    model_config = {"populate_by_name": True}


class HistoryStatistics(BaseModel):
    total_actions: int = Field(alias="totalActions")
    action_types: dict[str, int] = Field(default_factory=dict, alias="actionTypes")
    first_action_at: datetime | None = Field(default=None, alias="firstActionAt")
    last_action_at: datetime | None = Field(default=None, alias="lastActionAt")

    model_config = {"populate_by_name": True}


class HistoryOut(BaseModel):
    summary: HistorySummary
    timeline: list[HistoryEntryOut] = Field(default_factory=list)
