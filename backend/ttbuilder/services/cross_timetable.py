from __future__ import annotations

import logging

from ttbuilder.schemas.conflict import Conflict
from ttbuilder.services.grid import get_cell
from ttbuilder.services.timetable_store import TimetableStore

logger = logging.getLogger(__name__)


def check_cross_timetable_conflicts(
    store: TimetableStore,
    day: str,
    slot: str,
    *,
    faculty_id: str | None = None,
    room_id: str | None = None,
    exclude_key: str | None = None,
) -> list[Conflict]:
    """Faculty and room bookings at (day, slot) in every other stored timetable."""
    if not faculty_id and not room_id:
        return []

    conflicts: list[Conflict] = []
    for key in store.list_keys():
        if key == exclude_key:
            continue
        existing = get_cell(store.load(key), day, slot)
        if existing is None:
            continue
        if faculty_id and existing.faculty_id == faculty_id:
            conflicts.append(
                Conflict(
                    type="faculty",
                    severity="critical",
                    day=day,
                    slot=slot,
                    message=(
                        f"{existing.faculty_name or f'Faculty ID: {faculty_id}'} is teaching "
                        f"{existing.code} in timetable {key} at {slot} on {day}"
                    ),
                    conflicting_course=existing,
                    suggested_actions=["Choose a different time slot", "Assign a different faculty member"],
                    timetable_key=key,
                )
            )
        if room_id and existing.room == room_id:
            conflicts.append(
                Conflict(
                    type="room",
                    severity="critical",
                    day=day,
                    slot=slot,
                    message=f"Room {room_id} is booked for {existing.code} in timetable {key} at {slot} on {day}",
                    conflicting_course=existing,
                    suggested_actions=["Choose a different room", "Choose a different time slot"],
                    timetable_key=key,
                )
            )
    if conflicts:
        logger.info("Found %d cross-timetable conflicts at %s %s", len(conflicts), day, slot)
    return conflicts
