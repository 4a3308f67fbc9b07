from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import re

from ttbuilder.core.config import Settings, get_settings
from ttbuilder.core.exceptions import ConfigurationError

SLOT_PATTERN = re.compile(r"^\s*(\d{1,2}):([0-5]\d)\s*-\s*(\d{1,2}):([0-5]\d)\s*$")
HALF_DAY_MINUTES = 12 * 60

DAY_SHORT_MAP = {
    "Mon": "Monday",
    "Tue": "Tuesday",
    "Wed": "Wednesday",
    "Thu": "Thursday",
    "Fri": "Friday",
    "Sat": "Saturday",
    "Sun": "Sunday",
}


def normalize_day(value: str) -> str:
    return DAY_SHORT_MAP.get(value, value)


def parse_slot(slot: str) -> tuple[int, int]:
    """Parse a "H:MM-H:MM" slot into raw (start, end) minutes.

    An end earlier than the start is read as crossing noon ("12:20-1:15").
    Raises ValueError for anything that is not a time range.
    """
    match = SLOT_PATTERN.match(slot or "")
    if not match:
        raise ValueError(f"Invalid time slot: {slot!r}")
    start = int(match.group(1)) * 60 + int(match.group(2))
    end = int(match.group(3)) * 60 + int(match.group(4))
    if end <= start:
        end += HALF_DAY_MINUTES
    return start, end


def slot_start_label(slot: str) -> str:
    return slot.split("-", 1)[0].strip()


def slots_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return start_a < end_b and start_b < end_a


@dataclass(frozen=True)
class ScheduleLayout:
    """Ordered days and time slots every grid is initialized with."""

    days: tuple[str, ...]
    slots: tuple[str, ...]
    _bounds: dict[str, tuple[int, int]] = field(default_factory=dict, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.days:
            raise ConfigurationError("Schedule layout needs at least one day")
        if not self.slots:
            raise ConfigurationError("Schedule layout needs at least one time slot")
        if len(set(self.slots)) != len(self.slots):
            raise ConfigurationError("Schedule layout time slots must be unique")

        # Slots are written on a 12-hour clock, so bounds are made monotonic
        # over the ordered list: a start earlier than its predecessor is PM.
        previous_start = -1
        for slot in self.slots:
            try:
                start, end = parse_slot(slot)
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc
            while start < previous_start:
                start += HALF_DAY_MINUTES
                end += HALF_DAY_MINUTES
            self._bounds[slot] = (start, end)
            previous_start = start

    def has_cell(self, day: str, slot: str) -> bool:
        return day in self.days and slot in self._bounds

    def slot_index(self, slot: str) -> int:
        try:
            return self.slots.index(slot)
        except ValueError:
            return -1

    def slot_bounds(self, slot: str) -> tuple[int, int]:
        bounds = self._bounds.get(slot)
        if bounds is not None:
            return bounds
        return parse_slot(slot)

    def slot_length(self, slot: str) -> int:
        start, end = self.slot_bounds(slot)
        return end - start

    def adjacent_slots(self, slot: str) -> list[str]:
        index = self.slot_index(slot)
        if index < 0:
            return []
        adjacent: list[str] = []
        if index > 0:
            adjacent.append(self.slots[index - 1])
        if index < len(self.slots) - 1:
            adjacent.append(self.slots[index + 1])
        return adjacent

    def cells(self) -> list[tuple[str, str]]:
        return [(day, slot) for day in self.days for slot in self.slots]


def layout_from_settings(settings: Settings | None = None) -> ScheduleLayout:
    settings = settings or get_settings()
    return ScheduleLayout(
        days=tuple(normalize_day(day.strip()) for day in settings.week_days),
        slots=tuple(slot.strip() for slot in settings.time_slots),
    )


@lru_cache
def default_layout() -> ScheduleLayout:
    return layout_from_settings()
