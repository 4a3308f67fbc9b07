import pytest

from ttbuilder.schemas.timetable import CoursePayload, Room
from ttbuilder.services.grid import grids_equal, initialize_grid, place_course
from ttbuilder.services.history import (
    HistoryActionType,
    HistoryManager,
    can_redo,
    can_undo,
    clear_history,
    compress_history,
    describe_entry,
    history_statistics,
    history_summary,
    new_history,
    record,
    redo,
    search_by_action_type,
    timeline,
    undo,
)

ROOM = Room(id="A101", capacity=60)


def grid_with(layout, *codes):
    grid = initialize_grid(layout)
    for position, code in enumerate(codes):
        grid = place_course(grid, "Monday", layout.slots[position], CoursePayload(code=code), ROOM)
    return grid


def test_undo_then_redo_returns_to_latest_commit(layout):
    commits = [grid_with(layout, *["C%d" % i for i in range(n)]) for n in range(1, 5)]
    state = new_history(initialize_grid(layout), max_entries=50)
    for grid in commits:
        state = record(state, grid, HistoryActionType.course_add)

    for _ in commits:
        _, state = undo(state)
    assert undo(state) is None
    assert state.cursor == 0

    restored = None
    for _ in commits:
        restored, state = redo(state)
    assert redo(state) is None
    assert grids_equal(restored, commits[-1])


def test_history_is_bounded_and_drops_oldest(layout):
    state = new_history(max_entries=3)
    for n in range(1, 6):
        state = record(state, grid_with(layout, *["C%d" % i for i in range(n)]))

    assert len(state.entries) == 3
    assert state.cursor == 2
    assert history_summary(state).total_states == 3
    oldest = state.entries[0].grid
    assert oldest["Monday"][layout.slots[2]].code == "C2"
    assert oldest["Monday"][layout.slots[3]] is None


def test_snapshots_are_independent_of_later_mutation(layout):
    grid = grid_with(layout, "CS101")
    state = record(new_history(max_entries=10), grid)
    state = record(state, grid_with(layout, "CS101", "CS202"))

    grid["Monday"]["7:00-7:55"] = None
    grid["Tuesday"].clear()
    assert state.entries[0].grid["Monday"]["7:00-7:55"].code == "CS101"
    assert len(state.entries[0].grid["Tuesday"]) == len(layout.slots)

    returned, state = undo(state)
    returned["Monday"]["7:00-7:55"] = None
    assert state.entries[0].grid["Monday"]["7:00-7:55"].code == "CS101"


def test_recording_after_undo_discards_redo_branch(layout):
    state = new_history(initialize_grid(layout), max_entries=10)
    state = record(state, grid_with(layout, "A"))
    state = record(state, grid_with(layout, "A", "B"))
    _, state = undo(state)
    assert can_redo(state)

    state = record(state, grid_with(layout, "A", "Z"))

    assert not can_redo(state)
    assert len(state.entries) == 3
    assert state.entries[-1].grid["Monday"][layout.slots[1]].code == "Z"


def test_boundaries_are_no_ops(layout):
    state = new_history(initialize_grid(layout), max_entries=5)

    assert not can_undo(state)
    assert not can_redo(state)
    assert undo(state) is None
    assert redo(state) is None


def test_new_history_rejects_zero_capacity():
    with pytest.raises(ValueError):
        new_history(max_entries=0)


def test_clear_and_compress(layout):
    state = new_history(initialize_grid(layout), max_entries=20)
    for n in range(1, 8):
        state = record(state, grid_with(layout, *["C%d" % i for i in range(n)]))

    compressed = compress_history(state, keep_last=3)
    assert len(compressed.entries) == 3
    assert compressed.cursor == 2
    assert compress_history(compressed, keep_last=10) is compressed

    cleared = clear_history(state, grid_with(layout, "ONLY"))
    assert len(cleared.entries) == 1
    assert cleared.cursor == 0
    assert not can_undo(cleared)


def test_timeline_descriptions_and_statistics(layout):
    state = new_history(initialize_grid(layout), max_entries=10)
    state = record(state, grid_with(layout, "CS101"), HistoryActionType.course_add, {"course_code": "CS101"})
    state = record(
        state,
        grid_with(layout, "CS101"),
        HistoryActionType.course_move,
        {"course_code": "CS101", "from": "Monday 7:00-7:55", "to": "Friday 7:00-7:55"},
    )
    state = record(state, grid_with(layout), "course_remove", {"course_code": "CS101"})

    entries = timeline(state, max_entries=3)
    assert [entry.index for entry in entries] == [3, 2, 1]
    assert entries[0].is_current
    assert entries[0].description.startswith("Removed CS101 at ")
    assert entries[1].description.startswith("Moved CS101 from Monday 7:00-7:55 to Friday 7:00-7:55 at ")
    assert describe_entry(state.entries[0]) == "Unknown action"

    moves = search_by_action_type(state, HistoryActionType.course_move)
    assert [entry.index for entry in moves] == [2]

    stats = history_statistics(state)
    assert stats.total_actions == 4
    assert stats.action_types == {"course_add": 1, "course_move": 1, "course_remove": 1}
    assert stats.first_action_at <= stats.last_action_at


def test_manager_tracks_cursor(layout):
    manager = HistoryManager(initialize_grid(layout), max_entries=5)
    manager.record(grid_with(layout, "A"), HistoryActionType.course_add)

    assert manager.can_undo
    assert manager.undo()["Monday"][layout.slots[0]] is None
    assert manager.undo() is None
    assert manager.redo()["Monday"][layout.slots[0]].code == "A"
    assert manager.summary().current_index == 1
