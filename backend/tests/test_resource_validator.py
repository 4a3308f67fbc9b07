from ttbuilder.schemas.timetable import BatchInfo, CoursePayload, Faculty, Room
from ttbuilder.services.grid import initialize_grid, place_course
from ttbuilder.services.resource_validator import (
    calculate_faculty_workload,
    is_room_type_compatible,
    parse_weekly_hours,
    validate_all,
    validate_batch_conflicts,
    validate_break_times,
    validate_course_scheduling,
    validate_faculty_availability,
    validate_faculty_workload,
    validate_room_capacity,
    validate_room_facilities,
    validate_weekly_hours,
)

ROOM_60 = Room(id="A101", capacity=60, type="Lecture Hall", facilities=["Projector", "Smart Board"])


def course(code, faculty_id="1", **extra):
    return CoursePayload(code=code, title=code, faculty_id=faculty_id, **extra)


def test_capacity_overflow_is_critical():
    check = validate_room_capacity(ROOM_60, 65)

    assert not check.is_valid
    assert check.severity == "critical"
    assert check.details["effective_capacity"] == 54
    assert "Recommended capacity: 73" in check.message


def test_capacity_within_margin_but_crowded_is_a_warning():
    check = validate_room_capacity(ROOM_60, 54)

    assert check.is_valid
    assert check.severity == "warning"
    assert check.details["utilization"] == 90


def test_capacity_unknown_means_no_constraint():
    assert validate_room_capacity(ROOM_60, 40).severity is None
    assert validate_room_capacity(Room(id="X1"), 500).is_valid
    assert validate_room_capacity(ROOM_60, None).is_valid
    assert validate_room_capacity(None, 65).is_valid


def test_missing_facilities_are_reported():
    check = validate_room_facilities(ROOM_60, ["projector", "Computers"])

    assert not check.is_valid
    assert check.severity == "warning"
    assert check.details["missing_facilities"] == ["Computers"]


def test_facilities_pass_vacuously():
    assert validate_room_facilities(ROOM_60, []).is_valid
    assert validate_room_facilities(Room(id="X1"), ["Computers"]).is_valid
    assert validate_room_facilities(ROOM_60, ["Smart Board"]).is_valid


def test_batch_conflict_when_cohort_already_booked(layout):
    grid = place_course(initialize_grid(layout), "Monday", "7:00-7:55", course("CS101", batch_id="B1"), ROOM_60)

    conflicts = validate_batch_conflicts(grid, "Monday", "7:00-7:55", "B1", "CS303")

    assert [(c.type, c.severity, c.conflicting_course.code) for c in conflicts] == [
        ("batch_conflict", "critical", "CS101")
    ]
    assert validate_batch_conflicts(grid, "Monday", "7:00-7:55", "B2", "CS303") == []
    assert validate_batch_conflicts(grid, "Monday", "7:00-7:55", None, "CS303") == []


def test_back_to_back_classes_warn_on_each_side(layout):
    grid = initialize_grid(layout)
    grid = place_course(grid, "Monday", "7:55-8:50", course("CS101"), ROOM_60)
    grid = place_course(grid, "Monday", "10:30-11:25", course("CS202"), ROOM_60)

    one_side = validate_break_times(grid, "Monday", "7:00-7:55", layout)
    both_sides = validate_break_times(grid, "Monday", "8:50-9:45", layout)

    assert [(w.type, w.severity) for w in one_side] == [("break_time", "warning")]
    assert "15 minute break" in one_side[0].message
    assert {w.conflicting_course.code for w in both_sides} == {"CS101", "CS202"}
    assert validate_break_times(grid, "Tuesday", "8:50-9:45", layout) == []


def test_faculty_workload_counts_durations(layout):
    grid = initialize_grid(layout)
    grid = place_course(grid, "Monday", "7:00-7:55", course("CS101", duration=2), ROOM_60)
    grid = place_course(grid, "Tuesday", "7:00-7:55", course("CS303"), ROOM_60)
    grid = place_course(grid, "Tuesday", "8:50-9:45", course("EE201", faculty_id="5"), ROOM_60)

    workload = calculate_faculty_workload(grid, "1")
    assert workload.total_hours == 3
    assert workload.slots_count == 2

    over = validate_faculty_workload(grid, "1", max_hours_per_week=2)
    assert not over.is_valid
    assert over.severity == "warning"
    assert over.details["total_hours"] == 3

    assert validate_faculty_workload(grid, "1").is_valid


def test_faculty_availability_forms():
    listed = Faculty(id="1", name="Dr. Alex Johnson", availability=["Monday-7:00-7:55", "Tuesday-10:30", "Friday"])

    assert validate_faculty_availability(listed, "Monday", "7:00-7:55").is_valid
    assert validate_faculty_availability(listed, "Tuesday", "10:30-11:25").is_valid
    assert validate_faculty_availability(listed, "Friday", "4:00-5:00").is_valid

    refused = validate_faculty_availability(listed, "Wednesday", "7:00-7:55")
    assert not refused.is_valid
    assert refused.severity == "critical"

    assert validate_faculty_availability(Faculty(id="2"), "Wednesday", "7:00-7:55").is_valid
    assert validate_faculty_availability(None, "Wednesday", "7:00-7:55").is_valid


def test_legacy_available_slots_key_is_read():
    member = Faculty.model_validate({"id": 3, "name": "Prof. Robert Chen", "availableSlots": ["Thursday"]})

    assert member.id == "3"
    assert not validate_faculty_availability(member, "Monday", "7:00-7:55").is_valid


def test_course_scheduling_checks(layout):
    long_course = course("CS405", duration=3, course_type="practical", department="Computer Science")
    lab_teacher = Faculty(id="1", department="Electrical Engineering")

    findings = validate_course_scheduling(long_course, "Monday", "3:05-4:00", ROOM_60, lab_teacher, layout)

    assert {(f.type, f.severity) for f in findings} == {
        ("duration_overflow", "warning"),
        ("room_type_mismatch", "warning"),
        ("department_mismatch", "warning"),
    }
    assert validate_course_scheduling(course("CS101", course_type="lecture"), "Monday", "7:00-7:55", ROOM_60) == []
    assert is_room_type_compatible("Practical", "Computer Lab")
    assert not is_room_type_compatible(None, "Computer Lab")


def test_weekly_hours():
    assert parse_weekly_hours("3L+1T+2P") == 6
    assert parse_weekly_hours("4L") == 4
    assert parse_weekly_hours(None) == 0

    short = validate_weekly_hours(course("CS101", weekly_hours="3L+1T+0P"), 2)
    assert not short.is_valid
    assert short.details == {"required_hours": 4, "scheduled_hours": 2}

    assert validate_weekly_hours(course("CS101", weekly_hours="3L+1T+0P"), 4).severity is None
    assert validate_weekly_hours(course("CS101", weekly_hours="3L+1T+0P"), 5).severity == "info"
    assert validate_weekly_hours(course("CS101"), 0).is_valid


def test_validate_all_reports_oversized_batch(layout):
    result = validate_all(
        initialize_grid(layout),
        "Monday",
        "7:00-7:55",
        course("CS101", required_facilities=["Computers"]),
        ROOM_60,
        BatchInfo(id="B1", size=65),
        Faculty(id="1"),
        layout=layout,
    )

    assert not result.is_valid
    assert [c.type for c in result.conflicts] == ["capacity"]
    assert [w.type for w in result.warnings] == ["facilities"]
    assert result.checks["room_capacity"].severity == "critical"
    assert result.checks["faculty_workload"].details["total_hours"] == 1


def test_validate_all_projects_workload_with_the_new_placement(layout):
    grid = place_course(initialize_grid(layout), "Monday", "7:00-7:55", course("CS101"), ROOM_60)

    result = validate_all(
        grid,
        "Tuesday",
        "7:00-7:55",
        course("CS303"),
        ROOM_60,
        faculty=Faculty(id="1", max_hours=1),
        layout=layout,
    )

    assert result.is_valid
    assert [w.type for w in result.warnings] == ["faculty_workload"]
    assert result.checks["faculty_workload"].details["total_hours"] == 2


def test_validate_all_flags_overflow_and_surplus_hours(layout):
    one_hour = course("CS101", weekly_hours="1L")
    grid = place_course(initialize_grid(layout), "Monday", "7:00-7:55", one_hour, ROOM_60)
    double = course("CS101", weekly_hours="1L", duration=2)

    result = validate_all(grid, "Saturday", "4:00-5:00", double, ROOM_60, layout=layout)

    assert result.is_valid
    assert [w.type for w in result.warnings] == ["duration_overflow", "weekly_hours"]
    assert result.checks["weekly_hours"].details == {"required_hours": 1, "scheduled_hours": 3}


def test_validate_all_keeps_a_weekly_shortfall_out_of_warnings(layout):
    partial = course("CS101", weekly_hours="3L+1T")

    result = validate_all(initialize_grid(layout), "Monday", "7:00-7:55", partial, ROOM_60, layout=layout)

    assert result.warnings == []
    assert not result.checks["weekly_hours"].is_valid
