import pytest

from ttbuilder.services.grid import count_assignments

KEY = "S1-CSE-A-Regular"
BASE = f"/api/timetable/{KEY}"

CS101 = {
    "courseCode": "CS101",
    "name": "Introduction to Computer Science",
    "faculty": {"id": 1, "name": "Dr. Alex Johnson"},
    "duration": 1,
}
CS202 = {"code": "CS202", "title": "Data Structures and Algorithms", "facultyId": "2", "duration": 2}


@pytest.fixture()
def directory(registry, rooms, faculty):
    registry.set_directory(rooms, faculty)
    return registry


def place(client, course, day="Monday", slot="7:00-7:55", room="A101", **extra):
    return client.post(f"{BASE}/placements", json={"course": course, "day": day, "slot": slot, "roomId": room, **extra})


def test_directory_round_trip(client):
    body = {
        "rooms": [{"number": "A101", "capacity": 60, "type": "Lecture Hall"}],
        "faculty": [{"id": 1, "name": "Dr. Alex Johnson", "availableSlots": ["Monday"]}],
    }

    saved = client.put("/api/directory", json=body)
    assert saved.status_code == 200

    payload = client.get("/api/directory").json()
    assert payload["rooms"][0]["id"] == "A101"
    assert payload["faculty"][0]["id"] == "1"
    assert payload["faculty"][0]["availability"] == ["Monday"]


def test_new_timetable_starts_empty(client):
    response = client.get(BASE)

    assert response.status_code == 200
    body = response.json()
    assert body["key"] == KEY
    assert body["canUndo"] is False
    assert set(body["schedule"]) == {"Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"}
    assert all(cell is None for cell in body["schedule"]["Monday"].values())


def test_malformed_key_is_rejected(client):
    assert client.get("/api/timetable/not-a-key").status_code == 422


def test_placement_commits_and_persists(client, directory):
    response = place(client, CS101)

    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "committed"
    assert body["assignment"]["code"] == "CS101"
    assert body["assignment"]["facultyId"] == "1"
    assert body["assignment"]["timeSlot"] == "7:00-7:55"

    stored = directory.store.load(KEY)
    assert stored["Monday"]["7:00-7:55"].room == "A101"


def test_conflicting_placement_is_rejected_not_an_error(client, directory):
    place(client, CS101)

    response = place(client, CS202)

    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "rejected"
    assert {c["type"] for c in body["conflicts"]} == {"slot_occupied", "room"}
    assert count_assignments(directory.store.load(KEY)) == 1


def test_preview_reports_without_committing(client, directory):
    place(client, CS101)

    preview = client.post(
        f"{BASE}/placements/preview",
        json={"course": {"code": "CS303", "facultyId": "1"}, "day": "Monday", "slot": "7:00-7:55", "roomId": "B201"},
    )

    assert preview.status_code == 200
    body = preview.json()
    assert body["canDrop"] is False
    assert {c["type"] for c in body["conflicts"]} == {"slot_occupied", "faculty"}
    assert client.get(BASE).json()["schedule"]["Tuesday"]["7:00-7:55"] is None


def test_preview_outside_the_grid_is_not_found(client):
    response = client.post(
        f"{BASE}/placements/preview",
        json={"course": CS202, "day": "Sunday", "slot": "7:00-7:55"},
    )

    assert response.status_code == 404
    assert response.json()["details"]["resource_type"] == "Cell"


def test_source_fields_must_come_together(client):
    response = place(client, CS101, sourceDay="Monday")

    assert response.status_code == 422


def test_move_delete_undo_redo_and_history(client):
    place(client, CS101)
    moved = place(client, CS101, day="Friday", slot="2:10-3:05", room=None, sourceDay="Monday", sourceSlot="7:00-7:55")
    assert moved.json()["outcome"] == "committed"
    assert moved.json()["assignment"]["room"] == "A101"

    deleted = client.delete(f"{BASE}/placements/Friday/2:10-3:05")
    assert deleted.status_code == 200

    undone = client.post(f"{BASE}/undo").json()
    assert undone["schedule"]["Friday"]["2:10-3:05"]["code"] == "CS101"
    assert undone["canRedo"] is True

    redone = client.post(f"{BASE}/redo").json()
    assert redone["schedule"]["Friday"]["2:10-3:05"] is None

    history = client.get(f"{BASE}/history", params={"limit": 2}).json()
    assert history["summary"]["totalStates"] == 4
    assert [entry["actionType"] for entry in history["timeline"]] == ["course_remove", "course_move"]
    assert history["timeline"][0]["isCurrent"] is True


def test_conflicts_and_index_validation(client):
    place(client, CS202)
    place(client, {"code": "CS303", "facultyId": "3"}, slot="7:55-8:50", allowConflicts=True)

    conflicts = client.get(f"{BASE}/conflicts").json()
    assert [c["type"] for c in conflicts] == ["room_overlap", "room_overlap"]
    assert {(c["slot"], c["conflictingCourse"]["code"]) for c in conflicts} == {
        ("7:00-7:55", "CS303"),
        ("7:55-8:50", "CS202"),
    }

    report = client.get(f"{BASE}/index/validate").json()
    assert report["isValid"] is True
    assert report["stats"]["courses_in_data"] == 2


def test_replace_timetable_and_cross_timetable_conflicts(client):
    other = "/api/timetable/S1-CSE-B-Regular"
    saved = client.put(
        other,
        json={"schedule": {"Monday": {"7:00-7:55": {"code": "CS101", "facultyId": "1", "room": "A101"}}}},
    )
    assert saved.status_code == 200
    assert saved.json()["schedule"]["Monday"]["7:00-7:55"]["code"] == "CS101"

    response = client.get(
        f"{BASE}/cross-conflicts",
        params={"day": "Monday", "slot": "7:00-7:55", "facultyId": "1", "roomId": "A101"},
    )

    assert response.status_code == 200
    assert [(c["type"], c["timetableKey"]) for c in response.json()] == [
        ("faculty", "S1-CSE-B-Regular"),
        ("room", "S1-CSE-B-Regular"),
    ]


def test_auto_arrange_endpoint(client, directory):
    response = client.post(
        f"{BASE}/auto-arrange",
        json={"courses": [CS101, CS202], "preferredDays": ["Tuesday"], "roomId": "B201"},
    )

    assert response.status_code == 200
    body = response.json()
    assert [(p["code"], p["dayOfWeek"], p["timeSlot"]) for p in body["placements"]] == [
        ("CS101", "Tuesday", "7:00-7:55"),
        ("CS202", "Tuesday", "7:55-8:50"),
    ]
    assert body["unplaced"] == []
    assert count_assignments(directory.store.load(KEY)) == 2


def test_auto_arrange_requires_courses(client):
    assert client.post(f"{BASE}/auto-arrange", json={"courses": []}).status_code == 422


def test_detect_conflicts_with_suggestions(client, directory):
    response = client.post(
        "/api/conflicts/detect",
        json={
            "grid": {"Monday": {"7:00-7:55": {"code": "CS101", "facultyId": "1", "room": "A101"}}},
            "day": "Monday",
            "slot": "7:00-7:55",
            "course": CS202,
            "roomId": "A101",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert [c["type"] for c in body["conflicts"]] == ["room"]
    kinds = [s["type"] for s in body["suggestedResolutions"]]
    assert kinds == ["room_change"] * 5 + ["time_change"] * 5


def test_detect_scans_the_whole_grid(client):
    response = client.post(
        "/api/conflicts/detect",
        json={
            "grid": {
                "Monday": {
                    "7:00-7:55": {"code": "CS202", "facultyId": "2", "room": "A101", "duration": 2},
                    "7:55-8:50": {"code": "CS303", "facultyId": "2", "room": "B201"},
                }
            }
        },
    )

    assert {c["type"] for c in response.json()["conflicts"]} == {"faculty_overlap"}


def test_resolve_applies_a_suggestion(client):
    response = client.post(
        "/api/conflicts/resolve",
        json={
            "grid": {"Monday": {"7:00-7:55": {"code": "CS101", "facultyId": "1", "room": "A101"}}},
            "suggestion": {
                "type": "time_change",
                "priority": "medium",
                "title": "Move to Tuesday at 7:00-7:55",
                "description": "Reschedule course to Tuesday 7:00-7:55",
                "action": {
                    "type": "change_time",
                    "day": "Monday",
                    "slot": "7:00-7:55",
                    "newDay": "Tuesday",
                    "newSlot": "7:00-7:55",
                },
                "estimatedEffort": "Medium",
            },
        },
    )

    assert response.status_code == 200
    schedule = response.json()["schedule"]
    assert schedule["Monday"]["7:00-7:55"] is None
    assert schedule["Tuesday"]["7:00-7:55"]["room"] == "A101"
