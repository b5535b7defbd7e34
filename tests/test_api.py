"""
tests/test_api.py

End-to-end flow through the HTTP API.
"""
SESSION_PARAMS = {"series_id": 1, "exam_date": "2025-03-10", "start_time": "09:30"}


def _setup_campus(client, room_capacity=21):
    assert client.post("/departments", json={"dept_code": "CSE", "dept_name": "Computer Science"}).status_code == 201
    assert client.post("/departments", json={"dept_code": "ECE", "dept_name": "Electronics"}).status_code == 201
    depts = {d["dept_code"]: d["dept_id"] for d in client.get("/departments").json()}

    cs = client.post("/subjects", json={"subject_code": "CS301", "subject_name": "Compilers",
                                        "semester": 3, "dept_id": depts["CSE"]}).json()["subject_id"]
    ec = client.post("/subjects", json={"subject_code": "EC301", "subject_name": "Signals",
                                        "semester": 3, "dept_id": depts["ECE"]}).json()["subject_id"]

    for code, prefix in (("CSE", "C"), ("ECE", "E")):
        for i in range(1, 6):
            response = client.post("/students", json={
                "student_id": f"{prefix}{i:02d}", "name": f"Student {prefix}{i}",
                "batch": 2022, "semester": 3, "dept_id": depts[code]
            })
            assert response.status_code == 201

    if room_capacity is not None:
        assert client.post("/classrooms", json={"room_id": "R101", "capacity": room_capacity}).status_code == 201

    series_id = client.post("/exam-series", json={"series_name": "Spring Finals"}).json()["series_id"]
    response = client.post("/scheduled-exams", json={
        "series_id": series_id, "subject_ids": [cs, ec],
        "exam_date": "2025-03-10", "start_time": "09:30"
    })
    assert response.status_code == 201
    return response.json()["exam_ids"]


def test_root(client):
    assert client.get("/").json() == {"message": "Exam Seating API is running !"}


def test_full_allocation_flow(client):
    _setup_campus(client)

    response = client.post("/allocations/run", json=SESSION_PARAMS)
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["students_assigned"] == 10
    assert body["unassigned_count"] == 0
    assert body["policy"] == "department-first-immediate-middle"

    assert client.get("/allocations/status", params=SESSION_PARAMS).json() == {"allocated": True}

    rows = client.get("/allocations/timeslot", params=SESSION_PARAMS).json()
    assert len(rows) == 10
    assert rows[0]["student_id"] == "C01"

    seat = client.get("/public/seat-lookup", params={**SESSION_PARAMS, "student_id": "E01"}).json()
    assert (seat["room_id"], seat["bench_number"], seat["seat_position"]) == ("R101", 1, "middle")

    stats = client.get("/stats").json()
    assert stats["total_students"] == 10
    assert stats["students_assigned"] == 10
    assert stats["total_allocations"] == 10

    sessions = client.get("/scheduled-exams").json()
    assert sessions[0]["session_key"] == "1_2025-03-10_0930"
    assert sorted(sessions[0]["subjects"]) == ["Compilers", "Signals"]


def test_run_with_policy_override(client):
    _setup_campus(client)

    body = client.post("/allocations/run", json={**SESSION_PARAMS, "policy": "global-sort-seat-by-seat"}).json()

    assert body["policy"] == "global-sort-seat-by-seat"
    assert body["students_assigned"] == 10


def test_capacity_shortfall_is_not_an_error(client):
    _setup_campus(client, room_capacity=4)

    body = client.post("/allocations/run", json=SESSION_PARAMS).json()

    assert body["students_assigned"] == 4
    assert body["unassigned_count"] == 6


def test_missing_session_parameters(client):
    response = client.post("/allocations/run", json={"series_id": 1})
    assert response.status_code == 400
    assert "required" in response.json()["error"]

    assert client.get("/allocations/status", params={"series_id": 1}).status_code == 400


def test_not_found_conditions(client):
    response = client.post("/allocations/run", json=SESSION_PARAMS)
    assert response.status_code == 404
    assert response.json() == {"error": "No exams found for the selected series, date, and time."}

    _setup_campus(client, room_capacity=None)
    response = client.post("/allocations/run", json=SESSION_PARAMS)
    assert response.status_code == 404
    assert response.json() == {"error": "No classrooms available."}
    assert all(s["status"] == "Active" for s in client.get("/students").json())


def test_seat_lookup_before_allocation(client):
    _setup_campus(client)

    response = client.get("/public/seat-lookup", params={**SESSION_PARAMS, "student_id": "C01"})

    assert response.status_code == 404


def test_duplicate_classroom_conflicts(client):
    assert client.post("/classrooms", json={"room_id": "R101", "capacity": 21}).status_code == 201
    assert client.post("/classrooms", json={"room_id": "R101", "capacity": 30}).status_code == 409
    assert client.post("/classrooms", json={"room_id": "R102", "capacity": -1}).status_code == 422


def test_reset(client):
    _setup_campus(client)
    client.post("/allocations/run", json=SESSION_PARAMS)

    body = client.delete("/allocations/reset").json()

    assert body["deleted"] == 10
    assert client.get("/allocations/status", params=SESSION_PARAMS).json() == {"allocated": False}
    assert all(s["status"] == "Active" for s in client.get("/students").json())


def test_export_endpoints(client):
    _setup_campus(client)

    assert client.get("/export/allocation/pdf", params=SESSION_PARAMS).status_code == 404

    client.post("/allocations/run", json=SESSION_PARAMS)

    pdf = client.get("/export/allocation/pdf", params=SESSION_PARAMS)
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    excel = client.get("/export/allocation/excel", params=SESSION_PARAMS)
    assert excel.status_code == 200
    assert excel.headers["content-type"].startswith("application/vnd.openxmlformats")


# ------------------ management ------------------

def _dept_id(client, code):
    return {d["dept_code"]: d["dept_id"] for d in client.get("/departments").json()}[code]


def test_exam_series_listing_newest_first(client):
    client.post("/exam-series", json={"series_name": "Autumn", "start_date": "2024-10-01"})
    client.post("/exam-series", json={"series_name": "Spring", "start_date": "2025-03-01",
                                      "end_date": "2025-03-20"})

    series = client.get("/exam-series").json()

    assert [s["series_name"] for s in series] == ["Spring", "Autumn"]
    assert series[0]["end_date"] == "2025-03-20"


def test_timetable_lists_the_series_exams(client):
    exam_ids = _setup_campus(client)

    timetable = client.get("/timetable/1").json()

    assert sorted(e["exam_id"] for e in timetable) == sorted(exam_ids)
    assert {(e["subject_code"], e["dept_code"]) for e in timetable} == {("CS301", "CSE"), ("EC301", "ECE")}
    assert timetable[0]["start_time"] == "09:30"
    assert client.get("/timetable/99").json() == []


def test_semesters_are_distinct(client):
    _setup_campus(client)
    client.post("/students", json={"student_id": "C99", "name": "Late", "batch": 2023,
                                   "semester": 1, "dept_id": _dept_id(client, "CSE")})

    assert client.get("/semesters").json() == [1, 3]


def test_update_and_delete_department(client):
    dept_id = client.post("/departments", json={"dept_code": "MEC", "dept_name": "Mech"}).json()["dept_id"]
    client.post("/departments", json={"dept_code": "CIV", "dept_name": "Civil"})

    response = client.put(f"/departments/{dept_id}", json={"dept_code": "ME", "dept_name": "Mechanical"})
    assert response.status_code == 200
    assert _dept_id(client, "ME") == dept_id

    response = client.put(f"/departments/{dept_id}", json={"dept_code": "CIV", "dept_name": "Mechanical"})
    assert response.status_code == 409

    assert client.delete(f"/departments/{dept_id}").status_code == 200
    assert "ME" not in {d["dept_code"] for d in client.get("/departments").json()}

    assert client.put(f"/departments/{dept_id}", json={"dept_code": "X", "dept_name": "X"}).status_code == 404
    assert client.delete(f"/departments/{dept_id}").status_code == 404


def test_department_in_use_cannot_be_deleted(client):
    _setup_campus(client)

    response = client.delete(f"/departments/{_dept_id(client, 'CSE')}")

    assert response.status_code == 400
    assert "linked" in response.json()["error"]


def test_update_and_delete_student(client):
    _setup_campus(client)

    response = client.put("/students/C01", json={"name": "Renamed", "batch": 2021, "semester": 3,
                                                 "dept_id": _dept_id(client, "CSE")})
    assert response.status_code == 200
    students = {s["student_id"]: s for s in client.get("/students").json()}
    assert (students["C01"]["name"], students["C01"]["batch"]) == ("Renamed", 2021)

    assert client.delete("/students/C05").status_code == 200
    assert "C05" not in {s["student_id"] for s in client.get("/students").json()}
    assert client.delete("/students/C05").status_code == 404
    assert client.put("/students/Z01", json={"name": "n", "batch": 1, "semester": 1, "dept_id": 1}).status_code == 404


def test_allocated_student_cannot_be_deleted(client):
    _setup_campus(client)
    client.post("/allocations/run", json=SESSION_PARAMS)

    response = client.delete("/students/C01")

    assert response.status_code == 400
    assert len(client.get("/students").json()) == 10


def test_update_and_delete_classroom(client):
    client.post("/classrooms", json={"room_id": "R201", "capacity": 21})

    assert client.put("/classrooms/R201", json={"capacity": 30}).status_code == 200
    assert client.get("/classrooms").json() == [{"room_id": "R201", "capacity": 30}]
    assert client.put("/classrooms/R201", json={"capacity": -3}).status_code == 422

    assert client.delete("/classrooms/R201").status_code == 200
    assert client.get("/classrooms").json() == []
    assert client.put("/classrooms/R201", json={"capacity": 30}).status_code == 404
    assert client.delete("/classrooms/R201").status_code == 404


def test_classroom_in_use_cannot_be_deleted(client):
    _setup_campus(client)
    client.post("/allocations/run", json=SESSION_PARAMS)

    response = client.delete("/classrooms/R101")

    assert response.status_code == 400
    assert client.get("/classrooms").json() == [{"room_id": "R101", "capacity": 21}]


def test_update_and_delete_exam_series(client):
    series_id = client.post("/exam-series", json={"series_name": "Mid Terms"}).json()["series_id"]

    response = client.put(f"/exam-series/{series_id}", json={"series_name": "Mid Terms II",
                                                             "start_date": "2025-01-05"})
    assert response.status_code == 200
    assert client.get("/exam-series").json()[0]["series_name"] == "Mid Terms II"

    assert client.delete(f"/exam-series/{series_id}").status_code == 200
    assert client.get("/exam-series").json() == []
    assert client.delete(f"/exam-series/{series_id}").status_code == 404
    assert client.put(f"/exam-series/{series_id}", json={"series_name": "x"}).status_code == 404


def test_series_with_exams_cannot_be_deleted(client):
    _setup_campus(client)

    response = client.delete("/exam-series/1")

    assert response.status_code == 400
    assert len(client.get("/exam-series").json()) == 1


def test_delete_session_leaves_no_orphan_allocations(client):
    _setup_campus(client)
    client.post("/allocations/run", json=SESSION_PARAMS)

    response = client.delete("/scheduled-exam-session", params=SESSION_PARAMS)

    assert response.status_code == 200
    assert response.json()["allocations_cleared"] == 10
    assert client.get("/scheduled-exams").json() == []
    assert client.get("/allocations/status", params=SESSION_PARAMS).json() == {"allocated": False}
    assert client.get("/stats").json()["total_allocations"] == 0
    assert all(s["status"] == "Active" for s in client.get("/students").json())

    # the series and classroom are free again
    assert client.delete("/classrooms/R101").status_code == 200
    assert client.delete("/exam-series/1").status_code == 200


def test_delete_session_errors(client):
    assert client.delete("/scheduled-exam-session", params={"series_id": 1}).status_code == 400
    assert client.delete("/scheduled-exam-session", params=SESSION_PARAMS).status_code == 404
