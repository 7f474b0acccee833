import pytest

from conftest import auth_header
from school_attendance.domain.entities import Role


@pytest.fixture
def school(client, clock, make_user, make_class, enroll):
    teacher = make_user(Role.TEACHER, name="John Smith", subject="Mathematics")
    math = make_class(teacher, name="Mathematics 10A")
    physics = make_class(teacher, name="Physics 10A")
    alice = make_user(Role.STUDENT, name="Alice Wilson", grade="10", section="A", student_code="STU0001")
    bob = make_user(Role.STUDENT, name="Bob Miller")
    for klass in (math, physics):
        enroll(alice, klass)
        enroll(bob, klass)

    # yesterday: alice attends math; today: alice and bob attend math
    clock.advance(minutes=-24 * 60)
    mark(client, teacher, math, alice)
    clock.advance(minutes=24 * 60)
    mark(client, teacher, math, alice, bob)
    return teacher, math, physics, alice, bob


def mark(client, teacher, klass, *students):
    code = client.post("/api/attendance/generate-qr", json={"classId": klass.id},
                       headers=auth_header(teacher)).json()["qrCode"]["code"]
    for student in students:
        assert client.post("/api/attendance/scan", json={"qrCode": code},
                           headers=auth_header(student)).status_code == 200


def test_student_dashboard(client, school):
    _, math, physics, alice, _ = school

    response = client.get("/api/dashboard/student", headers=auth_header(alice))

    assert response.status_code == 200
    body = response.json()
    assert body["overallAttendance"] == {"total": 2, "present": 2, "absent": 0, "percentage": 100.0}
    per_class = {c["className"]: c for c in body["classAttendance"]}
    assert per_class[math.name]["totalClasses"] == 2
    assert per_class[math.name]["teacherName"] == "John Smith"
    assert per_class[physics.name]["totalClasses"] == 0
    assert per_class[physics.name]["attendancePercentage"] == 0
    assert [r["day"] for r in body["recentAttendance"]] == ["2024-03-04", "2024-03-03"]
    assert body["profile"] == {"name": "Alice Wilson", "grade": "10", "section": "A", "studentCode": "STU0001"}


def test_teacher_dashboard(client, school):
    teacher, math, physics, _, _ = school

    response = client.get("/api/dashboard/teacher", headers=auth_header(teacher))

    assert response.status_code == 200
    body = response.json()
    assert body["totalClasses"] == 2
    assert body["totalStudents"] == 4
    summary = {c["className"]: c for c in body["classAttendanceSummary"]}
    assert summary[math.name]["presentStudents"] == 2
    assert summary[math.name]["attendancePercentage"] == 100.0
    assert summary[physics.name]["absentStudents"] == 2
    assert body["weeklyAttendance"] == {
        "2024-03-03": {math.name: 1},
        "2024-03-04": {math.name: 2},
    }
    assert body["profile"] == {"name": "John Smith", "subject": "Mathematics"}


def test_admin_dashboard(client, school, make_user):
    admin = make_user(Role.ADMIN)

    response = client.get("/api/dashboard/admin", headers=auth_header(admin))

    assert response.status_code == 200
    body = response.json()
    assert body["overview"] == {"totalUsers": 4, "totalStudents": 2, "totalTeachers": 1, "totalClasses": 2}
    assert body["todayAttendance"] == {"total": 2, "present": 2, "absent": 0, "percentage": 100.0}
    assert len(body["classAttendanceSummary"]) == 2
    assert body["recentUsers"][0]["id"] == admin.id


def test_dashboards_are_role_scoped(client, school):
    teacher, _, _, alice, _ = school
    assert client.get("/api/dashboard/student", headers=auth_header(teacher)).status_code == 403
    assert client.get("/api/dashboard/teacher", headers=auth_header(alice)).status_code == 403
    assert client.get("/api/dashboard/admin", headers=auth_header(teacher)).status_code == 403
