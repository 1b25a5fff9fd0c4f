from sqlalchemy import select

from lms_module.models import Attendance, Course, Student, Teacher, User, UserRole


def test_admin_routes_require_auth_and_role(client, student):
    res = client.get("/api/admin/users")
    assert res.status_code == 401
    assert res.json() == {"success": False, "error": "Missing Authorization header"}

    res = client.get("/api/admin/users", headers={"Authorization": "Bearer not-a-token"})
    assert res.status_code == 401

    res = client.get("/api/admin/users", headers=student.headers)
    assert res.status_code == 403


def test_pagination_is_clamped(client, admin, make_account):
    for _ in range(3):
        make_account(UserRole.STUDENT)

    res = client.get("/api/admin/users", headers=admin.headers)
    page = res.json()["data"]
    assert (page["limit"], page["skip"], page["total"]) == (20, 0, 4)

    res = client.get("/api/admin/users", params={"limit": 500, "skip": -5}, headers=admin.headers)
    page = res.json()["data"]
    assert (page["limit"], page["skip"]) == (100, 0)

    res = client.get("/api/admin/users", params={"limit": 0, "skip": 3}, headers=admin.headers)
    page = res.json()["data"]
    assert (page["limit"], page["skip"]) == (1, 3)
    assert len(page["items"]) == 1

    res = client.get("/api/admin/users", params={"role": "STUDENT"}, headers=admin.headers)
    assert res.json()["data"]["total"] == 3


def test_admin_creates_users_with_profiles(client, db, admin):
    res = client.post(
        "/api/admin/users",
        json={"name": "New Teacher", "email": "NEW.T@School.test", "password": "secret123", "role": "TEACHER"},
        headers=admin.headers,
    )
    assert res.status_code == 201
    assert res.json()["data"]["email"] == "new.t@school.test"
    assert db.scalar(select(Teacher).where(Teacher.user_id == res.json()["data"]["id"])) is not None

    res = client.post(
        "/api/admin/users",
        json={"name": "Copy", "email": "new.t@school.test", "password": "secret123", "role": "STUDENT"},
        headers=admin.headers,
    )
    assert res.status_code == 409


def test_deleting_teacher_unassigns_courses(client, db, admin, teacher, make_course):
    course = make_course(teacher)

    res = client.delete(f"/api/admin/teachers/{teacher.profile.id}", headers=admin.headers)
    assert res.status_code == 200
    assert res.json()["data"]["unassigned_courses"] == 1

    db.expire_all()
    assert db.get(Course, course.id).teacher_id is None
    assert db.get(Teacher, teacher.profile.id) is None


def test_deleting_student_purges_records(client, db, admin, teacher, student, make_course, enroll):
    enroll(student, make_course(teacher))

    assert client.delete(f"/api/admin/students/{student.profile.id}", headers=admin.headers).status_code == 200
    db.expire_all()
    assert db.get(Student, student.profile.id) is None
    assert db.scalars(select(Attendance)).all() == []


def test_deleting_user_removes_profile(client, db, admin, teacher, make_course):
    course = make_course(teacher)
    assert client.delete(f"/api/admin/users/{teacher.user.id}", headers=admin.headers).status_code == 200

    db.expire_all()
    assert db.get(User, teacher.user.id) is None
    assert db.get(Course, course.id).teacher_id is None
    assert client.get(f"/api/admin/users/{teacher.user.id}", headers=admin.headers).status_code == 404


def test_update_teacher_and_student_profiles(client, admin, teacher, student):
    res = client.patch(
        f"/api/admin/teachers/{teacher.profile.id}", json={"specialization": "Physics"}, headers=admin.headers
    )
    assert res.json()["data"]["specialization"] == "Physics"

    res = client.patch(f"/api/admin/students/{student.profile.id}", json={"semester": 3}, headers=admin.headers)
    assert res.json()["data"]["semester"] == 3

    res = client.get("/api/admin/students", params={"semester": 3}, headers=admin.headers)
    assert res.json()["data"]["total"] == 1


def test_settings_roundtrip(client, admin, teacher):
    res = client.get("/api/admin/settings", headers=admin.headers)
    assert res.json()["data"] == {"theme": "light", "notifications": True}

    res = client.put("/api/admin/settings", json={"theme": "dark"}, headers=admin.headers)
    assert res.json()["data"] == {"theme": "dark", "notifications": True}

    res = client.put("/api/admin/settings", json={"theme": "neon"}, headers=admin.headers)
    assert res.status_code == 400

    assert client.get("/api/admin/settings", headers=teacher.headers).status_code == 403


def test_admin_reports(client, admin, teacher, student, make_course, make_assignment, make_submission, enroll):
    course = make_course(teacher)
    enroll(student, course)
    make_submission(student, make_assignment(course), grade=92)

    overview = client.get("/api/admin/reports/overview", headers=admin.headers).json()["data"]
    assert overview["users_by_role"] == {"ADMIN": 1, "TEACHER": 1, "STUDENT": 1}
    assert overview["totals"]["courses"] == 1
    assert overview["attendance_by_status"] == {"PRESENT": 1}
    assert overview["average_gpa"] == 0

    attendance = client.get("/api/admin/reports/attendance", headers=admin.headers).json()["data"]
    assert attendance["overall"]["rate"] == 100.0
    assert attendance["courses"][0]["course_id"] == course.id

    grades = client.get("/api/admin/reports/grades", headers=admin.headers).json()["data"]
    assert grades["overall"]["counts"]["A"] == 1
    assert grades["overall"]["completion_rate"] == 100.0
