import datetime as dt

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from lms_module.models import Attendance, AttendanceStatus, Course, Submission


def test_teacher_creates_course_for_self(client, teacher):
    res = client.post(
        "/api/teacher/courses",
        json={"title": "Algorithms", "code": "CS201", "teacher_id": 999},
        headers=teacher.headers,
    )
    assert res.status_code == 201
    assert res.json()["data"]["teacher_id"] == teacher.profile.id


def test_course_code_is_unique(client, db, admin, teacher):
    payload = {"title": "Algorithms", "code": "CS201", "teacher_id": teacher.profile.id}
    assert client.post("/api/admin/courses", json=payload, headers=admin.headers).status_code == 201

    res = client.post("/api/admin/courses", json={**payload, "title": "Other"}, headers=admin.headers)
    assert res.status_code == 409
    assert db.scalar(select(func.count(Course.id))) == 1


def test_teacher_lists_and_reads_only_own_courses(client, teacher, other_teacher, make_course):
    mine = make_course(teacher)
    theirs = make_course(other_teacher)

    res = client.get("/api/teacher/courses", headers=teacher.headers)
    assert [c["id"] for c in res.json()["data"]["items"]] == [mine.id]

    assert client.get(f"/api/teacher/courses/{theirs.id}", headers=teacher.headers).status_code == 403
    assert client.get(f"/api/teacher/courses/{mine.id}", headers=teacher.headers).status_code == 200


def test_teacher_cannot_reassign_course(client, teacher, other_teacher, make_course):
    course = make_course(teacher)
    res = client.patch(
        f"/api/teacher/courses/{course.id}", json={"teacher_id": other_teacher.profile.id}, headers=teacher.headers
    )
    assert res.status_code == 403


def test_removing_student_deletes_only_that_course_records(
    client, db, teacher, student, make_course, make_assignment, make_submission, enroll
):
    course = make_course(teacher)
    kept = make_course(teacher)
    enroll(student, course, dt.date(2024, 1, 8))
    enroll(student, course, dt.date(2024, 1, 9))
    enroll(student, kept)
    make_submission(student, make_assignment(course))
    make_submission(student, make_assignment(kept))

    res = client.delete(f"/api/teacher/students/{student.profile.id}/courses/{course.id}", headers=teacher.headers)
    assert res.status_code == 200
    assert res.json()["data"]["deleted_attendance"] == 2
    assert res.json()["data"]["deleted_submissions"] == 1

    assert db.scalar(select(func.count(Attendance.id)).where(Attendance.course_id == course.id)) == 0
    assert db.scalar(select(func.count(Attendance.id)).where(Attendance.course_id == kept.id)) == 1
    assert db.scalar(select(func.count(Submission.id))) == 1


def test_other_teacher_cannot_remove_student(client, db, teacher, other_teacher, student, make_course, enroll):
    course = make_course(teacher)
    enroll(student, course)

    res = client.delete(
        f"/api/teacher/students/{student.profile.id}/courses/{course.id}", headers=other_teacher.headers
    )
    assert res.status_code == 403
    assert db.scalar(select(func.count(Attendance.id))) == 1


def test_student_self_unenroll(client, db, teacher, student, make_course, enroll):
    course = make_course(teacher)
    enroll(student, course)

    res = client.get("/api/student/courses", headers=student.headers)
    assert [c["id"] for c in res.json()["data"]["items"]] == [course.id]

    assert client.delete(f"/api/student/courses/{course.id}", headers=student.headers).status_code == 200
    assert client.delete(f"/api/student/courses/{course.id}", headers=student.headers).status_code == 404
    res = client.get("/api/student/courses", headers=student.headers)
    assert res.json()["data"]["total"] == 0


def test_teacher_students_roster(client, teacher, student, other_student, make_course, enroll):
    course = make_course(teacher)
    enroll(student, course)

    res = client.get("/api/teacher/students", headers=teacher.headers)
    assert [s["id"] for s in res.json()["data"]] == [student.profile.id]


def test_deleting_course_removes_assignments(client, db, teacher, make_course, make_assignment):
    course = make_course(teacher)
    assignment = make_assignment(course)

    assert client.delete(f"/api/teacher/courses/{course.id}", headers=teacher.headers).status_code == 200
    res = client.get(f"/api/teacher/assignments/{assignment.id}", headers=teacher.headers)
    assert res.status_code == 404


def test_assignment_crud(client, teacher, other_teacher, make_course):
    course = make_course(teacher)
    due = (dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=5)).isoformat()

    res = client.post(
        "/api/teacher/assignments",
        json={"title": "Homework 1", "due_date": due, "course_id": course.id},
        headers=teacher.headers,
    )
    assert res.status_code == 201
    assignment_id = res.json()["data"]["id"]

    res = client.post(
        "/api/teacher/assignments",
        json={"title": "Sneaky", "due_date": due, "course_id": course.id},
        headers=other_teacher.headers,
    )
    assert res.status_code == 403

    res = client.patch(f"/api/teacher/assignments/{assignment_id}", json={"title": "Homework 1b"}, headers=teacher.headers)
    assert res.json()["data"]["title"] == "Homework 1b"

    res = client.get("/api/teacher/assignments", params={"course_id": course.id}, headers=teacher.headers)
    assert res.json()["data"]["total"] == 1


def test_move_student_between_own_courses(
    client, db, teacher, student, make_course, make_assignment, make_submission, enroll
):
    source = make_course(teacher)
    target = make_course(teacher)
    today = dt.date.today()
    enroll(student, source, today - dt.timedelta(days=1), AttendanceStatus.LATE)
    enroll(student, source, today - dt.timedelta(days=2))
    enroll(student, source, today - dt.timedelta(days=60))
    enroll(student, target, today - dt.timedelta(days=2), AttendanceStatus.ABSENT)
    make_submission(student, make_assignment(source))

    res = client.post(
        f"/api/teacher/students/{student.profile.id}/move",
        json={"from_course_id": source.id, "to_course_id": target.id},
        headers=teacher.headers,
    )
    assert res.status_code == 200
    assert res.json()["data"]["moved_attendance"] == 1
    assert res.json()["data"]["deleted_submissions"] == 1

    assert db.scalar(select(func.count(Attendance.id)).where(Attendance.course_id == source.id)) == 0
    moved = db.scalars(select(Attendance).where(Attendance.course_id == target.id).order_by(Attendance.date)).all()
    assert [(r.date, r.status) for r in moved] == [
        (today - dt.timedelta(days=2), AttendanceStatus.ABSENT),
        (today - dt.timedelta(days=1), AttendanceStatus.LATE),
    ]
    assert db.scalar(select(func.count(Submission.id))) == 0


def test_move_requires_both_courses_owned(client, teacher, other_teacher, student, make_course, enroll):
    mine = make_course(teacher)
    theirs = make_course(other_teacher)
    enroll(student, mine)
    url = f"/api/teacher/students/{student.profile.id}/move"

    res = client.post(url, json={"from_course_id": mine.id, "to_course_id": theirs.id}, headers=teacher.headers)
    assert res.status_code == 403
    res = client.post(url, json={"from_course_id": mine.id, "to_course_id": mine.id}, headers=teacher.headers)
    assert res.status_code == 400
    res = client.post(
        "/api/teacher/students/999/move",
        json={"from_course_id": mine.id, "to_course_id": make_course(teacher).id},
        headers=teacher.headers,
    )
    assert res.status_code == 404


def test_database_failure_on_commit_is_internal_error(client, db, admin, teacher, monkeypatch):
    def broken_commit(self):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(Session, "commit", broken_commit)
    res = client.post(
        "/api/admin/courses",
        json={"title": "Algorithms", "code": "CS201", "teacher_id": teacher.profile.id},
        headers=admin.headers,
    )
    monkeypatch.undo()

    assert res.status_code == 500
    assert res.json() == {"success": False, "error": "Database error"}
    assert db.scalar(select(func.count(Course.id))) == 0
