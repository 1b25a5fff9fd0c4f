import datetime as dt

from sqlalchemy import func, select

from lms_module.models import Notification, Submission


def _submission_count(db):
    return db.scalar(select(func.count(Submission.id)))


def test_enrolled_student_can_submit(client, teacher, student, make_course, make_assignment, enroll):
    course = make_course(teacher)
    enroll(student, course)
    assignment = make_assignment(course)

    res = client.post(
        "/api/student/submissions",
        json={"assignment_id": assignment.id, "file_url": "https://files.example.com/essay.pdf"},
        headers=student.headers,
    )
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["student_id"] == student.profile.id
    assert data["file_url"] == "https://files.example.com/essay.pdf"
    assert data["grade"] is None


def test_duplicate_submission_conflicts(client, db, teacher, student, make_course, make_assignment, enroll):
    course = make_course(teacher)
    enroll(student, course)
    assignment = make_assignment(course)
    payload = {"assignment_id": assignment.id, "content": "First try"}

    assert client.post("/api/student/submissions", json=payload, headers=student.headers).status_code == 201
    res = client.post("/api/student/submissions", json=payload, headers=student.headers)
    assert res.status_code == 409
    assert _submission_count(db) == 1


def test_submission_rules(client, db, teacher, student, make_course, make_assignment, enroll):
    course = make_course(teacher)
    open_assignment = make_assignment(course)
    closed_assignment = make_assignment(course, due_in=-dt.timedelta(days=1))

    res = client.post(
        "/api/student/submissions", json={"assignment_id": open_assignment.id, "content": "x"}, headers=student.headers
    )
    assert res.status_code == 403

    enroll(student, course)
    res = client.post(
        "/api/student/submissions", json={"assignment_id": closed_assignment.id, "content": "x"}, headers=student.headers
    )
    assert res.status_code == 400
    assert res.json()["error"] == "Submission deadline has passed"

    res = client.post("/api/student/submissions", json={"assignment_id": open_assignment.id}, headers=student.headers)
    assert res.status_code == 400

    res = client.post("/api/student/submissions", json={"assignment_id": 999, "content": "x"}, headers=student.headers)
    assert res.status_code == 404
    assert _submission_count(db) == 0


def test_grading_notifies_student_once(client, db, teacher, student, make_course, make_assignment, make_submission):
    course = make_course(teacher)
    submission = make_submission(student, make_assignment(course, title="Lab report"))

    res = client.patch(f"/api/teacher/submissions/{submission.id}", json={"grade": 85}, headers=teacher.headers)
    assert res.status_code == 200
    assert res.json()["data"]["grade"] == 85

    notes = db.scalars(select(Notification).where(Notification.user_id == student.user.id)).all()
    assert len(notes) == 1
    assert notes[0].category == "assignment"
    assert "85/100" in notes[0].body
    assert notes[0].data["assignment_id"] == submission.assignment_id


def test_regrading_notifies_only_on_change(client, db, teacher, student, make_course, make_assignment, make_submission):
    submission = make_submission(student, make_assignment(make_course(teacher)))
    url = f"/api/teacher/submissions/{submission.id}"

    def note_count():
        return db.scalar(select(func.count(Notification.id)).where(Notification.user_id == student.user.id))

    assert client.patch(url, json={"grade": 85}, headers=teacher.headers).status_code == 200
    assert client.patch(url, json={"grade": 85}, headers=teacher.headers).status_code == 200
    assert note_count() == 1

    assert client.patch(url, json={"grade": 90}, headers=teacher.headers).status_code == 200
    assert note_count() == 2


def test_other_teacher_cannot_grade(client, db, teacher, other_teacher, student, make_course, make_assignment, make_submission):
    submission = make_submission(student, make_assignment(make_course(teacher)))

    res = client.patch(f"/api/teacher/submissions/{submission.id}", json={"grade": 40}, headers=other_teacher.headers)
    assert res.status_code == 403
    db.expire_all()
    assert db.get(Submission, submission.id).grade is None
    assert db.scalar(select(func.count(Notification.id))) == 0


def test_grade_out_of_range_is_rejected(client, teacher, student, make_course, make_assignment, make_submission):
    submission = make_submission(student, make_assignment(make_course(teacher)))
    res = client.patch(f"/api/teacher/submissions/{submission.id}", json={"grade": 101}, headers=teacher.headers)
    assert res.status_code == 400


def test_student_updates_and_deletes_own_submission(
    client, student, other_student, teacher, make_course, make_assignment, make_submission
):
    submission = make_submission(student, make_assignment(make_course(teacher)))

    res = client.patch(f"/api/student/submissions/{submission.id}", json={"content": "Other"}, headers=other_student.headers)
    assert res.status_code == 403

    res = client.patch(f"/api/student/submissions/{submission.id}", json={"content": "Revised"}, headers=student.headers)
    assert res.status_code == 200
    assert res.json()["data"]["content"] == "Revised"

    assert client.delete(f"/api/student/submissions/{submission.id}", headers=student.headers).status_code == 200


def test_graded_submission_is_locked(client, student, teacher, make_course, make_assignment, make_submission):
    submission = make_submission(student, make_assignment(make_course(teacher)), grade=70)

    res = client.patch(f"/api/student/submissions/{submission.id}", json={"content": "Too late"}, headers=student.headers)
    assert res.status_code == 409
    assert client.delete(f"/api/student/submissions/{submission.id}", headers=student.headers).status_code == 409


def test_teacher_lists_only_own_course_submissions(
    client, teacher, other_teacher, student, make_course, make_assignment, make_submission
):
    mine = make_submission(student, make_assignment(make_course(teacher)))
    make_submission(student, make_assignment(make_course(other_teacher)))

    res = client.get("/api/teacher/submissions", headers=teacher.headers)
    assert [s["id"] for s in res.json()["data"]["items"]] == [mine.id]

    res = client.get("/api/student/submissions", headers=student.headers)
    assert res.json()["data"]["total"] == 2
