import datetime as dt

import pytest

from lms_module.errors import Forbidden, NotFound
from lms_module.models import LeaveRequest, LeaveStatus
from lms_module.ownership import (
    ensure_owner,
    ensure_teacher_owns_course,
    is_enrolled,
    resolve_owner,
    teacher_has_student,
)
from lms_module.permissions import ResourceKind


def test_course_and_assignment_resolve_to_teacher(db, teacher, make_course, make_assignment):
    course = make_course(teacher)
    assignment = make_assignment(course)

    assert resolve_owner(db, ResourceKind.COURSE, course.id).teacher_ids == {teacher.profile.id}
    assert resolve_owner(db, ResourceKind.ASSIGNMENT, assignment.id).teacher_ids == {teacher.profile.id}


def test_submission_resolves_to_student_and_teacher(db, teacher, student, make_course, make_assignment, make_submission):
    course = make_course(teacher)
    submission = make_submission(student, make_assignment(course))

    owner = resolve_owner(db, ResourceKind.SUBMISSION, submission.id)
    assert owner.student_id == student.profile.id
    assert owner.teacher_ids == {teacher.profile.id}


def test_unassigned_course_has_no_teacher(db, make_course):
    course = make_course(None)
    assert resolve_owner(db, ResourceKind.COURSE, course.id).teacher_ids == frozenset()


def test_missing_resource_is_not_found(db):
    with pytest.raises(NotFound):
        resolve_owner(db, ResourceKind.SUBMISSION, 999)


def test_ensure_owner_rejects_other_teacher(db, teacher, other_teacher, admin, make_course):
    course = make_course(teacher)

    ensure_owner(db, teacher.actor, ResourceKind.COURSE, course.id)
    ensure_owner(db, admin.actor, ResourceKind.COURSE, course.id)
    with pytest.raises(Forbidden):
        ensure_owner(db, other_teacher.actor, ResourceKind.COURSE, course.id)


def test_leave_request_teachers_come_from_attendance(db, teacher, other_teacher, student, make_course, enroll):
    enroll(student, make_course(teacher))
    leave = LeaveRequest(
        requester_id=student.user.id,
        student_id=student.profile.id,
        type="sick",
        from_date=dt.date(2024, 3, 1),
        to_date=dt.date(2024, 3, 2),
        reason="Fever and cough",
        status=LeaveStatus.PENDING,
    )
    db.add(leave)
    db.commit()

    owner = resolve_owner(db, ResourceKind.LEAVE_REQUEST, leave.id)
    assert owner.requester_id == student.user.id
    assert owner.teacher_ids == {teacher.profile.id}
    with pytest.raises(Forbidden):
        ensure_owner(db, other_teacher.actor, ResourceKind.LEAVE_REQUEST, leave.id)


def test_enrollment_helpers(db, teacher, other_teacher, student, make_course, enroll):
    course = make_course(teacher)
    assert not is_enrolled(db, student.profile.id, course.id)

    enroll(student, course)
    assert is_enrolled(db, student.profile.id, course.id)
    assert teacher_has_student(db, teacher.profile.id, student.profile.id)
    assert not teacher_has_student(db, other_teacher.profile.id, student.profile.id)


def test_ensure_teacher_owns_course(db, teacher, other_teacher, make_course):
    course = make_course(teacher)
    assert ensure_teacher_owns_course(db, teacher.actor, course.id).id == course.id
    with pytest.raises(Forbidden):
        ensure_teacher_owns_course(db, other_teacher.actor, course.id)
    with pytest.raises(NotFound):
        ensure_teacher_owns_course(db, teacher.actor, 12345)
