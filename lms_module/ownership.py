"""Record-level ownership checks.

Every lookup hits the database; nothing is cached, so a course handed to a
different teacher is reflected on the very next request.
"""
import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import Forbidden, NotFound
from .middleware import Actor
from .models import Assignment, Attendance, Course, LeaveRequest, Submission
from .permissions import ResourceKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Owner:
    teacher_ids: frozenset[int] = field(default_factory=frozenset)
    student_id: int | None = None
    requester_id: int | None = None


def _teacher_set(teacher_id: int | None) -> frozenset[int]:
    return frozenset() if teacher_id is None else frozenset({teacher_id})


def student_teacher_ids(db: Session, student_id: int) -> frozenset[int]:
    """Teachers of every course the student has attendance in."""
    rows = db.scalars(
        select(Course.teacher_id)
        .join(Attendance, Attendance.course_id == Course.id)
        .where(Attendance.student_id == student_id, Course.teacher_id.is_not(None))
        .distinct()
    ).all()
    return frozenset(rows)


def resolve_owner(db: Session, resource_kind: ResourceKind, resource_id: int) -> Owner:
    if resource_kind == ResourceKind.COURSE:
        course = db.get(Course, resource_id)
        if not course:
            raise NotFound("Course not found")
        return Owner(teacher_ids=_teacher_set(course.teacher_id))

    if resource_kind == ResourceKind.ASSIGNMENT:
        row = db.execute(
            select(Assignment.id, Course.teacher_id)
            .join(Course, Assignment.course_id == Course.id)
            .where(Assignment.id == resource_id)
        ).first()
        if not row:
            raise NotFound("Assignment not found")
        return Owner(teacher_ids=_teacher_set(row.teacher_id))

    if resource_kind == ResourceKind.SUBMISSION:
        row = db.execute(
            select(Submission.student_id, Course.teacher_id)
            .join(Assignment, Submission.assignment_id == Assignment.id)
            .join(Course, Assignment.course_id == Course.id)
            .where(Submission.id == resource_id)
        ).first()
        if not row:
            raise NotFound("Submission not found")
        return Owner(teacher_ids=_teacher_set(row.teacher_id), student_id=row.student_id)

    if resource_kind == ResourceKind.ATTENDANCE:
        row = db.execute(
            select(Attendance.student_id, Course.teacher_id)
            .join(Course, Attendance.course_id == Course.id)
            .where(Attendance.id == resource_id)
        ).first()
        if not row:
            raise NotFound("Attendance record not found")
        return Owner(teacher_ids=_teacher_set(row.teacher_id), student_id=row.student_id)

    if resource_kind == ResourceKind.LEAVE_REQUEST:
        leave = db.get(LeaveRequest, resource_id)
        if not leave:
            raise NotFound("Leave request not found")
        teacher_ids = student_teacher_ids(db, leave.student_id) if leave.student_id else frozenset()
        return Owner(teacher_ids=teacher_ids, student_id=leave.student_id, requester_id=leave.requester_id)

    raise ValueError(f"No ownership rule for {resource_kind.value}")


def is_owner(actor: Actor, owner: Owner) -> bool:
    if actor.is_admin:
        return True
    if owner.requester_id is not None and owner.requester_id == actor.user_id:
        return True
    if actor.teacher is not None and actor.teacher.id in owner.teacher_ids:
        return True
    if actor.student is not None and owner.student_id is not None and actor.student.id == owner.student_id:
        return True
    return False


def ensure_owner(db: Session, actor: Actor, resource_kind: ResourceKind, resource_id: int) -> Owner:
    owner = resolve_owner(db, resource_kind, resource_id)
    if not is_owner(actor, owner):
        logger.warning(
            "User %s is not an owner of %s %s", actor.user_id, resource_kind.value, resource_id
        )
        raise Forbidden(f"Forbidden: {resource_kind.value.replace('_', ' ')} belongs to another user")
    return owner


def is_enrolled(db: Session, student_id: int, course_id: int) -> bool:
    return db.scalar(
        select(Attendance.id).where(Attendance.student_id == student_id, Attendance.course_id == course_id).limit(1)
    ) is not None


def teacher_has_student(db: Session, teacher_id: int, student_id: int) -> bool:
    return teacher_id in student_teacher_ids(db, student_id)


def ensure_teacher_owns_course(db: Session, actor: Actor, course_id: int) -> Course:
    course = db.get(Course, course_id)
    if not course:
        raise NotFound("Course not found")
    if not actor.is_admin and (actor.teacher is None or course.teacher_id != actor.teacher.id):
        raise Forbidden("Forbidden: Course not found or not yours")
    return course
