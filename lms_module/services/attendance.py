import datetime as dt
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import NotFound
from ..middleware import Actor
from ..models import Attendance, AttendanceStatus, Course, Student
from ..ownership import ensure_owner, ensure_teacher_owns_course
from ..pagination import Page, paginate
from ..permissions import ResourceKind
from . import commit_or_conflict

logger = logging.getLogger(__name__)


def list_attendance(
    db: Session,
    page: Page,
    *,
    actor: Actor,
    course_id: int | None = None,
    student_id: int | None = None,
    status: AttendanceStatus | None = None,
    date_from: dt.date | None = None,
    date_to: dt.date | None = None,
):
    stmt = select(Attendance).order_by(Attendance.date.desc(), Attendance.id.desc())
    if actor.teacher is not None and not actor.is_admin:
        stmt = stmt.join(Course, Attendance.course_id == Course.id).where(Course.teacher_id == actor.teacher.id)
    elif actor.student is not None and not actor.is_admin:
        student_id = actor.student.id
    if course_id is not None:
        stmt = stmt.where(Attendance.course_id == course_id)
    if student_id is not None:
        stmt = stmt.where(Attendance.student_id == student_id)
    if status is not None:
        stmt = stmt.where(Attendance.status == status)
    if date_from is not None:
        stmt = stmt.where(Attendance.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Attendance.date <= date_to)
    return paginate(db, stmt, page)


def upsert_attendance(
    db: Session,
    *,
    actor: Actor,
    student_id: int,
    course_id: int,
    status: AttendanceStatus,
    date: dt.date | None = None,
) -> tuple[Attendance, bool]:
    """Mark attendance keyed by (student, course, date).

    An existing record only has its status replaced. Returns the record and
    whether it was newly created.
    """
    ensure_teacher_owns_course(db, actor, course_id)
    if not db.get(Student, student_id):
        raise NotFound("Student not found")
    day = date or dt.date.today()

    record = db.scalar(
        select(Attendance).where(
            Attendance.student_id == student_id,
            Attendance.course_id == course_id,
            Attendance.date == day,
        )
    )
    created = record is None
    if created:
        record = Attendance(student_id=student_id, course_id=course_id, date=day, status=status)
        db.add(record)
    else:
        record.status = status
    commit_or_conflict(db, "Attendance already marked for this student on this date")
    db.refresh(record)
    return record, created


def update_attendance(db: Session, *, actor: Actor, attendance_id: int, changes: dict) -> Attendance:
    ensure_owner(db, actor, ResourceKind.ATTENDANCE, attendance_id)
    record = db.get(Attendance, attendance_id)
    if changes.get("status") is not None:
        record.status = changes["status"]
    if changes.get("date") is not None:
        record.date = changes["date"]
    commit_or_conflict(db, "Attendance already marked for this student on this date")
    db.refresh(record)
    return record


def delete_attendance(db: Session, *, actor: Actor, attendance_id: int) -> None:
    ensure_owner(db, actor, ResourceKind.ATTENDANCE, attendance_id)
    db.delete(db.get(Attendance, attendance_id))
    db.commit()
