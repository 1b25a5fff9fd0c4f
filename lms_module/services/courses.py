import datetime as dt
import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..errors import Conflict, Forbidden, NotFound, ValidationError
from ..middleware import Actor
from ..models import Assignment, Attendance, Course, Student, Submission, Teacher
from ..ownership import ensure_owner, ensure_teacher_owns_course, is_enrolled
from ..pagination import Page, paginate
from ..permissions import ResourceKind
from . import commit_or_conflict

logger = logging.getLogger(__name__)

MOVE_ATTENDANCE_WINDOW = dt.timedelta(days=30)


def _ensure_code_free(db: Session, code: str, exclude_id: int | None = None) -> None:
    stmt = select(Course.id).where(Course.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Course.id != exclude_id)
    if db.scalar(stmt):
        raise Conflict("Course code already exists")


def _ensure_teacher(db: Session, teacher_id: int) -> None:
    if not db.get(Teacher, teacher_id):
        raise NotFound("Teacher not found")


def enrolled_course_ids(db: Session, student_id: int) -> list[int]:
    return list(db.scalars(select(Attendance.course_id).where(Attendance.student_id == student_id).distinct()).all())


def list_courses(db: Session, page: Page, *, actor: Actor, teacher_id: int | None = None):
    stmt = select(Course).order_by(Course.created_at.desc(), Course.id.desc())
    if actor.teacher is not None and not actor.is_admin:
        stmt = stmt.where(Course.teacher_id == actor.teacher.id)
    elif actor.student is not None and not actor.is_admin:
        stmt = stmt.where(Course.id.in_(enrolled_course_ids(db, actor.student.id)))
    elif teacher_id is not None:
        stmt = stmt.where(Course.teacher_id == teacher_id)
    return paginate(db, stmt, page)


def get_course(db: Session, *, actor: Actor, course_id: int) -> Course:
    if actor.student is not None and not actor.is_admin:
        course = db.get(Course, course_id)
        if not course:
            raise NotFound("Course not found")
        if not is_enrolled(db, actor.student.id, course_id):
            raise Forbidden("Forbidden: Not enrolled in course")
        return course
    ensure_owner(db, actor, ResourceKind.COURSE, course_id)
    return db.get(Course, course_id)


def create_course(
    db: Session,
    *,
    actor: Actor,
    title: str,
    code: str,
    description: str | None,
    teacher_id: int | None,
) -> Course:
    if not actor.is_admin:
        # Teachers always create courses for themselves.
        teacher_id = actor.teacher.id
    elif teacher_id is not None:
        _ensure_teacher(db, teacher_id)
    _ensure_code_free(db, code)

    course = Course(title=title.strip(), code=code.strip(), description=description, teacher_id=teacher_id)
    db.add(course)
    commit_or_conflict(db, "Course code already exists")
    db.refresh(course)
    return course


def update_course(db: Session, *, actor: Actor, course_id: int, changes: dict) -> Course:
    ensure_owner(db, actor, ResourceKind.COURSE, course_id)
    course = db.get(Course, course_id)

    if "teacher_id" in changes:
        if not actor.is_admin:
            raise Forbidden("Forbidden: Only admins can reassign courses")
        if changes["teacher_id"] is not None:
            _ensure_teacher(db, changes["teacher_id"])
        course.teacher_id = changes["teacher_id"]
    if changes.get("code") is not None:
        _ensure_code_free(db, changes["code"], exclude_id=course_id)
        course.code = changes["code"].strip()
    if changes.get("title") is not None:
        course.title = changes["title"].strip()
    if "description" in changes:
        course.description = changes["description"]

    commit_or_conflict(db, "Course code already exists")
    db.refresh(course)
    return course


def delete_course(db: Session, *, actor: Actor, course_id: int) -> None:
    ensure_owner(db, actor, ResourceKind.COURSE, course_id)
    course = db.get(Course, course_id)
    # Assignments (with their submissions) and attendance go with the course.
    db.delete(course)
    db.commit()
    logger.info("Course %s deleted by user %s", course_id, actor.user_id)


def course_students(db: Session, *, actor: Actor, course_id: int) -> list[Student]:
    ensure_owner(db, actor, ResourceKind.COURSE, course_id)
    return list(
        db.scalars(
            select(Student)
            .where(Student.id.in_(select(Attendance.student_id).where(Attendance.course_id == course_id)))
            .order_by(Student.id)
        ).all()
    )


def teacher_students(db: Session, *, actor: Actor) -> list[Student]:
    course_ids = select(Course.id).where(Course.teacher_id == actor.teacher.id)
    return list(
        db.scalars(
            select(Student)
            .where(Student.id.in_(select(Attendance.student_id).where(Attendance.course_id.in_(course_ids))))
            .order_by(Student.id)
        ).all()
    )


def remove_student_from_course(db: Session, *, course_id: int, student_id: int) -> dict[str, int]:
    """Drop a student's attendance and submissions for one course.

    Both deletes share a single commit. Callers check ownership first.
    """
    if not db.get(Student, student_id):
        raise NotFound("Student not found")
    assignment_ids = select(Assignment.id).where(Assignment.course_id == course_id)
    deleted_attendance = db.execute(
        delete(Attendance).where(Attendance.student_id == student_id, Attendance.course_id == course_id)
    ).rowcount
    deleted_submissions = db.execute(
        delete(Submission).where(Submission.student_id == student_id, Submission.assignment_id.in_(assignment_ids))
    ).rowcount
    db.commit()
    return {"deleted_attendance": deleted_attendance or 0, "deleted_submissions": deleted_submissions or 0}


def unenroll_by_teacher(db: Session, *, actor: Actor, course_id: int, student_id: int) -> dict[str, int]:
    ensure_teacher_owns_course(db, actor, course_id)
    return remove_student_from_course(db, course_id=course_id, student_id=student_id)


def unenroll_self(db: Session, *, actor: Actor, course_id: int) -> dict[str, int]:
    if not is_enrolled(db, actor.student.id, course_id):
        raise NotFound("Not enrolled in this course")
    return remove_student_from_course(db, course_id=course_id, student_id=actor.student.id)


def move_student(
    db: Session, *, actor: Actor, student_id: int, from_course_id: int, to_course_id: int
) -> dict[str, int]:
    """Move a student between two of the caller's courses.

    Attendance from the last ``MOVE_ATTENDANCE_WINDOW`` is copied to the target
    course (dates already recorded there are left alone). Everything the
    student had in the source course is then removed. One commit.
    """
    if from_course_id == to_course_id:
        raise ValidationError("Source and target course must differ")
    for course_id in (from_course_id, to_course_id):
        ensure_teacher_owns_course(db, actor, course_id)
    if not db.get(Student, student_id):
        raise NotFound("Student not found")

    since = dt.date.today() - MOVE_ATTENDANCE_WINDOW
    recent = db.execute(
        select(Attendance.date, Attendance.status).where(
            Attendance.student_id == student_id,
            Attendance.course_id == from_course_id,
            Attendance.date >= since,
        )
    ).all()
    taken = set(
        db.scalars(
            select(Attendance.date).where(Attendance.student_id == student_id, Attendance.course_id == to_course_id)
        ).all()
    )

    assignment_ids = select(Assignment.id).where(Assignment.course_id == from_course_id)
    deleted_submissions = db.execute(
        delete(Submission).where(Submission.student_id == student_id, Submission.assignment_id.in_(assignment_ids))
    ).rowcount
    db.execute(delete(Attendance).where(Attendance.student_id == student_id, Attendance.course_id == from_course_id))
    moved = [
        Attendance(student_id=student_id, course_id=to_course_id, date=row.date, status=row.status)
        for row in recent
        if row.date not in taken
    ]
    db.add_all(moved)
    commit_or_conflict(db, "Attendance already recorded for this date")
    logger.info(
        "Student %s moved from course %s to %s by user %s", student_id, from_course_id, to_course_id, actor.user_id
    )
    return {"moved_attendance": len(moved), "deleted_submissions": deleted_submissions or 0}
