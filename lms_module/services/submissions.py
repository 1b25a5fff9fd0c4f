import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import Conflict, Forbidden, NotFound, ValidationError
from ..middleware import Actor
from ..models import Assignment, Course, Submission
from ..notifications import notify
from ..ownership import ensure_owner, is_enrolled
from ..pagination import Page, paginate
from ..permissions import ResourceKind
from . import commit_or_conflict, utcnow

logger = logging.getLogger(__name__)


def _ensure_open(assignment: Assignment) -> None:
    if assignment.due_date < utcnow():
        raise ValidationError("Submission deadline has passed")


def _ensure_payload(file_url: str | None, content: str | None) -> None:
    if not file_url and not content:
        raise ValidationError(
            "Validation error",
            details=[{"loc": ["file_url"], "msg": "Either file_url or content is required"}],
        )


def list_submissions(
    db: Session,
    page: Page,
    *,
    actor: Actor,
    assignment_id: int | None = None,
    course_id: int | None = None,
    graded: bool | None = None,
):
    stmt = (
        select(Submission)
        .join(Assignment, Submission.assignment_id == Assignment.id)
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
    )
    if actor.teacher is not None and not actor.is_admin:
        stmt = stmt.join(Course, Assignment.course_id == Course.id).where(Course.teacher_id == actor.teacher.id)
    elif actor.student is not None and not actor.is_admin:
        stmt = stmt.where(Submission.student_id == actor.student.id)
    if assignment_id is not None:
        stmt = stmt.where(Submission.assignment_id == assignment_id)
    if course_id is not None:
        stmt = stmt.where(Assignment.course_id == course_id)
    if graded is not None:
        stmt = stmt.where(Submission.grade.is_not(None) if graded else Submission.grade.is_(None))
    return paginate(db, stmt, page)


def create_submission(
    db: Session, *, actor: Actor, assignment_id: int, file_url: str | None, content: str | None
) -> Submission:
    student_id = actor.student.id
    assignment = db.get(Assignment, assignment_id)
    if not assignment:
        raise NotFound("Assignment not found")
    if not is_enrolled(db, student_id, assignment.course_id):
        raise Forbidden("Forbidden: Not enrolled in course")
    _ensure_open(assignment)
    _ensure_payload(file_url, content)

    existing = db.scalar(
        select(Submission.id).where(Submission.assignment_id == assignment_id, Submission.student_id == student_id)
    )
    if existing:
        raise Conflict("Submission already exists for this assignment")

    submission = Submission(
        assignment_id=assignment_id,
        student_id=student_id,
        file_url=file_url or "",
        content=content,
    )
    db.add(submission)
    commit_or_conflict(db, "Submission already exists for this assignment")
    db.refresh(submission)
    return submission


def update_submission(db: Session, *, actor: Actor, submission_id: int, changes: dict) -> Submission:
    ensure_owner(db, actor, ResourceKind.SUBMISSION, submission_id)
    submission = db.get(Submission, submission_id)
    if submission.grade is not None:
        raise Conflict("Graded submissions cannot be changed")
    _ensure_open(submission.assignment)

    file_url = changes["file_url"] if "file_url" in changes else submission.file_url
    content = changes["content"] if "content" in changes else submission.content
    _ensure_payload(file_url, content)
    submission.file_url = file_url or ""
    submission.content = content
    submission.submitted_at = utcnow()
    db.commit()
    db.refresh(submission)
    return submission


def delete_submission(db: Session, *, actor: Actor, submission_id: int) -> None:
    ensure_owner(db, actor, ResourceKind.SUBMISSION, submission_id)
    submission = db.get(Submission, submission_id)
    if submission.grade is not None and not actor.is_admin:
        raise Conflict("Graded submissions cannot be deleted")
    db.delete(submission)
    db.commit()


def grade_submission(db: Session, *, actor: Actor, submission_id: int, grade: float | None) -> Submission:
    ensure_owner(db, actor, ResourceKind.SUBMISSION, submission_id)
    submission = db.get(Submission, submission_id)
    previous = submission.grade
    submission.grade = grade
    db.commit()
    db.refresh(submission)

    if grade is not None and grade != previous:
        assignment = submission.assignment
        notify(
            db,
            [submission.student.user_id],
            title="Assignment Graded",
            body=f'Your submission for "{assignment.title}" has been graded: {grade:g}/100',
            category="assignment",
            data={
                "assignment_id": assignment.id,
                "assignment_title": assignment.title,
                "grade": grade,
                "course_id": assignment.course_id,
            },
        )
    return submission
