from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import Forbidden, NotFound
from ..middleware import Actor
from ..models import Assignment, Course
from ..ownership import ensure_owner, ensure_teacher_owns_course, is_enrolled
from ..pagination import Page, paginate
from ..permissions import ResourceKind
from . import as_naive_utc
from .courses import enrolled_course_ids


def list_assignments(db: Session, page: Page, *, actor: Actor, course_id: int | None = None):
    stmt = select(Assignment).order_by(Assignment.due_date.asc(), Assignment.id.asc())
    if actor.teacher is not None and not actor.is_admin:
        stmt = stmt.join(Course, Assignment.course_id == Course.id).where(Course.teacher_id == actor.teacher.id)
    elif actor.student is not None and not actor.is_admin:
        stmt = stmt.where(Assignment.course_id.in_(enrolled_course_ids(db, actor.student.id)))
    if course_id is not None:
        stmt = stmt.where(Assignment.course_id == course_id)
    return paginate(db, stmt, page)


def get_assignment(db: Session, *, actor: Actor, assignment_id: int) -> Assignment:
    if actor.student is not None and not actor.is_admin:
        assignment = db.get(Assignment, assignment_id)
        if not assignment:
            raise NotFound("Assignment not found")
        if not is_enrolled(db, actor.student.id, assignment.course_id):
            raise Forbidden("Forbidden: Not enrolled in course")
        return assignment
    ensure_owner(db, actor, ResourceKind.ASSIGNMENT, assignment_id)
    return db.get(Assignment, assignment_id)


def create_assignment(db: Session, *, actor: Actor, course_id: int, title: str, description, due_date) -> Assignment:
    ensure_teacher_owns_course(db, actor, course_id)
    assignment = Assignment(
        course_id=course_id,
        title=title.strip(),
        description=description,
        due_date=as_naive_utc(due_date),
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


def update_assignment(db: Session, *, actor: Actor, assignment_id: int, changes: dict) -> Assignment:
    ensure_owner(db, actor, ResourceKind.ASSIGNMENT, assignment_id)
    assignment = db.get(Assignment, assignment_id)
    if changes.get("title") is not None:
        assignment.title = changes["title"].strip()
    if "description" in changes:
        assignment.description = changes["description"]
    if changes.get("due_date") is not None:
        assignment.due_date = as_naive_utc(changes["due_date"])
    db.commit()
    db.refresh(assignment)
    return assignment


def delete_assignment(db: Session, *, actor: Actor, assignment_id: int) -> None:
    ensure_owner(db, actor, ResourceKind.ASSIGNMENT, assignment_id)
    db.delete(db.get(Assignment, assignment_id))
    db.commit()
