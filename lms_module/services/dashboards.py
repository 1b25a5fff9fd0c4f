import datetime as dt
from dataclasses import asdict

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..aggregation import attendance_breakdown, completion_rate, course_progress
from ..middleware import Actor
from ..models import Assignment, Attendance, Course, Notification, Submission
from ..schemas import AssignmentOut, NotificationOut, dump
from . import utcnow
from .courses import enrolled_course_ids

UPCOMING_WINDOW = dt.timedelta(days=7)


def student_dashboard(db: Session, *, actor: Actor) -> dict:
    student_id = actor.student.id
    course_ids = enrolled_course_ids(db, student_id)
    courses = db.scalars(select(Course).where(Course.id.in_(course_ids)).order_by(Course.id)).all()
    assignments = db.scalars(select(Assignment).where(Assignment.course_id.in_(course_ids))).all()
    grades_by_assignment = dict(
        db.execute(
            select(Submission.assignment_id, Submission.grade).where(Submission.student_id == student_id)
        ).all()
    )
    statuses = db.scalars(select(Attendance.status).where(Attendance.student_id == student_id)).all()

    now = utcnow()
    upcoming = sorted(
        (a for a in assignments if now <= a.due_date <= now + UPCOMING_WINDOW and a.id not in grades_by_assignment),
        key=lambda a: a.due_date,
    )
    all_grades = [grades_by_assignment.get(a.id) for a in assignments]
    recent = db.scalars(
        select(Notification)
        .where(Notification.user_id == actor.user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(5)
    ).all()

    return {
        "courses": len(courses),
        "assignments": {
            "total": len(assignments),
            "submitted": len(grades_by_assignment),
            "completed": sum(1 for g in all_grades if g is not None),
            "completion_rate": completion_rate(all_grades),
        },
        "attendance": asdict(attendance_breakdown(statuses)),
        "upcoming_assignments": [dump(AssignmentOut, a) for a in upcoming],
        "course_progress": [
            {
                "course_id": course.id,
                "title": course.title,
                "code": course.code,
                "progress": course_progress(
                    [grades_by_assignment.get(a.id) for a in assignments if a.course_id == course.id]
                ),
            }
            for course in courses
        ],
        "recent_notifications": [dump(NotificationOut, n) for n in recent],
        "unread_notifications": db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == actor.user_id, Notification.is_read.is_(False)
            )
        )
        or 0,
    }


def teacher_dashboard(db: Session, *, actor: Actor) -> dict:
    teacher_id = actor.teacher.id
    course_ids = list(db.scalars(select(Course.id).where(Course.teacher_id == teacher_id)).all())
    statuses = db.scalars(select(Attendance.status).where(Attendance.course_id.in_(course_ids))).all()
    unique_students = db.scalar(
        select(func.count(func.distinct(Attendance.student_id))).where(Attendance.course_id.in_(course_ids))
    )
    assignments = db.scalars(
        select(Assignment).where(Assignment.course_id.in_(course_ids)).order_by(Assignment.due_date.asc())
    ).all()
    pending_grading = db.scalar(
        select(func.count(Submission.id))
        .join(Assignment, Submission.assignment_id == Assignment.id)
        .where(Assignment.course_id.in_(course_ids), Submission.grade.is_(None))
    )

    now = utcnow()
    upcoming = [a for a in assignments if now <= a.due_date <= now + UPCOMING_WINDOW][:5]
    return {
        "courses": len(course_ids),
        "students": unique_students or 0,
        "assignments": len(assignments),
        "attendance": asdict(attendance_breakdown(statuses)),
        "pending_grading": pending_grading or 0,
        "upcoming_assignments": [dump(AssignmentOut, a) for a in upcoming],
    }
