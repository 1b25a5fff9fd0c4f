import logging
from collections import defaultdict
from dataclasses import asdict

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..aggregation import (
    attendance_breakdown,
    completion_rate,
    computed_gpa,
    gpa_average,
    grade_distribution,
    latest_per_semester,
    mean,
    round_percent,
)
from ..errors import Forbidden, NotFound
from ..middleware import Actor
from ..models import (
    Assignment,
    Attendance,
    Course,
    LeaveRequest,
    Report,
    Student,
    Submission,
    User,
    UserRole,
)
from ..ownership import teacher_has_student
from ..schemas import ReportOut, dump
from . import utcnow

logger = logging.getLogger(__name__)


def _ensure_can_view_student(db: Session, actor: Actor, student_id: int) -> Student:
    student = db.get(Student, student_id)
    if not student:
        raise NotFound("Student not found")
    if actor.is_admin:
        return student
    if actor.student is not None and actor.student.id == student_id:
        return student
    if actor.teacher is not None and teacher_has_student(db, actor.teacher.id, student_id):
        return student
    raise Forbidden("Forbidden: Not your student")


def _student_grades(db: Session, student_id: int, course_ids=None) -> list[float | None]:
    stmt = select(Submission.grade).where(Submission.student_id == student_id)
    if course_ids is not None:
        stmt = stmt.join(Assignment, Submission.assignment_id == Assignment.id).where(
            Assignment.course_id.in_(course_ids)
        )
    return list(db.scalars(stmt).all())


def _student_statuses(db: Session, student_id: int, course_ids=None) -> list:
    stmt = select(Attendance.status).where(Attendance.student_id == student_id)
    if course_ids is not None:
        stmt = stmt.where(Attendance.course_id.in_(course_ids))
    return list(db.scalars(stmt).all())


def _student_reports(db: Session, student_id: int) -> list[Report]:
    return list(
        db.scalars(
            select(Report).where(Report.student_id == student_id).order_by(Report.semester.desc(), Report.id.desc())
        ).all()
    )


def _student_summary(db: Session, student: Student) -> dict:
    grades = _student_grades(db, student.id)
    reports = _student_reports(db, student.id)
    latest = latest_per_semester(reports)
    return {
        "student": {
            "id": student.id,
            "name": student.user.name,
            "email": student.user.email,
            "enrollment_no": student.enrollment_no,
            "semester": student.semester,
            "section": student.section,
        },
        "reports": [dump(ReportOut, report) for report in reports],
        "gpa_average": gpa_average(reports),
        "latest_gpa": latest[-1].gpa if latest else None,
        "attendance": asdict(attendance_breakdown(_student_statuses(db, student.id))),
        "grades": asdict(grade_distribution([g for g in grades if g is not None])),
        "completion_rate": completion_rate(grades),
    }


def student_report(db: Session, *, actor: Actor, student_id: int) -> dict:
    student = _ensure_can_view_student(db, actor, student_id)
    return _student_summary(db, student)


def generate_report(
    db: Session, *, actor: Actor, student_id: int, semester: int, credits: int = 0, remarks: str | None = None
) -> tuple[Report, bool]:
    """Compute and store the (student, semester) snapshot.

    An existing snapshot for the same semester is overwritten in place.
    """
    if actor.student is not None and not actor.is_admin:
        raise Forbidden("Forbidden: Only teachers and admins can generate reports")
    _ensure_can_view_student(db, actor, student_id)

    gpa = computed_gpa(_student_grades(db, student_id), _student_statuses(db, student_id))
    report = db.scalar(select(Report).where(Report.student_id == student_id, Report.semester == semester))
    created = report is None
    if created:
        report = Report(student_id=student_id, semester=semester, gpa=gpa, credits=credits, remarks=remarks)
        db.add(report)
    else:
        report.gpa = gpa
        report.credits = credits
        report.remarks = remarks
        report.created_at = utcnow()
    db.commit()
    db.refresh(report)
    logger.info("Report for student %s semester %s: gpa=%.2f", student_id, semester, gpa)
    return report, created


def _count_by(db: Session, column) -> dict[str, int]:
    rows = db.execute(select(column, func.count()).group_by(column)).all()
    return {getattr(key, "value", key): count for key, count in rows}


def admin_overview(db: Session) -> dict:
    reports_by_student: dict[int, list[Report]] = defaultdict(list)
    for report in db.scalars(select(Report)).all():
        reports_by_student[report.student_id].append(report)
    student_gpas = [gpa_average(reports) for reports in reports_by_student.values()]

    recent_submissions = db.scalars(select(Submission).order_by(Submission.submitted_at.desc()).limit(5)).all()
    recent_leaves = db.scalars(select(LeaveRequest).order_by(LeaveRequest.created_at.desc()).limit(5)).all()
    activity = [
        {"kind": "submission", "id": s.id, "student_id": s.student_id, "at": s.submitted_at}
        for s in recent_submissions
    ] + [
        {"kind": "leave_request", "id": leave.id, "requester_id": leave.requester_id, "at": leave.created_at}
        for leave in recent_leaves
    ]
    activity.sort(key=lambda item: item["at"], reverse=True)

    users_by_role = dict.fromkeys((role.value for role in UserRole), 0)
    users_by_role.update(_count_by(db, User.role))
    return {
        "users_by_role": users_by_role,
        "totals": {
            "users": sum(users_by_role.values()),
            "courses": db.scalar(select(func.count(Course.id))) or 0,
            "assignments": db.scalar(select(func.count(Assignment.id))) or 0,
            "submissions": db.scalar(select(func.count(Submission.id))) or 0,
        },
        "attendance_by_status": _count_by(db, Attendance.status),
        "leaves_by_status": _count_by(db, LeaveRequest.status),
        "average_gpa": round_percent(mean(student_gpas)),
        "recent_activity": activity[:10],
    }


def attendance_report(db: Session, *, course_id: int | None = None, student_id: int | None = None) -> dict:
    stmt = select(Attendance)
    if course_id is not None:
        stmt = stmt.where(Attendance.course_id == course_id)
    if student_id is not None:
        stmt = stmt.where(Attendance.student_id == student_id)
    records = db.scalars(stmt).all()

    by_course: dict[int, list] = defaultdict(list)
    by_student: dict[int, list] = defaultdict(list)
    for record in records:
        by_course[record.course_id].append(record.status)
        by_student[record.student_id].append(record.status)

    courses = {c.id: c for c in db.scalars(select(Course).where(Course.id.in_(list(by_course)))).all()}
    students = {s.id: s for s in db.scalars(select(Student).where(Student.id.in_(list(by_student)))).all()}
    return {
        "overall": asdict(attendance_breakdown([r.status for r in records])),
        "courses": [
            {"course_id": cid, "title": courses[cid].title, "code": courses[cid].code, **asdict(attendance_breakdown(statuses))}
            for cid, statuses in sorted(by_course.items())
        ],
        "students": [
            {
                "student_id": sid,
                "name": students[sid].user.name,
                "enrollment_no": students[sid].enrollment_no,
                **asdict(attendance_breakdown(statuses)),
            }
            for sid, statuses in sorted(by_student.items())
        ],
    }


def grades_report(db: Session, *, course_id: int | None = None) -> dict:
    stmt = select(Submission.grade, Assignment.course_id).join(Assignment, Submission.assignment_id == Assignment.id)
    if course_id is not None:
        stmt = stmt.where(Assignment.course_id == course_id)
    rows = db.execute(stmt).all()

    by_course: dict[int, list] = defaultdict(list)
    for grade, cid in rows:
        by_course[cid].append(grade)

    def summarize(grades: list) -> dict:
        return {
            **asdict(grade_distribution([g for g in grades if g is not None])),
            "completion_rate": completion_rate(grades),
        }

    return {
        "overall": summarize([grade for grade, _ in rows]),
        "courses": [{"course_id": cid, **summarize(grades)} for cid, grades in sorted(by_course.items())],
    }


def teacher_reports(db: Session, *, actor: Actor) -> dict:
    courses = db.scalars(select(Course).where(Course.teacher_id == actor.teacher.id).order_by(Course.id)).all()
    course_ids = [c.id for c in courses]
    student_ids = db.scalars(
        select(Attendance.student_id).where(Attendance.course_id.in_(course_ids)).distinct()
    ).all()
    students = db.scalars(select(Student).where(Student.id.in_(student_ids)).order_by(Student.id)).all()

    performance = []
    for student in students:
        statuses = _student_statuses(db, student.id, course_ids)
        graded = [g for g in _student_grades(db, student.id, course_ids) if g is not None]
        latest = latest_per_semester(_student_reports(db, student.id))
        enrolled = db.scalar(
            select(func.count(func.distinct(Attendance.course_id))).where(
                Attendance.student_id == student.id, Attendance.course_id.in_(course_ids)
            )
        )
        performance.append(
            {
                "id": student.id,
                "name": student.user.name,
                "email": student.user.email,
                "enrollment_no": student.enrollment_no,
                "semester": student.semester,
                "latest_gpa": latest[-1].gpa if latest else None,
                "attendance_rate": attendance_breakdown(statuses).rate,
                "average_grade": round_percent(mean(graded)) if graded else None,
                "courses_enrolled": enrolled or 0,
            }
        )
    return {
        "courses": [{"id": c.id, "title": c.title, "code": c.code} for c in courses],
        "students": performance,
        "summary": {"total_students": len(performance), "total_courses": len(courses)},
    }
