from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import Actor, require_student
from ..models import AttendanceStatus, LeaveStatus
from ..pagination import Page, page_params
from ..permissions import Action, ResourceKind, require_access
from ..responses import api_success
from ..schemas import (
    AssignmentOut,
    AttendanceOut,
    CourseOut,
    LeaveCreateRequest,
    LeaveRequestOut,
    SubmissionCreateRequest,
    SubmissionOut,
    SubmissionUpdateRequest,
    dump,
    dump_page,
)
from ..services import assignments, attendance, courses, dashboards, leaves, reports, submissions

router = APIRouter(prefix="/student", tags=["Student"])


@router.get("/courses")
def my_courses(
    page: Page = Depends(page_params), db: Session = Depends(get_db_session), actor: Actor = Depends(require_student)
):
    require_access(actor.role, Action.READ, ResourceKind.COURSE)
    return api_success(dump_page(CourseOut, courses.list_courses(db, page, actor=actor)))


@router.delete("/courses/{course_id}")
def leave_course(course_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_student)):
    require_access(actor.role, Action.DELETE, ResourceKind.ENROLLMENT)
    removed = courses.unenroll_self(db, actor=actor, course_id=course_id)
    return api_success({"course_id": course_id, **removed})


@router.get("/assignments")
def my_assignments(
    course_id: int | None = None,
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_student),
):
    require_access(actor.role, Action.READ, ResourceKind.ASSIGNMENT)
    page_data = assignments.list_assignments(db, page, actor=actor, course_id=course_id)
    return api_success(dump_page(AssignmentOut, page_data))


# --- submissions ---

@router.get("/submissions")
def my_submissions(
    assignment_id: int | None = None,
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_student),
):
    require_access(actor.role, Action.READ, ResourceKind.SUBMISSION)
    page_data = submissions.list_submissions(db, page, actor=actor, assignment_id=assignment_id)
    return api_success(dump_page(SubmissionOut, page_data))


@router.post("/submissions", status_code=status.HTTP_201_CREATED)
def submit(
    payload: SubmissionCreateRequest, db: Session = Depends(get_db_session), actor: Actor = Depends(require_student)
):
    require_access(actor.role, Action.CREATE, ResourceKind.SUBMISSION)
    submission = submissions.create_submission(
        db,
        actor=actor,
        assignment_id=payload.assignment_id,
        file_url=str(payload.file_url) if payload.file_url else None,
        content=payload.content,
    )
    return api_success(dump(SubmissionOut, submission), status.HTTP_201_CREATED)


@router.patch("/submissions/{submission_id}")
def update_submission(
    submission_id: int,
    payload: SubmissionUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_student),
):
    require_access(actor.role, Action.UPDATE, ResourceKind.SUBMISSION)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("file_url") is not None:
        changes["file_url"] = str(payload.file_url)
    submission = submissions.update_submission(db, actor=actor, submission_id=submission_id, changes=changes)
    return api_success(dump(SubmissionOut, submission))


@router.delete("/submissions/{submission_id}")
def delete_submission(
    submission_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_student)
):
    require_access(actor.role, Action.DELETE, ResourceKind.SUBMISSION)
    submissions.delete_submission(db, actor=actor, submission_id=submission_id)
    return api_success({"id": submission_id})


@router.get("/attendance")
def my_attendance(
    course_id: int | None = None,
    status_filter: AttendanceStatus | None = Query(default=None, alias="status"),
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_student),
):
    require_access(actor.role, Action.READ, ResourceKind.ATTENDANCE)
    page_data = attendance.list_attendance(db, page, actor=actor, course_id=course_id, status=status_filter)
    return api_success(dump_page(AttendanceOut, page_data))


# --- leave requests ---

@router.get("/leave-requests")
def my_leave_requests(
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_student),
):
    require_access(actor.role, Action.READ, ResourceKind.LEAVE_REQUEST)
    page_data = leaves.list_leave_requests(db, page, actor=actor, status=status_filter)
    return api_success(dump_page(LeaveRequestOut, page_data))


@router.post("/leave-requests", status_code=status.HTTP_201_CREATED)
def apply_leave(
    payload: LeaveCreateRequest, db: Session = Depends(get_db_session), actor: Actor = Depends(require_student)
):
    require_access(actor.role, Action.CREATE, ResourceKind.LEAVE_REQUEST)
    leave = leaves.create_leave_request(
        db,
        actor=actor,
        type=payload.type,
        from_date=payload.from_date,
        to_date=payload.to_date,
        reason=payload.reason,
    )
    return api_success(dump(LeaveRequestOut, leave), status.HTTP_201_CREATED)


@router.get("/leave-requests/{leave_id}")
def get_leave_request(leave_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_student)):
    require_access(actor.role, Action.READ, ResourceKind.LEAVE_REQUEST)
    return api_success(dump(LeaveRequestOut, leaves.get_leave_request(db, actor=actor, leave_id=leave_id)))


@router.delete("/leave-requests/{leave_id}")
def cancel_leave(leave_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_student)):
    require_access(actor.role, Action.DELETE, ResourceKind.LEAVE_REQUEST)
    leaves.delete_leave_request(db, actor=actor, leave_id=leave_id)
    return api_success({"id": leave_id})


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db_session), actor: Actor = Depends(require_student)):
    return api_success(dashboards.student_dashboard(db, actor=actor))


@router.get("/reports")
def my_reports(db: Session = Depends(get_db_session), actor: Actor = Depends(require_student)):
    require_access(actor.role, Action.READ, ResourceKind.REPORT)
    return api_success(reports.student_report(db, actor=actor, student_id=actor.student.id))
