from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import Actor, require_teacher
from ..models import AttendanceStatus, LeaveStatus
from ..pagination import Page, page_params
from ..permissions import Action, ResourceKind, require_access
from ..responses import api_success
from ..schemas import (
    AssignmentCreateRequest,
    AssignmentOut,
    AssignmentUpdateRequest,
    AttendanceOut,
    AttendanceUpdateRequest,
    AttendanceUpsertRequest,
    CourseCreateRequest,
    CourseOut,
    CourseUpdateRequest,
    GradeSubmissionRequest,
    LeaveCreateRequest,
    LeaveRequestOut,
    LeaveStatusUpdateRequest,
    MoveStudentRequest,
    StudentOut,
    SubmissionOut,
    dump,
    dump_page,
)
from ..services import assignments, attendance, courses, dashboards, leaves, reports, submissions

router = APIRouter(prefix="/teacher", tags=["Teacher"])


# --- courses ---

@router.get("/courses")
def list_courses(
    page: Page = Depends(page_params), db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)
):
    require_access(actor.role, Action.READ, ResourceKind.COURSE)
    return api_success(dump_page(CourseOut, courses.list_courses(db, page, actor=actor)))


@router.post("/courses", status_code=status.HTTP_201_CREATED)
def create_course(
    payload: CourseCreateRequest, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)
):
    require_access(actor.role, Action.CREATE, ResourceKind.COURSE)
    course = courses.create_course(
        db, actor=actor, title=payload.title, code=payload.code, description=payload.description, teacher_id=None
    )
    return api_success(dump(CourseOut, course), status.HTTP_201_CREATED)


@router.get("/courses/{course_id}")
def get_course(course_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)):
    require_access(actor.role, Action.READ, ResourceKind.COURSE)
    course = courses.get_course(db, actor=actor, course_id=course_id)
    data = dump(CourseOut, course)
    data["students"] = [dump(StudentOut, s) for s in courses.course_students(db, actor=actor, course_id=course_id)]
    return api_success(data)


@router.patch("/courses/{course_id}")
def update_course(
    course_id: int,
    payload: CourseUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_teacher),
):
    require_access(actor.role, Action.UPDATE, ResourceKind.COURSE)
    course = courses.update_course(
        db, actor=actor, course_id=course_id, changes=payload.model_dump(exclude_unset=True)
    )
    return api_success(dump(CourseOut, course))


@router.delete("/courses/{course_id}")
def delete_course(course_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)):
    require_access(actor.role, Action.DELETE, ResourceKind.COURSE)
    courses.delete_course(db, actor=actor, course_id=course_id)
    return api_success({"id": course_id})


# --- assignments ---

@router.get("/assignments")
def list_assignments(
    course_id: int | None = None,
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_teacher),
):
    require_access(actor.role, Action.READ, ResourceKind.ASSIGNMENT)
    page_data = assignments.list_assignments(db, page, actor=actor, course_id=course_id)
    return api_success(dump_page(AssignmentOut, page_data))


@router.post("/assignments", status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: AssignmentCreateRequest, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)
):
    require_access(actor.role, Action.CREATE, ResourceKind.ASSIGNMENT)
    assignment = assignments.create_assignment(
        db,
        actor=actor,
        course_id=payload.course_id,
        title=payload.title,
        description=payload.description,
        due_date=payload.due_date,
    )
    return api_success(dump(AssignmentOut, assignment), status.HTTP_201_CREATED)


@router.get("/assignments/{assignment_id}")
def get_assignment(
    assignment_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)
):
    require_access(actor.role, Action.READ, ResourceKind.ASSIGNMENT)
    return api_success(dump(AssignmentOut, assignments.get_assignment(db, actor=actor, assignment_id=assignment_id)))


@router.patch("/assignments/{assignment_id}")
def update_assignment(
    assignment_id: int,
    payload: AssignmentUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_teacher),
):
    require_access(actor.role, Action.UPDATE, ResourceKind.ASSIGNMENT)
    assignment = assignments.update_assignment(
        db, actor=actor, assignment_id=assignment_id, changes=payload.model_dump(exclude_unset=True)
    )
    return api_success(dump(AssignmentOut, assignment))


@router.delete("/assignments/{assignment_id}")
def delete_assignment(
    assignment_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)
):
    require_access(actor.role, Action.DELETE, ResourceKind.ASSIGNMENT)
    assignments.delete_assignment(db, actor=actor, assignment_id=assignment_id)
    return api_success({"id": assignment_id})


# --- attendance ---

@router.get("/attendance")
def list_attendance(
    course_id: int | None = None,
    student_id: int | None = None,
    status_filter: AttendanceStatus | None = Query(default=None, alias="status"),
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_teacher),
):
    require_access(actor.role, Action.READ, ResourceKind.ATTENDANCE)
    page_data = attendance.list_attendance(
        db, page, actor=actor, course_id=course_id, student_id=student_id, status=status_filter
    )
    return api_success(dump_page(AttendanceOut, page_data))


@router.post("/attendance")
def mark_attendance(
    payload: AttendanceUpsertRequest, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)
):
    require_access(actor.role, Action.CREATE, ResourceKind.ATTENDANCE)
    record, created = attendance.upsert_attendance(
        db,
        actor=actor,
        student_id=payload.student_id,
        course_id=payload.course_id,
        status=payload.status,
        date=payload.date,
    )
    return api_success(dump(AttendanceOut, record), status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@router.patch("/attendance/{attendance_id}")
def update_attendance(
    attendance_id: int,
    payload: AttendanceUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_teacher),
):
    require_access(actor.role, Action.UPDATE, ResourceKind.ATTENDANCE)
    record = attendance.update_attendance(
        db, actor=actor, attendance_id=attendance_id, changes=payload.model_dump(exclude_unset=True)
    )
    return api_success(dump(AttendanceOut, record))


@router.delete("/attendance/{attendance_id}")
def delete_attendance(
    attendance_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)
):
    require_access(actor.role, Action.DELETE, ResourceKind.ATTENDANCE)
    attendance.delete_attendance(db, actor=actor, attendance_id=attendance_id)
    return api_success({"id": attendance_id})


# --- submissions ---

@router.get("/submissions")
def list_submissions(
    assignment_id: int | None = None,
    course_id: int | None = None,
    graded: bool | None = None,
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_teacher),
):
    require_access(actor.role, Action.READ, ResourceKind.SUBMISSION)
    page_data = submissions.list_submissions(
        db, page, actor=actor, assignment_id=assignment_id, course_id=course_id, graded=graded
    )
    return api_success(dump_page(SubmissionOut, page_data))


@router.patch("/submissions/{submission_id}")
def grade_submission(
    submission_id: int,
    payload: GradeSubmissionRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_teacher),
):
    require_access(actor.role, Action.UPDATE, ResourceKind.SUBMISSION)
    submission = submissions.grade_submission(db, actor=actor, submission_id=submission_id, grade=payload.grade)
    return api_success(dump(SubmissionOut, submission))


# --- leave requests ---

@router.get("/leave-requests")
def list_leave_requests(
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_teacher),
):
    require_access(actor.role, Action.READ, ResourceKind.LEAVE_REQUEST)
    page_data = leaves.list_leave_requests(db, page, actor=actor, status=status_filter)
    return api_success(dump_page(LeaveRequestOut, page_data))


@router.post("/leave-requests", status_code=status.HTTP_201_CREATED)
def apply_leave(
    payload: LeaveCreateRequest, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)
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
def get_leave_request(leave_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)):
    require_access(actor.role, Action.READ, ResourceKind.LEAVE_REQUEST)
    return api_success(dump(LeaveRequestOut, leaves.get_leave_request(db, actor=actor, leave_id=leave_id)))


@router.delete("/leave-requests/{leave_id}")
def cancel_leave(leave_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)):
    require_access(actor.role, Action.DELETE, ResourceKind.LEAVE_REQUEST)
    leaves.delete_leave_request(db, actor=actor, leave_id=leave_id)
    return api_success({"id": leave_id})


@router.patch("/leave-requests/{leave_id}")
def review_leave_request(
    leave_id: int,
    payload: LeaveStatusUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_teacher),
):
    require_access(actor.role, Action.UPDATE, ResourceKind.LEAVE_REQUEST)
    leave = leaves.update_leave_status(
        db, actor=actor, leave_id=leave_id, status=payload.status, remarks=payload.remarks
    )
    return api_success(dump(LeaveRequestOut, leave))


# --- students ---

@router.get("/students")
def list_students(
    course_id: int | None = None, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)
):
    require_access(actor.role, Action.READ, ResourceKind.STUDENT)
    if course_id is not None:
        students = courses.course_students(db, actor=actor, course_id=course_id)
    else:
        students = courses.teacher_students(db, actor=actor)
    return api_success([dump(StudentOut, s) for s in students])


@router.delete("/students/{student_id}/courses/{course_id}")
def remove_student(
    student_id: int, course_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)
):
    require_access(actor.role, Action.DELETE, ResourceKind.ENROLLMENT)
    removed = courses.unenroll_by_teacher(db, actor=actor, course_id=course_id, student_id=student_id)
    return api_success({"student_id": student_id, "course_id": course_id, **removed})


@router.post("/students/{student_id}/move")
def move_student(
    student_id: int,
    payload: MoveStudentRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_teacher),
):
    require_access(actor.role, Action.UPDATE, ResourceKind.ENROLLMENT)
    moved = courses.move_student(
        db,
        actor=actor,
        student_id=student_id,
        from_course_id=payload.from_course_id,
        to_course_id=payload.to_course_id,
    )
    return api_success({"student_id": student_id, "course_id": payload.to_course_id, **moved})


# --- dashboard / reports ---

@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)):
    return api_success(dashboards.teacher_dashboard(db, actor=actor))


@router.get("/reports")
def teacher_reports(db: Session = Depends(get_db_session), actor: Actor = Depends(require_teacher)):
    require_access(actor.role, Action.READ, ResourceKind.REPORT)
    return api_success(reports.teacher_reports(db, actor=actor))
