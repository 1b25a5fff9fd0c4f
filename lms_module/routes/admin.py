from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import settings_store
from ..database import get_db_session
from ..middleware import Actor, require_admin
from ..models import AttendanceStatus, LeaveStatus, UserRole
from ..pagination import Page, page_params
from ..responses import api_success
from ..schemas import (
    AssignmentCreateRequest,
    AssignmentOut,
    AssignmentUpdateRequest,
    AttendanceOut,
    AttendanceUpsertRequest,
    CourseCreateRequest,
    CourseOut,
    CourseUpdateRequest,
    LeaveRequestOut,
    LeaveStatusUpdateRequest,
    SettingsUpdateRequest,
    StudentCreateRequest,
    StudentOut,
    StudentUpdateRequest,
    TeacherCreateRequest,
    TeacherOut,
    TeacherUpdateRequest,
    UserCreateRequest,
    UserOut,
    UserUpdateRequest,
    dump,
    dump_page,
)
from ..services import assignments, attendance, courses, leaves, reports, users

router = APIRouter(prefix="/admin", tags=["Admin"])


# --- users ---

@router.get("/users")
def list_users(
    role: UserRole | None = None,
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    _: Actor = Depends(require_admin),
):
    return api_success(dump_page(UserOut, users.list_users(db, page, role=role)))


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreateRequest, db: Session = Depends(get_db_session), _: Actor = Depends(require_admin)):
    user = users.create_user(
        db,
        name=payload.name,
        email=payload.email,
        raw_password=payload.password,
        role=payload.role,
        specialization=payload.specialization,
        contact=payload.contact,
        enrollment_no=payload.enrollment_no,
        semester=payload.semester,
        section=payload.section,
    )
    return api_success(dump(UserOut, user), status.HTTP_201_CREATED)


@router.get("/users/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db_session), _: Actor = Depends(require_admin)):
    return api_success(dump(UserOut, users.get_user(db, user_id)))


@router.patch("/users/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    db: Session = Depends(get_db_session),
    _: Actor = Depends(require_admin),
):
    user = users.update_user(db, user_id=user_id, changes=payload.model_dump(exclude_unset=True))
    return api_success(dump(UserOut, user))


@router.delete("/users/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db_session), _: Actor = Depends(require_admin)):
    users.delete_user(db, user_id=user_id)
    return api_success({"id": user_id})


# --- teachers ---

@router.get("/teachers")
def list_teachers(
    active: bool | None = None,
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    _: Actor = Depends(require_admin),
):
    return api_success(dump_page(TeacherOut, users.list_teachers(db, page, is_active=active)))


@router.post("/teachers", status_code=status.HTTP_201_CREATED)
def create_teacher(
    payload: TeacherCreateRequest, db: Session = Depends(get_db_session), _: Actor = Depends(require_admin)
):
    teacher = users.create_teacher(
        db, user_id=payload.user_id, specialization=payload.specialization, contact=payload.contact
    )
    return api_success(dump(TeacherOut, teacher), status.HTTP_201_CREATED)


@router.patch("/teachers/{teacher_id}")
def update_teacher(
    teacher_id: int,
    payload: TeacherUpdateRequest,
    db: Session = Depends(get_db_session),
    _: Actor = Depends(require_admin),
):
    teacher = users.update_teacher(db, teacher_id=teacher_id, changes=payload.model_dump(exclude_unset=True))
    return api_success(dump(TeacherOut, teacher))


@router.delete("/teachers/{teacher_id}")
def delete_teacher(teacher_id: int, db: Session = Depends(get_db_session), _: Actor = Depends(require_admin)):
    unassigned = users.delete_teacher(db, teacher_id=teacher_id)
    return api_success({"id": teacher_id, "unassigned_courses": unassigned})


# --- students ---

@router.get("/students")
def list_students(
    semester: int | None = None,
    section: str | None = None,
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    _: Actor = Depends(require_admin),
):
    return api_success(dump_page(StudentOut, users.list_students(db, page, semester=semester, section=section)))


@router.post("/students", status_code=status.HTTP_201_CREATED)
def create_student(
    payload: StudentCreateRequest, db: Session = Depends(get_db_session), _: Actor = Depends(require_admin)
):
    student = users.create_student(
        db,
        user_id=payload.user_id,
        enrollment_no=payload.enrollment_no,
        semester=payload.semester,
        section=payload.section,
    )
    return api_success(dump(StudentOut, student), status.HTTP_201_CREATED)


@router.patch("/students/{student_id}")
def update_student(
    student_id: int,
    payload: StudentUpdateRequest,
    db: Session = Depends(get_db_session),
    _: Actor = Depends(require_admin),
):
    student = users.update_student(db, student_id=student_id, changes=payload.model_dump(exclude_unset=True))
    return api_success(dump(StudentOut, student))


@router.delete("/students/{student_id}")
def delete_student(student_id: int, db: Session = Depends(get_db_session), _: Actor = Depends(require_admin)):
    users.delete_student(db, student_id=student_id)
    return api_success({"id": student_id})


# --- courses ---

@router.get("/courses")
def list_courses(
    teacher_id: int | None = None,
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
):
    return api_success(dump_page(CourseOut, courses.list_courses(db, page, actor=actor, teacher_id=teacher_id)))


@router.post("/courses", status_code=status.HTTP_201_CREATED)
def create_course(
    payload: CourseCreateRequest, db: Session = Depends(get_db_session), actor: Actor = Depends(require_admin)
):
    course = courses.create_course(
        db,
        actor=actor,
        title=payload.title,
        code=payload.code,
        description=payload.description,
        teacher_id=payload.teacher_id,
    )
    return api_success(dump(CourseOut, course), status.HTTP_201_CREATED)


@router.get("/courses/{course_id}")
def get_course(course_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_admin)):
    return api_success(dump(CourseOut, courses.get_course(db, actor=actor, course_id=course_id)))


@router.patch("/courses/{course_id}")
def update_course(
    course_id: int,
    payload: CourseUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
):
    course = courses.update_course(
        db, actor=actor, course_id=course_id, changes=payload.model_dump(exclude_unset=True)
    )
    return api_success(dump(CourseOut, course))


@router.delete("/courses/{course_id}")
def delete_course(course_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_admin)):
    courses.delete_course(db, actor=actor, course_id=course_id)
    return api_success({"id": course_id})


# --- assignments ---

@router.get("/assignments")
def list_assignments(
    course_id: int | None = None,
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
):
    page_data = assignments.list_assignments(db, page, actor=actor, course_id=course_id)
    return api_success(dump_page(AssignmentOut, page_data))


@router.post("/assignments", status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: AssignmentCreateRequest, db: Session = Depends(get_db_session), actor: Actor = Depends(require_admin)
):
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
def get_assignment(assignment_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_admin)):
    return api_success(dump(AssignmentOut, assignments.get_assignment(db, actor=actor, assignment_id=assignment_id)))


@router.patch("/assignments/{assignment_id}")
def update_assignment(
    assignment_id: int,
    payload: AssignmentUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
):
    assignment = assignments.update_assignment(
        db, actor=actor, assignment_id=assignment_id, changes=payload.model_dump(exclude_unset=True)
    )
    return api_success(dump(AssignmentOut, assignment))


@router.delete("/assignments/{assignment_id}")
def delete_assignment(
    assignment_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_admin)
):
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
    actor: Actor = Depends(require_admin),
):
    page_data = attendance.list_attendance(
        db, page, actor=actor, course_id=course_id, student_id=student_id, status=status_filter
    )
    return api_success(dump_page(AttendanceOut, page_data))


@router.post("/attendance")
def mark_attendance(
    payload: AttendanceUpsertRequest, db: Session = Depends(get_db_session), actor: Actor = Depends(require_admin)
):
    record, created = attendance.upsert_attendance(
        db,
        actor=actor,
        student_id=payload.student_id,
        course_id=payload.course_id,
        status=payload.status,
        date=payload.date,
    )
    return api_success(dump(AttendanceOut, record), status.HTTP_201_CREATED if created else status.HTTP_200_OK)


# --- leave requests ---

@router.get("/leave-requests")
def list_leave_requests(
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    requester_id: int | None = None,
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
):
    page_data = leaves.list_leave_requests(db, page, actor=actor, status=status_filter, requester_id=requester_id)
    return api_success(dump_page(LeaveRequestOut, page_data))


@router.get("/leave-requests/{leave_id}")
def get_leave_request(leave_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(require_admin)):
    return api_success(dump(LeaveRequestOut, leaves.get_leave_request(db, actor=actor, leave_id=leave_id)))


@router.patch("/leave-requests/{leave_id}")
def review_leave_request(
    leave_id: int,
    payload: LeaveStatusUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
):
    leave = leaves.update_leave_status(
        db, actor=actor, leave_id=leave_id, status=payload.status, remarks=payload.remarks
    )
    return api_success(dump(LeaveRequestOut, leave))


# --- settings ---

@router.get("/settings")
def get_settings(_: Actor = Depends(require_admin)):
    return api_success(settings_store.snapshot())


@router.put("/settings")
def put_settings(payload: SettingsUpdateRequest, _: Actor = Depends(require_admin)):
    return api_success(settings_store.update(payload.model_dump(exclude_none=True)))


# --- reports ---

@router.get("/reports/overview")
def overview_report(db: Session = Depends(get_db_session), _: Actor = Depends(require_admin)):
    return api_success(reports.admin_overview(db))


@router.get("/reports/attendance")
def attendance_report(
    course_id: int | None = None,
    student_id: int | None = None,
    db: Session = Depends(get_db_session),
    _: Actor = Depends(require_admin),
):
    return api_success(reports.attendance_report(db, course_id=course_id, student_id=student_id))


@router.get("/reports/grades")
def grades_report(
    course_id: int | None = None, db: Session = Depends(get_db_session), _: Actor = Depends(require_admin)
):
    return api_success(reports.grades_report(db, course_id=course_id))
