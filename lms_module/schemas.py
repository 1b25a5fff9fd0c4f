import re
import datetime as dt
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, HttpUrl, model_validator

from .models import AttendanceStatus, LeaveStatus, UserRole


EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


def _email(value: str) -> str:
    normalized = value.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError("Invalid email format")
    return normalized


Email = Annotated[str, Field(min_length=5, max_length=255), AfterValidator(_email)]


class OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- auth / users ---

class RegisterRequest(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    email: Email
    password: str = Field(min_length=6)
    role: UserRole = UserRole.STUDENT
    enrollment_no: str | None = Field(default=None, min_length=1, max_length=64)


class LoginRequest(BaseModel):
    email: Email
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: UserRole
    user_id: int


class UserOut(OrmModel):
    id: int
    name: str
    email: str
    role: UserRole
    created_at: dt.datetime


class UserCreateRequest(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    email: Email
    password: str = Field(min_length=6)
    role: UserRole
    specialization: str | None = None
    contact: str | None = None
    enrollment_no: str | None = Field(default=None, min_length=1, max_length=64)
    semester: int | None = Field(default=None, ge=1, le=12)
    section: str | None = Field(default=None, max_length=32)


class UserUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=255)
    email: Email | None = None
    password: str | None = Field(default=None, min_length=6)
    role: UserRole | None = None


# --- profiles ---

class TeacherCreateRequest(BaseModel):
    user_id: int
    specialization: str | None = Field(default=None, max_length=255)
    contact: str | None = Field(default=None, max_length=255)


class TeacherUpdateRequest(BaseModel):
    specialization: str | None = Field(default=None, max_length=255)
    contact: str | None = Field(default=None, max_length=255)
    is_active: bool | None = None


class TeacherOut(OrmModel):
    id: int
    user_id: int
    specialization: str | None
    contact: str | None
    is_active: bool
    user: UserOut


class StudentCreateRequest(BaseModel):
    user_id: int
    enrollment_no: str = Field(min_length=1, max_length=64)
    semester: int = Field(default=1, ge=1, le=12)
    section: str | None = Field(default=None, max_length=32)


class StudentUpdateRequest(BaseModel):
    enrollment_no: str | None = Field(default=None, min_length=1, max_length=64)
    semester: int | None = Field(default=None, ge=1, le=12)
    section: str | None = Field(default=None, max_length=32)


class StudentOut(OrmModel):
    id: int
    user_id: int
    enrollment_no: str
    semester: int
    section: str | None
    user: UserOut


# --- courses / assignments ---

class CourseCreateRequest(BaseModel):
    title: str = Field(min_length=2, max_length=255)
    code: str = Field(min_length=2, max_length=64)
    description: str | None = None
    teacher_id: int | None = None


class CourseUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=2, max_length=255)
    code: str | None = Field(default=None, min_length=2, max_length=64)
    description: str | None = None
    teacher_id: int | None = None


class MoveStudentRequest(BaseModel):
    from_course_id: int
    to_course_id: int


class CourseOut(OrmModel):
    id: int
    title: str
    code: str
    description: str | None
    teacher_id: int | None
    created_at: dt.datetime


class AssignmentCreateRequest(BaseModel):
    title: str = Field(min_length=2, max_length=255)
    description: str | None = None
    due_date: dt.datetime
    course_id: int


class AssignmentUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=2, max_length=255)
    description: str | None = None
    due_date: dt.datetime | None = None


class AssignmentOut(OrmModel):
    id: int
    title: str
    description: str | None
    due_date: dt.datetime
    course_id: int
    created_at: dt.datetime


# --- submissions ---

class SubmissionCreateRequest(BaseModel):
    assignment_id: int
    file_url: HttpUrl | None = None
    content: str | None = Field(default=None, min_length=1)


class SubmissionUpdateRequest(BaseModel):
    file_url: HttpUrl | None = None
    content: str | None = Field(default=None, min_length=1)


class GradeSubmissionRequest(BaseModel):
    grade: float | None = Field(default=None, ge=0, le=100)


class SubmissionOut(OrmModel):
    id: int
    assignment_id: int
    student_id: int
    file_url: str
    content: str | None
    grade: float | None
    submitted_at: dt.datetime


# --- attendance ---

class AttendanceUpsertRequest(BaseModel):
    student_id: int
    course_id: int
    date: dt.date | None = None
    status: AttendanceStatus


class AttendanceUpdateRequest(BaseModel):
    status: AttendanceStatus | None = None
    date: dt.date | None = None


class AttendanceOut(OrmModel):
    id: int
    student_id: int
    course_id: int
    date: dt.date
    status: AttendanceStatus


# --- leave requests ---

class LeaveCreateRequest(BaseModel):
    type: str = Field(min_length=2, max_length=64)
    from_date: dt.date
    to_date: dt.date
    reason: str = Field(min_length=10)

    @model_validator(mode="after")
    def _check_range(self) -> "LeaveCreateRequest":
        if self.to_date < self.from_date:
            raise ValueError("From date must be before or equal to to date")
        return self


class LeaveStatusUpdateRequest(BaseModel):
    status: LeaveStatus
    remarks: str | None = None


class LeaveRequestOut(OrmModel):
    id: int
    requester_id: int
    student_id: int | None
    type: str
    from_date: dt.date
    to_date: dt.date
    reason: str
    status: LeaveStatus
    approver_id: int | None
    remarks: str | None
    created_at: dt.datetime


# --- notifications ---

class NotificationCreateRequest(BaseModel):
    user_id: int | None = None
    user_ids: list[int] | None = None
    title: str = Field(min_length=1, max_length=255)
    body: str = Field(min_length=1)
    link: str | None = None
    category: str | None = Field(default=None, max_length=64)
    data: dict[str, Any] | None = None


class NotificationUpdateRequest(BaseModel):
    is_read: bool


class NotificationOut(OrmModel):
    id: int
    user_id: int
    title: str
    body: str
    link: str | None
    category: str | None
    is_read: bool
    created_at: dt.datetime
    data: dict[str, Any] | None


# --- reports / settings ---

class ReportCreateRequest(BaseModel):
    student_id: int
    semester: int = Field(ge=1, le=10)
    credits: int = Field(default=0, ge=0)
    remarks: str | None = None


class ReportOut(OrmModel):
    id: int
    student_id: int
    semester: int
    gpa: float
    credits: int
    remarks: str | None
    created_at: dt.datetime


class SettingsUpdateRequest(BaseModel):
    theme: Literal["light", "dark"] | None = None
    notifications: bool | None = None


def dump(model: type[OrmModel], obj: Any) -> dict[str, Any]:
    return model.model_validate(obj).model_dump(mode="json")


def dump_page(model: type[OrmModel], page: dict[str, Any]) -> dict[str, Any]:
    return {**page, "items": [dump(model, item) for item in page["items"]]}
