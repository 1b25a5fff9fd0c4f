import logging

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from ..errors import Conflict, NotFound, Unauthenticated, ValidationError
from ..models import (
    Attendance,
    Course,
    LeaveRequest,
    Notification,
    Report,
    Student,
    Submission,
    Teacher,
    User,
    UserRole,
)
from ..pagination import Page, paginate
from ..security import create_access_token, hash_password, verify_password
from . import commit_or_conflict

logger = logging.getLogger(__name__)


def login_user(db: Session, *, email: str, password: str) -> tuple[str, User]:
    user = db.scalar(select(User).where(User.email == email))
    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", email)
        raise Unauthenticated("Invalid credentials")
    return create_access_token(user_id=user.id, role=user.role.value), user


def _next_enrollment_no(db: Session) -> str:
    count = db.scalar(select(Student.id).order_by(Student.id.desc()).limit(1)) or 0
    return f"ENR{count + 1:05d}"


def _attach_profile(
    db: Session,
    user: User,
    *,
    specialization: str | None = None,
    contact: str | None = None,
    enrollment_no: str | None = None,
    semester: int | None = None,
    section: str | None = None,
) -> None:
    if user.role == UserRole.TEACHER:
        db.add(Teacher(user_id=user.id, specialization=specialization, contact=contact, is_active=True))
    elif user.role == UserRole.STUDENT:
        db.add(
            Student(
                user_id=user.id,
                enrollment_no=enrollment_no or _next_enrollment_no(db),
                semester=semester or 1,
                section=section,
            )
        )


def create_user(
    db: Session,
    *,
    name: str,
    email: str,
    raw_password: str,
    role: UserRole,
    specialization: str | None = None,
    contact: str | None = None,
    enrollment_no: str | None = None,
    semester: int | None = None,
    section: str | None = None,
) -> User:
    if db.scalar(select(User.id).where(User.email == email)):
        raise Conflict("User with this email already exists")
    if enrollment_no and db.scalar(select(Student.id).where(Student.enrollment_no == enrollment_no)):
        raise Conflict("Enrollment number already in use")

    user = User(name=name.strip(), email=email, password_hash=hash_password(raw_password), role=role)
    db.add(user)
    db.flush()
    _attach_profile(
        db,
        user,
        specialization=specialization,
        contact=contact,
        enrollment_no=enrollment_no,
        semester=semester,
        section=section,
    )
    commit_or_conflict(db, "User with this email already exists")
    db.refresh(user)
    return user


def register_user(
    db: Session, *, name: str, email: str, raw_password: str, role: UserRole, enrollment_no: str | None
) -> User:
    if role == UserRole.ADMIN:
        raise ValidationError("Validation error", details=[{"loc": ["role"], "msg": "Self-registration as ADMIN is not allowed"}])
    return create_user(db, name=name, email=email, raw_password=raw_password, role=role, enrollment_no=enrollment_no)


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def list_users(db: Session, page: Page, *, role: UserRole | None = None):
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    if role is not None:
        stmt = stmt.where(User.role == role)
    return paginate(db, stmt, page)


def update_user(db: Session, *, user_id: int, changes: dict) -> User:
    user = get_user(db, user_id)
    if "email" in changes and changes["email"] is not None:
        clash = db.scalar(select(User.id).where(User.email == changes["email"], User.id != user_id))
        if clash:
            raise Conflict("Email already in use")
        user.email = changes["email"]
    if changes.get("name") is not None:
        user.name = changes["name"].strip()
    if changes.get("password") is not None:
        user.password_hash = hash_password(changes["password"])
    if changes.get("role") is not None and changes["role"] != user.role:
        if user.teacher is not None or user.student is not None:
            raise Conflict("Cannot change role of a user with an existing profile")
        user.role = changes["role"]
        db.flush()
        _attach_profile(db, user)
    commit_or_conflict(db, "Email already in use")
    db.refresh(user)
    return user


def delete_user(db: Session, *, user_id: int) -> None:
    user = get_user(db, user_id)
    if user.teacher is not None:
        _delete_teacher(db, user.teacher)
    if user.student is not None:
        _purge_student(db, user.student)
    db.execute(delete(Notification).where(Notification.user_id == user_id))
    db.execute(delete(LeaveRequest).where(LeaveRequest.requester_id == user_id))
    db.execute(update(LeaveRequest).where(LeaveRequest.approver_id == user_id).values(approver_id=None))
    db.delete(user)
    db.commit()


# --- teacher profiles ---

def list_teachers(db: Session, page: Page, *, is_active: bool | None = None):
    stmt = select(Teacher).order_by(Teacher.id.desc())
    if is_active is not None:
        stmt = stmt.where(Teacher.is_active.is_(is_active))
    return paginate(db, stmt, page)


def create_teacher(db: Session, *, user_id: int, specialization: str | None, contact: str | None) -> Teacher:
    user = get_user(db, user_id)
    if user.role != UserRole.TEACHER:
        raise ValidationError("Validation error", details=[{"loc": ["user_id"], "msg": "User is not a TEACHER"}])
    if user.teacher is not None:
        raise Conflict("Teacher for user already exists")
    teacher = Teacher(user_id=user_id, specialization=specialization, contact=contact, is_active=True)
    db.add(teacher)
    commit_or_conflict(db, "Teacher for user already exists")
    db.refresh(teacher)
    return teacher


def update_teacher(db: Session, *, teacher_id: int, changes: dict) -> Teacher:
    teacher = db.get(Teacher, teacher_id)
    if not teacher:
        raise NotFound("Teacher not found")
    for key in ("specialization", "contact", "is_active"):
        if changes.get(key) is not None:
            setattr(teacher, key, changes[key])
    db.commit()
    db.refresh(teacher)
    return teacher


def _delete_teacher(db: Session, teacher: Teacher) -> int:
    # Courses outlive their teacher; they are only unassigned.
    result = db.execute(update(Course).where(Course.teacher_id == teacher.id).values(teacher_id=None))
    db.delete(teacher)
    return result.rowcount or 0


def delete_teacher(db: Session, *, teacher_id: int) -> int:
    teacher = db.get(Teacher, teacher_id)
    if not teacher:
        raise NotFound("Teacher not found")
    unassigned = _delete_teacher(db, teacher)
    db.commit()
    logger.info("Deleted teacher %s, unassigned %d course(s)", teacher_id, unassigned)
    return unassigned


# --- student profiles ---

def list_students(db: Session, page: Page, *, semester: int | None = None, section: str | None = None):
    stmt = select(Student).order_by(Student.id.desc())
    if semester is not None:
        stmt = stmt.where(Student.semester == semester)
    if section:
        stmt = stmt.where(Student.section == section)
    return paginate(db, stmt, page)


def create_student(
    db: Session, *, user_id: int, enrollment_no: str, semester: int, section: str | None
) -> Student:
    user = get_user(db, user_id)
    if user.role != UserRole.STUDENT:
        raise ValidationError("Validation error", details=[{"loc": ["user_id"], "msg": "User is not a STUDENT"}])
    if user.student is not None:
        raise Conflict("Student for user already exists")
    student = Student(user_id=user_id, enrollment_no=enrollment_no, semester=semester, section=section)
    db.add(student)
    commit_or_conflict(db, "Student for user or enrollment number already exists")
    db.refresh(student)
    return student


def update_student(db: Session, *, student_id: int, changes: dict) -> Student:
    student = db.get(Student, student_id)
    if not student:
        raise NotFound("Student not found")
    for key in ("enrollment_no", "semester", "section"):
        if changes.get(key) is not None:
            setattr(student, key, changes[key])
    commit_or_conflict(db, "Enrollment number already in use")
    db.refresh(student)
    return student


def _purge_student(db: Session, student: Student) -> None:
    db.execute(delete(Attendance).where(Attendance.student_id == student.id))
    db.execute(delete(Submission).where(Submission.student_id == student.id))
    db.execute(delete(Report).where(Report.student_id == student.id))
    db.execute(update(LeaveRequest).where(LeaveRequest.student_id == student.id).values(student_id=None))
    db.delete(student)


def delete_student(db: Session, *, student_id: int) -> None:
    student = db.get(Student, student_id)
    if not student:
        raise NotFound("Student not found")
    _purge_student(db, student)
    db.commit()


def seed_default_admin(db: Session, *, email: str, password: str) -> None:
    if not email or not password:
        return
    if db.scalar(select(User.id).where(User.email == email.lower())):
        return
    db.add(User(name="Administrator", email=email.lower(), password_hash=hash_password(password), role=UserRole.ADMIN))
    db.commit()
    logger.info("Seeded default admin %s", email)
