import datetime as dt
from dataclasses import dataclass
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lms_module import settings_store
from lms_module.app import create_app
from lms_module.database import Base, get_db_session
from lms_module.middleware import Actor
from lms_module.models import Assignment, Attendance, AttendanceStatus, Course, Submission, UserRole
from lms_module.security import create_access_token
from lms_module.services import utcnow
from lms_module.services.users import create_user


@dataclass
class Account:
    user: Any
    profile: Any
    headers: dict[str, str]

    @property
    def actor(self) -> Actor:
        role = self.user.role
        return Actor(
            user=self.user,
            teacher=self.profile if role == UserRole.TEACHER else None,
            student=self.profile if role == UserRole.STUDENT else None,
        )


@pytest.fixture()
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def client(session_factory):
    app = create_app(init_db=False)

    def override_get_db_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db_session] = override_get_db_session
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def _reset_settings_store():
    settings_store.reset()
    yield
    settings_store.reset()


@pytest.fixture()
def make_account(db):
    counter = {"n": 0}

    def _make(role: UserRole, name: str | None = None) -> Account:
        counter["n"] += 1
        n = counter["n"]
        user = create_user(
            db,
            name=name or f"{role.value.title()} {n}",
            email=f"{role.value.lower()}{n}@school.test",
            raw_password="secret123",
            role=role,
        )
        profile = user.teacher if role == UserRole.TEACHER else user.student
        token = create_access_token(user_id=user.id, role=role.value)
        return Account(user=user, profile=profile, headers={"Authorization": f"Bearer {token}"})

    return _make


@pytest.fixture()
def admin(make_account):
    return make_account(UserRole.ADMIN, "Ada Admin")


@pytest.fixture()
def teacher(make_account):
    return make_account(UserRole.TEACHER, "Tom Teacher")


@pytest.fixture()
def other_teacher(make_account):
    return make_account(UserRole.TEACHER, "Olga Other")


@pytest.fixture()
def student(make_account):
    return make_account(UserRole.STUDENT, "Sam Student")


@pytest.fixture()
def other_student(make_account):
    return make_account(UserRole.STUDENT, "Sue Student")


@pytest.fixture()
def make_course(db):
    counter = {"n": 0}

    def _make(teacher: Account | None, code: str | None = None) -> Course:
        counter["n"] += 1
        course = Course(
            title=f"Course {counter['n']}",
            code=code or f"CS{100 + counter['n']}",
            teacher_id=teacher.profile.id if teacher is not None else None,
        )
        db.add(course)
        db.commit()
        db.refresh(course)
        return course

    return _make


@pytest.fixture()
def make_assignment(db):
    def _make(course: Course, due_in: dt.timedelta = dt.timedelta(days=3), title: str = "Essay") -> Assignment:
        assignment = Assignment(course_id=course.id, title=title, due_date=utcnow() + due_in)
        db.add(assignment)
        db.commit()
        db.refresh(assignment)
        return assignment

    return _make


@pytest.fixture()
def enroll(db):
    def _enroll(student: Account, course: Course, day: dt.date | None = None, status=AttendanceStatus.PRESENT):
        record = Attendance(
            student_id=student.profile.id, course_id=course.id, date=day or dt.date(2024, 1, 8), status=status
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _enroll


@pytest.fixture()
def make_submission(db):
    def _make(student: Account, assignment: Assignment, grade: float | None = None) -> Submission:
        submission = Submission(
            assignment_id=assignment.id,
            student_id=student.profile.id,
            content="My answer",
            grade=grade,
        )
        db.add(submission)
        db.commit()
        db.refresh(submission)
        return submission

    return _make
