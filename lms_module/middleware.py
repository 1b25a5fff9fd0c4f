import logging
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.orm import Session

from .database import get_db_session
from .errors import Forbidden, NotFound, Unauthenticated
from .models import Student, Teacher, User, UserRole
from .security import AuthError, decode_access_token

logger = logging.getLogger(__name__)


@dataclass
class Actor:
    user: User
    teacher: Teacher | None = None
    student: Student | None = None

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def role(self) -> UserRole:
        return self.user.role

    @property
    def is_admin(self) -> bool:
        return self.user.role == UserRole.ADMIN


def _parse_token(auth_header: str | None) -> str:
    if not auth_header:
        raise Unauthenticated("Missing Authorization header")
    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthenticated("Invalid auth scheme")
    return parts[1].strip()


def resolve_identity(db: Session, token: str) -> Actor:
    try:
        payload = decode_access_token(token)
    except AuthError as exc:
        logger.warning("Rejected token: %s", exc)
        raise Unauthenticated(str(exc)) from exc

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise Unauthenticated("Invalid token payload") from exc

    user = db.get(User, user_id)
    if not user:
        raise Unauthenticated("Invalid user")
    teacher = db.scalar(select(Teacher).where(Teacher.user_id == user.id))
    student = db.scalar(select(Student).where(Student.user_id == user.id))
    return Actor(user=user, teacher=teacher, student=student)


def get_current_actor(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> Actor:
    return resolve_identity(db, _parse_token(authorization))


def require_roles(*allowed_roles: UserRole) -> Callable:
    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            logger.warning("User %s with role %s hit a %s-only route", actor.user_id, actor.role.value,
                           "/".join(r.value for r in allowed_roles))
            raise Forbidden("Insufficient role privileges")
        return actor

    return dependency


def require_teacher(actor: Actor = Depends(require_roles(UserRole.TEACHER))) -> Actor:
    if actor.teacher is None:
        raise NotFound("Teacher profile not found")
    return actor


def require_student(actor: Actor = Depends(require_roles(UserRole.STUDENT))) -> Actor:
    if actor.student is None:
        raise NotFound("Student profile not found")
    return actor


require_admin = require_roles(UserRole.ADMIN)
