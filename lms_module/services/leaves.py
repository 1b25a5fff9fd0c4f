"""Leave request workflow.

A requester may hold at most ``settings.max_pending_leaves`` PENDING
requests, and none of their PENDING or APPROVED requests may overlap a new
date range. Both gates are evaluated before the insert and again after the
flush, inside the same transaction, so two racing requests cannot both slip
through. A review that moves a request back to PENDING or APPROVED is
checked against the same limits.
"""
import datetime as dt
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import Conflict, Forbidden, NotFound
from ..mailer import mail_users
from ..middleware import Actor
from ..models import Attendance, Course, LeaveRequest, LeaveStatus, Student, User, UserRole
from ..notifications import admin_user_ids, notify
from ..ownership import ensure_owner
from ..pagination import Page, paginate
from ..permissions import ResourceKind

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED)


def _pending_count(db: Session, requester_id: int, exclude_id: int | None = None) -> int:
    stmt = select(func.count(LeaveRequest.id)).where(
        LeaveRequest.requester_id == requester_id, LeaveRequest.status == LeaveStatus.PENDING
    )
    if exclude_id is not None:
        stmt = stmt.where(LeaveRequest.id != exclude_id)
    return db.scalar(stmt) or 0


def _has_overlap(
    db: Session, requester_id: int, from_date: dt.date, to_date: dt.date, exclude_id: int | None = None
) -> bool:
    stmt = select(LeaveRequest.id).where(
        LeaveRequest.requester_id == requester_id,
        LeaveRequest.status.in_(ACTIVE_STATUSES),
        LeaveRequest.from_date <= to_date,
        LeaveRequest.to_date >= from_date,
    )
    if exclude_id is not None:
        stmt = stmt.where(LeaveRequest.id != exclude_id)
    return db.scalar(stmt.limit(1)) is not None


def _check_gates(
    db: Session,
    requester_id: int,
    from_date: dt.date,
    to_date: dt.date,
    exclude_id: int | None = None,
    count_pending: bool = True,
) -> None:
    if count_pending and _pending_count(db, requester_id, exclude_id) >= settings.max_pending_leaves:
        raise Conflict(
            f"Maximum {settings.max_pending_leaves} pending leave requests allowed. "
            "Please wait for pending requests to be processed."
        )
    if _has_overlap(db, requester_id, from_date, to_date, exclude_id):
        raise Conflict("Overlapping leave request exists")


def _lock_requester(db: Session, requester_id: int) -> None:
    # Serializes concurrent requests of one user where the backend supports row locks.
    db.execute(select(User.id).where(User.id == requester_id).with_for_update())


def _student_user_ids(db: Session, teacher_id: int) -> list[int]:
    return list(
        db.scalars(
            select(Student.user_id)
            .join(Attendance, Attendance.student_id == Student.id)
            .join(Course, Attendance.course_id == Course.id)
            .where(Course.teacher_id == teacher_id)
            .distinct()
        ).all()
    )


def list_leave_requests(
    db: Session,
    page: Page,
    *,
    actor: Actor,
    status: LeaveStatus | None = None,
    requester_id: int | None = None,
):
    stmt = select(LeaveRequest).order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
    if actor.teacher is not None and not actor.is_admin:
        visible = set(_student_user_ids(db, actor.teacher.id)) | {actor.user_id}
        stmt = stmt.where(LeaveRequest.requester_id.in_(visible))
    elif not actor.is_admin:
        stmt = stmt.where(LeaveRequest.requester_id == actor.user_id)
    if status is not None:
        stmt = stmt.where(LeaveRequest.status == status)
    if requester_id is not None:
        stmt = stmt.where(LeaveRequest.requester_id == requester_id)
    return paginate(db, stmt, page)


def get_leave_request(db: Session, *, actor: Actor, leave_id: int) -> LeaveRequest:
    ensure_owner(db, actor, ResourceKind.LEAVE_REQUEST, leave_id)
    return db.get(LeaveRequest, leave_id)


def create_leave_request(
    db: Session, *, actor: Actor, type: str, from_date: dt.date, to_date: dt.date, reason: str
) -> LeaveRequest:
    requester_id = actor.user_id
    _lock_requester(db, requester_id)
    _check_gates(db, requester_id, from_date, to_date)

    leave = LeaveRequest(
        requester_id=requester_id,
        student_id=actor.student.id if actor.student is not None else None,
        type=type.strip(),
        from_date=from_date,
        to_date=to_date,
        reason=reason.strip(),
        status=LeaveStatus.PENDING,
    )
    db.add(leave)
    db.flush()
    try:
        _check_gates(db, requester_id, from_date, to_date, exclude_id=leave.id)
    except Conflict:
        db.rollback()
        raise
    db.commit()
    db.refresh(leave)

    summary = f"{actor.user.name} requested {leave.type} leave from {from_date.isoformat()} to {to_date.isoformat()}"
    notify(
        db,
        admin_user_ids(db),
        title="New Leave Request",
        body=summary,
        category="leave",
        data={"leave_request_id": leave.id, "requester_id": requester_id},
    )
    mail_users(
        db.scalars(select(User.email).where(User.role == UserRole.ADMIN)).all(),
        subject="Leave Request Submitted",
        body=f"{summary}.\n\nReason: {leave.reason}",
    )
    return leave


def update_leave_status(
    db: Session, *, actor: Actor, leave_id: int, status: LeaveStatus, remarks: str | None = None
) -> LeaveRequest:
    owner = ensure_owner(db, actor, ResourceKind.LEAVE_REQUEST, leave_id)
    if not actor.is_admin and owner.requester_id == actor.user_id:
        raise Forbidden("Forbidden: Cannot review your own leave request")

    leave = db.get(LeaveRequest, leave_id)
    previous = leave.status
    # Reopening or approving a request must still respect the requester's limits.
    if status != previous and status in ACTIVE_STATUSES:
        _lock_requester(db, leave.requester_id)
        _check_gates(
            db,
            leave.requester_id,
            leave.from_date,
            leave.to_date,
            exclude_id=leave.id,
            count_pending=status == LeaveStatus.PENDING,
        )
    leave.status = status
    leave.approver_id = None if status == LeaveStatus.PENDING else actor.user_id
    if remarks is not None:
        leave.remarks = remarks
    db.commit()
    db.refresh(leave)
    logger.info("Leave request %s: %s -> %s by user %s", leave_id, previous.value, status.value, actor.user_id)

    if status != previous:
        body = f"Your {leave.type} leave request ({leave.from_date.isoformat()} to {leave.to_date.isoformat()}) was {status.value.lower()}"
        if leave.remarks:
            body += f". Remarks: {leave.remarks}"
        notify(
            db,
            [leave.requester_id],
            title=f"Leave Request {status.value}",
            body=body,
            category="leave",
            data={"leave_request_id": leave.id, "status": status.value},
        )
        if status != LeaveStatus.PENDING:
            mail_users([leave.requester.email], subject=f"Leave Request {status.value.title()}", body=body)
    return leave


def delete_leave_request(db: Session, *, actor: Actor, leave_id: int) -> None:
    leave = db.get(LeaveRequest, leave_id)
    if leave is None:
        raise NotFound("Leave request not found")
    if not actor.is_admin and leave.requester_id != actor.user_id:
        raise Forbidden("Forbidden: leave request belongs to another user")
    if leave.status != LeaveStatus.PENDING:
        raise Conflict("Only pending leave requests can be deleted")
    db.delete(leave)
    db.commit()
