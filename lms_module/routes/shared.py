from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import Actor, get_current_actor
from ..pagination import Page, page_params
from ..permissions import Action, ResourceKind, require_access
from ..responses import api_success
from ..schemas import (
    NotificationCreateRequest,
    NotificationOut,
    NotificationUpdateRequest,
    ReportCreateRequest,
    ReportOut,
    dump,
    dump_page,
)
from ..services import notifications, reports

router = APIRouter(tags=["Shared"])


# --- notifications ---

@router.get("/notifications")
def list_notifications(
    unread: bool | None = None,
    category: str | None = None,
    page: Page = Depends(page_params),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(get_current_actor),
):
    require_access(actor.role, Action.READ, ResourceKind.NOTIFICATION)
    page_data = notifications.list_notifications(db, page, actor=actor, unread=unread, category=category)
    return api_success(dump_page(NotificationOut, page_data))


@router.post("/notifications", status_code=status.HTTP_201_CREATED)
def send_notification(
    payload: NotificationCreateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(get_current_actor),
):
    require_access(actor.role, Action.CREATE, ResourceKind.NOTIFICATION)
    created = notifications.broadcast(
        db,
        user_id=payload.user_id,
        user_ids=payload.user_ids,
        title=payload.title,
        body=payload.body,
        link=payload.link,
        category=payload.category,
        data=payload.data,
    )
    return api_success({"sent": len(created)}, status.HTTP_201_CREATED)


@router.patch("/notifications/{notification_id}")
def mark_notification(
    notification_id: int,
    payload: NotificationUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(get_current_actor),
):
    require_access(actor.role, Action.UPDATE, ResourceKind.NOTIFICATION)
    notification = notifications.mark_notification(
        db, actor=actor, notification_id=notification_id, is_read=payload.is_read
    )
    return api_success(dump(NotificationOut, notification))


@router.delete("/notifications/{notification_id}")
def delete_notification(
    notification_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(get_current_actor)
):
    require_access(actor.role, Action.DELETE, ResourceKind.NOTIFICATION)
    notifications.delete_notification(db, actor=actor, notification_id=notification_id)
    return api_success({"id": notification_id})


# --- reports ---

@router.get("/reports/students/{student_id}")
def student_report(student_id: int, db: Session = Depends(get_db_session), actor: Actor = Depends(get_current_actor)):
    require_access(actor.role, Action.READ, ResourceKind.REPORT)
    return api_success(reports.student_report(db, actor=actor, student_id=student_id))


@router.post("/reports")
def generate_report(
    payload: ReportCreateRequest, db: Session = Depends(get_db_session), actor: Actor = Depends(get_current_actor)
):
    require_access(actor.role, Action.CREATE, ResourceKind.REPORT)
    report, created = reports.generate_report(
        db,
        actor=actor,
        student_id=payload.student_id,
        semester=payload.semester,
        credits=payload.credits,
        remarks=payload.remarks,
    )
    return api_success(dump(ReportOut, report), status.HTTP_201_CREATED if created else status.HTTP_200_OK)
