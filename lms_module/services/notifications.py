from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import Forbidden, NotFound, ValidationError
from ..middleware import Actor
from ..models import Notification, User
from ..notifications import all_user_ids, notify
from ..pagination import Page, paginate


def list_notifications(
    db: Session,
    page: Page,
    *,
    actor: Actor,
    unread: bool | None = None,
    category: str | None = None,
):
    stmt = (
        select(Notification)
        .where(Notification.user_id == actor.user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    if unread is not None:
        stmt = stmt.where(Notification.is_read.is_(not unread))
    if category:
        stmt = stmt.where(Notification.category == category)
    return paginate(db, stmt, page)


def _own_notification(db: Session, actor: Actor, notification_id: int) -> Notification:
    notification = db.get(Notification, notification_id)
    if not notification:
        raise NotFound("Notification not found")
    if notification.user_id != actor.user_id and not actor.is_admin:
        raise Forbidden("Forbidden: notification belongs to another user")
    return notification


def mark_notification(db: Session, *, actor: Actor, notification_id: int, is_read: bool) -> Notification:
    notification = _own_notification(db, actor, notification_id)
    notification.is_read = is_read
    db.commit()
    db.refresh(notification)
    return notification


def delete_notification(db: Session, *, actor: Actor, notification_id: int) -> None:
    db.delete(_own_notification(db, actor, notification_id))
    db.commit()


def broadcast(
    db: Session,
    *,
    user_id: int | None,
    user_ids: list[int] | None,
    title: str,
    body: str,
    link: str | None = None,
    category: str | None = None,
    data: dict | None = None,
) -> list[Notification]:
    """Send a manual notification; no explicit recipients means everybody."""
    recipients = set(user_ids or [])
    if user_id is not None:
        recipients.add(user_id)
    if recipients:
        known = set(db.scalars(select(User.id).where(User.id.in_(recipients))).all())
        missing = sorted(recipients - known)
        if missing:
            raise ValidationError(
                "Validation error", details=[{"loc": ["user_ids"], "msg": f"Unknown user id(s): {missing}"}]
            )
    else:
        recipients = set(all_user_ids(db))
    return notify(db, recipients, title=title, body=body, link=link, category=category, data=data)
