import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import Notification, User, UserRole

logger = logging.getLogger(__name__)


def notify(
    db: Session,
    user_ids: Iterable[int],
    title: str,
    body: str,
    link: str | None = None,
    category: str | None = None,
    data: dict[str, Any] | None = None,
) -> list[Notification]:
    """Create one notification per distinct user id.

    Call this only after the triggering write has been committed: a failure
    here is logged and rolled back on its own, and an empty list is returned.
    """
    recipients = sorted(set(user_ids))
    if not recipients:
        return []
    try:
        created = [
            Notification(user_id=uid, title=title, body=body, link=link, category=category, data=data)
            for uid in recipients
        ]
        db.add_all(created)
        db.commit()
        for notification in created:
            db.refresh(notification)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to dispatch notification %r to %d user(s)", title, len(recipients))
        return []
    logger.info("Dispatched notification %r to %d user(s)", title, len(created))
    return created


def admin_user_ids(db: Session) -> list[int]:
    return list(db.scalars(select(User.id).where(User.role == UserRole.ADMIN)).all())


def all_user_ids(db: Session) -> list[int]:
    return list(db.scalars(select(User.id)).all())
