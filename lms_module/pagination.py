from dataclasses import dataclass
from typing import Any

from fastapi import Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from .config import settings


@dataclass(frozen=True)
class Page:
    limit: int
    skip: int


def clamp_page(limit: int | None, skip: int | None) -> Page:
    page_limit = settings.default_page_size if limit is None else max(1, min(settings.max_page_size, limit))
    page_skip = 0 if skip is None else max(0, skip)
    return Page(limit=page_limit, skip=page_skip)


def page_params(
    limit: int | None = Query(default=None),
    skip: int | None = Query(default=None),
) -> Page:
    # Out-of-range values are clamped rather than rejected.
    return clamp_page(limit, skip)


def paginate(db: Session, stmt: Select, page: Page) -> dict[str, Any]:
    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    items = db.scalars(stmt.limit(page.limit).offset(page.skip)).all()
    return {"items": list(items), "total": total, "limit": page.limit, "skip": page.skip}
