from sqlalchemy.orm import Session

from .config import settings
from .database import Base, engine
from .services.users import seed_default_admin


def init_lms_module() -> None:
    Base.metadata.create_all(bind=engine)
    db = Session(bind=engine)
    try:
        seed_default_admin(db, email=settings.seed_admin_email, password=settings.seed_admin_password)
    finally:
        db.close()


__all__ = ["init_lms_module"]
