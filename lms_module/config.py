import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("LMS_DATABASE_URL", "")
    jwt_secret: str = os.getenv("LMS_JWT_SECRET", os.getenv("JWT_SECRET", "change-me-in-production"))
    jwt_algorithm: str = os.getenv("LMS_JWT_ALGORITHM", "HS256")
    jwt_exp_minutes: int = int(os.getenv("LMS_JWT_EXP_MINUTES", "60"))
    default_page_size: int = int(os.getenv("LMS_DEFAULT_PAGE_SIZE", "20"))
    max_page_size: int = int(os.getenv("LMS_MAX_PAGE_SIZE", "100"))
    max_pending_leaves: int = int(os.getenv("LMS_MAX_PENDING_LEAVES", "3"))
    cors_origins: tuple[str, ...] = field(default_factory=lambda: _csv(os.getenv("LMS_CORS_ORIGINS", "*")))
    seed_admin_email: str = os.getenv("LMS_SEED_ADMIN_EMAIL", "")
    seed_admin_password: str = os.getenv("LMS_SEED_ADMIN_PASSWORD", "")
    smtp_host: str = os.getenv("SMTP_SERVER", "")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_username: str = os.getenv("SMTP_EMAIL", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    mail_from: str = os.getenv("LMS_MAIL_FROM", "noreply@classbridge.local")


settings = Settings()
