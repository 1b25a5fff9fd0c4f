import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from . import init_lms_module
from .config import settings
from .database import DATABASE_URL, engine
from .errors import LMSError
from .responses import api_error, api_success
from .routes import router

# Configure Logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Initializing LMS module...")
    init_lms_module()
    logger.info("LMS module initialized.")
    yield
    logger.info("Shutting down...")


def _validation_details(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(LMSError)
    async def lms_error_handler(request: Request, exc: LMSError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return api_error(exc.message, exc.status_code, exc.details)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return api_error("Validation error", 400, _validation_details(exc))

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return api_error(str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return api_error("Internal server error", 500)


def create_app(init_db: bool = True) -> FastAPI:
    app = FastAPI(title="ClassBridge LMS API", lifespan=lifespan if init_db else None)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(router)

    @app.get("/api/health")
    def health_check():
        """Liveness probe; also reports whether the database answers."""
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            db_status = "connected"
        except SQLAlchemyError as e:
            logger.warning("Health check database error: %s", e)
            db_status = "error"
        return api_success(
            {
                "status": "healthy",
                "database": db_status,
                "backend": DATABASE_URL.split(":", 1)[0],
                "timestamp": datetime.now().isoformat(),
            }
        )

    return app


app = create_app()
