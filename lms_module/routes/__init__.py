from fastapi import APIRouter

from . import admin, auth, shared, student, teacher

router = APIRouter(prefix="/api")
router.include_router(auth.router)
router.include_router(admin.router)
router.include_router(teacher.router)
router.include_router(student.router)
router.include_router(shared.router)

__all__ = ["router"]
