from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import Actor, get_current_actor
from ..responses import api_success
from ..schemas import LoginRequest, LoginResponse, RegisterRequest, StudentOut, TeacherOut, UserOut, dump
from ..services.users import login_user, register_user

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db_session)):
    user = register_user(
        db,
        name=payload.name,
        email=payload.email,
        raw_password=payload.password,
        role=payload.role,
        enrollment_no=payload.enrollment_no,
    )
    return api_success(dump(UserOut, user), status.HTTP_201_CREATED)


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db_session)):
    token, user = login_user(db, email=payload.email, password=payload.password)
    return api_success(LoginResponse(access_token=token, role=user.role, user_id=user.id).model_dump(mode="json"))


@router.get("/me")
def me(actor: Actor = Depends(get_current_actor)):
    data = {"user": dump(UserOut, actor.user), "teacher": None, "student": None}
    if actor.teacher is not None:
        data["teacher"] = dump(TeacherOut, actor.teacher)
    if actor.student is not None:
        data["student"] = dump(StudentOut, actor.student)
    return api_success(data)
