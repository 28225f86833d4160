"""User routes."""

from fastapi import APIRouter, status

from api.errors import to_http_exception
from core.dependencies import UserManagerDep
from core.exceptions import AcademyAdminError
from schemas.user import CreateUserRequest, User

router = APIRouter(prefix="/api/users", tags=["User"])


@router.post(
    "",
    response_model=User,
    status_code=status.HTTP_201_CREATED,
    summary="创建用户",
)
def create_user(req: CreateUserRequest, user_manager: UserManagerDep) -> User:
    try:
        user = user_manager.create_user(
            email=req.email,
            role=req.role,
            first_name=req.first_name,
            last_name=req.last_name,
        )
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return User.model_validate(user)


@router.get("/{user_id}", response_model=User, summary="获取用户信息")
def get_user(user_id: str, user_manager: UserManagerDep) -> User:
    try:
        return User.model_validate(user_manager.get_user(user_id))
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
