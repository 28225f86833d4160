"""Class management routes."""

from fastapi import APIRouter, status

from api.errors import to_http_exception
from core.dependencies import ClassManagerDep
from core.exceptions import AcademyAdminError
from schemas.class_schema import (
    CapacityInfo,
    ClassDetail,
    ClassInfo,
    ClassMemberInfo,
    CreateClassRequest,
)

router = APIRouter(prefix="/api/classes", tags=["Class"])


@router.post(
    "",
    response_model=ClassInfo,
    status_code=status.HTTP_201_CREATED,
    summary="创建班级",
)
def create_class(req: CreateClassRequest, class_manager: ClassManagerDep) -> ClassInfo:
    try:
        class_model = class_manager.create_class(
            class_name=req.class_name,
            teacher_id=req.teacher_id,
            batch_id=req.batch_id,
            visibility=req.visibility,
            max_students=req.max_students,
        )
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return ClassInfo.model_validate(class_model)


@router.get("/{class_id}", response_model=ClassDetail, summary="获取班级详情")
def get_class(class_id: str, class_manager: ClassManagerDep) -> ClassDetail:
    """Class info, capacity and enrolled students.

    Raises:
        HTTPException: 404 if the class does not exist.
    """
    try:
        class_model = class_manager.get_class(class_id)
        members = class_manager.list_enrolled(class_id)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
    return ClassDetail(
        info=ClassInfo.model_validate(class_model),
        capacity=CapacityInfo.of(class_model.current_enrolled, class_model.max_students),
        members=[ClassMemberInfo(**member) for member in members],
    )


@router.get("/{class_id}/capacity", response_model=CapacityInfo, summary="获取班级容量")
def get_class_capacity(class_id: str, class_manager: ClassManagerDep) -> CapacityInfo:
    try:
        return class_manager.get_capacity(class_id)
    except AcademyAdminError as exc:
        raise to_http_exception(exc)
