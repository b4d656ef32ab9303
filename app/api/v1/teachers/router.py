from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.reports import service as reports_service
from app.api.v1.reports.schemas import TeacherClassFees
from app.auth.rbac import ensure_teacher_access, require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse, ok
from app.db.session import get_db

from .schemas import AssignClassRequest, TeacherCreate, TeacherResponse, TeacherUpdate
from . import service

router = APIRouter(prefix="/api/v1/teachers", tags=["teachers"])

_admin = require_roles(UserRole.ADMIN)


@router.get(
    "",
    response_model=ApiResponse[List[TeacherResponse]],
    dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.RECEPTIONIST))],
)
async def list_teachers(db: AsyncSession = Depends(get_db)):
    items = await service.list_teachers(db)
    return ok(items, count=len(items))


@router.post(
    "",
    response_model=ApiResponse[TeacherResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(_admin)],
)
async def create_teacher(payload: TeacherCreate, db: AsyncSession = Depends(get_db)):
    try:
        return ok(await service.create_teacher(db, payload), message="Teacher created")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/assign-class", response_model=ApiResponse[TeacherResponse], dependencies=[Depends(_admin)])
async def assign_class(payload: AssignClassRequest, db: AsyncSession = Depends(get_db)):
    try:
        return ok(
            await service.assign_teacher_to_class(db, payload),
            message="Teacher assigned to class successfully",
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{teacher_id}",
    response_model=ApiResponse[TeacherResponse],
    dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.TEACHER, UserRole.RECEPTIONIST))],
)
async def get_teacher(teacher_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return ok(service.teacher_to_response(await service.get_teacher(db, teacher_id)))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{teacher_id}/class-fees", response_model=ApiResponse[TeacherClassFees])
async def class_fees(
    teacher_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.ADMIN, UserRole.TEACHER)),
):
    try:
        teacher = await service.get_teacher(db, teacher_id)
        await ensure_teacher_access(db, current_user, teacher)
        return ok(await reports_service.get_teacher_class_fees(db, teacher))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{teacher_id}", response_model=ApiResponse[TeacherResponse], dependencies=[Depends(_admin)])
async def update_teacher(teacher_id: UUID, payload: TeacherUpdate, db: AsyncSession = Depends(get_db)):
    try:
        teacher = await service.get_teacher(db, teacher_id)
        return ok(await service.update_teacher(db, teacher, payload), message="Teacher updated")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{teacher_id}", response_model=MessageResponse, dependencies=[Depends(_admin)])
async def delete_teacher(teacher_id: UUID, db: AsyncSession = Depends(get_db)) -> MessageResponse:
    try:
        await service.delete_teacher(db, await service.get_teacher(db, teacher_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Teacher deleted")
