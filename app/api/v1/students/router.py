from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import ensure_student_access, require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole
from app.core.exceptions import ServiceError
from app.core.schemas import ApiResponse, MessageResponse, ok
from app.core.student_lookup import resolve_student
from app.db.session import get_db

from .schemas import ChangeClassRequest, StudentCreate, StudentResponse, StudentUpdate
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])

_staff = require_roles(UserRole.ADMIN, UserRole.TEACHER, UserRole.RECEPTIONIST)
_front_office = require_roles(UserRole.ADMIN, UserRole.RECEPTIONIST)


@router.get("", response_model=ApiResponse[List[StudentResponse]], dependencies=[Depends(_staff)])
async def list_students(db: AsyncSession = Depends(get_db)):
    items = await service.list_students(db)
    return ok(items, count=len(items))


@router.get("/search", response_model=ApiResponse[List[StudentResponse]], dependencies=[Depends(_staff)])
async def search_students(
    q: str = Query(..., min_length=1, description="Part of a first or last name"),
    db: AsyncSession = Depends(get_db),
):
    try:
        items = await service.search_students(db, q)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok(items, count=len(items))


@router.get(
    "/class/{grade}/{class_name}",
    response_model=ApiResponse[List[StudentResponse]],
    dependencies=[Depends(_staff)],
)
async def students_by_class(grade: str, class_name: str, db: AsyncSession = Depends(get_db)):
    items = await service.list_students_by_class(db, grade, class_name)
    return ok(items, count=len(items))


@router.post(
    "",
    response_model=ApiResponse[StudentResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(_front_office)],
)
async def create_student(payload: StudentCreate, db: AsyncSession = Depends(get_db)):
    try:
        return ok(await service.create_student(db, payload), message="Student created")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{student}", response_model=ApiResponse[StudentResponse])
async def get_student(
    student: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Look up by id or student code. Students see only themselves, parents only their children."""
    try:
        record = await resolve_student(db, student)
        await ensure_student_access(db, current_user, record)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok(service.student_to_response(record))


@router.put("/{student}", response_model=ApiResponse[StudentResponse], dependencies=[Depends(_front_office)])
async def update_student(student: str, payload: StudentUpdate, db: AsyncSession = Depends(get_db)):
    try:
        record = await resolve_student(db, student)
        return ok(await service.update_student(db, record, payload), message="Student updated")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{student}/class",
    response_model=ApiResponse[StudentResponse],
    dependencies=[Depends(_front_office)],
)
async def change_class(student: str, payload: ChangeClassRequest, db: AsyncSession = Depends(get_db)):
    try:
        record = await resolve_student(db, student)
        return ok(await service.change_student_class(db, record, payload), message="Student class updated")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{student}",
    response_model=MessageResponse,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def delete_student(student: str, db: AsyncSession = Depends(get_db)) -> MessageResponse:
    try:
        record = await resolve_student(db, student)
        await service.delete_student(db, record)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Student deleted")
