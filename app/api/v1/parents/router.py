from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole
from app.core.exceptions import AuthorizationError, ServiceError
from app.core.schemas import ApiResponse, ok
from app.db.session import get_db

from .schemas import LinkChildRequest, ParentResponse
from . import service

router = APIRouter(prefix="/api/v1/parents", tags=["parents"])


@router.get("/{parent_id}", response_model=ApiResponse[ParentResponse])
async def get_parent(
    parent_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(
        require_roles(UserRole.ADMIN, UserRole.RECEPTIONIST, UserRole.PARENT)
    ),
):
    try:
        parent = await service.get_parent(db, parent_id)
        if current_user.role == UserRole.PARENT and parent.user_id != current_user.id:
            raise AuthorizationError("Not authorized to access this parent record")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok(service.parent_to_response(parent))


@router.post(
    "/{parent_id}/children",
    response_model=ApiResponse[ParentResponse],
    dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.RECEPTIONIST))],
)
async def link_child(parent_id: UUID, payload: LinkChildRequest, db: AsyncSession = Depends(get_db)):
    try:
        parent = await service.get_parent(db, parent_id)
        return ok(await service.link_child(db, parent, payload.student), message="Child linked to parent")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
