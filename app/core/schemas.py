from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform envelope: {success, message?, data?, count?}."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    count: Optional[int] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def ok(data=None, message: Optional[str] = None, count: Optional[int] = None) -> dict:
    return {"success": True, "message": message, "data": data, "count": count}
