from fastapi_users import schemas
from exam_scheduler.models.user_model import UserRole
import uuid
from typing import Optional
from pydantic import BaseModel


class UserRead(schemas.BaseUser[uuid.UUID]):
    full_name: Optional[str] = None
    role: UserRole


class UserCreate(schemas.BaseUserCreate):
    # no role here: everyone registers as a student, admins are promoted
    # through the admin-only users router
    full_name: str


class UserUpdate(schemas.BaseUserUpdate):
    full_name: Optional[str] = None
    role: Optional[UserRole] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    user: UserRead
    token: str
