from fastapi_users import schemas
from lms.models.user_model import UserRole
from typing import Optional
import uuid
from pydantic import BaseModel

class UserRead(schemas.BaseUser[uuid.UUID]):
    full_name: Optional[str] = None
    role: UserRole

class UserCreate(schemas.BaseUserCreate):
    full_name: str
    role: UserRole = UserRole.STUDENT # Default role on creation

class UserUpdate(schemas.BaseUserUpdate):
    full_name : str | None = None
    role: UserRole | None = None

class LoginRequest(BaseModel):
    email: str
    password: str
