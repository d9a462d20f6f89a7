from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class Role(str, Enum):
    NON_CLIENT = "non_client"
    PARTNER = "partner"
    ADMIN = "admin"


# Modelo para la creación de un usuario
class RegisterUser(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    confirm_password: str = Field(..., min_length=6)


# Respuesta al cliente
class UserResponse(BaseModel):
    id: str
    email: str
    role: Optional[Role] = None
    created_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: Optional[str] = None
    redirect_to: str = "/"
