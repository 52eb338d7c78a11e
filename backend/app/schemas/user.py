"""Request/response models for signup, login and user lookups."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class SignupRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, description="At least 6 characters")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserPublic(BaseModel):
    """The only user fields ever returned; the password hash never is."""

    id: str
    name: str
    email: str
    role: str = "user"
    created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    success: bool = True
    user: UserPublic
    token: str


class UserResponse(BaseModel):
    success: bool = True
    user: UserPublic


class UserListResponse(BaseModel):
    success: bool = True
    count: int
    users: List[UserPublic]
