"""Category and author request/response models."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class CategoryOut(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryResponse(BaseModel):
    success: bool = True
    category: CategoryOut


class CategoryListResponse(BaseModel):
    success: bool = True
    count: int
    categories: List[CategoryOut]


class AuthorCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=2000)
    avatar_url: Optional[str] = None


class AuthorUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=2000)
    avatar_url: Optional[str] = None


class AuthorOut(BaseModel):
    id: str
    name: str
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthorResponse(BaseModel):
    success: bool = True
    author: AuthorOut


class AuthorListResponse(BaseModel):
    success: bool = True
    count: int
    authors: List[AuthorOut]
