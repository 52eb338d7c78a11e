"""
Blog Platform Backend — Blog Schemas
====================================

What:  Multipart form input and JSON output models for /api/blogs.

Form Input:
    Blogs are created/updated with multipart/form-data (the cover image rides
    along), so every text field arrives as an optional string. BlogForm keeps
    them as strings; BlogService decides what "missing" versus "empty" means
    for create and update.

Output:
    Blogs come back populated: `category`, `author_profile` and `author` are
    small {id, name[, slug]} objects next to the raw ids.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content: bytes
    content_length: Optional[int] = None


class BlogForm(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    image_alt: Optional[str] = None
    category_id: Optional[str] = None
    author_id: Optional[str] = None
    slug: Optional[str] = None
    tags: Optional[str] = Field(default=None, description="Comma-separated")
    meta_keywords: Optional[str] = Field(default=None, description="Comma-separated")
    meta_description: Optional[str] = None
    status: Optional[str] = Field(default=None, description="draft or published")
    is_featured: Optional[str] = None
    publish_date: Optional[str] = Field(default=None, description="ISO 8601")
    image_url: Optional[str] = Field(default=None, description="Replace the image by URL (update only)")


class CategoryRef(BaseModel):
    id: str
    name: Optional[str] = None
    slug: Optional[str] = None


class NamedRef(BaseModel):
    id: str
    name: Optional[str] = None


class BlogOut(BaseModel):
    id: str
    title: str
    slug: str
    content: Optional[str] = None
    excerpt: Optional[str] = None
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: List[str] = []
    tags: List[str] = []
    status: str
    is_featured: bool = False
    publish_date: Optional[datetime] = None
    category_id: Optional[str] = None
    author_id: Optional[str] = None
    category: Optional[CategoryRef] = None
    author_profile: Optional[NamedRef] = None
    author: Optional[NamedRef] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BlogResponse(BaseModel):
    success: bool = True
    blog: BlogOut


class BlogListResponse(BaseModel):
    """
    `current_page` and `total_pages` are only present when the request
    carried a `limit`; routes render this model with exclude_none.
    """

    success: bool = True
    blogs: List[BlogOut]
    total_count: int
    current_page: Optional[int] = None
    total_pages: Optional[int] = None
    category: Optional[CategoryRef] = None


class CategoryBlogs(BaseModel):
    category: CategoryRef
    blogs: List[BlogOut]


class LatestByCategoryResponse(BaseModel):
    success: bool = True
    blogs_by_category: List[CategoryBlogs]
