"""
Blog Platform Backend — Blog Route Handlers
===========================================

What:  Everything under /api/blogs.
How:   Thin handlers: extract query/form/file input, call BlogService, wrap
       the result in a response model. Admin-only routes depend on
       require_admin; image routes pass the context's media service through.

Route Inventory:
    GET    /api/blogs                    all blogs, content omitted (admin listing)
    GET    /api/blogs/published          visible published blogs
    GET    /api/blogs/featured           featured blogs
    GET    /api/blogs/scheduled          published with a future date (admin)
    GET    /api/blogs/latest/{limit}     latest visible blogs per category
    GET    /api/blogs/category/{slug}    visible blogs of one category
    GET    /api/blogs/slug/{slug}        one blog by slug
    GET    /api/blogs/{id}               one blog by id
    POST   /api/blogs                    create (admin, multipart with image)
    PUT    /api/blogs/{id}               partial update (admin, multipart)
    DELETE /api/blogs/{id}               delete + best-effort image cleanup (admin)

Pagination:
    Only applied when `limit` is given; the response then carries
    current_page and total_pages. List responses are rendered with
    exclude_none, so absent pagination keys (and omitted content) disappear.

Route order matters: the fixed paths are declared before /{blog_id}.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile

from app.context import AppContext, get_context
from app.dependencies import get_db, require_admin
from app.schemas.blog import (
    BlogForm,
    BlogListResponse,
    BlogResponse,
    ImageUpload,
    LatestByCategoryResponse,
)
from app.schemas.common import ErrorResponse, MessageResponse
from app.services.blog_service import blog_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/blogs", tags=["Blogs"])

NOT_FOUND = {404: {"description": "Not found", "model": ErrorResponse}}

PageQuery = Query(default=1, ge=1, description="Page number (used with limit)")
LimitQuery = Query(default=None, ge=1, le=100, description="Page size; omit for no pagination")


def blog_form(
    title: Optional[str] = Form(default=None),
    content: Optional[str] = Form(default=None),
    excerpt: Optional[str] = Form(default=None),
    image_alt: Optional[str] = Form(default=None),
    category_id: Optional[str] = Form(default=None),
    author_id: Optional[str] = Form(default=None),
    slug: Optional[str] = Form(default=None),
    tags: Optional[str] = Form(default=None),
    meta_keywords: Optional[str] = Form(default=None),
    meta_description: Optional[str] = Form(default=None),
    status: Optional[str] = Form(default=None),
    is_featured: Optional[str] = Form(default=None),
    publish_date: Optional[str] = Form(default=None),
    image_url: Optional[str] = Form(default=None),
) -> BlogForm:
    return BlogForm(
        title=title,
        content=content,
        excerpt=excerpt,
        image_alt=image_alt,
        category_id=category_id,
        author_id=author_id,
        slug=slug,
        tags=tags,
        meta_keywords=meta_keywords,
        meta_description=meta_description,
        status=status,
        is_featured=is_featured,
        publish_date=publish_date,
        image_url=image_url,
    )


async def read_image(image: Optional[UploadFile]) -> Optional[ImageUpload]:
    """Buffer the upload (bounded by MAX_IMAGE_SIZE validation downstream)."""
    if image is None or not image.filename:
        return None
    try:
        content = await image.read()
    finally:
        await image.close()
    logger.info("Received image upload: filename=%s, size=%d bytes", image.filename, len(content))
    return ImageUpload(filename=image.filename, content=content, content_length=image.size)


# ══════════════════════════════════════════════════════════════════════════
# Listings
# ══════════════════════════════════════════════════════════════════════════


@router.get("", response_model=BlogListResponse, response_model_exclude_none=True)
async def list_blogs(
    status: Optional[str] = Query(default=None, description="draft or published"),
    search: Optional[str] = Query(default=None, description="Matches title or content"),
    page: int = PageQuery,
    limit: Optional[int] = LimitQuery,
    db: Any = Depends(get_db),
) -> BlogListResponse:
    result = await blog_service.list_blogs(db, status=status, search=search, page=page, limit=limit)
    return BlogListResponse(**result)


@router.get("/published", response_model=BlogListResponse, response_model_exclude_none=True)
async def list_published(
    search: Optional[str] = Query(default=None),
    page: int = PageQuery,
    limit: Optional[int] = LimitQuery,
    db: Any = Depends(get_db),
) -> BlogListResponse:
    return BlogListResponse(**await blog_service.list_published(db, search=search, page=page, limit=limit))


@router.get("/featured", response_model=BlogListResponse, response_model_exclude_none=True)
async def list_featured(
    status: Optional[str] = Query(default=None, description="Defaults to published"),
    page: int = PageQuery,
    limit: Optional[int] = LimitQuery,
    db: Any = Depends(get_db),
) -> BlogListResponse:
    return BlogListResponse(**await blog_service.list_featured(db, status=status, page=page, limit=limit))


@router.get(
    "/scheduled",
    response_model=BlogListResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_admin)],
)
async def list_scheduled(
    page: int = PageQuery,
    limit: Optional[int] = LimitQuery,
    db: Any = Depends(get_db),
) -> BlogListResponse:
    return BlogListResponse(**await blog_service.list_scheduled(db, page=page, limit=limit))


@router.get("/latest/{limit}", response_model=LatestByCategoryResponse, response_model_exclude_none=True)
async def latest_by_category(
    limit: int = Path(ge=1, le=50, description="Blogs per category"),
    db: Any = Depends(get_db),
) -> LatestByCategoryResponse:
    return LatestByCategoryResponse(blogs_by_category=await blog_service.latest_by_category(db, limit))


@router.get(
    "/category/{slug}",
    response_model=BlogListResponse,
    response_model_exclude_none=True,
    responses=NOT_FOUND,
)
async def list_by_category(
    slug: str,
    status: Optional[str] = Query(default=None, description="Defaults to published"),
    search: Optional[str] = Query(default=None),
    page: int = PageQuery,
    limit: Optional[int] = LimitQuery,
    db: Any = Depends(get_db),
) -> BlogListResponse:
    result = await blog_service.list_by_category(
        db, slug, status=status, search=search, page=page, limit=limit
    )
    return BlogListResponse(**result)


# ══════════════════════════════════════════════════════════════════════════
# Single blog
# ══════════════════════════════════════════════════════════════════════════


@router.get("/slug/{slug}", response_model=BlogResponse, responses=NOT_FOUND)
async def get_blog_by_slug(slug: str, db: Any = Depends(get_db)) -> BlogResponse:
    return BlogResponse(blog=await blog_service.get_by_slug(db, slug))


@router.get("/{blog_id}", response_model=BlogResponse, responses=NOT_FOUND)
async def get_blog(blog_id: str, db: Any = Depends(get_db)) -> BlogResponse:
    return BlogResponse(blog=await blog_service.get_blog(db, blog_id))


# ══════════════════════════════════════════════════════════════════════════
# Writes (admin)
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "",
    response_model=BlogResponse,
    status_code=201,
    responses={
        400: {"description": "Missing field, bad image or duplicate slug", "model": ErrorResponse},
        502: {"description": "Media host failed the upload", "model": ErrorResponse},
    },
)
async def create_blog(
    form: BlogForm = Depends(blog_form),
    image: Optional[UploadFile] = File(default=None, description="Cover image (max 2MB)"),
    user: Dict[str, Any] = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
    db: Any = Depends(get_db),
) -> BlogResponse:
    blog = await blog_service.create_blog(db, ctx.media, user["id"], form, await read_image(image))
    return BlogResponse(blog=blog)


@router.put(
    "/{blog_id}",
    response_model=BlogResponse,
    responses={**NOT_FOUND, 400: {"description": "Invalid update", "model": ErrorResponse}},
    dependencies=[Depends(require_admin)],
)
async def update_blog(
    blog_id: str,
    form: BlogForm = Depends(blog_form),
    image: Optional[UploadFile] = File(default=None),
    ctx: AppContext = Depends(get_context),
    db: Any = Depends(get_db),
) -> BlogResponse:
    blog = await blog_service.update_blog(db, ctx.media, blog_id, form, await read_image(image))
    return BlogResponse(blog=blog)


@router.delete(
    "/{blog_id}",
    response_model=MessageResponse,
    responses=NOT_FOUND,
    dependencies=[Depends(require_admin)],
)
async def delete_blog(
    blog_id: str,
    ctx: AppContext = Depends(get_context),
    db: Any = Depends(get_db),
) -> MessageResponse:
    await blog_service.delete_blog(db, ctx.media, blog_id)
    return MessageResponse(message="Blog removed")
