"""
Blog Platform Backend — Category and Author Routes
==================================================

Reads are public; writes require an admin token.

    GET    /api/categories            GET    /api/authors
    GET    /api/categories/{slug}     GET    /api/authors/{id}
    POST   /api/categories            POST   /api/authors
    PUT    /api/categories/{id}       PUT    /api/authors/{id}
    DELETE /api/categories/{id}       DELETE /api/authors/{id}
"""

from typing import Any

from fastapi import APIRouter, Depends, status

from app.dependencies import get_db, require_admin
from app.schemas.category import (
    AuthorCreate,
    AuthorListResponse,
    AuthorResponse,
    AuthorUpdate,
    CategoryCreate,
    CategoryListResponse,
    CategoryResponse,
    CategoryUpdate,
)
from app.schemas.common import ErrorResponse, MessageResponse
from app.services.author_service import author_service
from app.services.category_service import category_service

router = APIRouter(prefix="/api/categories", tags=["Categories"])
authors_router = APIRouter(prefix="/api/authors", tags=["Authors"])

NOT_FOUND = {404: {"description": "Not found", "model": ErrorResponse}}


# ── Categories ────────────────────────────────────────────────────────────


@router.get("", response_model=CategoryListResponse)
async def list_categories(db: Any = Depends(get_db)) -> CategoryListResponse:
    categories = await category_service.list_categories(db)
    return CategoryListResponse(count=len(categories), categories=categories)


@router.get("/{slug}", response_model=CategoryResponse, responses=NOT_FOUND)
async def get_category(slug: str, db: Any = Depends(get_db)) -> CategoryResponse:
    return CategoryResponse(category=await category_service.get_by_slug(db, slug))


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_category(payload: CategoryCreate, db: Any = Depends(get_db)) -> CategoryResponse:
    category = await category_service.create_category(db, payload.name, payload.description)
    return CategoryResponse(category=category)


@router.put(
    "/{category_id}",
    response_model=CategoryResponse,
    responses=NOT_FOUND,
    dependencies=[Depends(require_admin)],
)
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    db: Any = Depends(get_db),
) -> CategoryResponse:
    category = await category_service.update_category(
        db, category_id, name=payload.name, description=payload.description
    )
    return CategoryResponse(category=category)


@router.delete(
    "/{category_id}",
    response_model=MessageResponse,
    responses={**NOT_FOUND, 400: {"description": "Category in use", "model": ErrorResponse}},
    dependencies=[Depends(require_admin)],
)
async def delete_category(category_id: str, db: Any = Depends(get_db)) -> MessageResponse:
    await category_service.delete_category(db, category_id)
    return MessageResponse(message="Category removed")


# ── Authors ───────────────────────────────────────────────────────────────


@authors_router.get("", response_model=AuthorListResponse)
async def list_authors(db: Any = Depends(get_db)) -> AuthorListResponse:
    authors = await author_service.list_authors(db)
    return AuthorListResponse(count=len(authors), authors=authors)


@authors_router.get("/{author_id}", response_model=AuthorResponse, responses=NOT_FOUND)
async def get_author(author_id: str, db: Any = Depends(get_db)) -> AuthorResponse:
    return AuthorResponse(author=await author_service.get_author(db, author_id))


@authors_router.post(
    "",
    response_model=AuthorResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_author(payload: AuthorCreate, db: Any = Depends(get_db)) -> AuthorResponse:
    author = await author_service.create_author(db, payload.name, payload.bio, payload.avatar_url)
    return AuthorResponse(author=author)


@authors_router.put(
    "/{author_id}",
    response_model=AuthorResponse,
    responses=NOT_FOUND,
    dependencies=[Depends(require_admin)],
)
async def update_author(author_id: str, payload: AuthorUpdate, db: Any = Depends(get_db)) -> AuthorResponse:
    author = await author_service.update_author(db, author_id, payload.model_dump(exclude_unset=True))
    return AuthorResponse(author=author)


@authors_router.delete(
    "/{author_id}",
    response_model=MessageResponse,
    responses=NOT_FOUND,
    dependencies=[Depends(require_admin)],
)
async def delete_author(author_id: str, db: Any = Depends(get_db)) -> MessageResponse:
    await author_service.delete_author(db, author_id)
    return MessageResponse(message="Author removed")
