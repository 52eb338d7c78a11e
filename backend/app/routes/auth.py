"""
Blog Platform Backend — Auth and User Routes
============================================

What:  POST /api/auth/signup, POST /api/auth/login, GET /api/users/me,
       GET /api/users (admin).
How:   JSON bodies validated by pydantic (password >= 6 chars, valid email);
       the user service does the rest. Both auth calls return the public user
       and a bearer token.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from app.context import AppContext, get_context
from app.dependencies import get_current_user, get_db, require_admin
from app.schemas.common import ErrorResponse
from app.schemas.user import (
    AuthResponse,
    LoginRequest,
    SignupRequest,
    UserListResponse,
    UserResponse,
)
from app.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])
users_router = APIRouter(prefix="/api/users", tags=["Users"])


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Email already registered", "model": ErrorResponse}},
    summary="Register a new user",
)
async def signup(
    payload: SignupRequest,
    ctx: AppContext = Depends(get_context),
    db: Any = Depends(get_db),
) -> AuthResponse:
    user, token = await user_service.signup(
        db, ctx.tokens, name=payload.name, email=payload.email, password=payload.password
    )
    return AuthResponse(user=user, token=token)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Authenticate and get a token",
)
async def login(
    payload: LoginRequest,
    ctx: AppContext = Depends(get_context),
    db: Any = Depends(get_db),
) -> AuthResponse:
    user, token = await user_service.login(db, ctx.tokens, email=payload.email, password=payload.password)
    return AuthResponse(user=user, token=token)


@users_router.get("/me", response_model=UserResponse, summary="Current user")
async def current_user(user: Dict[str, Any] = Depends(get_current_user)) -> UserResponse:
    return UserResponse(user=user)


@users_router.get("", response_model=UserListResponse, summary="All users (admin)")
async def list_users(
    _: Dict[str, Any] = Depends(require_admin),
    db: Any = Depends(get_db),
) -> UserListResponse:
    users = await user_service.list_users(db)
    return UserListResponse(count=len(users), users=users)
