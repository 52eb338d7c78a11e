"""
Blog Platform Backend — FastAPI Dependencies
============================================

What:  Per-request access to the database and the authenticated user.
How:   get_db asks the supervisor for a handle. Behind the database gate this
       is the cached handle (the gate already connected); outside it the call
       establishes on demand. Auth dependencies verify the bearer token and
       load the user it names.

Usage:
    @router.get("/me")
    async def me(user: dict = Depends(get_current_user)): ...

    @router.delete("/{id}", dependencies=[Depends(require_admin)])
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.context import AppContext, get_context
from app.exceptions import AuthenticationError, NotFoundError, PermissionDeniedError
from app.services.user_service import user_service

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db(ctx: AppContext = Depends(get_context)) -> Any:
    handle = await ctx.supervisor.ensure_connected()
    return handle.database


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    ctx: AppContext = Depends(get_context),
    db: Any = Depends(get_db),
) -> Dict[str, Any]:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(message="Not authorized, no token")

    user_id = ctx.tokens.verify(credentials.credentials)
    try:
        return await user_service.get_user(db, user_id)
    except NotFoundError as exc:
        # Token for a deleted user
        raise AuthenticationError(message="Not authorized, user not found") from exc


async def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        logger.info("Admin route refused for user %s", user.get("id"))
        raise PermissionDeniedError()
    return user
