from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.db.engine import async_session_factory
from app.models.principal import Principal
from app.repos import store as store_module
from app.repos.store import Store, pg_store
from app.services import token_service
from app.services.cache import cache_service

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Principal:
    """Validate the bearer token and return the calling learner."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    try:
        claims = token_service.decode_access_token(credentials.credentials)
        UUID(claims["sub"])
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except (jwt.InvalidTokenError, ValueError) as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug("Token validated for user=%s roles=%s", principal.user_id, principal.roles)
    return principal


def require_role(role: str):
    """Dependency factory: ``Depends(require_role("admin"))``."""

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_role(role):
            logger.warning(
                "Access denied: user=%s missing role=%s",
                principal.user_id,
                role,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


require_admin = require_role("admin")


async def get_store() -> AsyncGenerator[Store, None]:
    """Request-scoped store.

    In-memory when DATABASE_URL is unset.  Otherwise Pg repos over one
    session: committed when the handler returns, rolled back if it raises.
    """
    if async_session_factory is None:
        yield store_module.memory_store
        return
    async with async_session_factory() as session:
        try:
            store = pg_store(session)
            yield store
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    for key in store.stale_cache_keys or ():
        await cache_service.delete(key)
