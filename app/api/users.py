from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from app.api.dependencies import get_store, require_admin
from app.api.errors import http_error, validation_error
from app.exceptions import EngineError
from app.models.principal import Principal
from app.repos.store import Store
from app.services import users_service

logger = logging.getLogger(__name__)

# Learner sync from the identity service: PUT /v1/users/{user_id}

router = APIRouter(prefix="/v1/users", tags=["users"])


class UserIn(BaseModel):
    email: str
    name: str = ""
    roles: list[str] = []


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    roles: list[str]


@router.put("/{user_id}", response_model=UserOut)
async def put_user(
    user_id: UUID,
    body: UserIn,
    response: Response,
    _admin: Annotated[Principal, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> UserOut:
    if "@" not in body.email:
        raise validation_error("email must be a valid address")
    try:
        user, created = await users_service.upsert_user(
            store,
            user_id=user_id,
            email=body.email,
            name=body.name,
            roles=tuple(body.roles),
        )
    except EngineError as e:
        raise http_error(e) from None
    if created:
        response.status_code = status.HTTP_201_CREATED
    return UserOut(id=str(user.id), email=user.email, name=user.name, roles=list(user.roles))
