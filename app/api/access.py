"""Course access checks.

GET /v1/access is public and email-based, for the storefront and the
support desk.  GET /v1/courses/{course_id}/access answers for the calling
learner and says which grant applies.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import get_store, require_user
from app.api.errors import http_error, validation_error
from app.exceptions import EngineError
from app.models.principal import Principal
from app.repos.store import Store
from app.services import access_service

router = APIRouter(tags=["access"])


class AccessCheckOut(BaseModel):
    email: str
    course_id: str
    has_access: bool


class AccessDecisionOut(BaseModel):
    course_id: str
    has_access: bool
    grant: str


@router.get("/v1/access", response_model=AccessCheckOut)
async def check_access(
    email: str,
    course_id: UUID,
    store: Annotated[Store, Depends(get_store)],
) -> AccessCheckOut:
    if "@" not in email:
        raise validation_error("email must be a valid address")
    has_access = await access_service.check_access(store, email, course_id)
    return AccessCheckOut(
        email=email.strip().lower(), course_id=str(course_id), has_access=has_access
    )


@router.get("/v1/courses/{course_id}/access", response_model=AccessDecisionOut)
async def resolve_access(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> AccessDecisionOut:
    try:
        decision = await access_service.resolve_access(
            store, principal.user_uuid, course_id
        )
    except EngineError as e:
        raise http_error(e) from None
    return AccessDecisionOut(
        course_id=str(course_id), has_access=decision.has_access, grant=decision.grant
    )
