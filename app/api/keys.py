"""Registration key endpoints.

Admin:  issue one, issue in bulk, look up, deactivate, list, statistics.
Public: redeem (the learner may not have an account yet).
"""

from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import get_store, require_admin
from app.api.errors import http_error, validation_error
from app.exceptions import EngineError
from app.models.principal import Principal
from app.models.registration_key import RegistrationKey
from app.repos.store import Store
from app.services import key_service, redemption_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/keys", tags=["keys"])


class KeyIssueIn(BaseModel):
    product_ref: str
    notes: str | None = None
    price: int | None = None
    expires_at: int | None = None


class KeyBulkIn(KeyIssueIn):
    quantity: int


class KeyOut(BaseModel):
    id: str
    code: str
    product_ref: str
    state: str
    bound_email: str | None
    price: int | None
    notes: str | None
    created_at: int
    activated_at: int | None
    expires_at: int | None


class KeyStatsOut(BaseModel):
    total: int
    activated: int
    unused: int
    deactivated: int
    activation_rate: int


class RedeemIn(BaseModel):
    code: str
    email: str


class RedeemOut(BaseModel):
    product_ref: str
    newly_activated: bool
    enrollment_created: bool


def _key_out(key: RegistrationKey) -> KeyOut:
    return KeyOut(
        id=str(key.id),
        code=key.code,
        product_ref=key.product_ref,
        state=key.state,
        bound_email=key.bound_email,
        price=key.price,
        notes=key.notes,
        created_at=key.created_at,
        activated_at=key.activated_at,
        expires_at=key.expires_at,
    )


def _check_price(price: int | None) -> None:
    if price is not None and price < 0:
        raise validation_error("price must be >= 0")


@router.post("", response_model=KeyOut, status_code=status.HTTP_201_CREATED)
async def issue_key(
    body: KeyIssueIn,
    principal: Annotated[Principal, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> KeyOut:
    _check_price(body.price)
    try:
        key = await key_service.issue(
            store,
            product_ref=body.product_ref,
            notes=body.notes,
            price=body.price,
            expires_at=body.expires_at,
            created_by=principal.user_uuid,
        )
    except EngineError as e:
        raise http_error(e) from None
    return _key_out(key)


@router.post("/bulk", response_model=list[KeyOut], status_code=status.HTTP_201_CREATED)
async def issue_keys_bulk(
    body: KeyBulkIn,
    principal: Annotated[Principal, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> list[KeyOut]:
    _check_price(body.price)
    try:
        keys = await key_service.issue_many(
            store,
            product_ref=body.product_ref,
            quantity=body.quantity,
            notes=body.notes,
            price=body.price,
            expires_at=body.expires_at,
            created_by=principal.user_uuid,
        )
    except EngineError as e:
        raise http_error(e) from None
    return [_key_out(k) for k in keys]


@router.get("", response_model=list[KeyOut])
async def list_keys(
    _admin: Annotated[Principal, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
    product_ref: str | None = None,
    state: Literal["issued", "activated", "deactivated"] | None = None,
    email: str | None = None,
) -> list[KeyOut]:
    try:
        keys = await key_service.list_keys(
            store, product_ref=product_ref, state=state, email=email
        )
    except EngineError as e:
        raise http_error(e) from None
    return [_key_out(k) for k in keys]


@router.get("/stats", response_model=KeyStatsOut)
async def key_statistics(
    _admin: Annotated[Principal, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
    product_ref: str | None = None,
) -> KeyStatsOut:
    try:
        stats = await key_service.statistics(store, product_ref)
    except EngineError as e:
        raise http_error(e) from None
    return KeyStatsOut(
        total=stats.total,
        activated=stats.activated,
        unused=stats.unused,
        deactivated=stats.deactivated,
        activation_rate=stats.activation_rate,
    )


# Declared after /stats so "stats" is never read as a code
@router.get("/{code}", response_model=KeyOut)
async def get_key(
    code: str,
    _admin: Annotated[Principal, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> KeyOut:
    try:
        key = await key_service.get_key(store, code)
    except EngineError as e:
        raise http_error(e) from None
    return _key_out(key)


@router.post("/{code}/deactivate", response_model=KeyOut)
async def deactivate_key(
    code: str,
    _admin: Annotated[Principal, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> KeyOut:
    try:
        key = await key_service.deactivate(store, code)
    except EngineError as e:
        raise http_error(e) from None
    return _key_out(key)


@router.post("/redeem", response_model=RedeemOut)
async def redeem_key(
    body: RedeemIn,
    store: Annotated[Store, Depends(get_store)],
) -> RedeemOut:
    if "@" not in body.email.strip():
        raise validation_error("email must be a valid address")
    if not body.code.strip():
        raise validation_error("code must be non-empty")
    try:
        result = await redemption_service.redeem(store, body.code, body.email)
    except EngineError as e:
        raise http_error(e) from None
    return RedeemOut(
        product_ref=result.product_ref,
        newly_activated=result.newly_activated,
        enrollment_created=result.enrollment_created,
    )
