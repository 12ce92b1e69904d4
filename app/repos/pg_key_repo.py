"""PostgreSQL implementation of KeyRepo.

activate() is a single conditional UPDATE on issued, unexpired keys, so of N
concurrent redemptions of one code exactly one sees a returned row.
"""

from __future__ import annotations

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import RegistrationKeyRow
from app.exceptions import DuplicateKeyCode
from app.models.registration_key import (
    KEY_ACTIVATED,
    KEY_DEACTIVATED,
    KEY_ISSUED,
    KeyStatistics,
    RegistrationKey,
)


class PgKeyRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_many(self, keys: list[RegistrationKey]) -> None:
        rows = [
            RegistrationKeyRow(
                id=k.id,
                code=k.code,
                product_ref=k.product_ref,
                state=k.state,
                bound_email=k.bound_email,
                price=k.price,
                notes=k.notes,
                created_at=k.created_at,
                activated_at=k.activated_at,
                expires_at=k.expires_at,
                created_by=k.created_by,
            )
            for k in keys
        ]
        try:
            async with self._session.begin_nested():
                self._session.add_all(rows)
        except IntegrityError:
            raise DuplicateKeyCode() from None

    async def get_by_code(self, code: str) -> RegistrationKey | None:
        stmt = select(RegistrationKeyRow).where(RegistrationKeyRow.code == code)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_key(row) if row is not None else None

    async def activate(self, code: str, email: str, now: int) -> RegistrationKey | None:
        stmt = (
            update(RegistrationKeyRow)
            .where(
                RegistrationKeyRow.code == code,
                RegistrationKeyRow.state == KEY_ISSUED,
                or_(
                    RegistrationKeyRow.expires_at.is_(None),
                    RegistrationKeyRow.expires_at >= now,
                ),
            )
            .values(state=KEY_ACTIVATED, bound_email=email, activated_at=now)
            .returning(RegistrationKeyRow)
            .execution_options(synchronize_session=False)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_key(row) if row is not None else None

    async def deactivate(self, code: str) -> RegistrationKey | None:
        stmt = (
            update(RegistrationKeyRow)
            .where(RegistrationKeyRow.code == code)
            .values(state=KEY_DEACTIVATED)
            .returning(RegistrationKeyRow)
            .execution_options(synchronize_session=False)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_key(row) if row is not None else None

    async def list_keys(
        self,
        *,
        product_ref: str | None = None,
        state: str | None = None,
        bound_email: str | None = None,
    ) -> list[RegistrationKey]:
        stmt = select(RegistrationKeyRow)
        if product_ref is not None:
            stmt = stmt.where(RegistrationKeyRow.product_ref == product_ref)
        if state is not None:
            stmt = stmt.where(RegistrationKeyRow.state == state)
        if bound_email is not None:
            stmt = stmt.where(RegistrationKeyRow.bound_email == bound_email)
        stmt = stmt.order_by(
            RegistrationKeyRow.created_at.desc(), RegistrationKeyRow.code.desc()
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_key(r) for r in rows]

    async def statistics(self, product_ref: str | None = None) -> KeyStatistics:
        def _count_where(cond):
            return func.coalesce(func.sum(case((cond, 1), else_=0)), 0)

        stmt = select(
            func.count(RegistrationKeyRow.id),
            _count_where(RegistrationKeyRow.activated_at.is_not(None)),
            _count_where(RegistrationKeyRow.state == KEY_ISSUED),
            _count_where(RegistrationKeyRow.state == KEY_DEACTIVATED),
        )
        if product_ref is not None:
            stmt = stmt.where(RegistrationKeyRow.product_ref == product_ref)
        total, activated, unused, deactivated = (await self._session.execute(stmt)).one()
        return KeyStatistics(
            total=int(total),
            activated=int(activated),
            unused=int(unused),
            deactivated=int(deactivated),
        )

    async def find_activated(self, email: str, product_ref: str) -> RegistrationKey | None:
        stmt = (
            select(RegistrationKeyRow)
            .where(
                RegistrationKeyRow.state == KEY_ACTIVATED,
                RegistrationKeyRow.bound_email == email,
                RegistrationKeyRow.product_ref == product_ref,
            )
            .order_by(RegistrationKeyRow.activated_at)
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_key(row) if row is not None else None


def _row_to_key(row: RegistrationKeyRow) -> RegistrationKey:
    return RegistrationKey(
        id=row.id,
        code=row.code,
        product_ref=row.product_ref,
        state=row.state,
        bound_email=row.bound_email,
        price=row.price,
        notes=row.notes,
        created_at=row.created_at,
        activated_at=row.activated_at,
        expires_at=row.expires_at,
        created_by=row.created_by,
    )
