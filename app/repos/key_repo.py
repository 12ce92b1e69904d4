from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol

from app.exceptions import DuplicateKeyCode
from app.models.registration_key import (
    KEY_ACTIVATED,
    KEY_DEACTIVATED,
    KEY_ISSUED,
    KeyStatistics,
    RegistrationKey,
)


class KeyRepo(Protocol):
    async def add_many(self, keys: list[RegistrationKey]) -> None: ...
    async def get_by_code(self, code: str) -> RegistrationKey | None: ...
    async def activate(self, code: str, email: str, now: int) -> RegistrationKey | None: ...
    async def deactivate(self, code: str) -> RegistrationKey | None: ...
    async def list_keys(
        self,
        *,
        product_ref: str | None = None,
        state: str | None = None,
        bound_email: str | None = None,
    ) -> list[RegistrationKey]: ...
    async def statistics(self, product_ref: str | None = None) -> KeyStatistics: ...
    async def find_activated(
        self, email: str, product_ref: str
    ) -> RegistrationKey | None: ...


class InMemoryKeyRepo:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_code: dict[str, RegistrationKey] = {}

    async def add_many(self, keys: list[RegistrationKey]) -> None:
        """Store all keys or none of them.

        Raises DuplicateKeyCode if any code is already stored or repeated
        within the batch.
        """
        with self._lock:
            codes = [k.code for k in keys]
            if len(set(codes)) != len(codes) or any(c in self._by_code for c in codes):
                raise DuplicateKeyCode()
            for key in keys:
                self._by_code[key.code] = key

    async def get_by_code(self, code: str) -> RegistrationKey | None:
        return self._by_code.get(code)

    async def activate(self, code: str, email: str, now: int) -> RegistrationKey | None:
        """Compare-and-set issued -> activated.

        Returns the activated key, or None if the key was not in the issued
        state, or had expired, when the lock was taken.
        """
        with self._lock:
            key = self._by_code.get(code)
            if key is None or key.state != KEY_ISSUED or key.is_expired(now):
                return None
            activated = replace(
                key, state=KEY_ACTIVATED, bound_email=email, activated_at=now
            )
            self._by_code[code] = activated
            return activated

    async def deactivate(self, code: str) -> RegistrationKey | None:
        with self._lock:
            key = self._by_code.get(code)
            if key is None:
                return None
            if key.state != KEY_DEACTIVATED:
                key = replace(key, state=KEY_DEACTIVATED)
                self._by_code[code] = key
            return key

    async def list_keys(
        self,
        *,
        product_ref: str | None = None,
        state: str | None = None,
        bound_email: str | None = None,
    ) -> list[RegistrationKey]:
        keys = [
            k
            for k in self._by_code.values()
            if (product_ref is None or k.product_ref == product_ref)
            and (state is None or k.state == state)
            and (bound_email is None or k.bound_email == bound_email)
        ]
        keys.sort(key=lambda k: (k.created_at, k.code), reverse=True)
        return keys

    async def statistics(self, product_ref: str | None = None) -> KeyStatistics:
        keys = [
            k
            for k in self._by_code.values()
            if product_ref is None or k.product_ref == product_ref
        ]
        return KeyStatistics(
            total=len(keys),
            activated=sum(1 for k in keys if k.activated_at is not None),
            unused=sum(1 for k in keys if k.state == KEY_ISSUED),
            deactivated=sum(1 for k in keys if k.state == KEY_DEACTIVATED),
        )

    async def find_activated(self, email: str, product_ref: str) -> RegistrationKey | None:
        for key in self._by_code.values():
            if (
                key.state == KEY_ACTIVATED
                and key.bound_email == email
                and key.product_ref == product_ref
            ):
                return key
        return None

    def clear(self) -> None:
        with self._lock:
            self._by_code.clear()
