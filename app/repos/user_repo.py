from __future__ import annotations

import threading
from typing import Protocol
from uuid import UUID

from app.exceptions import EmailTaken
from app.models.user import User, normalize_email


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def get_by_email(self, email: str) -> User | None: ...
    async def add(self, user: User) -> None: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_email: dict[str, User] = {}
        self._by_id: dict[UUID, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        return self._by_email.get(normalize_email(email))

    async def add(self, user: User) -> None:
        with self._lock:
            if user.email in self._by_email:
                raise EmailTaken()
            self._by_email[user.email] = user
            self._by_id[user.id] = user

    def clear(self) -> None:
        with self._lock:
            self._by_email.clear()
            self._by_id.clear()
