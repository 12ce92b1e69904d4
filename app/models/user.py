from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True, slots=True)
class User:
    """Learner or admin account, as far as the engine needs one.

    Keys are redeemed by email; progress is tracked by id.  The engine
    resolves one from the other through the user repo.
    """

    id: UUID
    email: str
    name: str = ""
    roles: tuple[str, ...] = ()  # user|admin
    is_active: bool = True

    @staticmethod
    def new(*, email: str, name: str = "", roles: tuple[str, ...] = ()) -> User:
        return User(id=uuid4(), email=normalize_email(email), name=name, roles=roles)
