from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller extracted from a validated JWT.

    user_id: JWT subject, the learner's UUID as a string
    roles: platform roles (user, admin)
    """

    user_id: str
    roles: frozenset[str]

    @property
    def user_uuid(self) -> UUID:
        return UUID(self.user_id)

    def has_role(self, role: str) -> bool:
        return role in self.roles
