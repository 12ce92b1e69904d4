from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

from app.exceptions import InvalidProductRef

KEY_ISSUED = "issued"
KEY_ACTIVATED = "activated"
KEY_DEACTIVATED = "deactivated"
KEY_STATES = (KEY_ISSUED, KEY_ACTIVATED, KEY_DEACTIVATED)

_COURSE_KIND = "course"
_ADDON_KIND = "addon"


# --- Product references -----------------------------------------------------
# A key grants either a course ("course:<uuid>") or an add-on product that
# lives outside this engine ("addon:<code>").


def course_ref(course_id: UUID) -> str:
    return f"{_COURSE_KIND}:{course_id}"


def addon_ref(code: str) -> str:
    if not code or ":" in code:
        raise InvalidProductRef(f"{_ADDON_KIND}:{code}")
    return f"{_ADDON_KIND}:{code}"


def parse_product_ref(product_ref: str) -> tuple[str, str]:
    kind, sep, value = product_ref.partition(":")
    if not sep or not value:
        raise InvalidProductRef(product_ref)
    if kind == _COURSE_KIND:
        try:
            UUID(value)
        except ValueError:
            raise InvalidProductRef(product_ref) from None
        return kind, value
    if kind == _ADDON_KIND and ":" not in value:
        return kind, value
    raise InvalidProductRef(product_ref)


def course_id_of(product_ref: str) -> UUID | None:
    """Return the course UUID a product ref points at, or None for add-ons."""
    kind, value = parse_product_ref(product_ref)
    return UUID(value) if kind == _COURSE_KIND else None


# --- Keys -------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RegistrationKey:
    """Single-use access token.

    bound_email is set exactly once, when the key moves issued -> activated.
    A deactivated key keeps whatever bound_email it had.
    """

    id: UUID
    code: str
    product_ref: str
    state: str = KEY_ISSUED  # issued|activated|deactivated
    bound_email: str | None = None
    price: int | None = None  # cents
    notes: str | None = None
    created_at: int = 0
    activated_at: int | None = None
    expires_at: int | None = None
    created_by: UUID | None = None

    @staticmethod
    def new(
        *,
        code: str,
        product_ref: str,
        created_at: int,
        price: int | None = None,
        notes: str | None = None,
        expires_at: int | None = None,
        created_by: UUID | None = None,
    ) -> RegistrationKey:
        return RegistrationKey(
            id=uuid4(),
            code=code,
            product_ref=product_ref,
            price=price,
            notes=notes,
            created_at=created_at,
            expires_at=expires_at,
            created_by=created_by,
        )

    @property
    def course_id(self) -> UUID | None:
        return course_id_of(self.product_ref)

    def is_expired(self, now: int) -> bool:
        return self.expires_at is not None and self.expires_at < now


@dataclass(frozen=True, slots=True)
class KeyStatistics:
    total: int = 0
    activated: int = 0
    unused: int = 0
    deactivated: int = 0

    @property
    def activation_rate(self) -> int:
        if self.total == 0:
            return 0
        return round(100 * self.activated / self.total)
