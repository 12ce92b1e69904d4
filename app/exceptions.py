"""Domain errors raised by the engine services.

Every caller-visible failure is an ``EngineError`` subclass with a stable
``code``.  Routers translate them into HTTP responses (see app/api/errors.py);
nothing inside the engine retries on them.
"""

from __future__ import annotations


class EngineError(Exception):
    code = "engine_error"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class NotFound(EngineError):
    """Referenced key, course, episode, quiz or enrollment does not exist."""

    code = "not_found"

    def __init__(self, what: str, identifier: object = "") -> None:
        self.what = what
        self.identifier = identifier
        super().__init__(f"{what} not found")


class KeyDeactivated(EngineError):
    code = "key_deactivated"

    def __init__(self) -> None:
        super().__init__("This registration key is deactivated")


class KeyAlreadyUsed(EngineError):
    code = "key_already_used"

    def __init__(self) -> None:
        super().__init__("This registration key has already been activated")


class KeyExpired(EngineError):
    code = "key_expired"

    def __init__(self) -> None:
        super().__init__("This registration key has expired")


class InvalidQuantity(EngineError):
    code = "invalid_quantity"

    def __init__(self, quantity: int, low: int, high: int) -> None:
        self.quantity = quantity
        super().__init__(f"quantity must be between {low} and {high} (got {quantity})")


class InvalidProductRef(EngineError):
    code = "invalid_product_ref"

    def __init__(self, product_ref: str) -> None:
        self.product_ref = product_ref
        super().__init__(
            f"product_ref must be 'course:<uuid>' or 'addon:<code>' (got {product_ref!r})"
        )


class InvalidProgress(EngineError):
    code = "invalid_progress"


class InvalidPassingScore(EngineError):
    code = "invalid_passing_score"

    def __init__(self, passing_score: int) -> None:
        self.passing_score = passing_score
        super().__init__(f"passing_score must be between 0 and 100 (got {passing_score})")


class DuplicateEpisodeOrder(EngineError):
    code = "duplicate_episode_order"

    def __init__(self, order: int) -> None:
        self.order = order
        super().__init__(f"an episode with order {order} already exists in this course")


class CompletionNotEligible(EngineError):
    """Watch-time or quiz requirement not yet satisfied."""

    code = "completion_not_eligible"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Episode cannot be completed yet: {reason}")


class AccessDenied(EngineError):
    """Course not accessible to the caller, or the episode is still locked."""

    code = "access_denied"


class DuplicateKeyCode(Exception):
    """Raised by key repos when a generated code collides with a stored one.

    Internal: the key service regenerates and retries, callers never see it.
    """


class DuplicateCourseSlug(EngineError):
    code = "duplicate_course_slug"

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"a course with slug {slug!r} already exists")


class EmailTaken(EngineError):
    """Another user id is already registered under this email."""

    code = "email_taken"

    def __init__(self) -> None:
        super().__init__("email already registered to a different user")
