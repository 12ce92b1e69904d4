"""Course access resolution.

A learner can use a course through one of three grants, checked in order:

  enrollment   an Enrollment row exists for (user, course)
  key          an activated registration key for the course is bound to
               the learner's email
  free_course  the course is flagged free

Deactivating a key removes the ``key`` grant but never deletes an
enrollment that was already created from it.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from uuid import UUID

from app.exceptions import NotFound
from app.models.enrollment import Enrollment
from app.models.registration_key import course_ref
from app.models.user import normalize_email
from app.repos.store import Store

logger = logging.getLogger(__name__)

GRANT_ENROLLMENT = "enrollment"
GRANT_KEY = "key"
GRANT_FREE_COURSE = "free_course"
GRANT_NONE = "none"


@dataclass(frozen=True, slots=True)
class AccessDecision:
    has_access: bool
    grant: str
    registration_key_id: UUID | None = None


async def resolve_access(store: Store, user_id: UUID, course_id: UUID) -> AccessDecision:
    course = await store.courses.get_course(course_id)
    if course is None:
        raise NotFound("course", course_id)

    if await store.enrollments.get(user_id, course_id) is not None:
        return AccessDecision(True, GRANT_ENROLLMENT)

    user = await store.users.get_by_id(user_id)
    if user is not None:
        key = await store.keys.find_activated(user.email, course_ref(course_id))
        if key is not None:
            return AccessDecision(True, GRANT_KEY, registration_key_id=key.id)

    if course.is_free:
        return AccessDecision(True, GRANT_FREE_COURSE)
    return AccessDecision(False, GRANT_NONE)


async def check_access(store: Store, email: str, course_id: UUID) -> bool:
    """True iff a key for the course is activated for ``email`` or the user
    registered under ``email`` is enrolled."""
    email = normalize_email(email)
    if await store.keys.find_activated(email, course_ref(course_id)) is not None:
        return True
    user = await store.users.get_by_email(email)
    if user is None:
        return False
    return await store.enrollments.get(user.id, course_id) is not None


async def ensure_enrollment(
    store: Store,
    user_id: UUID,
    course_id: UUID,
    *,
    registration_key_id: UUID | None = None,
    now: int | None = None,
) -> tuple[Enrollment, bool]:
    """Create a 0% enrollment unless one exists; never modifies an existing one."""
    if now is None:
        now = int(datetime.datetime.now(datetime.UTC).timestamp())
    enrollment, created = await store.enrollments.ensure(
        Enrollment(
            user_id=user_id,
            course_id=course_id,
            enrolled_at=now,
            registration_key_id=registration_key_id,
        )
    )
    if created:
        logger.info(
            "Enrollment created user_id=%s course_id=%s",
            user_id,
            course_id,
            extra={"user_id": str(user_id), "course_id": str(course_id)},
        )
    return enrollment, created
