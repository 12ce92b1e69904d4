"""Translate engine errors into HTTP responses.

Routers wrap service calls and re-raise::

    except EngineError as e:
        raise http_error(e) from None

The response body is ``{"detail": {"code": ..., "message": ...}}`` so
clients can branch on the stable code instead of the message text.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from app.exceptions import (
    AccessDenied,
    CompletionNotEligible,
    DuplicateCourseSlug,
    DuplicateEpisodeOrder,
    EmailTaken,
    EngineError,
    InvalidProductRef,
    InvalidPassingScore,
    InvalidProgress,
    InvalidQuantity,
    KeyAlreadyUsed,
    KeyDeactivated,
    KeyExpired,
    NotFound,
)

_STATUS_BY_ERROR: dict[type[EngineError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    KeyDeactivated: status.HTTP_409_CONFLICT,
    KeyAlreadyUsed: status.HTTP_409_CONFLICT,
    KeyExpired: status.HTTP_410_GONE,
    InvalidQuantity: status.HTTP_422_UNPROCESSABLE_CONTENT,
    InvalidProductRef: status.HTTP_422_UNPROCESSABLE_CONTENT,
    InvalidProgress: status.HTTP_422_UNPROCESSABLE_CONTENT,
    InvalidPassingScore: status.HTTP_422_UNPROCESSABLE_CONTENT,
    DuplicateEpisodeOrder: status.HTTP_409_CONFLICT,
    DuplicateCourseSlug: status.HTTP_409_CONFLICT,
    EmailTaken: status.HTTP_409_CONFLICT,
    CompletionNotEligible: status.HTTP_409_CONFLICT,
    AccessDenied: status.HTTP_403_FORBIDDEN,
}


def http_error(exc: EngineError) -> HTTPException:
    status_code = next(
        (
            code
            for cls in type(exc).__mro__
            if (code := _STATUS_BY_ERROR.get(cls)) is not None
        ),
        status.HTTP_400_BAD_REQUEST,
    )
    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": exc.message},
    )


def validation_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        detail={"code": "invalid_request", "message": message},
    )
