"""Bearer token verification for learner and admin requests (ES256).

The engine trusts tokens minted by the platform's identity service; the
subject is the learner's user id and ``roles`` drives admin checks.
create_access_token exists for dev tooling and tests.

Verification uses the identity service's public key from JWT_PUBLIC_KEY
(PEM) when set.  Otherwise an ephemeral EC key pair is generated on import
and only tokens from create_access_token verify.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from app.core.config import SETTINGS

_private_key = ec.generate_private_key(ec.SECP256R1())
if SETTINGS.jwt_public_key_pem:
    _public_key = serialization.load_pem_public_key(
        SETTINGS.jwt_public_key_pem.encode()
    )
else:
    _public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "course-access-engine"
AUDIENCE = "course-access-engine"
ACCESS_TOKEN_TTL_MIN = 15


def create_access_token(*, sub: str, roles: list[str] | None = None) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["learner"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature, exp, iss and aud; return the claims.

    Algorithm is pinned to ES256.  Raises jwt.InvalidTokenError (or its
    subclass ExpiredSignatureError) on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
