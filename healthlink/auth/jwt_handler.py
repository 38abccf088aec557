from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from healthlink.core import config
from healthlink.models.user import Role


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    role: Role


def create_access_token(user_id: int, role: Role | str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": Role(role).value,
        "exp": issued_at + timedelta(minutes=expire_minutes),
        "iat": issued_at,
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenClaims:
    """Decode and check a bearer token.

    Raises ``jwt.InvalidTokenError`` for a bad signature, an expired token, or
    a missing or malformed ``sub``/``role`` claim.
    """
    payload = jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": ["exp", "sub", "role"]},
    )

    subject = str(payload["sub"])
    if not subject.isdigit():
        raise jwt.InvalidTokenError("Token subject must be a user id")
    try:
        role = Role(payload["role"])
    except ValueError as exc:
        raise jwt.InvalidTokenError("Unknown role in token") from exc

    return TokenClaims(user_id=int(subject), role=role)
