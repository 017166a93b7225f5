"""JWT token creation and verification.

Learn: After LINE login the backend issues a signed access token that
carries the user id in `sub` plus display name / picture for the UI.
Verification checks signature, lifetime, issuer and audience, with a
small leeway for clock skew between servers.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from loveforu.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    user_id: str,
    display_name: Optional[str] = None,
    picture_url: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a JWT access token."""
    now = datetime.now(timezone.utc)
    expires = now + timedelta(
        minutes=expires_minutes or settings.jwt_expiration_minutes
    )
    payload = {
        "sub": user_id,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "nbf": now,
        "iat": now,
        "exp": expires,
    }
    if display_name:
        payload["name"] = display_name
    if picture_url:
        payload["picture"] = picture_url
    return jwt.encode(
        payload, settings.jwt_signing_key, algorithm=settings.jwt_algorithm
    )


def verify_token(token: str) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_signing_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            leeway=settings.jwt_leeway_seconds,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
    if not payload.get("sub"):
        raise TokenError("Invalid token: empty subject")
    return payload
