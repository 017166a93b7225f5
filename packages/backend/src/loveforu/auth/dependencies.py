"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to resolve the
caller's user id. Two places a token can come from:
1. Authorization: Bearer <jwt> (API clients, the CLI)
2. The auth cookie (browsers: EventSource can't set headers)
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request

from loveforu.auth.jwt import TokenError, verify_token
from loveforu.config import settings


class CurrentIdentity:
    """The authenticated user making the request."""

    def __init__(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        picture_url: Optional[str] = None,
    ):
        self.user_id = user_id
        self.display_name = display_name
        self.picture_url = picture_url


def _extract_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization")
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]
    return request.cookies.get(settings.auth_cookie_name)


def get_current_user_optional(request: Request) -> Optional[CurrentIdentity]:
    """Resolve the caller, or None when no credentials were sent.

    Credentials that are present but invalid are still a 401.
    """
    token = _extract_token(request)
    if not token:
        return None
    try:
        payload = verify_token(token)
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentIdentity(
        user_id=payload["sub"],
        display_name=payload.get("name"),
        picture_url=payload.get("picture"),
    )


def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Resolve the caller (required — 401 if no auth)."""
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
