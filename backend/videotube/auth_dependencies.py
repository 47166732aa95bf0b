from __future__ import annotations

from fastapi import Header, Request

from . import account_repository
from .auth_utils import extract_bearer_token
from .errors import AuthError
from .session_tokens import ACCESS_COOKIE
from .tokens import TokenError, decode_access_token


async def get_current_account(
    request: Request,
    authorization: str | None = Header(default=None),
):
    """Resolve the caller's account row from the access token cookie or bearer header."""
    token = request.cookies.get(ACCESS_COOKIE) or extract_bearer_token(authorization)
    if not token:
        raise AuthError("Unauthorized request")

    try:
        claims = decode_access_token(token)
    except TokenError as exc:
        raise AuthError("Invalid access token") from exc

    account = await account_repository.get_account_by_id(claims["sub"])
    if account is None:
        raise AuthError("Invalid access token")
    return account
