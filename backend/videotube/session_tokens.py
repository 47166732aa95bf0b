"""Access/refresh token lifecycle.

The refresh token persisted on the account row is the single live session:
issuing a pair replaces it, refreshing swaps it atomically, logout clears it.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Response

from . import account_repository
from .auth_utils import hash_password, verify_password
from .config import settings
from .errors import ApiError, AuthError, InternalError, NotFoundError, ValidationError
from .tokens import TokenError, TokenPair, decode_refresh_token, generate_token_pair

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def _cookie_kwargs() -> dict[str, Any]:
    return {
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def set_session_cookies(response: Response, tokens: TokenPair) -> None:
    kwargs = _cookie_kwargs()
    response.set_cookie(
        ACCESS_COOKIE,
        tokens.access_token,
        max_age=settings.access_token_expiry_seconds,
        **kwargs,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        tokens.refresh_token,
        max_age=settings.refresh_token_expiry_seconds,
        **kwargs,
    )


def clear_session_cookies(response: Response) -> None:
    kwargs = _cookie_kwargs()
    response.delete_cookie(ACCESS_COOKIE, **kwargs)
    response.delete_cookie(REFRESH_COOKIE, **kwargs)


async def issue_session(account: Any) -> TokenPair:
    tokens = generate_token_pair(account)
    stored = await account_repository.store_refresh_token(int(account["id"]), tokens.refresh_token)
    if not stored:
        raise InternalError("Something went wrong while generating refresh and access token")
    return tokens


async def authenticate(username: str | None, email: str | None, password: str):
    lookup = account_repository.AccountLookup.from_identifiers(username, email)
    if lookup is None:
        raise ValidationError("username or email is required")

    account = await account_repository.find_account(lookup)
    if account is None:
        raise NotFoundError("User does not exist")

    if not verify_password(password, account["password_hash"]):
        logger.info("Rejected credentials for account %s", account["id"])
        raise AuthError("Invalid user credentials")
    return account


async def login(username: str | None, email: str | None, password: str) -> tuple[Any, TokenPair]:
    account = await authenticate(username, email, password)
    tokens = await issue_session(account)
    logger.info("Account %s logged in", account["id"])
    return account, tokens


async def logout(account_id: int) -> None:
    await account_repository.clear_refresh_token(int(account_id))
    logger.info("Account %s logged out", account_id)


async def refresh_session(incoming_token: str | None) -> TokenPair:
    token = (incoming_token or "").strip()
    if not token:
        raise AuthError("Unauthorized request")

    try:
        claims = decode_refresh_token(token)
        account = await account_repository.get_account_by_id(claims["sub"])
        if account is None:
            raise AuthError("Invalid refresh token")

        if token != account["refresh_token"]:
            logger.warning("Stale refresh token presented for account %s", account["id"])
            raise AuthError("Refresh token is expired or used")

        tokens = generate_token_pair(account)
        rotated = await account_repository.rotate_refresh_token(
            int(account["id"]),
            token,
            tokens.refresh_token,
        )
        if not rotated:
            logger.warning("Concurrent refresh lost the race for account %s", account["id"])
            raise AuthError("Refresh token is expired or used")
    except AuthError:
        raise
    except TokenError as exc:
        raise AuthError(str(exc)) from exc
    except ApiError as exc:
        raise AuthError(exc.message) from exc
    except Exception as exc:
        logger.exception("Refresh token verification failed")
        raise AuthError(str(exc) or "Invalid refresh token") from exc

    logger.info("Account %s refreshed its session", account["id"])
    return tokens


async def change_password(account_id: int, old_password: str, new_password: str) -> None:
    if not new_password or not new_password.strip():
        raise ValidationError("New password is required")

    account = await account_repository.get_account_by_id(int(account_id))
    if account is None:
        raise NotFoundError("User does not exist")

    if not verify_password(old_password, account["password_hash"]):
        raise AuthError("Invalid old password")

    await account_repository.update_password(
        int(account_id),
        hash_password(new_password),
        revoke_session=settings.revoke_sessions_on_password_change,
    )
    logger.info("Account %s changed its password", account_id)
