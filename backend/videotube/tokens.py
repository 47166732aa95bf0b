"""Signing and verification of the access/refresh token pair."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from .config import settings

ALGORITHM = "HS256"


class TokenError(Exception):
    """Raised when a token cannot be verified."""


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_access_token(account: Any) -> str:
    issued_at = _now()
    claims = {
        "sub": str(int(account["id"])),
        "email": account["email"],
        "username": account["username"],
        "fullName": account["full_name"],
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=settings.access_token_expiry_seconds),
    }
    return jwt.encode(claims, settings.access_token_secret, algorithm=ALGORITHM)


def generate_refresh_token(account_id: int) -> str:
    issued_at = _now()
    claims = {
        "sub": str(int(account_id)),
        # Two tokens minted within the same second must still differ.
        "jti": secrets.token_hex(16),
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=settings.refresh_token_expiry_seconds),
    }
    return jwt.encode(claims, settings.refresh_token_secret, algorithm=ALGORITHM)


def generate_token_pair(account: Any) -> TokenPair:
    return TokenPair(
        access_token=generate_access_token(account),
        refresh_token=generate_refresh_token(int(account["id"])),
    )


def _decode(token: str, secret: str) -> dict[str, Any]:
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenError("Invalid token") from exc

    try:
        claims["sub"] = int(claims["sub"])
    except (TypeError, ValueError) as exc:
        raise TokenError("Invalid token subject") from exc
    return claims


def decode_access_token(token: str) -> dict[str, Any]:
    return _decode(token, settings.access_token_secret)


def decode_refresh_token(token: str) -> dict[str, Any]:
    return _decode(token, settings.refresh_token_secret)
