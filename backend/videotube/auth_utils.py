from __future__ import annotations

import base64
import hashlib
import hmac
import re
import secrets
from typing import Any

from .config import settings

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def normalize_username(username: str | None) -> str:
    return (username or "").strip().lower()


def validate_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def b64_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def b64_decode(raw: str) -> bytes:
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding)


def hash_password(password: str, iterations: int | None = None) -> str:
    rounds = int(iterations or settings.password_hash_iterations)
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        rounds,
    )
    return f"pbkdf2_sha256${rounds}${b64_encode(salt)}${b64_encode(digest)}"


def verify_password(password: str, encoded_hash: str | None) -> bool:
    try:
        algorithm, iterations_raw, salt_raw, digest_raw = (encoded_hash or "").split("$", 3)
        if algorithm != "pbkdf2_sha256":
            return False
        iterations = int(iterations_raw)
        salt = b64_decode(salt_raw)
        expected_digest = b64_decode(digest_raw)
    except (ValueError, TypeError):
        return False

    actual_digest = hashlib.pbkdf2_hmac(
        "sha256",
        (password or "").encode("utf-8"),
        salt,
        iterations,
    )
    return hmac.compare_digest(actual_digest, expected_digest)


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    value = authorization.strip()
    scheme, _, credentials = value.partition(" ")
    if scheme.lower() == "bearer":
        value = credentials.strip()
    return value or None


def to_isoformat(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_account(row: Any) -> dict[str, object]:
    """Outward view of an account row; credentials and session never leave here."""
    return {
        "id": int(row["id"]),
        "username": row["username"],
        "email": row["email"],
        "fullName": row["full_name"],
        "avatar": row["avatar"],
        "coverImage": row.get("cover_image") or "",
        "watchHistory": [int(video_id) for video_id in (row.get("watch_history") or [])],
        "createdAt": to_isoformat(row.get("created_at")),
        "updatedAt": to_isoformat(row.get("updated_at")),
    }
