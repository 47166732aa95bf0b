from __future__ import annotations

import logging
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from pydantic import BaseModel
from pydantic import ValidationError as PayloadError

from . import account_repository, session_tokens
from .auth_dependencies import get_current_account
from .auth_schemas import ChangePasswordRequest, LoginRequest, RefreshTokenRequest, UpdateAccountRequest
from .auth_utils import (
    hash_password,
    is_blank,
    normalize_email,
    normalize_username,
    serialize_account,
    validate_email,
)
from .errors import AuthError, ConflictError, InternalError, NotFoundError, ValidationError
from .media_gateway import upload_form_file
from .schemas.response import ApiResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])

PayloadT = TypeVar("PayloadT", bound=BaseModel)

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def _read_payload(request: Request, model: type[PayloadT]) -> PayloadT:
    """Accept the same fields as a JSON object or as a form."""
    content_type = (request.headers.get("content-type") or "").lower()
    data: Any
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        data = {key: value for key, value in form.items() if isinstance(value, str)}
    elif await request.body():
        try:
            data = await request.json()
        except ValueError as exc:
            raise ValidationError("Malformed JSON body") from exc
    else:
        data = {}

    if not isinstance(data, dict):
        raise ValidationError("Request body must be an object")
    try:
        return model.model_validate(data)
    except PayloadError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"{field}: {first.get('msg')}" if field else "Invalid request") from exc


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    fullName: str | None = Form(default=None),
    username: str | None = Form(default=None),
    email: str | None = Form(default=None),
    password: str | None = Form(default=None),
    avatar: UploadFile | None = File(default=None),
    coverImage: UploadFile | None = File(default=None),
) -> dict[str, Any]:
    if any(is_blank(field) for field in (fullName, email, username, password)):
        raise ValidationError("All fields are required")

    email_value = normalize_email(email)
    username_value = normalize_username(username)
    if not validate_email(email_value):
        raise ValidationError("Enter a valid email")

    if await account_repository.account_exists(username_value, email_value):
        raise ConflictError("User with email or username already exists")

    if avatar is None or not avatar.filename:
        raise ValidationError("Avatar file is required")

    avatar_url = await upload_form_file(avatar)
    cover_image_url = await upload_form_file(coverImage)
    if not avatar_url:
        raise ValidationError("Avatar file is required")

    account = await account_repository.create_account(
        full_name=fullName.strip(),
        username=username_value,
        email=email_value,
        password_hash=hash_password(password),
        avatar=avatar_url,
        cover_image=cover_image_url or "",
    )
    if account is None:
        raise InternalError("Something went wrong while registering the user")

    logger.info("Registered account %s", account["id"])
    return ApiResponse.ok(
        serialize_account(account),
        "User registered successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/login")
async def login(request: Request, response: Response) -> dict[str, Any]:
    payload = await _read_payload(request, LoginRequest)
    account, tokens = await session_tokens.login(payload.username, payload.email, payload.password)
    session_tokens.set_session_cookies(response, tokens)
    return ApiResponse.ok(
        {
            "user": serialize_account(account),
            "accessToken": tokens.access_token,
            "refreshToken": tokens.refresh_token,
        },
        "User logged in successfully",
    )


@router.post("/logout")
async def logout(response: Response, account=Depends(get_current_account)) -> dict[str, Any]:
    await session_tokens.logout(int(account["id"]))
    session_tokens.clear_session_cookies(response)
    return ApiResponse.ok({}, "User logged out successfully")


@router.post("/refresh-token")
async def refresh_access_token(request: Request, response: Response) -> dict[str, Any]:
    incoming = request.cookies.get(session_tokens.REFRESH_COOKIE)
    if not incoming:
        try:
            payload = await _read_payload(request, RefreshTokenRequest)
        except ValidationError as exc:
            raise AuthError("Invalid refresh token") from exc
        incoming = payload.refreshToken

    tokens = await session_tokens.refresh_session(incoming)
    session_tokens.set_session_cookies(response, tokens)
    return ApiResponse.ok(
        {"accessToken": tokens.access_token, "refreshToken": tokens.refresh_token},
        "Access token refreshed",
    )


@router.post("/change-password")
async def change_password(request: Request, account=Depends(get_current_account)) -> dict[str, Any]:
    payload = await _read_payload(request, ChangePasswordRequest)
    await session_tokens.change_password(int(account["id"]), payload.oldPassword, payload.newPassword)
    return ApiResponse.ok({}, "Password changed successfully")


@router.get("/current-user")
async def current_user(account=Depends(get_current_account)) -> dict[str, Any]:
    return ApiResponse.ok(serialize_account(account), "Current user fetched successfully")


@router.patch("/update-account")
async def update_account_details(request: Request, account=Depends(get_current_account)) -> dict[str, Any]:
    payload = await _read_payload(request, UpdateAccountRequest)
    if is_blank(payload.fullName) or is_blank(payload.email):
        raise ValidationError("All fields are required")

    email_value = normalize_email(payload.email)
    if not validate_email(email_value):
        raise ValidationError("Enter a valid email")

    row = await account_repository.update_account_details(
        int(account["id"]),
        payload.fullName.strip(),
        email_value,
    )
    if row is None:
        raise NotFoundError("User does not exist")
    return ApiResponse.ok(serialize_account(row), "Account details updated successfully")


async def _replace_media(account: Any, upload: UploadFile | None, field: str, label: str) -> dict[str, Any]:
    if upload is None or not upload.filename:
        raise ValidationError(f"{label} file is missing")

    url = await upload_form_file(upload)
    if not url:
        raise ValidationError(f"Error while uploading {label.lower()}")

    if field == "avatar":
        row = await account_repository.update_avatar(int(account["id"]), url)
    else:
        row = await account_repository.update_cover_image(int(account["id"]), url)
    if row is None:
        raise NotFoundError("User does not exist")
    return serialize_account(row)


@router.patch("/avatar")
async def update_user_avatar(
    avatar: UploadFile | None = File(default=None),
    account=Depends(get_current_account),
) -> dict[str, Any]:
    data = await _replace_media(account, avatar, "avatar", "Avatar")
    return ApiResponse.ok(data, "Avatar updated successfully")


@router.patch("/cover-image")
async def update_user_cover_image(
    coverImage: UploadFile | None = File(default=None),
    account=Depends(get_current_account),
) -> dict[str, Any]:
    data = await _replace_media(account, coverImage, "cover_image", "Cover image")
    return ApiResponse.ok(data, "Cover image updated successfully")
