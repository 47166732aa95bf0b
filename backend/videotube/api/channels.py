from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from videotube import channel_repository
from videotube.auth_dependencies import get_current_account
from videotube.auth_utils import normalize_username
from videotube.errors import NotFoundError, ValidationError
from videotube.schemas.response import ApiResponse

router = APIRouter(prefix="/api/v1/users", tags=["channels"])


@router.get("/c/{username}")
async def channel_profile(username: str, account=Depends(get_current_account)) -> dict[str, Any]:
    username_value = normalize_username(username)
    if not username_value:
        raise ValidationError("Username is missing")

    channel = await channel_repository.get_channel_profile(username_value, int(account["id"]))
    if channel is None:
        raise NotFoundError("Channel does not exist")
    return ApiResponse.ok(channel, "User channel fetched successfully")


@router.get("/history")
async def watch_history(account=Depends(get_current_account)) -> dict[str, Any]:
    history = await channel_repository.get_watch_history(int(account["id"]))
    return ApiResponse.ok(history, "Watch history fetched successfully")
