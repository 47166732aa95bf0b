from __future__ import annotations

from fastapi import APIRouter

from videotube.api.channels import router as channels_router
from videotube.api.system import router as system_router

api_router = APIRouter()
api_router.include_router(system_router)
api_router.include_router(channels_router)
