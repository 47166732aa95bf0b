from __future__ import annotations

from fastapi import APIRouter

from videotube.database import ping_db

router = APIRouter(tags=["system"])


@router.get("/api/health")
async def health() -> dict[str, object]:
    db_ok = await ping_db()
    return {
        "ok": db_ok,
        "database": "up" if db_ok else "down",
    }
