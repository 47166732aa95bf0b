from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from videotube.api.router import api_router
from videotube.auth_api import router as auth_router
from videotube.config import settings
from videotube.database import close_db, init_db
from videotube.errors import register_exception_handlers


def create_app() -> FastAPI:
    app = FastAPI(title="VideoTube Backend", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(auth_router)
    app.include_router(api_router)

    @app.on_event("startup")
    async def on_startup() -> None:
        await init_db()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await close_db()

    return app


app = create_app()
