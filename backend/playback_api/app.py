"""Application factory for the Cinestream playback API."""
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import health, progress, proxy, resolve
from .settings import PlaybackSettings
from .state import AppState


def create_app(
    settings: PlaybackSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    ``transport`` replaces the network layer of the shared upstream client,
    which lets tests answer upstream calls with ``httpx.MockTransport``.
    """

    resolved_settings = settings or PlaybackSettings()
    app_state = AppState(settings=resolved_settings, transport=transport)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await app_state.open_http()
        try:
            yield
        finally:
            await app_state.close_http()

    app = FastAPI(title="Cinestream Playback API", version="0.1.0", lifespan=lifespan)
    app.state.app_state = app_state
    app.state.settings = app_state.settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "PUT", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Length", "Content-Range"],
    )

    for router in (
        health.router,
        resolve.router,
        proxy.router,
        progress.router,
    ):
        app.include_router(router)

    return app
