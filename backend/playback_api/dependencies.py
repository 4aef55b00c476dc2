"""FastAPI dependencies for the playback API."""
from fastapi import Depends, HTTPException, Request

from backend.resolver.proxy import HLSProxy, SubtitleProxy
from backend.resolver.stream_resolver import SourceResolver

from .state import AppState
from .stores.progress_store import ProgressStore
from .stores.streak_store import StreakStore


def get_app_state(request: Request) -> AppState:
    """Resolve the shared application state from the FastAPI request."""
    return request.app.state.app_state


def _require(component, name: str):
    if component is None:
        raise HTTPException(status_code=503, detail=f"{name} is not ready")
    return component


def get_resolver(app_state: AppState = Depends(get_app_state)) -> SourceResolver:
    """Return the source resolver bound to the shared HTTP client."""
    return _require(app_state.resolver, "Resolver")


def get_hls_proxy(app_state: AppState = Depends(get_app_state)) -> HLSProxy:
    """Return the manifest and segment proxy."""
    return _require(app_state.hls_proxy, "HLS proxy")


def get_subtitle_proxy(app_state: AppState = Depends(get_app_state)) -> SubtitleProxy:
    """Return the caption proxy."""
    return _require(app_state.subtitle_proxy, "Subtitle proxy")


def get_progress_store(app_state: AppState = Depends(get_app_state)) -> ProgressStore:
    """Return the watch progress store dependency."""
    return app_state.progress_store


def get_streak_store(app_state: AppState = Depends(get_app_state)) -> StreakStore:
    """Return the consecutive-episode counter store."""
    return app_state.streak_store
