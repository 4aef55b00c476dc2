"""Per-profile watch progress and consecutive-episode endpoints."""
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from backend.player.models import WatchProgress

from ..dependencies import get_progress_store, get_streak_store
from ..schemas import ProgressListModel, ProgressUpdate, StreakAdvanceRequest, StreakStatusModel
from ..stores.progress_store import ProgressStore
from ..stores.streak_store import StreakStore

router = APIRouter(prefix="/profiles/{profile_id}", tags=["progress"])


@router.get("/progress", response_model=ProgressListModel)
def list_progress(profile_id: str, store: ProgressStore = Depends(get_progress_store)) -> ProgressListModel:
    """Return every checkpoint for the profile, most recent first."""

    items = store.list(profile_id)
    return ProgressListModel(items=items, total=len(items))


@router.put("/progress", response_model=WatchProgress)
def save_progress(
    profile_id: str,
    payload: ProgressUpdate,
    store: ProgressStore = Depends(get_progress_store),
) -> WatchProgress:
    """Insert or replace the checkpoint for a title."""

    if payload.kind == "tv" and (payload.season is None or payload.episode is None):
        raise HTTPException(status_code=400, detail="Season and episode are required for TV progress")
    return store.save(profile_id, payload.to_progress())


@router.get("/progress/continue", response_model=ProgressListModel)
def continue_watching(
    profile_id: str,
    limit: int = Query(default=20, ge=1, le=50, description="Maximum number of titles to return."),
    store: ProgressStore = Depends(get_progress_store),
) -> ProgressListModel:
    """Return unfinished titles for the "continue watching" row."""

    items = store.continue_watching(profile_id, limit=limit)
    return ProgressListModel(items=items, total=len(items))


@router.get("/progress/{kind}/{content_id}", response_model=WatchProgress)
def get_progress(
    profile_id: str,
    kind: Literal["movie", "tv"],
    content_id: str,
    season: int | None = Query(default=None, ge=0),
    episode: int | None = Query(default=None, ge=0),
    store: ProgressStore = Depends(get_progress_store),
) -> WatchProgress:
    """Return the checkpoint for one title or episode."""

    progress = store.get(profile_id, content_id, kind, season, episode)
    if progress is None:
        raise HTTPException(status_code=404, detail="No progress recorded")
    return progress


@router.delete("/progress/{kind}/{content_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_progress(
    profile_id: str,
    kind: Literal["movie", "tv"],
    content_id: str,
    season: int | None = Query(default=None, ge=0),
    episode: int | None = Query(default=None, ge=0),
    store: ProgressStore = Depends(get_progress_store),
) -> Response:
    """Forget the checkpoint for one title or episode."""

    if not store.remove(profile_id, content_id, kind, season, episode):
        raise HTTPException(status_code=404, detail="No progress recorded")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/streaks/{show_id}", response_model=StreakStatusModel)
def advance_streak(
    profile_id: str,
    show_id: str,
    payload: StreakAdvanceRequest,
    store: StreakStore = Depends(get_streak_store),
) -> StreakStatusModel:
    """Count an auto-advanced episode and report whether to prompt the viewer."""

    return store.advance(profile_id, show_id, payload.episode_id)


@router.get("/streaks/{show_id}", response_model=StreakStatusModel)
def get_streak(
    profile_id: str,
    show_id: str,
    store: StreakStore = Depends(get_streak_store),
) -> StreakStatusModel:
    """Return the live consecutive-episode count for a show."""

    return store.get(profile_id, show_id)


@router.delete("/streaks/{show_id}", status_code=status.HTTP_204_NO_CONTENT)
def reset_streak(
    profile_id: str,
    show_id: str,
    store: StreakStore = Depends(get_streak_store),
) -> Response:
    """Clear the counter, e.g. after the viewer confirms they are still watching."""

    store.reset(profile_id, show_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
