"""Pydantic models exposed by the playback API."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from backend.player.models import WatchProgress
from backend.resolver.models import StreamCaption, StreamSource


class HealthStatus(BaseModel):
    """Service health payload."""

    status: Literal["ok"] = Field(default="ok")
    version: str = Field(default="0.1.0", description="Semantic version of the API service.")


class ResolveResponse(BaseModel):
    """Ranked sources and captions for one title; both lists are always present."""

    success: bool = Field(..., description="True when at least one stream was found.")
    streams: list[StreamSource] = Field(default_factory=list)
    captions: list[StreamCaption] = Field(default_factory=list)
    error: str | None = Field(default=None, description="Failure description when success is false.")


class ProgressUpdate(BaseModel):
    """Checkpoint payload accepted from players."""

    content_id: str = Field(..., min_length=1, description="Upstream content identifier.")
    kind: Literal["movie", "tv"] = Field(..., description="movie or tv")
    season: int | None = Field(default=None, ge=0)
    episode: int | None = Field(default=None, ge=0)
    position_seconds: float = Field(..., ge=0)
    duration_seconds: float = Field(..., ge=0)
    percent: float | None = Field(
        default=None,
        ge=0,
        le=100,
        description="Derived from position and duration when omitted.",
    )
    title: str | None = Field(default=None)

    def to_progress(self) -> WatchProgress:
        percent = self.percent
        if percent is None:
            percent = (
                min(self.position_seconds / self.duration_seconds * 100, 100.0)
                if self.duration_seconds > 0
                else 0.0
            )
        return WatchProgress(
            content_id=self.content_id,
            kind=self.kind,
            season=self.season,
            episode=self.episode,
            position_seconds=self.position_seconds,
            duration_seconds=self.duration_seconds,
            percent=percent,
            title=self.title,
        )


class ProgressListModel(BaseModel):
    """Most-recent-first list of checkpoints for a profile."""

    items: list[WatchProgress] = Field(default_factory=list)
    total: int = Field(..., ge=0)


class StreakAdvanceRequest(BaseModel):
    """Episode that just started after an automatic advance."""

    episode_id: str = Field(..., min_length=1, description="Stable identifier of the episode, e.g. 's1e3'.")


class StreakStatusModel(BaseModel):
    """Consecutive-episode counter state for one show."""

    show_id: str
    count: int = Field(..., ge=0)
    last_episode_id: str | None = Field(default=None)
    confirm_required: bool = Field(
        default=False,
        description="True when the player should pause and ask whether the viewer is still watching.",
    )
