"""Value types shared by the playback engine and the progress store."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

ContentKind = Literal["movie", "tv"]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    BUFFERING = "buffering"
    SOURCE_ERROR = "source_error"
    EXHAUSTED = "exhausted"


class WatchProgress(BaseModel):
    """Snapshot of how far a viewer got through a title."""

    content_id: str = Field(..., description="Upstream content identifier")
    kind: ContentKind = Field(..., description="movie or tv")
    season: Optional[int] = Field(default=None, description="Season number for TV content")
    episode: Optional[int] = Field(default=None, description="Episode number for TV content")
    position_seconds: float = Field(..., ge=0, description="Playback position in seconds")
    duration_seconds: float = Field(..., ge=0, description="Media duration in seconds")
    percent: float = Field(..., ge=0, le=100, description="Position as a percentage of duration")
    last_watched: datetime = Field(default_factory=utc_now, description="Checkpoint time (UTC)")
    title: Optional[str] = Field(default=None, description="Display title, if known")

    @property
    def resumable(self) -> bool:
        return 0 < self.percent < 90


@dataclass(frozen=True, slots=True)
class PlaybackContent:
    """Identifies what is playing so checkpoints can be keyed and restored."""

    content_id: str
    kind: ContentKind
    season: int | None = None
    episode: int | None = None
    title: str | None = None

    def snapshot(self, position: float, duration: float, percent: float) -> WatchProgress:
        episodic = self.kind == "tv"
        return WatchProgress(
            content_id=self.content_id,
            kind=self.kind,
            season=self.season if episodic else None,
            episode=self.episode if episodic else None,
            position_seconds=position,
            duration_seconds=duration,
            percent=percent,
            title=self.title,
        )


@dataclass(frozen=True, slots=True)
class HlsLevel:
    """One variant advertised by a parsed master playlist."""

    codecs: str = ""
    height: int | None = None
    bitrate: int | None = None


@dataclass(frozen=True, slots=True)
class StateChange:
    """Notification delivered to engine subscribers."""

    previous: PlaybackState
    current: PlaybackState
    index: int
    error: BaseException | None = None
