"""Database models for the playback API."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from backend.player.models import utc_now


class WatchProgressRecord(SQLModel, table=True):
    """One checkpoint per (profile, content, season, episode).

    Rows are re-inserted on every save, so a higher ``id`` means more recent.
    """

    __tablename__ = "watch_progress"

    id: int | None = Field(default=None, primary_key=True)
    profile_id: str = Field(index=True)
    content_id: str = Field(index=True)
    kind: str = Field(index=True)
    season: int | None = Field(default=None)
    episode: int | None = Field(default=None)
    title: str | None = Field(default=None)
    position_seconds: float = Field(default=0.0)
    duration_seconds: float = Field(default=0.0)
    percent: float = Field(default=0.0, index=True)
    last_watched: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True), nullable=False)


class EpisodeStreakRecord(SQLModel, table=True):
    """Consecutive auto-advanced episodes of one show for one profile."""

    __tablename__ = "episode_streaks"
    __table_args__ = (UniqueConstraint("profile_id", "show_id", name="uq_episode_streak_profile_show"),)

    id: int | None = Field(default=None, primary_key=True)
    profile_id: str = Field(index=True)
    show_id: str = Field(index=True)
    count: int = Field(default=0)
    last_episode_id: str | None = Field(default=None)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True), nullable=False)
