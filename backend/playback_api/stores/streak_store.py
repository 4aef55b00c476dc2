"""Consecutive-episode counter backing the "still watching?" prompt."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from backend.player.models import utc_now

from ..models import EpisodeStreakRecord
from ..schemas import StreakStatusModel

CONFIRM_AFTER = 4
INACTIVITY_WINDOW = timedelta(minutes=30)


class StreakStore:
    """Count auto-advanced episodes per (profile, show).

    A streak lapses after ``INACTIVITY_WINDOW`` without a new episode, and
    advancing one show clears every other show's streak for the profile.
    The prompt is requested exactly when the count reaches ``CONFIRM_AFTER``.
    """

    def __init__(self, engine: Engine, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._engine = engine
        self._lock = Lock()
        self._clock = clock

    def advance(self, profile_id: str, show_id: str, episode_id: str) -> StreakStatusModel:
        """Record that ``episode_id`` of ``show_id`` started playing."""

        now = _as_utc(self._clock())
        with self._lock, Session(self._engine) as session:
            session.exec(
                delete(EpisodeStreakRecord).where(
                    EpisodeStreakRecord.profile_id == profile_id,
                    EpisodeStreakRecord.show_id != show_id,
                )
            )
            record = session.exec(
                select(EpisodeStreakRecord).where(
                    EpisodeStreakRecord.profile_id == profile_id,
                    EpisodeStreakRecord.show_id == show_id,
                )
            ).one_or_none()

            if record is not None and _lapsed(record, now):
                session.delete(record)
                session.flush()
                record = None

            if record is None:
                record = EpisodeStreakRecord(
                    profile_id=profile_id,
                    show_id=show_id,
                    count=1,
                    last_episode_id=episode_id,
                    updated_at=now,
                )
            elif record.last_episode_id != episode_id:
                record.count += 1
                record.last_episode_id = episode_id
                record.updated_at = now
            else:
                # Reloading the same episode neither counts nor extends the window.
                session.commit()
                return _to_model(record)

            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def get(self, profile_id: str, show_id: str) -> StreakStatusModel:
        """Return the live streak, treating a lapsed one as zero."""

        now = _as_utc(self._clock())
        with Session(self._engine) as session:
            record = session.exec(
                select(EpisodeStreakRecord).where(
                    EpisodeStreakRecord.profile_id == profile_id,
                    EpisodeStreakRecord.show_id == show_id,
                )
            ).one_or_none()
            if record is None or _lapsed(record, now):
                return StreakStatusModel(show_id=show_id, count=0)
            return _to_model(record)

    def reset(self, profile_id: str, show_id: str) -> None:
        with self._lock, Session(self._engine) as session:
            session.exec(
                delete(EpisodeStreakRecord).where(
                    EpisodeStreakRecord.profile_id == profile_id,
                    EpisodeStreakRecord.show_id == show_id,
                )
            )
            session.commit()


def _to_model(record: EpisodeStreakRecord) -> StreakStatusModel:
    return StreakStatusModel(
        show_id=record.show_id,
        count=record.count,
        last_episode_id=record.last_episode_id,
        confirm_required=record.count == CONFIRM_AFTER,
    )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive values even for timezone-aware columns.
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)


def _lapsed(record: EpisodeStreakRecord, now: datetime) -> bool:
    return _as_utc(now) - _as_utc(record.updated_at) > INACTIVITY_WINDOW
