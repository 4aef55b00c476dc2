"""Database-backed watch progress store, scoped per profile."""
from __future__ import annotations

from threading import Lock
from typing import Any

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from backend.player.models import PlaybackContent, WatchProgress, utc_now

from ..models import WatchProgressRecord

MAX_ENTRIES_PER_PROFILE = 50
CONTINUE_WATCHING_LIMIT = 20


def _key_filters(
    profile_id: str,
    content_id: str,
    kind: str,
    season: int | None,
    episode: int | None,
) -> list[Any]:
    filters: list[Any] = [
        WatchProgressRecord.profile_id == profile_id,
        WatchProgressRecord.content_id == content_id,
        WatchProgressRecord.kind == kind,
    ]
    # Movies are keyed by (id, kind) only.
    if kind == "tv":
        for column, value in ((WatchProgressRecord.season, season), (WatchProgressRecord.episode, episode)):
            filters.append(column.is_(None) if value is None else column == value)
    return filters


class ProgressStore:
    """Thread-safe most-recently-used store of :class:`WatchProgress`.

    Each profile keeps at most ``max_entries`` distinct keys; saving an existing
    key replaces it and makes it the most recent.
    """

    def __init__(self, engine: Engine, *, max_entries: int = MAX_ENTRIES_PER_PROFILE) -> None:
        self._engine = engine
        self._lock = Lock()
        self.max_entries = max_entries

    def save(self, profile_id: str, progress: WatchProgress) -> WatchProgress:
        """Insert or replace a checkpoint and evict anything past the cap."""

        episodic = progress.kind == "tv"
        record = WatchProgressRecord(
            profile_id=profile_id,
            content_id=progress.content_id,
            kind=progress.kind,
            season=progress.season if episodic else None,
            episode=progress.episode if episodic else None,
            title=progress.title,
            position_seconds=progress.position_seconds,
            duration_seconds=progress.duration_seconds,
            percent=progress.percent,
            last_watched=utc_now(),
        )
        filters = _key_filters(profile_id, progress.content_id, progress.kind, record.season, record.episode)

        with self._lock, Session(self._engine) as session:
            session.exec(delete(WatchProgressRecord).where(*filters))
            session.add(record)
            session.flush()

            overflow = session.exec(
                select(WatchProgressRecord.id)
                .where(WatchProgressRecord.profile_id == profile_id)
                .order_by(WatchProgressRecord.id.desc())
                .offset(self.max_entries)
            ).all()
            if overflow:
                session.exec(delete(WatchProgressRecord).where(WatchProgressRecord.id.in_(overflow)))

            session.commit()
            session.refresh(record)
            return _to_model(record)

    def get(
        self,
        profile_id: str,
        content_id: str,
        kind: str,
        season: int | None = None,
        episode: int | None = None,
    ) -> WatchProgress | None:
        """Return the checkpoint for a key, if one exists."""

        statement = select(WatchProgressRecord).where(*_key_filters(profile_id, content_id, kind, season, episode))
        with Session(self._engine) as session:
            record = session.exec(statement.order_by(WatchProgressRecord.id.desc())).first()
            return _to_model(record) if record else None

    def list(self, profile_id: str) -> list[WatchProgress]:
        """Return every checkpoint for a profile, most recent first."""

        statement = (
            select(WatchProgressRecord)
            .where(WatchProgressRecord.profile_id == profile_id)
            .order_by(WatchProgressRecord.id.desc())
        )
        with Session(self._engine) as session:
            return [_to_model(record) for record in session.exec(statement).all()]

    def continue_watching(self, profile_id: str, *, limit: int = CONTINUE_WATCHING_LIMIT) -> list[WatchProgress]:
        """Return unfinished titles (``0 < percent < 90``), most recent first."""

        statement = (
            select(WatchProgressRecord)
            .where(
                WatchProgressRecord.profile_id == profile_id,
                WatchProgressRecord.percent > 0,
                WatchProgressRecord.percent < 90,
            )
            .order_by(WatchProgressRecord.id.desc())
            .limit(limit)
        )
        with Session(self._engine) as session:
            return [_to_model(record) for record in session.exec(statement).all()]

    def remove(
        self,
        profile_id: str,
        content_id: str,
        kind: str,
        season: int | None = None,
        episode: int | None = None,
    ) -> bool:
        """Delete a checkpoint; return False when nothing matched."""

        filters = _key_filters(profile_id, content_id, kind, season, episode)
        with self._lock, Session(self._engine) as session:
            result = session.exec(delete(WatchProgressRecord).where(*filters))
            session.commit()
            return bool(result.rowcount)

    def scoped(self, profile_id: str) -> "ProfileProgress":
        """Bind the store to one profile for use as an engine progress sink."""

        return ProfileProgress(self, profile_id)


class ProfileProgress:
    """Progress sink backed by :class:`ProgressStore` for a single profile."""

    def __init__(self, store: ProgressStore, profile_id: str) -> None:
        self._store = store
        self.profile_id = profile_id

    def get(self, content: PlaybackContent) -> WatchProgress | None:
        return self._store.get(self.profile_id, content.content_id, content.kind, content.season, content.episode)

    def save(self, progress: WatchProgress) -> None:
        self._store.save(self.profile_id, progress)


def _to_model(record: WatchProgressRecord) -> WatchProgress:
    return WatchProgress(
        content_id=record.content_id,
        kind=record.kind,
        season=record.season,
        episode=record.episode,
        position_seconds=record.position_seconds,
        duration_seconds=record.duration_seconds,
        percent=record.percent,
        last_watched=record.last_watched,
        title=record.title,
    )
