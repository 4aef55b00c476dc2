"""Tests for watch progress persistence and the consecutive-episode counter."""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.playback_api import create_app  # noqa: E402
from backend.playback_api.db import create_engine_from_settings, init_database  # noqa: E402
from backend.playback_api.models import EpisodeStreakRecord, WatchProgressRecord  # noqa: E402
from backend.playback_api.settings import PlaybackSettings  # noqa: E402
from backend.playback_api.stores.progress_store import ProgressStore  # noqa: E402
from backend.playback_api.stores.streak_store import INACTIVITY_WINDOW, StreakStore  # noqa: E402
from backend.player.models import PlaybackContent, WatchProgress  # noqa: E402


class SteppingClock:
    """Manually advanced UTC clock."""

    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 20, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture()
def engine(tmp_path: Path) -> Engine:
    """Provide an initialised SQLite engine in a temporary directory."""

    settings = PlaybackSettings(database_url=f"sqlite:///{tmp_path / 'nested' / 'playback.db'}")
    db_engine = create_engine_from_settings(settings)
    init_database(db_engine)
    return db_engine


@pytest.fixture()
def client(tmp_path: Path) -> Iterator[TestClient]:
    """Provide a started API client backed by an isolated database."""

    settings = PlaybackSettings(database_url=f"sqlite:///{tmp_path / 'api.db'}")
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def _progress(
    content_id: str,
    kind: str = "movie",
    *,
    position: float = 60.0,
    duration: float = 600.0,
    season: int | None = None,
    episode: int | None = None,
) -> WatchProgress:
    return WatchProgress(
        content_id=content_id,
        kind=kind,
        season=season,
        episode=episode,
        position_seconds=position,
        duration_seconds=duration,
        percent=position / duration * 100 if duration else 0.0,
    )


def test_saving_again_moves_entry_to_front(engine: Engine) -> None:
    """Re-saving a key replaces it and makes it the most recent."""

    store = ProgressStore(engine)
    store.save("alice", _progress("550"))
    store.save("alice", _progress("603"))
    store.save("alice", _progress("550", position=120.0))

    items = store.list("alice")

    assert [item.content_id for item in items] == ["550", "603"]
    assert items[0].position_seconds == 120.0


def test_entries_are_capped_per_profile(engine: Engine) -> None:
    """Only the most recent entries survive once the cap is reached."""

    store = ProgressStore(engine, max_entries=3)
    for content_id in ("1", "2", "3", "4", "5"):
        store.save("alice", _progress(content_id))
    store.save("bob", _progress("9"))

    assert [item.content_id for item in store.list("alice")] == ["5", "4", "3"]
    assert [item.content_id for item in store.list("bob")] == ["9"]
    assert store.get("alice", "1", "movie") is None


def test_movie_keys_ignore_season_and_episode(engine: Engine) -> None:
    """Movies are stored once regardless of stray episode numbers."""

    store = ProgressStore(engine)
    saved = store.save("alice", _progress("550", season=1, episode=2))

    assert saved.season is None and saved.episode is None
    assert store.get("alice", "550", "movie") is not None
    assert store.get("alice", "550", "movie", 3, 4) is not None


def test_episodes_are_distinct_keys(engine: Engine) -> None:
    """Each TV episode keeps its own checkpoint."""

    store = ProgressStore(engine)
    store.save("alice", _progress("1396", "tv", season=1, episode=1, position=100.0))
    store.save("alice", _progress("1396", "tv", season=1, episode=2, position=200.0))

    first = store.get("alice", "1396", "tv", 1, 1)
    second = store.get("alice", "1396", "tv", 1, 2)

    assert first is not None and first.position_seconds == 100.0
    assert second is not None and second.position_seconds == 200.0
    assert store.get("alice", "1396", "tv", 2, 1) is None


def test_continue_watching_skips_finished_and_unstarted(engine: Engine) -> None:
    """Only titles strictly between 0% and 90% are offered, newest first."""

    store = ProgressStore(engine)
    store.save("alice", _progress("a", position=0.0))
    store.save("alice", _progress("b", position=300.0))
    store.save("alice", _progress("c", position=580.0))
    store.save("alice", _progress("d", position=30.0))

    assert [item.content_id for item in store.continue_watching("alice")] == ["d", "b"]
    assert [item.content_id for item in store.continue_watching("alice", limit=1)] == ["d"]
    assert store.list("alice")[0].resumable


def test_timestamps_are_timezone_aware(engine: Engine) -> None:
    """Checkpoint and streak times are UTC-aware in memory and in the schema."""

    assert _progress("550").last_watched.tzinfo is not None
    assert WatchProgressRecord.__table__.c.last_watched.type.timezone is True
    assert EpisodeStreakRecord.__table__.c.updated_at.type.timezone is True

    ProgressStore(engine).save("alice", _progress("550"))
    status = StreakStore(engine).advance("alice", "1396", "s1e1")
    assert status.count == 1


def test_naive_clock_values_are_treated_as_utc(engine: Engine) -> None:
    """A clock returning naive UTC values still drives the inactivity window."""

    aware = SteppingClock()
    store = StreakStore(engine, clock=lambda: aware.now.replace(tzinfo=None))
    store.advance("alice", "1396", "s1e1")

    aware.advance(timedelta(minutes=5))
    assert store.advance("alice", "1396", "s1e2").count == 2

    aware.advance(INACTIVITY_WINDOW + timedelta(seconds=1))
    assert store.get("alice", "1396").count == 0


def test_remove_reports_whether_anything_matched(engine: Engine) -> None:
    """Removing twice should succeed once."""

    store = ProgressStore(engine)
    store.save("alice", _progress("550"))

    assert store.remove("alice", "550", "movie") is True
    assert store.remove("alice", "550", "movie") is False
    assert store.list("alice") == []


def test_scoped_sink_round_trips_for_the_engine(engine: Engine) -> None:
    """The per-profile sink reads and writes through the store."""

    store = ProgressStore(engine)
    sink = store.scoped("alice")
    content = PlaybackContent(content_id="1396", kind="tv", season=1, episode=3, title="Pilot")

    assert sink.get(content) is None
    sink.save(content.snapshot(90.0, 3000.0, 3.0))

    restored = sink.get(content)
    assert restored is not None
    assert restored.position_seconds == 90.0
    assert restored.title == "Pilot"
    assert store.scoped("bob").get(content) is None


def test_streak_counts_distinct_episodes_and_prompts_at_four(engine: Engine) -> None:
    """The counter grows per new episode and asks for confirmation on the fourth."""

    clock = SteppingClock()
    store = StreakStore(engine, clock=clock)

    statuses = []
    for episode_id in ("s1e1", "s1e2", "s1e2", "s1e3", "s1e4", "s1e5"):
        clock.advance(timedelta(minutes=1))
        statuses.append(store.advance("alice", "1396", episode_id))

    assert [status.count for status in statuses] == [1, 2, 2, 3, 4, 5]
    assert [status.confirm_required for status in statuses] == [False, False, False, False, True, False]
    assert statuses[-1].last_episode_id == "s1e5"


def test_streak_lapses_after_inactivity(engine: Engine) -> None:
    """A gap longer than the window starts a new streak."""

    clock = SteppingClock()
    store = StreakStore(engine, clock=clock)
    store.advance("alice", "1396", "s1e1")
    store.advance("alice", "1396", "s1e2")

    clock.advance(INACTIVITY_WINDOW + timedelta(seconds=1))

    assert store.get("alice", "1396").count == 0
    assert store.advance("alice", "1396", "s1e3").count == 1


def test_switching_shows_clears_other_streaks(engine: Engine) -> None:
    """Only one show per profile keeps a live streak."""

    clock = SteppingClock()
    store = StreakStore(engine, clock=clock)
    store.advance("alice", "1396", "s1e1")
    store.advance("alice", "1396", "s1e2")
    store.advance("bob", "1396", "s1e1")

    store.advance("alice", "60059", "s1e1")

    assert store.get("alice", "1396").count == 0
    assert store.get("alice", "60059").count == 1
    assert store.get("bob", "1396").count == 1

    store.reset("alice", "60059")
    assert store.get("alice", "60059").count == 0


def test_progress_endpoints(client: TestClient) -> None:
    """Players can save, list, fetch and delete checkpoints over HTTP."""

    saved = client.put(
        "/profiles/alice/progress",
        json={"content_id": "550", "kind": "movie", "position_seconds": 60, "duration_seconds": 600, "title": "Fight Club"},
    )
    assert saved.status_code == 200
    assert saved.json()["percent"] == pytest.approx(10.0)

    client.put(
        "/profiles/alice/progress",
        json={
            "content_id": "1396",
            "kind": "tv",
            "season": 1,
            "episode": 2,
            "position_seconds": 1500,
            "duration_seconds": 1600,
        },
    )

    listing = client.get("/profiles/alice/progress").json()
    assert listing["total"] == 2
    assert [item["content_id"] for item in listing["items"]] == ["1396", "550"]

    unfinished = client.get("/profiles/alice/progress/continue").json()
    assert [item["content_id"] for item in unfinished["items"]] == ["550"]

    episode = client.get("/profiles/alice/progress/tv/1396", params={"season": 1, "episode": 2})
    assert episode.status_code == 200
    assert episode.json()["position_seconds"] == 1500

    assert client.get("/profiles/bob/progress/movie/550").status_code == 404
    assert client.delete("/profiles/alice/progress/movie/550").status_code == 204
    assert client.delete("/profiles/alice/progress/movie/550").status_code == 404


def test_progress_endpoint_validation(client: TestClient) -> None:
    """TV checkpoints need season and episode; out-of-range values are rejected."""

    missing_episode = client.put(
        "/profiles/alice/progress",
        json={"content_id": "1396", "kind": "tv", "season": 1, "position_seconds": 5, "duration_seconds": 100},
    )
    negative = client.put(
        "/profiles/alice/progress",
        json={"content_id": "550", "kind": "movie", "position_seconds": -1, "duration_seconds": 100},
    )

    assert missing_episode.status_code == 400
    assert negative.status_code == 422


def test_streak_endpoints(client: TestClient) -> None:
    """The streak API reports when to ask whether the viewer is still watching."""

    statuses = [
        client.post("/profiles/alice/streaks/1396", json={"episode_id": f"s1e{number}"}).json()
        for number in range(1, 5)
    ]

    assert [status["count"] for status in statuses] == [1, 2, 3, 4]
    assert statuses[-1]["confirm_required"] is True

    assert client.delete("/profiles/alice/streaks/1396").status_code == 204
    assert client.get("/profiles/alice/streaks/1396").json() == {
        "show_id": "1396",
        "count": 0,
        "last_episode_id": None,
        "confirm_required": False,
    }
