"""Playback failover engine.

The engine owns an ordered list of sources and walks it when a source fails
fatally. Direct sources are handed to a :class:`MediaSession` built by the
injected factory; iframe sources are rendered by the host and need no session.

All handlers run synchronously on the event loop, so a read-then-advance of
the source index can never interleave with another error. Every session gets a
fresh :class:`SessionEvents` bound to a generation number; once the session is
torn down its generation is stale and anything it still reports is dropped.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Sequence

from backend.resolver.models import StreamSource

from .errors import InvalidTransitionError, MediaFatalError, PlayerError, SourcesExhaustedError
from .events import StateBroadcaster, Subscription
from .hdr import HdrCapability, is_hdr_level, select_hdr_level
from .models import HlsLevel, PlaybackContent, PlaybackState, StateChange
from .session import MediaSession, ProgressSink, SessionFactory
from .ticker import Ticker

logger = logging.getLogger(__name__)

CHECKPOINT_INTERVAL = 10.0
RESTORE_TAIL_SECONDS = 10.0

_TRANSITIONS: dict[PlaybackState, frozenset[PlaybackState]] = {
    PlaybackState.IDLE: frozenset({PlaybackState.LOADING, PlaybackState.EXHAUSTED}),
    PlaybackState.LOADING: frozenset(
        {PlaybackState.LOADING, PlaybackState.PLAYING, PlaybackState.BUFFERING, PlaybackState.SOURCE_ERROR, PlaybackState.IDLE}
    ),
    PlaybackState.PLAYING: frozenset(
        {PlaybackState.LOADING, PlaybackState.BUFFERING, PlaybackState.SOURCE_ERROR, PlaybackState.IDLE}
    ),
    PlaybackState.BUFFERING: frozenset(
        {PlaybackState.LOADING, PlaybackState.PLAYING, PlaybackState.SOURCE_ERROR, PlaybackState.IDLE}
    ),
    PlaybackState.SOURCE_ERROR: frozenset({PlaybackState.LOADING, PlaybackState.EXHAUSTED, PlaybackState.IDLE}),
    PlaybackState.EXHAUSTED: frozenset({PlaybackState.LOADING, PlaybackState.IDLE}),
}


class SessionEvents:
    """Callbacks a media session uses to report back to its engine."""

    def __init__(self, engine: "PlaybackFailoverEngine", generation: int) -> None:
        self._engine = engine
        self.generation = generation

    @property
    def stale(self) -> bool:
        return self._engine._generation != self.generation

    def manifest_parsed(self, levels: Sequence[HlsLevel]) -> None:
        if not self.stale:
            self._engine._on_manifest_parsed(list(levels))

    def level_switched(self, index: int) -> None:
        if not self.stale:
            self._engine._on_level_switched(index)

    def playing(self) -> None:
        if not self.stale:
            self._engine._on_playing()

    def waiting(self) -> None:
        if not self.stale:
            self._engine._on_waiting()

    def can_play(self) -> None:
        if not self.stale:
            self._engine._on_can_play()

    def time_update(self, position: float, duration: float) -> None:
        if not self.stale:
            self._engine._on_time_update(position, duration)

    def error(self, exc: BaseException) -> None:
        if not self.stale:
            self._engine._on_error(exc)


class PlaybackFailoverEngine:
    """Drive one player through an ordered list of candidate sources."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        progress: ProgressSink | None = None,
        content: PlaybackContent | None = None,
        hdr_probe: Callable[[], bool] | None = None,
        clock: Callable[[], float] = time.monotonic,
        checkpoint_interval: float = CHECKPOINT_INTERVAL,
        poll_interval: float | None = None,
    ) -> None:
        self._factory = session_factory
        self._progress = progress
        self.content = content
        self._hdr = HdrCapability(hdr_probe)
        self._clock = clock
        self.checkpoint_interval = checkpoint_interval
        self._broadcaster: StateBroadcaster[StateChange] = StateBroadcaster()
        self._ticker = Ticker(poll_interval, self.tick) if poll_interval else None

        self._sources: tuple[StreamSource, ...] = ()
        self._index = 0
        self._state = PlaybackState.IDLE
        self._session: MediaSession | None = None
        self._generation = 0
        self._levels: list[HlsLevel] = []
        self._last_checkpoint: float | None = None
        self._restored = False
        self._interstitial = False
        self.playing_hdr = False
        self.last_error: BaseException | None = None

    # ------------------------------------------------------------------
    # Read-only views

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def index(self) -> int:
        return self._index

    @property
    def sources(self) -> tuple[StreamSource, ...]:
        return self._sources

    @property
    def current_source(self) -> StreamSource | None:
        if 0 <= self._index < len(self._sources):
            return self._sources[self._index]
        return None

    @property
    def session(self) -> MediaSession | None:
        return self._session

    @property
    def hdr_supported(self) -> bool:
        return self._hdr.supported

    @property
    def interstitial_paused(self) -> bool:
        return self._interstitial

    def subscribe(self, listener: Callable[[StateChange], None]) -> Subscription:
        return self._broadcaster.subscribe(listener)

    # ------------------------------------------------------------------
    # Commands

    def load(self, sources: Iterable[StreamSource], content: PlaybackContent | None = None) -> None:
        """Replace the source list and start from its first entry."""

        self._teardown()
        if content is not None:
            self.content = content
        if self._state is not PlaybackState.IDLE:
            self._transition(PlaybackState.IDLE)
        self._sources = tuple(sources)
        self._index = 0
        self.last_error = None
        if not self._sources:
            self._transition(PlaybackState.EXHAUSTED, error=SourcesExhaustedError(0))
            return
        self._start_current()

    def retry_all(self) -> None:
        """Explicit user reset: rewind to the first source and try again."""

        if not self._sources:
            raise PlayerError("No sources loaded")
        logger.info("Retrying all %d source(s) from the top", len(self._sources))
        self._index = 0
        self.last_error = None
        self._start_current()

    def select_source(self, index: int) -> None:
        """Switch to a specific source chosen by the user."""

        if self._state is PlaybackState.EXHAUSTED:
            raise InvalidTransitionError("Sources are exhausted; use retry_all()")
        if not 0 <= index < len(self._sources):
            raise PlayerError(f"Source index {index} out of range")
        self._index = index
        self._start_current()

    def set_interstitial_pause(self, paused: bool) -> None:
        """Pause for a host overlay without tearing the session down."""

        self._interstitial = paused
        session = self._session
        if session is None or not session.attached:
            return
        if paused:
            session.pause()
        elif session.ready and session.paused:
            session.play()

    def tick(self) -> None:
        """Poll the session for a checkpoint; driven by the ticker or the host."""

        session = self._session
        if session is not None:
            self._maybe_checkpoint(session.position, session.duration)

    def close(self) -> None:
        self._teardown()
        if self._state is not PlaybackState.IDLE:
            self._transition(PlaybackState.IDLE)

    # ------------------------------------------------------------------
    # Internals

    def _transition(self, target: PlaybackState, *, error: BaseException | None = None) -> None:
        previous = self._state
        if target not in _TRANSITIONS[previous]:
            raise InvalidTransitionError(f"{previous.value} -> {target.value}")
        self._state = target
        logger.debug("Playback %s -> %s (source %d)", previous.value, target.value, self._index)
        self._broadcaster.publish(StateChange(previous=previous, current=target, index=self._index, error=error))

    def _teardown(self) -> None:
        # Invalidate outstanding SessionEvents before touching the session.
        self._generation += 1
        if self._ticker is not None:
            self._ticker.stop()
        session, self._session = self._session, None
        if session is not None:
            session.pause()
            session.destroy()
        self._levels = []
        self._restored = False
        self._last_checkpoint = None
        self.playing_hdr = False

    def _start_current(self) -> None:
        self._teardown()
        source = self._sources[self._index]
        self._transition(PlaybackState.LOADING)

        if source.delivery == "iframe":
            logger.info("Rendering embedded frame for source %d (%s)", self._index, source.provider)
            self._transition(PlaybackState.PLAYING)
            return

        events = SessionEvents(self, self._generation)
        try:
            self._session = self._factory(source, events)
            self._session.load(source.url)
        except MediaFatalError as exc:
            if not events.stale:
                self._on_error(exc)
            return
        except Exception as exc:
            logger.warning("Could not start source %d: %s", self._index, exc)
            fatal = MediaFatalError(f"Failed to load source: {exc}", kind="load")
            fatal.__cause__ = exc
            if not events.stale:
                self._on_error(fatal)
            return

        if self._ticker is not None and not events.stale:
            self._ticker.start()

    def _on_manifest_parsed(self, levels: list[HlsLevel]) -> None:
        self._levels = levels
        if not levels or not self._hdr.supported:
            return
        chosen = select_hdr_level(levels)
        if chosen is not None and self._session is not None:
            logger.debug("Selecting HDR level %d of %d", chosen, len(levels))
            self._session.select_level(chosen)

    def _on_level_switched(self, index: int) -> None:
        if 0 <= index < len(self._levels):
            self.playing_hdr = is_hdr_level(self._levels[index])

    def _on_playing(self) -> None:
        if self._state in (PlaybackState.LOADING, PlaybackState.BUFFERING):
            self._transition(PlaybackState.PLAYING)

    def _on_waiting(self) -> None:
        if self._state is PlaybackState.PLAYING:
            self._transition(PlaybackState.BUFFERING)

    def _on_can_play(self) -> None:
        if self._state is PlaybackState.BUFFERING:
            self._transition(PlaybackState.PLAYING)
        if not self._restored:
            self._restore_position()

    def _restore_position(self) -> None:
        session = self._session
        if session is None or self._progress is None or self.content is None:
            return
        duration = session.duration
        seekable_end = session.seekable_end
        if not duration or duration <= 0 or seekable_end is None:
            return

        saved = self._progress.get(self.content)
        target = 0.0
        if saved is not None and 0 < saved.position_seconds < duration - RESTORE_TAIL_SECONDS:
            target = min(saved.position_seconds, seekable_end - 1)
        if target > 0:
            logger.info("Restoring %s to %.1fs", self.content.content_id, target)
            session.seek(target)
        # A seek that raises leaves the restore pending.
        self._restored = True

    def _on_time_update(self, position: float, duration: float) -> None:
        self._maybe_checkpoint(position, duration)

    def _maybe_checkpoint(self, position: float, duration: float) -> None:
        if self._state is not PlaybackState.PLAYING:
            return
        if self._progress is None or self.content is None or not duration or duration <= 0:
            return
        now = self._clock()
        if self._last_checkpoint is not None and now - self._last_checkpoint < self.checkpoint_interval:
            return
        percent = position / duration * 100
        if position < 1 or not 0 < percent < 90:
            return
        self._progress.save(self.content.snapshot(position, duration, percent))
        self._last_checkpoint = now

    def _on_error(self, exc: BaseException) -> None:
        if not isinstance(exc, MediaFatalError):
            logger.debug("Transient media error on source %d: %s", self._index, exc)
            return

        logger.warning("Source %d failed fatally: %s", self._index, exc)
        self.last_error = exc
        self._transition(PlaybackState.SOURCE_ERROR, error=exc)
        self._teardown()
        if self._index < len(self._sources) - 1:
            self._index += 1
            self._start_current()
            return

        exhausted = SourcesExhaustedError(len(self._sources), exc)
        logger.error("%s", exhausted)
        self._transition(PlaybackState.EXHAUSTED, error=exhausted)
