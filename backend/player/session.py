"""Seams between the engine and a concrete adaptive-streaming client."""
from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional, Protocol

from backend.resolver.models import StreamSource

from .models import PlaybackContent, WatchProgress

if TYPE_CHECKING:
    from .engine import SessionEvents


class MediaSession(Protocol):
    """One streaming-client instance bound to a single source.

    Sessions are never redirected to another manifest; the engine destroys
    the session and asks the factory for a new one instead.
    """

    @property
    def attached(self) -> bool: ...

    @property
    def ready(self) -> bool: ...

    @property
    def paused(self) -> bool: ...

    @property
    def position(self) -> float: ...

    @property
    def duration(self) -> float: ...

    @property
    def seekable_end(self) -> Optional[float]: ...

    def load(self, url: str) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, position: float) -> None: ...

    def select_level(self, index: int) -> None: ...

    def destroy(self) -> None: ...


SessionFactory = Callable[[StreamSource, "SessionEvents"], MediaSession]


class ProgressSink(Protocol):
    """Where checkpoints are written and restored from."""

    def get(self, content: PlaybackContent) -> Optional[WatchProgress]: ...

    def save(self, progress: WatchProgress) -> None: ...
