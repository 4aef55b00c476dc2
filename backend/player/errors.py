"""Exceptions for the player subsystem."""
from __future__ import annotations


class PlayerError(Exception):
    """Top-level error raised by the player subsystem."""


class MediaFatalError(PlayerError):
    """Unrecoverable network, decode or load failure; the engine fails over."""

    def __init__(self, message: str, *, kind: str = "other") -> None:
        super().__init__(message)
        self.kind = kind


class MediaTransientError(PlayerError):
    """Recoverable hiccup that the streaming client handles on its own."""


class SourcesExhaustedError(PlayerError):
    """Every source in the list failed fatally."""

    def __init__(self, attempted: int, last_error: BaseException | None = None) -> None:
        super().__init__(f"All {attempted} source(s) failed")
        self.attempted = attempted
        self.last_error = last_error


class InvalidTransitionError(PlayerError):
    """Raised when an operation would move the engine along an illegal edge."""
