"""Filesystem helpers for default data locations."""
from __future__ import annotations

from pathlib import Path

from platformdirs import user_data_dir


APP_NAME = "Cinestream"
APP_AUTHOR = "Cinestream"


def default_data_dir() -> Path:
    """Return the platform-appropriate data directory for the service."""

    return Path(user_data_dir(APP_NAME, APP_AUTHOR))


def default_database_url() -> str:
    """Return a SQLite URL inside the platform data directory."""

    return f"sqlite:///{(default_data_dir() / 'playback.db').as_posix()}"
