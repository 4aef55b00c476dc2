"""Router exports for the playback API."""
from . import health, progress, proxy, resolve

__all__ = ["health", "progress", "proxy", "resolve"]
