"""Cinestream backend: stream resolution, same-origin proxies and playback."""
