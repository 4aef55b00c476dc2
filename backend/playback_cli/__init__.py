"""Command line client for the Cinestream playback API."""
