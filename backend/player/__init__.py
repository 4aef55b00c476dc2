"""Playback engine: source failover, HDR negotiation and progress checkpoints."""

__all__ = ["engine", "errors", "events", "hdr", "models", "session", "sources", "ticker"]
