"""HTTP client helpers for the playback CLI."""
from __future__ import annotations

import httpx


def create_client(base_url: str, *, timeout: float = 40.0, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Instantiate an HTTPX client with a configurable base URL.

    The default timeout sits above the server's resolve ceiling so the CLI
    sees the 504 instead of timing out first.
    """

    return httpx.Client(base_url=base_url, timeout=timeout, transport=transport)
