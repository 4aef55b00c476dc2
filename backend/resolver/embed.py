"""Embeddable-frame fallback used when no direct source resolves."""
from __future__ import annotations

from .models import ProviderRequest, StreamSource

EMBED_BASE_URL = "https://www.vidking.net/embed"


class EmbedProvider:
    """Build iframe sources for a third-party embed player."""

    name = "Vidking"

    def __init__(self, base_url: str = EMBED_BASE_URL) -> None:
        self.base_url = base_url.rstrip("/")

    def embed_url(self, request: ProviderRequest) -> str:
        if request.kind == "movie":
            return f"{self.base_url}/movie/{request.content_id}"
        return f"{self.base_url}/tv/{request.content_id}/{request.season}/{request.episode}"

    def source_for(self, request: ProviderRequest) -> StreamSource:
        return StreamSource(
            url=self.embed_url(request),
            quality="Auto",
            provider=self.name,
            format="iframe",
            delivery="iframe",
        )
