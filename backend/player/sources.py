"""Turn a resolve result into the ordered source list the engine plays."""
from __future__ import annotations

from dataclasses import dataclass, field

from backend.resolver.embed import EmbedProvider
from backend.resolver.manifest import encode_uri_component
from backend.resolver.models import ProviderRequest, ResolveResult, StreamCaption, StreamSource


@dataclass(slots=True)
class PlaybackPlan:
    """Sources in preference order plus captions, all pointing at local proxies."""

    sources: list[StreamSource] = field(default_factory=list)
    captions: list[StreamCaption] = field(default_factory=list)

    @property
    def has_direct(self) -> bool:
        return any(source.delivery == "direct" for source in self.sources)


def build_playback_plan(
    result: ResolveResult,
    request: ProviderRequest | None = None,
    *,
    embed: EmbedProvider | None = None,
    base_url: str = "",
    hls_proxy_path: str = "/proxy-hls",
    subtitle_proxy_path: str = "/proxy-subtitle",
) -> PlaybackPlan:
    """Route direct sources and captions through the proxies, then append the embed fallback.

    Resolver order is kept as is; the embed frame always comes last.
    """

    prefix = base_url.rstrip("/")
    sources = [
        source.model_copy(
            update={"url": f"{prefix}{hls_proxy_path}?url={encode_uri_component(source.url)}"}
        )
        for source in result.streams
        if source.delivery == "direct"
    ]
    captions = [
        caption.model_copy(
            update={"url": f"{prefix}{subtitle_proxy_path}?url={encode_uri_component(caption.url)}"}
        )
        for caption in result.captions
    ]
    if embed is not None and request is not None:
        sources.append(embed.source_for(request))
    return PlaybackPlan(sources=sources, captions=captions)
