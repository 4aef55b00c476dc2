"""Shared state container for the playback API."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx
from sqlalchemy.engine import Engine

from backend.resolver.embed import EmbedProvider
from backend.resolver.manifest import ManifestRewriter
from backend.resolver.proxy import HLSProxy, SubtitleProxy
from backend.resolver.retry import SleepFn, http_retry_policy
from backend.resolver.stream_resolver import SourceResolver

from .db import create_engine_from_settings, init_database
from .settings import PlaybackSettings
from .stores.progress_store import ProgressStore
from .stores.streak_store import StreakStore

logger = logging.getLogger(__name__)

HLS_PROXY_PATH = "/proxy-hls"


@dataclass(slots=True)
class AppState:
    """Process-wide collaborators shared across routers.

    The HTTP client and the components built on it exist only between
    :meth:`open_http` and :meth:`close_http`, which the app lifespan calls.
    """

    settings: PlaybackSettings
    engine: Engine
    progress_store: ProgressStore
    streak_store: StreakStore
    embed: EmbedProvider
    http_client: httpx.AsyncClient | None
    resolver: SourceResolver | None
    hls_proxy: HLSProxy | None
    subtitle_proxy: SubtitleProxy | None
    _transport: httpx.AsyncBaseTransport | None
    _sleep: SleepFn

    def __init__(
        self,
        settings: PlaybackSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.engine = create_engine_from_settings(settings)
        init_database(self.engine)
        self.progress_store = ProgressStore(self.engine)
        self.streak_store = StreakStore(self.engine)
        self.embed = EmbedProvider(settings.embed_base_url)
        self.http_client = None
        self.resolver = None
        self.hls_proxy = None
        self.subtitle_proxy = None
        self._transport = transport
        self._sleep = sleep

    async def open_http(self) -> None:
        """Create the shared upstream client and the components that use it."""

        settings = self.settings
        client = httpx.AsyncClient(
            timeout=settings.upstream_timeout,
            follow_redirects=True,
            transport=self._transport,
        )
        self.http_client = client
        self.resolver = SourceResolver(client, settings.resolver_config(), sleep=self._sleep)
        self.hls_proxy = HLSProxy(
            client,
            ManifestRewriter(HLS_PROXY_PATH),
            policy=http_retry_policy(
                max_retries=settings.hls_max_retries,
                initial_delay=settings.hls_initial_delay,
                max_delay=settings.retry_max_delay,
                sleep=self._sleep,
            ),
            user_agent=settings.user_agent,
            manifest_max_age=settings.manifest_cache_seconds,
            segment_max_age=settings.segment_cache_seconds,
        )
        self.subtitle_proxy = SubtitleProxy(
            client,
            policy=http_retry_policy(
                max_retries=settings.subtitle_max_retries,
                initial_delay=settings.subtitle_initial_delay,
                max_delay=settings.retry_max_delay,
                sleep=self._sleep,
            ),
            user_agent=settings.user_agent,
            referer=f"{settings.scraper_origin.rstrip('/')}/",
            max_age=settings.subtitle_cache_seconds,
        )
        logger.info("Upstream HTTP client ready (timeout %.0fs)", settings.upstream_timeout)

    async def close_http(self) -> None:
        client, self.http_client = self.http_client, None
        self.resolver = self.hls_proxy = self.subtitle_proxy = None
        if client is not None:
            await client.aclose()
