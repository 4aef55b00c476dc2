"""Runtime configuration for the playback API."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.resolver.stream_resolver import DEFAULT_USER_AGENT, ResolverConfig

from .utils.paths import default_database_url


class PlaybackSettings(BaseSettings):
    """Environment-aware settings for the playback API service."""

    host: str = Field(default="0.0.0.0", description="Interface the development server binds to.")
    port: int = Field(default=8000, description="Port the development server listens on.")
    log_level: str = Field(default="INFO", description="Root log level applied at startup.")

    scraper_url: str = Field(
        default="https://scrapper.rivestream.org",
        description="Base URL of the upstream aggregator's provider API.",
    )
    scraper_origin: str = Field(
        default="https://rivestream.org",
        description="Origin and referer presented to the aggregator.",
    )
    provider: str = Field(default="flowcast", description="Provider name requested from the aggregator.")
    partner_marker: str = Field(
        default="valhallastream",
        description="Substring a source URL must contain to be accepted.",
    )
    caption_suffix: str = Field(
        default=" - FlowCast", description="Vendor suffix stripped from caption labels."
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User agent sent upstream.")

    resolve_timeout: float = Field(default=30.0, gt=0, description="Hard ceiling for one resolve call (seconds).")
    resolve_max_retries: int = Field(default=2, ge=0, description="Retries for provider lookups.")
    resolve_initial_delay: float = Field(default=1.0, ge=0, description="First provider retry delay (seconds).")
    retry_max_delay: float = Field(default=10.0, ge=0, description="Upper bound for any retry delay (seconds).")
    subtitle_max_retries: int = Field(default=2, ge=0, description="Retries for caption downloads.")
    subtitle_initial_delay: float = Field(default=0.5, ge=0, description="First caption retry delay (seconds).")
    hls_max_retries: int = Field(default=0, ge=0, description="Retries for manifest and segment fetches.")
    hls_initial_delay: float = Field(default=0.5, ge=0, description="First HLS retry delay (seconds).")
    upstream_timeout: float = Field(default=20.0, gt=0, description="Per-request timeout for upstream HTTP calls.")

    manifest_cache_seconds: int = Field(default=3600, ge=0, description="Cache lifetime for rewritten manifests.")
    segment_cache_seconds: int = Field(default=86400, ge=0, description="Cache lifetime for media segments.")
    subtitle_cache_seconds: int = Field(default=3600, ge=0, description="Cache lifetime for caption files.")

    embed_base_url: str = Field(
        default="https://www.vidking.net/embed",
        description="Base URL of the embeddable player used as the last fallback.",
    )

    database_url: str = Field(
        default_factory=default_database_url,
        description="Connection URL for the playback SQLite database.",
    )
    database_echo: bool = Field(default=False, description="Enable SQL echo for debugging queries.")

    model_config = SettingsConfigDict(
        env_prefix="CINESTREAM_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def resolver_config(self) -> ResolverConfig:
        return ResolverConfig(
            scraper_url=self.scraper_url,
            origin=self.scraper_origin,
            provider=self.provider,
            partner_marker=self.partner_marker,
            caption_suffix=self.caption_suffix,
            user_agent=self.user_agent,
            timeout=self.resolve_timeout,
            max_retries=self.resolve_max_retries,
            initial_delay=self.resolve_initial_delay,
            max_delay=self.retry_max_delay,
        )
