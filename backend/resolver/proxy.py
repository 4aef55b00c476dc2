"""Same-origin proxies for HLS playlists, media segments and caption files."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from urllib.parse import urlparse

import httpx

from .errors import ParameterError, UpstreamServerError, UpstreamUnavailable
from .manifest import MANIFEST_CONTENT_TYPE, ManifestRewriter, is_manifest
from .retry import RetryPolicy, fetch_with_retry, http_retry_policy
from .stream_resolver import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

SEGMENT_CONTENT_TYPE = "video/mp2t"
SUBTITLE_CONTENT_TYPE = "text/vtt; charset=utf-8"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Range, Content-Type",
    "Access-Control-Expose-Headers": "Content-Length, Content-Range",
}

# Upstream headers that describe a partial response and must reach the player.
_PASSTHROUGH_HEADERS = ("Content-Range", "Accept-Ranges")


@dataclass(slots=True)
class ProxiedResponse:
    """A fully buffered upstream response ready to hand back to the caller."""

    status_code: int
    content: bytes
    media_type: str
    headers: dict[str, str] = field(default_factory=dict)


def cache_headers(max_age: int) -> dict[str, str]:
    return {**CORS_HEADERS, "Cache-Control": f"public, max-age={max_age}"}


def require_http_url(url: str | None) -> str:
    """Validate a proxy target, raising :class:`ParameterError` when unusable."""

    if not url:
        raise ParameterError("Missing url parameter")
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ParameterError("url must be an absolute http(s) URL")
    return url


def _error_response(status_code: int, reason: str) -> ProxiedResponse:
    return ProxiedResponse(
        status_code=status_code,
        content=f"Failed to fetch: {reason}".encode("utf-8"),
        media_type="text/plain; charset=utf-8",
        headers=dict(CORS_HEADERS),
    )


class HLSProxy:
    """Fetch playlists (rewritten) and segments (verbatim) on behalf of the player."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        rewriter: ManifestRewriter | None = None,
        *,
        policy: RetryPolicy | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        manifest_max_age: int = 3600,
        segment_max_age: int = 86400,
    ) -> None:
        self._client = client
        self.rewriter = rewriter or ManifestRewriter()
        self._policy = policy or http_retry_policy(max_retries=0)
        self._user_agent = user_agent
        self.manifest_max_age = manifest_max_age
        self.segment_max_age = segment_max_age

    def _headers(self, range_header: str | None) -> dict[str, str]:
        headers = {
            "User-Agent": self._user_agent,
            "Accept": "*/*",
            "Accept-Encoding": "identity",
            "Accept-Language": "en-US,en;q=0.9",
        }
        if range_header:
            headers["Range"] = range_header
        return headers

    async def fetch(self, url: str | None, range_header: str | None = None) -> ProxiedResponse:
        target = require_http_url(url)
        try:
            response = await fetch_with_retry(
                self._client,
                target,
                policy=self._policy,
                headers=self._headers(range_header),
            )
        except UpstreamServerError as exc:
            logger.error("HLS proxy fetch failed: %s %s", exc.status_code, target)
            return _error_response(exc.status_code, exc.reason)
        except httpx.TransportError as exc:
            logger.error("HLS proxy could not reach %s: %s", target, exc)
            raise UpstreamUnavailable(f"Failed to proxy HLS: {exc}") from exc

        if not response.is_success:
            logger.error("HLS proxy fetch failed: %s %s", response.status_code, target)
            return _error_response(response.status_code, response.reason_phrase)

        content_type = response.headers.get("content-type", "")
        if is_manifest(target, content_type):
            # Redirects change the base that relative URIs resolve against.
            base_url = str(response.url) if response.url else target
            playlist = self.rewriter.rewrite(response.text, base_url)
            return ProxiedResponse(
                status_code=200,
                content=playlist.encode("utf-8"),
                media_type=MANIFEST_CONTENT_TYPE,
                headers=cache_headers(self.manifest_max_age),
            )

        headers = cache_headers(self.segment_max_age)
        for name in _PASSTHROUGH_HEADERS:
            value = response.headers.get(name)
            if value:
                headers[name] = value
        return ProxiedResponse(
            status_code=response.status_code,
            content=response.content,
            media_type=content_type or SEGMENT_CONTENT_TYPE,
            headers=headers,
        )


class SubtitleProxy:
    """Fetch caption files through the retry policy and return them verbatim."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        policy: RetryPolicy | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        referer: str = "https://rivestream.org/",
        max_age: int = 3600,
    ) -> None:
        self._client = client
        self._policy = policy or http_retry_policy(max_retries=2, initial_delay=0.5)
        self._user_agent = user_agent
        self._referer = referer
        self.max_age = max_age

    async def fetch(self, url: str | None) -> ProxiedResponse:
        target = require_http_url(url)
        headers = {
            "User-Agent": self._user_agent,
            "Accept": "text/vtt, text/plain, */*",
            "Referer": self._referer,
        }
        try:
            response = await fetch_with_retry(self._client, target, policy=self._policy, headers=headers)
        except UpstreamServerError as exc:
            logger.error("Failed to fetch subtitle: %s %s", exc.status_code, exc.reason)
            return _error_response(exc.status_code, exc.reason)
        except httpx.TransportError as exc:
            logger.error("Subtitle proxy could not reach %s: %s", target, exc)
            raise UpstreamUnavailable(f"Failed to fetch subtitle: {exc}") from exc

        if not response.is_success:
            logger.error("Failed to fetch subtitle: %s %s", response.status_code, response.reason_phrase)
            return _error_response(response.status_code, response.reason_phrase)

        return ProxiedResponse(
            status_code=200,
            content=response.text.encode("utf-8"),
            media_type=SUBTITLE_CONTENT_TYPE,
            headers=cache_headers(self.max_age),
        )
