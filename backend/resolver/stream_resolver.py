"""
On-demand stream resolver backed by the upstream aggregator's flowcast provider.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from .errors import ParameterError, StreamingError, UpstreamError, UpstreamTimeout, UpstreamUnavailable
from .keygen import derive_secret_key
from .models import ProviderRequest, ResolveResult, StreamCaption, StreamSource
from .retry import SleepFn, fetch_with_retry, http_retry_policy

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass(frozen=True, slots=True)
class ResolverConfig:
    """Upstream coordinates and limits used by :class:`SourceResolver`."""

    scraper_url: str = "https://scrapper.rivestream.org"
    origin: str = "https://rivestream.org"
    provider: str = "flowcast"
    partner_marker: str = "valhallastream"
    caption_suffix: str = " - FlowCast"
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 30.0
    max_retries: int = 2
    initial_delay: float = 1.0
    max_delay: float = 10.0


def _encode(value: str) -> str:
    return quote(value, safe="-_.!~*'()")


def _failure(exc: StreamingError, message: str | None = None) -> ResolveResult:
    return ResolveResult(error=message or str(exc), status_code=exc.status_code)


def _entries(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _text(value: Any, default: str) -> str:
    if value is None or value == "" or isinstance(value, (dict, list)):
        return default
    return str(value)


class SourceResolver:
    """Resolve a content identifier into ranked sources and caption tracks.

    :meth:`resolve` never raises. Every failure is folded into a
    :class:`ResolveResult` with empty lists, an error message and the HTTP
    status the API should answer with.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: ResolverConfig | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._client = client
        self.config = config or ResolverConfig()
        self._policy = http_retry_policy(
            max_retries=self.config.max_retries,
            initial_delay=self.config.initial_delay,
            max_delay=self.config.max_delay,
            sleep=sleep,
        )

    def build_url(self, request: ProviderRequest) -> str:
        """Return the provider URL, secret key included, for a validated request."""

        config = self.config
        query = f"provider={_encode(config.provider)}&id={_encode(request.content_id)}"
        if request.kind == "tv":
            query += f"&season={request.season}&episode={request.episode}"
        secret_key = derive_secret_key(request.content_id)
        query += f"&secretKey={_encode(secret_key)}&proxyMode="
        return f"{config.scraper_url.rstrip('/')}/api/provider?{query}"

    def _headers(self) -> dict[str, str]:
        origin = self.config.origin.rstrip("/")
        return {
            "User-Agent": self.config.user_agent,
            "Accept": "application/json",
            "Origin": origin,
            "Referer": f"{origin}/",
        }

    async def resolve(
        self,
        kind: str | None,
        content_id: str | int | None,
        season: int | str | None = None,
        episode: int | str | None = None,
    ) -> ResolveResult:
        """Look up sources for a movie or a TV episode."""

        try:
            request = ProviderRequest.build(kind, content_id, season, episode)
        except ParameterError as exc:
            return _failure(exc)

        url = self.build_url(request)
        try:
            response = await asyncio.wait_for(
                fetch_with_retry(self._client, url, policy=self._policy, headers=self._headers()),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Provider lookup timed out after %.0fs for %s", self.config.timeout, request)
            return _failure(UpstreamTimeout("Request timeout"))
        except UpstreamError as exc:
            logger.warning("Provider lookup failed for %s: %s", request, exc)
            return _failure(exc, f"Failed to fetch: {exc.reason or exc}")
        except httpx.TransportError as exc:
            logger.warning("Provider unreachable for %s: %s", request, exc)
            return _failure(UpstreamUnavailable(f"Failed to contact provider: {exc}"))
        except Exception as exc:
            logger.exception("Unexpected error resolving %s", request)
            return ResolveResult(error=str(exc) or "Unknown error", status_code=500)

        if response.status_code >= 400:
            return ResolveResult(
                error=f"Failed to fetch: {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Provider returned invalid JSON for %s", request)
            return ResolveResult(error="Provider returned invalid JSON", status_code=500)

        try:
            result = self.parse_payload(payload)
        except Exception as exc:
            logger.exception("Could not interpret provider payload for %s", request)
            return ResolveResult(error=str(exc) or "Unknown error", status_code=500)

        logger.info(
            "Resolved %s: %d stream(s), %d caption(s)",
            request,
            len(result.streams),
            len(result.captions),
        )
        return result

    def parse_payload(self, payload: Any) -> ResolveResult:
        """Filter and normalize the provider's ``data`` object.

        Entries with a missing or non-string URL, label or file are skipped,
        and scalar fields are coerced to strings.
        """

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            return ResolveResult()

        streams: list[StreamSource] = []
        for item in _entries(data.get("sources")):
            url = item.get("url")
            if not isinstance(url, str) or not url or self.config.partner_marker not in url:
                continue
            streams.append(
                StreamSource(
                    url=url,
                    quality=_text(item.get("quality"), "Auto"),
                    provider=_text(item.get("source"), "Flowcast"),
                    format=_text(item.get("format"), "mp4"),
                )
            )

        captions: list[StreamCaption] = []
        for item in _entries(data.get("captions")):
            label = item.get("label")
            file_url = item.get("file")
            if not isinstance(label, str) or not isinstance(file_url, str) or not label or not file_url:
                continue
            language = label.replace(self.config.caption_suffix, "", 1).strip()
            captions.append(StreamCaption(label=label, url=file_url, language=language))

        return ResolveResult(streams=streams, captions=captions)
