"""Tests for the provider-backed stream resolver and playback plan."""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from urllib.parse import parse_qsl, urlsplit

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.player.sources import build_playback_plan  # noqa: E402
from backend.resolver.embed import EmbedProvider  # noqa: E402
from backend.resolver.keygen import derive_secret_key  # noqa: E402
from backend.resolver.models import ProviderRequest, ResolveResult, StreamCaption, StreamSource  # noqa: E402
from backend.resolver.stream_resolver import ResolverConfig, SourceResolver  # noqa: E402

PROVIDER_PAYLOAD = {
    "data": {
        "sources": [
            {
                "url": "https://valhallastream.example/hls/550/master.m3u8",
                "quality": "1080p",
                "source": "Flowcast HD",
                "format": "hls",
            },
            {"url": "https://elsewhere.example/550.mp4", "quality": "720p"},
            {"url": "https://cdn.valhallastream.example/550.mp4"},
            {"quality": "480p"},
        ],
        "captions": [
            {"label": "English - FlowCast", "file": "https://subs.example/en.vtt"},
            {"label": "Español", "file": "https://subs.example/es.vtt"},
            {"label": "Missing file"},
        ],
    }
}


class Recorder:
    """Collects the requests a mock transport receives."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.delays: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)


def _resolve(handler, *args, config: ResolverConfig | None = None, recorder: Recorder | None = None) -> ResolveResult:
    recorder = recorder or Recorder()

    async def scenario() -> ResolveResult:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            resolver = SourceResolver(client, config, sleep=recorder.sleep)
            return await resolver.resolve(*args)

    return asyncio.run(scenario())


def test_build_url_includes_secret_key_and_episode() -> None:
    """TV lookups should carry season, episode and the derived key in a fixed order."""

    resolver = SourceResolver(httpx.AsyncClient(), ResolverConfig(scraper_url="https://scraper.test/"))
    request = ProviderRequest.build("tv", "1396", 1, 2)

    url = resolver.build_url(request)
    parts = urlsplit(url)

    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://scraper.test/api/provider"
    assert [name for name, _ in parse_qsl(parts.query, keep_blank_values=True)] == [
        "provider",
        "id",
        "season",
        "episode",
        "secretKey",
        "proxyMode",
    ]
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    assert query["secretKey"] == derive_secret_key("1396")
    assert query["season"] == "1" and query["episode"] == "2"
    assert query["proxyMode"] == ""


def test_resolve_filters_sources_and_normalizes_captions() -> None:
    """Only partner sources survive, with defaults filled and caption suffixes removed."""

    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        recorder.requests.append(request)
        return httpx.Response(200, json=PROVIDER_PAYLOAD)

    result = _resolve(handler, "movie", "550", recorder=recorder)

    assert result.status_code == 200
    assert result.success
    assert [stream.url for stream in result.streams] == [
        "https://valhallastream.example/hls/550/master.m3u8",
        "https://cdn.valhallastream.example/550.mp4",
    ]
    assert result.streams[0].quality == "1080p"
    assert result.streams[0].provider == "Flowcast HD"
    assert result.streams[1].quality == "Auto"
    assert result.streams[1].provider == "Flowcast"
    assert result.streams[1].format == "mp4"
    assert [(c.label, c.language) for c in result.captions] == [
        ("English - FlowCast", "English"),
        ("Español", "Español"),
    ]

    sent = recorder.requests[0]
    assert "season" not in sent.url.params
    assert sent.headers["Origin"] == "https://rivestream.org"
    assert sent.headers["Referer"] == "https://rivestream.org/"
    assert sent.headers["Accept"] == "application/json"


def test_invalid_parameters_never_reach_upstream() -> None:
    """Bad input should be answered with 400 without any network traffic."""

    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        recorder.requests.append(request)
        return httpx.Response(200, json=PROVIDER_PAYLOAD)

    missing_episode = _resolve(handler, "tv", "1396", 1, None, recorder=recorder)
    missing_id = _resolve(handler, "movie", "  ", recorder=recorder)
    bad_kind = _resolve(handler, "music", "550", recorder=recorder)

    assert missing_episode.status_code == 400
    assert missing_episode.error == "Season and episode are required for TV shows"
    assert missing_id.status_code == 400
    assert missing_id.error == "Missing required parameters: type and id"
    assert bad_kind.status_code == 400
    assert missing_episode.streams == [] and missing_episode.captions == []
    assert recorder.requests == []


def test_server_errors_are_retried_then_reported() -> None:
    """Persistent 5xx answers should be retried with backoff and surface their status."""

    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        recorder.requests.append(request)
        return httpx.Response(503)

    result = _resolve(handler, "movie", "550", recorder=recorder)

    assert result.status_code == 503
    assert result.error == "Failed to fetch: Service Unavailable"
    assert not result.success
    assert len(recorder.requests) == 3
    assert recorder.delays == [1.0, 2.0]


def test_client_errors_are_not_retried() -> None:
    """A 404 from the provider should be surfaced after a single request."""

    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        recorder.requests.append(request)
        return httpx.Response(404)

    result = _resolve(handler, "movie", "550", recorder=recorder)

    assert result.status_code == 404
    assert result.error == "Failed to fetch: Not Found"
    assert len(recorder.requests) == 1


def test_hard_timeout_reports_504() -> None:
    """A provider slower than the ceiling should yield a timeout result."""

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json=PROVIDER_PAYLOAD)

    result = _resolve(handler, "movie", "550", config=ResolverConfig(timeout=0.05))

    assert result.status_code == 504
    assert result.error == "Request timeout"
    assert result.streams == []


def test_empty_or_malformed_payloads() -> None:
    """Missing data is an empty success; unparsable JSON is a server error."""

    empty = _resolve(lambda request: httpx.Response(200, json={"data": None}), "movie", "550")
    broken = _resolve(lambda request: httpx.Response(200, text="<html>"), "movie", "550")

    assert empty.status_code == 200
    assert not empty.success
    assert empty.to_payload() == {"success": False, "streams": [], "captions": []}
    assert broken.status_code == 500
    assert broken.error == "Provider returned invalid JSON"


def test_oddly_typed_payload_fields_are_coerced_or_skipped() -> None:
    """Numbers become strings, non-list collections and non-string URLs are ignored."""

    numeric_quality = {
        "data": {"sources": [{"url": "https://x.valhallastream.org/a.m3u8", "quality": 1080, "format": None}]}
    }
    scalar_lists = {"data": {"sources": 5, "captions": "English"}}
    bad_captions = {
        "data": {
            "sources": [{"url": 42}, "https://x.valhallastream.org/b.m3u8"],
            "captions": [
                {"label": 7, "file": "https://subs.example/en.vtt"},
                {"label": "English", "file": ["https://subs.example/en.vtt"]},
                {"label": "Deutsch - FlowCast", "file": "https://subs.example/de.vtt"},
            ],
        }
    }

    coerced = _resolve(lambda request: httpx.Response(200, json=numeric_quality), "movie", "550")
    empty = _resolve(lambda request: httpx.Response(200, json=scalar_lists), "movie", "550")
    filtered = _resolve(lambda request: httpx.Response(200, json=bad_captions), "movie", "550")

    assert coerced.status_code == 200
    assert coerced.streams[0].quality == "1080"
    assert coerced.streams[0].format == "mp4"
    assert empty.status_code == 200
    assert empty.streams == [] and empty.captions == []
    assert filtered.status_code == 200
    assert filtered.streams == []
    assert [(caption.label, caption.language) for caption in filtered.captions] == [("Deutsch - FlowCast", "Deutsch")]


def test_payload_interpretation_errors_become_500(monkeypatch: pytest.MonkeyPatch) -> None:
    """A failure while reading the payload is reported, never raised."""

    def explode(self: SourceResolver, payload: object) -> ResolveResult:
        raise TypeError("unexpected payload shape")

    monkeypatch.setattr(SourceResolver, "parse_payload", explode)

    result = _resolve(lambda request: httpx.Response(200, json=PROVIDER_PAYLOAD), "movie", "550")

    assert result.status_code == 500
    assert result.error == "unexpected payload shape"
    assert result.to_payload() == {
        "success": False,
        "streams": [],
        "captions": [],
        "error": "unexpected payload shape",
    }


def test_unreachable_provider_reports_502() -> None:
    """Connection failures should be retried and then reported as a bad gateway."""

    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        recorder.requests.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    result = _resolve(handler, "movie", "550", recorder=recorder)

    assert result.status_code == 502
    assert len(recorder.requests) == 3


def test_playback_plan_proxies_direct_sources_and_appends_embed() -> None:
    """Direct sources and captions go through the proxies and the embed frame comes last."""

    result = ResolveResult(
        streams=[
            StreamSource(url="https://valhallastream.example/a.m3u8", quality="1080p"),
            StreamSource(url="https://valhallastream.example/b.mp4"),
        ],
        captions=[StreamCaption(label="English", url="https://subs.example/en.vtt", language="English")],
    )
    request = ProviderRequest.build("tv", "1396", 2, 5)

    plan = build_playback_plan(result, request, embed=EmbedProvider(), base_url="http://api.test/")

    assert [source.url for source in plan.sources] == [
        "http://api.test/proxy-hls?url=https%3A%2F%2Fvalhallastream.example%2Fa.m3u8",
        "http://api.test/proxy-hls?url=https%3A%2F%2Fvalhallastream.example%2Fb.mp4",
        "https://www.vidking.net/embed/tv/1396/2/5",
    ]
    assert plan.sources[0].quality == "1080p"
    assert plan.sources[-1].delivery == "iframe"
    assert plan.captions[0].url == "http://api.test/proxy-subtitle?url=https%3A%2F%2Fsubs.example%2Fen.vtt"
    assert plan.has_direct


def test_playback_plan_without_direct_sources() -> None:
    """With nothing resolved the plan holds only the embed frame, or nothing at all."""

    request = ProviderRequest.build("movie", "550")

    with_embed = build_playback_plan(ResolveResult(), request, embed=EmbedProvider("https://embed.test/"))
    without_embed = build_playback_plan(ResolveResult(), request)

    assert [source.url for source in with_embed.sources] == ["https://embed.test/movie/550"]
    assert not with_embed.has_direct
    assert without_embed.sources == []
