"""HLS playlist rewriting so every URI points back at the local proxy."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from urllib.parse import quote, urljoin

LineKind = Literal["comment", "blank", "uri"]

MANIFEST_CONTENT_TYPE = "application/vnd.apple.mpegurl"


def is_manifest(url: str, content_type: str | None) -> bool:
    """Return True when a response should be treated as a playlist."""

    lowered = (content_type or "").lower()
    return ".m3u8" in url or "mpegurl" in lowered or "m3u8" in lowered


def encode_uri_component(value: str) -> str:
    return quote(value, safe="-_.!~*'()")


@dataclass(frozen=True, slots=True)
class ManifestLine:
    """One playlist line; ``rewritten_uri`` is set for URI lines only."""

    kind: LineKind
    raw: str
    rewritten_uri: str | None = None

    def render(self) -> str:
        return self.rewritten_uri if self.rewritten_uri is not None else self.raw


class ManifestRewriter:
    """Rewrite playlist URIs into ``{proxy_path}?url=<escaped absolute URL>``.

    Tag and comment lines (``#...``) and blank lines pass through verbatim.
    Relative URIs are resolved against the playlist's own URL.
    """

    def __init__(self, proxy_path: str = "/proxy-hls") -> None:
        self.proxy_path = proxy_path

    def proxy_url(self, target: str) -> str:
        return f"{self.proxy_path}?url={encode_uri_component(target)}"

    def parse(self, text: str, manifest_url: str) -> list[ManifestLine]:
        lines: list[ManifestLine] = []
        for raw in text.split("\n"):
            stripped = raw.strip()
            if not stripped:
                lines.append(ManifestLine(kind="blank", raw=raw))
            elif stripped.startswith("#"):
                lines.append(ManifestLine(kind="comment", raw=raw))
            else:
                absolute = urljoin(manifest_url, stripped)
                lines.append(ManifestLine(kind="uri", raw=raw, rewritten_uri=self.proxy_url(absolute)))
        return lines

    def rewrite(self, text: str, manifest_url: str) -> str:
        return "\n".join(line.render() for line in self.parse(text, manifest_url))
