"""Value types produced by the resolver and consumed by the player and API."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, Field

from .errors import ParameterError

ContentKind = Literal["movie", "tv"]
Delivery = Literal["direct", "iframe"]

# "episode" is the name some clients use for episodic content.
_KIND_ALIASES = {"movie": "movie", "tv": "tv", "episode": "tv", "series": "tv"}


class StreamSource(BaseModel):
    """A playable source; lists of these keep descending preference order."""

    url: str = Field(..., description="Absolute media or embed URL")
    quality: str = Field("Auto", description="Human readable quality label")
    provider: str = Field("Flowcast", description="Provider display name")
    format: str = Field("mp4", description="Container or manifest format hint")
    delivery: Delivery = Field("direct", description="direct media or embedded iframe")


class StreamCaption(BaseModel):
    """A caption track offered alongside the sources."""

    label: str = Field(..., description="Display label as supplied upstream")
    url: str = Field(..., description="Absolute upstream caption URL")
    language: str = Field(..., description="Label with the vendor suffix removed")


def normalize_kind(kind: str | None) -> ContentKind:
    normalized = _KIND_ALIASES.get((kind or "").strip().lower())
    if normalized is None:
        raise ParameterError("Type must be 'movie' or 'tv'")
    return normalized  # type: ignore[return-value]


def _positive_number(value: int | str | None, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ParameterError(f"{name} must be a positive integer") from exc
    if number < 0:
        raise ParameterError(f"{name} must be a positive integer")
    return number


@dataclass(frozen=True, slots=True)
class ProviderRequest:
    """Validated inputs of a single provider lookup."""

    content_id: str
    kind: ContentKind
    season: int | None = None
    episode: int | None = None

    @classmethod
    def build(
        cls,
        kind: str | None,
        content_id: str | int | None,
        season: int | str | None = None,
        episode: int | str | None = None,
    ) -> "ProviderRequest":
        """Validate raw query values, raising :class:`ParameterError` on bad input."""

        identifier = "" if content_id is None else str(content_id)
        if not identifier.strip():
            raise ParameterError("Missing required parameters: type and id")
        normalized = normalize_kind(kind)
        season_number = _positive_number(season, "season")
        episode_number = _positive_number(episode, "episode")
        if normalized == "tv" and (season_number is None or episode_number is None):
            raise ParameterError("Season and episode are required for TV shows")
        if normalized == "movie":
            season_number = episode_number = None
        return cls(
            content_id=identifier,
            kind=normalized,
            season=season_number,
            episode=episode_number,
        )


@dataclass(slots=True)
class ResolveResult:
    """Outcome of a resolve call; both lists are always present."""

    streams: list[StreamSource] = field(default_factory=list)
    captions: list[StreamCaption] = field(default_factory=list)
    error: str | None = None
    status_code: int = 200

    @property
    def success(self) -> bool:
        return len(self.streams) > 0

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "success": self.success,
            "streams": [stream.model_dump() for stream in self.streams],
            "captions": [caption.model_dump() for caption in self.captions],
        }
        if self.error:
            payload["error"] = self.error
        return payload
