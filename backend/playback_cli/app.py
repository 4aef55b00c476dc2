"""Command line interface for the Cinestream playback API."""
from __future__ import annotations

import json
from typing import Any, Optional

import httpx
import typer

from backend.player.sources import build_playback_plan
from backend.resolver.embed import EMBED_BASE_URL, EmbedProvider
from backend.resolver.errors import ParameterError
from backend.resolver.keygen import derive_secret_key
from backend.resolver.models import ProviderRequest, ResolveResult, StreamCaption, StreamSource

from .client import create_client


DEFAULT_API_BASE = "http://localhost:8000"
DEFAULT_PROFILE = "default"

app = typer.Typer(help="Interact with the Cinestream playback service.")
progress_app = typer.Typer(help="Inspect and edit per-profile watch progress.")
app.add_typer(progress_app, name="progress")


def _api_base_option() -> typer.Option:
    return typer.Option(
        DEFAULT_API_BASE,
        "--api-base",
        help="Base URL for the playback API service.",
        show_default=True,
        envvar="CINESTREAM_API_BASE",
    )


def _profile_option() -> typer.Option:
    return typer.Option(
        DEFAULT_PROFILE,
        "--profile",
        help="Profile whose progress is read or changed.",
        show_default=True,
        envvar="CINESTREAM_PROFILE",
    )


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _resolve_params(kind: str, content_id: str, season: Optional[int], episode: Optional[int]) -> dict[str, Any]:
    params: dict[str, Any] = {"type": kind, "id": content_id}
    if season is not None:
        params["season"] = season
    if episode is not None:
        params["episode"] = episode
    return params


def _fetch_resolve(api_base: str, params: dict[str, Any]) -> httpx.Response:
    with create_client(api_base) as client:
        return client.get("/resolve", params=params)


@app.command()
def health(api_base: str = _api_base_option()) -> None:
    """Call the /health endpoint and pretty-print the response."""

    with create_client(api_base) as client:
        response = client.get("/health")
        response.raise_for_status()
        _echo_json(response.json())


@app.command()
def key(identifier: str = typer.Argument(..., help="Content identifier to derive the key for.")) -> None:
    """Print the aggregator secret key for an identifier (computed locally)."""

    typer.echo(derive_secret_key(identifier))


@app.command()
def resolve(
    kind: str = typer.Option(..., "--type", help="movie or tv"),
    content_id: str = typer.Option(..., "--id", help="Upstream content identifier."),
    season: Optional[int] = typer.Option(None, help="Season number for TV content."),
    episode: Optional[int] = typer.Option(None, help="Episode number for TV content."),
    api_base: str = _api_base_option(),
) -> None:
    """Resolve sources and captions through the API."""

    response = _fetch_resolve(api_base, _resolve_params(kind, content_id, season, episode))
    _echo_json(response.json())
    if response.status_code != 200:
        raise typer.Exit(code=1)


@app.command()
def sources(
    kind: str = typer.Option(..., "--type", help="movie or tv"),
    content_id: str = typer.Option(..., "--id", help="Upstream content identifier."),
    season: Optional[int] = typer.Option(None, help="Season number for TV content."),
    episode: Optional[int] = typer.Option(None, help="Episode number for TV content."),
    embed_base: str = typer.Option(EMBED_BASE_URL, help="Embeddable player used as the last fallback."),
    include_embed: bool = typer.Option(
        True,
        "--embed/--no-embed",
        help="Append the embeddable-frame fallback after direct sources.",
        show_default=True,
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Show the ranked playback plan a player would walk through."""

    try:
        request = ProviderRequest.build(kind, content_id, season, episode)
    except ParameterError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    response = _fetch_resolve(api_base, _resolve_params(kind, content_id, season, episode))
    body = response.json()
    result = ResolveResult(
        streams=[StreamSource.model_validate(item) for item in body.get("streams", [])],
        captions=[StreamCaption.model_validate(item) for item in body.get("captions", [])],
        error=body.get("error"),
        status_code=response.status_code,
    )
    if result.error:
        typer.echo(f"Resolver: {result.error} (HTTP {result.status_code})", err=True)

    plan = build_playback_plan(
        result,
        request,
        embed=EmbedProvider(embed_base) if include_embed else None,
        base_url=api_base,
    )
    _echo_json(
        {
            "sources": [source.model_dump() for source in plan.sources],
            "captions": [caption.model_dump() for caption in plan.captions],
        }
    )
    if not plan.sources:
        raise typer.Exit(code=1)


@progress_app.command("list")
def list_progress(profile: str = _profile_option(), api_base: str = _api_base_option()) -> None:
    """List every checkpoint for a profile, most recent first."""

    with create_client(api_base) as client:
        response = client.get(f"/profiles/{profile}/progress")
        response.raise_for_status()
        _echo_json(response.json())


@progress_app.command("continue")
def continue_watching(
    limit: int = typer.Option(20, min=1, max=50, help="Maximum number of titles to show."),
    profile: str = _profile_option(),
    api_base: str = _api_base_option(),
) -> None:
    """Show the unfinished titles for a profile."""

    with create_client(api_base) as client:
        response = client.get(f"/profiles/{profile}/progress/continue", params={"limit": limit})
        response.raise_for_status()
        _echo_json(response.json())


@progress_app.command("remove")
def remove_progress(
    kind: str = typer.Argument(..., help="movie or tv"),
    content_id: str = typer.Argument(..., help="Upstream content identifier."),
    season: Optional[int] = typer.Option(None, help="Season number for TV content."),
    episode: Optional[int] = typer.Option(None, help="Episode number for TV content."),
    profile: str = _profile_option(),
    api_base: str = _api_base_option(),
) -> None:
    """Forget the checkpoint for one title or episode."""

    params = {name: value for name, value in (("season", season), ("episode", episode)) if value is not None}
    with create_client(api_base) as client:
        response = client.delete(f"/profiles/{profile}/progress/{kind}/{content_id}", params=params)
        if response.status_code == 404:
            typer.echo("No progress recorded.", err=True)
            raise typer.Exit(code=1)
        response.raise_for_status()
    typer.echo("Removed.")
