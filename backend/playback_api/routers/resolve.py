"""Stream resolution endpoint."""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response

from backend.resolver.stream_resolver import SourceResolver

from ..dependencies import get_resolver
from ..schemas import ResolveResponse

router = APIRouter(tags=["resolve"])

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


@router.get("/resolve", response_model=ResolveResponse)
async def resolve_streams(
    type: str | None = Query(default=None, description="Content kind: movie or tv."),
    id: str | None = Query(default=None, description="Upstream content identifier."),
    tmdb_id: str | None = Query(default=None, alias="tmdbId", description="Legacy name for id."),
    season: str | None = Query(default=None, description="Season number (TV only)."),
    episode: str | None = Query(default=None, description="Episode number (TV only)."),
    resolver: SourceResolver = Depends(get_resolver),
) -> JSONResponse:
    """Resolve ranked sources and captions for a movie or episode.

    The body always carries both lists; failures are reported through the
    status code and the ``error`` field rather than an exception payload.
    """

    result = await resolver.resolve(type, id if id is not None else tmdb_id, season=season, episode=episode)
    return JSONResponse(result.to_payload(), status_code=result.status_code, headers=_CORS_HEADERS)


@router.options("/resolve", include_in_schema=False)
async def resolve_options() -> Response:
    """Answer plain OPTIONS requests that carry no preflight headers."""

    return Response(status_code=200, headers=_CORS_HEADERS)
