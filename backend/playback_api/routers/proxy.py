"""Same-origin proxy endpoints for HLS media and captions."""
from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse, Response

from backend.resolver.errors import StreamingError
from backend.resolver.proxy import CORS_HEADERS, HLSProxy, ProxiedResponse, SubtitleProxy

from ..dependencies import get_hls_proxy, get_subtitle_proxy

router = APIRouter(tags=["proxy"])


def _to_response(proxied: ProxiedResponse) -> Response:
    return Response(
        content=proxied.content,
        status_code=proxied.status_code,
        media_type=proxied.media_type,
        headers=proxied.headers,
    )


def _error_response(exc: StreamingError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code, headers=CORS_HEADERS)


@router.get("/proxy-hls")
async def proxy_hls(
    url: str | None = Query(default=None, description="Absolute manifest or segment URL."),
    range_header: str | None = Header(default=None, alias="Range"),
    proxy: HLSProxy = Depends(get_hls_proxy),
) -> Response:
    """Serve a rewritten playlist or a verbatim media segment."""

    try:
        proxied = await proxy.fetch(url, range_header=range_header)
    except StreamingError as exc:
        return _error_response(exc)
    return _to_response(proxied)


@router.get("/proxy-subtitle")
async def proxy_subtitle(
    url: str | None = Query(default=None, description="Absolute caption file URL."),
    proxy: SubtitleProxy = Depends(get_subtitle_proxy),
) -> Response:
    """Serve a caption file from another origin as WebVTT text."""

    try:
        proxied = await proxy.fetch(url)
    except StreamingError as exc:
        return _error_response(exc)
    return _to_response(proxied)
