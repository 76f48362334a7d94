"""Download relay endpoints.

Re-streams an upstream file from our own origin so the browser can load it
without cross-origin restrictions:
- GET /api/relay?url=... - stream the upstream body
- HEAD /api/relay?url=... - upstream headers only
- OPTIONS /api/relay - CORS preflight
"""

from urllib.parse import urlparse

import httpx
import structlog
from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from modelsmith.api.dependencies import get_http_client, get_settings
from modelsmith.core.config import Settings

logger = structlog.get_logger()
router = APIRouter(prefix="/api/relay", tags=["relay"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _is_http_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@router.get("")
async def relay_get(
    url: str | None = Query(default=None, description="Upstream file URL"),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    """Fetch ``url`` and stream its body back with permissive CORS headers.

    Returns:
        200: Upstream body with upstream Content-Type and a 1 hour cache directive
        400: Missing or non-HTTP ``url``
        4xx/5xx: Upstream status forwarded with an error body
        502: Upstream unreachable
    """
    if not url:
        return JSONResponse({"error": "URL parameter is required"}, status_code=400)
    if not _is_http_url(url):
        return JSONResponse({"error": "URL must be an absolute http(s) URL"}, status_code=400)

    upstream_request = http_client.build_request(
        "GET", url, headers={"User-Agent": settings.relay_user_agent}
    )
    try:
        upstream = await http_client.send(upstream_request, stream=True)
    except httpx.HTTPError as e:
        logger.error("relay.fetch_error", url=url[:100], error=str(e), error_type=type(e).__name__)
        return JSONResponse(
            {"error": f"Failed to reach upstream: {e}"},
            status_code=status.HTTP_502_BAD_GATEWAY,
        )

    if upstream.is_error:
        await upstream.aclose()
        logger.warning("relay.fetch_failed", url=url[:100], upstream_status=upstream.status_code)
        return JSONResponse(
            {"error": f"Failed to fetch: {upstream.status_code} {upstream.reason_phrase}"},
            status_code=upstream.status_code,
        )

    content_type = upstream.headers.get("content-type") or DEFAULT_CONTENT_TYPE
    headers = {
        **CORS_HEADERS,
        "Cache-Control": f"public, max-age={settings.relay_cache_seconds}",
    }
    if "content-length" in upstream.headers and "content-encoding" not in upstream.headers:
        headers["Content-Length"] = upstream.headers["content-length"]

    logger.info("relay.streaming", url=url[:100], content_type=content_type)
    return StreamingResponse(
        upstream.aiter_bytes(),
        status_code=status.HTTP_200_OK,
        media_type=content_type,
        headers=headers,
        background=BackgroundTask(upstream.aclose),
    )


@router.head("")
async def relay_head(
    url: str | None = Query(default=None, description="Upstream file URL"),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Resolve ``url`` with a HEAD request and forward its status and headers."""
    if not url or not _is_http_url(url):
        return Response(status_code=400)

    try:
        upstream = await http_client.head(url, headers={"User-Agent": settings.relay_user_agent})
    except httpx.HTTPError as e:
        logger.error("relay.head_error", url=url[:100], error=str(e), error_type=type(e).__name__)
        return Response(status_code=status.HTTP_502_BAD_GATEWAY)

    return Response(
        status_code=upstream.status_code,
        headers={
            **CORS_HEADERS,
            "Content-Type": upstream.headers.get("content-type") or DEFAULT_CONTENT_TYPE,
            "Content-Length": upstream.headers.get("content-length") or "0",
        },
    )


@router.options("")
async def relay_options() -> Response:
    """Answer CORS preflight for the relay."""
    return Response(status_code=200, headers=CORS_HEADERS)
