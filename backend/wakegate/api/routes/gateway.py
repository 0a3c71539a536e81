"""Health-gated pass-through to the managed backend."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response
from fastapi.templating import Jinja2Templates

from wakegate.config import settings
from wakegate.services import get_bypass_session, get_health_monitor, get_orchestrator

logger = logging.getLogger(__name__)
router = APIRouter()

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent.parent / "templates"))

UPSTREAM_TIMEOUT = 60  # seconds
PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
})
# httpx hands back a decoded body, so length/encoding no longer apply
_DROP_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding", "content-length"}


def _raw_target(request: Request) -> str:
    """Path and query as the client sent them; escapes like %3F and %23 stay intact."""
    raw_path = request.scope.get("raw_path") or request.scope["path"].encode("utf-8")
    target = raw_path.split(b"?", 1)[0].decode("latin-1")
    query = request.scope.get("query_string", b"")
    if query:
        target += "?" + query.decode("latin-1")
    return target


async def forward(request: Request) -> Response:
    """Replay the request against the upstream backend."""
    headers = [
        (k, v) for k, v in request.headers.items()
        if k.lower() not in HOP_BY_HOP_HEADERS and k.lower() != "host"
    ]
    body = await request.body()
    url = settings.upstream_url + _raw_target(request)

    try:
        async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT) as client:
            resp = await client.request(request.method, url, headers=headers, content=body)
    except httpx.HTTPError as e:
        logger.warning("Upstream %s %s failed: %s", request.method, request.url.path, e)
        return PlainTextResponse("Bad gateway: upstream service unreachable", status_code=502)

    response = Response(content=resp.content, status_code=resp.status_code)
    for key, value in resp.headers.multi_items():
        if key.lower() not in _DROP_RESPONSE_HEADERS:
            response.headers.append(key, value)
    # an empty HEAD body must not mask the upstream length
    if request.method == "HEAD" and "content-length" in resp.headers:
        response.headers["content-length"] = resp.headers["content-length"]
    return response


def _control_page(request: Request) -> Response:
    original = _raw_target(request)
    state = get_orchestrator().state()
    return templates.TemplateResponse(
        request,
        "control.html",
        {
            "service_name": settings.service_name,
            "control_prefix": settings.control_prefix,
            "show_power_off_button": settings.show_power_off_button,
            "confirm_power_off": settings.confirm_power_off,
            "redirect_delay": settings.redirect_delay,
            "original_path": original,
            "message": state.message,
            "progress": state.progress,
        },
        status_code=503,
    )


@router.api_route("/{full_path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def gateway(request: Request, full_path: str):
    """Bypass window, then health cache, then control page or inline wake."""
    if get_bypass_session().consume_if_active():
        logger.debug("Bypass window used for %s", request.url.path)
        return await forward(request)

    if await get_health_monitor().cached_healthy():
        return await forward(request)

    if settings.enable_control_page:
        return _control_page(request)

    logger.info("Service unhealthy, attempting to wake %s", settings.mac_address)
    if not await get_orchestrator().wake_and_wait():
        return PlainTextResponse("Service did not respond after wake up attempts", status_code=503)

    return await forward(request)
