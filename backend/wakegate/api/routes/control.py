"""Control surface routes — wake, power-off, status polling, bypass redirect."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import RedirectResponse

from wakegate.config import settings
from wakegate.schemas.control import ActionResponse, ControlStatus
from wakegate.services import get_bypass_session, get_health_monitor, get_orchestrator

logger = logging.getLogger(__name__)
router = APIRouter()


def safe_local_path(path: str | None) -> str:
    """Only same-origin absolute paths; anything else goes to the root."""
    if not path or not path.startswith("/") or path.startswith("//") or "\\" in path:
        return "/"
    # browsers drop tab/CR/LF, which would turn "/\t/host" into "//host"
    if any(c < " " or c == "\x7f" for c in path):
        return "/"
    return path


@router.post("/wake", response_model=ActionResponse)
async def wake():
    """Admit a wake sequence; progress is polled via /status."""
    accepted, message = get_orchestrator().request_wake()
    return ActionResponse(success=accepted, message=message)


@router.post("/poweroff", response_model=ActionResponse)
async def power_off():
    """Admit a power-off sequence; the command itself runs elsewhere."""
    if not settings.show_power_off_button:
        return ActionResponse(success=False, message="Power-off is disabled")

    accepted, message = get_orchestrator().request_power_off()
    return ActionResponse(success=accepted, message=message)


@router.get("/status", response_model=ControlStatus)
async def status():
    state = get_orchestrator().state()
    healthy = await get_health_monitor().cached_healthy()
    return ControlStatus(
        is_healthy=healthy,
        is_waking=state.is_waking,
        is_powering_off=state.is_powering_off,
        message=state.message,
        progress=state.progress,
    )


@router.post("/redirect")
async def redirect(path: str | None = None):
    """Let the next request through the health gate and send the browser back."""
    get_bypass_session().grant()
    target = safe_local_path(path)
    logger.info("Bypass granted, redirecting to %s", target)
    return RedirectResponse(target, status_code=303)
