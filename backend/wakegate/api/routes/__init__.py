"""API route registration."""

from fastapi import APIRouter

from wakegate.api.routes import control, gateway


def build_router(enable_control_page: bool, control_prefix: str) -> APIRouter:
    """Control endpoints (interactive mode only) first, catch-all gateway last."""
    api_router = APIRouter()
    if enable_control_page:
        api_router.include_router(control.router, prefix=control_prefix, tags=["control"])
    api_router.include_router(gateway.router, tags=["gateway"])
    return api_router
