"""WakeGate FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from wakegate import __version__
from wakegate.config import settings
from wakegate.services import init_services, shutdown_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # === STARTUP ===
    _setup_logging()

    # Invalid MAC / unusable settings abort startup here
    init_services(settings)
    logger.info(
        "WakeGate v%s started — listening on %s:%s, upstream %s",
        __version__, settings.host, settings.listen_port, settings.upstream_url,
    )

    try:
        yield
    finally:
        # === SHUTDOWN ===
        await shutdown_services()
        logger.info("WakeGate shutting down")


def _setup_logging() -> None:
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Every probe and forwarded request would otherwise log at INFO
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    """Application factory."""
    from wakegate.api.routes import build_router

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        debug=settings.debug,
        lifespan=_lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.include_router(build_router(settings.enable_control_page, settings.control_prefix))

    if settings.enable_control_page:
        logger.info("Control page enabled at %s", settings.control_prefix)
    else:
        logger.info("Control page disabled — autonomous wake mode")

    return app


app = create_app()


def run(**kwargs: Any) -> None:
    import uvicorn

    uvicorn.run(
        "wakegate.main:app",
        host=settings.host,
        port=settings.listen_port,
        log_level=settings.log_level.lower(),
        **kwargs,
    )


if __name__ == "__main__":
    run()
