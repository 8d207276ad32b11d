from __future__ import annotations

import logging
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from xrpic.api.dependencies import build_deletion_service, build_ingestion_service, build_storage
from xrpic.api.router import router
from xrpic.core.config import Settings, get_settings
from xrpic.core.logging import configure_logging
from xrpic.domain.errors import XrpicError

logger = logging.getLogger(__name__)


def _envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


async def _handle_xrpic_error(request: Request, exc: XrpicError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed (%s): %s", request.method, request.url.path, exc.kind, exc.message)
    return _envelope(exc.status_code, exc.message)


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _envelope(500, "Internal server error")


def static_mount_path(base_url: str) -> str:
    """Path component of ``base_url`` under which stored files are served."""
    return urlparse(base_url).path.rstrip("/")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="xrpic", version="1.0.0")

    storage = build_storage(settings)
    app.state.settings = settings
    app.state.storage = storage
    app.state.ingestion_service = build_ingestion_service(settings, storage)
    app.state.deletion_service = build_deletion_service(storage)

    app.add_exception_handler(XrpicError, _handle_xrpic_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        return {"ok": "true"}

    app.include_router(router)

    if settings.server.serve_static:
        mount_path = static_mount_path(settings.storage.base_url)
        if mount_path:
            # registered last so the API routes win over the mount
            app.mount(
                mount_path,
                StaticFiles(directory=str(settings.storage.upload_dir)),
                name="uploads",
            )
        else:
            logger.warning(
                "Not serving uploads: base_url %s has no path to mount under",
                settings.storage.base_url,
            )

    logger.info(
        "Serving uploads from %s as %s",
        settings.storage.upload_dir,
        settings.storage.base_url,
    )
    return app
