from __future__ import annotations

import secrets

from fastapi import Request

from xrpic.application.services import ImageDeletionService, ImageIngestionService
from xrpic.core.config import Settings
from xrpic.domain.errors import UnauthorizedError
from xrpic.infra.storage.local import LocalImageStorage
from xrpic.infra.storage.url_mapper import UrlPathMapper


def build_storage(settings: Settings) -> LocalImageStorage:
    mapper = UrlPathMapper(upload_dir=settings.storage.upload_dir, base_url=settings.storage.base_url)
    return LocalImageStorage(
        mapper,
        hash_algorithm=settings.storage.hash_algorithm,
        chunk_size=settings.storage.chunk_size,
    )


def build_ingestion_service(settings: Settings, storage: LocalImageStorage) -> ImageIngestionService:
    return ImageIngestionService(storage=storage, max_file_size=settings.storage.max_file_size)


def build_deletion_service(storage: LocalImageStorage) -> ImageDeletionService:
    return ImageDeletionService(storage=storage)


def _presented_secret(request: Request) -> str:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.query_params.get("key", "")


async def provide_ingestion_service(request: Request) -> ImageIngestionService:
    return request.app.state.ingestion_service


async def provide_deletion_service(request: Request) -> ImageDeletionService:
    return request.app.state.deletion_service


async def require_auth(request: Request) -> None:
    settings: Settings = request.app.state.settings
    if not settings.auth.enabled:
        return
    presented = _presented_secret(request)
    if not presented or not secrets.compare_digest(
        presented.encode("utf-8"), settings.auth.secret_key.encode("utf-8")
    ):
        raise UnauthorizedError("Unauthorized")
