from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from xrpic.api.dependencies import provide_deletion_service, provide_ingestion_service, require_auth
from xrpic.api.schemas.upload import DeleteRequest, FullResultItem, PathUploadRequest, UploadResponse
from xrpic.application.services import ImageDeletionService, ImageIngestionService
from xrpic.domain.errors import BadRequestError, NotImplementedUploadError
from xrpic.domain.models import DeleteItem, StoredImage, UploadDescriptor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["images"], dependencies=[Depends(require_auth)])


def _to_item(image: StoredImage) -> FullResultItem:
    return FullResultItem(
        fileName=image.file_name,
        imgURL=image.img_url,
        extname=image.extname,
        type=image.type,
        id=image.id,
        createdAt=image.created_at,
        updatedAt=image.updated_at,
    )


def _declared_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    position = upload.file.tell()
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(position)
    return size


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise BadRequestError("Invalid JSON request") from exc


async def _handle_form_upload(request: Request, service: ImageIngestionService) -> UploadResponse:
    try:
        form = await request.form()
    except (MultiPartException, HTTPException) as exc:
        detail = getattr(exc, "detail", None) or getattr(exc, "message", None) or str(exc)
        raise BadRequestError(f"Failed to parse form: {detail}") from exc

    results: list[StoredImage] = []
    try:
        for _field, value in form.multi_items():
            if not isinstance(value, UploadFile):
                continue
            descriptor = UploadDescriptor(
                filename=value.filename or "",
                size=_declared_size(value),
                stream=value.file,
            )
            results.append(await run_in_threadpool(service.ingest, descriptor))
    finally:
        await form.close()

    if not results:
        raise BadRequestError("No files uploaded")

    return UploadResponse(
        success=True,
        result=[item.img_url for item in results],
        fullResult=[_to_item(item) for item in results],
    )


async def _handle_json_upload(request: Request) -> UploadResponse:
    try:
        body = PathUploadRequest.model_validate(await _read_json(request))
    except ValidationError as exc:
        raise BadRequestError("Invalid JSON request") from exc

    if not body.items:
        raise NotImplementedUploadError("Clipboard upload not supported in this implementation")
    raise NotImplementedUploadError("Path upload not supported in this implementation")


@router.post("/upload", response_model=UploadResponse, response_model_exclude_none=True)
async def upload(
    request: Request,
    service: ImageIngestionService = Depends(provide_ingestion_service),
):
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" in content_type:
        return await _handle_form_upload(request, service)
    if "application/json" in content_type:
        return await _handle_json_upload(request)
    raise BadRequestError("Unsupported content type")


@router.api_route(
    "/delete",
    methods=["POST", "DELETE"],
    response_model=UploadResponse,
    response_model_exclude_none=True,
)
async def delete(
    request: Request,
    service: ImageDeletionService = Depends(provide_deletion_service),
):
    try:
        body = DeleteRequest.model_validate(await _read_json(request))
    except ValidationError as exc:
        raise BadRequestError("Invalid JSON request") from exc

    items = [DeleteItem(type=item.type, img_url=item.imgURL) for item in body.items]
    deleted = await run_in_threadpool(service.delete, items)
    logger.debug("Delete request removed %d file(s)", deleted)
    return UploadResponse(success=True, message="Delete succeeded")
