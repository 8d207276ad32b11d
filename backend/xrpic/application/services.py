from __future__ import annotations

import logging
import mimetypes
import stat
from datetime import datetime
from typing import Callable, Sequence

from xrpic.domain.errors import (
    BadRequestError,
    IoRemoveError,
    IoStatError,
    NotAFileError,
    NotFoundError,
    PathOutsideRootError,
    SizeExceededError,
    UnsupportedDeleteTypeError,
    UnsupportedTypeError,
)
from xrpic.domain.models import DeleteItem, StoredImage, UploadDescriptor
from xrpic.infra.ports.storage import StoragePort
from xrpic.pipeline.sniff import is_image, peek_header, sniff_content_type
from xrpic.utils.ids import new_uuid

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".jpg"
LOCAL_TYPE = "local"

_PREFERRED_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/x-icon": ".ico",
    "image/tiff": ".tiff",
    "image/svg+xml": ".svg",
    "image/avif": ".avif",
    "image/heic": ".heic",
    "image/heif": ".heif",
}


def filename_extension(filename: str | None) -> str:
    # clients may send "C:\\dir\\a.png" or "dir/a.png"
    base = (filename or "").replace("\\", "/").rsplit("/", 1)[-1]
    dot = base.rfind(".")
    if dot <= 0 or dot == len(base) - 1:
        return ""
    extension = base[dot:]
    if any(ord(ch) < 0x20 or ch == "\x7f" for ch in extension):
        raise BadRequestError(f"Invalid file extension: {extension!r}")
    return extension


def extension_for_type(content_type: str) -> str | None:
    mime = content_type.split(";", 1)[0].strip().lower()
    preferred = _PREFERRED_EXTENSIONS.get(mime)
    if preferred:
        return preferred
    guessed = mimetypes.guess_all_extensions(mime, strict=False)
    return guessed[0] if guessed else None


def resolve_extension(filename: str | None, content_type: str) -> str:
    """Filename extension first, then the sniffed type, then ``.jpg``."""
    return filename_extension(filename) or extension_for_type(content_type) or DEFAULT_EXTENSION


class ImageIngestionService:
    def __init__(
        self,
        *,
        storage: StoragePort,
        max_file_size: int,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.storage = storage
        self.max_file_size = max_file_size
        self.clock = clock

    def ingest(self, descriptor: UploadDescriptor) -> StoredImage:
        if descriptor.size > self.max_file_size:
            logger.warning(
                "Rejected %s: declared size %d exceeds %d",
                descriptor.filename,
                descriptor.size,
                self.max_file_size,
            )
            raise SizeExceededError(descriptor.size, self.max_file_size)

        header = peek_header(descriptor.stream)
        content_type = sniff_content_type(header)
        if not is_image(content_type):
            logger.warning("Rejected %s: sniffed as %s", descriptor.filename, content_type)
            raise UnsupportedTypeError(content_type)

        extension = resolve_extension(descriptor.filename, content_type)
        now = self.clock()
        date_path = now.strftime("%Y/%m")

        placement = self.storage.place(
            date_path=date_path,
            extension=extension,
            header=header,
            stream=descriptor.stream,
        )
        logger.info(
            "Upload %s %s as %s",
            descriptor.filename,
            "deduplicated" if placement.deduplicated else "stored",
            placement.path,
        )

        updated_at = int(now.timestamp())
        created_at = int(placement.mtime) if placement.deduplicated else updated_at
        return StoredImage(
            file_name=placement.file_name,
            img_url=self.storage.build_url(date_path, placement.file_name),
            extname=extension,
            id=str(new_uuid()),
            created_at=created_at,
            updated_at=updated_at,
        )


class ImageDeletionService:
    """Fail-fast batch deletion; items removed before a failure stay removed."""

    def __init__(self, *, storage: StoragePort):
        self.storage = storage

    def delete(self, items: Sequence[DeleteItem]) -> int:
        if not items:
            raise BadRequestError("No files to delete")

        deleted = 0
        for index, item in enumerate(items):
            self._delete_one(index, item)
            deleted += 1
        logger.info("Deleted %d file(s)", deleted)
        return deleted

    def _delete_one(self, index: int, item: DeleteItem) -> None:
        if item.type != LOCAL_TYPE:
            raise UnsupportedDeleteTypeError(
                f"Unsupported file type for deletion: {item.type} - {item.img_url}",
                index=index,
            )

        path = self.storage.resolve_url(item.img_url)
        if not self.storage.contains(path):
            logger.warning("Refused delete outside upload dir: %s", item.img_url)
            raise PathOutsideRootError(f"Invalid file path: {item.img_url}", index=index)

        try:
            info = self.storage.stat(path)
        except FileNotFoundError as exc:
            raise NotFoundError(f"File not found: {item.img_url}", index=index) from exc
        except OSError as exc:
            raise IoStatError(f"Failed to access file: {exc}", index=index) from exc

        if stat.S_ISDIR(info.st_mode):
            raise NotAFileError(f"Target is a directory: {item.img_url}", index=index)

        try:
            self.storage.remove(path)
        except OSError as exc:
            raise IoRemoveError(f"Failed to delete file: {exc}", index=index) from exc
        logger.info("Deleted %s", path)
