from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Literal

StorageType = Literal["local"]


@dataclass
class UploadDescriptor:
    filename: str
    size: int
    stream: BinaryIO


@dataclass(frozen=True)
class Placement:
    path: Path
    date_path: str
    file_name: str
    digest: str
    deduplicated: bool
    mtime: float


@dataclass(frozen=True)
class StoredImage:
    file_name: str
    img_url: str
    extname: str
    id: str
    created_at: int
    updated_at: int
    type: StorageType = "local"


@dataclass(frozen=True)
class DeleteItem:
    type: str
    img_url: str
