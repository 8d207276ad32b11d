from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO

from xrpic.domain.models import Placement


class StoragePort(ABC):
    @abstractmethod
    def place(self, *, date_path: str, extension: str, header: bytes, stream: BinaryIO) -> Placement:
        """Persist ``header`` + ``stream`` under its content digest and return where it landed."""

    @abstractmethod
    def build_url(self, date_path: str, file_name: str) -> str:
        """Resolve the public URL for a stored file."""

    @abstractmethod
    def resolve_url(self, url: str) -> Path:
        """Map a public URL back to a local path inside the managed root."""

    @abstractmethod
    def stat(self, path: Path) -> os.stat_result:
        ...

    @abstractmethod
    def remove(self, path: Path) -> None:
        ...

    @abstractmethod
    def contains(self, path: Path) -> bool:
        """True when ``path`` lies strictly inside the managed root."""
