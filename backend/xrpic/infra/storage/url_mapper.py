from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class UrlPathMapper:
    """Translate between stored files and their public URLs.

    ``base_url`` never carries a trailing slash. The mapper performs no
    traversal checks of its own; callers that act on the returned path must
    call :meth:`contains` first.
    """

    upload_dir: Path
    base_url: str

    def to_url(self, date_path: str, filename: str) -> str:
        return f"{self.base_url}/{date_path}/{filename}"

    def to_path(self, url: str) -> Path:
        prefix = f"{self.base_url}/"
        relative = url[len(prefix):] if url.startswith(prefix) else url
        # keep absolute remainders under the root instead of replacing it
        return self.upload_dir / relative.lstrip("/")

    def contains(self, path: Path) -> bool:
        root = Path(os.path.realpath(self.upload_dir))
        target = Path(os.path.realpath(path))
        return target != root and root in target.parents
