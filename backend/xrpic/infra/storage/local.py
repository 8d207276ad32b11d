from __future__ import annotations

import logging
import os
import stat
import tempfile
import time
from pathlib import Path
from typing import BinaryIO

from xrpic.domain.errors import IoRenameError, IoStatError, IoWriteError
from xrpic.domain.models import Placement
from xrpic.infra.ports.storage import StoragePort
from xrpic.infra.storage.url_mapper import UrlPathMapper
from xrpic.pipeline.fingerprint import DEFAULT_CHUNK_SIZE, FingerprintingWriter

logger = logging.getLogger(__name__)

TEMP_PREFIX = "upload-"
DIR_MODE = 0o755


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    except OSError:
        logger.warning("Failed to remove temp file %s", path, exc_info=True)


class LocalImageStorage(StoragePort):
    """Content-addressed placement under ``<upload_dir>/YYYY/MM``.

    Bytes are streamed into a temp file created next to the destination,
    hashed on the way, and renamed to ``<digest><ext>`` once complete. An
    existing file with the same name short-circuits the rename.
    """

    def __init__(
        self,
        mapper: UrlPathMapper,
        *,
        hash_algorithm: str = "md5",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.mapper = mapper
        self.base_dir = mapper.upload_dir
        self.hash_algorithm = hash_algorithm
        self.chunk_size = chunk_size
        self.file_mode = 0o666 & ~_current_umask()
        self.base_dir.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)

    def place(self, *, date_path: str, extension: str, header: bytes, stream: BinaryIO) -> Placement:
        target_dir = self.base_dir / date_path
        try:
            target_dir.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=target_dir)
        except OSError as exc:
            raise IoWriteError(f"failed to prepare {target_dir}: {exc}") from exc

        # the temp file is removed on every exit except a successful rename
        keep_tmp = False
        try:
            digest = self._write_temp(fd, tmp_path, header, stream)
            file_name = f"{digest}{extension}"
            final_path = target_dir / file_name

            try:
                existing = final_path.stat()
            except FileNotFoundError:
                existing = None
            except OSError as exc:
                raise IoStatError(f"failed to stat {final_path}: {exc}") from exc

            if existing is not None and stat.S_ISREG(existing.st_mode):
                return Placement(
                    path=final_path,
                    date_path=date_path,
                    file_name=file_name,
                    digest=digest,
                    deduplicated=True,
                    mtime=existing.st_mtime,
                )

            try:
                os.replace(tmp_path, final_path)
            except OSError as exc:
                raise IoRenameError(f"failed to move upload into place: {exc}") from exc
            keep_tmp = True
        finally:
            if not keep_tmp:
                _discard(tmp_path)

        return Placement(
            path=final_path,
            date_path=date_path,
            file_name=file_name,
            digest=digest,
            deduplicated=False,
            mtime=time.time(),
        )

    def _write_temp(self, fd: int, tmp_path: str, header: bytes, stream: BinaryIO) -> str:
        try:
            with os.fdopen(fd, "wb") as tmp:
                writer = FingerprintingWriter(tmp, algorithm=self.hash_algorithm)
                writer.write(header)
                writer.copy_from(stream, chunk_size=self.chunk_size)
            os.chmod(tmp_path, self.file_mode)
        except OSError as exc:
            raise IoWriteError(f"failed to write upload: {exc}") from exc
        return writer.hexdigest()

    def build_url(self, date_path: str, file_name: str) -> str:
        return self.mapper.to_url(date_path, file_name)

    def resolve_url(self, url: str) -> Path:
        return self.mapper.to_path(url)

    def contains(self, path: Path) -> bool:
        return self.mapper.contains(path)

    def stat(self, path: Path) -> os.stat_result:
        return path.stat()

    def remove(self, path: Path) -> None:
        path.unlink()

    def find_orphans(self, older_than_seconds: float = 3600.0) -> list[Path]:
        cutoff = time.time() - older_than_seconds
        found: list[Path] = []
        for candidate in sorted(self.base_dir.glob(f"*/*/{TEMP_PREFIX}*")):
            try:
                info = candidate.lstat()
            except FileNotFoundError:
                continue
            if stat.S_ISREG(info.st_mode) and info.st_mtime <= cutoff:
                found.append(candidate)
        return found

    def sweep_orphans(self, older_than_seconds: float = 3600.0) -> list[Path]:
        """Remove ``upload-*`` temp files left behind by crashed writers."""
        removed: list[Path] = []
        for candidate in self.find_orphans(older_than_seconds):
            try:
                candidate.unlink()
            except FileNotFoundError:
                continue
            removed.append(candidate)
            logger.info("Removed orphan temp file %s", candidate)
        return removed
