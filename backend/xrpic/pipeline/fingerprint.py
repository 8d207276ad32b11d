from __future__ import annotations

import hashlib
from typing import BinaryIO

from xrpic.domain.errors import IoReadError, IoWriteError

DEFAULT_CHUNK_SIZE = 32 * 1024


class FingerprintingWriter:
    """Tee that feeds every chunk to a digest and to ``sink``."""

    def __init__(self, sink: BinaryIO, algorithm: str = "md5"):
        self.sink = sink
        self.algorithm = algorithm
        self.bytes_written = 0
        self._hash = hashlib.new(algorithm, usedforsecurity=False)

    def write(self, chunk: bytes) -> int:
        if not chunk:
            return 0
        try:
            self.sink.write(chunk)
        except OSError as exc:
            raise IoWriteError(f"failed to write upload: {exc}") from exc
        self._hash.update(chunk)
        self.bytes_written += len(chunk)
        return len(chunk)

    def copy_from(self, stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
        copied = 0
        while True:
            try:
                chunk = stream.read(chunk_size)
            except OSError as exc:
                raise IoReadError(f"failed to read upload: {exc}") from exc
            if not chunk:
                return copied
            copied += self.write(chunk)

    def hexdigest(self) -> str:
        return self._hash.hexdigest()


def fingerprint_stream(
    sink: BinaryIO,
    stream: BinaryIO,
    *,
    head: bytes = b"",
    algorithm: str = "md5",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Write ``head`` then the rest of ``stream`` into ``sink``; return the hex digest."""
    writer = FingerprintingWriter(sink, algorithm=algorithm)
    writer.write(head)
    writer.copy_from(stream, chunk_size=chunk_size)
    return writer.hexdigest()
