"""Content-type sniffing from the leading bytes of an upload.

The table follows the WHATWG MIME sniffing signatures for images plus the
common non-image formats people try to upload by mistake. Only the first
``SNIFF_LEN`` bytes are ever inspected.
"""

from __future__ import annotations

from typing import BinaryIO

from xrpic.domain.errors import IoReadError

SNIFF_LEN = 512
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_WHITESPACE = b"\t\n\x0c\r "

# (prefix, content type)
_EXACT_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
    (b"%PDF-", "application/pdf"),
    (b"%!PS-Adobe-", "application/postscript"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"Rar!\x1a\x07", "application/x-rar-compressed"),
    (b"\x00asm", "application/wasm"),
    (b"OggS\x00", "application/ogg"),
    (b"ID3", "audio/mpeg"),
    (b"\x1aE\xdf\xa3", "video/webm"),
)

_FTYP_BRANDS = {
    b"avif": "image/avif",
    b"avis": "image/avif",
    b"heic": "image/heic",
    b"heix": "image/heic",
    b"mif1": "image/heif",
    b"msf1": "image/heif",
}

_HTML_TAGS = (
    b"<!DOCTYPE HTML",
    b"<HTML",
    b"<HEAD",
    b"<SCRIPT",
    b"<IFRAME",
    b"<H1",
    b"<DIV",
    b"<FONT",
    b"<TABLE",
    b"<A",
    b"<STYLE",
    b"<TITLE",
    b"<B",
    b"<BODY",
    b"<BR",
    b"<P",
    b"<!--",
)

# Bytes that never occur in text, per the WHATWG "binary data byte" set.
_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)


def _riff_type(header: bytes) -> str | None:
    if len(header) < 12 or header[:4] != b"RIFF":
        return None
    form = header[8:12]
    if form == b"WEBP":
        return "image/webp"
    if form == b"WAVE":
        return "audio/wave"
    if form == b"AVI ":
        return "video/avi"
    return None


def _ftyp_type(header: bytes) -> str | None:
    if len(header) < 12 or header[4:8] != b"ftyp":
        return None
    box_size = int.from_bytes(header[:4], "big")
    if box_size < 12 or box_size % 4 != 0:
        return None

    major = header[8:12]
    if major in _FTYP_BRANDS:
        return _FTYP_BRANDS[major]

    # compatible brands start after the minor version
    end = min(box_size, len(header))
    for offset in range(16, end - 3, 4):
        brand = header[offset:offset + 4]
        if brand in _FTYP_BRANDS:
            return _FTYP_BRANDS[brand]
        if brand[:3] == b"mp4":
            return "video/mp4"
    if major[:3] == b"mp4" or major == b"isom":
        return "video/mp4"
    return None


def _markup_type(text: bytes) -> str | None:
    if not text.startswith(b"<"):
        return None

    upper = text[:64].upper()
    for tag in _HTML_TAGS:
        if upper.startswith(tag.upper()):
            terminator = upper[len(tag):len(tag) + 1]
            if terminator in (b" ", b">") or tag == b"<!--":
                return "text/html; charset=utf-8"

    lowered = text.lower()
    if lowered.startswith(b"<svg") or (lowered.startswith(b"<?xml") and b"<svg" in lowered):
        return "image/svg+xml"
    if lowered.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"
    return None


def sniff_content_type(header: bytes) -> str:
    """Classify ``header`` (at most ``SNIFF_LEN`` bytes are looked at)."""
    header = header[:SNIFF_LEN]
    if not header:
        return DEFAULT_CONTENT_TYPE

    for prefix, content_type in _EXACT_SIGNATURES:
        if header.startswith(prefix):
            return content_type

    for detector in (_riff_type, _ftyp_type):
        detected = detector(header)
        if detected:
            return detected

    text = header.lstrip(_WHITESPACE)
    if text.startswith(b"\xef\xbb\xbf"):
        text = text[3:].lstrip(_WHITESPACE)
    markup = _markup_type(text)
    if markup:
        return markup

    if header.startswith((b"\xfe\xff", b"\xff\xfe")):
        return "text/plain; charset=utf-16"
    if any(byte in _BINARY_BYTES for byte in header):
        return DEFAULT_CONTENT_TYPE
    return "text/plain; charset=utf-8"


def is_image(content_type: str) -> bool:
    return content_type.strip().lower().startswith("image/")


def peek_header(stream: BinaryIO, size: int = SNIFF_LEN) -> bytes:
    """Read up to ``size`` bytes, looping over short reads until EOF.

    The caller owns the returned bytes and must write them ahead of the
    rest of the stream.
    """
    buffer = bytearray()
    try:
        while len(buffer) < size:
            chunk = stream.read(size - len(buffer))
            if not chunk:
                break
            buffer.extend(chunk)
    except OSError as exc:
        raise IoReadError(f"failed to read upload header: {exc}") from exc
    return bytes(buffer)
