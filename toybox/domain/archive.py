# toybox/domain/archive.py
"""
Binary addon archive encoder (legacy format, version 3).

Layout, all integers little-endian::

    "GMAD"  u8 version  u64 author  u64 timestamp  u8 required-content
    name\\0  description-json\\0  author-name\\0  u32 revision
    { u32 index  path\\0  u64 size  u32 crc } ...  u32 0
    file bodies ...
    u32 content-crc

CRC fields are always zero; the client does not check them.
"""
from __future__ import annotations

import io
import struct
import threading
from typing import List, Optional

from loguru import logger

from .models import Content, Package
from .schemas import AddonDescription
from .storage import BlobStore
from .whitelist import DEFAULT_WHITELIST, Whitelist
from ..core.errors import EncodeCancelled, StorageError, ValidationError

MAGIC = b"GMAD"
FORMAT_VERSION = 3
ADDON_TAGS = ["fun"]

u8 = struct.Struct("<B")
u32 = struct.Struct("<I")
u64 = struct.Struct("<Q")

_U64_MAX = (1 << 64) - 1

# characters Go's encoding/json escapes inside strings
_JSON_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def parse_author(author: Optional[str]) -> int:
    """Numeric account id of the author; 0 when absent or empty."""
    if author is None:
        return 0
    text = str(author)
    if text == "":
        return 0
    if not text.isdecimal() or not text.isascii():
        raise ValidationError(f"author id is not numeric: {author!r}")
    value = int(text)
    if value > _U64_MAX:
        raise ValidationError(f"author id out of range: {author!r}")
    return value


def cstring(text: str) -> bytes:
    raw = text.encode("utf-8")
    if b"\x00" in raw:
        raise ValidationError(f"string contains a NUL byte: {text!r}")
    return raw + b"\x00"


def description_json(package: Package) -> str:
    body = AddonDescription(
        description=package.description or "",
        type=package.type,
        tags=list(ADDON_TAGS),
    ).model_dump_json()
    for ch, esc in _JSON_HTML_ESCAPES.items():
        body = body.replace(ch, esc)
    return body


def _timestamp(package: Package) -> int:
    if package.uploaded is None:
        return 0
    return max(int(package.uploaded.timestamp()), 0)


class ArchiveEncoder:
    def __init__(self, blobs: BlobStore, whitelist: Whitelist = DEFAULT_WHITELIST):
        self.blobs = blobs
        self.whitelist = whitelist

    def select(self, package: Package) -> List[Content]:
        """Content entries allowed into the archive, in content-list order."""
        return [c for c in package.content if self.whitelist.is_allowed(c.path)]

    def encode(self, package: Package, cancel: Optional[threading.Event] = None) -> bytes:
        author = parse_author(package.author)
        if not 0 <= package.revision <= 0xFFFFFFFF:
            raise ValidationError(f"revision out of range: {package.revision}")

        files = self.select(package)
        for c in files:
            if not 0 <= c.size <= _U64_MAX:
                raise ValidationError(f"content {c.id}r{c.revision} has invalid size {c.size}")
        if not files:
            logger.info("package {}r{} has no archivable content", package.id, package.revision)
            return b""

        buf = io.BytesIO()
        buf.write(MAGIC)
        buf.write(u8.pack(FORMAT_VERSION))
        buf.write(u64.pack(author))
        buf.write(u64.pack(_timestamp(package)))
        buf.write(u8.pack(0))
        buf.write(cstring(package.name))
        buf.write(cstring(description_json(package)))
        buf.write(cstring(package.author_name or ""))
        buf.write(u32.pack(package.revision))

        for index, c in enumerate(files, start=1):
            buf.write(u32.pack(index))
            buf.write(cstring(c.path))
            buf.write(u64.pack(c.size))
            buf.write(u32.pack(0))
        buf.write(u32.pack(0))

        for c in files:
            if cancel is not None and cancel.is_set():
                raise EncodeCancelled(f"archive for {package.id}r{package.revision} cancelled")
            body = self.blobs.fetch(c.id, c.revision)
            if len(body) != c.size:
                raise StorageError(
                    f"content {c.id}r{c.revision} ({c.path}) is {len(body)} bytes, expected {c.size}"
                )
            buf.write(body)

        buf.write(u32.pack(0))

        logger.info(
            "encoded archive for {}r{}: {} of {} files, {} bytes",
            package.id, package.revision, len(files), len(package.content), buf.tell(),
        )
        return buf.getvalue()
