"""
Shared helpers for the test suite: an in-memory blob store, package builders
and an independent reader for the binary addon layout.
"""

import json
import struct
from datetime import datetime, timezone
from typing import Dict, List, Tuple

from toybox.core.errors import NotFound
from toybox.domain.models import Content, Include, Package
from toybox.domain.storage import BlobStore


class StubBlobStore(BlobStore):
    def __init__(self, blobs: Dict[Tuple[int, int], bytes] | None = None):
        self.blobs = dict(blobs or {})
        self.fetched: List[Tuple[int, int]] = []

    def fetch(self, content_id: int, revision: int) -> bytes:
        self.fetched.append((content_id, revision))
        try:
            return self.blobs[(content_id, revision)]
        except KeyError:
            raise NotFound(f"content {content_id}r{revision} not found")

    def put(self, content_id: int, revision: int, data: bytes) -> str:
        self.blobs[(content_id, revision)] = data
        return self.key(content_id, revision)


UPLOADED = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_package(**overrides) -> Package:
    fields = dict(
        id=42, revision=1, type="weapon", name="SuperGun",
        author="76561197960287930", author_name="Garry",
        description="A big gun", uploaded=UPLOADED,
    )
    fields.update(overrides)
    return Package(**fields)


def content_with_blobs(files: List[Tuple[str, bytes]], first_id: int = 100):
    """Content entries plus a blob store holding their bytes."""
    content, blobs = [], StubBlobStore()
    for offset, (path, body) in enumerate(files):
        c = Content(id=first_id + offset, revision=1, path=path, size=len(body), psize=len(body) // 2)
        content.append(c)
        blobs.put(c.id, c.revision, body)
    return content, blobs


def supergun() -> Tuple[Package, StubBlobStore]:
    content, blobs = content_with_blobs([
        ("lua/weapons/gun.lua", b"x" * 120),
        ("models/gun.sw.vtx", b"y" * 800),
    ])
    return make_package(content=content, includes=[Include(id=7, revision=2, type="map")]), blobs


def read_cstring(data: bytes, pos: int) -> Tuple[str, int]:
    end = data.index(b"\x00", pos)
    return data[pos:end].decode("utf-8"), end + 1


def read_archive(data: bytes) -> dict:
    """Decode a version 3 addon archive into a plain dict."""
    assert data[:4] == b"GMAD"
    pos = 4
    version = data[pos]; pos += 1
    steamid, timestamp = struct.unpack_from("<QQ", data, pos); pos += 16
    required = data[pos]; pos += 1
    name, pos = read_cstring(data, pos)
    desc, pos = read_cstring(data, pos)
    author, pos = read_cstring(data, pos)
    (addon_version,) = struct.unpack_from("<I", data, pos); pos += 4

    entries = []
    while True:
        (num,) = struct.unpack_from("<I", data, pos); pos += 4
        if num == 0:
            break
        path, pos = read_cstring(data, pos)
        size, crc = struct.unpack_from("<QI", data, pos); pos += 12
        entries.append({"num": num, "path": path, "size": size, "crc": crc})

    for e in entries:
        e["body"] = data[pos:pos + e["size"]]
        pos += e["size"]

    (content_crc,) = struct.unpack_from("<I", data, pos); pos += 4
    assert pos == len(data), "trailing bytes after archive"

    return {
        "version": version, "steamid": steamid, "timestamp": timestamp,
        "required": required, "name": name, "description": json.loads(desc),
        "raw_description": desc, "author": author, "addon_version": addon_version,
        "files": entries, "content_crc": content_crc,
    }
