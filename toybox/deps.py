# toybox/deps.py
from __future__ import annotations

import dataclasses
import threading
from contextlib import contextmanager
from typing import Any, Dict, Optional

from loguru import logger

from .core.config import Settings
from .core.errors import ToyboxError
from .domain import archive, manifest, storage
from .domain.models import Package
from .domain.repos import SnapshotRepo
from .domain.resolver import PackageResolver
from .domain.schemas import PackagePage, PackageView
from .domain.whitelist import DEFAULT_WHITELIST, Whitelist


class PackageService:
    """
    Operations offered to the request-handling layer. Holds only read-only
    collaborators, so one instance is shared by every request thread.
    """

    def __init__(self, settings: Settings, repo: SnapshotRepo, blobs: storage.BlobStore,
                 whitelist: Whitelist = DEFAULT_WHITELIST):
        self.settings = settings
        self.repo = repo
        self.blobs = blobs
        self.whitelist = whitelist
        self.resolver = PackageResolver(repo)
        self.archiver = archive.ArchiveEncoder(blobs, whitelist)

    # ---- encoders ----

    def is_whitelisted(self, path: str) -> bool:
        return self.whitelist.is_allowed(path)

    def encode_manifest(self, package: Package, install: bool = False) -> bytes:
        return manifest.encode_manifest(package, install, self.settings.CONTENT_URL_BASE)

    def encode_archive(self, package: Package, cancel: Optional[threading.Event] = None) -> bytes:
        return self.archiver.encode(package, cancel)

    # ---- request paths ----

    def get_manifest(self, pid: int, rev: Optional[int] = None) -> bytes:
        """Manifest as served to the in-game client; maps get install hooks."""
        with _logged(f"manifest {_ref(pid, rev)}"):
            pkg = self.resolver.resolve(pid, rev)
            install = pkg.type == "map"
            if install:
                pkg = dataclasses.replace(
                    pkg,
                    luamenu_installed="OnMapDownloaded();",
                    luamenu_action=f"OnMapSelected('{pkg.bsp_name()}');",
                )
            return self.encode_manifest(pkg, install)

    def get_archive(self, pid: int, rev: Optional[int] = None,
                    cancel: Optional[threading.Event] = None) -> bytes:
        with _logged(f"archive {_ref(pid, rev)}"):
            return self.encode_archive(self.resolver.resolve(pid, rev), cancel)

    def get_package_view(self, pid: int, rev: Optional[int] = None) -> Dict[str, Any]:
        with _logged(f"view {_ref(pid, rev)}"):
            pkg = self.resolver.resolve(pid, rev)
            return PackageView.from_package(pkg).model_dump(mode="json", exclude_none=True)

    def get_content_zip(self, content_id: int, rev: int) -> bytes:
        with _logged(f"content {_ref(content_id, rev)}"):
            return storage.wrap_content_zip(self.blobs.fetch(content_id, rev))

    def get_fastdl(self, path: str) -> bytes:
        """Raw bytes of the newest content file stored under ``path``."""
        with _logged(f"fastdl {path}"):
            content_id, rev = self.repo.find_file(path)
            return self.blobs.fetch(content_id, rev)

    def list_packages(self, **filters) -> PackagePage:
        return self.repo.list_packages(**filters)


@contextmanager
def _logged(label: str):
    """Log one request outcome; errors are logged and re-raised unchanged."""
    try:
        yield
    except ToyboxError as e:
        logger.warning("{} failed: {}: {}", label, type(e).__name__, e)
        raise
    logger.info("{} served", label)


def _ref(pid: int, rev: Optional[int]) -> str:
    return f"{pid}r{rev or 'latest'}"
