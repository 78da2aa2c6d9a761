# toybox/domain/repos.py
import dataclasses
import random
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased

from .db_models import ContentLinkModel, FileModel, IncludeModel, PackageModel, ProfileModel
from .models import Content, Include, Package
from .schemas import PackagePage, PackageSummary
from ..core.database import Database
from ..core.errors import NotFound, StorageError, ValidationError


class SnapshotRepo:
    def latest_revision(self, pid: int) -> int:
        """Highest stored revision of ``pid``; NotFound when there is none."""
        raise NotImplementedError

    def fetch_snapshot(self, pid: int, rev: int) -> Package:
        """Package row at (pid, rev) with its content and include lists."""
        raise NotImplementedError

    def list_packages(self, category: str = "", author: str = "", search: str = "",
                      offset: int = 0, count: int = 0, sort: str = "newest",
                      safe_mode: bool = False) -> PackagePage:
        """Latest revision of every package matching the filters, one page of it."""
        raise NotImplementedError

    def find_file(self, path: str) -> Tuple[int, int]:
        """(content id, revision) of the file stored under ``path``."""
        raise NotImplementedError


def _copy(pkg: Package) -> Package:
    return dataclasses.replace(pkg, content=list(pkg.content), includes=list(pkg.includes))


class InMemorySnapshotRepo(SnapshotRepo):
    """Dict-backed store, used by tests and fixtures."""

    def __init__(self, packages: Optional[List[Package]] = None, max_page_size: int = 100):
        self.max_page_size = max_page_size
        self._db: Dict[Tuple[int, int], Package] = {}
        for p in packages or []:
            self.add(p)

    def add(self, pkg: Package) -> Package:
        self._db[(pkg.id, pkg.revision)] = _copy(pkg)
        return pkg

    def latest_revision(self, pid: int) -> int:
        revs = [rev for (i, rev) in self._db if i == pid]
        if not revs:
            raise NotFound(f"package {pid} not found")
        return max(revs)

    def fetch_snapshot(self, pid: int, rev: int) -> Package:
        pkg = self._db.get((pid, rev))
        if pkg is None:
            raise NotFound(f"package {pid}r{rev} not found")
        return _copy(pkg)

    def list_packages(self, category: str = "", author: str = "", search: str = "",
                      offset: int = 0, count: int = 0, sort: str = "newest",
                      safe_mode: bool = False) -> PackagePage:
        offset = max(offset, 0)
        count = page_size(count, self.max_page_size)

        latest: Dict[int, Package] = {}
        for (pid, rev), pkg in self._db.items():
            if pid not in latest or rev > latest[pid].revision:
                latest[pid] = pkg

        matches = [
            p for p in latest.values()
            if (not category or p.type == category)
            and (not author or p.author == author)
            and (not search or search.casefold() in p.name.casefold())
            and not (safe_mode and p.unsafe)
        ]
        if sort == "random":
            random.shuffle(matches)
        else:
            field = SORT_FIELDS.get(sort, "id")
            matches.sort(key=lambda p: (getattr(p, field), p.id), reverse=True)

        items = [
            PackageSummary(
                id=p.id, rev=p.revision, type=p.type, name=p.name,
                authorname=p.author_name or None,
                downloads=p.downloads, favorites=p.favorites,
            )
            for p in matches[offset:offset + count]
        ]
        return PackagePage(offset=offset, count=len(items), total=len(matches), items=items)

    def find_file(self, path: str) -> Tuple[int, int]:
        path = fastdl_path(path)
        found = sorted(
            {(c.revision, c.id) for p in self._db.values() for c in p.content if c.path == path},
            reverse=True,
        )
        if not found:
            raise NotFound(f"no content stored at {path!r}")
        rev, cid = found[0]
        return cid, rev


def page_size(count: int, max_page_size: int) -> int:
    """Rows per listing page; missing or oversized counts fall back to the cap."""
    if count <= 0:
        return max_page_size
    return min(count, max_page_size)


def fastdl_path(path: str) -> str:
    return path[1:] if path.startswith("/") else path


SORT_FIELDS = {
    "newest": "id",
    "mostfavs": "favorites",
    "mostlikes": "goods",
    "mostdls": "downloads",
}


SORT_COLUMNS = {
    "newest": PackageModel.id,
    "mostfavs": PackageModel.favorites,
    "mostlikes": PackageModel.goods,
    "mostdls": PackageModel.downloads,
}


class SqlSnapshotRepo(SnapshotRepo):
    def __init__(self, db: Database, max_page_size: int = 100):
        self.db = db
        self.max_page_size = max_page_size

    # ---------------- reads ----------------

    def latest_revision(self, pid: int) -> int:
        try:
            with self.db.session() as s:
                rev = s.scalar(select(func.max(PackageModel.rev)).where(PackageModel.id == pid))
        except SQLAlchemyError as e:
            raise StorageError(f"failed to fetch latest revision of {pid}: {e}") from e
        if rev is None:
            raise NotFound(f"package {pid} not found")
        return rev

    def fetch_snapshot(self, pid: int, rev: int) -> Package:
        try:
            with self.db.session() as s:
                row = s.get(PackageModel, (pid, rev))
                if row is None:
                    raise NotFound(f"package {pid}r{rev} not found")

                files = s.execute(
                    select(FileModel)
                    .join(ContentLinkModel,
                          (FileModel.id == ContentLinkModel.fileid) & (FileModel.rev == ContentLinkModel.filerev))
                    .where(ContentLinkModel.id == pid, ContentLinkModel.rev == rev)
                    .order_by(ContentLinkModel.position)
                ).scalars().all()

                included = s.execute(
                    select(PackageModel.id, PackageModel.rev, PackageModel.type)
                    .join(IncludeModel,
                          (PackageModel.id == IncludeModel.includeid) & (PackageModel.rev == IncludeModel.includerev))
                    .where(IncludeModel.id == pid, IncludeModel.rev == rev)
                    .order_by(IncludeModel.position)
                ).all()

                profile = s.get(ProfileModel, row.author) if row.author else None

                return row.to_domain(
                    content=[Content(id=f.id, revision=f.rev, path=f.path, size=f.size, psize=f.psize) for f in files],
                    includes=[Include(id=i.id, revision=i.rev, type=i.type) for i in included],
                    profile=profile,
                )
        except SQLAlchemyError as e:
            raise StorageError(f"failed to fetch package {pid}r{rev}: {e}") from e

    def list_packages(self, category: str = "", author: str = "", search: str = "",
                      offset: int = 0, count: int = 0, sort: str = "newest",
                      safe_mode: bool = False) -> PackagePage:
        """Latest revision of every package matching the filters."""
        offset = max(offset, 0)
        count = page_size(count, self.max_page_size)

        p2 = aliased(PackageModel)
        latest = select(func.max(p2.rev)).where(p2.id == PackageModel.id).scalar_subquery()
        q = (
            select(PackageModel, ProfileModel.personaname)
            .outerjoin(ProfileModel, PackageModel.author == ProfileModel.steamid)
            .where(PackageModel.rev == latest)
        )
        if category:
            q = q.where(PackageModel.type == category)
        if author:
            q = q.where(PackageModel.author == author)
        if search:
            q = q.where(PackageModel.name.contains(search, autoescape=True))
        if safe_mode:
            q = q.where(PackageModel.unsafe.is_(False))

        if sort == "random":
            q = q.order_by(func.random())
        else:
            q = q.order_by(SORT_COLUMNS.get(sort, PackageModel.id).desc(), PackageModel.id.desc())

        try:
            with self.db.session() as s:
                total = s.scalar(select(func.count()).select_from(q.order_by(None).subquery()))
                q = q.offset(offset).limit(count)
                rows = s.execute(q).all()
                items = [
                    PackageSummary(
                        id=p.id, rev=p.rev, type=p.type, name=p.name,
                        authorname=personaname or None,
                        downloads=p.downloads or 0, favorites=p.favorites or 0,
                    )
                    for p, personaname in rows
                ]
        except SQLAlchemyError as e:
            raise StorageError(f"failed to list packages: {e}") from e
        return PackagePage(offset=offset, count=len(items), total=total or 0, items=items)

    def find_file(self, path: str) -> Tuple[int, int]:
        """Newest stored file revision whose path is ``path`` (leading ``/`` ignored)."""
        path = fastdl_path(path)
        try:
            with self.db.session() as s:
                row = s.execute(
                    select(FileModel.id, FileModel.rev)
                    .where(FileModel.path == path)
                    .order_by(FileModel.rev.desc(), FileModel.id.desc())
                    .limit(1)
                ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"failed to look up {path!r}: {e}") from e
        if row is None:
            raise NotFound(f"no content stored at {path!r}")
        return row.id, row.rev


    # ---------------- writes ----------------

    def upsert_profile(self, steamid: str, personaname: str, avatarmedium: str = ""):
        with self.db.session() as s:
            s.merge(ProfileModel(steamid=steamid, personaname=personaname, avatarmedium=avatarmedium))

    def publish(self, pkg: Package) -> Package:
        """
        Store ``pkg`` as a new snapshot and return it as read back.

        A package id <= 0 allocates a new id. The revision is always one past
        the highest stored revision for the id. Includes must pin snapshots
        that already exist, which keeps the include graph acyclic.
        """
        try:
            with self.db.session() as s:
                pid = pkg.id
                if pid <= 0:
                    pid = (s.scalar(select(func.max(PackageModel.id))) or 0) + 1
                rev = (s.scalar(select(func.max(PackageModel.rev)).where(PackageModel.id == pid)) or 0) + 1

                for inc in pkg.includes:
                    if s.get(PackageModel, (inc.id, inc.revision)) is None:
                        raise ValidationError(f"include {inc.id}r{inc.revision} does not exist")

                s.add(PackageModel(
                    id=pid, rev=rev, type=pkg.type, name=pkg.name,
                    dataname=pkg.dataname or "", author=pkg.author or None,
                    description=pkg.description or None, data=pkg.data or None,
                    time=pkg.uploaded or datetime.now(timezone.utc),
                    downloads=pkg.downloads, favorites=pkg.favorites,
                    goods=pkg.goods, bads=pkg.bads,
                    unsafe=pkg.unsafe,
                ))

                for position, c in enumerate(pkg.content):
                    existing = s.get(FileModel, (c.id, c.revision))
                    if existing is None:
                        s.add(FileModel(id=c.id, rev=c.revision, path=c.path, size=c.size, psize=c.psize))
                    elif existing.path != c.path or existing.size != c.size:
                        raise ValidationError(f"file {c.id}r{c.revision} already stored with different metadata")
                    s.add(ContentLinkModel(id=pid, rev=rev, position=position, fileid=c.id, filerev=c.revision))

                for position, inc in enumerate(pkg.includes):
                    s.add(IncludeModel(id=pid, rev=rev, position=position,
                                       includeid=inc.id, includerev=inc.revision))
        except SQLAlchemyError as e:
            raise StorageError(f"failed to publish package {pkg.name!r}: {e}") from e

        logger.info("published {} {}r{} ({} files, {} includes)",
                    pkg.type, pid, rev, len(pkg.content), len(pkg.includes))
        return self.fetch_snapshot(pid, rev)
