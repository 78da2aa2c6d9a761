# toybox/domain/db_models.py
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, LargeBinary, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class PackageModel(Base):
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, autoincrement=False)
    rev = Column(Integer, primary_key=True, autoincrement=False)
    type = Column(String, nullable=False)
    name = Column(String, nullable=False)
    dataname = Column(String, nullable=False, default="")
    author = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    data = Column(LargeBinary, nullable=True)
    time = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    downloads = Column(Integer, nullable=False, default=0)
    favorites = Column(Integer, nullable=False, default=0)
    goods = Column(Integer, nullable=False, default=0)
    bads = Column(Integer, nullable=False, default=0)
    unsafe = Column(Boolean, nullable=False, default=False)

    def to_domain(self, content=(), includes=(), profile=None):
        """Convert database model to domain Package"""
        from .models import Package
        uploaded = self.time
        if uploaded is not None and uploaded.tzinfo is None:
            # sqlite drops the offset
            uploaded = uploaded.replace(tzinfo=timezone.utc)
        return Package(
            id=self.id,
            revision=self.rev,
            type=self.type,
            name=self.name,
            dataname=self.dataname or "",
            author=self.author or None,
            author_name=profile.personaname if profile else "",
            author_icon=profile.avatarmedium if profile else "",
            description=self.description or "",
            data=self.data or None,
            content=list(content),
            includes=list(includes),
            uploaded=uploaded,
            downloads=self.downloads or 0,
            favorites=self.favorites or 0,
            goods=self.goods or 0,
            bads=self.bads or 0,
            unsafe=bool(self.unsafe),
        )


class FileModel(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, autoincrement=False)
    rev = Column(Integer, primary_key=True, autoincrement=False)
    path = Column(String, nullable=False, index=True)
    size = Column(Integer, nullable=False, default=0)
    psize = Column(Integer, nullable=False, default=0)


class ContentLinkModel(Base):
    """Which file revisions make up a package snapshot, in order."""
    __tablename__ = "content"

    id = Column(Integer, primary_key=True, autoincrement=False)
    rev = Column(Integer, primary_key=True, autoincrement=False)
    position = Column(Integer, primary_key=True, autoincrement=False)
    fileid = Column(Integer, nullable=False)
    filerev = Column(Integer, nullable=False)


class IncludeModel(Base):
    __tablename__ = "includes"

    id = Column(Integer, primary_key=True, autoincrement=False)
    rev = Column(Integer, primary_key=True, autoincrement=False)
    position = Column(Integer, primary_key=True, autoincrement=False)
    includeid = Column(Integer, nullable=False)
    includerev = Column(Integer, nullable=False)


class ProfileModel(Base):
    __tablename__ = "profiles"

    steamid = Column(String, primary_key=True)
    personaname = Column(String, nullable=False, default="")
    avatarmedium = Column(String, nullable=False, default="")
