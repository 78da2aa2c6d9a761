# toybox/domain/schemas.py
from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional

class AddonDescription(BaseModel):
    """JSON blob embedded in the archive header."""
    description: str
    type: str
    tags: List[str] = Field(default_factory=lambda: ["fun"])

class ContentView(BaseModel):
    id: int
    rev: int
    path: str
    size: int
    psize: int

class IncludeView(BaseModel):
    id: int
    rev: int
    type: str

class PackageView(BaseModel):
    id: int
    rev: int
    type: str
    name: str
    dataname: Optional[str] = None
    author: Optional[str] = None
    authorname: Optional[str] = None
    authoricon: Optional[str] = None
    description: Optional[str] = None
    content: Optional[List[ContentView]] = None
    includes: Optional[List[IncludeView]] = None
    uploaded: Optional[datetime] = None

    downloads: Optional[int] = None
    favorites: Optional[int] = None
    goods: Optional[int] = None
    bads: Optional[int] = None

    @classmethod
    def from_package(cls, p) -> "PackageView":
        # empty values are left unset so they drop out of the JSON body
        return cls(
            id=p.id, rev=p.revision, type=p.type, name=p.name,
            dataname=p.dataname or None,
            author=p.author or None,
            authorname=p.author_name or None,
            authoricon=p.author_icon or None,
            description=p.description or None,
            content=[ContentView(id=c.id, rev=c.revision, path=c.path, size=c.size, psize=c.psize)
                     for c in p.content] or None,
            includes=[IncludeView(id=i.id, rev=i.revision, type=i.type) for i in p.includes] or None,
            uploaded=p.uploaded,
            downloads=p.downloads or None,
            favorites=p.favorites or None,
            goods=p.goods or None,
            bads=p.bads or None,
        )

class PackageSummary(BaseModel):
    id: int
    rev: int
    type: str
    name: str
    authorname: Optional[str] = None
    downloads: int = 0
    favorites: int = 0

class PackagePage(BaseModel):
    offset: int
    count: int
    total: int
    items: List[PackageSummary]
