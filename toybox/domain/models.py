# toybox/domain/models.py
import posixpath
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

@dataclass(frozen=True)
class Content:
    id: int
    revision: int
    path: str
    size: int           # uncompressed
    psize: int = 0      # stored / compressed

@dataclass(frozen=True)
class Include:
    id: int
    revision: int
    type: str

@dataclass
class Package:
    id: int
    revision: int
    type: str
    name: str
    dataname: str = ""
    author: str | None = None
    author_name: str = ""
    author_icon: str = ""
    description: str = ""
    data: bytes | None = None
    content: List[Content] = field(default_factory=list)
    includes: List[Include] = field(default_factory=list)
    uploaded: datetime | None = None

    downloads: int = 0
    favorites: int = 0
    goods: int = 0
    bads: int = 0
    unsafe: bool = False  # hidden from safe-mode listings

    # client hooks, only rendered in install-style manifests
    luamenu_installed: str = ""
    luamenu_action: str = ""
    luaclient_installed: str = ""
    luaclient_action: str = ""
    luaserver_installed: str = ""
    luaserver_action: str = ""

    @property
    def uid(self) -> str:
        return f"{self.type}_{self.id}"

    def bsp_name(self) -> str:
        """Base name of the last .bsp in the content list, else the package name."""
        mapname = self.name
        for c in self.content:
            base, ext = posixpath.splitext(posixpath.basename(c.path))
            if ext == ".bsp":
                mapname = base
        return mapname
