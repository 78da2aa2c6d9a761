# toybox/domain/manifest.py
"""
Text manifest encoder.

The legacy client parses a small nested key/value dialect::

    "script"
    {
    "scriptid"	"42"
    "content"
    {
    "content_7"
    {
    "id"	"7"
    ...
    }
    }
    }

Every value is written as a quoted string. Blocks keep insertion order
because the client reads them with a strict, order-sensitive parser.
"""
from __future__ import annotations

from typing import List, Optional, Tuple, Union

from .archive import parse_author
from .models import Package
from ..core.config import get_settings
from ..core.errors import ValidationError

Scalar = Union[int, str]

HOOK_FIELDS = (
    "luamenu_installed",
    "luamenu_action",
    "luaclient_installed",
    "luaclient_action",
    "luaserver_installed",
    "luaserver_action",
)


class VDFBlock:
    """Insertion-ordered list of (key, value) entries; values are scalars or blocks."""

    def __init__(self):
        self.entries: List[Tuple[str, Union[Scalar, "VDFBlock"]]] = []

    def add(self, key: str, value: Union[Scalar, "VDFBlock"]) -> "VDFBlock":
        self.entries.append((key, value))
        return self

    def keys(self) -> List[str]:
        return [k for k, _ in self.entries]

    def encode(self) -> str:
        out: List[str] = []
        self._encode(out)
        return "".join(out)

    def _encode(self, out: List[str]) -> None:
        for key, value in self.entries:
            _check(key)
            if isinstance(value, VDFBlock):
                out.append(f'"{key}"\n{{\n')
                value._encode(out)
                out.append("}\n")
            else:
                text = str(value)
                _check(text)
                out.append(f'"{key}"\t"{text}"\n')


def _check(text: str) -> None:
    if '"' in text or "\n" in text or "\r" in text:
        raise ValidationError(f"value cannot be written to a manifest: {text!r}")


def build_script(package: Package, install: bool, content_url_base: str) -> VDFBlock:
    script = VDFBlock()
    script.add("scriptid", package.id)
    script.add("revision", package.revision)
    script.add("type", package.type)
    script.add("dataname", package.dataname or "")
    script.add("name", package.name)

    if install:
        script.add("uid", package.uid)
        for hook in HOOK_FIELDS:
            value = getattr(package, hook)
            if value:
                script.add(hook, value)

    if package.content:
        content = VDFBlock()
        for c in package.content:
            item = VDFBlock()
            item.add("id", c.id)
            item.add("rev", c.revision)
            item.add("name", c.path)
            item.add("url", f"{content_url_base}{c.id}")
            item.add("size", c.psize)
            content.add(f"content_{c.id}", item)
        script.add("content", content)

    if package.includes:
        includes = VDFBlock()
        for i in package.includes:
            item = VDFBlock()
            item.add("id", i.id)
            item.add("rev", i.revision)
            item.add("type", i.type)
            includes.add(f"include_{i.id}", item)
        script.add("includes", includes)

    return script


def encode_manifest(package: Package, install: bool = False,
                    content_url_base: Optional[str] = None) -> bytes:
    """Render ``package`` as a manifest; an attached payload follows the text directly."""
    parse_author(package.author)
    if content_url_base is None:
        content_url_base = get_settings().CONTENT_URL_BASE

    root = VDFBlock().add("script", build_script(package, install, content_url_base))
    text = (root.encode() + "\n").encode("utf-8")

    if package.data:
        return text + package.data
    return text
