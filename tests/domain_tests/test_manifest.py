"""Tests for the text manifest encoder."""

import pytest

from toybox.core import config
from toybox.core.config import Settings
from toybox.core.errors import ValidationError
from toybox.domain.manifest import VDFBlock, encode_manifest
from toybox.domain.models import Content, Include
from tests.support import make_package

BASE = "http://api.cl0udb0x.com/content/getzip?id="


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    monkeypatch.setattr(config, "_settings", Settings(_env_file=None))


def top_level_keys(text: str):
    """Keys directly inside the root "script" block."""
    keys, depth = [], 0
    for line in text.splitlines():
        if line == "{":
            depth += 1
        elif line == "}":
            depth -= 1
        elif line.startswith('"') and depth == 1:
            keys.append(line.split('"')[1])
    return keys


class TestManifestLayout:
    def test_exact_bytes(self):
        """Test the full text of a manifest with content and includes."""
        pkg = make_package(
            content=[Content(id=100, revision=1, path="lua/weapons/gun.lua", size=120, psize=60)],
            includes=[Include(id=7, revision=2, type="map")],
        )
        expected = (
            '"script"\n{\n'
            '"scriptid"\t"42"\n'
            '"revision"\t"1"\n'
            '"type"\t"weapon"\n'
            '"dataname"\t""\n'
            '"name"\t"SuperGun"\n'
            '"content"\n{\n'
            '"content_100"\n{\n'
            '"id"\t"100"\n'
            '"rev"\t"1"\n'
            '"name"\t"lua/weapons/gun.lua"\n'
            f'"url"\t"{BASE}100"\n'
            '"size"\t"60"\n'
            '}\n}\n'
            '"includes"\n{\n'
            '"include_7"\n{\n'
            '"id"\t"7"\n'
            '"rev"\t"2"\n'
            '"type"\t"map"\n'
            '}\n}\n'
            '}\n\n'
        )
        assert encode_manifest(pkg) == expected.encode()

    def test_scalar_order(self):
        """Test the order of the leading scalar keys."""
        text = encode_manifest(make_package()).decode()
        assert top_level_keys(text) == ["scriptid", "revision", "type", "dataname", "name"]

    def test_content_block_after_scalars(self):
        """Test that the content block follows the scalars."""
        pkg = make_package(content=[Content(id=1, revision=3, path="a.lua", size=1, psize=1)])
        keys = top_level_keys(encode_manifest(pkg, install=True).decode())
        assert keys[-1] == "content"
        assert keys[:5] == ["scriptid", "revision", "type", "dataname", "name"]

    def test_content_entry_field_order(self):
        """Test the key order inside one content entry."""
        pkg = make_package(content=[Content(id=5, revision=3, path="x.lua", size=10, psize=4)])
        text = encode_manifest(pkg).decode()
        entry = text.split('"content_5"\n{\n', 1)[1].split("}\n", 1)[0]
        assert [line.split('"')[1] for line in entry.splitlines()] == ["id", "rev", "name", "url", "size"]
        assert '"rev"\t"3"' in entry
        assert '"size"\t"4"' in entry

    def test_empty_lists_omit_blocks(self):
        """Test that empty lists produce no blocks."""
        text = encode_manifest(make_package()).decode()
        assert '"content"' not in text
        assert '"includes"' not in text

    def test_manifest_lists_all_content_regardless_of_whitelist(self):
        """Test that manifests are not filtered by the whitelist."""
        pkg = make_package(content=[
            Content(id=1, revision=1, path="lua/a.lua", size=1, psize=1),
            Content(id=2, revision=1, path="models/a.sw.vtx", size=1, psize=1),
            Content(id=3, revision=1, path="bin/evil.dll", size=1, psize=1),
        ])
        text = encode_manifest(pkg).decode()
        for name in ("content_1", "content_2", "content_3"):
            assert f'"{name}"' in text

    def test_custom_url_base(self):
        """Test an explicit content URL base."""
        pkg = make_package(content=[Content(id=9, revision=1, path="a.lua", size=1, psize=1)])
        text = encode_manifest(pkg, content_url_base="https://cdn.example/c/").decode()
        assert '"url"\t"https://cdn.example/c/9"' in text

    def test_url_base_defaults_to_settings(self, monkeypatch):
        """Test that the URL base comes from settings when omitted."""
        monkeypatch.setattr(config, "_settings", Settings(_env_file=None, CONTENT_URL_BASE="https://mirror.test/?id="))
        pkg = make_package(content=[Content(id=9, revision=1, path="a.lua", size=1, psize=1)])
        assert b'"url"\t"https://mirror.test/?id=9"' in encode_manifest(pkg)


class TestInstallMode:
    def test_uid_and_hooks(self):
        """Test install-style uid and hook keys."""
        pkg = make_package(
            type="map", id=12, name="Flatgrass",
            luamenu_installed="OnMapDownloaded();",
            luamenu_action="OnMapSelected('gm_flatgrass');",
        )
        keys = top_level_keys(encode_manifest(pkg, install=True).decode())
        assert keys == [
            "scriptid", "revision", "type", "dataname", "name",
            "uid", "luamenu_installed", "luamenu_action",
        ]
        assert b'"uid"\t"map_12"' in encode_manifest(pkg, install=True)

    def test_empty_hooks_omitted(self):
        """Test that unset hooks are left out."""
        pkg = make_package(luaserver_action="RunConsoleCommand('x');")
        keys = top_level_keys(encode_manifest(pkg, install=True).decode())
        assert keys[5:] == ["uid", "luaserver_action"]

    def test_hooks_ignored_without_install(self):
        """Test that hooks need install mode."""
        pkg = make_package(luamenu_installed="OnMapDownloaded();")
        text = encode_manifest(pkg, install=False).decode()
        assert "uid" not in text
        assert "luamenu_installed" not in text


class TestPayloadAndValidation:
    def test_payload_follows_text_without_separator(self):
        """Test that save data is appended straight after the text."""
        payload = b"\x00\x01SAVEGAME\xff"
        pkg = make_package(type="savemap", dataname="gm_construct", data=payload)
        out = encode_manifest(pkg)
        text = encode_manifest(make_package(type="savemap", dataname="gm_construct"))
        assert out == text + payload
        assert out.endswith(b"}\n\n" + payload)

    def test_non_numeric_author_rejected(self):
        """Test that a non-numeric author is rejected."""
        with pytest.raises(ValidationError):
            encode_manifest(make_package(author="abc"))

    @pytest.mark.parametrize("author", [None, ""])
    def test_missing_author_allowed(self, author):
        """Test that a missing author is accepted."""
        assert encode_manifest(make_package(author=author)).startswith(b'"script"')

    @pytest.mark.parametrize("name", ['Super "Gun"', "Super\nGun"])
    def test_unrepresentable_values_rejected(self, name):
        """Test values the client parser cannot read."""
        with pytest.raises(ValidationError):
            encode_manifest(make_package(name=name))

    def test_unicode_name_is_utf8(self):
        """Test that names are written as UTF-8."""
        out = encode_manifest(make_package(name="Pistolé"))
        assert '"name"\t"Pistolé"'.encode("utf-8") in out


def test_vdf_block_keeps_insertion_order():
    """Test that blocks keep insertion order."""
    block = VDFBlock().add("b", 1).add("a", 2).add("c", VDFBlock().add("z", "y"))
    assert block.keys() == ["b", "a", "c"]
    assert block.encode() == '"b"\t"1"\n"a"\t"2"\n"c"\n{\n"z"\t"y"\n}\n'
