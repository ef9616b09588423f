"""Tests for the manifest document reader/writer."""

from __future__ import annotations

import base64

import pytest

from overlay_sync.exceptions import ManifestParseError
from overlay_sync.filesystem.manifest_codec import dump_manifest, parse_manifest
from overlay_sync.models.manifest import FileFingerprint, Manifest
from tests._overlay_helpers import fingerprint, sha1


def _doc(body: str, root: str = "DistFileCache") -> bytes:
    return f"<?xml version='1.0' encoding='utf-8'?><{root}>{body}</{root}>".encode()


def _file(path: str = "a.txt", size: str = "3", digest: str | None = None) -> str:
    digest = digest if digest is not None else base64.b64encode(sha1(b"abc")).decode()
    return f'<File Path="{path}" Size="{size}" Hash="{digest}" />'


class TestDumpManifest:
    def test_round_trip_preserves_entries(self) -> None:
        manifest = Manifest(
            [
                fingerprint("a.txt", b"abc"),
                fingerprint("nested/dir/b.bin", b"\x00\x01\x02\x03\x04"),
                FileFingerprint.absent("gone.txt"),
            ]
        )
        assert parse_manifest(dump_manifest(manifest)) == manifest

    def test_schema_shape(self) -> None:
        data = dump_manifest(Manifest([fingerprint("a.txt", b"abc")]))
        text = data.decode("utf-8")
        assert text.startswith("<?xml")
        assert "<DistFileCache>" in text
        encoded = base64.b64encode(sha1(b"abc")).decode()
        assert f'<File Path="a.txt" Size="3" Hash="{encoded}" />' in text

    def test_entries_sorted_by_path(self) -> None:
        manifest = Manifest([fingerprint("b.txt", b"b"), fingerprint("a.txt", b"a")])
        text = dump_manifest(manifest).decode("utf-8")
        assert text.index('Path="a.txt"') < text.index('Path="b.txt"')

    def test_empty_manifest(self) -> None:
        assert len(parse_manifest(dump_manifest(Manifest()))) == 0


class TestParseManifest:
    def test_parses_file_entry(self) -> None:
        manifest = parse_manifest(_doc(_file()))
        assert manifest.get("a.txt") == fingerprint("a.txt", b"abc")

    def test_backslash_paths_are_normalized(self) -> None:
        manifest = parse_manifest(_doc(_file(path="bin\\x64\\tool.dll")))
        assert "bin/x64/tool.dll" in manifest

    def test_duplicate_paths_last_wins(self) -> None:
        other = base64.b64encode(sha1(b"xyz")).decode()
        manifest = parse_manifest(_doc(_file() + _file(digest=other)))
        entry = manifest.get("a.txt")
        assert entry is not None
        assert entry.hash == sha1(b"xyz")

    def test_rejects_wrong_root(self) -> None:
        with pytest.raises(ManifestParseError, match="root element"):
            parse_manifest(_doc(_file(), root="Manifest"))

    def test_rejects_unknown_child(self) -> None:
        with pytest.raises(ManifestParseError, match="Unexpected element"):
            parse_manifest(_doc("<Directory />"))

    def test_rejects_missing_attribute(self) -> None:
        with pytest.raises(ManifestParseError, match="Hash"):
            parse_manifest(_doc('<File Path="a.txt" Size="3" />'))

    def test_rejects_non_numeric_size(self) -> None:
        with pytest.raises(ManifestParseError, match="Invalid size"):
            parse_manifest(_doc(_file(size="three")))

    def test_rejects_negative_size(self) -> None:
        with pytest.raises(ManifestParseError, match="Negative size"):
            parse_manifest(_doc(_file(size="-1")))

    def test_rejects_bad_hash_encoding(self) -> None:
        with pytest.raises(ManifestParseError, match="hash encoding"):
            parse_manifest(_doc(_file(digest="not base64!")))

    def test_rejects_wrong_hash_length(self) -> None:
        short = base64.b64encode(b"\x01\x02\x03").decode()
        with pytest.raises(ManifestParseError, match="20 bytes"):
            parse_manifest(_doc(_file(digest=short)))

    @pytest.mark.parametrize("path", ["../outside.txt", "/etc/passwd", "C:\\Windows\\x.dll", ""])
    def test_rejects_unsafe_paths(self, path: str) -> None:
        with pytest.raises(ManifestParseError):
            parse_manifest(_doc(_file(path=path)))

    def test_rejects_malformed_xml(self) -> None:
        with pytest.raises(ManifestParseError, match="Malformed"):
            parse_manifest(b"<DistFileCache><File")

    def test_rejects_entity_declarations(self) -> None:
        payload = (
            b'<?xml version="1.0"?>'
            b'<!DOCTYPE DistFileCache [<!ENTITY boom "boom">]>'
            b"<DistFileCache>&boom;</DistFileCache>"
        )
        with pytest.raises(ManifestParseError):
            parse_manifest(payload)
