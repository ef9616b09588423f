"""Manifest document reader/writer.

The document shape is fixed and versionless::

    <DistFileCache>
      <File Path="bin/tool.dll" Size="1234" Hash="<base64 SHA-1>" />
    </DistFileCache>

Both directions walk the schema explicitly, attribute by attribute, so the
wire shape is controlled here rather than derived from a model.
"""

from __future__ import annotations

import base64
import binascii
import xml.etree.ElementTree as ET

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import fromstring

from overlay_sync.exceptions import ManifestParseError
from overlay_sync.filesystem.paths import normalize_relative_path
from overlay_sync.models.manifest import ABSENT_HASH, HASH_SIZE, FileFingerprint, Manifest

ROOT_ELEMENT = "DistFileCache"
FILE_ELEMENT = "File"
PATH_ATTR = "Path"
SIZE_ATTR = "Size"
HASH_ATTR = "Hash"


def encode_hash(digest: bytes) -> str:
    return base64.b64encode(digest).decode("ascii")


def decode_hash(text: str) -> bytes:
    """Decode a base64 digest, raising ManifestParseError on bad input."""
    try:
        digest = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        msg = f"Invalid hash encoding: {text!r}"
        raise ManifestParseError(msg) from exc
    if digest != ABSENT_HASH and len(digest) != HASH_SIZE:
        msg = f"Hash must be {HASH_SIZE} bytes, got {len(digest)}"
        raise ManifestParseError(msg)
    return digest


def dump_manifest(manifest: Manifest) -> bytes:
    """Serialize a manifest; entries are written sorted by path."""
    root = ET.Element(ROOT_ELEMENT)
    for entry in sorted(manifest.entries(), key=lambda e: e.path):
        ET.SubElement(
            root,
            FILE_ELEMENT,
            {
                PATH_ATTR: entry.path,
                SIZE_ATTR: str(entry.size),
                HASH_ATTR: encode_hash(entry.hash),
            },
        )
    ET.indent(root)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def _required_attr(element: ET.Element, name: str) -> str:
    value = element.get(name)
    if value is None:
        msg = f"<{FILE_ELEMENT}> element is missing the {name} attribute"
        raise ManifestParseError(msg)
    return value


def _parse_file(element: ET.Element) -> FileFingerprint:
    raw_path = _required_attr(element, PATH_ATTR)
    try:
        path = normalize_relative_path(raw_path)
    except ValueError as exc:
        raise ManifestParseError(str(exc)) from exc

    raw_size = _required_attr(element, SIZE_ATTR)
    try:
        size = int(raw_size)
    except ValueError as exc:
        msg = f"Invalid size for {path}: {raw_size!r}"
        raise ManifestParseError(msg) from exc
    if size < 0:
        msg = f"Negative size for {path}: {size}"
        raise ManifestParseError(msg)

    digest = decode_hash(_required_attr(element, HASH_ATTR))
    return FileFingerprint(path=path, size=size, hash=digest)


def parse_manifest(data: bytes) -> Manifest:
    """Parse a manifest document.

    Raises:
        ManifestParseError: If the document is not well-formed XML, uses
            forbidden XML constructs, or does not follow the schema.
    """
    try:
        root = fromstring(data)
    except (ET.ParseError, DefusedXmlException) as exc:
        msg = f"Malformed manifest document: {exc}"
        raise ManifestParseError(msg) from exc

    if root.tag != ROOT_ELEMENT:
        msg = f"Unexpected root element <{root.tag}>, expected <{ROOT_ELEMENT}>"
        raise ManifestParseError(msg)

    manifest = Manifest()
    for element in root:
        if element.tag != FILE_ELEMENT:
            msg = f"Unexpected element <{element.tag}> in manifest"
            raise ManifestParseError(msg)
        manifest.put(_parse_file(element))
    return manifest
