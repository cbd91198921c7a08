# ABOUTME: EPUB archive access: finds the package document, reads/writes resources, saves the zip.
# ABOUTME: Wraps the OPF core so metadata edits leave every other archive member untouched.

import logging
import posixpath
import shutil
import tempfile
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from urllib.parse import unquote

from lxml import etree

from bookwright.metadata.types import MetadataUpdate
from bookwright.opf.cover import locate_cover
from bookwright.opf.document import Document
from bookwright.opf.extractor import ExtractionResult, extract_metadata
from bookwright.opf.package import OpfParseError, parse_package, serialize_package
from bookwright.opf.writer import MergeResult, merge_metadata

logger = logging.getLogger(__name__)

CONTAINER_PATH = "META-INF/container.xml"
CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"
MIMETYPE = "mimetype"


class EpubReadError(Exception):
    """Raised when an EPUB file cannot be read, parsed, or written."""


def _canonical_member(name: str) -> str:
    normalized = posixpath.normpath((name or "").replace("\\", "/")).lstrip("/")
    while normalized.startswith("../"):
        normalized = normalized[3:]
    return "" if normalized in ("", ".") else normalized


def _clone_zip_info(info: zipfile.ZipInfo) -> zipfile.ZipInfo:
    clone = zipfile.ZipInfo(info.filename, date_time=info.date_time)
    clone.compress_type = info.compress_type
    clone.comment = info.comment
    clone.create_system = info.create_system
    clone.external_attr = info.external_attr
    return clone


def _opf_path_from_container(zf: zipfile.ZipFile) -> str:
    """Read the package document path out of META-INF/container.xml."""
    try:
        raw = zf.read(CONTAINER_PATH)
    except KeyError as exc:
        raise EpubReadError(f"Missing {CONTAINER_PATH}") from exc

    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(raw, parser=parser)
    except etree.XMLSyntaxError as exc:
        raise EpubReadError(f"Invalid {CONTAINER_PATH}: {exc}") from exc

    for rootfile in root.iter(f"{{{CONTAINER_NS}}}rootfile", "rootfile"):
        full_path = _canonical_member(rootfile.get("full-path", ""))
        if full_path:
            return full_path
    raise EpubReadError(f"No package document declared in {CONTAINER_PATH}")


class ZipResourceStore:
    """Archive members addressed by hrefs relative to the package document.

    Reads come from the archive on disk; writes are held in memory until
    the archive is saved.
    """

    def __init__(self, path: Path, opf_path: str, members: dict[str, str]) -> None:
        self._path = path
        self._opf_dir = posixpath.dirname(opf_path)
        self._members = members
        self.pending: dict[str, bytes] = {}

    def resolve(self, href: str) -> str:
        """Archive member path for an href relative to the package document."""
        joined = posixpath.join(self._opf_dir, unquote(href.split("#", 1)[0]))
        return _canonical_member(joined)

    def read(self, href: str) -> bytes | None:
        member = self.resolve(href)
        if member in self.pending:
            return self.pending[member]
        actual = self._members.get(member)
        if actual is None:
            return None
        with zipfile.ZipFile(self._path) as zf:
            return zf.read(actual)

    def write(self, href: str, data: bytes) -> None:
        member = self.resolve(href)
        if not member:
            raise OSError(f"Cannot store a resource at {href!r}")
        self.pending[member] = data


@dataclass
class EpubPackage:
    """An opened EPUB: its package document and a store for its resources."""

    path: Path
    opf_path: str
    document: Document
    resources: ZipResourceStore = field(repr=False)


def open_epub(path: Path) -> EpubPackage:
    """Open an EPUB and parse its package document.

    Args:
        path: Path to the EPUB file.

    Returns:
        EpubPackage ready for extraction or merging.

    Raises:
        EpubReadError: If the file is missing, not a zip, or has no readable
            package document.
    """
    if not path.exists():
        raise EpubReadError(f"File not found: {path}")

    try:
        with zipfile.ZipFile(path) as zf:
            members: dict[str, str] = {}
            for info in zf.infolist():
                canonical = _canonical_member(info.filename)
                if canonical and canonical not in members:
                    members[canonical] = info.filename
            opf_path = _opf_path_from_container(zf)
            if opf_path not in members:
                raise EpubReadError(f"Package document {opf_path} not found in {path}")
            document = parse_package(zf.read(members[opf_path]))
    except (zipfile.BadZipFile, OSError, OpfParseError) as exc:
        raise EpubReadError(f"Failed to read EPUB: {path}: {exc}") from exc

    return EpubPackage(
        path=path,
        opf_path=opf_path,
        document=document,
        resources=ZipResourceStore(path, opf_path, members),
    )


def read_epub_metadata(path: Path) -> ExtractionResult:
    """Extract metadata from an EPUB file.

    Raises:
        EpubReadError: If the file cannot be read or parsed.
    """
    return extract_metadata(open_epub(path).document)


def read_cover_image(package: EpubPackage) -> bytes | None:
    """Bytes of the package's cover image, or None when it has none."""
    entry = locate_cover(package.document)
    if entry is None or not entry.href:
        return None
    try:
        return package.resources.read(entry.href)
    except (zipfile.BadZipFile, OSError, KeyError) as exc:
        logger.warning("Could not read cover %s from %s: %s", entry.href, package.path, exc)
        return None


def save_epub(package: EpubPackage, dest: Path | None = None) -> Path:
    """Write the package (with its updated OPF and resources) to an EPUB file.

    Every other member is copied unchanged; `mimetype` goes first and
    uncompressed. The output is written to a temporary file and moved into
    place, so `dest` may be the source archive itself.

    Args:
        package: The opened, possibly modified, package.
        dest: Output path; defaults to overwriting the source archive.

    Returns:
        The path written.

    Raises:
        EpubReadError: If the archive cannot be read or written.
    """
    dest = dest or package.path
    opf_bytes = serialize_package(package.document)
    pending = dict(package.resources.pending)

    tmp_handle = tempfile.NamedTemporaryFile(
        prefix=f"{dest.stem}.", suffix=".epub", dir=str(dest.parent), delete=False
    )
    tmp_path = Path(tmp_handle.name)
    tmp_handle.close()

    try:
        with zipfile.ZipFile(package.path) as src, zipfile.ZipFile(tmp_path, "w") as dst:
            infos = src.infolist()
            for info in infos:
                if _canonical_member(info.filename) == MIMETYPE:
                    dst.writestr(MIMETYPE, src.read(info), compress_type=zipfile.ZIP_STORED)
                    break

            for info in infos:
                canonical = _canonical_member(info.filename)
                if canonical == MIMETYPE:
                    continue
                if canonical == package.opf_path:
                    dst.writestr(_clone_zip_info(info), opf_bytes)
                elif canonical in pending:
                    dst.writestr(_clone_zip_info(info), pending.pop(canonical))
                else:
                    with src.open(info) as reader, dst.open(_clone_zip_info(info), "w") as writer:
                        shutil.copyfileobj(reader, writer)

            for member, data in pending.items():
                dst.writestr(member, data, compress_type=zipfile.ZIP_DEFLATED)
        tmp_path.replace(dest)
    except (zipfile.BadZipFile, OSError) as exc:
        raise EpubReadError(f"Failed to write EPUB: {dest}: {exc}") from exc
    finally:
        tmp_path.unlink(missing_ok=True)

    return dest


def write_epub_metadata(
    path: Path,
    updates: MetadataUpdate,
    cover: bytes | None = None,
    now: datetime | None = None,
) -> MergeResult:
    """Merge metadata updates (and optionally a new cover) into an EPUB in place.

    Args:
        path: Path to the EPUB file to update.
        updates: The fields to change; None fields are left alone.
        cover: Replacement cover image bytes.
        now: Timestamp for dcterms:modified.

    Returns:
        MergeResult with the merged document and any advisory warnings.

    Raises:
        EpubReadError: If the file cannot be read or written.
    """
    package = open_epub(path)
    result = merge_metadata(
        package.document, updates, cover=cover, resources=package.resources, now=now
    )
    save_epub(package)
    logger.debug("Wrote metadata to %s with %d warning(s)", path, len(result.warnings))
    return result
