# ABOUTME: Unit tests for writing metadata and covers back into EPUB archives.
# ABOUTME: Checks archive layout, member preservation, atomic replacement and version 2 writes.

import zipfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from bookwright.formats.epub import (
    EpubReadError,
    open_epub,
    read_cover_image,
    read_epub_metadata,
    save_epub,
    write_epub_metadata,
)
from bookwright.metadata.types import Author, MetadataUpdate, Series
from tests.fixtures.epub_samples import JPEG_BYTES, PNG_BYTES

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _members(path: Path) -> dict[str, bytes]:
    with zipfile.ZipFile(path) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


class TestWriteEpubMetadata:
    """Tests for write_epub_metadata."""

    def test_updates_title_in_place(self, sample_epub: Path) -> None:
        """The new title is readable from the same file."""
        write_epub_metadata(sample_epub, MetadataUpdate(title="Il Nome della Rosa"), now=NOW)
        assert read_epub_metadata(sample_epub).metadata.title == "Il Nome della Rosa"

    def test_mimetype_first_and_stored(self, sample_epub: Path) -> None:
        """The rewritten archive keeps the EPUB container rules."""
        write_epub_metadata(sample_epub, MetadataUpdate(title="X"))
        with zipfile.ZipFile(sample_epub) as zf:
            first = zf.infolist()[0]
            assert first.filename == "mimetype"
            assert first.compress_type == zipfile.ZIP_STORED
            assert zf.read("mimetype") == b"application/epub+zip"

    def test_other_members_untouched(self, sample_epub: Path) -> None:
        """Only the package document changes."""
        package = open_epub(sample_epub)
        before = _members(sample_epub)
        write_epub_metadata(sample_epub, MetadataUpdate(publisher="Bompiani"))
        after = _members(sample_epub)

        assert set(after) == set(before)
        changed = {name for name in before if before[name] != after[name]}
        assert changed == {package.opf_path}

    def test_returns_merge_warnings(self, sample_epub: Path) -> None:
        """Advisory warnings from the merge are returned."""
        result = write_epub_metadata(sample_epub, MetadataUpdate(title="X"))
        assert result.warnings == []

    def test_no_temporary_files_left(self, sample_epub: Path) -> None:
        """The temporary archive is moved into place."""
        write_epub_metadata(sample_epub, MetadataUpdate(title="X"))
        assert [p.name for p in sample_epub.parent.iterdir()] == [sample_epub.name]

    def test_version_two_archive(self, epub2_file: Path) -> None:
        """Version-2 archives are rewritten with calibre series metas."""
        update = MetadataUpdate(
            authors=[Author(name="Frank Herbert")],
            series=Series(name="Dune Chronicles", index="2"),
        )
        write_epub_metadata(epub2_file, update)
        meta = read_epub_metadata(epub2_file).metadata
        assert meta.series == Series(name="Dune Chronicles", index="2")
        assert meta.author == "Frank Herbert"
        assert meta.isbn == "0441013597"

    def test_corrupt_file_raises(self, corrupt_epub: Path) -> None:
        """Unreadable input raises before anything is written."""
        with pytest.raises(EpubReadError):
            write_epub_metadata(corrupt_epub, MetadataUpdate(title="X"))
        assert corrupt_epub.read_text() == "this is not a valid epub file"


class TestCoverWrite:
    """Cover replacement through the archive."""

    def test_replaces_existing_cover(self, covered_epub: Path) -> None:
        """New bytes land in the existing cover member."""
        write_epub_metadata(covered_epub, MetadataUpdate(), cover=PNG_BYTES)
        assert read_cover_image(open_epub(covered_epub)) == PNG_BYTES

    def test_adds_cover_to_book_without_one(self, sample_epub: Path) -> None:
        """A new image member is stored next to the package document."""
        write_epub_metadata(sample_epub, MetadataUpdate(), cover=JPEG_BYTES)
        package = open_epub(sample_epub)
        assert read_cover_image(package) == JPEG_BYTES
        assert any(name.endswith("images/cover.jpg") for name in _members(sample_epub))

    def test_version_two_cover_replacement(self, epub2_file: Path) -> None:
        """The version-2 meta pointer locates the member to overwrite."""
        write_epub_metadata(epub2_file, MetadataUpdate(), cover=PNG_BYTES)
        assert _members(epub2_file)["OEBPS/images/cover.jpg"] == PNG_BYTES


class TestSaveEpub:
    """Tests for save_epub."""

    def test_save_to_another_path(self, sample_epub: Path, tmp_path: Path) -> None:
        """Saving elsewhere leaves the source archive untouched."""
        original = sample_epub.read_bytes()
        package = open_epub(sample_epub)
        package.document.elements("title")[0].value = "Copy"
        dest = tmp_path / "copy.epub"

        assert save_epub(package, dest) == dest
        assert sample_epub.read_bytes() == original
        assert read_epub_metadata(dest).metadata.title == "Copy"

    def test_failed_save_keeps_original(self, sample_epub: Path) -> None:
        """A failure while moving the archive into place leaves the source intact."""
        original = sample_epub.read_bytes()
        package = open_epub(sample_epub)
        with patch("pathlib.Path.replace", side_effect=OSError("disk full")):
            with pytest.raises(EpubReadError):
                save_epub(package)
        assert sample_epub.read_bytes() == original
        assert [p.name for p in sample_epub.parent.iterdir()] == [sample_epub.name]
