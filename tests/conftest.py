# ABOUTME: Shared pytest fixtures for Bookwright tests.
# ABOUTME: Provides package documents, EPUB 2/3 archives (valid and broken) and in-memory resources.

import zipfile
from pathlib import Path

import pytest
from ebooklib import epub

from bookwright.opf.document import Document
from bookwright.opf.package import parse_package
from tests.fixtures.epub_samples import (
    JPEG_BYTES,
    OPF_V2,
    OPF_V3,
    MemoryStore,
    write_zip_epub,
)


def _ebooklib_book(title: str) -> epub.EpubBook:
    book = epub.EpubBook()
    book.set_title(title)
    book.set_language("en")

    chapter = epub.EpubHtml(title="Chapter 1", file_name="chap01.xhtml", lang="en")
    chapter.content = b"<html><body><h1>Chapter 1</h1><p>Content.</p></body></html>"
    book.add_item(chapter)

    book.toc = [epub.Link("chap01.xhtml", "Chapter 1", "chap01")]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]
    return book


@pytest.fixture
def opf_v3() -> Document:
    """A parsed version-3 package document with every metadata field populated."""
    return parse_package(OPF_V3.encode("utf-8"))


@pytest.fixture
def opf_v2() -> Document:
    """A parsed version-2 package document using opf: attributes and calibre series."""
    return parse_package(OPF_V2.encode("utf-8"))


@pytest.fixture
def memory_store() -> MemoryStore:
    """An empty in-memory resource store."""
    return MemoryStore()


@pytest.fixture
def sample_epub(tmp_path: Path) -> Path:
    """Create a minimal valid EPUB 3 file with known metadata and an ISBN."""
    book = _ebooklib_book("The Name of the Rose")
    book.set_identifier("9780156001311")
    book.add_author("Umberto Eco")
    book.add_metadata("DC", "publisher", "Harcourt")
    book.add_metadata("DC", "description", "A mystery set in a medieval monastery.")

    filepath = tmp_path / "name_of_the_rose.epub"
    epub.write_epub(str(filepath), book)
    return filepath


@pytest.fixture
def covered_epub(tmp_path: Path) -> Path:
    """Create an EPUB 3 file with a JPEG cover image."""
    book = _ebooklib_book("Foucault's Pendulum")
    book.set_identifier("urn:uuid:4d4b4c2a-7e53-4c0e-9a61-2f0d3a1b5c77")
    book.add_author("Umberto Eco")
    book.set_cover("cover.jpg", JPEG_BYTES)

    filepath = tmp_path / "foucaults_pendulum.epub"
    epub.write_epub(str(filepath), book)
    return filepath


@pytest.fixture
def epub2_file(tmp_path: Path) -> Path:
    """Create a version-2 EPUB whose package document lives under OEBPS/."""
    return write_zip_epub(
        tmp_path / "dune.epub",
        OPF_V2,
        "OEBPS/content.opf",
        {
            "OEBPS/chap01.xhtml": b"<html><body><p>A beginning.</p></body></html>",
            "OEBPS/images/cover.jpg": JPEG_BYTES,
        },
    )


@pytest.fixture
def corrupt_epub(tmp_path: Path) -> Path:
    """Create a corrupt file that is not a valid EPUB."""
    filepath = tmp_path / "corrupt.epub"
    filepath.write_text("this is not a valid epub file")
    return filepath


@pytest.fixture
def containerless_epub(tmp_path: Path) -> Path:
    """Create a zip that has content but no META-INF/container.xml."""
    filepath = tmp_path / "containerless.epub"
    with zipfile.ZipFile(filepath, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED)
        zf.writestr("content.opf", OPF_V3)
    return filepath
