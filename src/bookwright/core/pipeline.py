# ABOUTME: Non-destructive metadata write pipeline.
# ABOUTME: Copies an EPUB to an output directory, merges updates into the copy, then verifies it.

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from bookwright.formats.epub import EpubReadError, read_epub_metadata, write_epub_metadata
from bookwright.metadata.isbn import compact_isbn, looks_like_isbn
from bookwright.metadata.language import normalize_language_code
from bookwright.metadata.normalizer import sanitize_metadata_string
from bookwright.metadata.types import BookMetadata, MetadataUpdate

logger = logging.getLogger(__name__)


@dataclass
class FieldVerification:
    """Result of verifying a single metadata field after write-back."""

    field: str
    expected: str | None
    actual: str | None
    passed: bool


@dataclass
class WriteResult:
    """Result of a metadata write operation with verification status."""

    path: Path | None
    success: bool
    verified_fields: list[FieldVerification] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


_MAX_COLLISION_ATTEMPTS = 10_000


def _resolve_collision(output_path: Path) -> Path:
    """Find a non-colliding filename by appending _1, _2, etc."""
    stem = output_path.stem
    suffix = output_path.suffix
    parent = output_path.parent
    for counter in range(1, _MAX_COLLISION_ATTEMPTS + 1):
        candidate = parent / f"{stem}_{counter}{suffix}"
        if not candidate.exists():
            return candidate
    raise OSError(
        f"Could not find a non-colliding filename after "
        f"{_MAX_COLLISION_ATTEMPTS} attempts: {output_path}"
    )


def _expected_title(updates: MetadataUpdate) -> str:
    title = sanitize_metadata_string(updates.title)
    subtitle = sanitize_metadata_string(updates.subtitle)
    if title and subtitle:
        return sanitize_metadata_string(f"{title}: {subtitle}")
    return title


def _expected_authors(updates: MetadataUpdate) -> list[str]:
    if updates.authors:
        names = [
            sanitize_metadata_string(a if isinstance(a, str) else a.name) for a in updates.authors
        ]
        return [n for n in names if n]
    name = sanitize_metadata_string(updates.author)
    return [name] if name else []


def _check(name: str, expected: str, actual: str, passed: bool | None = None) -> FieldVerification:
    return FieldVerification(
        field=name,
        expected=expected,
        actual=actual,
        passed=expected == actual if passed is None else passed,
    )


def _verify_write(dest: Path, updates: MetadataUpdate) -> list[FieldVerification]:
    """Read back the EPUB at dest and compare fields against the updates.

    Only fields the update actually writes are verified. Authors are compared
    as sorted lists. Language is compared after normalization, ignoring case.
    """
    read_back: BookMetadata = read_epub_metadata(dest).metadata
    verifications: list[FieldVerification] = []

    title = _expected_title(updates)
    if title:
        verifications.append(_check("title", title, read_back.title))

    authors = _expected_authors(updates)
    if authors:
        expected_sorted = ", ".join(sorted(authors))
        actual_sorted = ", ".join(sorted(a.name for a in read_back.authors))
        verifications.append(_check("authors", expected_sorted, actual_sorted))

    language = sanitize_metadata_string(updates.language)
    if language:
        expected_lang = normalize_language_code(language).code
        verifications.append(
            _check(
                "language",
                expected_lang,
                read_back.language,
                passed=expected_lang.lower() == read_back.language.lower(),
            )
        )

    for name in ("publisher", "description"):
        value = sanitize_metadata_string(getattr(updates, name))
        if value:
            verifications.append(_check(name, value, getattr(read_back, name)))

    isbn = sanitize_metadata_string(updates.identifier)
    if isbn and looks_like_isbn(isbn):
        verifications.append(
            _check(
                "isbn",
                isbn,
                read_back.isbn,
                passed=compact_isbn(isbn).upper() == compact_isbn(read_back.isbn).upper(),
            )
        )

    return verifications


def _cleanup_dest(dest: Path) -> None:
    """Remove the destination file if it exists."""
    if dest.exists():
        dest.unlink()


def apply_metadata_safely(
    source: Path,
    updates: MetadataUpdate,
    output_dir: Path,
    cover: bytes | None = None,
) -> WriteResult:
    """Copy an EPUB to output_dir and write updated metadata to the copy.

    The original file is never modified. If a file with the same name already
    exists in output_dir, a numeric suffix (_1, _2, ...) is appended.
    After writing, the copy is read back and verified field-by-field.
    If write or verification fails, the copy is deleted.

    Args:
        source: Path to the original EPUB file.
        updates: The field updates to merge into the copy.
        output_dir: Directory to place the modified copy.
        cover: Replacement cover image bytes, if any.

    Returns:
        WriteResult with path, success flag, verification details and any
        advisory warnings from the merge.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    dest = output_dir / source.name
    if dest.exists():
        dest = _resolve_collision(dest)

    shutil.copy2(source, dest)

    try:
        merge = write_epub_metadata(dest, updates, cover=cover)
    except (OSError, EpubReadError) as exc:
        _cleanup_dest(dest)
        return WriteResult(path=None, success=False, error=str(exc))

    try:
        verifications = _verify_write(dest, updates)
    except (OSError, EpubReadError) as exc:
        _cleanup_dest(dest)
        return WriteResult(path=None, success=False, warnings=merge.warnings, error=str(exc))

    if not all(v.passed for v in verifications):
        _cleanup_dest(dest)
        failed = [v.field for v in verifications if not v.passed]
        logger.warning("Verification failed for %s: %s", source, ", ".join(failed))
        return WriteResult(
            path=None,
            success=False,
            verified_fields=verifications,
            warnings=merge.warnings,
            error=f"Verification failed for: {', '.join(failed)}",
        )

    return WriteResult(
        path=dest, success=True, verified_fields=verifications, warnings=merge.warnings
    )
