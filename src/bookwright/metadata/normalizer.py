# ABOUTME: Cleanup of caller-authored metadata before it is written back to an EPUB.
# ABOUTME: Trims, deduplicates, fixes dates and languages, strips HTML, sanitizes stored strings.

import email.utils
import logging
import re
from dataclasses import dataclass, fields, replace
from datetime import datetime

from bookwright.metadata.language import normalize_language_code
from bookwright.metadata.types import (
    DEFAULT_AUTHOR_ROLE,
    DEFAULT_CONTRIBUTOR_ROLE,
    Author,
    BookMetadata,
    Contributor,
    MetadataUpdate,
    Series,
)

logger = logging.getLogger(__name__)

# Upper bound on any single string written into a package document.
MAX_METADATA_LENGTH = 10_000

# Control characters other than tab, newline and carriage return.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

_ISO_DATE_RE = re.compile(r"^\d{4}(-\d{2}-\d{2})?$")
_YEAR_RE = re.compile(r"\d{4}")
# A tag opens with a name, "/", "!" or "?"; "a < b > c" is text.
_TAG_RE = re.compile(r"<[A-Za-z/!?][^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

_HTML_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)

# Tried in order after datetime.fromisoformat.
_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %Y",
    "%b %Y",
)

Metadata = BookMetadata | MetadataUpdate


@dataclass
class NormalizationResult:
    """Result of normalizing a metadata record.

    Attributes:
        original: The unmodified input.
        normalized: The cleaned record (a new object of the same type).
        warnings: Advisory notes, e.g. about an unrecognized language code.
    """

    original: Metadata
    normalized: Metadata
    warnings: list[str]

    @property
    def was_modified(self) -> bool:
        """Whether normalization changed any field."""
        return self.normalized != self.original


def sanitize_metadata_string(value: str | None, max_length: int = MAX_METADATA_LENGTH) -> str:
    """Make a string safe to store in a package document.

    Removes control characters (tab and newlines survive), trims, and caps
    the length. Never raises; non-string input yields "".
    """
    if not value or not isinstance(value, str):
        return ""
    cleaned = _CONTROL_CHARS_RE.sub("", value).strip()
    return cleaned[:max_length].rstrip()


def _parse_date(text: str) -> datetime | None:
    """Best-effort parse of a free-form date string."""
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return email.utils.parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None


def normalize_date(text: str) -> str:
    """Normalize a publication date to YYYY-MM-DD or YYYY.

    Values already shaped YYYY or YYYY-MM-DD pass through. Otherwise the
    string is parsed and re-rendered; failing that, the first four-digit
    run is used as a year; failing that, the input comes back unchanged.
    """
    if not text or _ISO_DATE_RE.match(text):
        return text

    parsed = _parse_date(text)
    if parsed is not None:
        return f"{parsed.year:04d}-{parsed.month:02d}-{parsed.day:02d}"

    year = _YEAR_RE.search(text)
    if year:
        return year.group(0)

    logger.debug("Could not interpret date %r, leaving it as-is", text)
    return text


def strip_html(text: str) -> str:
    """Reduce an HTML fragment to plain text with collapsed whitespace.

    Repeats until nothing changes, so decoded entities that spell out a
    tag are removed as well and a second call is a no-op. Escaped
    comparisons such as "x &lt; y" survive as text; an escaped run that
    decodes to something tag-shaped ("&lt;y&gt;") is removed.
    """
    previous = None
    while text != previous:
        previous = text
        text = _TAG_RE.sub("", text)
        for entity, replacement in _HTML_ENTITIES:
            text = text.replace(entity, replacement)
        text = _WHITESPACE_RE.sub(" ", text).strip()
    return text


def _normalize_entry(entry: object) -> object | None:
    """Trim one sequence entry; None means the entry is empty and dropped."""
    if isinstance(entry, str):
        return entry.strip() or None
    if isinstance(entry, Author):
        name = entry.name.strip()
        if not name:
            return None
        file_as = entry.file_as.strip() if entry.file_as else None
        return Author(
            name=name,
            role=entry.role.strip() or DEFAULT_AUTHOR_ROLE,
            file_as=file_as or None,
        )
    if isinstance(entry, Contributor):
        name = entry.name.strip()
        if not name:
            return None
        return Contributor(name=name, role=entry.role.strip() or DEFAULT_CONTRIBUTOR_ROLE)
    return entry


def _normalize_sequence(values: list) -> list:
    """Trim entries, drop empties, and deduplicate keeping first-seen order."""
    result: list = []
    for value in values:
        entry = _normalize_entry(value)
        if entry is not None and entry not in result:
            result.append(entry)
    return result


def _normalize_value(value: object) -> object:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return _normalize_sequence(value)
    if isinstance(value, Series):
        index = value.index.strip() if value.index else None
        return Series(name=value.name.strip(), index=index or None)
    return value


def normalize_metadata(metadata: Metadata) -> NormalizationResult:
    """Clean a metadata record authored by a caller.

    Works on both BookMetadata and MetadataUpdate; fields that are None in
    an update stay None. The transform is idempotent and never fails:
    anything questionable ends up in the returned warnings.

    Args:
        metadata: The record to normalize.

    Returns:
        NormalizationResult holding the cleaned copy and any warnings.
    """
    warnings: list[str] = []
    changes = {f.name: _normalize_value(getattr(metadata, f.name)) for f in fields(metadata)}

    if changes.get("date"):
        changes["date"] = normalize_date(changes["date"])

    if changes.get("description"):
        changes["description"] = strip_html(changes["description"])

    if changes.get("language"):
        result = normalize_language_code(changes["language"])
        changes["language"] = result.code
        if result.warning:
            warnings.append(result.warning)
        if result.converted:
            warnings.append(f'Language code converted: "{result.original}" → "{result.code}"')

    normalized = replace(metadata, **changes)
    return NormalizationResult(original=metadata, normalized=normalized, warnings=warnings)
