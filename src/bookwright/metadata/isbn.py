# ABOUTME: ISBN recognition and helpers for identifier elements.
# ABOUTME: Decides which identifier record is the ISBN, and converts/validates ISBN values.

import re

from bookwright.metadata.types import IdentifierRecord

# ONIX codelist 5 product identifier types.
ONIX_ISBN10 = "02"
ONIX_ISBN13 = "15"
ONIX_SCHEME = "onix:codelist5"

_URN_PREFIX_RE = re.compile(r"^urn:isbn:", re.IGNORECASE)
_SEPARATORS_RE = re.compile(r"[-\s]")
_ISBN10_RE = re.compile(r"^\d{9}[\dX]$", re.IGNORECASE)
_ISBN13_RE = re.compile(r"^(978|979)\d{10}$")


def strip_urn_prefix(value: str) -> str:
    """Remove a leading "urn:isbn:" (any case), keeping all other formatting."""
    return _URN_PREFIX_RE.sub("", value.strip())


def compact_isbn(value: str) -> str:
    """Strip the URN prefix plus hyphens and whitespace from an ISBN-ish value."""
    return _SEPARATORS_RE.sub("", strip_urn_prefix(value))


def isbn_kind(value: str) -> str | None:
    """Return "ISBN-13" or "ISBN-10" if the value has that shape, else None.

    Only the shape is checked (digit count, 978/979 prefix); the check digit
    is not verified.
    """
    compact = compact_isbn(value)
    if _ISBN13_RE.match(compact):
        return "ISBN-13"
    if _ISBN10_RE.match(compact):
        return "ISBN-10"
    return None


def looks_like_isbn(value: str) -> bool:
    """Whether a value has the shape of an ISBN-10 or ISBN-13."""
    return isbn_kind(value) is not None


def onix_code(value: str) -> str | None:
    """ONIX codelist-5 identifier type for an ISBN value, or None."""
    kind = isbn_kind(value)
    if kind == "ISBN-13":
        return ONIX_ISBN13
    if kind == "ISBN-10":
        return ONIX_ISBN10
    return None


def is_isbn_identifier(record: IdentifierRecord) -> bool:
    """Decide whether an identifier record represents an ISBN.

    Rules, first true wins:
    1. an explicit scheme of "ISBN";
    2. an identifier-type refinement of "02"/"15" (ONIX) or "ISBN";
    3. a value shaped like an ISBN-10;
    4. a value shaped like an ISBN-13.
    """
    if record.scheme == "ISBN":
        return True
    if record.type_refinement is not None:
        refinement = record.type_refinement.strip()
        if refinement in (ONIX_ISBN10, ONIX_ISBN13) or refinement.upper() == "ISBN":
            return True
    compact = compact_isbn(record.value)
    return bool(_ISBN10_RE.match(compact) or _ISBN13_RE.match(compact))


def find_isbn(records: list[IdentifierRecord]) -> IdentifierRecord | None:
    """Return the first record classified as an ISBN, or None."""
    for record in records:
        if is_isbn_identifier(record):
            return record
    return None


def is_valid_isbn10(isbn: str) -> bool:
    """Validate an ISBN-10 including its check digit."""
    compact = compact_isbn(isbn).upper()
    if not _ISBN10_RE.match(compact):
        return False
    total = sum((10 - i) * (10 if ch == "X" else int(ch)) for i, ch in enumerate(compact))
    return total % 11 == 0


def is_valid_isbn13(isbn: str) -> bool:
    """Validate an ISBN-13 including its check digit."""
    compact = compact_isbn(isbn)
    if not _ISBN13_RE.match(compact):
        return False
    total = sum(int(ch) if i % 2 == 0 else int(ch) * 3 for i, ch in enumerate(compact[:12]))
    return (10 - total % 10) % 10 == int(compact[-1])


def isbn10_to_isbn13(isbn10: str) -> str:
    """Convert an ISBN-10 to its 978-prefixed ISBN-13 form (no hyphens)."""
    core = "978" + compact_isbn(isbn10)[:9]
    total = sum(int(ch) if i % 2 == 0 else int(ch) * 3 for i, ch in enumerate(core))
    return core + str((10 - total % 10) % 10)
