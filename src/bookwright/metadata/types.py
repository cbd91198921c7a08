# ABOUTME: Core metadata data structures for EPUB package metadata.
# ABOUTME: BookMetadata is what extraction produces; MetadataUpdate is what a caller asks to change.

from dataclasses import dataclass, field

DEFAULT_AUTHOR_ROLE = "aut"
DEFAULT_CONTRIBUTOR_ROLE = "contributor"


@dataclass
class Author:
    """A creator of the book, in display order."""

    name: str
    role: str = DEFAULT_AUTHOR_ROLE
    file_as: str | None = None


@dataclass
class Contributor:
    """A secondary contributor (editor, translator, illustrator...)."""

    name: str
    role: str = DEFAULT_CONTRIBUTOR_ROLE


@dataclass
class Series:
    """Series membership: a name plus an optional position within it."""

    name: str
    index: str | None = None


@dataclass
class IdentifierRecord:
    """One identifier element as found in the package document.

    `type_refinement` holds the value of a version-3 identifier-type
    refinement targeting this identifier, when there is one.
    """

    value: str
    scheme: str | None = None
    id: str | None = None
    type_refinement: str | None = None


@dataclass
class BookMetadata:
    """Version-agnostic metadata extracted from a package document.

    This is the record shown to a caller before editing. `isbn` is the one
    identifier classified as an ISBN; every other identifier is kept
    verbatim in `identifiers`.
    """

    title: str = ""
    subtitle: str | None = None
    authors: list[Author] = field(default_factory=list)
    contributors: list[Contributor] = field(default_factory=list)
    language: str = ""
    isbn: str = ""
    identifiers: list[IdentifierRecord] = field(default_factory=list)
    publisher: str = ""
    date: str = ""
    description: str = ""
    rights: str = ""
    series: Series | None = None
    subjects: list[str] = field(default_factory=list)

    @property
    def author(self) -> str:
        """Convenience property: the first author's name, or empty."""
        return self.authors[0].name if self.authors else ""


@dataclass
class MetadataUpdate:
    """A partial set of field updates supplied by a caller.

    Every field defaults to None, which means "leave unchanged". An explicit
    empty list for `subjects` clears the subjects; a `series` with an empty
    name clears the series.

    `author` is the legacy single-author form. It is only consulted when
    `authors` is not supplied.
    """

    title: str | None = None
    subtitle: str | None = None
    author: str | None = None
    authors: list[Author] | None = None
    contributors: list[Contributor] | None = None
    language: str | None = None
    identifier: str | None = None
    publisher: str | None = None
    date: str | None = None
    description: str | None = None
    rights: str | None = None
    series: Series | None = None
    subjects: list[str] | None = None

    @classmethod
    def from_metadata(cls, metadata: BookMetadata) -> "MetadataUpdate":
        """Build an update that would write back every field of `metadata`."""
        return cls(
            title=metadata.title,
            subtitle=metadata.subtitle,
            authors=list(metadata.authors),
            contributors=list(metadata.contributors),
            language=metadata.language,
            identifier=metadata.isbn,
            publisher=metadata.publisher,
            date=metadata.date,
            description=metadata.description,
            rights=metadata.rights,
            series=metadata.series,
            subjects=list(metadata.subjects),
        )
